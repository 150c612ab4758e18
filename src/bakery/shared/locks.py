"""Per-key mutual exclusion for check-then-write paths.

Order numbering and loyalty redemptions read state, decide, and write it back.
Both run while holding a lock keyed by the contended resource (the calendar
day, the customer account), so two requests for the same key are serialised
while requests for different keys proceed independently.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLock:
    """A lazily-populated family of re-entrant locks, one per key."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, key) -> Iterator[None]:
        lock = self._lock_for(str(key))
        with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


order_day_locks = KeyedLock("order-day")
loyalty_account_locks = KeyedLock("loyalty-account")
