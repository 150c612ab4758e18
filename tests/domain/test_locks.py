"""Tests for per-key locks serialising check-then-write paths."""

import threading
import time

from bakery.shared.locks import KeyedLock


class TestKeyedLock:
    def test_same_key_is_serialised(self):
        locks = KeyedLock("test")
        active = []
        overlaps = []

        def worker():
            with locks.hold("240315"):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []

    def test_different_keys_get_different_locks(self):
        locks = KeyedLock("test")
        with locks.hold("a"), locks.hold("b"):
            pass
        assert len(locks) == 2

    def test_lock_is_reentrant(self):
        locks = KeyedLock("test")
        with locks.hold("a"):
            with locks.hold("a"):
                pass
        assert len(locks) == 1
