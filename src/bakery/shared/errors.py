"""Error kinds surfaced by the bakery core.

Each kind extends the matching Protean exception so that the HTTP layer can
translate it without special cases: validation problems become 400s, missing
records 404s, and retryable conflicts 409s.
"""

from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError

__all__ = [
    "ValidationError",
    "NotFoundError",
    "UnavailableItemsError",
    "InsufficientPointsError",
    "IllegalTransitionError",
    "ConcurrencyConflictError",
]


class NotFoundError(ObjectNotFoundError):
    """A referenced entity does not exist."""

    def __init__(self, kind: str, identifier) -> None:
        self.kind = kind
        self.identifier = str(identifier)
        super().__init__({kind: [f"{kind} {identifier} not found"]})


class UnavailableItemsError(ValidationError):
    """One or more cart lines reference products that cannot be sold right now."""

    def __init__(self, product_names: list[str]) -> None:
        self.product_names = list(product_names)
        super().__init__({"items": [f"Unavailable products: {', '.join(self.product_names)}"]})


class InsufficientPointsError(ValidationError):
    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__({"points": [f"Insufficient points: requested {requested}, available {available}"]})


class IllegalTransitionError(ValidationError):
    """A status change is not permitted from the current status (or for this actor)."""

    def __init__(self, current: str, target: str, reason: str | None = None) -> None:
        self.current = current
        self.target = target
        message = reason or f"Cannot transition from {current} to {target}"
        super().__init__({"status": [message]})


class ConcurrencyConflictError(InvalidOperationError):
    """A concurrent writer got there first; the caller may retry."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.messages = {"conflict": [message]}
