from datetime import UTC, datetime


def ensure_utc(moment: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so they compare with ``datetime.now(UTC)``."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=UTC)
