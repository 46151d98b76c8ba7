from datetime import UTC, datetime


def now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from MongoDB."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def seconds_until(moment: datetime, current: datetime | None = None) -> int:
    """Whole seconds left until moment, never negative."""
    current = current or now()
    return max(0, int((as_utc(moment) - current).total_seconds()))
