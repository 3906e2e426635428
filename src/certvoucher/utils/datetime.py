"""Date-time helpers for workflow timestamps."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime:
    """Normalize an optional caller-supplied timestamp to aware UTC.

    Naive values are assumed to already be UTC; ``None`` means "now".
    """

    if value is None:
        return utcnow()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
