"""UTC-everywhere time handling for tickets, invoices and payments."""

from datetime import datetime, timedelta, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone). Legacy records
    stored without an offset must be fixed on the read path, not here.
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def days_from_now(days: int, now: datetime | None = None) -> datetime:
    """UTC datetime `days` whole days after `now` (defaults to the current time)."""
    base = to_utc(now) if now is not None else now_utc()
    return base + timedelta(days=days)


def is_past(dt: datetime | None, now: datetime | None = None) -> bool:
    """
    Whether `dt` lies strictly before `now`.

    A missing datetime is never in the past (an invoice without a due date
    cannot be overdue).
    """
    if dt is None:
        return False
    reference = to_utc(now) if now is not None else now_utc()
    return to_utc(dt) < reference
