"""
Datetime utilities.

Provides timezone-aware datetime functions and calendar-day arithmetic.
All day counting goes through start-of-day boundaries so the time of day
never changes a day count.
"""

from datetime import UTC, date, datetime, timedelta, tzinfo


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by some drivers) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def local_date(value: datetime | date, tz: tzinfo = UTC) -> date:
    """
    Calendar day of an instant in the given timezone.

    Args:
        value: Instant (or an already-normalized date)
        tz: Timezone that defines day boundaries

    Returns:
        Calendar date
    """
    if isinstance(value, datetime):
        return ensure_aware(value).astimezone(tz).date()
    return value


def start_of_day(value: datetime | date, tz: tzinfo = UTC) -> datetime:
    """Midnight of the calendar day containing ``value`` in ``tz``."""
    day = local_date(value, tz)
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def days_between(start: datetime | date, end: datetime | date, tz: tzinfo = UTC) -> int:
    """
    Whole calendar days from ``start`` to ``end``.

    Negative when ``end`` falls on an earlier day than ``start``.
    """
    return (local_date(end, tz) - local_date(start, tz)).days


def previous_day(now: datetime, tz: tzinfo = UTC) -> date:
    """Calendar day before the one containing ``now``."""
    return local_date(now, tz) - timedelta(days=1)


def epoch_millis(value: datetime) -> int:
    """Milliseconds since the Unix epoch."""
    return int(ensure_aware(value).timestamp() * 1000)
