"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, date, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to naive datetimes, convert aware ones to UTC.

    Args:
        value: Datetime (naive values are assumed to be UTC)

    Returns:
        Timezone-aware UTC datetime
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_date(value: datetime | date) -> date:
    """Calendar day of value in UTC."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    return value


def is_same_day(first: datetime | date | None, second: datetime | date) -> bool:
    """
    Compare two moments by UTC calendar day (not a rolling 24h window).

    Args:
        first: Earlier moment, None means "never"
        second: Moment to compare against

    Returns:
        True if both fall on the same UTC calendar day
    """
    if first is None:
        return False
    return utc_date(first) == utc_date(second)
