"""Calendar-day helpers shared by the milestone and aggregation code."""

from __future__ import annotations

from datetime import date, datetime, timedelta


def start_of_day(moment: datetime) -> datetime:
    """Truncate a datetime to midnight of the same calendar day."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_today() -> datetime:
    return start_of_day(datetime.now())


def add_days(moment: datetime, days: int) -> datetime:
    return moment + timedelta(days=days)


def is_before_day(moment: datetime, day: datetime) -> bool:
    """True when ``moment`` falls on a calendar day strictly before ``day``."""
    return start_of_day(moment) < start_of_day(day)


def within_days(moment: datetime, first: datetime, last: datetime) -> bool:
    """True when the calendar day of ``moment`` lies in ``[first, last]``."""
    return start_of_day(first) <= start_of_day(moment) <= start_of_day(last)


def to_local_naive(moment: datetime) -> datetime:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


def parse_iso(value: str | None) -> datetime | None:
    """Parse an ISO-8601 date or datetime string as stored by the document store.

    Date-only values become midnight. Returns None for empty input.
    """
    if not value:
        return None
    if len(value) == 10:
        return datetime.combine(date.fromisoformat(value), datetime.min.time())
    return to_local_naive(datetime.fromisoformat(value.replace("Z", "+00:00")))


def format_iso(moment: datetime | None) -> str | None:
    if moment is None:
        return None
    return moment.isoformat()
