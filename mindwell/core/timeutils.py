"""
UTC helpers shared by every date-bucketed calculation.

All timestamps are stored in UTC. Some drivers (SQLite) hand them back
naive, so anything read from the database goes through `as_utc` before it
is compared with an aware instant.
"""
from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def today() -> date:
    return utcnow().date()


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    """Midnight UTC at the start of `day`."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a UTC calendar day."""
    start = start_of_day(day)
    return start, start + timedelta(days=1)
