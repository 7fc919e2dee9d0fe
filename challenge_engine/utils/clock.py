# challenge_engine/utils/clock.py
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalizes a datetime to aware UTC. Naive values are taken to already be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    """Storage form used by the SQL tables (naive UTC columns)."""
    return as_utc(value).replace(tzinfo=None)


def local_day(value: datetime, tz_name: str) -> date:
    """Calendar day of `value` in the configured selection timezone."""
    return as_utc(value).astimezone(ZoneInfo(tz_name)).date()
