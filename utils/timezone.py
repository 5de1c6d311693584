"""UTC-everywhere time handling for token and attempt expiry math."""

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    """
    Current time in UTC.

    Default clock for every service; inject a different Clock in tests.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime read from storage to aware UTC.

    PostgreSQL TIMESTAMP columns come back naive; those are taken to be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
