"""
Time helpers shared by the lifecycle services.

Services take a ``clock`` callable so tests can pin "now". Datetimes read
back from SQLite are naive and are treated as UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional

from dateutil import tz

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def resolve_timezone(name: str):
    """
    Look up an IANA timezone.

    Raises:
        ValueError: If the name is unknown
    """
    zone = tz.gettz(name)
    if zone is None:
        raise ValueError(f"Unknown timezone: {name}")
    return zone


def local_to_utc(day: date, at: time, timezone_name: str) -> datetime:
    """Convert a local date and wall-clock time in ``timezone_name`` to UTC."""
    local = datetime.combine(day, at).replace(tzinfo=resolve_timezone(timezone_name))
    return local.astimezone(timezone.utc)


def event_end_utc(day: date, at: time, timezone_name: str, duration_minutes: int) -> datetime:
    """Scheduled start plus estimated duration, in UTC."""
    return local_to_utc(day, at, timezone_name) + timedelta(minutes=duration_minutes)


def local_today(now: datetime, timezone_name: str) -> date:
    """Calendar date of ``now`` as seen in ``timezone_name``."""
    return ensure_utc(now).astimezone(resolve_timezone(timezone_name)).date()
