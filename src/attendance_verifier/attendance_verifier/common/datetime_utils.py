from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo
from functools import lru_cache
from zoneinfo import ZoneInfo

from ..core.exceptions import InputError, ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_utc() -> datetime:
    """Current time as an aware UTC datetime.

    Note: Wrapped so tests can patch/mock easier.
    """
    return datetime.now(timezone.utc)


@lru_cache(maxsize=32)
def get_zone(name: str) -> tzinfo:
    return ZoneInfo(name)


def to_local(instant: datetime, zone: tzinfo) -> datetime:
    """Express an instant in the deployment zone.

    Naive datetimes are taken to be wall-clock time in that zone already.
    """
    if instant.tzinfo is None:
        return instant.replace(tzinfo=zone)
    return instant.astimezone(zone)


def from_unix_seconds(value) -> datetime:
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise InputError(f"Invalid message timestamp: {value!r}")
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise InputError(f"Message timestamp out of range: {value!r}")


def parse_hhmm(value: str) -> int:
    """Parse HH:MM into a minute-of-day."""
    try:
        parsed = datetime.strptime(str(value).strip(), "%H:%M")
    except ValueError:
        raise ValidationError(f"Invalid time (HH:MM): {value!r}")
    return parsed.hour * 60 + parsed.minute


def format_hhmm(minute: int) -> str:
    return f"{minute // 60:02d}:{minute % 60:02d}"


def minute_of_day(instant: datetime) -> int:
    # Windows are HH:MM, seconds are ignored.
    return instant.hour * 60 + instant.minute
