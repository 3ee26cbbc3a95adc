from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..core.constants import DEFAULT_TIMEZONE


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def now_utc() -> datetime:
    """Current time as an aware UTC datetime.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc)


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    """ZoneInfo for ``name``, falling back to the centre default."""
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(DEFAULT_TIMEZONE)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as read from the DB) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db(value: datetime) -> datetime:
    """Naive UTC for DATETIME columns."""
    return as_utc(value).replace(tzinfo=None)


def local_day_bounds(now: datetime, tz_name: Optional[str]) -> tuple[datetime, datetime]:
    """[start, end) of the calendar day containing ``now`` in ``tz_name``, in UTC."""
    tz = resolve_timezone(tz_name)
    local_day = as_utc(now).astimezone(tz).date()
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    end = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def utc_day_range(start: Optional[date], end: Optional[date]) -> tuple[Optional[datetime], Optional[datetime]]:
    """Inclusive UTC bounds for ?from=YYYY-MM-DD&to=YYYY-MM-DD export filters."""
    lo = datetime.combine(start, time.min, tzinfo=timezone.utc) if start else None
    hi = datetime.combine(end, time.max, tzinfo=timezone.utc) if end else None
    return lo, hi


def _ampm(d: datetime) -> str:
    return "am" if d.hour < 12 else "pm"


def format_message_date(d: datetime, tz_name: Optional[str]) -> str:
    """e.g. 'Fri, 15 Aug 2025'"""
    local = as_utc(d).astimezone(resolve_timezone(tz_name))
    return f"{local:%a}, {local:%d} {local:%b} {local:%Y}"


def format_message_time(d: datetime, tz_name: Optional[str]) -> str:
    """e.g. '7:04 pm AEST'"""
    local = as_utc(d).astimezone(resolve_timezone(tz_name))
    hour = local.hour % 12 or 12
    return f"{hour}:{local:%M} {_ampm(local)} {local.tzname()}"


def format_short_datetime(d: datetime, tz_name: Optional[str]) -> str:
    """e.g. '15 Aug 2025, 07:04 pm'"""
    local = as_utc(d).astimezone(resolve_timezone(tz_name))
    return f"{local:%d %b %Y}, {local:%I:%M} {_ampm(local)}"


def to_iso(value: Optional[datetime]) -> str:
    if value is None:
        return ""
    return as_utc(value).isoformat().replace("+00:00", "Z")


def months_ago(now: datetime, months: int) -> datetime:
    """Same day-of-month ``months`` earlier (clamped to month end)."""
    total = now.year * 12 + (now.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    day = now.day
    while True:
        try:
            return now.replace(year=year, month=month, day=day)
        except ValueError:
            day -= 1
