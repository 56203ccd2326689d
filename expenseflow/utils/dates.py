"""
Timezone-aware date helpers.

Stored timestamps are UTC. Every helper takes the user's ``timezone``
setting, which is an IANA name or ``"auto"`` for the machine's local zone.
"""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


AUTO = "auto"

COMMON_TIMEZONES: tuple[tuple[str, str], ...] = (
    (AUTO, "Auto-detect"),
    ("America/New_York", "Eastern Time (ET)"),
    ("America/Chicago", "Central Time (CT)"),
    ("America/Denver", "Mountain Time (MT)"),
    ("America/Los_Angeles", "Pacific Time (PT)"),
    ("Europe/London", "London (GMT/BST)"),
    ("Europe/Paris", "Paris (CET/CEST)"),
    ("Asia/Kolkata", "India (IST)"),
    ("Asia/Dubai", "Dubai (GST)"),
    ("Asia/Tokyo", "Tokyo (JST)"),
    ("Asia/Shanghai", "Shanghai (CST)"),
    ("Asia/Singapore", "Singapore (SGT)"),
    ("Australia/Sydney", "Sydney (AEDT/AEST)"),
    ("Pacific/Auckland", "Auckland (NZDT/NZST)"),
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def effective_timezone(name: Optional[str] = AUTO) -> tzinfo:
    """
    Resolve a timezone setting.

    Raises:
        ValueError: unknown IANA name
    """
    if not name or name == AUTO:
        return datetime.now().astimezone().tzinfo
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {name}")


def _aware(value: Union[datetime, date]) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        # Naive datetimes are stored values, which are UTC
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_date_for_input(value: Optional[Union[datetime, date]], tz: str = AUTO) -> str:
    """``YYYY-MM-DD`` as the date appears in ``tz``; empty for None."""
    if value is None:
        return ""
    return _aware(value).astimezone(effective_timezone(tz)).strftime("%Y-%m-%d")


def format_datetime_for_input(value: Optional[datetime], tz: str = AUTO) -> str:
    if value is None:
        return ""
    return _aware(value).astimezone(effective_timezone(tz)).strftime("%Y-%m-%dT%H:%M")


def parse_input_date(
    text: Optional[str],
    tz: str = AUTO,
    now: Optional[datetime] = None,
) -> datetime:
    """
    Parse a form date (``YYYY-MM-DD`` or ``YYYY-MM-DDTHH:MM``) entered in
    ``tz`` and return it in UTC.

    A bare date takes the current time of day in ``tz``; an empty value
    means now.

    Raises:
        ValueError: unparseable input
    """
    zone = effective_timezone(tz)
    now = _aware(now or utcnow())
    if not text or not text.strip():
        return now.astimezone(timezone.utc)

    text = text.strip()
    if len(text) == 10:
        day = date.fromisoformat(text)
        local_now = now.astimezone(zone)
        parsed = datetime.combine(day, local_now.time().replace(microsecond=0), tzinfo=zone)
    else:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=zone)
    return parsed.astimezone(timezone.utc)


def start_of_day(value: Union[datetime, date], tz: str = AUTO) -> datetime:
    """Midnight of ``value``'s day in ``tz``, as an aware UTC datetime."""
    zone = effective_timezone(tz)
    local = _aware(value).astimezone(zone)
    return datetime.combine(local.date(), time.min, tzinfo=zone).astimezone(timezone.utc)


def end_of_day(value: Union[datetime, date], tz: str = AUTO) -> datetime:
    """Last second of ``value``'s day in ``tz``, as an aware UTC datetime."""
    return start_of_day(value, tz) + timedelta(days=1, seconds=-1)


def format_display_date(value: Optional[Union[datetime, date]], tz: str = AUTO) -> str:
    """``Mon, Jan 5, 2026`` style date in ``tz``."""
    if value is None:
        return ""
    local = _aware(value).astimezone(effective_timezone(tz))
    return f"{local:%a}, {local:%b} {local.day}, {local.year}"
