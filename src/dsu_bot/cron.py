#!/usr/bin/env python3
# ══════════════════════════════════════════════════════════════════════════════
#  DSU Bot - Cron & Timezone Helpers
#  Copyright (c) 2025 SIRIUS Alpha
# ══════════════════════════════════════════════════════════════════════════════
"""
Cron expression validation and schedule evaluation.

Expressions use the classic 5-field crontab layout::

    minute  hour  day-of-month  month  day-of-week
    0-59    0-23  1-31          1-12   0-7 (0 and 7 are Sunday)

Each field is a comma-separated list of ``*``, ``n`` or ``a-b`` items, each
optionally followed by ``/step``.
"""

from datetime import datetime, timezone as dt_timezone
from typing import Dict, List, Optional, Set, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.triggers.cron import CronTrigger

FIELD_NAMES = ("minute", "hour", "day", "month", "day_of_week")
FIELD_BOUNDS: Tuple[Tuple[int, int], ...] = (
    (0, 59),
    (0, 23),
    (1, 31),
    (1, 12),
    (0, 7),
)

# Index matches cron numbering: 0 = Sunday
CRON_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")
DISPLAY_DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

KNOWN_DOW_PATTERNS: Dict[str, str] = {
    "1-5": "Mon-Fri",
    "*": "Daily",
    "0-6": "Daily",
    "0-7": "Daily",
    "1-7": "Daily",
    "1-6": "Mon-Sat",
    "0,6": "Weekends",
    "6,0": "Weekends",
    "6,7": "Weekends",
}


# ══════════════════════════════════════════════════════════════════════════════
# PARSING
# ══════════════════════════════════════════════════════════════════════════════


def _parse_int(token: str) -> Optional[int]:
    if not token or not token.isdigit():
        return None
    return int(token)


def _expand_item(item: str, low: int, high: int) -> Optional[Set[int]]:
    """Expand one list item (``*``, ``n``, ``a-b`` with optional ``/step``)."""
    base, sep, step_token = item.partition("/")
    step = 1
    if sep:
        parsed_step = _parse_int(step_token)
        if parsed_step is None or parsed_step < 1:
            return None
        step = parsed_step

    if base == "*":
        start, end = low, high
    elif "-" in base:
        start_token, _, end_token = base.partition("-")
        start, end = _parse_int(start_token), _parse_int(end_token)
        if start is None or end is None or start > end:
            return None
    else:
        start = _parse_int(base)
        if start is None:
            return None
        # "5/15" means "from 5 to the end of the range every 15"
        end = high if sep else start

    if start < low or end > high:
        return None
    return set(range(start, end + 1, step))


def expand_field(token: str, low: int, high: int) -> Optional[Set[int]]:
    """Expand a cron field into the set of values it matches, or None if invalid."""
    if not token:
        return None
    values: Set[int] = set()
    for item in token.split(","):
        expanded = _expand_item(item, low, high)
        if expanded is None:
            return None
        values |= expanded
    return values


def split_cron(expr: str) -> Optional[List[str]]:
    """Split an expression into its 5 fields if every field parses."""
    if not isinstance(expr, str):
        return None
    fields = expr.split()
    if len(fields) != 5:
        return None
    for token, (low, high) in zip(fields, FIELD_BOUNDS):
        if expand_field(token, low, high) is None:
            return None
    return fields


def is_valid_cron(expr: str) -> bool:
    """Return True when ``expr`` is a well-formed 5-field cron expression."""
    try:
        return split_cron(expr) is not None
    except Exception:
        return False


# ══════════════════════════════════════════════════════════════════════════════
# TIMEZONES
# ══════════════════════════════════════════════════════════════════════════════


def resolve_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA timezone name, raising ZoneInfoNotFoundError if unknown."""
    if not name:
        raise ZoneInfoNotFoundError("Empty timezone name")
    return ZoneInfo(name)


def is_valid_timezone(name: str) -> bool:
    try:
        resolve_timezone(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def now_in(timezone: str, now: Optional[datetime] = None) -> datetime:
    """Convert ``now`` (default: current instant) to wall-clock time in ``timezone``.

    Naive datetimes are interpreted as UTC.
    """
    instant = now or datetime.now(dt_timezone.utc)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=dt_timezone.utc)
    return instant.astimezone(resolve_timezone(timezone))


def is_weekday(now: Optional[datetime], timezone: str) -> bool:
    """True when the local day in ``timezone`` is Monday through Friday."""
    return now_in(timezone, now).isoweekday() <= 5


def format_local(now: datetime, timezone: Optional[str] = None) -> str:
    """Format a datetime for log lines, e.g. 'Wednesday, January 15, 2025 09:00 AM WIB'."""
    if timezone:
        now = now_in(timezone, now)
    return f"{now:%A}, {now:%B} {now.day}, {now.year} {now:%I:%M %p} {now.tzname() or ''}".rstrip()


# ══════════════════════════════════════════════════════════════════════════════
# DESCRIPTIONS
# ══════════════════════════════════════════════════════════════════════════════


def _describe_time(minute: str, hour: str) -> str:
    if minute.isdigit() and hour.isdigit():
        hour_num, minute_num = int(hour), int(minute)
        suffix = "PM" if hour_num >= 12 else "AM"
        display_hour = hour_num % 12 or 12
        return f"{display_hour}:{minute_num:02d} {suffix}"
    return f"minute {minute} past hour {hour}"


def _describe_days(day_of_week: str) -> str:
    if day_of_week in KNOWN_DOW_PATTERNS:
        return KNOWN_DOW_PATTERNS[day_of_week]
    if day_of_week.isdigit():
        return DISPLAY_DAY_NAMES[int(day_of_week) % 7]
    return f"DOW: {day_of_week}"


def describe_cron(expr: str) -> str:
    """Render a cron expression like ``9:00 AM (Mon-Fri)``.

    Anything that does not parse is returned unchanged.
    """
    try:
        fields = split_cron(expr)
        if fields is None:
            return expr
        minute, hour, _, _, day_of_week = fields
        return f"{_describe_time(minute, hour)} ({_describe_days(day_of_week)})"
    except Exception:
        return expr


# ══════════════════════════════════════════════════════════════════════════════
# APSCHEDULER TRIGGERS
# ══════════════════════════════════════════════════════════════════════════════


def _day_of_week_names(token: str) -> str:
    """Translate a cron day-of-week field into APScheduler day names.

    APScheduler numbers weekdays from Monday = 0, so numeric cron values are
    converted to names before being handed over.
    """
    if token == "*":
        return "*"
    days = expand_field(token, 0, 7)
    if days is None:
        raise ValueError(f"Invalid day-of-week field: {token}")
    normalized = sorted({day % 7 for day in days})
    return ",".join(CRON_DAY_NAMES[day] for day in normalized)


def build_cron_trigger(expr: str, timezone: str) -> CronTrigger:
    """Build an APScheduler trigger that fires exactly when ``expr`` would under cron."""
    fields = split_cron(expr)
    if fields is None:
        raise ValueError(f"Invalid cron expression: {expr!r}")
    minute, hour, day, month, day_of_week = fields
    return CronTrigger(
        minute=minute,
        hour=hour,
        day=day,
        month=month,
        day_of_week=_day_of_week_names(day_of_week),
        timezone=resolve_timezone(timezone),
    )
