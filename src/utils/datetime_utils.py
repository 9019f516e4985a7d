from __future__ import annotations

import calendar
import time as _time
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple, Union

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

DateInput = Union[str, _time.struct_time, datetime, None]


def _tz_offset_minutes(dt: datetime) -> int:
    if dt.tzinfo is None:
        return 0
    offset = dt.utcoffset() or timedelta(0)
    return int(offset.total_seconds() // 60)


def _tz_name(dt: datetime) -> str:
    if dt.tzinfo is None:
        return "UTC"
    name = dt.tzname() or ""
    if name:
        return name
    minutes = _tz_offset_minutes(dt)
    sign = "+" if minutes >= 0 else "-"
    m = abs(minutes)
    return f"UTC{sign}{m // 60:02d}:{m % 60:02d}"


def parse_to_utc_with_tzinfo(value: DateInput) -> Tuple[datetime, int, str]:
    """
    Parse many feed and page date forms into a canonical UTC datetime.

    Returns: (dt_utc, original_tz_offset_minutes, original_tz_name)
    """
    if value is None:
        dt = datetime.now(timezone.utc)
        return dt, 0, "UTC"

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, _time.struct_time):
        # feedparser struct_time values are already UTC
        dt = datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
    else:
        dt = date_parser.parse(str(value).strip())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    tz_offset = _tz_offset_minutes(dt)
    tzname = _tz_name(dt)
    return dt.astimezone(timezone.utc), tz_offset, tzname


def parse_date_or_none(value: DateInput) -> Optional[datetime]:
    """Return the UTC datetime for ``value`` or None when it cannot be parsed."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        dt_utc, _offset, _name = parse_to_utc_with_tzinfo(value)
    except (ValueError, OverflowError, TypeError):
        return None
    return dt_utc


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def months_before(reference: datetime, months: int) -> datetime:
    """Calendar-aware subtraction: 2024-08-31 minus 6 months is 2024-02-29."""
    return reference - relativedelta(months=months)
