import time
from datetime import datetime, timezone

from src.utils.datetime_utils import (
    months_before,
    parse_date_or_none,
    parse_to_utc_with_tzinfo,
)


def test_parse_various_tz_strings():
    # GMT string
    dt, off, name = parse_to_utc_with_tzinfo("Tue, 15 Jan 2019 12:45:26 GMT")
    assert dt.tzinfo is not None and dt.tzinfo == timezone.utc
    assert off == 0
    assert name.upper().startswith("GMT") or name.upper() == "UTC"

    # ISO with offset -0300
    dt2, off2, _name2 = parse_to_utc_with_tzinfo("2025-09-30T12:00:00-03:00")
    assert off2 == -180
    assert dt2.hour == 15

    # Naive -> treated as UTC
    dt3, off3, _ = parse_to_utc_with_tzinfo("2024-01-01 00:00:00")
    assert off3 == 0
    assert dt3.tzinfo == timezone.utc


def test_parse_struct_time_as_utc():
    parsed = parse_date_or_none(time.strptime("2024-03-01 10:00:00", "%Y-%m-%d %H:%M:%S"))
    assert parsed == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


def test_parse_date_or_none_rejects_garbage():
    assert parse_date_or_none("not a date at all") is None
    assert parse_date_or_none("") is None
    assert parse_date_or_none(None) is None


def test_months_before_is_calendar_aware():
    reference = datetime(2024, 8, 31, tzinfo=timezone.utc)
    assert months_before(reference, 6) == datetime(2024, 2, 29, tzinfo=timezone.utc)
