from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from planner.shared.time import (
    as_utc,
    fmt_dt,
    fmt_time,
    iso_or_none,
    local_date,
    parse_date,
    parse_time,
    scheduled_start,
)

TUNIS = ZoneInfo("Africa/Tunis")


def test_fmt_dt_no_seconds():
    dt = datetime(2024, 1, 2, 3, 4, 5)
    out = fmt_dt(dt)
    assert out.endswith("03:04")
    assert out.count(":") == 1


def test_fmt_time_accepts_strings():
    assert fmt_time("09:05:00") == "09:05"
    assert fmt_time(time(14, 30)) == "14:30"
    assert fmt_time(None) == ""


def test_naive_datetimes_are_utc():
    assert as_utc(datetime(2030, 1, 1, 12)).tzinfo == timezone.utc
    assert iso_or_none(datetime(2030, 1, 1, 12)) == "2030-01-01T12:00:00+00:00"
    assert iso_or_none(None) is None


def test_local_date_crosses_midnight():
    late = datetime(2030, 3, 9, 23, 30, tzinfo=timezone.utc)
    assert local_date(late, TUNIS) == date(2030, 3, 10)


def test_scheduled_start_is_zone_aware():
    start = scheduled_start(date(2030, 3, 4), time(9), TUNIS)
    assert start.astimezone(timezone.utc) == datetime(2030, 3, 4, 8, tzinfo=timezone.utc)


def test_parsers():
    assert parse_date("2030-03-04") == date(2030, 3, 4)
    assert parse_time("09:30") == time(9, 30)
    with pytest.raises(ValueError):
        parse_date("04/03/2030")


@pytest.mark.parametrize("raw", ["09:00+01:00", time(9, tzinfo=timezone.utc)])
def test_parse_time_rejects_offsets(raw):
    with pytest.raises(ValueError):
        parse_time(raw)
