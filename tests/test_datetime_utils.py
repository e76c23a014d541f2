import sys
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

from src.utils.datetime_utils import (
    is_same_local_day,
    isoformat_or_none,
    parse_to_utc,
    resolve_timezone,
)


def test_parse_various_date_forms():
    rfc = parse_to_utc("Tue, 15 Jan 2019 12:45:26 GMT")
    assert rfc == datetime(2019, 1, 15, 12, 45, 26, tzinfo=timezone.utc)

    offset = parse_to_utc("2025-09-30T12:00:00-03:00")
    assert offset == datetime(2025, 9, 30, 15, 0, tzinfo=timezone.utc)

    naive = parse_to_utc("2024-01-01 00:00:00")
    assert naive.tzinfo == timezone.utc

    struct = parse_to_utc(time.struct_time((2024, 5, 6, 7, 8, 9, 0, 127, 0)))
    assert struct == datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", [None, "", "not a date at all"])
def test_unparseable_dates_are_none(value):
    assert parse_to_utc(value) is None


def test_resolve_timezone_falls_back_to_utc():
    assert resolve_timezone("Not/AZone") is timezone.utc
    assert str(resolve_timezone("Asia/Shanghai")) == "Asia/Shanghai"


def test_same_local_day_depends_on_zone():
    evening_utc = datetime(2026, 3, 9, 20, 0, tzinfo=timezone.utc)
    morning_utc = datetime(2026, 3, 10, 1, 0, tzinfo=timezone.utc)
    # both are March 10 in Shanghai (UTC+8)
    assert is_same_local_day(evening_utc, morning_utc, "Asia/Shanghai")
    assert not is_same_local_day(evening_utc, morning_utc, "UTC")
    assert is_same_local_day(
        datetime(2026, 3, 10, 0, 0), morning_utc + timedelta(hours=2), "UTC"
    )


def test_isoformat_or_none():
    assert isoformat_or_none(None) is None
    assert isoformat_or_none(datetime(2026, 1, 2, tzinfo=timezone.utc)) == (
        "2026-01-02T00:00:00+00:00"
    )
