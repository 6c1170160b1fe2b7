# tests/test_timefmt.py
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from courierboard.utils.timefmt import fmt_local


@pytest.mark.parametrize("raw", [None, "", "   ", "not a date", "2025-13-45T99:00:00"])
def test_missing_or_unparseable_is_blank(raw):
    assert fmt_local(raw) == ""


def test_zulu_suffix_is_converted_to_local_time():
    expected = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc).astimezone().strftime("%Y-%m-%d %H:%M:%S")
    assert fmt_local("2025-01-06T09:00:00Z") == expected
    assert fmt_local("2025-01-06T09:00:00+00:00") == expected


def test_offset_timestamps_land_on_the_same_instant():
    assert fmt_local("2025-01-06T11:00:00+02:00") == fmt_local("2025-01-06T09:00:00Z")


def test_naive_timestamps_are_printed_as_is():
    assert fmt_local("2025-01-06T09:00:00") == "2025-01-06 09:00:00"


def test_fractional_seconds_are_dropped():
    assert fmt_local("2025-01-06T09:00:00.123456") == "2025-01-06 09:00:00"
