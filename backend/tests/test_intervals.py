from datetime import date, time

import pytest

from studiobook.errors import InputError
from studiobook.scheduling.intervals import (
    TimeInterval,
    add_minutes,
    make_interval,
    overlaps,
    parse_hhmm,
)


DAY = date(2026, 3, 10)


def _interval(start: str, end: str, on_date: date = DAY) -> TimeInterval:
    return TimeInterval(on_date=on_date, start_time=parse_hhmm(start), end_time=parse_hhmm(end))


def test_overlap_is_symmetric():
    a = _interval("10:00", "11:30")
    b = _interval("11:00", "12:00")
    assert overlaps(a, b) is True
    assert overlaps(b, a) is True


def test_touching_intervals_do_not_overlap():
    a = _interval("10:00", "11:00")
    b = _interval("11:00", "12:00")
    assert overlaps(a, b) is False
    assert overlaps(b, a) is False


def test_contained_interval_overlaps():
    assert overlaps(_interval("09:00", "17:00"), _interval("12:00", "12:30")) is True


def test_different_dates_never_overlap():
    a = _interval("10:00", "11:00")
    b = _interval("10:00", "11:00", on_date=date(2026, 3, 11))
    assert overlaps(a, b) is False


def test_interval_requires_start_before_end():
    with pytest.raises(ValueError):
        _interval("11:00", "11:00")


def test_add_minutes_stays_on_clock():
    assert add_minutes(time(21, 45), 30) == time(22, 15)


def test_add_minutes_rejects_crossing_midnight():
    with pytest.raises(InputError):
        add_minutes(time(23, 45), 30)


def test_make_interval_duration_and_label():
    interval = make_interval(DAY, time(9, 30), 90)
    assert interval.duration_minutes == 90
    assert interval.label() == "09:30 - 11:00"


def test_make_interval_rejects_non_positive_duration():
    with pytest.raises(InputError):
        make_interval(DAY, time(9, 0), 0)


def test_parse_hhmm_accepts_seconds_and_rejects_garbage():
    assert parse_hhmm("14:30:00") == time(14, 30)
    with pytest.raises(InputError):
        parse_hhmm("2pm")
    with pytest.raises(InputError):
        parse_hhmm("25:00")
