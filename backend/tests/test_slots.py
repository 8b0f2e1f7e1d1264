from datetime import date, time

import pytest

from studiobook.errors import InputError
from studiobook.scheduling.intervals import OccupiedRange, TimeInterval
from studiobook.scheduling.operating_hours import resolve_operating_hours, validate_operating_hours
from studiobook.scheduling.slots import OperatingHours, count_slots, generate_slots


DAY = date(2026, 3, 10)
HOURS = OperatingHours(open_time=time(9, 0), close_time=time(17, 0))


def _booking(start: time, end: time, reservation_id: int = 7, label: str | None = "BK-007") -> OccupiedRange:
    return OccupiedRange(
        interval=TimeInterval(on_date=DAY, start_time=start, end_time=end),
        source="package",
        reservation_id=reservation_id,
        label=label,
    )


def _by_time(slots):
    return {slot.to_json()["time"]: slot for slot in slots}


def test_empty_day_fills_window_up_to_closing():
    slots = generate_slots(HOURS, 30, 60, [], DAY)
    by_time = _by_time(slots)

    assert slots[0].to_json()["time"] == "09:00"
    assert slots[-1].to_json()["time"] == "16:00"
    assert slots[-1].to_json()["end_time"] == "17:00"
    assert "16:30" not in by_time
    assert all(slot.available for slot in slots)
    assert len(slots) == count_slots(HOURS, 30, 60) == 15


def test_existing_booking_blocks_overlapping_candidates():
    slots = generate_slots(HOURS, 30, 60, [_booking(time(10, 0), time(11, 30))], DAY)
    by_time = _by_time(slots)

    assert by_time["09:00"].available is True
    assert by_time["09:30"].available is True
    for label in ("10:00", "10:30", "11:00"):
        assert by_time[label].available is False
        assert by_time[label].conflicting_booking == "BK-007"
    assert by_time["11:30"].available is True
    assert by_time["11:30"].conflicting_booking is None


def test_unavailable_slot_always_overlaps_some_range():
    occupied = [
        _booking(time(9, 15), time(9, 45), reservation_id=1),
        _booking(time(13, 0), time(15, 0), reservation_id=2),
    ]
    for slot in generate_slots(HOURS, 30, 45, occupied, DAY):
        window = TimeInterval(on_date=DAY, start_time=slot.start_time, end_time=slot.end_time)
        hits = [r for r in occupied if r.interval.start_time < window.end_time and window.start_time < r.interval.end_time]
        assert slot.available is (not hits)


def test_ranges_on_other_dates_are_ignored():
    other_day = OccupiedRange(
        interval=TimeInterval(on_date=date(2026, 3, 11), start_time=time(9, 0), end_time=time(17, 0)),
        source="blocked",
    )
    assert all(slot.available for slot in generate_slots(HOURS, 30, 60, [other_day], DAY))


def test_closed_day_yields_no_slots():
    assert generate_slots(None, 30, 60, [], DAY) == []
    assert count_slots(None, 30, 60) == 0


def test_duration_longer_than_window_yields_no_slots():
    assert generate_slots(HOURS, 30, 9 * 60, [], DAY) == []
    assert count_slots(HOURS, 30, 9 * 60) == 0


def test_not_before_marks_elapsed_candidates_unavailable():
    slots = generate_slots(HOURS, 30, 60, [], DAY, not_before=time(10, 10))
    by_time = _by_time(slots)
    assert by_time["10:00"].available is False
    assert by_time["10:00"].conflicting_booking is None
    assert by_time["10:30"].available is True


def test_blocked_range_is_described_as_blocked():
    blocked = OccupiedRange(
        interval=TimeInterval(on_date=DAY, start_time=time(12, 0), end_time=time(13, 0)),
        source="blocked",
    )
    by_time = _by_time(generate_slots(HOURS, 30, 30, [blocked], DAY))
    assert by_time["12:00"].conflicting_booking == "blocked"


@pytest.mark.parametrize("interval, duration", [(0, 60), (30, 0), (-30, 60)])
def test_non_positive_interval_or_duration_rejected(interval, duration):
    with pytest.raises(InputError):
        generate_slots(HOURS, interval, duration, [], DAY)


def test_operating_hours_resolution_by_weekday():
    hours_json = {
        "tuesday": {"open": "10:00", "close": "18:00", "isOpen": True},
        "wednesday": {"open": "10:00", "close": "18:00", "isOpen": False},
    }
    tuesday = resolve_operating_hours(hours_json, DAY)
    assert tuesday == OperatingHours(open_time=time(10, 0), close_time=time(18, 0))
    assert resolve_operating_hours(hours_json, date(2026, 3, 11)) is None
    assert resolve_operating_hours(hours_json, date(2026, 3, 12)) is None


def test_unconfigured_studio_uses_default_hours():
    hours = resolve_operating_hours(None, DAY)
    assert hours.open_time == time(9, 0)
    assert hours.close_time == time(21, 0)


def test_validate_operating_hours_rejects_inverted_window():
    with pytest.raises(InputError):
        validate_operating_hours({"monday": {"open": "18:00", "close": "09:00"}})
    with pytest.raises(InputError):
        validate_operating_hours({"funday": {"open": "09:00", "close": "18:00"}})


@pytest.mark.parametrize(
    ("open_time", "close_time", "interval", "duration", "expected"),
    [
        (time(9, 0), time(17, 0), 30, 60, 15),
        (time(9, 0), time(17, 0), 15, 45, 30),
        (time(9, 0), time(17, 0), 60, 8 * 60, 1),
        (time(9, 0), time(17, 0), 90, 30, 6),
        (time(10, 0), time(12, 10), 20, 50, 5),
        (time(9, 0), time(21, 0), 45, 120, 14),
    ],
)
def test_slot_count_matches_generated_candidates(open_time, close_time, interval, duration, expected):
    hours = OperatingHours(open_time=open_time, close_time=close_time)
    slots = generate_slots(hours, interval, duration, [], DAY)

    assert count_slots(hours, interval, duration) == len(slots) == expected
    assert slots[0].to_json()["time"] == open_time.strftime("%H:%M")
    assert all(slot.end_time <= close_time for slot in slots)
