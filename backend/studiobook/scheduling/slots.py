from __future__ import annotations

from datetime import date, time as dt_time
from typing import Iterable

from pydantic import BaseModel, ConfigDict, model_validator

from studiobook.errors import InputError
from studiobook.scheduling.intervals import (
    OccupiedRange,
    TimeInterval,
    format_hhmm,
    from_minutes,
    overlaps,
    to_minutes,
)


class OperatingHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    open_time: dt_time
    close_time: dt_time

    @model_validator(mode="after")
    def validate_window(self) -> "OperatingHours":
        if to_minutes(self.open_time) >= to_minutes(self.close_time):
            raise ValueError("Operating hours must open before they close.")
        return self

    @property
    def window_minutes(self) -> int:
        return to_minutes(self.close_time) - to_minutes(self.open_time)


class SlotCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_time: dt_time
    end_time: dt_time
    available: bool
    conflicting_booking: str | None = None

    def to_json(self) -> dict[str, object]:
        return {
            "time": format_hhmm(self.start_time),
            "end_time": format_hhmm(self.end_time),
            "available": self.available,
            "conflicting_booking": self.conflicting_booking,
        }


def generate_slots(
    operating_hours: OperatingHours | None,
    interval_minutes: int,
    duration_minutes: int,
    occupied_ranges: Iterable[OccupiedRange],
    slot_date: date,
    not_before: dt_time | None = None,
) -> list[SlotCandidate]:
    """Enumerate candidate start times for one facility on one day.

    Starts at opening time and steps by ``interval_minutes``; a candidate is
    emitted only while ``start + duration_minutes`` still fits before closing.
    A candidate is unavailable when its window overlaps any occupied range, or
    when it starts earlier than ``not_before`` (already elapsed today).
    """
    if interval_minutes <= 0:
        raise InputError("Slot interval must be a positive number of minutes.")
    if duration_minutes <= 0:
        raise InputError("Duration must be a positive number of minutes.")
    if operating_hours is None:
        return []

    ranges = [r for r in occupied_ranges if r.interval.on_date == slot_date]
    opening = to_minutes(operating_hours.open_time)
    closing = to_minutes(operating_hours.close_time)
    cutoff = to_minutes(not_before) if not_before is not None else None

    slots: list[SlotCandidate] = []
    cursor = opening
    while cursor + duration_minutes <= closing:
        window = TimeInterval(
            on_date=slot_date,
            start_time=from_minutes(cursor),
            end_time=from_minutes(cursor + duration_minutes),
        )
        conflict = _first_conflict(window, ranges)
        is_past = cutoff is not None and cursor < cutoff
        slots.append(
            SlotCandidate(
                start_time=window.start_time,
                end_time=window.end_time,
                available=conflict is None and not is_past,
                conflicting_booking=_describe(conflict),
            )
        )
        cursor += interval_minutes
    return slots


def count_slots(operating_hours: OperatingHours | None, interval_minutes: int, duration_minutes: int) -> int:
    if operating_hours is None or duration_minutes > operating_hours.window_minutes:
        return 0
    return (operating_hours.window_minutes - duration_minutes) // interval_minutes + 1


def find_conflicts(window: TimeInterval, occupied_ranges: Iterable[OccupiedRange]) -> list[OccupiedRange]:
    return [r for r in occupied_ranges if overlaps(window, r.interval)]


def _first_conflict(window: TimeInterval, ranges: list[OccupiedRange]) -> OccupiedRange | None:
    for occupied in ranges:
        if overlaps(window, occupied.interval):
            return occupied
    return None


def _describe(occupied: OccupiedRange | None) -> str | None:
    if occupied is None:
        return None
    if occupied.label:
        return occupied.label
    if occupied.source == "blocked":
        return "blocked"
    return str(occupied.reservation_id) if occupied.reservation_id is not None else occupied.source
