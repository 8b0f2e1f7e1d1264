from __future__ import annotations

from datetime import date, time as dt_time
from typing import Literal

from pydantic import BaseModel, ConfigDict, model_validator

from studiobook.errors import InputError


MINUTES_PER_DAY = 24 * 60

OccupiedSource = Literal["package", "addon", "blocked"]


class TimeInterval(BaseModel):
    """Half-open local wall-clock range ``[start_time, end_time)`` on one day."""

    model_config = ConfigDict(frozen=True)

    on_date: date
    start_time: dt_time
    end_time: dt_time

    @model_validator(mode="after")
    def validate_order(self) -> "TimeInterval":
        if to_minutes(self.start_time) >= to_minutes(self.end_time):
            raise ValueError("Interval start_time must be before end_time.")
        return self

    @property
    def duration_minutes(self) -> int:
        return to_minutes(self.end_time) - to_minutes(self.start_time)

    def label(self) -> str:
        return f"{format_hhmm(self.start_time)} - {format_hhmm(self.end_time)}"


class OccupiedRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    interval: TimeInterval
    source: OccupiedSource
    reservation_id: int | None = None
    label: str | None = None


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    if a.on_date != b.on_date:
        return False
    return (
        to_minutes(a.start_time) < to_minutes(b.end_time)
        and to_minutes(b.start_time) < to_minutes(a.end_time)
    )


def add_minutes(value: dt_time, minutes: int) -> dt_time:
    total = to_minutes(value) + minutes
    if total < 0 or total >= MINUTES_PER_DAY:
        raise InputError(
            f"{format_hhmm(value)} + {minutes} minutes does not stay within the same day."
        )
    return from_minutes(total)


def make_interval(on_date: date, start_time: dt_time, duration_minutes: int) -> TimeInterval:
    if duration_minutes <= 0:
        raise InputError("Duration must be a positive number of minutes.")
    end_time = add_minutes(start_time, duration_minutes)
    try:
        return TimeInterval(on_date=on_date, start_time=start_time, end_time=end_time)
    except ValueError as exc:
        raise InputError(str(exc)) from exc


def to_minutes(value: dt_time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(total: int) -> dt_time:
    if total < 0 or total >= MINUTES_PER_DAY:
        raise InputError(f"{total} minutes is outside a single day.")
    return dt_time(hour=total // 60, minute=total % 60)


def parse_hhmm(text: str) -> dt_time:
    cleaned = (text or "").strip()
    parts = cleaned.split(":")
    if len(parts) not in (2, 3):
        raise InputError(f"Invalid time value: {text!r}")
    try:
        hour, minute = int(parts[0]), int(parts[1])
        return dt_time(hour=hour, minute=minute)
    except ValueError as exc:
        raise InputError(f"Invalid time value: {text!r}") from exc


def coerce_time(value: dt_time | str) -> dt_time:
    if isinstance(value, dt_time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    return parse_hhmm(value)


def format_hhmm(value: dt_time) -> str:
    return value.strftime("%H:%M")
