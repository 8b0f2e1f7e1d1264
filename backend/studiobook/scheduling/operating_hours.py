from __future__ import annotations

from datetime import date, time as dt_time
from typing import Any

from studiobook.errors import InputError
from studiobook.scheduling.intervals import parse_hhmm, to_minutes
from studiobook.scheduling.slots import OperatingHours


WEEKDAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

DEFAULT_OPEN = dt_time(9, 0)
DEFAULT_CLOSE = dt_time(21, 0)


def default_operating_hours() -> dict[str, dict[str, Any]]:
    return {
        day: {"open": DEFAULT_OPEN.strftime("%H:%M"), "close": DEFAULT_CLOSE.strftime("%H:%M"), "isOpen": True}
        for day in WEEKDAY_NAMES
    }


def resolve_operating_hours(hours_json: dict[str, Any] | None, on_date: date) -> OperatingHours | None:
    """Opening window for ``on_date``, or None when the studio is closed.

    A studio that never configured hours gets the default 09:00-21:00 week.
    """
    if hours_json is None:
        return OperatingHours(open_time=DEFAULT_OPEN, close_time=DEFAULT_CLOSE)

    day_hours = hours_json.get(WEEKDAY_NAMES[on_date.weekday()])
    if not isinstance(day_hours, dict):
        return None
    if not day_hours.get("isOpen", True):
        return None

    try:
        open_time = parse_hhmm(str(day_hours.get("open", "")))
        close_time = parse_hhmm(str(day_hours.get("close", "")))
    except InputError:
        return None
    if to_minutes(open_time) >= to_minutes(close_time):
        return None
    return OperatingHours(open_time=open_time, close_time=close_time)


def validate_operating_hours(hours_json: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(hours_json) - set(WEEKDAY_NAMES))
    if unknown:
        raise InputError(f"Unknown weekday keys: {', '.join(unknown)}")
    for day, value in hours_json.items():
        if not isinstance(value, dict):
            raise InputError(f"Operating hours for {day} must be an object.")
        if not value.get("isOpen", True):
            continue
        open_time = parse_hhmm(str(value.get("open", "")))
        close_time = parse_hhmm(str(value.get("close", "")))
        if to_minutes(open_time) >= to_minutes(close_time):
            raise InputError(f"Operating hours for {day} must open before they close.")
    return hours_json
