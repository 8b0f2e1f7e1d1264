from __future__ import annotations

import logging
from datetime import date, datetime, time as dt_time
from typing import Any, Iterable, Literal

from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studiobook.clock import to_local, utcnow
from studiobook.config import SLOT_INTERVAL_MINUTES
from studiobook.db.models import (
    Facility,
    Reservation,
    ReservationAddon,
    ReservationFacility,
    Studio,
    TimeSlot,
)
from studiobook.errors import InputError, SlotUnavailableError, UnknownResourceError, UpstreamFetchError
from studiobook.scheduling.intervals import (
    OccupiedRange,
    TimeInterval,
    coerce_time,
    format_hhmm,
    make_interval,
    to_minutes,
)
from studiobook.scheduling.operating_hours import resolve_operating_hours
from studiobook.scheduling.slots import OperatingHours, SlotCandidate, find_conflicts, generate_slots

logger = logging.getLogger("studiobook.scheduling.availability")

CANCELLED = "cancelled"

UnavailableReason = Literal["conflict", "closed", "outside_operating_hours", "facility_unavailable"]

UNAVAILABLE_MESSAGES = {
    "conflict": "Jadwal {window} pada {date} sudah terisi.",
    "closed": "Studio tutup pada {date}.",
    "outside_operating_hours": "Jadwal {window} di luar jam operasional.",
    "facility_unavailable": "Fasilitas sedang tidak tersedia.",
}


class AvailabilityResult(BaseModel):
    status: Literal["open", "closed", "past"]
    on_date: date
    facility_ids: list[int]
    duration_minutes: int
    interval_minutes: int
    slots: list[SlotCandidate]

    def to_json(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "date": self.on_date.isoformat(),
            "facility_ids": self.facility_ids,
            "duration_minutes": self.duration_minutes,
            "interval_minutes": self.interval_minutes,
            "slots": [slot.to_json() for slot in self.slots],
        }


class ConflictingBooking(BaseModel):
    reservation_id: int | None
    booking_code: str | None
    facility_id: int
    source: str
    time_range: str


class SlotCheck(BaseModel):
    available: bool
    interval: TimeInterval
    conflicts: list[ConflictingBooking]
    reason: UnavailableReason | None = None

    def to_json(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "reason": self.reason,
            "date": self.interval.on_date.isoformat(),
            "start_time": format_hhmm(self.interval.start_time),
            "end_time": format_hhmm(self.interval.end_time),
            "conflicting_bookings": [item.model_dump() for item in self.conflicts],
        }


def fetch_linked_facility_ids(db: Session, reservation_id: int) -> list[int]:
    """Facilities a reservation occupies besides its primary ``facility_id``."""
    try:
        rows = (
            db.query(ReservationFacility)
            .filter(ReservationFacility.reservation_id == reservation_id)
            .all()
        )
    except SQLAlchemyError as exc:
        logger.exception("Linked facility fetch failed for reservation_id=%s", reservation_id)
        raise UpstreamFetchError("Could not load reservation facilities.") from exc
    return sorted({row.facility_id for row in rows if row.reservation_id == reservation_id})


def fetch_reservations(
    db: Session,
    facility_id: int,
    on_date: date,
    exclude_reservation_id: int | None = None,
) -> list[Reservation]:
    try:
        linked = {
            row.reservation_id
            for row in db.query(ReservationFacility)
            .filter(ReservationFacility.facility_id == facility_id)
            .all()
            if row.facility_id == facility_id
        }
        on_facility = Reservation.facility_id == facility_id
        if linked:
            on_facility = or_(on_facility, Reservation.id.in_(sorted(linked)))
        rows = (
            db.query(Reservation)
            .filter(on_facility)
            .filter(Reservation.reservation_date == on_date)
            .filter(Reservation.status != CANCELLED)
            .all()
        )
    except SQLAlchemyError as exc:
        logger.exception("Reservation fetch failed for facility_id=%s date=%s", facility_id, on_date)
        raise UpstreamFetchError("Could not load reservations for this facility.") from exc

    return [
        row
        for row in rows
        if (row.facility_id == facility_id or row.id in linked)
        and row.reservation_date == on_date
        and _is_active(row)
        and row.id != exclude_reservation_id
    ]


def fetch_addon_bookings(
    db: Session,
    facility_id: int,
    on_date: date,
    exclude_reservation_id: int | None = None,
) -> list[tuple[ReservationAddon, Reservation]]:
    """Time-based add-on rows on ``facility_id`` paired with their reservation."""
    try:
        rows = (
            db.query(ReservationAddon, Reservation)
            .join(Reservation, ReservationAddon.reservation_id == Reservation.id)
            .filter(ReservationAddon.facility_id == facility_id)
            .filter(ReservationAddon.start_time.is_not(None))
            .filter(ReservationAddon.end_time.is_not(None))
            .filter(Reservation.reservation_date == on_date)
            .filter(Reservation.status != CANCELLED)
            .all()
        )
    except SQLAlchemyError as exc:
        logger.exception("Add-on fetch failed for facility_id=%s date=%s", facility_id, on_date)
        raise UpstreamFetchError("Could not load add-on bookings for this facility.") from exc

    return [
        (addon, reservation)
        for addon, reservation in rows
        if addon.reservation_id == reservation.id
        and addon.facility_id == facility_id
        and addon.start_time is not None
        and addon.end_time is not None
        and reservation.reservation_date == on_date
        and _is_active(reservation)
        and reservation.id != exclude_reservation_id
    ]


def fetch_blocked_slots(db: Session, facility_id: int, on_date: date) -> list[TimeSlot]:
    try:
        rows = (
            db.query(TimeSlot)
            .filter(TimeSlot.facility_id == facility_id)
            .filter(TimeSlot.slot_date == on_date)
            .filter(TimeSlot.is_blocked.is_(True))
            .all()
        )
    except SQLAlchemyError as exc:
        logger.exception("Blocked slot fetch failed for facility_id=%s date=%s", facility_id, on_date)
        raise UpstreamFetchError("Could not load blocked time slots.") from exc

    return [
        row
        for row in rows
        if row.facility_id == facility_id and row.slot_date == on_date and row.is_blocked
    ]


def fetch_operating_hours(db: Session, studio_id: int, on_date: date) -> OperatingHours | None:
    studio = _load_studio(db, studio_id)
    return resolve_operating_hours(studio.operating_hours, on_date)


def collect_occupied_ranges(
    on_date: date,
    reservations: list[Any],
    addon_bookings: list[tuple[Any, Any]],
    blocked_slots: list[Any] | None = None,
    exclude_reservation_id: int | None = None,
) -> list[OccupiedRange]:
    ranges: list[OccupiedRange] = []

    for reservation in reservations:
        if not _is_active(reservation) or reservation.id == exclude_reservation_id:
            continue
        ranges.append(
            OccupiedRange(
                interval=_row_interval(on_date, reservation.start_time, reservation.end_time, reservation),
                source="package",
                reservation_id=reservation.id,
                label=getattr(reservation, "booking_code", None),
            )
        )

    for addon, reservation in addon_bookings:
        if not _is_active(reservation) or reservation.id == exclude_reservation_id:
            continue
        ranges.append(
            OccupiedRange(
                interval=_row_interval(on_date, addon.start_time, addon.end_time, addon),
                source="addon",
                reservation_id=reservation.id,
                label=getattr(reservation, "booking_code", None),
            )
        )

    for blocked in blocked_slots or []:
        ranges.append(
            OccupiedRange(
                interval=_row_interval(on_date, blocked.start_time, blocked.end_time, blocked),
                source="blocked",
                label=getattr(blocked, "notes", None) or "blocked",
            )
        )

    return ranges


def load_occupied_ranges(
    db: Session,
    facility_id: int,
    on_date: date,
    exclude_reservation_id: int | None = None,
) -> list[OccupiedRange]:
    return collect_occupied_ranges(
        on_date=on_date,
        reservations=fetch_reservations(db, facility_id, on_date, exclude_reservation_id),
        addon_bookings=fetch_addon_bookings(db, facility_id, on_date, exclude_reservation_id),
        blocked_slots=fetch_blocked_slots(db, facility_id, on_date),
        exclude_reservation_id=exclude_reservation_id,
    )


def get_package_availability(
    db: Session,
    studio_id: int,
    facility_ids: Iterable[int],
    on_date: date,
    duration_minutes: int,
    exclude_reservation_id: int | None = None,
    now: datetime | None = None,
    interval_minutes: int = SLOT_INTERVAL_MINUTES,
) -> AvailabilityResult:
    """Candidate start times at which every facility in ``facility_ids`` is free.

    A package that needs several rooms is only bookable when none of them is
    booked, used by an add-on, or blocked for the window. The result is
    advisory: every write path must call :func:`revalidate_slot` in the same
    transaction that persists the booking.
    """
    if duration_minutes <= 0:
        raise InputError("Duration must be a positive number of minutes.")

    studio = _load_studio(db, studio_id)
    facilities = _load_facilities(db, studio, facility_ids)
    ids = [facility.id for facility in facilities]

    def _result(status: str, slots: list[SlotCandidate]) -> AvailabilityResult:
        return AvailabilityResult(
            status=status,
            on_date=on_date,
            facility_ids=ids,
            duration_minutes=duration_minutes,
            interval_minutes=interval_minutes,
            slots=slots,
        )

    local_now = to_local(now or utcnow(), getattr(studio, "timezone", None))
    if on_date < local_now.date():
        return _result("past", [])

    hours = resolve_operating_hours(studio.operating_hours, on_date)
    if hours is None or not all(getattr(facility, "is_available", True) for facility in facilities):
        return _result("closed", [])

    occupied = [
        occupied_range
        for facility_id in ids
        for occupied_range in load_occupied_ranges(db, facility_id, on_date, exclude_reservation_id)
    ]
    slots = generate_slots(
        operating_hours=hours,
        interval_minutes=interval_minutes,
        duration_minutes=duration_minutes,
        occupied_ranges=occupied,
        slot_date=on_date,
        not_before=local_now.time() if on_date == local_now.date() else None,
    )
    logger.debug(
        "Generated %s slots (%s available) for facility_ids=%s date=%s",
        len(slots),
        sum(1 for slot in slots if slot.available),
        ids,
        on_date,
    )
    return _result("open", slots)


def get_available_slots(
    db: Session,
    facility_id: int,
    studio_id: int,
    on_date: date,
    duration_minutes: int,
    exclude_reservation_id: int | None = None,
    now: datetime | None = None,
    interval_minutes: int = SLOT_INTERVAL_MINUTES,
) -> AvailabilityResult:
    return get_package_availability(
        db=db,
        studio_id=studio_id,
        facility_ids=[facility_id],
        on_date=on_date,
        duration_minutes=duration_minutes,
        exclude_reservation_id=exclude_reservation_id,
        now=now,
        interval_minutes=interval_minutes,
    )


def check_slot_availability(
    db: Session,
    facility_id: int,
    on_date: date,
    start_time: dt_time | str,
    duration_minutes: int,
    exclude_reservation_id: int | None = None,
    extra_facility_ids: Iterable[int] = (),
) -> SlotCheck:
    window = make_interval(on_date, coerce_time(start_time), duration_minutes)
    primary = _load_facility(db, facility_id)
    studio = _load_studio(db, primary.studio_id)
    facilities = _load_facilities(db, studio, [facility_id, *extra_facility_ids])

    conflicts = [
        ConflictingBooking(
            reservation_id=item.reservation_id,
            booking_code=item.label if item.source != "blocked" else None,
            facility_id=facility.id,
            source=item.source,
            time_range=item.interval.label(),
        )
        for facility in facilities
        for item in find_conflicts(
            window, load_occupied_ranges(db, facility.id, on_date, exclude_reservation_id)
        )
    ]
    reason = _closed_reason(studio, facilities, window)
    if reason is None and conflicts:
        reason = "conflict"
    return SlotCheck(available=reason is None, interval=window, conflicts=conflicts, reason=reason)


def revalidate_slot(
    db: Session,
    facility_id: int,
    on_date: date,
    start_time: dt_time | str,
    duration_minutes: int,
    exclude_reservation_id: int | None = None,
    extra_facility_ids: Iterable[int] = (),
) -> TimeInterval:
    check = check_slot_availability(
        db=db,
        facility_id=facility_id,
        on_date=on_date,
        start_time=start_time,
        duration_minutes=duration_minutes,
        exclude_reservation_id=exclude_reservation_id,
        extra_facility_ids=extra_facility_ids,
    )
    if not check.available:
        message = UNAVAILABLE_MESSAGES[check.reason or "conflict"].format(
            window=check.interval.label(),
            date=on_date.isoformat(),
        )
        raise SlotUnavailableError(message, conflicts=check.conflicts)
    return check.interval


def _closed_reason(studio: Studio, facilities: list[Facility], window: TimeInterval) -> UnavailableReason | None:
    if not all(getattr(facility, "is_available", True) for facility in facilities):
        return "facility_unavailable"
    hours = resolve_operating_hours(studio.operating_hours, window.on_date)
    if hours is None:
        return "closed"
    if to_minutes(window.start_time) < to_minutes(hours.open_time) or to_minutes(window.end_time) > to_minutes(
        hours.close_time
    ):
        return "outside_operating_hours"
    return None


def _load_studio(db: Session, studio_id: int) -> Studio:
    try:
        rows = db.query(Studio).filter(Studio.id == studio_id).all()
    except SQLAlchemyError as exc:
        logger.exception("Studio fetch failed for studio_id=%s", studio_id)
        raise UpstreamFetchError("Could not load studio configuration.") from exc
    for row in rows:
        if row.id == studio_id:
            return row
    raise UnknownResourceError("Studio not found.")


def _load_facility(db: Session, facility_id: int) -> Facility:
    try:
        rows = db.query(Facility).filter(Facility.id == facility_id).all()
    except SQLAlchemyError as exc:
        logger.exception("Facility fetch failed for facility_id=%s", facility_id)
        raise UpstreamFetchError("Could not load facility.") from exc
    for row in rows:
        if row.id == facility_id:
            return row
    raise UnknownResourceError("Facility not found.")


def _load_facilities(db: Session, studio: Studio, facility_ids: Iterable[int]) -> list[Facility]:
    unique_ids = list(dict.fromkeys(facility_ids))
    if not unique_ids:
        raise InputError("At least one facility is required.")
    facilities = [_load_facility(db, facility_id) for facility_id in unique_ids]
    for facility in facilities:
        if facility.studio_id != studio.id:
            raise UnknownResourceError("Facility does not belong to this studio.")
    return facilities


def _row_interval(on_date: date, start_time: Any, end_time: Any, row: Any) -> TimeInterval:
    try:
        return TimeInterval(
            on_date=on_date,
            start_time=coerce_time(start_time),
            end_time=coerce_time(end_time),
        )
    except ValueError as exc:
        raise InputError(
            f"{type(row).__name__} id={getattr(row, 'id', None)} has an invalid time range."
        ) from exc


def _is_active(row: Any) -> bool:
    return str(getattr(row, "status", "") or "").lower() != CANCELLED
