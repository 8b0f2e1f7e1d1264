from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studiobook.db.models import Reservation, ReservationAddon, Studio
from studiobook.errors import InputError, SlotUnavailableError
from studiobook.policy.booking_rules import (
    booking_priority,
    can_complete_payment,
    can_reschedule,
    cancellation_policy,
    days_until,
    deadline_info,
)
from studiobook.policy.reminders import is_awaiting_payment, reminder_window
from studiobook.scheduling.availability import fetch_linked_facility_ids, revalidate_slot
from studiobook.scheduling.intervals import add_minutes, format_hhmm, parse_hhmm, to_minutes
from studiobook.scheduling.operating_hours import resolve_operating_hours
from studiobook.scheduling.slots import OperatingHours

logger = logging.getLogger("studiobook.reservations.manage")


class RescheduleReservationArgs(BaseModel):
    reservation_date: date
    start_time: str

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        return format_hhmm(parse_hhmm(value))


def parse_reschedule_args(raw_args: dict[str, Any]) -> RescheduleReservationArgs:
    return RescheduleReservationArgs.model_validate(raw_args)


def find_reservation(db: Session, reservation_id: int) -> Reservation | None:
    for reservation in db.query(Reservation).filter(Reservation.id == reservation_id).all():
        if reservation.id == reservation_id:
            return reservation
    return None


def evaluate_reservation(db: Session, reservation_id: int, now: datetime) -> dict[str, Any]:
    reservation = find_reservation(db=db, reservation_id=reservation_id)
    if reservation is None:
        return _not_found()

    tz = _studio_timezone(db, reservation)
    data: dict[str, Any] = {
        "reservation_id": reservation.id,
        "booking_code": reservation.booking_code,
        "days_remaining": days_until(reservation.reservation_date, now, tz),
        "reschedule": can_reschedule(reservation, now, tz).model_dump(),
        "payment_completion": can_complete_payment(reservation, now, tz).model_dump(),
        "cancellation": cancellation_policy(reservation, now, tz).model_dump(),
        "deadline": deadline_info(reservation, now, tz).model_dump(),
        "priority": booking_priority(reservation, now, tz).model_dump(),
    }
    if is_awaiting_payment(reservation):
        window = reminder_window(reservation.created_at)
        data["payment_window"] = {
            "reminder_time": window.reminder_time.isoformat(),
            "cancellation_time": window.cancellation_time.isoformat(),
        }
    return {"ok": True, "data": data}


def reschedule_reservation(
    db: Session,
    reservation_id: int,
    args: RescheduleReservationArgs,
    now: datetime,
) -> dict[str, Any]:
    reservation = find_reservation(db=db, reservation_id=reservation_id)
    if reservation is None:
        return _not_found()

    studio = _find_studio(db, reservation.studio_id)
    tz = getattr(studio, "timezone", None)
    permission = can_reschedule(reservation, now, tz)
    if not permission.allowed:
        return {
            "ok": False,
            "error_code": "RESCHEDULE_NOT_ALLOWED",
            "human_message": permission.reason,
            "data": {"days_remaining": permission.days_remaining},
        }
    if days_until(args.reservation_date, now, tz) < 0:
        return {
            "ok": False,
            "error_code": "INVALID_ARGS",
            "human_message": "Tanggal baru tidak boleh di masa lalu.",
        }

    hours = resolve_operating_hours(getattr(studio, "operating_hours", None), args.reservation_date)
    if hours is None:
        return {
            "ok": False,
            "error_code": "STUDIO_CLOSED",
            "human_message": "Studio tutup pada tanggal tersebut.",
        }

    old_start = reservation.start_time
    duration = to_minutes(reservation.end_time) - to_minutes(old_start)
    new_start = parse_hhmm(args.start_time)
    offset = to_minutes(new_start) - to_minutes(old_start)

    try:
        new_end = add_minutes(new_start, duration)
        _require_within_hours(hours, new_start, new_end)
        revalidate_slot(
            db=db,
            facility_id=reservation.facility_id,
            on_date=args.reservation_date,
            start_time=new_start,
            duration_minutes=duration,
            exclude_reservation_id=reservation.id,
            extra_facility_ids=fetch_linked_facility_ids(db, reservation.id),
        )
        addon_moves = _plan_addon_moves(
            db=db,
            reservation=reservation,
            on_date=args.reservation_date,
            offset_minutes=offset,
            hours=hours,
        )
    except SlotUnavailableError as exc:
        return _slot_unavailable(exc)
    except InputError as exc:
        return {"ok": False, "error_code": "OUTSIDE_OPERATING_HOURS", "human_message": str(exc)}

    reservation.reservation_date = args.reservation_date
    reservation.start_time = new_start
    reservation.end_time = new_end
    for addon, addon_start, addon_end in addon_moves:
        addon.start_time = addon_start
        addon.end_time = addon_end

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(
            "Reschedule lost a race for reservation_id=%s facility_id=%s",
            reservation.id,
            reservation.facility_id,
        )
        return _slot_unavailable(SlotUnavailableError("Jadwal baru saja diambil oleh booking lain."))

    return {"ok": True, "data": serialize_reservation(reservation)}


def cancel_reservation(db: Session, reservation_id: int, now: datetime) -> dict[str, Any]:
    reservation = find_reservation(db=db, reservation_id=reservation_id)
    if reservation is None:
        return _not_found()

    policy = cancellation_policy(reservation, now)
    if not policy.can_cancel:
        return {
            "ok": False,
            "error_code": "CANCELLATION_NOT_ALLOWED",
            "human_message": policy.message,
            "data": {"dp_policy": policy.dp_policy},
        }

    reservation.status = "cancelled"
    db.commit()
    logger.info(
        "Reservation cancelled reservation_id=%s dp_policy=%s", reservation.id, policy.dp_policy
    )

    return {
        "ok": True,
        "data": {
            "reservation_id": reservation.id,
            "status": reservation.status,
            "payment_status": reservation.payment_status,
            "dp_policy": policy.dp_policy,
            "message": policy.message,
        },
    }


def complete_payment(db: Session, reservation_id: int, now: datetime) -> dict[str, Any]:
    reservation = find_reservation(db=db, reservation_id=reservation_id)
    if reservation is None:
        return _not_found()

    permission = can_complete_payment(reservation, now, _studio_timezone(db, reservation))
    if not permission.allowed:
        return {
            "ok": False,
            "error_code": "PAYMENT_NOT_ALLOWED",
            "human_message": permission.reason,
            "data": {"days_remaining": permission.days_remaining},
        }

    paid_amount = reservation.remaining_amount
    reservation.remaining_amount = 0
    reservation.payment_status = "completed"
    db.commit()

    response = serialize_reservation(reservation)
    response["paid_amount"] = str(paid_amount)
    return {"ok": True, "data": response}


def serialize_reservation(reservation: Reservation) -> dict[str, Any]:
    return {
        "reservation_id": reservation.id,
        "booking_code": reservation.booking_code,
        "facility_id": reservation.facility_id,
        "reservation_date": reservation.reservation_date.isoformat(),
        "start_time": format_hhmm(reservation.start_time),
        "end_time": format_hhmm(reservation.end_time),
        "status": reservation.status,
        "payment_status": reservation.payment_status,
        "remaining_amount": str(reservation.remaining_amount),
    }


def _plan_addon_moves(
    db: Session,
    reservation: Reservation,
    on_date: date,
    offset_minutes: int,
    hours: OperatingHours,
) -> list[tuple[ReservationAddon, Any, Any]]:
    moves = []
    for addon in _timed_addons(db, reservation.id):
        addon_start = add_minutes(addon.start_time, offset_minutes)
        addon_duration = to_minutes(addon.end_time) - to_minutes(addon.start_time)
        addon_end = add_minutes(addon_start, addon_duration)
        _require_within_hours(hours, addon_start, addon_end)
        revalidate_slot(
            db=db,
            facility_id=addon.facility_id,
            on_date=on_date,
            start_time=addon_start,
            duration_minutes=addon_duration,
            exclude_reservation_id=reservation.id,
        )
        moves.append((addon, addon_start, addon_end))
    return moves


def _timed_addons(db: Session, reservation_id: int) -> list[ReservationAddon]:
    rows = db.query(ReservationAddon).filter(ReservationAddon.reservation_id == reservation_id).all()
    return [
        row
        for row in rows
        if row.reservation_id == reservation_id
        and row.facility_id is not None
        and row.start_time is not None
        and row.end_time is not None
    ]


def _require_within_hours(hours: OperatingHours, start: Any, end: Any) -> None:
    if to_minutes(start) < to_minutes(hours.open_time) or to_minutes(end) > to_minutes(hours.close_time):
        raise InputError(
            f"Jadwal {format_hhmm(start)} - {format_hhmm(end)} di luar jam operasional "
            f"{format_hhmm(hours.open_time)} - {format_hhmm(hours.close_time)}."
        )


def _find_studio(db: Session, studio_id: int) -> Studio | None:
    for studio in db.query(Studio).filter(Studio.id == studio_id).all():
        if studio.id == studio_id:
            return studio
    return None


def _studio_timezone(db: Session, reservation: Reservation) -> str | None:
    return getattr(_find_studio(db, reservation.studio_id), "timezone", None)


def _not_found() -> dict[str, Any]:
    return {
        "ok": False,
        "error_code": "RESERVATION_NOT_FOUND",
        "human_message": "Reservation not found.",
    }


def _slot_unavailable(exc: SlotUnavailableError) -> dict[str, Any]:
    return {
        "ok": False,
        "error_code": "SLOT_UNAVAILABLE",
        "human_message": str(exc),
        "data": {"conflicting_bookings": [item.model_dump() for item in exc.conflicts]},
    }
