from __future__ import annotations

import json
import logging
from datetime import date, datetime, time as dt_time, timedelta
from decimal import Decimal
from typing import Any, Iterable

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studiobook.clock import ensure_aware
from studiobook.config import REMINDER_GRACE_SECONDS, REMINDER_LOOKBACK_HOURS
from studiobook.db.models import Customer, Reservation
from studiobook.errors import UpstreamFetchError

logger = logging.getLogger("studiobook.policy.reminders")

# Shared with the auto-cancel job; both must read these, never redefine them.
REMINDER_AFTER = timedelta(minutes=10)
AUTO_CANCEL_AFTER = timedelta(minutes=15)

EXPIRED = "Expired"


class ReminderWindow(BaseModel):
    reminder_time: datetime
    cancellation_time: datetime

    def is_active(self, now: datetime) -> bool:
        now = ensure_aware(now)
        return self.reminder_time <= now < self.cancellation_time


class PaymentReminder(BaseModel):
    reservation_id: int
    booking_code: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    package_name: str | None = None
    reservation_date: date
    start_time: dt_time
    end_time: dt_time
    dp_amount: Decimal = Decimal("0")
    reminder_time: datetime
    cancellation_time: datetime
    time_until_cancellation: str
    should_show_reminder: bool

    def to_json(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json")
        payload["start_time"] = self.start_time.strftime("%H:%M")
        payload["end_time"] = self.end_time.strftime("%H:%M")
        return payload


def reminder_window(created_at: datetime) -> ReminderWindow:
    created = ensure_aware(created_at)
    return ReminderWindow(
        reminder_time=created + REMINDER_AFTER,
        cancellation_time=created + AUTO_CANCEL_AFTER,
    )


def format_time_until(target: datetime, now: datetime) -> str:
    remaining = ensure_aware(target) - ensure_aware(now)
    total_seconds = int(remaining.total_seconds())
    if total_seconds <= 0:
        return EXPIRED
    minutes, seconds = divmod(total_seconds, 60)
    if minutes > 0:
        return f"{minutes} menit {seconds} detik"
    return f"{seconds} detik"


def is_awaiting_payment(reservation: Any) -> bool:
    return (
        str(getattr(reservation, "status", "") or "").lower() == "pending"
        and str(getattr(reservation, "payment_status", "") or "").lower() == "pending"
    )


def is_auto_cancel_due(reservation: Any, now: datetime) -> bool:
    if not is_awaiting_payment(reservation):
        return False
    return ensure_aware(now) >= reminder_window(reservation.created_at).cancellation_time


def build_payment_reminders(
    reservations: Iterable[Any],
    now: datetime,
    grace: timedelta = timedelta(0),
    customers: dict[int, Any] | None = None,
) -> list[PaymentReminder]:
    """Reminders for unpaid bookings inside their reminder window.

    An item is listed from ``created_at + 10min`` until its cancellation time
    (plus ``grace`` for display only). ``should_show_reminder`` is true only
    strictly before the cancellation time.
    """
    now = ensure_aware(now)
    customers = customers or {}
    reminders: list[PaymentReminder] = []

    for reservation in reservations:
        if not is_awaiting_payment(reservation):
            continue
        window = reminder_window(reservation.created_at)
        if now < window.reminder_time or now >= window.cancellation_time + grace:
            continue

        customer = customers.get(getattr(reservation, "customer_id", None))
        reminders.append(
            PaymentReminder(
                reservation_id=reservation.id,
                booking_code=getattr(reservation, "booking_code", None),
                customer_name=getattr(customer, "full_name", None),
                customer_phone=getattr(customer, "phone", None),
                package_name=getattr(reservation, "package_name", None),
                reservation_date=reservation.reservation_date,
                start_time=reservation.start_time,
                end_time=reservation.end_time,
                dp_amount=Decimal(str(getattr(reservation, "dp_amount", 0) or 0)),
                reminder_time=window.reminder_time,
                cancellation_time=window.cancellation_time,
                time_until_cancellation=format_time_until(window.cancellation_time, now),
                should_show_reminder=window.is_active(now),
            )
        )

    return sorted(reminders, key=lambda item: (item.cancellation_time, item.reservation_id))


def fetch_pending_payment_reservations(
    db: Session,
    studio_id: int,
    since_hours: int,
    now: datetime,
) -> list[Reservation]:
    since = ensure_aware(now) - timedelta(hours=since_hours)
    try:
        rows = (
            db.query(Reservation)
            .filter(Reservation.studio_id == studio_id)
            .filter(Reservation.status == "pending")
            .filter(Reservation.payment_status == "pending")
            .filter(Reservation.created_at >= since)
            .all()
        )
    except SQLAlchemyError as exc:
        logger.exception("Pending payment fetch failed for studio_id=%s", studio_id)
        raise UpstreamFetchError("Could not load pending payments.") from exc

    return [
        row
        for row in rows
        if row.studio_id == studio_id
        and is_awaiting_payment(row)
        and ensure_aware(row.created_at) >= since
    ]


def get_active_reminders(
    db: Session,
    studio_id: int,
    now: datetime,
    since_hours: int = REMINDER_LOOKBACK_HOURS,
    grace: timedelta = timedelta(seconds=REMINDER_GRACE_SECONDS),
) -> list[PaymentReminder]:
    reservations = fetch_pending_payment_reservations(db, studio_id, since_hours, now)
    customers = _load_customers(db, {r.customer_id for r in reservations if r.customer_id is not None})
    return build_payment_reminders(reservations, now=now, grace=grace, customers=customers)


def find_expired_pending_reservations(
    db: Session,
    now: datetime,
    studio_id: int | None = None,
) -> list[Reservation]:
    cutoff = ensure_aware(now) - AUTO_CANCEL_AFTER
    query = (
        db.query(Reservation)
        .filter(Reservation.status == "pending")
        .filter(Reservation.payment_status == "pending")
        .filter(Reservation.created_at <= cutoff)
    )
    if studio_id is not None:
        query = query.filter(Reservation.studio_id == studio_id)
    try:
        rows = query.all()
    except SQLAlchemyError as exc:
        logger.exception("Expired reservation fetch failed")
        raise UpstreamFetchError("Could not load expired reservations.") from exc

    return [
        row
        for row in rows
        if (studio_id is None or row.studio_id == studio_id) and is_auto_cancel_due(row, now)
    ]


def cancel_expired_reservations(db: Session, now: datetime, studio_id: int | None = None) -> list[int]:
    """Cancel unpaid bookings whose payment window has closed.

    The status guard lives in the UPDATE itself, so a booking paid after the
    window was computed is left alone even when the payment commits first.
    """
    cutoff = ensure_aware(now) - AUTO_CANCEL_AFTER
    statement = (
        update(Reservation)
        .where(Reservation.status == "pending")
        .where(Reservation.payment_status == "pending")
        .where(Reservation.created_at <= cutoff)
        .values(status="cancelled")
        .returning(Reservation.id, Reservation.booking_code, Reservation.created_at)
        .execution_options(synchronize_session=False)
    )
    if studio_id is not None:
        statement = statement.where(Reservation.studio_id == studio_id)

    try:
        cancelled = db.execute(statement).all()
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Auto-cancel update failed")
        raise UpstreamFetchError("Could not cancel expired reservations.") from exc

    for row in cancelled:
        logger.info(
            json.dumps(
                {
                    "event": "reservation_auto_cancelled",
                    "reservation_id": row.id,
                    "booking_code": row.booking_code,
                    "created_at": ensure_aware(row.created_at).isoformat(),
                }
            )
        )
    return [row.id for row in cancelled]


def _load_customers(db: Session, customer_ids: set[int]) -> dict[int, Customer]:
    if not customer_ids:
        return {}
    try:
        rows = db.query(Customer).filter(Customer.id.in_(sorted(customer_ids))).all()
    except SQLAlchemyError as exc:
        logger.exception("Customer fetch failed for reminders")
        raise UpstreamFetchError("Could not load customers.") from exc
    return {row.id: row for row in rows if row.id in customer_ids}
