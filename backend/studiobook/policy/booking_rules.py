"""Date-relative booking rules.

Every rule is a pure function of ``(reservation, now)``. ``reservation`` may be
an ORM row, a :class:`ReservationSnapshot`, or any object exposing the same
attributes. Deadlines are counted in whole calendar days in the studio's local
time, never in elapsed hours.
"""

from __future__ import annotations

from datetime import date, datetime, time as dt_time
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from studiobook.clock import to_local
from studiobook.errors import InputError


PAYMENT_DEADLINE_DAYS = 3
RESCHEDULE_DEADLINE_DAYS = 3

CLOSED_STATUSES = ("completed", "cancelled")
PAID_STATUSES = ("partial", "completed")


class ReservationSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_code: str | None = None
    studio_id: int | None = None
    facility_id: int
    reservation_date: date
    start_time: dt_time
    end_time: dt_time
    status: str
    payment_status: str
    created_at: datetime
    dp_amount: Decimal = Decimal("0")
    remaining_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")


class RuleResult(BaseModel):
    allowed: bool
    reason: str
    days_remaining: int


class CancellationPolicy(BaseModel):
    can_cancel: bool
    dp_policy: Literal["refund", "forfeit"]
    message: str


class DeadlineInfo(BaseModel):
    days_remaining: int
    is_urgent: bool
    is_past_deadline: bool
    message: str


class BookingPriority(BaseModel):
    priority: Literal["low", "medium", "high", "urgent"]
    label: str


def days_until(reservation_date: date | datetime | str, now: datetime, tz: str | None = None) -> int:
    target = _as_date(reservation_date)
    today = to_local(now, tz).date()
    return (target - today).days


def can_complete_payment(reservation: Any, now: datetime, tz: str | None = None) -> RuleResult:
    days_remaining = days_until(reservation.reservation_date, now, tz)

    if _status(reservation.payment_status) == "completed":
        return RuleResult(allowed=False, reason="Pembayaran sudah lunas", days_remaining=days_remaining)

    if days_remaining < PAYMENT_DEADLINE_DAYS:
        return RuleResult(
            allowed=False,
            reason="Batas waktu pelunasan maksimal H-3 sudah terlewat",
            days_remaining=days_remaining,
        )

    if _amount(reservation.remaining_amount) <= 0:
        return RuleResult(allowed=False, reason="Tidak ada sisa pembayaran", days_remaining=days_remaining)

    return RuleResult(
        allowed=True,
        reason=f"Masih {days_remaining} hari untuk melunasi",
        days_remaining=days_remaining,
    )


def can_reschedule(reservation: Any, now: datetime, tz: str | None = None) -> RuleResult:
    days_remaining = days_until(reservation.reservation_date, now, tz)
    status = _status(reservation.status)

    if status in CLOSED_STATUSES:
        return RuleResult(
            allowed=False,
            reason=f"Tidak dapat reschedule booking yang sudah {status}",
            days_remaining=days_remaining,
        )

    if days_remaining < RESCHEDULE_DEADLINE_DAYS:
        return RuleResult(
            allowed=False,
            reason="Batas waktu reschedule maksimal H-3 sudah terlewat",
            days_remaining=days_remaining,
        )

    return RuleResult(
        allowed=True,
        reason=f"Masih {days_remaining} hari untuk reschedule",
        days_remaining=days_remaining,
    )


def cancellation_policy(reservation: Any, now: datetime | None = None, tz: str | None = None) -> CancellationPolicy:
    """Whether the booking may be cancelled and what happens to money received.

    Any payment received (DP or full) is forfeited; a booking with nothing
    paid has nothing to lose and is marked ``refund``. ``now`` is accepted for
    signature parity with the other rules; the policy is not date-dependent.
    """
    status = _status(reservation.status)
    has_paid = _status(reservation.payment_status) in PAID_STATUSES
    dp_policy: Literal["refund", "forfeit"] = "forfeit" if has_paid else "refund"

    if status in CLOSED_STATUSES:
        return CancellationPolicy(can_cancel=False, dp_policy=dp_policy, message=f"Booking sudah {status}")

    if has_paid:
        message = (
            f"Pembatalan: DP sebesar {format_idr(reservation.dp_amount)} "
            "akan HANGUS dan tidak dikembalikan"
        )
    else:
        message = "Booking dapat dibatalkan. Belum ada pembayaran yang diterima"
    return CancellationPolicy(can_cancel=True, dp_policy=dp_policy, message=message)


def deadline_info(reservation: Any, now: datetime, tz: str | None = None) -> DeadlineInfo:
    days_remaining = days_until(reservation.reservation_date, now, tz)

    is_urgent = days_remaining <= 3
    if days_remaining < 0:
        message = f"Event sudah lewat {abs(days_remaining)} hari"
    elif days_remaining == 0:
        message = "Event hari ini"
    elif days_remaining == 1:
        message = "Event besok"
    elif days_remaining == 2:
        message = f"{days_remaining} hari lagi (H-2)"
    else:
        message = f"{days_remaining} hari lagi"

    return DeadlineInfo(
        days_remaining=days_remaining,
        is_urgent=is_urgent,
        is_past_deadline=days_remaining < 0,
        message=message,
    )


def booking_priority(reservation: Any, now: datetime, tz: str | None = None) -> BookingPriority:
    days_remaining = days_until(reservation.reservation_date, now, tz)
    needs_payment = (
        _status(reservation.payment_status) != "completed"
        and _amount(reservation.remaining_amount) > 0
    )

    if days_remaining <= 2:
        return BookingPriority(priority="urgent", label="URGENT")
    if days_remaining == 3 and needs_payment:
        return BookingPriority(priority="high", label="HIGH")
    if days_remaining <= 7:
        return BookingPriority(priority="medium", label="MEDIUM")
    return BookingPriority(priority="low", label="LOW")


evaluate_reschedule_permission = can_reschedule
evaluate_payment_completion_permission = can_complete_payment
evaluate_cancellation_policy = cancellation_policy


def format_idr(amount: Any) -> str:
    rounded = int(_amount(amount).quantize(Decimal("1")))
    sign = "-" if rounded < 0 else ""
    return f"{sign}Rp {abs(rounded):,}".replace(",", ".")


def _as_date(value: date | datetime | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise InputError(f"Invalid reservation date: {value!r}") from exc
    raise InputError(f"Invalid reservation date: {value!r}")


def _amount(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise InputError(f"Invalid amount: {value!r}") from exc


def _status(value: Any) -> str:
    return str(value or "").strip().lower()
