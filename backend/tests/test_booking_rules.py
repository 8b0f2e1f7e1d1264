from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from studiobook.policy.booking_rules import (
    ReservationSnapshot,
    booking_priority,
    can_complete_payment,
    can_reschedule,
    cancellation_policy,
    days_until,
    deadline_info,
    format_idr,
)


# 10:00 local in Asia/Jakarta on 2026-03-10.
NOW = datetime(2026, 3, 10, 3, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 10)

STATUSES = ("pending", "confirmed", "completed", "cancelled")
PAYMENT_STATUSES = ("pending", "partial", "completed")


def _reservation(days_ahead=10, status="pending", payment_status="pending", remaining="1500000", dp="500000"):
    return SimpleNamespace(
        id=1,
        booking_code="BK-001",
        facility_id=10,
        reservation_date=TODAY + timedelta(days=days_ahead),
        start_time=time(10, 0),
        end_time=time(11, 0),
        status=status,
        payment_status=payment_status,
        created_at=NOW - timedelta(days=1),
        dp_amount=Decimal(dp),
        remaining_amount=Decimal(remaining),
        total_amount=Decimal("2000000"),
    )


def test_days_until_counts_local_calendar_days():
    # 23:30 local on 2026-03-10, still "today" in Jakarta although UTC is earlier.
    late_evening = datetime(2026, 3, 10, 16, 30, tzinfo=timezone.utc)
    assert days_until(date(2026, 3, 11), late_evening) == 1
    # 00:30 local on 2026-03-11 while UTC is still 2026-03-10.
    after_midnight = datetime(2026, 3, 10, 17, 30, tzinfo=timezone.utc)
    assert days_until(date(2026, 3, 11), after_midnight) == 0
    assert days_until("2026-03-13", NOW) == 3


@pytest.mark.parametrize("hour", [0, 9, 18, 23])
def test_naive_now_is_studio_wall_clock(hour):
    naive = datetime(2026, 3, 10, hour, 0)
    assert days_until(date(2026, 3, 13), naive) == 3
    aware = datetime(2026, 3, 10, hour, 0, tzinfo=ZoneInfo("Asia/Jakarta"))
    assert days_until(date(2026, 3, 13), naive) == days_until(date(2026, 3, 13), aware)


def test_naive_evening_still_allows_payment_at_h3():
    result = can_complete_payment(_reservation(days_ahead=3), datetime(2026, 3, 10, 18, 0))
    assert result.allowed is True
    assert result.days_remaining == 3


def test_payment_blocked_inside_h3_window():
    result = can_complete_payment(_reservation(days_ahead=2), NOW)
    assert result.allowed is False
    assert result.days_remaining == 2
    assert "H-3" in result.reason


def test_payment_allowed_exactly_at_h3():
    result = can_complete_payment(_reservation(days_ahead=3), NOW)
    assert result.allowed is True
    assert result.reason == "Masih 3 hari untuk melunasi"


def test_payment_rejected_when_already_paid_or_nothing_left():
    assert can_complete_payment(_reservation(payment_status="completed"), NOW).reason == "Pembayaran sudah lunas"
    assert can_complete_payment(_reservation(remaining="0"), NOW).reason == "Tidak ada sisa pembayaran"


def test_reschedule_rules():
    assert can_reschedule(_reservation(days_ahead=5), NOW).allowed is True
    late = can_reschedule(_reservation(days_ahead=1), NOW)
    assert late.allowed is False
    assert "H-3" in late.reason
    done = can_reschedule(_reservation(status="completed"), NOW)
    assert done.allowed is False
    assert done.reason == "Tidak dapat reschedule booking yang sudah completed"


def test_partial_payment_cancellation_forfeits_dp():
    policy = cancellation_policy(_reservation(payment_status="partial"), NOW)
    assert policy.can_cancel is True
    assert policy.dp_policy == "forfeit"
    assert "Rp 500.000" in policy.message
    assert "HANGUS" in policy.message


@pytest.mark.parametrize("status", STATUSES)
@pytest.mark.parametrize("payment_status", PAYMENT_STATUSES)
def test_cancellation_policy_grid(status, payment_status):
    policy = cancellation_policy(_reservation(status=status, payment_status=payment_status), NOW)

    assert policy.can_cancel is (status not in ("completed", "cancelled"))
    expected_dp = "forfeit" if payment_status in ("partial", "completed") else "refund"
    assert policy.dp_policy == expected_dp


def test_cancellation_policy_ignores_date():
    near = cancellation_policy(_reservation(days_ahead=0), NOW)
    far = cancellation_policy(_reservation(days_ahead=60), NOW)
    assert near == far


@pytest.mark.parametrize(
    "days_ahead, message, urgent",
    [
        (-2, "Event sudah lewat 2 hari", True),
        (0, "Event hari ini", True),
        (1, "Event besok", True),
        (2, "2 hari lagi (H-2)", True),
        (3, "3 hari lagi", True),
        (4, "4 hari lagi", False),
    ],
)
def test_deadline_messages(days_ahead, message, urgent):
    info = deadline_info(_reservation(days_ahead=days_ahead), NOW)
    assert info.message == message
    assert info.is_urgent is urgent
    assert info.is_past_deadline is (days_ahead < 0)


def test_rules_are_monotonic_in_now():
    reservation = _reservation(days_ahead=6)
    previously_allowed = True
    for hours in range(0, 24 * 8, 6):
        allowed = can_reschedule(reservation, NOW + timedelta(hours=hours)).allowed
        assert not (allowed and not previously_allowed)
        previously_allowed = allowed
    assert previously_allowed is False


@pytest.mark.parametrize(
    "days_ahead, payment_status, remaining, expected",
    [
        (1, "completed", "0", "urgent"),
        (3, "partial", "1000000", "high"),
        (3, "completed", "0", "medium"),
        (7, "pending", "1000000", "medium"),
        (8, "pending", "1000000", "low"),
    ],
)
def test_booking_priority(days_ahead, payment_status, remaining, expected):
    reservation = _reservation(days_ahead=days_ahead, payment_status=payment_status, remaining=remaining)
    assert booking_priority(reservation, NOW).priority == expected


def test_snapshot_from_orm_like_row():
    snapshot = ReservationSnapshot.model_validate(_reservation(days_ahead=4), from_attributes=True)
    assert can_reschedule(snapshot, NOW).days_remaining == 4


def test_format_idr_uses_dot_grouping():
    assert format_idr(Decimal("1500000.00")) == "Rp 1.500.000"
    assert format_idr(None) == "Rp 0"
