from studiobook.policy.booking_rules import (
    PAYMENT_DEADLINE_DAYS,
    RESCHEDULE_DEADLINE_DAYS,
    BookingPriority,
    CancellationPolicy,
    DeadlineInfo,
    ReservationSnapshot,
    RuleResult,
    booking_priority,
    can_complete_payment,
    can_reschedule,
    cancellation_policy,
    days_until,
    deadline_info,
    evaluate_cancellation_policy,
    evaluate_payment_completion_permission,
    evaluate_reschedule_permission,
)
from studiobook.policy.reminders import (
    AUTO_CANCEL_AFTER,
    REMINDER_AFTER,
    PaymentReminder,
    ReminderWindow,
    build_payment_reminders,
    cancel_expired_reservations,
    get_active_reminders,
    reminder_window,
)

__all__ = [
    "PAYMENT_DEADLINE_DAYS",
    "RESCHEDULE_DEADLINE_DAYS",
    "BookingPriority",
    "CancellationPolicy",
    "DeadlineInfo",
    "ReservationSnapshot",
    "RuleResult",
    "booking_priority",
    "can_complete_payment",
    "can_reschedule",
    "cancellation_policy",
    "days_until",
    "deadline_info",
    "evaluate_cancellation_policy",
    "evaluate_payment_completion_permission",
    "evaluate_reschedule_permission",
    "AUTO_CANCEL_AFTER",
    "REMINDER_AFTER",
    "PaymentReminder",
    "ReminderWindow",
    "build_payment_reminders",
    "cancel_expired_reservations",
    "get_active_reminders",
    "reminder_window",
]
