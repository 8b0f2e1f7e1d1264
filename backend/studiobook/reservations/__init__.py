from studiobook.reservations.manage import (
    cancel_reservation,
    complete_payment,
    evaluate_reservation,
    parse_reschedule_args,
    reschedule_reservation,
)

__all__ = [
    "cancel_reservation",
    "complete_payment",
    "evaluate_reservation",
    "parse_reschedule_args",
    "reschedule_reservation",
]
