from studiobook.db.base import Base
from studiobook.db.models import (
    Customer,
    Facility,
    Reservation,
    ReservationAddon,
    ReservationFacility,
    Studio,
    TimeSlot,
)

__all__ = [
    "Base",
    "Customer",
    "Facility",
    "Reservation",
    "ReservationAddon",
    "ReservationFacility",
    "Studio",
    "TimeSlot",
]
