from studiobook.scheduling.availability import (
    AvailabilityResult,
    SlotCheck,
    check_slot_availability,
    fetch_addon_bookings,
    fetch_blocked_slots,
    fetch_linked_facility_ids,
    fetch_operating_hours,
    fetch_reservations,
    get_available_slots,
    get_package_availability,
    revalidate_slot,
)
from studiobook.scheduling.intervals import (
    OccupiedRange,
    TimeInterval,
    add_minutes,
    overlaps,
)
from studiobook.scheduling.operating_hours import resolve_operating_hours
from studiobook.scheduling.slots import (
    OperatingHours,
    SlotCandidate,
    count_slots,
    generate_slots,
)

__all__ = [
    "AvailabilityResult",
    "SlotCheck",
    "check_slot_availability",
    "fetch_addon_bookings",
    "fetch_blocked_slots",
    "fetch_linked_facility_ids",
    "fetch_operating_hours",
    "fetch_reservations",
    "get_available_slots",
    "get_package_availability",
    "revalidate_slot",
    "OccupiedRange",
    "TimeInterval",
    "add_minutes",
    "overlaps",
    "resolve_operating_hours",
    "OperatingHours",
    "SlotCandidate",
    "count_slots",
    "generate_slots",
]
