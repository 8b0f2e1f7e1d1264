from studiobook.admin.studios import (
    CreateFacilityArgs,
    CreateStudioArgs,
    UpdateStudioArgs,
    create_facility,
    create_studio,
    list_studios,
    serialize_facility,
    serialize_studio,
    update_studio,
)

__all__ = [
    "CreateFacilityArgs",
    "CreateStudioArgs",
    "UpdateStudioArgs",
    "create_facility",
    "create_studio",
    "list_studios",
    "serialize_facility",
    "serialize_studio",
    "update_studio",
]
