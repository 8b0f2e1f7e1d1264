from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from studiobook.clock import resolve_zone
from studiobook.config import STUDIO_TIMEZONE
from studiobook.db.models import Facility, Studio
from studiobook.scheduling.operating_hours import validate_operating_hours


class CreateStudioArgs(BaseModel):
    name: str = Field(min_length=1)
    timezone: str = STUDIO_TIMEZONE
    phone: str | None = None
    operating_hours: dict[str, Any] | None = None

    @field_validator("operating_hours")
    @classmethod
    def check_operating_hours(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        return validate_operating_hours(value) if value is not None else None


class UpdateStudioArgs(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    timezone: str | None = None
    phone: str | None = None
    operating_hours: dict[str, Any] | None = None

    @field_validator("operating_hours")
    @classmethod
    def check_operating_hours(cls, value: dict[str, Any] | None) -> dict[str, Any] | None:
        return validate_operating_hours(value) if value is not None else None


class CreateFacilityArgs(BaseModel):
    name: str = Field(min_length=1)
    capacity: int | None = Field(default=None, gt=0)
    is_available: bool = True


def create_studio(db: Session, args: CreateStudioArgs) -> Studio:
    _require_known_timezone(args.timezone)
    studio = Studio(
        name=args.name,
        timezone=args.timezone,
        phone=args.phone,
        operating_hours=args.operating_hours,
    )
    db.add(studio)
    db.commit()
    return studio


def list_studios(db: Session) -> list[Studio]:
    return sorted(db.query(Studio).all(), key=lambda s: s.id)


def update_studio(db: Session, studio_id: int, args: UpdateStudioArgs) -> Studio | None:
    studio = _find_studio(db, studio_id=studio_id)
    if studio is None:
        return None

    patch = args.model_dump(exclude_unset=True)
    if patch.get("timezone"):
        _require_known_timezone(patch["timezone"])

    for field, value in patch.items():
        setattr(studio, field, value)
    db.commit()
    return studio


def create_facility(db: Session, studio_id: int, args: CreateFacilityArgs) -> Facility | None:
    if _find_studio(db, studio_id=studio_id) is None:
        return None
    facility = Facility(
        studio_id=studio_id,
        name=args.name,
        capacity=args.capacity,
        is_available=args.is_available,
    )
    db.add(facility)
    db.commit()
    return facility


def serialize_studio(studio: Studio) -> dict[str, Any]:
    return {
        "id": studio.id,
        "name": studio.name,
        "timezone": studio.timezone,
        "phone": studio.phone,
        "operating_hours": studio.operating_hours,
        "created_at": studio.created_at.isoformat() if studio.created_at else None,
    }


def serialize_facility(facility: Facility) -> dict[str, Any]:
    return {
        "id": facility.id,
        "studio_id": facility.studio_id,
        "name": facility.name,
        "capacity": facility.capacity,
        "is_available": facility.is_available,
    }


def _find_studio(db: Session, studio_id: int) -> Studio | None:
    for studio in db.query(Studio).all():
        if studio.id == studio_id:
            return studio
    return None


def _require_known_timezone(name: str) -> None:
    if resolve_zone(name).key != name:
        raise ValueError(f"Unknown timezone: {name}")
