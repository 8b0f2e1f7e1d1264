from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from studiobook.config import STUDIO_TIMEZONE

logger = logging.getLogger("studiobook.clock")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def resolve_zone(name: str | None) -> ZoneInfo:
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown timezone %r; falling back to %s", name, STUDIO_TIMEZONE)
    return ZoneInfo(STUDIO_TIMEZONE)


def ensure_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_local(value: datetime, tz_name: str | None = None) -> datetime:
    """Studio wall-clock view of ``value``.

    Naive datetimes are already studio wall-clock time and only get the zone
    attached; aware ones are converted.
    """
    zone = resolve_zone(tz_name)
    if value.tzinfo is None:
        return value.replace(tzinfo=zone)
    return value.astimezone(zone)
