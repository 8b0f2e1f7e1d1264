import json
import logging
import time
import uuid
from datetime import date, datetime
from typing import Any, Callable

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

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
from studiobook.clock import utcnow
from studiobook.db.session import SessionLocal
from studiobook.errors import (
    InputError,
    UnknownResourceError,
    UpstreamFetchError,
    map_validation_error,
)
from studiobook.policy.reminders import get_active_reminders
from studiobook.reservations.manage import (
    cancel_reservation,
    complete_payment,
    evaluate_reservation,
    parse_reschedule_args,
    reschedule_reservation,
)
from studiobook.scheduling.availability import (
    check_slot_availability,
    get_available_slots,
    get_package_availability,
)
from studiobook.security.dependencies import require_admin_api_key


ERROR_STATUS_CODES = {
    "INVALID_ARGS": 400,
    "OUTSIDE_OPERATING_HOURS": 400,
    "RESERVATION_NOT_FOUND": 404,
    "RESCHEDULE_NOT_ALLOWED": 409,
    "PAYMENT_NOT_ALLOWED": 409,
    "CANCELLATION_NOT_ALLOWED": 409,
    "SLOT_UNAVAILABLE": 409,
    "STUDIO_CLOSED": 409,
}


class AvailabilityQueryArgs(BaseModel):
    studio_id: int
    date: date
    duration_minutes: int = Field(gt=0)
    exclude_reservation_id: int | None = None


class SlotCheckArgs(BaseModel):
    date: date
    start_time: str = Field(min_length=4)
    duration_minutes: int = Field(gt=0)
    exclude_reservation_id: int | None = None
    extra_facility_ids: list[int] = Field(default_factory=list)


class PackageAvailabilityArgs(BaseModel):
    facility_ids: list[int] = Field(min_length=1)
    date: date
    duration_minutes: int = Field(gt=0)
    exclude_reservation_id: int | None = None


def configure_logging() -> logging.Logger:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    return logging.getLogger("studiobook.backend")


def _now() -> datetime:
    return utcnow()


logger = configure_logging()
app = FastAPI(title="Studio Booking Backend")


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    start_time = time.perf_counter()

    response = await call_next(request)

    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["x-request-id"] = request_id

    logger.info(
        json.dumps(
            {
                "event": "http_request",
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            }
        )
    )
    return response


@app.get("/health")
async def health():
    return JSONResponse(content={"ok": True})


@app.get(
    "/v1/facilities/{facility_id}/availability",
    dependencies=[Depends(require_admin_api_key)],
)
async def facility_availability(facility_id: int, request: Request) -> JSONResponse:
    try:
        args = AvailabilityQueryArgs.model_validate(dict(request.query_params))
    except ValidationError as exc:
        return JSONResponse(content={"ok": False, **map_validation_error(exc)}, status_code=400)

    def _query(db):
        return get_available_slots(
            db=db,
            facility_id=facility_id,
            studio_id=args.studio_id,
            on_date=args.date,
            duration_minutes=args.duration_minutes,
            exclude_reservation_id=args.exclude_reservation_id,
            now=_now(),
        )

    return _run_scheduling_query(_query, failure_message="Temporary issue computing availability.")


@app.post(
    "/v1/facilities/{facility_id}/availability/check",
    dependencies=[Depends(require_admin_api_key)],
)
async def facility_slot_check(facility_id: int, payload: dict[str, Any]) -> JSONResponse:
    try:
        args = SlotCheckArgs.model_validate(payload)
    except ValidationError as exc:
        return JSONResponse(content={"ok": False, **map_validation_error(exc)}, status_code=400)

    def _query(db):
        return check_slot_availability(
            db=db,
            facility_id=facility_id,
            on_date=args.date,
            start_time=args.start_time,
            duration_minutes=args.duration_minutes,
            exclude_reservation_id=args.exclude_reservation_id,
            extra_facility_ids=args.extra_facility_ids,
        )

    return _run_scheduling_query(_query, failure_message="Temporary issue checking availability.")


@app.get(
    "/v1/studios/{studio_id}/availability",
    dependencies=[Depends(require_admin_api_key)],
)
async def studio_package_availability(studio_id: int, request: Request) -> JSONResponse:
    raw_args: dict[str, Any] = dict(request.query_params)
    raw_args["facility_ids"] = request.query_params.getlist("facility_ids")
    try:
        args = PackageAvailabilityArgs.model_validate(raw_args)
    except ValidationError as exc:
        return JSONResponse(content={"ok": False, **map_validation_error(exc)}, status_code=400)

    def _query(db):
        return get_package_availability(
            db=db,
            studio_id=studio_id,
            facility_ids=args.facility_ids,
            on_date=args.date,
            duration_minutes=args.duration_minutes,
            exclude_reservation_id=args.exclude_reservation_id,
            now=_now(),
        )

    return _run_scheduling_query(_query, failure_message="Temporary issue computing availability.")


@app.get(
    "/v1/reservations/{reservation_id}/policy",
    dependencies=[Depends(require_admin_api_key)],
)
async def reservation_policy(reservation_id: int) -> JSONResponse:
    return _run_reservation_action(
        lambda db: evaluate_reservation(db=db, reservation_id=reservation_id, now=_now()),
        failure_message="Temporary issue evaluating reservation.",
    )


@app.post(
    "/v1/reservations/{reservation_id}/reschedule",
    dependencies=[Depends(require_admin_api_key)],
)
async def reservation_reschedule(reservation_id: int, payload: dict[str, Any]) -> JSONResponse:
    try:
        args = parse_reschedule_args(payload)
    except ValidationError as exc:
        return JSONResponse(content={"ok": False, **map_validation_error(exc)}, status_code=400)

    return _run_reservation_action(
        lambda db: reschedule_reservation(db=db, reservation_id=reservation_id, args=args, now=_now()),
        failure_message="Temporary issue rescheduling reservation.",
    )


@app.post(
    "/v1/reservations/{reservation_id}/cancel",
    dependencies=[Depends(require_admin_api_key)],
)
async def reservation_cancel(reservation_id: int) -> JSONResponse:
    return _run_reservation_action(
        lambda db: cancel_reservation(db=db, reservation_id=reservation_id, now=_now()),
        failure_message="Temporary issue cancelling reservation.",
    )


@app.post(
    "/v1/reservations/{reservation_id}/complete-payment",
    dependencies=[Depends(require_admin_api_key)],
)
async def reservation_complete_payment(reservation_id: int) -> JSONResponse:
    return _run_reservation_action(
        lambda db: complete_payment(db=db, reservation_id=reservation_id, now=_now()),
        failure_message="Temporary issue completing payment.",
    )


@app.get(
    "/v1/studios/{studio_id}/payment-reminders",
    dependencies=[Depends(require_admin_api_key)],
)
async def studio_payment_reminders(studio_id: int) -> JSONResponse:
    now = _now()
    db = SessionLocal()
    try:
        reminders = get_active_reminders(db=db, studio_id=studio_id, now=now)
        return JSONResponse(
            content={
                "ok": True,
                "data": {
                    "generated_at": now.isoformat(),
                    "reminders": [item.to_json() for item in reminders],
                },
            }
        )
    except UpstreamFetchError as exc:
        return _upstream_failure(exc)
    finally:
        db.close()


@app.post("/v1/admin/studios", dependencies=[Depends(require_admin_api_key)])
async def admin_create_studio(payload: dict[str, Any]) -> JSONResponse:
    try:
        args = CreateStudioArgs.model_validate(payload)
    except ValidationError as exc:
        return JSONResponse(content={"ok": False, **map_validation_error(exc)}, status_code=400)

    db = SessionLocal()
    try:
        studio = create_studio(db=db, args=args)
        return JSONResponse(content={"ok": True, "data": {"studio": serialize_studio(studio)}})
    except ValueError as exc:
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error_code": "INVALID_TIMEZONE", "human_message": str(exc)},
        )
    except Exception:
        logger.exception("Studio creation failed")
        return _system_down("Temporary issue creating studio.")
    finally:
        db.close()


@app.get("/v1/admin/studios", dependencies=[Depends(require_admin_api_key)])
async def admin_list_studios() -> JSONResponse:
    db = SessionLocal()
    try:
        studios = list_studios(db=db)
        return JSONResponse(
            content={"ok": True, "data": {"studios": [serialize_studio(item) for item in studios]}}
        )
    finally:
        db.close()


@app.patch("/v1/admin/studios/{studio_id}", dependencies=[Depends(require_admin_api_key)])
async def admin_update_studio(studio_id: int, payload: dict[str, Any]) -> JSONResponse:
    try:
        args = UpdateStudioArgs.model_validate(payload)
    except ValidationError as exc:
        return JSONResponse(content={"ok": False, **map_validation_error(exc)}, status_code=400)

    db = SessionLocal()
    try:
        studio = update_studio(db=db, studio_id=studio_id, args=args)
        if studio is None:
            return _studio_not_found()
        return JSONResponse(content={"ok": True, "data": {"studio": serialize_studio(studio)}})
    except ValueError as exc:
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error_code": "INVALID_TIMEZONE", "human_message": str(exc)},
        )
    except Exception:
        logger.exception("Studio update failed for studio_id=%s", studio_id)
        return _system_down("Temporary issue updating studio.")
    finally:
        db.close()


@app.post(
    "/v1/admin/studios/{studio_id}/facilities",
    dependencies=[Depends(require_admin_api_key)],
)
async def admin_create_facility(studio_id: int, payload: dict[str, Any]) -> JSONResponse:
    try:
        args = CreateFacilityArgs.model_validate(payload)
    except ValidationError as exc:
        return JSONResponse(content={"ok": False, **map_validation_error(exc)}, status_code=400)

    db = SessionLocal()
    try:
        facility = create_facility(db=db, studio_id=studio_id, args=args)
        if facility is None:
            return _studio_not_found()
        return JSONResponse(content={"ok": True, "data": {"facility": serialize_facility(facility)}})
    except Exception:
        logger.exception("Facility creation failed for studio_id=%s", studio_id)
        return _system_down("Temporary issue creating facility.")
    finally:
        db.close()


def _run_scheduling_query(query: Callable[[Any], Any], failure_message: str) -> JSONResponse:
    db = SessionLocal()
    try:
        result = query(db)
        return JSONResponse(content={"ok": True, "data": result.to_json()})
    except UnknownResourceError as exc:
        return JSONResponse(
            status_code=404,
            content={"ok": False, "error_code": "RESOURCE_NOT_FOUND", "human_message": str(exc)},
        )
    except InputError as exc:
        return JSONResponse(
            status_code=400,
            content={"ok": False, "error_code": "INVALID_ARGS", "human_message": str(exc)},
        )
    except UpstreamFetchError as exc:
        return _upstream_failure(exc)
    except Exception:
        logger.exception("Scheduling query failed")
        return _system_down(failure_message)
    finally:
        db.close()


def _run_reservation_action(action: Callable[[Any], dict[str, Any]], failure_message: str) -> JSONResponse:
    db = SessionLocal()
    try:
        response_json = action(db)
    except UpstreamFetchError as exc:
        return _upstream_failure(exc)
    except Exception:
        logger.exception("Reservation action failed")
        return _system_down(failure_message)
    finally:
        db.close()

    status_code = 200
    if not response_json.get("ok"):
        status_code = ERROR_STATUS_CODES.get(response_json.get("error_code", ""), 400)
    return JSONResponse(content=response_json, status_code=status_code)


def _upstream_failure(exc: UpstreamFetchError) -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"ok": False, "error_code": "UPSTREAM_FETCH_FAILED", "human_message": str(exc)},
    )


def _studio_not_found() -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"ok": False, "error_code": "STUDIO_NOT_FOUND", "human_message": "Studio not found."},
    )


def _system_down(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"ok": False, "error_code": "SYSTEM_DOWN", "human_message": message},
    )
