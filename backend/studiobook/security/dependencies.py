import hmac
import logging
import os

from fastapi import Header, HTTPException, Request, status

logger = logging.getLogger("studiobook.security")

DEV_ENVIRONMENTS = {"dev", "development", "local"}


def _staff_auth_error(error_code: str, human_message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error_code": error_code, "human_message": human_message},
    )


def require_admin_api_key(
    request: Request,
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> None:
    """Guard for the studio staff and admin routes.

    ``ENV`` and ``ADMIN_API_KEY`` are read per request. Without a configured key
    the staff surface stays open in dev and is refused everywhere else.
    """
    configured_key = os.getenv("ADMIN_API_KEY", "")

    if not configured_key:
        if os.getenv("ENV", "dev").lower() in DEV_ENVIRONMENTS:
            logger.warning("ADMIN_API_KEY unset in dev; staff route %s served without a key.", request.url.path)
            return
        raise _staff_auth_error(
            "ADMIN_AUTH_NOT_CONFIGURED",
            "Studio staff access is not configured on this server.",
        )

    if not hmac.compare_digest((x_admin_key or "").encode(), configured_key.encode()):
        logger.warning("Rejected staff request path=%s: missing or wrong X-Admin-Key.", request.url.path)
        raise _staff_auth_error(
            "INVALID_ADMIN_API_KEY",
            "Studio staff key is missing or invalid.",
        )
