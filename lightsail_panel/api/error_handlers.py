"""Uniform JSON rendering for every error that reaches the request boundary."""

import logging
import math

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException

from lightsail_panel.services.auth import AuthorizationError

logger = logging.getLogger(__name__)


async def authorization_error_handler(_: Request, exc: AuthorizationError) -> Response:
    """Render an ``AuthFailure`` with its kind, status and retry guidance."""
    failure = exc.failure

    content: dict[str, object] = {"error": failure.message, "kind": failure.kind.value}
    if failure.remaining is not None:
        content["remaining"] = failure.remaining
    headers = {}
    if failure.retry_after_ms is not None:
        content["retry_after_ms"] = failure.retry_after_ms
    # Zero while only the attempt window is exhausted; no lockout deadline to report
    if failure.retry_after_ms:
        headers["Retry-After"] = str(math.ceil(failure.retry_after_ms / 1000))

    return JSONResponse(status_code=failure.status_code, content=content, headers=headers)


async def http_exception_handler(_: Request, exc: HTTPException) -> Response:
    """Render HTTPException as ``{"error": detail}``."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


def _invalid_field_message(exc: RequestValidationError) -> str:
    """Name the first offending field, e.g. ``Invalid action``."""
    for error in exc.errors():
        loc = error.get("loc", ())
        fields = [part for part in loc[1:] if isinstance(part, str)]
        if fields:
            return f"Invalid {fields[0]}"
    return "Invalid request"


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> Response:
    """Render request validation failures as 400 ``{"error": ...}``."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": _invalid_field_message(exc)},
    )


async def general_exception_handler(_: Request, exc: Exception) -> Response:
    """Handle unexpected errors (500) without leaking internals."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal error"})
