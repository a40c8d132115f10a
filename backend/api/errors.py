"""
API error taxonomy and response envelope.

Every response body is {success, data?, message?, error?}. Failures carry a
stable `error` kind:

    not_found             404  engine does not know the resource
    forbidden             403  safe mode blocked a destructive operation
    upstream_unavailable  500  engine unreachable or rejected the request
    malformed_input       400  request failed validation (no engine call made)
    rate_limited          429  client exceeded its request budget
"""

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from engine.errors import EngineError, ResourceNotFound
from guard.operational_guard import OperationForbidden

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500
    error = "internal"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ApiError):
    status_code = 404
    error = "not_found"


class ForbiddenError(ApiError):
    status_code = 403
    error = "forbidden"


class UpstreamUnavailableError(ApiError):
    status_code = 500
    error = "upstream_unavailable"


class MalformedInputError(ApiError):
    status_code = 400
    error = "malformed_input"


class RateLimitedError(ApiError):
    status_code = 429
    error = "rate_limited"


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope."""
    body: dict = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body


def error_response(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message}
    )


def translate_engine_error(error: EngineError, action: str) -> ApiError:
    if isinstance(error, ResourceNotFound):
        return NotFoundError(error.message)
    return UpstreamUnavailableError(f"Failed to {action}: {error.message}")


@contextmanager
def engine_errors(action: str) -> Iterator[None]:
    """
    Re-raise engine errors from the block as API errors.

    Example:
        with engine_errors("start container"):
            await engine.start_container(container_id)
    """
    try:
        yield
    except EngineError as e:
        logger.error(f"Failed to {action}: {e.message}")
        raise translate_engine_error(e, action) from e


# ==================== Exception handlers ====================

async def api_error_handler(request: Request, exc: ApiError):
    return error_response(exc.status_code, exc.error, exc.message)


async def forbidden_handler(request: Request, exc: OperationForbidden):
    return error_response(ForbiddenError.status_code, ForbiddenError.error, exc.message)


async def engine_error_handler(request: Request, exc: EngineError):
    """Engine errors raised outside an engine_errors() block."""
    translated = translate_engine_error(exc, f"handle {request.method} {request.url.path}")
    logger.error(f"Unmapped engine error for {request.url.path}: {exc.message}")
    return error_response(translated.status_code, translated.error, translated.message)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Custom handler for Pydantic validation errors.
    Returns user-friendly error messages with field-level details.
    """
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(x) for x in error['loc'])
        errors.append({
            "field": field,
            "message": error['msg'],
            "type": error['type']
        })

    logger.warning(f"Validation failed for {request.url.path}: {errors}")

    summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    return JSONResponse(
        status_code=MalformedInputError.status_code,
        content={
            "success": False,
            "error": MalformedInputError.error,
            "message": f"Invalid request data: {summary}",
            "data": {"errors": errors}
        }
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error for {request.method} {request.url.path}: {exc}", exc_info=exc)
    return error_response(500, "internal", "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(OperationForbidden, forbidden_handler)
    app.add_exception_handler(EngineError, engine_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
