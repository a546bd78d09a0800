"""Error hierarchy and the JSON error envelope.

Every handled failure is rendered as ``{"error": message}`` with an optional
``details`` field, using the status code carried by the exception.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class PettyCashError(Exception):
    """Base exception for all service errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_response(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class AuthenticationError(PettyCashError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Not authenticated", details: Any = None):
        super().__init__(message, details=details)


class PermissionDeniedError(PettyCashError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Insufficient permissions", details: Any = None):
        super().__init__(message, details=details)


class NotFoundError(PettyCashError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, details=details)


class ValidationError(PettyCashError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, details: Any = None):
        super().__init__(message, details=details)


class PlatformError(PettyCashError):
    """
    A call to the external data/auth platform failed.

    ``code`` holds the Postgres / PostgREST error code when the platform
    returned one (e.g. ``42501`` for an RLS violation, ``PGRST116`` when a
    single-row read matched zero rows).
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        code: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(message, status_code=status_code, details=details)
        self.code = code

    @property
    def is_permission_error(self) -> bool:
        return self.code == "42501"

    @property
    def is_no_rows(self) -> bool:
        return self.code == "PGRST116"


def missing_fields_message(fields: list) -> str:
    return f"Missing required fields: {', '.join(fields)}"


def register_error_handlers(app: FastAPI) -> None:
    """Register the global error handlers on the FastAPI app."""

    @app.exception_handler(PettyCashError)
    async def pettycash_error_handler(request: Request, exc: PettyCashError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            f"{type(exc).__name__}: {exc.message}",
            extra={"status_code": exc.status_code, "path": request.url.path},
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.url.path}: {exc}",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )


def _is_missing(error: dict) -> bool:
    # Blank strings count as missing, like absent keys and nulls.
    if error.get("type") == "missing":
        return True
    if "input" in error and error["input"] is None and error.get("type", "").endswith("_type"):
        return True
    if error.get("type") == "string_too_short":
        return (error.get("ctx") or {}).get("min_length") == 1
    return False


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    errors = exc.errors()
    missing = [
        str(e["loc"][-1]) for e in errors
        if e.get("loc") and _is_missing(e)
    ]
    if missing and len(missing) == len(errors):
        message = missing_fields_message(missing)
    else:
        first = errors[0] if errors else {}
        message = first.get("msg", "Invalid request data")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
    return {
        "error": message,
        "details": [
            {
                "field": ".".join(str(loc) for loc in e.get("loc", ())),
                "message": e.get("msg"),
            }
            for e in errors
        ],
    }
