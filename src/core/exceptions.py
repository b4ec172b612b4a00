"""Domain exceptions and their HTTP rendering."""
from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class UsageQuotaError(Exception):
    """Base class for errors raised by the usage subsystem."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class StorageUnavailableError(UsageQuotaError):
    """The counter store could not be read or written.

    Callers must treat this as "usage unknown", never as zero usage.
    """

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class UnknownUsageActionError(UsageQuotaError):
    """An action name that does not map to a tracked counter."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Unknown usage action: {action}")


async def _http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def _usage_error_handler(_request: Request, exc: UsageQuotaError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"Usage subsystem failure: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    """Render errors as ``{"message": ...}`` bodies."""

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(UsageQuotaError, _usage_error_handler)
