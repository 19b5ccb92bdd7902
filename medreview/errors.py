# medreview/errors.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class MedReviewError(Exception):
    """
    Base class for errors that map to a specific HTTP response.
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class UnauthorizedError(MedReviewError):
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(MedReviewError):
    status_code = 404
    default_message = "Not found"


class ValidationError(MedReviewError):
    status_code = 400
    default_message = "Invalid request"


class ConflictError(MedReviewError):
    status_code = 409
    default_message = "Conflict"


class UpstreamServiceError(MedReviewError):
    status_code = 502
    default_message = "Upstream service error"


class ConfigurationError(MedReviewError):
    status_code = 500
    default_message = "Service is not configured"


def error_body(message: str, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": False, "error": message}
    body.update(extra)
    return body


def register_error_handlers(app: FastAPI) -> None:
    """
    Map every failure to the same {"success": false, "error": ...} envelope.
    """

    @app.exception_handler(MedReviewError)
    async def _medreview_error(request: Request, exc: MedReviewError):
        if exc.status_code >= 500:
            logger.error(
                "%s %s failed: %s", request.method, request.url.path, exc.message,
                exc_info=exc,
            )
            # Missing-credential names stay in the log.
            message = (
                "Internal server error"
                if isinstance(exc, ConfigurationError)
                else exc.message
            )
        else:
            message = exc.message
        return JSONResponse(status_code=exc.status_code, content=error_body(message))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_body("Invalid request", details=details),
        )

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=error_body("Internal server error"))
