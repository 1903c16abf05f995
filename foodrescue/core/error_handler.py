"""
Unified error handling.
Maps application error codes to HTTP statuses and renders every failure as
{"error": <reason phrase>, "message": ..., "code": ...}.
"""

import logging
import traceback
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from .database import db_manager, log_action
from .exceptions import BaseApplicationError
from ..config.settings import settings

logger = logging.getLogger(__name__)


class ErrorResponse:
    """Standard error response"""

    def __init__(self, error_code: str, message: str,
                 details: Optional[Dict[str, Any]] = None,
                 http_status: int = 400):
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        body = {
            "error": HTTPStatus(self.http_status).phrase,
            "message": self.message,
            "code": self.error_code,
        }
        if self.details:
            body["details"] = self.details
        return body

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(status_code=self.http_status, content=self.to_dict())


class ErrorHandler:
    """Global error handler"""

    # Error code -> HTTP status
    ERROR_CODE_STATUS_MAP = {
        "VALIDATION_ERROR": 400,
        "AUTHENTICATION_REQUIRED": 401,
        "INVALID_CREDENTIALS": 401,
        "PERMISSION_DENIED": 403,
        "ACCOUNT_SUSPENDED": 403,
        "CANCELLATION_WINDOW_CLOSED": 403,
        "RESOURCE_NOT_FOUND": 404,
        "USER_NOT_FOUND": 404,
        "OFFER_NOT_FOUND": 404,
        "PICKUP_NOT_FOUND": 404,
        "CONFLICT": 409,
        "EMAIL_IN_USE": 409,
        "OFFER_STATUS_CONFLICT": 409,
        "CONCURRENCY_CONFLICT": 409,
        "DATABASE_ERROR": 500,
        "INTERNAL_ERROR": 500,
    }

    @classmethod
    def handle_application_error(cls, error: BaseApplicationError) -> ErrorResponse:
        http_status = cls.ERROR_CODE_STATUS_MAP.get(error.error_code, 400)
        if http_status >= 500:
            logger.error("%s: %s", error.error_code, error.message)
        return ErrorResponse(
            error_code=error.error_code,
            message=error.message,
            details=error.details,
            http_status=http_status
        )

    @classmethod
    def handle_http_exception(cls, error: HTTPException) -> ErrorResponse:
        return ErrorResponse(
            error_code="HTTP_ERROR",
            message=str(error.detail),
            http_status=error.status_code
        )

    @classmethod
    def handle_validation_error(cls, error: RequestValidationError) -> ErrorResponse:
        problems = []
        for item in error.errors():
            location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
            problems.append(f"{location}: {item.get('msg')}" if location else item.get("msg"))
        return ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="; ".join(problems) or "Invalid request",
            http_status=400
        )

    @classmethod
    def handle_unknown_error(cls, request: Request, error: Exception) -> ErrorResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=error)
        cls._log_system_error({
            "path": request.url.path,
            "method": request.method,
            "type": type(error).__name__,
            "message": str(error),
            "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        })
        message = str(error) if settings.debug and str(error) else "Internal server error"
        return ErrorResponse(error_code="INTERNAL_ERROR", message=message, http_status=500)

    @classmethod
    def _log_system_error(cls, error_details: Dict[str, Any]):
        """Record the failure in the audit table"""
        try:
            with db_manager.reading() as conn:
                log_action(conn, None, "system_error", error_details)
        except Exception:
            logger.exception("Failed to record system error")


async def application_error_handler(request: Request, exc: BaseApplicationError) -> JSONResponse:
    return ErrorHandler.handle_application_error(exc).to_json_response()


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return ErrorHandler.handle_http_exception(exc).to_json_response()


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return ErrorHandler.handle_validation_error(exc).to_json_response()


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return ErrorHandler.handle_unknown_error(request, exc).to_json_response()
