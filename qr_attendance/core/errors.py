# qr_attendance/core/errors.py
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from qr_attendance.core.config import settings
from qr_attendance.core.exceptions import AttendanceError, DuplicateCheckin
from qr_attendance.core.i18n import get_translation, parse_accept_language

logger = logging.getLogger(__name__)

TIMESTAMP_FORMATS = {
    'pt': "%d/%m/%Y %H:%M:%S",
    'en': "%Y-%m-%d %H:%M:%S",
}


def format_timestamp(moment: datetime, language: str) -> str:
    local = moment.astimezone(ZoneInfo(settings.SESSION_TIMEZONE))
    return local.strftime(TIMESTAMP_FORMATS.get(language, TIMESTAMP_FORMATS['pt']))


def translate_error(error: AttendanceError, language: str) -> str:
    """Plain-language message for an attendance error"""
    translate = get_translation(language)
    if isinstance(error, DuplicateCheckin):
        if error.recorded_at is None:
            return translate("DUPLICATE_CHECKIN_NO_TIME")
        return translate(
            "DUPLICATE_CHECKIN",
            student_registration=error.student_registration,
            recorded_at=format_timestamp(error.recorded_at, language)
        )
    return translate(error.translation_key)


def get_error_message(
    error: Exception,
    language: str = 'pt',
    include_details: bool = True
) -> Dict[str, Any]:
    """
    Formats error messages with proper translation and structure.

    Args:
        error: The exception that was raised
        language: Language code for translation (default: 'pt')
        include_details: Whether to include error details in response

    Returns:
        Dict containing success flag, error code, translated message and details
    """
    translate = get_translation(language)

    error_response = {
        "success": False,
        "error_code": "INTERNAL_ERROR",
        "message": translate("INTERNAL_ERROR"),
        "details": {},
        "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR
    }

    if isinstance(error, AttendanceError):
        error_response.update({
            "error_code": error.error_code,
            "message": translate_error(error, language),
            "status_code": error.status_code
        })
        if include_details and error.details:
            error_response["details"] = error.details

    elif isinstance(error, HTTPException):
        error_code = "UNAUTHORIZED" if error.status_code == status.HTTP_401_UNAUTHORIZED else "HTTP_ERROR"
        error_response.update({
            "error_code": error_code,
            "message": translate(str(error.detail)),
            "status_code": error.status_code
        })

    elif isinstance(error, RequestValidationError):
        error_response.update({
            "error_code": "INVALID_INPUT",
            "message": translate("INVALID_INPUT"),
            "status_code": status.HTTP_422_UNPROCESSABLE_ENTITY
        })
        if include_details:
            error_response["details"] = {
                "errors": [
                    {"field": ".".join(str(p) for p in e.get("loc", ())), "message": e.get("msg")}
                    for e in error.errors()
                ]
            }

    return error_response


def request_language(request: Request) -> str:
    return parse_accept_language(
        request.headers.get("accept-language", ""),
        default=settings.DEFAULT_LANGUAGE
    )


def _render(error: Exception, request: Request, include_details: bool = True) -> JSONResponse:
    body = get_error_message(error, request_language(request), include_details)
    status_code = body.pop("status_code")
    headers: Optional[Dict[str, str]] = getattr(error, "headers", None)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AttendanceError)
    async def attendance_error_handler(request: Request, exc: AttendanceError):
        if exc.status_code >= 500:
            logger.error(f"{exc.error_code}: {exc.message}", extra={"error_code": exc.error_code})
        else:
            logger.info(f"{exc.error_code}: {exc.message}", extra={"error_code": exc.error_code})
        return _render(exc, request)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        return _render(exc, request)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _render(exc, request)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error: {type(exc).__name__}: {str(exc)}")
        return _render(exc, request, include_details=False)
