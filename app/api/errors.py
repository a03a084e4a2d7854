"""Error envelope and exception handlers for the public API.

Every error response has the same shape:
    {"error": <ErrorCode>, "message": str, "jobId"?: str, "timestamp": iso8601}
"""

import logging
from enum import Enum
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.errors import (
    AssetsNotFoundError,
    ExtractionError,
    InvalidJobStateError,
    InvalidUrlError,
    JobNotFoundError,
)
from app.jobs.models import utcnow

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Client errors (4xx)
    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"
    INVALID_STATE = "INVALID_STATE"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


STATUS_TO_ERROR_CODE: dict[int, ErrorCode] = {
    400: ErrorCode.BAD_REQUEST,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.METHOD_NOT_ALLOWED,
    409: ErrorCode.INVALID_STATE,
    422: ErrorCode.VALIDATION_ERROR,
    500: ErrorCode.INTERNAL_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def get_error_code(status_code: int) -> ErrorCode:
    """Get ErrorCode from HTTP status code."""
    return STATUS_TO_ERROR_CODE.get(status_code, ErrorCode.INTERNAL_ERROR)


class ApiError(Exception):
    """Raised by route handlers to return an error envelope."""

    def __init__(self, status_code: int, code: ErrorCode, message: str, job_id: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.job_id = job_id


def validation_error(message: str) -> ApiError:
    return ApiError(400, ErrorCode.VALIDATION_ERROR, message)


def error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    job_id: Optional[str] = None,
) -> JSONResponse:
    body = {"error": code.value, "message": message}
    if job_id:
        body["jobId"] = job_id
    body["timestamp"] = utcnow().isoformat()
    return JSONResponse(status_code=status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return error_response(exc.status_code, exc.code, exc.message, exc.job_id)

    @app.exception_handler(InvalidUrlError)
    async def handle_invalid_url(request: Request, exc: InvalidUrlError):
        return error_response(400, ErrorCode.VALIDATION_ERROR, "Invalid URL format")

    @app.exception_handler(JobNotFoundError)
    async def handle_job_not_found(request: Request, exc: JobNotFoundError):
        return error_response(404, ErrorCode.NOT_FOUND, str(exc), exc.job_id)

    @app.exception_handler(AssetsNotFoundError)
    async def handle_assets_not_found(request: Request, exc: AssetsNotFoundError):
        return error_response(404, ErrorCode.NOT_FOUND, str(exc), exc.job_id)

    @app.exception_handler(InvalidJobStateError)
    async def handle_invalid_state(request: Request, exc: InvalidJobStateError):
        return error_response(409, ErrorCode.INVALID_STATE, str(exc), exc.job_id)

    @app.exception_handler(ExtractionError)
    async def handle_extraction_error(request: Request, exc: ExtractionError):
        logger.error("Asset extraction failed: %s", exc)
        return error_response(500, ErrorCode.EXTRACTION_FAILED, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return error_response(400, ErrorCode.VALIDATION_ERROR, message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            message = f"Route {request.method} {request.url.path} not found"
        else:
            message = str(exc.detail)
        return error_response(exc.status_code, get_error_code(exc.status_code), message)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(500, ErrorCode.INTERNAL_ERROR, "An unexpected error occurred")
