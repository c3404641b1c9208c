"""
Unified API Error Response System.

Provides standardized error responses across all practice endpoints for:
- Consistent client-side error handling (the front end shows ``message``)
- Proper error logging with request correlation
- No internal details leaking from unexpected failures

Usage:
    from security.api_errors import APIError, ErrorCode

    raise APIError(
        code=ErrorCode.BUSINESS_RULE_VIOLATION,
        message="Cannot delete client with linked services",
        details={"services": 2},
    )
"""

from __future__ import annotations

import logging
import traceback
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


# =============================================================================
# ERROR CODES
# =============================================================================


class ErrorCode(str, Enum):
    """
    Standardized error codes for API responses.

    Categories:
    - VALIDATION_*: Input validation errors (400, 413, 415, 422)
    - RESOURCE_*: Resource-related errors (404, 409)
    - BUSINESS_*: Business rule errors (400)
    - EXTERNAL_*: Upstream service errors (Companies House)
    - SERVER_*: Server-side errors (500)
    """

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    VALIDATION_MISSING_FIELD = "VALIDATION_MISSING_FIELD"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"
    VALIDATION_OUT_OF_RANGE = "VALIDATION_OUT_OF_RANGE"
    VALIDATION_FILE_TOO_LARGE = "VALIDATION_FILE_TOO_LARGE"
    VALIDATION_FILE_TYPE_NOT_ALLOWED = "VALIDATION_FILE_TYPE_NOT_ALLOWED"
    VALIDATION_MALICIOUS_CONTENT = "VALIDATION_MALICIOUS_CONTENT"

    # Resource Errors
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ALREADY_EXISTS = "RESOURCE_ALREADY_EXISTS"
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"

    # Business Logic Errors
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    BUSINESS_OPERATION_NOT_ALLOWED = "BUSINESS_OPERATION_NOT_ALLOWED"

    # External services
    EXTERNAL_NOT_CONFIGURED = "EXTERNAL_NOT_CONFIGURED"
    EXTERNAL_AUTH_FAILED = "EXTERNAL_AUTH_FAILED"
    EXTERNAL_NOT_FOUND = "EXTERNAL_NOT_FOUND"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"

    # Server Errors
    SERVER_INTERNAL_ERROR = "SERVER_INTERNAL_ERROR"


# =============================================================================
# ERROR CODE TO HTTP STATUS MAPPING
# =============================================================================

ERROR_CODE_STATUS_MAP: Dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_MISSING_FIELD: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_INVALID_FORMAT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_OUT_OF_RANGE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_FILE_TOO_LARGE: status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    ErrorCode.VALIDATION_FILE_TYPE_NOT_ALLOWED: status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    ErrorCode.VALIDATION_MALICIOUS_CONTENT: status.HTTP_400_BAD_REQUEST,

    ErrorCode.RESOURCE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.RESOURCE_ALREADY_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.RESOURCE_CONFLICT: status.HTTP_409_CONFLICT,

    ErrorCode.BUSINESS_RULE_VIOLATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.BUSINESS_OPERATION_NOT_ALLOWED: status.HTTP_400_BAD_REQUEST,

    ErrorCode.EXTERNAL_NOT_CONFIGURED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EXTERNAL_AUTH_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.EXTERNAL_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_400_BAD_REQUEST,

    ErrorCode.SERVER_INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# =============================================================================
# ERROR RESPONSE MODELS
# =============================================================================


class FieldError(BaseModel):
    """Individual field validation error."""
    field: str = Field(..., description="Field name that caused the error")
    message: str = Field(..., description="Error message for this field")
    code: str = Field(default="invalid", description="Error code for this field")


class ErrorResponse(BaseModel):
    """Standardized API error response."""
    error: bool = Field(default=True, description="Always true for errors")
    code: str = Field(..., description="Error code from ErrorCode enum")
    message: str = Field(..., description="Human-readable error message")
    status_code: int = Field(..., description="HTTP status code")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    request_id: str = Field(..., description="Unique request identifier for tracking")
    path: Optional[str] = Field(None, description="Request path that caused the error")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    field_errors: Optional[List[FieldError]] = Field(None, description="Field-specific validation errors")


# =============================================================================
# API ERROR EXCEPTION
# =============================================================================


class APIError(Exception):
    """
    Exception carrying a standardized error response.

    Services raise it for business rule violations. The registered handler
    turns it into an ErrorResponse with the mapped HTTP status.
    """

    def __init__(
        self,
        code: Union[ErrorCode, str],
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        field_errors: Optional[List[Dict[str, str]]] = None,
        log_error: bool = True,
    ):
        self.code = code if isinstance(code, ErrorCode) else ErrorCode(code)
        self.message = message
        self.status_code = status_code or ERROR_CODE_STATUS_MAP.get(
            self.code, status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        self.details = details
        self.field_errors = field_errors
        self.log_error = log_error
        super().__init__(message)

    def to_response(self, request_id: str, path: Optional[str] = None) -> ErrorResponse:
        field_error_models = None
        if self.field_errors:
            field_error_models = [
                FieldError(
                    field=fe.get("field", "unknown"),
                    message=fe.get("message", "Invalid value"),
                    code=fe.get("code", "invalid"),
                )
                for fe in self.field_errors
            ]

        return ErrorResponse(
            error=True,
            code=self.code.value,
            message=self.message,
            status_code=self.status_code,
            timestamp=datetime.utcnow().isoformat() + "Z",
            request_id=request_id,
            path=path,
            details=self.details,
            field_errors=field_error_models,
        )


def not_found(entity: str, entity_id: Any = None) -> APIError:
    """Build a RESOURCE_NOT_FOUND error for an entity."""
    details = {"id": str(entity_id)} if entity_id is not None else None
    return APIError(ErrorCode.RESOURCE_NOT_FOUND, f"{entity} not found", details=details)


def rule_violation(message: str, **details: Any) -> APIError:
    """Build a BUSINESS_RULE_VIOLATION error (HTTP 400)."""
    return APIError(ErrorCode.BUSINESS_RULE_VIOLATION, message, details=details or None)


def get_request_id(request: Request) -> str:
    """Get or generate request ID for tracking."""
    request_id = getattr(request.state, "request_id", None)
    if not request_id:
        request_id = request.headers.get("X-Request-ID")
    if not request_id:
        request_id = str(uuid.uuid4())
    return request_id


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================


def _as_json(response: ErrorResponse, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=response.status_code,
        content=response.model_dump(),
        headers={"X-Request-ID": request_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
        request_id = get_request_id(request)

        if exc.log_error:
            log_level = logging.WARNING if exc.status_code < 500 else logging.ERROR
            logger.log(
                log_level,
                f"[{request_id}] APIError: {exc.code.value} - {exc.message}",
                extra={
                    "request_id": request_id,
                    "error_code": exc.code.value,
                    "status_code": exc.status_code,
                    "path": request.url.path,
                    "method": request.method,
                }
            )

        response = exc.to_response(request_id, request.url.path)
        return _as_json(response, request_id)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        request_id = get_request_id(request)

        field_errors = []
        for error in exc.errors():
            field_path = ".".join(str(loc) for loc in error["loc"] if loc != "body")
            field_errors.append({
                "field": field_path or "body",
                "message": error["msg"],
                "code": error["type"],
            })

        logger.warning(f"[{request_id}] Validation error: {len(field_errors)} field(s)")

        response = ErrorResponse(
            error=True,
            code=ErrorCode.VALIDATION_ERROR.value,
            message="Request validation failed",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            timestamp=datetime.utcnow().isoformat() + "Z",
            request_id=request_id,
            path=request.url.path,
            field_errors=[
                FieldError(field=fe["field"], message=fe["message"], code=fe["code"])
                for fe in field_errors
            ],
        )

        return _as_json(response, request_id)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        request_id = get_request_id(request)

        status_to_code = {
            400: ErrorCode.VALIDATION_ERROR,
            404: ErrorCode.RESOURCE_NOT_FOUND,
            405: ErrorCode.BUSINESS_OPERATION_NOT_ALLOWED,
            409: ErrorCode.RESOURCE_CONFLICT,
            413: ErrorCode.VALIDATION_FILE_TOO_LARGE,
            415: ErrorCode.VALIDATION_FILE_TYPE_NOT_ALLOWED,
        }
        error_code = status_to_code.get(exc.status_code, ErrorCode.SERVER_INTERNAL_ERROR)

        logger.warning(f"[{request_id}] HTTP {exc.status_code}: {exc.detail}")

        response = ErrorResponse(
            error=True,
            code=error_code.value,
            message=str(exc.detail) if exc.detail else "An error occurred",
            status_code=exc.status_code,
            timestamp=datetime.utcnow().isoformat() + "Z",
            request_id=request_id,
            path=request.url.path,
        )

        return _as_json(response, request_id)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler. Internal details never reach the client."""
        request_id = get_request_id(request)

        logger.error(
            f"[{request_id}] Unhandled exception: {type(exc).__name__}: {str(exc)}",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "traceback": traceback.format_exc(),
            },
            exc_info=True
        )

        response = ErrorResponse(
            error=True,
            code=ErrorCode.SERVER_INTERNAL_ERROR.value,
            message="An unexpected error occurred. Please try again later.",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            timestamp=datetime.utcnow().isoformat() + "Z",
            request_id=request_id,
            path=request.url.path,
            details={"support": f"Reference ID: {request_id}"},
        )

        return _as_json(response, request_id)
