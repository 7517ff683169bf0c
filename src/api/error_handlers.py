"""Centralized error handling for the signal API endpoints."""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.services.errors import InsufficientData, UnknownVenueError, UpstreamUnavailable
from src.services.signal_service import RETRY_MESSAGE

RETRY_AFTER_SECONDS = 15


class SignalError:
    """Standard error codes for the signal API."""

    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    UNKNOWN_VENUE = "UNKNOWN_VENUE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse:
    """Standardized error response format."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | list[str] | None = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        headers: dict[str, str] | None = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details
        self.status_code = status_code
        self.headers = headers

    def to_dict(self) -> dict[str, Any]:
        response = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            response["details"] = self.details
        return response

    def to_json_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code, content=self.to_dict(), headers=self.headers
        )


def create_validation_error_response(errors: list[dict[str, Any]]) -> ErrorResponse:
    """
    Build a validation error with one message per offending field.

    Args:
        errors: Validation errors as reported by FastAPI/Pydantic
    """
    field_errors = {}
    for error in errors:
        field_path = ".".join(str(loc) for loc in error["loc"])
        field_errors[field_path] = error["msg"]

    return ErrorResponse(
        error_code=SignalError.VALIDATION_ERROR,
        message="Validation failed for one or more fields",
        details=field_errors,
        status_code=status.HTTP_400_BAD_REQUEST,
    )


def handle_service_error(error: Exception) -> ErrorResponse:
    """Map a pipeline exception onto the API error format."""
    if isinstance(error, UpstreamUnavailable):
        return ErrorResponse(
            error_code=SignalError.UPSTREAM_UNAVAILABLE,
            message=RETRY_MESSAGE,
            details={"source": error.source},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            headers={"Retry-After": str(RETRY_AFTER_SECONDS)},
        )
    if isinstance(error, InsufficientData):
        return ErrorResponse(
            error_code=SignalError.INSUFFICIENT_DATA,
            message=str(error),
            details={"asset": error.asset, "missing": error.missing},
            status_code=status.HTTP_404_NOT_FOUND,
        )
    if isinstance(error, UnknownVenueError):
        return ErrorResponse(
            error_code=SignalError.UNKNOWN_VENUE,
            message=str(error),
            details={"venue": error.venue},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    if isinstance(error, ValueError):
        return ErrorResponse(
            error_code=SignalError.VALIDATION_ERROR,
            message=str(error),
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    return ErrorResponse(
        error_code=SignalError.INTERNAL_ERROR,
        message="An unexpected error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return create_validation_error_response(exc.errors()).to_json_response()


async def service_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    return handle_service_error(exc).to_json_response()


def register_error_handlers(app: FastAPI) -> None:
    """Install the API's exception handlers on an application."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    for exc_type in (UpstreamUnavailable, InsufficientData, UnknownVenueError, ValueError):
        app.add_exception_handler(exc_type, service_exception_handler)
