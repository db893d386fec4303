"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for domain and validation errors
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from datetime import datetime

from ..utils.exceptions import (
    BranchNotFoundError,
    ConcurrentModificationError,
    EngineError,
    InvalidStateError,
    NegotiationError,
    RoundLimitError,
    SessionNotFoundError,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _error_body(code: str, message: str, details) -> dict:
    return {
        "error": code,
        "message": message,
        "details": details,
        "timestamp": datetime.now().isoformat()
    }


def status_for(exc: NegotiationError) -> int:
    """HTTP status code for a domain exception."""
    if isinstance(exc, (SessionNotFoundError, BranchNotFoundError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, (InvalidStateError, ConcurrentModificationError, RoundLimitError)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ValidationException):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, EngineError):
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")

    # ctx may hold exception instances, which are not JSON serializable
    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": error.get("input")
        }
        if "ctx" in error:
            cleaned_error["ctx"] = {
                k: str(v) if isinstance(v, Exception) else v
                for k, v in error["ctx"].items()
            }
        cleaned_errors.append(cleaned_error)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("VALIDATION_ERROR", "Request validation failed", cleaned_errors)
    )


async def negotiation_error_handler(request: Request, exc: NegotiationError):
    """
    Handle NegotiationError and its subclasses.

    WHAT: Domain exception raised by the service or engine
    WHY: Callers get a stable error code per failure kind
    HOW: Pick the status code by exception type
    """
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"Negotiation error: {exc.code} - {exc.message}")
    else:
        logger.warning(f"Negotiation error: {exc.code} - {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, exc.details)
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(NegotiationError, negotiation_error_handler)

    logger.info("Exception handlers registered")
