from typing import Optional
from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


class APIException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)


class BookingError(APIException):
    """Base class for expected booking failures; carries its HTTP status."""
    status_code_default = 400

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or self.status_code_default, detail=detail)


class ValidationError(BookingError):
    """Malformed or out-of-policy input. Raised before any write."""
    status_code_default = 400


class ForbiddenError(BookingError):
    status_code_default = 403


class NotFoundError(BookingError):
    status_code_default = 404


class SlotConflictError(BookingError):
    """The requested slot is held by another active appointment.

    Raised both by the availability pre-check and when the storage layer
    rejects the insert because a concurrent request won the slot.
    """
    status_code_default = 409


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", 401)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code),
        headers=getattr(exc, "headers", None),
    )

async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report body/query shape errors as 400 with the joined field messages"""
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        msg = err.get("msg", "Invalid value")
        messages.append(f"{location}: {msg}" if location else msg)
    logger.info(f"Rejected request to {request.url.path}: {'; '.join(messages)}")
    return JSONResponse(
        status_code=400,
        content=create_error_response("; ".join(messages) or "Invalid request", 400)
    )
