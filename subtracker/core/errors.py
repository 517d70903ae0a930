"""
Error codes and the service exception rendered as {"error", "details"}.
"""
import enum
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class ErrorCode(str, enum.Enum):
    """Enumerated error codes returned to API callers."""
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    STORAGE_UNAVAILABLE = "storage_unavailable"
    RECIPIENT_UNRESOLVED = "recipient_unresolved"
    DELIVERY_FAILED = "delivery_failed"
    RETRY_SCHEDULED = "retry_scheduled"
    ALREADY_FAILED = "already_failed"
    INTERNAL_ERROR = "internal_error"


class ServiceError(Exception):
    """Raised by services and routes; carries the HTTP status to answer with."""

    def __init__(
        self,
        code: ErrorCode,
        details: Optional[str] = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ):
        super().__init__(details or code.value)
        self.code = code
        self.details = details
        self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.code.value, "details": self.details}


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": ErrorCode.VALIDATION_ERROR.value, "details": details},
    )
