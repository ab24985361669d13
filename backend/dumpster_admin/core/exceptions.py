"""
Standardized exception handling for the admin API.

Four families cover every failure the services raise:
- ValidationException: bad input or a disallowed state change, shown to the admin verbatim
- ConflictException: the target is held by someone else, retry after refresh
- DependencyException: the database or an external provider failed
- NotFoundException: the referenced record does not exist

Each exception carries a unique error code and renders into the same
JSON envelope with the request id.
"""
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Standardized error response format."""
    code: str
    message: str
    status_code: int
    timestamp: str
    request_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    retryable: bool = False


class ErrorResponse(BaseModel):
    """Wrapper for error responses."""
    error: ErrorDetail


# =============================================================================
# Base Exception Classes
# =============================================================================

class AppException(Exception):
    """Base exception for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"
    retryable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ):
        self.message = message or self.message
        self.details = details
        if error_code:
            self.error_code = error_code
        super().__init__(self.message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert exception to standardized error response."""
        return ErrorResponse(
            error=ErrorDetail(
                code=self.error_code,
                message=self.message,
                status_code=self.status_code,
                timestamp=datetime.utcnow().isoformat() + "Z",
                request_id=request_id,
                details=self.details,
                retryable=self.retryable,
            )
        )


# =============================================================================
# Client Errors (4xx)
# =============================================================================

class ValidationException(AppException):
    """Invalid input data or disallowed state change."""
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"
    message = "Invalid input data"


class AuthenticationException(AppException):
    """Authentication failed."""
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTHENTICATION_FAILED"
    message = "Authentication required"


class NotFoundException(AppException):
    """Resource not found."""
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    message = "Resource not found"


class ConflictException(AppException):
    """Resource conflict (duplicate, state conflict)."""
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    message = "Resource conflict"
    retryable = True


# =============================================================================
# Not Found
# =============================================================================

class OrderNotFoundException(NotFoundException):
    """Order not found."""
    error_code = "ORDER_NOT_FOUND"
    message = "Order not found"

    def __init__(self, order_id: Any):
        super().__init__(
            message=f"Order with ID '{order_id}' not found",
            details={"order_id": str(order_id)}
        )


class DumpsterNotFoundException(NotFoundException):
    """Dumpster not found."""
    error_code = "DUMPSTER_NOT_FOUND"
    message = "Dumpster not found"

    def __init__(self, dumpster_id: Any):
        super().__init__(
            message=f"Dumpster with ID '{dumpster_id}' not found",
            details={"dumpster_id": str(dumpster_id)}
        )


class PaymentNotFoundException(NotFoundException):
    """Payment not found."""
    error_code = "PAYMENT_NOT_FOUND"
    message = "Payment not found"

    def __init__(self, payment_id: Any):
        super().__init__(
            message=f"Payment with ID '{payment_id}' not found",
            details={"payment_id": str(payment_id)}
        )


class QuoteNotFoundException(NotFoundException):
    """Quote not found."""
    error_code = "QUOTE_NOT_FOUND"
    message = "Quote not found"

    def __init__(self, quote_id: Any):
        super().__init__(
            message=f"Quote with ID '{quote_id}' not found",
            details={"quote_id": str(quote_id)}
        )


class ServiceNotFoundException(NotFoundException):
    """Catalog service not found."""
    error_code = "SERVICE_NOT_FOUND"
    message = "Service not found"

    def __init__(self, service_id: Any):
        super().__init__(
            message=f"Service with ID '{service_id}' not found",
            details={"service_id": str(service_id)}
        )


class ServiceCategoryNotFoundException(NotFoundException):
    """Catalog category not found."""
    error_code = "SERVICE_CATEGORY_NOT_FOUND"
    message = "Service category not found"

    def __init__(self, category_id: Any):
        super().__init__(
            message=f"Service category with ID '{category_id}' not found",
            details={"category_id": str(category_id)}
        )


# =============================================================================
# Validation
# =============================================================================

class InvalidTransitionException(ValidationException):
    """Order status change not allowed from the current status."""
    error_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, requested: str, allowed: list[str]):
        super().__init__(
            message=f"Cannot change order status from '{current}' to '{requested}'",
            details={"current": current, "requested": requested, "allowed": allowed}
        )


class NeedsDumpsterAssignmentException(ValidationException):
    """Order must have a dumpster before it can go on the way."""
    error_code = "NEEDS_DUMPSTER_ASSIGNMENT"

    def __init__(self, order_id: Any, order_number: Optional[str] = None):
        label = order_number or str(order_id)
        super().__init__(
            message=f"Order {label} needs a dumpster assigned before it can go on the way",
            details={"order_id": str(order_id), "order_number": order_number}
        )


class MissingDropoffException(ValidationException):
    """Quote lacks the dropoff date or time required to create an order."""
    error_code = "MISSING_DROPOFF"

    def __init__(self, field: str):
        label = "date" if field == "dropoff_date" else "time"
        super().__init__(
            message=f"Dropoff {label} is required to create an order",
            details={"field": field}
        )


class InvalidDriverException(ValidationException):
    """Assignee is not on the driver roster."""
    error_code = "INVALID_DRIVER"

    def __init__(self, driver: str, roster: list[str]):
        super().__init__(
            message=f"'{driver}' is not a known driver",
            details={"driver": driver, "roster": roster}
        )


# =============================================================================
# Conflicts
# =============================================================================

class DumpsterAlreadyAssignedException(ConflictException):
    """Dumpster is held by another order."""
    error_code = "ALREADY_ASSIGNED"

    def __init__(self, dumpster_name: str, holder_order_id: Any = None):
        super().__init__(
            message=f"Dumpster '{dumpster_name}' is already assigned to another order",
            details={
                "dumpster_name": dumpster_name,
                "current_order_id": str(holder_order_id) if holder_order_id else None,
            }
        )


class DumpsterUnavailableException(ConflictException):
    """Dumpster is not in a state that can take an assignment."""
    error_code = "DUMPSTER_UNAVAILABLE"
    retryable = False

    def __init__(self, dumpster_name: str, dumpster_status: str):
        super().__init__(
            message=f"Dumpster '{dumpster_name}' is {dumpster_status} and cannot be assigned",
            details={"dumpster_name": dumpster_name, "status": dumpster_status}
        )


class ActivePaymentExistsException(ConflictException):
    """Order already has an open invoice."""
    error_code = "PAYMENT_ALREADY_ACTIVE"

    def __init__(self, order_id: Any, payment_number: str, payment_status: str):
        super().__init__(
            message=(
                f"Order already has active payment {payment_number} ({payment_status}); "
                "cancel it before creating a new one"
            ),
            details={
                "order_id": str(order_id),
                "payment_number": payment_number,
                "status": payment_status,
            }
        )


class QuoteAlreadyPromotedException(ConflictException):
    """Quote was already converted into an order."""
    error_code = "QUOTE_ALREADY_PROMOTED"
    retryable = False

    def __init__(self, quote_id: Any, order_number: Optional[str] = None):
        super().__init__(
            message=f"Quote '{quote_id}' has already been converted to an order",
            details={"quote_id": str(quote_id), "order_number": order_number}
        )


# =============================================================================
# Dependency Failures (5xx)
# =============================================================================

class DependencyException(AppException):
    """A store or external service call failed."""
    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "DEPENDENCY_ERROR"
    message = "A dependent service failed"


class DatabaseException(DependencyException):
    """Database write failed and was rolled back."""
    error_code = "DATABASE_ERROR"
    message = "Database operation failed"


class InvoiceProviderException(DependencyException):
    """Invoicing provider call failed."""
    error_code = "INVOICE_PROVIDER_ERROR"
    message = "Invoicing provider unavailable"


class GeocodingException(DependencyException):
    """Geocoding lookup failed."""
    error_code = "GEOCODING_ERROR"
    message = "Geocoding service unavailable"


# =============================================================================
# Exception Handler Registration
# =============================================================================

def get_request_id(request: Request) -> str:
    """Extract or generate request ID."""
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID") or str(uuid4())


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle all application exceptions with standardized format."""
    request_id = get_request_id(request)
    response = exc.to_response(request_id=request_id)

    if isinstance(exc, DependencyException):
        from dumpster_admin.core.sentry import capture_exception
        capture_exception(exc, extra={"request_id": request_id, "details": exc.details})

    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(),
        headers={"X-Request-ID": request_id},
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request body/query validation failures as VALIDATION_ERROR."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    first = errors[0] if errors else None
    if first is None:
        message = "Invalid request"
    elif first["field"]:
        message = f"{first['field']}: {first['message']}"
    else:
        message = first["message"]
    return await app_exception_handler(
        request,
        ValidationException(message=message, details={"errors": errors}),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = get_request_id(request)

    import logging
    logger = logging.getLogger(__name__)
    logger.exception(f"Unhandled exception: {exc}", extra={"request_id": request_id})

    error = ErrorResponse(
        error=ErrorDetail(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred",
            status_code=500,
            timestamp=datetime.utcnow().isoformat() + "Z",
            request_id=request_id,
        )
    )

    return JSONResponse(
        status_code=500,
        content=error.model_dump(),
        headers={"X-Request-ID": request_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
