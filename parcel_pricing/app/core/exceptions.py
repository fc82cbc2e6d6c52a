"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("parcel_pricing")


class AppException(Exception):
    """Base application exception."""
    
    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class PricingValidationError(AppException):
    """Raised when a pricing input or rule edit is malformed. Never retried."""
    
    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PRICING_VALIDATION",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InvalidTierBoundsError(PricingValidationError):
    """Raised when a tier's minimum is not below its maximum."""
    
    def __init__(self, dimension: str, minimum: Any, maximum: Any):
        super().__init__(
            message=f"Minimum {dimension} must be less than maximum {dimension}",
            details={"dimension": dimension, "min": str(minimum), "max": str(maximum)}
        )


class TierOverlapError(PricingValidationError):
    """Raised when a candidate tier overlaps an existing tier of the same rule."""
    
    def __init__(self, dimension: str, existing_index: int):
        super().__init__(
            message=f"{dimension.capitalize()} tier overlaps with an existing tier",
            details={"dimension": dimension, "existing_index": existing_index}
        )


class NotApplicableError(AppException):
    """Raised when no pricing rule matches the shipment."""
    
    def __init__(self, message: str = "No pricing available for this shipment", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PRICING_NOT_APPLICABLE",
            status_code=status.HTTP_404_NOT_FOUND,
            details=details
        )


class ConcurrencyConflictError(AppException):
    """
    Raised when a rule or code sequence changed underneath the caller.
    
    The caller re-reads the rule and retries; the engine never does.
    """
    
    def __init__(self, message: str = "Resource was modified concurrently", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONCURRENCY_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""
    
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class DuplicateEntryError(AppException):
    """Raised when a special service or discount code already exists on a rule."""
    
    def __init__(self, resource: str, key: Any):
        super().__init__(
            message=f"{resource} with this code already exists",
            error_code="ERR_DUPLICATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource, "key": key}
        )


class CodeAllocationError(AppException):
    """Raised when the rule code counter store cannot be reached."""
    
    def __init__(self, message: str = "Rule code allocation is unavailable", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CODE_ALLOCATION",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }
    
    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")
    
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "exception_type": type(exc).__name__}
    )
    
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
