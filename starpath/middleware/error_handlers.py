"""Exception handlers rendering every failure as one JSON envelope.

    {"error": {"category", "code", "detail", "suggestions"?, "metadata"?}}

Services raise domain errors only; the HTTP status is decided here. An
already-granted reward is not an error and never reaches these handlers.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from starpath.exceptions import (
    DomainError,
    KindMismatchError,
    NotApplicableError,
    ResourceNotFoundError,
    StoreUnavailableError,
    ValidationError,
)


logger = logging.getLogger(__name__)


class ErrorCategory:
    VALIDATION = "VALIDATION_ERROR"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    STORE = "STORE_ERROR"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE_ERROR"
    INTERNAL = "INTERNAL_ERROR"


class ErrorCode:
    INVALID_INPUT = "INVALID_INPUT"
    KIND_MISMATCH = "KIND_MISMATCH"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    NOT_FOUND = "NOT_FOUND"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    DUPLICATE = "DUPLICATE"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    INTERNAL = "INTERNAL_ERROR"


class ExternalServiceError(HTTPException):
    """A collaborator service (moderation) failed or is not configured."""

    def __init__(self, service: str, detail: str) -> None:
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"{service} service error: {detail}")


@dataclass(frozen=True)
class ErrorMapping:
    category: str
    code: str
    status_code: int
    suggestions: tuple[str, ...] = ()


RETRY_LATER = ("Please try again later",)

# Most specific first; lookup walks the exception's MRO
DOMAIN_ERRORS: dict[type[DomainError], ErrorMapping] = {
    KindMismatchError: ErrorMapping(ErrorCategory.VALIDATION, ErrorCode.KIND_MISMATCH, status.HTTP_400_BAD_REQUEST),
    ValidationError: ErrorMapping(ErrorCategory.VALIDATION, ErrorCode.INVALID_INPUT, status.HTTP_400_BAD_REQUEST),
    NotApplicableError: ErrorMapping(ErrorCategory.NOT_APPLICABLE, ErrorCode.NOT_APPLICABLE, status.HTTP_409_CONFLICT),
    ResourceNotFoundError: ErrorMapping(
        ErrorCategory.RESOURCE_NOT_FOUND, ErrorCode.NOT_FOUND, status.HTTP_404_NOT_FOUND
    ),
    StoreUnavailableError: ErrorMapping(
        ErrorCategory.STORE, ErrorCode.STORE_UNAVAILABLE, status.HTTP_503_SERVICE_UNAVAILABLE, RETRY_LATER
    ),
    DomainError: ErrorMapping(ErrorCategory.VALIDATION, ErrorCode.INVALID_INPUT, status.HTTP_400_BAD_REQUEST),
}

DUPLICATE_ROW = ErrorMapping(ErrorCategory.STORE, ErrorCode.DUPLICATE, status.HTTP_409_CONFLICT)
STORE_FAILURE = ErrorMapping(ErrorCategory.STORE, ErrorCode.INTERNAL, status.HTTP_500_INTERNAL_SERVER_ERROR)


def format_error_response(
    category: str,
    code: str,
    detail: str,
    status_code: int,
    suggestions: list[str] | tuple[str, ...] | None = None,
    metadata: dict[str, Any] | None = None,
) -> JSONResponse:
    """Format a consistent error response."""
    error: dict[str, Any] = {"category": category, "code": code, "detail": detail}
    if suggestions:
        error["suggestions"] = list(suggestions)
    if metadata:
        error["metadata"] = metadata
    return JSONResponse(status_code=status_code, content={"error": error})


def _mapping_for(exc: DomainError) -> ErrorMapping:
    for cls in type(exc).__mro__:
        if cls in DOMAIN_ERRORS:
            return DOMAIN_ERRORS[cls]
    return DOMAIN_ERRORS[DomainError]


def _domain_metadata(exc: DomainError) -> dict[str, Any] | None:
    if isinstance(exc, KindMismatchError):
        return {"content_item_id": exc.content_item_id, "expected": str(exc.expected), "received": exc.received}
    if isinstance(exc, ResourceNotFoundError):
        return {"resource_type": exc.resource_type, "resource_id": exc.resource_id}
    if getattr(exc, "retryable", False):
        return {"retryable": True}
    return None


async def handle_domain_errors(request: Request, exc: DomainError) -> JSONResponse:
    mapping = _mapping_for(exc)
    where = f"{request.method} {request.url.path}"
    if mapping.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(f"{type(exc).__name__} on {where}: {exc.message}")
    elif isinstance(exc, NotApplicableError):
        logger.warning(f"Rejected signal on {where}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} on {where}: {exc.message}")

    return format_error_response(
        category=mapping.category,
        code=mapping.code,
        detail=exc.message,
        status_code=mapping.status_code,
        suggestions=mapping.suggestions,
        metadata=_domain_metadata(exc),
    )


async def handle_request_validation_errors(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and parameters."""
    logger.info(f"Validation error on {request.method} {request.url.path}", extra={"error": str(exc)})

    errors = [
        {"field": " -> ".join(str(loc) for loc in error["loc"]), "message": error["msg"], "type": error["type"]}
        for error in exc.errors()
    ]
    return format_error_response(
        category=ErrorCategory.VALIDATION,
        code=ErrorCode.INVALID_INPUT,
        detail="Invalid input data",
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        metadata={"errors": errors},
    )


async def handle_database_errors(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Database errors that escaped the service layer."""
    logger.exception(f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}", exc_info=exc)

    metadata = None
    if isinstance(exc, IntegrityError):
        mapping, detail = DUPLICATE_ROW, "Conflicting write, the record already exists"
    elif isinstance(exc, OperationalError):
        mapping, detail = DOMAIN_ERRORS[StoreUnavailableError], "Progress store is unreachable"
        metadata = {"retryable": True}
    else:
        mapping, detail = STORE_FAILURE, "The progress store rejected the operation"

    return format_error_response(
        category=mapping.category,
        code=mapping.code,
        detail=detail,
        status_code=mapping.status_code,
        suggestions=mapping.suggestions,
        metadata=metadata,
    )


async def handle_external_service_errors(request: Request, exc: ExternalServiceError) -> JSONResponse:
    logger.error(f"External service error on {request.method} {request.url.path}: {exc.detail}")

    return format_error_response(
        category=ErrorCategory.EXTERNAL_SERVICE,
        code=ErrorCode.SERVICE_UNAVAILABLE,
        detail=exc.detail,
        status_code=exc.status_code,
        suggestions=("The service is temporarily unavailable", *RETRY_LATER),
    )


def log_error_context(request: Request, exc: Exception, error_id: UUID) -> None:
    """Log an unexpected failure with enough request context to find it again by id."""
    context = {
        "error_id": str(error_id),
        "method": request.method,
        "path": request.url.path,
        "query_params": dict(request.query_params),
        "client_host": request.client.host if request.client else "unknown",
        "error_type": type(exc).__name__,
    }
    logger.error(f"Request failed: {exc}", extra=context, exc_info=exc)


async def handle_unexpected_errors(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: never expose internals, hand out an id to quote instead."""
    error_id = uuid4()
    log_error_context(request, exc, error_id)

    return format_error_response(
        category=ErrorCategory.INTERNAL,
        code=ErrorCode.INTERNAL,
        detail="An unexpected error occurred",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        metadata={"error_id": str(error_id)},
        suggestions=("Please try again later", "If the problem persists, contact support with the error ID"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, handle_request_validation_errors)
    app.add_exception_handler(DomainError, handle_domain_errors)
    app.add_exception_handler(ExternalServiceError, handle_external_service_errors)
    app.add_exception_handler(SQLAlchemyError, handle_database_errors)
    app.add_exception_handler(Exception, handle_unexpected_errors)
