"""
Global Error Handling

This module defines the service error hierarchy and the application-wide
exception handlers that translate it into HTTP responses.

Design Goals
------------
- Validation and not-found errors are expected, caller-recoverable outcomes
- Store errors are unexpected: logged with full context, opaque to clients
- Never leak internal exception details to clients
- Always return deterministic, machine-readable error responses
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..vectors.math import VectorMathError

logger = logging.getLogger("vectordb.errors")


# ---------------------------------------------------------------------
# Service Exceptions
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class FieldError:
    """A single violated field, addressed by dotted path."""
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class VectorServiceError(Exception):
    """Base error for vector record operations."""


class RecordValidationError(VectorServiceError):
    """
    Raised when a candidate record or request violates one or more rules.

    Carries every violated field, not just the first.
    """

    def __init__(self, errors: List[FieldError]) -> None:
        self.errors = list(errors)
        summary = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"Validation failed: {summary}")


class RecordNotFoundError(VectorServiceError):
    """Raised when a record id does not exist."""

    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Vector not found: {record_id}")


class StoreError(VectorServiceError):
    """
    Raised when the backing collection fails or returns an unexpected shape.

    The originating backend error is chained as ``__cause__``.
    """

    def __init__(self, operation: str, detail: Optional[str] = None) -> None:
        self.operation = operation
        self.detail = detail
        message = f"Failed to {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


# ---------------------------------------------------------------------
# Response Helpers
# ---------------------------------------------------------------------

def _error_response(
    status_code: int,
    error: str,
    details: Optional[List[Dict[str, Any]]] = None,
) -> JSONResponse:
    payload: Dict[str, Any] = {"success": False, "error": error}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=status_code, content=payload)


# ---------------------------------------------------------------------
# Public Exception Handlers
# ---------------------------------------------------------------------

async def record_validation_exception_handler(
    request: Request,
    exc: RecordValidationError,
) -> JSONResponse:
    """Map field-level validation failures to a 400 with per-field details."""
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation Error",
        [e.to_dict() for e in exc.errors],
    )


async def request_validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Map malformed request shapes (wrong JSON types, bad query params) onto the
    same 400 envelope used for record validation.
    """
    details = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return _error_response(status.HTTP_400_BAD_REQUEST, "Validation Error", details)


async def vector_math_exception_handler(
    request: Request,
    exc: VectorMathError,
) -> JSONResponse:
    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "Validation Error",
        [{"field": "vector", "message": str(exc)}],
    )


async def not_found_exception_handler(
    request: Request,
    exc: RecordNotFoundError,
) -> JSONResponse:
    return _error_response(status.HTTP_404_NOT_FOUND, "Vector not found")


async def store_exception_handler(
    request: Request,
    exc: StoreError,
) -> JSONResponse:
    """
    Log backend failures with operation context and return an opaque 500.
    """
    logger.exception(
        "Store operation '%s' failed during request: %s %s",
        exc.operation,
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Database operation failed",
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Render framework HTTP errors (unknown route, bad method) in the shared envelope."""
    payload: Dict[str, Any] = {"success": False, "error": str(exc.detail)}
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        payload["requested_path"] = request.url.path
        payload["method"] = request.method
    return JSONResponse(
        status_code=exc.status_code,
        content=payload,
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all handler for uncaught exceptions.

    Behavior
    --------
    - Logs the full exception stack trace for internal diagnostics.
    - Returns a generic 500 error to the client with no internal details.
    """
    logger.exception(
        "Unhandled exception during request: %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
    )
