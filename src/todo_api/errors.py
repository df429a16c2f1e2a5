"""
Error types and the handlers that turn them into consistent JSON error bodies.

Every error response has the shape of ``schemas.ErrorResponse``:

    {"message": ..., "statusCode": ..., "errors": {...}?, "traceId": ...}
"""
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional, Sequence

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .schemas import ErrorResponse

logger = logging.getLogger(__name__)

TRACE_HEADER = "X-Trace-Id"
VALIDATION_MESSAGE = "One or more validation errors occurred."
INTERNAL_ERROR_MESSAGE = "An internal server error occurred. Please try again later."

_REQUEST_PARTS = {"body", "query", "path", "header", "cookie"}


# PUBLIC_INTERFACE
class NotFoundError(Exception):
    """Raised when a requested resource does not exist."""

    def __init__(self, resource: str, resource_id: int) -> None:
        super().__init__(f"{resource} with ID {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


def get_trace_id(request: Request) -> str:
    trace_id = getattr(request.state, "trace_id", None)
    if trace_id is None:
        trace_id = uuid.uuid4().hex
        request.state.trace_id = trace_id
    return trace_id


# PUBLIC_INTERFACE
def error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: Optional[Dict[str, List[str]]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Build the JSON error response, tagged with the request's trace id."""
    trace_id = get_trace_id(request)
    body = ErrorResponse(message=message, status_code=status_code, errors=errors, trace_id=trace_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers={**(headers or {}), TRACE_HEADER: trace_id},
    )


def collect_field_errors(errors: Sequence[Mapping[str, Any]]) -> Dict[str, List[str]]:
    """
    Group validation errors by field name.

    Locations are reported by FastAPI as e.g. ("body", "dueDate") or
    ("query", "priority"); the request part is dropped and nested parts are
    joined with dots ("tags.0"). Malformed JSON is reported under "body".
    """
    grouped: Dict[str, List[str]] = {}
    for err in errors:
        parts = list(err.get("loc") or ())
        if err.get("type") == "json_invalid":
            parts = ["body"]
        elif len(parts) > 1 and parts[0] in _REQUEST_PARTS:
            parts = parts[1:]
        key = ".".join(str(p) for p in parts) or "request"
        grouped.setdefault(key, []).append(str(err.get("msg", "Invalid value")))
    return grouped


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return error_response(request, status.HTTP_404_NOT_FOUND, str(exc))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return 400 with field-level messages for request validation errors.
    """
    field_errors = collect_field_errors(exc.errors())
    logger.info("Validation failed for %s %s: %s", request.method, request.url.path, field_errors)
    return error_response(request, status.HTTP_400_BAD_REQUEST, VALIDATION_MESSAGE, field_errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(request, exc.status_code, message, headers=getattr(exc, "headers", None))


async def trace_id_middleware(request: Request, call_next) -> Response:
    """
    Tag every request with a trace id and convert unhandled exceptions into a
    generic 500 so internals never leak to the client.
    """
    trace_id = get_trace_id(request)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "Unhandled exception while processing %s %s (traceId=%s)",
            request.method,
            request.url.path,
            trace_id,
        )
        response = error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)
    response.headers[TRACE_HEADER] = trace_id
    return response


# PUBLIC_INTERFACE
def register_error_handlers(app: FastAPI) -> None:
    """Attach the exception handlers and the trace id middleware to ``app``."""
    app.add_exception_handler(NotFoundError, not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.middleware("http")(trace_id_middleware)
