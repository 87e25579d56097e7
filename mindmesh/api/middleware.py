"""API middleware: CORS, request logging, and error handling.

Provides helper functions and middleware classes to configure cross-origin
resource sharing, structured request logging (via structlog), and automatic
conversion of ``MindMeshError`` subclasses into JSON ``ErrorResponse``
bodies with the matching HTTP status.

Starlette middleware is a stack, last added runs first.  ``main.py`` adds
``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware``, so the
request log always sees the final status code, including converted errors.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from mindmesh.api.schemas import ErrorResponse
from mindmesh.utils.errors import (
    DuplicateDocumentError,
    ExtractionFailedError,
    InvalidInputError,
    InvalidRequestError,
    MindMeshError,
    NotFoundError,
    PipelineError,
)
from mindmesh.utils.logging import bind_request_context, clear_request_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Checked in order; the first matching class decides the status.
_STATUS_BY_ERROR: tuple[tuple[type[MindMeshError], int], ...] = (
    (InvalidInputError, 400),
    (NotFoundError, 404),
    (DuplicateDocumentError, 409),
    (PipelineError, 409),
    (ExtractionFailedError, 422),
)


def status_for(exc: MindMeshError) -> int:
    """Return the HTTP status code for an application error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware to the FastAPI application.

    Parameters
    ----------
    app:
        The FastAPI application instance.
    allowed_origins:
        Explicit list of allowed origins.  Defaults to ``["*"]`` for
        development; override with specific origins in production.
    """
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration.

    A request id (the caller's ``X-Request-ID`` or a fresh one) is bound to
    the logging context for the whole request and echoed on the response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        bind_request_context(request_id=request_id, method=request.method, path=str(request.url.path))

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info("http_request", status=status_code, duration_ms=duration_ms)
            clear_request_context()


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Catch ``MindMeshError`` subclasses and return structured JSON errors.

    Caller errors become 4xx responses; everything else in the hierarchy
    becomes a 500.  Stack traces stay in the server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except MindMeshError as exc:
            status_code = status_for(exc)
            log = _logger.warning if status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message,
                field=exc.field if isinstance(exc, InvalidRequestError) else None,
            )
            return JSONResponse(
                status_code=status_code,
                content=body.model_dump(),
            )
