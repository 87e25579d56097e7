"""MindMesh API layer: routes, schemas, and middleware."""

from mindmesh.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from mindmesh.api.routes import router
from mindmesh.api.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    UploadResponse,
)

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ChatRequest",
    "ChatResponse",
    "DocumentResponse",
    "ErrorResponse",
    "HealthResponse",
    "UploadResponse",
]
