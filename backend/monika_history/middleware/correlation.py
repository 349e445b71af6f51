"""
Correlation ID context for admin requests and report cycles.
"""
import uuid
from contextvars import ContextVar, Token
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Context variable to store correlation ID for the current request or report cycle
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def new_correlation_id(prefix: str = "") -> str:
    """Short 8-char id, optionally prefixed (e.g. "report-1a2b3c4d")."""
    short_id = str(uuid.uuid4())[:8]
    return f"{prefix}-{short_id}" if prefix else short_id


def get_correlation_id() -> str:
    """Get the correlation ID for the current context."""
    return correlation_id_var.get()


def bind_correlation_id(correlation_id: str) -> Token:
    """Set the correlation ID for the current context; reset with the returned token."""
    return correlation_id_var.set(correlation_id)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a correlation ID to each admin request.

    The correlation ID is:
    1. Read from X-Correlation-ID header if present
    2. Generated as a new short id if not present
    3. Stored in context for access in logs
    4. Added to response headers
    """

    HEADER_NAME = "X-Correlation-ID"

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get(self.HEADER_NAME) or new_correlation_id()

        token = bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
            response.headers[self.HEADER_NAME] = correlation_id
            return response
        finally:
            correlation_id_var.reset(token)


def correlation_id_filter(record):
    """
    Loguru filter that adds correlation_id to log records.
    """
    record["extra"]["correlation_id"] = get_correlation_id() or "-"
    return True
