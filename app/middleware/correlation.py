"""Correlation ID middleware for request tracing.

Every response carries an X-Request-ID header. A client-supplied id is
echoed back; otherwise a new UUID is generated. The same id is attached to
every log event emitted while handling the request (see app.core.logging).
"""

import uuid

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI


def setup_correlation_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name="X-Request-ID",
        generator=lambda: str(uuid.uuid4()),
        validator=None,  # Accept any client-supplied format
    )


def get_correlation_id() -> str | None:
    """The current request's correlation ID, or None outside a request."""
    return correlation_id.get(None)


__all__ = ["setup_correlation_middleware", "get_correlation_id"]
