"""Correlation ID middleware for request tracing.

Every request carries an X-Request-ID. structlog picks it up from the
asgi-correlation-id context var (see app.core.logging), so all log records
emitted while handling a billing command share one id.
"""

import uuid

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI

REQUEST_ID_HEADER = "X-Request-ID"


def setup_correlation_middleware(app: FastAPI) -> None:
    """Add correlation ID middleware to the app.

    A client-supplied X-Request-ID is echoed back. Otherwise a new UUID is
    generated.
    """
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name=REQUEST_ID_HEADER,
        generator=lambda: str(uuid.uuid4()),
        validator=None,  # Ledger callbacks send their own id formats
        transformer=lambda a: a,
    )


def get_correlation_id() -> str | None:
    """The current request's correlation ID, or None outside a request."""
    return correlation_id.get(None)


__all__ = ["REQUEST_ID_HEADER", "get_correlation_id", "setup_correlation_middleware"]
