"""Request Correlation ID Middleware.

Every request carries a correlation ID that is:
- Taken from the X-Correlation-ID / X-Request-ID header, or generated
- Stored in the logging context so every log line for the request has it
- Echoed back in the response headers

Usage:
    from fastapi import FastAPI
    from middleware.correlation import CorrelationIdMiddleware

    app = FastAPI()
    app.add_middleware(CorrelationIdMiddleware)
"""

from __future__ import annotations

import logging
import uuid
from contextvars import Token
from typing import Any, Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from services.logging_config import request_id_var

logger = logging.getLogger(__name__)

# Header names
CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"


def get_correlation_id() -> Optional[str]:
    """Get the correlation ID for the current context, or None."""
    return request_id_var.get()


def set_correlation_id(correlation_id: str) -> Token[Optional[str]]:
    """Set the correlation ID for the current context.

    Returns:
        Token that can be used to reset the context.
    """
    return request_id_var.set(correlation_id)


def reset_correlation_id(token: Token[Optional[str]]) -> None:
    request_id_var.reset(token)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to handle correlation IDs for request tracing."""

    def __init__(
        self,
        app,
        header_name: str = CORRELATION_ID_HEADER,
        generator: Optional[Callable[[], str]] = None,
    ):
        super().__init__(app)
        self.header_name = header_name
        self.generator = generator or (lambda: str(uuid.uuid4()))

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Any],
    ) -> Response:
        correlation_id = (
            request.headers.get(self.header_name)
            or request.headers.get(REQUEST_ID_HEADER)
            or self.generator()
        )

        token = set_correlation_id(correlation_id)

        try:
            request.state.request_id = correlation_id

            response = await call_next(request)

            response.headers[self.header_name] = correlation_id
            response.headers[REQUEST_ID_HEADER] = correlation_id

            return response

        finally:
            reset_correlation_id(token)
