"""Middleware components for the practice manager.

Provides:
- Request correlation ID tracking
- Logging context enrichment
"""

from .correlation import (
    CorrelationIdMiddleware,
    get_correlation_id,
    set_correlation_id,
)

__all__ = [
    "CorrelationIdMiddleware",
    "get_correlation_id",
    "set_correlation_id",
]
