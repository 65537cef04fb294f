"""
Middleware modules for the marketing API.

- Correlation ID tracking for request-scoped logging
"""

from .correlation import (
    CorrelationIdMiddleware,
    CorrelationLogFilter,
    configure_logging,
    correlation_id_ctx,
    request_id_ctx,
)

__all__ = [
    "CorrelationIdMiddleware",
    "CorrelationLogFilter",
    "configure_logging",
    "correlation_id_ctx",
    "request_id_ctx",
]
