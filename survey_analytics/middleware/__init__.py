"""
Request middleware.

- Correlation IDs for tracing a request through logs
- Prometheus metrics collection
"""

from .correlation import CorrelationIdMiddleware, correlation_id_ctx, request_id_ctx
from .metrics import MetricsMiddleware

__all__ = [
    "CorrelationIdMiddleware",
    "correlation_id_ctx",
    "request_id_ctx",
    "MetricsMiddleware",
]
