"""
Request metrics middleware.

Counts every API request by method, status and normalized path for the
``/metrics`` endpoint, and logs requests slower than
``SLOW_REQUEST_SECONDS`` with their correlation ID. Inline AI calls
(review, insights, summaries) are the usual offenders.
"""

import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from survey_analytics.core.metrics import track_request_end, track_request_start
from survey_analytics.middleware.correlation import correlation_id_ctx

logger = logging.getLogger(__name__)

SLOW_REQUEST_SECONDS = 5.0


class MetricsMiddleware(BaseHTTPMiddleware):
    EXCLUDED_PATHS = frozenset({"/health", "/metrics", "/favicon.ico", "/docs", "/redoc", "/openapi.json"})

    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:
        path = request.url.path
        if path in self.EXCLUDED_PATHS:
            return await call_next(request)

        started = track_request_start()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            track_request_end(start_time=started, method=request.method, path=path, status_code=status_code)
            elapsed = time.time() - started
            if elapsed >= SLOW_REQUEST_SECONDS:
                logger.warning(
                    f"Slow request {request.method} {path} -> {status_code} "
                    f"in {elapsed:.1f}s [{correlation_id_ctx.get() or '-'}]"
                )
