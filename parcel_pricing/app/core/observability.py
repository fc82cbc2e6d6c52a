"""
Observability helpers.

Every request gets a correlation ID. It is echoed in the response headers
and stamped on each log record emitted while the request is handled, so a
quote's rule selection and discount logs can be traced back to one call.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from parcel_pricing.app.core.config import settings

CORRELATION_HEADER = "X-Correlation-ID"

logger = logging.getLogger("parcel_pricing")

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        return True


def configure_logging(level: Optional[str] = None) -> None:
    """Attach one stream handler to the application logger."""
    logger.setLevel((level or settings.log_level).upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s %(message)s"
    ))
    logger.addHandler(handler)
    logger.propagate = False


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        token = correlation_id_var.set(correlation_id)
        start_time = time.perf_counter()
        try:
            response = await call_next(request)
            
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            response.headers[CORRELATION_HEADER] = correlation_id
            response.headers["X-Process-Time"] = str(duration_ms)
            
            log_data = {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            }
            if response.status_code >= 500:
                logger.error("Request failed", extra=log_data)
            elif response.status_code >= 400:
                logger.warning("Request rejected", extra=log_data)
            else:
                logger.info("Request served", extra=log_data)
            
            return response
        finally:
            correlation_id_var.reset(token)
