"""
FastAPI Application Entry Point.

Serves price quotes and pricing rule administration under /v1.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from parcel_pricing.app.core.config import settings
from parcel_pricing.app.api.v1.router import router as api_v1_router
from parcel_pricing.app.db.session import engine, create_tables
from parcel_pricing.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from parcel_pricing.app.core.observability import ObservabilityMiddleware, configure_logging, logger
from parcel_pricing.app.core.redis_client import close_redis, ping_redis


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: logging, then schema. Shutdown: release the pool and the
    rule code counter connection.
    """
    configure_logging()
    await create_tables()
    logger.info("Pricing engine started", extra={"version": settings.api_version})
    yield
    await close_redis()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Shipment pricing engine: rule selection, itemized prices, rule administration",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness plus the state of the rule code counter store.
    
    Quoting keeps working without Redis; only rule creation needs it.
    """
    redis_ok = await ping_redis()
    return {
        "status": "healthy" if redis_ok else "degraded",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "redis": redis_ok,
    }


app.include_router(api_v1_router, prefix=f"/{settings.api_version}")
