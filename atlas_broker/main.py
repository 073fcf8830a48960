"""
FastAPI application of the Atlas service broker.

Serves the Open Service Broker API v2 (catalog and service instances) plus
health checks and Prometheus metrics. Every error leaves the broker as an OSB
error document: ``{"error": <code>, "description": <message>}``.
"""
import sys
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Iterable

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from atlas_broker.api import health
from atlas_broker.api.v2 import catalog, instances
from atlas_broker.config.logging import clear_request_context, configure_logging, get_logger
from atlas_broker.config.settings import settings
from atlas_broker.exceptions import BrokerException
from atlas_broker.services.atlas_client import atlas_client

configure_logging()
logger = get_logger(__name__)

if settings.sentry_dsn and settings.is_production:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        environment=settings.environment,
        release=settings.app_version,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Log startup and release the Atlas connection pool on shutdown."""
    logger.info(
        "broker_starting",
        version=settings.app_version,
        environment=settings.environment,
        atlas_base_url=settings.atlas_base_url,
        atlas_group_id=settings.atlas_group_id,
        atlas_configured=settings.atlas_configured,
    )
    if not settings.atlas_configured:
        logger.warning("atlas_credentials_missing")

    yield

    logger.info("broker_shutting_down")
    try:
        await atlas_client.close()
    except Exception as e:
        logger.error("atlas_client_close_error", error=str(e))
    logger.info("broker_shutdown_complete")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Open Service Broker exposing MongoDB Atlas cluster lifecycle management",
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
    lifespan=lifespan,
)


def osb_error(status_code: int, error_code: str, description: str) -> JSONResponse:
    """Render an OSB error document."""
    return JSONResponse(
        status_code=status_code,
        content={"error": error_code, "description": description},
    )


def describe_validation_errors(errors: Iterable[Dict[str, Any]]) -> str:
    """Flatten request validation errors into one description line."""
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg')}")
    return "; ".join(parts)


@app.exception_handler(BrokerException)
async def broker_exception_handler(request: Request, exc: BrokerException) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "broker_exception",
        path=request.url.path,
        method=request.method,
        error=exc.message,
        error_code=exc.error_code,
        status_code=exc.status_code,
        details=exc.details,
    )
    return osb_error(exc.status_code, exc.error_code or type(exc).__name__, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies and query strings are OSB validation errors."""
    description = describe_validation_errors(exc.errors())
    logger.warning(
        "request_validation_error",
        path=request.url.path,
        method=request.method,
        description=description,
    )
    return osb_error(status.HTTP_400_BAD_REQUEST, "ValidationError", description)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )
    description = "Internal server error" if settings.is_production else str(exc)
    return osb_error(status.HTTP_500_INTERNAL_SERVER_ERROR, "InternalServerError", description)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with the OSB API version the platform speaks."""
    clear_request_context()
    started = time.perf_counter()
    logger.info(
        "request_started",
        method=request.method,
        path=request.url.path,
        client=request.client.host if request.client else None,
        broker_api_version=request.headers.get("X-Broker-API-Version"),
    )

    response = await call_next(request)

    logger.info(
        "request_completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    return response


if settings.prometheus_enabled:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

app.include_router(health.router, prefix="/health", tags=["Health"])
app.include_router(catalog.router, prefix="/v2/catalog", tags=["Catalog"])
app.include_router(instances.router, prefix="/v2/service_instances", tags=["Service Instances"])


@app.get("/", include_in_schema=False)
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "catalog": "/v2/catalog",
    }


if __name__ == "__main__":
    import uvicorn

    try:
        uvicorn.run(
            "atlas_broker.main:app",
            host=settings.host,
            port=settings.port,
            reload=settings.reload,
            log_level=settings.log_level.lower(),
        )
    except (KeyboardInterrupt, SystemExit):
        logger.info("broker_stopped")
    finally:
        sys.exit(0)
