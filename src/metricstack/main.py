"""
Main FastAPI application entry point.

This module sets up the FastAPI app with all middleware, routes, and lifecycle events.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import healthz_router, metrics_router, telemetry_router
from .config import get_settings
from .core.exceptions import MetricStackException, RateLimitError
from .core.health import HealthChecker
from .core.limiter import AdmissionLimiter
from .core.metrics import MetricsCollector
from .core.pipeline import IngestionPipeline
from .core.remote_config import ConfigResponsePipeline
from .core.store import build_document_store
from .core.sweeper import BucketSweeper


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the application."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    # Silence the verbose watchfiles logger
    logging.getLogger("watchfiles").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Builds the limiter, store and pipelines from current settings and starts
    the bucket sweeper.
    """
    logger = structlog.get_logger(__name__)
    settings = get_settings()
    logger.info("Starting MetricStack service", version=app.version)

    metrics_collector = MetricsCollector()
    app.state.metrics = metrics_collector

    limiter = AdmissionLimiter(
        max_requests=settings.rate_limit.max_requests,
        window_seconds=settings.rate_limit.window_seconds,
        max_identities=settings.rate_limit.max_identities,
    )
    app.state.limiter = limiter

    store = build_document_store(settings.store)
    app.state.store = store

    app.state.ingestion_pipeline = IngestionPipeline(
        limiter=limiter,
        store=store,
        collection=settings.store.collection,
        metrics=metrics_collector,
    )
    app.state.config_pipeline = ConfigResponsePipeline(
        settings=settings.remote_config,
        server_key=settings.codec.server_key,
        config_request_key=settings.codec.config_request_key,
        metrics=metrics_collector,
    )

    sweeper = BucketSweeper(
        limiter,
        sweep_interval_seconds=settings.rate_limit.sweep_interval_seconds,
        metrics=metrics_collector,
    )
    app.state.sweeper = sweeper
    await sweeper.start()

    app.state.health_checker = HealthChecker(settings.store, store=store, sweeper=sweeper)

    try:
        logger.info(
            "MetricStack service started successfully",
            store_backend=settings.store.backend,
            rate_limit_max=settings.rate_limit.max_requests,
        )
        yield
    finally:
        logger.info("Shutting down MetricStack service")
        await sweeper.stop()
        logger.info("MetricStack service shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function ensures all configuration is applied
    whether running via FastAPI CLI or direct execution.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    application = FastAPI(
        title="MetricStack",
        description="Client telemetry ingestor",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    application.add_exception_handler(MetricStackException, metricstack_exception_handler)
    application.add_exception_handler(Exception, general_exception_handler)

    application.include_router(telemetry_router, tags=["telemetry"])
    application.include_router(metrics_router, tags=["metrics"])
    application.include_router(healthz_router, tags=["health"])

    @application.get("/", include_in_schema=False)
    async def root() -> Dict[str, str]:
        """Root endpoint with service information."""
        return {
            "service": "MetricStack",
            "version": application.version,
            "description": "Client telemetry ingestor",
            "docs": "/docs",
        }

    return application


async def metricstack_exception_handler(request: Request, exc: MetricStackException) -> JSONResponse:
    """Handle custom MetricStack exceptions."""
    logger = structlog.get_logger(__name__)
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Request rejected",
        error=str(exc),
        error_code=exc.error_code,
        status_code=exc.status_code,
        path=request.url.path,
        method=request.method,
    )

    headers = {}
    if isinstance(exc, RateLimitError) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_content(),
        headers=headers,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = structlog.get_logger(__name__)
    logger.error(
        "Unexpected exception occurred",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={"error": "server_error"},
    )


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "metricstack.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )
