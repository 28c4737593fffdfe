"""
FastAPI application factory.
Creates and configures the main API application.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from elasticapm.contrib.starlette import make_apm_client, ElasticAPM
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from src.config import settings
from src.database.connection import init_database, close_database
from .middleware import CorrelationIdMiddleware, RequestLoggingMiddleware
from .routes import api_router

logger = logging.getLogger(__name__)

# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[
        f"{settings.rate_limit_requests} per {settings.rate_limit_window_seconds} seconds"
    ],
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager."""
    logger.info("Starting application...")

    try:
        await init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    await close_database()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    app = FastAPI(
        title=settings.app_name,
        description="""
        # Marketplace Matching Engine

        Matches service requests to independent providers and drives each
        order through its lifecycle.

        ## Features

        - **Matching**: geohash range queries, candidate filtering, composite
          scoring and progressive radius expansion
        - **Order lifecycle**: quotes, guarded acceptance, rejection with
          background replacement search, manual expansion, cancellation
        - **Archival**: atomic completion with review and provider statistics

        ## Architecture

        - FastAPI for API
        - PostgreSQL (SQLAlchemy async) for orders, quotes and providers
        - Celery + Redis for background replacement searches (optional)
        - ELK Stack + APM for monitoring
        """,
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # Request context and logging
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure properly in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Elastic APM integration
    if settings.apm_enabled:
        apm_client = make_apm_client({
            'SERVICE_NAME': settings.app_name,
            'SERVER_URL': settings.apm_server_url,
            'ENVIRONMENT': settings.environment,
            'CAPTURE_BODY': 'all',
            'TRANSACTION_SAMPLE_RATE': 1.0,
        })
        app.add_middleware(ElasticAPM, client=apm_client)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.debug else "An error occurred",
            },
        )

    # Include API router
    app.include_router(api_router, prefix=settings.api_prefix)

    # Root endpoint
    @app.get("/", tags=["Root"])
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": f"{settings.api_prefix}/health",
        }

    return app


# Application instance
app = create_app()
