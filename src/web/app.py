"""
FastAPI application for the Practice Manager API.

Routes:
- GET  /health          : liveness check
- *    {API_PREFIX}/...   : practice API (clients, services, tasks, compliance,
                          Companies House, documents, letters, tax)

The API prefix defaults to /api/v1 (APP_API_PREFIX).
"""

import logging
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import get_settings, validate_startup_settings
from middleware.correlation import CorrelationIdMiddleware
from practice.api import practice_router
from security.api_errors import register_exception_handlers
from services.logging_config import configure_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build the application from the current settings."""
    settings = get_settings()
    configure_logging(
        level=settings.log_level,
        json_output=settings.json_logs,
        log_file=settings.log_file,
    )
    validate_startup_settings(settings, exit_on_failure=not settings.is_test)

    app = FastAPI(
        title=settings.name,
        version=settings.version,
        debug=settings.debug,
    )

    # =========================================================================
    # MIDDLEWARE (last added = first executed)
    # =========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-ID", "X-Request-ID"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app)

    # =========================================================================
    # ROUTES
    # =========================================================================

    app.include_router(practice_router, prefix=settings.api_prefix)
    logger.info(f"Practice API mounted at {settings.api_prefix or '/'}")

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "service": settings.name,
            "version": settings.version,
            "environment": settings.environment,
            "timestamp": datetime.utcnow().isoformat(),
        }

    logger.info(f"{settings.name} v{settings.version} started ({settings.environment})")
    return app


app = create_app()
