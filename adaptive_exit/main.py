"""
Application entry point.

Creates the FastAPI application and wires together:
- Routers (health + exits)
- Error handlers (centralized domain-to-HTTP mapping)
- Security middleware (headers, rate limiting)
- Logging configuration
- The OI poller, started and stopped with the application

No business logic belongs here.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from adaptive_exit.core.config import settings
from adaptive_exit.interfaces.exits.dependencies import get_oi_scheduler
from adaptive_exit.interfaces.exits.router import router as exits_router
from adaptive_exit.interfaces.health import router as health_router
from adaptive_exit.shared.errors.handlers import register_error_handlers
from adaptive_exit.shared.logging import configure_logging
from adaptive_exit.shared.security.headers import SecurityHeadersMiddleware
from adaptive_exit.shared.security.rate_limiting import limiter, rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: start/stop the OI poller."""
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = get_oi_scheduler()
        scheduler.start()
    else:
        logger.info("OI poller disabled by configuration.")

    yield

    if scheduler is not None:
        scheduler.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Registers routers, error handlers, and security middleware.
    This is the composition root of the application.

    Returns:
        A fully configured FastAPI application instance.
    """
    configure_logging(level=settings.log_level)

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    # --- Rate Limiting ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # --- Security Middleware ---
    app.add_middleware(SecurityHeadersMiddleware)

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Routers ---
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(exits_router, prefix="/api/v1")

    return app


app = create_app()
