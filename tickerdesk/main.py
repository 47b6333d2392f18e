"""
Application entry point.

Creates the FastAPI application and wires together:
- Routers (trading resources, realtime stream, health)
- Error handlers (centralized domain-to-HTTP mapping)
- Security middleware (headers, rate limiting)
- Logging configuration
- Market data supervisor (Kraken/Finnhub feeds, auto-trading)

No business logic belongs here.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from tickerdesk.core.config import settings
from tickerdesk.infrastructure.db.session import create_schema
from tickerdesk.interfaces.health import router as health_router
from tickerdesk.interfaces.realtime import router as realtime_router
from tickerdesk.interfaces.trading.dependencies import TradingContainer, build_container
from tickerdesk.interfaces.trading.router import router as trading_router
from tickerdesk.shared.errors.handlers import register_error_handlers
from tickerdesk.shared.logging import configure_logging
from tickerdesk.shared.security.headers import SecurityHeadersMiddleware
from tickerdesk.shared.security.rate_limiting import limiter, rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: prepare the database, start/stop the feeds."""
    container: TradingContainer = app.state.container

    create_schema(container.engine)
    cleared = container.lock_service.clear_expired()
    if cleared:
        logger.info("Cleared %d stale auto-trade locks", cleared)

    if container.config.enable_price_feeds:
        container.supervisor = container.build_supervisor()
        await container.supervisor.start()
    else:
        logger.info("Price feeds disabled (ENABLE_PRICE_FEEDS=false)")

    yield

    if container.supervisor is not None:
        await container.supervisor.stop()
        container.supervisor = None


def create_app(container: Optional[TradingContainer] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Registers routers, error handlers, and security middleware.

    Args:
        container: Pre-built dependency container. Tests pass one wired
            to in-memory SQLite and fake adapters.

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
    app.state.container = container or build_container(settings)

    # --- Rate Limiting ---
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # --- Security Middleware ---
    app.add_middleware(SecurityHeadersMiddleware)

    # --- Error Handlers ---
    register_error_handlers(app)

    # --- Routers ---
    app.include_router(health_router, prefix="/api")
    app.include_router(trading_router, prefix="/api")
    app.include_router(realtime_router, prefix="/api")

    return app


app = create_app()
