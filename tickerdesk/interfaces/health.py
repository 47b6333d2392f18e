"""
Health check router.

Liveness check for load balancers. Reports the version and whether the
market data feeds are running; a stopped feed does not make the API
unhealthy.
"""

from fastapi import APIRouter, Request

from tickerdesk.core.config import settings
from tickerdesk.interfaces.trading.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
def health_check(request: Request) -> HealthResponse:
    supervisor = request.app.state.container.supervisor
    if supervisor is None:
        feeds = "disabled"
    else:
        feeds = "running" if supervisor.is_running else "stopped"
    return HealthResponse(status="ok", version=settings.version, price_feeds=feeds)
