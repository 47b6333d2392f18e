"""
FastAPI router for live price streaming.

Provides:
- WebSocket endpoint pushing price ticks and auto-trade events
- Feed supervisor and stream status endpoints
"""

import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.interfaces.trading.dependencies import (
    TradingContainer,
    get_container,
    get_current_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])


@router.websocket("/ws/prices")
async def ws_prices(websocket: WebSocket) -> None:
    """WebSocket endpoint for live prices.

    Protocol (JSON):
        ← {"event": "connected", "data": {"prices": {...}}}

        → {"action": "subscribe", "symbols": ["BTC", "AAPL"]}
        ← {"event": "subscribed", "symbols": ["AAPL", "BTC"]}

        → {"action": "ping"}
        ← {"event": "pong", "timestamp": "..."}

        ← {"event": "price", "symbol": "BTC", "data": {"price": ..., "volume": ...}}
        ← {"event": "auto_trade", "symbol": "BTC", "data": {...}}
    """
    manager = websocket.app.state.container.stream
    await manager.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            await manager.handle_client_message(websocket, raw)
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception:
        logger.warning("Price stream client dropped", exc_info=True)
        manager.disconnect(websocket)


@router.get(
    "/status",
    summary="Feed and stream status",
    description="Connection state of the market data feeds and WebSocket stats.",
)
def realtime_status(
    user: UserAccount = Depends(get_current_user),
    container: TradingContainer = Depends(get_container),
) -> dict:
    if container.supervisor is None:
        return {"running": False, "feeds": [], "stream": container.stream.stats}
    return container.supervisor.status()


@router.get(
    "/events",
    summary="Recent stream events",
)
def recent_events(
    limit: int = Query(default=50, ge=1, le=200),
    symbol: str | None = Query(default=None),
    user: UserAccount = Depends(get_current_user),
    container: TradingContainer = Depends(get_container),
) -> list[dict]:
    return container.stream.get_recent_events(limit=limit, symbol=symbol)
