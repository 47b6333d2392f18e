"""
WebSocket price stream manager.

Keeps the set of connected dashboard clients and fans out price
updates and auto-trade events as they arrive from the feed supervisor.

    Kraken / Finnhub feeds  ──▶  MarketDataSupervisor
                                       │ broadcast_prices()
                                       ▼
                                PriceStreamManager  ──▶  JSON to clients

Clients may subscribe to a subset of symbols; an empty subscription
set receives everything.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from tickerdesk.domain.trading.entities import PriceTick

logger = logging.getLogger(__name__)

SUPPORTED_ACTIONS = ["subscribe", "unsubscribe", "subscribe_all", "ping"]


@dataclass
class StreamEvent:
    """A single event pushed to connected clients."""

    event_type: str          # "price", "auto_trade", "connected"
    symbol: Optional[str]
    data: dict
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        return json.dumps({
            "event": self.event_type,
            "symbol": self.symbol,
            "data": self.data,
            "timestamp": self.timestamp,
        }, default=str)


class PriceStreamManager:
    """Tracks WebSocket clients and their symbol subscriptions.

    All methods run on the event loop; no locking is needed.

    Usage:
        manager = PriceStreamManager(snapshot=price_book.snapshot)
        await manager.connect(ws)
        await manager.broadcast_prices(ticks)
    """

    def __init__(
        self,
        snapshot: Optional[Callable[[], dict[str, float]]] = None,
        max_history: int = 200,
    ) -> None:
        self._subscriptions: dict[Any, set[str]] = {}
        self._snapshot = snapshot
        self._event_history: list[StreamEvent] = []
        self._max_history = max_history
        self._stats = {
            "total_connections": 0,
            "total_events_broadcast": 0,
            "total_messages_sent": 0,
        }

    @property
    def active_connections(self) -> int:
        return len(self._subscriptions)

    @property
    def stats(self) -> dict:
        return {**self._stats, "active_connections": self.active_connections}

    # ------------------------------------------------------------------
    # WebSocket lifecycle
    # ------------------------------------------------------------------

    async def connect(self, websocket: Any) -> None:
        """Accept the socket and send the current price snapshot."""
        await websocket.accept()
        self._subscriptions[websocket] = set()
        self._stats["total_connections"] += 1
        logger.info("Price stream client connected. Active: %d", self.active_connections)

        welcome = StreamEvent(
            event_type="connected",
            symbol=None,
            data={
                "message": "Connected to TickerDesk price stream",
                "active_clients": self.active_connections,
                "prices": self._snapshot() if self._snapshot else {},
            },
        )
        await websocket.send_text(welcome.to_json())

    def disconnect(self, websocket: Any) -> None:
        if self._subscriptions.pop(websocket, None) is not None:
            logger.info("Price stream client disconnected. Active: %d", self.active_connections)

    async def handle_client_message(self, websocket: Any, raw: str) -> None:
        """Process a command from a client.

        Supported commands:
            {"action": "subscribe", "symbols": ["BTC", "AAPL"]}
            {"action": "unsubscribe", "symbols": ["AAPL"]}
            {"action": "subscribe_all"}
            {"action": "ping"}
        """
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await websocket.send_text(json.dumps({"error": "Invalid JSON"}))
            return
        if not isinstance(msg, dict):
            await websocket.send_text(json.dumps({"error": "Expected a JSON object"}))
            return

        action = msg.get("action", "")
        subs = self._subscriptions.setdefault(websocket, set())

        if action == "subscribe":
            subs |= {str(s).upper() for s in msg.get("symbols", [])}
            await websocket.send_text(json.dumps({
                "event": "subscribed",
                "symbols": sorted(subs),
            }))
        elif action == "unsubscribe":
            subs -= {str(s).upper() for s in msg.get("symbols", [])}
            await websocket.send_text(json.dumps({
                "event": "unsubscribed",
                "symbols": sorted(subs),
            }))
        elif action == "subscribe_all":
            subs.clear()
            await websocket.send_text(json.dumps({"event": "subscribed_all"}))
        elif action == "ping":
            await websocket.send_text(json.dumps({
                "event": "pong",
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }))
        else:
            await websocket.send_text(json.dumps({
                "error": f"Unknown action: {action}",
                "supported": SUPPORTED_ACTIONS,
            }))

    # ------------------------------------------------------------------
    # Broadcasting
    # ------------------------------------------------------------------

    async def broadcast(self, event: StreamEvent) -> int:
        """Send an event to every matching client; returns the delivery count.

        Clients whose send fails are dropped.
        """
        self._event_history.append(event)
        if len(self._event_history) > self._max_history:
            self._event_history = self._event_history[-self._max_history:]
        self._stats["total_events_broadcast"] += 1

        sent = 0
        dead: list[Any] = []
        for ws, subs in list(self._subscriptions.items()):
            if subs and event.symbol and event.symbol.upper() not in subs:
                continue
            try:
                await ws.send_text(event.to_json())
            except Exception:
                dead.append(ws)
            else:
                sent += 1
                self._stats["total_messages_sent"] += 1

        for ws in dead:
            self.disconnect(ws)
        return sent

    async def broadcast_prices(self, ticks: list[PriceTick]) -> int:
        sent = 0
        for tick in ticks:
            sent += await self.broadcast(
                StreamEvent(
                    event_type="price",
                    symbol=tick.symbol,
                    data={"price": tick.price, "volume": tick.volume},
                    timestamp=tick.timestamp.isoformat(),
                )
            )
        return sent

    async def broadcast_auto_trade(self, symbol: str, data: dict) -> int:
        return await self.broadcast(StreamEvent(event_type="auto_trade", symbol=symbol, data=data))

    def get_recent_events(self, limit: int = 50, symbol: Optional[str] = None) -> list[dict]:
        events = self._event_history
        if symbol:
            events = [e for e in events if e.symbol and e.symbol.upper() == symbol.upper()]
        return [json.loads(e.to_json()) for e in events[-limit:]]
