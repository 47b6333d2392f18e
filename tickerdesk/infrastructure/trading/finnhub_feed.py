"""
Adapter: Finnhub WebSocket trade feed for stocks.
"""

import json
from datetime import datetime, timezone
from typing import Any, Iterable

from tickerdesk.domain.trading.entities import PriceTick, utc_now
from tickerdesk.infrastructure.trading.price_feed import PriceFeedClient


def finnhub_url(base_url: str, api_key: str) -> str:
    return f"{base_url}?token={api_key}"


def parse_finnhub_message(raw: Any) -> list[PriceTick]:
    """Extract ticks from a `{"type": "trade", "data": [...]}` frame."""
    try:
        message = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except ValueError:
        return []
    if not isinstance(message, dict) or message.get("type") != "trade":
        return []

    ticks: list[PriceTick] = []
    for trade in message.get("data") or []:
        if not isinstance(trade, dict):
            continue
        symbol, price = trade.get("s"), trade.get("p")
        if not symbol or not isinstance(price, (int, float)) or price <= 0:
            continue
        millis = trade.get("t")
        timestamp = (
            datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
            if isinstance(millis, (int, float))
            else utc_now()
        )
        volume = trade.get("v")
        ticks.append(
            PriceTick(
                symbol=symbol.upper(),
                price=float(price),
                timestamp=timestamp,
                volume=float(volume) if isinstance(volume, (int, float)) else None,
            )
        )
    return ticks


class FinnhubPriceFeed(PriceFeedClient):
    name = "finnhub"

    def subscription_messages(self, symbols: Iterable[str]) -> list[dict[str, Any]]:
        return [{"type": "subscribe", "symbol": symbol} for symbol in symbols]

    def parse(self, raw: Any) -> list[PriceTick]:
        return parse_finnhub_message(raw)
