"""
Adapter: Kraken WebSocket ticker feed.

Speaks the v2 `ticker` channel and still understands the v1 array
frames. Kraken names bitcoin XBT; the rest of the system says BTC.
"""

import json
import logging
from typing import Any, Iterable, Optional

from tickerdesk.domain.trading.entities import PriceTick, utc_now
from tickerdesk.infrastructure.trading.price_feed import PriceFeedClient

logger = logging.getLogger(__name__)

QUOTE_CURRENCY = "USD"
_TO_KRAKEN = {"BTC": "XBT"}
_FROM_KRAKEN = {v: k for k, v in _TO_KRAKEN.items()}

_IGNORED_METHODS = {"subscribe", "unsubscribe", "pong"}
_IGNORED_CHANNELS = {"heartbeat", "status"}
_IGNORED_EVENTS = {"heartbeat", "systemStatus", "subscriptionStatus", "pong"}


def to_kraken_symbol(symbol: str) -> str:
    """BTC -> XBT/USD, ETH -> ETH/USD."""
    base = symbol.upper()
    return f"{_TO_KRAKEN.get(base, base)}/{QUOTE_CURRENCY}"


def kraken_trading_pair(symbol: str) -> str:
    """REST pair name: BTC -> XBTUSD."""
    return to_kraken_symbol(symbol).replace("/", "")


def from_kraken_symbol(pair: str) -> str:
    """XBT/USD -> BTC, ETH/USD -> ETH, XBTUSD -> BTC."""
    pair = pair.upper()
    if "/" in pair:
        base = pair.split("/", 1)[0]
    elif pair.endswith(QUOTE_CURRENCY) and len(pair) > len(QUOTE_CURRENCY):
        base = pair[: -len(QUOTE_CURRENCY)]
    else:
        base = pair
    return _FROM_KRAKEN.get(base, base)


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if result > 0 else None


def _tick_from_v2(item: Any) -> Optional[PriceTick]:
    if not isinstance(item, dict) or not item.get("symbol"):
        return None
    price = _as_float(item.get("last"))
    if price is None:
        bid, ask = _as_float(item.get("bid")), _as_float(item.get("ask"))
        if bid is None or ask is None:
            return None
        price = (bid + ask) / 2
    return PriceTick(
        symbol=from_kraken_symbol(item["symbol"]),
        price=price,
        timestamp=utc_now(),
        volume=_as_float(item.get("volume")),
    )


def _tick_from_v1(data: Any, pair: Any) -> Optional[PriceTick]:
    if not isinstance(data, dict) or not isinstance(pair, str):
        return None
    price = _as_float(data.get("c"))
    if price is None:
        return None
    volume = data.get("v")
    return PriceTick(
        symbol=from_kraken_symbol(pair),
        price=price,
        timestamp=utc_now(),
        volume=_as_float(volume[-1]) if isinstance(volume, list) and volume else None,
    )


def parse_kraken_message(raw: Any) -> list[PriceTick]:
    """Extract ticks from one Kraken frame.

    Subscription acks, heartbeats, status and error frames yield [].
    """
    try:
        message = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
    except ValueError:
        return []

    if isinstance(message, dict):
        if (
            message.get("method") in _IGNORED_METHODS
            or message.get("channel") in _IGNORED_CHANNELS
            or message.get("event") in _IGNORED_EVENTS
            or message.get("error")
        ):
            return []
        if message.get("channel") != "ticker" or message.get("type") not in ("snapshot", "update"):
            return []
        data = message.get("data")
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except ValueError:
                return []
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            return []
        ticks = [_tick_from_v2(item) for item in data]
        return [tick for tick in ticks if tick is not None]

    if isinstance(message, list):
        # [channelID, data, "ticker", pair]
        if len(message) >= 4 and message[-2] == "ticker":
            tick = _tick_from_v1(message[1], message[-1])
            return [tick] if tick is not None else []
        # ["ticker", data, pair]
        if len(message) >= 3 and message[0] == "ticker":
            tick = _tick_from_v1(message[1], message[2])
            return [tick] if tick is not None else []
    return []


class KrakenPriceFeed(PriceFeedClient):
    name = "kraken"

    def subscription_messages(self, symbols: Iterable[str]) -> list[dict[str, Any]]:
        pairs = [to_kraken_symbol(s) for s in symbols]
        if not pairs:
            return []
        return [{"method": "subscribe", "params": {"channel": "ticker", "symbol": pairs}}]

    def parse(self, raw: Any) -> list[PriceTick]:
        return parse_kraken_message(raw)
