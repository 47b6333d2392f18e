"""
Adapter: In-process latest-price book.

Implements PriceQuotePort. Written by the feed supervisor on the event
loop and read by request threads, hence the lock.
"""

import threading
from datetime import datetime
from typing import Optional

from tickerdesk.domain.trading.entities import PriceTick
from tickerdesk.domain.trading.ports import PriceQuotePort


class InMemoryPriceBook(PriceQuotePort):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._prices: dict[str, float] = {}
        self._updated_at: dict[str, datetime] = {}

    def update(self, tick: PriceTick) -> None:
        symbol = tick.symbol.upper()
        with self._lock:
            self._prices[symbol] = tick.price
            self._updated_at[symbol] = tick.timestamp

    def update_many(self, ticks: list[PriceTick]) -> None:
        for tick in ticks:
            self.update(tick)

    def get_price(self, symbol: str) -> Optional[float]:
        with self._lock:
            return self._prices.get(symbol.upper())

    def updated_at(self, symbol: str) -> Optional[datetime]:
        with self._lock:
            return self._updated_at.get(symbol.upper())

    def snapshot(self) -> dict[str, float]:
        with self._lock:
            return dict(self._prices)
