"""
Market data supervisor.

Runs the Kraken (crypto) and Finnhub (stock) feeds as asyncio tasks and
routes every batch of ticks through the same pipeline:

    feed ──▶ price book ──▶ WebSocket clients
                       ├──▶ price history (sampled)
                       └──▶ auto-trade pass (crypto only, throttled per symbol)

Database work and order placement are synchronous and run in worker
threads via asyncio.to_thread. An auto-trade pass runs as its own task,
so the feed keeps reading frames while orders are placed; at most one
pass is in flight.
"""

import asyncio
import logging
import time
from dataclasses import asdict
from typing import Any, Callable, Optional

from tickerdesk.application.trading.process_auto_trades import ProcessAutoTradesUseCase
from tickerdesk.application.trading.record_price_history import RecordPriceHistoryUseCase
from tickerdesk.domain.trading.entities import AssetClass, PriceTick
from tickerdesk.infrastructure.trading.finnhub_feed import FinnhubPriceFeed, finnhub_url
from tickerdesk.infrastructure.trading.kraken_feed import KrakenPriceFeed
from tickerdesk.infrastructure.trading.price_book import InMemoryPriceBook
from tickerdesk.infrastructure.trading.price_feed import PriceFeedClient
from tickerdesk.realtime.stream import PriceStreamManager

logger = logging.getLogger(__name__)


class MarketDataSupervisor:
    """Owns the feed tasks and the tick pipeline.

    Usage:
        supervisor = MarketDataSupervisor(...)
        await supervisor.start()
        ...
        await supervisor.stop()
    """

    def __init__(
        self,
        price_book: InMemoryPriceBook,
        stream: PriceStreamManager,
        record_history: RecordPriceHistoryUseCase,
        process_auto_trades: ProcessAutoTradesUseCase,
        crypto_symbols: Callable[[], list[str]],
        stock_symbols: Callable[[], list[str]],
        kraken_url: str,
        finnhub_base_url: str,
        finnhub_api_key: Optional[str] = None,
        reconnect_delay: float = 5.0,
        max_reconnect_delay: float = 60.0,
        auto_trade_check_seconds: float = 10.0,
        symbol_refresh_seconds: float = 60.0,
        connect: Optional[Callable[..., Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._price_book = price_book
        self._stream = stream
        self._record_history = record_history
        self._process_auto_trades = process_auto_trades
        self._crypto_symbols = crypto_symbols
        self._stock_symbols = stock_symbols
        self._kraken_url = kraken_url
        self._finnhub_base_url = finnhub_base_url
        self._finnhub_api_key = finnhub_api_key
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._auto_trade_check_seconds = auto_trade_check_seconds
        self._symbol_refresh_seconds = symbol_refresh_seconds
        self._connect = connect
        self._clock = clock

        self._feeds: list[PriceFeedClient] = []
        self._tasks: list[asyncio.Task] = []
        self._last_auto_trade: dict[str, float] = {}
        self._auto_trade_task: Optional[asyncio.Task] = None
        self.auto_trade_passes = 0

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._tasks:
            return
        crypto = await asyncio.to_thread(self._crypto_symbols)
        stocks = await asyncio.to_thread(self._stock_symbols)

        self._feeds = [
            KrakenPriceFeed(self._kraken_url, crypto, self.on_crypto_ticks, **self._feed_options())
        ]
        if self._finnhub_api_key:
            self._feeds.append(
                FinnhubPriceFeed(
                    finnhub_url(self._finnhub_base_url, self._finnhub_api_key),
                    stocks,
                    self.on_stock_ticks,
                    **self._feed_options(),
                )
            )
        else:
            logger.info("No Finnhub API key configured; stock feed disabled")

        for feed in self._feeds:
            self._tasks.append(asyncio.create_task(feed.start(), name=f"{feed.name}-feed"))
        self._tasks.append(asyncio.create_task(self._refresh_symbols_loop(), name="symbol-refresh"))
        logger.info(
            "Market data supervisor started (%d crypto, %d stock symbols)", len(crypto), len(stocks)
        )

    async def stop(self) -> None:
        for feed in self._feeds:
            try:
                await feed.stop()
            except Exception:
                logger.warning("Error while stopping %s feed", feed.name, exc_info=True)
        await self.wait_for_auto_trades()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._feeds = []
        logger.info("Market data supervisor stopped")

    def _feed_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {
            "reconnect_delay": self._reconnect_delay,
            "max_reconnect_delay": self._max_reconnect_delay,
        }
        if self._connect is not None:
            options["connect"] = self._connect
        return options

    async def _refresh_symbols_loop(self) -> None:
        """Pick up positions added or removed since the feeds started."""
        while True:
            await asyncio.sleep(self._symbol_refresh_seconds)
            try:
                await self.refresh_symbols()
            except Exception:
                logger.exception("Symbol refresh failed")

    async def refresh_symbols(self) -> None:
        crypto = await asyncio.to_thread(self._crypto_symbols)
        stocks = await asyncio.to_thread(self._stock_symbols)
        for feed in self._feeds:
            await feed.update_symbols(crypto if isinstance(feed, KrakenPriceFeed) else stocks)

    # ------------------------------------------------------------------
    # Tick pipeline
    # ------------------------------------------------------------------

    async def on_crypto_ticks(self, ticks: list[PriceTick]) -> None:
        await self._publish(ticks, AssetClass.CRYPTO)
        if self.auto_trade_in_flight:
            # Symbols skipped here are picked up on their next tick.
            return
        due = self._due_for_auto_trade(ticks)
        if due:
            now = self._clock()
            for symbol in due:
                self._last_auto_trade[symbol] = now
            self._auto_trade_task = asyncio.create_task(
                self._run_auto_trades(due), name="auto-trade-pass"
            )

    async def on_stock_ticks(self, ticks: list[PriceTick]) -> None:
        await self._publish(ticks, AssetClass.STOCK)

    @property
    def auto_trade_in_flight(self) -> bool:
        return self._auto_trade_task is not None and not self._auto_trade_task.done()

    async def wait_for_auto_trades(self) -> None:
        """Wait for the auto-trade pass in flight, if any."""
        task = self._auto_trade_task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _publish(self, ticks: list[PriceTick], asset_class: AssetClass) -> None:
        self._price_book.update_many(ticks)
        await self._stream.broadcast_prices(ticks)
        try:
            await asyncio.to_thread(self._record_history.record_ticks, ticks, asset_class)
        except Exception:
            logger.exception("Could not record %s price history", asset_class.value)

    def _due_for_auto_trade(self, ticks: list[PriceTick]) -> dict[str, float]:
        now = self._clock()
        due: dict[str, float] = {}
        for tick in ticks:
            last = self._last_auto_trade.get(tick.symbol)
            if last is not None and now - last < self._auto_trade_check_seconds:
                continue
            due[tick.symbol] = tick.price
        return due

    async def _run_auto_trades(self, prices: dict[str, float]) -> None:
        """One auto-trade pass, run as a task beside the feed loop."""
        try:
            results = await asyncio.to_thread(
                self._process_auto_trades.process_ticks_for_all_users, prices
            )
            self.auto_trade_passes += 1
            for result in results:
                if result.success:
                    await self._stream.broadcast_auto_trade(result.symbol, asdict(result))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Auto-trade pass failed for %s", ", ".join(sorted(prices)))

    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "auto_trade_passes": self.auto_trade_passes,
            "feeds": [
                {
                    "name": feed.name,
                    "connected": feed.is_connected,
                    "symbols": sorted(feed.symbols),
                    "reconnect_count": feed.reconnect_count,
                    "messages_received": feed.messages_received,
                }
                for feed in self._feeds
            ],
            "stream": self._stream.stats,
        }
