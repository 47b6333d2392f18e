"""
Tests for the real-time price pipeline.

Covers:
- StreamEvent serialization
- PriceStreamManager (WebSocket broadcast, subscriptions)
- PriceFeedClient run loop against a fake socket
- MarketDataSupervisor (tick pipeline, auto-trade throttle, status)
"""

import asyncio
import json
import threading
import time
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from tickerdesk.application.trading.dtos import AutoTradeResult
from tickerdesk.domain.trading.entities import AssetClass, PriceTick


def _tick(symbol: str, price: float) -> PriceTick:
    return PriceTick(symbol=symbol, price=price, timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc))


def _sent(ws) -> list[dict]:
    return [json.loads(call.args[0]) for call in ws.send_text.call_args_list]


class FakeSocket:
    """Async-iterable stand-in for a websockets client connection."""

    def __init__(self, frames: list[str]) -> None:
        self.frames = frames
        self.sent: list[dict] = []
        self.closed = False

    async def send(self, message: str) -> None:
        self.sent.append(json.loads(message))

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> bool:
        return False

    def __aiter__(self):
        return self._frames()

    async def _frames(self):
        for frame in self.frames:
            yield frame


# =====================================================================
# StreamEvent
# =====================================================================

class TestStreamEvent:
    """Tests for the StreamEvent data class."""

    def test_to_json_produces_valid_json(self):
        from tickerdesk.realtime.stream import StreamEvent

        event = StreamEvent(event_type="price", symbol="BTC", data={"price": 42000.5})
        parsed = json.loads(event.to_json())

        assert parsed["event"] == "price"
        assert parsed["symbol"] == "BTC"
        assert parsed["data"]["price"] == 42000.5
        assert "timestamp" in parsed


# =====================================================================
# PriceStreamManager
# =====================================================================

class TestPriceStreamManager:
    """Tests for WebSocket connection management and broadcast."""

    @pytest.mark.asyncio
    async def test_connect_sends_snapshot(self):
        from tickerdesk.realtime.stream import PriceStreamManager

        mgr = PriceStreamManager(snapshot=lambda: {"BTC": 10.0})
        ws = AsyncMock()

        await mgr.connect(ws)

        ws.accept.assert_awaited_once()
        welcome = _sent(ws)[0]
        assert welcome["event"] == "connected"
        assert welcome["data"]["prices"] == {"BTC": 10.0}
        assert mgr.active_connections == 1

    @pytest.mark.asyncio
    async def test_disconnect_removes_client(self):
        from tickerdesk.realtime.stream import PriceStreamManager

        mgr = PriceStreamManager()
        ws = AsyncMock()
        await mgr.connect(ws)
        mgr.disconnect(ws)
        mgr.disconnect(ws)
        assert mgr.active_connections == 0

    @pytest.mark.asyncio
    async def test_subscription_filters_prices(self):
        from tickerdesk.realtime.stream import PriceStreamManager

        mgr = PriceStreamManager()
        btc_only = AsyncMock()
        everything = AsyncMock()
        await mgr.connect(btc_only)
        await mgr.connect(everything)
        await mgr.handle_client_message(btc_only, json.dumps({"action": "subscribe", "symbols": ["btc"]}))
        btc_only.send_text.reset_mock()
        everything.send_text.reset_mock()

        sent = await mgr.broadcast_prices([_tick("ETH", 1.0), _tick("BTC", 2.0)])

        assert sent == 3
        assert [m["symbol"] for m in _sent(btc_only)] == ["BTC"]
        assert [m["symbol"] for m in _sent(everything)] == ["ETH", "BTC"]

    @pytest.mark.asyncio
    async def test_unsubscribe_and_subscribe_all(self):
        from tickerdesk.realtime.stream import PriceStreamManager

        mgr = PriceStreamManager()
        ws = AsyncMock()
        await mgr.connect(ws)
        await mgr.handle_client_message(ws, json.dumps({"action": "subscribe", "symbols": ["BTC", "ETH"]}))
        await mgr.handle_client_message(ws, json.dumps({"action": "unsubscribe", "symbols": ["eth"]}))
        await mgr.handle_client_message(ws, json.dumps({"action": "subscribe_all"}))

        replies = _sent(ws)[1:]
        assert replies[0] == {"event": "subscribed", "symbols": ["BTC", "ETH"]}
        assert replies[1] == {"event": "unsubscribed", "symbols": ["BTC"]}
        assert replies[2] == {"event": "subscribed_all"}

    @pytest.mark.asyncio
    async def test_ping_pong(self):
        from tickerdesk.realtime.stream import PriceStreamManager

        mgr = PriceStreamManager()
        ws = AsyncMock()
        await mgr.handle_client_message(ws, json.dumps({"action": "ping"}))
        assert _sent(ws)[0]["event"] == "pong"

    @pytest.mark.asyncio
    async def test_invalid_messages(self):
        from tickerdesk.realtime.stream import PriceStreamManager

        mgr = PriceStreamManager()
        ws = AsyncMock()
        await mgr.handle_client_message(ws, "not json{{{")
        await mgr.handle_client_message(ws, "[1, 2]")
        await mgr.handle_client_message(ws, json.dumps({"action": "dance"}))

        replies = _sent(ws)
        assert replies[0]["error"] == "Invalid JSON"
        assert replies[1]["error"] == "Expected a JSON object"
        assert "Unknown action" in replies[2]["error"]
        assert "ping" in replies[2]["supported"]

    @pytest.mark.asyncio
    async def test_dead_socket_dropped(self):
        from tickerdesk.realtime.stream import PriceStreamManager

        mgr = PriceStreamManager()
        good = AsyncMock()
        dead = AsyncMock()
        await mgr.connect(good)
        await mgr.connect(dead)
        dead.send_text.side_effect = RuntimeError("gone")

        sent = await mgr.broadcast_prices([_tick("BTC", 1.0)])

        assert sent == 1
        assert mgr.active_connections == 1
        assert mgr.stats["total_messages_sent"] == 1

    @pytest.mark.asyncio
    async def test_event_history(self):
        from tickerdesk.realtime.stream import PriceStreamManager

        mgr = PriceStreamManager(max_history=3)
        await mgr.broadcast_prices([_tick("BTC", float(i)) for i in range(5)])
        await mgr.broadcast_auto_trade("ETH", {"success": True})

        recent = mgr.get_recent_events(limit=10)
        assert len(recent) == 3
        assert recent[-1]["event"] == "auto_trade"
        assert [e["data"]["price"] for e in mgr.get_recent_events(symbol="btc")] == [3.0, 4.0]


# =====================================================================
# PriceFeedClient
# =====================================================================

class TestPriceFeedClient:
    """Run loop of a feed against a scripted socket."""

    @pytest.mark.asyncio
    async def test_subscribes_and_delivers_ticks(self):
        from tickerdesk.infrastructure.trading.kraken_feed import KrakenPriceFeed

        frames = [
            json.dumps({"channel": "heartbeat"}),
            json.dumps({"channel": "ticker", "type": "update", "data": [{"symbol": "XBT/USD", "last": 10.0}]}),
        ]
        socket = FakeSocket(frames)
        received: list[list[PriceTick]] = []

        async def on_ticks(ticks):
            received.append(ticks)
            await feed.stop()

        feed = KrakenPriceFeed("wss://kraken.test", ["btc"], on_ticks, connect=lambda url, **kw: socket)
        await asyncio.wait_for(feed.start(), timeout=2)

        assert socket.sent == [
            {"method": "subscribe", "params": {"channel": "ticker", "symbol": ["XBT/USD"]}}
        ]
        assert received[0][0].symbol == "BTC"
        assert feed.messages_received == 2
        assert socket.closed

    @pytest.mark.asyncio
    async def test_reconnects_after_connection_error(self):
        from tickerdesk.infrastructure.trading.kraken_feed import KrakenPriceFeed

        attempts = []
        socket = FakeSocket([json.dumps({"channel": "ticker", "type": "update", "data": [{"symbol": "ETH/USD", "last": 5.0}]})])

        def connect(url, **kwargs):
            attempts.append(url)
            if len(attempts) == 1:
                raise OSError("refused")
            return socket

        async def on_ticks(ticks):
            await feed.stop()

        feed = KrakenPriceFeed(
            "wss://kraken.test", ["ETH"], on_ticks, reconnect_delay=0.01, connect=connect
        )
        await asyncio.wait_for(feed.start(), timeout=2)

        assert len(attempts) == 2
        assert feed.reconnect_count == 0


# =====================================================================
# MarketDataSupervisor
# =====================================================================

class TestMarketDataSupervisor:
    """Tests for the tick pipeline and auto-trade throttling."""

    class Clock:
        def __init__(self) -> None:
            self.now = 100.0

        def __call__(self) -> float:
            return self.now

    def _supervisor(self, clock=None, finnhub_key=None, connect=None):
        from tickerdesk.infrastructure.trading.price_book import InMemoryPriceBook
        from tickerdesk.realtime.stream import PriceStreamManager
        from tickerdesk.realtime.supervisor import MarketDataSupervisor

        book = InMemoryPriceBook()
        auto = MagicMock()
        auto.process_ticks_for_all_users.return_value = [
            AutoTradeResult(success=True, message="ok", crypto_id="c1", symbol="BTC", action="buy"),
            AutoTradeResult(success=False, message="skipped", crypto_id="c2", symbol="ETH"),
        ]
        supervisor = MarketDataSupervisor(
            price_book=book,
            stream=PriceStreamManager(snapshot=book.snapshot),
            record_history=MagicMock(),
            process_auto_trades=auto,
            crypto_symbols=lambda: ["BTC"],
            stock_symbols=lambda: ["AAPL"],
            kraken_url="wss://kraken.test",
            finnhub_base_url="wss://finnhub.test",
            finnhub_api_key=finnhub_key,
            reconnect_delay=0.01,
            auto_trade_check_seconds=10,
            connect=connect,
            clock=clock or self.Clock(),
        )
        return supervisor, book, auto

    @pytest.mark.asyncio
    async def test_crypto_ticks_flow_through_pipeline(self):
        supervisor, book, auto = self._supervisor()

        await supervisor.on_crypto_ticks([_tick("BTC", 10.0)])
        await supervisor.wait_for_auto_trades()

        assert book.get_price("BTC") == 10.0
        supervisor._record_history.record_ticks.assert_called_once()
        assert supervisor._record_history.record_ticks.call_args.args[1] is AssetClass.CRYPTO
        auto.process_ticks_for_all_users.assert_called_once_with({"BTC": 10.0})
        assert supervisor.auto_trade_passes == 1
        events = supervisor._stream.get_recent_events()
        assert [e["event"] for e in events] == ["price", "auto_trade"]
        assert events[-1]["data"]["crypto_id"] == "c1"

    @pytest.mark.asyncio
    async def test_auto_trades_throttled_per_symbol(self):
        clock = self.Clock()
        supervisor, _, auto = self._supervisor(clock=clock)

        await supervisor.on_crypto_ticks([_tick("BTC", 10.0)])
        await supervisor.wait_for_auto_trades()
        clock.now += 5
        await supervisor.on_crypto_ticks([_tick("BTC", 11.0)])
        await supervisor.wait_for_auto_trades()
        assert auto.process_ticks_for_all_users.call_count == 1

        await supervisor.on_crypto_ticks([_tick("ETH", 3.0)])
        await supervisor.wait_for_auto_trades()
        assert auto.process_ticks_for_all_users.call_count == 2

        clock.now += 10
        await supervisor.on_crypto_ticks([_tick("BTC", 12.0)])
        await supervisor.wait_for_auto_trades()
        assert auto.process_ticks_for_all_users.call_count == 3

    @pytest.mark.asyncio
    async def test_stock_ticks_never_auto_trade(self):
        supervisor, book, auto = self._supervisor()
        await supervisor.on_stock_ticks([_tick("AAPL", 190.0)])
        assert book.get_price("AAPL") == 190.0
        assert supervisor._record_history.record_ticks.call_args.args[1] is AssetClass.STOCK
        auto.process_ticks_for_all_users.assert_not_called()

    @pytest.mark.asyncio
    async def test_failures_do_not_break_pipeline(self):
        supervisor, book, auto = self._supervisor()
        supervisor._record_history.record_ticks.side_effect = RuntimeError("db down")
        auto.process_ticks_for_all_users.side_effect = RuntimeError("boom")

        await supervisor.on_crypto_ticks([_tick("BTC", 10.0)])
        await supervisor.wait_for_auto_trades()

        assert book.get_price("BTC") == 10.0
        assert supervisor.auto_trade_passes == 0
        assert supervisor.auto_trade_in_flight is False

    @pytest.mark.asyncio
    async def test_slow_auto_trade_pass_does_not_hold_up_ticks(self):
        supervisor, book, auto = self._supervisor()
        release = threading.Event()
        results = auto.process_ticks_for_all_users.return_value

        def slow_pass(prices):
            release.wait(timeout=5)
            return results

        auto.process_ticks_for_all_users.side_effect = slow_pass

        started = time.monotonic()
        await supervisor.on_crypto_ticks([_tick("BTC", 10.0)])
        await supervisor.on_crypto_ticks([_tick("BTC", 10.5), _tick("ETH", 3.0)])
        elapsed = time.monotonic() - started

        assert elapsed < 0.5
        assert book.get_price("BTC") == 10.5
        assert book.get_price("ETH") == 3.0
        assert supervisor.auto_trade_in_flight is True

        release.set()
        await supervisor.wait_for_auto_trades()

        # ETH arrived while the first pass was running and was not scheduled.
        auto.process_ticks_for_all_users.assert_called_once_with({"BTC": 10.0})
        assert supervisor.auto_trade_passes == 1
        assert supervisor.auto_trade_in_flight is False

        await supervisor.on_crypto_ticks([_tick("ETH", 3.1)])
        await supervisor.wait_for_auto_trades()
        assert auto.process_ticks_for_all_users.call_args.args[0] == {"ETH": 3.1}

    @pytest.mark.asyncio
    async def test_stop_waits_for_pass_in_flight(self):
        supervisor, _, auto = self._supervisor()
        release = threading.Event()
        results = auto.process_ticks_for_all_users.return_value

        def slow_pass(prices):
            release.wait(timeout=5)
            return results

        auto.process_ticks_for_all_users.side_effect = slow_pass
        await supervisor.on_crypto_ticks([_tick("BTC", 10.0)])
        release.set()
        await supervisor.stop()

        assert supervisor.auto_trade_in_flight is False
        assert supervisor.auto_trade_passes == 1

    def test_status_before_start(self):
        supervisor, _, _ = self._supervisor()
        status = supervisor.status()
        assert status["running"] is False
        assert status["feeds"] == []
        assert status["stream"]["active_connections"] == 0

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        connect = lambda url, **kw: FakeSocket([])
        supervisor, _, _ = self._supervisor(connect=connect)

        await supervisor.start()
        status = supervisor.status()
        assert status["running"] is True
        assert [f["name"] for f in status["feeds"]] == ["kraken"]
        assert status["feeds"][0]["symbols"] == ["BTC"]

        await supervisor.stop()
        assert supervisor.status()["running"] is False

    @pytest.mark.asyncio
    async def test_finnhub_feed_needs_key(self):
        connect = lambda url, **kw: FakeSocket([])
        supervisor, _, _ = self._supervisor(finnhub_key="secret", connect=connect)

        await supervisor.start()
        feeds = supervisor.status()["feeds"]
        await supervisor.stop()

        assert [f["name"] for f in feeds] == ["kraken", "finnhub"]
        assert feeds[1]["symbols"] == ["AAPL"]

    @pytest.mark.asyncio
    async def test_refresh_symbols(self):
        connect = lambda url, **kw: FakeSocket([])
        supervisor, _, _ = self._supervisor(connect=connect)
        await supervisor.start()

        supervisor._crypto_symbols = lambda: ["BTC", "SOL"]
        await supervisor.refresh_symbols()
        symbols = supervisor.status()["feeds"][0]["symbols"]
        await supervisor.stop()

        assert symbols == ["BTC", "SOL"]
