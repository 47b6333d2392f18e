"""
Tests for infrastructure adapters.

Repositories run against in-memory SQLite. The Kraken and auth HTTP
clients run against httpx.MockTransport; feed parsers get raw frames.
"""

import base64
import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlencode

import httpx
import pytest

from tickerdesk.domain.trading.entities import (
    AssetClass,
    AutoTradeLock,
    AutoTradeSettings,
    Crypto,
    CryptoTransaction,
    ExchangeCredentials,
    OrderRequest,
    PricePoint,
    PriceTick,
    Settings,
    SignalDirection,
    SignalStatus,
    SignalType,
    Stock,
    TradeAction,
    TradingSignal,
    TransactionAction,
)
from tickerdesk.domain.trading.errors import (
    ExchangeOrderError,
    ExchangeUnavailableError,
    UnauthorizedError,
)
from tickerdesk.infrastructure.trading.auto_trade_lock_repository import (
    SqlAutoTradeLockRepository,
)
from tickerdesk.infrastructure.trading.auto_trade_settings_repository import (
    SqlAutoTradeSettingsRepository,
)
from tickerdesk.infrastructure.trading.crypto_repository import SqlCryptoRepository
from tickerdesk.infrastructure.trading.finnhub_feed import FinnhubPriceFeed, parse_finnhub_message
from tickerdesk.infrastructure.trading.kraken_feed import (
    KrakenPriceFeed,
    from_kraken_symbol,
    kraken_trading_pair,
    parse_kraken_message,
    to_kraken_symbol,
)
from tickerdesk.infrastructure.trading.kraken_order_client import (
    KrakenOrderClient,
    classify_error,
    format_decimal,
    sign_request,
)
from tickerdesk.infrastructure.trading.price_book import InMemoryPriceBook
from tickerdesk.infrastructure.trading.price_history_repository import (
    SqlPriceHistoryRepository,
)
from tickerdesk.infrastructure.trading.settings_repository import SqlSettingsRepository
from tickerdesk.infrastructure.trading.stock_repository import SqlStockRepository
from tickerdesk.infrastructure.trading.supabase_auth import SupabaseAuthAdapter
from tickerdesk.infrastructure.trading.trading_signal_repository import (
    SqlTradingSignalRepository,
)
from tickerdesk.infrastructure.trading.transaction_repository import (
    SqlCryptoTransactionRepository,
)
from tickerdesk.infrastructure.trading.user_account_repository import (
    SqlUserAccountRepository,
)

USER_ID = "user-1"
SECRET = base64.b64encode(b"kraken-secret").decode()
T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


def _crypto(crypto_id: str, symbol: str, **kwargs) -> Crypto:
    return Crypto(id=crypto_id, user_id=USER_ID, symbol=symbol, purchase_price=100.0, **kwargs)


# =====================================================================
# Repositories
# =====================================================================


class TestHoldingRepositories:
    def test_stocks_listed_by_priority(self, session_factory) -> None:
        repo = SqlStockRepository(session_factory)
        repo.add(Stock(id="s1", user_id=USER_ID, ticker="AAPL", purchase_price=10.0, priority=1))
        repo.add(Stock(id="s2", user_id=USER_ID, ticker="MSFT", purchase_price=10.0, priority=0))
        repo.add(Stock(id="s3", user_id="someone", ticker="TSLA", purchase_price=10.0))

        assert [s.ticker for s in repo.list_for_user(USER_ID)] == ["MSFT", "AAPL"]
        assert repo.max_priority(USER_ID) == 1
        assert repo.max_priority("nobody") == -1
        assert repo.list_tickers() == ["AAPL", "MSFT", "TSLA"]

    def test_stock_lookup_is_scoped_to_user(self, session_factory) -> None:
        repo = SqlStockRepository(session_factory)
        repo.add(Stock(id="s1", user_id=USER_ID, ticker="AAPL", purchase_price=10.0))
        assert repo.get("someone", "s1") is None
        assert not repo.delete("someone", "s1")
        assert repo.delete(USER_ID, "s1")

    def test_crypto_reorder(self, session_factory) -> None:
        repo = SqlCryptoRepository(session_factory)
        repo.add(_crypto("c1", "BTC", priority=0))
        repo.add(_crypto("c2", "ETH", priority=1))
        repo.reorder(USER_ID, ["c2", "c1"])
        assert [c.symbol for c in repo.list_for_user(USER_ID)] == ["ETH", "BTC"]

    def test_crypto_carries_auto_trade_settings(self, session_factory) -> None:
        cryptos = SqlCryptoRepository(session_factory)
        settings = SqlAutoTradeSettingsRepository(session_factory)
        cryptos.add(_crypto("c1", "BTC", auto_buy=True))
        cryptos.add(_crypto("c2", "ETH"))
        settings.save(AutoTradeSettings(crypto_id="c1", shares_amount=0.5))

        loaded = cryptos.get(USER_ID, "c1")
        assert loaded.auto_trade_settings is not None
        assert loaded.auto_trade_settings.shares_amount == 0.5
        assert [c.id for c in cryptos.list_auto_trade_candidates(USER_ID)] == ["c1"]

    def test_auto_trade_settings_upsert(self, session_factory) -> None:
        SqlCryptoRepository(session_factory).add(_crypto("c1", "BTC"))
        repo = SqlAutoTradeSettingsRepository(session_factory)
        first = repo.save(AutoTradeSettings(crypto_id="c1", next_action=TradeAction.BUY))
        second = repo.save(AutoTradeSettings(crypto_id="c1", next_action=TradeAction.SELL))
        assert first.id == second.id
        assert repo.get("c1").next_action is TradeAction.SELL

    def test_deleting_crypto_removes_settings(self, session_factory) -> None:
        cryptos = SqlCryptoRepository(session_factory)
        settings = SqlAutoTradeSettingsRepository(session_factory)
        cryptos.add(_crypto("c1", "BTC"))
        settings.save(AutoTradeSettings(crypto_id="c1"))
        assert cryptos.delete(USER_ID, "c1")
        assert settings.get("c1") is None


class TestAccountAndSettingsRepositories:
    def test_balance_never_negative(self, session_factory) -> None:
        repo = SqlUserAccountRepository(session_factory)
        assert repo.set_balance(USER_ID, -5.0).usd_balance == 0.0
        assert repo.set_balance(USER_ID, 25.0).usd_balance == 25.0

    def test_get_or_create_updates_email(self, session_factory) -> None:
        repo = SqlUserAccountRepository(session_factory)
        repo.get_or_create(USER_ID)
        assert repo.get_or_create(USER_ID, "a@b.c").email == "a@b.c"

    def test_settings_round_trip_and_auto_users(self, session_factory) -> None:
        repo = SqlSettingsRepository(session_factory)
        repo.save(Settings(user_id=USER_ID, enable_auto_crypto_trading=True, kraken_api_key="k"))
        repo.save(Settings(user_id="other"))
        assert repo.get(USER_ID).kraken_api_key == "k"
        assert repo.list_auto_crypto_user_ids() == [USER_ID]


class TestTransactionRepository:
    def test_newest_first_and_filtered(self, session_factory) -> None:
        repo = SqlCryptoTransactionRepository(session_factory)
        for index, crypto_id in enumerate(["c1", "c2", "c1"]):
            repo.add(
                CryptoTransaction(
                    id=f"t{index}",
                    user_id=USER_ID,
                    crypto_id=crypto_id,
                    symbol="BTC",
                    action=TransactionAction.BUY,
                    shares=1.0,
                    price=10.0,
                    total_amount=10.0,
                    log_info={"n": index},
                    created_at=T0 + timedelta(minutes=index),
                )
            )
        assert [t.id for t in repo.list_for_user(USER_ID)] == ["t2", "t1", "t0"]
        assert [t.id for t in repo.list_for_user(USER_ID, crypto_id="c1")] == ["t2", "t0"]
        assert repo.list_for_user(USER_ID, limit=1)[0].log_info == {"n": 2}

    @staticmethod
    def _fill(total: float) -> CryptoTransaction:
        return CryptoTransaction(
            id="fill-1",
            user_id=USER_ID,
            crypto_id="c1",
            symbol="BTC",
            action=TransactionAction.BUY,
            shares=1.0,
            price=total,
            total_amount=total,
            created_at=T0,
        )

    def test_record_fill_books_every_change(self, session_factory) -> None:
        cryptos = SqlCryptoRepository(session_factory)
        auto = SqlAutoTradeSettingsRepository(session_factory)
        accounts = SqlUserAccountRepository(session_factory)
        cryptos.add(_crypto("c1", "BTC", shares=1.0, auto_buy=True))
        auto.save(AutoTradeSettings(crypto_id="c1", enable_continuous_trading=True))
        accounts.set_balance(USER_ID, 50.0)
        position = replace(cryptos.get(USER_ID, "c1"), shares=2.0, auto_buy=False, auto_sell=True)

        row = SqlCryptoTransactionRepository(session_factory).record_fill(
            self._fill(80.0),
            position=position,
            balance_delta=-80.0,
            auto_settings=replace(auto.get("c1"), next_action=TradeAction.SELL),
        )

        assert row.id == "fill-1"
        stored = cryptos.get(USER_ID, "c1")
        assert stored.shares == 2.0
        assert stored.auto_sell and not stored.auto_buy
        assert stored.auto_trade_settings.next_action is TradeAction.SELL
        assert accounts.get_or_create(USER_ID).usd_balance == 0.0

    def test_record_fill_for_missing_position_writes_nothing(self, session_factory) -> None:
        repo = SqlCryptoTransactionRepository(session_factory)
        accounts = SqlUserAccountRepository(session_factory)
        accounts.set_balance(USER_ID, 50.0)

        with pytest.raises(LookupError):
            repo.record_fill(self._fill(10.0), position=_crypto("c1", "BTC"), balance_delta=10.0)

        assert repo.list_for_user(USER_ID) == []
        assert accounts.get_or_create(USER_ID).usd_balance == 50.0


class TestAutoTradeLockRepository:
    def _lock(self, locked_at: datetime, by: str = "a") -> AutoTradeLock:
        return AutoTradeLock(
            crypto_id="c1", symbol="BTC", locked_at=locked_at, locked_by=by, action=TradeAction.BUY
        )

    def test_second_acquire_fails_until_release(self, session_factory) -> None:
        repo = SqlAutoTradeLockRepository(session_factory)
        assert repo.try_acquire(self._lock(T0), 300)
        assert not repo.try_acquire(self._lock(T0 + timedelta(seconds=10), "b"), 300)
        assert repo.release("c1")
        assert repo.try_acquire(self._lock(T0 + timedelta(seconds=20), "b"), 300)
        assert repo.get("c1").locked_by == "b"

    def test_expired_lock_is_taken_over(self, session_factory) -> None:
        repo = SqlAutoTradeLockRepository(session_factory)
        assert repo.try_acquire(self._lock(T0), 300)
        assert repo.try_acquire(self._lock(T0 + timedelta(seconds=301), "b"), 300)
        assert repo.get("c1").locked_by == "b"

    def test_release_without_row(self, session_factory) -> None:
        assert not SqlAutoTradeLockRepository(session_factory).release("missing")

    def test_clear_older_than(self, session_factory) -> None:
        repo = SqlAutoTradeLockRepository(session_factory)
        repo.try_acquire(self._lock(T0), 300)
        assert repo.clear_older_than(T0 + timedelta(seconds=1)) == 1
        assert repo.get("c1") is None


class TestPriceHistoryRepository:
    def test_recent_is_oldest_first(self, session_factory) -> None:
        repo = SqlPriceHistoryRepository(session_factory)
        repo.add_batch(
            [
                PricePoint(symbol="BTC", price=float(i), timestamp=T0 + timedelta(minutes=i))
                for i in range(1, 6)
            ]
        )
        assert [p.price for p in repo.recent("BTC", limit=3)] == [3.0, 4.0, 5.0]
        assert repo.recent("ETH") == []

    def test_latest_before(self, session_factory) -> None:
        repo = SqlPriceHistoryRepository(session_factory)
        repo.add_batch(
            [
                PricePoint(symbol="AAPL", price=1.0, timestamp=T0, asset_class=AssetClass.STOCK),
                PricePoint(symbol="AAPL", price=2.0, timestamp=T0 + timedelta(hours=2)),
            ]
        )
        point = repo.latest_before("AAPL", T0 + timedelta(hours=1))
        assert point.price == 1.0
        assert point.asset_class is AssetClass.STOCK
        assert point.timestamp == T0
        assert repo.latest_before("AAPL", T0 - timedelta(hours=1)) is None


def _signal(symbol: str = "BTC", **kwargs) -> TradingSignal:
    values = dict(
        user_id=USER_ID,
        symbol=symbol,
        signal_type=SignalType.ENTRY,
        price=100.0,
        reason="test",
        direction=SignalDirection.LONG,
    )
    values.update(kwargs)
    return TradingSignal(**values)


class TestTradingSignalRepository:
    def test_list_filters_and_counts(self, session_factory) -> None:
        repo = SqlTradingSignalRepository(session_factory)
        for minute in range(3):
            repo.add(_signal(timestamp=T0 + timedelta(minutes=minute)))
        repo.add(_signal("ETH"))
        repo.add(_signal(user_id="someone-else"))

        signals, total = repo.list_for_user(USER_ID, symbol="BTC", limit=2)
        assert total == 3
        assert len(signals) == 2
        assert signals[0].timestamp == T0 + timedelta(minutes=2)

        signals, total = repo.list_for_user(USER_ID, symbol="BTC", limit=2, offset=2)
        assert [s.timestamp for s in signals] == [T0]
        assert total == 3

        _, total = repo.list_for_user(USER_ID, signal_type=SignalType.EXIT)
        assert total == 0

    def test_open_entries_exclude_exited_and_inactive(self, session_factory) -> None:
        repo = SqlTradingSignalRepository(session_factory)
        exited = repo.add(_signal(timestamp=T0))
        open_ = repo.add(_signal(timestamp=T0 + timedelta(minutes=1)))
        repo.add(_signal(status=SignalStatus.CANCELLED))
        repo.add(
            _signal(signal_type=SignalType.EXIT, direction=None, related_signal_id=exited.id)
        )

        assert [s.id for s in repo.open_entries(USER_ID, "BTC")] == [open_.id]
        assert repo.open_entries(USER_ID, "ETH") == []

    def test_update_status_is_scoped_to_user(self, session_factory) -> None:
        repo = SqlTradingSignalRepository(session_factory)
        saved = repo.add(_signal())

        assert repo.update_status("someone-else", saved.id, SignalStatus.EXECUTED) is None
        assert repo.get(USER_ID, saved.id).status is SignalStatus.ACTIVE

        updated = repo.update_status(USER_ID, saved.id, SignalStatus.EXECUTED, executed_at=T0)
        assert updated.status is SignalStatus.EXECUTED
        assert updated.executed_at == T0
        assert repo.update_status(USER_ID, "missing", SignalStatus.EXPIRED) is None


class TestPriceBook:
    def test_snapshot_is_a_copy(self) -> None:
        book = InMemoryPriceBook()
        book.update_many([PriceTick(symbol="btc", price=10.0)])
        snapshot = book.snapshot()
        snapshot["BTC"] = 0.0
        assert book.get_price("BTC") == 10.0


# =====================================================================
# Kraken REST client
# =====================================================================


def _client(handler) -> KrakenOrderClient:
    return KrakenOrderClient(
        base_url="https://kraken.test",
        transport=httpx.MockTransport(handler),
        nonce_factory=lambda: "1700000000000",
    )


ORDER = OrderRequest(symbol="BTC", action=TradeAction.BUY, volume=0.5, price=40000.0)
CREDENTIALS = ExchangeCredentials(api_key="key", api_secret=SECRET)


class TestKrakenOrderClient:
    def test_successful_order_is_signed(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"error": [], "result": {"txid": ["OABC-1"]}})

        receipt = _client(handler).add_order(CREDENTIALS, ORDER)

        assert receipt.order_id == "OABC-1"
        assert seen["path"] == "/0/private/AddOrder"
        assert seen["form"]["pair"] == ["XBTUSD"]
        assert seen["form"]["type"] == ["buy"]
        assert seen["headers"]["API-Key"] == "key"
        body = urlencode_from(seen["form"])
        assert seen["headers"]["API-Sign"] == sign_request(
            "/0/private/AddOrder", "1700000000000", body, SECRET
        )
        assert receipt.api_request["headers"]["API-Key"] == "[REDACTED]"

    def test_small_volume_sent_as_plain_decimal(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"error": [], "result": {"txid": ["OABC-2"]}})

        order = OrderRequest(
            symbol="BTC", action=TradeAction.BUY, volume=5 / 100000, price=100000.0
        )
        _client(handler).add_order(CREDENTIALS, order)

        assert seen["form"]["volume"] == ["0.00005"]
        assert seen["form"]["price"] == ["100000"]

    @pytest.mark.parametrize(
        "value, expected",
        [
            (5e-05, "0.00005"),
            (0.00000123, "0.00000123"),
            (1.5, "1.5"),
            (40000.0, "40000"),
            (0.123456789, "0.12345678"),
            (0.0, "0"),
        ],
    )
    def test_format_decimal(self, value, expected) -> None:
        assert format_decimal(value) == expected

    def test_rejection_is_classified(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": ["EOrder:Insufficient funds"]})

        with pytest.raises(ExchangeOrderError) as info:
            _client(handler).add_order(CREDENTIALS, ORDER)
        assert info.value.error_type == "insufficient_funds"
        assert info.value.api_response == {"error": ["EOrder:Insufficient funds"]}

    def test_http_error_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="down")

        with pytest.raises(ExchangeUnavailableError) as info:
            _client(handler).add_order(CREDENTIALS, ORDER)
        assert info.value.reason == "HTTP 503"

    def test_network_error_is_unavailable(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExchangeUnavailableError):
            _client(handler).add_order(CREDENTIALS, ORDER)

    def test_classify_unknown_error(self) -> None:
        assert classify_error(["EGeneral:Weird"], "fallback") == ("unknown", "fallback")
        assert classify_error(["EAPI:Invalid key"], "x")[0] == "unknown"
        assert classify_error(["EAPI:Invalid API key"], "x")[0] == "invalid_api_key"


def urlencode_from(form: dict[str, list[str]]) -> str:
    """Rebuild the submitted body in submission order."""
    order = ["nonce", "ordertype", "type", "volume", "pair", "price", "cl_ord_id"]
    return urlencode({key: form[key][0] for key in order})


# =====================================================================
# Auth adapter
# =====================================================================


class TestSupabaseAuthAdapter:
    def test_valid_token(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["Authorization"] == "Bearer good"
            assert request.headers["apikey"] == "anon"
            return httpx.Response(200, json={"id": "u1", "email": "a@b.c"})

        adapter = SupabaseAuthAdapter(
            "https://auth.test", anon_key="anon", transport=httpx.MockTransport(handler)
        )
        user = adapter.get_user("good")
        assert user.id == "u1"
        assert user.email == "a@b.c"

    def test_rejected_token(self) -> None:
        adapter = SupabaseAuthAdapter(
            "https://auth.test",
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={})),
        )
        with pytest.raises(UnauthorizedError):
            adapter.get_user("bad")

    def test_empty_token(self) -> None:
        with pytest.raises(UnauthorizedError):
            SupabaseAuthAdapter("https://auth.test").get_user("")

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>gateway</html>"),
            httpx.Response(200, json=[{"id": "u1"}]),
            httpx.Response(200, json="u1"),
            httpx.Response(200, json={"id": 42}),
        ],
        ids=["not-json", "list", "string", "numeric-id"],
    )
    def test_malformed_success_body_is_unauthorized(self, response) -> None:
        adapter = SupabaseAuthAdapter(
            "https://auth.test", transport=httpx.MockTransport(lambda request: response)
        )
        with pytest.raises(UnauthorizedError):
            adapter.get_user("good")


# =====================================================================
# Feed parsers
# =====================================================================


class TestKrakenFeed:
    def test_symbol_mapping(self) -> None:
        assert to_kraken_symbol("btc") == "XBT/USD"
        assert kraken_trading_pair("ETH") == "ETHUSD"
        assert from_kraken_symbol("XBT/USD") == "BTC"
        assert from_kraken_symbol("XBTUSD") == "BTC"
        assert from_kraken_symbol("SOL/USD") == "SOL"

    def test_v2_ticker_update(self) -> None:
        frame = json.dumps(
            {
                "channel": "ticker",
                "type": "update",
                "data": [{"symbol": "XBT/USD", "last": 42000.5, "volume": 12.0}],
            }
        )
        ticks = parse_kraken_message(frame)
        assert len(ticks) == 1
        assert ticks[0].symbol == "BTC"
        assert ticks[0].price == 42000.5
        assert ticks[0].volume == 12.0

    def test_v2_falls_back_to_mid_price(self) -> None:
        frame = {
            "channel": "ticker",
            "type": "snapshot",
            "data": [{"symbol": "ETH/USD", "bid": 99.0, "ask": 101.0}],
        }
        assert parse_kraken_message(frame)[0].price == 100.0

    def test_v1_array_frame(self) -> None:
        frame = json.dumps([42, {"c": ["3000.1", "0.5"], "v": ["10", "20"]}, "ticker", "ETH/USD"])
        ticks = parse_kraken_message(frame)
        assert ticks[0].symbol == "ETH"
        assert ticks[0].price == 3000.1
        assert ticks[0].volume == 20.0

    @pytest.mark.parametrize(
        "frame",
        [
            '{"channel": "heartbeat"}',
            '{"method": "subscribe", "success": true}',
            '{"event": "systemStatus"}',
            '{"channel": "ticker", "type": "update", "error": "boom"}',
            "not json",
        ],
    )
    def test_control_frames_yield_nothing(self, frame: str) -> None:
        assert parse_kraken_message(frame) == []

    def test_subscription_message(self) -> None:
        feed = KrakenPriceFeed("wss://kraken.test", [], on_ticks=None)
        assert feed.subscription_messages(["BTC", "ETH"]) == [
            {"method": "subscribe", "params": {"channel": "ticker", "symbol": ["XBT/USD", "ETH/USD"]}}
        ]
        assert feed.subscription_messages([]) == []


class TestFinnhubFeed:
    def test_trade_frame(self) -> None:
        frame = json.dumps(
            {"type": "trade", "data": [{"s": "aapl", "p": 190.5, "t": 1700000000000, "v": 3}]}
        )
        ticks = parse_finnhub_message(frame)
        assert ticks[0].symbol == "AAPL"
        assert ticks[0].price == 190.5
        assert ticks[0].timestamp == datetime.fromtimestamp(1700000000, tz=timezone.utc)

    def test_ping_and_bad_trades_ignored(self) -> None:
        assert parse_finnhub_message('{"type": "ping"}') == []
        frame = {"type": "trade", "data": [{"s": "AAPL", "p": 0}, {"p": 10}, "junk"]}
        assert parse_finnhub_message(frame) == []

    def test_subscription_messages(self) -> None:
        feed = FinnhubPriceFeed("wss://finnhub.test", ["aapl"], on_ticks=None)
        assert feed.symbols == {"AAPL"}
        assert feed.subscription_messages(["AAPL"]) == [{"type": "subscribe", "symbol": "AAPL"}]
