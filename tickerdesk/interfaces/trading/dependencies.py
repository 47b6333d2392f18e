"""
Dependency injection for the trading bounded context.

TradingContainer owns the long-lived objects (session factory, price
book, exchange client, auth adapter, lock service, stream manager) and
builds use cases from them by constructor injection. The FastAPI
dependency functions below read the container from app.state; this is
the composition root for the trading context.
"""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.application.trading.analyze_trend import AnalyzeTrendUseCase
from tickerdesk.application.trading.auto_trade_journal import AutoTradeJournal
from tickerdesk.application.trading.auto_trade_lock import AutoTradeLockService
from tickerdesk.application.trading.execute_order import ExecuteOrderUseCase
from tickerdesk.application.trading.get_ai_decision_data import GetAIDecisionDataUseCase
from tickerdesk.application.trading.manage_cryptos import ManageCryptosUseCase
from tickerdesk.application.trading.manage_settings import ManageSettingsUseCase
from tickerdesk.application.trading.manage_stocks import ManageStocksUseCase
from tickerdesk.application.trading.process_auto_trades import ProcessAutoTradesUseCase
from tickerdesk.application.trading.record_price_history import RecordPriceHistoryUseCase
from tickerdesk.application.trading.run_technical_analysis import RunTechnicalAnalysisUseCase
from tickerdesk.application.trading.trading_signals import TradingSignalsUseCase
from tickerdesk.core.config import Settings as AppSettings
from tickerdesk.core.config import settings as app_settings
from tickerdesk.domain.trading.entities import UserAccount
from tickerdesk.domain.trading.errors import UnauthorizedError
from tickerdesk.domain.trading.ports import AuthPort, ExchangeOrderPort
from tickerdesk.infrastructure.db.session import build_engine, build_session_factory
from tickerdesk.infrastructure.trading.auto_trade_lock_repository import (
    SqlAutoTradeLockRepository,
)
from tickerdesk.infrastructure.trading.auto_trade_settings_repository import (
    SqlAutoTradeSettingsRepository,
)
from tickerdesk.infrastructure.trading.crypto_repository import SqlCryptoRepository
from tickerdesk.infrastructure.trading.kraken_order_client import KrakenOrderClient
from tickerdesk.infrastructure.trading.price_book import InMemoryPriceBook
from tickerdesk.infrastructure.trading.price_history_repository import (
    SqlPriceHistoryRepository,
)
from tickerdesk.infrastructure.trading.settings_repository import SqlSettingsRepository
from tickerdesk.infrastructure.trading.stock_repository import SqlStockRepository
from tickerdesk.infrastructure.trading.supabase_auth import SupabaseAuthAdapter
from tickerdesk.infrastructure.trading.technical_analysis_repository import (
    SqlTechnicalAnalysisRepository,
)
from tickerdesk.infrastructure.trading.trading_signal_repository import (
    SqlTradingSignalRepository,
)
from tickerdesk.infrastructure.trading.transaction_repository import (
    SqlCryptoTransactionRepository,
    SqlStockTransactionRepository,
)
from tickerdesk.infrastructure.trading.user_account_repository import (
    SqlUserAccountRepository,
)
from tickerdesk.realtime.stream import PriceStreamManager
from tickerdesk.realtime.supervisor import MarketDataSupervisor


class TradingContainer:
    """Wires adapters into use cases.

    Repositories are stateless and shared. The lock service, price book,
    history sampler and stream manager hold process state and must be
    singletons, which is why they live here rather than in a request
    dependency.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        exchange: ExchangeOrderPort,
        auth: AuthPort,
        price_book: Optional[InMemoryPriceBook] = None,
        config: AppSettings = app_settings,
    ) -> None:
        self.config = config
        self.session_factory = session_factory
        self.exchange = exchange
        self.auth = auth
        self.price_book = price_book or InMemoryPriceBook()
        self.stream = PriceStreamManager(snapshot=self.price_book.snapshot)

        self.accounts = SqlUserAccountRepository(session_factory)
        self.stocks = SqlStockRepository(session_factory)
        self.cryptos = SqlCryptoRepository(session_factory)
        self.auto_settings = SqlAutoTradeSettingsRepository(session_factory)
        self.settings = SqlSettingsRepository(session_factory)
        self.crypto_transactions = SqlCryptoTransactionRepository(session_factory)
        self.stock_transactions = SqlStockTransactionRepository(session_factory)
        self.locks = SqlAutoTradeLockRepository(session_factory)
        self.price_history = SqlPriceHistoryRepository(session_factory)
        self.analyses = SqlTechnicalAnalysisRepository(session_factory)
        self.signals = SqlTradingSignalRepository(session_factory)

        self.journal = AutoTradeJournal(self.crypto_transactions)
        self.lock_service = AutoTradeLockService(
            self.locks, self.journal, expiry_seconds=config.auto_trade_lock_expiry_seconds
        )
        self.record_history = RecordPriceHistoryUseCase(
            self.price_history, sample_seconds=config.price_history_sample_seconds
        )
        self.supervisor: Optional[MarketDataSupervisor] = None

    @property
    def engine(self) -> Engine:
        return self.session_factory.kw["bind"]

    def build_supervisor(self) -> MarketDataSupervisor:
        """Feed supervisor wired to this container's price book and stream."""
        return MarketDataSupervisor(
            price_book=self.price_book,
            stream=self.stream,
            record_history=self.record_history,
            process_auto_trades=self.process_auto_trades(),
            crypto_symbols=self.cryptos.list_symbols,
            stock_symbols=self.stocks.list_tickers,
            kraken_url=self.config.kraken_websocket_url,
            finnhub_base_url=self.config.finnhub_websocket_url,
            finnhub_api_key=self.config.finnhub_api_key,
            reconnect_delay=self.config.feed_reconnect_delay_seconds,
            max_reconnect_delay=self.config.feed_max_reconnect_delay_seconds,
            auto_trade_check_seconds=self.config.auto_trade_check_seconds,
            symbol_refresh_seconds=self.config.symbol_refresh_seconds,
        )

    def manage_stocks(self) -> ManageStocksUseCase:
        return ManageStocksUseCase(
            stock_repo=self.stocks,
            transaction_repo=self.stock_transactions,
            settings_repo=self.settings,
            price_quotes=self.price_book,
        )

    def manage_cryptos(self) -> ManageCryptosUseCase:
        return ManageCryptosUseCase(
            crypto_repo=self.cryptos,
            auto_settings_repo=self.auto_settings,
            transaction_repo=self.crypto_transactions,
            settings_repo=self.settings,
            account_repo=self.accounts,
            price_quotes=self.price_book,
        )

    def manage_settings(self) -> ManageSettingsUseCase:
        return ManageSettingsUseCase(settings_repo=self.settings)

    def execute_order(self) -> ExecuteOrderUseCase:
        return ExecuteOrderUseCase(
            settings_repo=self.settings,
            crypto_repo=self.cryptos,
            transaction_repo=self.crypto_transactions,
            exchange=self.exchange,
        )

    def process_auto_trades(self) -> ProcessAutoTradesUseCase:
        return ProcessAutoTradesUseCase(
            settings_repo=self.settings,
            crypto_repo=self.cryptos,
            auto_settings_repo=self.auto_settings,
            execute_order=self.execute_order(),
            lock_service=self.lock_service,
            journal=self.journal,
            default_buy_value=self.config.default_auto_buy_value,
        )

    def run_technical_analysis(self) -> RunTechnicalAnalysisUseCase:
        return RunTechnicalAnalysisUseCase(
            price_history_repo=self.price_history,
            analysis_repo=self.analyses,
            window=self.config.technical_analysis_window,
            retry_attempts=self.config.db_retry_attempts,
            retry_base_delay=self.config.db_retry_base_delay,
        )

    def analyze_trend(self) -> AnalyzeTrendUseCase:
        return AnalyzeTrendUseCase(
            price_history_repo=self.price_history, window=self.config.trend_analysis_window
        )

    def trading_signals(self) -> TradingSignalsUseCase:
        return TradingSignalsUseCase(
            signal_repo=self.signals,
            crypto_repo=self.cryptos,
            analysis_repo=self.analyses,
            price_quotes=self.price_book,
        )

    def ai_decision_data(self) -> GetAIDecisionDataUseCase:
        return GetAIDecisionDataUseCase(
            analysis_repo=self.analyses,
            price_history_repo=self.price_history,
            price_quotes=self.price_book,
            history_limit=self.config.technical_analysis_window,
        )


def build_container(config: AppSettings = app_settings) -> TradingContainer:
    """Build the production container from application settings."""
    engine = build_engine(config.get_database_url(), echo=config.db_echo)
    return TradingContainer(
        session_factory=build_session_factory(engine),
        exchange=KrakenOrderClient(
            base_url=config.kraken_api_url, timeout=config.order_timeout_seconds
        ),
        auth=SupabaseAuthAdapter(
            base_url=config.supabase_url,
            anon_key=config.supabase_anon_key,
            timeout=config.auth_timeout_seconds,
        ),
        config=config,
    )


# ----------------------------------------------------------------------
# FastAPI dependencies
# ----------------------------------------------------------------------


def get_container(request: Request) -> TradingContainer:
    return request.app.state.container


def get_current_user(
    request: Request, container: TradingContainer = Depends(get_container)
) -> UserAccount:
    """Resolve the bearer token to a user, creating their account row on first sight."""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError()
    user = container.auth.get_user(token.strip())
    return container.accounts.get_or_create(user.id, user.email)


def get_manage_stocks_use_case(
    container: TradingContainer = Depends(get_container),
) -> ManageStocksUseCase:
    return container.manage_stocks()


def get_manage_cryptos_use_case(
    container: TradingContainer = Depends(get_container),
) -> ManageCryptosUseCase:
    return container.manage_cryptos()


def get_manage_settings_use_case(
    container: TradingContainer = Depends(get_container),
) -> ManageSettingsUseCase:
    return container.manage_settings()


def get_execute_order_use_case(
    container: TradingContainer = Depends(get_container),
) -> ExecuteOrderUseCase:
    return container.execute_order()


def get_process_auto_trades_use_case(
    container: TradingContainer = Depends(get_container),
) -> ProcessAutoTradesUseCase:
    return container.process_auto_trades()


def get_run_technical_analysis_use_case(
    container: TradingContainer = Depends(get_container),
) -> RunTechnicalAnalysisUseCase:
    return container.run_technical_analysis()


def get_analyze_trend_use_case(
    container: TradingContainer = Depends(get_container),
) -> AnalyzeTrendUseCase:
    return container.analyze_trend()


def get_trading_signals_use_case(
    container: TradingContainer = Depends(get_container),
) -> TradingSignalsUseCase:
    return container.trading_signals()


def get_ai_decision_data_use_case(
    container: TradingContainer = Depends(get_container),
) -> GetAIDecisionDataUseCase:
    return container.ai_decision_data()


def get_record_price_history_use_case(
    container: TradingContainer = Depends(get_container),
) -> RecordPriceHistoryUseCase:
    return container.record_history


def get_price_book(container: TradingContainer = Depends(get_container)) -> InMemoryPriceBook:
    return container.price_book
