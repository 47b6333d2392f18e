"""
Port interfaces (ABCs) for the trading bounded context.

Ports define the contracts that the domain requires from the outside world.
Infrastructure adapters implement these interfaces.
The domain layer never depends on concrete implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from tickerdesk.domain.trading.entities import (
    AutoTradeLock,
    AutoTradeSettings,
    Crypto,
    CryptoTransaction,
    ExchangeCredentials,
    OrderReceipt,
    OrderRequest,
    PricePoint,
    Settings,
    Stock,
    StockTransaction,
    SignalStatus,
    SignalType,
    TechnicalAnalysis,
    TradingSignal,
    UserAccount,
)


class UserAccountRepository(ABC):
    """Port for user accounts and their USD balance."""

    @abstractmethod
    def get_or_create(self, user_id: str, email: Optional[str] = None) -> UserAccount:
        raise NotImplementedError

    @abstractmethod
    def set_balance(self, user_id: str, balance: float) -> UserAccount:
        raise NotImplementedError


class StockRepository(ABC):
    """Port for tracked stock positions. Lookups are scoped to one user."""

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[Stock]:
        """Return the user's stocks ordered by priority ascending."""
        raise NotImplementedError

    @abstractmethod
    def get(self, user_id: str, stock_id: str) -> Optional[Stock]:
        raise NotImplementedError

    @abstractmethod
    def get_by_ticker(self, user_id: str, ticker: str) -> Optional[Stock]:
        raise NotImplementedError

    @abstractmethod
    def list_tickers(self) -> list[str]:
        """Return every distinct ticker tracked by any user."""
        raise NotImplementedError

    @abstractmethod
    def max_priority(self, user_id: str) -> int:
        """Return the highest priority in use, or -1 when there is none."""
        raise NotImplementedError

    @abstractmethod
    def add(self, stock: Stock) -> Stock:
        raise NotImplementedError

    @abstractmethod
    def update(self, stock: Stock) -> Stock:
        raise NotImplementedError

    @abstractmethod
    def delete(self, user_id: str, stock_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def reorder(self, user_id: str, ordered_ids: list[str]) -> None:
        """Assign priorities 0..n-1 following the given id order."""
        raise NotImplementedError


class CryptoRepository(ABC):
    """Port for tracked crypto positions. Loaded cryptos carry their auto-trade settings."""

    @abstractmethod
    def list_for_user(self, user_id: str) -> list[Crypto]:
        raise NotImplementedError

    @abstractmethod
    def list_auto_trade_candidates(self, user_id: str) -> list[Crypto]:
        """Return cryptos with auto_buy or auto_sell enabled."""
        raise NotImplementedError

    @abstractmethod
    def get(self, user_id: str, crypto_id: str) -> Optional[Crypto]:
        raise NotImplementedError

    @abstractmethod
    def get_by_symbol(self, user_id: str, symbol: str) -> Optional[Crypto]:
        raise NotImplementedError

    @abstractmethod
    def list_symbols(self) -> list[str]:
        """Return every distinct symbol tracked by any user."""
        raise NotImplementedError

    @abstractmethod
    def max_priority(self, user_id: str) -> int:
        raise NotImplementedError

    @abstractmethod
    def add(self, crypto: Crypto) -> Crypto:
        raise NotImplementedError

    @abstractmethod
    def update(self, crypto: Crypto) -> Crypto:
        """Persist position fields; auto_trade_settings is ignored."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, user_id: str, crypto_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def reorder(self, user_id: str, ordered_ids: list[str]) -> None:
        raise NotImplementedError


class AutoTradeSettingsRepository(ABC):
    @abstractmethod
    def get(self, crypto_id: str) -> Optional[AutoTradeSettings]:
        raise NotImplementedError

    @abstractmethod
    def save(self, settings: AutoTradeSettings) -> AutoTradeSettings:
        """Insert or replace the settings row for settings.crypto_id."""
        raise NotImplementedError


class SettingsRepository(ABC):
    @abstractmethod
    def get(self, user_id: str) -> Optional[Settings]:
        raise NotImplementedError

    @abstractmethod
    def save(self, settings: Settings) -> Settings:
        raise NotImplementedError

    @abstractmethod
    def list_auto_crypto_user_ids(self) -> list[str]:
        """Return users with auto crypto trading enabled."""
        raise NotImplementedError


class CryptoTransactionRepository(ABC):
    @abstractmethod
    def add(self, transaction: CryptoTransaction) -> CryptoTransaction:
        raise NotImplementedError

    @abstractmethod
    def record_fill(
        self,
        transaction: CryptoTransaction,
        position: Crypto,
        balance_delta: float,
        auto_settings: Optional[AutoTradeSettings] = None,
    ) -> CryptoTransaction:
        """Book an exchange fill as one unit of work.

        Writes the fill row, the updated position, the USD balance change
        and, when given, the auto-trade settings. Either all of them are
        stored or none are.
        """
        raise NotImplementedError

    @abstractmethod
    def list_for_user(
        self, user_id: str, limit: int = 100, crypto_id: Optional[str] = None
    ) -> list[CryptoTransaction]:
        """Return transactions newest first."""
        raise NotImplementedError


class StockTransactionRepository(ABC):
    @abstractmethod
    def add(self, transaction: StockTransaction) -> StockTransaction:
        raise NotImplementedError

    @abstractmethod
    def list_for_user(self, user_id: str, limit: int = 100) -> list[StockTransaction]:
        raise NotImplementedError


class AutoTradeLockRepository(ABC):
    """Port for the database half of the auto-trade lock."""

    @abstractmethod
    def try_acquire(self, lock: AutoTradeLock, expiry_seconds: int) -> bool:
        """Insert or take over the lock row in a single transaction.

        Fails when a row for the same crypto exists and is younger than
        expiry_seconds relative to lock.locked_at.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, crypto_id: str) -> Optional[AutoTradeLock]:
        raise NotImplementedError

    @abstractmethod
    def release(self, crypto_id: str) -> bool:
        """Delete the lock row. Returns False when there was none."""
        raise NotImplementedError

    @abstractmethod
    def clear_older_than(self, cutoff: datetime) -> int:
        raise NotImplementedError


class PriceHistoryRepository(ABC):
    @abstractmethod
    def add_batch(self, points: list[PricePoint]) -> int:
        raise NotImplementedError

    @abstractmethod
    def recent(self, symbol: str, limit: int = 200) -> list[PricePoint]:
        """Return the latest points for a symbol, oldest first."""
        raise NotImplementedError

    @abstractmethod
    def latest_before(self, symbol: str, before: datetime) -> Optional[PricePoint]:
        raise NotImplementedError


class TechnicalAnalysisRepository(ABC):
    @abstractmethod
    def save(self, analysis: TechnicalAnalysis) -> TechnicalAnalysis:
        """Persist an analysis and return it with its assigned id."""
        raise NotImplementedError

    @abstractmethod
    def get(self, analysis_id: str) -> Optional[TechnicalAnalysis]:
        raise NotImplementedError

    @abstractmethod
    def latest(self, symbol: str) -> Optional[TechnicalAnalysis]:
        raise NotImplementedError


class TradingSignalRepository(ABC):
    @abstractmethod
    def add(self, signal: TradingSignal) -> TradingSignal:
        raise NotImplementedError

    @abstractmethod
    def get(self, user_id: str, signal_id: str) -> Optional[TradingSignal]:
        raise NotImplementedError

    @abstractmethod
    def list_for_user(
        self,
        user_id: str,
        symbol: Optional[str] = None,
        timeframe: Optional[str] = None,
        signal_type: Optional[SignalType] = None,
        status: Optional[SignalStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TradingSignal], int]:
        """Return one page of matching signals, newest first, and the total match count."""
        raise NotImplementedError

    @abstractmethod
    def open_entries(self, user_id: str, symbol: str) -> list[TradingSignal]:
        """ACTIVE entry signals with no exit signal pointing at them, newest first."""
        raise NotImplementedError

    @abstractmethod
    def update_status(
        self,
        user_id: str,
        signal_id: str,
        status: SignalStatus,
        executed_at: Optional[datetime] = None,
    ) -> Optional[TradingSignal]:
        """Returns None when the signal does not exist for this user."""
        raise NotImplementedError


class ExchangeOrderPort(ABC):
    """Port for submitting orders to the crypto exchange."""

    @abstractmethod
    def add_order(
        self, credentials: ExchangeCredentials, order: OrderRequest
    ) -> OrderReceipt:
        """Submit an order.

        Raises:
            ExchangeOrderError: The exchange rejected the order.
            ExchangeUnavailableError: The exchange could not be reached.
        """
        raise NotImplementedError


class PriceQuotePort(ABC):
    """Port for the latest known price of a symbol."""

    @abstractmethod
    def get_price(self, symbol: str) -> Optional[float]:
        raise NotImplementedError

    @abstractmethod
    def snapshot(self) -> dict[str, float]:
        raise NotImplementedError


class AuthPort(ABC):
    @abstractmethod
    def get_user(self, access_token: str) -> UserAccount:
        """Resolve an access token to a user.

        Raises:
            UnauthorizedError: The token is missing, expired or rejected.
        """
        raise NotImplementedError
