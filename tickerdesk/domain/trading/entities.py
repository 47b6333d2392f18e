"""
Domain entities for the trading bounded context.

Entities represent core business objects with identity and lifecycle.
They contain no framework imports and no IO operations.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TradeAction(Enum):
    """Direction of an order."""

    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "TradeAction":
        return TradeAction.SELL if self is TradeAction.BUY else TradeAction.BUY


class TransactionAction(Enum):
    """Kind of row written to the crypto transaction log."""

    BUY = "buy"
    SELL = "sell"
    ERROR = "error"
    AUTO_TRADE_LOG = "auto_trade_log"


class AssetClass(Enum):
    STOCK = "stock"
    CRYPTO = "crypto"


class Recommendation(Enum):
    """Outcome of the weighted technical decision."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class BreakoutType(Enum):
    BULLISH = "BULLISH"
    BEARISH = "BEARISH"
    NONE = "NONE"


class AutoTradeEventType(Enum):
    """Severity of an auto-trade journal entry."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


class SignalType(Enum):
    ENTRY = "ENTRY"
    EXIT = "EXIT"


class SignalDirection(Enum):
    LONG = "LONG"
    SHORT = "SHORT"


class SignalStatus(Enum):
    """Lifecycle of a trading signal. Only ACTIVE signals count as open."""

    ACTIVE = "ACTIVE"
    EXECUTED = "EXECUTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class ExitReason(Enum):
    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"
    TREND_REVERSAL = "TREND_REVERSAL"


@dataclass(frozen=True)
class UserAccount:
    """An authenticated dashboard user and their cash balance."""

    id: str
    email: Optional[str] = None
    usd_balance: float = 0.0


@dataclass(frozen=True)
class Stock:
    """A tracked stock position."""

    id: str
    user_id: str
    ticker: str
    purchase_price: float
    shares: float = 0.0
    priority: int = 0
    auto_sell: bool = False
    auto_buy: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class AutoTradeSettings:
    """Per-crypto auto-trade configuration.

    Thresholds of 0 mean "use the global threshold from Settings".
    next_action alternates between buy and sell when continuous
    trading is enabled; one-time flags fire once and are cleared.
    """

    crypto_id: str
    buy_threshold_percent: float = 0.0
    sell_threshold_percent: float = 0.0
    enable_continuous_trading: bool = False
    one_time_buy: bool = False
    one_time_sell: bool = False
    next_action: TradeAction = TradeAction.BUY
    trade_by_shares: bool = True
    trade_by_value: bool = False
    shares_amount: float = 0.0
    total_value: float = 0.0
    order_type: str = "market"
    id: Optional[str] = None


@dataclass(frozen=True)
class Crypto:
    """A tracked crypto position, with its auto-trade settings if any."""

    id: str
    user_id: str
    symbol: str
    purchase_price: float
    shares: float = 0.0
    priority: int = 0
    auto_sell: bool = False
    auto_buy: bool = False
    auto_trade_settings: Optional[AutoTradeSettings] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Settings:
    """Per-user global settings.

    Secrets are stored as given; interface layer never echoes them back.
    """

    user_id: str
    sell_threshold_percent: float = 5.0
    buy_threshold_percent: float = 5.0
    check_frequency_seconds: int = 60
    trade_platform_api_key: Optional[str] = None
    trade_platform_api_secret: Optional[str] = None
    finnhub_api_key: Optional[str] = None
    kraken_api_key: Optional[str] = None
    kraken_api_sign: Optional[str] = None
    kraken_websocket_url: Optional[str] = None
    enable_auto_stock_trading: bool = False
    enable_auto_crypto_trading: bool = False
    enable_manual_crypto_trading: bool = True
    id: Optional[str] = None

    @property
    def has_kraken_credentials(self) -> bool:
        return bool(self.kraken_api_key and self.kraken_api_sign)

    @property
    def has_trade_platform_credentials(self) -> bool:
        return bool(self.trade_platform_api_key and self.trade_platform_api_secret)


@dataclass(frozen=True)
class CryptoTransaction:
    """A row of the crypto transaction log.

    Besides fills, the log holds failed orders (action=error) and
    persisted auto-trade journal entries (action=auto_trade_log).
    """

    id: str
    user_id: str
    symbol: str
    action: TransactionAction
    shares: float
    price: float
    total_amount: float
    crypto_id: Optional[str] = None
    api_request: Optional[str] = None
    api_response: Optional[str] = None
    log_info: Optional[dict[str, Any]] = None
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class StockTransaction:
    """A simulated stock trade."""

    id: str
    user_id: str
    stock_id: str
    ticker: str
    action: TradeAction
    shares: float
    price: float
    total_amount: float
    created_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class AutoTradeLock:
    """Database-side marker that an auto trade is running for a crypto."""

    crypto_id: str
    symbol: str
    locked_at: datetime
    locked_by: str
    action: TradeAction


@dataclass(frozen=True)
class PriceTick:
    """A single live price observation from a feed."""

    symbol: str
    price: float
    timestamp: datetime = field(default_factory=utc_now)
    volume: Optional[float] = None


@dataclass(frozen=True)
class PricePoint:
    """A stored historical price."""

    symbol: str
    price: float
    timestamp: datetime
    asset_class: AssetClass = AssetClass.CRYPTO
    volume: Optional[float] = None


@dataclass(frozen=True)
class TechnicalAnalysis:
    """A persisted set of indicator values for one symbol at one instant."""

    symbol: str
    timestamp: datetime
    sma20: float
    sma50: float
    ema12: float
    ema26: float
    rsi14: float
    bollinger_upper: float
    bollinger_middle: float
    bollinger_lower: float
    support_level: float
    resistance_level: float
    fibonacci_levels: dict[str, float]
    breakout_detected: bool
    breakout_type: BreakoutType
    breakout_strength: float
    recommendation: Recommendation
    confidence_score: float
    instrument: str = "crypto"
    raw_data: dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None


@dataclass(frozen=True)
class OrderRequest:
    """An order to submit to the exchange."""

    symbol: str
    action: TradeAction
    volume: float
    price: float
    order_type: str = "market"


@dataclass(frozen=True)
class OrderReceipt:
    """Exchange acknowledgement of an accepted order.

    api_request is the submitted body with secrets removed.
    """

    order_id: str
    api_request: dict[str, Any]
    api_response: dict[str, Any]


@dataclass(frozen=True)
class ExchangeCredentials:
    api_key: str
    api_secret: str


@dataclass(frozen=True)
class TradingSignal:
    """An entry or exit suggestion for one symbol.

    Entry signals carry a direction, target and stop; exit signals point
    back at the entry they close and carry the profit or loss against it.
    """

    user_id: str
    symbol: str
    signal_type: SignalType
    price: float
    reason: str
    timeframe: str = "1h"
    direction: Optional[SignalDirection] = None
    confidence: Optional[float] = None
    target_price: Optional[float] = None
    stop_loss_price: Optional[float] = None
    related_signal_id: Optional[str] = None
    profit_loss: Optional[float] = None
    profit_loss_percent: Optional[float] = None
    status: SignalStatus = SignalStatus.ACTIVE
    executed_at: Optional[datetime] = None
    timestamp: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
    id: Optional[str] = None
