"""
Data Transfer Objects for the trading application layer.

DTOs carry data between the interface and application layers.
They are plain dataclasses with no behavior.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from tickerdesk.domain.trading.entities import CryptoTransaction, TradingSignal
from tickerdesk.domain.trading.indicators import DrawdownDrawup

H = TypeVar("H")


@dataclass(frozen=True)
class CreateHoldingCommand:
    """Input DTO for tracking a new stock or crypto.

    Attributes:
        user_id: Owner of the holding.
        symbol: Ticker (stocks) or symbol (cryptos); upper-cased on save.
        purchase_price: Reference price for threshold checks.
    """

    user_id: str
    symbol: str
    purchase_price: float
    shares: float = 0.0
    auto_sell: bool = False
    auto_buy: bool = False


@dataclass(frozen=True)
class UpdateHoldingCommand:
    """Input DTO for a partial holding update. None leaves a field unchanged."""

    user_id: str
    holding_id: str
    symbol: Optional[str] = None
    purchase_price: Optional[float] = None
    shares: Optional[float] = None
    auto_sell: Optional[bool] = None
    auto_buy: Optional[bool] = None


@dataclass(frozen=True)
class ReorderCommand:
    user_id: str
    ordered_ids: tuple[str, ...]


@dataclass(frozen=True)
class HoldingView(Generic[H]):
    """A holding joined with its live price and threshold verdicts."""

    holding: H
    current_price: Optional[float]
    change_percent: Optional[float]
    should_sell: bool
    should_buy: bool


@dataclass(frozen=True)
class UpdateSettingsCommand:
    """Input DTO for PUT /settings.

    Secret fields left as None keep their stored value; an empty
    string clears them.
    """

    user_id: str
    sell_threshold_percent: float
    buy_threshold_percent: float
    check_frequency_seconds: int
    trade_platform_api_key: Optional[str] = None
    trade_platform_api_secret: Optional[str] = None
    finnhub_api_key: Optional[str] = None
    kraken_api_key: Optional[str] = None
    kraken_api_sign: Optional[str] = None
    kraken_websocket_url: Optional[str] = None
    enable_auto_stock_trading: Optional[bool] = None
    enable_auto_crypto_trading: Optional[bool] = None
    enable_manual_crypto_trading: Optional[bool] = None


@dataclass(frozen=True)
class SaveAutoTradeSettingsCommand:
    user_id: str
    crypto_id: str
    buy_threshold_percent: float = 0.0
    sell_threshold_percent: float = 0.0
    enable_continuous_trading: bool = False
    one_time_buy: bool = False
    one_time_sell: bool = False
    next_action: str = "buy"
    trade_by_shares: bool = True
    trade_by_value: bool = False
    shares_amount: float = 0.0
    total_value: float = 0.0
    order_type: str = "market"


@dataclass(frozen=True)
class ExecuteOrderCommand:
    """Input DTO for placing a crypto order.

    Attributes:
        action: "buy" or "sell".
        shares: Volume to trade. Derived from total_value / price when omitted.
        is_auto_order: True when placed by the auto-trade pipeline.
    """

    user_id: str
    crypto_id: str
    action: str
    price: float
    shares: Optional[float] = None
    total_value: Optional[float] = None
    order_type: str = "market"
    is_auto_order: bool = False


@dataclass(frozen=True)
class ExecuteOrderResult:
    transaction: CryptoTransaction
    order_id: str
    message: str


@dataclass(frozen=True)
class StockTradeCommand:
    """Input DTO for a simulated stock trade. Price defaults to the live quote."""

    user_id: str
    stock_id: str
    action: str
    shares: float
    price: Optional[float] = None


@dataclass(frozen=True)
class AutoTradeResult:
    """Outcome of evaluating one crypto for an auto trade.

    success is False both for skipped and failed evaluations; message says which.
    """

    success: bool
    message: str
    crypto_id: str
    symbol: str
    action: Optional[str] = None
    shares: Optional[float] = None
    price: Optional[float] = None
    order_id: Optional[str] = None


@dataclass(frozen=True)
class RunTechnicalAnalysisCommand:
    """Input DTO for a technical analysis run.

    Attributes:
        prices: Oldest-first prices. Loaded from price history when empty.
    """

    symbol: str
    instrument: str = "crypto"
    prices: tuple[float, ...] = ()


@dataclass(frozen=True)
class PriceSample:
    price: float
    timestamp: datetime
    volume: Optional[float] = None


@dataclass(frozen=True)
class ImportPriceHistoryCommand:
    symbol: str
    asset_class: str
    samples: tuple[PriceSample, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TrendAnalysisCommand:
    """Input DTO for a drawdown/drawup run.

    Attributes:
        prices: Oldest-first prices. Loaded from price history when empty.
    """

    symbol: str
    prices: tuple[float, ...] = ()


@dataclass(frozen=True)
class TrendAnalysisResult:
    symbol: str
    price_count: int
    analysis: DrawdownDrawup


@dataclass(frozen=True)
class GenerateSignalsCommand:
    """Generate for one symbol, or for every tracked crypto with generate_for_all."""

    user_id: str
    symbol: Optional[str] = None
    timeframe: str = "1h"
    generate_for_all: bool = False


@dataclass(frozen=True)
class SymbolSignals:
    symbol: str
    signals: tuple[TradingSignal, ...] = ()


@dataclass(frozen=True)
class SignalQuery:
    user_id: str
    symbol: Optional[str] = None
    timeframe: Optional[str] = None
    signal_type: Optional[str] = None
    status: Optional[str] = None
    limit: int = 20
    offset: int = 0


@dataclass(frozen=True)
class SignalPage:
    signals: list[TradingSignal]
    total_count: int
    limit: int
    offset: int


@dataclass(frozen=True)
class UpdateSignalStatusCommand:
    user_id: str
    signal_id: str
    status: str
    executed_at: Optional[datetime] = None


def transaction_payload(transaction: CryptoTransaction) -> dict[str, Any]:
    """JSON-ready view of a transaction row, used in error responses."""
    return {
        "id": transaction.id,
        "crypto_id": transaction.crypto_id,
        "symbol": transaction.symbol,
        "action": transaction.action.value,
        "shares": transaction.shares,
        "price": transaction.price,
        "total_amount": transaction.total_amount,
        "log_info": transaction.log_info,
        "created_at": transaction.created_at.isoformat(),
    }
