"""
Pydantic schemas for trading API request/response validation.

These schemas enforce input validation and define the API contract.
No business logic belongs here.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, PositiveFloat

SYMBOL_PATTERN = r"^[A-Za-z0-9.\-/]+$"
SYMBOL_MAX_LEN = 16
ACTION_PATTERN = r"^(buy|sell)$"


class ErrorResponse(BaseModel):
    """Standard error response returned by all error handlers."""

    error: str
    detail: str | None = None
    error_type: str | None = None
    transaction: dict[str, Any] | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    price_feeds: str = "disabled"


class ReorderRequest(BaseModel):
    """Ids in the new display order; priorities become 0..n-1."""

    ordered_ids: list[str] = Field(..., min_length=1)


# ----------------------------------------------------------------------
# Stocks
# ----------------------------------------------------------------------


class StockCreateRequest(BaseModel):
    ticker: str = Field(..., min_length=1, max_length=SYMBOL_MAX_LEN, pattern=SYMBOL_PATTERN)
    purchase_price: float = Field(..., gt=0)
    shares: float = Field(default=0.0, ge=0)
    auto_sell: bool = False
    auto_buy: bool = False


class StockUpdateRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    ticker: str | None = Field(
        default=None, min_length=1, max_length=SYMBOL_MAX_LEN, pattern=SYMBOL_PATTERN
    )
    purchase_price: float | None = Field(default=None, gt=0)
    shares: float | None = Field(default=None, ge=0)
    auto_sell: bool | None = None
    auto_buy: bool | None = None


class StockResponse(BaseModel):
    id: str
    ticker: str
    purchase_price: float
    shares: float
    priority: int
    auto_sell: bool
    auto_buy: bool
    current_price: float | None = None
    change_percent: float | None = None
    should_sell: bool = False
    should_buy: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StockTradeRequest(BaseModel):
    stock_id: str
    action: str = Field(..., pattern=ACTION_PATTERN)
    shares: float = Field(..., gt=0)
    price: float | None = Field(default=None, gt=0)


class StockTransactionResponse(BaseModel):
    id: str
    stock_id: str
    ticker: str
    action: str
    shares: float
    price: float
    total_amount: float
    created_at: datetime


# ----------------------------------------------------------------------
# Cryptos
# ----------------------------------------------------------------------


class CryptoCreateRequest(BaseModel):
    symbol: str = Field(..., min_length=1, max_length=SYMBOL_MAX_LEN, pattern=SYMBOL_PATTERN)
    purchase_price: float = Field(..., gt=0)
    shares: float = Field(default=0.0, ge=0)
    auto_sell: bool = False
    auto_buy: bool = False


class CryptoUpdateRequest(BaseModel):
    symbol: str | None = Field(
        default=None, min_length=1, max_length=SYMBOL_MAX_LEN, pattern=SYMBOL_PATTERN
    )
    purchase_price: float | None = Field(default=None, gt=0)
    shares: float | None = Field(default=None, ge=0)
    auto_sell: bool | None = None
    auto_buy: bool | None = None


class AutoTradeSettingsRequest(BaseModel):
    """Per-crypto auto-trade configuration.

    Thresholds of 0 fall back to the user's global thresholds.
    """

    crypto_id: str
    buy_threshold_percent: float = Field(default=0.0, ge=0)
    sell_threshold_percent: float = Field(default=0.0, ge=0)
    enable_continuous_trading: bool = False
    one_time_buy: bool = False
    one_time_sell: bool = False
    next_action: str = Field(default="buy", pattern=ACTION_PATTERN)
    trade_by_shares: bool = True
    trade_by_value: bool = False
    shares_amount: float = Field(default=0.0, ge=0)
    total_value: float = Field(default=0.0, ge=0)
    order_type: str = Field(default="market", pattern=r"^(market|limit)$")


class AutoTradeSettingsResponse(BaseModel):
    id: str | None = None
    crypto_id: str
    buy_threshold_percent: float
    sell_threshold_percent: float
    enable_continuous_trading: bool
    one_time_buy: bool
    one_time_sell: bool
    next_action: str
    trade_by_shares: bool
    trade_by_value: bool
    shares_amount: float
    total_value: float
    order_type: str


class CryptoResponse(BaseModel):
    id: str
    symbol: str
    purchase_price: float
    shares: float
    priority: int
    auto_sell: bool
    auto_buy: bool
    current_price: float | None = None
    change_percent: float | None = None
    should_sell: bool = False
    should_buy: bool = False
    auto_trade_settings: AutoTradeSettingsResponse | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UsdBalanceRequest(BaseModel):
    usd_balance: float = Field(..., ge=0)


class UsdBalanceResponse(BaseModel):
    usd_balance: float


class CryptoTransactionResponse(BaseModel):
    id: str
    crypto_id: str | None = None
    symbol: str
    action: str
    shares: float
    price: float
    total_amount: float
    api_request: str | None = None
    api_response: str | None = None
    log_info: dict[str, Any] | None = None
    created_at: datetime


class ExecuteOrderRequest(BaseModel):
    """A manual or auto order. Either shares or total_value sizes it."""

    crypto_id: str
    action: str = Field(..., pattern=ACTION_PATTERN)
    price: float = Field(..., gt=0)
    shares: float | None = Field(default=None, gt=0)
    total_value: float | None = Field(default=None, gt=0)
    order_type: str = Field(default="market", pattern=r"^(market|limit)$")
    is_auto_order: bool = False


class ExecuteOrderResponse(BaseModel):
    success: bool = True
    message: str
    order_id: str
    transaction: CryptoTransactionResponse


class ProcessAutoTradesRequest(BaseModel):
    """Latest prices keyed by crypto symbol."""

    prices: dict[str, PositiveFloat] = Field(..., min_length=1)


class AutoTradeCheckRequest(BaseModel):
    crypto_id: str
    price: float = Field(..., gt=0)


class AutoTradeResultItem(BaseModel):
    success: bool
    message: str
    crypto_id: str
    symbol: str
    action: str | None = None
    shares: float | None = None
    price: float | None = None
    order_id: str | None = None


class ProcessAutoTradesResponse(BaseModel):
    results: list[AutoTradeResultItem]


# ----------------------------------------------------------------------
# Settings
# ----------------------------------------------------------------------


class SettingsUpdateRequest(BaseModel):
    """Secrets: omit to keep the stored value, send "" to clear it."""

    sell_threshold_percent: float = Field(..., ge=0)
    buy_threshold_percent: float = Field(..., ge=0)
    check_frequency_seconds: int = Field(..., ge=10)
    trade_platform_api_key: str | None = None
    trade_platform_api_secret: str | None = None
    finnhub_api_key: str | None = None
    kraken_api_key: str | None = None
    kraken_api_sign: str | None = None
    kraken_websocket_url: str | None = None
    enable_auto_stock_trading: bool | None = None
    enable_auto_crypto_trading: bool | None = None
    enable_manual_crypto_trading: bool | None = None


class SettingsResponse(BaseModel):
    """Settings as shown to the user. Secrets are reported as set/unset only."""

    sell_threshold_percent: float
    buy_threshold_percent: float
    check_frequency_seconds: int
    kraken_websocket_url: str | None = None
    enable_auto_stock_trading: bool
    enable_auto_crypto_trading: bool
    enable_manual_crypto_trading: bool
    trade_platform_api_key_set: bool
    trade_platform_api_secret_set: bool
    finnhub_api_key_set: bool
    kraken_api_key_set: bool
    kraken_api_sign_set: bool


# ----------------------------------------------------------------------
# Analysis & prices
# ----------------------------------------------------------------------


class TechnicalAnalysisRequest(BaseModel):
    """Optional explicit prices (oldest first); stored history is used otherwise."""

    instrument: str = Field(default="crypto", pattern=r"^(stock|crypto)$")
    prices: list[PositiveFloat] = Field(default_factory=list)


class TechnicalAnalysisResponse(BaseModel):
    id: str | None = None
    symbol: str
    instrument: str
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
    breakout_type: str
    breakout_strength: float
    recommendation: str
    confidence_score: float
    raw_data: dict[str, Any] = Field(default_factory=dict)


class PricesResponse(BaseModel):
    prices: dict[str, float]


class PriceSampleItem(BaseModel):
    price: float = Field(..., gt=0)
    timestamp: datetime
    volume: float | None = Field(default=None, ge=0)


class PriceHistoryImportRequest(BaseModel):
    asset_class: str = Field(default="crypto", pattern=r"^(stock|crypto)$")
    samples: list[PriceSampleItem] = Field(..., min_length=1)


class PriceHistoryImportResponse(BaseModel):
    symbol: str
    stored: int


# ----------------------------------------------------------------------
# Trend analysis
# ----------------------------------------------------------------------


class TrendAnalysisRequest(BaseModel):
    """Symbol plus optional explicit prices (oldest first)."""

    symbol: str = Field(..., min_length=1, max_length=SYMBOL_MAX_LEN, pattern=SYMBOL_PATTERN)
    prices: list[PositiveFloat] = Field(default_factory=list)


class DrawdownDrawupResponse(BaseModel):
    max_drawdown: float
    max_drawup: float
    avg_drawdown: float
    avg_drawup: float
    frequent_drawdown: float
    frequent_drawup: float
    drawdowns: list[float]
    drawups: list[float]


class TrendAnalysisResponse(BaseModel):
    symbol: str
    price_count: int
    analysis: DrawdownDrawupResponse


# ----------------------------------------------------------------------
# Trading signals
# ----------------------------------------------------------------------

class GenerateSignalsRequest(BaseModel):
    """Either a symbol, or generate_for_all for every tracked crypto."""

    symbol: str | None = Field(
        default=None, min_length=1, max_length=SYMBOL_MAX_LEN, pattern=SYMBOL_PATTERN
    )
    timeframe: str = Field(default="1h", min_length=1, max_length=8)
    generate_for_all: bool = False


class TradingSignalResponse(BaseModel):
    id: str
    symbol: str
    signal_type: str
    direction: str | None = None
    price: float
    confidence: float | None = None
    reason: str
    timeframe: str
    target_price: float | None = None
    stop_loss_price: float | None = None
    related_signal_id: str | None = None
    profit_loss: float | None = None
    profit_loss_percent: float | None = None
    status: str
    executed_at: datetime | None = None
    timestamp: datetime
    updated_at: datetime | None = None


class SymbolSignalsResponse(BaseModel):
    symbol: str
    signals: list[TradingSignalResponse]


class TradingSignalPageResponse(BaseModel):
    signals: list[TradingSignalResponse]
    total_count: int
    limit: int
    offset: int


class UpdateSignalStatusRequest(BaseModel):
    signal_id: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1, max_length=16)
    executed_at: datetime | None = None
