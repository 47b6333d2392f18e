"""
Threshold and sizing rules for auto-trading.

Pure functions over domain entities. No IO.
"""

from datetime import datetime, timedelta
from typing import Optional

from tickerdesk.domain.trading.entities import (
    AutoTradeSettings,
    Settings,
    TradeAction,
)

DEFAULT_LOCK_EXPIRY_SECONDS = 300


def percent_change(current_price: float, purchase_price: float) -> float:
    """Change from purchase price to current price, in percent."""
    if purchase_price <= 0:
        return 0.0
    return (current_price - purchase_price) / purchase_price * 100


def should_sell(current_price: float, purchase_price: float, threshold_percent: float) -> bool:
    """True when the gain since purchase reaches the threshold."""
    if purchase_price <= 0:
        return False
    return percent_change(current_price, purchase_price) >= threshold_percent


def should_buy(current_price: float, purchase_price: float, threshold_percent: float) -> bool:
    """True when the drop since purchase reaches the threshold."""
    if purchase_price <= 0:
        return False
    drop = (purchase_price - current_price) / purchase_price * 100
    return drop >= threshold_percent


def has_valid_trade_amount(auto_settings: AutoTradeSettings) -> bool:
    return (auto_settings.trade_by_shares and auto_settings.shares_amount > 0) or (
        auto_settings.trade_by_value and auto_settings.total_value > 0
    )


def resolve_thresholds(
    auto_settings: Optional[AutoTradeSettings], user_settings: Settings
) -> tuple[float, float]:
    """Return (buy, sell) thresholds; per-crypto values win when non-zero."""
    buy = user_settings.buy_threshold_percent
    sell = user_settings.sell_threshold_percent
    if auto_settings is not None:
        buy = auto_settings.buy_threshold_percent or buy
        sell = auto_settings.sell_threshold_percent or sell
    return buy, sell


def size_order(
    action: TradeAction,
    price: float,
    holdings: float,
    auto_settings: Optional[AutoTradeSettings],
    default_buy_value: float = 100.0,
) -> float:
    """Number of shares for an auto order.

    Sizing by share count takes precedence over sizing by USD value.
    Sells never exceed holdings. Without sizing settings a sell closes
    the position and a buy spends default_buy_value. A non-positive
    result means the trade should not be placed.
    """
    if price <= 0:
        return 0.0

    if auto_settings is not None and auto_settings.trade_by_shares and auto_settings.shares_amount > 0:
        shares = auto_settings.shares_amount
    elif auto_settings is not None and auto_settings.trade_by_value and auto_settings.total_value > 0:
        shares = auto_settings.total_value / price
    elif action is TradeAction.SELL:
        shares = holdings
    else:
        shares = default_buy_value / price

    if action is TradeAction.SELL:
        shares = min(shares, holdings)
    return max(shares, 0.0)


def is_lock_expired(
    locked_at: datetime,
    now: datetime,
    expiry_seconds: int = DEFAULT_LOCK_EXPIRY_SECONDS,
) -> bool:
    return now - locked_at > timedelta(seconds=expiry_seconds)
