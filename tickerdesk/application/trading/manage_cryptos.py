"""
Use case: Manage tracked crypto positions.

Covers the position CRUD, per-crypto auto-trade settings, the user's
USD balance and the crypto transaction history.
"""

import logging
import uuid
from dataclasses import replace
from typing import Optional

from tickerdesk.application.trading.dtos import (
    CreateHoldingCommand,
    HoldingView,
    ReorderCommand,
    SaveAutoTradeSettingsCommand,
    UpdateHoldingCommand,
)
from tickerdesk.domain.trading.entities import (
    AutoTradeSettings,
    Crypto,
    CryptoTransaction,
    Settings,
    TradeAction,
    UserAccount,
)
from tickerdesk.domain.trading.errors import (
    CryptoNotFoundError,
    DuplicateHoldingError,
    ValidationError,
)
from tickerdesk.domain.trading.ports import (
    AutoTradeSettingsRepository,
    CryptoRepository,
    CryptoTransactionRepository,
    PriceQuotePort,
    SettingsRepository,
    UserAccountRepository,
)
from tickerdesk.domain.trading.trade_rules import (
    percent_change,
    resolve_thresholds,
    should_buy,
    should_sell,
)

logger = logging.getLogger(__name__)


class ManageCryptosUseCase:
    def __init__(
        self,
        crypto_repo: CryptoRepository,
        auto_settings_repo: AutoTradeSettingsRepository,
        transaction_repo: CryptoTransactionRepository,
        settings_repo: SettingsRepository,
        account_repo: UserAccountRepository,
        price_quotes: PriceQuotePort,
    ) -> None:
        self._crypto_repo = crypto_repo
        self._auto_settings_repo = auto_settings_repo
        self._transaction_repo = transaction_repo
        self._settings_repo = settings_repo
        self._account_repo = account_repo
        self._price_quotes = price_quotes

    # ------------------------------------------------------------------
    # Positions
    # ------------------------------------------------------------------

    def list_holdings(self, user_id: str) -> list[HoldingView[Crypto]]:
        """Return cryptos in priority order with live price and verdicts.

        Per-crypto thresholds override the global ones when set.
        """
        settings = self._settings_repo.get(user_id) or Settings(user_id=user_id)
        views = []
        for crypto in self._crypto_repo.list_for_user(user_id):
            price = self._price_quotes.get_price(crypto.symbol)
            buy_threshold, sell_threshold = resolve_thresholds(crypto.auto_trade_settings, settings)
            views.append(
                HoldingView(
                    holding=crypto,
                    current_price=price,
                    change_percent=(
                        percent_change(price, crypto.purchase_price) if price is not None else None
                    ),
                    should_sell=price is not None
                    and should_sell(price, crypto.purchase_price, sell_threshold),
                    should_buy=price is not None
                    and should_buy(price, crypto.purchase_price, buy_threshold),
                )
            )
        return views

    def get(self, user_id: str, crypto_id: str) -> Crypto:
        crypto = self._crypto_repo.get(user_id, crypto_id)
        if crypto is None:
            raise CryptoNotFoundError(crypto_id)
        return crypto

    def create(self, command: CreateHoldingCommand) -> Crypto:
        symbol = (command.symbol or "").strip().upper()
        if not symbol:
            raise ValidationError("Symbol is required")
        if command.purchase_price is None or command.purchase_price <= 0:
            raise ValidationError("Purchase price must be positive")
        if self._crypto_repo.get_by_symbol(command.user_id, symbol) is not None:
            raise DuplicateHoldingError(symbol)

        crypto = self._crypto_repo.add(
            Crypto(
                id=str(uuid.uuid4()),
                user_id=command.user_id,
                symbol=symbol,
                purchase_price=command.purchase_price,
                shares=command.shares,
                priority=self._crypto_repo.max_priority(command.user_id) + 1,
                auto_sell=command.auto_sell,
                auto_buy=command.auto_buy,
            )
        )
        logger.info("User %s now tracks crypto %s", command.user_id, symbol)
        return crypto

    def update(self, command: UpdateHoldingCommand) -> Crypto:
        crypto = self.get(command.user_id, command.holding_id)
        symbol = crypto.symbol
        if command.symbol is not None:
            symbol = command.symbol.strip().upper()
            if not symbol:
                raise ValidationError("Symbol is required")
            existing = self._crypto_repo.get_by_symbol(command.user_id, symbol)
            if existing is not None and existing.id != crypto.id:
                raise DuplicateHoldingError(symbol)
        if command.purchase_price is not None and command.purchase_price <= 0:
            raise ValidationError("Purchase price must be positive")

        return self._crypto_repo.update(
            replace(
                crypto,
                symbol=symbol,
                purchase_price=_pick(command.purchase_price, crypto.purchase_price),
                shares=_pick(command.shares, crypto.shares),
                auto_sell=_pick(command.auto_sell, crypto.auto_sell),
                auto_buy=_pick(command.auto_buy, crypto.auto_buy),
            )
        )

    def delete(self, user_id: str, crypto_id: str) -> None:
        if not self._crypto_repo.delete(user_id, crypto_id):
            raise CryptoNotFoundError(crypto_id)

    def reorder(self, command: ReorderCommand) -> list[HoldingView[Crypto]]:
        self._crypto_repo.reorder(command.user_id, list(command.ordered_ids))
        return self.list_holdings(command.user_id)

    # ------------------------------------------------------------------
    # Auto-trade settings
    # ------------------------------------------------------------------

    def get_auto_trade_settings(self, user_id: str, crypto_id: str) -> Optional[AutoTradeSettings]:
        self.get(user_id, crypto_id)
        return self._auto_settings_repo.get(crypto_id)

    def save_auto_trade_settings(self, command: SaveAutoTradeSettingsCommand) -> AutoTradeSettings:
        """Upsert the settings and derive the crypto's auto flags from them.

        auto_buy is on when the next action is buy or a one-time buy is
        armed; auto_sell likewise.
        """
        crypto = self.get(command.user_id, command.crypto_id)
        try:
            next_action = TradeAction((command.next_action or "").lower())
        except ValueError:
            raise ValidationError("next_action must be 'buy' or 'sell'") from None
        if command.buy_threshold_percent < 0 or command.sell_threshold_percent < 0:
            raise ValidationError("Thresholds must be non-negative")
        if command.shares_amount < 0 or command.total_value < 0:
            raise ValidationError("Trade amounts must be non-negative")

        saved = self._auto_settings_repo.save(
            AutoTradeSettings(
                crypto_id=crypto.id,
                buy_threshold_percent=command.buy_threshold_percent,
                sell_threshold_percent=command.sell_threshold_percent,
                enable_continuous_trading=command.enable_continuous_trading,
                one_time_buy=command.one_time_buy,
                one_time_sell=command.one_time_sell,
                next_action=next_action,
                trade_by_shares=command.trade_by_shares,
                trade_by_value=command.trade_by_value,
                shares_amount=command.shares_amount,
                total_value=command.total_value,
                order_type=command.order_type or "market",
            )
        )
        self._crypto_repo.update(
            replace(
                crypto,
                auto_buy=next_action is TradeAction.BUY or command.one_time_buy,
                auto_sell=next_action is TradeAction.SELL or command.one_time_sell,
            )
        )
        logger.info("Saved auto-trade settings for %s (next=%s)", crypto.symbol, next_action.value)
        return saved

    # ------------------------------------------------------------------
    # Balance & history
    # ------------------------------------------------------------------

    def get_balance(self, user_id: str) -> UserAccount:
        return self._account_repo.get_or_create(user_id)

    def set_balance(self, user_id: str, usd_balance: float) -> UserAccount:
        if usd_balance is None or usd_balance < 0:
            raise ValidationError("USD balance must be non-negative")
        return self._account_repo.set_balance(user_id, usd_balance)

    def list_transactions(
        self, user_id: str, limit: int = 100, crypto_id: Optional[str] = None
    ) -> list[CryptoTransaction]:
        return self._transaction_repo.list_for_user(user_id, limit, crypto_id)


def _pick(value: Optional[object], fallback):
    return fallback if value is None else value
