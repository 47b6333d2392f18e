"""
Use case: Manage tracked stock positions.

Listing, create/update/delete, drag-and-drop reordering and simulated
trades. Stock trades are not routed to a broker: they record a
transaction and adjust the position.
"""

import logging
import uuid
from dataclasses import replace
from typing import Optional

from tickerdesk.application.trading.dtos import (
    CreateHoldingCommand,
    HoldingView,
    ReorderCommand,
    StockTradeCommand,
    UpdateHoldingCommand,
)
from tickerdesk.domain.trading.entities import Stock, StockTransaction, TradeAction
from tickerdesk.domain.trading.errors import (
    DuplicateHoldingError,
    InsufficientSharesError,
    StockNotFoundError,
    ValidationError,
)
from tickerdesk.domain.trading.ports import (
    PriceQuotePort,
    SettingsRepository,
    StockRepository,
    StockTransactionRepository,
)
from tickerdesk.domain.trading.trade_rules import percent_change, should_buy, should_sell

logger = logging.getLogger(__name__)

DEFAULT_SELL_THRESHOLD = 5.0
DEFAULT_BUY_THRESHOLD = 5.0


class ManageStocksUseCase:
    def __init__(
        self,
        stock_repo: StockRepository,
        transaction_repo: StockTransactionRepository,
        settings_repo: SettingsRepository,
        price_quotes: PriceQuotePort,
    ) -> None:
        self._stock_repo = stock_repo
        self._transaction_repo = transaction_repo
        self._settings_repo = settings_repo
        self._price_quotes = price_quotes

    def list_holdings(self, user_id: str) -> list[HoldingView[Stock]]:
        """Return the user's stocks in priority order with live verdicts."""
        settings = self._settings_repo.get(user_id)
        sell_threshold = settings.sell_threshold_percent if settings else DEFAULT_SELL_THRESHOLD
        buy_threshold = settings.buy_threshold_percent if settings else DEFAULT_BUY_THRESHOLD

        views = []
        for stock in self._stock_repo.list_for_user(user_id):
            price = self._price_quotes.get_price(stock.ticker)
            views.append(
                HoldingView(
                    holding=stock,
                    current_price=price,
                    change_percent=(
                        percent_change(price, stock.purchase_price) if price is not None else None
                    ),
                    should_sell=price is not None
                    and should_sell(price, stock.purchase_price, sell_threshold),
                    should_buy=price is not None
                    and should_buy(price, stock.purchase_price, buy_threshold),
                )
            )
        return views

    def get(self, user_id: str, stock_id: str) -> Stock:
        stock = self._stock_repo.get(user_id, stock_id)
        if stock is None:
            raise StockNotFoundError(stock_id)
        return stock

    def create(self, command: CreateHoldingCommand) -> Stock:
        ticker = (command.symbol or "").strip().upper()
        if not ticker:
            raise ValidationError("Ticker is required")
        if command.purchase_price is None or command.purchase_price <= 0:
            raise ValidationError("Purchase price must be positive")
        if self._stock_repo.get_by_ticker(command.user_id, ticker) is not None:
            raise DuplicateHoldingError(ticker)

        stock = self._stock_repo.add(
            Stock(
                id=str(uuid.uuid4()),
                user_id=command.user_id,
                ticker=ticker,
                purchase_price=command.purchase_price,
                shares=command.shares,
                priority=self._stock_repo.max_priority(command.user_id) + 1,
                auto_sell=command.auto_sell,
                auto_buy=command.auto_buy,
            )
        )
        logger.info("User %s now tracks stock %s", command.user_id, ticker)
        return stock

    def update(self, command: UpdateHoldingCommand) -> Stock:
        stock = self.get(command.user_id, command.holding_id)
        ticker = stock.ticker
        if command.symbol is not None:
            ticker = command.symbol.strip().upper()
            if not ticker:
                raise ValidationError("Ticker is required")
            existing = self._stock_repo.get_by_ticker(command.user_id, ticker)
            if existing is not None and existing.id != stock.id:
                raise DuplicateHoldingError(ticker)
        if command.purchase_price is not None and command.purchase_price <= 0:
            raise ValidationError("Purchase price must be positive")

        return self._stock_repo.update(
            replace(
                stock,
                ticker=ticker,
                purchase_price=_pick(command.purchase_price, stock.purchase_price),
                shares=_pick(command.shares, stock.shares),
                auto_sell=_pick(command.auto_sell, stock.auto_sell),
                auto_buy=_pick(command.auto_buy, stock.auto_buy),
            )
        )

    def delete(self, user_id: str, stock_id: str) -> None:
        if not self._stock_repo.delete(user_id, stock_id):
            raise StockNotFoundError(stock_id)

    def reorder(self, command: ReorderCommand) -> list[HoldingView[Stock]]:
        self._stock_repo.reorder(command.user_id, list(command.ordered_ids))
        return self.list_holdings(command.user_id)

    def trade(self, command: StockTradeCommand) -> StockTransaction:
        """Record a simulated trade against a stock position."""
        try:
            action = TradeAction((command.action or "").lower())
        except ValueError:
            raise ValidationError("Action must be 'buy' or 'sell'") from None
        if command.shares is None or command.shares <= 0:
            raise ValidationError("Number of shares must be positive")

        stock = self.get(command.user_id, command.stock_id)
        settings = self._settings_repo.get(command.user_id)
        if settings is None or not settings.has_trade_platform_credentials:
            raise ValidationError(
                "Trading platform API not configured. Please set up your API keys in settings."
            )
        if action is TradeAction.SELL and stock.shares < command.shares:
            raise InsufficientSharesError(stock.ticker, command.shares, stock.shares)

        price = command.price or self._price_quotes.get_price(stock.ticker) or stock.purchase_price
        transaction = self._transaction_repo.add(
            StockTransaction(
                id=str(uuid.uuid4()),
                user_id=command.user_id,
                stock_id=stock.id,
                ticker=stock.ticker,
                action=action,
                shares=command.shares,
                price=price,
                total_amount=command.shares * price,
            )
        )
        delta = command.shares if action is TradeAction.BUY else -command.shares
        self._stock_repo.update(replace(stock, shares=max(stock.shares + delta, 0.0)))
        logger.info(
            "Simulated %s of %s %s at %s", action.value, command.shares, stock.ticker, price
        )
        return transaction

    def list_transactions(self, user_id: str, limit: int = 100) -> list[StockTransaction]:
        return self._transaction_repo.list_for_user(user_id, limit)


def _pick(value: Optional[object], fallback):
    return fallback if value is None else value
