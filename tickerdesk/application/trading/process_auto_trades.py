"""
Use case: Evaluate auto-trade rules against live prices and place orders.

Input: user id and a symbol -> price map (or a single crypto and price)
Output: list[AutoTradeResult]
Side effects: orders through ExecuteOrderUseCase, journal entries,
    flag updates for one-time trades.
Failure cases: a failing crypto is recorded as an unsuccessful result
    and the remaining cryptos are still evaluated.
"""

import logging
from dataclasses import replace
from typing import Optional

from tickerdesk.application.trading.auto_trade_journal import AutoTradeJournal
from tickerdesk.application.trading.auto_trade_lock import AutoTradeLockService
from tickerdesk.application.trading.dtos import AutoTradeResult, ExecuteOrderCommand
from tickerdesk.application.trading.execute_order import ExecuteOrderUseCase
from tickerdesk.domain.trading.entities import (
    AutoTradeEventType,
    AutoTradeSettings,
    Crypto,
    Settings,
    TradeAction,
)
from tickerdesk.domain.trading.errors import CryptoNotFoundError, TradingDomainError
from tickerdesk.domain.trading.ports import (
    AutoTradeSettingsRepository,
    CryptoRepository,
    SettingsRepository,
)
from tickerdesk.domain.trading.trade_rules import (
    has_valid_trade_amount,
    resolve_thresholds,
    should_buy,
    should_sell,
    size_order,
)

logger = logging.getLogger(__name__)


class ProcessAutoTradesUseCase:
    """Runs the auto-trade pipeline: threshold check, lock, order, flags."""

    def __init__(
        self,
        settings_repo: SettingsRepository,
        crypto_repo: CryptoRepository,
        auto_settings_repo: AutoTradeSettingsRepository,
        execute_order: ExecuteOrderUseCase,
        lock_service: AutoTradeLockService,
        journal: AutoTradeJournal,
        default_buy_value: float = 100.0,
    ) -> None:
        self._settings_repo = settings_repo
        self._crypto_repo = crypto_repo
        self._auto_settings_repo = auto_settings_repo
        self._execute_order = execute_order
        self._lock_service = lock_service
        self._journal = journal
        self._default_buy_value = default_buy_value

    def process_prices(self, user_id: str, prices: dict[str, float]) -> list[AutoTradeResult]:
        """Evaluate every auto-enabled crypto of a user against the given prices."""
        settings = self._enabled_settings(user_id)
        if settings is None:
            return []

        prices = {symbol.upper(): price for symbol, price in prices.items()}
        cryptos = self._crypto_repo.list_auto_trade_candidates(user_id)
        logger.info(
            "Checking %d auto-trade cryptos for user=%s against %d prices",
            len(cryptos),
            user_id,
            len(prices),
        )

        results: list[AutoTradeResult] = []
        for crypto in cryptos:
            price = prices.get(crypto.symbol.upper())
            if price is None or price <= 0:
                continue
            try:
                results.append(self._evaluate(settings, crypto, price))
            except Exception as exc:
                logger.exception("Auto trade evaluation failed for %s", crypto.symbol)
                self._journal.log_event(
                    user_id,
                    AutoTradeEventType.ERROR,
                    f"Error processing auto trade for {crypto.symbol}: {exc}",
                    {"crypto_id": crypto.id, "symbol": crypto.symbol, "price": price},
                )
                results.append(
                    AutoTradeResult(
                        success=False,
                        message=f"Error processing auto trade: {exc}",
                        crypto_id=crypto.id,
                        symbol=crypto.symbol,
                        price=price,
                    )
                )
        return results

    def check_crypto(self, user_id: str, crypto_id: str, price: float) -> AutoTradeResult:
        """Evaluate a single crypto at the given price."""
        crypto = self._crypto_repo.get(user_id, crypto_id)
        if crypto is None:
            raise CryptoNotFoundError(crypto_id)

        settings = self._enabled_settings(user_id)
        if settings is None:
            return AutoTradeResult(
                success=False,
                message="Auto crypto trading is disabled",
                crypto_id=crypto.id,
                symbol=crypto.symbol,
                price=price,
            )
        if not (crypto.auto_buy or crypto.auto_sell):
            return AutoTradeResult(
                success=False,
                message=f"Auto trading is not enabled for {crypto.symbol}",
                crypto_id=crypto.id,
                symbol=crypto.symbol,
                price=price,
            )
        return self._evaluate(settings, crypto, price)

    def process_ticks_for_all_users(self, prices: dict[str, float]) -> list[AutoTradeResult]:
        """Run process_prices for every user with auto crypto trading on."""
        results: list[AutoTradeResult] = []
        for user_id in self._settings_repo.list_auto_crypto_user_ids():
            try:
                results.extend(self.process_prices(user_id, prices))
            except Exception:
                logger.exception("Auto trade processing failed for user=%s", user_id)
        return results

    # ------------------------------------------------------------------

    def _enabled_settings(self, user_id: str) -> Optional[Settings]:
        settings = self._settings_repo.get(user_id)
        if settings is None:
            self._journal.log_event(
                user_id, AutoTradeEventType.WARNING, "No settings found; auto trading skipped"
            )
            return None
        if not settings.enable_auto_crypto_trading:
            self._journal.log_event(
                user_id, AutoTradeEventType.INFO, "Auto crypto trading is disabled"
            )
            return None
        return settings

    def _evaluate(self, settings: Settings, crypto: Crypto, price: float) -> AutoTradeResult:
        user_id = settings.user_id
        auto = crypto.auto_trade_settings

        def skipped(message: str, action: Optional[TradeAction] = None) -> AutoTradeResult:
            return AutoTradeResult(
                success=False,
                message=message,
                crypto_id=crypto.id,
                symbol=crypto.symbol,
                action=action.value if action else None,
                price=price,
            )

        if auto is None:
            return skipped(f"No auto trade settings for {crypto.symbol}")
        if not has_valid_trade_amount(auto):
            self._journal.log_event(
                user_id,
                AutoTradeEventType.WARNING,
                f"Invalid trade amount settings for {crypto.symbol}; skipping",
                {"crypto_id": crypto.id, "symbol": crypto.symbol},
            )
            return skipped(f"Invalid trade amount settings for {crypto.symbol}")

        buy_threshold, sell_threshold = resolve_thresholds(auto, settings)
        action: Optional[TradeAction] = None

        if crypto.auto_buy and (auto.next_action is TradeAction.BUY or auto.one_time_buy):
            met = should_buy(price, crypto.purchase_price, buy_threshold)
            self._journal.log_evaluation(
                user_id, crypto.id, crypto.symbol, "buy", price, crypto.purchase_price, buy_threshold, met
            )
            if met:
                action = TradeAction.BUY

        if crypto.auto_sell and (auto.next_action is TradeAction.SELL or auto.one_time_sell):
            met = should_sell(price, crypto.purchase_price, sell_threshold)
            self._journal.log_evaluation(
                user_id, crypto.id, crypto.symbol, "sell", price, crypto.purchase_price, sell_threshold, met
            )
            if met:
                action = TradeAction.SELL

        if action is None:
            return skipped(f"No trade conditions met for {crypto.symbol}")

        shares = size_order(action, price, crypto.shares, auto, self._default_buy_value)
        if shares <= 0:
            self._journal.log_event(
                user_id,
                AutoTradeEventType.WARNING,
                f"Calculated order size for {crypto.symbol} is zero; skipping {action.value}",
                {"crypto_id": crypto.id, "symbol": crypto.symbol, "price": price},
            )
            return skipped(f"Invalid share amount for {crypto.symbol}", action)

        if not self._lock_service.acquire(user_id, crypto.id, crypto.symbol, action):
            return skipped(f"Auto trade for {crypto.symbol} is already in progress", action)

        try:
            outcome = self._execute_order.execute(
                ExecuteOrderCommand(
                    user_id=user_id,
                    crypto_id=crypto.id,
                    action=action.value,
                    price=price,
                    shares=shares,
                    order_type=auto.order_type,
                    is_auto_order=True,
                )
            )
        except TradingDomainError as exc:
            self._journal.log_execution(
                user_id, crypto.id, crypto.symbol, action.value, shares, price, False, error=exc.message
            )
            return AutoTradeResult(
                success=False,
                message=exc.message,
                crypto_id=crypto.id,
                symbol=crypto.symbol,
                action=action.value,
                shares=shares,
                price=price,
            )
        else:
            self._journal.log_execution(
                user_id,
                crypto.id,
                crypto.symbol,
                action.value,
                shares,
                price,
                True,
                order_id=outcome.order_id,
            )
            if not auto.enable_continuous_trading:
                self._finish_one_time_trade(user_id, crypto.id, auto, action)
            return AutoTradeResult(
                success=True,
                message=outcome.message,
                crypto_id=crypto.id,
                symbol=crypto.symbol,
                action=action.value,
                shares=shares,
                price=price,
                order_id=outcome.order_id,
            )
        finally:
            self._lock_service.release(user_id, crypto.id, crypto.symbol)

    def _finish_one_time_trade(
        self, user_id: str, crypto_id: str, auto: AutoTradeSettings, action: TradeAction
    ) -> None:
        """Turn off the flag that fired so the trade does not repeat."""
        fresh = self._crypto_repo.get(user_id, crypto_id)
        if fresh is None:
            return
        if action is TradeAction.BUY:
            self._crypto_repo.update(replace(fresh, auto_buy=False))
            self._auto_settings_repo.save(replace(auto, one_time_buy=False))
        else:
            self._crypto_repo.update(replace(fresh, auto_sell=False))
            self._auto_settings_repo.save(replace(auto, one_time_sell=False))
        logger.info("Disabled auto %s for %s after one-time trade", action.value, fresh.symbol)
