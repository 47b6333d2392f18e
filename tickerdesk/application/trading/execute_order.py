"""
Use case: Execute a crypto order on the exchange.

Input: ExecuteOrderCommand
Output: ExecuteOrderResult
Side effects:
    - Submits an order through ExchangeOrderPort.
    - Writes one transaction row per attempt (fill or error).
    - On a fill: updates shares, purchase price (buys), USD balance and,
      for continuous auto orders, flips next_action, all in one DB
      transaction.
Failure cases:
    MissingCredentialsError, TradingDisabledError, ValidationError,
    CryptoNotFoundError, InsufficientSharesError, ExchangeOrderError,
    ExchangeUnavailableError.
"""

import json
import logging
import uuid
from dataclasses import replace
from typing import Any, Optional

from tickerdesk.application.trading.dtos import (
    ExecuteOrderCommand,
    ExecuteOrderResult,
    transaction_payload,
)
from tickerdesk.domain.trading.entities import (
    AutoTradeSettings,
    Crypto,
    CryptoTransaction,
    ExchangeCredentials,
    OrderReceipt,
    OrderRequest,
    TradeAction,
    TransactionAction,
    utc_now,
)
from tickerdesk.domain.trading.errors import (
    CryptoNotFoundError,
    ExchangeOrderError,
    ExchangeUnavailableError,
    InsufficientSharesError,
    MissingCredentialsError,
    TradingDisabledError,
    ValidationError,
)
from tickerdesk.domain.trading.ports import (
    CryptoRepository,
    CryptoTransactionRepository,
    ExchangeOrderPort,
    SettingsRepository,
)

logger = logging.getLogger(__name__)


def _dump(payload: Optional[dict[str, Any]]) -> Optional[str]:
    return json.dumps(payload, indent=2, default=str) if payload is not None else None


class ExecuteOrderUseCase:
    """Places a buy or sell order for a tracked crypto and books the result."""

    def __init__(
        self,
        settings_repo: SettingsRepository,
        crypto_repo: CryptoRepository,
        transaction_repo: CryptoTransactionRepository,
        exchange: ExchangeOrderPort,
    ) -> None:
        self._settings_repo = settings_repo
        self._crypto_repo = crypto_repo
        self._transaction_repo = transaction_repo
        self._exchange = exchange

    def execute(self, command: ExecuteOrderCommand) -> ExecuteOrderResult:
        settings = self._settings_repo.get(command.user_id)
        crypto = self._crypto_repo.get(command.user_id, command.crypto_id)
        symbol = crypto.symbol if crypto is not None else "UNKNOWN"

        if settings is None or not settings.has_kraken_credentials:
            logger.warning("Order rejected for user=%s: no Kraken credentials", command.user_id)
            row = self._record_error(
                command,
                crypto,
                symbol,
                shares=command.shares or 0.0,
                log_info={
                    "status": "failed",
                    "error_type": "missing_credentials",
                    "message": "Kraken API credentials not configured",
                },
            )
            raise MissingCredentialsError(transaction=transaction_payload(row))

        if command.is_auto_order and not settings.enable_auto_crypto_trading:
            raise TradingDisabledError("Auto crypto trading is disabled")
        if not command.is_auto_order and not settings.enable_manual_crypto_trading:
            raise TradingDisabledError("Manual crypto trading is disabled")

        action = self._parse_action(command.action)
        shares = self._resolve_shares(command)

        if crypto is None:
            raise CryptoNotFoundError(command.crypto_id)
        if action is TradeAction.SELL and crypto.shares < shares:
            raise InsufficientSharesError(crypto.symbol, shares, crypto.shares)

        order = OrderRequest(
            symbol=crypto.symbol,
            action=action,
            volume=shares,
            price=command.price,
            order_type=command.order_type or "market",
        )
        credentials = ExchangeCredentials(
            api_key=settings.kraken_api_key, api_secret=settings.kraken_api_sign
        )

        logger.info(
            "Executing %s order for %s shares of %s at %s (auto=%s)",
            action.value,
            shares,
            crypto.symbol,
            command.price,
            command.is_auto_order,
        )
        try:
            receipt = self._exchange.add_order(credentials, order)
        except ExchangeOrderError as exc:
            row = self._record_error(
                command,
                crypto,
                crypto.symbol,
                shares=shares,
                api_request=exc.api_request,
                api_response=exc.api_response,
                log_info={
                    "status": "failed",
                    "requested_action": action.value,
                    "error_type": exc.error_type,
                    "message": exc.message,
                    "order_type": order.order_type,
                },
            )
            exc.transaction = transaction_payload(row)
            raise
        except ExchangeUnavailableError as exc:
            row = self._record_error(
                command,
                crypto,
                crypto.symbol,
                shares=shares,
                api_request=exc.api_request,
                log_info={
                    "status": "failed",
                    "requested_action": action.value,
                    "error_type": exc.error_type,
                    "message": exc.message,
                },
            )
            exc.transaction = transaction_payload(row)
            raise
        except Exception as exc:
            self._record_unexpected(command, crypto, shares, exc)
            raise

        try:
            return self._book_fill(command, crypto, action, shares, receipt)
        except Exception as exc:
            self._record_unexpected(command, crypto, shares, exc)
            raise

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_action(raw: str) -> TradeAction:
        try:
            return TradeAction((raw or "").lower())
        except ValueError:
            raise ValidationError("Action must be 'buy' or 'sell'") from None

    @staticmethod
    def _resolve_shares(command: ExecuteOrderCommand) -> float:
        if command.price is None or command.price <= 0:
            raise ValidationError("A positive price is required")
        shares = command.shares
        if not shares and command.total_value:
            shares = command.total_value / command.price
        if shares is None or shares <= 0:
            raise ValidationError("A positive number of shares (or a total value) is required")
        return shares

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _book_fill(
        self,
        command: ExecuteOrderCommand,
        crypto: Crypto,
        action: TradeAction,
        shares: float,
        receipt: OrderReceipt,
    ) -> ExecuteOrderResult:
        total = shares * command.price
        message = (
            f"Successfully executed {action.value} order for {shares} shares of "
            f"{crypto.symbol} at ${command.price}"
        )
        fill = CryptoTransaction(
            id=str(uuid.uuid4()),
            user_id=command.user_id,
            crypto_id=crypto.id,
            symbol=crypto.symbol,
            action=TransactionAction(action.value),
            shares=shares,
            price=command.price,
            total_amount=total,
            api_request=_dump(receipt.api_request),
            api_response=_dump(receipt.api_response),
            log_info={
                "timestamp": utc_now().isoformat(),
                "order_id": receipt.order_id,
                "action": action.value,
                "status": "success",
                "auto": command.is_auto_order,
                "message": message,
            },
        )

        new_shares = crypto.shares + shares if action is TradeAction.BUY else crypto.shares - shares
        updated = replace(crypto, shares=max(new_shares, 0.0))
        if action is TradeAction.BUY:
            updated = replace(updated, purchase_price=command.price)

        auto_settings = None
        if command.is_auto_order:
            updated, auto_settings = self._flip_next_action(updated, action)

        row = self._transaction_repo.record_fill(
            fill,
            position=updated,
            balance_delta=-total if action is TradeAction.BUY else total,
            auto_settings=auto_settings,
        )

        logger.info("%s (order %s)", message, receipt.order_id)
        return ExecuteOrderResult(transaction=row, order_id=receipt.order_id, message=message)

    @staticmethod
    def _flip_next_action(
        crypto: Crypto, executed: TradeAction
    ) -> tuple[Crypto, Optional[AutoTradeSettings]]:
        auto_settings = crypto.auto_trade_settings
        if auto_settings is None or not auto_settings.enable_continuous_trading:
            return crypto, None
        next_action = executed.opposite
        logger.info("Next auto action for %s is now %s", crypto.symbol, next_action.value)
        flipped = replace(auto_settings, next_action=next_action)
        return (
            replace(
                crypto,
                auto_buy=next_action is TradeAction.BUY,
                auto_sell=next_action is TradeAction.SELL,
                auto_trade_settings=flipped,
            ),
            flipped,
        )

    def _record_error(
        self,
        command: ExecuteOrderCommand,
        crypto: Optional[Crypto],
        symbol: str,
        shares: float,
        log_info: dict[str, Any],
        api_request: Optional[dict[str, Any]] = None,
        api_response: Optional[dict[str, Any]] = None,
    ) -> CryptoTransaction:
        price = command.price or 0.0
        return self._transaction_repo.add(
            CryptoTransaction(
                id=str(uuid.uuid4()),
                user_id=command.user_id,
                crypto_id=crypto.id if crypto is not None else None,
                symbol=symbol,
                action=TransactionAction.ERROR,
                shares=shares,
                price=price,
                total_amount=shares * price,
                api_request=_dump(api_request),
                api_response=_dump(api_response),
                log_info={
                    "timestamp": utc_now().isoformat(),
                    "auto": command.is_auto_order,
                    **log_info,
                },
            )
        )

    def _record_unexpected(
        self, command: ExecuteOrderCommand, crypto: Crypto, shares: float, exc: Exception
    ) -> None:
        logger.exception("Unexpected error executing order for %s", crypto.symbol)
        try:
            self._record_error(
                command,
                crypto,
                crypto.symbol,
                shares=shares,
                log_info={
                    "status": "failed",
                    "error_type": "internal",
                    "message": type(exc).__name__,
                },
            )
        except Exception:
            logger.exception("Could not record error transaction for %s", crypto.symbol)
