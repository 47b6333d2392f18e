"""
Auto-trade journal.

Every auto-trade event goes to the application log. Events that matter
after the fact (errors, successes, executed or failed trades) are also
written to the transaction log as `auto_trade_log` rows so users can
see them in their history.

Journal failures never propagate: losing a log line must not abort a trade.
"""

import logging
import uuid
from typing import Any, Optional

from tickerdesk.domain.trading.entities import (
    AutoTradeEventType,
    CryptoTransaction,
    TransactionAction,
    utc_now,
)
from tickerdesk.domain.trading.ports import CryptoTransactionRepository

logger = logging.getLogger(__name__)

_PERSISTED_TYPES = {AutoTradeEventType.ERROR, AutoTradeEventType.SUCCESS}
_PERSISTED_PHRASES = ("executed auto", "Failed to execute")

_LOG_LEVELS = {
    AutoTradeEventType.INFO: logging.INFO,
    AutoTradeEventType.SUCCESS: logging.INFO,
    AutoTradeEventType.WARNING: logging.WARNING,
    AutoTradeEventType.ERROR: logging.ERROR,
}


def should_persist(event_type: AutoTradeEventType, message: str) -> bool:
    return event_type in _PERSISTED_TYPES or any(p in message for p in _PERSISTED_PHRASES)


class AutoTradeJournal:
    def __init__(self, transaction_repo: CryptoTransactionRepository) -> None:
        self._transaction_repo = transaction_repo

    def log_event(
        self,
        user_id: str,
        event_type: AutoTradeEventType,
        message: str,
        data: Optional[dict[str, Any]] = None,
    ) -> Optional[CryptoTransaction]:
        """Log an event; return the persisted row when one was written."""
        data = data or {}
        logger.log(_LOG_LEVELS[event_type], "[%s] %s", event_type.value, message)
        if not should_persist(event_type, message):
            return None

        try:
            return self._transaction_repo.add(
                CryptoTransaction(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    crypto_id=data.get("crypto_id"),
                    symbol=data.get("symbol") or "UNKNOWN",
                    action=TransactionAction.AUTO_TRADE_LOG,
                    shares=float(data.get("shares") or 0.0),
                    price=float(data.get("price") or 0.0),
                    total_amount=float(data.get("shares") or 0.0) * float(data.get("price") or 0.0),
                    log_info={
                        "timestamp": utc_now().isoformat(),
                        "type": event_type.value,
                        "message": message,
                        "data": data,
                    },
                )
            )
        except Exception:
            logger.exception("Could not persist auto-trade journal entry")
            return None

    def log_evaluation(
        self,
        user_id: str,
        crypto_id: str,
        symbol: str,
        action: str,
        current_price: float,
        purchase_price: float,
        threshold_percent: float,
        condition_met: bool,
    ) -> None:
        """Record a threshold check; only checks that fire are persisted."""
        change = (
            (current_price - purchase_price) / purchase_price * 100 if purchase_price > 0 else 0.0
        )
        data = {
            "crypto_id": crypto_id,
            "symbol": symbol,
            "action": action,
            "price": current_price,
            "purchase_price": purchase_price,
            "threshold_percent": threshold_percent,
            "percent_change": round(change, 4),
        }
        if condition_met:
            direction = "drop" if action == "buy" else "gain"
            message = (
                f"Auto trade condition MET for {symbol}: {action.upper()} at "
                f"${current_price} ({abs(change):.2f}% {direction})"
            )
            self.log_event(user_id, AutoTradeEventType.SUCCESS, message, data)
        else:
            message = (
                f"Auto trade condition not met for {symbol}: {action} threshold "
                f"{threshold_percent}% vs change {change:.2f}%"
            )
            self.log_event(user_id, AutoTradeEventType.INFO, message, data)

    def log_execution(
        self,
        user_id: str,
        crypto_id: str,
        symbol: str,
        action: str,
        shares: float,
        price: float,
        success: bool,
        order_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        data = {
            "crypto_id": crypto_id,
            "symbol": symbol,
            "action": action,
            "shares": shares,
            "price": price,
            "order_id": order_id,
            "error": error,
        }
        total = shares * price
        if success:
            message = (
                f"Successfully executed auto {action} for {shares} shares of {symbol} "
                f"at ${price} (Total: ${total:.2f})"
            )
            self.log_event(user_id, AutoTradeEventType.SUCCESS, message, data)
        else:
            message = (
                f"Failed to execute auto {action} for {shares} shares of {symbol} "
                f"at ${price}: {error or 'unknown error'}"
            )
            self.log_event(user_id, AutoTradeEventType.ERROR, message, data)
