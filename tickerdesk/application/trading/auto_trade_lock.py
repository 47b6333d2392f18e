"""
Use case: Auto-trade locking.

Keeps two auto trades for the same crypto from running at once.
The in-memory map stops concurrent attempts inside this process; the
lock row stops them across processes, with a fixed expiry so a crashed
holder cannot block trading forever.

This is a best-effort guard, not a distributed lock protocol.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta
from typing import Callable

from tickerdesk.application.trading.auto_trade_journal import AutoTradeJournal
from tickerdesk.domain.trading.entities import (
    AutoTradeEventType,
    AutoTradeLock,
    TradeAction,
    utc_now,
)
from tickerdesk.domain.trading.ports import AutoTradeLockRepository
from tickerdesk.domain.trading.trade_rules import (
    DEFAULT_LOCK_EXPIRY_SECONDS,
    is_lock_expired,
)

logger = logging.getLogger(__name__)


class AutoTradeLockService:
    def __init__(
        self,
        lock_repo: AutoTradeLockRepository,
        journal: AutoTradeJournal,
        expiry_seconds: int = DEFAULT_LOCK_EXPIRY_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._lock_repo = lock_repo
        self._journal = journal
        self._expiry_seconds = expiry_seconds
        self._clock = clock
        self._guard = threading.Lock()
        self._held: dict[str, datetime] = {}

    def acquire(
        self, user_id: str, crypto_id: str, symbol: str, action: TradeAction
    ) -> bool:
        """Try to take the lock. Returns False when held or on any failure."""
        now = self._clock()
        with self._guard:
            held_since = self._held.get(crypto_id)
            if held_since is not None and not is_lock_expired(held_since, now, self._expiry_seconds):
                self._journal.log_event(
                    user_id,
                    AutoTradeEventType.WARNING,
                    f"Auto trade for {symbol} already in progress in this process",
                    {"crypto_id": crypto_id, "symbol": symbol},
                )
                return False
            self._held[crypto_id] = now

        attempt_id = uuid.uuid4().hex[:8]
        lock = AutoTradeLock(
            crypto_id=crypto_id,
            symbol=symbol,
            locked_at=now,
            locked_by=f"{user_id}-{attempt_id}",
            action=action,
        )
        try:
            acquired = self._lock_repo.try_acquire(lock, self._expiry_seconds)
        except Exception as exc:
            self._drop(crypto_id)
            logger.exception("Lock acquisition failed for %s", symbol)
            self._journal.log_event(
                user_id,
                AutoTradeEventType.ERROR,
                f"Error acquiring auto trade lock for {symbol}: {exc}",
                {"crypto_id": crypto_id, "symbol": symbol},
            )
            return False

        if not acquired:
            self._drop(crypto_id)
            self._journal.log_event(
                user_id,
                AutoTradeEventType.WARNING,
                f"Auto trade for {symbol} is locked by another process",
                {"crypto_id": crypto_id, "symbol": symbol},
            )
            return False

        self._journal.log_event(
            user_id,
            AutoTradeEventType.INFO,
            f"Acquired auto trade lock for {symbol} ({action.value})",
            {"crypto_id": crypto_id, "symbol": symbol, "locked_by": lock.locked_by},
        )
        return True

    def release(self, user_id: str, crypto_id: str, symbol: str) -> None:
        """Release the lock. A missing row is not an error."""
        self._drop(crypto_id)
        try:
            removed = self._lock_repo.release(crypto_id)
        except Exception as exc:
            logger.exception("Lock release failed for %s", symbol)
            self._journal.log_event(
                user_id,
                AutoTradeEventType.ERROR,
                f"Error releasing auto trade lock for {symbol}: {exc}",
                {"crypto_id": crypto_id, "symbol": symbol},
            )
            return
        self._journal.log_event(
            user_id,
            AutoTradeEventType.INFO,
            f"Released auto trade lock for {symbol}"
            + ("" if removed else " (no lock row found)"),
            {"crypto_id": crypto_id, "symbol": symbol},
        )

    def clear_expired(self) -> int:
        """Delete lock rows older than the expiry. Returns the count removed."""
        cutoff = self._clock() - timedelta(seconds=self._expiry_seconds)
        with self._guard:
            stale = [cid for cid, ts in self._held.items() if ts < cutoff]
            for crypto_id in stale:
                del self._held[crypto_id]
        count = self._lock_repo.clear_older_than(cutoff)
        if count:
            logger.info("Cleared %d expired auto trade locks", count)
        return count

    def _drop(self, crypto_id: str) -> None:
        with self._guard:
            self._held.pop(crypto_id, None)
