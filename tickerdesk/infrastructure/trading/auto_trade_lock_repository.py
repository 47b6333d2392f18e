"""
Adapter: Auto-trade lock rows.

Implements AutoTradeLockRepository with SQLAlchemy. The check and
the upsert run inside one transaction; on PostgreSQL the existing row
is read with FOR UPDATE so two acquirers cannot both take it over.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.domain.trading.entities import AutoTradeLock, TradeAction
from tickerdesk.domain.trading.ports import AutoTradeLockRepository
from tickerdesk.domain.trading.trade_rules import is_lock_expired
from tickerdesk.infrastructure.db.models import AutoTradeLockRow
from tickerdesk.infrastructure.db.session import as_utc

logger = logging.getLogger(__name__)


def _to_entity(row: AutoTradeLockRow) -> AutoTradeLock:
    return AutoTradeLock(
        crypto_id=row.crypto_id,
        symbol=row.symbol,
        locked_at=as_utc(row.locked_at),
        locked_by=row.locked_by,
        action=TradeAction(row.action),
    )


class SqlAutoTradeLockRepository(AutoTradeLockRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def try_acquire(self, lock: AutoTradeLock, expiry_seconds: int) -> bool:
        stmt = (
            select(AutoTradeLockRow)
            .where(AutoTradeLockRow.crypto_id == lock.crypto_id)
            .with_for_update()
        )
        with self._session_factory.begin() as session:
            row = session.scalars(stmt).first()
            if row is not None and not is_lock_expired(
                as_utc(row.locked_at), lock.locked_at, expiry_seconds
            ):
                logger.info(
                    "Lock for %s held by %s since %s",
                    lock.symbol,
                    row.locked_by,
                    row.locked_at,
                )
                return False
            if row is None:
                row = AutoTradeLockRow(crypto_id=lock.crypto_id)
                session.add(row)
            row.symbol = lock.symbol
            row.locked_at = lock.locked_at
            row.locked_by = lock.locked_by
            row.action = lock.action.value
            return True

    def get(self, crypto_id: str) -> Optional[AutoTradeLock]:
        with self._session_factory() as session:
            row = session.get(AutoTradeLockRow, crypto_id)
            return _to_entity(row) if row is not None else None

    def release(self, crypto_id: str) -> bool:
        stmt = delete(AutoTradeLockRow).where(AutoTradeLockRow.crypto_id == crypto_id)
        with self._session_factory.begin() as session:
            return session.execute(stmt).rowcount > 0

    def clear_older_than(self, cutoff: datetime) -> int:
        stmt = delete(AutoTradeLockRow).where(AutoTradeLockRow.locked_at < cutoff)
        with self._session_factory.begin() as session:
            return session.execute(stmt).rowcount
