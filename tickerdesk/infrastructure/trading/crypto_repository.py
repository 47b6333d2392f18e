"""
Adapter: Crypto position persistence.

Implements CryptoRepository with SQLAlchemy. Auto-trade settings are
eager-loaded with each crypto; deleting a crypto removes its settings.
"""

from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.domain.trading.entities import Crypto
from tickerdesk.domain.trading.ports import CryptoRepository
from tickerdesk.infrastructure.db.models import CryptoRow
from tickerdesk.infrastructure.db.session import as_utc
from tickerdesk.infrastructure.trading.auto_trade_settings_repository import (
    to_auto_trade_settings,
)


def _to_entity(row: CryptoRow) -> Crypto:
    settings_row = row.auto_trade_settings
    return Crypto(
        id=row.id,
        user_id=row.user_id,
        symbol=row.symbol,
        purchase_price=row.purchase_price,
        shares=row.shares or 0.0,
        priority=row.priority or 0,
        auto_sell=bool(row.auto_sell),
        auto_buy=bool(row.auto_buy),
        auto_trade_settings=(
            to_auto_trade_settings(settings_row) if settings_row is not None else None
        ),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def apply_position(row: CryptoRow, crypto: Crypto) -> None:
    row.symbol = crypto.symbol
    row.purchase_price = crypto.purchase_price
    row.shares = crypto.shares
    row.priority = crypto.priority
    row.auto_sell = crypto.auto_sell
    row.auto_buy = crypto.auto_buy


class SqlCryptoRepository(CryptoRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def list_for_user(self, user_id: str) -> list[Crypto]:
        stmt = (
            select(CryptoRow)
            .where(CryptoRow.user_id == user_id)
            .order_by(CryptoRow.priority, CryptoRow.created_at)
        )
        with self._session_factory() as session:
            return [_to_entity(row) for row in session.scalars(stmt)]

    def list_auto_trade_candidates(self, user_id: str) -> list[Crypto]:
        stmt = (
            select(CryptoRow)
            .where(
                CryptoRow.user_id == user_id,
                or_(CryptoRow.auto_buy.is_(True), CryptoRow.auto_sell.is_(True)),
            )
            .order_by(CryptoRow.priority)
        )
        with self._session_factory() as session:
            return [_to_entity(row) for row in session.scalars(stmt)]

    def get(self, user_id: str, crypto_id: str) -> Optional[Crypto]:
        with self._session_factory() as session:
            row = session.get(CryptoRow, crypto_id)
            if row is None or row.user_id != user_id:
                return None
            return _to_entity(row)

    def get_by_symbol(self, user_id: str, symbol: str) -> Optional[Crypto]:
        stmt = select(CryptoRow).where(
            CryptoRow.user_id == user_id, CryptoRow.symbol == symbol
        )
        with self._session_factory() as session:
            row = session.scalars(stmt).first()
            return _to_entity(row) if row is not None else None

    def list_symbols(self) -> list[str]:
        stmt = select(CryptoRow.symbol).distinct().order_by(CryptoRow.symbol)
        with self._session_factory() as session:
            return list(session.scalars(stmt))

    def max_priority(self, user_id: str) -> int:
        stmt = select(func.max(CryptoRow.priority)).where(CryptoRow.user_id == user_id)
        with self._session_factory() as session:
            value = session.scalar(stmt)
        return -1 if value is None else value

    def add(self, crypto: Crypto) -> Crypto:
        with self._session_factory.begin() as session:
            row = CryptoRow(
                id=crypto.id,
                user_id=crypto.user_id,
                symbol=crypto.symbol,
                purchase_price=crypto.purchase_price,
                shares=crypto.shares,
                priority=crypto.priority,
                auto_sell=crypto.auto_sell,
                auto_buy=crypto.auto_buy,
            )
            session.add(row)
            session.flush()
            return _to_entity(row)

    def update(self, crypto: Crypto) -> Crypto:
        with self._session_factory.begin() as session:
            row = session.get(CryptoRow, crypto.id)
            if row is None:
                raise LookupError(crypto.id)
            apply_position(row, crypto)
            session.flush()
            return _to_entity(row)

    def delete(self, user_id: str, crypto_id: str) -> bool:
        with self._session_factory.begin() as session:
            row = session.get(CryptoRow, crypto_id)
            if row is None or row.user_id != user_id:
                return False
            session.delete(row)
            return True

    def reorder(self, user_id: str, ordered_ids: list[str]) -> None:
        with self._session_factory.begin() as session:
            rows = {
                row.id: row
                for row in session.scalars(select(CryptoRow).where(CryptoRow.user_id == user_id))
            }
            for priority, crypto_id in enumerate(ordered_ids):
                if crypto_id in rows:
                    rows[crypto_id].priority = priority
