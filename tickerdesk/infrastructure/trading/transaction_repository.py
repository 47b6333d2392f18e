"""
Adapter: Transaction log persistence.

Implements the crypto and stock transaction repositories with SQLAlchemy.
Rows are append-only.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.domain.trading.entities import (
    AutoTradeSettings,
    Crypto,
    CryptoTransaction,
    StockTransaction,
    TradeAction,
    TransactionAction,
)
from tickerdesk.domain.trading.ports import (
    CryptoTransactionRepository,
    StockTransactionRepository,
)
from tickerdesk.infrastructure.db.models import (
    CryptoRow,
    CryptoTransactionRow,
    StockTransactionRow,
)
from tickerdesk.infrastructure.db.session import as_utc
from tickerdesk.infrastructure.trading.auto_trade_settings_repository import (
    upsert_auto_trade_settings,
)
from tickerdesk.infrastructure.trading.crypto_repository import apply_position
from tickerdesk.infrastructure.trading.user_account_repository import (
    apply_balance_delta,
    load_user_row,
)


def _crypto_to_entity(row: CryptoTransactionRow) -> CryptoTransaction:
    return CryptoTransaction(
        id=row.id,
        user_id=row.user_id,
        crypto_id=row.crypto_id,
        symbol=row.symbol,
        action=TransactionAction(row.action),
        shares=row.shares or 0.0,
        price=row.price or 0.0,
        total_amount=row.total_amount or 0.0,
        api_request=row.api_request,
        api_response=row.api_response,
        log_info=row.log_info,
        created_at=as_utc(row.created_at),
    )


def _crypto_row(transaction: CryptoTransaction) -> CryptoTransactionRow:
    return CryptoTransactionRow(
        id=transaction.id,
        user_id=transaction.user_id,
        crypto_id=transaction.crypto_id,
        symbol=transaction.symbol,
        action=transaction.action.value,
        shares=transaction.shares,
        price=transaction.price,
        total_amount=transaction.total_amount,
        api_request=transaction.api_request,
        api_response=transaction.api_response,
        log_info=transaction.log_info,
        created_at=transaction.created_at,
    )


def _stock_to_entity(row: StockTransactionRow) -> StockTransaction:
    return StockTransaction(
        id=row.id,
        user_id=row.user_id,
        stock_id=row.stock_id,
        ticker=row.ticker,
        action=TradeAction(row.action),
        shares=row.shares,
        price=row.price,
        total_amount=row.total_amount,
        created_at=as_utc(row.created_at),
    )


class SqlCryptoTransactionRepository(CryptoTransactionRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def add(self, transaction: CryptoTransaction) -> CryptoTransaction:
        with self._session_factory.begin() as session:
            row = _crypto_row(transaction)
            session.add(row)
            session.flush()
            return _crypto_to_entity(row)

    def record_fill(
        self,
        transaction: CryptoTransaction,
        position: Crypto,
        balance_delta: float,
        auto_settings: Optional[AutoTradeSettings] = None,
    ) -> CryptoTransaction:
        with self._session_factory.begin() as session:
            position_row = session.get(CryptoRow, position.id)
            if position_row is None:
                raise LookupError(position.id)
            row = _crypto_row(transaction)
            session.add(row)
            apply_position(position_row, position)
            if auto_settings is not None:
                upsert_auto_trade_settings(session, auto_settings)
            apply_balance_delta(load_user_row(session, transaction.user_id), balance_delta)
            session.flush()
            return _crypto_to_entity(row)

    def list_for_user(
        self, user_id: str, limit: int = 100, crypto_id: Optional[str] = None
    ) -> list[CryptoTransaction]:
        stmt = select(CryptoTransactionRow).where(CryptoTransactionRow.user_id == user_id)
        if crypto_id is not None:
            stmt = stmt.where(CryptoTransactionRow.crypto_id == crypto_id)
        stmt = stmt.order_by(CryptoTransactionRow.created_at.desc()).limit(limit)
        with self._session_factory() as session:
            return [_crypto_to_entity(row) for row in session.scalars(stmt)]


class SqlStockTransactionRepository(StockTransactionRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def add(self, transaction: StockTransaction) -> StockTransaction:
        with self._session_factory.begin() as session:
            row = StockTransactionRow(
                id=transaction.id,
                user_id=transaction.user_id,
                stock_id=transaction.stock_id,
                ticker=transaction.ticker,
                action=transaction.action.value,
                shares=transaction.shares,
                price=transaction.price,
                total_amount=transaction.total_amount,
                created_at=transaction.created_at,
            )
            session.add(row)
            session.flush()
            return _stock_to_entity(row)

    def list_for_user(self, user_id: str, limit: int = 100) -> list[StockTransaction]:
        stmt = (
            select(StockTransactionRow)
            .where(StockTransactionRow.user_id == user_id)
            .order_by(StockTransactionRow.created_at.desc())
            .limit(limit)
        )
        with self._session_factory() as session:
            return [_stock_to_entity(row) for row in session.scalars(stmt)]
