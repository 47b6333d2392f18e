"""
Adapter: Stock position persistence.

Implements StockRepository with SQLAlchemy. Every query is scoped
to the owning user so one user can never read another's rows.
"""

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.domain.trading.entities import Stock
from tickerdesk.domain.trading.ports import StockRepository
from tickerdesk.infrastructure.db.models import StockRow
from tickerdesk.infrastructure.db.session import as_utc


def _to_entity(row: StockRow) -> Stock:
    return Stock(
        id=row.id,
        user_id=row.user_id,
        ticker=row.ticker,
        purchase_price=row.purchase_price,
        shares=row.shares or 0.0,
        priority=row.priority or 0,
        auto_sell=bool(row.auto_sell),
        auto_buy=bool(row.auto_buy),
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class SqlStockRepository(StockRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def list_for_user(self, user_id: str) -> list[Stock]:
        stmt = (
            select(StockRow)
            .where(StockRow.user_id == user_id)
            .order_by(StockRow.priority, StockRow.created_at)
        )
        with self._session_factory() as session:
            return [_to_entity(row) for row in session.scalars(stmt)]

    def get(self, user_id: str, stock_id: str) -> Optional[Stock]:
        with self._session_factory() as session:
            row = session.get(StockRow, stock_id)
            if row is None or row.user_id != user_id:
                return None
            return _to_entity(row)

    def get_by_ticker(self, user_id: str, ticker: str) -> Optional[Stock]:
        stmt = select(StockRow).where(
            StockRow.user_id == user_id, StockRow.ticker == ticker
        )
        with self._session_factory() as session:
            row = session.scalars(stmt).first()
            return _to_entity(row) if row is not None else None

    def list_tickers(self) -> list[str]:
        stmt = select(StockRow.ticker).distinct().order_by(StockRow.ticker)
        with self._session_factory() as session:
            return list(session.scalars(stmt))

    def max_priority(self, user_id: str) -> int:
        stmt = select(func.max(StockRow.priority)).where(StockRow.user_id == user_id)
        with self._session_factory() as session:
            value = session.scalar(stmt)
        return -1 if value is None else value

    def add(self, stock: Stock) -> Stock:
        with self._session_factory.begin() as session:
            row = StockRow(
                id=stock.id,
                user_id=stock.user_id,
                ticker=stock.ticker,
                purchase_price=stock.purchase_price,
                shares=stock.shares,
                priority=stock.priority,
                auto_sell=stock.auto_sell,
                auto_buy=stock.auto_buy,
            )
            session.add(row)
            session.flush()
            return _to_entity(row)

    def update(self, stock: Stock) -> Stock:
        with self._session_factory.begin() as session:
            row = session.get(StockRow, stock.id)
            if row is None:
                raise LookupError(stock.id)
            row.ticker = stock.ticker
            row.purchase_price = stock.purchase_price
            row.shares = stock.shares
            row.priority = stock.priority
            row.auto_sell = stock.auto_sell
            row.auto_buy = stock.auto_buy
            session.flush()
            return _to_entity(row)

    def delete(self, user_id: str, stock_id: str) -> bool:
        stmt = delete(StockRow).where(StockRow.id == stock_id, StockRow.user_id == user_id)
        with self._session_factory.begin() as session:
            return session.execute(stmt).rowcount > 0

    def reorder(self, user_id: str, ordered_ids: list[str]) -> None:
        with self._session_factory.begin() as session:
            rows = {
                row.id: row
                for row in session.scalars(select(StockRow).where(StockRow.user_id == user_id))
            }
            for priority, stock_id in enumerate(ordered_ids):
                if stock_id in rows:
                    rows[stock_id].priority = priority
