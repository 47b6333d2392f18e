"""
Adapter: Price history persistence.

Implements PriceHistoryRepository with SQLAlchemy. Feeds append samples;
technical analysis reads the most recent window back oldest-first.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.domain.trading.entities import AssetClass, PricePoint
from tickerdesk.domain.trading.ports import PriceHistoryRepository
from tickerdesk.infrastructure.db.models import PriceHistoryRow
from tickerdesk.infrastructure.db.session import as_utc


def _to_entity(row: PriceHistoryRow) -> PricePoint:
    return PricePoint(
        symbol=row.symbol,
        price=row.price,
        timestamp=as_utc(row.timestamp),
        asset_class=AssetClass(row.asset_class or "crypto"),
        volume=row.volume,
    )


class SqlPriceHistoryRepository(PriceHistoryRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def add_batch(self, points: list[PricePoint]) -> int:
        if not points:
            return 0
        with self._session_factory.begin() as session:
            session.add_all(
                PriceHistoryRow(
                    symbol=point.symbol,
                    asset_class=point.asset_class.value,
                    price=point.price,
                    volume=point.volume,
                    timestamp=point.timestamp,
                )
                for point in points
            )
        return len(points)

    def recent(self, symbol: str, limit: int = 200) -> list[PricePoint]:
        stmt = (
            select(PriceHistoryRow)
            .where(PriceHistoryRow.symbol == symbol)
            .order_by(PriceHistoryRow.timestamp.desc(), PriceHistoryRow.id.desc())
            .limit(limit)
        )
        with self._session_factory() as session:
            rows = list(session.scalars(stmt))
        rows.reverse()
        return [_to_entity(row) for row in rows]

    def latest_before(self, symbol: str, before: datetime) -> Optional[PricePoint]:
        stmt = (
            select(PriceHistoryRow)
            .where(PriceHistoryRow.symbol == symbol, PriceHistoryRow.timestamp <= before)
            .order_by(PriceHistoryRow.timestamp.desc())
            .limit(1)
        )
        with self._session_factory() as session:
            row = session.scalars(stmt).first()
            return _to_entity(row) if row is not None else None
