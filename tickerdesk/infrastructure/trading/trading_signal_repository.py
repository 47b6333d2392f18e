"""
Adapter: Trading signal persistence.

Implements TradingSignalRepository with SQLAlchemy. An entry signal is
open while it is ACTIVE and no exit signal references it.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased, sessionmaker

from tickerdesk.domain.trading.entities import (
    SignalDirection,
    SignalStatus,
    SignalType,
    TradingSignal,
)
from tickerdesk.domain.trading.ports import TradingSignalRepository
from tickerdesk.infrastructure.db.models import TradingSignalRow, new_id
from tickerdesk.infrastructure.db.session import as_utc


def _to_entity(row: TradingSignalRow) -> TradingSignal:
    return TradingSignal(
        id=row.id,
        user_id=row.user_id,
        symbol=row.symbol,
        signal_type=SignalType(row.signal_type),
        direction=SignalDirection(row.direction) if row.direction else None,
        price=row.price,
        confidence=row.confidence,
        reason=row.reason,
        timeframe=row.timeframe,
        target_price=row.target_price,
        stop_loss_price=row.stop_loss_price,
        related_signal_id=row.related_signal_id,
        profit_loss=row.profit_loss,
        profit_loss_percent=row.profit_loss_percent,
        status=SignalStatus(row.status),
        executed_at=as_utc(row.executed_at),
        timestamp=as_utc(row.timestamp),
        updated_at=as_utc(row.updated_at),
    )


class SqlTradingSignalRepository(TradingSignalRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def add(self, signal: TradingSignal) -> TradingSignal:
        with self._session_factory.begin() as session:
            row = TradingSignalRow(
                id=signal.id or new_id(),
                user_id=signal.user_id,
                symbol=signal.symbol,
                timestamp=signal.timestamp,
                signal_type=signal.signal_type.value,
                direction=signal.direction.value if signal.direction else None,
                price=signal.price,
                confidence=signal.confidence,
                reason=signal.reason,
                timeframe=signal.timeframe,
                target_price=signal.target_price,
                stop_loss_price=signal.stop_loss_price,
                related_signal_id=signal.related_signal_id,
                profit_loss=signal.profit_loss,
                profit_loss_percent=signal.profit_loss_percent,
                status=signal.status.value,
                executed_at=signal.executed_at,
            )
            session.add(row)
            session.flush()
            return _to_entity(row)

    def get(self, user_id: str, signal_id: str) -> Optional[TradingSignal]:
        with self._session_factory() as session:
            row = session.get(TradingSignalRow, signal_id)
            if row is None or row.user_id != user_id:
                return None
            return _to_entity(row)

    def list_for_user(
        self,
        user_id: str,
        symbol: Optional[str] = None,
        timeframe: Optional[str] = None,
        signal_type: Optional[SignalType] = None,
        status: Optional[SignalStatus] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[TradingSignal], int]:
        conditions = [TradingSignalRow.user_id == user_id]
        if symbol is not None:
            conditions.append(TradingSignalRow.symbol == symbol)
        if timeframe is not None:
            conditions.append(TradingSignalRow.timeframe == timeframe)
        if signal_type is not None:
            conditions.append(TradingSignalRow.signal_type == signal_type.value)
        if status is not None:
            conditions.append(TradingSignalRow.status == status.value)

        page = (
            select(TradingSignalRow)
            .where(*conditions)
            .order_by(TradingSignalRow.timestamp.desc())
            .limit(limit)
            .offset(offset)
        )
        count = select(func.count()).select_from(TradingSignalRow).where(*conditions)
        with self._session_factory() as session:
            signals = [_to_entity(row) for row in session.scalars(page)]
            total = session.scalar(count) or 0
        return signals, total

    def open_entries(self, user_id: str, symbol: str) -> list[TradingSignal]:
        exits = aliased(TradingSignalRow)
        closed = (
            select(exits.id)
            .where(
                exits.signal_type == SignalType.EXIT.value,
                exits.related_signal_id == TradingSignalRow.id,
            )
            .exists()
        )
        stmt = (
            select(TradingSignalRow)
            .where(
                TradingSignalRow.user_id == user_id,
                TradingSignalRow.symbol == symbol,
                TradingSignalRow.signal_type == SignalType.ENTRY.value,
                TradingSignalRow.status == SignalStatus.ACTIVE.value,
                ~closed,
            )
            .order_by(TradingSignalRow.timestamp.desc())
        )
        with self._session_factory() as session:
            return [_to_entity(row) for row in session.scalars(stmt)]

    def update_status(
        self,
        user_id: str,
        signal_id: str,
        status: SignalStatus,
        executed_at: Optional[datetime] = None,
    ) -> Optional[TradingSignal]:
        with self._session_factory.begin() as session:
            row = session.get(TradingSignalRow, signal_id)
            if row is None or row.user_id != user_id:
                return None
            row.status = status.value
            if executed_at is not None:
                row.executed_at = executed_at
            session.flush()
            return _to_entity(row)
