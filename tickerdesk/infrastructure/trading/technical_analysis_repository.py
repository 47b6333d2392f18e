"""
Adapter: Technical analysis output persistence.

Implements TechnicalAnalysisRepository with SQLAlchemy.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.domain.trading.entities import (
    BreakoutType,
    Recommendation,
    TechnicalAnalysis,
)
from tickerdesk.domain.trading.ports import TechnicalAnalysisRepository
from tickerdesk.infrastructure.db.models import TechnicalAnalysisRow, new_id
from tickerdesk.infrastructure.db.session import as_utc

_NUMERIC_FIELDS = (
    "sma20",
    "sma50",
    "ema12",
    "ema26",
    "rsi14",
    "bollinger_upper",
    "bollinger_middle",
    "bollinger_lower",
    "support_level",
    "resistance_level",
    "breakout_strength",
    "confidence_score",
)


def _to_entity(row: TechnicalAnalysisRow) -> TechnicalAnalysis:
    return TechnicalAnalysis(
        id=row.id,
        symbol=row.symbol,
        instrument=row.instrument,
        timestamp=as_utc(row.timestamp),
        fibonacci_levels=dict(row.fibonacci_levels or {}),
        breakout_detected=bool(row.breakout_detected),
        breakout_type=BreakoutType(row.breakout_type),
        recommendation=Recommendation(row.recommendation),
        raw_data=dict(row.raw_data or {}),
        **{name: getattr(row, name) for name in _NUMERIC_FIELDS},
    )


class SqlTechnicalAnalysisRepository(TechnicalAnalysisRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def save(self, analysis: TechnicalAnalysis) -> TechnicalAnalysis:
        with self._session_factory.begin() as session:
            row = TechnicalAnalysisRow(
                id=analysis.id or new_id(),
                symbol=analysis.symbol,
                instrument=analysis.instrument,
                timestamp=analysis.timestamp,
                fibonacci_levels=analysis.fibonacci_levels,
                breakout_detected=analysis.breakout_detected,
                breakout_type=analysis.breakout_type.value,
                recommendation=analysis.recommendation.value,
                raw_data=analysis.raw_data,
                **{name: getattr(analysis, name) for name in _NUMERIC_FIELDS},
            )
            session.add(row)
            session.flush()
            return _to_entity(row)

    def get(self, analysis_id: str) -> Optional[TechnicalAnalysis]:
        with self._session_factory() as session:
            row = session.get(TechnicalAnalysisRow, analysis_id)
            return _to_entity(row) if row is not None else None

    def latest(self, symbol: str) -> Optional[TechnicalAnalysis]:
        stmt = (
            select(TechnicalAnalysisRow)
            .where(TechnicalAnalysisRow.symbol == symbol)
            .order_by(TechnicalAnalysisRow.timestamp.desc())
            .limit(1)
        )
        with self._session_factory() as session:
            row = session.scalars(stmt).first()
            return _to_entity(row) if row is not None else None
