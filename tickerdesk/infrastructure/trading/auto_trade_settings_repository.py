"""
Adapter: Per-crypto auto-trade settings persistence.

Implements AutoTradeSettingsRepository with SQLAlchemy.
One row per crypto; saving replaces the existing row in place.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.domain.trading.entities import AutoTradeSettings, TradeAction
from tickerdesk.domain.trading.ports import AutoTradeSettingsRepository
from tickerdesk.infrastructure.db.models import AutoTradeSettingsRow


def to_auto_trade_settings(row: AutoTradeSettingsRow) -> AutoTradeSettings:
    return AutoTradeSettings(
        id=row.id,
        crypto_id=row.crypto_id,
        buy_threshold_percent=row.buy_threshold_percent or 0.0,
        sell_threshold_percent=row.sell_threshold_percent or 0.0,
        enable_continuous_trading=bool(row.enable_continuous_trading),
        one_time_buy=bool(row.one_time_buy),
        one_time_sell=bool(row.one_time_sell),
        next_action=TradeAction(row.next_action or "buy"),
        trade_by_shares=bool(row.trade_by_shares),
        trade_by_value=bool(row.trade_by_value),
        shares_amount=row.shares_amount or 0.0,
        total_value=row.total_value or 0.0,
        order_type=row.order_type or "market",
    )


def upsert_auto_trade_settings(
    session: Session, settings: AutoTradeSettings
) -> AutoTradeSettingsRow:
    stmt = select(AutoTradeSettingsRow).where(
        AutoTradeSettingsRow.crypto_id == settings.crypto_id
    )
    row = session.scalars(stmt).first()
    if row is None:
        row = AutoTradeSettingsRow(crypto_id=settings.crypto_id)
        session.add(row)
    row.buy_threshold_percent = settings.buy_threshold_percent
    row.sell_threshold_percent = settings.sell_threshold_percent
    row.enable_continuous_trading = settings.enable_continuous_trading
    row.one_time_buy = settings.one_time_buy
    row.one_time_sell = settings.one_time_sell
    row.next_action = settings.next_action.value
    row.trade_by_shares = settings.trade_by_shares
    row.trade_by_value = settings.trade_by_value
    row.shares_amount = settings.shares_amount
    row.total_value = settings.total_value
    row.order_type = settings.order_type
    session.flush()
    return row


class SqlAutoTradeSettingsRepository(AutoTradeSettingsRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, crypto_id: str) -> Optional[AutoTradeSettings]:
        stmt = select(AutoTradeSettingsRow).where(AutoTradeSettingsRow.crypto_id == crypto_id)
        with self._session_factory() as session:
            row = session.scalars(stmt).first()
            return to_auto_trade_settings(row) if row is not None else None

    def save(self, settings: AutoTradeSettings) -> AutoTradeSettings:
        with self._session_factory.begin() as session:
            return to_auto_trade_settings(upsert_auto_trade_settings(session, settings))
