"""
Adapter: Per-user settings persistence.

Implements SettingsRepository with SQLAlchemy.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from tickerdesk.domain.trading.entities import Settings
from tickerdesk.domain.trading.ports import SettingsRepository
from tickerdesk.infrastructure.db.models import SettingsRow

_FIELDS = (
    "sell_threshold_percent",
    "buy_threshold_percent",
    "check_frequency_seconds",
    "trade_platform_api_key",
    "trade_platform_api_secret",
    "finnhub_api_key",
    "kraken_api_key",
    "kraken_api_sign",
    "kraken_websocket_url",
    "enable_auto_stock_trading",
    "enable_auto_crypto_trading",
    "enable_manual_crypto_trading",
)


def _to_entity(row: SettingsRow) -> Settings:
    return Settings(
        id=row.id,
        user_id=row.user_id,
        **{name: getattr(row, name) for name in _FIELDS},
    )


class SqlSettingsRepository(SettingsRepository):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def get(self, user_id: str) -> Optional[Settings]:
        stmt = select(SettingsRow).where(SettingsRow.user_id == user_id)
        with self._session_factory() as session:
            row = session.scalars(stmt).first()
            return _to_entity(row) if row is not None else None

    def save(self, settings: Settings) -> Settings:
        stmt = select(SettingsRow).where(SettingsRow.user_id == settings.user_id)
        with self._session_factory.begin() as session:
            row = session.scalars(stmt).first()
            if row is None:
                row = SettingsRow(user_id=settings.user_id)
                session.add(row)
            for name in _FIELDS:
                setattr(row, name, getattr(settings, name))
            session.flush()
            return _to_entity(row)

    def list_auto_crypto_user_ids(self) -> list[str]:
        stmt = select(SettingsRow.user_id).where(
            SettingsRow.enable_auto_crypto_trading.is_(True)
        )
        with self._session_factory() as session:
            return list(session.scalars(stmt))
