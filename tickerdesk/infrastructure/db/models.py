"""SQLAlchemy ORM models for TickerDesk.

Defines every table in SQLAlchemy 2.0 declarative style. Column types
are dialect-neutral so the same schema runs on PostgreSQL and SQLite.

Usage:
    from tickerdesk.infrastructure.db.models import CryptoRow
    from tickerdesk.infrastructure.db.session import build_session_factory

    with session_factory.begin() as session:
        row = session.get(CryptoRow, crypto_id)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models with naming convention."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# =============================================================================
# ACCOUNTS & SETTINGS
# =============================================================================


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    usd_balance: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class SettingsRow(Base):
    __tablename__ = "settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    sell_threshold_percent: Mapped[float] = mapped_column(Float, default=5.0)
    buy_threshold_percent: Mapped[float] = mapped_column(Float, default=5.0)
    check_frequency_seconds: Mapped[int] = mapped_column(Integer, default=60)
    trade_platform_api_key: Mapped[Optional[str]] = mapped_column(Text)
    trade_platform_api_secret: Mapped[Optional[str]] = mapped_column(Text)
    finnhub_api_key: Mapped[Optional[str]] = mapped_column(Text)
    kraken_api_key: Mapped[Optional[str]] = mapped_column(Text)
    kraken_api_sign: Mapped[Optional[str]] = mapped_column(Text)
    kraken_websocket_url: Mapped[Optional[str]] = mapped_column(Text)
    enable_auto_stock_trading: Mapped[bool] = mapped_column(Boolean, default=False)
    enable_auto_crypto_trading: Mapped[bool] = mapped_column(Boolean, default=False)
    enable_manual_crypto_trading: Mapped[bool] = mapped_column(Boolean, default=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )


# =============================================================================
# HOLDINGS
# =============================================================================


class StockRow(Base):
    __tablename__ = "stocks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ticker: Mapped[str] = mapped_column(String(16), nullable=False)
    purchase_price: Mapped[float] = mapped_column(Float, nullable=False)
    shares: Mapped[float] = mapped_column(Float, default=0.0)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    auto_sell: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_buy: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint("user_id", "ticker", name="uq_stocks_user_ticker"),
        Index("idx_stocks_user_priority", "user_id", "priority"),
    )


class CryptoRow(Base):
    __tablename__ = "cryptos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    purchase_price: Mapped[float] = mapped_column(Float, nullable=False)
    shares: Mapped[float] = mapped_column(Float, default=0.0)
    priority: Mapped[int] = mapped_column(Integer, default=0)
    auto_sell: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_buy: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    auto_trade_settings: Mapped[Optional[AutoTradeSettingsRow]] = relationship(
        back_populates="crypto",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("user_id", "symbol", name="uq_cryptos_user_symbol"),
        Index("idx_cryptos_user_priority", "user_id", "priority"),
    )


class AutoTradeSettingsRow(Base):
    __tablename__ = "crypto_auto_trade_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    crypto_id: Mapped[str] = mapped_column(
        ForeignKey("cryptos.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    buy_threshold_percent: Mapped[float] = mapped_column(Float, default=0.0)
    sell_threshold_percent: Mapped[float] = mapped_column(Float, default=0.0)
    enable_continuous_trading: Mapped[bool] = mapped_column(Boolean, default=False)
    one_time_buy: Mapped[bool] = mapped_column(Boolean, default=False)
    one_time_sell: Mapped[bool] = mapped_column(Boolean, default=False)
    next_action: Mapped[str] = mapped_column(String(8), default="buy")
    trade_by_shares: Mapped[bool] = mapped_column(Boolean, default=True)
    trade_by_value: Mapped[bool] = mapped_column(Boolean, default=False)
    shares_amount: Mapped[float] = mapped_column(Float, default=0.0)
    total_value: Mapped[float] = mapped_column(Float, default=0.0)
    order_type: Mapped[str] = mapped_column(String(16), default="market")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    crypto: Mapped[CryptoRow] = relationship(back_populates="auto_trade_settings")


# =============================================================================
# TRANSACTIONS & LOCKS
# =============================================================================


class CryptoTransactionRow(Base):
    __tablename__ = "crypto_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    crypto_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("cryptos.id", ondelete="SET NULL")
    )
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    action: Mapped[str] = mapped_column(String(16), nullable=False)
    shares: Mapped[float] = mapped_column(Float, default=0.0)
    price: Mapped[float] = mapped_column(Float, default=0.0)
    total_amount: Mapped[float] = mapped_column(Float, default=0.0)
    api_request: Mapped[Optional[str]] = mapped_column(Text)
    api_response: Mapped[Optional[str]] = mapped_column(Text)
    log_info: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)

    __table_args__ = (
        Index("idx_crypto_transactions_user_created", "user_id", "created_at"),
    )


class StockTransactionRow(Base):
    __tablename__ = "stock_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    stock_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("stocks.id", ondelete="SET NULL")
    )
    ticker: Mapped[str] = mapped_column(String(16), nullable=False)
    action: Mapped[str] = mapped_column(String(8), nullable=False)
    shares: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class AutoTradeLockRow(Base):
    __tablename__ = "crypto_auto_trade_locks"

    crypto_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    locked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    locked_by: Mapped[str] = mapped_column(String(128), nullable=False)
    action: Mapped[str] = mapped_column(String(8), nullable=False)


# =============================================================================
# MARKET DATA & ANALYSIS
# =============================================================================


class PriceHistoryRow(Base):
    __tablename__ = "price_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    asset_class: Mapped[str] = mapped_column(String(8), default="crypto")
    price: Mapped[float] = mapped_column(Float, nullable=False)
    volume: Mapped[Optional[float]] = mapped_column(Float)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_price_history_symbol_ts", "symbol", "timestamp"),
    )


class TechnicalAnalysisRow(Base):
    __tablename__ = "technical_analysis_outputs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    instrument: Mapped[str] = mapped_column(String(16), default="crypto")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sma20: Mapped[float] = mapped_column(Float)
    sma50: Mapped[float] = mapped_column(Float)
    ema12: Mapped[float] = mapped_column(Float)
    ema26: Mapped[float] = mapped_column(Float)
    rsi14: Mapped[float] = mapped_column(Float)
    bollinger_upper: Mapped[float] = mapped_column(Float)
    bollinger_middle: Mapped[float] = mapped_column(Float)
    bollinger_lower: Mapped[float] = mapped_column(Float)
    support_level: Mapped[float] = mapped_column(Float)
    resistance_level: Mapped[float] = mapped_column(Float)
    fibonacci_levels: Mapped[dict[str, Any]] = mapped_column(JSON)
    breakout_detected: Mapped[bool] = mapped_column(Boolean, default=False)
    breakout_type: Mapped[str] = mapped_column(String(8), default="NONE")
    breakout_strength: Mapped[float] = mapped_column(Float, default=0.0)
    recommendation: Mapped[str] = mapped_column(String(8), nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, default=50.0)
    raw_data: Mapped[dict[str, Any]] = mapped_column(JSON)

    __table_args__ = (
        Index("idx_technical_analysis_symbol_ts", "symbol", "timestamp"),
    )


class TradingSignalRow(Base):
    __tablename__ = "trading_signals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    signal_type: Mapped[str] = mapped_column(String(8), nullable=False)
    direction: Mapped[Optional[str]] = mapped_column(String(8))
    price: Mapped[float] = mapped_column(Float, nullable=False)
    confidence: Mapped[Optional[float]] = mapped_column(Float)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    timeframe: Mapped[str] = mapped_column(String(8), default="1h")
    target_price: Mapped[Optional[float]] = mapped_column(Float)
    stop_loss_price: Mapped[Optional[float]] = mapped_column(Float)
    related_signal_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("trading_signals.id", ondelete="SET NULL")
    )
    profit_loss: Mapped[Optional[float]] = mapped_column(Float)
    profit_loss_percent: Mapped[Optional[float]] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(16), default="ACTIVE")
    executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("idx_trading_signals_user_symbol_ts", "user_id", "symbol", "timestamp"),
    )
