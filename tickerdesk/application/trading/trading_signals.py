"""
Use case: Generate, list and update trading signals.

A symbol with no open entry signal gets at most one new ENTRY signal;
a symbol with an open entry gets at most one EXIT signal against the
newest open entry. Rules live in domain.trading.signal_rules and read
the latest stored technical analysis and the live price.
"""

import logging
from typing import Optional

from tickerdesk.application.trading.dtos import (
    GenerateSignalsCommand,
    SignalPage,
    SignalQuery,
    SymbolSignals,
    UpdateSignalStatusCommand,
)
from tickerdesk.domain.trading.entities import (
    SignalStatus,
    SignalType,
    TradingSignal,
    utc_now,
)
from tickerdesk.domain.trading.errors import (
    CryptoNotFoundError,
    SignalNotFoundError,
    ValidationError,
)
from tickerdesk.domain.trading.ports import (
    CryptoRepository,
    PriceQuotePort,
    TechnicalAnalysisRepository,
    TradingSignalRepository,
)
from tickerdesk.domain.trading.signal_rules import entry_suggestion, exit_suggestion

logger = logging.getLogger(__name__)


def _parse(enum_type, raw: Optional[str], label: str):
    if raw is None or raw == "":
        return None
    try:
        return enum_type(raw.strip().upper())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError(f"{label} must be one of {allowed}") from None


class TradingSignalsUseCase:
    def __init__(
        self,
        signal_repo: TradingSignalRepository,
        crypto_repo: CryptoRepository,
        analysis_repo: TechnicalAnalysisRepository,
        price_quotes: PriceQuotePort,
    ) -> None:
        self._signal_repo = signal_repo
        self._crypto_repo = crypto_repo
        self._analysis_repo = analysis_repo
        self._price_quotes = price_quotes

    def generate(self, command: GenerateSignalsCommand) -> list[SymbolSignals]:
        if command.generate_for_all:
            return self._generate_for_all(command.user_id, command.timeframe)

        symbol = (command.symbol or "").strip().upper()
        if not symbol:
            raise ValidationError("Symbol is required")
        if self._crypto_repo.get_by_symbol(command.user_id, symbol) is None:
            raise CryptoNotFoundError(symbol)
        price = self._price_quotes.get_price(symbol)
        if not price:
            raise ValidationError("Current price not available")
        signals = self._generate_for_symbol(command.user_id, symbol, command.timeframe, price)
        return [SymbolSignals(symbol=symbol, signals=tuple(signals))]

    def list_signals(self, query: SignalQuery) -> SignalPage:
        signals, total = self._signal_repo.list_for_user(
            query.user_id,
            symbol=query.symbol.strip().upper() if query.symbol else None,
            timeframe=query.timeframe or None,
            signal_type=_parse(SignalType, query.signal_type, "signal_type"),
            status=_parse(SignalStatus, query.status, "status"),
            limit=query.limit,
            offset=query.offset,
        )
        return SignalPage(signals=signals, total_count=total, limit=query.limit, offset=query.offset)

    def update_status(self, command: UpdateSignalStatusCommand) -> TradingSignal:
        status = _parse(SignalStatus, command.status, "status")
        if status is None:
            raise ValidationError("Status is required")
        executed_at = command.executed_at
        if executed_at is None and status is SignalStatus.EXECUTED:
            executed_at = utc_now()

        updated = self._signal_repo.update_status(
            command.user_id, command.signal_id, status, executed_at
        )
        if updated is None:
            raise SignalNotFoundError(command.signal_id)
        logger.info("Signal %s for %s is now %s", updated.id, updated.symbol, status.value)
        return updated

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _generate_for_all(self, user_id: str, timeframe: str) -> list[SymbolSignals]:
        results = []
        for crypto in self._crypto_repo.list_for_user(user_id):
            price = self._price_quotes.get_price(crypto.symbol)
            if not price:
                logger.debug("No live price for %s; skipping signal generation", crypto.symbol)
                continue
            signals = self._generate_for_symbol(user_id, crypto.symbol, timeframe, price)
            results.append(SymbolSignals(symbol=crypto.symbol, signals=tuple(signals)))
        return results

    def _generate_for_symbol(
        self, user_id: str, symbol: str, timeframe: str, price: float
    ) -> list[TradingSignal]:
        analysis = self._analysis_repo.latest(symbol)
        open_entries = self._signal_repo.open_entries(user_id, symbol)

        if not open_entries:
            entry = entry_suggestion(analysis, price)
            if entry is None:
                return []
            saved = self._signal_repo.add(
                TradingSignal(
                    user_id=user_id,
                    symbol=symbol,
                    signal_type=SignalType.ENTRY,
                    price=price,
                    reason=entry.reason,
                    timeframe=timeframe,
                    direction=entry.direction,
                    confidence=entry.confidence,
                    target_price=entry.target_price,
                    stop_loss_price=entry.stop_loss_price,
                )
            )
            logger.info(
                "Entry signal %s %s at %s: %s", entry.direction.value, symbol, price, entry.reason
            )
            return [saved]

        position = open_entries[0]
        exit_ = exit_suggestion(position, analysis, price)
        if exit_ is None:
            return []
        saved = self._signal_repo.add(
            TradingSignal(
                user_id=user_id,
                symbol=symbol,
                signal_type=SignalType.EXIT,
                price=price,
                reason=exit_.reason.value,
                timeframe=timeframe,
                related_signal_id=position.id,
                profit_loss=exit_.profit_loss,
                profit_loss_percent=exit_.profit_loss_percent,
            )
        )
        logger.info(
            "Exit signal for %s at %s: %s (%.2f%%)",
            symbol,
            price,
            exit_.reason.value,
            exit_.profit_loss_percent,
        )
        return [saved]
