"""
Use case: Compute and persist a technical analysis for one symbol.

Input: RunTechnicalAnalysisCommand
Output: TechnicalAnalysis (as persisted)
Side effects: one technical_analysis_outputs row, saved with retries.
Failure cases:
    InsufficientPriceDataError when no prices are available.
    The last SQLAlchemyError once the retry budget is spent.
"""

import logging
from typing import Optional, Sequence

from tickerdesk.application.trading.dtos import RunTechnicalAnalysisCommand
from tickerdesk.domain.trading import indicators
from tickerdesk.domain.trading.entities import TechnicalAnalysis, utc_now
from tickerdesk.domain.trading.errors import (
    AnalysisNotFoundError,
    InsufficientPriceDataError,
)
from tickerdesk.domain.trading.ports import (
    PriceHistoryRepository,
    TechnicalAnalysisRepository,
)
from tickerdesk.shared.retry import db_retrying

logger = logging.getLogger(__name__)

# Band and trend-line fallback when the series is too short
FALLBACK_BAND_PERCENT = 0.05


class RunTechnicalAnalysisUseCase:
    def __init__(
        self,
        price_history_repo: PriceHistoryRepository,
        analysis_repo: TechnicalAnalysisRepository,
        window: int = 200,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
    ) -> None:
        self._price_history_repo = price_history_repo
        self._analysis_repo = analysis_repo
        self._window = window
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay

    def execute(self, command: RunTechnicalAnalysisCommand) -> TechnicalAnalysis:
        symbol = command.symbol.strip().upper()
        prices = list(command.prices) or self._load_prices(symbol)
        if not prices:
            raise InsufficientPriceDataError(symbol)

        analysis = build_analysis(symbol, prices, command.instrument)
        saved = self._save_with_retry(analysis)

        verified = self._analysis_repo.get(saved.id)
        if verified is None:
            logger.error("Technical analysis %s for %s not found after save", saved.id, symbol)
            raise AnalysisNotFoundError(symbol)

        logger.info(
            "Technical analysis for %s: %s (confidence %.2f, %d prices)",
            symbol,
            verified.recommendation.value,
            verified.confidence_score,
            len(prices),
        )
        return verified

    def get_latest(self, symbol: str) -> TechnicalAnalysis:
        symbol = symbol.strip().upper()
        analysis = self._analysis_repo.latest(symbol)
        if analysis is None:
            raise AnalysisNotFoundError(symbol)
        return analysis

    def _load_prices(self, symbol: str) -> list[float]:
        return [point.price for point in self._price_history_repo.recent(symbol, self._window)]

    def _save_with_retry(self, analysis: TechnicalAnalysis) -> TechnicalAnalysis:
        for attempt in db_retrying(self._retry_attempts, self._retry_base_delay):
            with attempt:
                saved = self._analysis_repo.save(analysis)
        return saved


def build_analysis(symbol: str, prices: Sequence[float], instrument: str = "crypto") -> TechnicalAnalysis:
    """Run every indicator over prices (oldest first) and assemble the output.

    Short series degrade gracefully: moving averages fall back to the
    current price, RSI to 50, bands and trend lines to +/-5%.
    """
    current = float(prices[-1])
    previous = list(prices[:-1])

    sma20 = indicators.sma(prices, 20)
    sma50 = indicators.sma(prices, 50)
    ema12 = _or(indicators.ema(prices, 12), current)
    ema26 = _or(indicators.ema(prices, 26), current)
    previous_ema12 = indicators.ema(previous, 12)
    previous_ema26 = indicators.ema(previous, 26)
    rsi14 = indicators.rsi(prices, 14)

    bands = indicators.bollinger_bands(prices, 20, 2.0) or indicators.BollingerBands(
        upper=current * (1 + FALLBACK_BAND_PERCENT),
        middle=current,
        lower=current * (1 - FALLBACK_BAND_PERCENT),
    )
    trend_lines = indicators.identify_trend_lines(prices)
    effective_lines = indicators.TrendLines(
        support=_or(trend_lines.support, current * (1 - FALLBACK_BAND_PERCENT)),
        resistance=_or(trend_lines.resistance, current * (1 + FALLBACK_BAND_PERCENT)),
    )
    fibonacci = indicators.fibonacci_retracements(max(prices), min(prices))
    breakout = indicators.detect_breakout(current, effective_lines, bands)
    decision = indicators.weighted_decision(
        current_price=current,
        ema12=ema12,
        ema26=ema26,
        rsi_value=rsi14,
        bands=bands,
        sma20=_or(sma20, current),
        trend_lines=effective_lines,
        fibonacci=fibonacci,
        breakout=breakout,
    )
    macd = indicators.macd(prices)

    timestamp = utc_now()
    return TechnicalAnalysis(
        symbol=symbol,
        instrument=instrument,
        timestamp=timestamp,
        sma20=_or(sma20, current),
        sma50=_or(sma50, current),
        ema12=ema12,
        ema26=ema26,
        rsi14=rsi14,
        bollinger_upper=bands.upper,
        bollinger_middle=bands.middle,
        bollinger_lower=bands.lower,
        support_level=effective_lines.support,
        resistance_level=effective_lines.resistance,
        fibonacci_levels={
            **fibonacci.levels,
            "high": fibonacci.high,
            "low": fibonacci.low,
        },
        breakout_detected=breakout.detected,
        breakout_type=breakout.breakout_type,
        breakout_strength=breakout.strength,
        recommendation=decision.recommendation,
        confidence_score=decision.confidence,
        raw_data={
            "prices": [float(p) for p in prices],
            "currentPrice": current,
            "previousEma12": previous_ema12,
            "previousEma26": previous_ema26,
            "macd": (
                {"macd": macd.macd, "signal": macd.signal, "histogram": macd.histogram}
                if macd
                else None
            ),
            "timestamp": timestamp.isoformat(),
            "explanation": {
                "sma": indicators.sma_message(current, sma20, 20),
                "trendLines": indicators.trend_lines_message(current, trend_lines),
                "recommendation": indicators.generate_recommendation(current, sma20, trend_lines),
            },
            "signals": decision.signals,
            "score": decision.score,
        },
    )


def _or(value: Optional[float], fallback: float) -> float:
    return fallback if value is None else value
