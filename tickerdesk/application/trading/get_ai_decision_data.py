"""
Use case: Assemble the consolidated decision payload for one asset.

Combines the latest stored technical analysis, recent price history and
the live price into the dict served by /ai-decision-data/{symbol}. When
no analysis is stored yet but history exists, indicators are computed
on the fly without being persisted.
"""

import logging
from datetime import timedelta
from typing import Any, Callable, Optional

from tickerdesk.application.trading.run_technical_analysis import build_analysis
from tickerdesk.domain.trading import indicators
from tickerdesk.domain.trading.entities import (
    BreakoutType,
    PricePoint,
    Recommendation,
    TechnicalAnalysis,
    utc_now,
)
from tickerdesk.domain.trading.errors import AnalysisNotFoundError
from tickerdesk.domain.trading.ports import (
    PriceHistoryRepository,
    PriceQuotePort,
    TechnicalAnalysisRepository,
)

logger = logging.getLogger(__name__)

RETRACEMENT_KEYS = ("0.236", "0.382", "0.5", "0.618", "0.786")


class GetAIDecisionDataUseCase:
    def __init__(
        self,
        analysis_repo: TechnicalAnalysisRepository,
        price_history_repo: PriceHistoryRepository,
        price_quotes: PriceQuotePort,
        history_limit: int = 200,
        clock: Callable = utc_now,
    ) -> None:
        self._analysis_repo = analysis_repo
        self._price_history_repo = price_history_repo
        self._price_quotes = price_quotes
        self._history_limit = history_limit
        self._clock = clock

    def execute(self, symbol: str) -> dict[str, Any]:
        symbol = symbol.strip().upper()
        history = self._price_history_repo.recent(symbol, self._history_limit)
        analysis = self._analysis_repo.latest(symbol)
        if analysis is None:
            if not history:
                raise AnalysisNotFoundError(symbol)
            logger.info("No stored analysis for %s; computing from %d points", symbol, len(history))
            analysis = build_analysis(symbol, [point.price for point in history])

        now = self._clock()
        current = self._current_price(symbol, analysis, history)
        return {
            "asset_id": symbol,
            "timestamp": now.isoformat(),
            "price_data": {
                "current": current,
                "change_24h": self._change_24h(symbol, current, now),
                "historical": [
                    {
                        "timestamp": point.timestamp.isoformat(),
                        "price": point.price,
                        "volume": point.volume,
                    }
                    for point in history
                ],
            },
            "technical_indicators": technical_indicators(analysis, current),
            "trading_signals": trading_signals(analysis, current),
        }

    def _current_price(
        self, symbol: str, analysis: TechnicalAnalysis, history: list[PricePoint]
    ) -> float:
        live = self._price_quotes.get_price(symbol)
        if live is not None:
            return live
        if history:
            return history[-1].price
        stored = analysis.raw_data.get("currentPrice")
        return float(stored) if stored is not None else analysis.bollinger_middle

    def _change_24h(self, symbol: str, current: float, now) -> float:
        reference = self._price_history_repo.latest_before(symbol, now - timedelta(hours=24))
        if reference is None or reference.price == 0:
            return 0.0
        return (current - reference.price) / reference.price * 100


def technical_indicators(analysis: TechnicalAnalysis, current: float) -> dict[str, Any]:
    bands = indicators.BollingerBands(
        upper=analysis.bollinger_upper,
        middle=analysis.bollinger_middle,
        lower=analysis.bollinger_lower,
    )
    fib = analysis.fibonacci_levels
    support, resistance = analysis.support_level, analysis.resistance_level

    return {
        "bollinger_bands": {
            "upper": bands.upper,
            "middle": bands.middle,
            "lower": bands.lower,
            "bandwidth": bands.bandwidth,
            "position": bands.position(current),
        },
        "moving_averages": {
            "sma_20": analysis.sma20,
            "sma_50": analysis.sma50,
            "ema_12": analysis.ema12,
            "ema_26": analysis.ema26,
            "crossovers": _crossovers(analysis),
        },
        "rsi": {
            "value": analysis.rsi14,
            "trend": _rsi_trend(analysis),
        },
        "trend_analysis": {
            "direction": analysis.recommendation.value,
            "strength": (
                abs(analysis.ema12 - analysis.ema26) / analysis.ema26 * 100
                if analysis.ema26
                else None
            ),
            "support_levels": [support] if support else [],
            "resistance_levels": [resistance] if resistance else [],
        },
        "fibonacci_retracements": {
            "reference_high": fib.get("high"),
            "reference_low": fib.get("low"),
            "levels": {key: fib.get(key) for key in RETRACEMENT_KEYS},
        },
        "breakout_patterns": {
            "detected": [analysis.breakout_type.value] if analysis.breakout_detected else [],
            "strength": analysis.breakout_strength,
            "confidence": analysis.confidence_score,
            "target": _breakout_target(analysis),
        },
    }


def trading_signals(analysis: TechnicalAnalysis, current: float) -> dict[str, Any]:
    """Entry, exit and risk/reward derived from the recommendation.

    A BUY targets resistance with a stop at support; a SELL the reverse.
    HOLD carries no target or stop.
    """
    target: Optional[float] = None
    stop: Optional[float] = None
    if analysis.recommendation is Recommendation.BUY:
        target, stop = analysis.resistance_level, analysis.support_level
    elif analysis.recommendation is Recommendation.SELL:
        target, stop = analysis.support_level, analysis.resistance_level

    ratio = None
    if target is not None and stop is not None and current != stop:
        ratio = abs(target - current) / abs(current - stop)

    explanation = analysis.raw_data.get("explanation") or {}
    return {
        "entry": {
            "recommendation": analysis.recommendation.value.lower(),
            "confidence": analysis.confidence_score,
            "target_price": target,
            "trigger_conditions": explanation.get("recommendation"),
        },
        "exit": {
            "take_profit": [{"price": target, "portion": 1.0}],
            "stop_loss": stop,
        },
        "risk_reward": {
            "ratio": ratio,
            "expected_value": analysis.confidence_score,
        },
    }


def _rsi_trend(analysis: TechnicalAnalysis) -> Optional[str]:
    prices = analysis.raw_data.get("prices") or []
    if len(prices) < 2:
        return None
    previous = indicators.rsi(prices[:-1], 14)
    if analysis.rsi14 > previous:
        return "rising"
    if analysis.rsi14 < previous:
        return "falling"
    return "flat"


def _crossovers(analysis: TechnicalAnalysis) -> list[dict[str, Any]]:
    """EMA12/EMA26 cross between the previous and the current sample."""
    prev_fast = analysis.raw_data.get("previousEma12")
    prev_slow = analysis.raw_data.get("previousEma26")
    if prev_fast is None or prev_slow is None:
        return []
    price = analysis.raw_data.get("currentPrice")
    if prev_fast <= prev_slow and analysis.ema12 > analysis.ema26:
        kind = "golden_cross"
    elif prev_fast >= prev_slow and analysis.ema12 < analysis.ema26:
        kind = "death_cross"
    else:
        return []
    return [{"type": kind, "timestamp": analysis.timestamp.isoformat(), "price": price}]


def _breakout_target(analysis: TechnicalAnalysis) -> Optional[float]:
    if not analysis.breakout_detected:
        return None
    height = analysis.resistance_level - analysis.support_level
    if analysis.breakout_type is BreakoutType.BULLISH:
        return analysis.resistance_level + height
    return analysis.support_level - height
