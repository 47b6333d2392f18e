"""
Entry and exit rules for trading signals.

Pure functions over the latest technical analysis and an open entry
signal. No IO. Analysis confidence is on a 0-100 scale; signal
confidence is stored as a 0-1 fraction.
"""

from dataclasses import dataclass
from typing import Optional

from tickerdesk.domain.trading.entities import (
    ExitReason,
    Recommendation,
    SignalDirection,
    TechnicalAnalysis,
    TradingSignal,
)

STRONG_CONFIDENCE = 70.0
TREND_CONFIDENCE = 60.0
RSI_LONG_BELOW = 40.0
RSI_SHORT_ABOVE = 70.0

TARGET_PERCENT = 5.0
STOP_PERCENT = 5.0
TREND_STOP_PERCENT = 3.0

TAKE_PROFIT_PERCENT = 5.0
STOP_LOSS_PERCENT = 3.0


@dataclass(frozen=True)
class EntrySuggestion:
    direction: SignalDirection
    confidence: float
    reason: str
    target_price: float
    stop_loss_price: float


@dataclass(frozen=True)
class ExitSuggestion:
    reason: ExitReason
    profit_loss: float
    profit_loss_percent: float


def _above(price: float, percent: float) -> float:
    return price * (1 + percent / 100)


def _below(price: float, percent: float) -> float:
    return price * (1 - percent / 100)


def _macd_bullish(analysis: TechnicalAnalysis) -> bool:
    macd = analysis.raw_data.get("macd")
    if not isinstance(macd, dict):
        return False
    try:
        return macd["histogram"] > 0 and macd["macd"] > macd["signal"]
    except (KeyError, TypeError):
        return False


def entry_suggestion(
    analysis: Optional[TechnicalAnalysis], current_price: float
) -> Optional[EntrySuggestion]:
    """First matching entry rule, or None.

    Rules in order: oversold uptrend (LONG), overbought downtrend (SHORT),
    Bollinger breakout, MACD confirmation of a BUY.
    """
    if analysis is None or current_price <= 0:
        return None

    confidence = analysis.confidence_score / 100
    resistance = analysis.resistance_level
    support = analysis.support_level
    target_up = resistance if resistance > current_price else _above(current_price, TARGET_PERCENT)
    target_down = support if 0 < support < current_price else _below(current_price, STOP_PERCENT)

    if (
        analysis.recommendation is Recommendation.BUY
        and analysis.confidence_score > STRONG_CONFIDENCE
        and analysis.rsi14 < RSI_LONG_BELOW
        and current_price > analysis.sma50
    ):
        return EntrySuggestion(
            direction=SignalDirection.LONG,
            confidence=confidence,
            reason="Strong BUY recommendation with RSI oversold condition",
            target_price=target_up,
            stop_loss_price=target_down,
        )

    if (
        analysis.recommendation is Recommendation.SELL
        and analysis.confidence_score > STRONG_CONFIDENCE
        and analysis.rsi14 > RSI_SHORT_ABOVE
        and current_price < analysis.sma50
    ):
        return EntrySuggestion(
            direction=SignalDirection.SHORT,
            confidence=confidence,
            reason="Strong SELL recommendation with RSI overbought condition",
            target_price=target_down,
            stop_loss_price=target_up,
        )

    outside_bands = (
        current_price > analysis.bollinger_upper or current_price < analysis.bollinger_lower
    )
    if analysis.breakout_detected and outside_bands:
        if current_price > analysis.bollinger_upper:
            return EntrySuggestion(
                direction=SignalDirection.LONG,
                confidence=confidence,
                reason="Bollinger Band breakout above the upper band",
                target_price=_above(current_price, TARGET_PERCENT),
                stop_loss_price=analysis.bollinger_upper,
            )
        return EntrySuggestion(
            direction=SignalDirection.SHORT,
            confidence=confidence,
            reason="Bollinger Band breakout below the lower band",
            target_price=_below(current_price, TARGET_PERCENT),
            stop_loss_price=analysis.bollinger_lower,
        )

    if (
        analysis.recommendation is Recommendation.BUY
        and analysis.confidence_score > TREND_CONFIDENCE
        and _macd_bullish(analysis)
    ):
        return EntrySuggestion(
            direction=SignalDirection.LONG,
            confidence=confidence,
            reason="MACD bullish crossover confirming a BUY recommendation",
            target_price=_above(current_price, TARGET_PERCENT),
            stop_loss_price=_below(current_price, TREND_STOP_PERCENT),
        )

    return None


def exit_suggestion(
    entry: TradingSignal,
    analysis: Optional[TechnicalAnalysis],
    current_price: float,
) -> Optional[ExitSuggestion]:
    """Take profit, stop loss or trend reversal against an open entry, or None."""
    if entry.price <= 0 or current_price <= 0:
        return None

    long = entry.direction is not SignalDirection.SHORT
    profit_loss = current_price - entry.price if long else entry.price - current_price
    profit_loss_percent = profit_loss / entry.price * 100

    def suggest(reason: ExitReason) -> ExitSuggestion:
        return ExitSuggestion(reason, profit_loss, profit_loss_percent)

    if profit_loss_percent >= TAKE_PROFIT_PERCENT:
        return suggest(ExitReason.TAKE_PROFIT)
    if profit_loss_percent <= -STOP_LOSS_PERCENT:
        return suggest(ExitReason.STOP_LOSS)

    if analysis is not None and analysis.confidence_score > STRONG_CONFIDENCE:
        against = Recommendation.SELL if long else Recommendation.BUY
        if analysis.recommendation is against:
            return suggest(ExitReason.TREND_REVERSAL)

    return None
