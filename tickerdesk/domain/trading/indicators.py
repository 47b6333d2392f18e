"""
Technical indicators over a price series.

All functions take prices oldest-first; the last element is the
current price. Rolling and exponential windows are computed with pandas.

Indicators:
- Moving averages (SMA, EMA), MACD
- RSI
- Bollinger Bands
- Support/resistance trend lines, Fibonacci retracements
- Breakout detection and the weighted BUY/SELL/HOLD decision
- Drawdown / drawup swing statistics
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import pandas as pd

from tickerdesk.domain.trading.entities import BreakoutType, Recommendation

FIBONACCI_RATIOS = (0.0, 0.236, 0.382, 0.5, 0.618, 0.786, 1.0)
TREND_LINE_MIN_PRICES = 10
NEUTRAL_RSI = 50.0
PROXIMITY_PERCENT = 5.0

# Weighted decision
DECISION_WEIGHTS = {
    "ema_trend": 0.25,
    "rsi": 0.20,
    "bollinger": 0.15,
    "sma20": 0.15,
    "support_resistance": 0.10,
    "breakout": 0.10,
    "fibonacci": 0.05,
}
DECISION_THRESHOLD = 0.2
RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0


@dataclass(frozen=True)
class MacdResult:
    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class BollingerBands:
    upper: float
    middle: float
    lower: float

    @property
    def bandwidth(self) -> float:
        """Band width relative to the middle band, in percent."""
        if self.middle == 0:
            return 0.0
        return (self.upper - self.lower) / self.middle * 100

    def position(self, price: float) -> float:
        """Where price sits in the band: 0 at lower, 1 at upper."""
        width = self.upper - self.lower
        if width == 0:
            return 0.5
        return (price - self.lower) / width


@dataclass(frozen=True)
class TrendLines:
    support: Optional[float]
    resistance: Optional[float]


@dataclass(frozen=True)
class FibonacciLevels:
    high: float
    low: float
    levels: dict[str, float]


@dataclass(frozen=True)
class BreakoutAnalysis:
    detected: bool
    breakout_type: BreakoutType
    strength: float


@dataclass(frozen=True)
class Decision:
    recommendation: Recommendation
    confidence: float
    score: float
    signals: dict[str, float] = field(default_factory=dict)


def _series(prices: Sequence[float]) -> pd.Series:
    return pd.Series(list(prices), dtype="float64")


def sma(prices: Sequence[float], period: int) -> Optional[float]:
    """Simple moving average of the last `period` prices, None if too few."""
    if period <= 0 or len(prices) < period:
        return None
    return float(_series(prices).rolling(window=period).mean().iloc[-1])


def ema(prices: Sequence[float], period: int) -> Optional[float]:
    """Exponential moving average (span=period), None if too few prices."""
    if period <= 0 or len(prices) < period:
        return None
    return float(_series(prices).ewm(span=period, adjust=False).mean().iloc[-1])


def rsi(prices: Sequence[float], period: int = 14) -> float:
    """Relative Strength Index over the last `period` price changes.

    Returns 50 when there are fewer than period + 1 prices or the
    window is flat, and 100 when the window has gains but no losses.
    """
    if period <= 0 or len(prices) < period + 1:
        return NEUTRAL_RSI
    delta = _series(prices).diff()
    avg_gain = float(delta.clip(lower=0).rolling(window=period).mean().iloc[-1])
    avg_loss = float((-delta.clip(upper=0)).rolling(window=period).mean().iloc[-1])
    if avg_loss == 0:
        return 100.0 if avg_gain > 0 else NEUTRAL_RSI
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))


def macd(
    prices: Sequence[float], fast: int = 12, slow: int = 26, signal: int = 9
) -> Optional[MacdResult]:
    if len(prices) < slow:
        return None
    close = _series(prices)
    macd_line = (
        close.ewm(span=fast, adjust=False).mean()
        - close.ewm(span=slow, adjust=False).mean()
    )
    signal_line = macd_line.ewm(span=signal, adjust=False).mean()
    return MacdResult(
        macd=float(macd_line.iloc[-1]),
        signal=float(signal_line.iloc[-1]),
        histogram=float(macd_line.iloc[-1] - signal_line.iloc[-1]),
    )


def bollinger_bands(
    prices: Sequence[float], period: int = 20, num_std: float = 2.0
) -> Optional[BollingerBands]:
    """Bollinger Bands around the SMA, using population standard deviation."""
    if period <= 0 or len(prices) < period:
        return None
    window = _series(prices).iloc[-period:]
    middle = float(window.mean())
    std = float(window.std(ddof=0))
    return BollingerBands(
        upper=middle + num_std * std,
        middle=middle,
        lower=middle - num_std * std,
    )


def identify_trend_lines(prices: Sequence[float]) -> TrendLines:
    """Support at the 25th and resistance at the 75th percentile element."""
    if len(prices) < TREND_LINE_MIN_PRICES:
        return TrendLines(support=None, resistance=None)
    ordered = sorted(float(p) for p in prices)
    return TrendLines(
        support=ordered[math.floor(len(ordered) * 0.25)],
        resistance=ordered[math.floor(len(ordered) * 0.75)],
    )


def fibonacci_retracements(high: float, low: float) -> FibonacciLevels:
    """Retracement levels from high (ratio 0) down to low (ratio 1).

    Raises:
        ValueError: If high is below low.
    """
    if high < low:
        raise ValueError(f"high ({high}) must not be below low ({low})")
    span = high - low
    levels = {f"{ratio:g}": high - span * ratio for ratio in FIBONACCI_RATIOS}
    return FibonacciLevels(high=high, low=low, levels=levels)


def detect_breakout(
    current_price: float,
    trend_lines: TrendLines,
    bands: Optional[BollingerBands] = None,
) -> BreakoutAnalysis:
    """Flag a close beyond resistance (bullish) or below support (bearish).

    Strength is the percent distance past the level, doubled when the
    price is also outside the matching Bollinger band, capped at 100.
    """
    support, resistance = trend_lines.support, trend_lines.resistance
    if resistance is not None and resistance > 0 and current_price > resistance:
        strength = (current_price - resistance) / resistance * 100
        if bands is not None and current_price > bands.upper:
            strength *= 2
        return BreakoutAnalysis(True, BreakoutType.BULLISH, min(strength, 100.0))
    if support is not None and support > 0 and current_price < support:
        strength = (support - current_price) / support * 100
        if bands is not None and current_price < bands.lower:
            strength *= 2
        return BreakoutAnalysis(True, BreakoutType.BEARISH, min(strength, 100.0))
    return BreakoutAnalysis(False, BreakoutType.NONE, 0.0)


def _is_near(price: float, level: Optional[float]) -> bool:
    if level is None or level == 0:
        return False
    return abs((price - level) / level) * 100 < PROXIMITY_PERCENT


def weighted_decision(
    current_price: float,
    ema12: float,
    ema26: float,
    rsi_value: float,
    bands: BollingerBands,
    sma20: float,
    trend_lines: TrendLines,
    fibonacci: FibonacciLevels,
    breakout: BreakoutAnalysis,
) -> Decision:
    """Combine indicator signals into a BUY/SELL/HOLD call.

    Each signal votes in [-1, 1] (positive is bullish) and is scaled by
    its weight in DECISION_WEIGHTS. Scores at or beyond +/-0.2 become
    BUY or SELL. Confidence grows from 50 with the score magnitude.
    """
    signals: dict[str, float] = {}

    signals["ema_trend"] = float((ema12 > ema26) - (ema12 < ema26))

    if rsi_value < RSI_OVERSOLD:
        signals["rsi"] = 1.0
    elif rsi_value > RSI_OVERBOUGHT:
        signals["rsi"] = -1.0
    else:
        signals["rsi"] = 0.0

    if current_price <= bands.lower:
        signals["bollinger"] = 1.0
    elif current_price >= bands.upper:
        signals["bollinger"] = -1.0
    else:
        signals["bollinger"] = 0.0

    signals["sma20"] = float((current_price > sma20) - (current_price < sma20))

    near_support = _is_near(current_price, trend_lines.support)
    near_resistance = _is_near(current_price, trend_lines.resistance)
    signals["support_resistance"] = float(near_support) - float(near_resistance)

    if current_price <= fibonacci.levels["0.618"]:
        signals["fibonacci"] = 1.0
    elif current_price >= fibonacci.levels["0.236"]:
        signals["fibonacci"] = -1.0
    else:
        signals["fibonacci"] = 0.0

    if breakout.breakout_type is BreakoutType.BULLISH:
        signals["breakout"] = 1.0
    elif breakout.breakout_type is BreakoutType.BEARISH:
        signals["breakout"] = -1.0
    else:
        signals["breakout"] = 0.0

    score = sum(DECISION_WEIGHTS[name] * vote for name, vote in signals.items())
    if score >= DECISION_THRESHOLD:
        recommendation = Recommendation.BUY
    elif score <= -DECISION_THRESHOLD:
        recommendation = Recommendation.SELL
    else:
        recommendation = Recommendation.HOLD
    confidence = min(100.0, 50.0 + abs(score) * 50.0)
    return Decision(recommendation, round(confidence, 2), round(score, 4), signals)


# ------------------------------------------------------------------
# Dashboard text
# ------------------------------------------------------------------


def sma_message(current_price: float, sma_value: Optional[float], period: int) -> str:
    if sma_value is None:
        return f"Not enough data to calculate {period}-day SMA."
    diff = (current_price - sma_value) / sma_value * 100
    if current_price > sma_value:
        return (
            f"Current price is {diff:.2f}% above the {period}-day SMA "
            f"({sma_value:.2f}), suggesting an upward trend."
        )
    if current_price < sma_value:
        return (
            f"Current price is {abs(diff):.2f}% below the {period}-day SMA "
            f"({sma_value:.2f}), suggesting a downward trend."
        )
    return (
        f"Current price is at the {period}-day SMA ({sma_value:.2f}), "
        "suggesting a neutral trend."
    )


def trend_lines_message(current_price: float, trend_lines: TrendLines) -> str:
    support, resistance = trend_lines.support, trend_lines.resistance
    if support is None or resistance is None:
        return "Not enough data to identify support and resistance levels."

    support_diff = (current_price - support) / support * 100
    resistance_diff = (resistance - current_price) / current_price * 100
    message = f"Support level: ${support:.2f}, Resistance level: ${resistance:.2f}. "

    if current_price < support:
        message += (
            f"Current price is {abs(support_diff):.2f}% below support level, "
            "suggesting a strong downward trend."
        )
    elif current_price > resistance:
        message += (
            f"Current price is {abs(resistance_diff):.2f}% above resistance level, "
            "suggesting a strong upward trend."
        )
    elif current_price - support < resistance - current_price:
        message += (
            f"Current price is closer to support ({abs(support_diff):.2f}% away) "
            f"than resistance ({resistance_diff:.2f}% away)."
        )
    else:
        message += (
            f"Current price is closer to resistance ({resistance_diff:.2f}% away) "
            f"than support ({abs(support_diff):.2f}% away)."
        )
    return message


def generate_recommendation(
    current_price: float, sma_value: Optional[float], trend_lines: TrendLines
) -> str:
    """Plain-language advice from the SMA and trend-line position."""
    support, resistance = trend_lines.support, trend_lines.resistance
    if sma_value is None or support is None or resistance is None:
        return "Insufficient data for a recommendation."

    above_sma = current_price > sma_value
    if above_sma and _is_near(current_price, resistance):
        return "Consider taking profits. Price is above SMA and near resistance level."
    if above_sma:
        return "Hold or buy. Price is above SMA and has room to grow before hitting resistance."
    if _is_near(current_price, support):
        return (
            "Consider buying. Price is below SMA but near support level, "
            "suggesting potential upward movement."
        )
    return "Hold or wait. Price is below SMA and not near support level yet."


# ----------------------------------------------------------------------
# Drawdown / drawup
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class DrawdownDrawup:
    """Swing statistics in percent. Empty series give all zeros."""

    max_drawdown: float = 0.0
    max_drawup: float = 0.0
    avg_drawdown: float = 0.0
    avg_drawup: float = 0.0
    frequent_drawdown: float = 0.0
    frequent_drawup: float = 0.0
    drawdowns: list[float] = field(default_factory=list)
    drawups: list[float] = field(default_factory=list)


def calculate_drawdown_drawup(prices: Sequence[float]) -> DrawdownDrawup:
    """Measure every completed peak-to-trough and trough-to-peak swing.

    A drawdown is (peak - trough) / peak and a drawup is
    (peak - trough) / trough, both in percent. A swing is recorded when
    the price reverses, so the leg still open at the end is left out.
    """
    if len(prices) < 2:
        return DrawdownDrawup()

    drawdowns: list[float] = []
    drawups: list[float] = []
    peak = trough = float(prices[0])
    rising = True

    for price in prices[1:]:
        price = float(price)
        if rising:
            if price >= peak:
                peak = price
                continue
            if peak > trough > 0:
                drawups.append((peak - trough) / trough * 100)
            rising = False
            trough = price
        else:
            if price <= trough:
                trough = price
                continue
            if peak > trough and peak > 0:
                drawdowns.append((peak - trough) / peak * 100)
            rising = True
            peak = price

    return DrawdownDrawup(
        max_drawdown=max(drawdowns, default=0.0),
        max_drawup=max(drawups, default=0.0),
        avg_drawdown=_mean(drawdowns),
        avg_drawup=_mean(drawups),
        frequent_drawdown=most_frequent_swing(drawdowns),
        frequent_drawup=most_frequent_swing(drawups),
        drawdowns=drawdowns,
        drawups=drawups,
    )


def most_frequent_swing(values: Sequence[float], step: float = 0.5) -> float:
    """Most common value after rounding half-up to `step`; ties go to the earliest."""
    if not values:
        return 0.0
    rounded = _series(values).map(lambda v: math.floor(v / step + 0.5) * step)
    return float(rounded.value_counts(sort=False).idxmax())


def _mean(values: Sequence[float]) -> float:
    return float(_series(values).mean()) if values else 0.0
