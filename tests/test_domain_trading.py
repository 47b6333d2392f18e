"""
Tests for the trading domain layer.

Indicator math, threshold rules and error classes in isolation.
No external dependencies or IO required.
"""

from datetime import datetime, timedelta, timezone

import pytest

from tickerdesk.domain.trading.entities import (
    AutoTradeSettings,
    BreakoutType,
    ExitReason,
    Recommendation,
    Settings,
    SignalDirection,
    SignalType,
    TechnicalAnalysis,
    TradeAction,
    TradingSignal,
)
from tickerdesk.domain.trading.errors import (
    CryptoNotFoundError,
    ExchangeUnavailableError,
    InsufficientSharesError,
    MissingCredentialsError,
    OrderFailedError,
    TradingDomainError,
)
from tickerdesk.domain.trading.indicators import (
    BollingerBands,
    TrendLines,
    bollinger_bands,
    calculate_drawdown_drawup,
    detect_breakout,
    ema,
    fibonacci_retracements,
    generate_recommendation,
    identify_trend_lines,
    macd,
    most_frequent_swing,
    rsi,
    sma,
    sma_message,
    weighted_decision,
)
from tickerdesk.domain.trading.signal_rules import entry_suggestion, exit_suggestion
from tickerdesk.domain.trading.trade_rules import (
    has_valid_trade_amount,
    is_lock_expired,
    percent_change,
    resolve_thresholds,
    should_buy,
    should_sell,
    size_order,
)

RISING = [float(p) for p in range(100, 130)]


class TestMovingAverages:
    """SMA / EMA / MACD."""

    def test_sma_of_exact_window_is_mean(self) -> None:
        prices = [float(p) for p in range(1, 21)]
        assert sma(prices, 20) == pytest.approx(sum(prices) / 20)

    def test_sma_uses_last_period_prices(self) -> None:
        assert sma([1.0, 2.0, 3.0, 4.0], 2) == pytest.approx(3.5)

    def test_sma_returns_none_when_too_few_prices(self) -> None:
        assert sma([1.0, 2.0], 3) is None

    def test_ema_of_constant_series_is_constant(self) -> None:
        assert ema([42.0] * 30, 12) == pytest.approx(42.0)

    def test_ema_reacts_faster_than_sma_on_rising_prices(self) -> None:
        assert ema(RISING, 20) > sma(RISING, 20)

    def test_macd_requires_slow_period(self) -> None:
        assert macd([1.0] * 10) is None

    def test_macd_positive_on_uptrend(self) -> None:
        result = macd(RISING)
        assert result is not None
        assert result.macd > 0
        assert result.histogram == pytest.approx(result.macd - result.signal)


class TestRsi:
    def test_rsi_is_50_with_insufficient_data(self) -> None:
        assert rsi([1.0, 2.0, 3.0], 14) == 50.0

    def test_rsi_is_100_with_only_gains(self) -> None:
        assert rsi(RISING, 14) == 100.0

    def test_rsi_is_0_with_only_losses(self) -> None:
        assert rsi(list(reversed(RISING)), 14) == pytest.approx(0.0)

    def test_rsi_is_50_on_flat_window(self) -> None:
        assert rsi([10.0] * 20, 14) == 50.0

    def test_rsi_stays_in_range(self) -> None:
        prices = [100, 102, 101, 105, 103, 104, 99, 98, 101, 103, 102, 106, 104, 107, 105, 108]
        value = rsi([float(p) for p in prices], 14)
        assert 0.0 < value < 100.0


class TestBollingerBands:
    def test_middle_band_equals_sma(self) -> None:
        bands = bollinger_bands(RISING, 20)
        assert bands is not None
        assert bands.middle == pytest.approx(sma(RISING, 20))

    def test_bands_are_symmetric(self) -> None:
        bands = bollinger_bands(RISING, 20)
        assert bands.upper - bands.middle == pytest.approx(bands.middle - bands.lower)

    def test_constant_series_has_zero_width(self) -> None:
        bands = bollinger_bands([5.0] * 20, 20)
        assert bands.upper == bands.lower == 5.0
        assert bands.position(5.0) == 0.5

    def test_returns_none_when_too_few_prices(self) -> None:
        assert bollinger_bands([1.0] * 5, 20) is None


class TestTrendLinesAndFibonacci:
    def test_trend_lines_need_ten_prices(self) -> None:
        lines = identify_trend_lines([1.0] * 9)
        assert lines.support is None and lines.resistance is None

    def test_trend_lines_use_quartile_elements(self) -> None:
        prices = [float(p) for p in range(1, 21)]
        lines = identify_trend_lines(prices)
        assert lines.support == 6.0
        assert lines.resistance == 16.0

    def test_fibonacci_levels_are_monotonic(self) -> None:
        fib = fibonacci_retracements(200.0, 100.0)
        values = list(fib.levels.values())
        assert values == sorted(values, reverse=True)
        assert fib.levels["0"] == 200.0
        assert fib.levels["1"] == 100.0
        assert fib.levels["0.5"] == pytest.approx(150.0)
        assert all(100.0 <= v <= 200.0 for v in values)

    def test_fibonacci_rejects_inverted_range(self) -> None:
        with pytest.raises(ValueError):
            fibonacci_retracements(100.0, 200.0)


class TestBreakoutAndDecision:
    def test_bullish_breakout_doubles_outside_upper_band(self) -> None:
        lines = TrendLines(support=90.0, resistance=100.0)
        inside = detect_breakout(105.0, lines, BollingerBands(110.0, 100.0, 90.0))
        outside = detect_breakout(105.0, lines, BollingerBands(104.0, 100.0, 96.0))
        assert inside.breakout_type is BreakoutType.BULLISH
        assert inside.strength == pytest.approx(5.0)
        assert outside.strength == pytest.approx(10.0)

    def test_bearish_breakout(self) -> None:
        result = detect_breakout(80.0, TrendLines(support=100.0, resistance=120.0))
        assert result.detected
        assert result.breakout_type is BreakoutType.BEARISH
        assert result.strength == pytest.approx(20.0)

    def test_no_breakout_inside_range(self) -> None:
        result = detect_breakout(110.0, TrendLines(support=100.0, resistance=120.0))
        assert not result.detected
        assert result.breakout_type is BreakoutType.NONE

    def test_bearish_inputs_give_sell(self) -> None:
        decision = weighted_decision(
            current_price=130.0,
            ema12=95.0,
            ema26=100.0,
            rsi_value=80.0,
            bands=BollingerBands(120.0, 110.0, 100.0),
            sma20=140.0,
            trend_lines=TrendLines(support=100.0, resistance=128.0),
            fibonacci=fibonacci_retracements(130.0, 90.0),
            breakout=detect_breakout(130.0, TrendLines(support=None, resistance=None)),
        )
        assert decision.recommendation is Recommendation.SELL
        assert decision.score <= -0.2
        assert 50.0 <= decision.confidence <= 100.0

    def test_bullish_inputs_give_buy(self) -> None:
        lines = TrendLines(support=100.0, resistance=130.0)
        decision = weighted_decision(
            current_price=95.0,
            ema12=105.0,
            ema26=100.0,
            rsi_value=20.0,
            bands=BollingerBands(120.0, 110.0, 100.0),
            sma20=90.0,
            trend_lines=lines,
            fibonacci=fibonacci_retracements(130.0, 90.0),
            breakout=detect_breakout(95.0, TrendLines(support=None, resistance=None)),
        )
        assert decision.recommendation is Recommendation.BUY
        assert decision.signals["rsi"] == 1.0


class TestDrawdownDrawup:
    def test_completed_swings_are_measured_peak_to_trough(self) -> None:
        result = calculate_drawdown_drawup([100.0, 110.0, 99.0, 120.0, 90.0, 95.0])
        assert result.drawups == pytest.approx([10.0, 21.2121], rel=1e-4)
        assert result.drawdowns == pytest.approx([10.0, 25.0])
        assert result.max_drawdown == pytest.approx(25.0)
        assert result.max_drawup == pytest.approx(21.2121, rel=1e-4)
        assert result.avg_drawdown == pytest.approx(17.5)

    def test_open_leg_at_the_end_is_not_counted(self) -> None:
        result = calculate_drawdown_drawup([100.0, 110.0, 99.0, 120.0, 90.0])
        assert result.drawdowns == pytest.approx([10.0])
        assert len(result.drawups) == 2

    def test_monotonic_series_has_no_swings(self) -> None:
        result = calculate_drawdown_drawup(RISING)
        assert result.drawdowns == []
        assert result.drawups == []
        assert result.max_drawup == 0.0

    @pytest.mark.parametrize("prices", [[], [100.0]])
    def test_short_series_gives_zeros(self, prices: list[float]) -> None:
        result = calculate_drawdown_drawup(prices)
        assert result.max_drawdown == 0.0
        assert result.avg_drawup == 0.0
        assert result.frequent_drawdown == 0.0

    def test_most_frequent_swing_rounds_to_half_percent(self) -> None:
        assert most_frequent_swing([1.1, 1.2, 3.0, 0.9]) == 1.0
        assert most_frequent_swing([1.26]) == 1.5
        assert most_frequent_swing([]) == 0.0


def _analysis(**overrides) -> TechnicalAnalysis:
    values = dict(
        symbol="BTC",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        sma20=100.0,
        sma50=100.0,
        ema12=100.0,
        ema26=100.0,
        rsi14=50.0,
        bollinger_upper=110.0,
        bollinger_middle=100.0,
        bollinger_lower=90.0,
        support_level=90.0,
        resistance_level=120.0,
        fibonacci_levels={},
        breakout_detected=False,
        breakout_type=BreakoutType.NONE,
        breakout_strength=0.0,
        recommendation=Recommendation.HOLD,
        confidence_score=50.0,
    )
    values.update(overrides)
    return TechnicalAnalysis(**values)


def _entry(direction: SignalDirection, price: float = 100.0) -> TradingSignal:
    return TradingSignal(
        user_id="u1",
        symbol="BTC",
        signal_type=SignalType.ENTRY,
        price=price,
        reason="test",
        direction=direction,
        id="s1",
    )


class TestSignalRules:
    def test_oversold_buy_above_sma50_goes_long(self) -> None:
        analysis = _analysis(recommendation=Recommendation.BUY, confidence_score=80.0, rsi14=30.0)
        entry = entry_suggestion(analysis, 105.0)
        assert entry.direction is SignalDirection.LONG
        assert entry.confidence == pytest.approx(0.8)
        assert entry.target_price == 120.0
        assert entry.stop_loss_price == 90.0

    def test_overbought_sell_below_sma50_goes_short(self) -> None:
        analysis = _analysis(recommendation=Recommendation.SELL, confidence_score=80.0, rsi14=75.0)
        entry = entry_suggestion(analysis, 95.0)
        assert entry.direction is SignalDirection.SHORT
        assert entry.target_price == 90.0
        assert entry.stop_loss_price == 120.0

    def test_breakout_above_upper_band_goes_long(self) -> None:
        analysis = _analysis(breakout_detected=True, breakout_type=BreakoutType.BULLISH)
        entry = entry_suggestion(analysis, 115.0)
        assert entry.direction is SignalDirection.LONG
        assert entry.target_price == pytest.approx(120.75)
        assert entry.stop_loss_price == 110.0

    def test_macd_confirms_moderate_buy(self) -> None:
        analysis = _analysis(
            recommendation=Recommendation.BUY,
            confidence_score=65.0,
            raw_data={"macd": {"macd": 1.0, "signal": 0.5, "histogram": 0.5}},
        )
        entry = entry_suggestion(analysis, 100.0)
        assert entry.direction is SignalDirection.LONG
        assert entry.target_price == pytest.approx(105.0)
        assert entry.stop_loss_price == pytest.approx(97.0)

    def test_neutral_analysis_gives_no_entry(self) -> None:
        assert entry_suggestion(_analysis(), 100.0) is None
        assert entry_suggestion(None, 100.0) is None

    def test_take_profit_on_long(self) -> None:
        exit_ = exit_suggestion(_entry(SignalDirection.LONG), None, 106.0)
        assert exit_.reason is ExitReason.TAKE_PROFIT
        assert exit_.profit_loss == pytest.approx(6.0)
        assert exit_.profit_loss_percent == pytest.approx(6.0)

    def test_stop_loss_on_long(self) -> None:
        exit_ = exit_suggestion(_entry(SignalDirection.LONG), None, 96.5)
        assert exit_.reason is ExitReason.STOP_LOSS
        assert exit_.profit_loss_percent == pytest.approx(-3.5)

    def test_short_profits_when_price_falls(self) -> None:
        exit_ = exit_suggestion(_entry(SignalDirection.SHORT), None, 94.0)
        assert exit_.reason is ExitReason.TAKE_PROFIT
        assert exit_.profit_loss == pytest.approx(6.0)

    def test_strong_opposite_recommendation_reverses(self) -> None:
        analysis = _analysis(recommendation=Recommendation.SELL, confidence_score=80.0)
        exit_ = exit_suggestion(_entry(SignalDirection.LONG), analysis, 101.0)
        assert exit_.reason is ExitReason.TREND_REVERSAL

    def test_small_move_holds(self) -> None:
        assert exit_suggestion(_entry(SignalDirection.LONG), _analysis(), 101.0) is None


class TestDashboardMessages:
    def test_sma_message_without_data(self) -> None:
        assert "Not enough data" in sma_message(10.0, None, 20)

    def test_sma_message_above(self) -> None:
        assert "above the 20-day SMA" in sma_message(110.0, 100.0, 20)

    def test_recommendation_near_resistance(self) -> None:
        text = generate_recommendation(99.0, 90.0, TrendLines(support=80.0, resistance=100.0))
        assert text.startswith("Consider taking profits")

    def test_recommendation_insufficient_data(self) -> None:
        text = generate_recommendation(99.0, None, TrendLines(support=None, resistance=None))
        assert text == "Insufficient data for a recommendation."


class TestTradeRules:
    def test_percent_change(self) -> None:
        assert percent_change(110.0, 100.0) == pytest.approx(10.0)
        assert percent_change(110.0, 0.0) == 0.0

    def test_should_sell_at_threshold(self) -> None:
        assert should_sell(105.0, 100.0, 5.0)
        assert not should_sell(104.9, 100.0, 5.0)

    def test_should_buy_at_threshold(self) -> None:
        assert should_buy(95.0, 100.0, 5.0)
        assert not should_buy(95.1, 100.0, 5.0)

    def test_zero_purchase_price_never_triggers(self) -> None:
        assert not should_sell(10.0, 0.0, 5.0)
        assert not should_buy(0.0, 0.0, 5.0)

    def test_crypto_thresholds_override_global(self) -> None:
        user = Settings(user_id="u1", buy_threshold_percent=5.0, sell_threshold_percent=6.0)
        auto = AutoTradeSettings(crypto_id="c1", buy_threshold_percent=2.0)
        assert resolve_thresholds(auto, user) == (2.0, 6.0)
        assert resolve_thresholds(None, user) == (5.0, 6.0)

    def test_size_by_shares_takes_precedence(self) -> None:
        auto = AutoTradeSettings(
            crypto_id="c1", trade_by_shares=True, shares_amount=2.0,
            trade_by_value=True, total_value=500.0,
        )
        assert size_order(TradeAction.BUY, 100.0, 0.0, auto) == 2.0

    def test_size_by_value(self) -> None:
        auto = AutoTradeSettings(
            crypto_id="c1", trade_by_shares=False, trade_by_value=True, total_value=500.0
        )
        assert size_order(TradeAction.BUY, 100.0, 0.0, auto) == pytest.approx(5.0)

    def test_sell_is_capped_by_holdings(self) -> None:
        auto = AutoTradeSettings(crypto_id="c1", shares_amount=10.0)
        assert size_order(TradeAction.SELL, 100.0, 3.0, auto) == 3.0

    def test_default_sizing(self) -> None:
        assert size_order(TradeAction.SELL, 100.0, 4.0, None) == 4.0
        assert size_order(TradeAction.BUY, 50.0, 0.0, None, default_buy_value=100.0) == 2.0

    def test_valid_trade_amount(self) -> None:
        assert has_valid_trade_amount(AutoTradeSettings(crypto_id="c1", shares_amount=1.0))
        assert not has_valid_trade_amount(AutoTradeSettings(crypto_id="c1"))

    def test_lock_expiry(self) -> None:
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert is_lock_expired(now - timedelta(seconds=301), now)
        assert not is_lock_expired(now - timedelta(seconds=299), now)


class TestDomainErrors:
    def test_not_found_error_carries_id(self) -> None:
        err = CryptoNotFoundError("abc")
        assert err.crypto_id == "abc"
        assert "abc" in err.message

    def test_insufficient_shares_message(self) -> None:
        err = InsufficientSharesError("BTC", 2.0, 1.0)
        assert "requested 2.0" in err.message
        assert "available 1.0" in err.message

    def test_order_errors_share_base(self) -> None:
        assert issubclass(MissingCredentialsError, OrderFailedError)
        assert issubclass(ExchangeUnavailableError, OrderFailedError)
        assert issubclass(OrderFailedError, TradingDomainError)
        assert MissingCredentialsError().error_type == "missing_credentials"
        assert ExchangeUnavailableError("timeout").error_type == "exchange_unavailable"

    def test_trade_action_opposite(self) -> None:
        assert TradeAction.BUY.opposite is TradeAction.SELL
        assert TradeAction.SELL.opposite is TradeAction.BUY
