"""Unit tests for the recommendation engine."""

import pytest

from stockcache.providers.base import Bar
from stockcache.signals.enrich import enrich_with_indicators
from stockcache.signals.recommend import generate_recommendation, map_net_to_verdict
from stockcache.signals.types import Action, Confidence, EnrichedBar


def make_bar(**overrides):
    """Neutral enriched bar: close 100, no indicators."""
    fields = dict(
        date="2024-01-02",
        open=100.0,
        high=101.0,
        low=99.0,
        close=100.0,
        volume=1000.0,
        price=100.0,
    )
    fields.update(overrides)
    return EnrichedBar(**fields)


class TestDegenerateInputs:
    """Empty and trivial series."""

    def test_empty_list_holds(self):
        rec = generate_recommendation([])
        assert rec.action == Action.HOLD
        assert rec.confidence == Confidence.LOW
        assert rec.reasons == ["Insufficient data"]
        assert (rec.score, rec.bullish_score, rec.bearish_score) == (0, 0, 0)

    def test_none_holds(self):
        rec = generate_recommendation(None)
        assert rec.action == Action.HOLD
        assert rec.reasons == ["Insufficient data"]

    def test_neutral_pair_has_no_reasons(self):
        rec = generate_recommendation([make_bar(), make_bar(date="2024-01-03")])
        assert rec.action == Action.HOLD
        assert rec.reasons == ["Insufficient data"]
        assert rec.score == 0

    def test_repeated_single_bar(self):
        """Two identical raw bars fire no rule; only the ATR/close penalty applies."""
        raw = Bar(date="2024-01-02", open=10, high=12, low=9, close=11, volume=1000)
        raw2 = Bar(date="2024-01-03", open=10, high=12, low=9, close=11, volume=1000)
        rec = generate_recommendation(enrich_with_indicators([raw, raw2]))
        assert rec.action == Action.HOLD
        assert rec.confidence == Confidence.LOW
        assert rec.reasons == ["Insufficient data"]
        assert rec.bullish_score == 0
        assert rec.bearish_score == 0
        assert rec.score == -1  # ATR 3 / close 11 > 5%

    def test_single_bar_compares_with_itself(self):
        """With one bar the previous bar is the same bar, so crossovers cannot fire."""
        bar = make_bar(rsi=55.0, macd=1.0, macd_signal=0.5, macd_hist=0.5)
        rec = generate_recommendation([bar])
        assert "RSI crossed > 50" not in rec.reasons
        assert "MACD bullish crossover" not in rec.reasons
        assert rec.bullish_score == 1  # histogram and MACD both positive


class TestRules:
    """Each rule in isolation."""

    def test_rsi_oversold(self):
        rec = generate_recommendation([make_bar(), make_bar(rsi=25.0)])
        assert rec.reasons == ["RSI oversold (≤30)"]
        assert rec.bullish_score == 2
        assert (rec.action, rec.confidence) == (Action.BUY, Confidence.MEDIUM)

    def test_rsi_overbought(self):
        rec = generate_recommendation([make_bar(), make_bar(rsi=75.0)])
        assert rec.reasons == ["RSI overbought (≥70)"]
        assert rec.bearish_score == 2
        assert (rec.action, rec.confidence) == (Action.SELL, Confidence.MEDIUM)

    def test_rsi_cross_up_and_down(self):
        up = generate_recommendation([make_bar(rsi=45.0), make_bar(rsi=55.0)])
        assert up.reasons == ["RSI crossed > 50"]
        assert up.bullish_score == 1
        down = generate_recommendation([make_bar(rsi=55.0), make_bar(rsi=45.0)])
        assert down.reasons == ["RSI crossed < 50"]
        assert down.bearish_score == 1

    def test_price_above_moving_averages_with_trend(self):
        rec = generate_recommendation([make_bar(), make_bar(sma=95.0, ema=97.0, ema26=96.0)])
        assert rec.reasons == ["Price > SMA & EMA; EMA12 > EMA26"]
        assert rec.bullish_score == 2

    def test_price_above_averages_without_trend_filter(self):
        """EMA12 below EMA26 blocks the bullish alignment."""
        rec = generate_recommendation([make_bar(), make_bar(sma=95.0, ema=97.0, ema26=98.0)])
        assert rec.bullish_score == 0

    def test_price_below_moving_averages(self):
        rec = generate_recommendation([make_bar(), make_bar(sma=105.0, ema=103.0, ema26=104.0)])
        assert rec.reasons == ["Price < SMA & EMA; EMA12 < EMA26"]
        assert rec.bearish_score == 2

    def test_macd_bullish_crossover(self):
        prev = make_bar(macd=-0.5, macd_signal=0.0)
        last = make_bar(macd=0.5, macd_signal=0.2, macd_hist=0.3)
        rec = generate_recommendation([prev, last])
        assert rec.reasons == ["MACD bullish crossover"]
        assert rec.bullish_score == 3

    def test_macd_bearish_crossover(self):
        prev = make_bar(macd=0.5, macd_signal=0.0)
        last = make_bar(macd=-0.5, macd_signal=-0.2, macd_hist=-0.3)
        rec = generate_recommendation([prev, last])
        assert rec.reasons == ["MACD bearish crossover"]
        assert rec.bearish_score == 3

    def test_close_below_lower_band(self):
        rec = generate_recommendation([make_bar(), make_bar(bb_lower=101.0, bb_upper=110.0)])
        assert rec.reasons == ["Close below lower Bollinger (mean-reversion)"]
        assert rec.bullish_score == 1

    def test_close_above_upper_band(self):
        rec = generate_recommendation([make_bar(), make_bar(bb_lower=90.0, bb_upper=99.0)])
        assert rec.reasons == ["Close above upper Bollinger (pullback risk)"]
        assert rec.bearish_score == 1

    def test_band_expansion_sides_with_ema(self):
        prev = make_bar(bb_width=0.10)
        bullish = generate_recommendation([prev, make_bar(bb_width=0.15, ema=98.0)])
        assert "Bollinger width expanding (volatility breakout)" in bullish.reasons
        assert bullish.bullish_score == 1
        bearish = generate_recommendation([prev, make_bar(bb_width=0.15)])
        assert bearish.bearish_score == 1  # close not above EMA (EMA defaults to close)

    def test_band_expansion_needs_more_than_20_percent(self):
        rec = generate_recommendation([make_bar(bb_width=0.10), make_bar(bb_width=0.11)])
        assert rec.reasons == ["Insufficient data"]

    def test_adx_plus_di_with_conviction_bonus(self):
        rec = generate_recommendation([make_bar(), make_bar(adx=30.0, di_plus=25.0, di_minus=10.0)])
        assert rec.reasons == ["Trend strength (ADX 30) favoring +DI"]
        assert rec.bullish_score == 1
        assert rec.score == 2  # +1 for ADX >= 25
        assert rec.action == Action.BUY

    def test_adx_minus_di_rounds_half_up(self):
        rec = generate_recommendation([make_bar(), make_bar(adx=22.5, di_plus=10.0, di_minus=25.0)])
        assert rec.reasons == ["Trend strength (ADX 23) favoring −DI"]
        assert rec.score == -1

    def test_weak_adx_ignored(self):
        rec = generate_recommendation([make_bar(), make_bar(adx=15.0, di_plus=25.0, di_minus=10.0)])
        assert rec.bullish_score == 0

    def test_stochastic_turning_up(self):
        prev = make_bar(stoch_k=15.0, stoch_d=20.0)
        last = make_bar(stoch_k=25.0, stoch_d=22.0)
        rec = generate_recommendation([prev, last])
        assert rec.reasons == ["Stochastic turning up from oversold"]

    def test_stochastic_turning_down(self):
        prev = make_bar(stoch_k=85.0, stoch_d=82.0)
        last = make_bar(stoch_k=75.0, stoch_d=80.0)
        rec = generate_recommendation([prev, last])
        assert rec.reasons == ["Stochastic turning down from overbought"]

    def test_obv_rising_with_price(self):
        prev = make_bar(obv=1000.0)
        last = make_bar(obv=2000.0, close=101.0, price=101.0)
        rec = generate_recommendation([prev, last])
        assert rec.reasons == ["OBV rising with price"]

    def test_obv_falling_with_price(self):
        prev = make_bar(obv=1000.0)
        last = make_bar(obv=0.0, close=99.0, price=99.0)
        rec = generate_recommendation([prev, last])
        assert rec.reasons == ["OBV falling with price"]

    def test_mfi_extremes(self):
        over = generate_recommendation([make_bar(), make_bar(mfi14=85.0)])
        assert over.reasons == ["MFI overbought (≥80)"]
        assert over.bearish_score == 1
        under = generate_recommendation([make_bar(), make_bar(mfi14=15.0)])
        assert under.reasons == ["MFI oversold (≤20)"]
        assert under.bullish_score == 1

    def test_momentum(self):
        up = generate_recommendation([make_bar(), make_bar(close=103.0, price=103.0, high=104.0)])
        assert up.reasons == ["Up momentum (+3.00%)"]
        down = generate_recommendation([make_bar(), make_bar(close=97.0, price=97.0, low=96.0)])
        assert down.reasons == ["Down momentum (-3.00%)"]

    def test_volume_spike_direction_from_candle(self):
        green = generate_recommendation([make_bar(), make_bar(volume=2000.0)])
        assert green.reasons == ["Volume spike"]
        assert green.bullish_score == 1
        red = generate_recommendation([make_bar(), make_bar(volume=2000.0, open=101.0)])
        assert red.bearish_score == 1

    def test_volatility_penalty(self):
        rec = generate_recommendation([make_bar(), make_bar(rsi=25.0, atr14=6.0)])
        assert rec.bullish_score == 2
        assert rec.score == 1
        assert rec.action == Action.HOLD


class TestCombined:
    """Score aggregation and reason ordering."""

    def test_high_confidence_buy(self):
        prev = make_bar(macd=-0.5, macd_signal=0.0)
        last = make_bar(rsi=25.0, macd=0.5, macd_signal=0.2, macd_hist=0.3)
        rec = generate_recommendation([prev, last])
        assert rec.bullish_score == 5
        assert (rec.action, rec.confidence) == (Action.BUY, Confidence.HIGH)

    def test_high_confidence_sell(self):
        prev = make_bar(macd=0.5, macd_signal=0.0)
        last = make_bar(rsi=75.0, macd=-0.5, macd_signal=-0.2, macd_hist=-0.3)
        rec = generate_recommendation([prev, last])
        assert rec.score == -5
        assert (rec.action, rec.confidence) == (Action.SELL, Confidence.HIGH)

    def test_reason_order(self):
        prev = make_bar(obv=0.0, volume=1000.0)
        last = make_bar(
            close=103.0,
            price=103.0,
            high=104.0,
            rsi=75.0,
            mfi14=90.0,
            obv=500.0,
            volume=2000.0,
            bb_upper=102.0,
            bb_lower=95.0,
        )
        rec = generate_recommendation([prev, last])
        assert rec.reasons == [
            "RSI overbought (≥70)",
            "Close above upper Bollinger (pullback risk)",
            "OBV rising with price",
            "MFI overbought (≥80)",
            "Up momentum (+3.00%)",
            "Volume spike",
        ]
        assert rec.bullish_score == 3
        assert rec.bearish_score == 4

    def test_score_is_net_of_counters(self):
        prev = make_bar(obv=0.0)
        last = make_bar(rsi=25.0, mfi14=90.0)
        rec = generate_recommendation([prev, last])
        assert rec.score == rec.bullish_score - rec.bearish_score


@pytest.mark.parametrize(
    "net,expected",
    [
        (5, (Action.BUY, Confidence.HIGH)),
        (4, (Action.BUY, Confidence.HIGH)),
        (3, (Action.BUY, Confidence.MEDIUM)),
        (2, (Action.BUY, Confidence.MEDIUM)),
        (1, (Action.HOLD, Confidence.LOW)),
        (0, (Action.HOLD, Confidence.LOW)),
        (-1, (Action.HOLD, Confidence.LOW)),
        (-2, (Action.SELL, Confidence.MEDIUM)),
        (-3, (Action.SELL, Confidence.MEDIUM)),
        (-4, (Action.SELL, Confidence.HIGH)),
        (-7, (Action.SELL, Confidence.HIGH)),
    ],
)
def test_map_net_to_verdict(net, expected):
    assert map_net_to_verdict(net) == expected
