"""Rule-based BUY/SELL/HOLD scoring of an enriched bar series."""

from __future__ import annotations

import logging
import math
from typing import Sequence

from ..errors import InsufficientDataError
from .config import (
    ADX_STRONG_TREND,
    ADX_TREND_MIN,
    BB_EXPANSION_FACTOR,
    INSUFFICIENT_DATA,
    MFI_OVERBOUGHT,
    MFI_OVERSOLD,
    MODERATE_NET,
    MOMENTUM_PCT,
    RSI_MIDLINE,
    RSI_OVERBOUGHT,
    RSI_OVERSOLD,
    STOCH_OVERBOUGHT,
    STOCH_OVERSOLD,
    STRONG_NET,
    VOLATILITY_PENALTY_RATIO,
    VOLUME_SPIKE_FACTOR,
)
from .types import Action, Confidence, EnrichedBar, Recommendation


logger = logging.getLogger(__name__)


def _or(value: float | None, default: float) -> float:
    return default if value is None else value


def _latest_pair(bars: Sequence[EnrichedBar] | None) -> tuple[EnrichedBar, EnrichedBar]:
    """Return (latest, previous); previous is latest when only one bar exists."""
    rows = list(bars) if bars else []
    if not rows:
        raise InsufficientDataError("no bars to score")
    a = rows[-1]
    b = rows[-2] if len(rows) > 1 else a
    return a, b


def map_net_to_verdict(net: int) -> tuple[Action, Confidence]:
    """Map a net score to (action, confidence)."""
    if net >= STRONG_NET:
        return Action.BUY, Confidence.HIGH
    if net >= MODERATE_NET:
        return Action.BUY, Confidence.MEDIUM
    if net <= -STRONG_NET:
        return Action.SELL, Confidence.HIGH
    if net <= -MODERATE_NET:
        return Action.SELL, Confidence.MEDIUM
    return Action.HOLD, Confidence.LOW


def generate_recommendation(bars: Sequence[EnrichedBar] | None) -> Recommendation:
    """
    Score the latest bar against the previous one.

    Each rule adds points to a bullish or bearish counter; reasons come out
    in rule order (RSI, moving averages, MACD, Bollinger, ADX/DI, stochastic,
    OBV/MFI, momentum, volume). Missing indicator values fall back to neutral
    defaults so the function never raises.

    Args:
        bars: Enriched bars, oldest first

    Returns:
        Recommendation (HOLD/LOW with "Insufficient data" for empty input)
    """
    try:
        a, b = _latest_pair(bars)
    except InsufficientDataError:
        return Recommendation(
            action=Action.HOLD,
            confidence=Confidence.LOW,
            reasons=[INSUFFICIENT_DATA],
        )

    reasons: list[str] = []
    bull = 0
    bear = 0

    # --- RSI ---
    rsi_a = _or(a.rsi, 50.0)
    rsi_b = _or(b.rsi, rsi_a)
    if rsi_a <= RSI_OVERSOLD:
        reasons.append("RSI oversold (≤30)")
        bull += 2
    elif rsi_a >= RSI_OVERBOUGHT:
        reasons.append("RSI overbought (≥70)")
        bear += 2
    else:
        if rsi_a > RSI_MIDLINE and rsi_b <= RSI_MIDLINE:
            reasons.append("RSI crossed > 50")
            bull += 1
        if rsi_a < RSI_MIDLINE and rsi_b >= RSI_MIDLINE:
            reasons.append("RSI crossed < 50")
            bear += 1

    # --- Price vs moving averages ---
    sma = _or(a.sma, a.close)
    ema = _or(a.ema, a.close)
    ema26 = _or(a.ema26, ema)

    above_mas = a.close > sma and a.close > ema
    below_mas = a.close < sma and a.close < ema
    if above_mas and ema > ema26:
        reasons.append("Price > SMA & EMA; EMA12 > EMA26")
        bull += 2
    if below_mas and ema < ema26:
        reasons.append("Price < SMA & EMA; EMA12 < EMA26")
        bear += 2

    # --- MACD ---
    macd_a = _or(a.macd, 0.0)
    sig_a = _or(a.macd_signal, 0.0)
    macd_b = _or(b.macd, macd_a)
    sig_b = _or(b.macd_signal, sig_a)
    hist_a = _or(a.macd_hist, 0.0)

    if macd_b <= sig_b and macd_a > sig_a:
        reasons.append("MACD bullish crossover")
        bull += 2
    if macd_b >= sig_b and macd_a < sig_a:
        reasons.append("MACD bearish crossover")
        bear += 2
    if hist_a > 0 and macd_a > 0:
        bull += 1
    if hist_a < 0 and macd_a < 0:
        bear += 1

    # --- Bollinger bands ---
    upper = _or(a.bb_upper, math.inf)
    lower = _or(a.bb_lower, -math.inf)
    width_a = _or(a.bb_width, 0.0)
    width_b = _or(b.bb_width, width_a)

    if a.close < lower:
        reasons.append("Close below lower Bollinger (mean-reversion)")
        bull += 1
    if a.close > upper:
        reasons.append("Close above upper Bollinger (pullback risk)")
        bear += 1
    if width_a > width_b * BB_EXPANSION_FACTOR:
        reasons.append("Bollinger width expanding (volatility breakout)")
        if a.close > ema:
            bull += 1
        else:
            bear += 1

    # --- ADX / DI ---
    adx = _or(a.adx, 0.0)
    di_plus = _or(a.di_plus, 0.0)
    di_minus = _or(a.di_minus, 0.0)
    if adx >= ADX_TREND_MIN:
        adx_label = math.floor(adx + 0.5)
        if di_plus > di_minus:
            reasons.append(f"Trend strength (ADX {adx_label}) favoring +DI")
            bull += 1
        if di_minus > di_plus:
            reasons.append(f"Trend strength (ADX {adx_label}) favoring −DI")
            bear += 1

    # --- Stochastic ---
    k_a = _or(a.stoch_k, 50.0)
    d_a = _or(a.stoch_d, 50.0)
    k_b = _or(b.stoch_k, k_a)
    d_b = _or(b.stoch_d, d_a)
    if k_b <= STOCH_OVERSOLD and k_a > k_b and d_a > d_b:
        reasons.append("Stochastic turning up from oversold")
        bull += 1
    if k_b >= STOCH_OVERBOUGHT and k_a < k_b and d_a < d_b:
        reasons.append("Stochastic turning down from overbought")
        bear += 1

    # --- OBV / MFI ---
    obv_a = _or(a.obv, 0.0)
    obv_b = _or(b.obv, obv_a)
    if obv_a > obv_b and a.close > b.close:
        reasons.append("OBV rising with price")
        bull += 1
    if obv_a < obv_b and a.close < b.close:
        reasons.append("OBV falling with price")
        bear += 1

    mfi = _or(a.mfi14, 50.0)
    if mfi >= MFI_OVERBOUGHT:
        reasons.append("MFI overbought (≥80)")
        bear += 1
    if mfi <= MFI_OVERSOLD:
        reasons.append("MFI oversold (≤20)")
        bull += 1

    # --- Momentum & volume ---
    pct = (a.close - b.close) / b.close * 100.0 if b.close else 0.0
    if pct > MOMENTUM_PCT:
        reasons.append(f"Up momentum (+{pct:.2f}%)")
        bull += 1
    if pct < -MOMENTUM_PCT:
        reasons.append(f"Down momentum ({pct:.2f}%)")
        bear += 1

    if a.volume > b.volume * VOLUME_SPIKE_FACTOR:
        if a.close >= a.open:
            bull += 1
        else:
            bear += 1
        reasons.append("Volume spike")

    # --- Conviction tweaks ---
    net = bull - bear
    atr_ratio = a.atr14 / a.close if a.atr14 and a.close else 0.0
    if adx >= ADX_STRONG_TREND:
        net += 1
    if atr_ratio > VOLATILITY_PENALTY_RATIO:
        net -= 1

    action, confidence = map_net_to_verdict(net)

    if not reasons:
        reasons.append(INSUFFICIENT_DATA)

    logger.debug(f"Recommendation {action.value}/{confidence.value} net={net} bull={bull} bear={bear}")

    return Recommendation(
        action=action,
        confidence=confidence,
        reasons=reasons,
        score=net,
        bullish_score=bull,
        bearish_score=bear,
    )
