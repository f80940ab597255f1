"""Attach indicator values to daily bars."""

from __future__ import annotations

from typing import Sequence

from ..providers.base import Bar
from . import indicators as ind
from .config import (
    ADX_PERIOD,
    ATR_PERIOD,
    BOLLINGER_MULT,
    BOLLINGER_PERIOD,
    EMA_FAST,
    EMA_SLOW,
    MFI_PERIOD,
    RSI_PERIOD,
    SMA_PERIOD,
    STOCH_D_PERIOD,
    STOCH_K_PERIOD,
)
from .types import EnrichedBar


def enrich_with_indicators(bars: Sequence[Bar]) -> list[EnrichedBar]:
    """
    Compute every indicator over bars (oldest first) and zip them back by index.

    Args:
        bars: Daily bars in ascending date order

    Returns:
        One EnrichedBar per input bar; empty input gives an empty list
    """
    if not bars:
        return []

    closes = [b.close for b in bars]
    highs = [b.high for b in bars]
    lows = [b.low for b in bars]
    vols = [b.volume for b in bars]

    sma20 = ind.sma(closes, SMA_PERIOD)
    ema12 = ind.ema(closes, EMA_FAST)
    ema26 = ind.ema(closes, EMA_SLOW)
    macd = ind.macd(closes)
    bb = ind.bollinger(closes, BOLLINGER_PERIOD, BOLLINGER_MULT)
    atr14 = ind.atr(highs, lows, closes, ATR_PERIOD)
    adx = ind.adx(highs, lows, closes, ADX_PERIOD)
    stoch = ind.stochastic(highs, lows, closes, STOCH_K_PERIOD, STOCH_D_PERIOD)
    obv = ind.obv(closes, vols)
    mfi14 = ind.mfi(highs, lows, closes, vols, MFI_PERIOD)
    rsi14 = ind.rsi(closes, RSI_PERIOD)

    return [
        EnrichedBar(
            date=b.date,
            open=b.open,
            high=b.high,
            low=b.low,
            close=b.close,
            volume=b.volume,
            price=b.close,
            sma=sma20[i],
            ema=ema12[i],
            ema26=ema26[i],
            rsi=rsi14[i],
            stoch_k=stoch.k[i],
            stoch_d=stoch.d[i],
            mfi14=mfi14[i],
            macd=macd.macd[i],
            macd_signal=macd.signal[i],
            macd_hist=macd.hist[i],
            di_plus=adx.di_plus[i],
            di_minus=adx.di_minus[i],
            adx=adx.adx[i],
            atr14=atr14[i],
            bb_mid=bb.mid[i],
            bb_upper=bb.upper[i],
            bb_lower=bb.lower[i],
            bb_width=bb.width[i],
            obv=obv[i],
        )
        for i, b in enumerate(bars)
    ]
