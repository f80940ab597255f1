"""
Technical indicators over aligned numeric series.

Every function is pure and returns a list the same length as its input, so
outputs can be zipped back onto the source bars by index. Rolling indicators
emit None until their window is full; exponentially smoothed ones seed at the
first element and have no None prefix.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence, TypeVar

from .config import (
    ADX_PERIOD,
    ATR_PERIOD,
    BOLLINGER_MULT,
    BOLLINGER_PERIOD,
    EMA_FAST,
    EMA_SLOW,
    MACD_SIGNAL,
    MFI_PERIOD,
    RSI_PERIOD,
    STOCH_D_PERIOD,
    STOCH_K_PERIOD,
)


T = TypeVar("T")
Series = list[float | None]


@dataclass
class MACDResult:
    macd: list[float]
    signal: list[float]
    hist: list[float]


@dataclass
class BollingerResult:
    mid: Series
    upper: Series
    lower: Series
    width: Series


@dataclass
class ADXResult:
    di_plus: Series
    di_minus: Series
    adx: list[float]


@dataclass
class StochasticResult:
    k: Series
    d: Series


def rolling(
    series: Sequence[float],
    period: int,
    fn: Callable[[Sequence[float]], T],
) -> list[T | None]:
    """Apply fn to each full trailing window of length period; None before that."""
    return [
        None if i < period - 1 else fn(series[i - period + 1:i + 1])
        for i in range(len(series))
    ]


def sma(series: Sequence[float], period: int) -> Series:
    """Simple moving average over a trailing window."""
    return rolling(series, period, lambda win: sum(win) / period)


def ema(series: Sequence[float], period: int) -> list[float]:
    """Exponential moving average seeded with the first value."""
    k = 2.0 / (period + 1)
    out: list[float] = []
    prev: float | None = None
    for v in series:
        prev = v if prev is None else (v - prev) * k + prev
        out.append(prev)
    return out


def macd(
    series: Sequence[float],
    fast: int = EMA_FAST,
    slow: int = EMA_SLOW,
    signal: int = MACD_SIGNAL,
) -> MACDResult:
    """MACD line (fast EMA - slow EMA), its signal EMA and the histogram."""
    ema_fast = ema(series, fast)
    ema_slow = ema(series, slow)
    line = [f - s for f, s in zip(ema_fast, ema_slow)]
    sig = ema(line, signal)
    hist = [m - s for m, s in zip(line, sig)]
    return MACDResult(macd=line, signal=sig, hist=hist)


def bollinger(
    series: Sequence[float],
    period: int = BOLLINGER_PERIOD,
    mult: float = BOLLINGER_MULT,
) -> BollingerResult:
    """
    Bollinger bands around SMA(period) using the population standard deviation.

    width = (upper - lower) / mid, None when mid is 0.
    """
    n = len(series)
    mid = sma(series, period)
    upper: Series = [None] * n
    lower: Series = [None] * n
    width: Series = [None] * n
    for i in range(period - 1, n):
        mean = mid[i]
        win = series[i - period + 1:i + 1]
        sd = math.sqrt(sum((v - mean) ** 2 for v in win) / period)
        upper[i] = mean + mult * sd
        lower[i] = mean - mult * sd
        width[i] = (upper[i] - lower[i]) / mean if mean else None
    return BollingerResult(mid=mid, upper=upper, lower=lower, width=width)


def true_range(highs: Sequence[float], lows: Sequence[float], closes: Sequence[float]) -> list[float]:
    """Per-bar true range; the first bar uses high - low."""
    tr = []
    for i in range(len(highs)):
        if i == 0:
            tr.append(highs[i] - lows[i])
        else:
            prev_close = closes[i - 1]
            tr.append(max(
                highs[i] - lows[i],
                abs(highs[i] - prev_close),
                abs(lows[i] - prev_close),
            ))
    return tr


def atr(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = ATR_PERIOD,
) -> list[float]:
    """Average true range, smoothed with EMA(period)."""
    return ema(true_range(highs, lows, closes), period)


def adx(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    period: int = ADX_PERIOD,
) -> ADXResult:
    """
    Directional movement index.

    +DM/-DM count only the larger of the two signed moves and only when
    positive; both are EMA-smoothed and divided by ATR. DI is None where ATR
    is 0, DX is None where either DI is None or both are 0, and ADX treats a
    missing DX as 0 before smoothing.
    """
    n = len(highs)
    dm_plus = [0.0] * n
    dm_minus = [0.0] * n
    for i in range(1, n):
        up = highs[i] - highs[i - 1]
        dn = lows[i - 1] - lows[i]
        dm_plus[i] = up if up > dn and up > 0 else 0.0
        dm_minus[i] = dn if dn > up and dn > 0 else 0.0

    atr_values = atr(highs, lows, closes, period)
    sm_plus = ema(dm_plus, period)
    sm_minus = ema(dm_minus, period)

    di_plus: Series = [100.0 * p / a if a else None for p, a in zip(sm_plus, atr_values)]
    di_minus: Series = [100.0 * m / a if a else None for m, a in zip(sm_minus, atr_values)]

    dx: Series = []
    for p, m in zip(di_plus, di_minus):
        if p is None or m is None or p + m == 0:
            dx.append(None)
        else:
            dx.append(100.0 * abs(p - m) / (p + m))

    adx_values = ema([x if x is not None else 0.0 for x in dx], period)
    return ADXResult(di_plus=di_plus, di_minus=di_minus, adx=adx_values)


def rsi(closes: Sequence[float], period: int = RSI_PERIOD) -> list[float]:
    """
    Relative strength index over the trailing period deltas.

    The warm-up region (index < period) is 50; RSI is 100 when the window
    has no losses.
    """
    out: list[float] = []
    for i in range(len(closes)):
        if i < period:
            out.append(50.0)
            continue
        gain = 0.0
        loss = 0.0
        for j in range(i - period + 1, i + 1):
            diff = closes[j] - closes[j - 1]
            if diff > 0:
                gain += diff
            else:
                loss -= diff
        if loss == 0:
            out.append(100.0)
            continue
        rs = (gain / period) / (loss / period)
        out.append(100.0 - 100.0 / (1.0 + rs))
    return out


def stochastic(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    k_period: int = STOCH_K_PERIOD,
    d_period: int = STOCH_D_PERIOD,
) -> StochasticResult:
    """%K over k_period (50 on a flat range) and %D = SMA(%K) with missing %K read as 50."""
    k: Series = []
    for i, c in enumerate(closes):
        if i < k_period - 1:
            k.append(None)
            continue
        hh = max(highs[i - k_period + 1:i + 1])
        ll = min(lows[i - k_period + 1:i + 1])
        k.append(50.0 if hh == ll else 100.0 * (c - ll) / (hh - ll))
    d = sma([v if v is not None else 50.0 for v in k], d_period)
    return StochasticResult(k=k, d=d)


def obv(closes: Sequence[float], volumes: Sequence[float]) -> list[float]:
    """On-balance volume starting at 0."""
    out: list[float] = []
    for i in range(len(closes)):
        if i == 0:
            out.append(0.0)
        elif closes[i] > closes[i - 1]:
            out.append(out[-1] + volumes[i])
        elif closes[i] < closes[i - 1]:
            out.append(out[-1] - volumes[i])
        else:
            out.append(out[-1])
    return out


def mfi(
    highs: Sequence[float],
    lows: Sequence[float],
    closes: Sequence[float],
    volumes: Sequence[float],
    period: int = MFI_PERIOD,
) -> Series:
    """
    Money flow index.

    Raw flow (typical price * volume) is positive on a rising typical price,
    negative on a falling one and ignored when flat. None for index < period;
    100 when the window has no negative flow.
    """
    n = len(closes)
    tp = [(highs[i] + lows[i] + closes[i]) / 3.0 for i in range(n)]
    pos = [0.0] * n
    neg = [0.0] * n
    for i in range(1, n):
        raw = tp[i] * volumes[i]
        if tp[i] > tp[i - 1]:
            pos[i] = raw
        elif tp[i] < tp[i - 1]:
            neg[i] = raw

    out: Series = []
    for i in range(n):
        if i < period:
            out.append(None)
            continue
        ps = sum(pos[i - period + 1:i + 1])
        ns = sum(neg[i - period + 1:i + 1])
        if ns == 0:
            out.append(100.0)
            continue
        out.append(100.0 - 100.0 / (1.0 + ps / ns))
    return out
