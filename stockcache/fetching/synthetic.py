"""Synthetic daily bars served when neither the store nor upstream has data."""

from __future__ import annotations

import math
import random
from datetime import date, timedelta

from ..providers.base import Bar


def generate_random_walk(
    days: int,
    rng: random.Random,
    end: date,
) -> list[Bar]:
    """
    Build a plausible random-walk OHLCV series ending the day before end.

    The shape is fixed (±1% drift per day, up to 3% intraday range, volume
    drifting by 0.8x-1.2x); the values depend only on rng, so a seeded
    generator reproduces the exact series.

    Args:
        days: Number of bars
        rng: Random source
        end: Reference date; bars cover end - days .. end - 1
    """
    base = rng.random() * 200 + 50
    vol = rng.random() * 1_000_000 + 500_000
    bars = []
    for i in range(days):
        d = end - timedelta(days=days - i)
        base += (rng.random() - 0.5) * base * 0.02
        open_ = base
        high = open_ + rng.random() * open_ * 0.03
        low = open_ - rng.random() * open_ * 0.03
        close = low + rng.random() * (high - low)
        vol *= 0.8 + rng.random() * 0.4
        bars.append(Bar(
            date=d.isoformat(),
            open=round(open_, 2),
            high=round(high, 2),
            low=round(low, 2),
            close=round(close, 2),
            volume=float(math.floor(vol)),
        ))
    return bars
