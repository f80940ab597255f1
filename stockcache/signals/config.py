"""Indicator periods and recommendation thresholds."""

from __future__ import annotations


# Indicator periods used by enrichment
SMA_PERIOD = 20
EMA_FAST = 12
EMA_SLOW = 26
MACD_SIGNAL = 9
BOLLINGER_PERIOD = 20
BOLLINGER_MULT = 2.0
ATR_PERIOD = 14
ADX_PERIOD = 14
RSI_PERIOD = 14
STOCH_K_PERIOD = 14
STOCH_D_PERIOD = 3
MFI_PERIOD = 14

# RSI
RSI_OVERSOLD = 30
RSI_OVERBOUGHT = 70
RSI_MIDLINE = 50

# Bollinger width expansion (current > previous * factor)
BB_EXPANSION_FACTOR = 1.2

# ADX / DI
ADX_TREND_MIN = 20  # DI dominance only counts above this
ADX_STRONG_TREND = 25  # +1 conviction

# Stochastic reversal zones
STOCH_OVERSOLD = 20
STOCH_OVERBOUGHT = 80

# Money flow
MFI_OVERSOLD = 20
MFI_OVERBOUGHT = 80

# Single-period momentum (percent)
MOMENTUM_PCT = 2.0

# Volume spike (current > previous * factor)
VOLUME_SPIKE_FACTOR = 1.5

# ATR / close above this costs one point of conviction
VOLATILITY_PENALTY_RATIO = 0.05

# Net score -> verdict
STRONG_NET = 4
MODERATE_NET = 2

INSUFFICIENT_DATA = "Insufficient data"
