"""Canonical types for enrichment and recommendations."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class Action(Enum):
    """Directional verdict."""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"


class Confidence(Enum):
    """Verdict conviction band."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


@dataclass(frozen=True)
class EnrichedBar:
    """A daily bar with every indicator attached (None until enough history exists)."""
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float
    price: float

    # Moving averages
    sma: float | None = None  # SMA(20)
    ema: float | None = None  # EMA(12)
    ema26: float | None = None

    # Oscillators
    rsi: float | None = None
    stoch_k: float | None = None
    stoch_d: float | None = None
    mfi14: float | None = None

    # Trend
    macd: float | None = None
    macd_signal: float | None = None
    macd_hist: float | None = None
    di_plus: float | None = None
    di_minus: float | None = None
    adx: float | None = None

    # Volatility
    atr14: float | None = None
    bb_mid: float | None = None
    bb_upper: float | None = None
    bb_lower: float | None = None
    bb_width: float | None = None

    # Volume
    obv: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Recommendation:
    """Scored verdict for the latest bar of a series."""
    action: Action
    confidence: Confidence
    reasons: list[str] = field(default_factory=list)
    score: int = 0  # net (bull - bear) after conviction tweaks
    bullish_score: int = 0  # raw bull points
    bearish_score: int = 0  # raw bear points

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "confidence": self.confidence.value,
            "reasons": list(self.reasons),
            "score": self.score,
            "bullish_score": self.bullish_score,
            "bearish_score": self.bearish_score,
        }
