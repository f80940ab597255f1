"""Base types and protocols for daily quote providers."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Protocol


DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_valid_date(value: object) -> bool:
    """True for a real calendar date written as YYYY-MM-DD."""
    if not isinstance(value, str) or not DATE_RE.match(value):
        return False
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class Bar:
    """One trading day of OHLCV data for a symbol."""
    date: str  # "YYYY-MM-DD"
    open: float
    high: float
    low: float
    close: float
    volume: float

    @property
    def price(self) -> float:
        """Alias of close."""
        return self.close

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["price"] = self.close
        return d

    @classmethod
    def from_dict(cls, row: dict[str, Any]) -> "Bar":
        """Build a Bar from a mapping with date/open/high/low/close/volume keys."""
        return cls(
            date=str(row["date"]),
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
            volume=float(row["volume"]),
        )


class QuoteSource(Protocol):
    """Protocol for upstream daily quote sources."""

    async def fetch_daily(self, symbol: str) -> list[Bar]:
        """
        Return daily bars for symbol, oldest first.

        Raises UpstreamError (RateLimited / SymbolNotFound for the
        distinguished cases) on any failure.
        """
        ...
