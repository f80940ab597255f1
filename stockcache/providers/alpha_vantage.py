"""Alpha Vantage TIME_SERIES_DAILY client."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from ..errors import RateLimited, SymbolNotFound, UpstreamError
from .base import Bar


logger = logging.getLogger(__name__)


SERIES_KEY = "Time Series (Daily)"


class AlphaVantageClient:
    """
    Fetches daily bars from Alpha Vantage.

    The free tier allows 5 requests per minute; pacing is the caller's job
    (see FetchCoordinator.prefetch). A throttled response comes back as
    HTTP 200 with a "Note" or "Information" field, which is surfaced as
    RateLimited so callers can tell it apart from other failures.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://www.alphavantage.co/query",
        timeout_seconds: float = 15.0,
        max_rows: int = 30,
    ):
        """
        Initialize Alpha Vantage client.

        Args:
            api_key: Alpha Vantage API key (None = not configured)
            base_url: Query endpoint
            timeout_seconds: Total request timeout
            max_rows: Keep only the most recent N trading days
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.max_rows = max_rows

    async def fetch_daily(self, symbol: str) -> list[Bar]:
        """
        Fetch the daily series for a symbol.

        Returns:
            Bars in ascending date order (at most max_rows)

        Raises:
            RateLimited: API call frequency limit reached
            SymbolNotFound: Unknown symbol
            UpstreamError: Any other network, HTTP or payload failure
        """
        symbol = symbol.strip().upper()
        if not self.api_key:
            raise UpstreamError("Alpha Vantage API key not configured", symbol=symbol)

        params = {
            "function": "TIME_SERIES_DAILY",
            "symbol": symbol,
            "apikey": self.api_key,
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.base_url, params=params) as response:
                    if response.status != 200:
                        text = await response.text()
                        raise UpstreamError(
                            f"Alpha Vantage HTTP {response.status} for {symbol}: {text[:200]}",
                            symbol=symbol,
                        )
                    payload = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise UpstreamError(f"Network error fetching {symbol}: {e}", symbol=symbol) from e
        except asyncio.TimeoutError as e:
            raise UpstreamError(f"Timeout fetching {symbol}", symbol=symbol) from e
        except ValueError as e:
            # Non-JSON body (e.g. an HTML gateway page served with 200)
            raise UpstreamError(f"Unreadable Alpha Vantage response for {symbol}: {e}", symbol=symbol) from e

        bars = parse_daily_series(symbol, payload, self.max_rows)
        logger.info(f"Alpha Vantage returned {len(bars)} bars for {symbol}")
        return bars


def parse_daily_series(symbol: str, payload: Any, max_rows: int | None = None) -> list[Bar]:
    """
    Convert a TIME_SERIES_DAILY payload into ascending Bars.

    Args:
        symbol: Requested symbol (for error messages)
        payload: Decoded JSON body
        max_rows: Keep only the most recent N days (None = all)
    """
    if not isinstance(payload, dict):
        raise UpstreamError(f"Unexpected Alpha Vantage payload for {symbol}", symbol=symbol)

    if payload.get("Error Message"):
        raise SymbolNotFound(f"Alpha Vantage: {payload['Error Message']}", symbol=symbol)
    if payload.get("Note") or payload.get("Information"):
        raise RateLimited("API call frequency limit reached. Try again shortly.", symbol=symbol)

    series = payload.get(SERIES_KEY)
    if not series:
        raise UpstreamError("No time series data found", symbol=symbol)

    dates = sorted(series.keys(), reverse=True)
    if max_rows is not None:
        dates = dates[:max_rows]

    bars = []
    for date in reversed(dates):
        v = series[date]
        try:
            bars.append(Bar(
                date=date,
                open=float(v["1. open"]),
                high=float(v["2. high"]),
                low=float(v["3. low"]),
                close=float(v["4. close"]),
                volume=float(v["5. volume"]),
            ))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed {symbol} row for {date}: {e}")
    return bars
