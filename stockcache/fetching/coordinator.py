"""Store-or-upstream fetch coordination with batch pacing and fallbacks."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable

from ..config import Settings
from ..errors import RateLimited, StorageError, UpstreamError
from ..providers.base import Bar, QuoteSource
from ..signals.enrich import enrich_with_indicators
from ..signals.types import EnrichedBar
from ..storage.sqlite import QuoteStore
from .synthetic import generate_random_walk


logger = logging.getLogger(__name__)


SOURCE_STORE = "store"
SOURCE_UPSTREAM = "upstream"
SOURCE_STORE_FALLBACK = "store_fallback"
SOURCE_SYNTHETIC = "synthetic"


def normalize_symbol(symbol: str) -> str:
    return symbol.strip().upper()


@dataclass
class CachedSeries:
    """In-memory enriched series held for one symbol."""
    bars: list[EnrichedBar]
    last_updated: float
    source: str = SOURCE_STORE


@dataclass
class FetchResult:
    """Outcome of resolving one symbol."""
    bars: list[EnrichedBar]
    effective_ts: float
    source: str


@dataclass
class BatchSummary:
    """Per-symbol outcome of one prefetch batch."""
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    synthetic: list[str] = field(default_factory=list)
    skipped: bool = False  # rejected (batch already running) or nothing to do


class FetchCoordinator:
    """
    Decides per symbol whether stored bars are good enough or upstream must be
    called, and runs paced batches over many symbols.

    One instance per process. Holds the in-memory enriched cache and the
    status strings shown to users. Only one prefetch batch runs at a time; a
    second call while one is running is rejected, not queued.
    """

    def __init__(
        self,
        store: QuoteStore,
        source: QuoteSource | None,
        settings: Settings,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        """
        Initialize coordinator.

        Args:
            store: Quote store
            source: Upstream quote source (None = not configured)
            settings: Cache policy (history window, TTL, pacing delay)
            clock: Returns Unix time in seconds
            sleep: Awaitable used for the inter-symbol pause
            rng: Random source for synthetic fallback bars
        """
        self.store = store
        self.source = source
        self.settings = settings
        self.clock = clock
        self.sleep = sleep
        self.rng = rng if rng is not None else random.Random(settings.synthetic_seed)

        self._cache: dict[str, CachedSeries] = {}
        self._busy = asyncio.Lock()

        self.loading = False
        self.status = ""
        self.error: str | None = None

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    # ------------------------------------------------------------------ reads

    def get_enriched_bars(self, symbol: str) -> list[EnrichedBar]:
        entry = self._cache.get(normalize_symbol(symbol))
        return list(entry.bars) if entry else []

    def get_last_refreshed(self, symbol: str) -> float | None:
        entry = self._cache.get(normalize_symbol(symbol))
        return entry.last_updated if entry else None

    def get_cached(self, symbol: str) -> CachedSeries | None:
        return self._cache.get(normalize_symbol(symbol))

    def forget(self, symbol: str) -> None:
        """Drop a symbol's in-memory series (stored rows are kept)."""
        self._cache.pop(normalize_symbol(symbol), None)

    # ----------------------------------------------------------- resolution

    def derive_timestamp(self, last_ts: float | None, rows: list[Bar], now: float) -> float:
        """Refresh timestamp if known, else the last bar's date at market close, else now."""
        if last_ts is not None:
            return last_ts
        if rows:
            hour, minute = self.settings.get_market_close()
            try:
                day = datetime.strptime(rows[-1].date, "%Y-%m-%d")
            except ValueError:
                return now
            return day.replace(hour=hour, minute=minute, tzinfo=timezone.utc).timestamp()
        return now

    async def _read_store(self, symbol: str) -> tuple[list[Bar], float | None]:
        try:
            rows = await self.store.read(symbol, limit=self.settings.history_days)
            last_ts = await self.store.get_refreshed(symbol)
        except StorageError as e:
            logger.warning(f"Store read failed for {symbol}, treating as empty: {e}")
            return [], None
        return rows, last_ts

    def _synthesize(self, symbol: str, now: float) -> list[Bar]:
        end = datetime.fromtimestamp(now, tz=timezone.utc).date()
        logger.warning(f"No stored or upstream data for {symbol}; serving synthetic bars")
        return generate_random_walk(self.settings.history_days, self.rng, end)

    async def fetch_one(self, symbol: str) -> FetchResult:
        """
        Resolve one symbol to an enriched series.

        Serves the store when it holds at least min(history_days,
        min_cached_rows) rows and the refresh timestamp is fresh or was never
        recorded. Otherwise calls upstream and persists the result. On any
        upstream failure falls back to any stored rows, then to synthetic
        bars (never persisted), so the returned series is never empty.
        """
        sym = normalize_symbol(symbol)
        history = self.settings.history_days
        rows, last_ts = await self._read_store(sym)
        now = self.clock()
        derived_ts = self.derive_timestamp(last_ts, rows, now)

        is_fresh = last_ts is not None and now - last_ts < self.settings.fresh_ttl_seconds
        if len(rows) >= min(history, self.settings.min_cached_rows) and (is_fresh or last_ts is None):
            logger.debug(f"{sym}: serving {len(rows)} stored bars")
            return FetchResult(enrich_with_indicators(rows), derived_ts, SOURCE_STORE)

        try:
            if self.source is None:
                raise UpstreamError("No upstream quote source configured", symbol=sym)
            api_rows = await self.source.fetch_daily(sym)
        except RateLimited as e:
            logger.warning(f"{sym}: upstream rate limited ({e}); falling back")
            return self._fallback(sym, rows, derived_ts, now)
        except UpstreamError as e:
            logger.warning(f"{sym}: upstream failed ({e}); falling back")
            return self._fallback(sym, rows, derived_ts, now)
        except Exception as e:
            logger.error(f"{sym}: unexpected upstream error ({e!r}); falling back", exc_info=True)
            return self._fallback(sym, rows, derived_ts, now)

        ts = now
        try:
            await self.store.upsert(sym, api_rows)
            await self.store.set_refreshed(sym, ts)
        except StorageError as e:
            logger.warning(f"{sym}: could not persist upstream bars: {e}")

        merged = api_rows if api_rows else rows
        if not merged:
            return FetchResult(enrich_with_indicators(self._synthesize(sym, now)), ts, SOURCE_SYNTHETIC)
        logger.info(f"{sym}: refreshed {len(api_rows)} bars from upstream")
        return FetchResult(enrich_with_indicators(merged), ts, SOURCE_UPSTREAM)

    def _fallback(self, symbol: str, rows: list[Bar], derived_ts: float, now: float) -> FetchResult:
        if rows:
            return FetchResult(enrich_with_indicators(rows), derived_ts, SOURCE_STORE_FALLBACK)
        return FetchResult(enrich_with_indicators(self._synthesize(symbol, now)), now, SOURCE_SYNTHETIC)

    def _merge(self, symbol: str, result: FetchResult) -> bool:
        """
        Store result in the in-memory cache unless it would downgrade what is held.

        A result replaces the held series only when its timestamp is not
        older, and synthetic bars never replace real ones.
        """
        held = self._cache.get(symbol)
        if held is not None:
            if result.effective_ts < held.last_updated:
                return False
            if result.source == SOURCE_SYNTHETIC and held.source != SOURCE_SYNTHETIC:
                return False
        self._cache[symbol] = CachedSeries(
            bars=result.bars,
            last_updated=result.effective_ts,
            source=result.source,
        )
        return True

    # ---------------------------------------------------------------- batches

    async def hydrate(self, symbols: Iterable[str]) -> int:
        """
        Load stored bars into memory without touching upstream.

        Returns:
            Number of symbols hydrated
        """
        hydrated = 0
        for s in symbols:
            sym = normalize_symbol(s)
            if not sym:
                continue
            rows, last_ts = await self._read_store(sym)
            if not rows:
                continue
            ts = self.derive_timestamp(last_ts, rows, self.clock())
            if self._merge(sym, FetchResult(enrich_with_indicators(rows), ts, SOURCE_STORE)):
                hydrated += 1
        if hydrated:
            logger.info(f"Hydrated {hydrated} symbol(s) from the store")
        return hydrated

    async def prefetch(self, symbols: Iterable[str] | str) -> BatchSummary:
        """
        Resolve symbols one at a time, pausing between them for the upstream rate limit.

        Rejected (summary.skipped) when a batch is already running or the
        list is empty. A failure on one symbol is recorded and the batch
        continues.
        """
        if isinstance(symbols, str):
            symbols = [symbols]
        todo: list[str] = []
        for s in symbols:
            sym = normalize_symbol(s)
            if sym and sym not in todo:
                todo.append(sym)

        if not todo:
            return BatchSummary(skipped=True)
        if self._busy.locked():
            logger.warning(f"Prefetch already running; rejected batch {todo}")
            return BatchSummary(skipped=True)

        async with self._busy:
            summary = BatchSummary()
            self.loading = True
            self.error = None
            n = len(todo)
            delay = self.settings.rate_limit_delay_seconds
            logger.info(f"Prefetch started for {n} symbol(s): {', '.join(todo)}")

            try:
                for i, sym in enumerate(todo):
                    self.status = f"Fetching {sym}... ({i + 1}/{n})"
                    try:
                        result = await self.fetch_one(sym)
                    except Exception as e:
                        logger.error(f"Unexpected error fetching {sym}: {e}", exc_info=True)
                        summary.failed.append(sym)
                    else:
                        self._merge(sym, result)
                        summary.succeeded.append(sym)
                        if result.source == SOURCE_SYNTHETIC:
                            summary.synthetic.append(sym)

                    if i < n - 1:
                        self.status = f"Rate limit pause... Next: {todo[i + 1]}"
                        await self.sleep(delay)
            finally:
                self.loading = False
                self.status = ""

            self.error = self._summarize_errors(summary, n)
            logger.info(
                f"Prefetch finished: {len(summary.succeeded)}/{n} ok"
                + (f", failed: {summary.failed}" if summary.failed else "")
            )
            return summary

    @staticmethod
    def _summarize_errors(summary: BatchSummary, total: int) -> str | None:
        messages = []
        if summary.failed and summary.succeeded:
            messages.append(
                f"Loaded {len(summary.succeeded)}/{total}. Failed: {', '.join(summary.failed)}"
            )
        elif summary.failed:
            messages.append("All fetches failed. Using fallback data.")
        if summary.synthetic:
            messages.append(f"Showing synthetic data for: {', '.join(summary.synthetic)}")
        return " ".join(messages) or None
