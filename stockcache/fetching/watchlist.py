"""Per-session service: tracked symbols plus the read/command surfaces used by the API."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..errors import StorageError
from ..signals.recommend import generate_recommendation
from ..signals.types import EnrichedBar, Recommendation
from ..storage.sqlite import QuoteStore
from .coordinator import BatchSummary, FetchCoordinator, normalize_symbol


logger = logging.getLogger(__name__)


class StockDataService:
    """
    Owns the watchlist and fronts the fetch coordinator.

    The watchlist is persisted in the quote store; when nothing is stored
    the configured defaults are used.
    """

    def __init__(self, store: QuoteStore, coordinator: FetchCoordinator, default_symbols: Iterable[str]):
        self.store = store
        self.coordinator = coordinator
        self.default_symbols = [normalize_symbol(s) for s in default_symbols if normalize_symbol(s)]
        self.symbols: list[str] = list(self.default_symbols)

    async def start(self) -> None:
        """Load the saved watchlist and hydrate it from the store (no network)."""
        try:
            saved = await self.store.load_watchlist()
        except StorageError as e:
            logger.warning(f"Could not load watchlist, using defaults: {e}")
            saved = []
        if saved:
            self.symbols = saved
        else:
            await self._save()
        await self.coordinator.hydrate(self.symbols)

    async def _save(self) -> None:
        try:
            await self.store.save_watchlist(self.symbols)
        except StorageError as e:
            logger.warning(f"Could not persist watchlist: {e}")

    async def add_symbol(self, symbol: str) -> bool:
        """Append a symbol; returns False if it was empty or already tracked."""
        sym = normalize_symbol(symbol)
        if not sym or sym in self.symbols:
            return False
        self.symbols.append(sym)
        await self._save()
        return True

    async def remove_symbol(self, symbol: str) -> bool:
        """Stop tracking a symbol; returns False if it was not tracked."""
        sym = normalize_symbol(symbol)
        if sym not in self.symbols:
            return False
        self.symbols.remove(sym)
        self.coordinator.forget(sym)
        await self._save()
        return True

    def get_enriched_bars(self, symbol: str) -> list[EnrichedBar]:
        return self.coordinator.get_enriched_bars(symbol)

    def get_last_refreshed(self, symbol: str) -> float | None:
        return self.coordinator.get_last_refreshed(symbol)

    def get_recommendation(self, symbol: str) -> Recommendation:
        return generate_recommendation(self.coordinator.get_enriched_bars(symbol))

    async def trigger_prefetch(self, symbols: Iterable[str] | None = None) -> BatchSummary:
        """Run a prefetch batch over symbols (default: the whole watchlist)."""
        return await self.coordinator.prefetch(list(symbols) if symbols else list(self.symbols))

    def status(self) -> dict[str, Any]:
        return {
            "loading": self.coordinator.loading,
            "busy": self.coordinator.busy,
            "status": self.coordinator.status,
            "error": self.coordinator.error,
            "symbols": list(self.symbols),
        }
