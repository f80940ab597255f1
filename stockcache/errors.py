"""Error taxonomy shared by the store, the upstream client and the coordinator."""

from __future__ import annotations


class StockCacheError(Exception):
    """Base class for all stockcache errors."""


class StorageError(StockCacheError):
    """The quote store's underlying medium failed (open, read or write)."""


class UpstreamError(StockCacheError):
    """The upstream quote source failed or returned an unusable payload."""

    def __init__(self, message: str, symbol: str | None = None):
        super().__init__(message)
        self.symbol = symbol


class RateLimited(UpstreamError):
    """Upstream refused the call because of its request-frequency limit."""


class SymbolNotFound(UpstreamError):
    """Upstream does not know the requested symbol."""


class InsufficientDataError(StockCacheError):
    """Not enough bars to evaluate a signal. Never leaves the recommendation engine."""
