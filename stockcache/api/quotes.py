"""
Quote, recommendation and watchlist API endpoints.

Thin JSON surface over StockDataService; no rendering happens here.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from ..errors import StorageError
from ..fetching.watchlist import StockDataService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["quotes"])

# Service instance (set by main.py)
_service: StockDataService | None = None
_background: set[asyncio.Task] = set()


def set_service(service: StockDataService) -> None:
    """Set the service instance."""
    global _service
    _service = service


def get_service() -> StockDataService:
    """Get the service instance."""
    if _service is None:
        raise RuntimeError("Service not initialized")
    return _service


def schedule_prefetch(service: StockDataService, symbols: list[str] | None = None) -> asyncio.Task | None:
    """
    Start a prefetch batch as a background task.

    Returns None without scheduling when a batch is running or one has been
    scheduled but has not taken the coordinator lock yet.
    """
    if service.coordinator.busy or any(not t.done() for t in _background):
        return None
    task = asyncio.create_task(service.trigger_prefetch(symbols))
    _background.add(task)
    task.add_done_callback(_background.discard)
    return task


async def cancel_background() -> None:
    """Cancel every background batch and wait for them to unwind."""
    tasks = list(_background)
    for task in tasks:
        task.cancel()
    if tasks:
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Cancelled {len(tasks)} background prefetch task(s)")


class PrefetchRequest(BaseModel):
    symbols: list[str] | None = Field(
        None,
        description="Symbols to refresh (default: the whole watchlist)",
    )


@router.get("/symbols")
async def list_symbols(service: StockDataService = Depends(get_service)) -> dict[str, Any]:
    return {"symbols": list(service.symbols)}


@router.post("/symbols/{symbol}")
async def add_symbol(symbol: str, service: StockDataService = Depends(get_service)) -> dict[str, Any]:
    added = await service.add_symbol(symbol)
    return {"added": added, "symbols": list(service.symbols)}


@router.delete("/symbols/{symbol}")
async def remove_symbol(symbol: str, service: StockDataService = Depends(get_service)) -> dict[str, Any]:
    removed = await service.remove_symbol(symbol)
    if not removed:
        raise HTTPException(status_code=404, detail=f"{symbol.upper()} is not tracked")
    return {"removed": True, "symbols": list(service.symbols)}


@router.get("/quotes/{symbol}")
async def get_quotes(symbol: str, service: StockDataService = Depends(get_service)) -> dict[str, Any]:
    """Enriched bars currently held for a symbol (empty until fetched or hydrated)."""
    try:
        bars = service.get_enriched_bars(symbol)
        return {
            "symbol": symbol.strip().upper(),
            "last_refreshed": service.get_last_refreshed(symbol),
            "bars": [b.to_dict() for b in bars],
        }
    except Exception as e:
        logger.error(f"Error serving quotes for {symbol}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error serving quotes: {str(e)}")


@router.get("/recommendation/{symbol}")
async def get_recommendation(symbol: str, service: StockDataService = Depends(get_service)) -> dict[str, Any]:
    try:
        rec = service.get_recommendation(symbol)
    except Exception as e:
        logger.error(f"Error generating recommendation for {symbol}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating recommendation: {str(e)}")
    return {"symbol": symbol.strip().upper(), **rec.to_dict()}


@router.post("/prefetch")
async def trigger_prefetch(
    req: PrefetchRequest | None = None,
    service: StockDataService = Depends(get_service),
) -> dict[str, Any]:
    """
    Start a prefetch batch in the background.

    Returns accepted=False when a batch is already running or scheduled.
    """
    task = schedule_prefetch(service, req.symbols if req else None)
    return {"accepted": task is not None, **service.status()}


@router.get("/status")
async def get_status(service: StockDataService = Depends(get_service)) -> dict[str, Any]:
    return service.status()


@router.get("/db")
async def list_stored_symbols(service: StockDataService = Depends(get_service)) -> dict[str, Any]:
    """Every symbol with stored quotes, with its row count and last refresh."""
    store = service.store
    try:
        symbols = await store.list_symbols()
        entries = [
            {
                "symbol": sym,
                "count": await store.count(sym),
                "last_refreshed": await store.get_refreshed(sym),
            }
            for sym in symbols
        ]
    except StorageError as e:
        logger.error(f"Store listing failed: {e}")
        raise HTTPException(status_code=503, detail=f"Quote store unavailable: {e}")
    return {"symbols": entries}


@router.get("/db/{symbol}")
async def inspect_store(
    symbol: str,
    limit: int = Query(200, ge=1, le=5000, description="Most recent rows to return"),
    service: StockDataService = Depends(get_service),
) -> dict[str, Any]:
    """
    Raw stored rows for a symbol, for inspecting the local cache.

    Example:
        {
            "symbol": "AAPL",
            "count": 60,
            "last_refreshed": 1760800000.0,
            "date_min": "2025-08-01",
            "date_max": "2025-10-17",
            "rows": [{"date": "2025-08-01", "open": ..., ...}, ...]
        }
    """
    store = service.store
    try:
        rows = await store.read(symbol, limit=limit)
        count = await store.count(symbol)
        last_refreshed = await store.get_refreshed(symbol)
    except StorageError as e:
        logger.error(f"Store inspection failed for {symbol}: {e}")
        raise HTTPException(status_code=503, detail=f"Quote store unavailable: {e}")

    return {
        "symbol": symbol.strip().upper(),
        "count": count,
        "last_refreshed": last_refreshed,
        "date_min": rows[0].date if rows else None,
        "date_max": rows[-1].date if rows else None,
        "rows": [b.to_dict() for b in rows],
    }
