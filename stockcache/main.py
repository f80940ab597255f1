from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI

from .api import quotes
from .config import Settings, get_settings
from .fetching.coordinator import FetchCoordinator
from .fetching.watchlist import StockDataService
from .providers.alpha_vantage import AlphaVantageClient
from .storage.sqlite import QuoteStore


logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_service(settings: Settings) -> StockDataService:
    """Wire store, upstream client and coordinator for one process."""
    store = QuoteStore(settings.sqlite_path)
    client = None
    if settings.alpha_vantage_key:
        client = AlphaVantageClient(
            api_key=settings.alpha_vantage_key,
            base_url=settings.alpha_vantage_url,
            timeout_seconds=settings.request_timeout_seconds,
            max_rows=settings.upstream_max_rows,
        )
    else:
        logger.warning("STOCKCACHE_ALPHA_VANTAGE_KEY not set; only stored or synthetic data will be served")
    coordinator = FetchCoordinator(store, client, settings)
    return StockDataService(store, coordinator, settings.get_symbols())


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    service = build_service(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup: init store, show stored data, then refresh in the background."""
        await service.store.init()
        await service.start()
        quotes.set_service(service)
        quotes.schedule_prefetch(service)

        yield

        # Shutdown abandons in-flight batches, startup or API-triggered
        await quotes.cancel_background()

    app = FastAPI(
        title="Stock Cache API",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(quotes.router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"ok": True, "ts": int(time.time()), "upstream": service.coordinator.source is not None}

    return app
