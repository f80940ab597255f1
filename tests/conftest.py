"""Shared fixtures: a fresh quote store per test and small bar builders."""

from datetime import date, timedelta

import pytest
import pytest_asyncio
from aiohttp import web

from stockcache.config import Settings
from stockcache.providers.base import Bar
from stockcache.storage.sqlite import QuoteStore


def make_bars(n, start=date(2024, 1, 1), base=100.0):
    """n consecutive daily bars with a gentle upward drift."""
    bars = []
    for i in range(n):
        close = base + i * 0.5
        bars.append(Bar(
            date=(start + timedelta(days=i)).isoformat(),
            open=close - 0.2,
            high=close + 1.0,
            low=close - 1.0,
            close=close,
            volume=1000.0 + i,
        ))
    return bars


@pytest.fixture
def settings(tmp_path):
    return Settings(
        sqlite_path=str(tmp_path / "quotes.db"),
        alpha_vantage_key=None,
        history_days=60,
        min_cached_rows=20,
        fresh_ttl_seconds=900,
        rate_limit_delay_seconds=12.0,
        synthetic_seed=42,
        symbols="AAPL,MSFT",
    )


@pytest_asyncio.fixture
async def store(settings):
    s = QuoteStore(settings.sqlite_path)
    await s.init()
    return s


class FakeUpstream:
    """Local HTTP endpoint serving one canned response to every request."""

    def __init__(self):
        self.url = None
        self.requests = []
        self.respond("{}")

    def respond(self, body, status=200, content_type="application/json"):
        self.body = body
        self.status = status
        self.content_type = content_type

    async def handle(self, request):
        self.requests.append(dict(request.query))
        return web.Response(status=self.status, text=self.body, content_type=self.content_type)


@pytest_asyncio.fixture
async def fake_upstream():
    upstream = FakeUpstream()
    app = web.Application()
    app.router.add_get("/query", upstream.handle)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", 0)
    await site.start()
    host, port = runner.addresses[0][:2]
    upstream.url = f"http://{host}:{port}/query"
    yield upstream
    await runner.cleanup()
