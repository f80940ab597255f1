"""Tests for the command-line entry point."""

import asyncio

from stockcache.__main__ import main, parse_args
from stockcache.storage.sqlite import QuoteStore

from conftest import make_bars


def test_parse_prefetch_args():
    args = parse_args(["--db", "x.db", "prefetch", "AAPL", "msft", "--delay", "0"])
    assert args.db == "x.db"
    assert args.command == "prefetch"
    assert args.symbols == ["AAPL", "msft"]
    assert args.delay == 0.0


def test_parse_serve_defaults():
    args = parse_args(["serve"])
    assert args.db is None
    assert args.host is None
    assert args.port is None


def test_show_reads_store_only(tmp_path, capsys):
    path = str(tmp_path / "q.db")

    async def seed():
        store = QuoteStore(path)
        await store.init()
        await store.upsert("AAPL", make_bars(30))

    asyncio.run(seed())

    assert main(["--db", path, "show", "aapl"]) == 0

    out = capsys.readouterr().out
    assert out.startswith("AAPL: ")
    assert "bars=30" in out


def test_show_unknown_symbol(tmp_path, capsys):
    path = str(tmp_path / "q.db")
    assert main(["--db", path, "show", "NOPE"]) == 0
    out = capsys.readouterr().out
    assert "NOPE: HOLD (LOW)" in out
    assert "as_of=never" in out
    assert "- Insufficient data" in out


def test_prefetch_leaves_watchlist_alone(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("STOCKCACHE_ALPHA_VANTAGE_KEY", raising=False)
    monkeypatch.setenv("STOCKCACHE_SYMBOLS", "AAPL,MSFT")
    path = str(tmp_path / "q.db")

    assert main(["--db", path, "prefetch", "tsla", "--delay", "0"]) == 0

    out = capsys.readouterr().out
    assert out.startswith("TSLA: ")
    assert "Showing synthetic data for: TSLA" in out

    async def watchlist():
        store = QuoteStore(path)
        await store.init()
        return await store.load_watchlist()

    assert asyncio.run(watchlist()) == ["AAPL", "MSFT"]
