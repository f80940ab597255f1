"""
Command-line entry point.

Usage:
    python -m stockcache serve
    python -m stockcache prefetch AAPL MSFT --delay 12
    python -m stockcache show AAPL
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone

from .config import get_settings
from .main import build_service, configure_logging, create_app


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Stock Cache - cached daily quotes, indicators and signals",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m stockcache serve --port 8080
  python -m stockcache prefetch AAPL NVDA
  python -m stockcache show AAPL
        """
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite database path (default: STOCKCACHE_SQLITE_PATH or data/quotes.db)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the JSON API")
    serve.add_argument("--host", default=None, help="Bind host (default: settings)")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: settings)")

    prefetch = sub.add_parser("prefetch", help="Refresh symbols and print their signals")
    prefetch.add_argument(
        "symbols",
        nargs="*",
        help="Symbols to refresh (default: the saved watchlist; the watchlist is not changed)"
    )
    prefetch.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds between upstream calls (default: settings, 12)"
    )

    show = sub.add_parser("show", help="Print the signal for a symbol from stored data only")
    show.add_argument("symbol")

    return parser.parse_args(argv)


def _fmt_ts(ts):
    if ts is None:
        return "never"
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def _print_signal(service, symbol):
    bars = service.get_enriched_bars(symbol)
    rec = service.get_recommendation(symbol)
    print(f"{symbol}: {rec.action.value} ({rec.confidence.value}) score={rec.score} "
          f"bull={rec.bullish_score} bear={rec.bearish_score} "
          f"bars={len(bars)} as_of={_fmt_ts(service.get_last_refreshed(symbol))}")
    for reason in rec.reasons:
        print(f"  - {reason}")


async def run_prefetch(settings, symbols):
    service = build_service(settings)
    await service.store.init()
    await service.start()

    summary = await service.trigger_prefetch(symbols or None)
    if summary.skipped:
        print("Nothing to fetch.")
        return 1
    for sym in summary.succeeded:
        _print_signal(service, sym)
    if service.coordinator.error:
        print(f"\n! {service.coordinator.error}")
    return 0 if summary.succeeded else 1


async def run_show(settings, symbol):
    service = build_service(settings)
    await service.store.init()
    await service.coordinator.hydrate([symbol])
    _print_signal(service, symbol.strip().upper())
    return 0


def main(argv=None):
    args = parse_args(argv)
    settings = get_settings()
    if args.db:
        settings.sqlite_path = args.db
    configure_logging(settings.log_level)

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            create_app(settings),
            host=args.host or settings.host,
            port=args.port or settings.port,
        )
        return 0

    if args.command == "prefetch":
        if args.delay is not None:
            settings.rate_limit_delay_seconds = args.delay
        return asyncio.run(run_prefetch(settings, args.symbols))

    if args.command == "show":
        return asyncio.run(run_show(settings, args.symbol))

    return 2


if __name__ == "__main__":
    sys.exit(main())
