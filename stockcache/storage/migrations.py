"""
Sequential schema migrations for the quote store.

The applied version lives in ``PRAGMA user_version``. Each migration is an
async function taking an open aiosqlite connection; ``run_migrations()``
applies those above the stored version in order and bumps the version after
each one. Tables themselves are created by ``QuoteStore.init()`` before any
migration runs.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Awaitable, Callable

import aiosqlite

from ..providers.base import is_valid_date


logger = logging.getLogger(__name__)

MigrationFn = Callable[[aiosqlite.Connection], Awaitable[None]]

LEGACY_TABLE = "legacy_cache"
LEGACY_CACHE_PREFIX = "qfd:cache:"  # value: {"ts": <ms epoch>, "rows": [...]}
LEGACY_SYMBOLS_KEY = "qfd:symbols"  # value: ["AAPL", ...]


async def _table_exists(db: aiosqlite.Connection, name: str) -> bool:
    cur = await db.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=?", (name,)
    )
    return await cur.fetchone() is not None


def _legacy_row(row: dict) -> tuple | None:
    """Extract (date, o, h, l, c, v) from an old enriched row, or None if unusable."""
    try:
        date = row["date"]
        if not is_valid_date(date):
            return None
        return (
            date,
            float(row["open"]),
            float(row["high"]),
            float(row["low"]),
            float(row["close"]),
            float(row["volume"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


async def migration_0001_import_legacy_cache(db: aiosqlite.Connection) -> None:
    """Convert the flat key/value cache of older builds into quotes/meta/watchlist rows."""
    if not await _table_exists(db, LEGACY_TABLE):
        return

    cur = await db.execute(f"SELECT key, value FROM {LEGACY_TABLE}")
    entries = await cur.fetchall()
    imported = 0

    for key, value in entries:
        try:
            payload = json.loads(value)
        except (TypeError, ValueError):
            logger.warning(f"Skipping unreadable legacy cache entry {key!r}")
            continue

        if key == LEGACY_SYMBOLS_KEY:
            cur = await db.execute("SELECT COUNT(*) FROM watchlist")
            (n,) = await cur.fetchone()
            if n == 0 and isinstance(payload, list):
                symbols = []
                for s in payload:
                    sym = str(s).strip().upper()
                    if sym and sym not in symbols:
                        symbols.append(sym)
                await db.executemany(
                    "INSERT INTO watchlist (symbol, position) VALUES (?, ?)",
                    [(s, i) for i, s in enumerate(symbols)],
                )
            continue

        if not key.startswith(LEGACY_CACHE_PREFIX) or not isinstance(payload, dict):
            continue

        symbol = key[len(LEGACY_CACHE_PREFIX):].strip().upper()
        raw_rows = payload.get("rows")
        if not isinstance(raw_rows, list):
            logger.warning(f"Skipping legacy cache entry {key!r}: rows is not a list")
            continue
        rows = [r for r in (_legacy_row(r) for r in raw_rows if isinstance(r, dict)) if r]
        if not symbol or not rows:
            logger.warning(f"Skipping legacy cache entry {key!r}: no usable rows")
            continue

        await db.executemany(
            """
            INSERT INTO quotes (symbol, date, open, high, low, close, volume)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(symbol, date) DO NOTHING;
            """,
            [(symbol, *r) for r in rows],
        )

        ts = payload.get("ts")
        if isinstance(ts, (int, float)) and not isinstance(ts, bool) and math.isfinite(ts):
            # Old builds stored milliseconds; keep a newer meta value if present.
            await db.execute(
                """
                INSERT INTO meta (symbol, last_refreshed) VALUES (?, ?)
                ON CONFLICT(symbol) DO UPDATE SET
                  last_refreshed=MAX(last_refreshed, excluded.last_refreshed);
                """,
                (symbol, ts / 1000.0),
            )
        imported += 1

    await db.execute(f"DROP TABLE {LEGACY_TABLE}")
    logger.info(f"Imported {imported} legacy cache entries; dropped {LEGACY_TABLE}")


# Applied in order; version N is MIGRATIONS[N - 1].
MIGRATIONS: list[MigrationFn] = [
    migration_0001_import_legacy_cache,
]

SCHEMA_VERSION = len(MIGRATIONS)


async def run_migrations(db: aiosqlite.Connection) -> int:
    """
    Apply pending migrations.

    Returns:
        Number of migrations applied
    """
    cur = await db.execute("PRAGMA user_version")
    (current,) = await cur.fetchone()
    applied = 0
    for version, fn in enumerate(MIGRATIONS, start=1):
        if version <= current:
            continue
        logger.info(f"Applying store migration {version}: {fn.__name__}")
        await fn(db)
        await db.execute(f"PRAGMA user_version = {version}")
        await db.commit()
        applied += 1
    return applied
