import logging
import os
import sqlite3
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional

import aiosqlite

from ..errors import StorageError
from ..providers.base import Bar, is_valid_date
from .migrations import run_migrations


logger = logging.getLogger(__name__)


CREATE_SQL = """
CREATE TABLE IF NOT EXISTS quotes (
  symbol TEXT NOT NULL,
  date TEXT NOT NULL,
  open REAL NOT NULL,
  high REAL NOT NULL,
  low REAL NOT NULL,
  close REAL NOT NULL,
  volume REAL NOT NULL,
  PRIMARY KEY(symbol, date)
);
CREATE TABLE IF NOT EXISTS meta (
  symbol TEXT PRIMARY KEY,
  last_refreshed REAL NOT NULL
);
CREATE TABLE IF NOT EXISTS watchlist (
  symbol TEXT PRIMARY KEY,
  position INTEGER NOT NULL
);
"""

UPSERT_SQL = """
INSERT INTO quotes (symbol, date, open, high, low, close, volume)
VALUES (?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(symbol, date) DO UPDATE SET
  open=excluded.open,
  high=excluded.high,
  low=excluded.low,
  close=excluded.close,
  volume=excluded.volume;
"""


def _norm(symbol: str) -> str:
  return symbol.strip().upper()


class QuoteStore:
  """
  Persistent daily quotes keyed by (symbol, date) plus a per-symbol
  last-refreshed timestamp. Best effort: any medium failure surfaces as
  StorageError and callers fall back to treating the store as empty.
  """

  def __init__(self, path: str):
    self.path = path

  @asynccontextmanager
  async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
    try:
      async with aiosqlite.connect(self.path) as db:
        yield db
    except (sqlite3.Error, OSError) as e:
      raise StorageError(f"Quote store {self.path} failed: {e}") from e

  async def init(self) -> None:
    try:
      parent = os.path.dirname(self.path)
      if parent:
        os.makedirs(parent, exist_ok=True)
    except OSError as e:
      raise StorageError(f"Cannot create store directory for {self.path}: {e}") from e
    async with self._connect() as db:
      await db.executescript(CREATE_SQL)
      await db.commit()
      await run_migrations(db)

  async def upsert(self, symbol: str, bars: Iterable[Bar]) -> int:
    """
    Write bars for one symbol in a single transaction.

    Bars without a valid YYYY-MM-DD date are skipped; a bar the database
    rejects is logged and skipped without aborting the others.

    Returns:
        Number of rows written
    """
    bars_list = list(bars)
    if not bars_list:
      return 0
    sym = _norm(symbol)
    written = 0
    async with self._connect() as db:
      for b in bars_list:
        if not is_valid_date(getattr(b, "date", None)):
          logger.warning(f"Skipping {sym} bar with malformed date: {getattr(b, 'date', None)!r}")
          continue
        try:
          await db.execute(UPSERT_SQL, (sym, b.date, b.open, b.high, b.low, b.close, b.volume))
          written += 1
        except sqlite3.Error as e:
          logger.warning(f"Skipping {sym} bar {b.date}: {e}")
      await db.commit()
    return written

  async def read(
    self,
    symbol: str,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    limit: Optional[int] = None,
  ) -> list[Bar]:
    """
    Read bars ascending by date.

    Args:
        symbol: Ticker symbol
        date_from: Inclusive lower bound (YYYY-MM-DD)
        date_to: Inclusive upper bound (YYYY-MM-DD)
        limit: Keep only the most recent N rows after range filtering
    """
    sql = "SELECT date, open, high, low, close, volume FROM quotes WHERE symbol=?"
    params: list = [_norm(symbol)]
    if date_from is not None:
      sql += " AND date >= ?"
      params.append(date_from)
    if date_to is not None:
      sql += " AND date <= ?"
      params.append(date_to)
    sql += " ORDER BY date DESC"
    if limit is not None:
      sql += " LIMIT ?"
      params.append(int(limit))

    async with self._connect() as db:
      db.row_factory = aiosqlite.Row
      cur = await db.execute(sql, params)
      rows = await cur.fetchall()
      return [Bar.from_dict(dict(r)) for r in reversed(rows)]

  async def set_refreshed(self, symbol: str, ts: float) -> None:
    async with self._connect() as db:
      await db.execute(
        """
        INSERT INTO meta (symbol, last_refreshed) VALUES (?, ?)
        ON CONFLICT(symbol) DO UPDATE SET last_refreshed=excluded.last_refreshed;
        """,
        (_norm(symbol), float(ts)),
      )
      await db.commit()

  async def get_refreshed(self, symbol: str) -> Optional[float]:
    async with self._connect() as db:
      cur = await db.execute("SELECT last_refreshed FROM meta WHERE symbol=?", (_norm(symbol),))
      row = await cur.fetchone()
      return float(row[0]) if row else None

  async def count(self, symbol: str) -> int:
    async with self._connect() as db:
      cur = await db.execute("SELECT COUNT(*) FROM quotes WHERE symbol=?", (_norm(symbol),))
      row = await cur.fetchone()
      return int(row[0])

  async def clear(self) -> None:
    """Delete all quotes and refresh timestamps (the watchlist is kept)."""
    async with self._connect() as db:
      await db.execute("DELETE FROM quotes")
      await db.execute("DELETE FROM meta")
      await db.commit()

  async def list_symbols(self) -> list[str]:
    """
    Get distinct symbols that have stored quotes.

    Returns:
        List of unique symbols
    """
    async with self._connect() as db:
      cur = await db.execute("SELECT DISTINCT symbol FROM quotes ORDER BY symbol")
      rows = await cur.fetchall()
      return [row[0] for row in rows]

  async def load_watchlist(self) -> list[str]:
    async with self._connect() as db:
      cur = await db.execute("SELECT symbol FROM watchlist ORDER BY position")
      rows = await cur.fetchall()
      return [row[0] for row in rows]

  async def save_watchlist(self, symbols: Iterable[str]) -> None:
    """Replace the stored watchlist with symbols, preserving their order."""
    async with self._connect() as db:
      await db.execute("DELETE FROM watchlist")
      await db.executemany(
        "INSERT OR IGNORE INTO watchlist (symbol, position) VALUES (?, ?)",
        [(_norm(s), i) for i, s in enumerate(symbols)],
      )
      await db.commit()
