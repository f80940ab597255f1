from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


# Get the directory where this config.py file is located
_config_dir = Path(__file__).parent
_env_file = _config_dir.parent / ".env"  # repo root .env


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STOCKCACHE_",
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    # Storage
    sqlite_path: str = "data/quotes.db"

    # Upstream (Alpha Vantage daily series)
    alpha_vantage_key: str | None = None
    alpha_vantage_url: str = "https://www.alphavantage.co/query"
    request_timeout_seconds: float = 15.0
    upstream_max_rows: int = 30  # most recent trading days kept per upstream call

    # Cache policy
    history_days: int = 60  # trailing window read from the store
    min_cached_rows: int = 20  # store is "sufficient" at min(history_days, min_cached_rows)
    fresh_ttl_seconds: float = 15 * 60
    rate_limit_delay_seconds: float = 12.0  # free tier: 5 calls/minute
    market_close_utc: str = "16:00"  # nominal close used to derive a timestamp from a bar date

    # Synthetic fallback (None = seeded from the OS)
    synthetic_seed: int | None = None

    # Default watchlist (used until the user edits it)
    symbols: str = "AAPL,GOOGL,MSFT,NVDA"

    def get_symbols(self) -> list[str]:
        """Parse the default watchlist (uppercase, de-duplicated, order kept)."""
        out: list[str] = []
        for s in self.symbols.split(","):
            sym = s.strip().upper()
            if sym and sym not in out:
                out.append(sym)
        return out

    def get_market_close(self) -> tuple[int, int]:
        """Return (hour, minute) of the nominal market close in UTC."""
        hh, _, mm = self.market_close_utc.partition(":")
        return int(hh), int(mm or 0)


def get_settings() -> Settings:
    return Settings()
