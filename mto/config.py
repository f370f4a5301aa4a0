from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Anchor paths to the repository root even when scripts are executed elsewhere
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# The bulk /sports/{key}/odds endpoint only serves featured markets;
# alternate_totals and other extra markets are per-event only (422 otherwise)
BULK_ODDS_MARKETS = frozenset({"h2h", "spreads", "totals"})


def _env_optional(*keys: str) -> Optional[str]:
    """Resolve the first non-empty environment variable among keys."""
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be a number, got {value!r}")


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {key} must be an integer, got {value!r}")


def _env_flag(*keys: str) -> bool:
    value = _env_optional(*keys)
    return (value or "").strip().lower() == "true"


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings resolved from the environment.

    Every field has a working default so the service starts without a .env
    file; only the odds feed needs a key (and ENABLE_ODDSAPI=true) to run.
    """

    # The Odds API - disabled unless a key is set AND ENABLE_ODDSAPI=true
    the_odds_api_key: Optional[str] = field(
        default_factory=lambda: _env_optional("THE_ODDS_API_KEY", "ODDSAPI_KEY")
    )
    the_odds_enabled: bool = field(default_factory=lambda: _env_flag("ENABLE_ODDSAPI"))
    the_odds_base_url: str = field(
        default_factory=lambda: os.getenv("THE_ODDS_BASE_URL", "https://api.the-odds-api.com/v4")
    )
    odds_regions: str = field(default_factory=lambda: os.getenv("ODDS_REGIONS", "us,us2"))
    odds_bookmakers: str = field(
        default_factory=lambda: os.getenv("ODDS_BOOKMAKERS", "betmgm,fanduel,draftkings,pointsbet")
    )
    odds_markets: str = field(
        default_factory=lambda: os.getenv("ODDS_MARKETS", "totals")
    )

    # ESPN site API
    espn_base_url: str = field(
        default_factory=lambda: os.getenv(
            "ESPN_BASE_URL", "https://site.api.espn.com/apis/site/v2/sports"
        )
    )

    # Feed transport
    espn_timeout: float = field(default_factory=lambda: _env_float("ESPN_TIMEOUT", 8.0))
    odds_timeout: float = field(default_factory=lambda: _env_float("ODDS_TIMEOUT", 10.0))
    retry_attempts: int = field(default_factory=lambda: _env_int("FEED_RETRY_ATTEMPTS", 2))
    retry_backoff_seconds: float = field(
        default_factory=lambda: _env_float("FEED_RETRY_BACKOFF", 0.4)
    )

    # In-memory caches
    feed_cache_ttl_seconds: float = field(
        default_factory=lambda: _env_float("FEED_CACHE_TTL_SECONDS", 120.0)
    )
    prediction_cache_ttl_seconds: float = field(
        default_factory=lambda: _env_float("PREDICTION_CACHE_TTL_SECONDS", 600.0)
    )

    # Fusion
    fuse_bucket_minutes: int = field(default_factory=lambda: _env_int("FUSE_BUCKET_MINUTES", 30))

    # Calendar dates are interpreted in this zone unless a request names one
    default_timezone: str = field(
        default_factory=lambda: os.getenv("DEFAULT_TIMEZONE", "America/New_York")
    )

    # Optional YAML file overriding the per-sport model parameters
    parameters_file: Optional[str] = field(
        default_factory=lambda: _env_optional("MTO_PARAMETERS_FILE")
    )

    version: str = field(default_factory=lambda: os.getenv("MTO_VERSION", "1.0.0"))

    def __post_init__(self) -> None:
        if self.espn_timeout <= 0 or self.odds_timeout <= 0:
            raise ValueError("Feed timeouts must be positive")
        if self.retry_attempts < 1:
            raise ValueError("FEED_RETRY_ATTEMPTS must be at least 1")
        if self.retry_backoff_seconds < 0:
            raise ValueError("FEED_RETRY_BACKOFF must not be negative")
        if self.fuse_bucket_minutes <= 0:
            raise ValueError("FUSE_BUCKET_MINUTES must be positive")
        if self.feed_cache_ttl_seconds < 0 or self.prediction_cache_ttl_seconds < 0:
            raise ValueError("Cache TTLs must not be negative")
        if "totals" not in self.odds_market_keys:
            raise ValueError("ODDS_MARKETS must include totals")
        unsupported = sorted(set(self.odds_market_keys) - BULK_ODDS_MARKETS)
        if unsupported:
            raise ValueError(
                f"ODDS_MARKETS may only name featured markets {sorted(BULK_ODDS_MARKETS)}, "
                f"got {unsupported}"
            )

    @property
    def odds_market_keys(self) -> list[str]:
        return [m.strip() for m in self.odds_markets.split(",") if m.strip()]

    @property
    def odds_feed_active(self) -> bool:
        return bool(self.the_odds_api_key) and self.the_odds_enabled


settings = Settings()
