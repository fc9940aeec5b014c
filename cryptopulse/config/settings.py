# cryptopulse/config/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

# clients render at most ten rows
MAX_COINS_LIMIT = 10


def parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    return int(value)


def parse_float(value: str | None, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    return float(value)


def parse_optional(value: str | None) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    COINGECKO_BASE_URL: str
    COINGECKO_API_KEY: Optional[str]
    COINGECKO_USER_AGENT: str
    UPSTREAM_TIMEOUT_SECONDS: float
    CACHE_TTL_SECONDS: float
    REFRESH_INTERVAL_SECONDS: float
    COINS_LIMIT: int
    BROADCAST_ENABLED: bool
    APP_ENV: str
    HOST: str
    PORT: int
    LOG_LEVEL: str
    LOG_JSON: bool

    def __post_init__(self) -> None:
        # TTL must outlive one refresh period
        if self.CACHE_TTL_SECONDS <= self.REFRESH_INTERVAL_SECONDS:
            raise ValueError(
                f"CACHE_TTL_SECONDS ({self.CACHE_TTL_SECONDS}) must exceed "
                f"REFRESH_INTERVAL_SECONDS ({self.REFRESH_INTERVAL_SECONDS})"
            )
        if not 0 < self.COINS_LIMIT <= MAX_COINS_LIMIT:
            raise ValueError(f"COINS_LIMIT must be between 1 and {MAX_COINS_LIMIT}, got {self.COINS_LIMIT}")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            COINGECKO_BASE_URL=os.getenv("COINGECKO_BASE_URL", "https://api.coingecko.com/api/v3").rstrip("/"),
            COINGECKO_API_KEY=parse_optional(os.getenv("COINGECKO_API_KEY")),
            COINGECKO_USER_AGENT=os.getenv("COINGECKO_USER_AGENT", "CryptoPulse/1.0"),
            UPSTREAM_TIMEOUT_SECONDS=parse_float(os.getenv("UPSTREAM_TIMEOUT_SECONDS"), 12.0),
            CACHE_TTL_SECONDS=parse_float(os.getenv("CACHE_TTL_SECONDS"), 25.0),
            REFRESH_INTERVAL_SECONDS=parse_float(os.getenv("REFRESH_INTERVAL_SECONDS"), 20.0),
            COINS_LIMIT=parse_int(os.getenv("COINS_LIMIT"), 10),
            BROADCAST_ENABLED=parse_bool(os.getenv("BROADCAST_ENABLED"), True),
            APP_ENV=os.getenv("APP_ENV", "development").strip().lower(),
            HOST=os.getenv("HOST", "0.0.0.0"),
            PORT=parse_int(os.getenv("PORT"), 3001),
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
            LOG_JSON=parse_bool(os.getenv("LOG_JSON"), False),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
