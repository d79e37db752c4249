"""Application settings for the fx service."""
from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .currencies import ExchangeConfig, parse_currency_list


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    APP_NAME: str = "fx"
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Upstream provider (exchangerate-api.com v6)
    # NOTE: API key must be provided in env or .env
    EXCHANGE_API_BASE_URL: str = "https://v6.exchangerate-api.com/v6"
    EXCHANGE_API_KEY: str

    # CSV list, e.g. "USD,EUR,GBP"
    SUPPORTED_CURRENCIES: str = "USD,INR,EUR,JPY,GBP"
    MAX_HISTORICAL_DAYS: int = 90

    CACHE_REFRESH_INTERVAL_SEC: float = 3600.0
    BACKGROUND_REFRESH: bool = True
    SHUTDOWN_TIMEOUT_SEC: float = 15.0

    HTTP_TIMEOUT_SEC: float = 12.0
    RETRY_ATTEMPTS: int = 2
    RETRY_DELAY_SEC: float = 0.5

    # CORS (CSV list, e.g. "https://app.example.com,https://foo.bar")
    CORS_ALLOW_ORIGINS: Optional[str] = None
    CORS_ALLOW_CREDENTIALS: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def validate_values(self) -> None:
        if not self.EXCHANGE_API_KEY.strip():
            raise ValueError("EXCHANGE_API_KEY is required")
        if not self.currency_list():
            raise ValueError("SUPPORTED_CURRENCIES must name at least one currency")
        if self.MAX_HISTORICAL_DAYS < 0:
            raise ValueError("MAX_HISTORICAL_DAYS must not be negative")
        if self.RETRY_ATTEMPTS < 1:
            raise ValueError("RETRY_ATTEMPTS must be at least 1")
        if self.CACHE_REFRESH_INTERVAL_SEC <= 0:
            raise ValueError("CACHE_REFRESH_INTERVAL_SEC must be positive")

    def currency_list(self) -> List[str]:
        return parse_currency_list(self.SUPPORTED_CURRENCIES)

    def cors_origin_list(self) -> Optional[List[str]]:
        if not self.CORS_ALLOW_ORIGINS:
            return None
        return [s.strip() for s in str(self.CORS_ALLOW_ORIGINS).split(",") if s.strip()]

    def exchange_config(self) -> ExchangeConfig:
        """Core configuration handed to the cache and the conversion service."""
        return ExchangeConfig(
            supported_currencies=tuple(self.currency_list()),
            max_historical_days=self.MAX_HISTORICAL_DAYS,
            refresh_interval_sec=self.CACHE_REFRESH_INTERVAL_SEC,
            shutdown_timeout_sec=self.SHUTDOWN_TIMEOUT_SEC,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.validate_values()
    return settings
