import os
import threading
from datetime import datetime, timezone

import pytest
from starlette.testclient import TestClient

from app.currencies import ExchangeConfig
from app.errors import ProviderUnavailable


@pytest.fixture(scope="session", autouse=True)
def _env_setup():
    # Settings require a key; never hit the real provider in tests
    os.environ.setdefault("EXCHANGE_API_KEY", "test-key")
    os.environ.setdefault("EXCHANGE_API_BASE_URL", "https://api.test/v6")


class StubProvider:
    """Counts calls and serves canned rates; pairs in ``failing`` raise."""

    supports_historical = False

    def __init__(self, rates=None, failing=()):
        self.rates = dict(rates or {})
        self.failing = set(failing)
        self.calls = []
        self._lock = threading.Lock()

    def fetch_rate(self, from_ccy, to_ccy, on_date=None):
        with self._lock:
            self.calls.append((from_ccy, to_ccy, on_date))
        if (from_ccy, to_ccy) in self.failing:
            raise ProviderUnavailable(f"upstream down for {from_ccy}-{to_ccy}")
        rate = self.rates.get((from_ccy, to_ccy))
        if rate is None:
            raise ProviderUnavailable(f"no rate for {from_ccy}-{to_ccy}")
        return rate

    @property
    def call_count(self):
        with self._lock:
            return len(self.calls)


FIXED_NOW = datetime(2025, 6, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def make_provider():
    return StubProvider


@pytest.fixture
def config():
    return ExchangeConfig(
        supported_currencies=("USD", "EUR", "GBP"),
        max_historical_days=90,
        refresh_interval_sec=3600,
        shutdown_timeout_sec=5,
    )


@pytest.fixture
def provider():
    return StubProvider(rates={
        ("USD", "EUR"): 0.86,
        ("EUR", "USD"): 1.16,
        ("USD", "GBP"): 0.75,
        ("GBP", "USD"): 1.33,
        ("EUR", "GBP"): 0.87,
        ("GBP", "EUR"): 1.15,
    })


@pytest.fixture
def settings():
    from app.settings import Settings

    return Settings(
        EXCHANGE_API_KEY="test-key",
        SUPPORTED_CURRENCIES="USD,EUR,GBP",
        BACKGROUND_REFRESH=False,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def client(settings, provider):
    from app.main import create_app

    app = create_app(settings, provider=provider)
    with TestClient(app) as c:
        yield c
