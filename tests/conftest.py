"""Shared test fixtures for the EUR rates service."""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from eurrates.config import AppSettings, ExchangeSettings, RetrySettings, StorageSettings
from eurrates.data import RatesDatabase, RateStore

# Binance-style snapshot used across tests: 1 EUR = 1.08 USDT.
SAMPLE_PRICES = {
    "EURUSDT": 1.08,
    "BTCUSDT": 60000.0,
    "ETHUSDT": 2500.0,
    "LTCUSDT": 65.0,
}

FIXED_NOW = datetime(2025, 9, 2, 12, 0, 0, tzinfo=timezone.utc)


class RecordingSleep:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def mock_settings(tmp_path) -> AppSettings:
    """Return AppSettings with test defaults (temp database, no real backoff)."""
    return AppSettings(
        log_level="DEBUG",
        exchange=ExchangeSettings(base_url="https://api.test"),
        retry=RetrySettings(max_attempts=3, base_delay=0.0),
        storage=StorageSettings(db_path=str(tmp_path / "rates.db")),
    )


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest_asyncio.fixture
async def database():
    """Connected in-memory database."""
    db = RatesDatabase(":memory:")
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def store(database: RatesDatabase) -> RateStore:
    return RateStore(database)


@pytest.fixture
def sample_prices() -> dict[str, float]:
    return dict(SAMPLE_PRICES)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW
