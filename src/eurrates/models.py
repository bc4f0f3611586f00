"""Shared data models for the EUR rates service.

Persisted rates use Decimal with 8 fractional digits. Raw exchange prices
and computed conversion rates stay float until they are turned into a
RateRecord.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from eurrates.exceptions import ValidationError

BASE_CURRENCY_SYMBOL = "EURUSDT"
QUOTE_ASSET = "USDT"
RATE_QUANTUM = Decimal("0.00000001")

# Exchange symbol -> price, as returned by one fetch call.
PriceSnapshot = dict[str, float]


class CurrencyPair(str, Enum):
    """Supported EUR-to-crypto conversions."""

    EUR_BTC = "EUR/BTC"
    EUR_ETH = "EUR/ETH"
    EUR_LTC = "EUR/LTC"

    @property
    def crypto_symbol(self) -> str:
        return _CRYPTO_SYMBOLS[self]

    @property
    def quote_symbol(self) -> str:
        """Exchange symbol priced in USDT, e.g. BTCUSDT."""
        return self.crypto_symbol + QUOTE_ASSET

    @classmethod
    def values(cls) -> list[str]:
        return [pair.value for pair in cls]

    @classmethod
    def from_string(cls, value: str) -> "CurrencyPair | None":
        try:
            return cls(value)
        except ValueError:
            return None

    @classmethod
    def required_symbols(cls) -> list[str]:
        """All quote symbols plus the base currency symbol."""
        return [pair.quote_symbol for pair in cls] + [BASE_CURRENCY_SYMBOL]

    @staticmethod
    def is_base_currency(symbol: str) -> bool:
        return symbol == BASE_CURRENCY_SYMBOL


_CRYPTO_SYMBOLS: dict[CurrencyPair, str] = {
    CurrencyPair.EUR_BTC: "BTC",
    CurrencyPair.EUR_ETH: "ETH",
    CurrencyPair.EUR_LTC: "LTC",
}


def quantize_rate(value: float | Decimal | str) -> Decimal:
    """Round a rate to the stored precision of 8 fractional digits."""
    return Decimal(str(value)).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class RateRecord:
    """A single persisted EUR rate for one pair at one point in time.

    The rate is quantised on construction; a rate that is not positive
    after quantisation is rejected.
    """

    pair: CurrencyPair
    rate: Decimal
    created_at: datetime
    id: int | None = None

    def __post_init__(self) -> None:
        rate = quantize_rate(self.rate)
        if rate <= 0:
            raise ValidationError(
                f"Rate for {self.pair.value} must be positive, got {self.rate}"
            )
        if self.created_at.tzinfo is None:
            raise ValueError("created_at must be timezone-aware")
        object.__setattr__(self, "rate", rate)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget: attempts and the base delay (seconds) for backoff."""

    max_attempts: int = 3
    base_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")
