"""Abstract price client interface.

Rate computation depends only on this interface, keeping the
Binance-specific wire format isolated in the concrete implementation.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from eurrates.models import PriceSnapshot


class PriceClient(ABC):
    """Abstract base class for exchange price clients."""

    @abstractmethod
    async def fetch_prices(self, symbols: Iterable[str]) -> PriceSnapshot:
        """Fetch spot prices for the given exchange symbols.

        Returns a mapping of symbol to positive price. Entries the exchange
        reports without a usable price are left out.

        Raises:
            NetworkError: Transport failure or timeout.
            RemoteStatusError: Non-2xx HTTP status.
            DecodeError: Response body is malformed or empty.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Lightweight liveness probe. Never raises on network failure."""
        ...

    @abstractmethod
    async def get_rate_limit_info(self) -> list[dict] | None:
        """Return the exchange's request rate limits, or None if unavailable."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying HTTP connection pool."""
        ...
