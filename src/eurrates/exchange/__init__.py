"""Exchange client layer -- Binance public REST API via httpx."""

from eurrates.exchange.binance_client import BinanceClient
from eurrates.exchange.client import PriceClient

__all__ = ["BinanceClient", "PriceClient"]
