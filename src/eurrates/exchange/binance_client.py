"""Binance public REST client via httpx async.

Only unauthenticated market-data endpoints are used: ticker prices, ping,
and exchangeInfo for rate limits.

Price endpoint notes:
- ``symbols`` is a compact JSON array (no spaces) in the query string
- ``price`` comes back string-encoded; numbers are accepted too
"""

import json
import math
import uuid
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from eurrates.config import ExchangeSettings
from eurrates.exceptions import (
    DecodeError,
    InvalidRequestError,
    NetworkError,
    RemoteStatusError,
)
from eurrates.exchange.client import PriceClient
from eurrates.logging import get_logger
from eurrates.models import BASE_CURRENCY_SYMBOL, CurrencyPair, PriceSnapshot

PRICE_ENDPOINT = "/api/v3/ticker/price"
PING_ENDPOINT = "/api/v3/ping"
EXCHANGE_INFO_ENDPOINT = "/api/v3/exchangeInfo"


class BinanceClient(PriceClient):
    """Concrete price client for the Binance spot API."""

    def __init__(
        self,
        settings: ExchangeSettings,
        http_client: httpx.AsyncClient | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._settings = settings
        self._http = http_client or httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            headers={"User-Agent": settings.user_agent},
        )
        self._logger = logger or get_logger(__name__)

    async def close(self) -> None:
        """Close the httpx connection pool. Must be called on shutdown."""
        await self._http.aclose()
        self._logger.info("binance_client_closed")

    async def fetch_prices(self, symbols: Iterable[str]) -> PriceSnapshot:
        """Fetch ticker prices for ``symbols`` in a single request."""
        requested = sorted(set(symbols))
        if not requested:
            raise InvalidRequestError("At least one symbol is required")

        request_id = f"binance_{uuid.uuid4().hex[:12]}"
        log = self._logger.bind(request_id=request_id)
        log.debug(
            "price_fetch_started",
            symbols=requested,
            base_currency=BASE_CURRENCY_SYMBOL,
        )

        try:
            response = await self._http.get(
                PRICE_ENDPOINT,
                params={"symbols": json.dumps(requested, separators=(",", ":"))},
                headers={"X-Request-ID": request_id},
                timeout=self._settings.request_timeout,
            )
        except httpx.RequestError as e:
            log.warning("price_fetch_transport_error", error=str(e))
            raise NetworkError(f"Network error fetching prices: {e}") from e

        if not response.is_success:
            log.warning(
                "price_fetch_http_error",
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise RemoteStatusError(response.status_code, _error_message(response))

        try:
            data = response.json()
        except ValueError as e:
            log.error("price_response_decode_failed", error=str(e))
            raise DecodeError(f"Invalid response format: {e}") from e

        return self._parse_price_response(data, log)

    async def health_check(self) -> bool:
        """Ping the exchange. Returns True only on HTTP 200."""
        try:
            response = await self._http.get(
                PING_ENDPOINT, timeout=self._settings.probe_timeout
            )
        except httpx.HTTPError as e:
            self._logger.warning("health_check_failed", error=str(e))
            return False

        healthy = response.status_code == 200
        self._logger.debug("health_check_completed", healthy=healthy)
        return healthy

    async def get_rate_limit_info(self) -> list[dict] | None:
        """Read ``rateLimits`` from exchangeInfo; None on any failure."""
        try:
            response = await self._http.get(
                EXCHANGE_INFO_ENDPOINT, timeout=self._settings.probe_timeout
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self._logger.warning("rate_limit_info_failed", error=str(e))
            return None

        if not isinstance(data, dict):
            self._logger.warning("rate_limit_info_unexpected_format")
            return None

        rate_limits = data.get("rateLimits")
        if rate_limits is None:
            self._logger.warning("rate_limit_info_missing")
        return rate_limits

    def _parse_price_response(
        self, data: Any, log: structlog.stdlib.BoundLogger
    ) -> PriceSnapshot:
        """Turn the ticker array into a symbol -> price mapping.

        Malformed or non-positive entries are skipped with a warning. A
        missing base currency is reported but does not fail the call; the
        calculator decides whether the snapshot is usable.
        """
        if not isinstance(data, list) or not data:
            raise DecodeError("Invalid response format from Binance API")

        prices: PriceSnapshot = {}
        found_base_currency = False

        for item in data:
            if not isinstance(item, dict) or "symbol" not in item or "price" not in item:
                log.warning("invalid_price_entry", item=item)
                continue

            symbol = str(item["symbol"])
            try:
                price = float(item["price"])
            except (TypeError, ValueError):
                log.warning("unparseable_price", symbol=symbol, price=item["price"])
                continue

            if not math.isfinite(price) or price <= 0:
                log.warning("invalid_price_value", symbol=symbol, price=item["price"])
                continue

            prices[symbol] = price

            if CurrencyPair.is_base_currency(symbol):
                found_base_currency = True
                log.debug("base_currency_found", base_currency=symbol, rate=price)

        if not found_base_currency:
            log.warning(
                "base_currency_missing",
                base_currency=BASE_CURRENCY_SYMBOL,
                found_symbols=sorted(prices),
            )

        log.debug(
            "price_response_parsed",
            total_prices=len(prices),
            base_currency_found=found_base_currency,
        )
        return prices


def _error_message(response: httpx.Response) -> str:
    """Extract Binance's ``msg`` field from an error body, if present."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("msg", ""))
    return ""
