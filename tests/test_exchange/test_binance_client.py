"""Tests for BinanceClient using httpx.MockTransport (no network)."""

import json

import httpx
import pytest

from eurrates.config import ExchangeSettings
from eurrates.exceptions import (
    DecodeError,
    InvalidRequestError,
    NetworkError,
    RemoteStatusError,
    RetryExhausted,
)
from eurrates.exchange.binance_client import (
    EXCHANGE_INFO_ENDPOINT,
    PING_ENDPOINT,
    PRICE_ENDPOINT,
    BinanceClient,
)
from eurrates.models import CurrencyPair, RetryPolicy
from eurrates.retry import RetryExecutor

BASE_URL = "https://api.test"


def _make_client(handler, **settings_overrides) -> BinanceClient:
    settings = ExchangeSettings(base_url=BASE_URL, **settings_overrides)
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return BinanceClient(settings, http_client=http)


def _ticker(**prices) -> list[dict]:
    return [{"symbol": symbol, "price": price} for symbol, price in prices.items()]


# =============================================================================
# fetch_prices
# =============================================================================


class TestFetchPrices:
    @pytest.mark.asyncio
    async def test_parses_string_and_numeric_prices(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json=_ticker(
                    EURUSDT="1.08000000",
                    BTCUSDT="60000.00000000",
                    ETHUSDT=2500,
                    LTCUSDT=65.5,
                ),
            )

        client = _make_client(handler)
        prices = await client.fetch_prices(CurrencyPair.required_symbols())
        await client.close()

        assert prices == {
            "EURUSDT": 1.08,
            "BTCUSDT": 60000.0,
            "ETHUSDT": 2500.0,
            "LTCUSDT": 65.5,
        }

    @pytest.mark.asyncio
    async def test_request_shape(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_ticker(EURUSDT="1.08", BTCUSDT="60000"))

        client = _make_client(handler)
        await client.fetch_prices(["EURUSDT", "BTCUSDT", "BTCUSDT"])

        request = seen[0]
        assert request.method == "GET"
        assert request.url.path == PRICE_ENDPOINT
        symbols_param = request.url.params["symbols"]
        assert " " not in symbols_param
        assert json.loads(symbols_param) == ["BTCUSDT", "EURUSDT"]
        assert request.headers["X-Request-ID"].startswith("binance_")
        assert request.extensions["timeout"]["read"] == 10.0

    @pytest.mark.asyncio
    async def test_skips_malformed_and_non_positive_entries(self) -> None:
        body = [
            {"symbol": "EURUSDT", "price": "1.08"},
            {"symbol": "BTCUSDT"},
            {"price": "2500"},
            {"symbol": "ETHUSDT", "price": "not-a-number"},
            {"symbol": "LTCUSDT", "price": "0"},
            {"symbol": "XRPUSDT", "price": "-1"},
            "garbage",
            {"symbol": "ADAUSDT", "price": "0.35"},
        ]
        client = _make_client(lambda request: httpx.Response(200, json=body))

        prices = await client.fetch_prices(["EURUSDT"])

        assert prices == {"EURUSDT": 1.08, "ADAUSDT": 0.35}

    @pytest.mark.asyncio
    async def test_missing_base_currency_still_returns_prices(self) -> None:
        client = _make_client(
            lambda request: httpx.Response(200, json=_ticker(BTCUSDT="60000"))
        )

        prices = await client.fetch_prices(CurrencyPair.required_symbols())

        assert prices == {"BTCUSDT": 60000.0}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [[], {"symbol": "EURUSDT", "price": "1.08"}, "text"])
    async def test_empty_or_non_array_body_is_decode_error(self, body) -> None:
        client = _make_client(lambda request: httpx.Response(200, json=body))

        with pytest.raises(DecodeError):
            await client.fetch_prices(["EURUSDT"])

    @pytest.mark.asyncio
    async def test_invalid_json_is_decode_error(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, text="<html>oops"))

        with pytest.raises(DecodeError):
            await client.fetch_prices(["EURUSDT"])

    @pytest.mark.asyncio
    async def test_client_error_status(self) -> None:
        client = _make_client(
            lambda request: httpx.Response(
                400, json={"code": -1121, "msg": "Invalid symbol."}
            )
        )

        with pytest.raises(RemoteStatusError) as exc_info:
            await client.fetch_prices(["FOOUSDT"])

        assert exc_info.value.status_code == 400
        assert not exc_info.value.retryable
        assert "Invalid symbol." in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_server_error_status_is_retryable(self) -> None:
        client = _make_client(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(RemoteStatusError) as exc_info:
            await client.fetch_prices(["EURUSDT"])

        assert exc_info.value.status_code == 503
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [httpx.ConnectError("refused"), httpx.ReadTimeout("slow")]
    )
    async def test_transport_failure_is_network_error(self, error) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise error

        client = _make_client(handler)

        with pytest.raises(NetworkError) as exc_info:
            await client.fetch_prices(["EURUSDT"])

        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_no_symbols_rejected_without_request(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        client = _make_client(handler)

        with pytest.raises(InvalidRequestError) as exc_info:
            await client.fetch_prices([])

        assert not exc_info.value.retryable
        assert seen == []

    @pytest.mark.asyncio
    async def test_no_symbols_not_retried(self, recording_sleep) -> None:
        client = _make_client(lambda request: httpx.Response(200, json=[]))
        executor = RetryExecutor(RetryPolicy(max_attempts=3), sleep=recording_sleep)

        with pytest.raises(RetryExhausted) as exc_info:
            await executor.execute(lambda: client.fetch_prices([]))

        assert exc_info.value.attempts == 1
        assert isinstance(exc_info.value.last_error, InvalidRequestError)
        assert recording_sleep.delays == []


# =============================================================================
# Health and rate-limit endpoints
# =============================================================================


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy_on_200(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = _make_client(handler)

        assert await client.health_check() is True
        assert seen[0].url.path == PING_ENDPOINT
        assert seen[0].extensions["timeout"]["read"] == 5.0

    @pytest.mark.asyncio
    async def test_unhealthy_on_error_status(self) -> None:
        client = _make_client(lambda request: httpx.Response(503))

        assert await client.health_check() is False

    @pytest.mark.asyncio
    async def test_unhealthy_on_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        client = _make_client(handler)

        assert await client.health_check() is False


class TestRateLimitInfo:
    @pytest.mark.asyncio
    async def test_returns_rate_limits(self) -> None:
        limits = [
            {"rateLimitType": "REQUEST_WEIGHT", "interval": "MINUTE", "limit": 6000},
            {"rateLimitType": "ORDERS", "interval": "SECOND", "limit": 100},
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == EXCHANGE_INFO_ENDPOINT
            return httpx.Response(200, json={"timezone": "UTC", "rateLimits": limits})

        client = _make_client(handler)

        assert await client.get_rate_limit_info() == limits

    @pytest.mark.asyncio
    async def test_none_on_error_status(self) -> None:
        client = _make_client(lambda request: httpx.Response(500))

        assert await client.get_rate_limit_info() is None

    @pytest.mark.asyncio
    async def test_none_on_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused")

        client = _make_client(handler)

        assert await client.get_rate_limit_info() is None

    @pytest.mark.asyncio
    async def test_none_when_field_absent(self) -> None:
        client = _make_client(lambda request: httpx.Response(200, json={"symbols": []}))

        assert await client.get_rate_limit_info() is None
