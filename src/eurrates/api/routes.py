"""JSON query endpoints over stored EUR rates.

Validation failures answer 400 with the supported pairs; anything else
answers an opaque 500 and is only logged.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from eurrates.exceptions import ValidationError
from eurrates.logging import get_logger
from eurrates.models import CurrencyPair
from eurrates.rates.service import DATE_FORMAT

log = get_logger(__name__)

router = APIRouter()

_INTERNAL_ERROR = {"error": "Internal server error"}


def _bad_request(message: str, with_date_format: bool = False) -> JSONResponse:
    content: dict = {"error": message, "supported_pairs": CurrencyPair.values()}
    if with_date_format:
        content["date_format"] = DATE_FORMAT
    return JSONResponse(status_code=400, content=content)


@router.get("/rates/last-24h")
async def get_last_24_hours(request: Request, pair: str | None = None) -> JSONResponse:
    """Rates for one pair over the trailing 24 hours."""
    if not pair:
        return _bad_request("Missing required parameter: pair")

    service = request.app.state.rate_service
    try:
        data = await service.get_last_24_hours(pair)
    except ValidationError as e:
        return _bad_request(str(e))
    except Exception as e:
        log.error("last_24h_endpoint_error", pair=pair, error=str(e))
        return JSONResponse(status_code=500, content=_INTERNAL_ERROR)

    return JSONResponse(content=data)


@router.get("/rates/day")
async def get_rates_by_day(
    request: Request, pair: str | None = None, date: str | None = None
) -> JSONResponse:
    """Rates for one pair on a given UTC day (YYYY-MM-DD)."""
    if not pair or not date:
        return _bad_request("Missing required parameters: pair and date", with_date_format=True)

    service = request.app.state.rate_service
    try:
        data = await service.get_rates_by_date(pair, date)
    except ValidationError as e:
        return _bad_request(str(e), with_date_format=True)
    except Exception as e:
        log.error("rates_by_day_endpoint_error", pair=pair, date=date, error=str(e))
        return JSONResponse(status_code=500, content=_INTERNAL_ERROR)

    return JSONResponse(content=data)


@router.get("/health")
async def get_health(request: Request) -> JSONResponse:
    """Exchange liveness plus its advertised request rate limits."""
    service = request.app.state.rate_service
    healthy = await service.health_check()
    rate_limits = await service.get_rate_limit_info()
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "exchange_healthy": healthy,
            "rate_limits": rate_limits,
        },
    )
