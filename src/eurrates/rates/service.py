"""Exchange rate service -- the update cycle and the read paths over stored rates.

Update cycle (all-or-nothing):
  1. FETCH: retry-wrapped price fetch for every required symbol
  2. CALCULATE: EUR rate per pair from the price snapshot
  3. PERSIST: one RateRecord per pair, staged then committed as one batch

Nothing is written unless fetch and calculation both succeed. A failure
while staging rolls the batch back. Queries wait for an open batch, so they
see all of a cycle's records or none of them. Overlapping cycles are not
run: a call that finds a cycle in flight is skipped.
"""

import asyncio
import dataclasses
import time
from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

import structlog

from eurrates.data.store import RateStore
from eurrates.exceptions import NotFoundError, ValidationError
from eurrates.exchange.client import PriceClient
from eurrates.logging import get_logger
from eurrates.models import BASE_CURRENCY_SYMBOL, CurrencyPair, RateRecord
from eurrates.rates.calculator import EurRateCalculator
from eurrates.retry import RetryExecutor

DATE_FORMAT = "YYYY-MM-DD"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_RETENTION_DAYS = 30
_LAST_24_HOURS = timedelta(hours=24)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExchangeRateService:
    """Ties fetch, calculation and persistence together.

    Args:
        price_client: Exchange price source.
        calculator: EUR rate calculator.
        retry_executor: Backoff wrapper applied to the price fetch.
        store: Rate record persistence.
        retention_days: Age beyond which cleanup_old_data() deletes records.
        clock: Returns the current aware UTC datetime.
        logger: Structured logger; defaults to the module logger.
    """

    def __init__(
        self,
        price_client: PriceClient,
        calculator: EurRateCalculator,
        retry_executor: RetryExecutor,
        store: RateStore,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        clock: Callable[[], datetime] = utc_now,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._price_client = price_client
        self._calculator = calculator
        self._retry = retry_executor
        self._store = store
        self._retention = timedelta(days=retention_days)
        self._clock = clock
        self._logger = logger or get_logger(__name__)
        self._cycle_lock = asyncio.Lock()

    # ──────────────────────────────────────────────
    # Update path
    # ──────────────────────────────────────────────

    async def update_rates(self) -> list[RateRecord]:
        """Run one update cycle and return the persisted records.

        Returns an empty list without doing anything if another cycle is
        still running. Any failure is logged and re-raised.
        """
        if self._cycle_lock.locked():
            self._logger.warning("update_cycle_skipped", reason="previous cycle still running")
            return []

        async with self._cycle_lock:
            start = time.monotonic()
            try:
                rates = await self.fetch_current_rates()
                created_at = self._clock()
                records = [
                    RateRecord(pair=pair, rate=rate, created_at=created_at)
                    for pair, rate in rates.items()
                ]
                saved = await self._persist(records)
            except Exception as e:
                self._logger.error(
                    "rates_update_failed",
                    error=str(e),
                    exception_class=type(e).__name__,
                    execution_time_ms=_elapsed_ms(start),
                )
                raise

            self._logger.info(
                "rates_updated",
                pairs_updated=len(saved),
                total_pairs=len(CurrencyPair),
                rates={r.pair.value: str(r.rate) for r in saved},
                execution_time_ms=_elapsed_ms(start),
            )
            return saved

    async def fetch_current_rates(self) -> dict[CurrencyPair, float]:
        """Fetch fresh prices (with retry) and compute EUR rates. Persists nothing."""
        symbols = CurrencyPair.required_symbols()
        self._logger.debug(
            "rates_fetch_started",
            required_pairs=CurrencyPair.values(),
            symbols=symbols,
            base_currency=BASE_CURRENCY_SYMBOL,
        )
        prices = await self._retry.execute(lambda: self._price_client.fetch_prices(symbols))
        return self._calculator.calculate_eur_rates(prices)

    async def get_single_rate(self, pair: CurrencyPair) -> float:
        """Compute a fresh rate for ``pair``.

        Raises:
            NotFoundError: The pair could not be computed this time.
        """
        rates = await self.fetch_current_rates()
        if pair not in rates:
            self._logger.error(
                "rate_not_found_for_pair",
                pair=pair.value,
                available_pairs=[p.value for p in rates],
            )
            raise NotFoundError(f"Rate not found for pair: {pair.value}")

        self._logger.info("single_rate_retrieved", pair=pair.value, rate=rates[pair])
        return rates[pair]

    async def get_current_rate(self, pair: CurrencyPair) -> float | None:
        """Like get_single_rate() but reports any failure as None."""
        try:
            return await self.get_single_rate(pair)
        except Exception as e:
            self._logger.error("current_rate_failed", pair=pair.value, error=str(e))
            return None

    async def _persist(self, records: list[RateRecord]) -> list[RateRecord]:
        saved: list[RateRecord] = []
        async with self._store.transaction():
            for record in records:
                row_id = await self._store.save(record)
                saved.append(dataclasses.replace(record, id=row_id))
        return saved

    # ──────────────────────────────────────────────
    # Read paths
    # ──────────────────────────────────────────────

    async def get_last_24_hours(self, pair_string: str) -> dict:
        """Rates for ``pair_string`` over the trailing 24 hours, oldest first."""
        pair = self._validate_pair(pair_string)
        now = self._clock()
        records = await self._store.find_in_range(pair, now - _LAST_24_HOURS, now)
        return self._format_rates_response(pair, records)

    async def get_rates_by_date(self, pair_string: str, date_string: str) -> dict:
        """Rates for ``pair_string`` on one UTC calendar day (YYYY-MM-DD)."""
        pair = self._validate_pair(pair_string)
        day = self._parse_date(date_string)
        start_of_day = datetime.combine(day, datetime.min.time(), tzinfo=timezone.utc)
        end_of_day = datetime.combine(day, datetime.max.time(), tzinfo=timezone.utc)
        records = await self._store.find_in_range(pair, start_of_day, end_of_day)
        return self._format_rates_response(pair, records)

    # ──────────────────────────────────────────────
    # Maintenance
    # ──────────────────────────────────────────────

    async def cleanup_old_data(self) -> int:
        """Delete records older than the retention window. Returns the count."""
        cutoff = self._clock() - self._retention
        deleted = await self._store.delete_older_than(cutoff)
        self._logger.info(
            "old_rates_cleaned_up",
            deleted_count=deleted,
            cutoff=cutoff.isoformat(),
        )
        return deleted

    async def health_check(self) -> bool:
        healthy = await self._price_client.health_check()
        self._logger.info("exchange_health_checked", healthy=healthy)
        return healthy

    async def get_rate_limit_info(self) -> list[dict] | None:
        return await self._price_client.get_rate_limit_info()

    # ──────────────────────────────────────────────
    # Helpers
    # ──────────────────────────────────────────────

    @staticmethod
    def _validate_pair(pair_string: str) -> CurrencyPair:
        pair = CurrencyPair.from_string(pair_string)
        if pair is None:
            supported = CurrencyPair.values()
            raise ValidationError(
                f"Invalid pair '{pair_string}'. Supported pairs: {', '.join(supported)}",
                supported_pairs=supported,
            )
        return pair

    @staticmethod
    def _parse_date(date_string: str) -> date:
        try:
            return datetime.strptime(date_string, "%Y-%m-%d").date()
        except (TypeError, ValueError):
            raise ValidationError(
                f"Invalid date format. Use {DATE_FORMAT}",
                supported_pairs=CurrencyPair.values(),
            ) from None

    @staticmethod
    def _format_rates_response(pair: CurrencyPair, records: list[RateRecord]) -> dict:
        data = [
            {
                "timestamp": record.created_at.strftime(TIMESTAMP_FORMAT),
                "rate": float(record.rate),
            }
            for record in records
        ]
        return {"pair": pair.value, "count": len(data), "data": data}


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)
