"""Periodic trigger for the rate update cycle.

Runs ExchangeRateService.update_rates() every ``interval`` seconds in a
background task. A failed cycle is logged with its trigger time and the
loop carries on to the next tick; the service itself never retries a
whole cycle.
"""

import asyncio
from datetime import datetime, timezone

from eurrates.logging import get_logger
from eurrates.rates.service import ExchangeRateService

logger = get_logger(__name__)


class RateUpdateScheduler:
    """Invokes the update cycle on a fixed interval."""

    def __init__(
        self,
        service: ExchangeRateService,
        interval: float = 300.0,
        run_on_start: bool = True,
    ) -> None:
        self._service = service
        self._interval = interval
        self._run_on_start = run_on_start
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._failed_cycles = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def failed_cycles(self) -> int:
        """Consecutive failed cycles since the last success."""
        return self._failed_cycles

    async def start(self) -> None:
        """Begin triggering update cycles in the background."""
        if self._running:
            logger.warning("rate_scheduler_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("rate_scheduler_started", interval=self._interval)

    async def stop(self) -> None:
        """Stop triggering cycles. A cycle in progress is cancelled."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("rate_scheduler_stopped")

    async def run_once(self) -> bool:
        """Trigger a single cycle. Returns True on success."""
        triggered_at = datetime.now(timezone.utc).isoformat()
        logger.info("scheduled_rates_update_started", triggered_at=triggered_at)
        try:
            await self._service.update_rates()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._failed_cycles += 1
            logger.error(
                "scheduled_rates_update_failed",
                triggered_at=triggered_at,
                consecutive_failures=self._failed_cycles,
                error=str(e),
            )
            return False

        self._failed_cycles = 0
        logger.info("scheduled_rates_update_completed", triggered_at=triggered_at)
        return True

    async def _run_loop(self) -> None:
        if not self._run_on_start:
            await asyncio.sleep(self._interval)
        while self._running:
            await self.run_once()
            if self._running:
                await asyncio.sleep(self._interval)
