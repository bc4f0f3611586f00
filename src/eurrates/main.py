"""Entry point for the EUR rates service.

Commands:
    serve    Run the update scheduler, and the query API unless API_ENABLED=false
    update   Run a single update cycle and exit
    cleanup  Delete records older than the retention window and exit

When the API is enabled, the scheduler and the API share a single asyncio
event loop via uvicorn's programmatic API and FastAPI's lifespan context
manager.

Component wiring order (in _build_components):
1. RatesDatabase + RateStore (persistence)
2. BinanceClient (price source)
3. EurRateCalculator
4. RetryExecutor (backoff policy from settings)
5. ExchangeRateService (update cycle and queries)
6. RateUpdateScheduler (periodic trigger)
"""

import argparse
import asyncio
import signal
import sys
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from eurrates.config import AppSettings
from eurrates.data import RatesDatabase, RateStore
from eurrates.exchange import BinanceClient
from eurrates.logging import get_logger, setup_logging
from eurrates.rates import EurRateCalculator, ExchangeRateService
from eurrates.retry import RetryExecutor
from eurrates.scheduler import RateUpdateScheduler


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all service components from settings.

    Note: Does NOT connect the database -- that happens in the lifespan
    (API mode) or in the command runner.
    """
    database = RatesDatabase(settings.storage.db_path)
    store = RateStore(database)
    price_client = BinanceClient(settings.exchange)
    retry_executor = RetryExecutor(settings.retry.policy())

    service = ExchangeRateService(
        price_client=price_client,
        calculator=EurRateCalculator(),
        retry_executor=retry_executor,
        store=store,
        retention_days=settings.storage.retention_days,
    )

    scheduler = RateUpdateScheduler(
        service,
        interval=settings.scheduler.update_interval,
        run_on_start=settings.scheduler.run_on_start,
    )

    return {
        "database": database,
        "store": store,
        "price_client": price_client,
        "service": service,
        "scheduler": scheduler,
    }


async def _shutdown(components: dict[str, Any]) -> None:
    await components["scheduler"].stop()
    await components["price_client"].close()
    await components["database"].close()


def _setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """SIGINT/SIGTERM set ``stop_event``. Must be called inside the running loop."""
    logger = get_logger("eurrates.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: connects the database, exposes the service on app.state,
    and starts the scheduler if enabled.

    On shutdown: stops the scheduler and releases HTTP and database resources.
    """
    logger = get_logger("eurrates.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    await components["database"].connect()
    app.state.rate_service = components["service"]

    if settings.scheduler.enabled:
        await components["scheduler"].start()

    logger.info("lifespan_started", scheduler_enabled=settings.scheduler.enabled)

    yield

    await _shutdown(components)
    logger.info("eurrates_stopped")


async def serve(settings: AppSettings) -> None:
    """Run the scheduler, with the query API when enabled."""
    logger = get_logger("eurrates.main")
    components = _build_components(settings)

    if settings.api.enabled:
        from eurrates.api import create_app

        app = create_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info("starting_with_api", host=settings.api.host, port=settings.api.port)

        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",
        )
        server = uvicorn.Server(config)
        await server.serve()
        return

    if not settings.scheduler.enabled:
        logger.error("nothing_to_run", note="Both API and scheduler are disabled")
        return

    logger.info("starting_without_api", interval=settings.scheduler.update_interval)
    stop_event = asyncio.Event()
    _setup_signal_handlers(stop_event)

    await components["database"].connect()
    try:
        await components["scheduler"].start()
        await stop_event.wait()
    finally:
        await _shutdown(components)
        logger.info("eurrates_stopped")


async def run_update(settings: AppSettings) -> int:
    """Run one update cycle. Returns a process exit code."""
    logger = get_logger("eurrates.main")
    components = _build_components(settings)
    await components["database"].connect()
    try:
        records = await components["service"].update_rates()
    except Exception as e:
        logger.error("update_command_failed", error=str(e))
        return 1
    finally:
        await _shutdown(components)

    for record in records:
        print(f"{record.pair.value}: {record.rate}")
    return 0


async def run_cleanup(settings: AppSettings) -> int:
    """Delete records past the retention window. Returns a process exit code."""
    logger = get_logger("eurrates.main")
    components = _build_components(settings)
    await components["database"].connect()
    try:
        deleted = await components["service"].cleanup_old_data()
    except Exception as e:
        logger.error("cleanup_command_failed", error=str(e))
        print(f"Failed to cleanup old records: {e}", file=sys.stderr)
        return 1
    finally:
        await _shutdown(components)

    print(f"Successfully deleted {deleted} old records!")
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Fetch, store and serve EUR cryptocurrency exchange rates",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=["serve", "update", "cleanup"],
        help="What to run (default: serve)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Synchronous entry point."""
    args = parse_args(argv)
    settings = AppSettings()
    setup_logging(args.log_level or settings.log_level, settings.log_format)

    if args.command == "update":
        return asyncio.run(run_update(settings))
    if args.command == "cleanup":
        return asyncio.run(run_cleanup(settings))

    asyncio.run(serve(settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())
