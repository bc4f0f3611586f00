"""FastAPI application factory for the rates query API."""

from typing import Any

from fastapi import FastAPI

from eurrates.api import routes


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Route handlers read the ExchangeRateService from ``app.state.rate_service``.
    """
    app = FastAPI(
        title="Cryptocurrency EUR Exchange Rates API",
        lifespan=lifespan,
    )
    app.include_router(routes.router, prefix="/api")
    return app
