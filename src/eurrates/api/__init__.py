"""HTTP query API -- FastAPI routes over stored rates."""

from eurrates.api.app import create_app

__all__ = ["create_app"]
