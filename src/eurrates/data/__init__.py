"""Rate persistence layer.

Provides SQLite database management and a typed read/write store for
exchange rate records.
"""

from eurrates.data.database import RatesDatabase
from eurrates.data.store import RateStore

__all__ = ["RateStore", "RatesDatabase"]
