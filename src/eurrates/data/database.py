"""Async SQLite connection and schema management for stored rates.

The schema is versioned: each entry in _MIGRATIONS brings the database
from the previous version to its key, and connect() applies whatever is
pending in order. WAL journaling lets another process, such as the cleanup
command, read while the service holds a write transaction. Within one
process the connection is shared, and RateStore serialises access to it.
"""

import os
from typing import Self

import aiosqlite

from eurrates.logging import get_logger
from eurrates.models import CurrencyPair

logger = get_logger(__name__)

_PAIR_CHECK = ", ".join(f"'{value}'" for value in CurrencyPair.values())

_MIGRATIONS: dict[int, str] = {
    1: f"""
    CREATE TABLE IF NOT EXISTS exchange_rates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        pair TEXT NOT NULL CHECK (pair IN ({_PAIR_CHECK})),
        rate TEXT NOT NULL CHECK (CAST(rate AS REAL) > 0),
        created_at_ms INTEGER NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_rates_pair_created
        ON exchange_rates(pair, created_at_ms);

    CREATE INDEX IF NOT EXISTS idx_rates_created
        ON exchange_rates(created_at_ms);
    """,
}

SCHEMA_VERSION = max(_MIGRATIONS)


class RatesDatabase:
    """Owns the aiosqlite connection used by RateStore.

    Usage:
        async with RatesDatabase("data/rates.db") as database:
            store = RateStore(database)

    ``":memory:"`` gives a private in-memory database, which is what the
    tests use.
    """

    def __init__(self, db_path: str = "data/rates.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def path(self) -> str:
        return self._db_path

    @property
    def db(self) -> aiosqlite.Connection:
        """The open connection. Raises RuntimeError before connect()."""
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the file (creating its directory), set pragmas, migrate."""
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._migrate()

        logger.info("rates_db_connected", db_path=self._db_path, schema_version=SCHEMA_VERSION)

    async def close(self) -> None:
        if self._connection is None:
            return
        await self._connection.close()
        self._connection = None
        logger.info("rates_db_closed", db_path=self._db_path)

    async def schema_version(self) -> int:
        """Highest migration applied; 0 for a fresh file."""
        cursor = await self.db.execute("SELECT MAX(version) FROM schema_version")
        row = await cursor.fetchone()
        return row[0] or 0

    async def _migrate(self) -> None:
        await self.db.execute(
            "CREATE TABLE IF NOT EXISTS schema_version (version INTEGER PRIMARY KEY)"
        )
        current = await self.schema_version()

        for version in sorted(v for v in _MIGRATIONS if v > current):
            await self.db.executescript(_MIGRATIONS[version])
            await self.db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )
            await self.db.commit()
            logger.info("schema_migrated", version=version)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
