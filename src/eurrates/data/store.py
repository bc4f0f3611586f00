"""Typed SQLite read/write abstraction for exchange rate records.

All SQL is isolated behind RateStore. Rates are stored as TEXT and restored
as Decimal on read; timestamps are stored as UTC epoch milliseconds.

Writes through save() are not committed. An update cycle stages its records
inside transaction(), which commits them as one batch or rolls all of them
back. Reads and deletes on the same connection wait for an open batch, so
they never see staged rows.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from eurrates.data.database import RatesDatabase
from eurrates.logging import get_logger
from eurrates.models import CurrencyPair, RateRecord

logger = get_logger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to integer epoch milliseconds (floored)."""
    return (moment - _EPOCH) // _ONE_MS


def from_epoch_ms(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=value)


class RateStore:
    """Async SQLite store for RateRecord entities.

    Usage:
        async with RatesDatabase("data/rates.db") as database:
            store = RateStore(database)
            async with store.transaction():
                await store.save(record)
    """

    def __init__(self, database: RatesDatabase) -> None:
        self._database = database
        self._lock = asyncio.Lock()

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def save(self, record: RateRecord) -> int:
        """Stage a record for insertion. Returns the new row id.

        The row becomes durable when the enclosing transaction() block
        exits, or after an explicit commit().
        """
        cursor = await self._database.db.execute(
            "INSERT INTO exchange_rates (pair, rate, created_at_ms) VALUES (?, ?, ?)",
            (record.pair.value, str(record.rate), to_epoch_ms(record.created_at)),
        )
        return cursor.lastrowid

    async def commit(self) -> None:
        await self._database.db.commit()

    async def rollback(self) -> None:
        await self._database.db.rollback()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["RateStore"]:
        """Hold the connection for one write batch.

        Commits when the block exits normally and rolls back if it raises
        (cancellation included). Reads wait until the batch has ended.
        """
        async with self._lock:
            try:
                yield self
            except BaseException:
                await self._database.db.rollback()
                raise
            await self._database.db.commit()

    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete records created strictly before ``cutoff``. Returns the count."""
        async with self._lock:
            cursor = await self._database.db.execute(
                "DELETE FROM exchange_rates WHERE created_at_ms < ?",
                (to_epoch_ms(cutoff),),
            )
            await self._database.db.commit()

        deleted = cursor.rowcount
        logger.debug("deleted_old_rates", cutoff=cutoff.isoformat(), deleted=deleted)
        return deleted

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def find_in_range(
        self,
        pair: CurrencyPair,
        start: datetime,
        end: datetime,
    ) -> list[RateRecord]:
        """Records for ``pair`` with start <= created_at <= end, oldest first."""
        async with self._lock:
            cursor = await self._database.db.execute(
                "SELECT id, pair, rate, created_at_ms FROM exchange_rates "
                "WHERE pair = ? AND created_at_ms >= ? AND created_at_ms <= ? "
                "ORDER BY created_at_ms ASC, id ASC",
                (pair.value, to_epoch_ms(start), to_epoch_ms(end)),
            )
            rows = await cursor.fetchall()
        return [
            RateRecord(
                id=row[0],
                pair=CurrencyPair(row[1]),
                rate=Decimal(row[2]),
                created_at=from_epoch_ms(row[3]),
            )
            for row in rows
        ]

    async def count(self, pair: CurrencyPair | None = None) -> int:
        """Total number of stored records, optionally for one pair."""
        query = "SELECT COUNT(*) FROM exchange_rates"
        params: tuple = ()
        if pair is not None:
            query += " WHERE pair = ?"
            params = (pair.value,)
        async with self._lock:
            cursor = await self._database.db.execute(query, params)
            row = await cursor.fetchone()
        return row[0] if row else 0
