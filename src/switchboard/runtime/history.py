"""Attempt history in SQLite, used to seed the ledger across restarts."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import aiosqlite

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendAggregate:
    backend_id: str
    avg_latency_ms: float | None
    success_rate: float
    avg_cost: float | None
    attempts: int


class PerformanceHistory:
    """Queues attempt records in memory; ``save()`` flushes them to SQLite."""

    def __init__(self, db_path: str, window_days: int = 7) -> None:
        self._db_path = db_path
        self.window_days = window_days
        self._pending: list[tuple] = []
        self._save_lock = asyncio.Lock()
        self._initialized = False

    @property
    def pending(self) -> int:
        return len(self._pending)

    def enqueue(
        self,
        backend_id: str,
        succeeded: bool,
        latency_ms: float | None = None,
        cost: float | None = None,
    ) -> None:
        """Record one attempt without touching the database."""
        self._pending.append(
            (backend_id, succeeded, latency_ms, cost, datetime.now(UTC).isoformat())
        )

    async def _ensure_table(self, db: aiosqlite.Connection) -> None:
        if self._initialized:
            return
        await db.execute("""
            CREATE TABLE IF NOT EXISTS backend_attempts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                backend_id TEXT NOT NULL,
                success BOOLEAN NOT NULL,
                latency_ms REAL,
                cost REAL,
                created_at TIMESTAMP NOT NULL
            )
        """)
        await db.execute("""
            CREATE INDEX IF NOT EXISTS idx_attempts_backend
            ON backend_attempts(backend_id, created_at)
        """)
        await db.commit()
        self._initialized = True

    async def save(self) -> int:
        """Flush pending records. Returns the number written.

        On a failed write the records go back to the front of the queue
        and the error propagates.
        """
        if not self._pending:
            return 0

        async with self._save_lock:
            records = self._pending[:]
            self._pending.clear()

            try:
                async with aiosqlite.connect(self._db_path) as db:
                    await self._ensure_table(db)
                    await db.executemany(
                        "INSERT INTO backend_attempts "
                        "(backend_id, success, latency_ms, cost, created_at) "
                        "VALUES (?, ?, ?, ?, ?)",
                        records,
                    )
                    await db.commit()
            except Exception:
                self._pending[:0] = records
                raise

        log.debug("history.saved records=%d", len(records))
        return len(records)

    async def load_aggregates(self) -> dict[str, BackendAggregate]:
        """Per-backend averages over the last ``window_days``."""
        since = (datetime.now(UTC) - timedelta(days=self.window_days)).isoformat()
        async with aiosqlite.connect(self._db_path) as db:
            await self._ensure_table(db)
            cursor = await db.execute(
                """
                SELECT backend_id,
                       AVG(latency_ms),
                       AVG(CASE WHEN success THEN 1.0 ELSE 0.0 END),
                       AVG(cost),
                       COUNT(*)
                FROM backend_attempts
                WHERE created_at > ?
                GROUP BY backend_id
                """,
                (since,),
            )
            rows = await cursor.fetchall()

        aggregates = {
            row[0]: BackendAggregate(
                backend_id=row[0],
                avg_latency_ms=row[1],
                success_rate=row[2],
                avg_cost=row[3],
                attempts=row[4],
            )
            for row in rows
        }
        log.info("history.loaded backends=%d window_days=%d", len(aggregates), self.window_days)
        return aggregates
