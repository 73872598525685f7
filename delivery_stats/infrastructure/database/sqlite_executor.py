# delivery_stats/infrastructure/database/sqlite_executor.py
import asyncio
import logging
import sqlite3
import time
from typing import Any, List, Mapping

from ...domain.exceptions import ConfigurationError, QueryExecutionError
from ...domain.interfaces import IQueryExecutor, QueryParams

logger = logging.getLogger(__name__)

# Number of SQLite VM instructions between two deadline checks
PROGRESS_HANDLER_STEPS = 1000


class SQLiteQueryExecutor(IQueryExecutor):
    """SQLite implementation of the query executor with a per-statement timeout."""

    def __init__(self, db_path: str = "delivery.db", timeout_seconds: float = 5.0):
        if timeout_seconds <= 0:
            raise ConfigurationError(f"Query timeout must be positive, got {timeout_seconds}")
        self.db_path = db_path
        self.timeout_seconds = timeout_seconds

    def _run(self, sql: str, params: QueryParams) -> List[Mapping[str, Any]]:
        deadline = time.monotonic() + self.timeout_seconds
        with sqlite3.connect(self.db_path, timeout=self.timeout_seconds) as conn:
            conn.row_factory = sqlite3.Row
            # A non-zero return aborts the running statement with "interrupted"
            conn.set_progress_handler(lambda: int(time.monotonic() > deadline), PROGRESS_HANDLER_STEPS)
            try:
                cursor = conn.execute(sql, params)
                return [dict(row) for row in cursor.fetchall()]
            except sqlite3.OperationalError as e:
                if time.monotonic() > deadline:
                    raise QueryExecutionError(
                        f"Query exceeded {self.timeout_seconds}s timeout", timed_out=True
                    ) from e
                raise QueryExecutionError(f"SQLite error: {e}") from e
            except sqlite3.Error as e:
                raise QueryExecutionError(f"SQLite error: {e}") from e

    async def execute(self, sql: str, params: QueryParams = ()) -> List[Mapping[str, Any]]:
        """Execute a read query in a worker thread so the event loop keeps serving cached reads."""
        started = time.perf_counter()
        rows = await asyncio.to_thread(self._run, sql, params)
        logger.debug(f"Query returned {len(rows)} row(s) in {(time.perf_counter() - started) * 1000:.1f} ms")
        return rows

    async def explain(self, sql: str, params: QueryParams = ()) -> List[str]:
        rows = await self.execute(f"EXPLAIN QUERY PLAN {sql}", params)
        return [row["detail"] for row in rows]
