import sqlite3
from datetime import datetime, timedelta
from typing import Optional

import pytest

from delivery_stats.domain.interfaces import IClock
from delivery_stats.infrastructure.database import schema
from delivery_stats.infrastructure.database.sqlite_executor import SQLiteQueryExecutor

# Wednesday; its Monday-start week (Oct 12-18) lies inside October
NOW = datetime(2026, 10, 14, 15, 30, 0)


class FakeClock(IClock):
    def __init__(self, now: datetime = NOW):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class CountingExecutor(SQLiteQueryExecutor):
    """Real SQLite executor that records every statement it runs."""

    def __init__(self, db_path: str, timeout_seconds: float = 5.0):
        super().__init__(db_path, timeout_seconds)
        self.calls = []

    async def execute(self, sql, params=()):
        self.calls.append(sql)
        return await super().execute(sql, params)


def insert_order(db_path: str, status: str, created_at: str,
                 delivered_at: Optional[str] = None, cancelled_at: Optional[str] = None) -> None:
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            "INSERT INTO orders (status, created_at, delivered_at, cancelled_at) VALUES (?, ?, ?, ?)",
            (status, created_at, delivered_at, cancelled_at),
        )
        conn.commit()


def insert_user(db_path: str, role: str, username: str, status: str = "active",
                created_at: str = "2026-01-01 00:00:00", points: int = 0) -> None:
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            INSERT INTO users (role, username, full_name, status, created_at, phone, points, serial_number)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (role, username, username.title(), status, created_at, "555-0100", points, f"SN-{username}"),
        )
        conn.commit()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "delivery.db")
    schema.migrate(path)
    return path


@pytest.fixture
def executor(db_path):
    return CountingExecutor(db_path)
