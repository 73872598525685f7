# delivery_stats/infrastructure/database/schema.py
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Tuple

logger = logging.getLogger(__name__)

# Timestamps are stored as text in store-local time; this format sorts lexically
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


@dataclass(frozen=True)
class IndexDefinition:
    name: str
    table: str
    columns: Tuple[str, ...]

    @property
    def create_sql(self) -> str:
        return f"CREATE INDEX {self.name} ON {self.table}({', '.join(self.columns)})"


PERFORMANCE_INDEXES: Tuple[IndexDefinition, ...] = (
    # today/week/month order counts
    IndexDefinition("idx_status_created", "orders", ("status", "created_at")),
    IndexDefinition("idx_status_delivered", "orders", ("status", "delivered_at")),
    IndexDefinition("idx_status_cancelled", "orders", ("status", "cancelled_at")),
    # new user statistics
    IndexDefinition("idx_role_created", "users", ("role", "created_at")),
    # driver dropdowns
    IndexDefinition("idx_role_username", "users", ("role", "username")),
)


def create_tables(db_path: str) -> None:
    """Create the orders and users tables if they don't exist yet."""
    with sqlite3.connect(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                role TEXT NOT NULL,
                username TEXT NOT NULL UNIQUE,
                full_name TEXT,
                status TEXT NOT NULL DEFAULT 'active',
                created_at TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
                phone TEXT,
                points INTEGER NOT NULL DEFAULT 0,
                serial_number TEXT
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS orders (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                status TEXT NOT NULL DEFAULT 'pending',
                created_at TIMESTAMP NOT NULL DEFAULT (datetime('now', 'localtime')),
                delivered_at TIMESTAMP,
                cancelled_at TIMESTAMP,
                driver_id INTEGER,
                customer_name TEXT,
                customer_phone TEXT,
                address TEXT,
                FOREIGN KEY (driver_id) REFERENCES users (id)
            )
        """)
        conn.commit()


def existing_indexes(conn: sqlite3.Connection) -> Dict[str, str]:
    """Index name -> table name for every named index in the store."""
    cursor = conn.execute("SELECT name, tbl_name FROM sqlite_master WHERE type = 'index' AND name IS NOT NULL")
    return {name: table for name, table in cursor.fetchall()}


def apply_performance_indexes(db_path: str) -> List[str]:
    """
    Create the composite indexes the statistics queries rely on.
    Each index is looked up by name first, so re-running never fails or duplicates.
    Returns the names of the indexes created by this run.
    """
    created: List[str] = []
    with sqlite3.connect(db_path) as conn:
        present = existing_indexes(conn)
        for index in PERFORMANCE_INDEXES:
            if index.name in present:
                logger.info(f"Index {index.name} already exists on {present[index.name]}")
                continue
            conn.execute(index.create_sql)
            created.append(index.name)
            logger.info(f"Created index {index.name} on {index.table}({', '.join(index.columns)})")
        conn.commit()
    return created


def verify_indexes(db_path: str) -> Dict[str, bool]:
    """Expected index name -> whether the store currently has it."""
    with sqlite3.connect(db_path) as conn:
        present = existing_indexes(conn)
    return {index.name: index.name in present for index in PERFORMANCE_INDEXES}


def migrate(db_path: str) -> List[str]:
    create_tables(db_path)
    created = apply_performance_indexes(db_path)
    logger.info(f"Migration finished for {db_path}: {len(created)} index(es) created.")
    return created
