import sqlite3
from datetime import datetime

from delivery_stats.infrastructure.database import schema


def index_names(db_path):
    with sqlite3.connect(db_path) as conn:
        return [row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")]


def test_migrate_creates_all_performance_indexes(tmp_path):
    db_path = str(tmp_path / "fresh.db")

    created = schema.migrate(db_path)

    assert created == [index.name for index in schema.PERFORMANCE_INDEXES]
    assert all(schema.verify_indexes(db_path).values())


def test_reapplying_indexes_is_a_no_op(db_path):
    before = index_names(db_path)

    assert schema.apply_performance_indexes(db_path) == []
    assert schema.migrate(db_path) == []

    after = index_names(db_path)
    assert sorted(after) == sorted(before)
    assert len(after) == len(set(after))


def test_existing_index_is_detected_by_name(tmp_path):
    db_path = str(tmp_path / "partial.db")
    schema.create_tables(db_path)
    with sqlite3.connect(db_path) as conn:
        conn.execute("CREATE INDEX idx_role_username ON users(role, username)")
        conn.commit()

    created = schema.apply_performance_indexes(db_path)

    assert "idx_role_username" not in created
    assert len(created) == len(schema.PERFORMANCE_INDEXES) - 1


def test_verify_indexes_reports_missing(tmp_path):
    db_path = str(tmp_path / "bare.db")
    schema.create_tables(db_path)

    status = schema.verify_indexes(db_path)

    assert set(status) == {index.name for index in schema.PERFORMANCE_INDEXES}
    assert not any(status.values())


def test_index_columns_match_statistics_predicates():
    columns = {index.name: (index.table, index.columns) for index in schema.PERFORMANCE_INDEXES}
    assert columns == {
        "idx_status_created": ("orders", ("status", "created_at")),
        "idx_status_delivered": ("orders", ("status", "delivered_at")),
        "idx_status_cancelled": ("orders", ("status", "cancelled_at")),
        "idx_role_created": ("users", ("role", "created_at")),
        "idx_role_username": ("users", ("role", "username")),
    }


def test_format_timestamp_sorts_lexically():
    earlier = schema.format_timestamp(datetime(2026, 9, 30, 23, 59, 59))
    later = schema.format_timestamp(datetime(2026, 10, 1, 0, 0, 0))
    assert earlier == "2026-09-30 23:59:59"
    assert earlier < later
