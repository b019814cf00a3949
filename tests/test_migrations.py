"""Tests for the scheduling concurrency migration's duplicate-exception guard."""

import pytest
from sqlalchemy import create_engine, text

from migrations.add_scheduling_concurrency_fields import (
    DuplicateExceptionsError,
    check_unique_exceptions,
    find_duplicate_exceptions,
)


@pytest.fixture
def legacy_conn():
    """Exceptions table as it existed before the unique index"""
    engine = create_engine("sqlite://")
    with engine.connect() as conn:
        conn.execute(
            text(
                "CREATE TABLE worker_availability_exceptions "
                "(id VARCHAR(36) PRIMARY KEY, worker_id VARCHAR(36), date DATE, is_available BOOLEAN)"
            )
        )
        yield conn
    engine.dispose()


def _add(conn, row_id, worker_id, day, is_available):
    conn.execute(
        text(
            "INSERT INTO worker_availability_exceptions (id, worker_id, date, is_available) "
            "VALUES (:id, :worker_id, :date, :is_available)"
        ),
        {"id": row_id, "worker_id": worker_id, "date": day, "is_available": is_available},
    )


class TestDuplicateExceptionGuard:
    def test_unique_rows_pass(self, legacy_conn):
        _add(legacy_conn, "a", "worker-1", "2026-10-19", False)
        _add(legacy_conn, "b", "worker-1", "2026-10-20", True)
        _add(legacy_conn, "c", "worker-2", "2026-10-19", True)

        check_unique_exceptions(legacy_conn)

    def test_duplicates_abort_and_keep_every_row(self, legacy_conn, capsys):
        _add(legacy_conn, "a", "worker-1", "2026-10-19", False)
        _add(legacy_conn, "b", "worker-1", "2026-10-19", True)
        _add(legacy_conn, "c", "worker-2", "2026-10-19", True)

        with pytest.raises(DuplicateExceptionsError):
            check_unique_exceptions(legacy_conn)

        duplicates = find_duplicate_exceptions(legacy_conn)
        assert [(row.worker_id, row.row_count) for row in duplicates] == [("worker-1", 2)]
        assert "worker worker-1 on 2026-10-19: 2 rows" in capsys.readouterr().out
        count = legacy_conn.execute(text("SELECT COUNT(*) FROM worker_availability_exceptions"))
        assert count.scalar() == 3
