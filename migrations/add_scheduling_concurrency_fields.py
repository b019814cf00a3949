"""
Add scheduling concurrency fields and exception uniqueness

- workers.schedule_version (INTEGER): bumped on every reschedule onto the worker
- jobs.version (INTEGER): bumped on every reschedule of the job
- worker_availability_exceptions: one row per (worker_id, date)
  * the migration aborts if duplicates exist; they must be resolved by hand
- reschedule_notifications table: pending client/worker notices
"""

import argparse

from sqlalchemy import text

from fieldcrew.database import engine


class DuplicateExceptionsError(RuntimeError):
    """Some worker has more than one availability exception for the same date"""


def find_duplicate_exceptions(conn) -> list:
    return conn.execute(
        text(
            """
            SELECT worker_id, date, COUNT(*) AS row_count
            FROM worker_availability_exceptions
            GROUP BY worker_id, date
            HAVING COUNT(*) > 1
            ORDER BY worker_id, date;
            """
        )
    ).fetchall()


def check_unique_exceptions(conn) -> None:
    """Report every worker/date with more than one exception and abort"""
    duplicates = find_duplicate_exceptions(conn)
    if not duplicates:
        return

    print(f"Found {len(duplicates)} worker/date pairs with more than one availability exception:")
    for row in duplicates:
        print(f"  worker {row.worker_id} on {row.date}: {row.row_count} rows")
    raise DuplicateExceptionsError(
        "Resolve duplicate worker_availability_exceptions rows before applying this migration"
    )


def upgrade():
    with engine.connect() as conn:
        check_unique_exceptions(conn)

        conn.execute(
            text(
                """
                ALTER TABLE workers
                ADD COLUMN IF NOT EXISTS schedule_version INTEGER NOT NULL DEFAULT 0;
                """
            )
        )
        conn.execute(
            text(
                """
                ALTER TABLE jobs
                ADD COLUMN IF NOT EXISTS version INTEGER NOT NULL DEFAULT 0;
                """
            )
        )

        conn.execute(
            text(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS uq_worker_exception_date
                ON worker_availability_exceptions (worker_id, date);
                """
            )
        )

        conn.execute(
            text(
                """
                CREATE TABLE IF NOT EXISTS reschedule_notifications (
                    id VARCHAR(36) PRIMARY KEY,
                    job_id VARCHAR(36) NOT NULL REFERENCES jobs(id),
                    recipient_type VARCHAR(20) NOT NULL,
                    notification_type VARCHAR(20) NOT NULL,
                    recipient_contact VARCHAR(255) NOT NULL,
                    message_content TEXT NOT NULL,
                    status VARCHAR(20) NOT NULL DEFAULT 'pending',
                    created_at TIMESTAMP DEFAULT NOW()
                );
                """
            )
        )
        conn.execute(
            text(
                """
                CREATE INDEX IF NOT EXISTS ix_reschedule_notifications_job_id
                ON reschedule_notifications (job_id);
                """
            )
        )

        conn.commit()
        print("Migration add_scheduling_concurrency_fields applied successfully")


def downgrade():
    with engine.connect() as conn:
        conn.execute(text("DROP TABLE IF EXISTS reschedule_notifications"))
        conn.execute(text("DROP INDEX IF EXISTS uq_worker_exception_date"))
        conn.execute(text("ALTER TABLE jobs DROP COLUMN IF EXISTS version"))
        conn.execute(text("ALTER TABLE workers DROP COLUMN IF EXISTS schedule_version"))
        conn.commit()
        print("Migration add_scheduling_concurrency_fields rolled back")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manage scheduling concurrency migration")
    parser.add_argument("--down", action="store_true", help="Rollback the migration")
    args = parser.parse_args()

    if args.down:
        downgrade()
    else:
        upgrade()
