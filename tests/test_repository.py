"""Tests for SchedulingRepository: calendar snapshots and the versioned reschedule write."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from fieldcrew.domain.scheduling.errors import AvailabilityConflictError, UpstreamError
from fieldcrew.domain.scheduling.repository import SchedulingRepository, store_errors
from tests.conftest import (
    MONDAY,
    SUNDAY,
    UTC,
    add_exception,
    at,
    make_business,
    make_job,
    make_worker,
)


class TestReads:
    def test_load_calendars_maps_rows(self, db_session, business):
        worker = make_worker(
            db_session, business, weekly={1: [("09:00", "12:00"), ("13:00", "17:00")]}
        )
        next_monday = MONDAY + timedelta(days=7)
        add_exception(db_session, worker, next_monday, True, "10:00", "14:00", "Half day")
        make_job(db_session, business, worker, at(MONDAY, "09:00"), title="Office clean")
        make_job(db_session, business, worker, at(MONDAY, "10:00"), status="cancelled")
        make_job(db_session, business, worker, at(MONDAY, "11:00"), status="completed")

        calendar = SchedulingRepository.load_calendars(
            db_session,
            [worker],
            at(SUNDAY, "00:00"),
            at(SUNDAY + timedelta(days=14), "00:00"),
            SUNDAY,
            SUNDAY + timedelta(days=14),
        )[0]

        assert calendar.worker_id == worker.id
        assert len(calendar.weekly_slots) == 2
        assert calendar.exceptions[next_monday].start_time == "10:00"
        assert calendar.exceptions[next_monday].reason == "Half day"
        # Completed work still counts toward utilization but never blocks time
        assert [b.title for b in calendar.bookings] == ["Office clean"]
        assert len(calendar.billable) == 2
        assert list(calendar.bookings)[0].start == at(MONDAY, "09:00")
        assert list(calendar.bookings)[0].start.tzinfo is not None

    def test_active_bookings_look_behind_for_long_jobs(self, db_session, business):
        worker = make_worker(db_session, business)
        overnight = make_job(db_session, business, worker, at(SUNDAY, "22:00"), minutes=240)

        found = SchedulingRepository.get_active_bookings(
            db_session, [worker.id], at(MONDAY, "00:00"), at(MONDAY, "23:00")
        )
        assert [j.id for j in found] == [overnight.id]

        narrow = SchedulingRepository.get_active_bookings(
            db_session, [worker.id], at(MONDAY, "00:00"), at(MONDAY, "23:00"), lookbehind_minutes=60
        )
        assert narrow == []

    def test_get_workers_is_scoped_and_filters_inactive(self, db_session, business):
        active = make_worker(db_session, business, name="Alex")
        make_worker(db_session, business, name="Blair", status="inactive")
        other = make_business(db_session, name="Other Co")
        make_worker(db_session, other, name="Casey")

        assert [w.id for w in SchedulingRepository.get_workers(db_session, business.id)] == [active.id]
        assert len(SchedulingRepository.get_workers(db_session, business.id, active_only=False)) == 2

    def test_one_exception_per_worker_and_date(self, db_session, business):
        worker = make_worker(db_session, business)
        add_exception(db_session, worker, MONDAY)
        with pytest.raises(IntegrityError):
            add_exception(db_session, worker, MONDAY, is_available=True)
        db_session.rollback()

    def test_store_errors_become_upstream_errors(self):
        with pytest.raises(UpstreamError):
            with store_errors("booking lookup"):
                raise OperationalError("SELECT 1", {}, Exception("connection refused"))


class TestRescheduleWrite:
    def test_write_bumps_versions(self, db_session, business):
        worker = make_worker(db_session, business)
        job = make_job(db_session, business, worker, at(MONDAY, "09:00"))

        SchedulingRepository.reschedule_job(db_session, job, at(MONDAY, "11:00"), worker.id, 0, 0)

        db_session.refresh(worker)
        assert job.scheduled_at == datetime(2026, 10, 19, 11, 0)
        assert job.version == 1
        assert worker.schedule_version == 1

    def test_stale_worker_version_rejects_whole_write(self, db_session, business):
        worker = make_worker(db_session, business)
        job = make_job(db_session, business, worker, at(MONDAY, "09:00"))

        with pytest.raises(AvailabilityConflictError):
            SchedulingRepository.reschedule_job(
                db_session, job, at(MONDAY, "11:00"), worker.id, 0, expected_worker_version=5
            )

        db_session.refresh(job)
        assert job.scheduled_at == datetime(2026, 10, 19, 9, 0)
        assert job.version == 0

    def test_stale_job_version_rejects_write(self, db_session, business):
        worker = make_worker(db_session, business)
        job = make_job(db_session, business, worker, at(MONDAY, "09:00"))
        SchedulingRepository.reschedule_job(db_session, job, at(MONDAY, "10:00"), worker.id, 0, 0)

        with pytest.raises(AvailabilityConflictError):
            SchedulingRepository.reschedule_job(
                db_session, job, at(MONDAY, "12:00"), worker.id, 0, 1
            )

        db_session.refresh(job)
        assert job.scheduled_at.replace(tzinfo=UTC) == at(MONDAY, "10:00")
