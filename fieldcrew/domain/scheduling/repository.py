"""Scheduling repository - store reads for the engine and the single conditional reschedule write"""

import logging
from collections import defaultdict
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ...config import SCHEDULING_MAX_BOOKING_MINUTES
from ...models import Job, Worker, WorkerAvailabilityException, WorkerWeeklyAvailability
from ...shared.validators import validate_hhmm
from .calendar import (
    CANCELLED,
    NON_BLOCKING_STATUSES,
    BookedInterval,
    BookingIndex,
    DateException,
    WeeklySlot,
    WorkerCalendar,
    WorkerProfile,
)
from .errors import AvailabilityConflictError, UpstreamError

logger = logging.getLogger(__name__)


@contextmanager
def store_errors(operation: str):
    """Surface driver/ORM failures as UpstreamError"""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"❌ Store error during {operation}: {e}")
        raise UpstreamError(f"Store error during {operation}") from e


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored instants are naive UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def worker_profile(worker: Worker) -> WorkerProfile:
    return WorkerProfile(
        id=worker.id,
        name=worker.name,
        status=worker.status,
        email=worker.email,
        phone=worker.phone,
    )


def booked_interval(job: Job) -> BookedInterval:
    return BookedInterval(
        job_id=job.id,
        title=job.title,
        start=as_utc(job.scheduled_at),
        duration_minutes=job.duration_minutes or 0,
        status=job.status,
    )


class SchedulingRepository:
    """Repository for scheduling reads and the reschedule write"""

    @staticmethod
    def get_job(db: Session, job_id: str, business_id: str) -> Optional[Job]:
        """Get a job with its client and worker"""
        with store_errors("job lookup"):
            return (
                db.query(Job)
                .options(joinedload(Job.client), joinedload(Job.worker))
                .filter(Job.id == job_id, Job.business_id == business_id)
                .first()
            )

    @staticmethod
    def get_worker(db: Session, worker_id: str, business_id: str) -> Optional[Worker]:
        with store_errors("worker lookup"):
            return (
                db.query(Worker)
                .filter(Worker.id == worker_id, Worker.business_id == business_id)
                .first()
            )

    @staticmethod
    def get_workers(db: Session, business_id: str, active_only: bool = True) -> list[Worker]:
        with store_errors("worker list"):
            query = db.query(Worker).filter(Worker.business_id == business_id)
            if active_only:
                query = query.filter(Worker.status == "active")
            return query.order_by(Worker.name).all()

    @staticmethod
    def get_weekly_slots(db: Session, worker_ids: list[str]) -> list[WorkerWeeklyAvailability]:
        if not worker_ids:
            return []
        with store_errors("weekly availability lookup"):
            return (
                db.query(WorkerWeeklyAvailability)
                .filter(WorkerWeeklyAvailability.worker_id.in_(worker_ids))
                .order_by(WorkerWeeklyAvailability.day_of_week, WorkerWeeklyAvailability.start_time)
                .all()
            )

    @staticmethod
    def get_exceptions(
        db: Session, worker_ids: list[str], first_day: date, last_day: date
    ) -> list[WorkerAvailabilityException]:
        if not worker_ids:
            return []
        with store_errors("availability exception lookup"):
            return (
                db.query(WorkerAvailabilityException)
                .filter(
                    WorkerAvailabilityException.worker_id.in_(worker_ids),
                    WorkerAvailabilityException.date >= first_day,
                    WorkerAvailabilityException.date <= last_day,
                )
                .all()
            )

    @staticmethod
    def get_active_bookings(
        db: Session,
        worker_ids: list[str],
        start: datetime,
        end: datetime,
        lookbehind_minutes: int = SCHEDULING_MAX_BOOKING_MINUTES,
    ) -> list[Job]:
        """
        Conflict-relevant bookings that could overlap [start, end).

        A booking starting before `start` can still overlap, so the lower
        bound reaches back by the longest booking we expect.
        """
        return SchedulingRepository._get_bookings(
            db,
            worker_ids,
            start - timedelta(minutes=lookbehind_minutes),
            end,
            excluded_statuses=NON_BLOCKING_STATUSES,
        )

    @staticmethod
    def get_billable_bookings(
        db: Session, worker_ids: list[str], start: datetime, end: datetime
    ) -> list[Job]:
        """Non-cancelled bookings starting in [start, end) (completed work counts)"""
        return SchedulingRepository._get_bookings(
            db, worker_ids, start, end, excluded_statuses=frozenset({CANCELLED})
        )

    @staticmethod
    def _get_bookings(
        db: Session,
        worker_ids: list[str],
        start: datetime,
        end: datetime,
        excluded_statuses: frozenset,
    ) -> list[Job]:
        if not worker_ids:
            return []
        with store_errors("booking lookup"):
            return (
                db.query(Job)
                .filter(
                    Job.worker_id.in_(worker_ids),
                    Job.status.notin_(excluded_statuses),
                    Job.scheduled_at >= to_naive_utc(start),
                    Job.scheduled_at < to_naive_utc(end),
                )
                .order_by(Job.scheduled_at)
                .all()
            )

    @staticmethod
    def load_calendars(
        db: Session,
        workers: list[Worker],
        start: datetime,
        end: datetime,
        first_day: date,
        last_day: date,
    ) -> list[WorkerCalendar]:
        """
        Snapshot every worker's slots, exceptions and bookings in bulk.

        `start`/`end` must cover both the searched instants and any week the
        caller computes utilization for; `first_day`/`last_day` are the local
        dates whose exceptions may apply.
        """
        worker_ids = [w.id for w in workers]

        slots = defaultdict(list)
        for row in SchedulingRepository.get_weekly_slots(db, worker_ids):
            slots[row.worker_id].append(
                WeeklySlot(
                    day_of_week=row.day_of_week,
                    start_time=validate_hhmm(row.start_time),
                    end_time=validate_hhmm(row.end_time),
                )
            )

        exceptions = defaultdict(dict)
        for row in SchedulingRepository.get_exceptions(db, worker_ids, first_day, last_day):
            exceptions[row.worker_id][row.date] = DateException(
                date=row.date,
                is_available=bool(row.is_available),
                start_time=validate_hhmm(row.start_time) if row.start_time else None,
                end_time=validate_hhmm(row.end_time) if row.end_time else None,
                reason=row.reason,
            )

        bookings = defaultdict(list)
        lookbehind = start - timedelta(minutes=SCHEDULING_MAX_BOOKING_MINUTES)
        for job in SchedulingRepository.get_billable_bookings(db, worker_ids, lookbehind, end):
            bookings[job.worker_id].append(booked_interval(job))

        return [
            WorkerCalendar(
                worker=worker_profile(worker),
                weekly_slots=slots[worker.id],
                exceptions=exceptions[worker.id],
                bookings=BookingIndex(bookings[worker.id]),
                billable=bookings[worker.id],
            )
            for worker in workers
        ]

    @staticmethod
    def reschedule_job(
        db: Session,
        job: Job,
        new_start: datetime,
        worker_id: str,
        expected_job_version: int,
        expected_worker_version: int,
    ) -> Job:
        """
        Move a job in one transaction, guarded by the versions read before the
        availability check. Either row having changed since means the check is
        stale: nothing is written and AvailabilityConflictError is raised.
        """
        try:
            job_result = db.execute(
                update(Job)
                .where(Job.id == job.id, Job.version == expected_job_version)
                .values(
                    scheduled_at=to_naive_utc(new_start),
                    worker_id=worker_id,
                    version=Job.version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            worker_result = db.execute(
                update(Worker)
                .where(Worker.id == worker_id, Worker.schedule_version == expected_worker_version)
                .values(schedule_version=Worker.schedule_version + 1)
                .execution_options(synchronize_session=False)
            )

            if job_result.rowcount != 1 or worker_result.rowcount != 1:
                db.rollback()
                logger.warning(
                    f"⚠️ Concurrent schedule change for job {job.id} / worker {worker_id}, write rejected"
                )
                raise AvailabilityConflictError(
                    "Schedule changed while rescheduling, re-check availability",
                    {"jobId": job.id, "workerId": worker_id},
                )

            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Failed to reschedule job {job.id}: {e}")
            raise UpstreamError("Store error during reschedule") from e

        db.refresh(job)
        return job
