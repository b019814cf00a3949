"""Reschedule service - orchestrates availability lookups, suggestions and the reschedule write"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ...config import (
    BATCH_GRID_DAYS,
    BATCH_GRID_END_HOUR,
    BATCH_GRID_START_HOUR,
    DEFAULT_BUSINESS_TIMEZONE,
    DEFAULT_JOB_DURATION_MINUTES,
    RESCHEDULE_COMBINATIONS_LIMIT,
    RESCHEDULE_TIME_ALTERNATIVES_LIMIT,
    SCHEDULING_SEARCH_DAYS,
)
from ...models import Business, Job, Worker
from ...services.notification_service import RescheduleNotifier
from ...shared.validators import validate_timezone
from .availability import AvailabilityResolver
from .calendar import WorkerCalendar
from .clock import Clock, as_aware, format_hhmm, local_instant, to_utc, week_bounds
from .concurrency import fan_out
from .conflicts import ConflictChecker
from .errors import AvailabilityConflictError, NotFoundError, ValidationError
from .ranking import SuggestionRanker
from .repository import SchedulingRepository, as_utc
from .schemas import (
    CheckAvailabilityRequest,
    ManualRescheduleRequest,
    SuggestionRequest,
    SwapWorkerRequest,
)
from .slot_search import SlotSearch
from .utilization import UtilizationCalculator

logger = logging.getLogger(__name__)


@dataclass
class SchedulingEngine:
    """Engine components bound to one business timezone for one request"""

    tz: ZoneInfo
    resolver: AvailabilityResolver
    checker: ConflictChecker
    search: SlotSearch
    utilization: UtilizationCalculator
    ranker: SuggestionRanker

    @classmethod
    def build(cls, tz: ZoneInfo, clock: Clock) -> "SchedulingEngine":
        resolver = AvailabilityResolver()
        checker = ConflictChecker(tz, resolver)
        search = SlotSearch(checker)
        utilization = UtilizationCalculator(tz)
        ranker = SuggestionRanker(checker, utilization, clock, slot_search=search)
        return cls(tz, resolver, checker, search, utilization, ranker)


def job_summary(job: Job) -> dict:
    return {
        "id": job.id,
        "title": job.title,
        "scheduledAt": as_utc(job.scheduled_at),
        "durationMinutes": job.duration_minutes,
        "status": job.status,
        "workerId": job.worker_id,
        "workerName": job.worker.name if job.worker else None,
        "version": job.version,
    }


def client_summary(job: Job) -> Optional[dict]:
    if job.client is None:
        return None
    return {
        "id": job.client.id,
        "name": job.client.name,
        "phone": job.client.phone,
        "email": job.client.email,
    }


class RescheduleService:
    """Service layer for availability and reschedule operations"""

    def __init__(self, db: Session, clock: Clock, notifier: Optional[RescheduleNotifier] = None):
        self.db = db
        self.clock = clock
        self.notifier = notifier or RescheduleNotifier()
        self.repo = SchedulingRepository()

    # ========================================================================
    # HELPERS
    # ========================================================================

    def business_timezone(self, business: Business) -> ZoneInfo:
        try:
            return validate_timezone(business.timezone, DEFAULT_BUSINESS_TIMEZONE)
        except ValueError:
            logger.warning(
                f"⚠️ Business {business.id} has unknown timezone {business.timezone}, "
                f"using {DEFAULT_BUSINESS_TIMEZONE}"
            )
            return validate_timezone(DEFAULT_BUSINESS_TIMEZONE)

    def engine_for(self, business: Business) -> SchedulingEngine:
        return SchedulingEngine.build(self.business_timezone(business), self.clock)

    def get_job(self, job_id: str, business: Business) -> Job:
        job = self.repo.get_job(self.db, job_id, business.id)
        if not job:
            raise NotFoundError("Job not found", {"jobId": job_id})
        return job

    def get_worker(self, worker_id: str, business: Business) -> Worker:
        worker = self.repo.get_worker(self.db, worker_id, business.id)
        if not worker:
            raise NotFoundError("Worker not found", {"workerId": worker_id})
        return worker

    def job_duration(self, job: Optional[Job], requested: Optional[int] = None) -> int:
        if requested:
            return requested
        if job is not None:
            return job.duration_minutes or DEFAULT_JOB_DURATION_MINUTES
        raise ValidationError("duration is required when no job is given")

    def load_calendars(
        self,
        workers: list[Worker],
        start: datetime,
        end: datetime,
        tz: ZoneInfo,
        *anchors: datetime,
    ) -> list[WorkerCalendar]:
        """Snapshot calendars covering [start, end) plus the weeks of every anchor"""
        bounds = [week_bounds(instant, tz) for instant in (start, end, *anchors)]
        range_start = min(b[0] for b in bounds)
        range_end = max(b[1] for b in bounds)
        first_day = start.astimezone(tz).date() - timedelta(days=1)
        last_day = end.astimezone(tz).date() + timedelta(days=1)
        return self.repo.load_calendars(
            self.db, workers, range_start, range_end, first_day, last_day
        )

    # ========================================================================
    # READ OPERATIONS
    # ========================================================================

    def next_available(
        self,
        business: Business,
        duration: int,
        search_start: datetime,
        days_limit: int = SCHEDULING_SEARCH_DAYS,
        job_id: Optional[str] = None,
    ) -> dict:
        """First open slot per active worker, with current-week utilization"""
        engine = self.engine_for(business)
        job = self.get_job(job_id, business) if job_id else None
        exclude_job_id = job.id if job else None

        search_start = to_utc(as_aware(search_start, engine.tz))
        search_end = search_start + timedelta(days=days_limit + 1)
        now = self.clock.now()

        workers = self.repo.get_workers(self.db, business.id)
        calendars = self.load_calendars(workers, search_start, search_end, engine.tz, now)

        def lookup(calendar: WorkerCalendar):
            slot = engine.search.find_next(
                calendar, duration, search_start, days_limit, exclude_job_id
            )
            if slot is None:
                return None
            workload = engine.utilization.calculate(calendar, now)
            return calendar, slot, workload

        slots = []
        for branch in fan_out(calendars, lookup, key=lambda c: c.worker_id):
            if not branch.ok or branch.value is None:
                continue
            calendar, slot, workload = branch.value
            slots.append(
                {
                    "workerId": calendar.worker_id,
                    "workerName": calendar.worker.name,
                    "dateTime": slot.start,
                    "endTime": slot.end,
                    "utilizationPercentage": round(workload.utilization, 1),
                    "source": slot.source.value,
                }
            )

        slots.sort(key=lambda s: (s["utilizationPercentage"], s["dateTime"]))
        logger.info(
            f"🔍 next-available: {len(slots)}/{len(calendars)} workers have a {duration}min slot"
        )
        return {"slots": slots, "searchStartDate": search_start, "searchDaysLimit": days_limit}

    def generate_options(self, business: Business, job_id: str, days_ahead: int) -> dict:
        """Ranked (worker, time) reschedule options for a job over the next `days_ahead` days"""
        job = self.get_job(job_id, business)
        engine = self.engine_for(business)
        duration = self.job_duration(job)

        search_start = self.clock.now()
        search_end = search_start + timedelta(days=days_ahead)
        workers = self.repo.get_workers(self.db, business.id)
        calendars = self.load_calendars(workers, search_start, search_end, engine.tz)

        analyses = engine.ranker.analyze_workers(
            calendars, search_start, search_end, duration, job.id
        )
        times = engine.ranker.time_alternatives(
            calendars, search_start, search_end, duration, job.id
        )
        combinations = engine.ranker.optimal_combinations(
            analyses, times, RESCHEDULE_COMBINATIONS_LIMIT
        )

        options = [
            {
                "suggested_date": c.time.start,
                "worker_id": c.worker_id,
                "worker_name": c.worker_name,
                "confidence_score": round(min(100.0, c.score), 1),
                "reason": c.reason,
            }
            for c in combinations
        ]

        if not options:
            # No canonical time works; offer each worker's first open slot instead
            for analysis in analyses:
                slot = analysis.next_available_slot
                if slot is None:
                    continue
                options.append(
                    {
                        "suggested_date": slot.start,
                        "worker_id": analysis.worker.id,
                        "worker_name": analysis.worker.name,
                        "confidence_score": round(100.0 - analysis.workload.utilization, 1),
                        "reason": (
                            f"Next available slot for {analysis.worker.name} "
                            f"({analysis.workload.rating.value} efficiency)"
                        ),
                    }
                )
            options = options[:RESCHEDULE_COMBINATIONS_LIMIT]

        logger.info(f"📋 Generated {len(options)} reschedule options for job {job.id}")
        return {
            "job": job_summary(job),
            "client": client_summary(job),
            "rescheduleOptions": options,
            "generatedAt": self.clock.now(),
        }

    def suggestions(self, business: Business, data: SuggestionRequest) -> dict:
        engine = self.engine_for(business)
        job = self.get_job(data.jobId, business) if data.jobId else None
        duration = self.job_duration(job, data.duration)
        exclude_job_id = job.id if job else None

        now = self.clock.now()
        search_start = to_utc(as_aware(data.startDate, engine.tz)) if data.startDate else now
        if data.endDate:
            search_end = to_utc(as_aware(data.endDate, engine.tz))
        else:
            search_end = search_start + timedelta(days=data.searchDays)
        if search_end <= search_start:
            raise ValidationError("endDate must be after startDate")

        workers = self.repo.get_workers(self.db, business.id)

        if data.allWorkers:
            return self._batch_suggestions(
                engine, workers, search_start, duration, exclude_job_id
            )

        preferred = None
        if data.preferredDateTime:
            preferred = to_utc(as_aware(data.preferredDateTime, engine.tz))

        anchors = [preferred] if preferred else []
        calendars = self.load_calendars(workers, search_start, search_end, engine.tz, *anchors)
        ranker = engine.ranker

        analyses = ranker.analyze_workers(
            calendars, search_start, search_end, duration, exclude_job_id
        )
        times = ranker.time_alternatives(
            calendars, search_start, search_end, duration, exclude_job_id
        )
        combinations = ranker.optimal_combinations(
            analyses, times, RESCHEDULE_COMBINATIONS_LIMIT
        )
        days = ranker.day_analysis(calendars, search_start, search_end, duration, exclude_job_id)

        response = {
            "jobId": exclude_job_id,
            "duration": duration,
            "searchPeriod": {"start": search_start, "end": search_end},
            "workerAnalysis": [a.to_dict() for a in analyses],
            "timeAlternatives": [t.to_dict() for t in times[:RESCHEDULE_TIME_ALTERNATIVES_LIMIT]],
            "optimalCombinations": [c.to_dict() for c in combinations],
            "dayAnalysis": [d.to_dict() for d in days],
            "smartRecommendations": ranker.smart_recommendations(analyses, days, times),
            "summary": {
                "totalWorkers": len(analyses),
                "availableWorkers": sum(1 for a in analyses if a.is_available),
                "optimalWorkers": sum(1 for a in analyses if a.workload.is_optimal),
                "bestTimeSlots": len([t for t in times if t.score >= 70]),
            },
        }

        if preferred:
            available, unavailable = ranker.worker_alternatives(
                calendars, preferred, preferred + timedelta(minutes=duration), exclude_job_id
            )
            response["workerAlternatives"] = {
                "dateTime": preferred,
                "available": [alt.to_dict() for alt in available],
                "unavailable": [alt.to_dict() for alt in unavailable],
            }

        if data.workerId:
            current = next((a for a in analyses if a.worker.id == data.workerId), None)
            if current is None:
                self.get_worker(data.workerId, business)
            response["currentWorkload"] = current.to_dict() if current else None

        return response

    def _batch_suggestions(
        self,
        engine: SchedulingEngine,
        workers: list[Worker],
        search_start: datetime,
        duration: int,
        exclude_job_id: Optional[str],
    ) -> dict:
        """Hourly availability grid per worker for the week after `search_start`"""
        first_day = search_start.astimezone(engine.tz).date()
        grid_end = local_instant(first_day + timedelta(days=BATCH_GRID_DAYS), 0, engine.tz)
        calendars = self.load_calendars(workers, search_start, grid_end, engine.tz)
        length = timedelta(minutes=duration)

        def grid_for(calendar: WorkerCalendar) -> dict:
            workload = engine.utilization.calculate(calendar, search_start, exclude_job_id)
            grid = {}
            for offset in range(BATCH_GRID_DAYS):
                day = first_day + timedelta(days=offset)
                hours = {}
                for hour in range(BATCH_GRID_START_HOUR, BATCH_GRID_END_HOUR + 1):
                    start = local_instant(day, hour * 60, engine.tz)
                    check = engine.checker.check(calendar, start, start + length, exclude_job_id)
                    hours[format_hhmm(hour * 60)] = check.available
                grid[day.isoformat()] = hours
            return {
                "workerId": calendar.worker_id,
                "workerName": calendar.worker.name,
                "currentWorkload": round(workload.booked_hours, 2),
                "utilizationScore": round(workload.utilization, 1),
                "weeklyCapacity": round(workload.capacity_hours, 2),
                "efficiencyRating": workload.rating.value,
                "availability": grid,
            }

        results = [
            b.value for b in fan_out(calendars, grid_for, key=lambda c: c.worker_id) if b.ok
        ]
        return {
            "mode": "batch",
            "duration": duration,
            "searchPeriod": {"start": search_start, "end": grid_end},
            "workerAnalysis": results,
        }

    def check_availability(self, business: Business, data: CheckAvailabilityRequest) -> dict:
        engine = self.engine_for(business)

        start = data.startTime or data.dateTime
        if start is None:
            raise ValidationError("startTime or dateTime is required")
        start = to_utc(as_aware(start, engine.tz))
        if data.endTime:
            end = to_utc(as_aware(data.endTime, engine.tz))
        else:
            end = start + timedelta(minutes=data.durationMinutes or DEFAULT_JOB_DURATION_MINUTES)
        if end <= start:
            raise ValidationError("endTime must be after startTime")

        if data.getAllWorkers:
            workers = self.repo.get_workers(self.db, business.id)
            calendars = self.load_calendars(workers, start, end, engine.tz)
            available, unavailable = engine.ranker.worker_alternatives(
                calendars, start, end, data.excludeJobId
            )
            entries = []
            for alt in available + unavailable:
                entry = alt.to_dict()
                entry["weeklyHours"] = round(alt.workload.capacity_hours, 2) if alt.workload else 0
                entry["scheduledHours"] = round(alt.workload.booked_hours, 2) if alt.workload else 0
                entries.append(entry)
            return {
                "startTime": start,
                "endTime": end,
                "workers": entries,
                "availableCount": len(available),
                "totalCount": len(entries),
            }

        if not data.workerId:
            raise ValidationError("workerId is required unless getAllWorkers is set")
        worker = self.get_worker(data.workerId, business)
        calendar = self.load_calendars([worker], start, end, engine.tz)[0]

        if not calendar.worker.is_active:
            return {
                "workerId": worker.id,
                "isAvailable": False,
                "reason": "Worker is not active",
                "withinHours": False,
                "conflictingJobs": [],
            }

        result = engine.checker.check(calendar, start, end, data.excludeJobId)
        return {
            "workerId": worker.id,
            "isAvailable": result.available,
            "reason": result.reason,
            "withinHours": result.within_hours,
            "dayStatus": result.day.status.value if result.day else None,
            "conflictingJobs": [
                {"id": b.job_id, "title": b.title, "start": b.start, "end": b.end}
                for b in result.conflicting_jobs
            ],
        }

    def compatible_workers(
        self, business: Business, job_id: str, include_unavailable: bool = False
    ) -> dict:
        """Other workers who could take the job at its current time"""
        job = self.get_job(job_id, business)
        engine = self.engine_for(business)
        start = as_utc(job.scheduled_at)
        end = start + timedelta(minutes=self.job_duration(job))

        workers = [w for w in self.repo.get_workers(self.db, business.id) if w.id != job.worker_id]
        calendars = self.load_calendars(workers, start, end, engine.tz)
        available, unavailable = engine.ranker.worker_alternatives(calendars, start, end, job.id)

        response = {
            "job": job_summary(job),
            "availableWorkers": [alt.to_dict() for alt in available],
            "totalAvailable": len(available),
        }
        if include_unavailable:
            response["unavailableWorkers"] = [alt.to_dict() for alt in unavailable]
        return response

    def worker_day_availability(
        self, business: Business, worker_id: str, day: Optional[date] = None
    ) -> dict:
        """A worker's configured availability and, for `day`, the resolved windows and bookings"""
        worker = self.get_worker(worker_id, business)
        engine = self.engine_for(business)

        slots = self.repo.get_weekly_slots(self.db, [worker.id])
        response = {
            "workerId": worker.id,
            "workerName": worker.name,
            "status": worker.status,
            "weeklySlots": [
                {"dayOfWeek": s.day_of_week, "startTime": s.start_time, "endTime": s.end_time}
                for s in slots
            ],
        }

        if day is None:
            today = self.clock.now().astimezone(engine.tz).date()
            exceptions = self.repo.get_exceptions(
                self.db, [worker.id], today, today + timedelta(days=SCHEDULING_SEARCH_DAYS * 2)
            )
        else:
            exceptions = self.repo.get_exceptions(self.db, [worker.id], day, day)
        response["exceptions"] = [
            {
                "date": e.date,
                "isAvailable": e.is_available,
                "startTime": e.start_time,
                "endTime": e.end_time,
                "reason": e.reason,
            }
            for e in sorted(exceptions, key=lambda e: e.date)
        ]

        if day is not None:
            day_start = local_instant(day, 0, engine.tz)
            day_end = local_instant(day + timedelta(days=1), 0, engine.tz)
            calendar = self.repo.load_calendars(self.db, [worker], day_start, day_end, day, day)[0]
            resolved = engine.resolver.resolve(calendar, day)
            bookings = self.repo.get_active_bookings(self.db, [worker.id], day_start, day_end)
            response.update(
                {
                    "date": day,
                    "dayStatus": resolved.status.value,
                    "windows": [
                        {
                            "startTime": format_hhmm(w.start_minute),
                            "endTime": format_hhmm(w.end_minute),
                        }
                        for w in resolved.windows
                    ],
                    "bookings": [
                        {
                            "id": j.id,
                            "title": j.title,
                            "scheduledAt": as_utc(j.scheduled_at),
                            "durationMinutes": j.duration_minutes,
                            "status": j.status,
                        }
                        for j in bookings
                        if as_utc(j.scheduled_at) + timedelta(minutes=j.duration_minutes or 0)
                        > day_start
                    ],
                }
            )

        return response

    # ========================================================================
    # WRITE OPERATIONS
    # ========================================================================

    def manual_reschedule(
        self, business: Business, job_id: str, data: ManualRescheduleRequest
    ) -> dict:
        job = self.get_job(job_id, business)
        engine = self.engine_for(business)

        new_start = to_utc(as_aware(data.newDateTime, engine.tz))
        if new_start <= self.clock.now():
            raise ValidationError("New date/time must be in the future")

        return self._move_job(
            business,
            engine,
            job,
            new_start,
            data.newWorkerId or job.worker_id,
            data.reason,
            data.notifyClient,
        )

    def swap_worker(self, business: Business, job_id: str, data: SwapWorkerRequest) -> dict:
        job = self.get_job(job_id, business)
        if data.newWorkerId == job.worker_id:
            raise ValidationError("Job is already assigned to this worker")

        engine = self.engine_for(business)
        return self._move_job(
            business,
            engine,
            job,
            as_utc(job.scheduled_at),
            data.newWorkerId,
            data.reason,
            data.notifyClient,
        )

    def _move_job(
        self,
        business: Business,
        engine: SchedulingEngine,
        job: Job,
        new_start: datetime,
        worker_id: Optional[str],
        reason: Optional[str],
        notify_client: bool,
    ) -> dict:
        """Re-check the target slot and write it under the versions seen before the check"""
        if not worker_id:
            raise ValidationError("Job has no assigned worker; newWorkerId is required")

        worker = self.get_worker(worker_id, business)
        if worker.status != "active":
            raise AvailabilityConflictError("Worker is not active", {"workerId": worker.id})

        # Versions must be read before the availability check
        expected_job_version = job.version
        expected_worker_version = worker.schedule_version
        previous_start = as_utc(job.scheduled_at)
        previous_worker_id = job.worker_id

        duration = self.job_duration(job)
        new_end = new_start + timedelta(minutes=duration)
        horizon_end = new_start + timedelta(days=SCHEDULING_SEARCH_DAYS + 1)
        calendar = self.load_calendars([worker], new_start, horizon_end, engine.tz)[0]

        result = engine.checker.check(calendar, new_start, new_end, job.id)
        if not result.available:
            alternative = engine.search.find_next(
                calendar, duration, new_start, exclude_job_id=job.id
            )
            logger.warning(
                f"⚠️ Reschedule of job {job.id} to {new_start.isoformat()} rejected: {result.reason}"
            )
            raise AvailabilityConflictError(
                result.reason,
                {
                    "withinHours": result.within_hours,
                    "conflictingJobs": result.conflict_titles,
                    "suggestedAlternative": (
                        {
                            "dateTime": alternative.start.isoformat(),
                            "workerId": alternative.worker_id,
                        }
                        if alternative
                        else None
                    ),
                },
            )

        job = self.repo.reschedule_job(
            self.db, job, new_start, worker.id, expected_job_version, expected_worker_version
        )
        worker_changed = previous_worker_id != worker.id
        logger.info(
            f"✅ Job {job.id} rescheduled to {new_start.isoformat()} "
            f"(worker {worker.id}{', changed' if worker_changed else ''})"
        )

        client_notified = False
        notification_error = None
        if notify_client:
            try:
                outcome = self.notifier.notify(
                    self.db, job, new_start, engine.tz, previous_worker_id, reason
                )
                client_notified = outcome["client_notified"]
                notification_error = outcome["client_error"]
            except Exception as e:
                # The reschedule stays committed
                notification_error = str(e)
                logger.error(f"❌ Notification failed for rescheduled job {job.id}: {e}")

        return {
            "success": True,
            "message": "Job rescheduled successfully",
            "job": job_summary(job),
            "previousDateTime": previous_start,
            "previousWorkerId": previous_worker_id,
            "workerChanged": worker_changed,
            "reason": reason,
            "clientNotified": client_notified,
            "notificationError": notification_error,
        }
