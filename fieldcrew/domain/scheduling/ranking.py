"""
Reschedule suggestion ranking.

Three views over the same availability data:
- worker alternatives: who can take the job at a fixed time, least busy first
- time alternatives: canonical times of day scored by how many workers are free
- optimal combinations: (worker, time) pairs mixing time quality and worker headroom

Plus the day-by-day analysis and the plain-text recommendations shown next
to them in the reschedule UI.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Sequence

from ... import config
from .calendar import CandidateSlot, WorkerCalendar, WorkerProfile
from .clock import Clock, iter_days, local_instant, parse_hhmm
from .concurrency import fan_out
from .conflicts import AvailabilityCheck, ConflictChecker
from .slot_search import SlotSearch
from .utilization import EfficiencyRating, UtilizationCalculator, WorkloadSummary

logger = logging.getLogger(__name__)


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


@dataclass(frozen=True)
class CanonicalTime:
    minute_of_day: int
    label: TimeOfDay


def parse_canonical_times(value: str) -> tuple[CanonicalTime, ...]:
    """'09:00=morning,13:00=afternoon' -> canonical times in day order"""
    times = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        clock_time, _, label = part.partition("=")
        times.append(CanonicalTime(parse_hhmm(clock_time.strip()), TimeOfDay(label.strip())))
    return tuple(sorted(times, key=lambda t: t.minute_of_day))


DEFAULT_CANONICAL_TIMES = parse_canonical_times(config.RESCHEDULE_CANONICAL_TIMES)


@dataclass(frozen=True)
class RankingWeights:
    availability_weight: float = 50.0
    optimal_weight: float = 30.0
    conflict_penalty: float = 20.0
    morning_bonus: float = 20.0
    afternoon_bonus: float = 10.0
    other_bonus: float = 0.0
    combination_time_weight: float = 0.6
    combination_efficiency_weight: float = 0.4
    optimal_worker_bonus: float = 10.0

    @classmethod
    def from_config(cls) -> "RankingWeights":
        return cls(
            availability_weight=config.RANK_AVAILABILITY_WEIGHT,
            optimal_weight=config.RANK_OPTIMAL_WEIGHT,
            conflict_penalty=config.RANK_CONFLICT_PENALTY,
            morning_bonus=config.RANK_MORNING_BONUS,
            afternoon_bonus=config.RANK_AFTERNOON_BONUS,
            other_bonus=config.RANK_OTHER_BONUS,
            combination_time_weight=config.RANK_COMBINATION_TIME_WEIGHT,
            combination_efficiency_weight=config.RANK_COMBINATION_EFFICIENCY_WEIGHT,
            optimal_worker_bonus=config.RANK_OPTIMAL_WORKER_BONUS,
        )

    def time_of_day_bonus(self, label: TimeOfDay) -> float:
        if label == TimeOfDay.MORNING:
            return self.morning_bonus
        if label == TimeOfDay.AFTERNOON:
            return self.afternoon_bonus
        return self.other_bonus


def format_time_12h(instant: datetime) -> str:
    hour, minute = instant.hour, instant.minute
    period = "AM" if hour < 12 else "PM"
    display_hour = hour if hour <= 12 else hour - 12
    if display_hour == 0:
        display_hour = 12
    return f"{display_hour}:{minute:02d} {period}"


def _iso(instant: Optional[datetime]) -> Optional[str]:
    return instant.isoformat() if instant else None


@dataclass
class WorkerAlternative:
    worker: WorkerProfile
    check: AvailabilityCheck
    workload: Optional[WorkloadSummary] = None
    error: Optional[str] = None

    @property
    def utilization(self) -> float:
        return self.workload.utilization if self.workload else 0.0

    def to_dict(self) -> dict:
        return {
            "workerId": self.worker.id,
            "workerName": self.worker.name,
            "email": self.worker.email,
            "isAvailable": self.check.available,
            "reason": self.error or self.check.reason,
            "conflictingJobs": self.check.conflict_titles,
            "utilizationPercentage": round(self.utilization, 1),
            "efficiencyRating": self.workload.rating.value if self.workload else None,
        }


@dataclass
class AvailableWorker:
    id: str
    name: str
    workload: float  # booked hours in the slot's week
    utilization: float
    is_optimal: bool

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "workload": round(self.workload, 2),
            "utilization": round(self.utilization, 1),
            "isOptimal": self.is_optimal,
        }


@dataclass
class TimeAlternative:
    start: datetime
    local_start: datetime
    score: float
    reason: str
    available_workers: list[AvailableWorker]
    conflicts: int
    time_of_day: TimeOfDay

    @property
    def worker_ids(self) -> set[str]:
        return {w.id for w in self.available_workers}

    def to_dict(self) -> dict:
        return {
            "dateTime": self.start.isoformat(),
            "score": round(self.score, 2),
            "reason": self.reason,
            "availableWorkers": [w.to_dict() for w in self.available_workers],
            "conflicts": self.conflicts,
            "dayOfWeek": self.local_start.strftime("%A"),
            "timeOfDay": self.time_of_day.value,
        }


@dataclass
class WorkerAnalysis:
    worker: WorkerProfile
    workload: WorkloadSummary
    conflicting_job_ids: list[str] = field(default_factory=list)
    available_slots: list[CandidateSlot] = field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return bool(self.available_slots)

    @property
    def next_available_slot(self) -> Optional[CandidateSlot]:
        return self.available_slots[0] if self.available_slots else None

    def to_dict(self) -> dict:
        return {
            "workerId": self.worker.id,
            "workerName": self.worker.name,
            "isAvailable": self.is_available,
            "currentWorkload": round(self.workload.booked_hours, 2),
            "utilizationScore": round(self.workload.utilization, 1),
            "weeklyCapacity": round(self.workload.capacity_hours, 2),
            "efficiencyRating": self.workload.rating.value,
            "conflictingJobs": self.conflicting_job_ids,
            "availableSlots": [_slot_dict(s) for s in self.available_slots],
            "nextAvailableSlot": _slot_dict(self.next_available_slot),
        }


def _slot_dict(slot: Optional[CandidateSlot]) -> Optional[dict]:
    if slot is None:
        return None
    return {"start": _iso(slot.start), "end": _iso(slot.end), "available": True}


@dataclass
class OptimalCombination:
    worker_id: str
    worker_name: str
    rating: EfficiencyRating
    utilization: float
    time: TimeAlternative
    score: float
    reason: str

    def to_dict(self) -> dict:
        return {
            "workerId": self.worker_id,
            "workerName": self.worker_name,
            "efficiencyRating": self.rating.value,
            "utilizationScore": round(self.utilization, 1),
            "dateTime": self.time.start.isoformat(),
            "timeScore": round(self.time.score, 2),
            "score": round(self.score, 2),
            "reason": self.reason,
        }


@dataclass
class DayAnalysis:
    date: date
    available_workers: int
    total_slots: int
    available_slots: int
    best_times: list[str]
    has_full_day_availability: bool

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "dayName": self.date.strftime("%A"),
            "availableWorkers": self.available_workers,
            "totalSlots": self.total_slots,
            "availableSlots": self.available_slots,
            "bestTimes": self.best_times,
            "hasFullDayAvailability": self.has_full_day_availability,
        }


def time_reason(available: int, conflicts: int, total: int, optimal: int) -> str:
    optimal_note = f" ({optimal} optimal)" if optimal > 0 else ""
    if available == total:
        return f"All workers available{optimal_note}"
    if available >= total * 0.7:
        return f"Good availability: {available}/{total} workers{optimal_note}"
    if available > 0:
        return f"Limited availability: {available}/{total} workers{optimal_note}"
    return f"No workers available{f' ({conflicts} conflicts)' if conflicts > 0 else ''}"


class SuggestionRanker:
    def __init__(
        self,
        checker: ConflictChecker,
        utilization: UtilizationCalculator,
        clock: Clock,
        weights: Optional[RankingWeights] = None,
        canonical_times: Sequence[CanonicalTime] = DEFAULT_CANONICAL_TIMES,
        slot_search: Optional[SlotSearch] = None,
    ):
        self.checker = checker
        self.tz = checker.tz
        self.utilization = utilization
        self.clock = clock
        self.weights = weights or RankingWeights.from_config()
        self.canonical_times = tuple(canonical_times)
        self.slot_search = slot_search or SlotSearch(checker)

    # ------------------------------------------------------------------
    # Worker alternatives for a fixed time
    # ------------------------------------------------------------------

    def worker_alternatives(
        self,
        calendars: Sequence[WorkerCalendar],
        start: datetime,
        end: datetime,
        exclude_job_id: Optional[str] = None,
    ) -> tuple[list[WorkerAlternative], list[WorkerAlternative]]:
        """(available sorted by ascending utilization, unavailable) for active workers"""
        active = [c for c in calendars if c.worker.is_active]

        def evaluate(calendar: WorkerCalendar) -> WorkerAlternative:
            return WorkerAlternative(
                worker=calendar.worker,
                check=self.checker.check(calendar, start, end, exclude_job_id),
                workload=self.utilization.calculate(calendar, start, exclude_job_id),
            )

        by_id = {c.worker_id: c for c in active}
        available, unavailable = [], []
        for branch in fan_out(active, evaluate, key=lambda c: c.worker_id):
            if not branch.ok:
                calendar = by_id[branch.key]
                unavailable.append(
                    WorkerAlternative(
                        worker=calendar.worker,
                        check=AvailabilityCheck(available=False, within_hours=False),
                        error="Availability lookup failed",
                    )
                )
            elif branch.value.check.available:
                available.append(branch.value)
            else:
                unavailable.append(branch.value)

        available.sort(key=lambda alt: alt.utilization)
        return available, unavailable

    # ------------------------------------------------------------------
    # Time alternatives
    # ------------------------------------------------------------------

    def score_time(
        self, available: int, optimal: int, conflicts: int, total: int, label: TimeOfDay
    ) -> float:
        if total <= 0 or available <= 0:
            return 0.0
        w = self.weights
        score = w.availability_weight * (available / total)
        score += w.optimal_weight * (optimal / available)
        score += w.time_of_day_bonus(label)
        score -= w.conflict_penalty * (conflicts / total)
        return max(0.0, min(100.0, score))

    def time_alternatives(
        self,
        calendars: Sequence[WorkerCalendar],
        search_start: datetime,
        search_end: datetime,
        duration_minutes: int,
        exclude_job_id: Optional[str] = None,
    ) -> list[TimeAlternative]:
        """Canonical times of each day in the period with at least one free worker, best first"""
        active = [c for c in calendars if c.worker.is_active]
        total = len(active)
        if total == 0:
            return []

        not_before = max(self.clock.now(), search_start)
        duration = timedelta(minutes=duration_minutes)
        first_day = search_start.astimezone(self.tz).date()
        last_day = search_end.astimezone(self.tz).date()

        suggestions = []
        for day in iter_days(first_day, last_day):
            for canonical in self.canonical_times:
                slot_start = local_instant(day, canonical.minute_of_day, self.tz)
                if slot_start < not_before:
                    continue
                slot_end = slot_start + duration

                available_workers = []
                conflicts = 0
                for calendar in active:
                    if self.checker.check(calendar, slot_start, slot_end, exclude_job_id).available:
                        workload = self.utilization.calculate(calendar, slot_start, exclude_job_id)
                        available_workers.append(
                            AvailableWorker(
                                id=calendar.worker_id,
                                name=calendar.worker.name,
                                workload=workload.booked_hours,
                                utilization=workload.utilization,
                                is_optimal=workload.is_optimal,
                            )
                        )
                    else:
                        conflicts += 1

                if not available_workers:
                    continue

                optimal = sum(1 for w in available_workers if w.is_optimal)
                suggestions.append(
                    TimeAlternative(
                        start=slot_start,
                        local_start=slot_start.astimezone(self.tz),
                        score=self.score_time(
                            len(available_workers), optimal, conflicts, total, canonical.label
                        ),
                        reason=time_reason(len(available_workers), conflicts, total, optimal),
                        available_workers=available_workers,
                        conflicts=conflicts,
                        time_of_day=canonical.label,
                    )
                )

        # Stable sort keeps chronological order among equal scores
        suggestions.sort(key=lambda s: s.score, reverse=True)
        return suggestions

    # ------------------------------------------------------------------
    # Worker analysis and optimal combinations
    # ------------------------------------------------------------------

    def analyze_workers(
        self,
        calendars: Sequence[WorkerCalendar],
        search_start: datetime,
        search_end: datetime,
        duration_minutes: int,
        exclude_job_id: Optional[str] = None,
        preview_limit: int = config.WORKER_SLOT_PREVIEW_LIMIT,
    ) -> list[WorkerAnalysis]:
        """Per-worker workload and open-slot preview, least utilized first"""
        active = [c for c in calendars if c.worker.is_active]
        horizon_days = (search_end.date() - search_start.date()).days + 2

        def analyze(calendar: WorkerCalendar) -> WorkerAnalysis:
            slots = []
            for slot in self.slot_search.iter_slots(
                calendar,
                duration_minutes,
                search_start,
                horizon_days=horizon_days,
                exclude_job_id=exclude_job_id,
                search_end=search_end,
            ):
                slots.append(slot)
                if len(slots) >= preview_limit:
                    break
            return WorkerAnalysis(
                worker=calendar.worker,
                workload=self.utilization.calculate(calendar, search_start, exclude_job_id),
                conflicting_job_ids=[
                    b.job_id
                    for b in calendar.bookings.starting_between(
                        search_start, search_end, exclude_job_id
                    )
                ],
                available_slots=slots,
            )

        analyses = [b.value for b in fan_out(active, analyze, key=lambda c: c.worker_id) if b.ok]
        analyses.sort(key=lambda a: a.workload.utilization)
        return analyses

    def optimal_combinations(
        self,
        analyses: Sequence[WorkerAnalysis],
        times: Sequence[TimeAlternative],
        limit: Optional[int] = None,
    ) -> list[OptimalCombination]:
        w = self.weights
        combinations = []
        for analysis in analyses:
            if not analysis.is_available:
                continue
            for time_alt in times:
                if analysis.worker.id not in time_alt.worker_ids:
                    continue
                utilization = analysis.workload.utilization
                score = w.combination_time_weight * time_alt.score
                score += w.combination_efficiency_weight * (100 - utilization)
                if analysis.workload.rating == EfficiencyRating.OPTIMAL:
                    score += w.optimal_worker_bonus

                local = time_alt.local_start
                reason = (
                    f"{analysis.worker.name} ({analysis.workload.rating.value} efficiency) at "
                    f"{local.strftime('%a %b')} {local.day}, {format_time_12h(local)}"
                )
                combinations.append(
                    OptimalCombination(
                        worker_id=analysis.worker.id,
                        worker_name=analysis.worker.name,
                        rating=analysis.workload.rating,
                        utilization=utilization,
                        time=time_alt,
                        score=score,
                        reason=reason,
                    )
                )

        combinations.sort(key=lambda c: c.score, reverse=True)
        return combinations[:limit] if limit is not None else combinations

    # ------------------------------------------------------------------
    # Day analysis and recommendations
    # ------------------------------------------------------------------

    def day_analysis(
        self,
        calendars: Sequence[WorkerCalendar],
        search_start: datetime,
        search_end: datetime,
        duration_minutes: int,
        exclude_job_id: Optional[str] = None,
    ) -> list[DayAnalysis]:
        active = [c for c in calendars if c.worker.is_active]
        total_workers = len(active)
        duration = timedelta(minutes=duration_minutes)
        first_day = search_start.astimezone(self.tz).date()
        last_day = search_end.astimezone(self.tz).date()

        analysis = []
        for day in iter_days(first_day, last_day):
            most_workers = 0
            total_slots = 0
            available_slots = 0
            best_times = []

            for hour in range(config.DAY_ANALYSIS_START_HOUR, config.DAY_ANALYSIS_END_HOUR + 1):
                slot_start = local_instant(day, hour * 60, self.tz)
                total_slots += 1
                free = sum(
                    1
                    for calendar in active
                    if self.checker.check(
                        calendar, slot_start, slot_start + duration, exclude_job_id
                    ).available
                )
                if free > 0:
                    available_slots += 1
                    if free >= total_workers * config.DAY_ANALYSIS_BEST_TIME_RATIO:
                        best_times.append(format_time_12h(slot_start.astimezone(self.tz)))
                most_workers = max(most_workers, free)

            analysis.append(
                DayAnalysis(
                    date=day,
                    available_workers=most_workers,
                    total_slots=total_slots,
                    available_slots=available_slots,
                    best_times=best_times,
                    has_full_day_availability=available_slots
                    >= total_slots * config.DAY_ANALYSIS_FULL_DAY_RATIO,
                )
            )

        return analysis

    @staticmethod
    def smart_recommendations(
        analyses: Sequence[WorkerAnalysis],
        days: Sequence[DayAnalysis],
        times: Sequence[TimeAlternative],
    ) -> list[str]:
        available = [a for a in analyses if a.is_available]
        optimal = [a for a in analyses if a.workload.rating == EfficiencyRating.OPTIMAL]

        if not available:
            return [
                "❌ No workers available in the selected time period. Consider:",
                "   • Extending the search period",
                "   • Reducing job duration",
                "   • Checking worker availability settings",
            ]

        recommendations = []
        if optimal:
            names = ", ".join(a.worker.name for a in optimal)
            recommendations.append(
                f"⭐ {len(optimal)} worker(s) have optimal availability: {names}"
            )

        good_days = [d for d in days if d.has_full_day_availability]
        if good_days:
            recommendations.append(
                f"📅 Best days: {', '.join(d.date.strftime('%A') for d in good_days[:3])}"
            )

        if any(t.time_of_day == TimeOfDay.MORNING for t in times):
            recommendations.append("🌅 Morning slots generally have better availability")

        busy = [
            a
            for a in analyses
            if a.workload.rating in (EfficiencyRating.BUSY, EfficiencyRating.OVERLOADED)
        ]
        if busy and optimal:
            recommendations.append(
                f"⚖️ Consider assigning to {optimal[0].worker.name} to balance workload"
            )

        return recommendations
