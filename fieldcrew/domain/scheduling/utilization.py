"""Worker utilization - booked minutes in a week against recurring weekly capacity"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from ...config import EFFICIENCY_BUSY_MAX, EFFICIENCY_GOOD_MAX, EFFICIENCY_OPTIMAL_MAX
from .calendar import CANCELLED, WorkerCalendar
from .clock import week_bounds


class EfficiencyRating(str, Enum):
    OPTIMAL = "optimal"
    GOOD = "good"
    BUSY = "busy"
    OVERLOADED = "overloaded"


def efficiency_rating(
    utilization: float,
    optimal_max: float = EFFICIENCY_OPTIMAL_MAX,
    good_max: float = EFFICIENCY_GOOD_MAX,
    busy_max: float = EFFICIENCY_BUSY_MAX,
) -> EfficiencyRating:
    if utilization <= optimal_max:
        return EfficiencyRating.OPTIMAL
    if utilization <= good_max:
        return EfficiencyRating.GOOD
    if utilization <= busy_max:
        return EfficiencyRating.BUSY
    return EfficiencyRating.OVERLOADED


def utilization_percentage(booked_minutes: int, capacity_minutes: int) -> float:
    """0 without capacity, otherwise capped at 100"""
    if capacity_minutes <= 0:
        return 0.0
    return min(100.0, 100.0 * booked_minutes / capacity_minutes)


@dataclass(frozen=True)
class WorkloadSummary:
    worker_id: str
    week_start: datetime
    week_end: datetime
    booked_minutes: int
    capacity_minutes: int
    utilization: float
    rating: EfficiencyRating

    @property
    def booked_hours(self) -> float:
        return self.booked_minutes / 60

    @property
    def capacity_hours(self) -> float:
        return self.capacity_minutes / 60

    @property
    def is_optimal(self) -> bool:
        return self.rating == EfficiencyRating.OPTIMAL


class UtilizationCalculator:
    def __init__(self, tz: ZoneInfo):
        self.tz = tz
        self._cache: dict[tuple[str, datetime, Optional[str]], WorkloadSummary] = {}

    def calculate(
        self,
        calendar: WorkerCalendar,
        anchor: datetime,
        exclude_job_id: Optional[str] = None,
    ) -> WorkloadSummary:
        """
        Utilization for the Sunday-to-Sunday week containing `anchor`.

        Capacity is the recurring weekly schedule only; date exceptions do
        not change it.
        """
        week_start, week_end = week_bounds(anchor, self.tz)
        key = (calendar.worker_id, week_start, exclude_job_id)
        if key in self._cache:
            return self._cache[key]

        booked = sum(
            b.duration_minutes
            for b in calendar.billable
            if b.status != CANCELLED
            and b.job_id != exclude_job_id
            and week_start <= b.start < week_end
        )
        capacity = sum(slot.minutes for slot in calendar.weekly_slots)
        utilization = utilization_percentage(booked, capacity)

        summary = WorkloadSummary(
            worker_id=calendar.worker_id,
            week_start=week_start,
            week_end=week_end,
            booked_minutes=booked,
            capacity_minutes=capacity,
            utilization=utilization,
            rating=efficiency_rating(utilization),
        )
        self._cache[key] = summary
        return summary
