"""Conflict checking - booking overlap plus open-window containment for one candidate interval"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from .availability import AvailabilityResolver
from .calendar import BookedInterval, DayAvailability, WorkerCalendar
from .clock import local_minutes

logger = logging.getLogger(__name__)

OUTSIDE_HOURS = "Outside available hours"


@dataclass
class AvailabilityCheck:
    available: bool
    within_hours: bool
    conflicting_jobs: list[BookedInterval] = field(default_factory=list)
    day: Optional[DayAvailability] = None

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicting_jobs)

    @property
    def conflict_titles(self) -> list[str]:
        return [b.title for b in self.conflicting_jobs]

    @property
    def conflict_ids(self) -> list[str]:
        return [b.job_id for b in self.conflicting_jobs]

    @property
    def reason(self) -> str:
        reasons = []
        if not self.within_hours:
            reasons.append(OUTSIDE_HOURS)
        if self.conflicting_jobs:
            reasons.append(f"Conflicts: {', '.join(self.conflict_titles)}")
        return "; ".join(reasons) or "Available"


class ConflictChecker:
    def __init__(self, tz: ZoneInfo, resolver: Optional[AvailabilityResolver] = None):
        self.tz = tz
        self.resolver = resolver or AvailabilityResolver()

    def check(
        self,
        calendar: WorkerCalendar,
        start: datetime,
        end: datetime,
        exclude_job_id: Optional[str] = None,
    ) -> AvailabilityCheck:
        """
        Available only when no live booking overlaps [start, end) and the
        whole interval sits inside one open window of its local date.
        """
        conflicts = calendar.bookings.overlapping(start, end, exclude_job_id)
        within_hours, day = self.within_hours(calendar, start, end)

        return AvailabilityCheck(
            available=within_hours and not conflicts,
            within_hours=within_hours,
            conflicting_jobs=conflicts,
            day=day,
        )

    def within_hours(
        self, calendar: WorkerCalendar, start: datetime, end: datetime
    ) -> tuple[bool, DayAvailability]:
        local_day, start_minute, end_minute = local_minutes(start, end, self.tz)
        day = self.resolver.resolve(calendar, local_day)
        return day.window_for(start_minute, end_minute) is not None, day
