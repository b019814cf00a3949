"""
Forward slot search - walks day by day from a start instant and returns
the first tick-aligned start where a job of the requested duration fits
an open window and clears the conflict check.
"""

import logging
from datetime import datetime, timedelta
from typing import Iterator, Optional

from ...config import SCHEDULING_SEARCH_DAYS, SCHEDULING_TICK_MINUTES
from .calendar import CandidateSlot, WorkerCalendar
from .clock import ceil_to_tick, local_instant, to_utc, wall_clock_exists
from .conflicts import ConflictChecker
from .errors import ValidationError

logger = logging.getLogger(__name__)


class SlotSearch:
    def __init__(
        self,
        checker: ConflictChecker,
        tick_minutes: int = SCHEDULING_TICK_MINUTES,
        horizon_days: int = SCHEDULING_SEARCH_DAYS,
    ):
        if tick_minutes <= 0:
            raise ValueError("tick_minutes must be positive")
        self.checker = checker
        self.tz = checker.tz
        self.tick_minutes = tick_minutes
        self.horizon_days = horizon_days

    def find_next(
        self,
        calendar: WorkerCalendar,
        duration_minutes: int,
        search_start: datetime,
        horizon_days: Optional[int] = None,
        exclude_job_id: Optional[str] = None,
    ) -> Optional[CandidateSlot]:
        """First qualifying slot, or None when the horizon is exhausted"""
        return next(
            self.iter_slots(
                calendar, duration_minutes, search_start, horizon_days, exclude_job_id
            ),
            None,
        )

    def iter_slots(
        self,
        calendar: WorkerCalendar,
        duration_minutes: int,
        search_start: datetime,
        horizon_days: Optional[int] = None,
        exclude_job_id: Optional[str] = None,
        search_end: Optional[datetime] = None,
    ) -> Iterator[CandidateSlot]:
        """Qualifying slots in chronological order, strictly after `search_start`"""
        if duration_minutes is None or duration_minutes <= 0:
            raise ValidationError("Job duration must be a positive number of minutes")

        horizon = self.horizon_days if horizon_days is None else horizon_days
        search_start = to_utc(search_start)
        local_start = search_start.astimezone(self.tz)
        first_day = local_start.date()
        start_minute = local_start.hour * 60 + local_start.minute
        duration = timedelta(minutes=duration_minutes)

        for offset in range(horizon):
            day = first_day + timedelta(days=offset)
            availability = self.checker.resolver.resolve(calendar, day)
            if not availability.is_open:
                logger.debug(
                    f"Worker {calendar.worker_id} closed on {day} ({availability.status.value})"
                )
                continue

            for window in availability.windows:
                floor = max(window.start_minute, start_minute) if offset == 0 else window.start_minute
                tick = ceil_to_tick(floor, self.tick_minutes)

                while tick + duration_minutes <= window.end_minute:
                    minute = tick
                    slot_start = local_instant(day, minute, self.tz)
                    tick += self.tick_minutes

                    if not wall_clock_exists(slot_start, day, minute, self.tz):
                        continue
                    if slot_start <= search_start:
                        continue
                    if search_end is not None and slot_start >= search_end:
                        return

                    slot_end = slot_start + duration
                    result = self.checker.check(calendar, slot_start, slot_end, exclude_job_id)
                    if result.available:
                        yield CandidateSlot(
                            worker_id=calendar.worker_id,
                            start=slot_start,
                            end=slot_end,
                            source=availability.source,
                        )
