"""
Availability resolution - merges a worker's recurring weekly hours with
date-specific exceptions into the open windows for one calendar date.
"""

import logging
from datetime import date
from typing import Iterable, Mapping, Optional

from .calendar import (
    AvailabilityStatus,
    DateException,
    DayAvailability,
    OpenWindow,
    WeeklySlot,
    WorkerCalendar,
)
from .clock import MINUTES_PER_DAY, day_of_week, parse_hhmm

logger = logging.getLogger(__name__)

FULL_DAY = OpenWindow(0, MINUTES_PER_DAY)


class AvailabilityResolver:
    """Answers "when is this worker open on this date" for one worker at a time"""

    def resolve(self, calendar: WorkerCalendar, day: date) -> DayAvailability:
        return self.resolve_slots(calendar.weekly_slots, calendar.exceptions, day)

    @staticmethod
    def resolve_slots(
        weekly_slots: Iterable[WeeklySlot],
        exceptions: Mapping[date, DateException],
        day: date,
    ) -> DayAvailability:
        """
        An exception for the date fully overrides the weekly schedule:
        closed all day, open for its sub-range, or open all day when it
        has no range. Without one, the weekly slots for that weekday apply.
        """
        exception: Optional[DateException] = exceptions.get(day)

        if exception is not None:
            if not exception.is_available:
                return DayAvailability(
                    date=day,
                    status=AvailabilityStatus.UNAVAILABLE,
                    reason=exception.reason,
                )
            if exception.has_range:
                windows = _valid_windows(
                    [(parse_hhmm(exception.start_time), parse_hhmm(exception.end_time))]
                )
            else:
                windows = (FULL_DAY,)
            return DayAvailability(
                date=day,
                status=AvailabilityStatus.EXCEPTION,
                windows=windows,
                reason=exception.reason,
            )

        weekday = day_of_week(day)
        matching = [s for s in weekly_slots if s.day_of_week == weekday]
        if not matching:
            return DayAvailability(date=day, status=AvailabilityStatus.NONE)

        windows = _valid_windows((s.start_minute, s.end_minute) for s in matching)
        if not windows:
            return DayAvailability(date=day, status=AvailabilityStatus.NONE)

        return DayAvailability(date=day, status=AvailabilityStatus.REGULAR, windows=windows)


def _valid_windows(ranges) -> tuple[OpenWindow, ...]:
    """Ordered windows, dropping empty or overnight (end <= start) ranges"""
    windows = []
    for start, end in ranges:
        if end <= start:
            logger.debug(f"Ignoring availability range {start}-{end}: end is not after start")
            continue
        windows.append(OpenWindow(start, min(end, MINUTES_PER_DAY)))
    return tuple(sorted(windows, key=lambda w: w.start_minute))
