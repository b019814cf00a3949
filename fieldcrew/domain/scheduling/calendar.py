"""Value types the scheduling engine computes over (never ORM rows)"""

from bisect import bisect_left
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from .clock import parse_hhmm

CANCELLED = "cancelled"
COMPLETED = "completed"
# Statuses that never block a worker's time
NON_BLOCKING_STATUSES = frozenset({CANCELLED, COMPLETED})


class AvailabilityStatus(str, Enum):
    REGULAR = "regular"
    EXCEPTION = "exception"
    UNAVAILABLE = "unavailable"
    NONE = "none"


class SlotSource(str, Enum):
    WEEKLY = "weekly"
    EXCEPTION = "exception"


@dataclass(frozen=True)
class WeeklySlot:
    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    start_time: str
    end_time: str

    @property
    def start_minute(self) -> int:
        return parse_hhmm(self.start_time)

    @property
    def end_minute(self) -> int:
        return parse_hhmm(self.end_time)

    @property
    def minutes(self) -> int:
        return max(0, self.end_minute - self.start_minute)


@dataclass(frozen=True)
class DateException:
    date: date
    is_available: bool
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None

    @property
    def has_range(self) -> bool:
        return bool(self.start_time and self.end_time)


@dataclass(frozen=True)
class OpenWindow:
    """Contiguous open interval, minutes after local midnight, half-open"""

    start_minute: int
    end_minute: int

    def contains(self, start_minute: int, end_minute: int) -> bool:
        return self.start_minute <= start_minute and end_minute <= self.end_minute


@dataclass(frozen=True)
class DayAvailability:
    date: date
    status: AvailabilityStatus
    windows: tuple[OpenWindow, ...] = ()
    reason: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return bool(self.windows)

    @property
    def source(self) -> SlotSource:
        if self.status == AvailabilityStatus.EXCEPTION:
            return SlotSource.EXCEPTION
        return SlotSource.WEEKLY

    def window_for(self, start_minute: int, end_minute: Optional[int]) -> Optional[OpenWindow]:
        """The single window holding the whole sub-range, if any"""
        if end_minute is None:
            return None
        for window in self.windows:
            if window.contains(start_minute, end_minute):
                return window
        return None


@dataclass(frozen=True)
class BookedInterval:
    job_id: str
    title: str
    start: datetime  # aware UTC
    duration_minutes: int
    status: str = "scheduled"

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    def overlaps(self, start: datetime, end: datetime) -> bool:
        # Half-open: touching endpoints do not overlap
        return start < self.end and self.start < end


@dataclass(frozen=True)
class CandidateSlot:
    worker_id: str
    start: datetime
    end: datetime
    source: SlotSource = SlotSource.WEEKLY

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)


@dataclass(frozen=True)
class WorkerProfile:
    id: str
    name: str
    status: str = "active"
    email: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class BookingIndex:
    """
    One worker's conflict-relevant bookings, sorted by start.

    Answers "bookings overlapping [start, end)" without scanning the whole
    list: a booking can only overlap if it starts before `end` and no
    earlier than `start - longest booking`.
    """

    def __init__(self, bookings=()):
        relevant = [b for b in bookings if b.status not in NON_BLOCKING_STATUSES]
        self._bookings = sorted(relevant, key=lambda b: b.start)
        self._starts = [b.start for b in self._bookings]
        self._longest = max((b.duration_minutes for b in self._bookings), default=0)

    def __len__(self) -> int:
        return len(self._bookings)

    def __iter__(self):
        return iter(self._bookings)

    def overlapping(
        self, start: datetime, end: datetime, exclude_job_id: Optional[str] = None
    ) -> list[BookedInterval]:
        lo = bisect_left(self._starts, start - timedelta(minutes=self._longest))
        hi = bisect_left(self._starts, end)
        return [
            b
            for b in self._bookings[lo:hi]
            if b.job_id != exclude_job_id and b.overlaps(start, end)
        ]

    def starting_between(
        self, start: datetime, end: datetime, exclude_job_id: Optional[str] = None
    ) -> list[BookedInterval]:
        lo = bisect_left(self._starts, start)
        hi = bisect_left(self._starts, end)
        return [b for b in self._bookings[lo:hi] if b.job_id != exclude_job_id]


@dataclass
class WorkerCalendar:
    """Snapshot of everything the engine needs about one worker for one request"""

    worker: WorkerProfile
    weekly_slots: list[WeeklySlot] = field(default_factory=list)
    exceptions: dict[date, DateException] = field(default_factory=dict)
    bookings: BookingIndex = field(default_factory=BookingIndex)
    # Non-cancelled bookings (completed included) for utilization
    billable: list[BookedInterval] = field(default_factory=list)

    @property
    def worker_id(self) -> str:
        return self.worker.id
