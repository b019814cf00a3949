"""
Clock capability and business-local time arithmetic.

Nothing in the scheduling engine reads the system clock or the process
timezone directly: the current instant comes from a Clock and every
wall-clock conversion goes through an explicit business ZoneInfo.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

MINUTES_PER_DAY = 24 * 60


class Clock(Protocol):
    def now(self) -> datetime:
        """Current instant, timezone-aware"""
        ...


class SystemClock:
    """Production clock"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock pinned to one instant (tests, replays)"""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            raise ValueError("FixedClock needs a timezone-aware instant")
        self._instant = instant

    def now(self) -> datetime:
        return self._instant


def parse_hhmm(value: str) -> int:
    """'09:30' -> 570 minutes after midnight ('24:00' -> 1440)"""
    hours, minutes = value[:5].split(":")
    return int(hours) * 60 + int(minutes)


def format_hhmm(minute_of_day: int) -> str:
    return f"{minute_of_day // 60:02d}:{minute_of_day % 60:02d}"


def ceil_to_tick(minute_of_day: int, tick_minutes: int) -> int:
    return -(-minute_of_day // tick_minutes) * tick_minutes


def day_of_week(day: date) -> int:
    """Weekday number as stored by the availability editor: 0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def to_utc(instant: datetime) -> datetime:
    return instant.astimezone(timezone.utc)


def as_aware(instant: datetime, tz: ZoneInfo) -> datetime:
    """Attach the business timezone to naive input; aware input is left alone"""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant


def local_instant(day: date, minute_of_day: int, tz: ZoneInfo) -> datetime:
    """Instant (UTC) for a business-local wall-clock minute on `day`"""
    local = datetime.combine(day, time.min, tzinfo=tz) + timedelta(minutes=minute_of_day)
    return local.astimezone(timezone.utc)


def local_minutes(start: datetime, end: datetime, tz: ZoneInfo) -> tuple[date, int, Optional[int]]:
    """
    Map an interval onto the business-local calendar.

    Returns (local date of start, start minute, end minute). The end minute
    is 1440 when the interval ends exactly at the following midnight and
    None when it ends any later (the interval crosses into another day).
    Partial minutes widen the range: the start rounds down, the end up.
    """
    local_start = start.astimezone(tz)
    local_end = end.astimezone(tz)
    day = local_start.date()
    start_minute = local_start.hour * 60 + local_start.minute

    if local_end.date() == day:
        end_minute = local_end.hour * 60 + local_end.minute
        if local_end.second or local_end.microsecond:
            end_minute += 1
    elif local_end.date() == day + timedelta(days=1) and local_end.time() == time.min:
        end_minute = MINUTES_PER_DAY
    else:
        end_minute = None

    return day, start_minute, end_minute


def wall_clock_exists(instant: datetime, day: date, minute_of_day: int, tz: ZoneInfo) -> bool:
    """False when `instant` came from a wall-clock time skipped by a DST gap"""
    local = instant.astimezone(tz)
    return local.date() == day and local.hour * 60 + local.minute == minute_of_day


def week_bounds(anchor: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Sunday 00:00 to next Sunday 00:00 (business-local) around `anchor`, as UTC instants"""
    local_day = anchor.astimezone(tz).date()
    week_start = local_day - timedelta(days=day_of_week(local_day))
    return (
        local_instant(week_start, 0, tz),
        local_instant(week_start + timedelta(days=7), 0, tz),
    )


def iter_days(first: date, last: date):
    """Dates from first to last inclusive"""
    current = first
    while current <= last:
        yield current
        current += timedelta(days=1)
