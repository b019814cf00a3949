"""Shared test fixtures and helpers."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fieldcrew.database import Base, get_db
from fieldcrew.domain.scheduling.calendar import (
    BookedInterval,
    BookingIndex,
    DateException,
    WeeklySlot,
    WorkerCalendar,
    WorkerProfile,
)
from fieldcrew.domain.scheduling.clock import FixedClock, local_instant, parse_hhmm
from fieldcrew.domain.scheduling.router import get_clock
from fieldcrew.domain.scheduling.service import RescheduleService
from fieldcrew.main import app
from fieldcrew.models import (
    Business,
    Client,
    Job,
    Worker,
    WorkerAvailabilityException,
    WorkerWeeklyAvailability,
)

UTC = timezone.utc
NEW_YORK = ZoneInfo("America/New_York")
SUNDAY = date(2026, 10, 18)
MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
# Sunday noon, before every Monday slot used in the tests
NOW = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)

NINE_TO_FIVE = ("09:00", "17:00")
WEEKDAYS_NINE_TO_FIVE = {day: [NINE_TO_FIVE] for day in (1, 2, 3, 4, 5)}


def at(day: date, hhmm: str, tz=UTC) -> datetime:
    """Instant (UTC) for a wall-clock time on `day` in `tz`"""
    return local_instant(day, parse_hhmm(hhmm), tz)


def parse_instant(value: str) -> datetime:
    """Parse an ISO instant from a JSON response ('Z' or offset)"""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


# ============================================================================
# PURE ENGINE HELPERS
# ============================================================================


def make_booking(
    start: datetime,
    minutes: int = 60,
    job_id: str = "job-1",
    title: str = "Booked job",
    status: str = "scheduled",
) -> BookedInterval:
    return BookedInterval(
        job_id=job_id, title=title, start=start, duration_minutes=minutes, status=status
    )


def make_calendar(
    weekly: Optional[dict[int, list[tuple[str, str]]]] = None,
    exceptions: Optional[list[DateException]] = None,
    bookings: Optional[list[BookedInterval]] = None,
    worker_id: str = "worker-1",
    name: str = "Alex",
    status: str = "active",
) -> WorkerCalendar:
    """Helper to create a WorkerCalendar; `weekly` maps day_of_week (0 = Sunday) to ranges"""
    weekly = {1: [NINE_TO_FIVE]} if weekly is None else weekly
    bookings = bookings or []
    return WorkerCalendar(
        worker=WorkerProfile(id=worker_id, name=name, status=status),
        weekly_slots=[
            WeeklySlot(day_of_week=dow, start_time=start, end_time=end)
            for dow, ranges in weekly.items()
            for start, end in ranges
        ],
        exceptions={e.date: e for e in exceptions or []},
        bookings=BookingIndex(bookings),
        billable=[b for b in bookings if b.status != "cancelled"],
    )


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def business(db_session):
    return make_business(db_session)


@pytest.fixture
def service(db_session, clock):
    return RescheduleService(db_session, clock)


@pytest.fixture
def api_client(db_session, clock):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_business(db, name: str = "Sparkle Crew", tz: str = "UTC") -> Business:
    business = Business(name=name, timezone=tz)
    db.add(business)
    db.commit()
    return business


def make_worker(
    db,
    business: Business,
    name: str = "Alex",
    weekly: Optional[dict[int, list[tuple[str, str]]]] = None,
    status: str = "active",
    email: Optional[str] = None,
) -> Worker:
    """Helper to create a worker; defaults to Monday 09:00-17:00"""
    weekly = {1: [NINE_TO_FIVE]} if weekly is None else weekly
    worker = Worker(
        business_id=business.id,
        name=name,
        status=status,
        email=email or f"{name.lower()}@example.com",
    )
    db.add(worker)
    db.flush()
    for dow, ranges in weekly.items():
        for start, end in ranges:
            db.add(
                WorkerWeeklyAvailability(
                    worker_id=worker.id, day_of_week=dow, start_time=start, end_time=end
                )
            )
    db.commit()
    return worker


def add_exception(
    db,
    worker: Worker,
    day: date,
    is_available: bool = False,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    reason: Optional[str] = None,
) -> WorkerAvailabilityException:
    exception = WorkerAvailabilityException(
        worker_id=worker.id,
        date=day,
        is_available=is_available,
        start_time=start_time,
        end_time=end_time,
        reason=reason,
    )
    db.add(exception)
    db.commit()
    return exception


def make_client(
    db,
    business: Business,
    name: str = "Jordan Lee",
    phone: Optional[str] = "555-123-4567",
    email: Optional[str] = "jordan@example.com",
) -> Client:
    client = Client(business_id=business.id, name=name, phone=phone, email=email)
    db.add(client)
    db.commit()
    return client


def make_job(
    db,
    business: Business,
    worker: Optional[Worker],
    start: datetime,
    minutes: Optional[int] = 60,
    title: str = "Office clean",
    status: str = "scheduled",
    client: Optional[Client] = None,
) -> Job:
    """Helper to create a job; `start` is aware and stored as naive UTC"""
    job = Job(
        business_id=business.id,
        worker_id=worker.id if worker else None,
        client_id=client.id if client else None,
        title=title,
        scheduled_at=start.astimezone(UTC).replace(tzinfo=None),
        duration_minutes=minutes,
        status=status,
    )
    db.add(job)
    db.commit()
    return job
