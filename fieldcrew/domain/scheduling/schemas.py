"""Scheduling domain schemas - Pydantic models for validation"""

import datetime as dt
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...config import SCHEDULING_SEARCH_DAYS, SCHEDULING_SUGGESTION_DAYS
from ...shared.validators import validate_uuid


def _uuid_or_none(v: Optional[str], field_name: str) -> Optional[str]:
    if v is None:
        return v
    if not validate_uuid(v):
        raise ValueError(f"{field_name} must be a valid UUID")
    return v


def _positive_minutes(v: Optional[int]) -> Optional[int]:
    if v is not None and v <= 0:
        raise ValueError("duration must be a positive number of minutes")
    return v


# ============================================================================
# REQUESTS
# ============================================================================


class GenerateOptionsRequest(BaseModel):
    """Schema for generating reschedule options for a job"""

    daysAhead: int = SCHEDULING_SEARCH_DAYS

    @field_validator("daysAhead")
    @classmethod
    def validate_days_ahead(cls, v: int) -> int:
        if v < 1 or v > 30:
            raise ValueError("daysAhead must be between 1 and 30")
        return v


class NextAvailableRequest(BaseModel):
    """Schema for next-available slot lookup across workers"""

    jobId: Optional[str] = None
    duration: int
    searchStartDate: datetime
    searchDaysLimit: int = SCHEDULING_SEARCH_DAYS

    @field_validator("jobId")
    @classmethod
    def validate_job_id(cls, v: Optional[str]) -> Optional[str]:
        return _uuid_or_none(v, "jobId")

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: int) -> int:
        return _positive_minutes(v)

    @field_validator("searchDaysLimit")
    @classmethod
    def validate_days_limit(cls, v: int) -> int:
        if v < 1 or v > 30:
            raise ValueError("searchDaysLimit must be between 1 and 30")
        return v


class SuggestionRequest(BaseModel):
    """Schema for reschedule suggestions (targeted or all-workers mode)"""

    jobId: Optional[str] = None
    workerId: Optional[str] = None
    preferredDateTime: Optional[datetime] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    duration: Optional[int] = None  # defaults to the job's duration
    searchDays: int = SCHEDULING_SUGGESTION_DAYS
    allWorkers: bool = False

    @field_validator("jobId", "workerId")
    @classmethod
    def validate_ids(cls, v: Optional[str], info) -> Optional[str]:
        return _uuid_or_none(v, info.field_name)

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v: Optional[int]) -> Optional[int]:
        return _positive_minutes(v)

    @field_validator("searchDays")
    @classmethod
    def validate_search_days(cls, v: int) -> int:
        if v < 1 or v > 30:
            raise ValueError("searchDays must be between 1 and 30")
        return v


class CheckAvailabilityRequest(BaseModel):
    """Schema for checking one worker (or every worker) at a fixed time"""

    workerId: Optional[str] = None
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    dateTime: Optional[datetime] = None
    durationMinutes: Optional[int] = None
    excludeJobId: Optional[str] = None
    getAllWorkers: bool = False

    @field_validator("workerId", "excludeJobId")
    @classmethod
    def validate_ids(cls, v: Optional[str], info) -> Optional[str]:
        return _uuid_or_none(v, info.field_name)

    @field_validator("durationMinutes")
    @classmethod
    def validate_duration(cls, v: Optional[int]) -> Optional[int]:
        return _positive_minutes(v)


class ManualRescheduleRequest(BaseModel):
    """Schema for moving a job to a chosen time (and optionally worker)"""

    newDateTime: datetime
    newWorkerId: Optional[str] = None
    reason: Optional[str] = None
    notifyClient: bool = True

    @field_validator("newWorkerId")
    @classmethod
    def validate_worker_id(cls, v: Optional[str]) -> Optional[str]:
        return _uuid_or_none(v, "newWorkerId")


class SwapWorkerRequest(BaseModel):
    """Schema for reassigning a job to another worker at the same time"""

    newWorkerId: str
    reason: Optional[str] = None
    notifyClient: bool = True

    @field_validator("newWorkerId")
    @classmethod
    def validate_worker_id(cls, v: str) -> str:
        return _uuid_or_none(v, "newWorkerId")


# ============================================================================
# RESPONSES
# ============================================================================


class JobSummary(BaseModel):
    """Schema for the job echoed in reschedule responses"""

    id: str
    title: str
    scheduledAt: datetime
    durationMinutes: Optional[int] = None
    status: str
    workerId: Optional[str] = None
    workerName: Optional[str] = None
    version: int


class ClientSummary(BaseModel):
    id: str
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class RescheduleOption(BaseModel):
    suggested_date: datetime
    worker_id: str
    worker_name: str
    confidence_score: float
    reason: str


class GenerateOptionsResponse(BaseModel):
    job: JobSummary
    client: Optional[ClientSummary] = None
    rescheduleOptions: list[RescheduleOption]
    generatedAt: datetime


class NextAvailableSlot(BaseModel):
    workerId: str
    workerName: str
    dateTime: datetime
    endTime: datetime
    utilizationPercentage: float
    source: str


class NextAvailableResponse(BaseModel):
    slots: list[NextAvailableSlot]
    searchStartDate: datetime
    searchDaysLimit: int


class RescheduleResponse(BaseModel):
    """Schema for manual reschedule and swap-worker results"""

    success: bool = True
    message: str
    job: JobSummary
    previousDateTime: datetime
    previousWorkerId: Optional[str] = None
    workerChanged: bool
    reason: Optional[str] = None
    clientNotified: bool
    notificationError: Optional[str] = None


class WorkerDayAvailabilityResponse(BaseModel):
    workerId: str
    workerName: str
    status: str
    weeklySlots: list[dict]
    exceptions: list[dict]
    date: Optional[dt.date] = None
    dayStatus: Optional[str] = None
    windows: list[dict] = []
    bookings: list[dict] = []
