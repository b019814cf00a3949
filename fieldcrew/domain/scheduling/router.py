"""Scheduling router - FastAPI endpoints for worker availability and job rescheduling"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_business
from ...database import get_db
from ...models import Business
from ...services.notification_service import RescheduleNotifier
from .clock import Clock, SystemClock
from .schemas import (
    CheckAvailabilityRequest,
    GenerateOptionsRequest,
    GenerateOptionsResponse,
    ManualRescheduleRequest,
    NextAvailableRequest,
    NextAvailableResponse,
    RescheduleResponse,
    SuggestionRequest,
    SwapWorkerRequest,
    WorkerDayAvailabilityResponse,
)
from .service import RescheduleService

logger = logging.getLogger(__name__)

jobs_router = APIRouter(prefix="/jobs", tags=["Reschedule"])
workers_router = APIRouter(prefix="/workers", tags=["Worker Availability"])


def get_clock() -> Clock:
    """Dependency injection for the current-time source"""
    return SystemClock()


def get_notifier() -> RescheduleNotifier:
    return RescheduleNotifier()


def get_reschedule_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: RescheduleNotifier = Depends(get_notifier),
) -> RescheduleService:
    """Dependency injection for RescheduleService"""
    return RescheduleService(db, clock, notifier)


# ============================================================================
# JOB RESCHEDULING
# ============================================================================


@jobs_router.post("/{job_id}/reschedule/generate-options", response_model=GenerateOptionsResponse)
async def generate_reschedule_options(
    job_id: str,
    data: Optional[GenerateOptionsRequest] = None,
    business: Business = Depends(get_current_business),
    service: RescheduleService = Depends(get_reschedule_service),
):
    """Ranked worker/time options for moving a job"""
    data = data or GenerateOptionsRequest()
    return GenerateOptionsResponse(**service.generate_options(business, job_id, data.daysAhead))


@jobs_router.post("/{job_id}/reschedule/manual", response_model=RescheduleResponse)
async def manual_reschedule(
    job_id: str,
    data: ManualRescheduleRequest,
    business: Business = Depends(get_current_business),
    service: RescheduleService = Depends(get_reschedule_service),
):
    """Move a job to a chosen time and optionally another worker"""
    return RescheduleResponse(**service.manual_reschedule(business, job_id, data))


@jobs_router.get("/{job_id}/swap-worker")
async def get_swap_candidates(
    job_id: str,
    includeUnavailable: bool = Query(False),
    business: Business = Depends(get_current_business),
    service: RescheduleService = Depends(get_reschedule_service),
):
    """Workers who could take the job at its current time, least busy first"""
    return service.compatible_workers(business, job_id, includeUnavailable)


@jobs_router.post("/{job_id}/swap-worker", response_model=RescheduleResponse)
async def swap_worker(
    job_id: str,
    data: SwapWorkerRequest,
    business: Business = Depends(get_current_business),
    service: RescheduleService = Depends(get_reschedule_service),
):
    """Reassign a job to another worker at the same time"""
    return RescheduleResponse(**service.swap_worker(business, job_id, data))


# ============================================================================
# WORKER AVAILABILITY
# ============================================================================


@workers_router.post("/availability/next-available", response_model=NextAvailableResponse)
async def next_available(
    data: NextAvailableRequest,
    business: Business = Depends(get_current_business),
    service: RescheduleService = Depends(get_reschedule_service),
):
    """First open slot of the requested duration for every active worker"""
    result = service.next_available(
        business,
        data.duration,
        data.searchStartDate,
        data.searchDaysLimit,
        data.jobId,
    )
    return NextAvailableResponse(**result)


@workers_router.post("/availability/suggestions")
async def availability_suggestions(
    data: SuggestionRequest,
    business: Business = Depends(get_current_business),
    service: RescheduleService = Depends(get_reschedule_service),
):
    """Worker analysis, time alternatives and best combinations for a job or duration"""
    return service.suggestions(business, data)


@workers_router.post("/availability/check")
async def check_availability(
    data: CheckAvailabilityRequest,
    business: Business = Depends(get_current_business),
    service: RescheduleService = Depends(get_reschedule_service),
):
    """Check one worker, or every active worker, at a fixed time"""
    return service.check_availability(business, data)


@workers_router.get("/{worker_id}/availability", response_model=WorkerDayAvailabilityResponse)
async def get_worker_availability(
    worker_id: str,
    day: Optional[date] = Query(None, alias="date"),
    business: Business = Depends(get_current_business),
    service: RescheduleService = Depends(get_reschedule_service),
):
    """A worker's weekly hours, exceptions and (for a date) resolved open windows"""
    return WorkerDayAvailabilityResponse(
        **service.worker_day_availability(business, worker_id, day)
    )
