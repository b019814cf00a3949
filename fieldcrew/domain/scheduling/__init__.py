"""
Scheduling domain - worker availability resolution and job rescheduling

Engine modules (pure, no database access):
- clock.py         Clock capability and business-local time arithmetic
- calendar.py      Value types and the per-worker booking index
- availability.py  Weekly slots + date exceptions -> open windows for a date
- conflicts.py     Booking overlap and window containment for one interval
- slot_search.py   Forward search for the next open tick-aligned slot
- utilization.py   Weekly utilization and efficiency rating
- ranking.py       Worker/time alternatives, combinations, day analysis
- concurrency.py   Bounded per-worker fan-out

Service modules:
- repository.py    Store reads and the versioned reschedule write
- service.py       RescheduleService (orchestration)
- router.py        /jobs/... and /workers/... endpoints
"""

from .router import jobs_router, workers_router

__all__ = ["jobs_router", "workers_router"]
