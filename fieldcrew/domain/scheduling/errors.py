"""Scheduling error taxonomy - rendered to JSON by the app-level exception handler"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for errors surfaced by the scheduling engine"""

    status_code = 500
    error = "scheduling_error"

    def __init__(self, detail: str, extra: Optional[dict[str, Any]] = None):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra or {}

    def to_dict(self) -> dict:
        return {"detail": self.detail, "error": self.error, **self.extra}


class ValidationError(SchedulingError):
    """Malformed, missing or out-of-range input; the operation was not attempted"""

    status_code = 400
    error = "validation_error"


class NotFoundError(SchedulingError):
    """A job, worker or business reference did not resolve"""

    status_code = 404
    error = "not_found"


class AvailabilityConflictError(SchedulingError):
    """The checked slot is not available at write time"""

    status_code = 409
    error = "availability_conflict"


class UpstreamError(SchedulingError):
    """The store was unreachable or returned something unexpected"""

    status_code = 500
    error = "upstream_error"
