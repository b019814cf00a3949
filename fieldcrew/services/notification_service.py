"""
Reschedule Notification Service
Queues client and worker notifications after a job is moved.
Delivery (SMS/email) happens outside this service; rows are recorded as pending.
"""

import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Job, RescheduleNotification, Worker
from ..shared.validators import validate_email, validate_us_phone

logger = logging.getLogger(__name__)


def _client_channel(phone: Optional[str], email: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """SMS when the client has a usable phone number, otherwise email"""
    if phone:
        try:
            return "sms", validate_us_phone(phone)
        except ValueError:
            logger.warning(f"⚠️ Invalid phone number format, falling back to email: {phone}")
    if email:
        try:
            return "email", validate_email(email)
        except ValueError:
            logger.warning(f"⚠️ Invalid email format: {email}")
    return None, None


def _format_when(instant: datetime, tz: ZoneInfo) -> str:
    local = instant.astimezone(tz)
    return f"{local.strftime('%A, %B')} {local.day} at {local.strftime('%I:%M %p').lstrip('0')}"


class RescheduleNotifier:
    """Records pending reschedule notifications for the client and the assigned worker"""

    def notify(
        self,
        db: Session,
        job: Job,
        new_start: datetime,
        tz: ZoneInfo,
        previous_worker_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> dict:
        """
        Queue notifications for a rescheduled job.

        Returns:
            Dict with client_notified, worker_notified and any error strings
        """
        result = {
            "client_notified": False,
            "worker_notified": False,
            "client_error": None,
            "worker_error": None,
        }
        when = _format_when(new_start, tz)
        reason_note = f" Reason: {reason}" if reason else ""

        client = job.client
        if client is None:
            result["client_error"] = "Job has no client"
            logger.debug(f"⚠️ Job {job.id} has no client to notify")
        else:
            channel, contact = _client_channel(client.phone, client.email)
            if channel is None:
                result["client_error"] = "Client has no phone or email"
                logger.warning(f"⚠️ No contact details for client {client.id}")
            else:
                message = (
                    f"Hi {client.name}, your appointment \"{job.title}\" has been "
                    f"rescheduled to {when}.{reason_note}"
                )
                try:
                    self._record(db, job.id, "client", channel, contact, message)
                    result["client_notified"] = True
                    logger.info(f"📨 Queued {channel} reschedule notice for client {client.id}")
                except SQLAlchemyError as e:
                    db.rollback()
                    result["client_error"] = str(e)
                    logger.error(f"❌ Failed to queue client notification for job {job.id}: {e}")

        worker: Optional[Worker] = job.worker
        if worker is not None and previous_worker_id and worker.id != previous_worker_id:
            if not worker.email:
                result["worker_error"] = "Worker has no email"
            else:
                message = f"Hi {worker.name}, you have been assigned \"{job.title}\" on {when}."
                try:
                    self._record(db, job.id, "worker", "email", worker.email, message)
                    result["worker_notified"] = True
                    logger.info(f"📨 Queued assignment notice for worker {worker.id}")
                except SQLAlchemyError as e:
                    db.rollback()
                    result["worker_error"] = str(e)
                    logger.error(f"❌ Failed to queue worker notification for job {job.id}: {e}")

        return result

    @staticmethod
    def _record(
        db: Session,
        job_id: str,
        recipient_type: str,
        notification_type: str,
        contact: str,
        message: str,
    ) -> RescheduleNotification:
        notification = RescheduleNotification(
            job_id=job_id,
            recipient_type=recipient_type,
            notification_type=notification_type,
            recipient_contact=contact,
            message_content=message,
            status="pending",
        )
        db.add(notification)
        db.commit()
        return notification
