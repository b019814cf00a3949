import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_uuid():
    """Generate a UUID string primary key"""
    return str(uuid.uuid4())


class Business(Base):
    __tablename__ = "businesses"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    timezone = Column(String(64), nullable=True)  # IANA name, e.g. America/New_York
    created_at = Column(DateTime, server_default=func.now())

    workers = relationship("Worker", back_populates="business")
    clients = relationship("Client", back_populates="business")


class Client(Base):
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    business = relationship("Business", back_populates="clients")
    jobs = relationship("Job", back_populates="client")


class Worker(Base):
    __tablename__ = "workers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    status = Column(String(20), default="active", nullable=False)  # active, inactive
    # Bumped on every engine write that assigns time to this worker (optimistic concurrency)
    schedule_version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    business = relationship("Business", back_populates="workers")
    weekly_availability = relationship(
        "WorkerWeeklyAvailability", back_populates="worker", cascade="all, delete-orphan"
    )
    availability_exceptions = relationship(
        "WorkerAvailabilityException", back_populates="worker", cascade="all, delete-orphan"
    )
    jobs = relationship("Job", back_populates="worker")


class WorkerWeeklyAvailability(Base):
    __tablename__ = "worker_weekly_availability"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    worker_id = Column(String(36), ForeignKey("workers.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM

    worker = relationship("Worker", back_populates="weekly_availability")


class WorkerAvailabilityException(Base):
    __tablename__ = "worker_availability_exceptions"
    # One override per worker per date
    __table_args__ = (UniqueConstraint("worker_id", "date", name="uq_worker_exception_date"),)

    id = Column(String(36), primary_key=True, default=generate_uuid)
    worker_id = Column(String(36), ForeignKey("workers.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    is_available = Column(Boolean, default=False, nullable=False)
    start_time = Column(String(5), nullable=True)  # HH:MM, only with is_available
    end_time = Column(String(5), nullable=True)
    reason = Column(Text, nullable=True)

    worker = relationship("Worker", back_populates="availability_exceptions")


class Job(Base):
    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    client_id = Column(String(36), ForeignKey("clients.id"), nullable=True)
    worker_id = Column(String(36), ForeignKey("workers.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    scheduled_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    duration_minutes = Column(Integer, nullable=True)
    # scheduled, in_progress, completed, cancelled, rescheduled
    status = Column(String(20), default="scheduled", nullable=False, index=True)
    version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="jobs")
    worker = relationship("Worker", back_populates="jobs")


class RescheduleNotification(Base):
    __tablename__ = "reschedule_notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    job_id = Column(String(36), ForeignKey("jobs.id"), nullable=False, index=True)
    recipient_type = Column(String(20), nullable=False)  # client, worker
    notification_type = Column(String(20), nullable=False)  # sms, email
    recipient_contact = Column(String(255), nullable=False)
    message_content = Column(Text, nullable=False)
    status = Column(String(20), default="pending", nullable=False)  # pending, sent, failed
    created_at = Column(DateTime, server_default=func.now())
