from typing import Optional
from enum import Enum
from datetime import date, datetime
from sqlalchemy import Date, DateTime, Enum as SQLEnum, Float, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from dispatchpilot.db.database import Base, JSONType


class JobStatus(str, Enum):
    CREATED = "CREATED"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class JobPriority(str, Enum):
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    RUSH = "RUSH"


class Jobs(Base):
    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    required_skills: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    desired_date: Mapped[date] = mapped_column(Date, nullable=False)
    service_window_start_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    service_window_end_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    priority: Mapped[JobPriority] = mapped_column(SQLEnum(JobPriority, name="job_priority_enum"), nullable=False, default=JobPriority.NORMAL)
    status: Mapped[JobStatus] = mapped_column(SQLEnum(JobStatus, name="job_status_enum"), nullable=False, default=JobStatus.CREATED, index=True)
    last_recommendation_audit_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # audit_recommendations.id
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_jobs_desired_date", "desired_date"),
    )
