from typing import Optional
from enum import Enum
from datetime import datetime
from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from dispatchpilot.db.database import Base


class AssignmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"


class AssignmentSource(str, Enum):
    MANUAL = "MANUAL"
    RECOMMENDED = "RECOMMENDED"


class Assignments(Base):
    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    job_id: Mapped[int] = mapped_column(Integer, ForeignKey("jobs.id"), nullable=False)
    contractor_id: Mapped[int] = mapped_column(Integer, ForeignKey("contractors.id"), nullable=False)
    start_datetime_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_datetime_utc: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source: Mapped[AssignmentSource] = mapped_column(SQLEnum(AssignmentSource, name="assignment_source_enum"), nullable=False)
    status: Mapped[AssignmentStatus] = mapped_column(SQLEnum(AssignmentStatus, name="assignment_status_enum"), nullable=False, default=AssignmentStatus.PENDING)
    audit_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("audit_recommendations.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_assignments_contractor_start", "contractor_id", "start_datetime_utc"),
        Index("ix_assignments_job", "job_id"),
    )
