from typing import Optional
from datetime import datetime, date
from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dispatchpilot.db.database import Base, JSONType


class Contractors(Base):
    __tablename__ = "contractors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    base_latitude: Mapped[float] = mapped_column(Float, nullable=False)
    base_longitude: Mapped[float] = mapped_column(Float, nullable=False)
    base_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    skills: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    daily_break_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    jobs_booked_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_jobs_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    current_utilization: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    utilization_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)  # day the counters refer to
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    working_hours = relationship("ContractorWorkingHours", cascade="all, delete-orphan", lazy="selectin")
    holidays = relationship("ContractorHolidays", cascade="all, delete-orphan", lazy="selectin")
    calendar_exceptions = relationship(
        "CalendarExceptions",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CalendarExceptions.exception_date",
    )
