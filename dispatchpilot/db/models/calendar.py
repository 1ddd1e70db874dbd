from typing import Optional
from enum import Enum
from datetime import date, time
from sqlalchemy import Date, Enum as SQLEnum, ForeignKey, Integer, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dispatchpilot.db.database import Base


class CalendarExceptionType(str, Enum):
    HOLIDAY = "HOLIDAY"
    UNAVAILABLE = "UNAVAILABLE"
    MODIFIED_HOURS = "MODIFIED_HOURS"


class ContractorHolidays(Base):
    __tablename__ = "contractor_holidays"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contractor_id: Mapped[int] = mapped_column(Integer, ForeignKey("contractors.id"), nullable=False, index=True)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False)

    __table_args__ = (
        UniqueConstraint("contractor_id", "holiday_date", name="uq_holidays_contractor_date"),
    )


class CalendarExceptions(Base):
    __tablename__ = "calendar_exceptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    contractor_id: Mapped[int] = mapped_column(Integer, ForeignKey("contractors.id"), nullable=False, index=True)
    exception_date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[CalendarExceptionType] = mapped_column(SQLEnum(CalendarExceptionType, name="calendar_exception_type_enum"), nullable=False)
    # only set for MODIFIED_HOURS
    start_time_local: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time_local: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    __table_args__ = (
        UniqueConstraint("contractor_id", "exception_date", name="uq_calendar_exceptions_contractor_date"),
    )
