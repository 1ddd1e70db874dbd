from dispatchpilot.db.database import Base

# Import models
from dispatchpilot.db.models.contractors import Contractors
from dispatchpilot.db.models.working_hours import ContractorWorkingHours
from dispatchpilot.db.models.calendar import ContractorHolidays, CalendarExceptions, CalendarExceptionType
from dispatchpilot.db.models.jobs import Jobs, JobStatus, JobPriority
from dispatchpilot.db.models.assignments import Assignments, AssignmentStatus, AssignmentSource
from dispatchpilot.db.models.weights_configs import WeightsConfigs
from dispatchpilot.db.models.audit_recommendations import AuditRecommendations
from dispatchpilot.db.models.event_logs import EventLogs

__all__ = [
    "Base",
    # Models
    "Contractors",
    "ContractorWorkingHours",
    "ContractorHolidays",
    "CalendarExceptions",
    "Jobs",
    "Assignments",
    "WeightsConfigs",
    "AuditRecommendations",
    "EventLogs",
    # Enums
    "CalendarExceptionType",
    "JobStatus",
    "JobPriority",
    "AssignmentStatus",
    "AssignmentSource",
]
