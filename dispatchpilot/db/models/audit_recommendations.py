from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from dispatchpilot.db.database import Base, JSONType


class AuditRecommendations(Base):
    """Write-once record of one recommendation request and every scored candidate."""
    __tablename__ = "audit_recommendations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    request_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)
    job_id: Mapped[int] = mapped_column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    request_payload_json: Mapped[dict] = mapped_column(JSONType, nullable=False)
    candidates_json: Mapped[dict] = mapped_column(JSONType, nullable=False)
    config_version: Mapped[int] = mapped_column(Integer, nullable=False)
    actor: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
