from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.safework.models import Base, JSONType
from app.safework.utils import utcnow


class Incident(Base):
    """
    Violent incident log entry (LC 6401.9(d)).
    Holds no personally identifying information about the people involved.
    """

    __tablename__ = "incidents"
    __table_args__ = (
        Index("idx_incidents_org_date", "organization_id", "incident_date"),
        Index("idx_incidents_org_status", "organization_id", "investigation_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    plan_id: Mapped[int] = mapped_column(ForeignKey("plans.id", ondelete="RESTRICT"), nullable=False)

    incident_date: Mapped[date] = mapped_column(Date, nullable=False)
    incident_time: Mapped[str] = mapped_column(String(5), nullable=False)  # "HH:MM"
    location_type: Mapped[str] = mapped_column(String(32), nullable=False)  # workplace, parking_lot, outside_workplace, other
    location_description: Mapped[str] = mapped_column(Text, nullable=False)

    workplace_violence_types: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    incident_types: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    detailed_description: Mapped[str] = mapped_column(Text, nullable=False)
    perpetrator_classification: Mapped[str] = mapped_column(String(64), nullable=False)

    # Structured sub-sections (flags + free text)
    circumstances: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    consequences: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    injuries: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    emergency_medical: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    cal_osha_reporting: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    completed_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    completed_by_title: Mapped[str] = mapped_column(String(255), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    investigation_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending, in_progress, completed
    investigation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    corrective_actions_taken: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    @property
    def is_open(self) -> bool:
        return self.investigation_status in ("pending", "in_progress")
