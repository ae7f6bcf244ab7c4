from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.safework.models import Base, JSONType
from app.safework.utils import utcnow

# JSON sections, in Cal/OSHA model-plan order
PLAN_SECTIONS = (
    "responsible_persons",
    "employee_involvement",
    "compliance_procedures",
    "communication_system",
    "emergency_response",
    "hazard_assessments",
    "hazard_correction_procedures",
    "post_incident_procedures",
    "training_program",
    "recordkeeping_procedures",
    "plan_accessibility",
    "review_schedule",
    "authorization",
)


class Plan(Base):
    """Workplace Violence Prevention Plan. At most one plan per organization is active."""

    __tablename__ = "plans"
    __table_args__ = (
        Index("idx_plans_org_status", "organization_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")  # draft, active, archived

    responsible_persons: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    employee_involvement: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    compliance_procedures: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    communication_system: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    emergency_response: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    hazard_assessments: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    hazard_correction_procedures: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    post_incident_procedures: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    training_program: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    recordkeeping_procedures: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    plan_accessibility: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    review_schedule: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    authorization: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
