from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.safework.models import Base
from app.safework.utils import utcnow


class Employee(Base):
    __tablename__ = "employees"
    __table_args__ = (
        UniqueConstraint("organization_id", "email", name="uq_employees_org_email"),
        Index("idx_employees_org_active", "organization_id", "is_active"),
        Index("idx_employees_next_training_due", "next_training_due_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True, unique=True)

    first_name: Mapped[str] = mapped_column(String(128), nullable=False)
    last_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    department: Mapped[str | None] = mapped_column(String(128), nullable=True)
    job_title: Mapped[str | None] = mapped_column(String(128), nullable=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default="employee")  # employee, supervisor, manager, wvpp_administrator, owner

    hire_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    termination_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Portal invite
    invite_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")  # pending, sent, accepted, expired
    invite_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    invite_accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_portal_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # Training tracking
    initial_training_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_annual_training_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    next_training_due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    training_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    training_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    current_module_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    has_completed_qa: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    qa_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    # WVPP acknowledgement
    wvpp_acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    wvpp_acknowledged_version: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
