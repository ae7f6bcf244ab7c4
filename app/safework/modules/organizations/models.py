from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.safework.constants import DEFAULT_ORG_SETTINGS
from app.safework.models import Base, JSONType
from app.safework.utils import utcnow


def _public_id() -> str:
    return uuid.uuid4().hex


def _default_settings() -> dict:
    return dict(DEFAULT_ORG_SETTINGS, training_reminder_days=list(DEFAULT_ORG_SETTINGS["training_reminder_days"]))


class Organization(Base):
    __tablename__ = "organizations"
    __table_args__ = (
        Index("idx_organizations_stripe_customer", "stripe_customer_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Opaque id for the public anonymous-reporting link (never the numeric pk)
    public_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, default=_public_id)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    dba: Mapped[str | None] = mapped_column(String(255), nullable=True)

    street: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    state: Mapped[str] = mapped_column(String(2), nullable=False, default="CA")
    zip: Mapped[str] = mapped_column(String(16), nullable=False)

    phone: Mapped[str] = mapped_column(String(64), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)

    industry: Mapped[str] = mapped_column(String(64), nullable=False)  # see constants.INDUSTRIES
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False)
    workplace_types: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Billing
    stripe_customer_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    plan: Mapped[str] = mapped_column(String(32), nullable=False, default="free")  # free, starter, professional, enterprise
    plan_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    settings: Mapped[dict] = mapped_column(JSONType, nullable=False, default=_default_settings)

    # Compliance tracking
    wvpp_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_training_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    next_training_due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_plan_review_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    next_plan_review_due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    compliance_score: Mapped[int | None] = mapped_column(Integer, nullable=True)  # cached by the dashboard

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    @property
    def display_name(self) -> str:
        return self.dba or self.name

    @property
    def settings_value(self) -> dict:
        merged = _default_settings()
        merged.update(self.settings or {})
        return merged
