from __future__ import annotations

import secrets
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.safework.models import Base
from app.safework.utils import utcnow


def _anonymous_id() -> str:
    return f"ANON-{secrets.token_hex(8).upper()}"


class AnonymousReport(Base):
    """
    Anonymous concern report. There is deliberately no user, employee or raw IP column here;
    ip_hash only feeds submission throttling.
    """

    __tablename__ = "anonymous_reports"
    __table_args__ = (
        Index("idx_anonymous_reports_org_status", "organization_id", "status"),
        Index("idx_anonymous_reports_ip_hash", "ip_hash", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    anonymous_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, default=_anonymous_id)
    access_token_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    report_type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    incident_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    incident_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    witnesses_present: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="new")  # new, under_review, investigating, resolved, closed
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")  # low, medium, high, critical
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resolution: Mapped[str | None] = mapped_column(Text, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    linked_incident_id: Mapped[int | None] = mapped_column(ForeignKey("incidents.id", ondelete="SET NULL"), nullable=True)

    submitted_via: Mapped[str] = mapped_column(String(16), nullable=False, default="web")
    ip_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    notes: Mapped[list["AnonymousReportNote"]] = relationship(
        "AnonymousReportNote",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="AnonymousReportNote.created_at",
        lazy="selectin",
    )
    messages: Mapped[list["AnonymousThreadMessage"]] = relationship(
        "AnonymousThreadMessage",
        back_populates="report",
        cascade="all, delete-orphan",
        order_by="AnonymousThreadMessage.id",
        lazy="selectin",
    )


class AnonymousReportNote(Base):
    """Internal investigator note; never shown to the reporter."""

    __tablename__ = "anonymous_report_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    report_id: Mapped[int] = mapped_column(ForeignKey("anonymous_reports.id", ondelete="CASCADE"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    added_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    added_by_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    report: Mapped[AnonymousReport] = relationship("AnonymousReport", back_populates="notes")


class AnonymousThreadMessage(Base):
    __tablename__ = "anonymous_thread_messages"
    __table_args__ = (
        Index("idx_anonymous_thread_report", "report_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    report_id: Mapped[int] = mapped_column(ForeignKey("anonymous_reports.id", ondelete="CASCADE"), nullable=False)
    message_type: Mapped[str] = mapped_column(String(32), nullable=False)  # admin_question, reporter_response, admin_update
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Only set on admin messages; reporter responses carry no identity
    admin_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    admin_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    read_by_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_by_reporter: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    report: Mapped[AnonymousReport] = relationship("AnonymousReport", back_populates="messages")
