from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import BigInteger, Date, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.safework.models import Base, JSONType
from app.safework.utils import utcnow

DOCUMENT_TYPES = (
    "wvpp_full",
    "wvpp_summary",
    "emergency_contacts",
    "incident_report_form",
    "training_acknowledgment",
    "employee_acknowledgment",
    "incident_log_export",
    "training_records_export",
    "compliance_report",
    "posting_notice",
    "training_certificate",
    "uploaded",
)


class GeneratedDocument(Base):
    """Generated or uploaded compliance document. Bytes live in storage; this row is the index."""

    __tablename__ = "generated_documents"
    __table_args__ = (
        Index("idx_generated_documents_org_type", "organization_id", "type"),
        Index("idx_generated_documents_org_created", "organization_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)

    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    content_type: Mapped[str] = mapped_column(String(128), nullable=False, default="application/pdf")
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    sha256: Mapped[str] = mapped_column(String(64), nullable=False)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    plan_version: Mapped[int | None] = mapped_column(Integer, nullable=True)

    generated_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    date_range_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    date_range_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    employee_id: Mapped[int | None] = mapped_column(ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)

    metadata_json: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
