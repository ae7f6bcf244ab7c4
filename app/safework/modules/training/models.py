from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.safework.models import Base, JSONType
from app.safework.utils import utcnow


class TrainingModule(Base):
    """Global SB 553 training catalogue (shared by all organizations)."""

    __tablename__ = "training_modules"
    __table_args__ = (
        Index("idx_training_modules_active_order", "is_active", "order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    module_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="video")  # video, interactive, document

    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False)

    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    has_quiz: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    max_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0 = unlimited

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Analytics
    total_completions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_quiz_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    questions: Mapped[list["TrainingQuestion"]] = relationship(
        "TrainingQuestion",
        back_populates="module",
        cascade="all, delete-orphan",
        order_by="TrainingQuestion.order",
        lazy="selectin",
    )

    @property
    def has_video(self) -> bool:
        return bool(self.video_url)


class TrainingQuestion(Base):
    __tablename__ = "training_questions"
    __table_args__ = (
        Index("idx_training_questions_module", "module_id", "is_active"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    module_id: Mapped[int] = mapped_column(ForeignKey("training_modules.id", ondelete="CASCADE"), nullable=False)
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[str] = mapped_column(String(32), nullable=False, default="multiple_choice")  # multiple_choice, true_false, select_all
    # [{"id": "a", "text": "...", "is_correct": bool}]
    options: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    explanation: Mapped[str | None] = mapped_column(Text, nullable=True)
    order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    module: Mapped[TrainingModule] = relationship("TrainingModule", back_populates="questions")

    @property
    def correct_option_ids(self) -> list[str]:
        return [o["id"] for o in self.options or [] if o.get("is_correct")]


class TrainingProgress(Base):
    """One row per (employee, module)."""

    __tablename__ = "training_progress"
    __table_args__ = (
        UniqueConstraint("employee_id", "module_id", name="uq_training_progress_employee_module"),
        Index("idx_training_progress_org", "organization_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)
    module_id: Mapped[int] = mapped_column(ForeignKey("training_modules.id", ondelete="CASCADE"), nullable=False)

    # Video
    video_progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # 0-100
    video_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    video_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    last_watched_position: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)  # seconds

    # Quiz
    quiz_passed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiz_passed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    best_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="not_started")  # not_started, in_progress, completed
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    module: Mapped[TrainingModule] = relationship("TrainingModule", lazy="selectin")
    attempts: Mapped[list["QuizAttempt"]] = relationship(
        "QuizAttempt",
        back_populates="progress",
        cascade="all, delete-orphan",
        order_by="QuizAttempt.attempt_number",
        lazy="selectin",
    )


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("progress_id", "attempt_number", name="uq_quiz_attempts_progress_number"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    progress_id: Mapped[int] = mapped_column(ForeignKey("training_progress.id", ondelete="CASCADE"), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    # [{"question_id": int, "selected_option_ids": [...], "is_correct": bool}]
    answers: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)

    progress: Mapped[TrainingProgress] = relationship("TrainingProgress", back_populates="attempts")


class TrainingRecord(Base):
    """LC 6401.9(e) training record; retained at least one year."""

    __tablename__ = "training_records"
    __table_args__ = (
        Index("idx_training_records_org_date", "organization_id", "training_date"),
        Index("idx_training_records_employee", "employee_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    organization_id: Mapped[int] = mapped_column(ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    employee_id: Mapped[int] = mapped_column(ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)

    training_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)
    training_type: Mapped[str] = mapped_column(String(16), nullable=False)  # initial, annual, new_hazard, plan_update
    module_key: Mapped[str] = mapped_column(String(64), nullable=False)
    module_name: Mapped[str] = mapped_column(String(255), nullable=False)
    content_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    trainer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    trainer_qualifications: Mapped[str | None] = mapped_column(Text, nullable=True)

    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    quiz_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quiz_passed: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    employee_acknowledged: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=utcnow)
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
