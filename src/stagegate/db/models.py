"""ORM models for applications, stage attempts and their detail records."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import pendulum
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from ..core.status import ApplicationStatus, StageStatus, STAGE_TRANSITIONS
from ..errors import InvalidStageTransition


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return pendulum.now("UTC")


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class Candidate(Base, TimestampMixin):
    __tablename__ = "candidates"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255))

    applications: Mapped[list["Application"]] = relationship(back_populates="candidate")


class Job(Base, TimestampMixin):
    __tablename__ = "jobs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    requirements: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    responsibilities: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    # draft / active / paused / closed
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)

    questions: Mapped[list["Stage2Question"]] = relationship(
        back_populates="job", order_by="Stage2Question.question_order"
    )


class Application(Base, TimestampMixin):
    """One candidate's application to one job.

    ``status``, ``current_stage`` and ``overall_score`` are written together by
    :class:`stagegate.core.gate.StageGate` and nowhere else.
    """

    __tablename__ = "applications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    job_id: Mapped[str] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    candidate_id: Mapped[str] = mapped_column(
        ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    resume_text: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(ApplicationStatus, native_enum=False, length=20,
                values_callable=lambda enum: [member.value for member in enum]),
        default=ApplicationStatus.SUBMITTED,
        nullable=False,
    )
    current_stage: Mapped[int | None] = mapped_column(Integer)
    overall_score: Mapped[float | None] = mapped_column(Float)
    ai_summary: Mapped[str | None] = mapped_column(Text)

    job: Mapped[Job] = relationship()
    candidate: Mapped[Candidate] = relationship(back_populates="applications")
    stages: Mapped[list["ScreeningStage"]] = relationship(
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="ScreeningStage.attempt",
    )


class ScreeningStage(Base, TimestampMixin):
    """One attempt at one stage. Re-runs append a new row with a higher ``attempt``."""

    __tablename__ = "screening_stages"
    __table_args__ = (
        UniqueConstraint(
            "application_id", "stage_number", "attempt", name="uq_screening_stage_attempt"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    application_id: Mapped[str] = mapped_column(
        ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, index=True
    )
    stage_number: Mapped[int] = mapped_column(Integer, nullable=False)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[StageStatus] = mapped_column(
        SQLEnum(StageStatus, native_enum=False, length=20,
                values_callable=lambda enum: [member.value for member in enum]),
        default=StageStatus.PENDING,
        nullable=False,
    )
    score: Mapped[float | None] = mapped_column(Float)
    passing_threshold: Mapped[float] = mapped_column(Float, nullable=False, default=5.0)
    ai_evaluation: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    application: Mapped[Application] = relationship(back_populates="stages")
    resume_analysis: Mapped["ResumeAnalysis | None"] = relationship(
        back_populates="stage", cascade="all, delete-orphan", uselist=False
    )
    answers: Mapped[list["Stage2Answer"]] = relationship(
        back_populates="stage", cascade="all, delete-orphan"
    )
    interview: Mapped["InterviewRecord | None"] = relationship(
        back_populates="stage", cascade="all, delete-orphan", uselist=False
    )

    def move_to(self, target: StageStatus) -> None:
        """Advance the attempt, refusing anything outside its lifecycle."""
        current = StageStatus(self.status)
        if target not in STAGE_TRANSITIONS[current]:
            raise InvalidStageTransition(
                f"Stage attempt {self.id} cannot move from {current.value} to {target.value}"
            )
        now = utcnow()
        self.status = target
        if target is StageStatus.IN_PROGRESS:
            self.started_at = now
        elif target.is_terminal:
            self.completed_at = now


class ResumeAnalysis(Base):
    __tablename__ = "resume_analyses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    screening_stage_id: Mapped[str] = mapped_column(
        ForeignKey("screening_stages.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    skills_match: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    experience_match: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    strengths: Mapped[list[str] | None] = mapped_column(JSON)
    concerns: Mapped[list[str] | None] = mapped_column(JSON)
    fit_rating: Mapped[str | None] = mapped_column(String(20))
    score: Mapped[float] = mapped_column(Float, nullable=False)
    evaluation_matrix: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    stage: Mapped[ScreeningStage] = relationship(back_populates="resume_analysis")


class Stage2Question(Base, TimestampMixin):
    __tablename__ = "stage2_questions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    job_id: Mapped[str] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_text: Mapped[str] = mapped_column(Text, nullable=False)
    question_order: Mapped[int] = mapped_column(Integer, nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    job: Mapped[Job] = relationship(back_populates="questions")


class Stage2Answer(Base):
    __tablename__ = "stage2_answers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    screening_stage_id: Mapped[str] = mapped_column(
        ForeignKey("screening_stages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id: Mapped[str] = mapped_column(ForeignKey("stage2_questions.id"), nullable=False)
    answer_text: Mapped[str] = mapped_column(Text, nullable=False)
    ai_score: Mapped[float | None] = mapped_column(Float)
    ai_feedback: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    stage: Mapped[ScreeningStage] = relationship(back_populates="answers")
    question: Mapped[Stage2Question] = relationship()


class InterviewRecord(Base):
    """Voice interview detail, created when the call is configured and filled in at call end."""

    __tablename__ = "interview_details"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    screening_stage_id: Mapped[str] = mapped_column(
        ForeignKey("screening_stages.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    assistant_id: Mapped[str | None] = mapped_column(String(255), index=True)
    call_id: Mapped[str | None] = mapped_column(String(255))
    call_duration: Mapped[int | None] = mapped_column(Integer)
    transcript: Mapped[str | None] = mapped_column(Text)
    recording_url: Mapped[str | None] = mapped_column(String(500))
    communication_score: Mapped[float | None] = mapped_column(Float)
    problem_solving_score: Mapped[float | None] = mapped_column(Float)
    role_understanding_score: Mapped[float | None] = mapped_column(Float)
    overall_score: Mapped[float | None] = mapped_column(Float)
    strengths: Mapped[list[str] | None] = mapped_column(JSON)
    weaknesses: Mapped[list[str] | None] = mapped_column(JSON)
    evaluation_matrix: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    stage: Mapped[ScreeningStage] = relationship(back_populates="interview")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str | None] = mapped_column(Text)
    link: Mapped[str | None] = mapped_column(String(500))
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class HrCandidateSuggestion(Base):
    """Links a candidate who failed a stage to another open job HR may consider."""

    __tablename__ = "hr_candidate_suggestions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    candidate_id: Mapped[str] = mapped_column(
        ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    suggested_job_id: Mapped[str] = mapped_column(
        ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    application_id: Mapped[str] = mapped_column(
        ForeignKey("applications.id", ondelete="CASCADE"), nullable=False
    )
    source_stage: Mapped[int] = mapped_column(Integer, nullable=False)
    message: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
