from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import JSON, BigInteger, Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models."""


class UserProfileRow(Base):
    """User training profile.

    Schedule, goals and injuries are stored as JSON documents and validated
    through the pydantic models when loaded.
    """

    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    hyrox_level: Mapped[str] = mapped_column(String, nullable=False)
    running_level: Mapped[str] = mapped_column(String, nullable=False)
    strength_level: Mapped[str] = mapped_column(String, nullable=False)
    schedule: Mapped[dict] = mapped_column(JSON, nullable=False)
    goals: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    injuries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )


class TrainingPlanRow(Base):
    """Training plan header.

    ``version`` is bumped on every committed adaptation and checked with a
    conditional UPDATE (optimistic concurrency). A partial unique index
    allows at most one Active plan per user.
    """

    __tablename__ = "training_plans"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, index=True)
    total_weeks: Mapped[int] = mapped_column(Integer, nullable=False)
    current_week: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    training_days_per_week: Mapped[int] = mapped_column(Integer, nullable=False)
    seed: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    restrictions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("idx_training_plans_user_status", "user_id", "status"),
        Index(
            "uq_training_plans_active_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'Active'"),
            postgresql_where=text("status = 'Active'"),
        ),
    )


class TrainingWeekRow(Base):
    __tablename__ = "training_weeks"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    plan_id: Mapped[str] = mapped_column(String, ForeignKey("training_plans.id"), nullable=False, index=True)
    week_number: Mapped[int] = mapped_column(Integer, nullable=False)
    phase: Mapped[str] = mapped_column(String, nullable=False)
    intensity: Mapped[str] = mapped_column(String, nullable=False)
    focus_area: Mapped[str] = mapped_column(String, nullable=False, default="")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)


class WorkoutRow(Base):
    """Scheduled workout. ``position`` keeps the order within its week."""

    __tablename__ = "workouts"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    plan_id: Mapped[str] = mapped_column(String, ForeignKey("training_plans.id"), nullable=False, index=True)
    week_id: Mapped[str] = mapped_column(String, ForeignKey("training_weeks.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    discipline: Mapped[str] = mapped_column(String, nullable=False)
    session_type: Mapped[str] = mapped_column(String, nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    intensity: Mapped[str] = mapped_column(String, nullable=False)
    estimated_duration_min: Mapped[int] = mapped_column(Integer, nullable=False)
    is_key_workout: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PlanAdaptationRow(Base):
    """Append-only adaptation audit log. Rows are never updated."""

    __tablename__ = "plan_adaptations"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    plan_id: Mapped[str] = mapped_column(String, ForeignKey("training_plans.id"), nullable=False, index=True)
    trigger: Mapped[str] = mapped_column(String, nullable=False)
    adaptation_type: Mapped[str] = mapped_column(String, nullable=False)
    applied_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
