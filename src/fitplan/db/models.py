"""
SQLAlchemy ORM models for stored workout plans.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    SmallInteger,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Plan(Base):
    """A generated weekly plan. Written once, read-only afterwards."""

    __tablename__ = "workout_plans"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    title: Mapped[str] = mapped_column(String(120))
    goal: Mapped[str] = mapped_column(String(32))
    days_per_week: Mapped[int] = mapped_column(SmallInteger)
    minutes_per_session: Mapped[int] = mapped_column(SmallInteger)
    equipment: Mapped[str] = mapped_column(String(16))
    level: Mapped[str] = mapped_column(String(16))
    add_cardio: Mapped[bool] = mapped_column(Boolean, default=False)
    add_core: Mapped[bool] = mapped_column(Boolean, default=False)
    add_mobility: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), index=True
    )

    days: Mapped[list[PlanDay]] = relationship(
        "PlanDay",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanDay.day_order",
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<Plan id={self.id} owner_id={self.owner_id} days_per_week={self.days_per_week}>"


class PlanDay(Base):
    """One training day of a plan."""

    __tablename__ = "workout_plan_days"
    __table_args__ = (UniqueConstraint("plan_id", "day_order", name="uq_plan_day_order"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[int] = mapped_column(
        ForeignKey("workout_plans.id", ondelete="CASCADE"), index=True
    )
    day_order: Mapped[int] = mapped_column(SmallInteger)
    focus: Mapped[str] = mapped_column(String(64))
    warmup: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cooldown: Mapped[str | None] = mapped_column(String(255), nullable=True)

    plan: Mapped[Plan] = relationship("Plan", back_populates="days")
    exercises: Mapped[list[PlanExercise]] = relationship(
        "PlanExercise",
        back_populates="day",
        cascade="all, delete-orphan",
        order_by="PlanExercise.seq",
    )


class PlanExercise(Base):
    """An exercise slot within a day."""

    __tablename__ = "workout_plan_exercises"
    __table_args__ = (UniqueConstraint("day_id", "seq", name="uq_day_exercise_seq"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day_id: Mapped[int] = mapped_column(
        ForeignKey("workout_plan_days.id", ondelete="CASCADE"), index=True
    )
    seq: Mapped[int] = mapped_column(SmallInteger)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    sets: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    reps_or_time: Mapped[str | None] = mapped_column(String(32), nullable=True)
    rest_sec: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    notes: Mapped[str | None] = mapped_column(String(255), nullable=True)

    day: Mapped[PlanDay] = relationship("PlanDay", back_populates="exercises")
