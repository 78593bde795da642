from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Exercise(Base):
    __tablename__ = "exercises"
    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    weight_increment: Mapped[float] = mapped_column(Float, default=5.0)
    is_custom: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow
    )
    __table_args__ = (CheckConstraint("weight_increment > 0"),)


class PlanDay(Base):
    __tablename__ = "plan_days"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(Integer, index=True)
    day_of_week: Mapped[int] = mapped_column(Integer)  # 0 = Monday
    name: Mapped[str] = mapped_column(String(120), default="")
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    __table_args__ = (CheckConstraint("day_of_week between 0 and 6"),)


class PlanDayExercise(Base):
    __tablename__ = "plan_day_exercises"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_day_id: Mapped[int] = mapped_column(ForeignKey("plan_days.id"), index=True)
    exercise_id: Mapped[int] = mapped_column(ForeignKey("exercises.id"))
    sets: Mapped[int] = mapped_column(Integer)
    reps: Mapped[int] = mapped_column(Integer)
    weight: Mapped[float] = mapped_column(Float)
    rest_seconds: Mapped[int] = mapped_column(Integer, default=90)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    min_reps: Mapped[int] = mapped_column(Integer, default=8)
    max_reps: Mapped[int] = mapped_column(Integer, default=12)
    __table_args__ = (
        UniqueConstraint("plan_day_id", "exercise_id", name="uq_plan_day_exercise"),
        CheckConstraint("sets >= 1"),
        CheckConstraint("reps >= 1"),
        CheckConstraint("weight >= 0"),
    )


class Mesocycle(Base):
    __tablename__ = "mesocycles"
    id: Mapped[int] = mapped_column(primary_key=True)
    plan_id: Mapped[int] = mapped_column(Integer, index=True)
    start_date: Mapped[dt.date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(16), default="pending")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow)
    __table_args__ = (
        CheckConstraint("status in ('pending','active','completed','cancelled')"),
    )


class Workout(Base):
    __tablename__ = "workouts"
    id: Mapped[int] = mapped_column(primary_key=True)
    mesocycle_id: Mapped[int] = mapped_column(ForeignKey("mesocycles.id"), index=True)
    plan_day_id: Mapped[int] = mapped_column(ForeignKey("plan_days.id"))
    week_number: Mapped[int] = mapped_column(Integer)
    scheduled_date: Mapped[dt.date] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(16), default="pending")
    started_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    completed_at: Mapped[dt.datetime | None] = mapped_column(DateTime)
    __table_args__ = (
        Index("ix_workouts_meso_plan_day", "mesocycle_id", "plan_day_id"),
        CheckConstraint("status in ('pending','in_progress','completed','skipped')"),
        CheckConstraint("week_number >= 0"),
    )


class WorkoutSet(Base):
    __tablename__ = "workout_sets"
    id: Mapped[int] = mapped_column(primary_key=True)
    workout_id: Mapped[int] = mapped_column(ForeignKey("workouts.id"), index=True)
    exercise_id: Mapped[int] = mapped_column(ForeignKey("exercises.id"))
    set_number: Mapped[int] = mapped_column(Integer)
    target_reps: Mapped[int] = mapped_column(Integer)
    target_weight: Mapped[float] = mapped_column(Float)
    actual_reps: Mapped[int | None] = mapped_column(Integer)
    actual_weight: Mapped[float | None] = mapped_column(Float)
    status: Mapped[str] = mapped_column(String(16), default="pending")
    __table_args__ = (
        CheckConstraint("status in ('pending','completed','skipped')"),
        CheckConstraint("set_number >= 1"),
        CheckConstraint(
            "(status = 'completed' and actual_reps is not null and actual_weight is not null)"
            " or (status != 'completed' and actual_reps is null and actual_weight is null)",
            name="ck_workout_sets_actuals_match_status",
        ),
    )
