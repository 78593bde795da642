from __future__ import annotations

import datetime as dt

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from coach_engine import models
from coach_engine.repositories.base import (
    Exercise,
    Mesocycle,
    PlanDay,
    PlanDayExercise,
    TrainingRepository,
    Workout,
    WorkoutSet,
)
from coach_engine.validators import PlanDayExerciseInput, parse_input


def _workout(row: models.Workout) -> Workout:
    return Workout(
        id=row.id,
        mesocycle_id=row.mesocycle_id,
        plan_day_id=row.plan_day_id,
        week_number=row.week_number,
        scheduled_date=row.scheduled_date,
        status=row.status,
        started_at=row.started_at,
        completed_at=row.completed_at,
    )


def _set(row: models.WorkoutSet) -> WorkoutSet:
    return WorkoutSet(
        id=row.id,
        workout_id=row.workout_id,
        exercise_id=row.exercise_id,
        set_number=row.set_number,
        target_reps=row.target_reps,
        target_weight=row.target_weight,
        actual_reps=row.actual_reps,
        actual_weight=row.actual_weight,
        status=row.status,
    )


def _exercise(row: models.Exercise) -> Exercise:
    return Exercise(
        id=row.id,
        name=row.name,
        weight_increment=row.weight_increment,
        is_custom=row.is_custom,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _plan_day(row: models.PlanDay) -> PlanDay:
    return PlanDay(
        id=row.id,
        plan_id=row.plan_id,
        day_of_week=row.day_of_week,
        name=row.name,
        sort_order=row.sort_order,
    )


def _plan_day_exercise(row: models.PlanDayExercise) -> PlanDayExercise:
    return PlanDayExercise(
        id=row.id,
        plan_day_id=row.plan_day_id,
        exercise_id=row.exercise_id,
        sets=row.sets,
        reps=row.reps,
        weight=row.weight,
        rest_seconds=row.rest_seconds,
        sort_order=row.sort_order,
        min_reps=row.min_reps,
        max_reps=row.max_reps,
    )


def _mesocycle(row: models.Mesocycle) -> Mesocycle:
    return Mesocycle(id=row.id, plan_id=row.plan_id, start_date=row.start_date, status=row.status)


class SqlTrainingRepository(TrainingRepository):
    """TrainingRepository backed by a SQLAlchemy session.

    Writes are flushed immediately so generated ids are available; the caller
    owns the transaction (see ``coach_engine.db.db_session``).
    """

    def __init__(self, session: Session):
        self.session = session

    def _apply(self, row, changes: dict):
        for key, value in changes.items():
            if not hasattr(row, key):
                raise AttributeError(f"{type(row).__name__} has no field {key!r}")
            setattr(row, key, value)
        self.session.flush()
        return row

    def _add(self, row):
        self.session.add(row)
        self.session.flush()
        return row

    # ── Workouts ──

    def find_workout(self, workout_id: int) -> Workout | None:
        row = self.session.get(models.Workout, workout_id)
        return _workout(row) if row else None

    def find_workouts_by_mesocycle(self, mesocycle_id: int, status: str | None = None) -> list[Workout]:
        stmt = select(models.Workout).where(models.Workout.mesocycle_id == mesocycle_id)
        if status is not None:
            stmt = stmt.where(models.Workout.status == status)
        stmt = stmt.order_by(models.Workout.scheduled_date, models.Workout.id)
        return [_workout(r) for r in self.session.scalars(stmt)]

    def create_workout(self, mesocycle_id: int, plan_day_id: int, week_number: int, scheduled_date: dt.date) -> Workout:
        row = self._add(
            models.Workout(
                mesocycle_id=mesocycle_id,
                plan_day_id=plan_day_id,
                week_number=week_number,
                scheduled_date=scheduled_date,
                status="pending",
            )
        )
        return _workout(row)

    def update_workout(self, workout_id: int, **changes) -> Workout | None:
        row = self.session.get(models.Workout, workout_id)
        if row is None:
            return None
        return _workout(self._apply(row, changes))

    # ── Workout sets ──

    def find_set(self, set_id: int) -> WorkoutSet | None:
        row = self.session.get(models.WorkoutSet, set_id)
        return _set(row) if row else None

    def find_sets_by_workout(self, workout_id: int) -> list[WorkoutSet]:
        stmt = (
            select(models.WorkoutSet)
            .where(models.WorkoutSet.workout_id == workout_id)
            .order_by(models.WorkoutSet.exercise_id, models.WorkoutSet.set_number)
        )
        return [_set(r) for r in self.session.scalars(stmt)]

    def find_sets_by_workout_and_exercise(self, workout_id: int, exercise_id: int) -> list[WorkoutSet]:
        stmt = (
            select(models.WorkoutSet)
            .where(
                models.WorkoutSet.workout_id == workout_id,
                models.WorkoutSet.exercise_id == exercise_id,
            )
            .order_by(models.WorkoutSet.set_number)
        )
        return [_set(r) for r in self.session.scalars(stmt)]

    def create_set(
        self,
        workout_id: int,
        exercise_id: int,
        set_number: int,
        target_reps: int,
        target_weight: float,
    ) -> WorkoutSet:
        row = self._add(
            models.WorkoutSet(
                workout_id=workout_id,
                exercise_id=exercise_id,
                set_number=set_number,
                target_reps=target_reps,
                target_weight=target_weight,
                status="pending",
            )
        )
        return _set(row)

    def update_set(self, set_id: int, **changes) -> WorkoutSet | None:
        row = self.session.get(models.WorkoutSet, set_id)
        if row is None:
            return None
        return _set(self._apply(row, changes))

    def delete_set(self, set_id: int) -> bool:
        result = self.session.execute(delete(models.WorkoutSet).where(models.WorkoutSet.id == set_id))
        return result.rowcount > 0

    def delete_set_if_unlogged(self, set_id: int) -> bool:
        # Single conditional DELETE so a concurrent log cannot slip in between
        # the check and the delete.
        result = self.session.execute(
            delete(models.WorkoutSet)
            .where(
                models.WorkoutSet.id == set_id,
                models.WorkoutSet.status != "completed",
                models.WorkoutSet.actual_reps.is_(None),
                models.WorkoutSet.actual_weight.is_(None),
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0

    # ── Plan templates and exercises ──

    def find_exercise(self, exercise_id: int) -> Exercise | None:
        row = self.session.get(models.Exercise, exercise_id)
        return _exercise(row) if row else None

    def create_exercise(self, name: str, weight_increment: float = 5.0, is_custom: bool = False) -> Exercise:
        row = self._add(models.Exercise(name=name, weight_increment=weight_increment, is_custom=is_custom))
        return _exercise(row)

    def find_plan_days(self, plan_id: int) -> list[PlanDay]:
        stmt = (
            select(models.PlanDay)
            .where(models.PlanDay.plan_id == plan_id)
            .order_by(models.PlanDay.sort_order, models.PlanDay.id)
        )
        return [_plan_day(r) for r in self.session.scalars(stmt)]

    def create_plan_day(self, plan_id: int, day_of_week: int, name: str = "", sort_order: int = 0) -> PlanDay:
        row = self._add(models.PlanDay(plan_id=plan_id, day_of_week=day_of_week, name=name, sort_order=sort_order))
        return _plan_day(row)

    def find_plan_day_exercises(self, plan_day_id: int) -> list[PlanDayExercise]:
        stmt = (
            select(models.PlanDayExercise)
            .where(models.PlanDayExercise.plan_day_id == plan_day_id)
            .order_by(models.PlanDayExercise.sort_order, models.PlanDayExercise.id)
        )
        return [_plan_day_exercise(r) for r in self.session.scalars(stmt)]

    def create_plan_day_exercise(self, plan_day_id: int, exercise_id: int, **prescription) -> PlanDayExercise:
        values = parse_input(PlanDayExerciseInput, {"exercise_id": exercise_id, **prescription})
        row = self._add(models.PlanDayExercise(plan_day_id=plan_day_id, **values.model_dump()))
        return _plan_day_exercise(row)

    # ── Mesocycles ──

    def find_mesocycle(self, mesocycle_id: int) -> Mesocycle | None:
        row = self.session.get(models.Mesocycle, mesocycle_id)
        return _mesocycle(row) if row else None

    def find_active_mesocycles(self) -> list[Mesocycle]:
        stmt = select(models.Mesocycle).where(models.Mesocycle.status == "active")
        return [_mesocycle(r) for r in self.session.scalars(stmt)]

    def create_mesocycle(self, plan_id: int, start_date: dt.date) -> Mesocycle:
        row = self._add(models.Mesocycle(plan_id=plan_id, start_date=start_date, status="pending"))
        return _mesocycle(row)

    def update_mesocycle(self, mesocycle_id: int, **changes) -> Mesocycle | None:
        row = self.session.get(models.Mesocycle, mesocycle_id)
        if row is None:
            return None
        return _mesocycle(self._apply(row, changes))
