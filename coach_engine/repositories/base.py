"""Storage-agnostic entities and the repository interface the services use.

Services never touch ORM rows. They read and write these frozen records
through a ``TrainingRepository`` and re-read state at the start of every
operation.
"""

from __future__ import annotations

import datetime as dt
from abc import ABC, abstractmethod
from dataclasses import dataclass

WORKOUT_STATUSES = ("pending", "in_progress", "completed", "skipped")
SET_STATUSES = ("pending", "completed", "skipped")
MESOCYCLE_STATUSES = ("pending", "active", "completed", "cancelled")


@dataclass(frozen=True)
class Exercise:
    id: int
    name: str
    weight_increment: float = 5.0
    is_custom: bool = False
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None


@dataclass(frozen=True)
class PlanDay:
    id: int
    plan_id: int
    day_of_week: int  # 0 = Monday
    name: str = ""
    sort_order: int = 0


@dataclass(frozen=True)
class PlanDayExercise:
    id: int
    plan_day_id: int
    exercise_id: int
    sets: int
    reps: int
    weight: float
    rest_seconds: int = 90
    sort_order: int = 0
    min_reps: int = 8
    max_reps: int = 12


@dataclass(frozen=True)
class Mesocycle:
    """A training block. The current week is derived from ``start_date``."""
    id: int
    plan_id: int
    start_date: dt.date
    status: str = "pending"


@dataclass(frozen=True)
class Workout:
    id: int
    mesocycle_id: int
    plan_day_id: int
    week_number: int
    scheduled_date: dt.date
    status: str = "pending"
    started_at: dt.datetime | None = None
    completed_at: dt.datetime | None = None

    @property
    def is_future(self) -> bool:
        """Only pending workouts may be rewritten by plan propagation."""
        return self.status == "pending"

    @property
    def is_finalized(self) -> bool:
        return self.status in ("completed", "skipped")


@dataclass(frozen=True)
class WorkoutSet:
    id: int
    workout_id: int
    exercise_id: int
    set_number: int
    target_reps: int
    target_weight: float
    actual_reps: int | None = None
    actual_weight: float | None = None
    status: str = "pending"

    @property
    def has_logged_data(self) -> bool:
        return (
            self.status == "completed"
            or self.actual_reps is not None
            or self.actual_weight is not None
        )


class TrainingRepository(ABC):
    """Persistence operations for mesocycles, workouts, sets and plan templates.

    ``find_*`` return None (single) or an empty list (many) when nothing
    matches. ``update_*`` return the updated record or None when the id is
    unknown. Set lists are ordered by ``set_number``.
    """

    # ── Workouts ──

    @abstractmethod
    def find_workout(self, workout_id: int) -> Workout | None:
        ...

    @abstractmethod
    def find_workouts_by_mesocycle(
        self, mesocycle_id: int, status: str | None = None
    ) -> list[Workout]:
        ...

    @abstractmethod
    def create_workout(
        self,
        mesocycle_id: int,
        plan_day_id: int,
        week_number: int,
        scheduled_date: dt.date,
    ) -> Workout:
        ...

    @abstractmethod
    def update_workout(self, workout_id: int, **changes) -> Workout | None:
        ...

    # ── Workout sets ──

    @abstractmethod
    def find_set(self, set_id: int) -> WorkoutSet | None:
        ...

    @abstractmethod
    def find_sets_by_workout(self, workout_id: int) -> list[WorkoutSet]:
        ...

    @abstractmethod
    def find_sets_by_workout_and_exercise(
        self, workout_id: int, exercise_id: int
    ) -> list[WorkoutSet]:
        ...

    @abstractmethod
    def create_set(
        self,
        workout_id: int,
        exercise_id: int,
        set_number: int,
        target_reps: int,
        target_weight: float,
    ) -> WorkoutSet:
        ...

    @abstractmethod
    def update_set(self, set_id: int, **changes) -> WorkoutSet | None:
        ...

    @abstractmethod
    def delete_set(self, set_id: int) -> bool:
        ...

    @abstractmethod
    def delete_set_if_unlogged(self, set_id: int) -> bool:
        """Delete only if the set is still free of logged data, atomically.

        Returns False when the set is gone or picked up logged data since it
        was read.
        """

    # ── Plan templates and exercises ──

    @abstractmethod
    def find_exercise(self, exercise_id: int) -> Exercise | None:
        ...

    @abstractmethod
    def create_exercise(self, name: str, weight_increment: float = 5.0, is_custom: bool = False) -> Exercise:
        ...

    @abstractmethod
    def find_plan_days(self, plan_id: int) -> list[PlanDay]:
        ...

    @abstractmethod
    def create_plan_day(self, plan_id: int, day_of_week: int, name: str = "", sort_order: int = 0) -> PlanDay:
        ...

    @abstractmethod
    def find_plan_day_exercises(self, plan_day_id: int) -> list[PlanDayExercise]:
        ...

    @abstractmethod
    def create_plan_day_exercise(self, plan_day_id: int, exercise_id: int, **prescription) -> PlanDayExercise:
        ...

    # ── Mesocycles ──

    @abstractmethod
    def find_mesocycle(self, mesocycle_id: int) -> Mesocycle | None:
        ...

    @abstractmethod
    def find_active_mesocycles(self) -> list[Mesocycle]:
        ...

    @abstractmethod
    def create_mesocycle(self, plan_id: int, start_date: dt.date) -> Mesocycle:
        ...

    @abstractmethod
    def update_mesocycle(self, mesocycle_id: int, **changes) -> Mesocycle | None:
        ...
