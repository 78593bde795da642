"""Mesocycle lifecycle: create, start (generate workouts), complete, cancel.

A mesocycle runs seven weeks. Weeks 1-6 progress from the plan-day prescription
and week 7 is the deload. Starting a mesocycle materialises one workout per
plan day per week, targeted by the progression calculator with the workout's
own week number.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field

from coach_engine.errors import InvalidStateError, NotFoundError, ValidationError
from coach_engine.logging_config import get_logger, log_context
from coach_engine.repositories.base import Mesocycle, PlanDay, TrainingRepository, Workout
from coach_engine.services.progression import (
    ExerciseProgression,
    ProgressionCalculator,
    is_deload_week,
)

logger = get_logger(__name__)

MESOCYCLE_WEEKS = 7


@dataclass(frozen=True)
class WeekSummary:
    week_number: int
    is_deload: bool
    workouts: list[Workout] = field(default_factory=list)
    completed_workouts: int = 0
    skipped_workouts: int = 0


@dataclass(frozen=True)
class MesocycleSummary:
    mesocycle: Mesocycle
    current_week: int
    weeks: list[WeekSummary]
    total_workouts: int
    completed_workouts: int


def scheduled_date_for(start_date: dt.date, week_number: int, day_of_week: int) -> dt.date:
    """Date of ``day_of_week`` (0 = Monday) in the given 1-based mesocycle week.

    Each week starts on the mesocycle's start date, so a Wednesday start
    places a Monday plan day on the following Monday.
    """
    week_start = start_date + dt.timedelta(weeks=week_number - 1)
    offset = (day_of_week - week_start.weekday()) % 7
    return week_start + dt.timedelta(days=offset)


def current_week(start_date: dt.date, today: dt.date | None = None) -> int:
    """1-based week derived from the start date, 0 before it, capped at the last week."""
    today = today or dt.date.today()
    days = (today - start_date).days
    if days < 0:
        return 0
    return min(days // 7 + 1, MESOCYCLE_WEEKS)


class MesocycleService:
    def __init__(self, repository: TrainingRepository, calculator: ProgressionCalculator | None = None):
        self.repo = repository
        self.calculator = calculator or ProgressionCalculator()

    def _load(self, mesocycle_id: int) -> Mesocycle:
        mesocycle = self.repo.find_mesocycle(mesocycle_id)
        if mesocycle is None:
            raise NotFoundError(f"Mesocycle with id {mesocycle_id} not found")
        return mesocycle

    def create_mesocycle(self, plan_id: int, start_date: dt.date) -> Mesocycle:
        if not self.repo.find_plan_days(plan_id):
            raise ValidationError("Plan has no workout days configured")
        mesocycle = self.repo.create_mesocycle(plan_id, start_date)
        logger.info(
            "Mesocycle %s created for plan %s", mesocycle.id, plan_id,
            extra=log_context(mesocycle_id=mesocycle.id),
        )
        return mesocycle

    def start_mesocycle(self, mesocycle_id: int) -> Mesocycle:
        mesocycle = self._load(mesocycle_id)
        if mesocycle.status != "pending":
            raise InvalidStateError("Only pending mesocycles can be started")
        if any(m.id != mesocycle_id for m in self.repo.find_active_mesocycles()):
            raise InvalidStateError("An active mesocycle already exists")

        plan_days = self.repo.find_plan_days(mesocycle.plan_id)
        prescriptions = {day.id: self._prescriptions(day) for day in plan_days}

        created = 0
        for week_number in range(1, MESOCYCLE_WEEKS + 1):
            for day in plan_days:
                workout = self.repo.create_workout(
                    mesocycle_id=mesocycle.id,
                    plan_day_id=day.id,
                    week_number=week_number,
                    scheduled_date=scheduled_date_for(mesocycle.start_date, week_number, day.day_of_week),
                )
                for base in prescriptions[day.id]:
                    targets = self.calculator.calculate_targets_for_week(base, week_number, True)
                    for set_number in range(1, targets.target_sets + 1):
                        self.repo.create_set(
                            workout_id=workout.id,
                            exercise_id=base.exercise_id,
                            set_number=set_number,
                            target_reps=targets.target_reps,
                            target_weight=targets.target_weight,
                        )
                created += 1

        started = self.repo.update_mesocycle(mesocycle.id, status="active")
        if started is None:
            raise NotFoundError(f"Mesocycle with id {mesocycle_id} not found")
        logger.info(
            "Mesocycle %s started with %d workouts", mesocycle.id, created,
            extra=log_context(mesocycle_id=mesocycle.id),
        )
        return started

    def _prescriptions(self, day: PlanDay) -> list[ExerciseProgression]:
        result = []
        for pde in self.repo.find_plan_day_exercises(day.id):
            exercise = self.repo.find_exercise(pde.exercise_id)
            if exercise is None:
                raise NotFoundError(f"Exercise with id {pde.exercise_id} not found")
            result.append(
                ExerciseProgression(
                    exercise_id=pde.exercise_id,
                    plan_exercise_id=pde.id,
                    base_weight=pde.weight,
                    base_reps=pde.reps,
                    base_sets=pde.sets,
                    weight_increment=exercise.weight_increment,
                    min_reps=pde.min_reps,
                    max_reps=pde.max_reps,
                )
            )
        return result

    def complete_mesocycle(self, mesocycle_id: int) -> Mesocycle:
        return self._finish(mesocycle_id, "completed")

    def cancel_mesocycle(self, mesocycle_id: int) -> Mesocycle:
        """Stop an active mesocycle. Its workouts and logged sets are kept."""
        return self._finish(mesocycle_id, "cancelled")

    def _finish(self, mesocycle_id: int, status: str) -> Mesocycle:
        mesocycle = self._load(mesocycle_id)
        if mesocycle.status != "active":
            raise InvalidStateError(f"Only active mesocycles can be {status}")
        updated = self.repo.update_mesocycle(mesocycle_id, status=status)
        if updated is None:
            raise NotFoundError(f"Mesocycle with id {mesocycle_id} not found")
        logger.info("Mesocycle %s %s", mesocycle_id, status, extra=log_context(mesocycle_id=mesocycle_id))
        return updated

    def week_summaries(self, mesocycle_id: int, today: dt.date | None = None) -> MesocycleSummary:
        mesocycle = self._load(mesocycle_id)
        workouts = self.repo.find_workouts_by_mesocycle(mesocycle_id)

        weeks = []
        for week_number in range(1, MESOCYCLE_WEEKS + 1):
            in_week = [w for w in workouts if w.week_number == week_number]
            weeks.append(
                WeekSummary(
                    week_number=week_number,
                    is_deload=is_deload_week(week_number),
                    workouts=in_week,
                    completed_workouts=sum(1 for w in in_week if w.status == "completed"),
                    skipped_workouts=sum(1 for w in in_week if w.status == "skipped"),
                )
            )

        return MesocycleSummary(
            mesocycle=mesocycle,
            current_week=current_week(mesocycle.start_date, today),
            weeks=weeks,
            total_workouts=len(workouts),
            completed_workouts=sum(1 for w in workouts if w.status == "completed"),
        )
