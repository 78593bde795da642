"""Progressive overload for lifting mesocycles.

Weeks are the mesocycle's own week numbers. Week 0 is the plan's baseline and
each following week progresses only when the previous week was completed:

* odd weeks (1, 3, 5) add one rep at the same weight
* even weeks (2, 4, 6) add the exercise's weight increment and reset reps to base
* week 7 onward is a deload: 85% of the previous week's weight rounded to the
  nearest 2.5, same reps, half the sets rounded up (never fewer than one)

An incomplete previous week repeats that week's targets instead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from coach_engine.services.metrics import round_half_up

DELOAD_WEEK = 7
DELOAD_WEIGHT_FACTOR = 0.85
DELOAD_SET_FACTOR = 0.5
WEIGHT_ROUNDING = 2.5


@dataclass(frozen=True)
class ExerciseProgression:
    """Base prescription for one exercise of a plan day."""
    exercise_id: int
    plan_exercise_id: int | None
    base_weight: float
    base_reps: int
    base_sets: int
    weight_increment: float = 5.0
    min_reps: int = 8
    max_reps: int = 12


@dataclass(frozen=True)
class ProgressionTargets:
    exercise_id: int
    plan_exercise_id: int | None
    week_number: int
    target_weight: float
    target_reps: int
    target_sets: int
    is_deload: bool = False


@dataclass(frozen=True)
class CompletionStatus:
    exercise_id: int
    week_number: int
    all_sets_completed: bool
    completed_sets: int = 0
    prescribed_sets: int = 0


def round_to_plate(weight: float) -> float:
    """Round to the nearest 2.5, halves going up."""
    return round_half_up(weight / WEIGHT_ROUNDING) * WEIGHT_ROUNDING


def is_deload_week(week_number: int) -> bool:
    return week_number >= DELOAD_WEEK


class ProgressionCalculator:
    """Deterministic week-by-week targets. Holds no state between calls."""

    def calculate_targets_for_week(
        self,
        exercise: ExerciseProgression,
        week_number: int,
        previous_week_completed: bool = True,
    ) -> ProgressionTargets:
        if week_number <= 0:
            return self._targets(exercise, 0, exercise.base_weight, exercise.base_reps, exercise.base_sets)

        if is_deload_week(week_number):
            last_week = DELOAD_WEEK - 1 if previous_week_completed else DELOAD_WEEK - 2
            prior = self.calculate_targets_for_week(exercise, last_week, True)
            return self.calculate_deload_targets(
                exercise, prior.target_weight, prior.target_reps, week_number=week_number
            )

        if not previous_week_completed:
            repeat = self.calculate_targets_for_week(exercise, week_number - 1, True)
            return self._targets(
                exercise, week_number, repeat.target_weight, repeat.target_reps, repeat.target_sets
            )

        prior = self.calculate_targets_for_week(exercise, week_number - 1, True)
        if week_number % 2 == 1:
            weight, reps = prior.target_weight, prior.target_reps + 1
        else:
            weight, reps = prior.target_weight + exercise.weight_increment, exercise.base_reps
        return self._targets(exercise, week_number, weight, reps, exercise.base_sets)

    def calculate_deload_targets(
        self,
        exercise: ExerciseProgression,
        weight: float,
        reps: int,
        week_number: int = DELOAD_WEEK,
    ) -> ProgressionTargets:
        sets = max(1, math.ceil(exercise.base_sets * DELOAD_SET_FACTOR))
        return self._targets(
            exercise,
            week_number,
            round_to_plate(weight * DELOAD_WEIGHT_FACTOR),
            reps,
            sets,
            is_deload=True,
        )

    def calculate_progression_history(
        self,
        exercise: ExerciseProgression,
        completion_history: Sequence[CompletionStatus],
    ) -> list[ProgressionTargets]:
        """Targets for weeks 0..len(history), each gated on the prior week."""
        results = [self.calculate_targets_for_week(exercise, 0, True)]
        for week, previous in enumerate(completion_history, start=1):
            results.append(
                self.calculate_targets_for_week(exercise, week, previous.all_sets_completed)
            )
        return results

    @staticmethod
    def _targets(
        exercise: ExerciseProgression,
        week_number: int,
        weight: float,
        reps: int,
        sets: int,
        is_deload: bool = False,
    ) -> ProgressionTargets:
        return ProgressionTargets(
            exercise_id=exercise.exercise_id,
            plan_exercise_id=exercise.plan_exercise_id,
            week_number=week_number,
            target_weight=weight,
            target_reps=reps,
            target_sets=sets,
            is_deload=is_deload,
        )
