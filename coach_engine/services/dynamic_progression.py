"""Next-week targets driven by what the lifter actually did.

Works inside the exercise's rep range (``min_reps``..``max_reps``):

* reaching ``max_reps`` adds the weight increment and drops to ``min_reps``
* reaching the target adds one rep, capped at ``max_reps``
* missing the target while staying at or above ``min_reps`` holds the target
* falling below ``min_reps`` at the same weight for two weeks running drops the
  weight by one increment, never below the base weight

A deload week takes 85% of last week's weight rounded to the nearest 2.5,
``min_reps`` and half the sets rounded up.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from coach_engine.repositories.base import WorkoutSet
from coach_engine.services.progression import (
    DELOAD_SET_FACTOR,
    DELOAD_WEIGHT_FACTOR,
    ExerciseProgression,
    round_to_plate,
)

CONSECUTIVE_FAILURE_THRESHOLD = 2


class ProgressionReason(str, Enum):
    FIRST_WEEK = "first_week"
    HIT_MAX_REPS = "hit_max_reps"
    HIT_TARGET = "hit_target"
    HOLD = "hold"
    REGRESS = "regress"
    DELOAD = "deload"


@dataclass(frozen=True)
class WeekPerformance:
    """Best logged set of one exercise in one week, against its targets."""
    exercise_id: int
    week_number: int
    target_weight: float
    target_reps: int
    actual_weight: float
    actual_reps: int
    hit_target: bool
    consecutive_failures: int = 0


@dataclass(frozen=True)
class NextWeekTargets:
    target_weight: float
    target_reps: int
    target_sets: int
    reason: ProgressionReason
    is_deload: bool = False


class DynamicProgressionCalculator:
    """Performance-based counterpart to ``ProgressionCalculator``. Stateless."""

    def calculate_next_week_targets(
        self,
        exercise: ExerciseProgression,
        previous_performance: WeekPerformance | None,
        is_deload_week: bool,
    ) -> NextWeekTargets:
        if previous_performance is None:
            return NextWeekTargets(
                target_weight=exercise.base_weight,
                target_reps=exercise.base_reps,
                target_sets=exercise.base_sets,
                reason=ProgressionReason.FIRST_WEEK,
            )

        weight = previous_performance.actual_weight
        reps = previous_performance.actual_reps
        target_reps = previous_performance.target_reps

        if is_deload_week:
            return NextWeekTargets(
                target_weight=round_to_plate(weight * DELOAD_WEIGHT_FACTOR),
                target_reps=exercise.min_reps,
                target_sets=max(1, math.ceil(exercise.base_sets * DELOAD_SET_FACTOR)),
                reason=ProgressionReason.DELOAD,
                is_deload=True,
            )

        if (
            reps < exercise.min_reps
            and previous_performance.consecutive_failures >= CONSECUTIVE_FAILURE_THRESHOLD
        ):
            return self._next(
                exercise,
                max(exercise.base_weight, weight - exercise.weight_increment),
                exercise.min_reps,
                ProgressionReason.REGRESS,
            )

        if reps >= exercise.max_reps:
            return self._next(
                exercise,
                weight + exercise.weight_increment,
                exercise.min_reps,
                ProgressionReason.HIT_MAX_REPS,
            )

        if reps >= target_reps:
            return self._next(
                exercise, weight, min(target_reps + 1, exercise.max_reps), ProgressionReason.HIT_TARGET
            )

        if reps >= exercise.min_reps:
            return self._next(exercise, weight, target_reps, ProgressionReason.HOLD)

        # below the range but not yet failing often enough to regress
        return self._next(exercise, weight, exercise.min_reps, ProgressionReason.HOLD)

    def consecutive_failures(
        self,
        history: Sequence[WeekPerformance],
        current_weight: float,
        min_reps: int,
    ) -> int:
        """Run of weeks below ``min_reps`` at ``current_weight``, newest first.

        The run ends at the first week that reached ``min_reps`` or used a
        different weight.
        """
        failures = 0
        for performance in history:
            if performance.actual_weight != current_weight:
                break
            if performance.actual_reps >= min_reps:
                break
            failures += 1
        return failures

    def build_week_performance(
        self,
        exercise_id: int,
        week_number: int,
        target_weight: float,
        target_reps: int,
        sets: Sequence[WorkoutSet],
        min_reps: int,
        history: Sequence[WeekPerformance] = (),
    ) -> WeekPerformance | None:
        """Summarise a week's completed sets, or None when nothing was completed.

        The best set is the heaviest, then the one with the most reps at that
        weight. ``history`` is the earlier weeks, newest first.
        """
        completed = [
            s for s in sets
            if s.status == "completed" and s.actual_reps is not None and s.actual_weight is not None
        ]
        if not completed:
            return None

        best = completed[0]
        for s in completed[1:]:
            if s.actual_weight > best.actual_weight or (
                s.actual_weight == best.actual_weight and s.actual_reps > best.actual_reps
            ):
                best = s

        if best.actual_reps < min_reps:
            failures = self.consecutive_failures(history, best.actual_weight, min_reps) + 1
        else:
            failures = 0

        return WeekPerformance(
            exercise_id=exercise_id,
            week_number=week_number,
            target_weight=target_weight,
            target_reps=target_reps,
            actual_weight=best.actual_weight,
            actual_reps=best.actual_reps,
            hit_target=best.actual_reps >= target_reps,
            consecutive_failures=failures,
        )

    @staticmethod
    def _next(
        exercise: ExerciseProgression,
        weight: float,
        reps: int,
        reason: ProgressionReason,
    ) -> NextWeekTargets:
        return NextWeekTargets(
            target_weight=weight,
            target_reps=reps,
            target_sets=exercise.base_sets,
            reason=reason,
        )
