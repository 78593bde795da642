"""Propagate plan-day edits into a mesocycle's future workouts.

A workout is "future" while its status is ``pending``; the scheduled date
does not matter, so an overdue workout that never started is still rewritten.
In-progress, completed and skipped workouts are never touched.

Inside a future workout, a set with logged data is never deleted or
rewritten. It keeps its ``set_number`` slot, and the workout is reported in
the result's warnings. Deletes go through the repository's conditional
delete, so a set that gets logged between our read and our write survives.

Targets come from ``ProgressionCalculator`` for each workout's week, so a
week-3 workout receives week-3 weights rather than the raw plan values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from coach_engine.config import get_settings
from coach_engine.logging_config import get_logger, log_context
from coach_engine.repositories.base import (
    Exercise,
    PlanDayExercise,
    TrainingRepository,
    Workout,
    WorkoutSet,
)
from coach_engine.services.progression import (
    ExerciseProgression,
    ProgressionCalculator,
    ProgressionTargets,
)
from coach_engine.validators import TargetOverrides, parse_input

logger = get_logger(__name__)

# Fields whose change marks a plan-day exercise as modified
TRACKED_FIELDS = ("sets", "reps", "weight", "rest_seconds")


@dataclass(frozen=True)
class ModifiedExercise:
    exercise_id: int
    plan_day_exercise_id: int
    changes: dict[str, Any]  # only the fields that differ, with their new values


@dataclass(frozen=True)
class PlanDayDiff:
    plan_day_id: int
    added_exercises: list[PlanDayExercise] = field(default_factory=list)
    removed_exercises: list[PlanDayExercise] = field(default_factory=list)
    modified_exercises: list[ModifiedExercise] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added_exercises or self.removed_exercises or self.modified_exercises)


@dataclass(frozen=True)
class AddExerciseResult:
    affected_workout_count: int = 0
    added_sets_count: int = 0


@dataclass(frozen=True)
class RemoveExerciseResult:
    affected_workout_count: int = 0
    removed_sets_count: int = 0
    preserved_count: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class UpdateTargetsResult:
    affected_workout_count: int = 0
    modified_sets_count: int = 0


@dataclass(frozen=True)
class SyncResult:
    affected_workout_count: int = 0
    added_sets_count: int = 0
    removed_sets_count: int = 0
    modified_sets_count: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class _SetChanges:
    added: int = 0
    removed: int = 0
    modified: int = 0
    preserved: int = 0

    @property
    def touched(self) -> bool:
        return bool(self.added or self.removed or self.modified)

    def merge(self, other: _SetChanges) -> None:
        self.added += other.added
        self.removed += other.removed
        self.modified += other.modified
        self.preserved += other.preserved


def preserved_warning(workout: Workout) -> str:
    return f"Workout on {workout.scheduled_date.isoformat()} has logged data - exercise sets preserved"


def diff_plan_day_exercises(
    plan_day_id: int,
    old_exercises: Sequence[PlanDayExercise],
    new_exercises: Sequence[PlanDayExercise],
) -> PlanDayDiff:
    """Compare two versions of a plan day's prescriptions, matched by exercise id."""
    old_by_exercise = {pde.exercise_id: pde for pde in old_exercises}
    new_by_exercise = {pde.exercise_id: pde for pde in new_exercises}

    added = [pde for pde in new_exercises if pde.exercise_id not in old_by_exercise]
    removed = [pde for pde in old_exercises if pde.exercise_id not in new_by_exercise]

    modified: list[ModifiedExercise] = []
    for pde in new_exercises:
        before = old_by_exercise.get(pde.exercise_id)
        if before is None:
            continue
        changes = {
            name: getattr(pde, name)
            for name in TRACKED_FIELDS
            if getattr(pde, name) != getattr(before, name)
        }
        if changes:
            modified.append(
                ModifiedExercise(
                    exercise_id=pde.exercise_id,
                    plan_day_exercise_id=pde.id,
                    changes=changes,
                )
            )

    return PlanDayDiff(
        plan_day_id=plan_day_id,
        added_exercises=added,
        removed_exercises=removed,
        modified_exercises=modified,
    )


class PlanModificationService:
    def __init__(
        self,
        repository: TrainingRepository,
        calculator: ProgressionCalculator | None = None,
    ):
        self.repo = repository
        self.calculator = calculator or ProgressionCalculator()

    # ── Queries ──

    def diff_plan_day_exercises(
        self,
        plan_day_id: int,
        old_exercises: Sequence[PlanDayExercise],
        new_exercises: Sequence[PlanDayExercise],
    ) -> PlanDayDiff:
        return diff_plan_day_exercises(plan_day_id, old_exercises, new_exercises)

    def get_future_workouts(self, mesocycle_id: int) -> list[Workout]:
        return self.repo.find_workouts_by_mesocycle(mesocycle_id, status="pending")

    def _future_workouts_for_day(
        self,
        mesocycle_id: int,
        plan_day_id: int,
        exclude_workout_ids: Iterable[int] = (),
    ) -> list[Workout]:
        excluded = set(exclude_workout_ids)
        return [
            w
            for w in self.get_future_workouts(mesocycle_id)
            if w.plan_day_id == plan_day_id and w.id not in excluded
        ]

    # ── Single-exercise propagation ──

    def add_exercise_to_future_workouts(
        self,
        mesocycle_id: int,
        plan_day_id: int,
        plan_day_exercise: PlanDayExercise,
        exercise: Exercise,
    ) -> AddExerciseResult:
        """Create the exercise's sets in every future workout of the plan day.

        Workouts that already carry sets for the exercise are left alone.
        """
        base = self._base_prescription(plan_day_exercise, exercise.weight_increment)
        affected = 0
        added = 0

        for workout in self._future_workouts_for_day(mesocycle_id, plan_day_id):
            if self.repo.find_sets_by_workout_and_exercise(workout.id, exercise.id):
                continue
            targets = self._targets_for(base, workout)
            added += self._create_sets(workout, exercise.id, targets, range(1, targets.target_sets + 1))
            affected += 1

        logger.info(
            "Added exercise %s to %d future workouts (%d sets) in mesocycle %s",
            exercise.id, affected, added, mesocycle_id,
        )
        return AddExerciseResult(affected_workout_count=affected, added_sets_count=added)

    def remove_exercise_from_future_workouts(
        self,
        mesocycle_id: int,
        plan_day_id: int,
        exercise_id: int,
    ) -> RemoveExerciseResult:
        affected = 0
        removed = 0
        preserved_workouts = 0
        warnings: list[str] = []

        for workout in self._future_workouts_for_day(mesocycle_id, plan_day_id):
            changes = self._remove_sets(workout, exercise_id)
            if not (changes.removed or changes.preserved):
                continue
            if changes.removed:
                affected += 1
            removed += changes.removed
            if changes.preserved:
                preserved_workouts += 1
                warnings.append(self._warn_preserved(workout, exercise_id))

        logger.info(
            "Removed exercise %s from %d future workouts (%d sets, %d workouts preserved) in mesocycle %s",
            exercise_id, affected, removed, preserved_workouts, mesocycle_id,
        )
        return RemoveExerciseResult(
            affected_workout_count=affected,
            removed_sets_count=removed,
            preserved_count=preserved_workouts,
            warnings=warnings,
        )

    def update_exercise_targets_for_future_workouts(
        self,
        mesocycle_id: int,
        plan_day_id: int,
        exercise_id: int,
        overrides: TargetOverrides | Mapping[str, Any],
        weight_increment: float | None = None,
        exclude_workout_ids: Iterable[int] = (),
    ) -> UpdateTargetsResult:
        """Re-target an exercise in future workouts using new base values.

        ``overrides`` (reps, weight, sets) replace the plan-day values as the
        progression baseline for every future week. Every set change counts
        as a modification here, including sets created or trimmed to match a
        new set count.
        """
        overrides = parse_input(TargetOverrides, overrides)
        if weight_increment is None:
            weight_increment = self._weight_increment(exercise_id)

        workouts = self._future_workouts_for_day(mesocycle_id, plan_day_id, exclude_workout_ids)
        plan_exercise = next(
            (p for p in self.repo.find_plan_day_exercises(plan_day_id) if p.exercise_id == exercise_id),
            None,
        )

        affected = 0
        modified = 0
        for workout in workouts:
            sets = self.repo.find_sets_by_workout_and_exercise(workout.id, exercise_id)
            base = self._override_base(plan_exercise, exercise_id, sets, overrides, weight_increment)
            if base is None:
                continue
            changes = self._reconcile(workout, exercise_id, self._targets_for(base, workout), sets)
            if changes.preserved:
                self._warn_preserved(workout, exercise_id)
            if changes.touched:
                affected += 1
                modified += changes.added + changes.removed + changes.modified

        logger.info(
            "Updated targets for exercise %s in %d future workouts (%d sets) in mesocycle %s",
            exercise_id, affected, modified, mesocycle_id,
        )
        return UpdateTargetsResult(affected_workout_count=affected, modified_sets_count=modified)

    # ── Whole-day reconciliation ──

    def sync_plan_to_mesocycle(
        self,
        mesocycle_id: int,
        plan_day_id: int,
        new_plan_exercises: Sequence[PlanDayExercise],
        exercise_lookup: Mapping[int, Exercise],
    ) -> SyncResult:
        """Bring every future workout of a plan day in line with the new plan."""
        workouts = self._future_workouts_for_day(mesocycle_id, plan_day_id)
        if not workouts:
            return SyncResult()

        warnings: list[str] = []
        bases: dict[int, ExerciseProgression] = {}
        default_increment = get_settings().default_weight_increment
        for pde in new_plan_exercises:
            exercise = exercise_lookup.get(pde.exercise_id)
            if exercise is None:
                warnings.append(
                    f"Exercise {pde.exercise_id} not found - using default weight increment"
                )
                increment = default_increment
            else:
                increment = exercise.weight_increment
            bases[pde.exercise_id] = self._base_prescription(pde, increment)

        affected = 0
        totals = _SetChanges()
        for workout in workouts:
            workout_changes = _SetChanges()
            current = self._sets_by_exercise(self.repo.find_sets_by_workout(workout.id))
            preserved_here = False

            for exercise_id, base in bases.items():
                targets = self._targets_for(base, workout)
                existing = current.get(exercise_id, [])
                if not existing:
                    workout_changes.added += self._create_sets(
                        workout, exercise_id, targets, range(1, targets.target_sets + 1)
                    )
                    continue
                changes = self._reconcile(workout, exercise_id, targets, existing)
                workout_changes.merge(changes)
                preserved_here = preserved_here or bool(changes.preserved)

            for exercise_id in current:
                if exercise_id in bases:
                    continue
                changes = self._remove_sets(workout, exercise_id, current[exercise_id])
                workout_changes.merge(changes)
                preserved_here = preserved_here or bool(changes.preserved)

            if preserved_here:
                warnings.append(self._warn_preserved(workout))
            if workout_changes.touched:
                affected += 1
            totals.merge(workout_changes)

        logger.info(
            "Synced plan day %s into %d future workouts of mesocycle %s "
            "(+%d / -%d / ~%d sets, %d warnings)",
            plan_day_id, affected, mesocycle_id,
            totals.added, totals.removed, totals.modified, len(warnings),
        )
        return SyncResult(
            affected_workout_count=affected,
            added_sets_count=totals.added,
            removed_sets_count=totals.removed,
            modified_sets_count=totals.modified,
            warnings=warnings,
        )

    def apply_diff_to_mesocycle(
        self,
        mesocycle_id: int,
        diff: PlanDayDiff,
        exercise_lookup: Mapping[int, Exercise],
    ) -> SyncResult:
        """Apply a precomputed diff exercise by exercise."""
        affected = 0
        added = removed = modified = 0
        warnings: list[str] = []

        for pde in diff.added_exercises:
            exercise = exercise_lookup.get(pde.exercise_id) or self.repo.find_exercise(pde.exercise_id)
            if exercise is None:
                warnings.append(f"Exercise {pde.exercise_id} not found - not added to future workouts")
                continue
            result = self.add_exercise_to_future_workouts(mesocycle_id, diff.plan_day_id, pde, exercise)
            added += result.added_sets_count
            affected = max(affected, result.affected_workout_count)

        for pde in diff.removed_exercises:
            result = self.remove_exercise_from_future_workouts(mesocycle_id, diff.plan_day_id, pde.exercise_id)
            removed += result.removed_sets_count
            warnings.extend(result.warnings)
            affected = max(affected, result.affected_workout_count)

        for change in diff.modified_exercises:
            overrides = {k: v for k, v in change.changes.items() if k in ("reps", "weight", "sets")}
            if not overrides:
                continue
            exercise = exercise_lookup.get(change.exercise_id)
            result = self.update_exercise_targets_for_future_workouts(
                mesocycle_id,
                diff.plan_day_id,
                change.exercise_id,
                overrides,
                exercise.weight_increment if exercise else None,
            )
            modified += result.modified_sets_count
            affected = max(affected, result.affected_workout_count)

        return SyncResult(
            affected_workout_count=affected,
            added_sets_count=added,
            removed_sets_count=removed,
            modified_sets_count=modified,
            warnings=warnings,
        )

    # ── Helpers ──

    def _weight_increment(self, exercise_id: int) -> float:
        exercise = self.repo.find_exercise(exercise_id)
        if exercise is None:
            return get_settings().default_weight_increment
        return exercise.weight_increment

    @staticmethod
    def _base_prescription(pde: PlanDayExercise, weight_increment: float) -> ExerciseProgression:
        return ExerciseProgression(
            exercise_id=pde.exercise_id,
            plan_exercise_id=pde.id,
            base_weight=pde.weight,
            base_reps=pde.reps,
            base_sets=pde.sets,
            weight_increment=weight_increment,
            min_reps=pde.min_reps,
            max_reps=pde.max_reps,
        )

    @staticmethod
    def _override_base(
        plan_exercise: PlanDayExercise | None,
        exercise_id: int,
        sets: Sequence[WorkoutSet],
        overrides: TargetOverrides,
        weight_increment: float,
    ) -> ExerciseProgression | None:
        if plan_exercise is not None:
            weight, reps, count = plan_exercise.weight, plan_exercise.reps, plan_exercise.sets
            plan_exercise_id = plan_exercise.id
        elif sets:
            template = sets[0]
            weight, reps, count = template.target_weight, template.target_reps, len(sets)
            plan_exercise_id = None
        else:
            return None
        return ExerciseProgression(
            exercise_id=exercise_id,
            plan_exercise_id=plan_exercise_id,
            base_weight=overrides.weight if overrides.weight is not None else weight,
            base_reps=overrides.reps if overrides.reps is not None else reps,
            base_sets=overrides.sets if overrides.sets is not None else count,
            weight_increment=weight_increment,
        )

    def _targets_for(self, base: ExerciseProgression, workout: Workout) -> ProgressionTargets:
        return self.calculator.calculate_targets_for_week(base, workout.week_number, True)

    @staticmethod
    def _sets_by_exercise(sets: Iterable[WorkoutSet]) -> dict[int, list[WorkoutSet]]:
        grouped: dict[int, list[WorkoutSet]] = {}
        for s in sets:
            grouped.setdefault(s.exercise_id, []).append(s)
        return grouped

    def _create_sets(
        self,
        workout: Workout,
        exercise_id: int,
        targets: ProgressionTargets,
        set_numbers: Iterable[int],
    ) -> int:
        created = 0
        for number in set_numbers:
            self.repo.create_set(
                workout_id=workout.id,
                exercise_id=exercise_id,
                set_number=number,
                target_reps=targets.target_reps,
                target_weight=targets.target_weight,
            )
            created += 1
        return created

    def _remove_sets(
        self,
        workout: Workout,
        exercise_id: int,
        sets: Sequence[WorkoutSet] | None = None,
    ) -> _SetChanges:
        if sets is None:
            sets = self.repo.find_sets_by_workout_and_exercise(workout.id, exercise_id)
        changes = _SetChanges()
        for s in sets:
            if not s.has_logged_data and self.repo.delete_set_if_unlogged(s.id):
                changes.removed += 1
            else:
                changes.preserved += 1
        return changes

    def _reconcile(
        self,
        workout: Workout,
        exercise_id: int,
        targets: ProgressionTargets,
        sets: Sequence[WorkoutSet],
    ) -> _SetChanges:
        """Fit an exercise's sets in one workout to ``targets``.

        Slots 1..target_sets end up holding either a logged set or a pending
        set carrying the new targets. Pending sets past the target count are
        deleted. Logged sets are never moved or renumbered.
        """
        changes = _SetChanges()
        by_number = {s.set_number: s for s in sets}

        for number in range(1, targets.target_sets + 1):
            existing = by_number.get(number)
            if existing is None:
                changes.added += self._create_sets(workout, exercise_id, targets, [number])
                continue
            if existing.has_logged_data:
                continue
            if (
                existing.target_reps == targets.target_reps
                and existing.target_weight == targets.target_weight
            ):
                continue
            if not self.repo.delete_set_if_unlogged(existing.id):
                changes.preserved += 1
                continue
            self._create_sets(workout, exercise_id, targets, [number])
            changes.modified += 1

        for number, existing in sorted(by_number.items(), reverse=True):
            if number <= targets.target_sets:
                continue
            if existing.has_logged_data or not self.repo.delete_set_if_unlogged(existing.id):
                changes.preserved += 1
                continue
            changes.removed += 1

        return changes

    def _warn_preserved(self, workout: Workout, exercise_id: int | None = None) -> str:
        message = preserved_warning(workout)
        logger.warning(
            message,
            extra=log_context(workout_id=workout.id, exercise_id=exercise_id),
        )
        return message
