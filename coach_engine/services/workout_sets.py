"""Set and workout state machine.

Set transitions::

    pending --log--> completed --unlog--> pending
    pending --skip--> skipped

Every set operation is refused once the parent workout is completed or
skipped. The first log or skip in a pending workout starts it. Adding or
removing a set also re-targets the same exercise in the mesocycle's future
workouts.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Callable

from coach_engine.errors import InvalidStateError, NotFoundError
from coach_engine.logging_config import get_logger, log_context
from coach_engine.repositories.base import TrainingRepository, Workout, WorkoutSet
from coach_engine.services.plan_modification import PlanModificationService
from coach_engine.validators import LogSetInput, parse_input

logger = get_logger(__name__)


@dataclass(frozen=True)
class ModifySetCountResult:
    current_workout_set: WorkoutSet | None
    future_workouts_affected: int = 0
    future_sets_modified: int = 0


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


class WorkoutSetService:
    def __init__(
        self,
        repository: TrainingRepository,
        plan_modification: PlanModificationService | None = None,
        clock: Callable[[], dt.datetime] = _utcnow,
    ):
        self.repo = repository
        self.plan_modification = plan_modification or PlanModificationService(repository)
        self.clock = clock

    # ── Loading and gating ──

    def _load_set(self, set_id: int) -> tuple[WorkoutSet, Workout]:
        workout_set = self.repo.find_set(set_id)
        if workout_set is None:
            raise NotFoundError(f"WorkoutSet with id {set_id} not found")
        workout = self._load_workout(workout_set.workout_id)
        return workout_set, workout

    def _load_workout(self, workout_id: int) -> Workout:
        workout = self.repo.find_workout(workout_id)
        if workout is None:
            raise NotFoundError(f"Workout with id {workout_id} not found")
        return workout

    @staticmethod
    def _ensure_open(workout: Workout, action: str) -> None:
        if workout.is_finalized:
            raise InvalidStateError(f"Cannot {action} a {workout.status} workout")

    def _auto_start(self, workout: Workout) -> Workout:
        if workout.status != "pending":
            return workout
        started = self.repo.update_workout(workout.id, status="in_progress", started_at=self.clock())
        logger.info("Workout %s started", workout.id, extra=log_context(workout_id=workout.id))
        return started or workout

    def _update_set(self, set_id: int, **changes) -> WorkoutSet:
        updated = self.repo.update_set(set_id, **changes)
        if updated is None:
            raise NotFoundError(f"WorkoutSet with id {set_id} not found")
        return updated

    # ── Set transitions ──

    def log(self, set_id: int, data: LogSetInput | dict) -> WorkoutSet:
        """Record actual reps and weight. Zero is a valid value for either."""
        payload = parse_input(LogSetInput, data)
        workout_set, workout = self._load_set(set_id)
        self._ensure_open(workout, "log sets for")

        self._auto_start(workout)
        updated = self._update_set(
            set_id,
            actual_reps=payload.actual_reps,
            actual_weight=payload.actual_weight,
            status="completed",
        )
        logger.info(
            "Set %s logged: %s x %s",
            set_id, payload.actual_reps, payload.actual_weight,
            extra=log_context(workout_id=workout.id, set_id=set_id),
        )
        return updated

    def skip(self, set_id: int) -> WorkoutSet:
        workout_set, workout = self._load_set(set_id)
        self._ensure_open(workout, "skip sets for")

        self._auto_start(workout)
        updated = self._update_set(set_id, status="skipped", actual_reps=None, actual_weight=None)
        logger.info("Set %s skipped", set_id, extra=log_context(workout_id=workout.id, set_id=set_id))
        return updated

    def unlog(self, set_id: int) -> WorkoutSet:
        """Revert a logged set to pending. The workout keeps its status.

        Skipped sets cannot be unlogged; there is no un-skip transition.
        """
        workout_set, workout = self._load_set(set_id)
        self._ensure_open(workout, "unlog sets for")
        if workout_set.status == "skipped":
            raise InvalidStateError("Cannot unlog a skipped set")

        updated = self._update_set(set_id, status="pending", actual_reps=None, actual_weight=None)
        logger.info("Set %s unlogged", set_id, extra=log_context(workout_id=workout.id, set_id=set_id))
        return updated

    # ── Set count ──

    def add_set_to_exercise(self, workout_id: int, exercise_id: int) -> ModifySetCountResult:
        """Append a set copying the last set's targets, then propagate the count."""
        workout = self._load_workout(workout_id)
        self._ensure_open(workout, "add sets to")

        existing = self.repo.find_sets_by_workout_and_exercise(workout_id, exercise_id)
        if not existing:
            raise NotFoundError(f"No sets found for exercise {exercise_id} in workout {workout_id}")

        last = max(existing, key=lambda s: s.set_number)
        new_set = self.repo.create_set(
            workout_id=workout_id,
            exercise_id=exercise_id,
            set_number=last.set_number + 1,
            target_reps=last.target_reps,
            target_weight=last.target_weight,
        )
        logger.info(
            "Added set %d for exercise %s in workout %s",
            new_set.set_number, exercise_id, workout_id,
            extra=log_context(workout_id=workout_id),
        )

        affected, modified = self._propagate_set_count(workout, exercise_id, len(existing) + 1)
        return ModifySetCountResult(
            current_workout_set=new_set,
            future_workouts_affected=affected,
            future_sets_modified=modified,
        )

    def remove_set_from_exercise(self, workout_id: int, exercise_id: int) -> ModifySetCountResult:
        """Drop the highest-numbered pending set, then propagate the count."""
        workout = self._load_workout(workout_id)
        self._ensure_open(workout, "remove sets from")

        existing = self.repo.find_sets_by_workout_and_exercise(workout_id, exercise_id)
        if not existing:
            raise NotFoundError(f"No sets found for exercise {exercise_id} in workout {workout_id}")
        if len(existing) == 1:
            raise InvalidStateError("Cannot remove the last set from an exercise")

        pending = sorted(
            (s for s in existing if s.status == "pending" and not s.has_logged_data),
            key=lambda s: s.set_number,
            reverse=True,
        )
        if not pending:
            raise InvalidStateError("No pending sets to remove")

        target = pending[0]
        if not self.repo.delete_set_if_unlogged(target.id):
            raise InvalidStateError(f"Set {target.id} was logged before it could be removed")
        logger.info(
            "Removed set %d for exercise %s in workout %s",
            target.set_number, exercise_id, workout_id,
            extra=log_context(workout_id=workout_id),
        )

        affected, modified = self._propagate_set_count(workout, exercise_id, len(existing) - 1)
        return ModifySetCountResult(
            current_workout_set=None,
            future_workouts_affected=affected,
            future_sets_modified=modified,
        )

    def _propagate_set_count(self, workout: Workout, exercise_id: int, new_count: int) -> tuple[int, int]:
        exercise = self.repo.find_exercise(exercise_id)
        if exercise is None:
            return 0, 0
        result = self.plan_modification.update_exercise_targets_for_future_workouts(
            workout.mesocycle_id,
            workout.plan_day_id,
            exercise_id,
            {"sets": new_count},
            exercise.weight_increment,
            exclude_workout_ids=[workout.id],
        )
        return result.affected_workout_count, result.modified_sets_count

    # ── Workout transitions ──

    def start_workout(self, workout_id: int) -> Workout:
        workout = self._load_workout(workout_id)
        if workout.status != "pending":
            raise InvalidStateError(f"Cannot start a {workout.status} workout")
        return self._auto_start(workout)

    def complete_workout(self, workout_id: int) -> Workout:
        workout = self._load_workout(workout_id)
        if workout.status != "in_progress":
            raise InvalidStateError(f"Cannot complete a {workout.status} workout")
        completed = self.repo.update_workout(workout_id, status="completed", completed_at=self.clock())
        logger.info("Workout %s completed", workout_id, extra=log_context(workout_id=workout_id))
        return completed or workout

    def skip_workout(self, workout_id: int) -> Workout:
        """Skip the whole workout; its remaining pending sets become skipped."""
        workout = self._load_workout(workout_id)
        if workout.is_finalized:
            raise InvalidStateError(f"Cannot skip a {workout.status} workout")

        skipped_sets = 0
        for workout_set in self.repo.find_sets_by_workout(workout_id):
            if workout_set.status == "pending" and not workout_set.has_logged_data:
                self.repo.update_set(workout_set.id, status="skipped")
                skipped_sets += 1

        skipped = self.repo.update_workout(workout_id, status="skipped")
        logger.info(
            "Workout %s skipped (%d pending sets skipped)",
            workout_id, skipped_sets,
            extra=log_context(workout_id=workout_id),
        )
        return skipped or workout
