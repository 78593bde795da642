"""Tests for week-by-week progressive overload and deload targets."""

from __future__ import annotations

from dataclasses import replace

import pytest

from coach_engine.services.progression import (
    CompletionStatus,
    ExerciseProgression,
    ProgressionCalculator,
    is_deload_week,
    round_to_plate,
)

BASE = ExerciseProgression(
    exercise_id=1,
    plan_exercise_id=10,
    base_weight=30,
    base_reps=8,
    base_sets=3,
    weight_increment=5,
)


@pytest.fixture
def calc():
    return ProgressionCalculator()


# ── Completed path ────────────────────────────────────────────────────────

@pytest.mark.parametrize(
    "week,weight,reps",
    [(0, 30, 8), (1, 30, 9), (2, 35, 8), (3, 35, 9), (4, 40, 8), (5, 40, 9), (6, 45, 8)],
)
def test_completed_progression(calc, week, weight, reps):
    targets = calc.calculate_targets_for_week(BASE, week, True)
    assert (targets.target_weight, targets.target_reps, targets.target_sets) == (weight, reps, 3)
    assert targets.is_deload is False
    assert targets.week_number == week


def test_week_zero_ignores_completion(calc):
    targets = calc.calculate_targets_for_week(BASE, 0, False)
    assert (targets.target_weight, targets.target_reps) == (30, 8)


# ── Incomplete previous week ──────────────────────────────────────────────

@pytest.mark.parametrize(
    "week,weight,reps",
    [(1, 30, 8), (2, 30, 9), (3, 35, 8), (4, 35, 9), (5, 40, 8), (6, 40, 9)],
)
def test_incomplete_previous_week_repeats(calc, week, weight, reps):
    targets = calc.calculate_targets_for_week(BASE, week, False)
    assert (targets.target_weight, targets.target_reps) == (weight, reps)


def test_custom_increment(calc):
    targets = calc.calculate_targets_for_week(replace(BASE, weight_increment=2.5), 2, True)
    assert targets.target_weight == 32.5


# ── Deload ────────────────────────────────────────────────────────────────

class TestDeload:
    def test_week_seven(self, calc):
        targets = calc.calculate_targets_for_week(BASE, 7, True)
        assert targets.target_weight == 37.5  # 45 * 0.85 = 38.25 -> 37.5
        assert targets.target_reps == 8
        assert targets.target_sets == 2
        assert targets.is_deload is True

    def test_week_six_still_progresses(self, calc):
        assert calc.calculate_targets_for_week(BASE, 6, True).is_deload is False
        assert is_deload_week(6) is False
        assert is_deload_week(7) is True

    def test_rounds_to_nearest_plate(self, calc):
        targets = calc.calculate_targets_for_week(replace(BASE, base_weight=40), 7, True)
        assert targets.target_weight == 47.5  # 55 * 0.85 = 46.75

    def test_odd_sets_round_up(self, calc):
        assert calc.calculate_targets_for_week(replace(BASE, base_sets=5), 7, True).target_sets == 3

    def test_minimum_one_set(self, calc):
        assert calc.calculate_targets_for_week(replace(BASE, base_sets=1), 7, True).target_sets == 1

    def test_incomplete_week_six(self, calc):
        targets = calc.calculate_targets_for_week(BASE, 7, False)
        assert targets.target_weight == 35  # week 5: 40 * 0.85 = 34 -> 35
        assert targets.target_reps == 9
        assert targets.is_deload is True

    def test_light_weight(self, calc):
        targets = calc.calculate_targets_for_week(replace(BASE, base_weight=0), 7, True)
        assert targets.target_weight == 12.5  # 15 * 0.85 = 12.75

    def test_later_weeks_stay_deloaded(self, calc):
        assert calc.calculate_targets_for_week(BASE, 8, True) == replace(
            calc.calculate_targets_for_week(BASE, 7, True), week_number=8
        )

    def test_explicit_deload_targets(self, calc):
        targets = calc.calculate_deload_targets(BASE, 100, 10)
        assert (targets.target_weight, targets.target_reps, targets.target_sets) == (85, 10, 2)
        assert targets.week_number == 7


@pytest.mark.parametrize("weight,expected", [(34, 35), (46.75, 47.5), (12.75, 12.5), (38.25, 37.5), (0, 0)])
def test_round_to_plate(weight, expected):
    assert round_to_plate(weight) == expected


# ── History ───────────────────────────────────────────────────────────────

def test_progression_history(calc):
    history = [
        CompletionStatus(exercise_id=1, week_number=0, all_sets_completed=True, completed_sets=3, prescribed_sets=3),
        CompletionStatus(exercise_id=1, week_number=1, all_sets_completed=True, completed_sets=3, prescribed_sets=3),
        CompletionStatus(exercise_id=1, week_number=2, all_sets_completed=False, completed_sets=2, prescribed_sets=3),
    ]
    result = calc.calculate_progression_history(BASE, history)
    assert len(result) == 4
    assert [r.target_weight for r in result] == [30, 30, 35, 35]
    assert result[3].target_reps == 8


def test_zero_base_weight(calc):
    assert calc.calculate_targets_for_week(replace(BASE, base_weight=0), 0, True).target_weight == 0


def test_identity_carried_through(calc):
    targets = calc.calculate_targets_for_week(BASE, 3, True)
    assert targets.exercise_id == 1
    assert targets.plan_exercise_id == 10
    assert targets.week_number == 3


def test_deterministic(calc):
    assert calc.calculate_targets_for_week(BASE, 4, True) == calc.calculate_targets_for_week(BASE, 4, True)
