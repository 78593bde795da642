"""Tests for daily TSS series, ATL/CTL/TSB and week helpers."""

from __future__ import annotations

import random
from datetime import date, datetime, timedelta, timezone

from coach_engine.services.training_load import (
    ActivityLoad,
    DailyTSS,
    build_daily_tss_array,
    calculate_atl,
    calculate_ctl,
    calculate_training_load_metrics,
    calculate_tsb,
    get_week_boundaries,
    get_week_in_block,
)


def _series(values, start=date(2025, 1, 1)):
    return [DailyTSS(date=start + timedelta(days=i), tss=v) for i, v in enumerate(values)]


# ── Daily series ──────────────────────────────────────────────────────────

class TestBuildDailyTSSArray:
    def test_fills_gaps_with_zero(self):
        entries = [
            ActivityLoad(timestamp="2025-01-01", tss=50),
            ActivityLoad(timestamp="2025-01-03", tss=70),
        ]
        series = build_daily_tss_array(entries, date(2025, 1, 1), date(2025, 1, 3))
        assert [d.tss for d in series] == [50, 0, 70]
        assert [d.date for d in series] == [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]

    def test_length_is_inclusive(self):
        series = build_daily_tss_array([], date(2025, 1, 1), date(2025, 1, 31))
        assert len(series) == 31
        assert all(d.tss == 0 for d in series)

    def test_same_day_summed(self):
        entries = [
            ActivityLoad(timestamp="2025-01-02T07:00:00Z", tss=40),
            ActivityLoad(timestamp="2025-01-02T18:30:00Z", tss=25),
        ]
        series = build_daily_tss_array(entries, date(2025, 1, 1), date(2025, 1, 3))
        assert series[1].tss == 65

    def test_uses_utc_calendar_day(self):
        # 23:30 at UTC-5 is already the next day in UTC
        late = datetime(2025, 1, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        series = build_daily_tss_array([ActivityLoad(timestamp=late, tss=80)], date(2025, 1, 1), date(2025, 1, 2))
        assert [d.tss for d in series] == [0, 80]

    def test_out_of_range_ignored(self):
        entries = [ActivityLoad(timestamp="2024-12-31", tss=100)]
        series = build_daily_tss_array(entries, date(2025, 1, 1), date(2025, 1, 2))
        assert sum(d.tss for d in series) == 0

    def test_accepts_daily_entries(self):
        series = build_daily_tss_array(_series([10, 20]), date(2025, 1, 1), date(2025, 1, 2))
        assert [d.tss for d in series] == [10, 20]


# ── EMA ───────────────────────────────────────────────────────────────────

def test_atl_three_days_of_100():
    assert calculate_atl(_series([100, 100, 100])) == 57.8


def test_ctl_three_days_of_100():
    # k = 2/43
    assert calculate_ctl(_series([100, 100, 100])) == 13.3


def test_order_independent():
    series = _series([30, 0, 120, 80, 0, 60, 90, 45, 0, 150])
    shuffled = list(series)
    random.Random(7).shuffle(shuffled)
    assert calculate_atl(shuffled) == calculate_atl(series)
    assert calculate_ctl(shuffled) == calculate_ctl(series)


def test_ctl_lags_atl_for_uniform_load():
    for days in (1, 7, 30, 60):
        series = _series([75] * days)
        assert calculate_ctl(series) <= calculate_atl(series)


def test_empty_series():
    assert calculate_atl([]) == 0
    assert calculate_ctl([]) == 0


def test_tsb():
    assert calculate_tsb(40.0, 57.8) == -17.8
    assert calculate_tsb(50.0, 20.0) == 30.0


# ── Aggregate ─────────────────────────────────────────────────────────────

class TestTrainingLoadMetrics:
    today = date(2025, 3, 1)

    def _activities(self):
        return [ActivityLoad(timestamp=self.today - timedelta(days=i), tss=60 + i) for i in range(0, 20, 2)]

    def test_returns_all_three(self):
        metrics = calculate_training_load_metrics(self._activities(), lookback_days=42, today=self.today)
        assert metrics.atl > 0
        assert metrics.ctl > 0
        assert metrics.tsb == calculate_tsb(metrics.ctl, metrics.atl)

    def test_longer_lookback_never_raises_ctl(self):
        activities = self._activities()
        previous = None
        for lookback in (20, 30, 60, 90, 180):
            ctl = calculate_training_load_metrics(activities, lookback_days=lookback, today=self.today).ctl
            if previous is not None:
                assert ctl <= previous
            previous = ctl

    def test_default_lookback_from_settings(self, monkeypatch):
        monkeypatch.setenv("TRAINING_LOAD_LOOKBACK_DAYS", "60")
        default = calculate_training_load_metrics(self._activities(), today=self.today)
        explicit = calculate_training_load_metrics(self._activities(), lookback_days=60, today=self.today)
        assert default == explicit

    def test_no_activities(self):
        metrics = calculate_training_load_metrics([], lookback_days=60, today=self.today)
        assert (metrics.atl, metrics.ctl, metrics.tsb) == (0, 0, 0)


# ── Weeks ─────────────────────────────────────────────────────────────────

class TestWeekInBlock:
    start = date(2025, 1, 6)

    def test_before_block(self):
        assert get_week_in_block(self.start, date(2025, 1, 5)) == 0

    def test_first_and_second_week(self):
        assert get_week_in_block(self.start, self.start) == 1
        assert get_week_in_block(self.start, date(2025, 1, 12)) == 1
        assert get_week_in_block(self.start, date(2025, 1, 13)) == 2

    def test_capped_at_eight(self):
        assert get_week_in_block(self.start, date(2025, 6, 1)) == 8

    def test_ignores_time_of_day(self):
        assert get_week_in_block(datetime(2025, 1, 6, 22, 0), datetime(2025, 1, 13, 1, 0)) == 2


class TestWeekBoundaries:
    def test_wednesday(self):
        bounds = get_week_boundaries(date(2025, 2, 5))
        assert (bounds.start, bounds.end) == ("2025-02-03", "2025-02-09")

    def test_same_week_same_bounds(self):
        expected = get_week_boundaries(date(2025, 2, 3))
        for day in (4, 5, 8, 9):
            assert get_week_boundaries(date(2025, 2, day)) == expected

    def test_sunday_belongs_to_previous_monday(self):
        bounds = get_week_boundaries(date(2025, 2, 9))
        assert bounds.start == "2025-02-03"

    def test_start_is_monday(self):
        for offset in range(30):
            day = date(2025, 1, 1) + timedelta(days=offset)
            bounds = get_week_boundaries(day)
            assert date.fromisoformat(bounds.start).weekday() == 0
            assert date.fromisoformat(bounds.end) - date.fromisoformat(bounds.start) == timedelta(days=6)
