"""Training load metrics: ATL, CTL and TSB from daily TSS.

ATL (acute training load, "fatigue") and CTL (chronic training load,
"fitness") are exponential moving averages of daily TSS over 7 and 42 days.
TSB (training stress balance, "form") is CTL minus ATL.

The daily series is built on the UTC calendar so an activity logged late in
the evening never drifts into a neighbouring day. Block and ISO-week helpers
work on local calendar days.

Reference: Coggan & Allen, Training and Racing with a Power Meter.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Sequence

from coach_engine.config import get_settings
from coach_engine.services.metrics import round_half_up

ATL_DAYS = 7
CTL_DAYS = 42
BLOCK_WEEKS = 8


@dataclass(frozen=True)
class DailyTSS:
    """Training stress for one calendar day."""
    date: date
    tss: float


@dataclass(frozen=True)
class ActivityLoad:
    """Sparse TSS entry; ``timestamp`` may carry a time of day."""
    timestamp: date | datetime | str
    tss: float


@dataclass(frozen=True)
class TrainingLoadMetrics:
    atl: float   # fatigue
    ctl: float   # fitness
    tsb: float   # form


@dataclass(frozen=True)
class WeekBoundaries:
    start: str   # Monday, YYYY-MM-DD
    end: str     # Sunday, YYYY-MM-DD


def to_utc_date(value: date | datetime | str) -> date:
    """Truncate a timestamp to its UTC calendar day.

    Naive datetimes are taken to be UTC already. Strings are parsed as ISO
    8601; a trailing ``Z`` is accepted.
    """
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            return date.fromisoformat(text)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def _to_local_date(value: date | datetime | str) -> date:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


def build_daily_tss_array(
    entries: Iterable[ActivityLoad | DailyTSS],
    start_date: date | datetime | str,
    end_date: date | datetime | str,
) -> list[DailyTSS]:
    """Dense day-by-day series from ``start_date`` to ``end_date`` inclusive.

    Entries on the same UTC day are summed; days without entries are 0.
    Entries outside the range are ignored.
    """
    start = to_utc_date(start_date)
    end = to_utc_date(end_date)

    totals: dict[date, float] = defaultdict(float)
    for entry in entries:
        stamp = entry.timestamp if isinstance(entry, ActivityLoad) else entry.date
        totals[to_utc_date(stamp)] += entry.tss

    series: list[DailyTSS] = []
    day = start
    while day <= end:
        series.append(DailyTSS(date=day, tss=totals.get(day, 0.0)))
        day += timedelta(days=1)
    return series


def _ema(series: Sequence[DailyTSS], days: int) -> float:
    k = 2 / (days + 1)
    ema = 0.0
    for entry in sorted(series, key=lambda e: e.date):
        ema += (entry.tss - ema) * k
    return round_half_up(ema, 1)


def calculate_atl(series: Sequence[DailyTSS]) -> float:
    """7-day EMA of daily TSS (fatigue)."""
    return _ema(series, ATL_DAYS)


def calculate_ctl(series: Sequence[DailyTSS]) -> float:
    """42-day EMA of daily TSS (fitness)."""
    return _ema(series, CTL_DAYS)


def calculate_tsb(ctl: float, atl: float) -> float:
    return round_half_up(ctl - atl, 1)


def calculate_training_load_metrics(
    activities: Iterable[ActivityLoad | DailyTSS],
    lookback_days: int | None = None,
    today: date | None = None,
) -> TrainingLoadMetrics:
    """ATL, CTL and TSB over the last ``lookback_days`` days ending today (UTC)."""
    if lookback_days is None:
        lookback_days = get_settings().default_lookback_days
    end = today or datetime.now(timezone.utc).date()
    start = end - timedelta(days=lookback_days)

    series = build_daily_tss_array(activities, start, end)
    atl = calculate_atl(series)
    ctl = calculate_ctl(series)
    return TrainingLoadMetrics(atl=atl, ctl=ctl, tsb=calculate_tsb(ctl, atl))


def get_week_in_block(
    block_start: date | datetime | str,
    current: date | datetime | str | None = None,
) -> int:
    """1-based week of a training block, capped at 8; 0 before the block starts."""
    start = _to_local_date(block_start)
    today = _to_local_date(current) if current is not None else date.today()
    days = (today - start).days
    if days < 0:
        return 0
    return min(days // 7 + 1, BLOCK_WEEKS)


def get_week_boundaries(day: date | datetime | str | None = None) -> WeekBoundaries:
    """Monday-to-Sunday week containing ``day``."""
    current = _to_local_date(day) if day is not None else date.today()
    monday = current - timedelta(days=current.weekday())
    sunday = monday + timedelta(days=6)
    return WeekBoundaries(start=monday.isoformat(), end=sunday.isoformat())
