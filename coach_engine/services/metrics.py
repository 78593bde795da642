"""Cycling metrics: TSS, intensity factor, efficiency factor and stream analysis.

These are the strict variants used by batch training-load math. A non-positive
FTP is a caller error here; the lenient single-activity path lives in
``coach_engine.services.activities.strava`` and degrades to 0 instead.

Every other out-of-range input (missing power, missing heart rate, empty
streams) degrades to 0 or None because sensor data is often incomplete.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from coach_engine.errors import ValidationError

# IF breakpoints for workout classification (lower bounds, inclusive)
IF_VO2MAX = 1.05
IF_THRESHOLD = 0.88
IF_FUN = 0.75

# Efficiency factor category upper bounds (exclusive)
EF_BEGINNER_MAX = 1.1
EF_INTERMEDIATE_MAX = 1.3
EF_TRAINED_MAX = 1.5

# Peak-power windows may come up this many seconds short of the target
PEAK_WINDOW_TOLERANCE_SEC = 1


def round_half_up(value: float, places: int = 0) -> float:
    """Round with .5 going away from zero, unlike the builtin banker's round."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _require_positive_ftp(ftp: float) -> None:
    if ftp <= 0:
        raise ValidationError("FTP must be a positive number")


def calculate_tss(duration_sec: float, normalized_power: float, ftp: float) -> float:
    """Training Stress Score for a ride, rounded to one decimal.

    3600 s at FTP scores exactly 100.
    """
    _require_positive_ftp(ftp)
    if duration_sec <= 0 or normalized_power <= 0:
        return 0.0
    intensity = normalized_power / ftp
    tss = (duration_sec * normalized_power * intensity) / (ftp * 3600) * 100
    return round_half_up(tss, 1)


def calculate_intensity_factor(normalized_power: float, ftp: float) -> float:
    """NP / FTP rounded to two decimals."""
    _require_positive_ftp(ftp)
    if normalized_power <= 0:
        return 0.0
    return round_half_up(normalized_power / ftp, 2)


def classify_workout_type(intensity_factor: float) -> str:
    if intensity_factor >= IF_VO2MAX:
        return "vo2max"
    if intensity_factor >= IF_THRESHOLD:
        return "threshold"
    if intensity_factor >= IF_FUN:
        return "fun"
    if intensity_factor > 0:
        return "recovery"
    return "unknown"


def calculate_ef(normalized_power: float, avg_heart_rate: float) -> float | None:
    """Efficiency factor (NP / average HR), or None without usable inputs."""
    if normalized_power <= 0 or avg_heart_rate <= 0:
        return None
    return round_half_up(normalized_power / avg_heart_rate, 2)


def categorize_ef(ef: float) -> str:
    if ef < EF_BEGINNER_MAX:
        return "beginner"
    if ef < EF_INTERMEDIATE_MAX:
        return "intermediate"
    if ef < EF_TRAINED_MAX:
        return "trained"
    return "well_trained"


def calculate_peak_power(
    watts: Sequence[float],
    time: Sequence[float],
    window_sec: float,
) -> int:
    """Best mean power over any window of ``window_sec`` seconds.

    ``time`` holds elapsed seconds aligned with ``watts``. Each start index
    grows a window while the elapsed time stays under ``window_sec``; windows
    shorter than ``window_sec - 1`` seconds are ignored. Returns 0 when no
    window qualifies.
    """
    if not watts or not time:
        return 0

    n = min(len(watts), len(time))
    min_duration = window_sec - PEAK_WINDOW_TOLERANCE_SEC
    best: float | None = None

    for start in range(n):
        total = 0.0
        count = 0
        end = start
        while end < n and time[end] - time[start] < window_sec:
            total += watts[end]
            count += 1
            end += 1
        if count == 0:
            continue
        duration = time[end - 1] - time[start]
        if duration < min_duration:
            continue
        avg = total / count
        if best is None or avg > best:
            best = avg

    if best is None:
        return 0
    return int(round_half_up(best))


def calculate_hr_completeness(heart_rate: Sequence[float]) -> int:
    """Percentage (0-100) of heart-rate samples that are strictly positive."""
    if not heart_rate:
        return 0
    valid = sum(1 for bpm in heart_rate if bpm > 0)
    return int(round_half_up(valid / len(heart_rate) * 100))
