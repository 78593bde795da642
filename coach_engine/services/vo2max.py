"""VO2max estimation from cycling power using the ACSM leg-ergometry equation.

    VO2max (mL/kg/min) = 10.8 * watts / kg + 7

FTP is assumed to sit at roughly 80% of the power sustainable at VO2max, and
a 20-minute peak at roughly 105% of FTP.
"""

from __future__ import annotations

from coach_engine.errors import ValidationError
from coach_engine.services.metrics import round_half_up

FTP_TO_VO2MAX_POWER = 0.80
PEAK_20MIN_TO_FTP = 0.95

METHOD_PEAK_5MIN = "peak_5min"
METHOD_PEAK_20MIN = "peak_20min"
METHOD_FTP = "ftp_derived"

# Category upper bounds (exclusive)
VO2MAX_CATEGORIES: tuple[tuple[float, str], ...] = (
    (35, "poor"),
    (45, "fair"),
    (55, "good"),
    (65, "excellent"),
)


def apply_acsm_formula(power_watts: float, weight_kg: float) -> float:
    return round_half_up(10.8 * power_watts / weight_kg + 7, 1)


def estimate_vo2max_from_ftp(ftp: float, weight_kg: float) -> float | None:
    if ftp <= 0 or weight_kg <= 0:
        return None
    return apply_acsm_formula(ftp / FTP_TO_VO2MAX_POWER, weight_kg)


def estimate_vo2max_from_peak_power(
    peak_power_watts: float,
    weight_kg: float,
    method: str = METHOD_PEAK_5MIN,
) -> float | None:
    """Estimate VO2max from a peak-power effort.

    ``peak_5min`` treats the 5-minute peak as VO2max power directly.
    ``peak_20min`` converts the 20-minute peak to FTP first and then follows
    the FTP path.
    """
    if peak_power_watts <= 0 or weight_kg <= 0:
        return None
    if method == METHOD_PEAK_20MIN:
        return estimate_vo2max_from_ftp(peak_power_watts * PEAK_20MIN_TO_FTP, weight_kg)
    if method != METHOD_PEAK_5MIN:
        raise ValidationError(f"Unknown VO2max estimation method: {method}")
    return apply_acsm_formula(peak_power_watts, weight_kg)


def categorize_vo2max(value: float) -> str:
    for upper, label in VO2MAX_CATEGORIES:
        if value < upper:
            return label
    return "elite"
