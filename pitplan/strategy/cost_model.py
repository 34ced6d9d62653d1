"""Stint time cost model and race-clock formatting.

Lap i of a stint (1-based) costs base + i * deg plus a fuel term that is zero
on the first lap and grows by fuel_penalty per lap; both series are summed in
closed form.
"""

from __future__ import annotations

import math

from pitplan.utils.config import FUEL_PENALTY_PER_LAP


def stint_time(
    base_lap: float,
    deg_per_lap: float,
    laps: int,
    fuel_penalty_per_lap: float = FUEL_PENALTY_PER_LAP,
) -> float:
    """
    Total elapsed time (seconds) for one stint.

    Parameters
    ----------
    base_lap : float
        Lap time with no degradation or fuel effect.
    deg_per_lap : float
        Seconds added per lap of tyre age.
    laps : int
        Stint length in laps.
    fuel_penalty_per_lap : float
        Fuel-effect increment per lap.

    Returns
    -------
    float
        laps * base_lap + deg * laps(laps+1)/2 + fuel * laps(laps-1)/2.
    """
    degradation_sum = deg_per_lap * (laps * (laps + 1)) / 2
    fuel_sum = fuel_penalty_per_lap * (laps * (laps - 1)) / 2
    return laps * base_lap + degradation_sum + fuel_sum


def format_clock(total_seconds: float) -> str:
    """Format seconds as M:SS.mmm, truncating at every unit (minutes unbounded)."""
    if not math.isfinite(total_seconds) or total_seconds < 0:
        raise ValueError(f"total_seconds must be finite and non-negative, got {total_seconds!r}")
    minutes = math.floor(total_seconds / 60)
    seconds = math.floor(total_seconds % 60)
    millis = math.floor((total_seconds - math.floor(total_seconds)) * 1000)
    return f"{minutes}:{seconds:02d}.{millis:03d}"
