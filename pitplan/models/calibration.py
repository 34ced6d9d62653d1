"""Calibrate cost-model parameters from historical lap telemetry.

Two independent estimators, both returning None ("no estimate") on sparse or
noisy input instead of raising:

- pit loss: slowest flying-band lap minus the median lap, clamped;
- degradation: per-compound linear regression of lap duration on lap number,
  clamped to a plausible seconds-per-lap range.

calibrate() bundles them into a CalibrationDelta; CalibrationUnavailable is the
explicit "no calibration" outcome used by the profile builder.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Union

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression

from pitplan.data_pipeline.preprocess import (
    flying_lap_durations,
    laps_to_frame,
    max_lap_number,
)
from pitplan.data_pipeline.telemetry import TelemetryLap
from pitplan.utils.config import (
    BASE_LAP_PERCENTILE,
    DEGRADATION_CLAMP_SEC_PER_LAP,
    DEGRADATION_MIN_SAMPLES,
    PIT_LOSS_CLAMP_SEC,
    PIT_LOSS_MIN_SAMPLES,
)

LapsInput = Union[pd.DataFrame, Iterable[TelemetryLap]]


def _as_frame(laps: LapsInput) -> pd.DataFrame:
    if isinstance(laps, pd.DataFrame):
        return laps
    return laps_to_frame(laps)


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    lo, hi = bounds
    return max(lo, min(hi, value))


def infer_pit_loss(
    laps: LapsInput,
    *,
    min_samples: int = PIT_LOSS_MIN_SAMPLES,
    clamp: tuple[float, float] = PIT_LOSS_CLAMP_SEC,
) -> float | None:
    """
    Estimate pit-stop time loss (seconds) from a session's lap durations.

    A pit lap is an outlier far above the flying-lap median, so the estimate is
    max - median over durations in the flying band. The upper median
    (sorted[n // 2]) is used. Clamping guards against safety-car or red-flag laps.

    Parameters
    ----------
    laps : pd.DataFrame or iterable of TelemetryLap
        Lap records; only the duration is used.
    min_samples : int
        Minimum flying-band durations required for an estimate.
    clamp : tuple of float
        Closed (min, max) range for the estimate.

    Returns
    -------
    float or None
        Pit loss in seconds, or None when fewer than min_samples durations remain.
    """
    durations = np.sort(flying_lap_durations(_as_frame(laps)).to_numpy(dtype=float))
    if len(durations) < min_samples:
        return None
    median = durations[len(durations) // 2]
    return _clamp(float(durations[-1] - median), clamp)


def _ols_slope(x: np.ndarray, y: np.ndarray) -> float | None:
    """Least-squares slope of y on x; None when x has no spread."""
    den = float(np.sum((x - x.mean()) ** 2))
    if den <= 0:
        return None
    reg = LinearRegression()
    reg.fit(x.reshape(-1, 1), y)
    return float(reg.coef_[0])


def infer_degradation(
    laps: LapsInput,
    *,
    min_samples: int = DEGRADATION_MIN_SAMPLES,
    clamp: tuple[float, float] = DEGRADATION_CLAMP_SEC_PER_LAP,
) -> dict[str, float] | None:
    """
    Estimate per-compound degradation (seconds per lap) by linear regression.

    Laps are grouped by upper-cased tyre label; laps missing the label, the
    duration or the lap number (zero counts as missing) are discarded. Each
    group with at least min_samples points is regressed independently.

    Parameters
    ----------
    laps : pd.DataFrame or iterable of TelemetryLap
        Lap records with lap_number, duration and tyre.
    min_samples : int
        Minimum usable points per compound.
    clamp : tuple of float
        Closed (min, max) range for each slope.

    Returns
    -------
    dict[str, float] or None
        Compound label -> clamped slope, for every compound that produced one;
        None if none did.
    """
    frame = _as_frame(laps)
    if frame.empty or not {"lap_number", "duration", "tyre"}.issubset(frame.columns):
        return None

    usable = frame.assign(
        tyre=frame["tyre"].map(
            lambda v: v.strip().upper() if isinstance(v, str) and v.strip() else None
        ),
        lap_number=pd.to_numeric(frame["lap_number"], errors="coerce"),
        duration=pd.to_numeric(frame["duration"], errors="coerce"),
    )
    usable = usable[
        usable["tyre"].notna()
        & usable["lap_number"].notna()
        & (usable["lap_number"] != 0)
        & usable["duration"].notna()
        & (usable["duration"] != 0)
    ]
    if usable.empty:
        return None

    result: dict[str, float] = {}
    for tyre, group in usable.groupby("tyre", sort=False):
        if len(group) < min_samples:
            continue
        slope = _ols_slope(
            group["lap_number"].to_numpy(dtype=float),
            group["duration"].to_numpy(dtype=float),
        )
        if slope is None or not math.isfinite(slope):
            continue
        result[str(tyre)] = _clamp(slope, clamp)
    return result or None


def base_lap_estimate(
    laps: LapsInput, *, percentile: float = BASE_LAP_PERCENTILE
) -> float | None:
    """Fast-but-not-fastest flying lap: sorted[floor(n * percentile)], or None."""
    durations = np.sort(flying_lap_durations(_as_frame(laps)).to_numpy(dtype=float))
    if len(durations) == 0:
        return None
    idx = min(int(math.floor(len(durations) * percentile)), len(durations) - 1)
    return float(durations[idx])


@dataclass(frozen=True)
class CalibrationDelta:
    """Values inferred from one session's telemetry; None means no estimate."""

    pit_loss_seconds: float | None = None
    degradation_per_lap: Mapping[str, float] = field(default_factory=dict)
    base_lap_time_seconds: float | None = None
    max_lap_number: int | None = None
    session_key: int | None = None
    lap_count: int = 0

    @property
    def has_overrides(self) -> bool:
        """True when pit loss or any compound slope was calibrated."""
        return self.pit_loss_seconds is not None or bool(self.degradation_per_lap)


@dataclass(frozen=True)
class CalibrationUnavailable:
    """No calibration: telemetry missing, unusable, failed or timed out."""

    reason: str


CalibrationResult = Union[CalibrationDelta, CalibrationUnavailable]


def calibrate(laps: LapsInput, *, session_key: int | None = None) -> CalibrationDelta:
    """Run every estimator over one session's laps."""
    frame = _as_frame(laps)
    return CalibrationDelta(
        pit_loss_seconds=infer_pit_loss(frame),
        degradation_per_lap=infer_degradation(frame) or {},
        base_lap_time_seconds=base_lap_estimate(frame),
        max_lap_number=max_lap_number(frame),
        session_key=session_key,
        lap_count=len(frame),
    )
