"""Normalize lap-level telemetry into a clean DataFrame for calibration.

Provider records (TelemetryLap) and FastF1 lap tables both end up as one frame
with columns lap_number, driver_number, duration (seconds) and tyre. Missing or
malformed values become NaN / None and are dropped by the consumers.
"""

from __future__ import annotations

from typing import Iterable

import pandas as pd

from pitplan.data_pipeline.telemetry import TelemetryLap
from pitplan.utils.config import FLYING_LAP_MAX_SEC, FLYING_LAP_MIN_SEC

LAP_COLUMNS = ["lap_number", "driver_number", "duration", "tyre"]


def _lap_time_to_seconds(series: pd.Series) -> pd.Series:
    """Convert lap time column to seconds (handles pd.Timedelta or numeric)."""
    if pd.api.types.is_timedelta64_dtype(series):
        return series.dt.total_seconds()
    return pd.to_numeric(series, errors="coerce")


def _tyre_labels(series: pd.Series) -> pd.Series:
    """Upper-case, stripped compound labels; anything that is not text becomes None."""
    return series.map(
        lambda v: v.strip().upper() if isinstance(v, str) and v.strip() else None
    )


def laps_to_frame(laps: Iterable[TelemetryLap]) -> pd.DataFrame:
    """
    Build a lap DataFrame from provider records.

    Parameters
    ----------
    laps : iterable of TelemetryLap
        Records as returned by a telemetry provider.

    Returns
    -------
    pd.DataFrame
        Columns lap_number, driver_number, duration (float seconds, NaN when
        absent) and tyre (upper-case label or None). Row order is preserved.
    """
    rows = [tuple(lap) for lap in laps]
    if not rows:
        return pd.DataFrame(columns=LAP_COLUMNS)
    out = pd.DataFrame(rows, columns=LAP_COLUMNS)
    out["lap_number"] = pd.to_numeric(out["lap_number"], errors="coerce")
    out["driver_number"] = pd.to_numeric(out["driver_number"], errors="coerce")
    out["duration"] = pd.to_numeric(out["duration"], errors="coerce")
    out["tyre"] = _tyre_labels(out["tyre"])
    return out


def laps_from_frame(
    raw: pd.DataFrame | None,
    lap_col: str = "LapNumber",
    driver_col: str = "DriverNumber",
    lap_time_col: str = "LapTime",
    compound_col: str = "Compound",
) -> list[TelemetryLap]:
    """Convert a FastF1-style lap table into TelemetryLap records."""
    if raw is None or len(raw) == 0:
        return []

    def column(name: str) -> pd.Series:
        if name in raw.columns:
            return raw[name]
        return pd.Series([None] * len(raw), index=raw.index)

    lap_numbers = pd.to_numeric(column(lap_col), errors="coerce")
    drivers = pd.to_numeric(column(driver_col), errors="coerce")
    durations = _lap_time_to_seconds(column(lap_time_col))
    tyres = _tyre_labels(column(compound_col))

    out: list[TelemetryLap] = []
    for lap, driver, duration, tyre in zip(lap_numbers, drivers, durations, tyres):
        out.append(
            TelemetryLap(
                lap_number=None if pd.isna(lap) else int(lap),
                driver_number=None if pd.isna(driver) else int(driver),
                duration=None if pd.isna(duration) else float(duration),
                tyre=tyre,
            )
        )
    return out


def flying_lap_durations(
    laps: pd.DataFrame,
    *,
    lower: float = FLYING_LAP_MIN_SEC,
    upper: float = FLYING_LAP_MAX_SEC,
) -> pd.Series:
    """Durations strictly inside (lower, upper), in original row order."""
    if laps.empty or "duration" not in laps.columns:
        return pd.Series(dtype=float)
    durations = pd.to_numeric(laps["duration"], errors="coerce").dropna()
    return durations[(durations > lower) & (durations < upper)].astype(float)


def max_lap_number(laps: pd.DataFrame) -> int | None:
    """Highest positive lap number in the frame, or None if there is none."""
    if laps.empty or "lap_number" not in laps.columns:
        return None
    numbers = pd.to_numeric(laps["lap_number"], errors="coerce").dropna()
    numbers = numbers[numbers > 0]
    if numbers.empty:
        return None
    return int(numbers.max())
