"""Race strategy search: minimum-time stint/compound plan for a track profile.

Every candidate partition is combined with every legal compound assignment and
scored with the stint cost model plus pit loss per stop. The best plan is kept
with a strict less-than, so the first plan found wins ties. Within one
partition the assignment loop stops early once a plan has more than one stop
more than the incumbent.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, replace
from typing import Sequence

import pandas as pd

from pitplan.data_pipeline.telemetry import (
    DriverRecord,
    SessionRecord,
    TelemetryProvider,
    find_driver,
)
from pitplan.models.calibration import CalibrationDelta, CalibrationUnavailable
from pitplan.models.track_profile import TrackCatalog, TrackProfile
from pitplan.strategy.candidates import assign_compounds, generate_candidate_stints
from pitplan.strategy.cost_model import format_clock, stint_time
from pitplan.strategy.exceptions import (
    MissingTrackDataError,
    SearchExhaustedError,
    UnknownTrackError,
)
from pitplan.strategy.profile_builder import build_track_profile, calibrate_from_provider
from pitplan.utils.config import (
    DEFAULT_ENGINE_MODE,
    ENGINE_MODES,
    FUEL_PENALTY_PER_LAP,
    TELEMETRY_TIMEOUT_SEC,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stint:
    """One stint: tyre compound and number of laps."""

    compound: str
    laps: int


@dataclass(frozen=True)
class StintPlan:
    """A full race plan: ordered stints, total time and stop count."""

    stints: tuple[Stint, ...]
    total_time_seconds: float
    num_stops: int
    notes: tuple[str, ...] = ()

    @property
    def total_laps(self) -> int:
        return sum(s.laps for s in self.stints)

    @property
    def compounds(self) -> tuple[str, ...]:
        return tuple(s.compound for s in self.stints)


def plan_time(
    profile: TrackProfile,
    laps_per_stint: Sequence[int],
    compounds: Sequence[str],
    *,
    fuel_penalty_per_lap: float = FUEL_PENALTY_PER_LAP,
) -> float:
    """Total race time: sum of stint times plus pit loss for each stop."""
    total = 0.0
    for compound, laps in zip(compounds, laps_per_stint):
        total += stint_time(
            profile.base_lap_time_seconds,
            profile.degradation_per_lap[compound],
            laps,
            fuel_penalty_per_lap,
        )
    total += (len(laps_per_stint) - 1) * profile.pit_loss_seconds
    return total


def search_best_plan(
    profile: TrackProfile,
    *,
    fuel_penalty_per_lap: float = FUEL_PENALTY_PER_LAP,
) -> StintPlan:
    """
    Minimum-time plan over the bounded candidate set.

    Parameters
    ----------
    profile : TrackProfile
        Cost-model parameters for the race.
    fuel_penalty_per_lap : float
        Passed to the stint cost model.

    Returns
    -------
    StintPlan
        Best plan; its laps sum to profile.total_laps.

    Raises
    ------
    SearchExhaustedError
        If no candidate had a legal compound assignment.
    """
    best: StintPlan | None = None
    partitions = generate_candidate_stints(profile.total_laps)
    for laps_per_stint in partitions:
        # Enumeration order is kept as is; no stop-count bias is applied.
        for compounds in assign_compounds(len(laps_per_stint)):
            num_stops = len(laps_per_stint) - 1
            total = plan_time(
                profile, laps_per_stint, compounds, fuel_penalty_per_lap=fuel_penalty_per_lap
            )
            if best is None or total < best.total_time_seconds:
                best = StintPlan(
                    stints=tuple(Stint(c, n) for c, n in zip(compounds, laps_per_stint)),
                    total_time_seconds=total,
                    num_stops=num_stops,
                )
            if num_stops > best.num_stops + 1:
                break

    if best is None:
        raise SearchExhaustedError(profile.total_laps)
    logger.debug(
        "Searched %d partitions for %d laps: %s", len(partitions), profile.total_laps, best
    )
    return best


def rank_strategies(
    profile: TrackProfile,
    *,
    top: int | None = None,
    fuel_penalty_per_lap: float = FUEL_PENALTY_PER_LAP,
) -> pd.DataFrame:
    """
    Score every (partition, assignment) pair without pruning and rank them.

    Returns
    -------
    pd.DataFrame
        Columns: stints (e.g. "26-32"), compounds (e.g. "MEDIUM-HARD"),
        num_stops (int), total_time_sec (float), rank (int),
        time_delta_from_best_sec (float). Sorted by total_time_sec ascending
        (stable, so enumeration order breaks ties); truncated to `top` rows.
    """
    columns = ["stints", "compounds", "num_stops", "total_time_sec"]
    rows = []
    for laps_per_stint in generate_candidate_stints(profile.total_laps):
        for compounds in assign_compounds(len(laps_per_stint)):
            rows.append({
                "stints": "-".join(str(n) for n in laps_per_stint),
                "compounds": "-".join(compounds),
                "num_stops": len(laps_per_stint) - 1,
                "total_time_sec": plan_time(
                    profile,
                    laps_per_stint,
                    compounds,
                    fuel_penalty_per_lap=fuel_penalty_per_lap,
                ),
            })

    if not rows:
        return pd.DataFrame(columns=columns + ["rank", "time_delta_from_best_sec"])

    df = pd.DataFrame(rows, columns=columns)
    df = df.sort_values("total_time_sec", ascending=True, kind="mergesort").reset_index(drop=True)
    df["rank"] = range(1, len(df) + 1)
    best_time = df["total_time_sec"].iloc[0]
    df["time_delta_from_best_sec"] = df["total_time_sec"] - best_time
    if top is not None:
        df = df.head(top)
    return df


async def _resolve_driver(
    provider: TelemetryProvider,
    race: SessionRecord,
    driver_name: str,
    timeout: float | None,
) -> DriverRecord | None:
    try:
        drivers = await asyncio.wait_for(provider.list_drivers(race.session_key), timeout)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Driver lookup failed for session %s: %s", race.session_key, exc)
        return None
    return find_driver(drivers or [], driver_name)


async def predict_best_strategy(
    track_name: str,
    year: int,
    driver_name: str | None = None,
    rain_probability_pct: float = 0.0,
    track_profiles: TrackCatalog | None = None,
    mode: str = DEFAULT_ENGINE_MODE,
    *,
    provider: TelemetryProvider | None = None,
    timeout: float | None = TELEMETRY_TIMEOUT_SEC,
) -> StintPlan:
    """
    Predict the minimum-time strategy for a race, calibrating from telemetry if possible.

    Modes: "A" uses the static catalog only; "B" uses telemetry only to
    synthesize a profile for tracks missing from the catalog; "C" also lets
    calibrated pit loss and degradation override catalog values. Without a
    provider every mode behaves like "A". Telemetry failures never surface.

    Parameters
    ----------
    track_name : str
        Catalog key; also matched against session circuit names.
    year : int
        Season whose race telemetry is used for calibration.
    driver_name : str, optional
        Driver to look up in the calibration session (annotation only).
    rain_probability_pct : float
        Chance of rain, 0-100. Accepted but not yet used by the cost model.
    track_profiles : Mapping[str, TrackProfile]
        Static catalog. Required.
    mode : str
        "A", "B" or "C".
    provider : TelemetryProvider, optional
        Telemetry source; None disables calibration.
    timeout : float, optional
        Seconds allowed for each telemetry step before falling back.

    Returns
    -------
    StintPlan
        Best plan, with notes describing the calibration outcome.

    Raises
    ------
    MissingTrackDataError
        If track_profiles is None.
    UnknownTrackError
        If no profile can be resolved for track_name.
    SearchExhaustedError
        If the search recorded no plan.
    ValueError
        If mode or rain_probability_pct is invalid.
    """
    if track_profiles is None:
        raise MissingTrackDataError()
    mode = (mode or DEFAULT_ENGINE_MODE).strip().upper()
    if mode not in ENGINE_MODES:
        raise ValueError(f"mode must be one of {sorted(ENGINE_MODES)}, got {mode!r}")
    try:
        rain = float(rain_probability_pct)
    except (TypeError, ValueError):
        rain = math.nan
    if not 0.0 <= rain <= 100.0:
        raise ValueError(
            f"rain_probability_pct must be within [0, 100], got {rain_probability_pct!r}"
        )

    calibration = None
    race = None
    wants_telemetry = mode == "C" or (mode == "B" and track_name not in track_profiles)
    if provider is not None and wants_telemetry:
        calibration, race = await calibrate_from_provider(
            provider, track_name, year, timeout=timeout
        )

    profile = build_track_profile(
        track_name, track_profiles, calibration, allow_overrides=(mode == "C")
    )
    if profile is None:
        raise UnknownTrackError(track_name)

    plan = search_best_plan(profile)

    notes: list[str] = []
    if isinstance(calibration, CalibrationDelta) and calibration.lap_count == 0:
        notes.append(
            f"No laps recorded for session {calibration.session_key}; "
            "catalog values used"
        )
    elif isinstance(calibration, CalibrationDelta):
        notes.append(
            f"Calibrated from {year} race telemetry "
            f"(session {calibration.session_key}, {calibration.lap_count} laps)"
        )
    elif isinstance(calibration, CalibrationUnavailable):
        notes.append(f"Static profile used: {calibration.reason}")
    if (
        driver_name
        and provider is not None
        and race is not None
        and race.session_key is not None
    ):
        driver = await _resolve_driver(provider, race, driver_name, timeout)
        if driver is not None:
            team = driver.team_name or "unknown team"
            notes.append(f"Driver: {driver.full_name or driver_name} ({team})")
    if notes:
        plan = replace(plan, notes=tuple(notes))
    return plan


def format_plan(plan: StintPlan) -> str:
    """One-line summary: stints, stop count and total race clock."""
    stints = " | ".join(
        f"Stint {i}: {s.compound} x {s.laps} laps" for i, s in enumerate(plan.stints, start=1)
    )
    return f"{stints} • Stops: {plan.num_stops} • Total: {format_clock(plan.total_time_seconds)}"
