"""Resolve the TrackProfile used for one prediction.

Static catalog entries are cloned and partially overridden with calibrated
values; tracks missing from the catalog are synthesized from telemetry plus
catalog-wide averages. Telemetry problems of any kind end up as
CalibrationUnavailable and the catalog profile is used unmodified.
"""

from __future__ import annotations

import asyncio
import logging

from pitplan.data_pipeline.telemetry import (
    SessionRecord,
    TelemetryError,
    TelemetryProvider,
    find_race_session,
)
from pitplan.models.calibration import (
    CalibrationDelta,
    CalibrationResult,
    CalibrationUnavailable,
    calibrate,
)
from pitplan.models.track_profile import TrackCatalog, TrackProfile, catalog_averages
from pitplan.utils.config import COMPOUND_ORDER, FALLBACK_TOTAL_LAPS, TELEMETRY_TIMEOUT_SEC

logger = logging.getLogger(__name__)


def synthesize_profile(catalog: TrackCatalog, calibration: CalibrationDelta) -> TrackProfile:
    """
    Profile for a track with no catalog entry.

    total_laps is the highest observed lap number (FALLBACK_TOTAL_LAPS if none);
    every other field is the calibrated value when present, else the catalog average.
    """
    avg = catalog_averages(catalog)
    deg = {
        c: calibration.degradation_per_lap.get(c, avg.degradation_per_lap[c])
        for c in COMPOUND_ORDER
    }
    return TrackProfile(
        total_laps=calibration.max_lap_number or FALLBACK_TOTAL_LAPS,
        pit_loss_seconds=calibration.pit_loss_seconds or avg.pit_loss_seconds,
        base_lap_time_seconds=calibration.base_lap_time_seconds or avg.base_lap_time_seconds,
        degradation_per_lap=deg,
    )


def build_track_profile(
    track_name: str,
    catalog: TrackCatalog,
    calibration: CalibrationResult | None = None,
    *,
    allow_overrides: bool = True,
    allow_synthesis: bool = True,
) -> TrackProfile | None:
    """
    Merge the catalog entry for track_name with calibration output.

    Parameters
    ----------
    track_name : str
        Catalog key (case-sensitive).
    catalog : Mapping[str, TrackProfile]
        Static catalog; never modified.
    calibration : CalibrationDelta or CalibrationUnavailable, optional
        Result of calibrate_from_provider; None or unavailable means catalog only.
    allow_overrides : bool
        If False, a catalog entry is returned as-is even when calibration exists.
    allow_synthesis : bool
        If False, tracks missing from the catalog are not synthesized.

    Returns
    -------
    TrackProfile or None
        None when the track is not in the catalog and cannot be synthesized.
    """
    base = catalog.get(track_name)
    delta = calibration if isinstance(calibration, CalibrationDelta) else None

    if base is None:
        if delta is None or not allow_synthesis:
            return None
        profile = synthesize_profile(catalog, delta)
        logger.info("Synthesized profile for %r from telemetry: %s", track_name, profile)
        return profile

    if delta is None or not allow_overrides or not delta.has_overrides:
        return base

    profile = base.with_overrides(
        pit_loss_seconds=delta.pit_loss_seconds,
        degradation_per_lap=delta.degradation_per_lap,
    )
    logger.info(
        "Calibrated %r: pit loss %.2f -> %.2f s, degradation %s -> %s",
        track_name,
        base.pit_loss_seconds,
        profile.pit_loss_seconds,
        dict(base.degradation_per_lap),
        dict(profile.degradation_per_lap),
    )
    return profile


async def _fetch_calibration(
    provider: TelemetryProvider, track_name: str, year: int
) -> tuple[CalibrationResult, SessionRecord | None]:
    sessions = await provider.list_sessions(year)
    race = find_race_session(sessions or [], track_name)
    if race is None:
        return CalibrationUnavailable(f"no {year} race session matching {track_name!r}"), None
    if race.session_key is None:
        return CalibrationUnavailable(f"session for {track_name!r} has no key"), race
    laps = await provider.list_laps(race.session_key)
    if not laps:
        logger.info("Session %s has no laps; no telemetry overrides", race.session_key)
    return calibrate(laps, session_key=race.session_key), race


async def calibrate_from_provider(
    provider: TelemetryProvider,
    track_name: str,
    year: int,
    *,
    timeout: float | None = TELEMETRY_TIMEOUT_SEC,
) -> tuple[CalibrationResult, SessionRecord | None]:
    """
    Calibrate from the race session of `year` whose circuit name matches track_name.

    Never raises for telemetry problems: provider errors, malformed data and the
    timeout all produce CalibrationUnavailable with the reason.

    Returns
    -------
    tuple
        (CalibrationDelta or CalibrationUnavailable, matched SessionRecord or None).
    """
    try:
        result, race = await asyncio.wait_for(
            _fetch_calibration(provider, track_name, year), timeout=timeout
        )
    except asyncio.TimeoutError:
        result, race = CalibrationUnavailable(f"telemetry timed out after {timeout} s"), None
    except TelemetryError as exc:
        result, race = CalibrationUnavailable(f"telemetry error: {exc}"), None
    except Exception as exc:  # pylint: disable=broad-except
        result, race = CalibrationUnavailable(f"{type(exc).__name__}: {exc}"), None

    if isinstance(result, CalibrationUnavailable):
        logger.warning("Calibration unavailable for %r (%s): %s", track_name, year, result.reason)
    else:
        logger.debug("Calibration for %r (%s): %s", track_name, year, result)
    return result, race
