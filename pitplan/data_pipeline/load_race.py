"""FastF1-backed telemetry provider: race schedule, lap times/compounds, drivers.

FastF1 is synchronous and slow on first load, so every call runs in a worker
thread. Session keys encode (year, round) as year * 100 + round.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pandas as pd

from pitplan.data_pipeline.preprocess import laps_from_frame
from pitplan.data_pipeline.telemetry import (
    DriverRecord,
    SessionRecord,
    TelemetryError,
    TelemetryLap,
)
from pitplan.utils.config import FASTF1_CACHE_DIR, RACE_SESSION_NAME


def session_key_for(year: int, round_number: int) -> int:
    """Encode a season round as a single integer session key."""
    return int(year) * 100 + int(round_number)


def split_session_key(session_key: int) -> tuple[int, int]:
    """Inverse of session_key_for: (year, round)."""
    return int(session_key) // 100, int(session_key) % 100


def _text(value) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _drivers_from_results(results: pd.DataFrame | None) -> list[DriverRecord]:
    if results is None or len(results) == 0:
        return []
    out = []
    for _, row in results.iterrows():
        number = pd.to_numeric(row.get("DriverNumber"), errors="coerce")
        out.append(
            DriverRecord(
                driver_number=None if pd.isna(number) else int(number),
                full_name=_text(row.get("FullName")),
                team_name=_text(row.get("TeamName")),
                name_acronym=_text(row.get("Abbreviation")),
            )
        )
    return out


class FastF1Provider:
    """Telemetry provider using the fastf1 library (race sessions only)."""

    def __init__(self, cache_dir: Path | None = None, use_cache: bool = True) -> None:
        self._cache_dir = cache_dir if cache_dir is not None else FASTF1_CACHE_DIR
        self._use_cache = use_cache

    def _enable_cache(self) -> None:
        import fastf1

        if not self._use_cache:
            return
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        fastf1.Cache.enable_cache(str(self._cache_dir))

    def _load_session(self, session_key: int, *, laps: bool):
        import fastf1

        self._enable_cache()
        year, round_number = split_session_key(session_key)
        try:
            session = fastf1.get_session(year, round_number, "R")
            session.load(laps=laps, weather=False, telemetry=False, messages=False)
        except Exception as exc:
            raise TelemetryError(
                f"FastF1 could not load race {year} round {round_number}: {exc}"
            ) from exc
        return session

    def _sessions(self, year: int) -> list[SessionRecord]:
        import fastf1

        self._enable_cache()
        try:
            schedule = fastf1.get_event_schedule(int(year), include_testing=False)
        except Exception as exc:
            raise TelemetryError(f"FastF1 schedule for {year} unavailable: {exc}") from exc
        out = []
        for _, event in schedule.iterrows():
            round_number = pd.to_numeric(event.get("RoundNumber"), errors="coerce")
            if pd.isna(round_number) or int(round_number) <= 0:
                continue
            out.append(
                SessionRecord(
                    session_key=session_key_for(year, int(round_number)),
                    circuit_short_name=_text(event.get("Location")),
                    session_name=RACE_SESSION_NAME,
                    year=int(year),
                )
            )
        return out

    def _laps(self, session_key: int) -> list[TelemetryLap]:
        session = self._load_session(session_key, laps=True)
        return laps_from_frame(session.laps)

    def _drivers(self, session_key: int) -> list[DriverRecord]:
        session = self._load_session(session_key, laps=False)
        return _drivers_from_results(getattr(session, "results", None))

    async def list_sessions(self, year: int) -> list[SessionRecord]:
        return await asyncio.to_thread(self._sessions, year)

    async def list_laps(self, session_key: int) -> list[TelemetryLap]:
        return await asyncio.to_thread(self._laps, session_key)

    async def list_drivers(self, session_key: int) -> list[DriverRecord]:
        return await asyncio.to_thread(self._drivers, session_key)
