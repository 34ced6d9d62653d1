"""Telemetry records and the provider interface consumed by calibration.

Providers return plain records; fields the source did not record are None and
are filtered out downstream, never rejected here.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, NamedTuple, Protocol, Sequence


class TelemetryError(Exception):
    """Base exception for all telemetry provider errors."""


class TelemetryConnectionError(TelemetryError):
    """Raised when the provider cannot be reached."""


class TelemetryTimeoutError(TelemetryError):
    """Raised when a provider request times out."""


class TelemetryAPIError(TelemetryError):
    """Raised when the provider returns an error response (4xx/5xx)."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"HTTP {status_code}: {message}")


class SessionRecord(NamedTuple):
    """One race session of a season."""

    session_key: int | None
    circuit_short_name: str | None
    session_name: str | None
    year: int | None = None


class TelemetryLap(NamedTuple):
    """One observed lap: lap number, driver, duration (seconds) and tyre label."""

    lap_number: int | None
    driver_number: int | None
    duration: float | None
    tyre: str | None = None


class DriverRecord(NamedTuple):
    """Driver identity within a session."""

    driver_number: int | None
    full_name: str | None
    team_name: str | None
    name_acronym: str | None = None


class TelemetryProvider(Protocol):
    """Source of historical race telemetry. Any call may raise TelemetryError."""

    async def list_sessions(self, year: int) -> list[SessionRecord]: ...

    async def list_laps(self, session_key: int) -> list[TelemetryLap]: ...

    async def list_drivers(self, session_key: int) -> list[DriverRecord]: ...


def parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f) or f != int(f):
        return None
    return int(f)


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def _as_str(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    s = value.strip()
    return s or None


def session_from_json(row: Mapping[str, Any]) -> SessionRecord:
    """Parse one /sessions row; unknown or malformed fields become None."""
    return SessionRecord(
        session_key=parse_int(row.get("session_key")),
        circuit_short_name=_as_str(row.get("circuit_short_name")),
        session_name=_as_str(row.get("session_name")),
        year=parse_int(row.get("year")),
    )


def lap_from_json(row: Mapping[str, Any]) -> TelemetryLap:
    """Parse one /laps row. Accepts lap_duration or duration, tyre or compound."""
    duration = row.get("lap_duration", row.get("duration"))
    tyre = row.get("tyre", row.get("compound"))
    tyre_str = _as_str(tyre)
    return TelemetryLap(
        lap_number=parse_int(row.get("lap_number")),
        driver_number=parse_int(row.get("driver_number")),
        duration=_as_float(duration),
        tyre=tyre_str.upper() if tyre_str else None,
    )


def driver_from_json(row: Mapping[str, Any]) -> DriverRecord:
    """Parse one /drivers row."""
    return DriverRecord(
        driver_number=parse_int(row.get("driver_number")),
        full_name=_as_str(row.get("full_name")),
        team_name=_as_str(row.get("team_name")),
        name_acronym=_as_str(row.get("name_acronym")),
    )


def find_race_session(
    sessions: Sequence[SessionRecord], track_name: str
) -> SessionRecord | None:
    """First session whose circuit short name contains track_name (case-insensitive)."""
    needle = (track_name or "").strip().lower()
    if not needle:
        return None
    for s in sessions:
        if s.circuit_short_name and needle in s.circuit_short_name.lower():
            return s
    return None


def find_driver(drivers: Sequence[DriverRecord], name: str) -> DriverRecord | None:
    """Match a driver by full name, acronym or number (case-insensitive)."""
    key = (name or "").strip().upper()
    if not key:
        return None
    for d in drivers:
        if d.full_name and d.full_name.upper() == key:
            return d
        if d.name_acronym and d.name_acronym.upper() == key:
            return d
        if d.driver_number is not None and str(d.driver_number) == key:
            return d
    for d in drivers:
        if d.full_name and key in d.full_name.upper():
            return d
    return None
