"""Async OpenF1 telemetry provider (race sessions, laps, drivers) over httpx."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

import httpx

from pitplan.data_pipeline.telemetry import (
    DriverRecord,
    SessionRecord,
    TelemetryAPIError,
    TelemetryConnectionError,
    TelemetryError,
    TelemetryLap,
    TelemetryTimeoutError,
    parse_int,
    driver_from_json,
    lap_from_json,
    session_from_json,
)
from pitplan.utils.config import HTTP_TIMEOUT_SEC, OPENF1_BASE_URL, RACE_SESSION_NAME

logger = logging.getLogger(__name__)


def _handle_response(response: httpx.Response) -> list[dict[str, Any]]:
    """Validate response status and return the parsed JSON list."""
    if response.status_code >= 400:
        raise TelemetryAPIError(status_code=response.status_code, message=response.text)
    try:
        data = response.json()
    except ValueError as exc:
        raise TelemetryError(f"Invalid JSON from {response.url}: {exc}") from exc
    if not isinstance(data, list):
        raise TelemetryError(f"Expected a JSON list from {response.url}")
    return [row for row in data if isinstance(row, dict)]


def attach_compounds(
    laps: Sequence[TelemetryLap], stints: Sequence[Mapping[str, Any]]
) -> list[TelemetryLap]:
    """Fill missing tyre labels from /stints rows (driver_number, lap_start, lap_end, compound)."""
    ranges: dict[int, list[tuple[int, int, str]]] = {}
    for row in stints:
        driver = parse_int(row.get("driver_number"))
        start = parse_int(row.get("lap_start"))
        end = parse_int(row.get("lap_end"))
        compound = row.get("compound")
        if driver is None or start is None or end is None or not isinstance(compound, str):
            continue
        ranges.setdefault(driver, []).append((start, end, compound.strip().upper()))

    out = []
    for lap in laps:
        if lap.tyre or lap.driver_number is None or lap.lap_number is None:
            out.append(lap)
            continue
        tyre = next(
            (
                c
                for start, end, c in ranges.get(lap.driver_number, [])
                if start <= lap.lap_number <= end
            ),
            None,
        )
        out.append(lap._replace(tyre=tyre or None))
    return out


class OpenF1Provider:
    """Telemetry provider backed by the public OpenF1 REST API.

    Usage:
        async with OpenF1Provider() as provider:
            sessions = await provider.list_sessions(2024)
    """

    def __init__(
        self,
        base_url: str = OPENF1_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SEC,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> OpenF1Provider:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP connection (only if this provider opened it)."""
        if self._owns_client:
            await self._client.aclose()

    async def _get(self, endpoint: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            response = await self._client.get(endpoint, params=params)
        except httpx.TimeoutException as exc:
            raise TelemetryTimeoutError(str(exc)) from exc
        except httpx.TransportError as exc:
            raise TelemetryConnectionError(str(exc)) from exc
        return _handle_response(response)

    async def list_sessions(self, year: int) -> list[SessionRecord]:
        """Race sessions of the given season."""
        rows = await self._get(
            "/sessions", {"year": int(year), "session_name": RACE_SESSION_NAME}
        )
        return [session_from_json(r) for r in rows]

    async def list_laps(self, session_key: int) -> list[TelemetryLap]:
        """Every recorded lap of a session, all drivers, with tyre labels from /stints."""
        rows = await self._get("/laps", {"session_key": int(session_key)})
        laps = [lap_from_json(r) for r in rows]
        if all(lap.tyre for lap in laps):
            return laps
        try:
            stints = await self._get("/stints", {"session_key": int(session_key)})
        except TelemetryError as exc:
            logger.warning("No stint data for session %s: %s", session_key, exc)
            return laps
        return attach_compounds(laps, stints)

    async def list_drivers(self, session_key: int) -> list[DriverRecord]:
        """Drivers entered in a session."""
        rows = await self._get("/drivers", {"session_key": int(session_key)})
        return [driver_from_json(r) for r in rows]
