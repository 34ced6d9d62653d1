"""Shared pytest fixtures for race strategy engine tests."""

import asyncio
import sys
from pathlib import Path
from types import MappingProxyType

# Ensure project root is on sys.path so "pitplan" is importable (pytest adds tests/ first)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import numpy as np
import pytest

from pitplan.data_pipeline.telemetry import (
    DriverRecord,
    SessionRecord,
    TelemetryLap,
)
from pitplan.models.track_profile import TrackProfile


def make_profile(
    total_laps=58,
    base=92.0,
    pit=20.0,
    soft=0.13,
    medium=0.09,
    hard=0.065,
):
    return TrackProfile(
        total_laps=total_laps,
        pit_loss_seconds=pit,
        base_lap_time_seconds=base,
        degradation_per_lap={"SOFT": soft, "MEDIUM": medium, "HARD": hard},
    )


@pytest.fixture
def test_profile():
    """58-lap profile: base 92 s, pit loss 20 s, SOFT/MEDIUM/HARD 0.13/0.09/0.065."""
    return make_profile()


@pytest.fixture
def catalog(test_profile):
    """Read-only two-track catalog."""
    return MappingProxyType(
        {
            "TestTrack": test_profile,
            "Monza": make_profile(total_laps=53, base=84.5, pit=22.0, soft=0.1, medium=0.07, hard=0.05),
        }
    )


@pytest.fixture
def synthetic_laps():
    """Two drivers, 30 laps each: MEDIUM laps 1-15 then HARD laps 16-30, one pit lap each.

    MEDIUM lap time grows 0.09 s/lap, HARD 0.06 s/lap (small deterministic noise).
    Driver 1 pits on lap 15 (lap time +22 s).
    """
    rng = np.random.default_rng(42)
    laps = []
    for driver in (1, 44):
        for lap in range(1, 31):
            tyre = "MEDIUM" if lap <= 15 else "HARD"
            rate = 0.09 if tyre == "MEDIUM" else 0.06
            duration = 90.0 + rate * lap + float(rng.normal(0.0, 0.03))
            if driver == 1 and lap == 15:
                duration += 22.0
            laps.append(TelemetryLap(lap, driver, duration, tyre))
    return laps


class FakeProvider:
    """In-memory TelemetryProvider; records calls, optionally slow or failing."""

    def __init__(
        self,
        sessions=None,
        laps=None,
        drivers=None,
        *,
        delay=0.0,
        error=None,
    ):
        self.sessions = sessions if sessions is not None else [
            SessionRecord(9590, "Monza", "Race", 2024),
            SessionRecord(9600, "Yas Marina Circuit", "Race", 2024),
        ]
        self.laps = laps if laps is not None else []
        self.drivers = drivers if drivers is not None else [
            DriverRecord(1, "Max VERSTAPPEN", "Red Bull Racing", "VER"),
            DriverRecord(16, "Charles LECLERC", "Ferrari", "LEC"),
        ]
        self.delay = delay
        self.error = error
        self.calls = []

    async def _maybe_fail(self, name, arg):
        self.calls.append((name, arg))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def list_sessions(self, year):
        await self._maybe_fail("list_sessions", year)
        return list(self.sessions)

    async def list_laps(self, session_key):
        await self._maybe_fail("list_laps", session_key)
        return list(self.laps)

    async def list_drivers(self, session_key):
        await self._maybe_fail("list_drivers", session_key)
        return list(self.drivers)


@pytest.fixture
def fake_provider(synthetic_laps):
    """Provider serving synthetic_laps for every session."""
    return FakeProvider(laps=synthetic_laps)
