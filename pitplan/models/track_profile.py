"""Track profiles: the baseline cost-model parameters for one circuit.

A static catalog (JSON, loaded once) maps track name to TrackProfile. Profiles are
immutable; per-request calibration produces a new profile via with_overrides()
instead of editing the catalog entry.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from pitplan.utils.config import CATALOG_PATH, COMPOUND_ORDER

TrackCatalog = Mapping[str, "TrackProfile"]


def _check_positive(name: str, value: float) -> None:
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"{name} must be finite and positive, got {value!r}")


@dataclass(frozen=True)
class TrackProfile:
    """
    Baseline strategy parameters for one track.

    Attributes
    ----------
    total_laps : int
        Race distance in laps.
    pit_loss_seconds : float
        Time lost performing one pit stop.
    base_lap_time_seconds : float
        Lap time with zero tyre degradation and fuel effect.
    degradation_per_lap : Mapping[str, float]
        Seconds added per lap of tyre age, keyed by SOFT, MEDIUM, HARD.
    """

    total_laps: int
    pit_loss_seconds: float
    base_lap_time_seconds: float
    degradation_per_lap: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.total_laps, bool) or int(self.total_laps) != self.total_laps:
            raise ValueError(f"total_laps must be an integer, got {self.total_laps!r}")
        if self.total_laps <= 0:
            raise ValueError(f"total_laps must be positive, got {self.total_laps!r}")
        _check_positive("pit_loss_seconds", self.pit_loss_seconds)
        _check_positive("base_lap_time_seconds", self.base_lap_time_seconds)

        deg = {str(k).strip().upper(): float(v) for k, v in self.degradation_per_lap.items()}
        missing = [c for c in COMPOUND_ORDER if c not in deg]
        if missing:
            raise ValueError(f"degradation_per_lap is missing compounds {missing}")
        extra = sorted(set(deg) - set(COMPOUND_ORDER))
        if extra:
            raise ValueError(f"degradation_per_lap has unknown compounds {extra}")
        for compound in COMPOUND_ORDER:
            _check_positive(f"degradation_per_lap[{compound}]", deg[compound])

        object.__setattr__(self, "total_laps", int(self.total_laps))
        object.__setattr__(self, "pit_loss_seconds", float(self.pit_loss_seconds))
        object.__setattr__(self, "base_lap_time_seconds", float(self.base_lap_time_seconds))
        object.__setattr__(
            self,
            "degradation_per_lap",
            MappingProxyType({c: deg[c] for c in COMPOUND_ORDER}),
        )

    def with_overrides(
        self,
        *,
        total_laps: int | None = None,
        pit_loss_seconds: float | None = None,
        base_lap_time_seconds: float | None = None,
        degradation_per_lap: Mapping[str, float] | None = None,
    ) -> TrackProfile:
        """
        Return a copy with the given fields replaced.

        degradation_per_lap is a partial override: compounds it does not name keep
        their current value, and labels outside SOFT/MEDIUM/HARD are ignored.
        """
        deg = dict(self.degradation_per_lap)
        if degradation_per_lap:
            for compound, rate in degradation_per_lap.items():
                key = str(compound).strip().upper()
                if key in deg and rate is not None:
                    deg[key] = float(rate)
        return replace(
            self,
            total_laps=self.total_laps if total_laps is None else total_laps,
            pit_loss_seconds=(
                self.pit_loss_seconds if pit_loss_seconds is None else pit_loss_seconds
            ),
            base_lap_time_seconds=(
                self.base_lap_time_seconds
                if base_lap_time_seconds is None
                else base_lap_time_seconds
            ),
            degradation_per_lap=deg,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> TrackProfile:
        """Build a profile from one catalog JSON entry."""
        try:
            return cls(
                total_laps=data["laps"],
                pit_loss_seconds=data["pit_loss_seconds"],
                base_lap_time_seconds=data["base_lap_time_seconds"],
                degradation_per_lap=data["degradation_per_lap_seconds"],
            )
        except KeyError as exc:
            raise ValueError(f"Track entry is missing field {exc.args[0]!r}") from exc

    def to_dict(self) -> dict[str, object]:
        """Inverse of from_dict (catalog JSON schema)."""
        return {
            "laps": self.total_laps,
            "pit_loss_seconds": self.pit_loss_seconds,
            "base_lap_time_seconds": self.base_lap_time_seconds,
            "degradation_per_lap_seconds": dict(self.degradation_per_lap),
        }


def load_track_catalog(path: Path | str | None = None) -> TrackCatalog:
    """
    Load the static track catalog from JSON.

    Parameters
    ----------
    path : Path or str, optional
        JSON file mapping track name to catalog entry. Default: config CATALOG_PATH.

    Returns
    -------
    Mapping[str, TrackProfile]
        Read-only mapping; keys are case-sensitive track names.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the catalog is empty or any entry violates the profile invariants.
    """
    src = Path(path) if path is not None else CATALOG_PATH
    if not src.exists():
        raise FileNotFoundError(f"No track catalog at {src}")
    with open(src, encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict) or not raw:
        raise ValueError(f"Track catalog at {src} must be a non-empty JSON object")

    profiles: dict[str, TrackProfile] = {}
    for name, entry in raw.items():
        try:
            profiles[name] = TrackProfile.from_dict(entry)
        except ValueError as exc:
            raise ValueError(f"Invalid catalog entry {name!r}: {exc}") from exc
    return MappingProxyType(profiles)


@dataclass(frozen=True)
class CatalogAverages:
    """Catalog-wide means used when a track has no catalog entry."""

    pit_loss_seconds: float
    base_lap_time_seconds: float
    degradation_per_lap: Mapping[str, float]


def catalog_averages(catalog: TrackCatalog) -> CatalogAverages:
    """Mean pit loss, base lap time and per-compound degradation across the catalog."""
    profiles = list(catalog.values())
    if not profiles:
        raise ValueError("Track catalog is empty; cannot compute fallback averages")
    n = len(profiles)
    return CatalogAverages(
        pit_loss_seconds=sum(p.pit_loss_seconds for p in profiles) / n,
        base_lap_time_seconds=sum(p.base_lap_time_seconds for p in profiles) / n,
        degradation_per_lap={
            c: sum(p.degradation_per_lap[c] for p in profiles) / n for c in COMPOUND_ORDER
        },
    )
