"""Errors surfaced by the strategy engine.

All subclass ValueError so callers that already handle bad-input ValueErrors
keep working. Telemetry failures never reach this layer; they become
CalibrationUnavailable during profile building.
"""

from __future__ import annotations


class StrategyError(ValueError):
    """Base class for fatal strategy-engine errors."""


class MissingTrackDataError(StrategyError):
    """No track catalog was supplied."""

    def __init__(self, message: str = "Track data required: no track catalog supplied") -> None:
        super().__init__(message)


class UnknownTrackError(StrategyError):
    """No profile could be resolved for the requested track."""

    def __init__(self, track_name: str) -> None:
        self.track_name = track_name
        super().__init__(f"Unknown track: {track_name}")


class SearchExhaustedError(StrategyError):
    """The search finished without recording any plan."""

    def __init__(self, total_laps: int) -> None:
        self.total_laps = total_laps
        super().__init__(
            f"Failed to compute strategy: no legal plan for a {total_laps}-lap race"
        )
