"""Data pipeline: telemetry providers and lap normalization."""

from pitplan.data_pipeline.load_race import FastF1Provider
from pitplan.data_pipeline.openf1 import OpenF1Provider
from pitplan.data_pipeline.preprocess import laps_from_frame, laps_to_frame
from pitplan.data_pipeline.telemetry import (
    DriverRecord,
    SessionRecord,
    TelemetryAPIError,
    TelemetryConnectionError,
    TelemetryError,
    TelemetryLap,
    TelemetryProvider,
    TelemetryTimeoutError,
)

__all__ = [
    "TelemetryProvider",
    "OpenF1Provider",
    "FastF1Provider",
    "SessionRecord",
    "TelemetryLap",
    "DriverRecord",
    "TelemetryError",
    "TelemetryConnectionError",
    "TelemetryTimeoutError",
    "TelemetryAPIError",
    "laps_to_frame",
    "laps_from_frame",
]
