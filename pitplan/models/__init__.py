"""Models: track profiles and telemetry calibration."""

from pitplan.models.calibration import (
    CalibrationDelta,
    CalibrationUnavailable,
    base_lap_estimate,
    calibrate,
    infer_degradation,
    infer_pit_loss,
)
from pitplan.models.track_profile import (
    CatalogAverages,
    TrackProfile,
    catalog_averages,
    load_track_catalog,
)

__all__ = [
    "TrackProfile",
    "load_track_catalog",
    "CatalogAverages",
    "catalog_averages",
    "infer_pit_loss",
    "infer_degradation",
    "base_lap_estimate",
    "calibrate",
    "CalibrationDelta",
    "CalibrationUnavailable",
]
