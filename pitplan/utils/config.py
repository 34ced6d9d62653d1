"""Configuration and constants for the race strategy engine."""

from pathlib import Path

# Project root: directory containing run_strategy.py (two levels up from pitplan/utils/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_PACKAGE_DIR = Path(__file__).resolve().parent.parent

# Static track catalog bundled with the package
CATALOG_PATH = _PACKAGE_DIR / "data" / "tracks.json"

# FastF1 API cache (raw API responses)
CACHE_DIR = _PROJECT_ROOT / "data" / "cache"
FASTF1_CACHE_DIR = CACHE_DIR / "fastf1"

# Dry compounds only; order is the enumeration order of compound assignments
COMPOUND_ORDER = ("SOFT", "MEDIUM", "HARD")

# Cost model: seconds added per lap of fuel still on board
FUEL_PENALTY_PER_LAP = 0.015

# Flying-lap band (seconds, exclusive on both ends) used by calibration
FLYING_LAP_MIN_SEC = 30.0
FLYING_LAP_MAX_SEC = 200.0

# Pit-loss inference
PIT_LOSS_MIN_SAMPLES = 10
PIT_LOSS_CLAMP_SEC = (15.0, 30.0)

# Degradation inference (seconds per lap)
DEGRADATION_MIN_SAMPLES = 12
DEGRADATION_CLAMP_SEC_PER_LAP = (0.03, 0.25)

# Synthesized profiles: fast-but-not-fastest baseline and race distance fallback
BASE_LAP_PERCENTILE = 0.2
FALLBACK_TOTAL_LAPS = 50

# Candidate generation
STINT_OFFSET_RANGE = 3
MIN_DISTINCT_COMPOUNDS = 2

# Telemetry
OPENF1_BASE_URL = "https://api.openf1.org/v1"
HTTP_TIMEOUT_SEC = 30.0
TELEMETRY_TIMEOUT_SEC = 10.0
RACE_SESSION_NAME = "Race"

# Engine modes: A = static catalog, B = telemetry only for unknown tracks, C = full calibration
ENGINE_MODES = frozenset({"A", "B", "C"})
DEFAULT_ENGINE_MODE = "C"
