"""Strategy: cost model, candidate generation, profile building, and search."""

from pitplan.strategy.candidates import assign_compounds, generate_candidate_stints
from pitplan.strategy.cost_model import format_clock, stint_time
from pitplan.strategy.exceptions import (
    MissingTrackDataError,
    SearchExhaustedError,
    StrategyError,
    UnknownTrackError,
)
from pitplan.strategy.optimizer import (
    Stint,
    StintPlan,
    format_plan,
    plan_time,
    predict_best_strategy,
    rank_strategies,
    search_best_plan,
)
from pitplan.strategy.profile_builder import (
    build_track_profile,
    calibrate_from_provider,
    synthesize_profile,
)

__all__ = [
    "stint_time",
    "format_clock",
    "generate_candidate_stints",
    "assign_compounds",
    "Stint",
    "StintPlan",
    "plan_time",
    "search_best_plan",
    "rank_strategies",
    "predict_best_strategy",
    "format_plan",
    "build_track_profile",
    "calibrate_from_provider",
    "synthesize_profile",
    "StrategyError",
    "MissingTrackDataError",
    "UnknownTrackError",
    "SearchExhaustedError",
]
