"""Unit tests for the strategy search (search_best_plan, rank_strategies, predict_best_strategy)."""

from collections import Counter

import pytest

import pitplan.strategy.optimizer as optimizer
from pitplan.data_pipeline.telemetry import TelemetryConnectionError
from pitplan.strategy.exceptions import (
    MissingTrackDataError,
    SearchExhaustedError,
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

from conftest import FakeProvider, make_profile


PROFILES = [
    make_profile(),
    make_profile(total_laps=78, base=75.5, pit=19.0, soft=0.06, medium=0.045, hard=0.035),
    make_profile(total_laps=44, base=107.0, pit=22.0, soft=0.14, medium=0.1, hard=0.07),
    make_profile(total_laps=5, base=60.0, pit=1.0, soft=0.2, medium=0.2, hard=0.2),
    make_profile(total_laps=70, base=80.0, pit=30.0, soft=0.25, medium=0.03, hard=0.03),
]


@pytest.mark.parametrize("profile", PROFILES)
def test_best_plan_invariants(profile):
    """Laps sum to race distance, 2-4 stints, at least two compounds, stops = stints - 1."""
    plan = search_best_plan(profile)
    assert plan.total_laps == profile.total_laps
    assert 2 <= len(plan.stints) <= 4
    assert len(set(plan.compounds)) >= 2
    assert plan.num_stops == len(plan.stints) - 1
    assert all(s.laps >= 1 for s in plan.stints)
    assert plan.total_time_seconds == pytest.approx(
        plan_time(profile, [s.laps for s in plan.stints], plan.compounds)
    )


def test_scenario_58_laps(test_profile):
    """Two hard stints around one shorter medium stint beat every one- and three-stop plan."""
    plan = search_best_plan(test_profile)
    assert plan.num_stops == 2
    assert sorted(s.laps for s in plan.stints) == [16, 21, 21]
    assert Counter(plan.compounds) == Counter({"HARD": 2, "MEDIUM": 1})
    assert all(s.compound == "HARD" for s in plan.stints if s.laps == 21)
    assert plan.total_time_seconds > 58 * 92.0
    # 2 x 20 s pit loss + 50.37 s of tyre and fuel cost
    assert plan.total_time_seconds == pytest.approx(58 * 92.0 + 90.37, abs=1e-6)


def test_search_matches_exhaustive_ranking(test_profile):
    """Pruning does not lose the optimum for the 58-lap scenario."""
    plan = search_best_plan(test_profile)
    ranked = rank_strategies(test_profile)
    assert plan.total_time_seconds == pytest.approx(ranked["total_time_sec"].iloc[0])


def test_first_plan_wins_ties():
    """Equal degradation makes every assignment of a partition tie; the first one is kept."""
    profile = make_profile(total_laps=58, pit=25.0, soft=0.05, medium=0.05, hard=0.05)
    plan = search_best_plan(profile)
    assert plan.stints == (Stint("SOFT", 29), Stint("MEDIUM", 29))


def test_pruning_stops_far_more_stops_within_partition(monkeypatch):
    """With a one-stop incumbent, the three-stop partition is abandoned after one assignment."""
    calls = Counter()
    real_plan_time = optimizer.plan_time

    def counting_plan_time(profile, laps_per_stint, compounds, **kwargs):
        calls[len(laps_per_stint)] += 1
        return real_plan_time(profile, laps_per_stint, compounds, **kwargs)

    monkeypatch.setattr(optimizer, "plan_time", counting_plan_time)
    profile = make_profile(pit=60.0, soft=0.02, medium=0.021, hard=0.022)
    plan = search_best_plan(profile)
    assert plan.num_stops == 1
    assert calls[2] == 7 * 6
    assert calls[3] == 49 * 24
    assert calls[4] == 1
    assert calls[1] == 0


def test_no_pruning_when_incumbent_has_two_stops(monkeypatch, test_profile):
    calls = Counter()
    real_plan_time = optimizer.plan_time

    def counting_plan_time(profile, laps_per_stint, compounds, **kwargs):
        calls[len(laps_per_stint)] += 1
        return real_plan_time(profile, laps_per_stint, compounds, **kwargs)

    monkeypatch.setattr(optimizer, "plan_time", counting_plan_time)
    search_best_plan(test_profile)
    assert calls[4] == 78


def test_single_stint_never_selected():
    """No-stop candidates have no legal compound assignment, even when pit loss is huge."""
    profile = make_profile(total_laps=20, pit=1000.0, soft=0.01, medium=0.01, hard=0.01)
    plan = search_best_plan(profile)
    assert plan.num_stops == 1
    assert len(plan.stints) == 2
    ranked = rank_strategies(profile)
    assert (ranked["num_stops"] > 0).all()


def test_single_lap_race_exhausts_search():
    with pytest.raises(SearchExhaustedError, match="1-lap race"):
        search_best_plan(make_profile(total_laps=1))


def test_search_is_deterministic(test_profile):
    assert search_best_plan(test_profile) == search_best_plan(test_profile)


def test_rank_strategies_columns_and_order(test_profile):
    ranked = rank_strategies(test_profile)
    assert list(ranked.columns) == [
        "stints",
        "compounds",
        "num_stops",
        "total_time_sec",
        "rank",
        "time_delta_from_best_sec",
    ]
    assert len(ranked) == 7 * 6 + 49 * 24 + 78
    assert ranked["total_time_sec"].is_monotonic_increasing
    assert ranked["rank"].iloc[0] == 1
    assert ranked["time_delta_from_best_sec"].iloc[0] == 0.0


def test_rank_strategies_top(test_profile):
    top = rank_strategies(test_profile, top=5)
    assert len(top) == 5
    assert list(top["rank"]) == [1, 2, 3, 4, 5]


def test_rank_strategies_empty_for_single_lap():
    ranked = rank_strategies(make_profile(total_laps=1))
    assert ranked.empty
    assert "rank" in ranked.columns


def test_format_plan():
    plan = StintPlan(
        stints=(Stint("SOFT", 18), Stint("HARD", 40)),
        total_time_seconds=5352.5,
        num_stops=1,
    )
    assert format_plan(plan) == (
        "Stint 1: SOFT x 18 laps | Stint 2: HARD x 40 laps • Stops: 1 • Total: 89:12.500"
    )


@pytest.mark.asyncio
async def test_predict_requires_catalog():
    with pytest.raises(MissingTrackDataError):
        await predict_best_strategy("TestTrack", 2024, track_profiles=None)


@pytest.mark.asyncio
async def test_predict_unknown_track(catalog):
    with pytest.raises(UnknownTrackError, match="Unknown track: Nowhere"):
        await predict_best_strategy("Nowhere", 2024, track_profiles=catalog)


@pytest.mark.asyncio
@pytest.mark.parametrize("rain", [-1.0, 100.5])
async def test_predict_rejects_rain_out_of_range(catalog, rain):
    with pytest.raises(ValueError, match="rain_probability_pct"):
        await predict_best_strategy("TestTrack", 2024, None, rain, catalog)


@pytest.mark.asyncio
async def test_predict_rejects_unknown_mode(catalog):
    with pytest.raises(ValueError, match="mode"):
        await predict_best_strategy("TestTrack", 2024, track_profiles=catalog, mode="Z")


@pytest.mark.asyncio
async def test_predict_static_is_idempotent(catalog):
    """Same inputs, no telemetry -> identical plans, and rain does not change the plan."""
    first = await predict_best_strategy("TestTrack", 2024, None, 0.0, catalog)
    second = await predict_best_strategy("TestTrack", 2024, None, 0.0, catalog)
    rainy = await predict_best_strategy("TestTrack", 2024, None, 80.0, catalog)
    assert first == second
    assert first.total_time_seconds == second.total_time_seconds
    assert rainy == first
    assert first.notes == ()
    assert first == search_best_plan(catalog["TestTrack"])


@pytest.mark.asyncio
async def test_predict_calibrated_mode_c(catalog, fake_provider):
    """Mode C overrides catalog pit loss and degradation with calibrated values."""
    plan = await predict_best_strategy(
        "Monza", 2024, track_profiles=catalog, mode="C", provider=fake_provider
    )
    from pitplan.models.calibration import calibrate
    from pitplan.strategy.profile_builder import build_track_profile

    delta = calibrate(fake_provider.laps, session_key=9590)
    expected = search_best_plan(build_track_profile("Monza", catalog, delta))
    assert plan.stints == expected.stints
    assert plan.total_time_seconds == expected.total_time_seconds
    assert any("Calibrated from 2024 race telemetry" in n for n in plan.notes)


@pytest.mark.asyncio
async def test_predict_mode_a_ignores_provider(catalog, fake_provider):
    plan = await predict_best_strategy(
        "Monza", 2024, track_profiles=catalog, mode="A", provider=fake_provider
    )
    assert fake_provider.calls == []
    assert plan == search_best_plan(catalog["Monza"])


@pytest.mark.asyncio
async def test_predict_mode_b_known_track_skips_telemetry(catalog, fake_provider):
    await predict_best_strategy("Monza", 2024, track_profiles=catalog, mode="B", provider=fake_provider)
    assert fake_provider.calls == []


@pytest.mark.asyncio
async def test_predict_mode_b_synthesizes_unknown_track(catalog, fake_provider):
    """Track missing from the catalog is built from telemetry (30 laps observed)."""
    plan = await predict_best_strategy(
        "Yas Marina", 2024, track_profiles=catalog, mode="b", provider=fake_provider
    )
    assert plan.total_laps == 30


@pytest.mark.asyncio
async def test_predict_falls_back_on_provider_failure(catalog):
    provider = FakeProvider(error=TelemetryConnectionError("offline"))
    plan = await predict_best_strategy("Monza", 2024, track_profiles=catalog, provider=provider)
    static = search_best_plan(catalog["Monza"])
    assert plan.stints == static.stints
    assert plan.total_time_seconds == static.total_time_seconds
    assert plan.notes[0].startswith("Static profile used:")


@pytest.mark.asyncio
async def test_predict_falls_back_on_timeout(catalog, synthetic_laps):
    provider = FakeProvider(laps=synthetic_laps, delay=1.0)
    plan = await predict_best_strategy(
        "Monza", 2024, track_profiles=catalog, provider=provider, timeout=0.01
    )
    assert plan.stints == search_best_plan(catalog["Monza"]).stints


@pytest.mark.asyncio
async def test_predict_unknown_track_with_failing_provider(catalog):
    provider = FakeProvider(error=TelemetryConnectionError("offline"))
    with pytest.raises(UnknownTrackError):
        await predict_best_strategy("Losail", 2024, track_profiles=catalog, provider=provider)


@pytest.mark.asyncio
async def test_predict_driver_note(catalog, fake_provider):
    plan = await predict_best_strategy(
        "Monza", 2024, "LEC", track_profiles=catalog, provider=fake_provider
    )
    assert "Driver: Charles LECLERC (Ferrari)" in plan.notes
    assert ("list_drivers", 9590) in fake_provider.calls


@pytest.mark.asyncio
async def test_predict_unknown_driver_adds_no_note(catalog, fake_provider):
    plan = await predict_best_strategy(
        "Monza", 2024, "Nobody", track_profiles=catalog, provider=fake_provider
    )
    assert not any(n.startswith("Driver:") for n in plan.notes)


@pytest.mark.asyncio
async def test_predict_unknown_track_without_laps_uses_fallback_distance(catalog):
    """Resolved session with no laps: unknown track is synthesized at 50 laps from catalog averages."""
    plan = await predict_best_strategy(
        "Yas", 2024, track_profiles=catalog, provider=FakeProvider(laps=[])
    )
    assert plan.total_laps == 50
    assert plan.notes[0] == "No laps recorded for session 9600; catalog values used"


@pytest.mark.asyncio
async def test_predict_known_track_without_laps_keeps_catalog(catalog):
    plan = await predict_best_strategy(
        "Monza", 2024, track_profiles=catalog, provider=FakeProvider(laps=[])
    )
    assert plan.stints == search_best_plan(catalog["Monza"]).stints


@pytest.mark.asyncio
@pytest.mark.parametrize("rain", [None, "wet"])
async def test_predict_rejects_non_numeric_rain(catalog, rain):
    with pytest.raises(ValueError, match="rain_probability_pct"):
        await predict_best_strategy("TestTrack", 2024, None, rain, catalog)
