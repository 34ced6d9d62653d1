"""CLI entry point for the race strategy predictor.

Example:
    python run_strategy.py --track Monza --year 2024
    python run_strategy.py --track Monza --year 2024 --driver VER --rain 20 --top 5
    python run_strategy.py --track Monza --year 2024 --provider none
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Predict the minimum-time tyre and pit-stop strategy for a race.",
        epilog="Calibrates pit loss and degradation from race telemetry when available; "
        "falls back to the static track catalog otherwise.",
    )
    parser.add_argument(
        "--track", type=str, required=True, help="Track name as in the catalog (e.g. Monza)"
    )
    parser.add_argument(
        "--year", type=int, default=2024, help="Season used for calibration (default: 2024)"
    )
    parser.add_argument(
        "--driver", type=str, default=None, help="Driver name, acronym or number (optional)"
    )
    parser.add_argument(
        "--rain",
        type=float,
        default=0.0,
        help="Rain probability in percent, 0-100 (accepted, not yet modelled)",
    )
    parser.add_argument(
        "--mode",
        type=str,
        default="C",
        choices=["A", "B", "C"],
        help="A: static catalog; B: telemetry for unknown tracks; C: full calibration (default)",
    )
    parser.add_argument(
        "--provider",
        type=str,
        default="openf1",
        choices=["openf1", "fastf1", "none"],
        help="Telemetry source (default: openf1)",
    )
    parser.add_argument(
        "--catalog", type=str, default=None, help="Path to a track catalog JSON file"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds allowed per telemetry step before falling back",
    )
    parser.add_argument(
        "--top", type=int, default=0, help="Also print the N best ranked plans"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _make_provider(name: str):
    if name == "openf1":
        from pitplan.data_pipeline.openf1 import OpenF1Provider

        return OpenF1Provider()
    if name == "fastf1":
        from pitplan.data_pipeline.load_race import FastF1Provider

        return FastF1Provider()
    return None


async def _run(args: argparse.Namespace, catalog):
    from pitplan.strategy.optimizer import predict_best_strategy
    from pitplan.utils.config import TELEMETRY_TIMEOUT_SEC

    provider = _make_provider(args.provider)
    timeout = args.timeout if args.timeout is not None else TELEMETRY_TIMEOUT_SEC
    try:
        return await predict_best_strategy(
            args.track,
            args.year,
            args.driver,
            args.rain,
            catalog,
            args.mode,
            provider=provider,
            timeout=timeout,
        )
    finally:
        close = getattr(provider, "close", None)
        if close is not None:
            await close()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(message)s",
    )

    # 1. Load static catalog
    try:
        from pitplan.models.track_profile import load_track_catalog

        catalog = load_track_catalog(args.catalog)
    except (OSError, ValueError) as e:
        print(f"Error loading track catalog: {e}", file=sys.stderr)
        return 1

    # 2. Calibrate and search
    from pitplan.strategy.exceptions import StrategyError

    try:
        plan = asyncio.run(_run(args, catalog))
    except StrategyError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: invalid input: {e}", file=sys.stderr)
        return 1

    # 3. Print recommendation
    from pitplan.strategy.optimizer import format_plan

    print(f"Race: {args.year} {args.track}  |  Mode: {args.mode}  |  Rain: {args.rain:g}%")
    print()
    print(f"Recommendation: {format_plan(plan)}")
    for note in plan.notes:
        print(f"  - {note}")

    # 4. Ranked alternatives (calibration is not repeated; uses the catalog profile)
    if args.top > 0:
        from pitplan.strategy.optimizer import rank_strategies

        profile = catalog.get(args.track)
        if profile is None:
            print("\nRanking unavailable: track is not in the static catalog.")
        else:
            ranked = rank_strategies(profile, top=args.top)
            print(f"\nTop {len(ranked)} plans (static profile):")
            print(ranked.to_string(index=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
