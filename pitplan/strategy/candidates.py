"""Candidate stint partitions and legal compound assignments.

Partitions are a bounded sample around even splits, not a full enumeration of
integer compositions: the search stays small at the cost of possibly missing
the global optimum.
"""

from __future__ import annotations

from itertools import product

from pitplan.utils.config import (
    COMPOUND_ORDER,
    MIN_DISTINCT_COMPOUNDS,
    STINT_OFFSET_RANGE,
)


def generate_candidate_stints(
    total_laps: int, *, offset_range: int = STINT_OFFSET_RANGE
) -> list[tuple[int, ...]]:
    """
    Lap-count partitions of the race into 1 to 4 stints.

    - 2 stints: first = max(1, n // 2 + d) for d in [-offset, offset].
    - 3 stints: first two = max(1, n // 3 + d1), max(1, n // 3 + d2).
    - 4 stints: one quarter split, last stint takes the remainder.
    - 1 stint: the full distance.

    The last stint always absorbs the remainder and candidates where it would
    be empty or negative are dropped. Duplicates are removed keeping the first
    occurrence, so the output order is deterministic.

    Parameters
    ----------
    total_laps : int
        Race distance (positive).
    offset_range : int
        Maximum lap offset from the even split.

    Returns
    -------
    list of tuple of int
        Ordered stint lengths, each summing to total_laps.
    """
    if total_laps < 1:
        raise ValueError(f"total_laps must be positive, got {total_laps!r}")
    offsets = range(-offset_range, offset_range + 1)
    candidates: list[tuple[int, ...]] = []

    half = total_laps // 2
    for d in offsets:
        a = max(1, half + d)
        b = total_laps - a
        if b > 0:
            candidates.append((a, b))

    third = total_laps // 3
    for d1 in offsets:
        for d2 in offsets:
            a = max(1, third + d1)
            b = max(1, third + d2)
            c = total_laps - a - b
            if c > 0:
                candidates.append((a, b, c))

    q = max(1, total_laps // 4)
    if total_laps - 3 * q > 0:
        candidates.append((q, q, q, total_laps - 3 * q))

    candidates.append((total_laps,))

    return list(dict.fromkeys(candidates))


def assign_compounds(
    num_stints: int,
    *,
    compounds: tuple[str, ...] = COMPOUND_ORDER,
    min_distinct: int = MIN_DISTINCT_COMPOUNDS,
) -> list[tuple[str, ...]]:
    """
    Every compound-per-stint sequence using at least min_distinct compounds.

    Full Cartesian enumeration in compound order, filtered. A single stint can
    never use two compounds, so num_stints=1 yields an empty list.
    """
    if num_stints < 1:
        return []
    return [
        seq for seq in product(compounds, repeat=num_stints) if len(set(seq)) >= min_distinct
    ]
