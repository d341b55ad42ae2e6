"""S3.01 — Threshold search.

Exhaustive search over every triple f1 < f2 < f3 for the one maximizing

    D = sum over the four segments of (weighted sum)^2 / (pixel count)

which is the between-class variance up to terms that do not depend on the
cut points. With prefix sums each evaluation is O(1); the search is
O(levels^3), about 2.7M evaluations for 8-bit input.

Enumeration order is f1, then f2, then f3, ascending, and the first triple
reaching the maximum wins. Workers take interleaved f1 values and evaluate
each (f2, f3) plane in one vectorized pass. Every triple's D is computed
with the same float operations in the same order whatever the partition,
so the reduction (larger D, then lexicographically smaller triple) yields
the sequential answer for any worker count.

An empty segment has weighted sum 0 and contributes 0, the limit of
E^2/P as the segment drains. Merging two non-empty segments always lowers
D strictly, so with four or more distinct intensities the winner never has
an empty segment; with fewer the search stays well-defined.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from quadotsu.engine.config import DEFAULT_CONFIG, SegmentationConfig
from quadotsu.engine.context import CumulativeStats, SegmentationContext, ThresholdTriple
from quadotsu.engine.parallel import SEQUENTIAL, WorkerPool
from quadotsu.engine.registry import Phase, stage
from quadotsu.errors import EmptyRasterError

_Candidate = tuple[float, ThresholdTriple]


def _segment_term(weighted, count):
    """E^2 / P elementwise, 0 where the segment is empty."""
    weighted = np.asarray(weighted, dtype=np.float64)
    count = np.asarray(count, dtype=np.float64)
    return np.divide(
        weighted * weighted,
        count,
        out=np.zeros(np.broadcast(weighted, count).shape),
        where=count > 0,
    )


def dispersion(stats: CumulativeStats, triple: ThresholdTriple) -> float:
    """Objective value of a single triple."""
    triple.check_bounds(SegmentationConfig(num_levels=stats.prob.size - 1))
    p = stats.prob.astype(np.float64)
    e = stats.expect.astype(np.float64)
    f1, f2, f3 = triple
    d = (
        _segment_term(e[f1 + 1], p[f1 + 1])
        + _segment_term(e[f2 + 1] - e[f1 + 1], p[f2 + 1] - p[f1 + 1])
        + _segment_term(e[f3 + 1] - e[f2 + 1], p[f3 + 1] - p[f2 + 1])
        + _segment_term(e[-1] - e[f3 + 1], p[-1] - p[f3 + 1])
    )
    return float(d)


def _search_f1_values(
    p: NDArray[np.float64],
    e: NDArray[np.float64],
    f1_values: range,
    config: SegmentationConfig,
) -> _Candidate | None:
    best: _Candidate | None = None

    for f1 in f1_values:
        f2 = np.arange(f1 + 1, config.max_f2 + 1)
        f3 = np.arange(f1 + 2, config.max_f3 + 1)

        # rows = f2, columns = f3
        first = _segment_term(e[f1 + 1], p[f1 + 1])
        second = _segment_term(e[f2 + 1] - e[f1 + 1], p[f2 + 1] - p[f1 + 1])
        third = _segment_term(
            e[f3 + 1][None, :] - e[f2 + 1][:, None],
            p[f3 + 1][None, :] - p[f2 + 1][:, None],
        )
        fourth = _segment_term(e[-1] - e[f3 + 1], p[-1] - p[f3 + 1])

        plane = first + second[:, None] + third + fourth[None, :]
        plane[f3[None, :] <= f2[:, None]] = -np.inf

        # argmax returns the first maximum in row-major order: f2, then f3
        row, col = np.unravel_index(int(np.argmax(plane)), plane.shape)
        value = float(plane[row, col])
        if best is None or value > best[0]:
            best = (value, ThresholdTriple(f1, int(f2[row]), int(f3[col])))

    return best


def search_thresholds(
    stats: CumulativeStats,
    pool: WorkerPool | None = None,
    config: SegmentationConfig = DEFAULT_CONFIG,
) -> tuple[ThresholdTriple, float]:
    """Return the winning triple and its dispersion."""
    if stats.total <= 0:
        raise EmptyRasterError("Cannot search thresholds on an empty raster")

    pool = pool or WorkerPool(SEQUENTIAL)
    p = stats.prob.astype(np.float64)
    e = stats.expect.astype(np.float64)

    local = pool.map(
        lambda f1_values: _search_f1_values(p, e, f1_values, config),
        pool.interleave(config.max_f1 + 1),
    )
    candidates = [c for c in local if c is not None]
    value, triple = min(candidates, key=lambda c: (-c[0], c[1]))
    return triple, value


@stage(
    id="S3.01",
    phase=Phase.SEARCH,
    dependencies=["S2.01"],
    description="Exhaustive search for the three cut points of maximum dispersion",
)
def threshold_search_stage(ctx: SegmentationContext) -> None:
    if ctx.stats is None:
        raise RuntimeError("cumulative stats not computed")
    ctx.triple, ctx.dispersion = search_thresholds(ctx.stats, ctx.pool, ctx.config)
