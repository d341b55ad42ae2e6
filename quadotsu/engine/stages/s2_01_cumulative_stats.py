"""S2.01 — Cumulative statistics.

prob[k+1]   = prob[k]   + H[k]
expect[k+1] = expect[k] + H[k] * k

Any segment's pixel count and weighted sum then cost two lookups. Only 256
steps, so this stage always runs on the calling thread.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

from quadotsu.engine.context import CumulativeStats, SegmentationContext
from quadotsu.engine.registry import Phase, stage


def cumulative_stats(histogram: ArrayLike) -> CumulativeStats:
    counts = np.asarray(histogram, dtype=np.int64)
    levels = np.arange(counts.size, dtype=np.int64)

    prob = np.zeros(counts.size + 1, dtype=np.int64)
    expect = np.zeros(counts.size + 1, dtype=np.int64)
    np.cumsum(counts, out=prob[1:])
    np.cumsum(counts * levels, out=expect[1:])
    return CumulativeStats(prob=prob, expect=expect)


@stage(
    id="S2.01",
    phase=Phase.STATISTICS,
    dependencies=["S1.01"],
    description="Prefix sums of pixel counts and weighted intensities",
)
def cumulative_stats_stage(ctx: SegmentationContext) -> None:
    if ctx.histogram is None:
        raise RuntimeError("histogram not computed")
    ctx.stats = cumulative_stats(ctx.histogram)
