"""S1.01 — Histogram.

Each worker counts its slice of the pixel buffer into a private bin array;
the private arrays are summed once every worker has finished. Integer
addition is associative, so the result does not depend on the worker count.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from quadotsu.engine.config import DEFAULT_CONFIG, SegmentationConfig
from quadotsu.engine.context import SegmentationContext
from quadotsu.engine.parallel import SEQUENTIAL, WorkerPool
from quadotsu.engine.registry import Phase, stage


def build_histogram(
    pixels: ArrayLike,
    pool: WorkerPool | None = None,
    config: SegmentationConfig = DEFAULT_CONFIG,
) -> NDArray[np.int64]:
    """Count pixels per intensity level. An empty buffer gives all zeros."""
    flat = np.asarray(pixels, dtype=np.uint8).reshape(-1)
    pool = pool or WorkerPool(SEQUENTIAL)

    def count(chunk: range) -> NDArray[np.int64]:
        return np.bincount(flat[chunk.start:chunk.stop], minlength=config.num_levels)

    histogram = np.zeros(config.num_levels, dtype=np.int64)
    for local in pool.map(count, pool.partition(flat.size)):
        histogram += local
    return histogram


@stage(
    id="S1.01",
    phase=Phase.HISTOGRAM,
    description="Count occurrences of each intensity level",
)
def histogram_stage(ctx: SegmentationContext) -> None:
    ctx.histogram = build_histogram(ctx.raster.pixels, ctx.pool, ctx.config)
