"""S4.01 — Cluster remap.

    v <= f1        -> cluster_values[0]
    f1 < v <= f2   -> cluster_values[1]
    f2 < v <= f3   -> cluster_values[2]
    v > f3         -> cluster_values[3]

Applied through a lookup table over disjoint slices of the buffer, in place.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from quadotsu.engine.config import DEFAULT_CONFIG, SegmentationConfig
from quadotsu.engine.context import SegmentationContext, ThresholdTriple
from quadotsu.engine.parallel import SEQUENTIAL, WorkerPool
from quadotsu.engine.registry import Phase, stage


def cluster_lut(
    triple: ThresholdTriple,
    config: SegmentationConfig = DEFAULT_CONFIG,
) -> NDArray[np.uint8]:
    triple.check_bounds(config)
    first, second, third, fourth = config.cluster_values
    lut = np.full(config.num_levels, fourth, dtype=np.uint8)
    lut[: triple.f3 + 1] = third
    lut[: triple.f2 + 1] = second
    lut[: triple.f1 + 1] = first
    return lut


def remap_clusters(
    pixels: NDArray[np.uint8],
    triple: ThresholdTriple,
    pool: WorkerPool | None = None,
    config: SegmentationConfig = DEFAULT_CONFIG,
) -> NDArray[np.uint8]:
    """Overwrite every pixel with its cluster value and return the same buffer."""
    lut = cluster_lut(triple, config)
    pool = pool or WorkerPool(SEQUENTIAL)

    def apply(chunk: range) -> None:
        window = pixels[chunk.start:chunk.stop]
        window[...] = lut[window]

    pool.map(apply, pool.partition(pixels.size))
    return pixels


@stage(
    id="S4.01",
    phase=Phase.REMAP,
    dependencies=["S3.01"],
    description="Replace each pixel with the output value of its cluster",
)
def cluster_remap_stage(ctx: SegmentationContext) -> None:
    if ctx.triple is None:
        raise RuntimeError("thresholds not found")
    remap_clusters(ctx.raster.pixels, ctx.triple, ctx.pool, ctx.config)
