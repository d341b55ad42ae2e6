"""Engine entry point: raster in, thresholds and remapped raster out."""

from __future__ import annotations

from dataclasses import dataclass, field

from quadotsu.engine.config import DEFAULT_CONFIG, SegmentationConfig
from quadotsu.engine.context import Raster, SegmentationContext, ThresholdTriple
from quadotsu.engine.parallel import DEFAULT_DEGREE, WorkerPool
from quadotsu.engine.pipeline import create_pipeline
from quadotsu.engine.registry import StageRegistry
from quadotsu.errors import SegmentationError


@dataclass
class SegmentationResult:
    triple: ThresholdTriple
    dispersion: float
    # The input raster, remapped in place
    raster: Raster
    # Wall clock over all phases, histogram through remap
    elapsed_ms: float
    # Resolved worker count; 0 when run sequentially
    workers: int
    timings: dict[str, float] = field(default_factory=dict)


def segment(
    raster: Raster,
    threads: int = DEFAULT_DEGREE,
    config: SegmentationConfig | None = None,
    registry: StageRegistry | None = None,
) -> SegmentationResult:
    """Run the full pipeline on ``raster``.

    Raises ThreadConfigError before any work if ``threads`` is out of range,
    and SegmentationError if a stage fails.
    """
    with WorkerPool(threads) as pool:
        ctx = SegmentationContext(raster=raster, config=config or DEFAULT_CONFIG, pool=pool)
        create_pipeline(registry).run(ctx)

    if ctx.errors:
        raise SegmentationError(ctx.errors) from ctx.failure

    return SegmentationResult(
        triple=ctx.triple,
        dispersion=ctx.dispersion,
        raster=ctx.raster,
        elapsed_ms=ctx.elapsed_ms,
        workers=pool.workers,
        timings=dict(ctx.timings),
    )
