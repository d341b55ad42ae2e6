"""Pipeline orchestrator — runs stages in dependency order, one phase at a time."""

from __future__ import annotations

import importlib
import logging
import pkgutil
import time
from collections.abc import Generator
from typing import Any

from quadotsu.engine.context import SegmentationContext
from quadotsu.engine.registry import StageRegistry, get_registry

logger = logging.getLogger(__name__)

_STAGES_PACKAGE = "quadotsu.engine.stages"


def register_stages() -> None:
    """Import all stage modules so @stage decorators fire."""
    package = importlib.import_module(_STAGES_PACKAGE)
    for _, module_name, _ in pkgutil.iter_modules(package.__path__):
        importlib.import_module(f"{_STAGES_PACKAGE}.{module_name}")


class SegmentationPipeline:
    """Orchestrates the segmentation stages.

    A failing stage is recorded in ``ctx.errors`` and stops the run, so no
    later phase ever sees partial state.
    """

    def __init__(self, registry: StageRegistry | None = None) -> None:
        self.registry = registry or get_registry()

    def run(
        self,
        ctx: SegmentationContext,
        stages: set[str] | None = None,
    ) -> SegmentationContext:
        """Run all stages, or only ``stages`` plus their dependencies."""
        start = time.perf_counter()
        ordered = self.registry.resolve_order(stages)

        logger.info(
            "Pipeline: %d stages queued for %dx%d raster",
            len(ordered),
            ctx.raster.width,
            ctx.raster.height,
        )

        for spec in ordered:
            t0 = time.perf_counter()
            try:
                spec.fn(ctx)
            except Exception as e:
                ctx.errors[spec.id] = str(e)
                ctx.failure = e
                logger.warning("  %s FAILED: %s", spec.id, e)
                break
            elapsed = (time.perf_counter() - t0) * 1000
            ctx.completed_stages.add(spec.id)
            ctx.timings[spec.id] = elapsed
            logger.debug("  %s completed in %.1fms", spec.id, elapsed)

        ctx.elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Pipeline complete: %d/%d stages in %.1fms",
            len(ctx.completed_stages),
            len(ordered),
            ctx.elapsed_ms,
        )
        return ctx

    def run_streaming(self, ctx: SegmentationContext) -> Generator[dict[str, Any], None, None]:
        """Run the pipeline, yielding a progress dict before and after each stage.

        The caller's ``ctx`` is mutated in-place, so after the generator is
        exhausted the context contains all results (same as ``run()``).
        """
        start = time.perf_counter()
        ordered = self.registry.resolve_order()
        total = len(ordered)
        logger.info(
            "Pipeline (streaming): %d stages queued for %dx%d raster",
            total,
            ctx.raster.width,
            ctx.raster.height,
        )

        for i, spec in enumerate(ordered):
            event = {
                "stage_id": spec.id,
                "description": spec.description,
                "phase": spec.phase.name,
                "index": i,
                "total": total,
                "elapsed_ms": 0.0,
                "status": "running",
                "error": "",
            }
            yield dict(event)

            t0 = time.perf_counter()
            try:
                spec.fn(ctx)
            except Exception as e:
                ctx.errors[spec.id] = str(e)
                ctx.failure = e
                logger.warning("  %s FAILED: %s", spec.id, e)
                yield {**event, "status": "error", "error": str(e)}
                break
            elapsed_ms = round((time.perf_counter() - t0) * 1000, 1)
            ctx.completed_stages.add(spec.id)
            ctx.timings[spec.id] = elapsed_ms
            logger.debug("  %s completed in %.1fms", spec.id, elapsed_ms)

            yield {**event, "status": "ok", "elapsed_ms": elapsed_ms}

        ctx.elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Pipeline complete: %d/%d stages in %.1fms",
            len(ctx.completed_stages),
            total,
            ctx.elapsed_ms,
        )


def create_pipeline(registry: StageRegistry | None = None) -> SegmentationPipeline:
    """Factory function for creating a pipeline instance."""
    if registry is None:
        register_stages()
    return SegmentationPipeline(registry=registry)
