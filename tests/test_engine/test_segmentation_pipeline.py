"""Tests for the pipeline orchestrator and the segment() entry point."""

from __future__ import annotations

import logging

import numpy as np
import pytest

from quadotsu.engine.context import SegmentationContext, ThresholdTriple
from quadotsu.engine.parallel import SEQUENTIAL
from quadotsu.engine.pipeline import SegmentationPipeline, create_pipeline
from quadotsu.engine.registry import Phase, StageRegistry, StageSpec
from quadotsu.engine.segmenter import segment
from quadotsu.errors import SegmentationError, ThreadConfigError
from tests.conftest import make_raster, random_raster


def test_pipeline_runs_stages_in_order(four_level_raster):
    reg = StageRegistry()
    results = []

    def s1(ctx: SegmentationContext) -> None:
        results.append("s1")

    def s2(ctx: SegmentationContext) -> None:
        results.append("s2")

    reg.register(StageSpec(id="S2.01", phase=Phase.STATISTICS, fn=s2, dependencies=["S1.01"]))
    reg.register(StageSpec(id="S1.01", phase=Phase.HISTOGRAM, fn=s1))

    ctx = SegmentationPipeline(registry=reg).run(SegmentationContext(raster=four_level_raster))

    assert results == ["s1", "s2"]
    assert ctx.completed_stages == {"S1.01", "S2.01"}
    assert set(ctx.timings) == {"S1.01", "S2.01"}


def test_pipeline_stops_at_first_failure(four_level_raster):
    reg = StageRegistry()
    ran = []

    def fail(ctx: SegmentationContext) -> None:
        raise ValueError("test error")

    reg.register(StageSpec(id="S1.01", phase=Phase.HISTOGRAM, fn=fail))
    reg.register(
        StageSpec(id="S2.01", phase=Phase.STATISTICS, fn=lambda c: ran.append(1), dependencies=["S1.01"])
    )

    ctx = SegmentationPipeline(registry=reg).run(SegmentationContext(raster=four_level_raster))

    assert "S1.01" in ctx.errors
    assert "test error" in ctx.errors["S1.01"]
    assert isinstance(ctx.failure, ValueError)
    assert ran == []
    assert ctx.completed_stages == set()


def test_partial_run_stops_after_statistics(four_level_raster):
    ctx = SegmentationContext(raster=four_level_raster)
    create_pipeline().run(ctx, stages={"S2.01"})

    assert ctx.completed_stages == {"S1.01", "S2.01"}
    assert ctx.stats.total == 4
    assert ctx.triple is None
    # Input untouched without the remap stage
    assert ctx.raster.pixels.tolist() == [0, 85, 170, 255]


def test_run_streaming_reports_each_stage(four_level_raster):
    ctx = SegmentationContext(raster=four_level_raster)
    events = list(create_pipeline().run_streaming(ctx))

    assert [e["status"] for e in events] == ["running", "ok"] * 4
    assert [e["stage_id"] for e in events[1::2]] == ["S1.01", "S2.01", "S3.01", "S4.01"]
    assert all(e["total"] == 4 for e in events)
    assert ctx.triple == ThresholdTriple(0, 85, 170)


def test_segment_four_level_scenario(four_level_raster):
    result = segment(four_level_raster, threads=2)
    assert result.triple == ThresholdTriple(0, 85, 170)
    assert result.raster.pixels.tolist() == [0, 84, 170, 255]
    assert result.workers == 2
    assert result.elapsed_ms >= 0
    assert set(result.timings) == {"S1.01", "S2.01", "S3.01", "S4.01"}


def test_segment_uniform_scenario(uniform_raster):
    result = segment(uniform_raster)
    assert result.triple == ThresholdTriple(0, 1, 2)
    assert set(result.raster.pixels.tolist()) == {255}


def test_segment_single_pixel(single_pixel_raster):
    result = segment(single_pixel_raster, threads=SEQUENTIAL)
    assert result.triple == ThresholdTriple(0, 1, 2)
    assert result.dispersion == 200.0**2
    assert result.raster.pixels.tolist() == [255]
    assert result.workers == 0


def test_segment_writes_through_to_caller_buffer():
    pixels = np.array([0, 85, 170, 255], dtype=np.uint8)
    segment(make_raster(pixels, 2, 2), threads=SEQUENTIAL)
    assert pixels.tolist() == [0, 84, 170, 255]


def test_segment_thread_invariance_100x100():
    source = random_raster(100, 100)
    results = [segment(source.copy(), threads=t) for t in (1, 4, SEQUENTIAL)]

    assert results[0].triple == results[1].triple == results[2].triple
    assert results[0].dispersion == results[1].dispersion == results[2].dispersion
    np.testing.assert_array_equal(results[0].raster.pixels, results[1].raster.pixels)
    np.testing.assert_array_equal(results[0].raster.pixels, results[2].raster.pixels)


@pytest.mark.parametrize("threads", [-2, 2001])
def test_segment_rejects_bad_thread_directive(four_level_raster, threads):
    with pytest.raises(ThreadConfigError):
        segment(four_level_raster, threads=threads)
    # Nothing ran
    assert four_level_raster.pixels.tolist() == [0, 85, 170, 255]


def test_segment_raises_on_stage_failure(four_level_raster):
    reg = StageRegistry()

    def fail(ctx: SegmentationContext) -> None:
        raise RuntimeError("boom")

    reg.register(StageSpec(id="S1.01", phase=Phase.HISTOGRAM, fn=fail))

    with pytest.raises(SegmentationError) as exc_info:
        segment(four_level_raster, registry=reg)
    assert exc_info.value.errors == {"S1.01": "boom"}
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_segment_accepts_read_only_buffer():
    buf = np.frombuffer(bytes([0, 85, 170, 255]), dtype=np.uint8)
    result = segment(make_raster(buf, 2, 2), threads=SEQUENTIAL)
    assert result.triple == ThresholdTriple(0, 85, 170)
    assert result.raster.pixels.tolist() == [0, 84, 170, 255]
    assert buf.tolist() == [0, 85, 170, 255]


def test_run_streaming_logs_failures(four_level_raster, caplog):
    reg = StageRegistry()

    def fail(ctx: SegmentationContext) -> None:
        raise ValueError("bad histogram")

    reg.register(StageSpec(id="S1.01", phase=Phase.HISTOGRAM, fn=fail))
    ctx = SegmentationContext(raster=four_level_raster)

    with caplog.at_level(logging.INFO, logger="quadotsu.engine.pipeline"):
        events = list(SegmentationPipeline(registry=reg).run_streaming(ctx))

    assert events[-1]["status"] == "error"
    warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert "S1.01 FAILED: bad histogram" in warnings[0].getMessage()
    assert "Pipeline complete: 0/1 stages" in caplog.text
