"""Tests for the stage registry."""

import pytest

from quadotsu.engine.context import SegmentationContext
from quadotsu.engine.pipeline import register_stages
from quadotsu.engine.registry import Phase, StageRegistry, StageSpec, get_registry


def _noop(ctx: SegmentationContext) -> None:
    pass


def test_register_and_get():
    reg = StageRegistry()
    spec = StageSpec(id="S1.01", phase=Phase.HISTOGRAM, fn=_noop)
    reg.register(spec)
    assert reg.get("S1.01") is spec
    assert reg.count == 1


def test_duplicate_id_rejected():
    reg = StageRegistry()
    reg.register(StageSpec(id="S1.01", phase=Phase.HISTOGRAM, fn=_noop))
    with pytest.raises(ValueError, match="Duplicate"):
        reg.register(StageSpec(id="S1.01", phase=Phase.REMAP, fn=_noop))


def test_get_phase():
    reg = StageRegistry()
    reg.register(StageSpec(id="S1.01", phase=Phase.HISTOGRAM, fn=_noop))
    reg.register(StageSpec(id="S3.01", phase=Phase.SEARCH, fn=_noop))
    search = reg.get_phase(Phase.SEARCH)
    assert [s.id for s in search] == ["S3.01"]


def test_resolve_order_expands_dependencies():
    reg = StageRegistry()
    reg.register(StageSpec(id="S1.01", phase=Phase.HISTOGRAM, fn=_noop))
    reg.register(StageSpec(id="S2.01", phase=Phase.STATISTICS, fn=_noop, dependencies=["S1.01"]))
    reg.register(StageSpec(id="S3.01", phase=Phase.SEARCH, fn=_noop, dependencies=["S2.01"]))
    order = reg.resolve_order({"S2.01"})
    assert [s.id for s in order] == ["S1.01", "S2.01"]


def test_resolve_order_detects_cycles():
    reg = StageRegistry()
    reg.register(StageSpec(id="A", phase=Phase.HISTOGRAM, fn=_noop, dependencies=["B"]))
    reg.register(StageSpec(id="B", phase=Phase.HISTOGRAM, fn=_noop, dependencies=["A"]))
    with pytest.raises(ValueError, match="Circular"):
        reg.resolve_order()


def test_builtin_stages_run_phase_by_phase():
    register_stages()
    order = get_registry().resolve_order()
    assert [s.id for s in order] == ["S1.01", "S2.01", "S3.01", "S4.01"]
    assert [s.phase for s in order] == [Phase.HISTOGRAM, Phase.STATISTICS, Phase.SEARCH, Phase.REMAP]


def test_register_stages_is_idempotent():
    register_stages()
    register_stages()
    assert get_registry().count == 4


def test_resolve_order_rejects_unknown_ids():
    reg = StageRegistry()
    reg.register(StageSpec(id="S2.01", phase=Phase.STATISTICS, fn=_noop, dependencies=["S1.01"]))
    with pytest.raises(ValueError, match="Unknown stage ID: S1.01"):
        reg.resolve_order()
    with pytest.raises(ValueError, match="Unknown stage ID: S9.99"):
        reg.resolve_order({"S9.99"})


def test_independent_stages_run_in_phase_order():
    reg = StageRegistry()
    reg.register(StageSpec(id="A", phase=Phase.REMAP, fn=_noop))
    reg.register(StageSpec(id="B", phase=Phase.HISTOGRAM, fn=_noop))
    reg.register(StageSpec(id="C", phase=Phase.HISTOGRAM, fn=_noop))
    assert [s.id for s in reg.resolve_order()] == ["B", "C", "A"]
