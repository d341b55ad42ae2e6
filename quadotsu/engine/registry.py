"""Stage registry.

A stage is a plain function of the shared SegmentationContext, registered
with the ``@stage`` decorator when its module is imported:

    @stage(id="S2.01", phase=Phase.STATISTICS, dependencies=["S1.01"])
    def cumulative_stats_stage(ctx: SegmentationContext) -> None:
        ctx.stats = cumulative_stats(ctx.histogram)

Run order is derived from the declared dependencies; among stages that are
ready at the same time the lower (phase, id) goes first.
"""

from __future__ import annotations

import enum
import heapq
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Iterable

if TYPE_CHECKING:
    from quadotsu.engine.context import SegmentationContext

logger = logging.getLogger(__name__)

StageFn = Callable[["SegmentationContext"], None]


class Phase(enum.IntEnum):
    HISTOGRAM = 1
    STATISTICS = 2
    SEARCH = 3
    REMAP = 4


@dataclass
class StageSpec:
    id: str
    phase: Phase
    fn: StageFn
    dependencies: list[str] = field(default_factory=list)
    description: str = ""

    @property
    def sort_key(self) -> tuple[int, str]:
        return (int(self.phase), self.id)


class StageRegistry:
    def __init__(self) -> None:
        self._stages: dict[str, StageSpec] = {}

    def register(self, spec: StageSpec) -> None:
        if spec.id in self._stages:
            raise ValueError(f"Duplicate stage ID: {spec.id}")
        self._stages[spec.id] = spec
        logger.debug("Registered stage %s (%s)", spec.id, spec.phase.name)

    def get(self, stage_id: str) -> StageSpec:
        return self._stages[stage_id]

    def get_phase(self, phase: Phase) -> list[StageSpec]:
        return sorted(
            (s for s in self._stages.values() if s.phase == phase),
            key=lambda s: s.id,
        )

    def _with_dependencies(self, stage_ids: Iterable[str]) -> dict[str, StageSpec]:
        selected: dict[str, StageSpec] = {}
        pending = list(stage_ids)
        while pending:
            stage_id = pending.pop()
            if stage_id in selected:
                continue
            if stage_id not in self._stages:
                raise ValueError(f"Unknown stage ID: {stage_id}")
            spec = self._stages[stage_id]
            selected[stage_id] = spec
            pending.extend(spec.dependencies)
        return selected

    def resolve_order(self, requested_ids: set[str] | None = None) -> list[StageSpec]:
        """Dependency order over all stages, or over ``requested_ids`` and what they need."""
        if requested_ids is None:
            selected = self._with_dependencies(self._stages)
        else:
            selected = self._with_dependencies(requested_ids)

        waiting = {sid: len(set(spec.dependencies)) for sid, spec in selected.items()}
        dependents: dict[str, list[str]] = {sid: [] for sid in selected}
        for sid, spec in selected.items():
            for dep in set(spec.dependencies):
                dependents[dep].append(sid)

        ready = [spec.sort_key for sid, spec in selected.items() if waiting[sid] == 0]
        heapq.heapify(ready)

        ordered: list[StageSpec] = []
        while ready:
            _, sid = heapq.heappop(ready)
            ordered.append(selected[sid])
            for other in dependents[sid]:
                waiting[other] -= 1
                if waiting[other] == 0:
                    heapq.heappush(ready, selected[other].sort_key)

        if len(ordered) != len(selected):
            stuck = sorted(sid for sid, n in waiting.items() if n > 0)
            raise ValueError(f"Circular dependency detected among: {stuck}")
        return ordered

    @property
    def count(self) -> int:
        return len(self._stages)


_registry = StageRegistry()


def get_registry() -> StageRegistry:
    return _registry


def stage(
    *,
    id: str,
    phase: Phase,
    dependencies: list[str] | None = None,
    description: str = "",
) -> Callable[[StageFn], StageFn]:
    """Register the decorated function in the global registry."""

    def decorator(fn: StageFn) -> StageFn:
        _registry.register(
            StageSpec(
                id=id,
                phase=phase,
                fn=fn,
                dependencies=list(dependencies or []),
                description=description,
            )
        )
        return fn

    return decorator
