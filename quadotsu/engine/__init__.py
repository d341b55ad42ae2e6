"""quadotsu segmentation engine."""

from quadotsu.engine.config import DEFAULT_CONFIG, SegmentationConfig
from quadotsu.engine.context import CumulativeStats, Raster, SegmentationContext, ThresholdTriple
from quadotsu.engine.parallel import SEQUENTIAL, WorkerPool
from quadotsu.engine.pipeline import SegmentationPipeline, create_pipeline, register_stages
from quadotsu.engine.registry import Phase, get_registry, stage
from quadotsu.engine.segmenter import SegmentationResult, segment

__all__ = [
    "DEFAULT_CONFIG",
    "SegmentationConfig",
    "CumulativeStats",
    "Raster",
    "SegmentationContext",
    "ThresholdTriple",
    "SEQUENTIAL",
    "WorkerPool",
    "SegmentationPipeline",
    "create_pipeline",
    "register_stages",
    "Phase",
    "get_registry",
    "stage",
    "SegmentationResult",
    "segment",
]
