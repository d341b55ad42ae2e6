"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    stages_registered: int = 0


class SegmentResponse(BaseModel):
    thresholds: list[int] = Field(..., min_length=3, max_length=3)
    dispersion: float
    width: int
    height: int
    pixels: list[int]
    elapsed_ms: float = 0.0
    workers: int = 0
    timings: dict[str, float] = Field(default_factory=dict)


class HistogramResponse(BaseModel):
    histogram: list[int]
    prob: list[int]
    expect: list[int]
    total: int = 0
