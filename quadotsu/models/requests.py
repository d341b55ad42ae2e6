"""API request models."""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field

from quadotsu.config import MAX_THREADS

Intensity = Annotated[int, Field(ge=0, le=255)]


class RasterRequest(BaseModel):
    width: int = Field(..., gt=0, description="Raster width in pixels")
    height: int = Field(..., gt=0, description="Raster height in pixels")
    pixels: list[Intensity] = Field(..., description="Row-major 8-bit intensities")


class SegmentRequest(RasterRequest):
    threads: int | None = Field(
        default=None,
        ge=-1,
        le=MAX_THREADS,
        description="Worker count; 0 = default degree, -1 = sequential, unset = server default",
    )
