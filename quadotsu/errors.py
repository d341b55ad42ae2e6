"""Exception hierarchy shared by the engine and its collaborators."""

from __future__ import annotations


class QuadOtsuError(Exception):
    """Base class for every error raised by quadotsu."""


class ThreadConfigError(QuadOtsuError, ValueError):
    """Thread directive outside the accepted range."""


class RasterError(QuadOtsuError, ValueError):
    """Raster dimensions or buffer are inconsistent."""


class EmptyRasterError(RasterError):
    """A raster with zero pixels reached the threshold search."""


class PnmFormatError(QuadOtsuError, ValueError):
    """Input is not a binary 8-bit PGM (P5, maxval 255)."""


class SegmentationError(QuadOtsuError):
    """A pipeline stage failed; ``errors`` maps stage id to message."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        detail = "; ".join(f"{sid}: {msg}" for sid, msg in self.errors.items())
        super().__init__(f"Segmentation failed ({detail})")
