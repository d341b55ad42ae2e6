"""SegmentationContext — the single mutable state object flowing through all stages.

Raster → histogram → cumulative stats → (triple, dispersion) → remapped raster.
Each stage reads what the previous one stored and writes its own field.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator

import numpy as np
from numpy.typing import NDArray

from quadotsu.engine.config import DEFAULT_CONFIG, SegmentationConfig
from quadotsu.errors import RasterError

if TYPE_CHECKING:
    from quadotsu.engine.parallel import WorkerPool


@dataclass
class Raster:
    """Row-major 8-bit grayscale image.

    ``pixels`` is always a flat, contiguous, writeable ``uint8`` array. A
    flat writeable uint8 array passed in is kept as-is (no copy), so the
    remap stage writes through to the caller's buffer. Read-only buffers
    are copied.
    """

    width: int
    height: int
    pixels: NDArray[np.uint8]

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise RasterError(
                f"Raster dimensions must be positive, got {self.width}x{self.height}"
            )
        arr = np.asarray(self.pixels)
        if arr.dtype != np.uint8:
            if not np.issubdtype(arr.dtype, np.integer) and arr.size:
                raise RasterError(f"Pixel buffer must hold integers, got {arr.dtype}")
            if arr.size and (arr.min() < 0 or arr.max() > 255):
                raise RasterError("Pixel values must lie in [0, 255]")
            arr = arr.astype(np.uint8)
        arr = np.ascontiguousarray(arr)
        if not arr.flags.writeable:
            arr = arr.copy()
        if arr.ndim != 1:
            arr = arr.reshape(-1)
        expected = self.width * self.height
        if arr.size != expected:
            raise RasterError(
                f"Buffer holds {arr.size} pixels, expected {self.width}x{self.height}={expected}"
            )
        self.pixels = arr

    @property
    def size(self) -> int:
        return self.width * self.height

    def copy(self) -> Raster:
        return Raster(self.width, self.height, self.pixels.copy())

    def as_image(self) -> NDArray[np.uint8]:
        """2-D (height, width) view of the pixel buffer."""
        return self.pixels.reshape(self.height, self.width)


@dataclass(frozen=True)
class CumulativeStats:
    """Prefix sums over the histogram, length ``num_levels + 1``.

    prob[k]   = number of pixels with intensity < k (a count, not normalized)
    expect[k] = sum of count[i] * i for i < k
    """

    prob: NDArray[np.int64]
    expect: NDArray[np.int64]

    @property
    def total(self) -> int:
        return int(self.prob[-1])

    def segment(self, a: int, b: int) -> tuple[int, int]:
        """(count, weighted sum) of intensities in (a, b]; a = -1 starts at 0."""
        count = int(self.prob[b + 1] - self.prob[a + 1])
        weighted = int(self.expect[b + 1] - self.expect[a + 1])
        return count, weighted


@dataclass(frozen=True, order=True)
class ThresholdTriple:
    """Three cut points splitting [0, 255] into [0,f1], (f1,f2], (f2,f3], (f3,255].

    Construction checks the 8-bit bounds; ``check_bounds`` narrows them to a
    configuration with fewer levels.
    """

    f1: int
    f2: int
    f3: int

    def __post_init__(self) -> None:
        if not 0 <= self.f1 < self.f2 < self.f3 <= DEFAULT_CONFIG.max_f3:
            raise ValueError(
                f"Invalid threshold triple ({self.f1}, {self.f2}, {self.f3}): "
                f"need 0 <= f1 < f2 < f3 <= {DEFAULT_CONFIG.max_f3}"
            )

    def __iter__(self) -> Iterator[int]:
        return iter((self.f1, self.f2, self.f3))

    def as_list(self) -> list[int]:
        return [self.f1, self.f2, self.f3]

    def check_bounds(self, config: SegmentationConfig) -> None:
        """Raise ValueError unless the cut points fit ``config``'s level count."""
        if self.f3 > config.max_f3:
            raise ValueError(
                f"Threshold triple ({self.f1}, {self.f2}, {self.f3}) exceeds "
                f"f3 <= {config.max_f3} for {config.num_levels} levels"
            )


@dataclass
class SegmentationContext:
    """Shared state flowing through the entire pipeline."""

    raster: Raster
    config: SegmentationConfig = DEFAULT_CONFIG
    # None = run inline on the calling thread
    pool: WorkerPool | None = None

    # --- Stage outputs ---
    histogram: NDArray[np.int64] | None = None
    stats: CumulativeStats | None = None
    triple: ThresholdTriple | None = None
    dispersion: float | None = None

    # --- Pipeline metadata ---
    completed_stages: set[str] = field(default_factory=set)
    timings: dict[str, float] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    failure: BaseException | None = None
    elapsed_ms: float = 0.0
