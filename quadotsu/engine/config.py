"""Segmentation configuration — immutable engine constants."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SegmentationConfig:
    """Fixed parameters of the four-cluster partition."""

    # Intensity levels of an 8-bit raster
    num_levels: int = 256

    # Output intensity per cluster, darkest segment first.
    # 170 and 255 are the unsigned forms of the signed bytes -86 and -1.
    cluster_values: tuple[int, int, int, int] = (0, 84, 170, 255)

    @property
    def max_f1(self) -> int:
        return self.num_levels - 4  # 252

    @property
    def max_f2(self) -> int:
        return self.num_levels - 3  # 253

    @property
    def max_f3(self) -> int:
        return self.num_levels - 2  # 254


DEFAULT_CONFIG = SegmentationConfig()
