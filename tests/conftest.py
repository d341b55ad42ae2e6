"""Shared test fixtures."""

from __future__ import annotations

import numpy as np
import pytest

from quadotsu.engine.context import Raster


# One pixel per output cluster, 2x2
FOUR_LEVEL_PIXELS = [0, 85, 170, 255]

# Four well separated intensity blobs with noise
BLOB_CENTERS = (30, 90, 160, 220)


def make_raster(values, width: int, height: int) -> Raster:
    return Raster(width, height, np.asarray(values, dtype=np.uint8))


def random_raster(width: int = 100, height: int = 100, seed: int = 7) -> Raster:
    rng = np.random.default_rng(seed)
    return make_raster(rng.integers(0, 256, size=width * height), width, height)


def blob_raster(width: int = 64, height: int = 64, seed: int = 11) -> Raster:
    rng = np.random.default_rng(seed)
    centers = rng.choice(BLOB_CENTERS, size=width * height)
    noisy = np.clip(centers + rng.normal(0, 8, size=centers.size), 0, 255)
    return make_raster(noisy.astype(np.uint8), width, height)


@pytest.fixture
def four_level_raster() -> Raster:
    return make_raster(FOUR_LEVEL_PIXELS, 2, 2)


@pytest.fixture
def uniform_raster() -> Raster:
    return make_raster([128] * 64, 8, 8)


@pytest.fixture
def single_pixel_raster() -> Raster:
    return make_raster([200], 1, 1)


@pytest.fixture
def noise_raster() -> Raster:
    return random_raster()


@pytest.fixture
def blobs() -> Raster:
    return blob_raster()
