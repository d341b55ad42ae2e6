"""Binary PGM (P5) codec for 8-bit rasters.

Header: ``P5 <width> <height> <maxval>`` separated by whitespace, ``#``
comments allowed, then one whitespace byte and width*height pixel bytes.
Only maxval 255 is accepted.
"""

from __future__ import annotations

import io
import logging
import re
from pathlib import Path

import numpy as np
from PIL import Image, UnidentifiedImageError

from quadotsu.engine.context import Raster
from quadotsu.errors import PnmFormatError

logger = logging.getLogger(__name__)

_MAGIC = b"P5"
_MAXVAL = 255
_HEADER_SPACE = (b" ", b"\t", b"\n", b"\r", b"\v", b"\f")

# One header token, skipping leading whitespace and comment lines
_TOKEN = re.compile(rb"(?:\s|#[^\r\n]*[\r\n]?)*([^\s#]+)")


def _header_tokens(data: bytes, count: int) -> tuple[list[bytes], int]:
    tokens: list[bytes] = []
    pos = 0
    for _ in range(count):
        m = _TOKEN.match(data, pos)
        if m is None:
            break
        tokens.append(m.group(1))
        pos = m.end()
    return tokens, pos


def decode_pgm(data: bytes) -> Raster:
    tokens, pos = _header_tokens(data, 4)
    # Magic must open the file and be followed by whitespace
    if data[:2] != _MAGIC or data[2:3] not in _HEADER_SPACE:
        raise PnmFormatError("Not PNM (P5) file")
    if len(tokens) < 4:
        raise PnmFormatError("Truncated PGM header")

    try:
        width, height, maxval = (int(t) for t in tokens[1:])
    except ValueError:
        raise PnmFormatError("Illegal file format") from None
    if maxval != _MAXVAL:
        raise PnmFormatError("Illegal file format")
    if width <= 0 or height <= 0:
        raise PnmFormatError(f"Illegal image size {width}x{height}")

    available = len(data) - (pos + 1)
    if available < width * height:
        raise PnmFormatError(
            f"Truncated pixel data: {max(available, 0)} bytes, expected {width * height}"
        )

    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.mode != "L":
                raise PnmFormatError("Illegal file format")
            pixels = np.asarray(img, dtype=np.uint8).reshape(-1).copy()
    except (UnidentifiedImageError, SyntaxError, OSError) as e:
        raise PnmFormatError("Illegal file format") from e

    logger.debug("Decoded PGM %dx%d", width, height)
    return Raster(width, height, pixels)


def encode_pgm(raster: Raster) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(raster.as_image()).save(buf, format="PPM")
    return buf.getvalue()


def read_pgm(path: str | Path) -> Raster:
    return decode_pgm(Path(path).read_bytes())


def write_pgm(path: str | Path, raster: Raster) -> None:
    Path(path).write_bytes(encode_pgm(raster))
