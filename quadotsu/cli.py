"""Command-line entry point: quadotsu <threads> <input.pgm> <output.pgm>"""

from __future__ import annotations

import argparse
import logging
import sys

from quadotsu.config import settings
from quadotsu.engine.parallel import resolve_workers
from quadotsu.engine.segmenter import segment
from quadotsu.errors import PnmFormatError, SegmentationError, ThreadConfigError
from quadotsu.io.pnm import read_pgm, write_pgm

logger = logging.getLogger(__name__)


def _parse_threads(value: str) -> int:
    try:
        threads = int(value)
    except ValueError:
        raise ThreadConfigError(f"Illegal number of threads: {value}") from None
    resolve_workers(threads)
    return threads


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="quadotsu",
        description="Four-level Otsu segmentation of a binary PGM (P5) image",
    )
    parser.add_argument(
        "threads",
        help="worker threads: 0 = default, -1 = sequential, 1-2000 = fixed count",
    )
    parser.add_argument("input", help="input PGM (P5, maxval 255) file")
    parser.add_argument("output", help="output PGM file")
    parser.add_argument("-v", "--verbose", action="store_true", help="log stage timings")
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else getattr(
        logging, settings.quadotsu_log_level.upper(), logging.INFO
    )
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    try:
        threads = _parse_threads(args.threads)
    except ThreadConfigError as e:
        print(e, file=sys.stderr)
        return 1

    try:
        raster = read_pgm(args.input)
    except PnmFormatError as e:
        print(e, file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Cannot open/read input file: {e}", file=sys.stderr)
        return 1

    try:
        result = segment(raster, threads)
    except SegmentationError as e:
        print(e, file=sys.stderr)
        return 1

    try:
        write_pgm(args.output, result.raster)
    except OSError as e:
        print(f"Cannot open/write output file: {e}", file=sys.stderr)
        return 1

    f1, f2, f3 = result.triple
    print(f"{f1} {f2} {f3}")
    print(f"Time ({result.workers} thread(s)): {result.elapsed_ms:g} ms")
    return 0


if __name__ == "__main__":
    sys.exit(main())
