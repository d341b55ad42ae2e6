"""Worker pool — a fixed set of threads with a strictly sequential fallback.

Thread directive:
    -1  run inline on the calling thread, no executor
     0  default degree (one worker per CPU)
     n  exactly n workers, 1 <= n <= 2000
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, TypeVar

from quadotsu.config import MAX_THREADS
from quadotsu.errors import ThreadConfigError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEQUENTIAL = -1
DEFAULT_DEGREE = 0


def resolve_workers(threads: int) -> int:
    """Map a thread directive to a worker count; 0 means sequential."""
    if isinstance(threads, bool) or not isinstance(threads, int):
        raise ThreadConfigError(f"Illegal number of threads: {threads!r}")
    if threads < SEQUENTIAL or threads > MAX_THREADS:
        raise ThreadConfigError(f"Illegal number of threads: {threads}")
    if threads == SEQUENTIAL:
        return 0
    if threads == DEFAULT_DEGREE:
        return os.cpu_count() or 1
    return threads


class WorkerPool:
    """Runs one callable per chunk and returns the results in chunk order."""

    def __init__(self, threads: int = DEFAULT_DEGREE) -> None:
        self.threads = threads
        self.workers = resolve_workers(threads)
        self._executor: ThreadPoolExecutor | None = None

    @property
    def sequential(self) -> bool:
        return self.workers == 0

    def partition(self, n: int) -> list[range]:
        """Split range(n) into contiguous, non-overlapping chunks, one per worker."""
        if n <= 0:
            return []
        parts = min(max(self.workers, 1), n)
        base, extra = divmod(n, parts)
        chunks = []
        start = 0
        for k in range(parts):
            stop = start + base + (1 if k < extra else 0)
            chunks.append(range(start, stop))
            start = stop
        return chunks

    def interleave(self, n: int) -> list[range]:
        """Split range(n) round-robin: worker k gets k, k+parts, k+2*parts, ..."""
        if n <= 0:
            return []
        parts = min(max(self.workers, 1), n)
        return [range(k, n, parts) for k in range(parts)]

    def map(self, fn: Callable[[range], T], chunks: list[range]) -> list[T]:
        if self.sequential or len(chunks) <= 1:
            return [fn(chunk) for chunk in chunks]
        return list(self._get_executor().map(fn, chunks))

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.workers, thread_name_prefix="quadotsu"
            )
            logger.debug(
                "Started worker pool with %d threads (directive %d)", self.workers, self.threads
            )
        return self._executor

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
