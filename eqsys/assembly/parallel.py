"""Fork-join accumulation over independent contributors.

Each worker fills its own :class:`AccumulationBuffer`; after all workers have
finished, the buffers are merged into the target by addition in partition
order. Addition is associative and commutative, so the worker count only
affects floating-point rounding.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Optional

from eqsys.logging import get_logger

from .buffer import AccumulationBuffer

logger = get_logger(__name__)

# work(start, stop, buffer) accumulates contributors[start:stop] into buffer
Work = Callable[[int, int, AccumulationBuffer], None]


def partition(count: int, n_parts: int) -> list[tuple[int, int]]:
    """
    Split ``range(count)`` into at most ``n_parts`` contiguous, non-empty ranges.

    Example
    -------
    >>> partition(5, 2)
    [(0, 2), (2, 5)]
    """
    if n_parts < 1:
        raise ValueError("n_parts must be positive")
    n_parts = min(n_parts, count)
    if n_parts == 0:
        return []
    bounds = [i * count // n_parts for i in range(n_parts + 1)]
    return [(bounds[i], bounds[i + 1]) for i in range(n_parts) if bounds[i] < bounds[i + 1]]


class ForkJoin:
    """
    Runs accumulation work on worker-local buffers and merges the results.

    Worker buffers are allocated once per layout by :meth:`prepare` and reused
    across passes; they are never shared between concurrent writers. The
    thread pool is created on the first parallel pass and kept until
    :meth:`shutdown`, which also runs on leaving a ``with`` block.
    """

    def __init__(self, n_workers: int = 1) -> None:
        if n_workers < 1:
            raise ValueError("n_workers must be positive")
        self.n_workers = int(n_workers)
        self._buffers: list[AccumulationBuffer] = []
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def buffers(self) -> list[AccumulationBuffer]:
        return self._buffers

    def prepare(self, template: AccumulationBuffer) -> None:
        """Allocate one buffer per worker with the layout of ``template``."""
        self._buffers = [template.empty_like() for _ in range(self.n_workers)]

    def _executor_for_pass(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.n_workers, thread_name_prefix="eqsys-fork-join"
            )
        return self._executor

    def shutdown(self) -> None:
        """Release the worker threads; a later :meth:`run` starts a new pool."""
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "ForkJoin":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def run(self, count: int, work: Work, target: AccumulationBuffer) -> AccumulationBuffer:
        """Accumulate ``count`` contributors into ``target`` (zeroed first)."""
        if len(self._buffers) != self.n_workers or any(
            buffer.layout != target.layout for buffer in self._buffers
        ):
            self.prepare(target)

        target.set_zero()
        chunks = partition(count, self.n_workers)
        buffers = self._buffers[: len(chunks)]

        for buffer in buffers:
            buffer.set_zero()

        if len(chunks) <= 1:
            for (start, stop), buffer in zip(chunks, buffers):
                work(start, stop, buffer)
        else:
            executor = self._executor_for_pass()
            futures = [
                executor.submit(work, start, stop, buffer)
                for (start, stop), buffer in zip(chunks, buffers)
            ]
            # join every worker before re-raising the first exception
            wait(futures)
            for future in futures:
                future.result()

        for buffer in buffers:
            target.merge(buffer)

        logger.debug("Accumulated %d contributors on %d workers", count, len(chunks))
        return target


__all__ = ["ForkJoin", "Work", "partition"]
