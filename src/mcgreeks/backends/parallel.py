r"""
Parallel execution backends.

This module provides:

Classes
    :class:`ThreadBackend` — Thread-based parallelism using ThreadPoolExecutor
    :class:`ProcessBackend` — Process-based parallelism using ProcessPoolExecutor

Both backends submit one future per lane block, store each block's
:class:`~mcgreeks.kernel.PartialSums` at its block index and fold them in
index order once every future has finished. The first failing block cancels
the futures that have not started and aborts the call with
:class:`~mcgreeks.exceptions.SimulationError`.
"""

from __future__ import annotations

import logging
import multiprocessing as mp
from concurrent.futures import Future, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np

from .base import fold_in_order, prepare_blocks, worker_failure, worker_run_block

if TYPE_CHECKING:
    from ..kernel import PartialSums, PathTask

logger = logging.getLogger(__name__)

__all__ = [
    "ThreadBackend",
    "ProcessBackend",
]


def _collect(
    futs: list[Future],
    blocks: list[tuple[int, int]],
    n_lanes: int,
    progress_callback: Optional[Callable[[int, int], None]],
) -> list[Optional["PartialSums"]]:
    """Gather block results by index; cancel the rest on the first failure."""
    index = {f: k for k, f in enumerate(futs)}
    parts: list[Optional["PartialSums"]] = [None] * len(futs)
    completed = 0
    try:
        for f in as_completed(futs):
            k = index[f]
            try:
                parts[k] = f.result()
            except Exception as exc:
                for other in futs:
                    other.cancel()
                raise worker_failure(exc, blocks[k]) from exc
            i, j = blocks[k]
            completed += j - i
            if progress_callback:
                progress_callback(completed, n_lanes)  # pragma: no cover
    except KeyboardInterrupt:  # pragma: no cover
        for f in futs:
            f.cancel()
        raise
    return parts


class ThreadBackend:
    r"""
    Thread-based parallel execution backend.

    Uses :class:`concurrent.futures.ThreadPoolExecutor`. Effective because the
    NumPy ufuncs in the path loop release the GIL.

    Parameters
    ----------
    n_workers : int
        Number of worker threads to use.

    Examples
    --------
    >>> backend = ThreadBackend(n_workers=4)
    >>> sums = backend.run(task, n_lanes=12_500, seed_seq=seed_seq, progress_callback=None)  # doctest: +SKIP
    """

    def __init__(self, n_workers: int):
        self.n_workers = n_workers

    def run(
        self,
        task: "PathTask",
        n_lanes: int,
        seed_seq: np.random.SeedSequence | None,
        progress_callback: Callable[[int, int], None] | None,
        lanes_per_block: int = 128,
    ) -> "PartialSums":
        """Run the blocks of ``task`` on a thread pool."""
        blocks, child_seqs = prepare_blocks(n_lanes, lanes_per_block, seed_seq)
        max_workers = max(1, min(self.n_workers, len(blocks)))
        logger.debug("Thread pool: %d blocks on %d workers", len(blocks), max_workers)

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futs = [ex.submit(worker_run_block, task, i, j, ss) for (i, j), ss in zip(blocks, child_seqs)]
            parts = _collect(futs, blocks, n_lanes, progress_callback)

        return fold_in_order(parts, task.n_scenarios)


class ProcessBackend:
    r"""
    Process-based parallel execution backend.

    Uses :class:`concurrent.futures.ProcessPoolExecutor` with spawn context.
    Preferred on Windows, where threads tend to serialize.

    Parameters
    ----------
    n_workers : int
        Number of worker processes to use.

    Notes
    -----
    The :class:`~mcgreeks.kernel.PathTask` is pickled into each worker, and
    every worker builds its own stream from the block's seed.

    Examples
    --------
    >>> backend = ProcessBackend(n_workers=4)
    >>> sums = backend.run(task, n_lanes=12_500, seed_seq=seed_seq, progress_callback=None)  # doctest: +SKIP
    """

    def __init__(self, n_workers: int):
        self.n_workers = n_workers

    def run(
        self,
        task: "PathTask",
        n_lanes: int,
        seed_seq: np.random.SeedSequence | None,
        progress_callback: Callable[[int, int], None] | None,
        lanes_per_block: int = 128,
    ) -> "PartialSums":
        """Run the blocks of ``task`` on a process pool."""
        blocks, child_seqs = prepare_blocks(n_lanes, lanes_per_block, seed_seq)
        max_workers = max(1, min(self.n_workers, len(blocks)))
        logger.debug("Process pool: %d blocks on %d workers", len(blocks), max_workers)

        with ProcessPoolExecutor(
            max_workers=max_workers,
            mp_context=mp.get_context("spawn"),
        ) as ex:
            futs = [ex.submit(worker_run_block, task, i, j, ss) for (i, j), ss in zip(blocks, child_seqs)]
            parts = _collect(futs, blocks, n_lanes, progress_callback)

        return fold_in_order(parts, task.n_scenarios)
