r"""
Sequential execution backend.

This module provides a single-threaded execution strategy that runs lane
blocks one after another with optional progress reporting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import numpy as np

from .base import fold_in_order, prepare_blocks, worker_failure, worker_run_block

if TYPE_CHECKING:
    from ..kernel import PartialSums, PathTask

__all__ = ["SequentialBackend"]


class SequentialBackend:
    r"""
    Sequential (single-threaded) execution backend.

    Blocks are seeded exactly as in the parallel backends, so a seeded run
    gives the same price here as on a thread or process pool. Suitable for
    small trial counts or debugging.

    Examples
    --------
    >>> backend = SequentialBackend()
    >>> sums = backend.run(task, n_lanes=125, seed_seq=None, progress_callback=None)  # doctest: +SKIP
    """

    def run(
        self,
        task: "PathTask",
        n_lanes: int,
        seed_seq: np.random.SeedSequence | None,
        progress_callback: Callable[[int, int], None] | None,
        lanes_per_block: int = 128,
    ) -> "PartialSums":
        """Run every block on the calling thread."""
        blocks, child_seqs = prepare_blocks(n_lanes, lanes_per_block, seed_seq)
        parts = []
        completed = 0
        for (i, j), ss in zip(blocks, child_seqs):
            try:
                parts.append(worker_run_block(task, i, j, ss))
            except Exception as exc:
                raise worker_failure(exc, (i, j)) from exc
            completed += j - i
            if progress_callback:
                progress_callback(completed, n_lanes)
        return fold_in_order(parts, task.n_scenarios)
