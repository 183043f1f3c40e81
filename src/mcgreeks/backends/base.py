r"""
Base classes and utilities for execution backends.

This module provides:

Protocol
    :class:`ExecutionBackend` — Interface for path-reduction strategies

Functions
    :func:`make_blocks` — Chunking helper for parallel work distribution
    :func:`prepare_blocks` — Block layout plus one child seed per block
    :func:`worker_run_block` — Top-level worker for process-based parallelism
    :func:`fold_in_order` — Deterministic reduction of block results

Helpers
    :func:`is_windows_platform` — Platform detection for backend selection
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Callable, Optional, Protocol, Sequence

import numpy as np

from ..exceptions import SimulationError
from ..kernel import PartialSums
from ..streams import VectorUniformStream

if TYPE_CHECKING:
    from ..kernel import PathTask

logger = logging.getLogger(__name__)

__all__ = [
    "ExecutionBackend",
    "make_blocks",
    "prepare_blocks",
    "worker_run_block",
    "fold_in_order",
    "worker_failure",
    "is_windows_platform",
]


def is_windows_platform() -> bool:
    """Return True when running on a Windows platform."""
    return sys.platform.startswith("win") or (sys.platform == "cli")


def make_blocks(n: int, block_size: int = 128) -> list[tuple[int, int]]:
    r"""
    Partition an integer range :math:`[0, n)` into half-open blocks :math:`(i, j)`.

    Parameters
    ----------
    n : int
        Total number of lanes.
    block_size : int, default 128
        Target block length.

    Returns
    -------
    list of tuple[int, int]
        List of ``(i, j)`` index pairs covering ``[0, n)``.

    Examples
    --------
    >>> make_blocks(5, block_size=2)
    [(0, 2), (2, 4), (4, 5)]
    """
    blocks = []
    i = 0
    while i < n:
        j = min(i + block_size, n)
        blocks.append((i, j))
        i = j
    return blocks


def prepare_blocks(
    n_lanes: int,
    lanes_per_block: int,
    seed_seq: Optional[np.random.SeedSequence],
) -> tuple[list[tuple[int, int]], list[np.random.SeedSequence]]:
    """
    Lay out lane blocks and spawn an independent seed for each.

    The layout depends only on ``n_lanes`` and ``lanes_per_block``, so a given
    ``seed_seq`` feeds the same stream to the same block on every backend.
    """
    blocks = make_blocks(n_lanes, max(1, lanes_per_block))
    if seed_seq is not None:
        child_seqs = seed_seq.spawn(len(blocks))
    else:
        child_seqs = [np.random.SeedSequence() for _ in range(len(blocks))]
    return blocks, child_seqs


def worker_run_block(
    task: "PathTask",
    lane_start: int,
    lane_stop: int,
    seed_seq: np.random.SeedSequence,
) -> PartialSums:
    r"""
    Price one block of lanes in a **separate worker**.

    Parameters
    ----------
    task : PathTask
        Work description. Must be pickleable when used with a process backend.
    lane_start, lane_stop : int
        Half-open lane range handled by this worker.
    seed_seq : :class:`numpy.random.SeedSequence`
        Seed for the worker's own :class:`~mcgreeks.streams.VectorUniformStream`.

    Returns
    -------
    PartialSums
        Payoff totals for the block.

    Notes
    -----
    The stream is created here and never leaves the worker, so no locking is
    needed around random number generation.
    """
    stream = VectorUniformStream(seed_seq, lane_width=task.lane_width, dtype=task.dtype)
    return task.run_block(stream, lane_start, lane_stop)


def fold_in_order(parts: Sequence[Optional[PartialSums]], n_scenarios: int) -> PartialSums:
    """Reduce block results left to right so rounding does not depend on scheduling."""
    acc = PartialSums.zeros(n_scenarios)
    for part in parts:
        if part is None:
            raise SimulationError("a block finished without producing a result")
        acc = acc + part
    return acc


def worker_failure(exc: BaseException, block: tuple[int, int]) -> SimulationError:
    """Log a failed block and build the error that aborts the pricing call."""
    logger.error("Worker for lanes [%d, %d) failed: %s", block[0], block[1], exc)
    return SimulationError(f"worker for lanes [{block[0]}, {block[1]}) failed: {exc}")


class ExecutionBackend(Protocol):
    r"""
    Protocol defining the interface for execution backends.

    Backends execute :meth:`~mcgreeks.kernel.PathTask.run_block` over every
    lane block and combine the partial sums. They handle the details of
    sequential vs parallel execution, thread vs process pools, and progress
    reporting.
    """

    def run(
        self,
        task: "PathTask",
        n_lanes: int,
        seed_seq: np.random.SeedSequence | None,
        progress_callback: Callable[[int, int], None] | None,
        lanes_per_block: int = 128,
    ) -> PartialSums:
        r"""
        Run every block of ``task`` and return the combined totals.

        Parameters
        ----------
        task : PathTask
            The work to perform.
        n_lanes : int
            Lanes to simulate (trials rounded up to the lane width).
        seed_seq : SeedSequence or None
            Root seed; one child is spawned per block.
        progress_callback : callable or None
            Optional callback ``f(completed_lanes, total_lanes)``.
        lanes_per_block : int, default 128
            Lanes per block.

        Returns
        -------
        PartialSums
            Totals over all unpadded paths.

        Raises
        ------
        SimulationError
            If any block fails. No partial result is returned.
        """
