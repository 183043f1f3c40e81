"""
Execution backends for the path engine.

This subpackage provides pluggable reduction strategies:

CPU Backends
    :class:`SequentialBackend` — Single-threaded execution
    :class:`ThreadBackend` — Thread-based parallelism
    :class:`ProcessBackend` — Process-based parallelism

Utilities
    :func:`make_blocks` — Chunking helper for parallel work distribution
    :func:`prepare_blocks` — Block layout with one spawned seed per block
    :func:`worker_run_block` — Top-level worker for process pools
    :func:`fold_in_order` — Deterministic reduction of block results
    :func:`is_windows_platform` — Platform detection helper

Protocol
    :class:`ExecutionBackend` — Interface for custom backends
"""

from .base import (
    ExecutionBackend,
    fold_in_order,
    is_windows_platform,
    make_blocks,
    prepare_blocks,
    worker_run_block,
)
from .parallel import ProcessBackend, ThreadBackend
from .sequential import SequentialBackend

__all__ = [
    # Protocol
    "ExecutionBackend",
    # CPU Backends
    "SequentialBackend",
    "ThreadBackend",
    "ProcessBackend",
    # Utility Functions
    "make_blocks",
    "prepare_blocks",
    "worker_run_block",
    "fold_in_order",
    "is_windows_platform",
]
