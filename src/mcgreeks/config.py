r"""
Engine configuration.

:class:`EngineConfig` collects the knobs that shape *how* paths are simulated
(lane width, block layout, execution backend, precision) as opposed to the
*what* held by :class:`~mcgreeks.parameters.SimulationParameters`.

The block layout depends only on :attr:`EngineConfig.lane_width`,
:attr:`EngineConfig.lanes_per_block` and the trial count. Worker count and
backend never change which random stream feeds which block, so a seeded run
returns the same price on every backend.
"""

from __future__ import annotations

import multiprocessing as mp
from dataclasses import dataclass, replace
from typing import Optional

import numpy as np

from .exceptions import InvalidParameterError

__all__ = ["EngineConfig", "DEFAULT_CONFIG"]


@dataclass(frozen=True)
class EngineConfig:
    r"""
    Execution settings for the path engine.

    Attributes
    ----------
    lane_width : int, default 8
        Paths advanced together by one vector operation.
    lanes_per_block : int, default 128
        Lanes handed to a worker as one unit of work. Each block owns an
        independently seeded stream.
    backend : {"auto", "sequential", "thread", "process"}, default "auto"
        Reduction strategy. ``"auto"`` runs sequentially below
        :attr:`parallel_threshold` trials and in parallel above it.
    n_workers : int, optional
        Pool size for parallel backends. Defaults to the CPU count.
    parallel_threshold : int, default 20_000
        Minimum trial count for ``"auto"`` to go parallel.
    dtype : {"float32", "float64"}, default "float32"
        Precision of the lane arithmetic.

    Examples
    --------
    >>> cfg = EngineConfig(backend="thread", n_workers=4)
    >>> cfg.with_overrides(dtype="float64").np_dtype
    dtype('float64')
    """

    lane_width: int = 8
    lanes_per_block: int = 128
    backend: str = "auto"
    n_workers: Optional[int] = None
    parallel_threshold: int = 20_000
    dtype: str = "float32"

    _VALID_BACKENDS = ("auto", "sequential", "thread", "process")
    _VALID_DTYPES = ("float32", "float64")

    def __post_init__(self) -> None:
        if self.lane_width < 1:
            raise InvalidParameterError("lane_width must be >= 1")
        if self.lanes_per_block < 1:
            raise InvalidParameterError("lanes_per_block must be >= 1")
        if self.backend not in self._VALID_BACKENDS:
            raise InvalidParameterError(
                f"backend must be one of {self._VALID_BACKENDS}, got '{self.backend}'"
            )
        if self.n_workers is not None and self.n_workers <= 0:
            raise InvalidParameterError("n_workers must be positive")
        if self.parallel_threshold < 0:
            raise InvalidParameterError("parallel_threshold must be non-negative")
        if self.dtype not in self._VALID_DTYPES:
            raise InvalidParameterError(f"dtype must be one of {self._VALID_DTYPES}, got '{self.dtype}'")

    def with_overrides(self, **changes) -> "EngineConfig":
        """Return a validated copy with selected fields replaced."""
        return replace(self, **changes)

    @property
    def np_dtype(self) -> np.dtype:
        """Lane dtype as a :class:`numpy.dtype`."""
        return np.dtype(self.dtype)

    @property
    def paths_per_block(self) -> int:
        return self.lane_width * self.lanes_per_block

    def resolved_workers(self) -> int:
        """Worker count, falling back to the CPU count."""
        return self.n_workers if self.n_workers is not None else mp.cpu_count()


DEFAULT_CONFIG = EngineConfig()
