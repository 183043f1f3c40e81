r"""
Counter-based uniform streams.

This module provides:

Classes
    :class:`RandomStreamState` — Seed material for one stream and its children
    :class:`VectorUniformStream` — Lane-wide uniform draws on :math:`(0, 1)`

Functions
    :func:`with_seed` — Build a :class:`RandomStreamState` from bytes, an int, or OS entropy

Streams use :class:`numpy.random.Philox`, a counter-based bit generator with a
256-bit counter and a 128-bit key. Independent child states come from
:meth:`numpy.random.SeedSequence.spawn`, so every worker block owns its own
stream and nothing in the hot loop is shared between threads.
"""

from __future__ import annotations

from typing import Union

import numpy as np

from .exceptions import InvalidParameterError

__all__ = ["RandomStreamState", "VectorUniformStream", "with_seed"]

SeedLike = Union[bytes, bytearray, int, None]


class RandomStreamState:
    r"""
    Seed material for a family of independent uniform streams.

    Parameters
    ----------
    seed_seq : numpy.random.SeedSequence
        Root sequence. Children are obtained with :meth:`spawn`.

    Notes
    -----
    A state is consumed by exactly one owner. The engine creates a fresh root
    per top-level pricing call and hands one spawned child to each block.
    """

    def __init__(self, seed_seq: np.random.SeedSequence):
        self.seed_seq = seed_seq

    @property
    def entropy(self):
        """Entropy of the root sequence (log it to replay a run)."""
        return self.seed_seq.entropy

    def spawn(self, n: int) -> list["RandomStreamState"]:
        """Return ``n`` independent child states."""
        return [RandomStreamState(child) for child in self.seed_seq.spawn(n)]

    def stream(self, lane_width: int = 8, dtype: Union[str, np.dtype] = "float32") -> "VectorUniformStream":
        """Build a :class:`VectorUniformStream` over this state."""
        return VectorUniformStream(self.seed_seq, lane_width=lane_width, dtype=dtype)

    def __repr__(self) -> str:
        return f"RandomStreamState(entropy={self.entropy!r})"


def with_seed(seed: SeedLike = None) -> RandomStreamState:
    r"""
    Create a :class:`RandomStreamState` for reproducible or fresh runs.

    Parameters
    ----------
    seed : bytes, int or None
        ``bytes`` are used byte by byte together with their length, so
        distinct byte strings give distinct streams; ``None`` draws entropy
        from the operating system.

    Returns
    -------
    RandomStreamState

    Raises
    ------
    InvalidParameterError
        If ``seed`` is a negative integer or an unsupported type.

    Examples
    --------
    >>> a = with_seed(b"\x01\x02").stream().next()
    >>> b = with_seed(b"\x01\x02").stream().next()
    >>> bool((a == b).all())
    True
    """
    if seed is None:
        return RandomStreamState(np.random.SeedSequence())
    if isinstance(seed, (bytes, bytearray)):
        if not seed:
            raise InvalidParameterError("seed bytes must not be empty")
        # Length is part of the entropy so trailing zero bytes still count.
        return RandomStreamState(np.random.SeedSequence([len(seed), *bytes(seed)]))
    if isinstance(seed, (int, np.integer)) and not isinstance(seed, bool):
        if seed < 0:
            raise InvalidParameterError("integer seed must be non-negative")
        return RandomStreamState(np.random.SeedSequence(int(seed)))
    raise InvalidParameterError(f"seed must be bytes, int or None, got {type(seed).__name__}")


class VectorUniformStream:
    r"""
    Lane-wide uniform deviates on the open interval :math:`(0, 1)`.

    Parameters
    ----------
    seed_seq : numpy.random.SeedSequence
        Seed for the underlying :class:`numpy.random.Philox` generator.
    lane_width : int, default 8
        Draws returned by :meth:`next`.
    dtype : {"float32", "float64"}, default "float32"
        Precision of the returned draws.

    Notes
    -----
    :meth:`numpy.random.Generator.random` yields values on :math:`[0, 1)`. An
    exact zero would feed :math:`\ln 0` in the Box-Muller step, so it is
    replaced by the smallest positive normal number of ``dtype``.
    """

    def __init__(
        self,
        seed_seq: np.random.SeedSequence,
        lane_width: int = 8,
        dtype: Union[str, np.dtype] = "float32",
    ):
        if lane_width < 1:
            raise InvalidParameterError("lane_width must be >= 1")
        self.lane_width = int(lane_width)
        self.dtype = np.dtype(dtype)
        self._tiny = np.finfo(self.dtype).tiny
        self._gen = np.random.Generator(np.random.Philox(seed_seq))

    def next(self) -> np.ndarray:
        """Return ``lane_width`` independent draws and advance the stream."""
        return self.next_block(1)[0]

    def next_block(self, n_lanes: int) -> np.ndarray:
        """Return an ``(n_lanes, lane_width)`` array of independent draws."""
        u = self._gen.random((n_lanes, self.lane_width), dtype=self.dtype)
        return np.maximum(u, self._tiny, out=u)

    def __iter__(self):
        return self

    def __next__(self) -> np.ndarray:
        return self.next()
