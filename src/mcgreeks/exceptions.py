"""Exception types raised by :mod:`mcgreeks`."""

from __future__ import annotations

__all__ = ["InvalidParameterError", "SimulationError"]


class InvalidParameterError(ValueError):
    """Raised when pricing inputs or engine settings are rejected before simulation."""


class SimulationError(RuntimeError):
    """Raised when a worker fails during the parallel reduction of path payoffs."""
