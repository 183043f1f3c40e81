r"""
Path accumulation and payoff reduction for one block of lanes.

This module provides:

Classes
    :class:`Scenario` — Payoff and dynamics constants for one priced contract
    :class:`PartialSums` — Associative per-scenario payoff totals
    :class:`PathTask` — Picklable unit of work executed by the backends

Functions
    :func:`accumulate_normal_sums` — Sum fused Box-Muller pairs across time steps
    :func:`stepwise_terminal_multiplier` — Reference per-step product of exponentials
    :func:`terminal_multiplier` — One exponential per path
    :func:`discounted_payoffs` — Floored, discounted payoff per path

The identity :math:`\prod_k e^{a + b Z_k} = e^{n a + b \sum_k Z_k}` lets the loop
keep a running sum of normal increments and exponentiate once per path. A
block's accumulated sums are shared by every :class:`Scenario` in a
:class:`PathTask`, which is what gives finite-difference Greeks their common
random numbers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

import numpy as np

from .exceptions import InvalidParameterError
from .parameters import OptionKind, SimulationParameters, coerce_kind
from .transforms import TWO_PI, _clamped_log, box_muller, box_muller_half_radius

if TYPE_CHECKING:
    from .streams import VectorUniformStream

logger = logging.getLogger(__name__)

__all__ = [
    "Scenario",
    "PartialSums",
    "PathTask",
    "accumulate_normal_sums",
    "stepwise_terminal_multiplier",
    "terminal_multiplier",
    "discounted_payoffs",
]


@dataclass(frozen=True)
class Scenario:
    r"""
    Constants needed to turn an accumulated normal sum into a discounted payoff.

    Attributes
    ----------
    spot, strike : float
        Contract inputs.
    total_drift : float
        :math:`n (r - q - \sigma^2/2)\Delta t`.
    total_diffusion_scale : float
        :math:`\sqrt{2}\,\sigma\sqrt{\Delta t}`.
    discount : float
        :math:`e^{-rT}`.
    call_mult : float
        ``+1`` for a call, ``-1`` for a put.
    """

    spot: float
    strike: float
    total_drift: float
    total_diffusion_scale: float
    discount: float
    call_mult: float

    @classmethod
    def from_params(cls, kind: Union[OptionKind, str], params: SimulationParameters) -> "Scenario":
        """Build the scenario that prices ``kind`` under ``params``."""
        kind = coerce_kind(kind)
        c = params.derived()
        return cls(
            spot=float(params.spot),
            strike=float(params.strike),
            total_drift=c.total_drift,
            total_diffusion_scale=c.total_diffusion_scale,
            discount=c.discount,
            call_mult=kind.call_mult,
        )

    @property
    def dynamics(self) -> tuple[float, float]:
        """Key shared by scenarios whose terminal multipliers coincide."""
        return (self.total_drift, self.total_diffusion_scale)


@dataclass
class PartialSums:
    r"""
    Per-scenario payoff totals from one or more blocks.

    Attributes
    ----------
    total : ndarray of float64
        :math:`\sum_i X_i` per scenario.
    total_sq : ndarray of float64
        :math:`\sum_i X_i^2` per scenario.
    count : int
        Paths that contributed (padding excluded).

    Notes
    -----
    ``a + b`` is the reduction operator. Floating-point addition makes it
    associative only up to rounding, so reducers fold blocks in a fixed order.
    """

    total: np.ndarray
    total_sq: np.ndarray
    count: int = 0

    @classmethod
    def zeros(cls, n_scenarios: int) -> "PartialSums":
        return cls(np.zeros(n_scenarios), np.zeros(n_scenarios), 0)

    def __add__(self, other: "PartialSums") -> "PartialSums":
        return PartialSums(self.total + other.total, self.total_sq + other.total_sq, self.count + other.count)

    def means(self) -> np.ndarray:
        """Monte Carlo estimates :math:`\\bar X` per scenario."""
        if self.count == 0:
            return np.full(self.total.shape, np.nan)
        return self.total / self.count

    def std_errors(self) -> np.ndarray:
        r"""Standard errors :math:`s/\sqrt{n}` per scenario (Bessel-corrected)."""
        n = self.count
        if n < 2:
            return np.full(self.total.shape, np.nan)
        mean = self.total / n
        var = np.maximum(self.total_sq - n * mean * mean, 0.0) / (n - 1)
        return np.sqrt(var / n)


def accumulate_normal_sums(stream: "VectorUniformStream", n_lanes: int, steps: int) -> np.ndarray:
    r"""
    Accumulate the normal increments of ``steps`` time steps for a block of lanes.

    Parameters
    ----------
    stream : VectorUniformStream
        Uniform source owned by the calling worker.
    n_lanes : int
        Lanes in the block; the result has shape ``(n_lanes, stream.lane_width)``.
    steps : int
        Time steps per path.

    Returns
    -------
    ndarray
        :math:`S = \sum_k \sqrt{-\ln u_{1,k}}\,(\sin 2\pi u_{2,k} + \cos 2\pi u_{2,k})`.

    Notes
    -----
    Each iteration consumes two uniform lanes and covers two time steps. With
    an odd step count a final Box-Muller call adds only its sine half,
    :math:`\sqrt{-\ln u_1}\sin 2\pi u_2 = Z/\sqrt{2}`, and discards the cosine.
    Summation order is fixed, so a fixed seed reproduces the sums exactly.
    """
    sums = np.zeros((n_lanes, stream.lane_width), dtype=stream.dtype)
    for _ in range(steps // 2):
        u1 = stream.next_block(n_lanes)
        u2 = stream.next_block(n_lanes)
        sums += box_muller_half_radius(u1, u2)
    if steps % 2:
        u1 = stream.next_block(n_lanes)
        u2 = stream.next_block(n_lanes)
        sums += np.sqrt(-_clamped_log(u1)) * np.sin(TWO_PI * u2)
    return sums


def stepwise_terminal_multiplier(
    stream: "VectorUniformStream",
    n_lanes: int,
    steps: int,
    drift_per_step: float,
    diffusion_per_step: float,
) -> np.ndarray:
    r"""
    Reference terminal multiplier with one exponential per time step.

    Consumes uniforms in the same order as :func:`accumulate_normal_sums`, so
    for equal seeds it reproduces :func:`terminal_multiplier` up to rounding.
    It exists to check that identity and to measure what the fused loop saves.
    """
    mult = np.ones((n_lanes, stream.lane_width), dtype=stream.dtype)
    for _ in range(steps // 2):
        z1, z2 = box_muller(stream.next_block(n_lanes), stream.next_block(n_lanes))
        mult *= np.exp(drift_per_step + diffusion_per_step * z1)
        mult *= np.exp(drift_per_step + diffusion_per_step * z2)
    if steps % 2:
        z1, _ = box_muller(stream.next_block(n_lanes), stream.next_block(n_lanes))
        mult *= np.exp(drift_per_step + diffusion_per_step * z1)
    return mult


def terminal_multiplier(sums: np.ndarray, scenario: Scenario) -> np.ndarray:
    """:math:`S_T / S_0 = \\exp(\\text{total\\_drift} + \\text{scale}\\cdot S)`."""
    return np.exp(scenario.total_drift + scenario.total_diffusion_scale * sums)


def discounted_payoffs(multiplier: np.ndarray, scenario: Scenario) -> np.ndarray:
    """Discounted ``max(m*spot*M - m*strike, 0)`` with ``m`` the call/put sign."""
    m = scenario.call_mult
    intrinsic = np.maximum(m * scenario.spot * multiplier - m * scenario.strike, 0.0)
    return scenario.discount * intrinsic


@dataclass(frozen=True)
class PathTask:
    r"""
    Everything a worker needs to price a block of lanes.

    Attributes
    ----------
    steps : int
        Time steps per path.
    num_trials : int
        Paths that count towards the estimate. Lanes past this index are
        simulated (the lane stays full width) and then masked out.
    scenarios : tuple of Scenario
        Contracts priced from the same accumulated sums.
    antithetic : bool, default False
        Average each payoff with the payoff of the mirrored path :math:`-S`.
    lane_width : int, default 8
    dtype : str, default "float32"
    stepwise : bool, default False
        Use :func:`stepwise_terminal_multiplier` (single scenario only).
    drift_per_step, diffusion_per_step : float
        Per-step constants, required when ``stepwise`` is set.
    """

    steps: int
    num_trials: int
    scenarios: tuple[Scenario, ...]
    antithetic: bool = False
    lane_width: int = 8
    dtype: str = "float32"
    stepwise: bool = False
    drift_per_step: float = 0.0
    diffusion_per_step: float = 0.0

    def __post_init__(self) -> None:
        if not self.scenarios:
            raise InvalidParameterError("PathTask needs at least one scenario")
        if self.stepwise and (len(self.scenarios) != 1 or self.antithetic):
            raise InvalidParameterError("stepwise pricing supports a single plain scenario")

    @property
    def n_scenarios(self) -> int:
        return len(self.scenarios)

    def run_block(self, stream: "VectorUniformStream", lane_start: int, lane_stop: int) -> PartialSums:
        r"""
        Simulate lanes ``[lane_start, lane_stop)`` and reduce their payoffs.

        Returns
        -------
        PartialSums
            Totals over the unpadded paths of the block.
        """
        n_lanes = lane_stop - lane_start
        first_path = lane_start * self.lane_width
        n_valid = max(0, min(self.num_trials - first_path, n_lanes * self.lane_width))

        if self.stepwise:
            mult = stepwise_terminal_multiplier(
                stream, n_lanes, self.steps, self.drift_per_step, self.diffusion_per_step
            ).reshape(-1)[:n_valid].astype(np.float64)
            payoffs = [discounted_payoffs(mult, self.scenarios[0])]
        else:
            sums = accumulate_normal_sums(stream, n_lanes, self.steps).reshape(-1)[:n_valid]
            payoffs = self._scenario_payoffs(sums)

        out = PartialSums.zeros(self.n_scenarios)
        for i, pay in enumerate(payoffs):
            pay = pay.astype(np.float64, copy=False)
            out.total[i] = pay.sum()
            out.total_sq[i] = np.dot(pay, pay)
        out.count = n_valid
        logger.debug("Block lanes [%d, %d): %d paths reduced", lane_start, lane_stop, n_valid)
        return out

    def _scenario_payoffs(self, sums: np.ndarray) -> list[np.ndarray]:
        # Scenarios that differ only in spot, strike or discount share one multiplier.
        # Exponentials run in the lane dtype; payoff arithmetic runs in float64.
        up_cache: dict[tuple[float, float], np.ndarray] = {}
        down_cache: dict[tuple[float, float], np.ndarray] = {}
        payoffs = []
        for s in self.scenarios:
            key = s.dynamics
            if key not in up_cache:
                up_cache[key] = terminal_multiplier(sums, s).astype(np.float64)
            pay = discounted_payoffs(up_cache[key], s)
            if self.antithetic:
                if key not in down_cache:
                    down_cache[key] = terminal_multiplier(-sums, s).astype(np.float64)
                pay = 0.5 * (pay + discounted_payoffs(down_cache[key], s))
            payoffs.append(pay)
        return payoffs
