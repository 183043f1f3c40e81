r"""
Pricing inputs and the constants derived from them.

This module provides:

Classes
    :class:`OptionKind` — Call or put payoff family
    :class:`SimulationParameters` — Immutable inputs of one pricing call
    :class:`DerivedConstants` — Per-call constants broadcast to every lane

Under risk-neutral geometric Brownian motion the log-price after :math:`n`
steps of length :math:`\Delta t = T/n` is

.. math::

   \ln\frac{S_T}{S_0} = n\,\nu\Delta t + \sigma\sqrt{\Delta t}\sum_{k=1}^{n} Z_k,
   \qquad \nu = r - q - \tfrac{1}{2}\sigma^2,

so the terminal multiplier needs a single exponential per path once the
normal increments have been summed.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Union

from .exceptions import InvalidParameterError

__all__ = [
    "OptionKind",
    "SimulationParameters",
    "DerivedConstants",
    "coerce_kind",
]


class OptionKind(str, Enum):
    r"""
    Payoff family of a European option.

    Attributes
    ----------
    call : str
        Pays :math:`\max(S_T - K, 0)`.
    put : str
        Pays :math:`\max(K - S_T, 0)`.
    """

    call = "call"
    put = "put"

    @property
    def call_mult(self) -> float:
        """Sign that maps both payoffs onto ``max(m*S - m*K, 0)``."""
        return 1.0 if self is OptionKind.call else -1.0


def coerce_kind(kind: Union[OptionKind, str]) -> OptionKind:
    """Return ``kind`` as an :class:`OptionKind`, accepting ``"call"``/``"put"``."""
    try:
        return OptionKind(kind)
    except ValueError:
        raise InvalidParameterError(f"kind must be 'call' or 'put', got {kind!r}") from None


@dataclass(frozen=True)
class DerivedConstants:
    r"""
    Constants computed once per pricing call.

    Attributes
    ----------
    dt : float
        Step length :math:`T/n`.
    drift_per_step : float
        :math:`(r - q - \sigma^2/2)\,\Delta t`.
    diffusion_per_step : float
        :math:`\sigma\sqrt{\Delta t}`.
    total_drift : float
        :math:`n` times :attr:`drift_per_step`.
    total_diffusion_scale : float
        :attr:`diffusion_per_step` times :math:`\sqrt{2}`; the factor absorbs the
        :math:`\sqrt{2}` taken out of the Box-Muller radius in the fused loop.
    discount : float
        :math:`e^{-rT}`.
    """

    dt: float
    drift_per_step: float
    diffusion_per_step: float
    total_drift: float
    total_diffusion_scale: float
    discount: float


@dataclass(frozen=True)
class SimulationParameters:
    r"""
    Inputs of a single Monte Carlo pricing call.

    Attributes
    ----------
    spot : float
        Current underlying price :math:`S_0 > 0`.
    strike : float
        Strike :math:`K > 0`.
    volatility : float
        Annualised volatility :math:`\sigma \ge 0`.
    risk_free_rate : float
        Continuously compounded rate :math:`r`.
    years_to_expiry : float
        Maturity :math:`T > 0` in years.
    dividend_yield : float, default 0.0
        Continuous dividend yield :math:`q`.
    steps : int, default 100
        Time steps per path, :math:`n \ge 1`.
    num_trials : int, default 1000
        Simulated paths, :math:`M \ge 1`.

    Notes
    -----
    Instances validate on construction. When ``num_trials`` is not a multiple
    of the lane width the final lane is padded and its surplus slots are
    masked out, so exactly ``num_trials`` paths enter every estimate.

    Examples
    --------
    >>> p = SimulationParameters(100.0, 110.0, 0.25, 0.05, 0.5, 0.02)
    >>> p.with_overrides(spot=101.0).spot
    101.0
    """

    spot: float
    strike: float
    volatility: float
    risk_free_rate: float
    years_to_expiry: float
    dividend_yield: float = 0.0
    steps: int = 100
    num_trials: int = 1000

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Reject degenerate inputs.

        Raises
        ------
        InvalidParameterError
            If any field is non-finite or outside its allowed range.
        """
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidParameterError(f"{f.name} must be a real number, got {value!r}")
            if not math.isfinite(value):
                raise InvalidParameterError(f"{f.name} must be finite, got {value!r}")
        if self.spot <= 0:
            raise InvalidParameterError("spot must be positive")
        if self.strike <= 0:
            raise InvalidParameterError("strike must be positive")
        if self.volatility < 0:
            raise InvalidParameterError("volatility must be non-negative")
        if self.years_to_expiry <= 0:
            raise InvalidParameterError("years_to_expiry must be positive")
        for name in ("steps", "num_trials"):
            value = getattr(self, name)
            if int(value) != value:
                raise InvalidParameterError(f"{name} must be an integer, got {value!r}")
            if value < 1:
                raise InvalidParameterError(f"{name} must be at least 1")

    def with_overrides(self, **changes) -> "SimulationParameters":
        """Return a validated copy with selected fields replaced."""
        return replace(self, **changes)

    def derived(self) -> DerivedConstants:
        """Compute the per-call constants shared by every lane."""
        n = int(self.steps)
        dt = self.years_to_expiry / n
        sigma = self.volatility
        drift = (self.risk_free_rate - self.dividend_yield - 0.5 * sigma * sigma) * dt
        diffusion = sigma * math.sqrt(dt)
        return DerivedConstants(
            dt=dt,
            drift_per_step=drift,
            diffusion_per_step=diffusion,
            total_drift=n * drift,
            total_diffusion_scale=diffusion * math.sqrt(2.0),
            discount=math.exp(-self.risk_free_rate * self.years_to_expiry),
        )

    def lane_count(self, lane_width: int) -> int:
        """Number of lanes needed to hold ``num_trials`` paths, rounding up."""
        return -(-int(self.num_trials) // lane_width)
