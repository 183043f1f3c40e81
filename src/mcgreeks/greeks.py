r"""
Finite-difference Greeks with common random numbers.

Every bumped scenario of a Greek is priced from the **same** accumulated
normal sums (see :class:`~mcgreeks.kernel.PathTask`), so most of the
simulation noise cancels in the difference quotients:

=========  =============================================================
Greek      Estimator
=========  =============================================================
delta      :math:`\frac{V(S+h) - V(S-h)}{2h}`
gamma      :math:`\frac{V(S+h) - 2V(S) + V(S-h)}{h^2}`
vega       :math:`\frac{V(\sigma+h) - V(\sigma-h)}{200h}` (per 1% volatility)
rho        :math:`\frac{V(r+h) - V(r-h)}{200h}` (per 1% rate)
theta      :math:`\frac{V(T-h) - V(T+h)}{2h}` (per year)
=========  =============================================================

Theta subtracts in the opposite order: a longer expiry is time running
backwards.

The bump ``h`` is the caller's choice. Large bumps bias the estimate and tiny
bumps amplify Monte Carlo noise; the engine can only reject bumps that are
non-positive or push an input out of its domain.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Union

from .core import PricingEngine
from .exceptions import InvalidParameterError
from .kernel import Scenario
from .parameters import OptionKind, SimulationParameters, coerce_kind

logger = logging.getLogger(__name__)

__all__ = ["Greek", "GreekEstimate", "GreekEstimator", "coerce_greek", "default_bumps"]

Kind = Union[OptionKind, str]


class Greek(str, Enum):
    """Sensitivities supported by :class:`GreekEstimator`."""

    delta = "delta"
    gamma = "gamma"
    vega = "vega"
    rho = "rho"
    theta = "theta"


def coerce_greek(which: Union[Greek, str]) -> Greek:
    """Return ``which`` as a :class:`Greek`."""
    try:
        return Greek(which)
    except ValueError:
        names = ", ".join(g.value for g in Greek)
        raise InvalidParameterError(f"greek must be one of {names}; got {which!r}") from None


# Input bumped by each Greek.
_BUMPED_FIELD = {
    Greek.delta: "spot",
    Greek.gamma: "spot",
    Greek.vega: "volatility",
    Greek.rho: "risk_free_rate",
    Greek.theta: "years_to_expiry",
}


def default_bumps(params: SimulationParameters) -> dict[Greek, float]:
    """Bump sizes used by :meth:`GreekEstimator.all_greeks` when none are given."""
    return {
        Greek.delta: 0.01 * params.spot,
        Greek.gamma: 0.01 * params.spot,
        Greek.vega: 0.01,
        Greek.rho: 0.001,
        Greek.theta: min(1.0 / 365.0, 0.5 * params.years_to_expiry),
    }


@dataclass(frozen=True)
class GreekEstimate:
    r"""
    One finite-difference estimate.

    Attributes
    ----------
    greek : Greek
        Which sensitivity.
    value : float
        The estimate, in the units listed in the module docstring.
    bump : float
        Bump size ``h``.
    prices : dict[str, float]
        Prices entering the quotient, keyed ``"down"``, ``"up"`` and, for
        gamma, ``"base"``.
    """

    greek: Greek
    value: float
    bump: float
    prices: dict[str, float] = field(default_factory=dict)


def _check_bump(greek: Greek, params: SimulationParameters, bump: float) -> float:
    bump = float(bump)
    if not math.isfinite(bump) or bump <= 0:
        raise InvalidParameterError(f"bump for {greek.value} must be positive and finite, got {bump!r}")
    base = getattr(params, _BUMPED_FIELD[greek])
    if greek is not Greek.rho and bump > 0.1 * abs(base):
        logger.warning(
            "Bump %.6g for %s exceeds 10%% of %s=%.6g; the estimate will be biased",
            bump, greek.value, _BUMPED_FIELD[greek], base,
        )
    return bump


def _bumped(greek: Greek, params: SimulationParameters, bump: float) -> tuple[SimulationParameters, SimulationParameters]:
    name = _BUMPED_FIELD[greek]
    base = getattr(params, name)
    try:
        down = params.with_overrides(**{name: base - bump})
        up = params.with_overrides(**{name: base + bump})
    except InvalidParameterError as exc:
        raise InvalidParameterError(f"bump {bump!r} for {greek.value} leaves the valid domain: {exc}") from exc
    return down, up


def _scenarios_for(
    greek: Greek, kind: OptionKind, params: SimulationParameters, bump: float
) -> dict[str, Scenario]:
    down, up = _bumped(greek, params, bump)
    out = {"down": Scenario.from_params(kind, down), "up": Scenario.from_params(kind, up)}
    if greek is Greek.gamma:
        out["base"] = Scenario.from_params(kind, params)
    return out


def _difference(greek: Greek, prices: Mapping[str, float], h: float) -> float:
    down, up = prices["down"], prices["up"]
    if greek is Greek.delta:
        return (up - down) / (2.0 * h)
    if greek is Greek.gamma:
        return (up - 2.0 * prices["base"] + down) / (h * h)
    if greek in (Greek.vega, Greek.rho):
        return (up - down) / (200.0 * h)
    # theta: V(T - h) - V(T + h)
    return (down - up) / (2.0 * h)


class GreekEstimator:
    r"""
    Estimate Greeks by bumping inputs and re-pricing on shared paths.

    Parameters
    ----------
    engine : PricingEngine, optional
        Engine used for the pricing pass. A fresh default engine is created
        when omitted.

    Examples
    --------
    >>> from mcgreeks import SimulationParameters
    >>> est = GreekEstimator()
    >>> p = SimulationParameters(100.0, 110.0, 0.25, 0.05, 0.5, 0.02, num_trials=10_000)
    >>> est.estimate("delta", "call", p, bump=0.01).value  # doctest: +SKIP
    0.37...
    """

    def __init__(self, engine: Optional[PricingEngine] = None):
        self.engine = engine or PricingEngine()

    def estimate(
        self,
        which: Union[Greek, str],
        kind: Kind,
        params: SimulationParameters,
        bump: float,
        *,
        antithetic: bool = False,
    ) -> GreekEstimate:
        """
        Estimate a single Greek.

        Raises
        ------
        InvalidParameterError
            If ``which`` or ``kind`` is unknown, ``bump`` is not positive, or a
            bumped input is out of range (e.g. ``volatility - bump < 0``).
        """
        greek = coerce_greek(which)
        kind = coerce_kind(kind)
        h = _check_bump(greek, params, bump)
        scen = _scenarios_for(greek, kind, params, h)
        labels = list(scen)
        res = self.engine.run_scenarios([scen[k] for k in labels], params, antithetic=antithetic)
        prices = {k: float(v) for k, v in zip(labels, res.prices)}
        value = _difference(greek, prices, h)
        logger.debug("%s(%s) with h=%.6g: %.6g", greek.value, kind.value, h, value)
        return GreekEstimate(greek=greek, value=float(value), bump=h, prices=prices)

    def all_greeks(
        self,
        kind: Kind,
        params: SimulationParameters,
        bumps: Optional[Mapping[Union[Greek, str], float]] = None,
        *,
        antithetic: bool = False,
    ) -> dict[str, GreekEstimate]:
        """
        Estimate every Greek from a single pass over one set of paths.

        Parameters
        ----------
        bumps : mapping, optional
            Per-Greek bump sizes; missing entries fall back to
            :func:`default_bumps`.

        Returns
        -------
        dict[str, GreekEstimate]
            Keyed by Greek name. The unbumped price is
            ``result["gamma"].prices["base"]``.
        """
        kind = coerce_kind(kind)
        chosen = default_bumps(params)
        for name, h in (bumps or {}).items():
            chosen[coerce_greek(name)] = h

        # Identical scenarios (e.g. delta and gamma sharing a bump) are priced once.
        slots: dict[Scenario, int] = {}
        per_greek: dict[Greek, tuple[float, dict[str, int]]] = {}
        for greek in Greek:
            h = _check_bump(greek, params, chosen[greek])
            index = {}
            for label, scenario in _scenarios_for(greek, kind, params, h).items():
                index[label] = slots.setdefault(scenario, len(slots))
            per_greek[greek] = (h, index)

        res = self.engine.run_scenarios(list(slots), params, antithetic=antithetic)
        out: dict[str, GreekEstimate] = {}
        for greek, (h, index) in per_greek.items():
            prices = {label: float(res.prices[k]) for label, k in index.items()}
            out[greek.value] = GreekEstimate(greek=greek, value=float(_difference(greek, prices, h)), bump=h, prices=prices)
        return out
