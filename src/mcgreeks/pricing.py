r"""
Functional entry points.

Thin wrappers that build a :class:`~mcgreeks.core.PricingEngine`, apply an
optional seed and return plain floats:

* :func:`price` – plain Monte Carlo price.
* :func:`price_antithetic` – antithetic Monte Carlo price.
* :func:`greek` – one finite-difference Greek on common random numbers.

:func:`~mcgreeks.analytic.analytic_price` and
:func:`~mcgreeks.streams.with_seed` are re-exported for convenience.

Examples
--------
>>> from mcgreeks import SimulationParameters, price, analytic_price
>>> p = SimulationParameters(100.0, 110.0, 0.25, 0.05, 0.5, 0.02, num_trials=10_000)
>>> abs(price("call", p, seed=7) - analytic_price("call", p)) < 1.0  # doctest: +SKIP
True
"""

from __future__ import annotations

from typing import Optional, Union

from .analytic import analytic_price
from .config import EngineConfig
from .core import PricingEngine
from .greeks import Greek, GreekEstimator
from .parameters import OptionKind, SimulationParameters
from .streams import SeedLike, with_seed

__all__ = ["price", "price_antithetic", "greek", "analytic_price", "with_seed"]

Kind = Union[OptionKind, str]


def _engine(seed: SeedLike, config: Optional[EngineConfig]) -> PricingEngine:
    engine = PricingEngine(config)
    if seed is not None:
        engine.set_seed(seed)
    return engine


def price(
    kind: Kind,
    params: SimulationParameters,
    *,
    seed: SeedLike = None,
    config: Optional[EngineConfig] = None,
) -> float:
    """
    Monte Carlo price of a European option.

    Parameters
    ----------
    kind : {"call", "put"} or OptionKind
    params : SimulationParameters
    seed : bytes or int, optional
        Fixes the random streams; omitted means fresh OS entropy.
    config : EngineConfig, optional
        Execution settings.
    """
    return _engine(seed, config).price(kind, params)


def price_antithetic(
    kind: Kind,
    params: SimulationParameters,
    *,
    seed: SeedLike = None,
    config: Optional[EngineConfig] = None,
) -> float:
    """Antithetic Monte Carlo price; arguments as in :func:`price`."""
    return _engine(seed, config).price_antithetic(kind, params)


def greek(
    which: Union[Greek, str],
    kind: Kind,
    params: SimulationParameters,
    bump: float,
    *,
    seed: SeedLike = None,
    config: Optional[EngineConfig] = None,
) -> float:
    """
    Finite-difference Greek with bump size ``bump``.

    See :mod:`mcgreeks.greeks` for the difference quotients and units.

    Raises
    ------
    InvalidParameterError
        For an unknown Greek or kind, a non-positive bump, or a bump that
        pushes an input out of range.
    """
    return GreekEstimator(_engine(seed, config)).estimate(which, kind, params, bump).value
