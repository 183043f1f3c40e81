"""mcgreeks package public API."""

from .analytic import (
    analytic_delta,
    analytic_gamma,
    analytic_price,
    analytic_rho,
    analytic_theta,
    analytic_vega,
)
from .config import DEFAULT_CONFIG, EngineConfig
from .core import PricingEngine, PricingResult, RepeatedPricingResult
from .exceptions import InvalidParameterError, SimulationError
from .greeks import Greek, GreekEstimate, GreekEstimator
from .parameters import DerivedConstants, OptionKind, SimulationParameters
from .pricing import greek, price, price_antithetic
from .stats_engine import DEFAULT_ENGINE, FnMetric, StatsContext, StatsEngine
from .streams import RandomStreamState, VectorUniformStream, with_seed
from .utils import autocrit, t_crit, z_crit

__version__ = "0.1.0"

__all__ = [
    # Functional API
    "price",
    "price_antithetic",
    "greek",
    "analytic_price",
    "with_seed",
    # Engine
    "PricingEngine",
    "PricingResult",
    "RepeatedPricingResult",
    "GreekEstimator",
    "GreekEstimate",
    "Greek",
    # Inputs
    "OptionKind",
    "SimulationParameters",
    "DerivedConstants",
    "EngineConfig",
    "DEFAULT_CONFIG",
    # Streams
    "RandomStreamState",
    "VectorUniformStream",
    # Analytic reference
    "analytic_delta",
    "analytic_gamma",
    "analytic_vega",
    "analytic_rho",
    "analytic_theta",
    # Stats
    "StatsContext",
    "StatsEngine",
    "FnMetric",
    "DEFAULT_ENGINE",
    "z_crit",
    "t_crit",
    "autocrit",
    # Errors
    "InvalidParameterError",
    "SimulationError",
]
