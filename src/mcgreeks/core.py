r"""
mcgreeks.core
=============

Pricing engine and result containers.

This module provides:

* :class:`~mcgreeks.core.PricingEngine` – runs path tasks on a backend.
* :class:`~mcgreeks.core.PricingResult` – estimates and standard errors of one run.
* :class:`~mcgreeks.core.RepeatedPricingResult` – the spread of independent runs.

Seeding
-------

Every top-level call builds a fresh root :class:`~mcgreeks.streams.RandomStreamState`.
With :meth:`PricingEngine.set_seed` the root is rebuilt from the same seed, so
repeated calls return identical prices on any backend. Without a seed the root
draws OS entropy once per call, and each lane block spawns its own child
stream from it.

Confidence intervals
--------------------

A 95% confidence interval for a price uses

.. math::

   \hat V \pm z_{\alpha/2}\,\frac{s}{\sqrt{M}}

or a t–critical value for small trial counts.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence, Union

import numpy as np

from .analytic import analytic_price
from .backends import ProcessBackend, SequentialBackend, ThreadBackend, is_windows_platform
from .config import DEFAULT_CONFIG, EngineConfig
from .exceptions import InvalidParameterError
from .kernel import PartialSums, PathTask, Scenario
from .parameters import OptionKind, SimulationParameters, coerce_kind
from .stats_engine import DEFAULT_ENGINE, StatsContext, StatsEngine
from .streams import RandomStreamState, SeedLike, with_seed
from .utils import autocrit

logger = logging.getLogger(__name__)

__all__ = ["PricingResult", "RepeatedPricingResult", "PricingEngine"]

Kind = Union[OptionKind, str]


@dataclass
class PricingResult:
    r"""
    Container for the outcome of one pricing run.

    Attributes
    ----------
    prices : ndarray of float
        One estimate per scenario, in the order they were submitted.
    std_errors : ndarray of float
        Standard error :math:`s/\sqrt{M}` of each estimate.
    n_trials : int
        Paths that entered each estimate.
    n_paths_simulated : int
        Paths simulated, including lane padding.
    execution_time : float
        Wall-clock time in seconds.
    antithetic : bool
        Whether payoffs were averaged with their mirrored paths.
    metadata : dict
        Includes ``"engine_name"``, ``"backend"``, ``"n_workers"``,
        ``"seed_entropy"`` and ``"timestamp"``.
    """

    prices: np.ndarray
    std_errors: np.ndarray
    n_trials: int
    n_paths_simulated: int
    execution_time: float
    antithetic: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def price(self) -> float:
        """Estimate of the first (usually only) scenario."""
        return float(self.prices[0])

    @property
    def std_error(self) -> float:
        return float(self.std_errors[0])

    def confidence_interval(self, confidence: float = 0.95, method: str = "auto") -> tuple[float, float]:
        """CI for :attr:`price` using a z or t critical value."""
        crit, _ = autocrit(confidence, self.n_trials, method)
        return self.price - crit * self.std_error, self.price + crit * self.std_error

    def result_to_string(self, confidence: float = 0.95, method: str = "auto") -> str:
        """Human-readable multi-line summary."""
        crit, kind = autocrit(confidence, self.n_trials, method)
        lo, hi = self.price - crit * self.std_error, self.price + crit * self.std_error
        title = self.metadata.get("engine_name") or "Pricing"
        lines = [
            "=" * 20 + " PRICING RESULTS " + "=" * 20,
            f"Results for '{title}':",
            f"  Trials: {self.n_trials} (simulated {self.n_paths_simulated})",
            f"  Antithetic: {self.antithetic}",
            f"  Execution time: {self.execution_time:.3f} seconds",
            f"  Price: {self.price:.5f}   (SE: {self.std_error:.5f}, "
            f"{int(confidence * 100)}% {kind}-CI: [{lo:.5f}, {hi:.5f}])",
        ]
        if len(self.prices) > 1:
            lines.append("  Scenario prices:")
            for k, (p, se) in enumerate(zip(self.prices, self.std_errors)):
                lines.append(f"    [{k}] {p:.5f} (SE {se:.5f})")
        if self.metadata:
            lines.append("Metadata:")
            for k, v in self.metadata.items():
                lines.append(f"    {k}: {v}")
        lines.append("=" * 20 + " END " + "=" * 20)
        return "\n".join(lines)


@dataclass
class RepeatedPricingResult:
    r"""
    Independent repetitions of the same pricing call.

    Attributes
    ----------
    estimates : ndarray of float
        One price per run.
    n_trials : int
        Trials per run.
    mean, std : float
        Sample mean and standard deviation (``ddof=1``) of :attr:`estimates`.
    percentiles : dict[int, float]
        Percentiles of :attr:`estimates`.
    stats : dict
        Remaining metrics from the stats engine (``ci_mean``, ``bias_to_target``, ...).
    execution_time : float
        Wall-clock time of all runs.
    """

    estimates: np.ndarray
    n_trials: int
    mean: float
    std: float
    percentiles: dict[int, float]
    stats: dict[str, Any] = field(default_factory=dict)
    execution_time: float = 0.0


class PricingEngine:
    r"""
    Monte Carlo pricer for European options under geometric Brownian motion.

    Parameters
    ----------
    config : EngineConfig, optional
        Execution settings. Defaults to :data:`~mcgreeks.config.DEFAULT_CONFIG`.
    name : str, optional
        Label copied into result metadata.

    Examples
    --------
    >>> from mcgreeks import PricingEngine, SimulationParameters
    >>> engine = PricingEngine()
    >>> engine.set_seed(42)
    >>> params = SimulationParameters(100.0, 110.0, 0.25, 0.05, 0.5, 0.02, steps=100, num_trials=10_000)
    >>> res = engine.run("call", params)  # doctest: +SKIP
    >>> print(res.result_to_string())  # doctest: +SKIP
    """

    def __init__(self, config: Optional[EngineConfig] = None, name: str = "European Monte Carlo"):
        self.config = config or DEFAULT_CONFIG
        self.name = name
        self.seed: SeedLike = None

    def set_seed(self, seed: SeedLike) -> None:
        r"""
        Fix the root seed for reproducible runs.

        Parameters
        ----------
        seed : bytes, int or None
            See :func:`~mcgreeks.streams.with_seed`. ``None`` restores fresh OS
            entropy per call.
        """
        with_seed(seed)  # validate eagerly
        self.seed = seed

    def root_state(self) -> RandomStreamState:
        """Fresh root state for one top-level call."""
        return with_seed(self.seed)

    def _resolve_backend(self, num_trials: int) -> tuple[str, int]:
        cfg = self.config
        n_workers = cfg.resolved_workers()
        backend = cfg.backend
        if backend == "auto":
            if n_workers <= 1 or num_trials < cfg.parallel_threshold:
                backend = "sequential"
            elif is_windows_platform():
                logger.info("Backend 'auto' resolved to 'process' on Windows platform.")
                backend = "process"
            else:
                backend = "thread"
        return backend, (1 if backend == "sequential" else n_workers)

    @staticmethod
    def _create_backend(backend: str, n_workers: int) -> SequentialBackend | ThreadBackend | ProcessBackend:
        if backend == "sequential":
            return SequentialBackend()
        if backend == "thread":
            return ThreadBackend(n_workers=n_workers)
        return ProcessBackend(n_workers=n_workers)

    def _execute(
        self,
        task: PathTask,
        params: SimulationParameters,
        state: Optional[RandomStreamState],
        progress_callback: Optional[Callable[[int, int], None]],
    ) -> PricingResult:
        cfg = self.config
        state = state if state is not None else self.root_state()
        n_lanes = params.lane_count(cfg.lane_width)
        backend, n_workers = self._resolve_backend(int(params.num_trials))
        if backend == "sequential":
            logger.info("Pricing %d trials (%d lanes) sequentially...", params.num_trials, n_lanes)
        else:
            logger.info(
                "Pricing %d trials (%d lanes) in parallel using %s backend with %d workers...",
                params.num_trials, n_lanes, backend, n_workers,
            )

        t0 = time.time()
        sums: PartialSums = self._create_backend(backend, n_workers).run(
            task, n_lanes, state.seed_seq, progress_callback, lanes_per_block=cfg.lanes_per_block
        )
        exec_time = time.time() - t0

        return PricingResult(
            prices=sums.means(),
            std_errors=sums.std_errors(),
            n_trials=sums.count,
            n_paths_simulated=n_lanes * cfg.lane_width,
            execution_time=exec_time,
            antithetic=task.antithetic,
            metadata={
                "engine_name": self.name,
                "timestamp": time.time(),
                "backend": backend,
                "n_workers": n_workers,
                "seed_entropy": state.entropy,
                "steps": task.steps,
            },
        )

    def run_scenarios(
        self,
        scenarios: Sequence[Scenario],
        params: SimulationParameters,
        *,
        antithetic: bool = False,
        state: Optional[RandomStreamState] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> PricingResult:
        r"""
        Price several scenarios from the same simulated paths.

        Parameters
        ----------
        scenarios : sequence of Scenario
            Contracts and dynamics to evaluate. Only ``params.steps`` and
            ``params.num_trials`` are read from ``params``.
        params : SimulationParameters
            Supplies the step and trial counts.
        antithetic : bool, default False
            Average every payoff with its mirrored path.
        state : RandomStreamState, optional
            Explicit root state; defaults to :meth:`root_state`.
        progress_callback : callable, optional
            ``f(completed_lanes, total_lanes)``.

        Returns
        -------
        PricingResult
            ``prices[k]`` belongs to ``scenarios[k]``.
        """
        task = PathTask(
            steps=int(params.steps),
            num_trials=int(params.num_trials),
            scenarios=tuple(scenarios),
            antithetic=antithetic,
            lane_width=self.config.lane_width,
            dtype=self.config.dtype,
        )
        return self._execute(task, params, state, progress_callback)

    def run(
        self,
        kind: Kind,
        params: SimulationParameters,
        *,
        antithetic: bool = False,
        state: Optional[RandomStreamState] = None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> PricingResult:
        """Price one option; see :meth:`run_scenarios` for the keyword arguments."""
        scenario = Scenario.from_params(kind, params)
        return self.run_scenarios(
            [scenario], params, antithetic=antithetic, state=state, progress_callback=progress_callback
        )

    def price(self, kind: Kind, params: SimulationParameters) -> float:
        """Plain Monte Carlo price."""
        return self.run(kind, params).price

    def price_antithetic(self, kind: Kind, params: SimulationParameters) -> float:
        """Antithetic Monte Carlo price (same draws, mirrored paths)."""
        return self.run(kind, params, antithetic=True).price

    def price_spot_ladder(
        self,
        kind: Kind,
        params: SimulationParameters,
        spots: Iterable[float],
        *,
        antithetic: bool = False,
    ) -> np.ndarray:
        """
        Price the same contract at several spot levels from one set of paths.

        Spot enters only the payoff, so every level reuses the same terminal
        multipliers and the whole ladder costs one exponential per path.
        """
        kind = coerce_kind(kind)
        spots = [float(s) for s in spots]
        if not spots:
            raise InvalidParameterError("spots must not be empty")
        scenarios = [Scenario.from_params(kind, params.with_overrides(spot=s)) for s in spots]
        return self.run_scenarios(scenarios, params, antithetic=antithetic).prices

    def price_stepwise(self, kind: Kind, params: SimulationParameters) -> float:
        """
        Reference price that exponentiates once per time step.

        Draws the same uniforms as :meth:`price` for the same seed, so the two
        agree up to rounding.
        """
        c = params.derived()
        task = PathTask(
            steps=int(params.steps),
            num_trials=int(params.num_trials),
            scenarios=(Scenario.from_params(kind, params),),
            lane_width=self.config.lane_width,
            dtype=self.config.dtype,
            stepwise=True,
            drift_per_step=c.drift_per_step,
            diffusion_per_step=c.diffusion_per_step,
        )
        return self._execute(task, params, None, None).price

    def run_repeated(
        self,
        kind: Kind,
        params: SimulationParameters,
        n_runs: int,
        *,
        antithetic: bool = False,
        stats_engine: Optional[StatsEngine] = None,
        confidence: float = 0.95,
        ci_method: str = "auto",
    ) -> RepeatedPricingResult:
        r"""
        Repeat a pricing call with independent streams and summarise the spread.

        Each run gets its own child of the root state, so a seeded engine
        reproduces the whole set. The analytic price is passed to the stats
        engine as ``target`` for bias and MSE.

        Parameters
        ----------
        n_runs : int
            Number of independent runs (``>= 2``).
        stats_engine : StatsEngine, optional
            Defaults to :data:`~mcgreeks.stats_engine.DEFAULT_ENGINE`.
        """
        if n_runs < 2:
            raise InvalidParameterError("n_runs must be at least 2")
        t0 = time.time()
        children = self.root_state().spawn(n_runs)
        estimates = np.array(
            [self.run(kind, params, antithetic=antithetic, state=child).price for child in children]
        )
        target = analytic_price(kind, params)
        ctx = StatsContext(n=n_runs, confidence=confidence, ci_method=ci_method, target=target)
        stats = (stats_engine or DEFAULT_ENGINE).compute(estimates, ctx)
        pct = stats.pop("percentiles", {}) or {}
        return RepeatedPricingResult(
            estimates=estimates,
            n_trials=int(params.num_trials),
            mean=float(np.mean(estimates)),
            std=float(np.std(estimates, ddof=1)),
            percentiles={int(k): float(v) for k, v in pct.items()},
            stats=stats,
            execution_time=time.time() - t0,
        )
