r"""
mcgreeks.stats_engine
=====================
Statistical metrics over repeated price estimates.

This module defines:

- :class:`StatsContext`: a typed, explicit configuration object shared by all metrics.
- :class:`FnMetric`: a frozen adapter that names a metric function.
- :class:`StatsEngine`: an orchestrator that evaluates one or more metrics.

Metrics include :func:`mean`, :func:`std`, :func:`percentiles`, :func:`skew`,
:func:`kurtosis`, :func:`ci_mean`, and, when a ``target`` such as the analytic
price is supplied, :func:`bias_to_target` and :func:`mse_to_target`.

See Also
--------
mcgreeks.utils.autocrit
    Selects a z/t critical value for a target confidence level and effective sample size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Optional, Protocol, Sequence, TypeVar

import numpy as np
from scipy.stats import kurtosis as sp_kurtosis
from scipy.stats import skew as sp_skew

from .utils import autocrit

logger = logging.getLogger(__name__)

__all__ = [
    "NanPolicy",
    "CIMethod",
    "StatsContext",
    "Metric",
    "FnMetric",
    "StatsEngine",
    "mean",
    "std",
    "percentiles",
    "skew",
    "kurtosis",
    "ci_mean",
    "bias_to_target",
    "mse_to_target",
    "build_default_engine",
    "DEFAULT_ENGINE",
]


class NanPolicy(str, Enum):
    r"""
    Strategies for handling non-finite values.

    Attributes
    ----------
    propagate : str
        Keep NaNs and infinities in the sample.
    omit : str
        Drop non-finite observations before computing a metric.
    """

    propagate = "propagate"
    omit = "omit"


class CIMethod(str, Enum):
    r"""
    Strategies for selecting confidence-interval critical values.

    Attributes
    ----------
    auto : str
        Choose Student-t when :math:`n_\text{eff} < 30`, otherwise z.
    z : str
        Always use the normal :math:`z` critical value.
    t : str
        Always use the Student-:math:`t` critical value.
    """

    auto = "auto"
    z = "z"
    t = "t"


@dataclass(frozen=True)
class StatsContext:
    r"""
    Shared, explicit configuration for statistic and CI computations.

    Attributes
    ----------
    n : int
        Declared sample size.
    confidence : float, default 0.95
        Confidence level in :math:`(0, 1)`.
    ci_method : {"auto", "z", "t"}, default "auto"
        Strategy for :func:`ci_mean`.
    percentiles : tuple of int, default ``(5, 25, 50, 75, 95)``
        Percentiles to compute in :func:`percentiles`.
    nan_policy : {"propagate", "omit"}, default "propagate"
        If ``"omit"``, drop non-finite values before all computations.
    target : float, optional
        Reference value (e.g. the analytic price) for bias and MSE.
    ddof : int, default 1
        Degrees of freedom for :func:`std`.

    Examples
    --------
    >>> ctx = StatsContext(n=5000, confidence=0.95)
    >>> round(ctx.alpha, 2)
    0.05
    """

    n: int
    confidence: float = 0.95
    ci_method: CIMethod = CIMethod.auto
    percentiles: tuple[int, ...] = (5, 25, 50, 75, 95)
    nan_policy: NanPolicy = NanPolicy.propagate
    target: Optional[float] = None
    ddof: int = 1

    def with_overrides(self, **changes) -> "StatsContext":
        """Return a shallow copy with selected fields replaced."""
        return replace(self, **changes)

    @property
    def alpha(self) -> float:
        r"""Tail probability :math:`\alpha = 1 - \text{confidence}`."""
        return 1.0 - self.confidence

    def eff_n(self, observed_len: int, finite_count: Optional[int] = None) -> int:
        """Effective sample size: finite count under ``"omit"``, else declared ``n``."""
        if self.nan_policy == NanPolicy.omit and finite_count is not None:
            return int(finite_count)
        return int(self.n or observed_len)

    def __post_init__(self) -> None:
        if not (0.0 < self.confidence < 1.0):
            raise ValueError("confidence must be in (0,1)")
        if any(p < 0 or p > 100 for p in self.percentiles):
            raise ValueError("percentiles must be in [0,100]")
        if self.ddof < 0:
            raise ValueError("ddof must be >= 0")
        object.__setattr__(self, "ci_method", CIMethod(self.ci_method))
        object.__setattr__(self, "nan_policy", NanPolicy(self.nan_policy))


class Metric(Protocol):
    """Callable metric with a ``name``: ``metric(x, ctx) -> Any``."""

    name: str

    def __call__(self, x: np.ndarray, ctx: StatsContext, /) -> Any: ...


T = TypeVar("T")


@dataclass(frozen=True)
class FnMetric(Generic[T]):
    r"""
    Lightweight adapter that binds a human-readable ``name`` to a metric function.

    Attributes
    ----------
    name : str
        Key used in :meth:`StatsEngine.compute` results.
    fn : callable
        ``fn(x, ctx) -> value``.
    doc : str, optional
        Short description reported by :meth:`StatsEngine.describe`.

    Examples
    --------
    >>> m = FnMetric("mean", lambda a, ctx: float(np.mean(a)))
    >>> m(np.array([1, 2, 3]), StatsContext(n=3))
    2.0
    """

    name: str
    fn: Callable[[np.ndarray, StatsContext], T]
    doc: str = ""

    def __call__(self, x: np.ndarray, ctx: StatsContext) -> T:
        return self.fn(x, ctx)


class StatsEngine:
    r"""
    Orchestrator that evaluates a set of metrics over an input array.

    Examples
    --------
    >>> eng = StatsEngine([FnMetric("mean", mean), FnMetric("std", std)])
    >>> eng.compute(np.array([1., 2., 3.]))
    {'mean': 2.0, 'std': 1.0}
    """

    def __init__(self, metrics: Iterable[Metric]):
        self._metrics = list(metrics)

    def available(self) -> tuple[str, ...]:
        return tuple(m.name for m in self._metrics)

    def describe(self) -> dict[str, str]:
        """Map each metric name to its ``doc`` string (empty when none was given)."""
        return {m.name: getattr(m, "doc", "") for m in self._metrics}

    def compute(
        self,
        x: np.ndarray,
        ctx: Optional[StatsContext] = None,
        select: Sequence[str] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        r"""
        Evaluate the registered metrics on ``x``.

        Parameters
        ----------
        x : ndarray
            Sample values.
        ctx : StatsContext, optional
            Context parameters. If None, one is built from ``**kwargs``.
        select : sequence of str, optional
            If given, compute only the metrics with these names.

        Returns
        -------
        dict
            Mapping from metric name to computed value. Metrics that need a
            missing ``target`` are skipped.
        """
        if ctx is None:
            base = dict(kwargs)
            base.setdefault("n", int(np.asarray(x).size))
            ctx = StatsContext(**base)

        wanted = None if select is None else set(select)
        out: dict[str, Any] = {}
        for m in self._metrics:
            if wanted is not None and m.name not in wanted:
                continue
            try:
                out[m.name] = m(x, ctx)
            except ValueError as e:
                if "requires ctx.target" in str(e):
                    logger.debug("Skipping metric %s: %s", m.name, e)
                    continue
                raise
        return out


def _clean(x: np.ndarray, ctx: StatsContext) -> tuple[np.ndarray, int]:
    """Return the sample (filtered under ``"omit"``) and its finite count."""
    arr = np.asarray(x, dtype=float).ravel()
    finite = np.isfinite(arr)
    if ctx.nan_policy == NanPolicy.omit:
        arr = arr[finite]
    return arr, int(finite.sum())


def mean(x: np.ndarray, ctx: StatsContext) -> float:
    r"""Sample mean :math:`\bar X`."""
    arr, _ = _clean(x, ctx)
    return float(np.mean(arr)) if arr.size else float("nan")


def std(x: np.ndarray, ctx: StatsContext) -> float:
    r"""Sample standard deviation with ``ctx.ddof`` (``0.0`` when :math:`n_\text{eff} \le 1`)."""
    arr, finite = _clean(x, ctx)
    if ctx.eff_n(arr.size, finite) <= 1 or arr.size <= ctx.ddof:
        return 0.0
    return float(np.std(arr, ddof=ctx.ddof))


def percentiles(x: np.ndarray, ctx: StatsContext) -> dict[int, float]:
    """Empirical percentiles ``{p: Q_p(x)}``."""
    arr, _ = _clean(x, ctx)
    if arr.size == 0:
        return {p: float("nan") for p in ctx.percentiles}
    values = np.percentile(arr, ctx.percentiles)
    return dict(zip(ctx.percentiles, map(float, values)))


def skew(x: np.ndarray, ctx: StatsContext) -> float:
    """Unbiased Fisher-Pearson skewness via :func:`scipy.stats.skew`."""
    arr, _ = _clean(x, ctx)
    return float(sp_skew(arr, bias=False)) if arr.size > 2 else 0.0  # type: ignore[arg-type]


def kurtosis(x: np.ndarray, ctx: StatsContext) -> float:
    """Unbiased excess kurtosis via :func:`scipy.stats.kurtosis`."""
    arr, _ = _clean(x, ctx)
    return float(sp_kurtosis(arr, fisher=True, bias=False)) if arr.size > 3 else 0.0  # type: ignore[arg-type]


def ci_mean(x: np.ndarray, ctx: StatsContext) -> dict[str, float | str]:
    r"""
    Parametric CI for :math:`\mathbb{E}[X]`: :math:`\bar X \pm c\,s/\sqrt{n_\text{eff}}`.

    Returns
    -------
    dict
        Keys ``confidence``, ``method``, ``low``, ``high``, ``se``, ``crit``.
    """
    arr, finite = _clean(x, ctx)
    n_eff = ctx.eff_n(arr.size, finite)
    if arr.size < 2 or n_eff < 2:
        nan = float("nan")
        return {"confidence": ctx.confidence, "method": ctx.ci_method.value,
                "low": nan, "high": nan, "se": nan, "crit": nan}
    mu = float(np.mean(arr))
    s = float(np.std(arr, ddof=ctx.ddof))
    se = s / np.sqrt(n_eff)
    crit, method = autocrit(ctx.confidence, n_eff, ctx.ci_method)
    return {
        "confidence": ctx.confidence,
        "method": method,
        "se": float(se),
        "crit": float(crit),
        "low": float(mu - crit * se),
        "high": float(mu + crit * se),
    }


def bias_to_target(x: np.ndarray, ctx: StatsContext) -> float:
    r"""Bias :math:`\bar X - \text{target}`."""
    if ctx.target is None:
        raise ValueError("bias_to_target requires ctx.target")
    arr, _ = _clean(x, ctx)
    return float(np.mean(arr) - ctx.target)


def mse_to_target(x: np.ndarray, ctx: StatsContext) -> float:
    r"""Mean squared error :math:`\frac{1}{n}\sum_i (X_i - \text{target})^2`."""
    if ctx.target is None:
        raise ValueError("mse_to_target requires ctx.target")
    arr, _ = _clean(x, ctx)
    return float(np.mean((arr - ctx.target) ** 2))


def build_default_engine(include_target_bounds: bool = True) -> StatsEngine:
    r"""
    Construct a :class:`StatsEngine` with a practical set of metrics.

    Parameters
    ----------
    include_target_bounds : bool, default True
        Include :func:`bias_to_target` and :func:`mse_to_target`.
    """
    metrics: list[Metric] = [
        FnMetric[float]("mean", mean, "Sample mean"),
        FnMetric[float]("std", std, "Sample standard deviation"),
        FnMetric[dict[int, float]]("percentiles", percentiles, "Percentiles over the sample"),
        FnMetric[float]("skew", skew, "Fisher skewness (unbiased)"),
        FnMetric[float]("kurtosis", kurtosis, "Excess kurtosis (unbiased)"),
        FnMetric[dict[str, float | str]]("ci_mean", ci_mean, "z/t CI for the mean"),
    ]
    if include_target_bounds:
        metrics.extend(
            [
                FnMetric[float]("bias_to_target", bias_to_target, "Bias relative to target"),
                FnMetric[float]("mse_to_target", mse_to_target, "Mean squared error to target"),
            ]
        )
    return StatsEngine(metrics)


DEFAULT_ENGINE = build_default_engine()
