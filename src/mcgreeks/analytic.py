r"""
Closed-form Black-Scholes-Merton prices and Greeks.

Used only as a validation oracle for the Monte Carlo engine. With

.. math::

   d_1 = \frac{\ln(S/K) + (r - q + \sigma^2/2)T}{\sigma\sqrt{T}}, \qquad
   d_2 = d_1 - \sigma\sqrt{T},

the call price is :math:`S e^{-qT} N(d_1) - K e^{-rT} N(d_2)` and the put price
:math:`K e^{-rT} N(-d_2) - S e^{-qT} N(-d_1)`.

Vega and rho are quoted per 1% move (divided by 100) and theta per year, the
same units the finite-difference estimators in :mod:`mcgreeks.greeks` return.
"""

from __future__ import annotations

import math
from typing import Union

from scipy.stats import norm

from .exceptions import InvalidParameterError
from .parameters import OptionKind, SimulationParameters, coerce_kind

__all__ = [
    "analytic_price",
    "analytic_delta",
    "analytic_gamma",
    "analytic_vega",
    "analytic_rho",
    "analytic_theta",
]

Kind = Union[OptionKind, str]


def _d1_d2(p: SimulationParameters) -> tuple[float, float]:
    if p.volatility == 0:
        raise InvalidParameterError("analytic Greeks need volatility > 0; only analytic_price accepts volatility == 0")
    vol_sqrt_t = p.volatility * math.sqrt(p.years_to_expiry)
    d1 = (
        math.log(p.spot / p.strike)
        + (p.risk_free_rate - p.dividend_yield + 0.5 * p.volatility**2) * p.years_to_expiry
    ) / vol_sqrt_t
    return d1, d1 - vol_sqrt_t


def analytic_price(kind: Kind, params: SimulationParameters) -> float:
    """
    Black-Scholes-Merton price of a European option.

    With zero volatility the terminal price is deterministic and the result is
    the discounted intrinsic value of the forward.
    """
    kind = coerce_kind(kind)
    p = params
    fwd_spot = p.spot * math.exp(-p.dividend_yield * p.years_to_expiry)
    pv_strike = p.strike * math.exp(-p.risk_free_rate * p.years_to_expiry)
    if p.volatility == 0:
        return max(kind.call_mult * (fwd_spot - pv_strike), 0.0)
    d1, d2 = _d1_d2(p)
    if kind is OptionKind.call:
        return float(fwd_spot * norm.cdf(d1) - pv_strike * norm.cdf(d2))
    return float(pv_strike * norm.cdf(-d2) - fwd_spot * norm.cdf(-d1))


def analytic_delta(kind: Kind, params: SimulationParameters) -> float:
    r"""Delta: :math:`e^{-qT}N(d_1)` for calls, :math:`e^{-qT}(N(d_1) - 1)` for puts."""
    kind = coerce_kind(kind)
    d1, _ = _d1_d2(params)
    carry = math.exp(-params.dividend_yield * params.years_to_expiry)
    if kind is OptionKind.call:
        return float(carry * norm.cdf(d1))
    return float(carry * (norm.cdf(d1) - 1.0))


def analytic_gamma(params: SimulationParameters) -> float:
    r"""Gamma, identical for calls and puts: :math:`e^{-qT}\varphi(d_1)/(S\sigma\sqrt{T})`."""
    d1, _ = _d1_d2(params)
    carry = math.exp(-params.dividend_yield * params.years_to_expiry)
    return float(carry * norm.pdf(d1) / (params.spot * params.volatility * math.sqrt(params.years_to_expiry)))


def analytic_vega(params: SimulationParameters) -> float:
    """Vega per 1% volatility move, identical for calls and puts."""
    d1, _ = _d1_d2(params)
    carry = math.exp(-params.dividend_yield * params.years_to_expiry)
    return float(carry * norm.pdf(d1) * params.spot * math.sqrt(params.years_to_expiry) / 100.0)


def analytic_rho(kind: Kind, params: SimulationParameters) -> float:
    """Rho per 1% rate move."""
    kind = coerce_kind(kind)
    _, d2 = _d1_d2(params)
    pv_strike_t = params.strike * params.years_to_expiry * math.exp(-params.risk_free_rate * params.years_to_expiry)
    if kind is OptionKind.call:
        return float(pv_strike_t * norm.cdf(d2) / 100.0)
    return float(pv_strike_t * (norm.cdf(d2) - 1.0) / 100.0)


def analytic_theta(kind: Kind, params: SimulationParameters) -> float:
    r"""Theta per year, :math:`\partial V / \partial t = -\partial V / \partial T`."""
    kind = coerce_kind(kind)
    p = params
    d1, d2 = _d1_d2(p)
    carry = math.exp(-p.dividend_yield * p.years_to_expiry)
    discount = math.exp(-p.risk_free_rate * p.years_to_expiry)
    decay = -carry * p.spot * norm.pdf(d1) * p.volatility / (2.0 * math.sqrt(p.years_to_expiry))
    if kind is OptionKind.call:
        return float(
            decay
            - p.risk_free_rate * p.strike * discount * norm.cdf(d2)
            + p.dividend_yield * p.spot * carry * norm.cdf(d1)
        )
    return float(
        decay
        + p.risk_free_rate * p.strike * discount * norm.cdf(-d2)
        - p.dividend_yield * p.spot * carry * norm.cdf(-d1)
    )
