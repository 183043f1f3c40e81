import logging

import pytest

from mcgreeks import (
    Greek,
    GreekEstimator,
    InvalidParameterError,
    PricingEngine,
    SimulationParameters,
    analytic_delta,
    analytic_gamma,
    analytic_rho,
    analytic_theta,
    analytic_vega,
)
from mcgreeks.greeks import coerce_greek, default_bumps


@pytest.fixture
def estimator(engine):
    """Greek estimator on the seeded default engine."""
    return GreekEstimator(engine)


def _params(spot, strike, vol, rate, expiry, div, trials=20_000):
    return SimulationParameters(spot, strike, vol, rate, expiry, div, steps=100, num_trials=trials)


class TestGreekNames:
    """Test Greek coercion"""

    def test_coerce(self):
        """Test strings map onto the enum"""
        assert coerce_greek("vega") is Greek.vega
        assert coerce_greek(Greek.theta) is Greek.theta

    def test_unknown(self):
        """Test unknown names raise"""
        with pytest.raises(InvalidParameterError, match="greek must be one of"):
            coerce_greek("vanna")


class TestFiniteDifferences:
    """Test estimates against the closed-form Greeks"""

    @pytest.mark.parametrize("kind", ["call", "put"])
    def test_delta(self, estimator, kind):
        """Test delta within 0.05 and inside its sign range"""
        p = _params(100.0, 110.0, 0.25, 0.05, 0.5, 0.02)
        est = estimator.estimate("delta", kind, p, bump=0.001)
        assert est.value == pytest.approx(analytic_delta(kind, p), abs=0.05)
        if kind == "call":
            assert 0.0 <= est.value <= 1.0
        else:
            assert -1.0 <= est.value <= 0.0

    @pytest.mark.parametrize("kind", ["call", "put"])
    def test_gamma(self, estimator, kind):
        """Test gamma within 0.05 and non-negative"""
        p = _params(100.0, 110.0, 0.25, 0.05, 0.5, 0.02)
        est = estimator.estimate("gamma", kind, p, bump=0.5)
        assert est.value >= 0.0
        assert est.value == pytest.approx(analytic_gamma(p), abs=0.05)
        assert set(est.prices) == {"down", "base", "up"}

    def test_vega(self, estimator):
        """Test vega per 1% volatility"""
        p = _params(100.0, 110.0, 0.1, 0.05, 0.5, 0.02)
        est = estimator.estimate("vega", "call", p, bump=0.01)
        assert est.value == pytest.approx(analytic_vega(p), abs=0.05)

    @pytest.mark.parametrize(
        ("kind", "spot", "vol", "rate"),
        [("call", 130.0, 0.25, 0.05), ("put", 110.0, 0.1, 0.1)],
    )
    def test_rho(self, estimator, kind, spot, vol, rate):
        """Test rho per 1% rate"""
        p = _params(spot, 120.0, vol, rate, 0.5, 0.02)
        est = estimator.estimate("rho", kind, p, bump=0.01)
        assert est.value == pytest.approx(analytic_rho(kind, p), abs=0.05)

    @pytest.mark.parametrize(("kind", "spot"), [("call", 110.0), ("put", 110.0), ("put", 130.0)])
    def test_theta(self, estimator, kind, spot):
        """Test theta per year with the reversed subtraction"""
        p = _params(spot, 120.0, 0.1, 0.1, 0.5, 0.02, trials=100_000)
        est = estimator.estimate("theta", kind, p, bump=0.001, antithetic=True)
        assert est.value == pytest.approx(analytic_theta(kind, p), abs=0.1)

    def test_theta_sign_convention(self, estimator):
        """Test a long call loses value as time passes"""
        p = _params(100.0, 100.0, 0.3, 0.01, 1.0, 0.0)
        est = estimator.estimate("theta", "call", p, bump=0.01)
        assert est.value < 0.0
        assert est.prices["down"] < est.prices["up"]

    def test_common_random_numbers(self, call_params):
        """Test bumped prices are reproducible with a fixed seed"""
        eng = PricingEngine()
        eng.set_seed(2)
        a = GreekEstimator(eng).estimate("delta", "call", call_params, bump=1.0)
        b = GreekEstimator(eng).estimate("delta", "call", call_params, bump=1.0)
        assert a.value == b.value
        assert a.prices == b.prices
        assert a.bump == 1.0


class TestBumpValidation:
    """Test rejected and suspicious bumps"""

    @pytest.mark.parametrize("bump", [0.0, -0.01, float("nan"), float("inf")])
    def test_non_positive_bump(self, estimator, call_params, bump):
        """Test h must be positive and finite"""
        with pytest.raises(InvalidParameterError, match="must be positive and finite"):
            estimator.estimate("delta", "call", call_params, bump=bump)

    @pytest.mark.parametrize(
        ("which", "bump"),
        [("vega", 0.3), ("theta", 0.5), ("delta", 100.0)],
    )
    def test_bump_leaves_domain(self, estimator, call_params, which, bump):
        """Test bumps that push an input out of range"""
        with pytest.raises(InvalidParameterError, match="leaves the valid domain"):
            estimator.estimate(which, "call", call_params, bump=bump)

    def test_large_bump_warns(self, estimator, call_params, caplog):
        """Test a bump above 10% of the input is logged"""
        with caplog.at_level(logging.WARNING, logger="mcgreeks.greeks"):
            estimator.estimate("vega", "call", call_params.with_overrides(num_trials=64), bump=0.05)
        assert any("exceeds 10%" in r.getMessage() for r in caplog.records)


class TestAllGreeks:
    """Test the single-pass estimator"""

    def test_all_greeks_against_analytic(self, estimator):
        """Test every Greek from one CRN pass"""
        p = _params(100.0, 100.0, 0.2, 0.05, 1.0, 0.01, trials=50_000)
        out = estimator.all_greeks("call", p)
        assert set(out) == {g.value for g in Greek}
        assert out["delta"].value == pytest.approx(analytic_delta("call", p), abs=0.05)
        assert out["gamma"].value == pytest.approx(analytic_gamma(p), abs=0.05)
        assert out["vega"].value == pytest.approx(analytic_vega(p), abs=0.05)
        assert out["rho"].value == pytest.approx(analytic_rho("call", p), abs=0.05)
        assert out["theta"].value == pytest.approx(analytic_theta("call", p), abs=0.5)

    def test_shared_scenarios_match_single_estimates(self, call_params):
        """Test delta and gamma share prices and match separate estimates"""
        eng = PricingEngine()
        eng.set_seed(13)
        est = GreekEstimator(eng)
        out = est.all_greeks("put", call_params, bumps={"delta": 1.0, "gamma": 1.0})
        assert out["delta"].prices["up"] == out["gamma"].prices["up"]
        single = est.estimate("delta", "put", call_params, bump=1.0)
        assert out["delta"].value == pytest.approx(single.value, rel=1e-9)

    def test_default_bumps(self, call_params):
        """Test default bump sizes"""
        bumps = default_bumps(call_params)
        assert bumps[Greek.delta] == pytest.approx(1.0)
        assert bumps[Greek.vega] == 0.01
        assert bumps[Greek.theta] == pytest.approx(1.0 / 365.0)
