import numpy as np
import pytest

from mcgreeks import InvalidParameterError, OptionKind, with_seed
from mcgreeks.kernel import (
    PartialSums,
    PathTask,
    Scenario,
    accumulate_normal_sums,
    discounted_payoffs,
    stepwise_terminal_multiplier,
    terminal_multiplier,
)
from mcgreeks.transforms import box_muller_half_radius


def _stream(seed=99, dtype="float64"):
    return with_seed(seed).stream(lane_width=8, dtype=dtype)


class TestAccumulateNormalSums:
    """Test the fused path accumulator"""

    def test_shape_and_dtype(self):
        """Test the batch keeps the lane layout"""
        sums = accumulate_normal_sums(_stream(dtype="float32"), n_lanes=3, steps=4)
        assert sums.shape == (3, 8)
        assert sums.dtype == np.float32

    def test_even_steps_match_manual_loop(self):
        """Test two steps are covered per fused pair"""
        sums = accumulate_normal_sums(_stream(), n_lanes=2, steps=4)
        s = _stream()
        expected = np.zeros((2, 8))
        for _ in range(2):
            expected += box_muller_half_radius(s.next_block(2), s.next_block(2))
        np.testing.assert_array_equal(sums, expected)

    def test_odd_steps_add_sine_half(self):
        """Test an odd step count adds one trailing sine-only term"""
        sums = accumulate_normal_sums(_stream(), n_lanes=2, steps=3)
        s = _stream()
        expected = box_muller_half_radius(s.next_block(2), s.next_block(2))
        u1, u2 = s.next_block(2), s.next_block(2)
        expected = expected + np.sqrt(-np.log(u1)) * np.sin(2.0 * np.pi * u2)
        np.testing.assert_allclose(sums, expected, rtol=1e-12)

    @pytest.mark.parametrize("steps", [1, 10, 11])
    def test_variance_is_half_the_step_count(self, steps):
        """Test Var(S) = n/2 so that scale**2 * Var(S) = sigma**2 * T"""
        sums = accumulate_normal_sums(_stream(seed=steps), n_lanes=10_000, steps=steps).ravel()
        assert abs(sums.mean()) < 0.05 * np.sqrt(steps)
        assert sums.var() == pytest.approx(steps / 2.0, rel=0.04)

    def test_sums_are_finite(self):
        """Test no NaN or inf reaches the accumulator"""
        sums = accumulate_normal_sums(_stream(dtype="float32"), n_lanes=500, steps=50)
        assert np.isfinite(sums).all()


class TestTerminalMultiplier:
    """Test the one-exponential-per-path identity"""

    @pytest.mark.parametrize("steps", [1, 2, 7, 100])
    def test_matches_stepwise_product(self, call_params, steps):
        """Test exp(total_drift + scale * S) equals the per-step product"""
        p = call_params.with_overrides(steps=steps)
        c = p.derived()
        scenario = Scenario.from_params("call", p)
        fused = terminal_multiplier(accumulate_normal_sums(_stream(), 4, steps), scenario)
        stepwise = stepwise_terminal_multiplier(_stream(), 4, steps, c.drift_per_step, c.diffusion_per_step)
        np.testing.assert_allclose(fused, stepwise, rtol=1e-9)

    def test_zero_volatility_is_deterministic(self, call_params):
        """Test sigma = 0 gives the forward growth factor on every path"""
        p = call_params.with_overrides(volatility=0.0)
        scenario = Scenario.from_params("call", p)
        mult = terminal_multiplier(accumulate_normal_sums(_stream(), 2, p.steps), scenario)
        np.testing.assert_allclose(mult, np.exp((0.05 - 0.02) * 0.5), rtol=1e-12)


class TestDiscountedPayoffs:
    """Test payoff flooring and discounting"""

    def test_call_and_put(self):
        """Test max(m*S - m*K, 0) for both signs"""
        mult = np.array([0.8, 1.0, 1.2])
        call = Scenario(spot=100.0, strike=100.0, total_drift=0.0, total_diffusion_scale=0.0, discount=0.5, call_mult=1.0)
        put = Scenario(spot=100.0, strike=100.0, total_drift=0.0, total_diffusion_scale=0.0, discount=0.5, call_mult=-1.0)
        np.testing.assert_allclose(discounted_payoffs(mult, call), [0.0, 0.0, 10.0])
        np.testing.assert_allclose(discounted_payoffs(mult, put), [10.0, 0.0, 0.0])

    def test_scenario_from_params(self, call_params):
        """Test scenarios copy the derived constants"""
        s = Scenario.from_params(OptionKind.put, call_params)
        c = call_params.derived()
        assert s.call_mult == -1.0
        assert s.total_drift == c.total_drift
        assert s.total_diffusion_scale == c.total_diffusion_scale
        assert s.dynamics == (c.total_drift, c.total_diffusion_scale)


class TestPartialSums:
    """Test the associative reduction record"""

    def test_add(self):
        """Test totals and counts add"""
        a = PartialSums(np.array([1.0, 2.0]), np.array([1.0, 4.0]), 1)
        b = PartialSums(np.array([3.0, 4.0]), np.array([9.0, 16.0]), 1)
        c = a + b
        np.testing.assert_array_equal(c.total, [4.0, 6.0])
        np.testing.assert_array_equal(c.total_sq, [10.0, 20.0])
        assert c.count == 2

    def test_means_and_std_errors(self):
        """Test mean and Bessel-corrected standard error"""
        x = np.array([1.0, 2.0, 3.0, 4.0])
        ps = PartialSums(np.array([x.sum()]), np.array([x @ x]), x.size)
        assert ps.means()[0] == pytest.approx(2.5)
        assert ps.std_errors()[0] == pytest.approx(x.std(ddof=1) / 2.0)

    def test_empty(self):
        """Test empty totals report NaN"""
        ps = PartialSums.zeros(2)
        assert np.isnan(ps.means()).all()
        assert np.isnan(ps.std_errors()).all()


class TestPathTask:
    """Test block execution"""

    def _task(self, params, **kwargs):
        kwargs.setdefault("scenarios", (Scenario.from_params("call", params),))
        return PathTask(
            steps=params.steps,
            num_trials=params.num_trials,
            lane_width=8,
            dtype="float64",
            **kwargs,
        )

    def test_requires_scenarios(self, call_params):
        """Test an empty scenario tuple is rejected"""
        with pytest.raises(InvalidParameterError, match="at least one scenario"):
            self._task(call_params, scenarios=())

    def test_stepwise_single_plain_scenario(self, call_params):
        """Test stepwise mode rejects antithetic and multi-scenario tasks"""
        with pytest.raises(InvalidParameterError, match="stepwise"):
            self._task(call_params, stepwise=True, antithetic=True)

    def test_padding_is_masked(self, call_params):
        """Test surplus slots of the final lane do not contribute"""
        p = call_params.with_overrides(num_trials=13, steps=5)
        task = self._task(p)
        out = task.run_block(_stream(), 0, 2)
        assert out.count == 13

        scenario = task.scenarios[0]
        sums = accumulate_normal_sums(_stream(), 2, 5).ravel()[:13]
        pay = discounted_payoffs(terminal_multiplier(sums, scenario), scenario)
        assert out.total[0] == pytest.approx(pay.sum())
        assert out.total_sq[0] == pytest.approx(pay @ pay)

    def test_block_past_last_trial_is_empty(self, call_params):
        """Test a block made only of padding contributes nothing"""
        task = self._task(call_params.with_overrides(num_trials=8, steps=2))
        out = task.run_block(_stream(), 1, 2)
        assert out.count == 0
        assert out.total[0] == 0.0

    def test_antithetic_averages_mirrored_paths(self, call_params):
        """Test each payoff is 0.5 * (f(+S) + f(-S))"""
        p = call_params.with_overrides(num_trials=16, steps=4)
        task = self._task(p, antithetic=True)
        out = task.run_block(_stream(), 0, 2)

        scenario = task.scenarios[0]
        sums = accumulate_normal_sums(_stream(), 2, 4).ravel()
        up = discounted_payoffs(terminal_multiplier(sums, scenario), scenario)
        down = discounted_payoffs(terminal_multiplier(-sums, scenario), scenario)
        assert out.total[0] == pytest.approx((0.5 * (up + down)).sum())

    def test_scenarios_share_paths(self, call_params):
        """Test every scenario is priced from the same sums"""
        p = call_params.with_overrides(num_trials=64, steps=10)
        scenarios = (
            Scenario.from_params("call", p),
            Scenario.from_params("call", p),
            Scenario.from_params("put", p),
        )
        out = self._task(p, scenarios=scenarios).run_block(_stream(), 0, 8)
        assert out.total[0] == out.total[1]
        # call - put = discount * (S * M - K) on every path
        scenario = scenarios[0]
        sums = accumulate_normal_sums(_stream(), 8, 10).ravel()
        fwd = scenario.discount * (scenario.spot * terminal_multiplier(sums, scenario) - scenario.strike)
        assert out.total[0] - out.total[2] == pytest.approx(fwd.sum())

    def test_stepwise_block_matches_fused(self, call_params):
        """Test stepwise and fused tasks agree on the same stream"""
        p = call_params.with_overrides(num_trials=40, steps=9)
        c = p.derived()
        fused = self._task(p).run_block(_stream(), 0, 5)
        stepwise = self._task(
            p, stepwise=True, drift_per_step=c.drift_per_step, diffusion_per_step=c.diffusion_per_step
        ).run_block(_stream(), 0, 5)
        assert stepwise.count == fused.count == 40
        assert stepwise.total[0] == pytest.approx(fused.total[0], rel=1e-9)
