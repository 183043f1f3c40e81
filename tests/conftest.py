import multiprocessing as mp

import numpy as np
import pytest

from mcgreeks import EngineConfig, PricingEngine, SimulationParameters


@pytest.fixture(scope="session", autouse=True)
def _set_spawn_start_method():
    try:
        mp.set_start_method("spawn")
    except RuntimeError:
        pass  # already set


@pytest.fixture
def sample_data():
    """Fixture providing sample data for testing"""
    rng = np.random.default_rng(42)
    return rng.normal(5.0, 2.0, 1000)


@pytest.fixture
def ctx_basic():
    """Basic context for stats engine tests"""
    return {
        "n": 1000,
        "confidence": 0.95,
        "nan_policy": "propagate",
        "ci_method": "auto",
        "percentiles": (5, 25, 50, 75, 95),
        "target": 0.0,
    }


@pytest.fixture
def call_params():
    """Out-of-the-money call, 100 steps, 1000 trials."""
    return SimulationParameters(
        spot=100.0,
        strike=110.0,
        volatility=0.25,
        risk_free_rate=0.05,
        years_to_expiry=0.5,
        dividend_yield=0.02,
        steps=100,
        num_trials=1000,
    )


@pytest.fixture
def put_params():
    """Out-of-the-money put, 10_000 trials."""
    return SimulationParameters(
        spot=300.0,
        strike=270.0,
        volatility=0.2,
        risk_free_rate=0.09,
        years_to_expiry=1.0,
        dividend_yield=0.0,
        steps=100,
        num_trials=10_000,
    )


@pytest.fixture
def seq_config():
    """Sequential float64 configuration with small blocks."""
    return EngineConfig(backend="sequential", lanes_per_block=16, dtype="float64")


@pytest.fixture
def engine():
    """Seeded engine with the default configuration."""
    eng = PricingEngine()
    eng.set_seed(42)
    return eng


@pytest.fixture
def seq_engine(seq_config):
    """Seeded sequential engine."""
    eng = PricingEngine(seq_config, name="TestEngine")
    eng.set_seed(1234)
    return eng
