"""
Pytest configuration and fixtures for the Marchenko tests.
"""
import numpy as np
import pytest
import matplotlib
matplotlib.use("Agg")

# Add project root to path
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def impulse_survey():
    """
    Zero reflectivity and a unit-impulse direct arrival per channel.

    ns=10, ts=500, dt=0.002, dx=16, o_min=4. Theta is 1 strictly between
    -t_d and t_d on the centred time axis.
    """
    ts, ns = 500, 10
    it0 = ts - ts//2
    lags = 40 + 3*np.abs(np.arange(ns) - ns//2)  # direct arrival, samples after t=0

    direct = np.zeros((ts, ns))
    direct[it0 + lags, np.arange(ns)] = 1.0

    idx = np.arange(ts)[:, None] - it0
    theta = (np.abs(idx) < lags[None, :]).astype(np.float64)

    R = np.zeros((ts, ns, ns))
    return dict(R=R, direct=direct, theta=theta, dt=0.002, dx=16.0, o_min=4.0)


@pytest.fixture
def random_survey():
    """Small random dataset with a weak reflection response."""
    rng = np.random.default_rng(11)
    ts, ns = 64, 8
    R = 0.05 * rng.standard_normal((ts, ns, ns))
    direct = rng.standard_normal((ts, ns))
    theta = (rng.uniform(size=(ts, ns)) > 0.4).astype(np.float64)
    return dict(R=R, direct=direct, theta=theta, dt=0.002, dx=16.0, o_min=4.0)


@pytest.fixture
def toy_survey():
    """Hyperbolic toy dataset from examples_synthetic."""
    from examples_synthetic import synth
    R, direct, theta, ro = synth(nt=256, dt=0.002, ns=9)
    return dict(R=R, direct=direct, theta=theta, dt=0.002, dx=ro[1]-ro[0], o_min=ro[0])
