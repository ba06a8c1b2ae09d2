# tests/conftest.py
import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest
from loguru import logger

from primitives.function_approximators import FunctionApproximatorRBFN
from primitives.trajectory import Trajectory


@pytest.fixture(autouse=True)
def log_messages():
    """Collect loguru records as (level, message) tuples."""
    messages = []
    logger.remove()
    handler_id = logger.add(lambda msg: messages.append((msg.record["level"].name, msg.record["message"])),
                            level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def ts():
    return np.linspace(0.0, 1.0, 101)


@pytest.fixture
def constant_gain_demo(ts):
    """1-D reaching motion whose single gain target is constant 5.0."""
    return Trajectory.from_min_jerk(ts, [0.0], [1.0], misc=np.full((ts.shape[0], 1), 5.0))


@pytest.fixture
def demo_2d(ts):
    """2-D reaching motion with two gain targets that vary smoothly with the phase."""
    phase = np.exp(-4.0 * ts)
    misc = np.column_stack([100.0 + 50.0 * phase, 20.0 + 10.0 * phase**2])
    return Trajectory.from_min_jerk(ts, [0.0, 0.5], [1.0, -0.5], misc=misc)


@pytest.fixture
def rbfn():
    return FunctionApproximatorRBFN(n_basis_functions=10)
