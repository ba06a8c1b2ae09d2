# tests/test_dynamical_systems.py
import numpy as np
import pytest

from primitives.dynamical_systems import ExponentialSystem, SigmoidSystem, TimeSystem


def euler_rollout(system, dt, n_steps):
    x, _ = system.integrate_start()
    xs = [x]
    for _ in range(n_steps):
        x, _ = system.integrate_step(dt, x)
        xs.append(x)
    return np.array(xs)


def test_exponential_system_analytical_solution(ts):
    system = ExponentialSystem(1.0, [1.0, 2.0], [0.0, 1.0], alpha=4.0)
    xs, xds = system.analytical_solution(ts)
    assert xs.shape == xds.shape == (101, 2)
    np.testing.assert_allclose(xs[:, 0], np.exp(-4.0 * ts))
    np.testing.assert_allclose(xs[:, 1], 1.0 + np.exp(-4.0 * ts))
    np.testing.assert_allclose(xds, np.array([system.differential_equation(x) for x in xs]))


def test_exponential_system_euler_matches_analytical():
    system = ExponentialSystem(0.5, [1.0], [0.0], alpha=4.0)
    dt = 0.0005
    xs = euler_rollout(system, dt, 1000)
    xs_ana, _ = system.analytical_solution(np.arange(1001) * dt)
    np.testing.assert_allclose(xs, xs_ana, atol=1e-3)


def test_exponential_system_checks_sizes():
    with pytest.raises(ValueError):
        ExponentialSystem(1.0, [1.0, 2.0], [0.0])


def test_sigmoid_system_shape():
    system = SigmoidSystem(2.0, [1.0], max_rate=10.0, inflection_ratio=0.9)
    ts = np.linspace(0.0, 2.0, 201)
    xs, xds = system.analytical_solution(ts)

    assert xs[0, 0] == pytest.approx(1.0)
    assert np.all(np.diff(xs[:, 0]) < 0.0)
    assert np.all(xds <= 0.0)
    # half of the carrying capacity at the inflection point
    x_inflection, _ = system.analytical_solution(np.array([0.9 * 2.0]))
    assert x_inflection[0, 0] == pytest.approx(0.5 * system._K[0])


def test_sigmoid_system_derivative_is_consistent():
    system = SigmoidSystem(1.0, [1.0])
    ts = np.linspace(0.0, 1.0, 2001)
    xs, xds = system.analytical_solution(ts)
    np.testing.assert_allclose(xds, np.array([system.differential_equation(x) for x in xs]), atol=1e-8)
    np.testing.assert_allclose(np.gradient(xs[:, 0], ts), xds[:, 0], atol=1e-2)


def test_sigmoid_system_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        SigmoidSystem(1.0, [1.0], max_rate=0.0)


def test_time_system():
    system = TimeSystem(2.0)
    xs, xds = system.analytical_solution(np.array([0.0, 1.0, 2.0, 3.0]))
    np.testing.assert_allclose(xs[:, 0], [0.0, 0.5, 1.0, 1.0])
    np.testing.assert_allclose(xds[:, 0], [0.5, 0.5, 0.0, 0.0])

    xs = euler_rollout(system, 0.3, 10)
    assert xs.max() == 1.0


def test_time_system_count_down():
    system = TimeSystem(1.0, count_down=True)
    xs, _ = system.analytical_solution(np.array([0.0, 0.25, 2.0]))
    np.testing.assert_allclose(xs[:, 0], [1.0, 0.75, 0.0])
    assert euler_rollout(system, 0.3, 5).min() == 0.0
