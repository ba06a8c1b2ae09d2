#usr/bin/env python3
"""
Utilities to produce demonstration trajectories with gain schedules and to
initialize a DmpWithGainSchedules from them.
The gain targets mimic a variable-impedance demonstration: low stiffness at
rest, stiffer while the arm is moving fast.
"""
import numpy as np

from primitives.dmp_with_gain_schedules import DmpWithGainSchedules
from primitives.function_approximators import FunctionApproximatorRBFN
from primitives.trajectory import Trajectory


def make_demo(duration=1.0, timesteps=200, n_dims=2, n_gains=None, curvature=0.15,
              k_min=50.0, k_max=300.0):
    """
    Minimum-jerk reaching motion with one stiffness schedule per gain dimension.
    The third dimension (if any) follows a smooth vertical curve.
    Returns a Trajectory whose misc channel holds the (T, n_gains) gain targets.
    """
    if n_gains is None:
        n_gains = n_dims
    t = np.linspace(0.0, duration, timesteps)
    tau = t / duration

    start = np.zeros(n_dims)
    goal = np.resize(np.array([0.25, 0.1, 0.15]), n_dims)

    # Minimum-jerk time scaling: 10τ³ - 15τ⁴ + 6τ⁵
    s = 10*tau**3 - 15*tau**4 + 6*tau**5

    x = np.zeros((timesteps, n_dims))
    for d in range(n_dims):
        x[:, d] = start[d] + s * (goal[d] - start[d])
    if n_dims >= 3:
        x[:, 2] += curvature * np.sin(np.pi * s)

    # Stiffness rises with the speed of the phase, each gain slightly stretched
    gains = np.zeros((timesteps, n_gains))
    for g in range(n_gains):
        scale = 1.0 + 0.5 * g
        gains[:, g] = scale * (k_min + (k_max - k_min) * np.sin(np.pi * s)**2)

    return Trajectory(t, x, misc=gains)


def init_from_demo(demo, n_basis_functions=10, n_basis_functions_gains=10,
                   absent_gains=(), alpha_spring_damper=20.0):
    """
    Build and train a DmpWithGainSchedules from a demonstration.
    absent_gains: indices of gain dimensions that get no model (they are skipped during training)
    """
    D = demo.dim()
    fas = [FunctionApproximatorRBFN(n_basis_functions) for _ in range(D)]
    fas_gains = [None if g in absent_gains else FunctionApproximatorRBFN(n_basis_functions_gains)
                 for g in range(demo.dim_misc())]
    dmp = DmpWithGainSchedules(demo.final_time(), demo.initial_y(), demo.final_y(), fas, fas_gains,
                               alpha_spring_damper=alpha_spring_damper)
    dmp.train(demo)
    return dmp


def rollout(dmp, dt, n_steps=None):
    """
    Step-wise integration of a DmpWithGainSchedules, as a control loop would run it.
    Returns dict with 't', 'x', 'xd', 'gains'
    """
    if n_steps is None:
        n_steps = int(round(dmp.tau / dt)) + 1
    xs = np.zeros((n_steps, dmp.dim()))
    xds = np.zeros_like(xs)
    gains = np.zeros((n_steps, dmp.dim_gains()))

    dmp.integrate_start(xs[0], xds[0], gains[0])
    for i in range(1, n_steps):
        dmp.integrate_step(dt, xs[i-1], xs[i], xds[i], gains[i])

    return {'t': np.arange(n_steps) * dt, 'x': xs, 'xd': xds, 'gains': gains}
