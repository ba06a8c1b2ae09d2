#usr/bin/env python3
"""
Dynamical movement primitive (DMP) with a learned forcing term.
Implements, per output dimension d:
  tau * z_dot = alpha (beta (g - y) - z) + v * s * f_d(x)
  tau * y_dot = z
Where:
 - x : phase variable (ExponentialSystem by default)
 - v : gating variable (SigmoidSystem by default), switches the forcing term off
 - s : optional forcing term scaling (g - y0)
 - f_d : function approximator trained on the phase
State vector layout (size 3D + 2):
  [ y (D) | z (D) | goal (D) | phase (1) | gating (1) ]
"""
import copy

import numpy as np
from loguru import logger
from numba import njit

from primitives.dynamical_systems import ExponentialSystem, SigmoidSystem
from primitives.trajectory import Trajectory

FORCING_TERM_SCALINGS = ("NO_SCALING", "G_MINUS_Y0_SCALING")


class Dmp:
    def __init__(self, tau, y_init, y_attr, function_approximators,
                 alpha_spring_damper=20.0, goal_system=None, phase_system=None,
                 gating_system=None, forcing_term_scaling="NO_SCALING"):
        """
        tau: duration of the movement
        y_init, y_attr: (D,) initial and attractor state
        function_approximators: list of D models (None entries allowed) for the forcing term
        alpha_spring_damper: spring constant, the damper is alpha/4 (critically damped)
        goal_system: optional dynamical system moving the goal from y_init to y_attr
        phase_system, gating_system: default to ExponentialSystem / SigmoidSystem
        """
        self.y_init = np.atleast_1d(np.asarray(y_init, dtype=float)).copy()
        self.y_attr = np.atleast_1d(np.asarray(y_attr, dtype=float)).copy()
        D = self.y_init.shape[0]
        if self.y_attr.shape[0] != D:
            raise ValueError("y_init and y_attr must have the same size.")
        if len(function_approximators) != D:
            raise ValueError(f"Expected {D} function approximators, got {len(function_approximators)}.")
        if forcing_term_scaling not in FORCING_TERM_SCALINGS:
            raise ValueError(f"forcing_term_scaling must be one of {FORCING_TERM_SCALINGS}.")

        self._D = D
        self.alpha = float(alpha_spring_damper)
        self.beta = self.alpha / 4.0
        self.forcing_term_scaling = forcing_term_scaling
        self.function_approximators = [None if fa is None else fa.clone()
                                       for fa in function_approximators]

        self.phase_system = phase_system or ExponentialSystem(tau, [1.0], [0.0], alpha=4.0)
        self.gating_system = gating_system or SigmoidSystem(tau, [1.0], max_rate=10.0, inflection_ratio=0.9)
        self.goal_system = goal_system
        self.tau = None
        self.set_tau(tau)
        self.set_initial_state(self.y_init)
        self.set_attractor_state(self.y_attr)

        # buffers reused by the step-wise integration
        self._fa_output_one = np.zeros(1)
        self._forcing_one = np.zeros(D)
        self._x_step = np.zeros(self.dim())
        self._xd_step = np.zeros(self.dim())

    # ----- State layout -----
    @property
    def Y(self):
        return slice(0, self._D)

    @property
    def Z(self):
        return slice(self._D, 2*self._D)

    @property
    def SPRING(self):
        return slice(0, 2*self._D)

    @property
    def GOAL(self):
        return slice(2*self._D, 3*self._D)

    @property
    def PHASE(self):
        return slice(3*self._D, 3*self._D + 1)

    @property
    def GATING(self):
        return slice(3*self._D + 1, 3*self._D + 2)

    def get_phase(self, x):
        """Phase segment of a state vector (1,) or of a state matrix (T, 1), as a view."""
        return x[..., self.PHASE]

    def dim(self):
        return 3*self._D + 2

    def dim_orig(self):
        return self._D

    # ----- Parameters -----
    def set_tau(self, tau):
        if tau <= 0.0:
            raise ValueError("tau must be positive.")
        self.tau = float(tau)
        for system in (self.phase_system, self.gating_system, self.goal_system):
            if system is not None:
                system.tau = self.tau

    def set_initial_state(self, y_init):
        self.y_init = np.atleast_1d(np.asarray(y_init, dtype=float)).copy()
        if self.goal_system is not None:
            self.goal_system.x_init = self.y_init.copy()
        self._update_scaling()

    def set_attractor_state(self, y_attr):
        self.y_attr = np.atleast_1d(np.asarray(y_attr, dtype=float)).copy()
        if self.goal_system is not None:
            self.goal_system.x_attr = self.y_attr.copy()
        self._update_scaling()

    def _update_scaling(self):
        if self.forcing_term_scaling == "G_MINUS_Y0_SCALING":
            scaling = self.y_attr - self.y_init
            scaling[np.abs(scaling) < 1e-10] = 1.0
            self._scaling = scaling
        else:
            self._scaling = np.ones(self._D)

    # ----- Step-wise integration -----
    def integrate_start(self, x=None, xd=None):
        """Initial state and its rate of change."""
        if x is None:
            x = np.zeros(self.dim())
        if xd is None:
            xd = np.zeros(self.dim())
        x[self.Y] = self.y_init
        x[self.Z] = 0.0
        x[self.GOAL] = self.goal_system.x_init if self.goal_system is not None else self.y_attr
        x[self.PHASE] = self.phase_system.x_init
        x[self.GATING] = self.gating_system.x_init
        self.differential_equation(x, xd)
        return x, xd

    def integrate_step(self, dt, x, x_updated=None, xd_updated=None):
        """
        Euler step of size dt from state x.
        x_updated / xd_updated are optional output buffers, filled in place.
        """
        if x_updated is None:
            x_updated = np.empty(self.dim())
        if xd_updated is None:
            xd_updated = np.empty(self.dim())
        xd = self.differential_equation(x, self._xd_step)
        np.multiply(xd, dt, out=self._x_step)
        np.add(self._x_step, x, out=self._x_step)
        x_updated[:] = self._x_step
        self.differential_equation(x_updated, xd_updated)
        return x_updated, xd_updated

    def differential_equation(self, x, xd=None):
        if xd is None:
            xd = np.empty(self.dim())
        gating = x[3*self._D + 1]
        self._forcing_term_one(self.get_phase(x), gating, self._forcing_one)
        spring_damper_numba(x[self.Y], x[self.Z], x[self.GOAL], self._forcing_one,
                            self.tau, self.alpha, self.beta, xd[self.Y], xd[self.Z])
        if self.goal_system is not None:
            xd[self.GOAL] = self.goal_system.differential_equation(x[self.GOAL])
        else:
            xd[self.GOAL] = 0.0
        xd[self.PHASE] = self.phase_system.differential_equation(x[self.PHASE])
        xd[self.GATING] = self.gating_system.differential_equation(x[self.GATING])
        return xd

    def _forcing_term_one(self, phase, gating, out):
        for d, fa in enumerate(self.function_approximators):
            if fa is not None and fa.is_trained():
                fa.predict(phase, self._fa_output_one)
                out[d] = self._fa_output_one[0] * self._scaling[d] * gating
            else:
                out[d] = 0.0
        return out

    # ----- Closed-form solution -----
    def analytical_solution(self, ts):
        """
        Solve the DMP for a whole time vector.
        Phase, gating and goal are solved in closed form, the spring-damper
        system is integrated along ts.
        Returns xs (T, 3D+2), xds (T, 3D+2), forcing_terms (T, D), fa_outputs (T, D)
        """
        ts = np.asarray(ts, dtype=float).reshape(-1)
        T, D = ts.shape[0], self._D
        xs = np.zeros((T, self.dim()))
        xds = np.zeros((T, self.dim()))

        xs[:, self.PHASE], xds[:, self.PHASE] = self.phase_system.analytical_solution(ts)
        xs[:, self.GATING], xds[:, self.GATING] = self.gating_system.analytical_solution(ts)
        if self.goal_system is not None:
            xs[:, self.GOAL], xds[:, self.GOAL] = self.goal_system.analytical_solution(ts)
        else:
            xs[:, self.GOAL] = self.y_attr

        fa_outputs = self.compute_function_approximator_output(xs[:, self.PHASE])
        forcing_terms = fa_outputs * self._scaling[None, :] * xs[:, self.GATING]

        ys, zs = np.zeros((T, D)), np.zeros((T, D))
        yds, zds = np.zeros((T, D)), np.zeros((T, D))
        integrate_spring_damper_numba(ts, self.y_init, np.ascontiguousarray(xs[:, self.GOAL]),
                                      forcing_terms, self.tau, self.alpha, self.beta,
                                      ys, zs, yds, zds)
        xs[:, self.Y], xs[:, self.Z] = ys, zs
        xds[:, self.Y], xds[:, self.Z] = yds, zds
        return xs, xds, forcing_terms, fa_outputs

    def compute_function_approximator_output(self, phase_state):
        """(T, D) forcing term outputs, zero for absent or untrained approximators."""
        fa_outputs = np.zeros((phase_state.shape[0], self._D))
        for d, fa in enumerate(self.function_approximators):
            if fa is not None and fa.is_trained():
                fa_outputs[:, d] = fa.predict(phase_state)
        return fa_outputs

    def states_as_trajectory(self, ts, xs, xds):
        return Trajectory(ts, xs[:, self.Y], xds[:, self.Y], xds[:, self.Z] / self.tau)

    def analytical_solution_as_trajectory(self, ts):
        xs, xds = Dmp.analytical_solution(self, ts)[:2]
        return self.states_as_trajectory(ts, xs, xds)

    # ----- Training -----
    def train(self, trajectory, save_directory=None, overwrite=False):
        """
        Fit the forcing term approximators to a demonstration.
        tau, y_init and y_attr are taken from the demonstration.
        """
        self.set_tau(trajectory.final_time())
        self.set_initial_state(trajectory.initial_y())
        self.set_attractor_state(trajectory.final_y())

        inputs, targets = self.compute_function_approximator_inputs_and_targets(trajectory)

        for d, fa in enumerate(self.function_approximators):
            if fa is None:
                logger.warning(f"Forcing term of dimension {d} cannot be trained: no function approximator.")
                continue
            save_directory_dim = f"{save_directory}/dim{d}" if save_directory else None
            if fa.is_trained():
                fa.retrain(inputs, targets[:, d], save_directory_dim, overwrite)
            else:
                fa.train(inputs, targets[:, d], save_directory_dim, overwrite)
            logger.info(f"Trained forcing term of dimension {d} on {trajectory.length()} samples.")

    def compute_function_approximator_inputs_and_targets(self, trajectory):
        """Phase (T, 1) and forcing term targets (T, D) implied by a demonstration."""
        if trajectory.dim() != self._D:
            raise ValueError(f"Trajectory has {trajectory.dim()} dimensions, DMP has {self._D}.")
        ts = trajectory.ts
        phase, _ = self.phase_system.analytical_solution(ts)
        gating, _ = self.gating_system.analytical_solution(ts)
        if self.goal_system is not None:
            goals, _ = self.goal_system.analytical_solution(ts)
        else:
            goals = np.tile(self.y_attr, (ts.shape[0], 1))

        tau = self.tau
        y, yd, ydd = trajectory.ys, trajectory.yds, trajectory.ydds
        targets = tau**2 * ydd - self.alpha * (self.beta * (goals - y) - tau * yd)
        gating = gating[:, 0]
        valid = gating > 1e-10
        targets[valid] /= gating[valid, None]
        targets[~valid] = 0.0
        targets /= self._scaling[None, :]
        return phase, targets

    # ----- Flat parameter vector -----
    def get_flat_params(self):
        """Concatenated parameters of the trained forcing term approximators."""
        parts = [fa.get_flat_params() for fa in self.function_approximators
                 if fa is not None and fa.is_trained()]
        return np.concatenate(parts) if parts else np.zeros(0)

    def set_flat_params(self, flat):
        flat = np.asarray(flat, dtype=float).reshape(-1)
        if flat.shape[0] != self.n_params():
            raise ValueError(f"Expected {self.n_params()} parameters, got {flat.shape[0]}.")
        self._set_flat_params_of(self.function_approximators, flat)

    def n_params(self):
        return sum(fa.n_params() for fa in self.function_approximators if fa is not None)

    @staticmethod
    def _set_flat_params_of(function_approximators, flat):
        idx = 0
        for fa in function_approximators:
            if fa is None or not fa.is_trained():
                continue
            n = fa.n_params()
            fa.set_flat_params(flat[idx:idx+n])
            idx += n
        return idx

    def clone(self):
        return copy.deepcopy(self)


@njit(cache=True)
def spring_damper_numba(y, z, goal, forcing, tau, alpha, beta, yd, zd):
    for d in range(y.shape[0]):
        yd[d] = z[d] / tau
        zd[d] = (alpha * (beta * (goal[d] - y[d]) - z[d]) + forcing[d]) / tau


@njit(cache=True)
def integrate_spring_damper_numba(ts, y_init, goals, forcing_terms, tau, alpha, beta,
                                  ys, zs, yds, zds):
    """Euler integration of the spring-damper part along ts, fills ys, zs, yds, zds."""
    T = ts.shape[0]
    D = y_init.shape[0]
    for d in range(D):
        ys[0, d] = y_init[d]
        zs[0, d] = 0.0
    for t in range(T):
        if t > 0:
            dt = ts[t] - ts[t-1]
            for d in range(D):
                ys[t, d] = ys[t-1, d] + dt * yds[t-1, d]
                zs[t, d] = zs[t-1, d] + dt * zds[t-1, d]
        for d in range(D):
            yds[t, d] = zs[t, d] / tau
            zds[t, d] = (alpha * (beta * (goals[t, d] - ys[t, d]) - zs[t, d]) + forcing_terms[t, d]) / tau
    return ys, zs, yds, zds
