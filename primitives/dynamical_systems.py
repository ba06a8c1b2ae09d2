#usr/bin/env python3
"""
First-order dynamical systems used inside the movement primitive:
 - ExponentialSystem : x_dot = alpha (x_attr - x) / tau      (phase, goal)
 - SigmoidSystem     : logistic decay from x_init towards 0  (gating)
 - TimeSystem        : x = t / tau clipped to [0, 1]         (linear phase)
All of them can be integrated step-wise (Euler) or solved in closed form.
"""
from abc import ABC, abstractmethod

import numpy as np


class DynamicalSystem(ABC):
    def __init__(self, tau, x_init, x_attr):
        self.tau = float(tau)
        self.x_init = np.atleast_1d(np.asarray(x_init, dtype=float)).copy()
        self.x_attr = np.atleast_1d(np.asarray(x_attr, dtype=float)).copy()
        if self.x_init.shape != self.x_attr.shape:
            raise ValueError("x_init and x_attr must have the same size.")

    @property
    def dim(self):
        return self.x_init.shape[0]

    def integrate_start(self):
        x = self.x_init.copy()
        return x, self.differential_equation(x)

    def integrate_step(self, dt, x):
        """Euler step, returns the updated state and its rate of change."""
        x_updated = x + dt * self.differential_equation(x)
        return x_updated, self.differential_equation(x_updated)

    @abstractmethod
    def differential_equation(self, x):
        pass

    @abstractmethod
    def analytical_solution(self, ts):
        """Return (xs, xds), both (T, dim)."""
        pass


class ExponentialSystem(DynamicalSystem):
    def __init__(self, tau, x_init, x_attr, alpha=6.0):
        super().__init__(tau, x_init, x_attr)
        self.alpha = float(alpha)

    def differential_equation(self, x):
        return self.alpha * (self.x_attr - x) / self.tau

    def analytical_solution(self, ts):
        ts = np.asarray(ts, dtype=float)[:, None]
        decay = np.exp(-self.alpha * ts / self.tau)
        delta = (self.x_init - self.x_attr)[None, :]
        xs = self.x_attr[None, :] + delta * decay
        xds = -self.alpha / self.tau * delta * decay
        return xs, xds


class SigmoidSystem(DynamicalSystem):
    """
    Logistic decay x(t) = K / (1 + b exp(r t / tau)), with b chosen such that
    x(0) = x_init and the inflection point x = K/2 lies at t = inflection_ratio * tau.
    """
    def __init__(self, tau, x_init, max_rate=10.0, inflection_ratio=0.9):
        x_init = np.atleast_1d(np.asarray(x_init, dtype=float))
        super().__init__(tau, x_init, np.zeros_like(x_init))
        if max_rate <= 0.0:
            raise ValueError("max_rate must be positive.")
        self.max_rate = float(max_rate)
        self.inflection_ratio = float(inflection_ratio)
        self._b = np.exp(-self.max_rate * self.inflection_ratio)
        self._K = self.x_init * (1.0 + self._b)

    def differential_equation(self, x):
        return -self.max_rate / self.tau * x * (1.0 - x / self._K)

    def analytical_solution(self, ts):
        ts = np.asarray(ts, dtype=float)[:, None]
        exp_rt = np.exp(self.max_rate * ts / self.tau)
        denom = 1.0 + self._b * exp_rt
        xs = self._K[None, :] / denom
        xds = -self._K[None, :] * self._b * self.max_rate / self.tau * exp_rt / denom**2
        return xs, xds


class TimeSystem(DynamicalSystem):
    def __init__(self, tau, count_down=False):
        if count_down:
            super().__init__(tau, [1.0], [0.0])
        else:
            super().__init__(tau, [0.0], [1.0])
        self.count_down = count_down

    def differential_equation(self, x):
        rate = -1.0 / self.tau if self.count_down else 1.0 / self.tau
        if self.count_down:
            return np.where(x > 0.0, rate, 0.0)
        return np.where(x < 1.0, rate, 0.0)

    def integrate_step(self, dt, x):
        x_updated = np.clip(x + dt * self.differential_equation(x), 0.0, 1.0)
        return x_updated, self.differential_equation(x_updated)

    def analytical_solution(self, ts):
        ts = np.asarray(ts, dtype=float)[:, None]
        progress = np.clip(ts / self.tau, 0.0, 1.0)
        xs = 1.0 - progress if self.count_down else progress
        return xs, self.differential_equation(xs)
