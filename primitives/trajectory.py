#usr/bin/env python3
"""
Trajectory container used for demonstrations and reproductions.
Holds:
  ts   : (T,)   time vector
  ys   : (T, D) positions
  yds  : (T, D) velocities
  ydds : (T, D) accelerations
  misc : (T, M) auxiliary channel (e.g. gain schedules), or None
"""
import pickle

import numpy as np
from loguru import logger
from scipy.interpolate import interp1d


class Trajectory:
    def __init__(self, ts, ys, yds=None, ydds=None, misc=None):
        """
        ts: (T,) time vector
        ys: (T, D) or (T,) positions
        yds, ydds: optional derivatives, computed by finite differences if missing
        misc: optional (T, M) auxiliary values
        """
        self.ts = np.asarray(ts, dtype=float).reshape(-1)
        T = self.ts.shape[0]
        self.ys = _as_matrix(ys, T, "ys")
        if yds is None:
            yds = _differentiate(self.ys, self.ts)
        self.yds = _as_matrix(yds, T, "yds")
        if ydds is None:
            ydds = _differentiate(self.yds, self.ts)
        self.ydds = _as_matrix(ydds, T, "ydds")
        if self.yds.shape != self.ys.shape or self.ydds.shape != self.ys.shape:
            raise ValueError("ys, yds and ydds must have the same shape")
        self._misc = None
        self.misc = misc

    @classmethod
    def from_min_jerk(cls, ts, y_from, y_to, misc=None):
        """
        Point-to-point minimum-jerk trajectory (10τ³ - 15τ⁴ + 6τ⁵ time law).
        """
        ts = np.asarray(ts, dtype=float)
        y_from = np.atleast_1d(np.asarray(y_from, dtype=float))
        y_to = np.atleast_1d(np.asarray(y_to, dtype=float))
        duration = ts[-1] - ts[0]
        tau = ((ts - ts[0]) / duration)[:, None]
        delta = (y_to - y_from)[None, :]

        s = 10*tau**3 - 15*tau**4 + 6*tau**5
        ds = (30*tau**2 - 60*tau**3 + 30*tau**4) / duration
        dds = (60*tau - 180*tau**2 + 120*tau**3) / duration**2

        return cls(ts, y_from + s * delta, ds * delta, dds * delta, misc=misc)

    @property
    def misc(self):
        return self._misc

    @misc.setter
    def misc(self, values):
        if values is None:
            self._misc = None
            return
        self._misc = _as_matrix(values, self.length(), "misc")

    def length(self):
        return self.ts.shape[0]

    def dim(self):
        return self.ys.shape[1]

    def dim_misc(self):
        return 0 if self._misc is None else self._misc.shape[1]

    def duration(self):
        return self.ts[-1] - self.ts[0]

    def final_time(self):
        return self.ts[-1]

    def initial_y(self):
        return self.ys[0].copy()

    def final_y(self):
        return self.ys[-1].copy()

    def append_misc(self, values):
        """Add columns to the misc channel."""
        values = _as_matrix(values, self.length(), "misc")
        if self._misc is None:
            self._misc = values
        else:
            self._misc = np.hstack((self._misc, values))

    def resample(self, ts_new):
        """
        Linearly interpolate every channel onto a new time vector.
        Returns a new Trajectory; the original is left untouched.
        """
        ts_new = np.asarray(ts_new, dtype=float)

        def interp(values):
            return interp1d(self.ts, values, axis=0, fill_value="extrapolate")(ts_new)

        misc = None if self._misc is None else interp(self._misc)
        return Trajectory(ts_new, interp(self.ys), interp(self.yds), interp(self.ydds), misc)

    def as_matrix(self):
        """[t | y | yd | ydd | misc] as a (T, 1+3D+M) matrix."""
        parts = [self.ts[:, None], self.ys, self.yds, self.ydds]
        if self._misc is not None:
            parts.append(self._misc)
        return np.hstack(parts)

    @classmethod
    def from_matrix(cls, data, dim_misc=0):
        data = np.atleast_2d(np.asarray(data, dtype=float))
        n_cols = data.shape[1] - 1 - dim_misc
        if n_cols <= 0 or n_cols % 3 != 0:
            raise ValueError(f"Cannot split {data.shape[1]} columns into t, y, yd, ydd "
                             f"and {dim_misc} misc columns")
        D = n_cols // 3
        misc = data[:, 1+3*D:] if dim_misc > 0 else None
        return cls(data[:, 0], data[:, 1:1+D], data[:, 1+D:1+2*D], data[:, 1+2*D:1+3*D], misc)

    def save_txt(self, filename):
        np.savetxt(filename, self.as_matrix())

    @classmethod
    def load_txt(cls, filename, dim_misc=0):
        return cls.from_matrix(np.loadtxt(filename), dim_misc=dim_misc)

    def save(self, filename):
        data = {"ts": self.ts, "ys": self.ys, "yds": self.yds, "ydds": self.ydds, "misc": self._misc}
        with open(filename, 'wb') as f:
            pickle.dump(data, f)
        logger.info(f"Saved trajectory to {filename}")

    @classmethod
    def load(cls, filename):
        with open(filename, 'rb') as f:
            data = pickle.load(f)
        return cls(data["ts"], data["ys"], data["yds"], data["ydds"], data.get("misc"))


def _as_matrix(values, n_rows, name):
    values = np.asarray(values, dtype=float)
    if values.ndim == 1:
        values = values[:, None]
    if values.ndim != 2 or values.shape[0] != n_rows:
        raise ValueError(f"{name} must have {n_rows} rows, got shape {values.shape}")
    return values


def _differentiate(values, ts):
    if ts.shape[0] < 2:
        return np.zeros_like(values)
    return np.gradient(values, ts, axis=0)
