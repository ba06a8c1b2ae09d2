#usr/bin/env python3
"""
DMP that also outputs gain schedules.
Next to position/velocity, every integration step returns a (G,) gain vector:
  gains_g = k_g(x)     (0 if the g-th gain model is absent or untrained)
Where:
 - x   : phase variable of the underlying DMP
 - k_g : function approximator trained on the g-th column of the
         demonstration's misc channel, against the DMP's own analytical phase
The step-wise path (integrate_start / integrate_step) reuses buffers sized at
construction and is meant to run inside a control loop. Not thread-safe: the
buffers are shared between calls, clone() the engine for each thread instead.
"""
import numpy as np
from loguru import logger

from primitives.dmp import Dmp


class GainScheduleConfigurationError(ValueError):
    """Gain models and demonstration data do not fit together."""


class GainScheduleSlots:
    """
    Fixed-length sequence of optional gain models, one per gain dimension.
    Present models are owned: they are cloned on the way in and on duplication.
    """
    def __init__(self, function_approximators=()):
        self._slots = [None if fa is None else fa.clone() for fa in function_approximators]

    def __len__(self):
        return len(self._slots)

    def __getitem__(self, index):
        return self._slots[index]

    def __iter__(self):
        return iter(self._slots)

    def is_empty(self):
        return len(self._slots) == 0

    def duplicate(self):
        """Independent deep copy, absent slots stay absent."""
        return GainScheduleSlots(self._slots)

    def __deepcopy__(self, memo):
        return self.duplicate()

    def release(self):
        """Drop every owned model."""
        self._slots.clear()


class DmpWithGainSchedules(Dmp):
    def __init__(self, tau, y_init, y_attr, function_approximators,
                 function_approximators_gains=(), **kwargs):
        """
        function_approximators: D forcing term models, see Dmp
        function_approximators_gains: one model (or None) per gain dimension.
            An empty sequence disables gain computation: the step-wise
            integration then returns empty gain vectors.
        kwargs: passed on to Dmp
        """
        super().__init__(tau, y_init, y_attr, function_approximators, **kwargs)
        self._init_gain_slots(function_approximators_gains)

    @classmethod
    def from_dmp(cls, dmp, function_approximators_gains=()):
        """Wrap a copy of an existing DMP (trained or not)."""
        dmp = dmp.clone()
        return cls(dmp.tau, dmp.y_init, dmp.y_attr, dmp.function_approximators,
                   function_approximators_gains,
                   alpha_spring_damper=dmp.alpha,
                   goal_system=dmp.goal_system,
                   phase_system=dmp.phase_system,
                   gating_system=dmp.gating_system,
                   forcing_term_scaling=dmp.forcing_term_scaling)

    def _init_gain_slots(self, function_approximators_gains):
        self.gain_slots = GainScheduleSlots(function_approximators_gains)
        # Scratch buffers, sized here so that the single-sample path never allocates
        self._gains_one_prealloc = np.zeros(1)
        self._gains_prealloc = np.zeros(1)
        self._gains_output_one = np.zeros((1, self.dim_gains()))

    def dim_gains(self):
        return len(self.gain_slots)

    def scratch_shapes(self):
        return {
            "one": self._gains_one_prealloc.shape,
            "many": self._gains_prealloc.shape,
            "output_one": self._gains_output_one.shape,
        }

    # ----- Evaluation -----
    def compute_gains(self, phase_state, fa_output=None):
        """
        Gain model outputs for a batch of phases.
        phase_state: (T, 1) or (T,) phases
        fa_output: optional (T, G) buffer, filled in place
        Returns (T, G); column g is zero if slot g is absent or untrained.
        """
        T = phase_state.shape[0]
        G = self.dim_gains()
        if fa_output is None:
            fa_output = np.zeros((T, G))
        elif fa_output.shape != (T, G):
            raise ValueError(f"Gain output buffer has shape {fa_output.shape}, expected {(T, G)}.")
        else:
            fa_output.fill(0.0)

        if T == 1:
            prediction = self._gains_one_prealloc
        else:
            if self._gains_prealloc.shape[0] < T:
                logger.debug(f"Growing gain prediction buffer from {self._gains_prealloc.shape[0]} to {T} samples.")
                self._gains_prealloc = np.zeros(T)
            prediction = self._gains_prealloc[:T]

        for g, fa in enumerate(self.gain_slots):
            if fa is not None and fa.is_trained():
                fa.predict(phase_state, prediction)
                fa_output[:, g] = prediction
        return fa_output

    def _gains_at_state(self, x, gains):
        if gains is None:
            gains = np.zeros(self.dim_gains())
        if self.gain_slots.is_empty():
            return gains
        self.compute_gains(self.get_phase(x), self._gains_output_one)
        gains[:] = self._gains_output_one[0]
        return gains

    # ----- Step-wise integration -----
    def integrate_start(self, x=None, xd=None, gains=None):
        """Initial state, its rate of change and the (G,) gains at the initial phase."""
        x, xd = super().integrate_start(x, xd)
        return x, xd, self._gains_at_state(x, gains)

    def integrate_step(self, dt, x, x_updated=None, xd_updated=None, gains=None):
        """
        Advance by dt; the gains are those at the phase of the updated state.
        All output arguments are optional buffers, filled in place.
        """
        x_updated, xd_updated = super().integrate_step(dt, x, x_updated, xd_updated)
        return x_updated, xd_updated, self._gains_at_state(x_updated, gains)

    # ----- Closed-form solution -----
    def analytical_solution(self, ts):
        """
        Returns xs, xds, forcing_terms, fa_outputs (see Dmp) and the (T, G)
        gains, evaluated in one batch over the whole phase trajectory.
        """
        xs, xds, forcing_terms, fa_outputs = super().analytical_solution(ts)
        if self.gain_slots.is_empty():
            fa_gains = np.zeros((xs.shape[0], 0))
        else:
            fa_gains = self.compute_gains(self.get_phase(xs))
        return xs, xds, forcing_terms, fa_outputs, fa_gains

    def analytical_solution_as_trajectory(self, ts):
        """Reproduced trajectory, with the gains stored in its misc channel."""
        xs, xds, _, _, fa_gains = self.analytical_solution(ts)
        trajectory = self.states_as_trajectory(ts, xs, xds)
        if fa_gains.shape[1] > 0:
            trajectory.misc = fa_gains
        return trajectory

    # ----- Training -----
    def train(self, trajectory, save_directory=None, overwrite=False):
        """
        Train the DMP on the demonstration, then each gain model on the matching
        column of trajectory.misc, using the DMP's analytical phase as input.
        Not transactional: the DMP stays trained if the gain data is rejected,
        and earlier gain models stay trained if a later one fails.
        """
        super().train(trajectory, save_directory, overwrite)

        xs_ana = Dmp.analytical_solution(self, trajectory.ts)[0]
        xs_phase = self.get_phase(xs_ana)

        n_gains = self.dim_gains()
        if trajectory.dim_misc() != n_gains:
            raise GainScheduleConfigurationError(
                f"Trajectory has {trajectory.dim_misc()} misc columns, "
                f"but {n_gains} gain function approximators are configured.")
        if n_gains == 0:
            raise GainScheduleConfigurationError("Cannot train gain schedules: none are configured.")
        targets = trajectory.misc

        for g, fa in enumerate(self.gain_slots):
            save_directory_gain = None
            if save_directory:
                save_directory_gain = save_directory if n_gains == 1 else f"{save_directory}/gains{g}"

            if fa is None:
                logger.warning(f"Gain function approximator {g} cannot be trained because it is None.")
                continue
            if fa.is_trained():
                fa.retrain(xs_phase, targets[:, g], save_directory_gain, overwrite)
            else:
                fa.train(xs_phase, targets[:, g], save_directory_gain, overwrite)
            logger.info(f"Trained gain schedule {g} on {trajectory.length()} samples.")

    # ----- Flat parameter vector -----
    def get_flat_params(self):
        """DMP parameters followed by those of every trained gain model."""
        parts = [super().get_flat_params()]
        parts += [fa.get_flat_params() for fa in self.gain_slots
                  if fa is not None and fa.is_trained()]
        return np.concatenate(parts)

    def set_flat_params(self, flat):
        flat = np.asarray(flat, dtype=float).reshape(-1)
        if flat.shape[0] != self.n_params():
            raise ValueError(f"Expected {self.n_params()} parameters, got {flat.shape[0]}.")
        n_dmp = super().n_params()
        self._set_flat_params_of(self.function_approximators, flat[:n_dmp])
        self._set_flat_params_of(self.gain_slots, flat[n_dmp:])

    def n_params(self):
        return super().n_params() + sum(fa.n_params() for fa in self.gain_slots if fa is not None)

    def release(self):
        self.gain_slots.release()
