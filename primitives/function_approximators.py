#usr/bin/env python3
"""
Regression models used by the movement primitives.
Every model maps a (T,) or (T, 1) input (usually the phase variable)
to a (T,) output and offers the same small capability set:
  is_trained / train / retrain / predict / clone
plus flat parameter access for policy search and directory persistence.
"""
import copy
import math
import os
import pickle
from abc import ABC, abstractmethod

import numpy as np
from loguru import logger
from numba import njit

MODEL_FILENAME = "function_approximator.pkl"


class FunctionApproximator(ABC):
    def __init__(self):
        self._trained = False
        self._training_inputs = None
        self._training_targets = None

    def is_trained(self):
        return self._trained

    def train(self, inputs, targets, save_directory=None, overwrite=False):
        """
        Fit the model from scratch.
        inputs: (T,) or (T, 1)
        targets: (T,) or (T, 1)
        save_directory: if given, the trained model is saved there
        """
        if self._trained:
            raise ValueError("Function approximator is already trained, use retrain() instead.")
        inputs = _as_input_vector(inputs)
        targets = _as_input_vector(targets)
        if inputs.shape[0] != targets.shape[0]:
            raise ValueError(f"Number of inputs ({inputs.shape[0]}) and targets "
                             f"({targets.shape[0]}) must match.")
        if inputs.shape[0] == 0:
            raise ValueError("Cannot train on an empty set of samples.")

        self._train(inputs, targets)
        self._training_inputs = inputs.copy()
        self._training_targets = targets.copy()
        self._trained = True

        if save_directory:
            self.save(save_directory, overwrite=overwrite)

    def retrain(self, inputs, targets, save_directory=None, overwrite=False):
        """Forget the current fit and train again on new data."""
        self._trained = False
        self.train(inputs, targets, save_directory, overwrite)

    def predict(self, inputs, outputs=None):
        """
        Evaluate the model.
        inputs: (T,) or (T, 1)
        outputs: optional (T,) float buffer that receives the predictions in place
        Returns the (T,) predictions (the `outputs` buffer itself when given).
        """
        if not self._trained:
            raise ValueError("Function approximator must be trained before calling predict().")
        inputs = _as_input_vector(inputs)
        if outputs is None:
            outputs = np.empty(inputs.shape[0])
        elif outputs.shape[0] != inputs.shape[0]:
            raise ValueError(f"Output buffer has {outputs.shape[0]} rows, "
                             f"expected {inputs.shape[0]}.")
        self._predict(inputs, outputs)
        return outputs

    def clone(self):
        return copy.deepcopy(self)

    @abstractmethod
    def _train(self, inputs, targets):
        pass

    @abstractmethod
    def _predict(self, inputs, outputs):
        pass

    @abstractmethod
    def get_flat_params(self):
        pass

    @abstractmethod
    def set_flat_params(self, flat):
        pass

    def n_params(self):
        return self.get_flat_params().shape[0] if self._trained else 0

    def save(self, directory, overwrite=False):
        """
        Save the model and its training data under `directory`.
        Returns False (and writes nothing) if a model is already stored there
        and overwrite is False.
        """
        filename = os.path.join(directory, MODEL_FILENAME)
        if os.path.exists(filename) and not overwrite:
            logger.warning(f"Not saving function approximator: {filename} exists and overwrite is False.")
            return False

        os.makedirs(directory, exist_ok=True)
        with open(filename, 'wb') as f:
            pickle.dump(self, f)
        if self._trained:
            np.savetxt(os.path.join(directory, "inputs.txt"), self._training_inputs)
            np.savetxt(os.path.join(directory, "targets.txt"), self._training_targets)
            np.savetxt(os.path.join(directory, "predictions.txt"), self.predict(self._training_inputs))
        logger.info(f"Saved {type(self).__name__} to {directory}")
        return True

    @staticmethod
    def load(directory):
        filename = os.path.join(directory, MODEL_FILENAME)
        with open(filename, 'rb') as f:
            fa = pickle.load(f)
        if not isinstance(fa, FunctionApproximator):
            raise ValueError(f"{filename} does not contain a function approximator.")
        logger.info(f"Loaded {type(fa).__name__} from {directory}")
        return fa


class FunctionApproximatorRBFN(FunctionApproximator):
    """
    Normalized radial basis function network:
      y(x) = sum_b h_b(x) w_b,   h_b(x) = a_b(x) / sum_j a_j(x)
      a_b(x) = exp(-0.5 (x - c_b)^2 / s_b^2)
    Centers are spread evenly over the training input range, widths are set
    so that neighbouring kernels intersect at `intersection_height`.
    """
    def __init__(self, n_basis_functions=10, intersection_height=0.5, regularization=0.0):
        """
        n_basis_functions: number of Gaussian kernels
        intersection_height: activation at which neighbouring kernels cross, in (0, 1)
        regularization: ridge coefficient for the least-squares weights (0 = plain lstsq)
        """
        super().__init__()
        if n_basis_functions < 1:
            raise ValueError("n_basis_functions must be at least 1.")
        if not 0.0 < intersection_height < 1.0:
            raise ValueError("intersection_height must lie in (0, 1).")
        self.n_basis_functions = int(n_basis_functions)
        self.intersection_height = float(intersection_height)
        self.regularization = float(regularization)
        self.centers = None
        self.widths = None
        self.weights = None

    def _train(self, inputs, targets):
        self.centers, self.widths = self._kernel_layout(inputs.min(), inputs.max())
        H = self.normalized_activations(inputs)
        if self.regularization > 0.0:
            B = self.n_basis_functions
            A = H.T @ H + self.regularization * np.eye(B)
            self.weights = np.linalg.solve(A, H.T @ targets)
        else:
            self.weights = np.linalg.lstsq(H, targets, rcond=None)[0]

    def _kernel_layout(self, x_min, x_max):
        B = self.n_basis_functions
        centers = np.linspace(x_min, x_max, B)
        spacing = (x_max - x_min) / (B - 1) if B > 1 else 0.0
        if spacing <= 0.0:
            # single kernel or degenerate input range
            spacing = max(x_max - x_min, 1.0)
        # exp(-0.5 (spacing/2)^2 / s^2) = intersection_height
        width = 0.5 * spacing / math.sqrt(-2.0 * math.log(self.intersection_height))
        return centers, np.full(B, width)

    def normalized_activations(self, inputs):
        """(T, B) kernel activations, normalized to sum to one per sample."""
        x = _as_input_vector(inputs)[:, None]
        acts = np.exp(-0.5 * (x - self.centers)**2 / self.widths**2)
        return acts / (np.sum(acts, axis=1, keepdims=True) + 1e-12)

    def _predict(self, inputs, outputs):
        rbfn_predict_numba(inputs, self.centers, self.widths, self.weights, outputs)

    def get_flat_params(self):
        if not self._trained:
            return np.zeros(0)
        return self.weights.copy()

    def set_flat_params(self, flat):
        flat = np.asarray(flat, dtype=float).reshape(-1)
        if not self._trained:
            raise ValueError("Cannot set parameters of an untrained function approximator.")
        if flat.shape[0] != self.n_basis_functions:
            raise ValueError(f"Expected {self.n_basis_functions} parameters, got {flat.shape[0]}.")
        self.weights = flat.copy()


@njit(cache=True)
def rbfn_predict_numba(inputs, centers, widths, weights, outputs):
    """
    Allocation-free evaluation of a normalized RBFN, writes into `outputs`.
    inputs: (T,), centers/widths/weights: (B,), outputs: (T,)
    """
    T = inputs.shape[0]
    B = centers.shape[0]
    for t in range(T):
        sum_acts = 0.0
        weighted = 0.0
        for b in range(B):
            diff = inputs[t] - centers[b]
            act = math.exp(-0.5 * diff * diff / (widths[b] * widths[b]))
            sum_acts += act
            weighted += act * weights[b]
        outputs[t] = weighted / (sum_acts + 1e-12)
    return outputs


def _as_input_vector(values):
    values = np.asarray(values, dtype=float)
    if values.ndim == 2:
        if values.shape[1] != 1:
            raise ValueError(f"Expected a single input/output column, got shape {values.shape}.")
        return values[:, 0]
    if values.ndim == 0:
        return values.reshape(1)
    if values.ndim != 1:
        raise ValueError(f"Expected a (T,) or (T, 1) array, got shape {values.shape}.")
    return values
