# tests/test_function_approximators.py
import os

import numpy as np
import pytest

from primitives.function_approximators import (
    FunctionApproximator,
    FunctionApproximatorRBFN,
    MODEL_FILENAME,
)


@pytest.fixture
def inputs():
    return np.linspace(0.0, 1.0, 50)


def test_untrained_model(rbfn):
    assert not rbfn.is_trained()
    assert rbfn.n_params() == 0
    with pytest.raises(ValueError):
        rbfn.predict(np.array([0.5]))


def test_constant_is_fitted_exactly(rbfn, inputs):
    rbfn.train(inputs, np.full(50, 5.0))
    assert rbfn.is_trained()
    np.testing.assert_allclose(rbfn.predict(inputs), 5.0, atol=1e-8)


def test_smooth_function_is_fitted(inputs):
    fa = FunctionApproximatorRBFN(n_basis_functions=15)
    targets = np.sin(2 * np.pi * inputs)
    fa.train(inputs[:, None], targets[:, None])
    assert np.max(np.abs(fa.predict(inputs) - targets)) < 0.05


def test_regularized_fit(inputs):
    fa = FunctionApproximatorRBFN(n_basis_functions=10, regularization=1e-6)
    fa.train(inputs, 2.0 * inputs)
    assert np.max(np.abs(fa.predict(inputs) - 2.0 * inputs)) < 0.05


def test_train_twice_requires_retrain(rbfn, inputs):
    rbfn.train(inputs, np.ones(50))
    with pytest.raises(ValueError):
        rbfn.train(inputs, np.ones(50))
    rbfn.retrain(inputs, np.full(50, 3.0))
    assert rbfn.predict(np.array([0.3]))[0] == pytest.approx(3.0, abs=1e-8)


def test_training_data_is_checked(rbfn, inputs):
    with pytest.raises(ValueError):
        rbfn.train(inputs, np.ones(49))
    with pytest.raises(ValueError):
        rbfn.train(np.zeros((50, 2)), np.ones(50))
    with pytest.raises(ValueError):
        rbfn.train(np.zeros(0), np.zeros(0))
    assert not rbfn.is_trained()


def test_invalid_construction():
    with pytest.raises(ValueError):
        FunctionApproximatorRBFN(n_basis_functions=0)
    with pytest.raises(ValueError):
        FunctionApproximatorRBFN(intersection_height=1.5)


def test_predict_into_buffer(rbfn, inputs):
    rbfn.train(inputs, inputs**2)
    buffer = np.zeros(3)
    result = rbfn.predict(np.array([[0.1], [0.5], [0.9]]), buffer)
    assert result is buffer
    np.testing.assert_allclose(buffer, rbfn.predict(np.array([0.1, 0.5, 0.9])))
    with pytest.raises(ValueError):
        rbfn.predict(np.array([0.1, 0.5]), buffer)


def test_degenerate_input_range(rbfn):
    rbfn.train(np.full(10, 0.3), np.full(10, 2.0))
    assert rbfn.predict(np.array([0.3]))[0] == pytest.approx(2.0, abs=1e-8)


def test_clone_is_independent(rbfn, inputs):
    rbfn.train(inputs, np.ones(50))
    clone = rbfn.clone()
    rbfn.retrain(inputs, np.zeros(50))
    assert clone.predict(np.array([0.5]))[0] == pytest.approx(1.0, abs=1e-8)


def test_flat_params(rbfn, inputs):
    rbfn.train(inputs, inputs)
    assert rbfn.n_params() == 10
    rbfn.set_flat_params(np.full(10, 4.0))
    np.testing.assert_allclose(rbfn.predict(inputs), 4.0, atol=1e-8)
    with pytest.raises(ValueError):
        rbfn.set_flat_params(np.zeros(9))
    with pytest.raises(ValueError):
        FunctionApproximatorRBFN().set_flat_params(np.zeros(10))


def test_save_and_load(rbfn, inputs, tmp_path):
    rbfn.train(inputs, inputs**2, save_directory=str(tmp_path / "fa"))

    for name in (MODEL_FILENAME, "inputs.txt", "targets.txt", "predictions.txt"):
        assert os.path.exists(tmp_path / "fa" / name)
    loaded = FunctionApproximator.load(str(tmp_path / "fa"))
    assert isinstance(loaded, FunctionApproximatorRBFN)
    np.testing.assert_allclose(loaded.predict(inputs), rbfn.predict(inputs))


def test_save_refuses_to_overwrite(rbfn, inputs, tmp_path, log_messages):
    rbfn.train(inputs, np.ones(50), save_directory=str(tmp_path))
    rbfn.retrain(inputs, np.full(50, 2.0), save_directory=str(tmp_path))

    assert any(level == "WARNING" for level, _ in log_messages)
    assert FunctionApproximator.load(str(tmp_path)).predict(np.array([0.5]))[0] == pytest.approx(1.0, abs=1e-8)

    rbfn.retrain(inputs, np.full(50, 2.0), save_directory=str(tmp_path), overwrite=True)
    assert FunctionApproximator.load(str(tmp_path)).predict(np.array([0.5]))[0] == pytest.approx(2.0, abs=1e-8)
