# tests/test_trajectory.py
import numpy as np
import pytest

from primitives.trajectory import Trajectory


def test_min_jerk_boundaries(ts):
    traj = Trajectory.from_min_jerk(ts, [0.0, 1.0], [1.0, 3.0])
    assert traj.length() == 101
    assert traj.dim() == 2
    assert traj.dim_misc() == 0
    np.testing.assert_allclose(traj.initial_y(), [0.0, 1.0])
    np.testing.assert_allclose(traj.final_y(), [1.0, 3.0])
    np.testing.assert_allclose(traj.yds[[0, -1]], 0.0, atol=1e-12)
    assert traj.yds[50, 0] == pytest.approx(1.875)


def test_missing_derivatives_are_computed(ts):
    reference = Trajectory.from_min_jerk(ts, [0.0], [1.0])
    traj = Trajectory(ts, reference.ys)
    np.testing.assert_allclose(traj.yds, reference.yds, atol=2e-2)
    assert traj.ydds.shape == (101, 1)


def test_shapes_are_checked(ts):
    with pytest.raises(ValueError):
        Trajectory(ts, np.zeros((100, 2)))
    with pytest.raises(ValueError):
        Trajectory(ts, np.zeros((101, 2)), yds=np.zeros((101, 3)))
    traj = Trajectory(ts, np.zeros((101, 2)))
    with pytest.raises(ValueError):
        traj.misc = np.zeros((50, 1))


def test_misc_channel(ts):
    traj = Trajectory(ts, np.zeros(101), misc=np.ones(101))
    assert traj.misc.shape == (101, 1)
    traj.append_misc(np.zeros((101, 2)))
    assert traj.dim_misc() == 3
    traj.misc = None
    assert traj.dim_misc() == 0
    traj.append_misc(np.ones(101))
    assert traj.dim_misc() == 1


def test_resample_keeps_misc(ts):
    traj = Trajectory.from_min_jerk(ts, [0.0], [2.0], misc=np.column_stack([ts, 2 * ts]))
    resampled = traj.resample(np.linspace(0.0, 1.0, 11))
    assert resampled.length() == 11
    np.testing.assert_allclose(resampled.misc[:, 1], 2 * np.linspace(0.0, 1.0, 11), atol=1e-12)
    np.testing.assert_allclose(resampled.final_y(), [2.0])


def test_pickle_roundtrip(ts, tmp_path):
    traj = Trajectory.from_min_jerk(ts, [0.0], [1.0], misc=np.full((101, 2), 3.0))
    filename = str(tmp_path / "traj.pkl")
    traj.save(filename)
    loaded = Trajectory.load(filename)
    np.testing.assert_array_equal(loaded.as_matrix(), traj.as_matrix())


def test_txt_roundtrip(ts, tmp_path):
    traj = Trajectory.from_min_jerk(ts, [0.0, 1.0], [1.0, 0.0], misc=np.full((101, 1), 3.0))
    filename = str(tmp_path / "traj.txt")
    traj.save_txt(filename)
    loaded = Trajectory.load_txt(filename, dim_misc=1)
    assert loaded.dim() == 2
    np.testing.assert_allclose(loaded.misc, traj.misc)
    np.testing.assert_allclose(loaded.ydds, traj.ydds)


def test_from_matrix_rejects_bad_column_count():
    with pytest.raises(ValueError):
        Trajectory.from_matrix(np.zeros((5, 6)), dim_misc=1)
