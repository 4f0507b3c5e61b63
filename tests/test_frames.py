from __future__ import annotations

import math

import numpy as np

from multigait.contract import frames


def quat_about_axis(axis, angle: float) -> np.ndarray:
    axis = np.asarray(axis, dtype=np.float64)
    axis = axis / np.linalg.norm(axis)
    return np.concatenate([[math.cos(angle / 2.0)], axis * math.sin(angle / 2.0)])


def test_identity_quaternion_gives_identity_rotation() -> None:
    rot = frames.quat_to_rot_mat(np.array([1.0, 0.0, 0.0, 0.0]))
    assert np.allclose(rot, np.eye(3))


def test_yaw_rotation_maps_body_x_to_world_y() -> None:
    rot = frames.quat_to_rot_mat(quat_about_axis([0, 0, 1], math.pi / 2))
    assert np.allclose(rot @ np.array([1.0, 0.0, 0.0]), [0.0, 1.0, 0.0], atol=1e-12)
    assert np.allclose(frames.world_to_body(rot, [1.0, 0.0, 0.0]), [0.0, -1.0, 0.0], atol=1e-12)


def test_rotation_is_orthonormal_for_random_quaternions() -> None:
    rng = np.random.default_rng(0)
    for _ in range(20):
        rot = frames.quat_to_rot_mat(rng.normal(size=4))
        assert np.allclose(rot.T @ rot, np.eye(3), atol=1e-12)
        assert math.isclose(np.linalg.det(rot), 1.0, rel_tol=1e-9)


def test_non_unit_quaternion_is_normalized() -> None:
    q = quat_about_axis([1, 0, 0], 0.3)
    assert np.allclose(frames.quat_to_rot_mat(5.0 * q), frames.quat_to_rot_mat(q))


def test_zero_quaternion_falls_back_to_identity() -> None:
    assert np.allclose(frames.normalize_quat_wxyz(np.zeros(4)), [1.0, 0.0, 0.0, 0.0])
    rot = frames.quat_to_rot_mat(np.zeros(4))
    assert np.all(np.isfinite(rot))
    assert np.allclose(rot, np.eye(3))


def test_up_vector_tilts_with_roll() -> None:
    roll = 0.4
    rot = frames.quat_to_rot_mat(quat_about_axis([1, 0, 0], roll))
    up = frames.up_vector_body(rot)
    assert np.allclose(up, [0.0, math.sin(roll), math.cos(roll)])
    assert math.isclose(float(np.linalg.norm(up)), 1.0)


def test_contact_impulse_world_uses_frame_rows_as_axes() -> None:
    # Normal along the first row, pointing up.
    frame = np.array([[0.0, 0.0, 1.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
    impulse = frames.contact_impulse_world(frame, np.array([5.0, 0.5, -0.25]))
    assert np.allclose(impulse, [0.5, -0.25, 5.0])
