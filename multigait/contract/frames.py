from __future__ import annotations

import numpy as np


def normalize_quat_wxyz(quat_wxyz: np.ndarray) -> np.ndarray:
    quat = np.asarray(quat_wxyz, dtype=np.float64).reshape(4)
    n = float(np.linalg.norm(quat))
    if not np.isfinite(n) or n <= 1e-8:
        return np.array([1.0, 0.0, 0.0, 0.0], dtype=np.float64)
    return quat / n


def quat_to_rot_mat(quat_wxyz: np.ndarray) -> np.ndarray:
    """Rotation matrix (body -> world) of a (w, x, y, z) quaternion."""
    w, x, y, z = [float(v) for v in normalize_quat_wxyz(quat_wxyz)]
    return np.array(
        [
            [1.0 - 2.0 * (y * y + z * z), 2.0 * (x * y - w * z), 2.0 * (x * z + w * y)],
            [2.0 * (x * y + w * z), 1.0 - 2.0 * (x * x + z * z), 2.0 * (y * z - w * x)],
            [2.0 * (x * z - w * y), 2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y)],
        ],
        dtype=np.float64,
    )


def world_to_body(rot: np.ndarray, vec_world: np.ndarray) -> np.ndarray:
    return np.asarray(rot, dtype=np.float64).T @ np.asarray(vec_world, dtype=np.float64).reshape(3)


def body_to_world(rot: np.ndarray, vec_body: np.ndarray) -> np.ndarray:
    return np.asarray(rot, dtype=np.float64) @ np.asarray(vec_body, dtype=np.float64).reshape(3)


def up_vector_body(rot: np.ndarray) -> np.ndarray:
    # Third row of R: world z-axis expressed in body axes.
    return np.array(rot[2, :], dtype=np.float64)


def contact_impulse_world(contact_frame: np.ndarray, impulse_local: np.ndarray) -> np.ndarray:
    """Map a contact-frame impulse to world coordinates.

    Rows of ``contact_frame`` are the contact axes expressed in world.
    """
    frame = np.asarray(contact_frame, dtype=np.float64).reshape(3, 3)
    return frame.T @ np.asarray(impulse_local, dtype=np.float64).reshape(3)
