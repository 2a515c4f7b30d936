"""
Unit quaternion helpers. Quaternions are stored as numpy arrays in
``[w, x, y, z]`` order and follow the Hamilton convention, so that
``quat_multiply(q_ab, q_bc) = q_ac``.
"""

import numpy as np
from pymlg import SO3


def quat_identity() -> np.ndarray:
    return np.array([1.0, 0.0, 0.0, 0.0])


def quat_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    r"""
    Hamilton product :math:`\mathbf{q}_1 \otimes \mathbf{q}_2`.
    """
    w1, x1, y1, z1 = np.ravel(q1)
    w2, x2, y2, z2 = np.ravel(q2)
    return np.array(
        [
            w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
            w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
            w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
            w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2,
        ]
    )


def quat_conjugate(q: np.ndarray) -> np.ndarray:
    q = np.array(q, dtype=np.float64).ravel()
    return np.array([q[0], -q[1], -q[2], -q[3]])


def quat_normalize(q: np.ndarray) -> np.ndarray:
    q = np.array(q, dtype=np.float64).ravel()
    norm = np.linalg.norm(q)
    if norm == 0.0:
        raise ValueError("Cannot normalize a zero quaternion.")
    return q / norm


def quat_small_angle(phi: np.ndarray) -> np.ndarray:
    """
    First-order rotation increment ``[1, phi / 2]`` for a small rotation
    vector ``phi``. Not unit length; callers renormalize after composing.
    """
    phi = np.array(phi, dtype=np.float64).ravel()
    return np.array([1.0, 0.5 * phi[0], 0.5 * phi[1], 0.5 * phi[2]])


def quat_exp(phi: np.ndarray) -> np.ndarray:
    """
    Exact exponential map from a rotation vector to a unit quaternion.
    """
    phi = np.array(phi, dtype=np.float64).ravel()
    angle = np.linalg.norm(phi)
    if angle < SO3._small_angle_tol:
        return quat_normalize(quat_small_angle(phi))
    axis = phi / angle
    return np.concatenate([[np.cos(0.5 * angle)], np.sin(0.5 * angle) * axis])


def quat_to_rotation(q: np.ndarray) -> np.ndarray:
    r"""
    Rotation matrix :math:`\mathbf{C}` such that ``C @ v`` rotates ``v`` by
    the unit quaternion ``q``.
    """
    return SO3.from_quat(np.ravel(q), order="wxyz")


def rotation_to_quat(C: np.ndarray) -> np.ndarray:
    """
    Unit quaternion with a non-negative scalar part from a rotation matrix.
    """
    q = np.ravel(SO3.to_quat(C, order="wxyz"))
    if q[0] < 0:
        q = -q
    return quat_normalize(q)


def quat_rotate(q: np.ndarray, v: np.ndarray) -> np.ndarray:
    return quat_to_rotation(q) @ np.ravel(v)
