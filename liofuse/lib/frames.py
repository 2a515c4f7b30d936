"""
Conversions between the estimator's axis convention and the one expected by
downstream consumers.

The estimator works in an XYZ convention (X forward, Y left, Z up). The
mapping modules expect a YZX, camera-like convention (Z forward, X left, Y up).
"""

import numpy as np

from liofuse.lib.messages import Odometry, PointCloud
from liofuse.lib.quaternion import (
    quat_conjugate,
    quat_multiply,
    quat_normalize,
    rotation_to_quat,
)

#:np.ndarray: rotation taking XYZ-convention coordinates to YZX-convention ones
C_XYZ_TO_YZX = np.array(
    [
        [0.0, 1.0, 0.0],
        [0.0, 0.0, 1.0],
        [1.0, 0.0, 0.0],
    ]
)

#:np.ndarray: the same rotation as a unit quaternion [w, x, y, z]
Q_XYZ_TO_YZX = rotation_to_quat(C_XYZ_TO_YZX)


def position_to_yzx(r: np.ndarray) -> np.ndarray:
    return C_XYZ_TO_YZX @ np.ravel(r)


def position_to_xyz(r: np.ndarray) -> np.ndarray:
    return C_XYZ_TO_YZX.T @ np.ravel(r)


def orientation_to_yzx(q: np.ndarray) -> np.ndarray:
    """
    Re-expresses an orientation by conjugating it with the fixed axis
    permutation, so that the same physical rotation is described in the
    other convention.
    """
    q = quat_multiply(quat_multiply(Q_XYZ_TO_YZX, q), quat_conjugate(Q_XYZ_TO_YZX))
    return quat_normalize(q)


def orientation_to_xyz(q: np.ndarray) -> np.ndarray:
    q = quat_multiply(quat_multiply(quat_conjugate(Q_XYZ_TO_YZX), q), Q_XYZ_TO_YZX)
    return quat_normalize(q)


def points_to_yzx(points: np.ndarray) -> np.ndarray:
    points = np.atleast_2d(points)
    return points @ C_XYZ_TO_YZX.T


def cloud_to_yzx(cloud: PointCloud, stamp: float = None, frame_id: str = None):
    """
    Copy of ``cloud`` with its points in the YZX convention, optionally
    re-stamped and re-labeled.
    """
    new = cloud.copy()
    new.points = points_to_yzx(cloud.points)
    if stamp is not None:
        new.stamp = stamp
    if frame_id is not None:
        new.frame_id = frame_id
    return new


def odometry_to_yzx(odometry: Odometry) -> Odometry:
    new = odometry.copy()
    new.orientation = orientation_to_yzx(odometry.orientation)
    new.position = position_to_yzx(odometry.position)
    return new


def odometry_to_xyz(odometry: Odometry) -> Odometry:
    new = odometry.copy()
    new.orientation = orientation_to_xyz(odometry.orientation)
    new.position = position_to_xyz(odometry.position)
    return new
