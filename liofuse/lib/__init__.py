"""
The built-in library of messages, inertial processing and the reference filter
core.
"""

from .messages import PointCloud, CloudInfo, Odometry, SynchronizedScan

from .imu import IMU, rpy_to_rotation, align_imu_to_vehicle

from .quaternion import (
    quat_identity,
    quat_multiply,
    quat_conjugate,
    quat_normalize,
    quat_small_angle,
    quat_exp,
    quat_to_rotation,
    rotation_to_quat,
    quat_rotate,
)

from .frames import (
    C_XYZ_TO_YZX,
    Q_XYZ_TO_YZX,
    position_to_yzx,
    position_to_xyz,
    orientation_to_yzx,
    orientation_to_xyz,
    points_to_yzx,
    cloud_to_yzx,
    odometry_to_yzx,
    odometry_to_xyz,
)

from .preintegration import (
    StateIndex,
    NoiseIndex,
    MidpointStep,
    midpoint_step,
    noise_covariance,
    IMUPreintegration,
)

from .estimator import NavState, InertialOdometryCore, DeadReckoningUpdate

from .datasets import SimulatedLidarInertialDataset
