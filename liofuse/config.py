"""
Startup configuration of the lidar-inertial front end.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class FusionConfig:
    """
    Parameters consumed once at startup. Reading them from a file or a
    parameter server is left to the caller, see ``from_dict``.

    Fields:
        imu_misalign_angle: Yaw misalignment of the IMU w.r.t. the vehicle in degrees
        accel_noise: Accelerometer white noise standard deviation
        gyro_noise: Gyroscope white noise standard deviation
        accel_walk: Accelerometer bias random walk standard deviation
        gyro_walk: Gyroscope bias random walk standard deviation
        init_accel_bias: Initial accelerometer bias estimate in m/s^2
        init_gyro_bias: Initial gyroscope bias estimate in rad/s
        gravity: Gravity magnitude in m/s^2
        imu_buffer_capacity: Expected number of buffered IMU readings
        scan_buffer_capacity: Expected number of buffered scans per scan stream
        sync_tolerance: Max stamp offset in seconds between a scan and its
            metadata and outlier cloud, None to accept any offset
        rebase_accel_threshold: Accel bias drift in m/s^2 that triggers a rebase
        rebase_gyro_threshold: Gyro bias drift in rad/s that triggers a rebase
        exact_rotation: Integrate rotation with the exact exponential map
        max_interval_duration: Preintegration span in seconds past which a
            warning is logged
        odom_frame_id: Parent frame of the published odometry
        body_frame_id: Child frame of the published odometry
        cloud_frame_id: Frame of the published feature clouds
    """

    imu_misalign_angle: float = 0.0

    accel_noise: float = 1e-4
    gyro_noise: float = 1e-4
    accel_walk: float = 1e-8
    gyro_walk: float = 1e-8

    init_accel_bias: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    init_gyro_bias: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    gravity: float = 9.80665

    imu_buffer_capacity: int = 500
    scan_buffer_capacity: int = 3

    sync_tolerance: Optional[float] = 0.01
    rebase_accel_threshold: float = 0.10
    rebase_gyro_threshold: float = 0.01
    exact_rotation: bool = False
    max_interval_duration: float = 1.0

    odom_frame_id: str = "/camera_init"
    body_frame_id: str = "/laser_odom"
    cloud_frame_id: str = "/camera"

    def __post_init__(self) -> None:
        for name in ["accel_noise", "gyro_noise", "accel_walk", "gyro_walk"]:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative.")

        for name in ["imu_buffer_capacity", "scan_buffer_capacity"]:
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive.")

        if self.gravity <= 0:
            raise ValueError("gravity must be positive.")

        if self.sync_tolerance is not None and self.sync_tolerance < 0:
            raise ValueError("sync_tolerance must be non-negative or None.")

        if self.max_interval_duration <= 0:
            raise ValueError("max_interval_duration must be positive.")

        for name in ["init_accel_bias", "init_gyro_bias"]:
            bias = tuple(float(b) for b in np.ravel(getattr(self, name)))
            if len(bias) != 3:
                raise ValueError(f"{name} must have 3 elements.")
            object.__setattr__(self, name, bias)

    @property
    def misalign_rpy(self) -> np.ndarray:
        """Misalignment as roll, pitch, yaw in radians."""
        return np.array([0.0, 0.0, np.deg2rad(self.imu_misalign_angle)])

    @property
    def gravity_vector(self) -> np.ndarray:
        """Gravity resolved in the navigation frame (Z up)."""
        return np.array([0.0, 0.0, -self.gravity])

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "FusionConfig":
        """
        Builds a configuration from a plain mapping, such as one loaded from
        a YAML file or a parameter server.

        Raises
        ------
        ValueError
            If the mapping contains unknown keys.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(params.keys()) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**params)
