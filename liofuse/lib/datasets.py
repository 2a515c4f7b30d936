"""A simulated lidar-inertial dataset."""

from typing import List, Tuple

import numpy as np

from liofuse.types import Dataset
from liofuse.lib.estimator import NavState
from liofuse.lib.imu import IMU
from liofuse.lib.messages import CloudInfo, PointCloud


class SimulatedLidarInertialDataset(Dataset):
    """
    A vehicle driving on a horizontal circle at constant speed, carrying an
    IMU and a range sensor. The range sensor observes a fixed set of
    landmarks, and each sweep is split into a segmented cloud and an outlier
    cloud.

    The vehicle starts at the origin heading along the x-axis and turns left.
    Its body x-axis stays tangent to the circle, so the IMU measures a
    constant specific force and angular velocity.
    """

    def __init__(
        self,
        speed: float = 2.0,
        yaw_rate: float = 0.5,
        imu_freq: int = 100,
        scan_freq: int = 10,
        t_end: float = 10.0,
        gravity: float = 9.80665,
        noise_active: bool = False,
        accel_std: float = 0.01,
        gyro_std: float = 0.001,
        num_landmarks: int = 50,
        num_outliers: int = 5,
    ):
        """
        Parameters
        ----------
        speed : float, optional
            Forward speed in m/s, by default 2.0
        yaw_rate : float, optional
            Turning rate in rad/s, by default 0.5
        imu_freq : int, optional
            IMU frequency, by default 100
        scan_freq : int, optional
            Scan frequency, by default 10
        t_end : float, optional
            End time of the simulation, by default 10.0
        gravity : float, optional
            Gravity magnitude, by default 9.80665
        noise_active : bool, optional
            If true, IMU readings are corrupted by white noise, by default False
        accel_std : float, optional
            Accelerometer noise standard deviation, by default 0.01
        gyro_std : float, optional
            Gyroscope noise standard deviation, by default 0.001
        num_landmarks : int, optional
            Number of landmarks seen in every sweep, by default 50
        num_outliers : int, optional
            Number of those labeled as outliers, by default 5
        """
        if yaw_rate == 0:
            raise ValueError("yaw_rate must be non-zero.")
        if not 0 <= num_outliers <= num_landmarks:
            raise ValueError("num_outliers must be between 0 and num_landmarks.")

        self.speed = speed
        self.yaw_rate = yaw_rate
        self.radius = speed / yaw_rate
        self.gravity = gravity

        self.landmarks = np.random.uniform(-20, 20, size=(num_landmarks, 3))
        self.num_outliers = num_outliers

        imu_stamps = [k / imu_freq for k in range(int(t_end * imu_freq) + 1)]
        scan_stamps = [j / scan_freq for j in range(1, int(t_end * scan_freq) + 1)]

        f_b = np.array([0.0, speed * yaw_rate, gravity])
        omega_b = np.array([0.0, 0.0, yaw_rate])

        self.input_data: List[IMU] = []
        for t in imu_stamps:
            accel = f_b.copy()
            gyro = omega_b.copy()
            if noise_active:
                accel += np.random.normal(0, accel_std, 3)
                gyro += np.random.normal(0, gyro_std, 3)
            self.input_data.append(IMU(gyro, accel, t))

        self.gt_data: List[NavState] = [self.state_at(t) for t in scan_stamps]

        self.scan_data: List[PointCloud] = []
        self.cloud_info_data: List[CloudInfo] = []
        self.outlier_data: List[PointCloud] = []
        for x in self.gt_data:
            points = (self.landmarks - x.position) @ x.attitude
            n_in = num_landmarks - num_outliers
            self.scan_data.append(PointCloud(points[:n_in], x.stamp))
            self.outlier_data.append(PointCloud(points[n_in:], x.stamp))
            self.cloud_info_data.append(
                CloudInfo(
                    x.stamp,
                    start_ring_index=[0],
                    end_ring_index=[max(n_in - 1, 0)],
                    point_range=np.linalg.norm(points[:n_in], axis=1),
                )
            )

    def state_at(self, t: float) -> NavState:
        """Ground truth state at time ``t``."""
        psi = self.yaw_rate * t
        r = self.radius
        return NavState(
            position=[r * np.sin(psi), r * (1 - np.cos(psi)), 0.0],
            velocity=[self.speed * np.cos(psi), self.speed * np.sin(psi), 0.0],
            orientation=[np.cos(psi / 2), 0.0, 0.0, np.sin(psi / 2)],
            stamp=t,
        )

    def get_ground_truth(self) -> List[NavState]:
        return self.gt_data

    def get_input_data(self) -> List[IMU]:
        return self.input_data

    def get_measurement_data(
        self,
    ) -> Tuple[List[PointCloud], List[CloudInfo], List[PointCloud]]:
        return self.scan_data, self.cloud_info_data, self.outlier_data
