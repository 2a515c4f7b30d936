"""
Transport-agnostic containers for the scan streams and the odometry output.
"""

import numpy as np
from typing import Any


class PointCloud:
    """
    One range-sensor sweep, or a subset of it such as the outlier points.
    """

    __slots__ = ["points", "stamp", "intensity", "ring", "frame_id"]

    def __init__(
        self,
        points: np.ndarray,
        stamp: float,
        intensity: np.ndarray = None,
        ring: np.ndarray = None,
        frame_id: str = None,
    ):
        """
        Parameters
        ----------
        points : np.ndarray with shape (N, 3)
            Point coordinates in the sensor frame.
        stamp : float
            Timestamp of the sweep.
        intensity : np.ndarray with size N, optional
            Per-point intensity.
        ring : np.ndarray with size N, optional
            Per-point ring (laser) index.
        frame_id : str, optional
            Frame the points are resolved in.
        """
        points = np.array(points, dtype=np.float64)
        if points.size == 0:
            points = points.reshape((0, 3))
        if points.ndim != 2 or points.shape[1] != 3:
            raise ValueError("points must be an N x 3 array.")

        self.points = points
        self.stamp = stamp
        self.intensity = None if intensity is None else np.ravel(intensity)
        self.ring = None if ring is None else np.ravel(ring)
        self.frame_id = frame_id

    def __len__(self):
        return self.points.shape[0]

    def copy(self) -> "PointCloud":
        return PointCloud(
            self.points.copy(),
            self.stamp,
            None if self.intensity is None else self.intensity.copy(),
            None if self.ring is None else self.ring.copy(),
            self.frame_id,
        )

    def __repr__(self):
        return (
            f"PointCloud(stamp={self.stamp}, size={len(self)}, "
            f"frame_id={self.frame_id})"
        )


class CloudInfo:
    """
    Segmentation metadata that accompanies a segmented scan: the range of
    point indices belonging to each ring and per-point segmentation flags.
    """

    __slots__ = [
        "stamp",
        "start_ring_index",
        "end_ring_index",
        "start_orientation",
        "end_orientation",
        "orientation_diff",
        "ground_flag",
        "column_index",
        "point_range",
    ]

    def __init__(
        self,
        stamp: float,
        start_ring_index: np.ndarray,
        end_ring_index: np.ndarray,
        start_orientation: float = 0.0,
        end_orientation: float = 0.0,
        orientation_diff: float = 0.0,
        ground_flag: np.ndarray = None,
        column_index: np.ndarray = None,
        point_range: np.ndarray = None,
    ):
        self.stamp = stamp
        self.start_ring_index = np.array(start_ring_index, dtype=int).ravel()
        self.end_ring_index = np.array(end_ring_index, dtype=int).ravel()
        if self.start_ring_index.size != self.end_ring_index.size:
            raise ValueError("Ring start and end indices must have equal size.")

        self.start_orientation = start_orientation
        self.end_orientation = end_orientation
        self.orientation_diff = orientation_diff
        self.ground_flag = (
            None if ground_flag is None else np.array(ground_flag, dtype=bool)
        )
        self.column_index = (
            None if column_index is None else np.array(column_index, dtype=int)
        )
        self.point_range = (
            None if point_range is None else np.array(point_range, dtype=float)
        )

    @property
    def num_rings(self) -> int:
        return self.start_ring_index.size

    def __repr__(self):
        return f"CloudInfo(stamp={self.stamp}, rings={self.num_rings})"


class Odometry:
    """
    Outbound pose estimate.
    """

    __slots__ = [
        "stamp",
        "orientation",
        "position",
        "frame_id",
        "child_frame_id",
        "state_id",
    ]

    def __init__(
        self,
        stamp: float,
        orientation: np.ndarray,
        position: np.ndarray,
        frame_id: str = None,
        child_frame_id: str = None,
        state_id: Any = None,
    ):
        #:float: Timestamp
        self.stamp = stamp
        #:np.ndarray: Unit quaternion [w, x, y, z] of the child frame
        self.orientation = np.array(orientation, dtype=np.float64).ravel()
        #:np.ndarray: Position of the child frame in the parent frame
        self.position = np.array(position, dtype=np.float64).ravel()
        self.frame_id = frame_id
        self.child_frame_id = child_frame_id
        self.state_id = state_id

    def copy(self) -> "Odometry":
        return Odometry(
            self.stamp,
            self.orientation.copy(),
            self.position.copy(),
            self.frame_id,
            self.child_frame_id,
            self.state_id,
        )

    def __repr__(self):
        s = [
            f"Odometry(stamp={self.stamp}, frame_id={self.frame_id}, "
            f"child_frame_id={self.child_frame_id})",
            f"    orientation: {self.orientation}",
            f"    position: {self.position}",
        ]
        return "\n".join(s)


class SynchronizedScan:
    """
    A scan grouped with the metadata and outlier cloud selected for it, and
    the latest IMU reading available when it was consumed.
    """

    __slots__ = ["stamp", "cloud", "cloud_info", "outlier_cloud", "last_imu"]

    def __init__(
        self,
        stamp: float,
        cloud: PointCloud,
        cloud_info: CloudInfo,
        outlier_cloud: PointCloud,
        last_imu: Any = None,
    ):
        self.stamp = stamp
        self.cloud = cloud
        self.cloud_info = cloud_info
        self.outlier_cloud = outlier_cloud
        self.last_imu = last_imu

    def __repr__(self):
        return (
            f"SynchronizedScan(stamp={self.stamp}, cloud={self.cloud}, "
            f"outliers={self.outlier_cloud})"
        )
