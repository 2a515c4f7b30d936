"""
Synchronization of the inertial and scan streams in front of an error-state
filter. Every incoming message is buffered, after which the driver checks
whether a scan can be consumed, replays the inertial readings up to the scan
time and hands the scan over to the filter core.
"""

import enum
import logging
import threading
import time
from typing import Any, List, Tuple

from tqdm import tqdm

from liofuse.buffer import MeasurementBuffer
from liofuse.config import FusionConfig
from liofuse.types import FilterCore, Measurement, ScanUpdateResult
from liofuse.lib.frames import cloud_to_yzx, odometry_to_xyz, odometry_to_yzx
from liofuse.lib.imu import IMU, align_imu_to_vehicle
from liofuse.lib.messages import CloudInfo, Odometry, PointCloud
from liofuse.publishers import Publisher

_LOG: logging.Logger = logging.getLogger(__name__)


class SynchronizationError(RuntimeError):
    """
    Raised when the scan, its metadata and its outlier cloud selected for the
    same update are further apart in time than the configured tolerance.
    """

    pass


class FusionStatus(enum.Enum):
    UNINITIALIZED = "uninitialized"
    TRACKING = "tracking"


class LidarInertialFusion:
    """
    Buffers IMU readings, scans, scan metadata and outlier clouds, and drives
    a ``FilterCore`` with them in time order.

    The driver never blocks. When the data needed for the next scan has not
    arrived yet, it returns and tries again on the next message. Every
    handler holds the same re-entrant lock, so a host delivering messages
    from several threads is serialized.
    """

    def __init__(
        self,
        core: FilterCore,
        config: FusionConfig = None,
        publisher: Publisher = None,
    ):
        """
        Parameters
        ----------
        core : FilterCore
            Filter receiving the propagation and update calls.
        config : FusionConfig, optional
            Defaults are used if not provided.
        publisher : Publisher, optional
            Receives the odometry and feature clouds of each consumed scan.
        """
        if config is None:
            config = FusionConfig()

        self.core = core
        self.config = config
        self.publisher = publisher

        self.imu_buffer = MeasurementBuffer(config.imu_buffer_capacity)
        self.scan_buffer = MeasurementBuffer(config.scan_buffer_capacity)
        self.cloud_info_buffer = MeasurementBuffer(config.scan_buffer_capacity)
        self.outlier_buffer = MeasurementBuffer(config.scan_buffer_capacity)

        #:Odometry: latest map-refined pose, in the internal convention
        self.map_pose: Odometry = None
        #:float: running average of the per-scan processing time in seconds
        self.duration = 0.0
        #:int: number of scans consumed after initialization
        self.scan_counter = 0

        self._lock = threading.RLock()

    @property
    def status(self) -> FusionStatus:
        if self.core.is_initialized():
            return FusionStatus.TRACKING
        return FusionStatus.UNINITIALIZED

    @property
    def buffers(self) -> Tuple[MeasurementBuffer, ...]:
        return (
            self.imu_buffer,
            self.scan_buffer,
            self.cloud_info_buffer,
            self.outlier_buffer,
        )

    def imu_callback(self, imu: IMU) -> List[ScanUpdateResult]:
        """
        Buffers an IMU reading after rotating it from the IMU frame into the
        vehicle frame.
        """
        with self._lock:
            accel, gyro = align_imu_to_vehicle(
                self.config.misalign_rpy, imu.accel, imu.gyro
            )
            self.imu_buffer.add(
                imu.stamp, IMU(gyro, accel, imu.stamp, imu.state_id)
            )
            return self.perform_state_estimation()

    def scan_callback(self, cloud: PointCloud) -> List[ScanUpdateResult]:
        with self._lock:
            self.scan_buffer.add(cloud.stamp, cloud)
            return self.perform_state_estimation()

    def cloud_info_callback(self, info: CloudInfo) -> List[ScanUpdateResult]:
        with self._lock:
            self.cloud_info_buffer.add(info.stamp, info)
            return self.perform_state_estimation()

    def outlier_callback(self, cloud: PointCloud) -> List[ScanUpdateResult]:
        with self._lock:
            self.outlier_buffer.add(cloud.stamp, cloud)
            return self.perform_state_estimation()

    def map_odometry_callback(self, odometry: Odometry):
        """
        Stores the map-refined pose sent back by the mapping module. It is
        not fed back into the filter.
        """
        with self._lock:
            self.map_pose = odometry_to_xyz(odometry)

    def perform_state_estimation(self) -> List[ScanUpdateResult]:
        """
        Consumes every buffered scan for which all the required data has
        arrived.

        Returns
        -------
        List[ScanUpdateResult]
            Results of the scans consumed by this call, in time order. The
            scan that initializes the filter is not included.
        """
        with self._lock:
            if any(buffer.empty() for buffer in self.buffers):
                return []

            if not self.core.is_initialized():
                self._initialize()
                return []

            results = []
            while (
                not self.scan_buffer.empty()
                and self.scan_buffer.last_stamp() > self.core.stamp
            ):
                result = self._process_next_scan()
                if result is None:
                    break
                results.append(result)

            return results

    def _initialize(self):
        # Snap to the latest data of every stream
        scan_stamp, scan = self.scan_buffer.last()
        info = self.cloud_info_buffer.last_value()
        outlier = self.outlier_buffer.last_value()
        imu = self.imu_buffer.last_value()

        self.core.process_scan(scan_stamp, imu, scan, info, outlier)
        self._discard_consumed()
        _LOG.info("Synchronization initialized at t=%.6f", self.core.stamp)

    def _process_next_scan(self) -> ScanUpdateResult:
        t_start = time.perf_counter()
        now = self.core.stamp

        scan = self.scan_buffer.first_after(now)
        info = self.cloud_info_buffer.first_after(now)
        outlier = self.outlier_buffer.first_after(now)
        if info is None or outlier is None:
            _LOG.debug("Waiting for scan metadata after t=%.6f", now)
            return None

        self._check_sync(scan, info, outlier)

        scan_stamp = scan.stamp
        if self.imu_buffer.last_stamp() < scan_stamp:
            _LOG.debug("Waiting for IMU data up to t=%.6f", scan_stamp)
            return None

        self._propagate_to(scan_stamp)

        result = self.core.process_scan(
            scan_stamp,
            self.imu_buffer.last_value(),
            scan.value,
            info.value,
            outlier.value,
        )
        self._discard_consumed()
        self._publish(scan_stamp, result)

        elapsed = time.perf_counter() - t_start
        self.duration = (self.duration * self.scan_counter + elapsed) / (
            self.scan_counter + 1
        )
        self.scan_counter += 1
        _LOG.debug(
            "Scan at t=%.6f processed in %.6f s (average %.6f s)",
            scan_stamp,
            elapsed,
            self.duration,
        )
        return result

    def _check_sync(
        self, scan: Measurement, info: Measurement, outlier: Measurement
    ):
        """
        Raises ``SynchronizationError`` if the metadata or the outlier cloud
        does not match the scan. Before raising, the entries that can never be
        matched are dropped so that the next pass starts from a consistent
        triple: metadata older than the scan, or the scan and its partial
        metadata when the missing part is already newer.
        """
        tol = self.config.sync_tolerance
        if tol is None:
            return

        mismatched = []
        scan_is_orphan = False
        for name, buffer, entry in (
            ("cloud info", self.cloud_info_buffer, info),
            ("outlier cloud", self.outlier_buffer, outlier),
        ):
            if entry.stamp < scan.stamp - tol:
                buffer.discard_up_to(entry.stamp)
                mismatched.append(f"{name} at t={entry.stamp}")
            elif entry.stamp > scan.stamp + tol:
                scan_is_orphan = True
                mismatched.append(f"{name} at t={entry.stamp}")

        if not mismatched:
            return

        if scan_is_orphan:
            # The scan goes together with whatever partial data it did get
            self.scan_buffer.discard_up_to(scan.stamp)
            self.cloud_info_buffer.discard_up_to(scan.stamp + tol)
            self.outlier_buffer.discard_up_to(scan.stamp + tol)
        _LOG.warning(
            "Dropped unmatched data around the scan at t=%.6f", scan.stamp
        )
        raise SynchronizationError(
            f"Unmatched {', '.join(mismatched)} for the scan at "
            f"t={scan.stamp} (tolerance {tol} s)."
        )

    def _propagate_to(self, stamp: float):
        """
        Replays the buffered IMU readings through the core until its time
        reaches ``stamp``. The reading that straddles ``stamp`` is clamped to
        it and stays buffered for the next interval.
        """
        while self.core.stamp < stamp:
            imu = self.imu_buffer.first_after(self.core.stamp)
            if imu is None:
                break
            dt = min(imu.stamp, stamp) - self.core.stamp
            if dt <= 0:
                break
            self.core.process_imu(dt, imu.value.accel, imu.value.gyro)

    def _discard_consumed(self):
        now = self.core.stamp
        for buffer in self.buffers:
            buffer.discard_up_to(now)

    def _publish(self, scan_stamp: float, result: ScanUpdateResult):
        if self.publisher is None:
            return

        config = self.config
        odometry = Odometry(
            result.stamp,
            result.state.orientation,
            result.state.position,
            config.odom_frame_id,
            config.body_frame_id,
        )
        self.publisher.publish_odometry(odometry_to_yzx(odometry))

        for topic, points in result.features.items():
            cloud = PointCloud(points, scan_stamp)
            self.publisher.publish_cloud(
                topic,
                cloud_to_yzx(cloud, scan_stamp, config.cloud_frame_id),
            )

    def __repr__(self):
        return (
            f"LidarInertialFusion(status={self.status.value}, "
            f"stamp={self.core.stamp}, imu={len(self.imu_buffer)}, "
            f"scans={len(self.scan_buffer)})"
        )


def run_fusion(
    fusion: LidarInertialFusion,
    imu_data: List[IMU],
    scan_data: List[PointCloud],
    cloud_info_data: List[CloudInfo],
    outlier_data: List[PointCloud],
    disable_progress_bar: bool = False,
) -> List[ScanUpdateResult]:
    """
    Replays recorded streams through the driver in time order, as a host
    delivering the messages live would.

    Parameters
    ----------
    fusion : LidarInertialFusion
        The driver to feed.
    imu_data : List[IMU]
        IMU readings.
    scan_data : List[PointCloud]
        Segmented scans.
    cloud_info_data : List[CloudInfo]
        Metadata of the scans.
    outlier_data : List[PointCloud]
        Outlier clouds of the scans.
    disable_progress_bar : bool, optional
        By default False.

    Returns
    -------
    List[ScanUpdateResult]
        Results of every consumed scan, in time order.
    """
    # On equal stamps, the scan streams are delivered before the IMU
    streams: List[Tuple[List[Any], Any]] = [
        (scan_data, fusion.scan_callback),
        (cloud_info_data, fusion.cloud_info_callback),
        (outlier_data, fusion.outlier_callback),
        (imu_data, fusion.imu_callback),
    ]
    events = []
    for priority, (data, callback) in enumerate(streams):
        for msg in data:
            events.append((msg.stamp, priority, msg, callback))
    events.sort(key=lambda e: (e[0], e[1]))

    results = []
    for _, _, msg, callback in tqdm(events, disable=disable_progress_bar):
        results.extend(callback(msg))

    return results
