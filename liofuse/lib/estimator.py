"""
Reference implementation of the filter core contract: inertial propagation
through preintegration, with the correction step delegated to a ``ScanUpdate``.
"""

import logging
from typing import Any

import numpy as np

from liofuse.config import FusionConfig
from liofuse.types import FilterCore, ScanUpdate, ScanUpdateResult
from liofuse.lib.imu import IMU
from liofuse.lib.messages import CloudInfo, Odometry, PointCloud, SynchronizedScan
from liofuse.lib.preintegration import IMUPreintegration, StateIndex
from liofuse.lib.quaternion import (
    quat_identity,
    quat_multiply,
    quat_normalize,
    quat_to_rotation,
)

_LOG: logging.Logger = logging.getLogger(__name__)


class NavState:
    """
    Nominal navigation state of the platform: pose, velocity and IMU biases,
    with the covariance of the 15-dimensional error state ordered as in
    ``StateIndex``.
    """

    __slots__ = [
        "position",
        "velocity",
        "orientation",
        "accel_bias",
        "gyro_bias",
        "covariance",
        "stamp",
        "state_id",
    ]

    def __init__(
        self,
        position: np.ndarray = None,
        velocity: np.ndarray = None,
        orientation: np.ndarray = None,
        accel_bias: np.ndarray = None,
        gyro_bias: np.ndarray = None,
        covariance: np.ndarray = None,
        stamp: float = None,
        state_id: Any = None,
    ):
        """
        Parameters
        ----------
        position : np.ndarray with size 3, optional
            Position in the navigation frame, by default zero.
        velocity : np.ndarray with size 3, optional
            Velocity in the navigation frame, by default zero.
        orientation : np.ndarray with size 4, optional
            Unit quaternion [w, x, y, z] rotating body-frame vectors into the
            navigation frame, by default identity.
        accel_bias : np.ndarray with size 3, optional
            By default zero.
        gyro_bias : np.ndarray with size 3, optional
            By default zero.
        covariance : np.ndarray with shape (15, 15), optional
            By default zero.
        stamp : float, optional
            Timestamp, by default None
        state_id : Any, optional
            Unique identifier, by default None
        """
        if position is None:
            position = np.zeros(3)
        if velocity is None:
            velocity = np.zeros(3)
        if orientation is None:
            orientation = quat_identity()
        if accel_bias is None:
            accel_bias = np.zeros(3)
        if gyro_bias is None:
            gyro_bias = np.zeros(3)
        if covariance is None:
            covariance = np.zeros((StateIndex.DOF, StateIndex.DOF))

        covariance = np.asarray(covariance, dtype=np.float64)
        if covariance.shape != (StateIndex.DOF, StateIndex.DOF):
            raise ValueError("covariance must be a 15 x 15 array.")

        self.position = np.array(position, dtype=np.float64).ravel()
        self.velocity = np.array(velocity, dtype=np.float64).ravel()
        self.orientation = quat_normalize(orientation)
        self.accel_bias = np.array(accel_bias, dtype=np.float64).ravel()
        self.gyro_bias = np.array(gyro_bias, dtype=np.float64).ravel()
        self.covariance = np.array(covariance, dtype=np.float64)
        self.stamp = stamp
        self.state_id = state_id

    @property
    def attitude(self) -> np.ndarray:
        """Rotation matrix :math:`\\mathbf{C}_{nb}` of the orientation."""
        return quat_to_rotation(self.orientation)

    @property
    def bias(self) -> np.ndarray:
        """Bias vector in order [accel_bias, gyro_bias]"""
        return np.concatenate([self.accel_bias, self.gyro_bias])

    def symmetrize(self):
        self.covariance = 0.5 * (self.covariance + self.covariance.T)

    def to_odometry(
        self, frame_id: str = None, child_frame_id: str = None
    ) -> Odometry:
        return Odometry(
            self.stamp,
            self.orientation.copy(),
            self.position.copy(),
            frame_id,
            child_frame_id,
            self.state_id,
        )

    def copy(self) -> "NavState":
        return NavState(
            self.position.copy(),
            self.velocity.copy(),
            self.orientation.copy(),
            self.accel_bias.copy(),
            self.gyro_bias.copy(),
            self.covariance.copy(),
            self.stamp,
            self.state_id,
        )

    def __repr__(self):
        s = [
            f"NavState(stamp={self.stamp}, state_id={self.state_id})",
            f"    position: {self.position}",
            f"    velocity: {self.velocity}",
            f"    orientation: {self.orientation}",
        ]
        return "\n".join(s)


class DeadReckoningUpdate(ScanUpdate):
    """
    A correction step that applies the preintegrated inertial motion to the
    state and does not use the scan geometry at all. The segmented and outlier
    clouds are forwarded as feature clouds. No edges are extracted, so the
    corner cloud is always empty.

    The state is predicted with

    .. math::
        \\mathbf{r}_j = \\mathbf{r}_i + \\mathbf{v}_i \\Delta t
        + \\frac{1}{2}\\mathbf{g}\\Delta t^2 + \\mathbf{C}_i \\Delta\\mathbf{p}_{ij}

        \\mathbf{v}_j = \\mathbf{v}_i + \\mathbf{g}\\Delta t
        + \\mathbf{C}_i \\Delta\\mathbf{v}_{ij}

        \\mathbf{q}_j = \\mathbf{q}_i \\otimes \\Delta\\mathbf{q}_{ij}

    and the covariance is propagated with the interval transition and noise,
    treating the error state as expressed in the body frame at the start of
    the interval.
    """

    def __init__(self, gravity=None):
        if gravity is None:
            gravity = np.array([0, 0, -9.80665])
        self.gravity = np.array(gravity, dtype=np.float64).ravel()

    def update(
        self,
        state: NavState,
        preintegration: IMUPreintegration,
        scan: SynchronizedScan,
    ) -> ScanUpdateResult:
        x = state.copy()

        if preintegration is not None and preintegration.sum_dt > 0:
            delta_p, delta_q, delta_v, dt = preintegration.relative_motion()
            C = state.attitude
            g = self.gravity
            x.position = (
                state.position
                + state.velocity * dt
                + 0.5 * g * dt**2
                + C @ delta_p
            )
            x.velocity = state.velocity + g * dt + C @ delta_v
            x.orientation = quat_normalize(
                quat_multiply(state.orientation, delta_q)
            )

            A = preintegration.error_state_transition()
            x.covariance = (
                A @ state.covariance @ A.T
                + preintegration.error_state_covariance()
            )
            x.symmetrize()

        x.stamp = scan.stamp
        features = {
            "laser_cloud_corner_last": np.zeros((0, 3)),
            "laser_cloud_surf_last": scan.cloud.points,
            "outlier_cloud_last": scan.outlier_cloud.points,
        }
        return ScanUpdateResult(scan.stamp, x, features)


class InertialOdometryCore(FilterCore):
    """
    Filter core that preintegrates every IMU reading between two scans and
    hands the accumulated relative motion to a ``ScanUpdate`` when a scan is
    processed.

    A new ``IMUPreintegration`` is opened by the first ``process_imu`` call
    after a scan. It is anchored at the last reading seen before it, and
    linearized about the current bias estimate. It is consumed and discarded
    by the next ``process_scan``.
    """

    def __init__(
        self,
        scan_update: ScanUpdate,
        config: FusionConfig = None,
        x0: NavState = None,
    ):
        """
        Parameters
        ----------
        scan_update : ScanUpdate
            The correction step.
        config : FusionConfig, optional
            Noise parameters, initial biases and rebase thresholds. Defaults
            are used if not provided.
        x0 : NavState, optional
            Initial state. Its stamp is overwritten by the initializing scan.
            If not provided, the filter starts at the origin, at rest, with
            the configured initial biases.
        """
        if config is None:
            config = FusionConfig()

        self.scan_update = scan_update
        self.config = config
        self._x0 = x0

        #:NavState: state at the last processed scan
        self.state: NavState = None
        #:IMUPreintegration: motion accumulated since the last processed scan
        self.preintegration: IMUPreintegration = None

        self._stamp: float = None
        self._last_accel: np.ndarray = None
        self._last_gyro: np.ndarray = None
        self._long_interval_reported = False

    @property
    def stamp(self) -> float:
        return self._stamp

    def is_initialized(self) -> bool:
        return self.state is not None

    def process_imu(self, dt: float, accel: np.ndarray, gyro: np.ndarray):
        """
        Appends an IMU reading to the open preintegration interval and
        advances the filter time by ``dt``.

        Raises
        ------
        RuntimeError
            If the core has not been initialized by a first scan.
        ValueError
            If ``dt`` is not strictly positive.
        """
        if not self.is_initialized():
            raise RuntimeError("Cannot propagate an uninitialized filter core.")

        if not dt > 0:
            raise ValueError(f"dt must be positive, got {dt}.")

        accel = np.array(accel, dtype=np.float64).ravel()
        gyro = np.array(gyro, dtype=np.float64).ravel()

        if self.preintegration is None:
            self.preintegration = self._new_preintegration()

        self.preintegration.append(dt, accel, gyro)
        self._stamp = self._stamp + dt
        self._last_accel = accel
        self._last_gyro = gyro

        if (
            self.preintegration.sum_dt > self.config.max_interval_duration
            and not self._long_interval_reported
        ):
            _LOG.warning(
                "Preintegrating %.3f s without a scan update (%d samples)",
                self.preintegration.sum_dt,
                self.preintegration.num_samples,
            )
            self._long_interval_reported = True

    def process_scan(
        self,
        stamp: float,
        last_imu: IMU,
        scan: PointCloud,
        cloud_info: CloudInfo,
        outlier_scan: PointCloud,
    ) -> ScanUpdateResult:
        synced = SynchronizedScan(stamp, scan, cloud_info, outlier_scan, last_imu)

        if not self.is_initialized():
            return self._initialize(synced)

        result = self.scan_update.update(self.state, self.preintegration, synced)
        self.state = result.state
        self._stamp = result.stamp
        self.preintegration = None
        self._long_interval_reported = False
        return result

    def revise_bias(self, accel_bias: np.ndarray, gyro_bias: np.ndarray) -> bool:
        """
        Stores a new bias estimate. If an interval is open and the estimate
        drifted past the configured thresholds from its linearization point,
        the interval is re-integrated about the new biases.

        Returns
        -------
        bool
            True if the open interval was rebased.
        """
        if not self.is_initialized():
            raise RuntimeError("Cannot revise the bias of an uninitialized core.")

        accel_bias = np.array(accel_bias, dtype=np.float64).ravel()
        gyro_bias = np.array(gyro_bias, dtype=np.float64).ravel()
        self.state.accel_bias = accel_bias
        self.state.gyro_bias = gyro_bias

        if self.preintegration is None:
            return False

        accel_drift, gyro_drift = self.preintegration.bias_drift(
            accel_bias, gyro_bias
        )
        if (
            accel_drift > self.config.rebase_accel_threshold
            or gyro_drift > self.config.rebase_gyro_threshold
        ):
            _LOG.warning(
                "Rebasing preintegration, accel drift %.4f, gyro drift %.4f",
                accel_drift,
                gyro_drift,
            )
            self.preintegration.rebase(accel_bias, gyro_bias)
            return True

        return False

    def _new_preintegration(self) -> IMUPreintegration:
        config = self.config
        return IMUPreintegration(
            self._last_accel,
            self._last_gyro,
            self.state.accel_bias,
            self.state.gyro_bias,
            config.accel_noise,
            config.gyro_noise,
            config.accel_walk,
            config.gyro_walk,
            exact_rotation=config.exact_rotation,
        )

    def _initialize(self, scan: SynchronizedScan) -> ScanUpdateResult:
        if self._x0 is not None:
            x = self._x0.copy()
        else:
            x = NavState(
                accel_bias=self.config.init_accel_bias,
                gyro_bias=self.config.init_gyro_bias,
            )
        x.stamp = scan.stamp

        if scan.last_imu is not None:
            self._last_accel = scan.last_imu.accel.copy()
            self._last_gyro = scan.last_imu.gyro.copy()
        else:
            self._last_accel = np.zeros(3)
            self._last_gyro = np.zeros(3)

        result = self.scan_update.update(x, None, scan)
        self.state = result.state
        self._stamp = result.stamp
        self.preintegration = None

        _LOG.info("Filter core initialized at t=%.6f", self._stamp)
        return result
