"""
IMU preintegration between two scan instants, using midpoint integration of
the relative motion and a discrete error-state transition accumulated alongside.
"""

from typing import List, Tuple
import numpy as np
from pymlg import SO3
from scipy.linalg import block_diag

from liofuse.lib.quaternion import (
    quat_exp,
    quat_identity,
    quat_multiply,
    quat_normalize,
    quat_small_angle,
    quat_to_rotation,
)


class StateIndex:
    """
    Offsets of each 3-dimensional block in the 15-dimensional error state.
    """

    POSITION = 0
    VELOCITY = 3
    ATTITUDE = 6
    ACCEL_BIAS = 9
    GYRO_BIAS = 12
    DOF = 15


class NoiseIndex:
    """
    Offsets of each 3-dimensional block in the 18-dimensional noise vector.
    The white noise on both ends of a midpoint step is injected separately.
    """

    ACCEL_0 = 0
    GYRO_0 = 3
    ACCEL_1 = 6
    GYRO_1 = 9
    ACCEL_WALK = 12
    GYRO_WALK = 15
    DOF = 18


def noise_covariance(
    accel_noise: float,
    gyro_noise: float,
    accel_walk: float,
    gyro_walk: float,
) -> np.ndarray:
    """
    Diagonal covariance :math:`\\mathbf{Q}` of the 18-dimensional noise vector,
    built from the standard deviations of the accelerometer and gyroscope
    white noise and of their bias random walks.
    """
    I = np.identity(3)
    return block_diag(
        accel_noise**2 * I,
        gyro_noise**2 * I,
        accel_noise**2 * I,
        gyro_noise**2 * I,
        accel_walk**2 * I,
        gyro_walk**2 * I,
    )


class MidpointStep:
    """
    Result of a single midpoint integration step.
    """

    __slots__ = ["delta_p", "delta_q", "delta_v", "F", "V"]

    def __init__(self, delta_p, delta_q, delta_v, F, V):
        #:np.ndarray: relative position after the step
        self.delta_p = delta_p
        #:np.ndarray: relative rotation after the step, unit quaternion [w, x, y, z]
        self.delta_q = delta_q
        #:np.ndarray: relative velocity after the step
        self.delta_v = delta_v
        #:np.ndarray: 15 x 15 error-state transition of the step
        self.F = F
        #:np.ndarray: 15 x 18 noise-injection jacobian of the step
        self.V = V


def midpoint_step(
    dt: float,
    accel_0: np.ndarray,
    gyro_0: np.ndarray,
    accel_1: np.ndarray,
    gyro_1: np.ndarray,
    delta_p: np.ndarray,
    delta_q: np.ndarray,
    delta_v: np.ndarray,
    accel_bias: np.ndarray,
    gyro_bias: np.ndarray,
    exact_rotation: bool = False,
) -> MidpointStep:
    """
    Integrates one step from the reading ``(accel_0, gyro_0)`` at the start of
    the step to ``(accel_1, gyro_1)`` at its end. The inputs are not modified.

    The rotation increment uses the first-order quaternion
    ``[1, w dt / 2]`` followed by renormalization, unless ``exact_rotation``
    is set, in which case the exact exponential map is used.

    The error-state transition uses a second-order discretization for the
    position rows. Gravity is not removed here; it is accounted for when the
    relative motion is applied to a navigation state.
    """
    dt = float(dt)
    I = np.identity(3)

    gyro = 0.5 * (gyro_0 + gyro_1) - gyro_bias
    if exact_rotation:
        dq = quat_exp(gyro * dt)
    else:
        dq = quat_small_angle(gyro * dt)
    new_delta_q = quat_normalize(quat_multiply(delta_q, dq))

    C_0 = quat_to_rotation(delta_q)
    C_1 = quat_to_rotation(new_delta_q)
    accel_0_unbiased = accel_0 - accel_bias
    accel_1_unbiased = accel_1 - accel_bias
    avg_accel = 0.5 * (C_0 @ accel_0_unbiased + C_1 @ accel_1_unbiased)

    new_delta_p = delta_p + delta_v * dt + 0.5 * avg_accel * dt**2
    new_delta_v = delta_v + avg_accel * dt

    # Error-state transition
    W = SO3.wedge(gyro)
    A_0 = SO3.wedge(accel_0_unbiased)
    A_1 = SO3.wedge(accel_1_unbiased)
    I_minus_W = I - W * dt

    p, v, a = StateIndex.POSITION, StateIndex.VELOCITY, StateIndex.ATTITUDE
    ba, bg = StateIndex.ACCEL_BIAS, StateIndex.GYRO_BIAS

    F = np.zeros((StateIndex.DOF, StateIndex.DOF))
    F[p : p + 3, p : p + 3] = I
    F[p : p + 3, v : v + 3] = I * dt
    F[p : p + 3, a : a + 3] = (
        -0.25 * C_0 @ A_0 * dt**2 - 0.25 * C_1 @ A_1 @ I_minus_W * dt**2
    )
    F[p : p + 3, ba : ba + 3] = -0.25 * (C_0 + C_1) * dt**2
    F[p : p + 3, bg : bg + 3] = 0.25 * C_1 @ A_1 * dt**3

    F[v : v + 3, v : v + 3] = I
    F[v : v + 3, a : a + 3] = (
        -0.5 * C_0 @ A_0 * dt - 0.5 * C_1 @ A_1 @ I_minus_W * dt
    )
    F[v : v + 3, ba : ba + 3] = -0.5 * (C_0 + C_1) * dt
    F[v : v + 3, bg : bg + 3] = 0.5 * C_1 @ A_1 * dt**2

    F[a : a + 3, a : a + 3] = I_minus_W
    F[a : a + 3, bg : bg + 3] = -I * dt

    F[ba : ba + 3, ba : ba + 3] = I
    F[bg : bg + 3, bg : bg + 3] = I

    # Noise-injection jacobian
    na0, ng0 = NoiseIndex.ACCEL_0, NoiseIndex.GYRO_0
    na1, ng1 = NoiseIndex.ACCEL_1, NoiseIndex.GYRO_1
    nwa, nwg = NoiseIndex.ACCEL_WALK, NoiseIndex.GYRO_WALK

    V = np.zeros((StateIndex.DOF, NoiseIndex.DOF))
    V[p : p + 3, na0 : na0 + 3] = 0.25 * C_0 * dt**2
    V[p : p + 3, ng0 : ng0 + 3] = -0.125 * C_1 @ A_1 * dt**3
    V[p : p + 3, na1 : na1 + 3] = 0.25 * C_1 * dt**2
    V[p : p + 3, ng1 : ng1 + 3] = V[p : p + 3, ng0 : ng0 + 3]

    V[v : v + 3, na0 : na0 + 3] = 0.5 * C_0 * dt
    V[v : v + 3, ng0 : ng0 + 3] = -0.25 * C_1 @ A_1 * dt**2
    V[v : v + 3, na1 : na1 + 3] = 0.5 * C_1 * dt
    V[v : v + 3, ng1 : ng1 + 3] = V[v : v + 3, ng0 : ng0 + 3]

    V[a : a + 3, ng0 : ng0 + 3] = 0.5 * I * dt
    V[a : a + 3, ng1 : ng1 + 3] = 0.5 * I * dt

    V[ba : ba + 3, nwa : nwa + 3] = I * dt
    V[bg : bg + 3, nwg : nwg + 3] = I * dt

    return MidpointStep(new_delta_p, new_delta_q, new_delta_v, F, V)


class IMUPreintegration:
    """
    Accumulates the relative motion of the body between two scans from raw
    IMU readings, together with the error-state transition and covariance of
    that motion.

    The relative motion is expressed in the body frame at the start of the
    interval (the *anchor*). The accelerometer and gyroscope biases are held
    fixed at a linearization point for the whole interval; if the bias
    estimate moves too far away from it, call ``rebase`` to re-integrate the
    retained readings.

    The error state is ordered as [position, velocity, attitude, accel bias,
    gyro bias], see ``StateIndex``.
    """

    __slots__ = [
        "accel_0",
        "gyro_0",
        "anchor_accel",
        "anchor_gyro",
        "accel_bias",
        "gyro_bias",
        "delta_p",
        "delta_q",
        "delta_v",
        "jacobian",
        "covariance",
        "sum_dt",
        "noise",
        "exact_rotation",
        "_noise_params",
        "_dt_buf",
        "_accel_buf",
        "_gyro_buf",
    ]

    def __init__(
        self,
        accel_0: np.ndarray,
        gyro_0: np.ndarray,
        accel_bias: np.ndarray = None,
        gyro_bias: np.ndarray = None,
        accel_noise: float = 1e-4,
        gyro_noise: float = 1e-4,
        accel_walk: float = 1e-8,
        gyro_walk: float = 1e-8,
        exact_rotation: bool = False,
    ):
        """
        Parameters
        ----------
        accel_0 : np.ndarray with size 3
            Accelerometer reading at the anchor.
        gyro_0 : np.ndarray with size 3
            Gyroscope reading at the anchor.
        accel_bias : np.ndarray with size 3, optional
            Accelerometer bias linearization point, by default zero.
        gyro_bias : np.ndarray with size 3, optional
            Gyroscope bias linearization point, by default zero.
        accel_noise, gyro_noise : float, optional
            Standard deviations of the accelerometer and gyroscope white noise.
        accel_walk, gyro_walk : float, optional
            Standard deviations of the bias random walks.
        exact_rotation : bool, optional
            Use the exact exponential map for the rotation increment instead of
            the first-order approximation, by default False.
        """
        if accel_bias is None:
            accel_bias = np.zeros(3)
        if gyro_bias is None:
            gyro_bias = np.zeros(3)

        #:np.ndarray: anchor readings, kept for replay
        self.anchor_accel = _as_vector(accel_0, "accel_0")
        self.anchor_gyro = _as_vector(gyro_0, "gyro_0")
        self.accel_bias = _as_vector(accel_bias, "accel_bias")
        self.gyro_bias = _as_vector(gyro_bias, "gyro_bias")
        self.exact_rotation = exact_rotation

        self._noise_params = (accel_noise, gyro_noise, accel_walk, gyro_walk)
        #:np.ndarray: 18 x 18 noise covariance
        self.noise = noise_covariance(*self._noise_params)

        self._dt_buf: List[float] = []
        self._accel_buf: List[np.ndarray] = []
        self._gyro_buf: List[np.ndarray] = []
        self._reset()

    def _reset(self):
        #:np.ndarray: most recent reading, start of the next step
        self.accel_0 = self.anchor_accel.copy()
        self.gyro_0 = self.anchor_gyro.copy()
        self.delta_p = np.zeros(3)
        self.delta_q = quat_identity()
        self.delta_v = np.zeros(3)
        self.jacobian = np.identity(StateIndex.DOF)
        self.covariance = np.zeros((StateIndex.DOF, StateIndex.DOF))
        self.sum_dt = 0.0

    def append(self, dt: float, accel: np.ndarray, gyro: np.ndarray):
        """
        Integrates a new reading taken ``dt`` seconds after the previous one.

        Raises
        ------
        ValueError
            If ``dt`` is not strictly positive.
        """
        if not dt > 0:
            raise ValueError(f"dt must be positive, got {dt}.")

        accel = _as_vector(accel, "accel")
        gyro = _as_vector(gyro, "gyro")
        self._dt_buf.append(float(dt))
        self._accel_buf.append(accel)
        self._gyro_buf.append(gyro)
        self._propagate(dt, accel, gyro)

    def _propagate(self, dt: float, accel: np.ndarray, gyro: np.ndarray):
        step = midpoint_step(
            dt,
            self.accel_0,
            self.gyro_0,
            accel,
            gyro,
            self.delta_p,
            self.delta_q,
            self.delta_v,
            self.accel_bias,
            self.gyro_bias,
            self.exact_rotation,
        )
        self.delta_p = step.delta_p
        self.delta_q = step.delta_q
        self.delta_v = step.delta_v
        self.jacobian = step.F @ self.jacobian
        self.covariance = (
            step.F @ self.covariance @ step.F.T
            + step.V @ self.noise @ step.V.T
        )
        self.symmetrize()
        self.sum_dt += dt
        self.accel_0 = accel
        self.gyro_0 = gyro

    def symmetrize(self):
        """
        Symmetrize the covariance matrix.
        """
        self.covariance = 0.5 * (self.covariance + self.covariance.T)

    def relative_motion(
        self,
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray, float]:
        """
        Returns
        -------
        Tuple[np.ndarray, np.ndarray, np.ndarray, float]
            Copies of ``(delta_p, delta_q, delta_v, sum_dt)``.
        """
        return (
            self.delta_p.copy(),
            self.delta_q.copy(),
            self.delta_v.copy(),
            self.sum_dt,
        )

    def error_state_transition(self) -> np.ndarray:
        return self.jacobian.copy()

    def error_state_covariance(self) -> np.ndarray:
        return self.covariance.copy()

    @property
    def num_samples(self) -> int:
        return len(self._dt_buf)

    @property
    def history(self) -> List[Tuple[float, np.ndarray, np.ndarray]]:
        """The ``(dt, accel, gyro)`` readings appended since the anchor."""
        return list(zip(self._dt_buf, self._accel_buf, self._gyro_buf))

    def bias_drift(
        self, accel_bias: np.ndarray, gyro_bias: np.ndarray
    ) -> Tuple[float, float]:
        """
        Distance of a bias estimate from the linearization point of this
        interval, as ``(accel_drift, gyro_drift)``.
        """
        accel_drift = np.linalg.norm(np.ravel(accel_bias) - self.accel_bias)
        gyro_drift = np.linalg.norm(np.ravel(gyro_bias) - self.gyro_bias)
        return float(accel_drift), float(gyro_drift)

    def rebase(self, accel_bias: np.ndarray, gyro_bias: np.ndarray):
        """
        Moves the bias linearization point and re-integrates every reading
        appended since the anchor.
        """
        self.accel_bias = _as_vector(accel_bias, "accel_bias")
        self.gyro_bias = _as_vector(gyro_bias, "gyro_bias")
        self._reset()
        for dt, accel, gyro in zip(
            self._dt_buf, self._accel_buf, self._gyro_buf
        ):
            self._propagate(dt, accel, gyro)

    def copy(self) -> "IMUPreintegration":
        new = IMUPreintegration(
            self.anchor_accel,
            self.anchor_gyro,
            self.accel_bias,
            self.gyro_bias,
            *self._noise_params,
            exact_rotation=self.exact_rotation,
        )
        new.accel_0 = self.accel_0.copy()
        new.gyro_0 = self.gyro_0.copy()
        new.delta_p = self.delta_p.copy()
        new.delta_q = self.delta_q.copy()
        new.delta_v = self.delta_v.copy()
        new.jacobian = self.jacobian.copy()
        new.covariance = self.covariance.copy()
        new.sum_dt = self.sum_dt
        new._dt_buf = list(self._dt_buf)
        new._accel_buf = [a.copy() for a in self._accel_buf]
        new._gyro_buf = [g.copy() for g in self._gyro_buf]
        return new

    def __repr__(self):
        s = [
            f"IMUPreintegration(sum_dt={self.sum_dt}, samples={self.num_samples})",
            f"    delta_p: {self.delta_p}",
            f"    delta_q: {self.delta_q}",
            f"    delta_v: {self.delta_v}",
        ]
        return "\n".join(s)


def _as_vector(x, name: str) -> np.ndarray:
    x = np.array(x, dtype=np.float64).ravel()
    if x.size != 3:
        raise ValueError(f"{name} must have 3 elements.")
    return x
