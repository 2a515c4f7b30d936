import numpy as np
from pymlg import SO3
from typing import Any, Tuple


class IMU:
    """
    Data container for an IMU reading.
    """

    __slots__ = ["gyro", "accel", "stamp", "state_id"]

    def __init__(
        self,
        gyro: np.ndarray,
        accel: np.ndarray,
        stamp: float,
        state_id: Any = None,
    ):
        gyro = np.array(gyro, dtype=np.float64).ravel()
        accel = np.array(accel, dtype=np.float64).ravel()
        if gyro.size != 3 or accel.size != 3:
            raise ValueError("IMU gyro and accel readings must have 3 elements.")

        self.gyro = gyro  #:np.ndarray: Gyro reading
        self.accel = accel  #:np.ndarray: Accelerometer reading
        self.stamp = stamp  #:float: Timestamp
        self.state_id = state_id  #:Any: State ID associated with the reading

    def copy(self) -> "IMU":
        return IMU(
            self.gyro.copy(),
            self.accel.copy(),
            self.stamp,
            self.state_id,
        )

    def __repr__(self):
        s = [
            f"IMU(stamp={self.stamp}, state_id={self.state_id})",
            f"    gyro: {self.gyro.ravel()}",
            f"    accel: {self.accel.ravel()}",
        ]
        return "\n".join(s)

    @staticmethod
    def random(stamp: float = 0.0):
        return IMU(
            np.random.normal(size=3),
            np.random.normal(size=3),
            stamp,
        )


def rpy_to_rotation(rpy: np.ndarray) -> np.ndarray:
    """
    Rotation matrix from roll, pitch, yaw angles in radians, composed as
    :math:`\\mathbf{C} = \\mathbf{C}_z(\\psi)\\mathbf{C}_y(\\theta)\\mathbf{C}_x(\\phi)`.
    """
    roll, pitch, yaw = np.array(rpy, dtype=np.float64).ravel()
    return (
        SO3.Exp([0, 0, yaw]) @ SO3.Exp([0, pitch, 0]) @ SO3.Exp([roll, 0, 0])
    )


def align_imu_to_vehicle(
    rpy: np.ndarray, accel: np.ndarray, gyro: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Resolves raw IMU readings in the vehicle frame. The IMU and vehicle frames
    share roll and pitch up to a small misalignment, usually only in yaw.

    Parameters
    ----------
    rpy : np.ndarray with size 3
        Misalignment roll, pitch, yaw of the IMU w.r.t. the vehicle, in radians.
    accel : np.ndarray with size 3
        Raw accelerometer reading.
    gyro : np.ndarray with size 3
        Raw gyroscope reading.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        Aligned accelerometer and gyroscope readings.
    """
    C = rpy_to_rotation(rpy)
    accel = C.T @ np.ravel(accel)
    gyro = C.T @ np.ravel(gyro)
    return accel, gyro
