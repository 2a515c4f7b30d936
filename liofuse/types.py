"""
This module contains the core primitive types used throughout liofuse.
"""

import numpy as np
from typing import Any, Dict, Generic, List, Optional, Tuple, TypeVar
from abc import ABC, abstractmethod

V = TypeVar("V")


class Measurement(Generic[V]):
    """
    An immutable ``(stamp, value)`` pair, the unit stored by a
    ``MeasurementBuffer``.
    """

    __slots__ = ["_stamp", "_value"]

    def __init__(self, stamp: float, value: V):
        object.__setattr__(self, "_stamp", float(stamp))
        object.__setattr__(self, "_value", value)

    @property
    def stamp(self) -> float:
        """Timestamp in seconds."""
        return self._stamp

    @property
    def value(self) -> V:
        return self._value

    def __setattr__(self, name, value):
        raise AttributeError("Measurement is immutable.")

    def __iter__(self):
        # Allows ``stamp, value = measurement``
        yield self._stamp
        yield self._value

    def __repr__(self):
        return f"Measurement(stamp={self._stamp}, value={self._value!r})"


class ScanUpdateResult:
    """
    Output of a filter correction: the time the filter landed on, the
    corrected state, and any feature point sets to re-publish.
    """

    __slots__ = ["stamp", "state", "features"]

    def __init__(
        self,
        stamp: float,
        state: Any,
        features: Dict[str, np.ndarray] = None,
    ):
        #:float: Time of the corrected state
        self.stamp = stamp
        #:Any: Corrected state, usually a ``NavState``
        self.state = state
        #:Dict[str, np.ndarray]: feature point sets keyed by topic name
        self.features = features if features is not None else {}

    def __repr__(self):
        return (
            f"ScanUpdateResult(stamp={self.stamp}, "
            f"features={list(self.features.keys())})"
        )


class ScanUpdate(ABC):
    """
    Abstract correction step of an error-state filter. Given the nominal state
    at the previous scan, the preintegrated inertial motion since then, and a
    synchronized scan, it returns the updated time and state.
    """

    @abstractmethod
    def update(
        self, state: Any, preintegration: Any, scan: Any
    ) -> ScanUpdateResult:
        """
        Parameters
        ----------
        state : NavState
            Nominal state at the previous scan.
        preintegration : IMUPreintegration or None
            Relative motion accumulated since the previous scan. ``None`` for
            the scan that initializes the filter.
        scan : SynchronizedScan
            The scan together with its metadata and outlier cloud.

        Returns
        -------
        ScanUpdateResult
            Updated time, state and feature clouds.
        """
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}"


class FilterCore(ABC):
    """
    The narrow contract through which the synchronization driver talks to an
    error-state filter. The driver never inspects the filter's state, it only
    queries the current time, replays inertial samples through
    ``process_imu`` and hands over scans through ``process_scan``.
    """

    @property
    @abstractmethod
    def stamp(self) -> Optional[float]:
        """
        Current processed time of the filter. ``None`` until initialized,
        monotonically non-decreasing afterwards.
        """
        pass

    @abstractmethod
    def is_initialized(self) -> bool:
        pass

    @abstractmethod
    def process_imu(self, dt: float, accel: np.ndarray, gyro: np.ndarray):
        """
        Propagation entry point. Advances the filter time by ``dt``.
        """
        pass

    @abstractmethod
    def process_scan(
        self,
        stamp: float,
        last_imu: Any,
        scan: Any,
        cloud_info: Any,
        outlier_scan: Any,
    ) -> ScanUpdateResult:
        """
        Update entry point. The first call initializes the filter at ``stamp``.
        """
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}(stamp={self.stamp})"


class Dataset(ABC):
    """A container to store a dataset.

    Contains abstract methods to get the groundtruth data,
    the inertial data, and the scan data.
    """

    @abstractmethod
    def get_ground_truth(self) -> List[Any]:
        """Returns a list of groundtruth states."""
        pass

    @abstractmethod
    def get_input_data(self) -> List[Any]:
        """Returns a list of IMU readings."""
        pass

    @abstractmethod
    def get_measurement_data(self) -> Tuple[List[Any], List[Any], List[Any]]:
        """Returns the scans, their metadata and their outlier clouds."""
        pass
