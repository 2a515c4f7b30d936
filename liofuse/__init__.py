from .types import (
    Measurement,
    ScanUpdate,
    ScanUpdateResult,
    FilterCore,
    Dataset,
)
from .buffer import MeasurementBuffer
from .config import FusionConfig
from .fusion import (
    LidarInertialFusion,
    FusionStatus,
    SynchronizationError,
    run_fusion,
)
from .publishers import Publisher, ListPublisher
from . import lib
from . import utils

from .lib.preintegration import IMUPreintegration
from .lib.estimator import NavState, InertialOdometryCore, DeadReckoningUpdate

from .utils.plot import (
    plot_poses,
    plot_position_error,
    set_axes_equal,
)
