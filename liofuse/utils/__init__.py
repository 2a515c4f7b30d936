from .plot import (
    plot_poses,
    plot_position_error,
    set_axes_equal,
)
