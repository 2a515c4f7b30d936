"""
Collection of miscellaneous plotting functions.
"""

from typing import List

import numpy as np
import matplotlib.pyplot as plt

from liofuse.types import ScanUpdateResult


def _as_states(poses) -> list:
    if isinstance(poses, ScanUpdateResult):
        return [poses.state]
    if isinstance(poses, np.ndarray):
        poses = poses.tolist()
    if not isinstance(poses, list):
        return [poses]
    return [p.state if isinstance(p, ScanUpdateResult) else p for p in poses]


def plot_poses(
    poses,
    ax: plt.Axes = None,
    line_color: str = None,
    triad_color: str = None,
    arrow_length: float = 1,
    step: int = 5,
    label: str = None,
    linewidth=None,
    plot_2d: bool = False,
):
    """
    Plots a pose trajectory, representing the attitudes by triads
    plotted along the trajectory.

    Parameters
    ----------
    poses : List[NavState] or List[ScanUpdateResult]
        A list of objects containing a ``position`` property and an attitude
        property, representing the rotation matrix :math:`\\mathbf{C}_{nb}`.
    ax : plt.Axes, optional
        Axes to plot on, if none, 3D axes are created.
    line_color : str, optional
        Color of the position trajectory.
    triad_color : str, optional
        Triad color. If none are specified, defaults to RGB.
    arrow_length : int, optional
        Triad arrow length, by default 1.
    step : int or None, optional
        Step size in list of poses, by default 5. If None, no triads are plotted.
    label : str, optional
        Optional label for the trajectory
    plot_2d: bool, optional
        Flag to plot the trajectory in 2D bird's eye view.
    """
    poses = _as_states(poses)

    # Check if provided axes are in 3D
    if ax is not None:
        if ax.name == "3d":
            plot_2d = False

    if ax is None:
        fig = plt.figure()
        if plot_2d:
            ax = plt.axes()
        else:
            ax = plt.axes(projection="3d")
    else:
        fig = ax.get_figure()

    if triad_color is None:
        colors = ["tab:red", "tab:green", "tab:blue"]  # Default to RGB
    else:
        colors = [triad_color] * 3

    r = np.array([pose.position for pose in poses])
    if plot_2d:
        ax.plot(r[:, 0], r[:, 1], color=line_color, label=label)
    else:
        ax.plot3D(r[:, 0], r[:, 1], r[:, 2], color=line_color, label=label)

    if step is not None:
        C = np.array([poses[i].attitude.T for i in range(0, len(poses), step)])
        r = np.array([poses[i].position for i in range(0, len(poses), step)])
        if plot_2d:
            for i in range(2):
                ax.quiver(
                    r[:, 0],
                    r[:, 1],
                    C[:, i, 0],
                    C[:, i, 1],
                    color=colors[i],
                    scale=20.0,
                    headwidth=2,
                )
        else:
            for i in range(3):
                ax.quiver(
                    r[:, 0],
                    r[:, 1],
                    r[:, 2],
                    C[:, i, 0],
                    C[:, i, 1],
                    C[:, i, 2],
                    color=colors[i],
                    length=arrow_length,
                    arrow_length_ratio=0.1,
                    linewidths=linewidth,
                )

    if plot_2d:
        ax.axis("equal")
    else:
        set_axes_equal(ax)
    return fig, ax


def plot_position_error(
    estimates,
    ground_truth: List,
    axs: List[plt.Axes] = None,
    label: str = None,
    color=None,
):
    """
    Plots the position error of each axis against time. Every estimate is
    compared with the ground truth state closest to it in time.

    Parameters
    ----------
    estimates : List[NavState] or List[ScanUpdateResult]
        Estimated states, with a ``stamp`` and a ``position``.
    ground_truth : List[NavState]
        Ground truth states.
    axs : List[plt.Axes], optional
        Three axes to plot on, created if not given.
    label : str, optional
        Legend label.
    color : optional
        Line color.

    Returns
    -------
    Tuple[plt.Figure, List[plt.Axes]]
    """
    estimates = _as_states(estimates)
    if len(estimates) == 0 or len(ground_truth) == 0:
        raise ValueError("Nothing to plot.")

    gt_stamps = np.array([x.stamp for x in ground_truth])
    order = np.argsort(gt_stamps)
    gt_stamps = gt_stamps[order]

    stamps = np.array([x.stamp for x in estimates])
    idx = np.clip(np.searchsorted(gt_stamps, stamps), 1, len(gt_stamps) - 1)
    if len(gt_stamps) > 1:
        left_closer = (stamps - gt_stamps[idx - 1]) < (gt_stamps[idx] - stamps)
        idx = idx - left_closer
    else:
        idx = np.zeros(len(stamps), dtype=int)

    gt_positions = np.array([ground_truth[order[i]].position for i in idx])
    e = np.array([x.position for x in estimates]) - gt_positions

    if axs is None:
        fig, axs = plt.subplots(3, 1, sharex=True)
    else:
        fig = axs[0].get_figure()

    for i, name in enumerate(["x", "y", "z"]):
        axs[i].plot(stamps, e[:, i], color=color, label=label)
        axs[i].set_ylabel(f"{name} error (m)")
    axs[-1].set_xlabel("Time (s)")
    axs[0].set_title("Position error")
    return fig, axs


def set_axes_equal(ax: plt.Axes):
    """
    Sets the axes of a 3D plot to have equal scale.

    Parameters
    ----------
    ax : plt.Axes
        Matplotlib axes.
    """
    x_limits = ax.get_xlim3d()
    y_limits = ax.get_ylim3d()
    z_limits = ax.get_zlim3d()
    x_range = abs(x_limits[1] - x_limits[0])
    x_middle = np.mean(x_limits)
    y_range = abs(y_limits[1] - y_limits[0])
    y_middle = np.mean(y_limits)
    z_range = abs(z_limits[1] - z_limits[0])
    z_middle = np.mean(z_limits)
    length = 0.5 * max([x_range, y_range, z_range])
    ax.set_xlim3d([x_middle - length, x_middle + length])
    ax.set_ylim3d([y_middle - length, y_middle + length])
    ax.set_zlim3d([z_middle - length, z_middle + length])
