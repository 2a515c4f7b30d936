"""
Replays a simulated lidar-inertial recording through the synchronization
driver, using the dead-reckoning correction step as the filter core.
"""

import liofuse as lio
from liofuse.lib import SimulatedLidarInertialDataset


def main(t_end: float = 10.0, noise_active: bool = False):
    # ##########################################################################
    # Problem Setup
    config = lio.FusionConfig(
        accel_noise=0.01,
        gyro_noise=0.001,
        sync_tolerance=0.01,
    )
    data = SimulatedLidarInertialDataset(
        t_end=t_end,
        gravity=config.gravity,
        noise_active=noise_active,
    )
    gt_states = data.get_ground_truth()
    imu_data = data.get_input_data()
    scan_data, cloud_info_data, outlier_data = data.get_measurement_data()

    # The first complete scan initializes the filter
    x0 = gt_states[0].copy()

    # ##########################################################################
    # Run the driver
    core = lio.InertialOdometryCore(
        lio.DeadReckoningUpdate(config.gravity_vector), config, x0
    )
    publisher = lio.ListPublisher()
    fusion = lio.LidarInertialFusion(core, config, publisher)

    results = lio.run_fusion(
        fusion, imu_data, scan_data, cloud_info_data, outlier_data
    )
    return results, gt_states, publisher


if __name__ == "__main__":
    results, gt_states, publisher = main()

    # ##########################################################################
    # Plot results
    import matplotlib.pyplot as plt

    fig = plt.figure()
    ax = plt.axes(projection="3d")
    lio.plot_poses(results, ax, line_color="tab:blue", step=10, label="Estimate")
    lio.plot_poses(
        gt_states, ax, line_color="tab:red", step=None, label="Groundtruth"
    )
    ax.legend()

    lio.plot_position_error(results, gt_states)
    plt.show()
