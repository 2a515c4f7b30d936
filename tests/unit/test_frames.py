from liofuse.lib.frames import (
    C_XYZ_TO_YZX,
    cloud_to_yzx,
    odometry_to_xyz,
    odometry_to_yzx,
    orientation_to_xyz,
    orientation_to_yzx,
    position_to_xyz,
    position_to_yzx,
)
from liofuse.lib.messages import Odometry, PointCloud
from liofuse.lib.quaternion import quat_exp, quat_to_rotation
import numpy as np


def test_axis_remapping():
    # forward, left, up become the third, first and second axes
    assert np.allclose(position_to_yzx([1, 2, 3]), [2, 3, 1])
    assert np.allclose(position_to_xyz([2, 3, 1]), [1, 2, 3])


def test_orientation_conjugation():
    q = quat_exp([0.1, 0.2, 0.3])
    q_yzx = orientation_to_yzx(q)
    C = C_XYZ_TO_YZX
    assert np.allclose(quat_to_rotation(q_yzx), C @ quat_to_rotation(q) @ C.T)


def test_yaw_becomes_rotation_about_second_axis():
    q_yzx = orientation_to_yzx(quat_exp([0, 0, 0.5]))
    assert np.allclose(q_yzx, quat_exp([0, 0.5, 0]))


def test_orientation_inverse():
    q = quat_exp([-0.4, 0.2, 1.3])
    assert np.allclose(quat_to_rotation(orientation_to_xyz(orientation_to_yzx(q))),
                       quat_to_rotation(q))


def test_odometry_conversion():
    odom = Odometry(1.0, quat_exp([0, 0, 0.3]), [1, 2, 3], "a", "b")
    odom_yzx = odometry_to_yzx(odom)
    assert np.allclose(odom_yzx.position, [2, 3, 1])
    assert odom_yzx.frame_id == "a"
    assert odom_yzx.child_frame_id == "b"
    assert np.allclose(odom.position, [1, 2, 3])

    back = odometry_to_xyz(odom_yzx)
    assert np.allclose(back.position, odom.position)
    assert np.allclose(quat_to_rotation(back.orientation),
                       quat_to_rotation(odom.orientation))


def test_cloud_conversion():
    cloud = PointCloud([[1, 2, 3], [4, 5, 6]], 0.5, frame_id="lidar")
    new = cloud_to_yzx(cloud, stamp=1.0, frame_id="/camera")
    assert np.allclose(new.points, [[2, 3, 1], [5, 6, 4]])
    assert new.stamp == 1.0
    assert new.frame_id == "/camera"
    assert cloud.stamp == 0.5
    assert np.allclose(cloud.points, [[1, 2, 3], [4, 5, 6]])
