import os
import sys

# Add the examples folder to the path
sys.path.append(os.path.join(os.path.dirname(__file__), '..', 'examples'))

"""
examples/ex_lidar_inertial_fusion.py
"""

def test_ex_lidar_inertial_fusion():
    from ex_lidar_inertial_fusion import main
    results, gt_states, publisher = main()
    assert len(results) == len(gt_states) - 1
    assert len(publisher.odometry) == len(results)

def test_ex_lidar_inertial_fusion_noisy():
    from ex_lidar_inertial_fusion import main
    main(t_end=2.0, noise_active=True)
