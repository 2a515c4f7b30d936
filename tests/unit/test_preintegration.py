from liofuse.lib.preintegration import (
    IMUPreintegration,
    NoiseIndex,
    StateIndex,
    midpoint_step,
    noise_covariance,
)
from liofuse.lib.quaternion import quat_identity, quat_to_rotation
from pymlg import SO3
import numpy as np
import pytest

np.set_printoptions(precision=5, suppress=True, linewidth=200)

P = slice(StateIndex.POSITION, StateIndex.POSITION + 3)
V = slice(StateIndex.VELOCITY, StateIndex.VELOCITY + 3)
A = slice(StateIndex.ATTITUDE, StateIndex.ATTITUDE + 3)
BA = slice(StateIndex.ACCEL_BIAS, StateIndex.ACCEL_BIAS + 3)
BG = slice(StateIndex.GYRO_BIAS, StateIndex.GYRO_BIAS + 3)


def random_readings(n, seed=0):
    rng = np.random.default_rng(seed)
    accel = rng.normal(size=(n, 3)) + np.array([0, 0, 9.81])
    gyro = 0.5 * rng.normal(size=(n, 3))
    return accel, gyro


def test_noise_covariance_layout():
    Q = noise_covariance(1.0, 2.0, 3.0, 4.0)
    assert Q.shape == (NoiseIndex.DOF, NoiseIndex.DOF)
    assert np.allclose(np.diag(Q)[NoiseIndex.ACCEL_0], 1.0)
    assert np.allclose(np.diag(Q)[NoiseIndex.GYRO_1], 4.0)
    assert np.allclose(np.diag(Q)[NoiseIndex.ACCEL_WALK], 9.0)
    assert np.allclose(np.diag(Q)[NoiseIndex.GYRO_WALK], 16.0)


def test_step_does_not_modify_inputs():
    dp, dq, dv = np.zeros(3), quat_identity(), np.zeros(3)
    a0, g0 = np.array([1.0, 0, 9.8]), np.array([0, 0, 0.1])
    midpoint_step(0.01, a0, g0, a0, g0, dp, dq, dv, np.zeros(3), np.zeros(3))
    assert np.allclose(dp, 0)
    assert np.allclose(dq, quat_identity())
    assert np.allclose(dv, 0)


@pytest.mark.parametrize("exact_rotation", [False, True])
def test_rotation_stays_unit(exact_rotation):
    accel, gyro = random_readings(1000)
    pre = IMUPreintegration(accel[0], gyro[0], exact_rotation=exact_rotation)
    for a, g in zip(accel[1:], gyro[1:]):
        pre.append(0.01, a, g)
        assert abs(np.linalg.norm(pre.delta_q) - 1.0) < 1e-9


def test_sum_dt():
    accel, gyro = random_readings(11)
    pre = IMUPreintegration(accel[0], gyro[0])
    dts = [0.01, 0.02, 0.005, 0.01, 0.03, 0.01, 0.01, 0.002, 0.01, 0.01]
    for dt, a, g in zip(dts, accel[1:], gyro[1:]):
        pre.append(dt, a, g)
    assert np.isclose(pre.sum_dt, sum(dts))
    assert pre.num_samples == len(dts)


def test_constant_acceleration():
    a = np.array([1.0, -2.0, 0.5])
    pre = IMUPreintegration(a, np.zeros(3))
    for _ in range(100):
        pre.append(0.01, a, np.zeros(3))

    T = pre.sum_dt
    delta_p, delta_q, delta_v, dt = pre.relative_motion()
    assert np.isclose(dt, 1.0)
    assert np.allclose(delta_v, a * T)
    assert np.allclose(delta_p, 0.5 * a * T**2)
    assert np.allclose(delta_q, quat_identity())


def test_constant_rotation():
    w = np.array([0.0, 0.0, 0.7])
    pre = IMUPreintegration(np.zeros(3), w, exact_rotation=True)
    for _ in range(100):
        pre.append(0.01, np.zeros(3), w)
    assert np.allclose(quat_to_rotation(pre.delta_q), SO3.Exp(w * pre.sum_dt))

    # The first-order increment is close for small steps
    pre = IMUPreintegration(np.zeros(3), w)
    for _ in range(100):
        pre.append(0.01, np.zeros(3), w)
    assert np.allclose(
        quat_to_rotation(pre.delta_q), SO3.Exp(w * pre.sum_dt), atol=1e-4
    )


def test_gyro_bias_is_removed():
    w = np.array([0.1, 0.2, 0.3])
    pre = IMUPreintegration(np.zeros(3), w, gyro_bias=w)
    for _ in range(50):
        pre.append(0.01, np.zeros(3), w)
    assert np.allclose(pre.delta_q, quat_identity())


def test_jacobian_is_product_of_step_transitions():
    accel, gyro = random_readings(20, seed=1)
    ba, bg = np.array([0.1, 0.0, -0.1]), np.array([0.01, 0.02, 0.0])
    pre = IMUPreintegration(accel[0], gyro[0], ba, bg)

    dp, dq, dv = np.zeros(3), quat_identity(), np.zeros(3)
    F_total = np.identity(StateIndex.DOF)
    for k in range(1, 20):
        pre.append(0.01, accel[k], gyro[k])
        step = midpoint_step(
            0.01, accel[k - 1], gyro[k - 1], accel[k], gyro[k], dp, dq, dv, ba, bg
        )
        dp, dq, dv = step.delta_p, step.delta_q, step.delta_v
        F_total = step.F @ F_total

    assert np.allclose(pre.error_state_transition(), F_total)
    assert np.allclose(pre.delta_p, dp)
    assert np.allclose(pre.delta_q, dq)


def test_split_interval_matches_single_interval():
    accel, gyro = random_readings(4, seed=5)
    ba, bg = np.array([0.05, -0.02, 0.0]), np.array([0.0, 0.01, -0.01])

    single = IMUPreintegration(accel[0], gyro[0], ba, bg)
    for k in range(1, 4):
        single.append(0.01, accel[k], gyro[k])

    first = IMUPreintegration(accel[0], gyro[0], ba, bg)
    for k in range(1, 3):
        first.append(0.01, accel[k], gyro[k])
    J_first = first.error_state_transition()

    split = first.copy()
    split.append(0.01, accel[3], gyro[3])
    assert np.allclose(
        split.error_state_transition(), single.error_state_transition()
    )
    assert np.allclose(split.delta_p, single.delta_p)
    assert np.allclose(split.delta_q, single.delta_q)
    assert np.allclose(split.delta_v, single.delta_v)

    # The last sample contributes one step transition on top of the first two
    step = midpoint_step(
        0.01,
        accel[2],
        gyro[2],
        accel[3],
        gyro[3],
        first.delta_p,
        first.delta_q,
        first.delta_v,
        ba,
        bg,
    )
    assert np.allclose(single.error_state_transition(), step.F @ J_first)


def test_bias_jacobian_without_rotation():
    a = np.array([0.0, 0.0, 9.81])
    pre = IMUPreintegration(a, np.zeros(3))
    for _ in range(100):
        pre.append(0.01, a, np.zeros(3))

    T = pre.sum_dt
    J = pre.error_state_transition()
    assert np.allclose(J[V, BA], -T * np.identity(3))
    assert np.allclose(J[P, BA], -0.5 * T**2 * np.identity(3))
    assert np.allclose(J[A, BG], -T * np.identity(3))
    assert np.allclose(J[BA, BA], np.identity(3))
    assert np.allclose(J[BG, BG], np.identity(3))


def test_covariance_symmetric():
    accel, gyro = random_readings(100, seed=2)
    pre = IMUPreintegration(accel[0], gyro[0], accel_noise=0.1, gyro_noise=0.01)
    for a, g in zip(accel[1:], gyro[1:]):
        pre.append(0.01, a, g)

    cov = pre.error_state_covariance()
    assert np.allclose(cov, cov.T)
    assert np.all(np.linalg.eigvalsh(cov) > -1e-12)
    assert np.all(np.diag(cov) >= 0)


def test_zero_noise_zero_covariance():
    accel, gyro = random_readings(10)
    pre = IMUPreintegration(accel[0], gyro[0], None, None, 0.0, 0.0, 0.0, 0.0)
    for a, g in zip(accel[1:], gyro[1:]):
        pre.append(0.01, a, g)
    assert np.allclose(pre.covariance, 0)


@pytest.mark.parametrize("dt", [0.0, -0.01])
def test_non_positive_dt_raises(dt):
    pre = IMUPreintegration(np.zeros(3), np.zeros(3))
    with pytest.raises(ValueError):
        pre.append(dt, np.zeros(3), np.zeros(3))
    assert pre.num_samples == 0


def test_bad_vector_size_raises():
    with pytest.raises(ValueError):
        IMUPreintegration(np.zeros(2), np.zeros(3))


def test_rebase_matches_fresh_integration():
    accel, gyro = random_readings(50, seed=3)
    ba_new = np.array([0.2, -0.1, 0.05])
    bg_new = np.array([0.01, -0.02, 0.03])

    pre = IMUPreintegration(accel[0], gyro[0])
    fresh = IMUPreintegration(accel[0], gyro[0], ba_new, bg_new)
    for a, g in zip(accel[1:], gyro[1:]):
        pre.append(0.01, a, g)
        fresh.append(0.01, a, g)

    pre.rebase(ba_new, bg_new)
    assert np.allclose(pre.delta_p, fresh.delta_p)
    assert np.allclose(pre.delta_q, fresh.delta_q)
    assert np.allclose(pre.delta_v, fresh.delta_v)
    assert np.allclose(pre.jacobian, fresh.jacobian)
    assert np.allclose(pre.covariance, fresh.covariance)
    assert np.isclose(pre.sum_dt, fresh.sum_dt)
    assert pre.num_samples == fresh.num_samples


def test_rebase_matches_first_order_correction():
    a = np.array([0.5, 0.0, 9.81])
    pre = IMUPreintegration(a, np.zeros(3))
    for _ in range(20):
        pre.append(0.01, a, np.zeros(3))

    J = pre.error_state_transition()
    delta_v = pre.delta_v.copy()
    db = np.array([0.05, 0.02, -0.01])
    pre.rebase(db, np.zeros(3))
    assert np.allclose(pre.delta_v, delta_v + J[V, BA] @ db)


def test_bias_drift():
    pre = IMUPreintegration(np.zeros(3), np.zeros(3), [0.1, 0, 0], [0, 0.01, 0])
    accel_drift, gyro_drift = pre.bias_drift([0.1, 0.3, 0.4], [0, 0.01, 0])
    assert np.isclose(accel_drift, 0.5)
    assert np.isclose(gyro_drift, 0.0)


def test_copy_is_independent():
    accel, gyro = random_readings(10)
    pre = IMUPreintegration(accel[0], gyro[0])
    for a, g in zip(accel[1:5], gyro[1:5]):
        pre.append(0.01, a, g)

    other = pre.copy()
    for a, g in zip(accel[5:], gyro[5:]):
        other.append(0.01, a, g)

    assert pre.num_samples == 4
    assert other.num_samples == 9
    assert not np.allclose(pre.delta_p, other.delta_p)


def test_copy_continues_identically():
    accel, gyro = random_readings(10, seed=4)
    pre = IMUPreintegration(accel[0], gyro[0])
    for a, g in zip(accel[1:5], gyro[1:5]):
        pre.append(0.01, a, g)

    other = pre.copy()
    for a, g in zip(accel[5:], gyro[5:]):
        pre.append(0.01, a, g)
        other.append(0.01, a, g)

    assert np.allclose(pre.delta_p, other.delta_p)
    assert np.allclose(pre.jacobian, other.jacobian)
