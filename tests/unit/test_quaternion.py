from liofuse.lib.quaternion import (
    quat_conjugate,
    quat_exp,
    quat_identity,
    quat_multiply,
    quat_normalize,
    quat_rotate,
    quat_small_angle,
    quat_to_rotation,
    rotation_to_quat,
)
from pymlg import SO3
import numpy as np
import pytest


def test_identity_is_neutral():
    q = quat_exp([0.1, -0.2, 0.3])
    assert np.allclose(quat_multiply(q, quat_identity()), q)
    assert np.allclose(quat_multiply(quat_identity(), q), q)


def test_conjugate_inverts():
    q = quat_exp([0.4, 0.5, -0.6])
    assert np.allclose(quat_multiply(q, quat_conjugate(q)), quat_identity())


def test_product_matches_rotation_product():
    q1 = quat_exp([0.1, 0.2, 0.3])
    q2 = quat_exp([-0.3, 0.7, 0.1])
    C = quat_to_rotation(quat_multiply(q1, q2))
    assert np.allclose(C, quat_to_rotation(q1) @ quat_to_rotation(q2))


def test_exp_matches_so3():
    phi = np.array([0.3, -0.1, 0.9])
    assert np.allclose(quat_to_rotation(quat_exp(phi)), SO3.Exp(phi))


def test_exp_small_angle():
    q = quat_exp([1e-12, 0, 0])
    assert np.isclose(np.linalg.norm(q), 1.0)


def test_small_angle_is_first_order():
    phi = np.array([1e-3, 2e-3, -1e-3])
    q = quat_normalize(quat_small_angle(phi))
    assert np.allclose(q, quat_exp(phi), atol=1e-9)


def test_rotation_round_trip_sign():
    C = SO3.Exp([0.0, 0.0, 3.0])
    q = rotation_to_quat(C)
    assert q[0] >= 0
    assert np.allclose(quat_to_rotation(q), C)


def test_rotate():
    q = quat_exp([0, 0, np.pi / 2])
    assert np.allclose(quat_rotate(q, [1, 0, 0]), [0, 1, 0])


def test_normalize_zero_raises():
    with pytest.raises(ValueError):
        quat_normalize(np.zeros(4))
