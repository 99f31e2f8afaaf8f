import numpy as np
import pytest

from ins_gps.attitude import (
    dcm2euler,
    euler2dcm,
    euler2qua,
    orthonormalize,
    qua2euler,
    qua_error_matrix,
    quat_from_rotvec,
    quat_multiply,
    quat_normalize,
    quaternion_to_rot,
    rot_to_quaternion,
    rotvec_to_dcm,
    skew,
)

ANGLES = [
    (0.0, 0.0, 0.0),
    (0.1, -0.2, 0.3),
    (-0.5, 0.4, 2.5),
    (1.0, -1.2, -3.0),
]


def test_skew_is_cross_product():
    a = np.array([1.0, -2.0, 3.0])
    b = np.array([0.5, 4.0, -1.0])
    assert np.allclose(skew(a) @ b, np.cross(a, b))
    assert np.allclose(skew(a).T, -skew(a))


@pytest.mark.parametrize("euler", ANGLES)
def test_euler_dcm_roundtrip(euler):
    C = euler2dcm(np.array(euler))
    assert np.allclose(C @ C.T, np.eye(3))
    assert np.linalg.det(C) == pytest.approx(1.0)
    assert np.allclose(dcm2euler(C), euler)


@pytest.mark.parametrize("euler", ANGLES)
def test_quaternion_matches_dcm(euler):
    q = euler2qua(np.array(euler))
    assert np.linalg.norm(q) == pytest.approx(1.0)
    assert np.allclose(quaternion_to_rot(q), euler2dcm(np.array(euler)))
    assert np.allclose(qua2euler(q), euler)


def test_yaw_rotates_north_to_east():
    C = euler2dcm(np.array([0.0, 0.0, np.pi / 2]))
    # body x axis points east
    assert np.allclose(C @ [1.0, 0.0, 0.0], [0.0, 1.0, 0.0])


def test_quaternion_product_composes_rotations():
    q1 = euler2qua(np.array([0.1, 0.2, 0.3]))
    q2 = euler2qua(np.array([-0.4, 0.1, 1.2]))
    R = quaternion_to_rot(quat_multiply(q1, q2))
    assert np.allclose(R, quaternion_to_rot(q1) @ quaternion_to_rot(q2))


def test_quat_normalize_rejects_zero_and_nan():
    with pytest.raises(ValueError):
        quat_normalize(np.zeros(4))
    with pytest.raises(ValueError):
        quat_normalize(np.array([np.nan, 0.0, 0.0, 0.0]))
    assert np.allclose(quat_normalize(np.array([2.0, 0.0, 0.0, 0.0])), [1.0, 0.0, 0.0, 0.0])


def test_rotvec_helpers_agree():
    theta = np.array([0.01, -0.02, 0.03])
    assert np.allclose(quaternion_to_rot(quat_from_rotvec(theta)), rotvec_to_dcm(theta))
    assert np.allclose(quat_from_rotvec(np.zeros(3)), [1.0, 0.0, 0.0, 0.0])


def test_rot_to_quaternion_identity():
    assert np.allclose(rot_to_quaternion(np.eye(3)), [1.0, 0.0, 0.0, 0.0])


def test_qua_error_matrix_small_rotation():
    q = euler2qua(np.array([0.3, -0.1, 1.0]))
    psi = np.array([1e-5, -2e-5, 3e-5])
    exact = quat_multiply(np.concatenate([[1.0], psi / 2]), q)
    approx = q + 0.5 * qua_error_matrix(q) @ psi
    assert np.allclose(exact, approx, atol=1e-12)
    # same correction as (I + [psi x]) C
    C = (np.eye(3) + skew(psi)) @ quaternion_to_rot(q)
    assert np.allclose(quaternion_to_rot(quat_normalize(approx)), C, atol=1e-8)


def test_orthonormalize_returns_rotation():
    C = euler2dcm(np.array([0.2, 0.1, -0.7])) + 1e-3 * np.arange(9).reshape(3, 3)
    R = orthonormalize(C)
    assert np.allclose(R @ R.T, np.eye(3))
    assert abs(np.linalg.det(R) - 1.0) < 1e-12
