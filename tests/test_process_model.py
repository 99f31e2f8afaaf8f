import numpy as np
import pytest

from ins_gps.attitude import euler2dcm, skew
from ins_gps.data import ImuData
from ins_gps.earth_model import radius
from ins_gps.process_model import build_process_model, measurement_matrix, radians_to_meters


@pytest.fixture
def imu():
    return ImuData(
        t=[0.0, 0.01],
        fb=np.zeros((2, 3)),
        wb=np.zeros((2, 3)),
        gb_corr=[100.0, 100.0, np.inf],
        ab_corr=200.0,
    )


def test_process_model_blocks(imu):
    lat, h = 0.7, 50.0
    C = euler2dcm(np.array([0.1, 0.2, 0.3]))
    fn = np.array([0.1, -0.2, -9.8])
    F, G = build_process_model(np.array([3.0, -1.0, 0.2]), lat, h, fn, C, imu)

    assert F.shape == (21, 21)
    assert G.shape == (21, 12)
    assert np.allclose(F[0:3, 9:12], C)
    assert np.allclose(F[0:3, 15:18], C)
    assert np.allclose(F[3:6, 12:15], -C)
    assert np.allclose(F[3:6, 18:21], -C)
    assert np.allclose(F[3:6, 0:3], skew(fn))

    RM, RN = radius(lat)
    assert np.allclose(np.diag(F[6:9, 3:6]), [1 / (RM + h), 1 / ((RN + h) * np.cos(lat)), -1.0])

    # fixed biases are random constants
    assert np.allclose(F[9:15, :], 0.0)
    assert np.allclose(np.diag(F[15:18, 15:18]), [-0.01, -0.01, 0.0])
    assert np.allclose(np.diag(F[18:21, 18:21]), -1 / 200.0)

    assert np.allclose(G[0:3, 0:3], C)
    assert np.allclose(G[3:6, 3:6], -C)
    assert np.allclose(G[15:21, 6:12], np.eye(6))
    assert np.allclose(G[6:15, :], 0.0)


def test_static_gyro_bias_couples_into_east_velocity(imu):
    # an x gyro bias error tilts the level frame about north, which shows
    # up as an east velocity error under gravity
    F, _ = build_process_model(np.zeros(3), 0.5, 0.0, np.array([0.0, 0.0, -9.8]), np.eye(3), imu)
    x = np.zeros(21)
    x[9] = 1e-3
    dpsi = F[0:3] @ x
    assert np.allclose(dpsi, [1e-3, 0.0, 0.0])
    dv = F[3:6, 0:3] @ dpsi
    assert np.allclose(dv, [0.0, -9.8e-3, 0.0])


def test_measurement_matrix():
    Tpr = radians_to_meters(0.3, 10.0)
    H = measurement_matrix(Tpr)
    assert H.shape == (6, 21)
    assert np.allclose(H[0:3, 3:6], np.eye(3))
    assert np.allclose(H[3:6, 6:9], Tpr)
    H[0:3, 3:6] = 0.0
    H[3:6, 6:9] = 0.0
    assert not H.any()


def test_radians_to_meters():
    lat, h = 0.3, 10.0
    RM, RN = radius(lat)
    assert np.allclose(radians_to_meters(lat, h), np.diag([RM + h, (RN + h) * np.cos(lat), -1.0]))
