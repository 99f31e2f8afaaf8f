import numpy as np
import pytest

from ins_gps.kalman import discretize, kalman_step, safe_inv
from ins_gps.process_model import measurement_matrix
from ins_gps.state import FilterMatrices


def _filter(P_diag=1.0, R_diag=0.5):
    H = measurement_matrix(np.diag([2.0, 3.0, -1.0]))
    return FilterMatrices(
        Q=np.zeros((12, 12)),
        R=np.eye(6) * R_diag,
        P=np.eye(21) * P_diag,
        F=np.zeros((21, 21)),
        G=np.zeros((21, 12)),
        H=H,
    )


def test_safe_inv_falls_back_to_pinv():
    S = np.zeros((2, 2))
    assert np.allclose(safe_inv(S), 0.0)
    A = np.array([[2.0, 0.0], [0.0, 4.0]])
    assert np.allclose(safe_inv(A), np.diag([0.5, 0.25]))


def test_discretize_without_dynamics():
    G = np.zeros((21, 12))
    G[0:3, 0:3] = np.eye(3)
    Q = np.eye(12) * 4.0
    A, Qd = discretize(np.zeros((21, 21)), G, Q, 0.5)
    assert np.allclose(A, np.eye(21))
    assert np.allclose(Qd[0:3, 0:3], 2.0 * np.eye(3))
    assert np.allclose(Qd[3:, 3:], 0.0)


def test_kalman_step_matches_textbook_update():
    filt = _filter()
    z = np.array([0.1, -0.2, 0.3, 1.0, -2.0, 0.5])
    x, P = kalman_step(np.zeros(21), z, filt, 1.0)

    H = filt.H
    S = H @ filt.P @ H.T + filt.R
    K = filt.P @ H.T @ np.linalg.inv(S)
    assert np.allclose(x, K @ z)
    expected_P = (np.eye(21) - K @ H) @ filt.P
    assert np.allclose(P, expected_P)


def test_kalman_step_keeps_covariance_symmetric_psd():
    rng = np.random.default_rng(1)
    A = rng.standard_normal((21, 21))
    filt = _filter()
    filt.P = A @ A.T * 1e-2 + np.eye(21) * 1e-3
    filt.F = rng.standard_normal((21, 21)) * 0.01
    filt.G = rng.standard_normal((21, 12))
    filt.Q = np.eye(12) * 1e-4
    x, P = kalman_step(np.zeros(21), rng.standard_normal(6), filt, 1.0)
    assert np.allclose(P, P.T)
    assert np.linalg.eigvalsh(P).min() > -1e-12
    assert np.all(np.isfinite(x))


def test_kalman_step_zero_noise_is_zero():
    filt = _filter(P_diag=0.0, R_diag=0.0)
    x, P = kalman_step(np.zeros(21), np.zeros(6), filt, 1.0)
    assert not x.any()
    assert not P.any()


def test_kalman_step_returns_input_dtype():
    filt = _filter()
    for name in ("Q", "R", "P", "F", "G", "H"):
        setattr(filt, name, getattr(filt, name).astype(np.float32))
    x, P = kalman_step(np.zeros(21, dtype=np.float32), np.ones(6, dtype=np.float32), filt, 1.0)
    assert x.dtype == np.float32
    assert P.dtype == np.float32
    assert x[3] == pytest.approx(1.0 / 1.5, rel=1e-5)
