import numpy as np
from filterpy.kalman import KalmanFilter
from scipy.linalg import expm

from .state import FilterMatrices


def safe_inv(S: np.ndarray) -> np.ndarray:
    """Invert the innovation covariance, falling back to the pseudo-inverse."""
    try:
        return np.linalg.inv(S)
    except np.linalg.LinAlgError:
        return np.linalg.pinv(S)


def discretize(F: np.ndarray, G: np.ndarray, Q: np.ndarray, dt: float):
    """Return the transition matrix ``expm(F dt)`` and ``Qd = G Q Gᵀ dt``."""
    A = expm(F * dt)
    Qd = (G @ Q @ G.T) * dt
    return A, 0.5 * (Qd + Qd.T)


def kalman_step(
    x: np.ndarray, z: np.ndarray, filt: FilterMatrices, dt: float
) -> tuple[np.ndarray, np.ndarray]:
    """Run one predict+update cycle of the error-state filter.

    Parameters
    ----------
    x : ndarray of shape (21,)
        Error state before the prediction (zero after every feedback).
    z : ndarray of shape (6,)
        Innovation ``[velocity, position]`` from the navigation solution.
    filt : FilterMatrices
        ``F``/``G`` continuous model, ``H``, ``Q``, ``R`` and current ``P``.
    dt : float
        Time since the previous update [s].

    Returns
    -------
    tuple of ndarray
        Updated error state and covariance. The covariance update uses the
        Joseph form and is symmetrised.
    """
    dtype = np.result_type(x, filt.P)
    A, Qd = discretize(
        filt.F.astype(np.float64), filt.G.astype(np.float64), filt.Q.astype(np.float64), dt
    )
    kf = KalmanFilter(dim_x=len(x), dim_z=len(z))
    kf.inv = safe_inv
    kf.x = np.asarray(x, dtype=np.float64).reshape(-1, 1)
    kf.P = np.asarray(filt.P, dtype=np.float64)
    kf.F = A
    kf.Q = Qd
    kf.H = np.asarray(filt.H, dtype=np.float64)
    kf.R = np.asarray(filt.R, dtype=np.float64)
    kf.predict()
    kf.update(np.asarray(z, dtype=np.float64).reshape(-1, 1))
    P = 0.5 * (kf.P + kf.P.T)
    return kf.x.reshape(-1).astype(dtype), P.astype(dtype)
