"""Continuous-time error model of the 21-state INS/GPS filter.

Error states (estimated minus true) follow the order of
:class:`ins_gps.state.ErrorState`. The attitude error ``ψ`` is the
psi-angle in NED, ``C_bn_est = (I - [ψ×]) C_bn``. Process noise inputs are
``[gyro ARW (3), accel VRW (3), gyro drift PSD (3), accel drift PSD (3)]``.

Reference: Titterton & Weston, *Strapdown Inertial Navigation Technology*,
2nd ed., ch. 12.
"""

from typing import Tuple

import numpy as np

from .attitude import skew
from .constants import EARTH_RATE, MEAN_EARTH_RADIUS
from .data import ImuData
from .earth_model import normal_gravity, radius
from .state import N_NOISE, N_STATES


def _markov_rates(corr: np.ndarray) -> np.ndarray:
    """Return ``-1/τ`` per axis; infinite correlation times give a random constant."""
    corr = np.asarray(corr, dtype=float)
    with np.errstate(divide="ignore"):
        beta = np.where(np.isfinite(corr) & (corr > 0), 1.0 / corr, 0.0)
    return -np.diag(beta)


def build_process_model(
    vel: np.ndarray,
    lat: float,
    h: float,
    fn: np.ndarray,
    C_bn: np.ndarray,
    imu: ImuData,
) -> Tuple[np.ndarray, np.ndarray]:
    """Return the system matrix ``F`` (21×21) and noise-input matrix ``G`` (21×12).

    Parameters
    ----------
    vel : ndarray of shape (3,)
        NED velocity [m/s].
    lat, h : float
        Latitude [rad] and altitude [m].
    fn : ndarray of shape (3,)
        Specific force in the NED frame [m/s²].
    C_bn : ndarray of shape (3, 3)
        Body-to-NED DCM.
    imu : ImuData
        Provides the bias correlation times ``gb_corr`` and ``ab_corr``.
    """
    Vn, Ve, Vd = (float(v) for v in vel)
    lat = float(lat)
    h = float(h)
    C_bn = np.asarray(C_bn, dtype=float)
    fn = np.asarray(fn, dtype=float)

    om = EARTH_RATE
    RM, RN = radius(lat)
    Rm = RM + h
    Rn = RN + h
    s = np.sin(lat)
    c = np.cos(lat)
    t = np.tan(lat)
    g = normal_gravity(lat, h)
    Z = np.zeros((3, 3))
    I = np.eye(3)

    # Attitude error
    Fee = np.array([
        [0.0, -(om * s + Ve * t / Rn), Vn / Rm],
        [om * s + Ve * t / Rn, 0.0, om * c + Ve / Rn],
        [-Vn / Rm, -(om * c + Ve / Rn), 0.0],
    ])
    Fev = np.array([
        [0.0, 1.0 / Rn, 0.0],
        [-1.0 / Rm, 0.0, 0.0],
        [0.0, -t / Rn, 0.0],
    ])
    Fep = np.array([
        [-om * s, 0.0, -Ve / Rn**2],
        [0.0, 0.0, Vn / Rm**2],
        [-om * c - Ve / (Rn * c**2), 0.0, Ve * t / Rn**2],
    ])

    # Velocity error
    Fve = skew(fn)
    Fvv = np.array([
        [Vd / Rm, -2.0 * (om * s + Ve * t / Rn), Vn / Rm],
        [2.0 * om * s + Ve * t / Rn, (Vn * t + Vd) / Rn, 2.0 * om * c + Ve / Rn],
        [-2.0 * Vn / Rm, -2.0 * (om * c + Ve / Rn), 0.0],
    ])
    Fvp = np.array([
        [-Ve * (2.0 * om * c + Ve / (Rn * c**2)), 0.0, Ve**2 * t / Rn**2 - Vn * Vd / Rm**2],
        [2.0 * om * (Vn * c - Vd * s) + Vn * Ve / (Rn * c**2), 0.0, -Ve * (Vn * t + Vd) / Rn**2],
        [2.0 * om * Ve * s, 0.0, Ve**2 / Rn**2 + Vn**2 / Rm**2 - 2.0 * g / (MEAN_EARTH_RADIUS + h)],
    ])

    # Position error (lat, lon, h)
    Fpv = np.array([
        [1.0 / Rm, 0.0, 0.0],
        [0.0, 1.0 / (Rn * c), 0.0],
        [0.0, 0.0, -1.0],
    ])
    Fpp = np.array([
        [0.0, 0.0, -Vn / Rm**2],
        [Ve * t / (Rn * c), 0.0, -Ve / (Rn**2 * c)],
        [0.0, 0.0, 0.0],
    ])

    Fgg = _markov_rates(imu.gb_corr)
    Faa = _markov_rates(imu.ab_corr)

    F = np.block([
        [Fee, Fev, Fep, C_bn, Z, C_bn, Z],
        [Fve, Fvv, Fvp, Z, -C_bn, Z, -C_bn],
        [Z, Fpv, Fpp, Z, Z, Z, Z],
        [Z, Z, Z, Z, Z, Z, Z],
        [Z, Z, Z, Z, Z, Z, Z],
        [Z, Z, Z, Z, Z, Fgg, Z],
        [Z, Z, Z, Z, Z, Z, Faa],
    ])
    G = np.block([
        [C_bn, Z, Z, Z],
        [Z, -C_bn, Z, Z],
        [Z, Z, Z, Z],
        [Z, Z, Z, Z],
        [Z, Z, Z, Z],
        [Z, Z, I, Z],
        [Z, Z, Z, I],
    ])
    assert F.shape == (N_STATES, N_STATES) and G.shape == (N_STATES, N_NOISE)
    return F, G


def measurement_matrix(Tpr: np.ndarray) -> np.ndarray:
    """Return ``H`` (6×21): velocity rows select δv, position rows apply ``Tpr`` to δp."""
    H = np.zeros((6, N_STATES))
    H[0:3, 3:6] = np.eye(3)
    H[3:6, 6:9] = Tpr
    return H


def radians_to_meters(lat: float, h: float) -> np.ndarray:
    """``Tpr``: maps ``[δlat, δlon, δh]`` to NED metres ``[δN, δE, δD]``."""
    RM, RN = radius(lat)
    return np.diag([RM + h, (RN + h) * np.cos(lat), -1.0])
