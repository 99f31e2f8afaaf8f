"""Strapdown mechanisation in the local NED frame.

One call to :func:`mechanize` advances attitude, velocity and position by
one IMU period. Attitude is either a body-to-NED DCM (``"dcm"``) or a
scalar-first quaternion (``"quaternion"``).
"""

from typing import Tuple

import numpy as np

from .attitude import (
    quat_from_rotvec,
    quat_multiply,
    quat_normalize,
    quaternion_to_rot,
    rotvec_to_dcm,
)
from .earth_model import gravity, radius


def att_update(
    wb: np.ndarray,
    attitude: np.ndarray,
    omega_ie_n: np.ndarray,
    omega_en_n: np.ndarray,
    dt: float,
    att_mode: str = "quaternion",
) -> np.ndarray:
    """Propagate the attitude with the body rate ``wb`` over ``dt``.

    The body rotation is applied on the right and the navigation-frame
    rotation (Earth rate plus transport rate) on the left, both as exact
    rotation-vector increments.
    """
    omega_in_n = np.asarray(omega_ie_n, dtype=float) + np.asarray(omega_en_n, dtype=float)
    wb = np.asarray(wb, dtype=float)
    if att_mode == "dcm":
        C = np.asarray(attitude, dtype=float)
        C_new = rotvec_to_dcm(-omega_in_n * dt) @ C @ rotvec_to_dcm(wb * dt)
        return C_new.astype(attitude.dtype)
    if att_mode == "quaternion":
        q = np.asarray(attitude, dtype=float)
        q_new = quat_multiply(quat_multiply(quat_from_rotvec(-omega_in_n * dt), q), quat_from_rotvec(wb * dt))
        return quat_normalize(q_new).astype(attitude.dtype)
    raise ValueError(f"unknown attitude mode {att_mode!r}")


def vel_update(
    fn: np.ndarray,
    vel: np.ndarray,
    omega_ie_n: np.ndarray,
    omega_en_n: np.ndarray,
    g_n: np.ndarray,
    dt: float,
) -> np.ndarray:
    """Integrate specific force with Coriolis, transport-rate and gravity terms."""
    v = np.asarray(vel, dtype=float)
    coriolis = np.cross(2.0 * np.asarray(omega_ie_n) + np.asarray(omega_en_n), v)
    return v + (np.asarray(fn, dtype=float) + np.asarray(g_n, dtype=float) - coriolis) * dt


def pos_update(pos: np.ndarray, vel: np.ndarray, dt: float) -> np.ndarray:
    """Integrate curvilinear position ``[lat, lon, h]`` with NED velocity."""
    lat, lon, h = (float(p) for p in pos)
    vn, ve, vd = (float(v) for v in vel)
    h_new = h - vd * dt
    RM, RN = radius(lat)
    lat_new = lat + vn / (RM + h_new) * dt
    RM, RN = radius(lat_new)
    lon_new = lon + ve / ((RN + h_new) * np.cos(lat_new)) * dt
    return np.array([lat_new, lon_new, h_new], dtype=np.float64)


def mechanize(
    attitude: np.ndarray,
    vel: np.ndarray,
    pos: np.ndarray,
    wb_corrected: np.ndarray,
    fb_corrected: np.ndarray,
    omega_ie_n: np.ndarray,
    omega_en_n: np.ndarray,
    dt: float,
    att_mode: str = "quaternion",
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Advance the navigation solution by one IMU period.

    Parameters
    ----------
    attitude : ndarray
        Previous body-to-NED DCM (3, 3) or quaternion (4,).
    vel : ndarray of shape (3,)
        Previous NED velocity [m/s].
    pos : ndarray of shape (3,)
        Previous ``[lat, lon, h]`` (rad, rad, m).
    wb_corrected, fb_corrected : ndarray of shape (3,)
        Bias-corrected turn rate [rad/s] and specific force [m/s²].
    omega_ie_n, omega_en_n : ndarray of shape (3,)
        Earth and transport rates at the previous state [rad/s].
    dt : float
        IMU period [s].
    att_mode : {"quaternion", "dcm"}
        Attitude representation of ``attitude``.

    Returns
    -------
    tuple
        ``(attitude, vel, pos)`` with the input storage types; ``pos`` is
        always ``float64``.
    """
    attitude_new = att_update(wb_corrected, attitude, omega_ie_n, omega_en_n, dt, att_mode)
    C_bn = attitude_new if att_mode == "dcm" else quaternion_to_rot(attitude_new)
    g_n = gravity(float(pos[0]), float(pos[2]))
    fn = np.asarray(C_bn, dtype=float) @ np.asarray(fb_corrected, dtype=float)
    vel_new = vel_update(fn, vel, omega_ie_n, omega_en_n, g_n, dt)
    pos_new = pos_update(pos, vel_new, dt)
    return attitude_new, vel_new.astype(np.asarray(vel).dtype), pos_new
