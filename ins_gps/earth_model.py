"""WGS-84 environment models expressed in the local NED frame."""

from typing import Tuple

import numpy as np

from .constants import (
    EARTH_RATE,
    GRAVITY_EQUATOR,
    GRAVITY_FREE_AIR,
    GRAVITY_K,
    WGS84_A,
    WGS84_E2,
)


def earth_rate(lat: float) -> np.ndarray:
    """Return Earth's rotation rate resolved in the NED frame [rad/s]."""
    return np.array([EARTH_RATE * np.cos(lat), 0.0, -EARTH_RATE * np.sin(lat)])


def radius(lat: float) -> Tuple[float, float]:
    """Return the meridian and normal radii of curvature ``(RM, RN)`` in metres."""
    s2 = np.sin(lat) ** 2
    den = 1.0 - WGS84_E2 * s2
    RM = WGS84_A * (1.0 - WGS84_E2) / den ** 1.5
    RN = WGS84_A / np.sqrt(den)
    return float(RM), float(RN)


def transport_rate(lat: float, vn: float, ve: float, h: float) -> np.ndarray:
    """Return the transport rate (NED frame relative to ECEF) in the NED frame.

    Parameters
    ----------
    lat : float
        Geodetic latitude in radians.
    vn, ve : float
        North and east velocity in m/s.
    h : float
        Height above the ellipsoid in metres.
    """
    RM, RN = radius(lat)
    return np.array([
        ve / (RN + h),
        -vn / (RM + h),
        -ve * np.tan(lat) / (RN + h),
    ])


def normal_gravity(lat: float, h: float = 0.0) -> float:
    """Return gravity magnitude at latitude ``lat`` and height ``h``.

    Parameters
    ----------
    lat : float
        Geodetic latitude in radians.
    h : float, optional
        Height above the ellipsoid in metres.

    Returns
    -------
    float
        Gravity magnitude in m/s² using the WGS‑84 model.
    """
    sin_lat = np.sin(lat)
    g = (
        GRAVITY_EQUATOR
        * (1 + GRAVITY_K * sin_lat**2)
        / np.sqrt(1 - WGS84_E2 * sin_lat**2)
    )
    return float(g - GRAVITY_FREE_AIR * h)


def gravity(lat: float, h: float = 0.0) -> np.ndarray:
    """Return gravity vector in **NED** (+Down) [m/s²]."""
    return np.array([0.0, 0.0, normal_gravity(lat, h)])
