"""Shared physical constants for the navigation algorithms.

EARTH_RATE
    Earth's angular rotation rate expressed in radians per second (rad/s).

WGS84_A, WGS84_E2
    Semi-major axis (m) and first eccentricity squared of the WGS-84
    ellipsoid, used for the radii of curvature.

Normal gravity follows the WGS-84 Somigliana formula with a free-air
correction for height (see :func:`ins_gps.earth_model.normal_gravity`).
"""

EARTH_RATE = 7.2921155e-5

WGS84_A = 6378137.0
WGS84_E2 = 6.69437999014e-3

# Somigliana coefficients
GRAVITY_EQUATOR = 9.7803253359
GRAVITY_K = 0.00193185265241
# Free-air gradient (m/s^2 per metre)
GRAVITY_FREE_AIR = 3.086e-6

# Mean Earth radius used for the altitude gravity-gradient term of the
# error model
MEAN_EARTH_RADIUS = 6371000.0
