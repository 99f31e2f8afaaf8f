import sys
from pathlib import Path

import numpy as np
import pytest

# Add the project root to sys.path so tests can import the package without
# installing it.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from ins_gps.synthetic import (  # noqa: E402
    default_gps_params,
    default_imu_params,
    gps_err_profile,
    imu_err_profile,
    static_reference,
)

LAT = np.deg2rad(-32.0)
LON = np.deg2rad(-60.0)
HEIGHT = 10.0


@pytest.fixture
def static_ref():
    """Ten seconds of a stationary platform sampled at 100 Hz."""
    return static_reference(10.0, 100.0, LAT, LON, HEIGHT)


@pytest.fixture
def static_data(static_ref):
    """Noisy IMU (100 Hz) and GPS (1 Hz) data for the stationary platform."""
    rng = np.random.default_rng(42)
    imu = imu_err_profile(static_ref, default_imu_params(), rng)
    gps = gps_err_profile(static_ref, default_gps_params(1.0), rng)
    return imu, gps
