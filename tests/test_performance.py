import numpy as np
import pytest

from ins_gps.fusion import FusionResult
from ins_gps.performance import (
    METRICS,
    format_rmse_table,
    monte_carlo,
    navigation_errors,
    rmse,
    summarize_runs,
)
from ins_gps.process_model import radians_to_meters
from ins_gps.synthetic import default_gps_params, default_imu_params, static_reference

from conftest import HEIGHT, LAT, LON


def _result_from_reference(ref, **offsets):
    n = len(ref)
    return FusionResult(
        t=ref.t,
        roll=ref.roll + offsets.get("roll", 0.0),
        pitch=ref.pitch.copy(),
        yaw=ref.yaw.copy(),
        vel=ref.vel + offsets.get("vel", 0.0),
        lat=ref.lat + offsets.get("lat", 0.0),
        lon=ref.lon.copy(),
        h=ref.h.copy(),
        P_d=np.zeros((1, 21)),
        B=np.zeros((1, 12)),
        Inn=np.zeros((1, 6)),
        X=np.zeros((1, 21)),
        epochs_processed=1,
        imu_samples_used=n,
    )


def test_errors_are_zero_for_reference(static_ref):
    errors = navigation_errors(_result_from_reference(static_ref), static_ref)
    for name in METRICS:
        assert np.allclose(errors[name], 0.0)


def test_rmse_units(static_ref):
    dlat = 2.0 / radians_to_meters(LAT, HEIGHT)[0, 0]
    result = _result_from_reference(static_ref, roll=np.deg2rad(0.5), vel=np.array([0.1, 0.0, 0.0]), lat=dlat)
    values = rmse(result, static_ref)
    assert values["roll"] == pytest.approx(0.5)
    assert values["vn"] == pytest.approx(0.1)
    assert values["north"] == pytest.approx(2.0)
    assert values["east"] == pytest.approx(0.0)


def test_yaw_error_wraps():
    ref = static_reference(1.0, 10.0, LAT, LON, HEIGHT, euler=(0.0, 0.0, np.pi - 0.01))
    result = _result_from_reference(ref)
    result.yaw = np.full(len(ref), -np.pi + 0.01)
    errors = navigation_errors(result, ref)
    assert np.allclose(errors["yaw"], 0.02)


def test_format_rmse_table():
    table = format_rmse_table({name: 1.0 for name in METRICS})
    assert "north" in table
    assert "deg" in table
    assert "RMSE" in table


def test_monte_carlo_is_reproducible():
    ref = static_reference(3.0, 50.0, LAT, LON, HEIGHT)
    kwargs = dict(runs=3, seed=11, progress=False)
    a = monte_carlo(ref, default_imu_params(), default_gps_params(1.0), jobs=1, **kwargs)
    b = monte_carlo(ref, default_imu_params(), default_gps_params(1.0), jobs=3, **kwargs)
    assert len(a) == 3
    for ra, rb in zip(a, b):
        assert ra == pytest.approx(rb)
    mean = summarize_runs(a)
    assert set(mean) == set(METRICS)
    assert mean["north"] > 0
