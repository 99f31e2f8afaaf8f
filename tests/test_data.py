import json

import numpy as np
import pandas as pd
import pytest

from ins_gps.data import (
    GpsData,
    ImuData,
    gps_std_to_radians,
    load_gps_csv,
    load_imu_csv,
    load_params_json,
)
from ins_gps.earth_model import radius


def test_imu_data_expands_scalars_and_rate():
    imu = ImuData(t=np.arange(5) * 0.01, fb=np.zeros((5, 3)), wb=np.zeros((5, 3)), arw=0.1)
    assert np.allclose(imu.arw, [0.1, 0.1, 0.1])
    assert np.all(np.isinf(imu.gb_corr))
    assert imu.freq == pytest.approx(100.0)
    assert len(imu) == 5


def test_imu_data_rejects_bad_shapes():
    with pytest.raises(ValueError):
        ImuData(t=np.arange(4), fb=np.zeros((5, 3)), wb=np.zeros((5, 3)))
    with pytest.raises(ValueError):
        ImuData(t=np.arange(2), fb=np.zeros((2, 3)), wb=np.zeros((2, 3)), gstd=[1.0, 2.0])


def test_gps_data_derives_std_from_metres():
    lat = np.full(3, 0.5)
    gps = GpsData(t=[0, 1, 2], lat=lat, lon=np.zeros(3), h=np.zeros(3), vel=np.zeros((3, 3)), stdm=2.0)
    RM, RN = radius(0.5)
    assert np.allclose(gps.std, [2.0 / RM, 2.0 / (RN * np.cos(0.5)), 2.0])
    assert gps.freq == pytest.approx(1.0)
    assert gps.lat.dtype == np.float64


def test_gps_std_to_radians_height():
    RM, RN = radius(0.0)
    std = gps_std_to_radians(np.array([1.0, 1.0, 3.0]), 0.0, 100.0)
    assert std[0] == pytest.approx(1.0 / (RM + 100.0))
    assert std[1] == pytest.approx(1.0 / (RN + 100.0))
    assert std[2] == 3.0


def test_load_csv_files(tmp_path):
    imu_path = tmp_path / "imu.csv"
    gps_path = tmp_path / "gps.csv"
    t = np.arange(3) * 0.01
    pd.DataFrame({
        "t": t, "fx": 0.0, "fy": 0.0, "fz": -9.8, "wx": 0.0, "wy": 0.0, "wz": 0.1,
    }).to_csv(imu_path, index=False)
    pd.DataFrame({
        "t": [0.0, 1.0], "lat": [10.0, 10.0], "lon": [20.0, 20.0], "h": 5.0,
        "vn": 0.0, "ve": 1.0, "vd": 0.0,
    }).to_csv(gps_path, index=False)

    imu = load_imu_csv(str(imu_path), {"arw": 0.01})
    assert imu.fb.shape == (3, 3)
    assert np.allclose(imu.wb[:, 2], 0.1)
    assert np.allclose(imu.arw, 0.01)

    gps = load_gps_csv(str(gps_path), {"stdm": 1.0}, degrees=True)
    assert np.allclose(gps.lat, np.deg2rad(10.0))
    assert np.allclose(gps.vel[:, 1], 1.0)


def test_load_csv_missing_column(tmp_path):
    path = tmp_path / "imu.csv"
    pd.DataFrame({"t": [0.0], "fx": [0.0]}).to_csv(path, index=False)
    with pytest.raises(ValueError, match="missing columns"):
        load_imu_csv(str(path))


def test_load_params_json(tmp_path):
    path = tmp_path / "params.json"
    path.write_text(json.dumps({"imu": {"arw": [0.1, 0.1, 0.1]}, "gps": {"stdm": [1, 1, 2]}}))
    params = load_params_json(str(path))
    assert params["imu"]["arw"] == [0.1, 0.1, 0.1]
    assert params["gps"]["stdm"] == [1, 1, 2]
