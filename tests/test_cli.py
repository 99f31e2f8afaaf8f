import json

import numpy as np
import pandas as pd
import pytest

from ins_gps.cli import build_parser, main
from ins_gps.synthetic import default_gps_params, default_imu_params, gps_err_profile, imu_err_profile


def _write_logs(tmp_path, static_ref):
    rng = np.random.default_rng(5)
    imu_params = default_imu_params()
    gps_params = default_gps_params(1.0)
    imu = imu_err_profile(static_ref, imu_params, rng)
    gps = gps_err_profile(static_ref, gps_params, rng)

    imu_path = tmp_path / "imu.csv"
    gps_path = tmp_path / "gps.csv"
    pd.DataFrame({
        "t": imu.t,
        "fx": imu.fb[:, 0], "fy": imu.fb[:, 1], "fz": imu.fb[:, 2],
        "wx": imu.wb[:, 0], "wy": imu.wb[:, 1], "wz": imu.wb[:, 2],
    }).to_csv(imu_path, index=False)
    pd.DataFrame({
        "t": gps.t, "lat": gps.lat, "lon": gps.lon, "h": gps.h,
        "vn": gps.vel[:, 0], "ve": gps.vel[:, 1], "vd": gps.vel[:, 2],
    }).to_csv(gps_path, index=False)

    params_path = tmp_path / "params.json"
    params = {
        "imu": {k: np.asarray(v).tolist() for k, v in imu_params.items()},
        "gps": {k: np.asarray(v).tolist() for k, v in gps_params.items() if k != "freq"},
    }
    params_path.write_text(json.dumps(params))
    return imu_path, gps_path, params_path


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_run_command(tmp_path, monkeypatch, static_ref):
    monkeypatch.chdir(tmp_path)
    imu_path, gps_path, params_path = _write_logs(tmp_path, static_ref)
    out_dir = tmp_path / "results"
    rc = main([
        "run",
        "--imu-file", str(imu_path),
        "--gps-file", str(gps_path),
        "--params", str(params_path),
        "--att-mode", "dcm",
        "--output", str(out_dir),
        "--no-plots",
    ])
    assert rc == 0
    frame = pd.read_csv(out_dir / "imu_gps_ins.csv")
    assert len(frame) == len(static_ref)
    assert (out_dir / "imu_gps_kf.npz").exists()
    assert "epochs_processed=11" in (tmp_path / "logs" / "run_summary.txt").read_text()


def test_run_command_reports_bad_input(tmp_path, monkeypatch, static_ref):
    monkeypatch.chdir(tmp_path)
    imu_path, gps_path, params_path = _write_logs(tmp_path, static_ref)
    pd.DataFrame({"t": [0.0, 1.0]}).to_csv(gps_path, index=False)
    rc = main([
        "run",
        "--imu-file", str(imu_path),
        "--gps-file", str(gps_path),
        "--params", str(params_path),
        "--no-plots",
    ])
    assert rc == 1


def test_simulate_command(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    rc = main(["simulate", "--duration", "5", "--imu-rate", "50", "--seed", "1", "--no-plots", "--runs", "2"])
    assert rc == 0
    out = capsys.readouterr().out
    assert "north" in out
    assert "mean RMSE (2 runs)" in out
    assert (tmp_path / "logs" / "run_summary.txt").exists()


def test_simulate_with_config_and_plots(tmp_path, monkeypatch):
    pytest.importorskip("matplotlib")
    monkeypatch.chdir(tmp_path)
    cfg = tmp_path / "cfg.json"
    cfg.write_text(json.dumps({"precision": "single", "output_dir": "out"}))
    rc = main(["simulate", "--duration", "3", "--imu-rate", "20", "--seed", "2", "--config", str(cfg)])
    assert rc == 0
    assert (tmp_path / "out" / "static_attitude.png").exists()
