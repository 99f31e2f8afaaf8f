"""Command line entry point.

Usage
-----
    ins-gps run --imu-file imu.csv --gps-file gps.csv --params params.json
    ins-gps simulate --duration 60 --runs 20 --jobs 4
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

import numpy as np

from .config import FusionConfig, load_config
from .data import load_gps_csv, load_imu_csv, load_params_json
from .errors import FusionError
from .fusion import InsGpsFusion
from .logging_utils import append_summary, log_static_validation, setup_logging
from .performance import format_rmse_table, monte_carlo, rmse, summarize_runs
from .state import ATT_MODES
from .synthetic import (
    default_gps_params,
    default_imu_params,
    gps_err_profile,
    imu_err_profile,
    static_reference,
)

logger = logging.getLogger(__name__)


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, help="JSON configuration file")
    parser.add_argument("--att-mode", choices=ATT_MODES, help="Attitude representation")
    parser.add_argument("--precision", choices=["double", "single"], help="Floating point precision")
    parser.add_argument("--output", type=Path, help="Output directory")
    parser.add_argument("--no-plots", action="store_true", help="Skip plot generation")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ins-gps", description="Loosely-coupled INS/GPS fusion")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Fuse recorded IMU and GPS logs")
    run.add_argument("--imu-file", required=True, type=Path, help="IMU CSV (t, fx, fy, fz, wx, wy, wz)")
    run.add_argument("--gps-file", required=True, type=Path, help="GPS CSV (t, lat, lon, h, vn, ve, vd)")
    run.add_argument("--params", required=True, type=Path, help="JSON file with 'imu' and 'gps' error parameters")
    run.add_argument("--degrees", action="store_true", help="GPS latitude/longitude are in degrees")
    _add_common(run)

    sim = sub.add_parser("simulate", help="Run the static scenario on synthetic data")
    sim.add_argument("--duration", type=float, default=60.0, help="Scenario length [s]")
    sim.add_argument("--imu-rate", type=float, default=100.0, help="IMU rate [Hz]")
    sim.add_argument("--gps-rate", type=float, default=1.0, help="GPS rate [Hz]")
    sim.add_argument("--lat", type=float, default=-32.0, help="Latitude [deg]")
    sim.add_argument("--lon", type=float, default=-60.0, help="Longitude [deg]")
    sim.add_argument("--height", type=float, default=10.0, help="Altitude [m]")
    sim.add_argument("--seed", type=int, default=None, help="Random seed")
    sim.add_argument("--runs", type=int, default=1, help="Monte Carlo repetitions")
    sim.add_argument("--jobs", type=int, default=1, help="Parallel workers for Monte Carlo")
    _add_common(sim)
    return parser


def _settings(args: argparse.Namespace) -> dict:
    cfg = load_config(args.config)
    if args.att_mode:
        cfg["att_mode"] = args.att_mode
    if args.precision:
        cfg["precision"] = args.precision
    if args.output:
        cfg["output_dir"] = str(args.output)
    if args.no_plots:
        cfg["plots"]["enabled"] = False
    return cfg


def _plot_ext(cfg: dict) -> str:
    return "pdf" if cfg["plots"].get("save_pdf") and not cfg["plots"].get("save_png", True) else "png"


def cmd_run(args: argparse.Namespace, cfg: dict) -> int:
    params = load_params_json(str(args.params))
    imu = load_imu_csv(str(args.imu_file), params["imu"])
    gps = load_gps_csv(str(args.gps_file), params["gps"], degrees=args.degrees)
    log_static_validation(imu)

    fusion = InsGpsFusion(imu, gps, FusionConfig.from_cfg(cfg))
    result = fusion.run()

    out_dir = Path(cfg["output_dir"])
    tag = f"{Path(args.imu_file).stem}_{Path(args.gps_file).stem}"
    csv_path, npz_path = result.save(out_dir / tag)
    logger.info("Saved %s and %s", csv_path, npz_path)

    if cfg["plots"]["enabled"]:
        from .plotting import save_all

        save_all(result, out_dir, tag, t_gps=gps.t, ext=_plot_ext(cfg))

    inn = result.Inn[1:]
    lines = [
        f"imu_file={args.imu_file}",
        f"gps_file={args.gps_file}",
        f"att_mode={cfg['att_mode']} precision={cfg['precision']}",
        f"epochs_processed={result.epochs_processed} imu_samples_used={result.imu_samples_used}",
    ]
    if len(inn):
        lines.append(
            "innovation_rms vel=%s pos=%s"
            % (np.sqrt(np.mean(inn[:, :3] ** 2, axis=0)), np.sqrt(np.mean(inn[:, 3:] ** 2, axis=0)))
        )
    append_summary(cfg["log_dir"], lines)
    return 0


def cmd_simulate(args: argparse.Namespace, cfg: dict) -> int:
    ref = static_reference(
        args.duration, args.imu_rate, np.deg2rad(args.lat), np.deg2rad(args.lon), args.height
    )
    imu_params = default_imu_params()
    gps_params = default_gps_params(args.gps_rate)
    config = FusionConfig.from_cfg(cfg)

    rng = np.random.default_rng(args.seed)
    imu = imu_err_profile(ref, imu_params, rng)
    gps = gps_err_profile(ref, gps_params, rng)
    result = InsGpsFusion(imu, gps, config).run()
    values = rmse(result, ref)
    print(format_rmse_table(values))

    out_dir = Path(cfg["output_dir"])
    if cfg["plots"]["enabled"]:
        from .plotting import save_all

        save_all(result, out_dir, "static", ref=ref, t_gps=gps.t, ext=_plot_ext(cfg))

    lines = [f"static scenario {args.duration:.0f} s, seed={args.seed}"]
    lines += format_rmse_table(values).splitlines()
    if args.runs > 1:
        runs = monte_carlo(
            ref, imu_params, gps_params, runs=args.runs, jobs=args.jobs, seed=args.seed, config=config
        )
        mean = summarize_runs(runs)
        table = format_rmse_table(mean, label=f"mean RMSE ({args.runs} runs)")
        print()
        print(table)
        lines += table.splitlines()
    append_summary(cfg["log_dir"], lines)
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Entry point for command line execution."""
    parser = build_parser()
    args = parser.parse_args(argv)
    cfg = _settings(args)
    setup_logging(cfg["log_dir"], logging.DEBUG if args.verbose else logging.INFO)

    handler = cmd_run if args.command == "run" else cmd_simulate
    try:
        return handler(args, cfg)
    except (FusionError, ValueError, OSError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
