"""Navigation error metrics against a reference trajectory."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
from tabulate import tabulate
from tqdm import tqdm

from .config import FusionConfig
from .fusion import FusionResult, InsGpsFusion
from .process_model import radians_to_meters
from .synthetic import Reference, gps_err_profile, imu_err_profile

logger = logging.getLogger(__name__)

METRICS = ["roll", "pitch", "yaw", "vn", "ve", "vd", "north", "east", "down"]
UNITS = {
    "roll": "deg",
    "pitch": "deg",
    "yaw": "deg",
    "vn": "m/s",
    "ve": "m/s",
    "vd": "m/s",
    "north": "m",
    "east": "m",
    "down": "m",
}


def _wrap(angle: np.ndarray) -> np.ndarray:
    return (angle + np.pi) % (2.0 * np.pi) - np.pi


def navigation_errors(result: FusionResult, ref: Reference) -> Dict[str, np.ndarray]:
    """Return estimated-minus-reference errors at the INS times of *result*.

    Attitude errors are wrapped to ``[-π, π)`` radians, velocity errors are
    in m/s and position errors in NED metres.
    """
    t = result.t

    def interp(values):
        return np.interp(t, ref.t, values)

    errors = {
        "roll": _wrap(result.roll.astype(float) - interp(ref.roll)),
        "pitch": _wrap(result.pitch.astype(float) - interp(ref.pitch)),
        "yaw": _wrap(result.yaw.astype(float) - _unwrap_interp(t, ref.t, ref.yaw)),
    }
    vel = result.vel.astype(float)
    for k, name in enumerate(("vn", "ve", "vd")):
        errors[name] = vel[:, k] - interp(ref.vel[:, k])

    lat_ref = interp(ref.lat)
    lon_ref = interp(ref.lon)
    h_ref = interp(ref.h)
    dpos = np.column_stack([result.lat - lat_ref, result.lon - lon_ref, result.h.astype(float) - h_ref])
    ned = np.array([radians_to_meters(la, hh) @ d for la, hh, d in zip(lat_ref, h_ref, dpos)])
    errors["north"] = ned[:, 0]
    errors["east"] = ned[:, 1]
    errors["down"] = ned[:, 2]
    return errors


def _unwrap_interp(t: np.ndarray, t_ref: np.ndarray, angle: np.ndarray) -> np.ndarray:
    return np.interp(t, t_ref, np.unwrap(angle))


def rmse(result: FusionResult, ref: Reference) -> Dict[str, float]:
    """Root-mean-square navigation errors; attitude in degrees."""
    errors = navigation_errors(result, ref)
    out = {}
    for name in METRICS:
        value = float(np.sqrt(np.mean(errors[name] ** 2)))
        if UNITS[name] == "deg":
            value = float(np.rad2deg(value))
        out[name] = value
    return out


def format_rmse_table(values: Mapping[str, float], label: str = "RMSE") -> str:
    """Render an RMSE dictionary as a plain-text table."""
    rows = [[name, UNITS.get(name, ""), f"{values[name]:.4g}"] for name in METRICS if name in values]
    return tabulate(rows, headers=["state", "unit", label])


def _single_run(
    ref: Reference,
    imu_params: Mapping[str, Any],
    gps_params: Mapping[str, Any],
    config: FusionConfig,
    seed: np.random.SeedSequence,
) -> Dict[str, float]:
    rng = np.random.default_rng(seed)
    imu = imu_err_profile(ref, imu_params, rng)
    gps = gps_err_profile(ref, gps_params, rng)
    return rmse(InsGpsFusion(imu, gps, config).run(), ref)


def monte_carlo(
    ref: Reference,
    imu_params: Mapping[str, Any],
    gps_params: Mapping[str, Any],
    runs: int = 10,
    jobs: int = 1,
    seed: Optional[int] = None,
    config: Optional[FusionConfig] = None,
    progress: bool = True,
) -> List[Dict[str, float]]:
    """Repeat the fusion over *runs* independent noise realisations.

    Every run draws its own generator from ``SeedSequence(seed)`` so results
    do not depend on *jobs*. Returns the per-run RMSE dictionaries in run
    order.
    """
    config = config or FusionConfig()
    seeds = np.random.SeedSequence(seed).spawn(runs)
    results: List[Optional[Dict[str, float]]] = [None] * runs
    with ThreadPoolExecutor(max_workers=jobs) as exe:
        futures = {
            exe.submit(_single_run, ref, imu_params, gps_params, config, s): k for k, s in enumerate(seeds)
        }
        for fut in tqdm(as_completed(futures), total=len(futures), desc="Runs", disable=not progress):
            results[futures[fut]] = fut.result()
    logger.info("Monte Carlo finished: %d runs with %d workers", runs, jobs)
    return results


def summarize_runs(results: List[Mapping[str, float]]) -> Dict[str, float]:
    """Mean of the per-run RMSE values."""
    return {name: float(np.mean([r[name] for r in results])) for name in METRICS}
