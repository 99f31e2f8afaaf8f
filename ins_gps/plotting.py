import logging
from pathlib import Path
from typing import List, Optional

import matplotlib.pyplot as plt
import numpy as np

from .fusion import FusionResult
from .performance import navigation_errors
from .synthetic import Reference

logger = logging.getLogger(__name__)

NED = ["North", "East", "Down"]


def _finish(fig, out_path: Path) -> Path:
    fig.tight_layout()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path)
    plt.close(fig)
    logger.info("Saved %s", out_path)
    return out_path


def _epoch_times(result: FusionResult, t_gps: Optional[np.ndarray]) -> np.ndarray:
    n = len(result.Inn)
    if t_gps is not None:
        return np.asarray(t_gps)[:n]
    return np.arange(n, dtype=float)


def plot_attitude(result: FusionResult, out_path: Path, ref: Optional[Reference] = None) -> Path:
    """Plot roll, pitch and yaw in degrees."""
    fig, axes = plt.subplots(3, 1, figsize=(8, 8), sharex=True)
    for ax, name in zip(axes, ("roll", "pitch", "yaw")):
        ax.plot(result.t, np.rad2deg(getattr(result, name)), "r-", label="INS/GPS")
        if ref is not None:
            ax.plot(ref.t, np.rad2deg(getattr(ref, name)), "k--", label="Reference")
        ax.set_ylabel(f"{name} [deg]")
        ax.legend()
    axes[-1].set_xlabel("Time [s]")
    fig.suptitle("Attitude")
    return _finish(fig, Path(out_path))


def plot_velocity(result: FusionResult, out_path: Path, ref: Optional[Reference] = None) -> Path:
    """Plot NED velocity."""
    fig, axes = plt.subplots(3, 1, figsize=(8, 8), sharex=True)
    for j, ax in enumerate(axes):
        ax.plot(result.t, result.vel[:, j], "r-", label="INS/GPS")
        if ref is not None:
            ax.plot(ref.t, ref.vel[:, j], "k--", label="Reference")
        ax.set_ylabel(f"v {NED[j]} [m/s]")
        ax.legend()
    axes[-1].set_xlabel("Time [s]")
    fig.suptitle("Velocity")
    return _finish(fig, Path(out_path))


def plot_position_error(result: FusionResult, ref: Reference, out_path: Path) -> Path:
    """Plot NED position error in metres against the reference."""
    errors = navigation_errors(result, ref)
    fig, axes = plt.subplots(3, 1, figsize=(8, 8), sharex=True)
    for ax, comp in zip(axes, ("north", "east", "down")):
        ax.plot(result.t, errors[comp], "b-")
        ax.set_ylabel(f"{comp} [m]")
        ax.grid(True)
    axes[-1].set_xlabel("Time [s]")
    fig.suptitle("Position error")
    return _finish(fig, Path(out_path))


def plot_innovations(result: FusionResult, out_path: Path, t_gps: Optional[np.ndarray] = None) -> Path:
    """Plot velocity and position innovations per GPS epoch."""
    t = _epoch_times(result, t_gps)
    fig, axes = plt.subplots(2, 1, figsize=(8, 6), sharex=True)
    for i in range(3):
        axes[0].plot(t, result.Inn[:, i], label=f"vel {NED[i]}")
        axes[1].plot(t, result.Inn[:, i + 3], label=f"pos {NED[i]}")
    axes[0].set_ylabel("[m/s]")
    axes[1].set_ylabel("[m]")
    axes[1].set_xlabel("Time [s]")
    for ax in axes:
        ax.legend()
    fig.suptitle("Innovations")
    return _finish(fig, Path(out_path))


def plot_biases(result: FusionResult, out_path: Path, t_gps: Optional[np.ndarray] = None) -> Path:
    """Plot total gyro (deg/h) and accelerometer (mg) bias estimates."""
    t = _epoch_times(result, t_gps)
    B = result.B
    gyro = np.rad2deg(B[:, 0:3] + B[:, 6:9]) * 3600.0
    accel = (B[:, 3:6] + B[:, 9:12]) / 9.80665 * 1000.0
    fig, axes = plt.subplots(2, 1, figsize=(8, 6), sharex=True)
    for i, axis in enumerate("XYZ"):
        axes[0].plot(t, gyro[:, i], label=f"gyro {axis}")
        axes[1].plot(t, accel[:, i], label=f"accel {axis}")
    axes[0].set_ylabel("[deg/h]")
    axes[1].set_ylabel("[mg]")
    axes[1].set_xlabel("Time [s]")
    for ax in axes:
        ax.legend()
    fig.suptitle("Bias estimates")
    return _finish(fig, Path(out_path))


def plot_sigma_bounds(result: FusionResult, out_path: Path, t_gps: Optional[np.ndarray] = None) -> Path:
    """Plot the 3-sigma bounds of velocity and position from the covariance diagonal."""
    t = _epoch_times(result, t_gps)
    sigma = 3.0 * np.sqrt(np.clip(result.P_d, 0.0, None))
    fig, axes = plt.subplots(2, 3, figsize=(12, 6), sharex=True)
    labels = ["lat [rad]", "lon [rad]", "h [m]"]
    for i in range(3):
        axes[0, i].plot(t, sigma[:, 3 + i], "r-")
        axes[0, i].set_title(f"vel {NED[i]} [m/s]")
        axes[1, i].plot(t, sigma[:, 6 + i], "r-")
        axes[1, i].set_title(labels[i])
        axes[1, i].set_xlabel("Time [s]")
    fig.suptitle("3-sigma bounds")
    return _finish(fig, Path(out_path))


def save_all(
    result: FusionResult,
    out_dir: Path,
    tag: str,
    ref: Optional[Reference] = None,
    t_gps: Optional[np.ndarray] = None,
    ext: str = "png",
) -> List[Path]:
    """Write every plot for one run into *out_dir*; return the created files."""
    out_dir = Path(out_dir)
    paths = [
        plot_attitude(result, out_dir / f"{tag}_attitude.{ext}", ref),
        plot_velocity(result, out_dir / f"{tag}_velocity.{ext}", ref),
        plot_innovations(result, out_dir / f"{tag}_innovations.{ext}", t_gps),
        plot_biases(result, out_dir / f"{tag}_biases.{ext}", t_gps),
        plot_sigma_bounds(result, out_dir / f"{tag}_sigma.{ext}", t_gps),
    ]
    if ref is not None:
        paths.append(plot_position_error(result, ref, out_dir / f"{tag}_position_error.{ext}"))
    return paths
