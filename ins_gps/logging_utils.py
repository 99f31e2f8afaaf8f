import logging
import os
from datetime import datetime, timezone
from typing import Iterable, Optional

import numpy as np

from .data import ImuData


def setup_logging(log_dir: Optional[str] = "logs", level: int = logging.INFO) -> Optional[str]:
    """Configure logging to the console and, when *log_dir* is given, to ``run.log`` there."""
    handlers = [logging.StreamHandler()]
    log_file = None
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, "run.log")
        handlers.insert(0, logging.FileHandler(log_file, mode="a"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    return log_file


def log_static_validation(imu: ImuData, n_samples: int = 100) -> None:
    """Log mean/variance of the first *n_samples* and warn if values look suspicious."""
    acc = imu.fb[:n_samples]
    gyro = imu.wb[:n_samples]
    mean_acc = np.mean(acc, axis=0)
    mean_gyro = np.mean(gyro, axis=0)
    logging.info("Initial acc mean: %s", mean_acc)
    logging.info("Initial gyro mean: %s", mean_gyro)
    logging.info("Initial acc variance: %s", np.var(acc, axis=0))
    logging.info("Initial gyro variance: %s", np.var(gyro, axis=0))
    norm_g = np.linalg.norm(mean_acc)
    if abs(norm_g - 9.81) > 0.3:
        logging.warning(
            "Accelerometer gravity norm suspicious: %.3f m/s^2 (should be ~9.81).", norm_g
        )


def append_summary(log_dir: str, lines: Iterable[str]) -> str:
    """Append a short summary section to ``run_summary.txt`` in *log_dir*."""
    os.makedirs(log_dir, exist_ok=True)
    path = os.path.join(log_dir, "run_summary.txt")
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"=== RUN at {datetime.now(timezone.utc).isoformat()} ===\n")
        for line in lines:
            f.write(line.rstrip() + "\n")
    return path
