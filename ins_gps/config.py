"""Run configuration for the INS/GPS fusion."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import numpy as np

from .state import ATT_MODES

PRECISIONS = {"double": np.float64, "single": np.float32}


def default_cfg() -> dict:
    """Return default configuration dictionary."""
    return {
        "att_mode": "quaternion",
        "precision": "double",
        "progress": False,
        "log_dir": "logs",
        "output_dir": "results",
        "plots": {
            "enabled": True,
            "save_pdf": False,
            "save_png": True,
        },
    }


def load_config(path: Optional[Path]) -> Dict[str, Any]:
    """Return :func:`default_cfg` updated with the JSON file at *path*."""
    cfg = default_cfg()
    if path is None:
        return cfg
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    plots = dict(cfg["plots"])
    plots.update(data.pop("plots", {}))
    cfg.update(data)
    cfg["plots"] = plots
    return cfg


@dataclass(frozen=True)
class FusionConfig:
    """Options of one fusion run.

    ``att_mode`` selects the rotation object kept by the navigation state
    and ``precision`` the storage width of every state except latitude and
    longitude, which stay ``float64``.
    """

    att_mode: str = "quaternion"
    precision: str = "double"
    progress: bool = False

    def __post_init__(self):
        if self.att_mode not in ATT_MODES:
            raise ValueError(f"att_mode must be one of {ATT_MODES}, got {self.att_mode!r}")
        if self.precision not in PRECISIONS:
            raise ValueError(f"precision must be one of {tuple(PRECISIONS)}, got {self.precision!r}")

    @property
    def dtype(self) -> np.dtype:
        return np.dtype(PRECISIONS[self.precision])

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any]) -> "FusionConfig":
        return cls(
            att_mode=cfg.get("att_mode", "quaternion"),
            precision=cfg.get("precision", "double"),
            progress=bool(cfg.get("progress", False)),
        )
