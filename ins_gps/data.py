"""IMU and GPS data containers and loaders."""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd

from .earth_model import radius

logger = logging.getLogger(__name__)

IMU_COLUMNS = ["t", "fx", "fy", "fz", "wx", "wy", "wz"]
GPS_COLUMNS = ["t", "lat", "lon", "h", "vn", "ve", "vd"]


def _vec3(value: Any, name: str, fill: float = 0.0) -> np.ndarray:
    if value is None:
        return np.full(3, fill)
    arr = np.asarray(value, dtype=float).reshape(-1)
    if arr.size == 1:
        arr = np.repeat(arr, 3)
    if arr.shape != (3,):
        raise ValueError(f"{name} must have 3 elements, got shape {arr.shape}")
    return arr


def _zeros3() -> np.ndarray:
    return np.zeros(3)


def _infs3() -> np.ndarray:
    return np.full(3, np.inf)


@dataclass
class ImuData:
    """IMU samples and error characteristics.

    ``fb`` holds specific force (m/s²) and ``wb`` turn rates (rad/s), both
    ``N x 3`` in the body frame. ``arw``/``vrw`` are random walks per
    root-Hz, ``gstd``/``astd`` the turn-on bias standard deviations,
    ``gb_fix``/``ab_fix`` static biases, ``gb_drift``/``ab_drift`` bias
    instabilities with correlation times ``gb_corr``/``ab_corr`` and driving
    PSDs ``gpsd``/``apsd``.
    """

    t: np.ndarray
    fb: np.ndarray
    wb: np.ndarray
    arw: np.ndarray = field(default_factory=_zeros3)
    vrw: np.ndarray = field(default_factory=_zeros3)
    gstd: np.ndarray = field(default_factory=_zeros3)
    astd: np.ndarray = field(default_factory=_zeros3)
    gb_fix: np.ndarray = field(default_factory=_zeros3)
    ab_fix: np.ndarray = field(default_factory=_zeros3)
    gb_drift: np.ndarray = field(default_factory=_zeros3)
    ab_drift: np.ndarray = field(default_factory=_zeros3)
    gb_corr: np.ndarray = field(default_factory=_infs3)
    ab_corr: np.ndarray = field(default_factory=_infs3)
    gpsd: np.ndarray = field(default_factory=_zeros3)
    apsd: np.ndarray = field(default_factory=_zeros3)
    freq: float = 0.0
    ini_align: np.ndarray = field(default_factory=_zeros3)
    ini_align_err: np.ndarray = field(default_factory=_zeros3)

    def __post_init__(self):
        self.t = np.asarray(self.t, dtype=float).reshape(-1)
        self.fb = np.asarray(self.fb, dtype=float).reshape(-1, 3)
        self.wb = np.asarray(self.wb, dtype=float).reshape(-1, 3)
        if not (len(self.t) == len(self.fb) == len(self.wb)):
            raise ValueError("IMU t, fb and wb must have the same number of samples")
        for f in fields(self):
            if f.name in ("t", "fb", "wb", "freq"):
                continue
            fill = np.inf if f.name.endswith("_corr") else 0.0
            setattr(self, f.name, _vec3(getattr(self, f.name), f.name, fill))
        if not self.freq and len(self.t) > 1:
            self.freq = float(1.0 / np.median(np.diff(self.t)))

    def __len__(self) -> int:
        return len(self.t)


@dataclass
class GpsData:
    """GPS fixes: geodetic position (rad, rad, m) and NED velocity (m/s).

    ``std`` is the position standard deviation in ``(rad, rad, m)``; when it
    is not given it is derived from ``stdm`` (metres) at the first fix.
    ``larm`` is the IMU-to-antenna lever arm in the body frame (m).
    """

    t: np.ndarray
    lat: np.ndarray
    lon: np.ndarray
    h: np.ndarray
    vel: np.ndarray
    stdm: np.ndarray = field(default_factory=_zeros3)
    stdv: np.ndarray = field(default_factory=_zeros3)
    larm: np.ndarray = field(default_factory=_zeros3)
    std: Optional[np.ndarray] = None
    freq: float = 0.0

    def __post_init__(self):
        self.t = np.asarray(self.t, dtype=float).reshape(-1)
        self.lat = np.asarray(self.lat, dtype=np.float64).reshape(-1)
        self.lon = np.asarray(self.lon, dtype=np.float64).reshape(-1)
        self.h = np.asarray(self.h, dtype=float).reshape(-1)
        self.vel = np.asarray(self.vel, dtype=float).reshape(-1, 3)
        n = len(self.t)
        if not (len(self.lat) == len(self.lon) == len(self.h) == len(self.vel) == n):
            raise ValueError("GPS t, lat, lon, h and vel must have the same number of samples")
        self.stdm = _vec3(self.stdm, "stdm")
        self.stdv = _vec3(self.stdv, "stdv")
        self.larm = _vec3(self.larm, "larm")
        if self.std is None:
            if n:
                self.std = gps_std_to_radians(self.stdm, self.lat[0], self.h[0])
            else:
                self.std = np.zeros(3)
        else:
            self.std = _vec3(self.std, "std")
        if not self.freq and n > 1:
            self.freq = float(1.0 / np.median(np.diff(self.t)))

    def __len__(self) -> int:
        return len(self.t)


def gps_std_to_radians(stdm: np.ndarray, lat: float, h: float) -> np.ndarray:
    """Convert ``(north, east, down)`` position std in metres to ``(rad, rad, m)``."""
    RM, RN = radius(lat)
    stdm = np.asarray(stdm, dtype=float)
    return np.array([
        stdm[0] / (RM + h),
        stdm[1] / ((RN + h) * np.cos(lat)),
        stdm[2],
    ])


def load_params_json(path: str) -> Dict[str, Dict[str, Any]]:
    """Load IMU/GPS error parameters from a JSON file with ``imu`` and ``gps`` sections."""
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    return {"imu": dict(data.get("imu", {})), "gps": dict(data.get("gps", {}))}


def _check_columns(df: pd.DataFrame, required, path: str) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{path}: missing columns {missing}")


def load_imu_csv(path: str, params: Optional[Mapping[str, Any]] = None) -> ImuData:
    """Load IMU samples from a CSV file with columns ``t, fx, fy, fz, wx, wy, wz``."""
    df = pd.read_csv(path)
    _check_columns(df, IMU_COLUMNS, path)
    logger.info("Loaded %d IMU samples from %s", len(df), Path(path).name)
    return ImuData(
        t=df["t"].to_numpy(float),
        fb=df[["fx", "fy", "fz"]].to_numpy(float),
        wb=df[["wx", "wy", "wz"]].to_numpy(float),
        **dict(params or {}),
    )


def load_gps_csv(
    path: str, params: Optional[Mapping[str, Any]] = None, degrees: bool = False
) -> GpsData:
    """Load GPS fixes from a CSV file with columns ``t, lat, lon, h, vn, ve, vd``.

    Latitude and longitude are read as radians unless ``degrees`` is set.
    """
    df = pd.read_csv(path)
    _check_columns(df, GPS_COLUMNS, path)
    lat = df["lat"].to_numpy(np.float64)
    lon = df["lon"].to_numpy(np.float64)
    if degrees:
        lat = np.deg2rad(lat)
        lon = np.deg2rad(lon)
    logger.info("Loaded %d GPS fixes from %s", len(df), Path(path).name)
    return GpsData(
        t=df["t"].to_numpy(float),
        lat=lat,
        lon=lon,
        h=df["h"].to_numpy(float),
        vel=df[["vn", "ve", "vd"]].to_numpy(float),
        **dict(params or {}),
    )
