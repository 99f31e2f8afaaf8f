"""Synthetic reference trajectories and sensor error profiles.

A :class:`Reference` holds an error-free trajectory sampled at the IMU rate
together with the ideal IMU readings that reproduce it. ``imu_err_profile``
and ``gps_err_profile`` turn a reference into noisy :class:`ImuData` and
:class:`GpsData`.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import numpy as np

from .attitude import euler2dcm, euler2qua, qua2euler, quaternion_to_rot
from .data import GpsData, ImuData
from .earth_model import earth_rate, gravity, transport_rate
from .mechanisation import mechanize
from .process_model import radians_to_meters

logger = logging.getLogger(__name__)


@dataclass
class Reference:
    """Error-free trajectory at the IMU rate (angles in radians)."""

    t: np.ndarray
    roll: np.ndarray
    pitch: np.ndarray
    yaw: np.ndarray
    vel: np.ndarray
    lat: np.ndarray
    lon: np.ndarray
    h: np.ndarray
    fb: np.ndarray
    wb: np.ndarray

    @property
    def euler(self) -> np.ndarray:
        return np.column_stack([self.roll, self.pitch, self.yaw])

    @property
    def freq(self) -> float:
        return float(1.0 / np.median(np.diff(self.t)))

    def __len__(self) -> int:
        return len(self.t)


def static_reference(
    duration: float,
    freq: float,
    lat: float,
    lon: float,
    h: float = 0.0,
    euler: Sequence[float] = (0.0, 0.0, 0.0),
) -> Reference:
    """Stationary platform: constant position, zero velocity, fixed attitude.

    The ideal gyros sense only Earth rotation and the accelerometers only
    the reaction to gravity.
    """
    n = int(round(duration * freq)) + 1
    t = np.arange(n) / freq
    C_bn = euler2dcm(np.asarray(euler, dtype=float))
    wb = C_bn.T @ earth_rate(lat)
    fb = C_bn.T @ -gravity(lat, h)
    ones = np.ones(n)
    return Reference(
        t=t,
        roll=euler[0] * ones,
        pitch=euler[1] * ones,
        yaw=euler[2] * ones,
        vel=np.zeros((n, 3)),
        lat=lat * ones,
        lon=lon * ones,
        h=h * ones,
        fb=np.tile(fb, (n, 1)),
        wb=np.tile(wb, (n, 1)),
    )


def integrate_reference(
    t: np.ndarray,
    fb: np.ndarray,
    wb: np.ndarray,
    euler0: Sequence[float],
    vel0: Sequence[float],
    pos0: Sequence[float],
) -> Reference:
    """Integrate error-free IMU readings into a reference trajectory."""
    t = np.asarray(t, dtype=float)
    fb = np.asarray(fb, dtype=float)
    wb = np.asarray(wb, dtype=float)
    n = len(t)
    q = euler2qua(np.asarray(euler0, dtype=float))
    vel = np.asarray(vel0, dtype=float)
    pos = np.asarray(pos0, dtype=np.float64)

    euler = np.zeros((n, 3))
    vels = np.zeros((n, 3))
    poss = np.zeros((n, 3))
    euler[0] = qua2euler(q)
    vels[0] = vel
    poss[0] = pos
    for i in range(1, n):
        dt = t[i] - t[i - 1]
        omega_ie_n = earth_rate(pos[0])
        omega_en_n = transport_rate(pos[0], vel[0], vel[1], pos[2])
        q, vel, pos = mechanize(q, vel, pos, wb[i], fb[i], omega_ie_n, omega_en_n, dt, "quaternion")
        euler[i] = qua2euler(q)
        vels[i] = vel
        poss[i] = pos
    return Reference(
        t=t,
        roll=euler[:, 0],
        pitch=euler[:, 1],
        yaw=euler[:, 2],
        vel=vels,
        lat=poss[:, 0],
        lon=poss[:, 1],
        h=poss[:, 2],
        fb=fb,
        wb=wb,
    )


def constant_rate_reference(
    duration: float,
    freq: float,
    lat: float,
    lon: float,
    h: float,
    fb: Sequence[float],
    wb: Sequence[float],
    euler0: Sequence[float] = (0.0, 0.0, 0.0),
    vel0: Sequence[float] = (0.0, 0.0, 0.0),
) -> Reference:
    """Trajectory produced by integrating constant body rate and specific force."""
    n = int(round(duration * freq)) + 1
    t = np.arange(n) / freq
    return integrate_reference(
        t,
        np.tile(np.asarray(fb, dtype=float), (n, 1)),
        np.tile(np.asarray(wb, dtype=float), (n, 1)),
        euler0,
        vel0,
        (lat, lon, h),
    )


def _gauss_markov(n: int, dt: float, sigma: np.ndarray, corr: np.ndarray, rng) -> np.ndarray:
    """First-order Gauss-Markov sequences with steady-state std ``sigma``."""
    out = np.zeros((n, 3))
    for k in range(3):
        if not np.isfinite(corr[k]) or corr[k] <= 0 or sigma[k] == 0:
            continue
        a = np.exp(-dt / corr[k])
        b = sigma[k] * np.sqrt(1.0 - a**2)
        w = rng.standard_normal(n)
        out[0, k] = sigma[k] * w[0]
        for j in range(1, n):
            out[j, k] = a * out[j - 1, k] + b * w[j]
    return out


def imu_err_profile(
    ref: Reference, params: Mapping[str, Any], rng: Optional[np.random.Generator] = None
) -> ImuData:
    """Corrupt the reference IMU readings with the errors described by *params*.

    ``gb_fix``/``ab_fix`` are added as constant biases, ``arw``/``vrw`` as
    white noise and ``gb_drift``/``ab_drift`` as Gauss-Markov drifts with
    correlation times ``gb_corr``/``ab_corr``. The returned :class:`ImuData`
    carries the same parameters, with ``ini_align`` set to the reference
    attitude at the first sample.
    """
    rng = rng if rng is not None else np.random.default_rng()
    template = ImuData(t=ref.t[:2], fb=ref.fb[:2], wb=ref.wb[:2], **dict(params))
    n = len(ref)
    dt = 1.0 / ref.freq
    sqdt = np.sqrt(dt)

    wb = (
        ref.wb
        + template.gb_fix
        + template.arw / sqdt * rng.standard_normal((n, 3))
        + _gauss_markov(n, dt, template.gb_drift, template.gb_corr, rng)
    )
    fb = (
        ref.fb
        + template.ab_fix
        + template.vrw / sqdt * rng.standard_normal((n, 3))
        + _gauss_markov(n, dt, template.ab_drift, template.ab_corr, rng)
    )
    settings = dict(params)
    settings.setdefault("ini_align", ref.euler[0])
    settings["freq"] = ref.freq
    return ImuData(t=ref.t.copy(), fb=fb, wb=wb, **settings)


def gps_err_profile(
    ref: Reference, params: Mapping[str, Any], rng: Optional[np.random.Generator] = None
) -> GpsData:
    """Sample the reference at ``params["freq"]`` and add white position/velocity noise.

    Each fix reports the reference at one IMU sample and is time-tagged half
    an IMU period later, so the last INS state before a fix is the sample it
    reports. The antenna position includes the lever arm ``larm``.
    """
    rng = rng if rng is not None else np.random.default_rng()
    imu_freq = ref.freq
    step = max(1, int(round(imu_freq / float(params["freq"]))))
    idx = np.arange(0, len(ref), step)
    m = len(idx)
    stdm = np.asarray(params.get("stdm", np.zeros(3)), dtype=float)
    stdv = np.asarray(params.get("stdv", np.zeros(3)), dtype=float)
    larm = np.asarray(params.get("larm", np.zeros(3)), dtype=float)

    lat = np.zeros(m)
    lon = np.zeros(m)
    h = np.zeros(m)
    vel = np.zeros((m, 3))
    for k, i in enumerate(idx):
        Tpr = radians_to_meters(ref.lat[i], ref.h[i])
        C_bn = quaternion_to_rot(euler2qua(ref.euler[i]))
        offset = np.linalg.solve(Tpr, C_bn @ larm + stdm * rng.standard_normal(3))
        lat[k] = ref.lat[i] + offset[0]
        lon[k] = ref.lon[i] + offset[1]
        h[k] = ref.h[i] + offset[2]
        vel[k] = ref.vel[i] + stdv * rng.standard_normal(3)

    t = ref.t[idx] + 0.5 / imu_freq
    logger.debug("Generated %d GPS fixes every %d IMU samples", m, step)
    return GpsData(
        t=t,
        lat=lat,
        lon=lon,
        h=h,
        vel=vel,
        stdm=stdm,
        stdv=stdv,
        larm=larm,
        std=params.get("std"),
        freq=float(params["freq"]),
    )


def default_imu_params() -> dict:
    """Error parameters of a consumer-grade MEMS IMU, in SI units."""
    d2r = np.pi / 180.0
    gb_corr = np.full(3, 100.0)
    ab_corr = np.full(3, 100.0)
    gb_drift = np.full(3, 0.5 * d2r / 3600.0)
    ab_drift = np.full(3, 0.1e-3 * 9.80665)
    return {
        "arw": np.full(3, 0.2 * d2r / 60.0),
        "vrw": np.full(3, 0.05 / 60.0),
        "gb_fix": np.full(3, 10.0 * d2r / 3600.0),
        "ab_fix": np.full(3, 5e-3 * 9.80665),
        "gstd": np.full(3, 10.0 * d2r / 3600.0),
        "astd": np.full(3, 5e-3 * 9.80665),
        "gb_drift": gb_drift,
        "ab_drift": ab_drift,
        "gb_corr": gb_corr,
        "ab_corr": ab_corr,
        "gpsd": gb_drift * np.sqrt(gb_corr),
        "apsd": ab_drift * np.sqrt(ab_corr),
        "ini_align_err": np.full(3, 1.0 * d2r),
    }


def default_gps_params(freq: float = 1.0) -> dict:
    """GPS receiver with 1 m position and 0.1 m/s velocity noise."""
    return {
        "freq": freq,
        "stdm": np.ones(3),
        "stdv": np.full(3, 0.1),
        "larm": np.zeros(3),
    }
