"""Navigation state, sensor biases, error state and filter matrices."""

from dataclasses import dataclass, field, fields
from typing import Optional

import numpy as np

from .attitude import dcm2euler, qua2euler, quaternion_to_rot

ATT_MODES = ("quaternion", "dcm")

N_STATES = 21
N_MEAS = 6
N_NOISE = 12


def _zeros3() -> np.ndarray:
    return np.zeros(3)


@dataclass
class SensorBiases:
    """Fixed (turn-on) and drift (time-correlated) bias estimates."""

    gyro_fixed: np.ndarray = field(default_factory=_zeros3)
    accel_fixed: np.ndarray = field(default_factory=_zeros3)
    gyro_drift: np.ndarray = field(default_factory=_zeros3)
    accel_drift: np.ndarray = field(default_factory=_zeros3)

    @property
    def gyro(self) -> np.ndarray:
        """Total gyro bias (fixed + drift)."""
        return self.gyro_fixed + self.gyro_drift

    @property
    def accel(self) -> np.ndarray:
        """Total accelerometer bias (fixed + drift)."""
        return self.accel_fixed + self.accel_drift

    def to_vector(self) -> np.ndarray:
        """Return ``[gyro_fixed, accel_fixed, gyro_drift, accel_drift]`` (12,)."""
        return np.concatenate([self.gyro_fixed, self.accel_fixed, self.gyro_drift, self.accel_drift])

    def correct(self, err: "ErrorState") -> None:
        self.gyro_fixed = self.gyro_fixed - err.gyro_fixed_bias.astype(self.gyro_fixed.dtype)
        self.accel_fixed = self.accel_fixed - err.accel_fixed_bias.astype(self.accel_fixed.dtype)
        self.gyro_drift = self.gyro_drift - err.gyro_drift.astype(self.gyro_drift.dtype)
        self.accel_drift = self.accel_drift - err.accel_drift.astype(self.accel_drift.dtype)

    def copy(self) -> "SensorBiases":
        return SensorBiases(*(getattr(self, f.name).copy() for f in fields(self)))


@dataclass
class ErrorState:
    """21-element error state, estimated minus true.

    Serialisation order (``to_vector``/``from_vector``)::

        [0:3]   attitude          (rad, NED small-angle)
        [3:6]   velocity          (m/s, NED)
        [6:9]   position          (rad, rad, m)
        [9:12]  gyro_fixed_bias   (rad/s)
        [12:15] accel_fixed_bias  (m/s²)
        [15:18] gyro_drift        (rad/s)
        [18:21] accel_drift       (m/s²)
    """

    attitude: np.ndarray = field(default_factory=_zeros3)
    velocity: np.ndarray = field(default_factory=_zeros3)
    position: np.ndarray = field(default_factory=_zeros3)
    gyro_fixed_bias: np.ndarray = field(default_factory=_zeros3)
    accel_fixed_bias: np.ndarray = field(default_factory=_zeros3)
    gyro_drift: np.ndarray = field(default_factory=_zeros3)
    accel_drift: np.ndarray = field(default_factory=_zeros3)

    def to_vector(self, dtype=np.float64) -> np.ndarray:
        return np.concatenate([getattr(self, f.name) for f in fields(self)]).astype(dtype)

    @classmethod
    def from_vector(cls, x: np.ndarray) -> "ErrorState":
        x = np.asarray(x).reshape(-1)
        if x.shape != (N_STATES,):
            raise ValueError(f"error state must have {N_STATES} elements, got {x.shape}")
        return cls(*(x[3 * k:3 * k + 3].copy() for k in range(7)))

    def is_zero(self) -> bool:
        return not np.any(self.to_vector())

    def is_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.to_vector())))


@dataclass
class FilterMatrices:
    """Matrices handed to the Kalman recursion.

    ``Q`` and ``R`` are fixed for a run; ``F``, ``G`` and ``H`` are rebuilt
    at every GPS epoch; ``P`` is the current error-state covariance.
    """

    Q: np.ndarray
    R: np.ndarray
    P: np.ndarray
    F: np.ndarray = field(default_factory=lambda: np.zeros((N_STATES, N_STATES)))
    G: np.ndarray = field(default_factory=lambda: np.zeros((N_STATES, N_NOISE)))
    H: np.ndarray = field(default_factory=lambda: np.zeros((N_MEAS, N_STATES)))


class NavigationState:
    """Attitude, velocity, position and biases of the INS.

    The attitude is held once, as a DCM or as a quaternion depending on
    ``att_mode``; Euler angles are derived from it on read. Latitude and
    longitude are always ``float64``; every other quantity uses ``dtype``.
    """

    def __init__(
        self,
        rotation: np.ndarray,
        vel: np.ndarray,
        lat: float,
        lon: float,
        h: float,
        biases: Optional[SensorBiases] = None,
        att_mode: str = "quaternion",
        dtype=np.float64,
    ):
        if att_mode not in ATT_MODES:
            raise ValueError(f"att_mode must be one of {ATT_MODES}, got {att_mode!r}")
        self.att_mode = att_mode
        self.dtype = np.dtype(dtype)
        self.rotation = np.asarray(rotation, dtype=self.dtype)
        self.vel = np.asarray(vel, dtype=self.dtype).reshape(3)
        self.lat = float(lat)
        self.lon = float(lon)
        self.h = self.dtype.type(h)
        biases = biases if biases is not None else SensorBiases()
        self.biases = SensorBiases(
            *(np.asarray(getattr(biases, f.name), dtype=self.dtype) for f in fields(biases))
        )

    @property
    def dcm(self) -> np.ndarray:
        """Body-to-NED DCM."""
        if self.att_mode == "dcm":
            return self.rotation
        return quaternion_to_rot(self.rotation).astype(self.dtype)

    @property
    def euler(self) -> np.ndarray:
        """``[roll, pitch, yaw]`` derived from the rotation object."""
        if self.att_mode == "dcm":
            return dcm2euler(self.rotation)
        return qua2euler(self.rotation)

    @property
    def position(self) -> np.ndarray:
        """``[lat, lon, h]`` in ``float64``."""
        return np.array([self.lat, self.lon, float(self.h)], dtype=np.float64)

    def rotation_error(self) -> float:
        """Distance of the rotation object from a proper rotation."""
        if self.att_mode == "dcm":
            return float(abs(np.linalg.det(self.rotation.astype(np.float64)) - 1.0))
        return float(abs(np.linalg.norm(self.rotation.astype(np.float64)) - 1.0))

    def is_finite(self) -> bool:
        values = np.concatenate([
            self.rotation.reshape(-1).astype(np.float64),
            self.vel.astype(np.float64),
            self.position,
            self.biases.to_vector().astype(np.float64),
        ])
        return bool(np.all(np.isfinite(values)))

    def copy(self) -> "NavigationState":
        return NavigationState(
            self.rotation.copy(),
            self.vel.copy(),
            self.lat,
            self.lon,
            self.h,
            self.biases.copy(),
            att_mode=self.att_mode,
            dtype=self.dtype,
        )

    def __repr__(self) -> str:
        roll, pitch, yaw = np.rad2deg(self.euler)
        return (
            f"NavigationState(rpy=[{roll:.3f}, {pitch:.3f}, {yaw:.3f}] deg, "
            f"vel={np.round(self.vel, 3).tolist()}, "
            f"lat={np.rad2deg(self.lat):.7f}, lon={np.rad2deg(self.lon):.7f}, h={float(self.h):.2f})"
        )
