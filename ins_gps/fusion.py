"""Loosely-coupled INS/GPS integration with a 21-state error-state EKF.

GPS epochs are the master clock. Between two fixes the strapdown solution
is advanced one IMU sample at a time; at every fix the position/velocity
innovation drives one Kalman predict+update and the estimated errors are
fed back into attitude, velocity, position and the 12 sensor biases.

Reference: R. Gonzalez, J. Giribet and H. Patiño, "NaveGo: a simulation
framework for low-cost integrated navigation systems", Journal of Control
Engineering and Applied Informatics 17(2), 2015, Alg. 2.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from .attitude import euler2dcm, euler2qua, orthonormalize, qua_error_matrix, skew
from .config import FusionConfig
from .data import GpsData, ImuData
from .earth_model import earth_rate, transport_rate
from .errors import InsufficientDataError, NonFiniteStateError, RenormalizationFailure
from .kalman import kalman_step
from .mechanisation import mechanize
from .process_model import build_process_model, measurement_matrix, radians_to_meters
from .state import ErrorState, FilterMatrices, NavigationState, SensorBiases

logger = logging.getLogger(__name__)


@dataclass
class FusionResult:
    """INS-rate estimates and GPS-epoch filter diagnostics of one run."""

    t: np.ndarray
    roll: np.ndarray
    pitch: np.ndarray
    yaw: np.ndarray
    vel: np.ndarray
    lat: np.ndarray
    lon: np.ndarray
    h: np.ndarray
    P_d: np.ndarray
    B: np.ndarray
    Inn: np.ndarray
    X: np.ndarray
    epochs_processed: int
    imu_samples_used: int

    def to_frame(self) -> pd.DataFrame:
        """Return the INS-rate estimates as a DataFrame."""
        return pd.DataFrame({
            "t": self.t,
            "roll": self.roll,
            "pitch": self.pitch,
            "yaw": self.yaw,
            "vn": self.vel[:, 0],
            "ve": self.vel[:, 1],
            "vd": self.vel[:, 2],
            "lat": self.lat,
            "lon": self.lon,
            "h": self.h,
        })

    def save(self, stem: str | Path) -> Tuple[Path, Path]:
        """Write ``<stem>_ins.csv`` and ``<stem>_kf.npz``; return both paths."""
        stem = Path(stem)
        stem.parent.mkdir(parents=True, exist_ok=True)
        csv_path = stem.with_name(stem.name + "_ins.csv")
        npz_path = stem.with_name(stem.name + "_kf.npz")
        self.to_frame().to_csv(csv_path, index=False)
        np.savez_compressed(npz_path, P_d=self.P_d, B=self.B, Inn=self.Inn, X=self.X)
        return csv_path, npz_path


class InsGpsFusion:
    """Fuse one IMU series with one GPS series.

    Typical usage::

        fusion = InsGpsFusion(imu, gps, FusionConfig(att_mode="dcm"))
        result = fusion.run()

    ``iter_epochs()`` yields after every correction so a caller can inspect
    :attr:`state` or stop between epochs. The histories recorded up to that
    point remain available through :meth:`result`, also after a
    :class:`~ins_gps.errors.FusionError`.
    """

    def __init__(self, imu: ImuData, gps: GpsData, config: Optional[FusionConfig] = None):
        self.imu = imu
        self.gps = gps
        self.config = config or FusionConfig()
        self._check_inputs()

        dtype = self.config.dtype
        self.dtype = dtype
        att_mode = self.config.att_mode
        if att_mode == "dcm":
            rotation = euler2dcm(imu.ini_align)
        else:
            rotation = euler2qua(imu.ini_align)

        biases = SensorBiases(
            gyro_fixed=imu.gb_fix.copy(),
            accel_fixed=imu.ab_fix.copy(),
            gyro_drift=imu.gb_drift.copy(),
            accel_drift=imu.ab_drift.copy(),
        )
        self._nav = NavigationState(
            rotation,
            gps.vel[0],
            gps.lat[0],
            gps.lon[0],
            gps.h[0],
            biases,
            att_mode=att_mode,
            dtype=dtype,
        )
        self._err = ErrorState()
        self._filt = FilterMatrices(
            Q=np.diag(np.concatenate([imu.arw, imu.vrw, imu.gpsd, imu.apsd]) ** 2).astype(dtype),
            R=np.diag(np.concatenate([gps.stdv, gps.stdm]) ** 2).astype(dtype),
            P=np.diag(np.concatenate([
                imu.ini_align_err,
                gps.stdv,
                gps.std,
                imu.gstd,
                imu.astd,
                imu.gb_drift,
                imu.ab_drift,
            ]) ** 2).astype(dtype),
        )
        self._fn = (
            self._nav.dcm.astype(np.float64) @ (imu.fb[0] - self._nav.biases.accel.astype(np.float64))
        )

        # INS index of the next sample to mechanize; sample 0 is the seed
        self._i = 1
        # next GPS epoch to process; epoch 0 seeds the filter
        self._j = 1

        self._t: List[float] = [float(imu.t[0])]
        self._euler: List[np.ndarray] = [self._nav.euler]
        self._vel: List[np.ndarray] = [self._nav.vel.copy()]
        self._pos: List[np.ndarray] = [self._nav.position]

        self._inn: List[np.ndarray] = [np.zeros(6, dtype=dtype)]
        self._bias: List[np.ndarray] = [self._nav.biases.to_vector()]
        self._pdiag: List[np.ndarray] = [np.diag(self._filt.P).copy()]
        self._x: List[np.ndarray] = [np.zeros(21, dtype=dtype)]

        logger.info(
            "INS/GPS fusion: %d IMU samples (%.1f Hz), %d GPS fixes (%.1f Hz), att_mode=%s, precision=%s",
            len(imu),
            imu.freq,
            len(gps),
            gps.freq,
            att_mode,
            self.config.precision,
        )

    def _check_inputs(self) -> None:
        if len(self.imu) < 2:
            raise InsufficientDataError(f"IMU series needs at least 2 samples, got {len(self.imu)}")
        if len(self.gps) < 2:
            raise InsufficientDataError(f"GPS series needs at least 2 samples, got {len(self.gps)}")
        if self.gps.t[0] < self.imu.t[0]:
            raise InsufficientDataError(
                f"GPS series starts at {self.gps.t[0]:.3f} s, before the first IMU sample "
                f"at {self.imu.t[0]:.3f} s"
            )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def state(self) -> NavigationState:
        """Copy of the current navigation state."""
        return self._nav.copy()

    @property
    def error_state(self) -> ErrorState:
        return ErrorState.from_vector(self._err.to_vector())

    @property
    def covariance(self) -> np.ndarray:
        return self._filt.P.copy()

    @property
    def imu_index(self) -> int:
        """Number of IMU samples consumed so far."""
        return self._i

    @property
    def epoch(self) -> int:
        """Index of the next GPS epoch to process."""
        return self._j

    # ------------------------------------------------------------------
    # INS
    # ------------------------------------------------------------------
    def _mechanize_until(self, t_gps: float, bar) -> bool:
        """Mechanize every IMU sample strictly before ``t_gps``.

        Returns ``False`` when the IMU series ran out before ``t_gps``, that
        is when the fix lies more than one IMU period after the last sample.
        """
        imu = self.imu
        nav = self._nav
        n = len(imu)
        while self._i < n and imu.t[self._i] < t_gps:
            i = self._i
            dti = imu.t[i] - imu.t[i - 1]

            wb_corrected = (imu.wb[i] - nav.biases.gyro).astype(self.dtype)
            fb_corrected = (imu.fb[i] - nav.biases.accel).astype(self.dtype)

            omega_ie_n = earth_rate(nav.lat)
            omega_en_n = transport_rate(nav.lat, float(nav.vel[0]), float(nav.vel[1]), float(nav.h))

            try:
                rotation, vel, pos = mechanize(
                    nav.rotation,
                    nav.vel,
                    nav.position,
                    wb_corrected,
                    fb_corrected,
                    omega_ie_n,
                    omega_en_n,
                    dti,
                    nav.att_mode,
                )
            except ValueError as exc:
                raise RenormalizationFailure(str(exc), epoch=self._j) from exc
            nav.rotation = rotation
            nav.vel = vel
            nav.lat, nav.lon = float(pos[0]), float(pos[1])
            nav.h = self.dtype.type(pos[2])
            if not nav.is_finite():
                raise NonFiniteStateError(
                    f"navigation state diverged during mechanization at IMU sample {i}", epoch=self._j
                )
            self._fn = nav.dcm.astype(np.float64) @ fb_corrected.astype(np.float64)

            self._t.append(float(imu.t[i]))
            self._euler.append(nav.euler)
            self._vel.append(nav.vel.copy())
            self._pos.append(nav.position)

            self._i += 1
            bar.update(1)
        if self._i < n:
            return True
        return t_gps - imu.t[n - 1] <= 1.0 / imu.freq

    # ------------------------------------------------------------------
    # Filter
    # ------------------------------------------------------------------
    def innovation(self, j: int) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(z, Tpr)`` for GPS epoch ``j`` against the current INS state.

        ``z = [v_ins - v_gps; Tpr (p_ins - p_gps) + C_bn larm]`` with
        ``Tpr = diag(RM + h, (RN + h) cos(lat), -1)``.
        """
        nav = self._nav
        gps = self.gps
        h = float(nav.h)
        Tpr = radians_to_meters(nav.lat, h)
        dpos = nav.position - np.array([gps.lat[j], gps.lon[j], gps.h[j]], dtype=np.float64)
        zp = Tpr @ dpos + nav.dcm.astype(np.float64) @ gps.larm
        zv = nav.vel.astype(np.float64) - gps.vel[j]
        z = np.concatenate([zv, zp]).astype(self.dtype)
        return z, Tpr

    def _correct(self, j: int) -> None:
        nav = self._nav
        filt = self._filt
        z, Tpr = self.innovation(j)

        filt.F, filt.G = build_process_model(nav.vel, nav.lat, float(nav.h), self._fn, nav.dcm, self.imu)
        filt.F = filt.F.astype(self.dtype)
        filt.G = filt.G.astype(self.dtype)
        filt.H = measurement_matrix(Tpr).astype(self.dtype)

        dtg = float(self.gps.t[j] - self.gps.t[j - 1])
        xu, P = kalman_step(self._err.to_vector(self.dtype), z, filt, dtg)
        if not np.all(np.isfinite(P)):
            raise NonFiniteStateError("covariance became non-finite", epoch=j)
        self._err = ErrorState.from_vector(xu)
        if not self._err.is_finite():
            raise NonFiniteStateError("error state became non-finite", epoch=j)
        filt.P = P

        self._feedback(j)

        self._x.append(xu.copy())
        self._pdiag.append(np.diag(P).copy())
        self._inn.append(z)
        self._bias.append(nav.biases.to_vector())
        self._err = ErrorState()

        logger.debug(
            "GPS epoch %d (t=%.3f s, INS sample %d): |zv|=%.4f m/s |zp|=%.3f m",
            j,
            self.gps.t[j],
            self._i - 1,
            np.linalg.norm(z[:3]),
            np.linalg.norm(z[3:]),
        )

    def _feedback(self, j: int) -> None:
        """Fold the error state into the navigation state."""
        nav = self._nav
        err = self._err
        psi = err.attitude.astype(np.float64)

        if nav.att_mode == "dcm":
            C = (np.eye(3) + skew(psi)) @ nav.rotation.astype(np.float64)
            nav.rotation = orthonormalize(C).astype(self.dtype)
        else:
            q = nav.rotation.astype(np.float64)
            q = q + 0.5 * qua_error_matrix(q) @ psi
            norm = np.linalg.norm(q)
            if norm == 0 or not np.isfinite(norm):
                raise RenormalizationFailure(f"quaternion norm is {norm}", epoch=j)
            nav.rotation = (q / norm).astype(self.dtype)

        nav.vel = (nav.vel - err.velocity).astype(self.dtype)
        nav.lat = nav.lat - float(err.position[0])
        nav.lon = nav.lon - float(err.position[1])
        nav.h = self.dtype.type(nav.h - err.position[2])
        nav.biases.correct(err)

        if not nav.is_finite():
            raise NonFiniteStateError("navigation state became non-finite after correction", epoch=j)

        self._euler[-1] = nav.euler
        self._vel[-1] = nav.vel.copy()
        self._pos[-1] = nav.position

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------
    def iter_epochs(self) -> Iterator[int]:
        """Process the remaining GPS epochs, yielding each index after its correction."""
        gps = self.gps
        bar = tqdm(
            total=len(self.imu),
            initial=self._i,
            desc="INS",
            unit="sample",
            disable=not self.config.progress,
        )
        try:
            while self._j < len(gps):
                j = self._j
                reached = self._mechanize_until(gps.t[j], bar)
                if not reached:
                    logger.warning(
                        "IMU data ends at %.3f s before GPS epoch %d (t=%.3f s); %d GPS epochs left unprocessed",
                        self.imu.t[-1],
                        j,
                        gps.t[j],
                        len(gps) - j,
                    )
                    break
                self._correct(j)
                self._j = j + 1
                yield j
        finally:
            bar.close()

    def run(self) -> FusionResult:
        """Process every GPS epoch and return the result."""
        for _ in self.iter_epochs():
            pass
        result = self.result()
        logger.info(
            "Fusion finished: %d GPS epochs, %d IMU samples used",
            result.epochs_processed,
            result.imu_samples_used,
        )
        return result

    def result(self) -> FusionResult:
        """Assemble the histories recorded so far."""
        euler = np.array(self._euler, dtype=self.dtype)
        pos = np.array(self._pos, dtype=np.float64)
        return FusionResult(
            t=np.array(self._t),
            roll=euler[:, 0],
            pitch=euler[:, 1],
            yaw=euler[:, 2],
            vel=np.array(self._vel, dtype=self.dtype),
            lat=pos[:, 0],
            lon=pos[:, 1],
            h=pos[:, 2].astype(self.dtype),
            P_d=np.array(self._pdiag),
            B=np.array(self._bias),
            Inn=np.array(self._inn),
            X=np.array(self._x),
            epochs_processed=len(self._x),
            imu_samples_used=len(self._t),
        )


def ins_gps(
    imu: ImuData, gps: GpsData, att_mode: str = "quaternion", precision: str = "double"
) -> FusionResult:
    """Run a complete INS/GPS fusion with the given attitude mode and precision."""
    return InsGpsFusion(imu, gps, FusionConfig(att_mode=att_mode, precision=precision)).run()
