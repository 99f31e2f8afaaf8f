"""Loosely-coupled INS/GPS integration."""

from .config import FusionConfig, default_cfg, load_config
from .data import GpsData, ImuData, load_gps_csv, load_imu_csv, load_params_json
from .errors import FusionError, InsufficientDataError, NonFiniteStateError, RenormalizationFailure
from .fusion import FusionResult, InsGpsFusion, ins_gps
from .state import ErrorState, NavigationState, SensorBiases

__all__ = [
    "FusionConfig",
    "default_cfg",
    "load_config",
    "GpsData",
    "ImuData",
    "load_gps_csv",
    "load_imu_csv",
    "load_params_json",
    "FusionError",
    "InsufficientDataError",
    "NonFiniteStateError",
    "RenormalizationFailure",
    "FusionResult",
    "InsGpsFusion",
    "ins_gps",
    "ErrorState",
    "NavigationState",
    "SensorBiases",
]
