"""Exceptions raised by the INS/GPS fusion loop."""

from typing import Optional


class FusionError(Exception):
    """Base class for fusion failures."""


class InsufficientDataError(FusionError, ValueError):
    """Raised before the loop starts when the input series cannot be fused."""


class NonFiniteStateError(FusionError, ArithmeticError):
    """Raised when a navigation or error-state component becomes non-finite."""

    def __init__(self, message: str, epoch: Optional[int] = None):
        if epoch is not None:
            message = f"{message} (GPS epoch {epoch})"
        super().__init__(message)
        self.epoch = epoch


class RenormalizationFailure(FusionError, ArithmeticError):
    """Raised when the attitude quaternion cannot be brought back to unit norm."""

    def __init__(self, message: str, epoch: Optional[int] = None):
        if epoch is not None:
            message = f"{message} (GPS epoch {epoch})"
        super().__init__(message)
        self.epoch = epoch
