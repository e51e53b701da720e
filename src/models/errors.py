"""
Error taxonomy for the detection pipeline.

Zero detections is a valid, successful result and never raises.
"""

from __future__ import annotations


class DetectorError(Exception):
    """Base class for detector errors."""


class InvalidInput(DetectorError, ValueError):
    """Degenerate image or malformed threshold. No partial result is produced."""


class PyramidLevelMismatch(DetectorError):
    """
    Model/pyramid geometry inconsistency for a single component.

    Raised while matching one component; the matcher skips that component
    and keeps going with the others.
    """

    def __init__(self, message: str, component: int = -1):
        super().__init__(message)
        self.component = component


class LoadFailure(DetectorError):
    """Model source is unreadable, corrupt, or violates the model contract."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(f"{source}: {message}" if source else message)
        self.source = source
