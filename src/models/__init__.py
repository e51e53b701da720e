"""
Typed models for the part-based detector.

Feature maps and pyramids, the deformable part model, detection results,
configuration and the error taxonomy.
"""

from .feature import FeatureMap, FeaturePyramid
from .part_model import Anchor, Filter, Component, Model
from .detection import BoundingBox, Candidate, Detection
from .errors import DetectorError, InvalidInput, PyramidLevelMismatch, LoadFailure
from .config import (
    Config,
    PyramidConfig,
    MatcherConfig,
    DetectorConfig,
    ModelSourceConfig,
)

__all__ = [
    # Features
    "FeatureMap",
    "FeaturePyramid",
    # Model
    "Anchor",
    "Filter",
    "Component",
    "Model",
    # Detection
    "BoundingBox",
    "Candidate",
    "Detection",
    # Errors
    "DetectorError",
    "InvalidInput",
    "PyramidLevelMismatch",
    "LoadFailure",
    # Config
    "Config",
    "PyramidConfig",
    "MatcherConfig",
    "DetectorConfig",
    "ModelSourceConfig",
]
