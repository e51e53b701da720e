"""
Matching of deformable part models against feature pyramids.
"""

from .estimators import ScoreEstimator, ExactScoreEstimator, CompressedScoreEstimator
from .distance_transform import DistanceTransform, distance_transform, transform_1d
from .matcher import Matcher

__all__ = [
    "ScoreEstimator",
    "ExactScoreEstimator",
    "CompressedScoreEstimator",
    "DistanceTransform",
    "distance_transform",
    "transform_1d",
    "Matcher",
]
