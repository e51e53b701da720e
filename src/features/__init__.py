"""
Feature extraction for the feature pyramid.
"""

from .hog import (
    compute_cell_histograms,
    normalize_and_truncate,
    reduce_features,
    compute_features,
    REDUCED_FEATURES,
)

__all__ = [
    "compute_cell_histograms",
    "normalize_and_truncate",
    "reduce_features",
    "compute_features",
    "REDUCED_FEATURES",
]
