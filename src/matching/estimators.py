"""
Filter response estimators.

Both variants correlate filter weights against a feature map; they differ
only in which feature space they work in. The compressed estimator projects
the filter into the low-dimensional space of the compressed pyramid, which
makes it cheap enough to run over every location as a pre-filter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

from models.feature import FeatureMap


class ScoreEstimator(ABC):
    """
    Strategy for scoring a filter at pyramid locations.

    Locations are top-left cells of the filter window in padded map
    coordinates. Only windows lying fully inside the map are valid.
    """

    @abstractmethod
    def prepare(self, weights: np.ndarray) -> np.ndarray:
        """Map filter weights into this estimator's feature space."""

    def response(self, feature_map: FeatureMap, weights: np.ndarray) -> np.ndarray:
        """
        Score every valid window.

        Returns:
            float32 array of shape (size_y - fy + 1, size_x - fx + 1); empty
            when the filter does not fit in the map.
        """
        w = self.prepare(weights)
        cells = feature_map.cells
        fy, fx, _ = w.shape
        out_h = cells.shape[0] - fy + 1
        out_w = cells.shape[1] - fx + 1
        if out_h <= 0 or out_w <= 0:
            return np.zeros((0, 0), dtype=np.float32)

        out = np.zeros((out_h, out_w), dtype=np.float32)
        for dy in range(fy):
            for dx in range(fx):
                out += cells[dy:dy + out_h, dx:dx + out_w] @ w[dy, dx]
        return out

    def response_at(
        self,
        feature_map: FeatureMap,
        weights: np.ndarray,
        ys: np.ndarray,
        xs: np.ndarray,
    ) -> np.ndarray:
        """Score selected windows only. Returns float32 array of len(ys)."""
        w = self.prepare(weights)
        ys = np.asarray(ys, dtype=np.intp)
        xs = np.asarray(xs, dtype=np.intp)
        if ys.size == 0:
            return np.zeros(0, dtype=np.float32)
        fy, fx, _ = w.shape
        windows = sliding_window_view(feature_map.cells, (fy, fx), axis=(0, 1))
        selected = windows[ys, xs]  # (n, F, fy, fx)
        return np.einsum("nfyx,yxf->n", selected, w).astype(np.float32)


class ExactScoreEstimator(ScoreEstimator):
    """Full-dimensional filter response."""

    def prepare(self, weights: np.ndarray) -> np.ndarray:
        return np.asarray(weights, dtype=np.float32)


class CompressedScoreEstimator(ScoreEstimator):
    """Approximate response in the projected feature space."""

    def __init__(self, projection: np.ndarray):
        self.projection = np.asarray(projection, dtype=np.float32)

    def prepare(self, weights: np.ndarray) -> np.ndarray:
        return np.asarray(weights, dtype=np.float32) @ self.projection
