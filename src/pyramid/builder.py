"""
Feature pyramid construction.

The pyramid has `levels_per_octave` levels per halving of resolution. The
first octave is computed with half-size cells (twice the resolution) so parts
one octave finer than any root placement always have a level to live on.
Every level is surrounded by a zero border large enough for the largest model
filter, and a final "truncation" feature marks border cells with 1.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

import cv2
import numpy as np

from features.hog import compute_features
from models.config import PyramidConfig
from models.errors import InvalidInput
from models.feature import FeatureMap, FeaturePyramid
from models.part_model import Model

# Cells dropped at the image edge by block normalization.
NORMALIZATION_OFFSET = 1


def max_filter_size(model: Model) -> Tuple[int, int]:
    """Largest filter (width, height) over all root and part filters of a model."""
    return model.max_filter_size()


def compute_border_size(max_filter_width: int, max_filter_height: int) -> Tuple[int, int]:
    """Zero border (cells) needed so every filter fits around every cell."""
    border_x = int(math.ceil(max_filter_width / 2.0 + 1.0))
    border_y = int(math.ceil(max_filter_height / 2.0 + 1.0))
    return border_x, border_y


def add_border(cells: np.ndarray, border_x: int, border_y: int, truncation_feature: bool) -> np.ndarray:
    """Pad a (rows, cols, F) grid with zeros, optionally appending the border indicator."""
    padded = np.pad(
        cells,
        ((border_y, border_y), (border_x, border_x), (0, 0)),
        mode="constant",
        constant_values=0.0,
    )
    if not truncation_feature:
        return padded
    indicator = np.ones(padded.shape[:2] + (1,), dtype=np.float32)
    indicator[border_y:border_y + cells.shape[0], border_x:border_x + cells.shape[1]] = 0.0
    return np.concatenate([padded, indicator], axis=2)


def validate_image(image: np.ndarray) -> Tuple[int, int]:
    """
    Check an image buffer and return (width, height).

    Raises:
        InvalidInput: If the image is not a 2-D/3-D array or has zero width/height.
    """
    if not isinstance(image, np.ndarray):
        raise InvalidInput(f"image must be a numpy array, got {type(image).__name__}")
    if image.ndim not in (2, 3):
        raise InvalidInput(f"image must be 2-D or 3-D, got shape {image.shape}")
    height, width = image.shape[:2]
    if width == 0 or height == 0 or (image.ndim == 3 and image.shape[2] == 0):
        raise InvalidInput(f"degenerate image of shape {image.shape}")
    return width, height


class PyramidBuilder:
    """
    Builds the full feature pyramid and its compressed companion.

    Example:
        builder = PyramidBuilder(PyramidConfig())
        pyramid, compressed = builder.build_for_model(image, model)
    """

    def __init__(self, config: Optional[PyramidConfig] = None):
        self.config = config or PyramidConfig()
        if self.config.cell_size < 2:
            raise ValueError("cell_size must be at least 2")
        if self.config.levels_per_octave <= 0:
            raise ValueError("levels_per_octave must be positive")
        # The coarsest level must keep 3x3 cells after resize truncation.
        if self.config.min_cells < 4:
            raise ValueError("min_cells must be at least 4")

    @property
    def step(self) -> float:
        return 2.0 ** (1.0 / self.config.levels_per_octave)

    def num_regular_levels(self, width: int, height: int) -> int:
        """Levels computed with full-size cells, down to `min_cells` cells on the short side."""
        max_cells = min(width, height) / float(self.config.cell_size)
        ratio = max_cells / float(self.config.min_cells)
        if ratio < 1.0:
            return 0
        return int(math.floor(math.log(ratio) / math.log(self.step))) + 1

    @staticmethod
    def _scaled_size(width: int, height: int, scale: float) -> Tuple[int, int]:
        if scale == 1.0:
            return width, height
        return max(1, int(width * scale)), max(1, int(height * scale))

    def level_plan(self, width: int, height: int) -> List[Tuple[float, int]]:
        """
        (resize scale, cell size) for every level an image of this size gets.

        First-octave levels are kept while they still hold 3x3 cells, so an
        image too small for any regular level keeps the finer ones. Empty
        when not even the finest level fits.
        """
        lam = self.config.levels_per_octave
        cell = self.config.cell_size
        half = cell // 2

        plan: List[Tuple[float, int]] = []
        for i in range(lam):
            scale = self.step ** -i
            w, h = self._scaled_size(width, height, scale)
            if w // half < 3 or h // half < 3:
                break
            plan.append((scale, half))
        plan += [(self.step ** -j, cell) for j in range(self.num_regular_levels(width, height))]
        return plan

    def can_build(self, width: int, height: int) -> bool:
        return bool(self.level_plan(width, height))

    def _level_features(self, image: np.ndarray, scale: float, cell_size: int) -> np.ndarray:
        height, width = image.shape[:2]
        if scale != 1.0:
            new_w, new_h = self._scaled_size(width, height, scale)
            image = cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_LINEAR)
        return compute_features(image, cell_size, self.config.truncation)

    def build_features(
        self,
        image: np.ndarray,
        max_filter_width: int,
        max_filter_height: int,
    ) -> FeaturePyramid:
        """
        Build the padded full-dimensional pyramid.

        Images below `cell_size * min_cells` pixels on the short side get
        only the first-octave levels.

        Raises:
            InvalidInput: Degenerate image, or too small for even the finest
                level (check can_build() first to avoid this).
        """
        width, height = validate_image(image)
        plan = self.level_plan(width, height)
        if not plan:
            raise InvalidInput(
                f"image {width}x{height} is smaller than 3 cells of "
                f"{self.config.cell_size // 2}px on a side"
            )

        lam = self.config.levels_per_octave
        border_x, border_y = compute_border_size(max_filter_width, max_filter_height)

        levels: List[FeatureMap] = []
        scales: List[float] = []
        for scale, cell_size in plan:
            features = self._level_features(image, scale, cell_size)
            cells = add_border(features, border_x, border_y, self.config.add_truncation_feature)
            levels.append(FeatureMap(cells=cells))
            scales.append(cell_size / scale)

        logging.debug(
            f"Built pyramid: {len(levels)} levels, finest {levels[0].size_x}x{levels[0].size_y}, "
            f"coarsest {levels[-1].size_x}x{levels[-1].size_y}, border {border_x}x{border_y}"
        )
        return FeaturePyramid(
            levels=levels,
            scales=scales,
            border_x=border_x,
            border_y=border_y,
            levels_per_octave=lam,
            cell_offset=NORMALIZATION_OFFSET,
        )

    def build(
        self,
        image: np.ndarray,
        max_filter_width: int,
        max_filter_height: int,
        projection: np.ndarray,
    ) -> Tuple[FeaturePyramid, FeaturePyramid]:
        """
        Build (pyramid, compressed pyramid).

        The compressed pyramid has the same levels and borders, with each cell
        replaced by its projection through `projection`.
        """
        pyramid = self.build_features(image, max_filter_width, max_filter_height)
        projection = np.asarray(projection, dtype=np.float32)
        if projection.ndim != 2 or projection.shape[0] != pyramid.num_features:
            raise InvalidInput(
                f"projection of shape {projection.shape} does not match "
                f"{pyramid.num_features} pyramid features"
            )
        return pyramid, pyramid.project(projection)

    def build_for_model(self, image: np.ndarray, model: Model) -> Tuple[FeaturePyramid, FeaturePyramid]:
        """Build a pyramid pair sized for every filter of `model`."""
        max_w, max_h = max_filter_size(model)
        return self.build(image, max_w, max_h, model.pca_projection)
