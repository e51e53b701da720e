"""
Feature map and feature pyramid models.

A feature map is a dense grid of per-cell feature vectors stored as a
float32 array of shape (size_y, size_x, num_features), i.e. indexed by
(row, col, feature). Each instance owns its backing array.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Sequence

import numpy as np


@dataclass
class FeatureMap:
    """
    Dense feature grid for one pyramid level.

    Attributes:
        cells: float32 array of shape (size_y, size_x, num_features).
    """
    cells: np.ndarray

    def __post_init__(self) -> None:
        cells = np.ascontiguousarray(self.cells, dtype=np.float32)
        if cells.ndim != 3:
            raise ValueError(f"feature map cells must be 3-D, got shape {cells.shape}")
        self.cells = cells

    @property
    def size_x(self) -> int:
        return int(self.cells.shape[1])

    @property
    def size_y(self) -> int:
        return int(self.cells.shape[0])

    @property
    def num_features(self) -> int:
        return int(self.cells.shape[2])

    @property
    def area(self) -> int:
        return self.size_x * self.size_y

    @classmethod
    def zeros(cls, size_x: int, size_y: int, num_features: int) -> "FeatureMap":
        """Create a zero-valued feature map."""
        return cls(cells=np.zeros((size_y, size_x, num_features), dtype=np.float32))

    @classmethod
    def from_flat(
        cls,
        size_x: int,
        size_y: int,
        num_features: int,
        data: Sequence[float],
    ) -> "FeatureMap":
        """
        Create from a flat (row, col, feature) ordered buffer.

        Raises:
            ValueError: If the buffer length is not size_x * size_y * num_features.
        """
        flat = np.asarray(data, dtype=np.float32).ravel()
        expected = size_x * size_y * num_features
        if flat.size != expected:
            raise ValueError(
                f"feature buffer has {flat.size} values, expected {expected} "
                f"({size_x}x{size_y}x{num_features})"
            )
        return cls(cells=flat.reshape(size_y, size_x, num_features))

    def padded(self, border_x: int, border_y: int) -> "FeatureMap":
        """Return a copy surrounded by border_x/border_y cells of zeros."""
        cells = np.pad(
            self.cells,
            ((border_y, border_y), (border_x, border_x), (0, 0)),
            mode="constant",
            constant_values=0.0,
        )
        return FeatureMap(cells=cells)

    def project(self, projection: np.ndarray) -> "FeatureMap":
        """Project every cell with a (num_features, k) matrix."""
        projection = np.asarray(projection, dtype=np.float32)
        if projection.shape[0] != self.num_features:
            raise ValueError(
                f"projection expects {projection.shape[0]} features, map has {self.num_features}"
            )
        return FeatureMap(cells=self.cells @ projection)


@dataclass
class FeaturePyramid:
    """
    Ordered feature maps from finest (largest) to coarsest level.

    Attributes:
        levels: Feature maps, finest first.
        scales: Image pixels per feature cell for each level.
        border_x: Zero padding (cells) on the left and right of every level.
        border_y: Zero padding (cells) on the top and bottom of every level.
        levels_per_octave: Levels between two resolutions differing by 2x.
        cell_offset: Cells dropped at the image edge during normalization;
            map cell (border_x, border_y) starts at this many cells into the image.
    """
    levels: List[FeatureMap]
    scales: List[float]
    border_x: int = 0
    border_y: int = 0
    levels_per_octave: int = 10
    cell_offset: int = 0
    _num_features: int = field(init=False, repr=False, default=0)

    def __post_init__(self) -> None:
        if not self.levels:
            raise ValueError("feature pyramid needs at least one level")
        if len(self.scales) != len(self.levels):
            raise ValueError(
                f"pyramid has {len(self.levels)} levels but {len(self.scales)} scales"
            )
        dims = {level.num_features for level in self.levels}
        if len(dims) != 1:
            raise ValueError(f"pyramid levels disagree on feature count: {sorted(dims)}")
        if self.levels_per_octave <= 0:
            raise ValueError("levels_per_octave must be positive")
        self._num_features = dims.pop()

    def __len__(self) -> int:
        return len(self.levels)

    def __getitem__(self, index: int) -> FeatureMap:
        return self.levels[index]

    def __iter__(self) -> Iterator[FeatureMap]:
        return iter(self.levels)

    @property
    def num_levels(self) -> int:
        return len(self.levels)

    @property
    def num_features(self) -> int:
        return self._num_features

    def level_factor(self, level_offset: int) -> float:
        """Resolution ratio between a level and the level `level_offset` finer."""
        return 2.0 ** (level_offset / self.levels_per_octave)

    def project(self, projection: np.ndarray) -> "FeaturePyramid":
        """Build the companion pyramid with every level projected."""
        return FeaturePyramid(
            levels=[level.project(projection) for level in self.levels],
            scales=list(self.scales),
            border_x=self.border_x,
            border_y=self.border_y,
            levels_per_octave=self.levels_per_octave,
            cell_offset=self.cell_offset,
        )
