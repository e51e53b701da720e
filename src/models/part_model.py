"""
Deformable part model: filters, components and the loaded model.

A Model is immutable once constructed. Weight arrays are stored read-only so
a single Model can be shared across concurrent detection calls.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class Anchor:
    """
    Expected part placement.

    x, y are cell offsets from the root's top-left corner mapped into the
    part's level; level_offset is how many pyramid levels finer the part is.
    """
    x: int = 0
    y: int = 0
    level_offset: int = 0


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=np.float32, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class Filter:
    """
    A root or part filter.

    Attributes:
        weights: float32 array of shape (size_y, size_x, num_features).
        deformation: (c0, c1, c2, c3) of the penalty c0*dx + c1*dx^2 + c2*dy + c3*dy^2.
        anchor: Part anchor; unused for root filters.
        prefilter_threshold: Minimum compressed response for a location to be
            scored exactly. None keeps every location.
    """
    weights: np.ndarray
    deformation: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    anchor: Anchor = field(default_factory=Anchor)
    prefilter_threshold: Optional[float] = None

    def __post_init__(self) -> None:
        weights = _readonly(self.weights)
        if weights.ndim != 3:
            raise ValueError(f"filter weights must be 3-D, got shape {weights.shape}")
        object.__setattr__(self, "weights", weights)
        deformation = tuple(float(c) for c in self.deformation)
        if len(deformation) != 4:
            raise ValueError("deformation needs exactly four coefficients")
        object.__setattr__(self, "deformation", deformation)

    @property
    def size_x(self) -> int:
        return int(self.weights.shape[1])

    @property
    def size_y(self) -> int:
        return int(self.weights.shape[0])

    @property
    def num_features(self) -> int:
        return int(self.weights.shape[2])

    @classmethod
    def from_flat(
        cls,
        size_x: int,
        size_y: int,
        num_features: int,
        weights: Sequence[float],
        **kwargs,
    ) -> "Filter":
        """Create from a flat (row, col, feature) ordered weight buffer."""
        flat = np.asarray(weights, dtype=np.float32).ravel()
        expected = size_x * size_y * num_features
        if flat.size != expected:
            raise ValueError(
                f"filter has {flat.size} weights, expected {expected} "
                f"({size_x}x{size_y}x{num_features})"
            )
        return cls(weights=flat.reshape(size_y, size_x, num_features), **kwargs)


@dataclass(frozen=True, eq=False)
class Component:
    """A root filter plus its deformable parts."""
    root: Filter
    parts: Tuple[Filter, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "parts", tuple(self.parts))

    @property
    def max_level_offset(self) -> int:
        return max((p.anchor.level_offset for p in self.parts), default=0)

    def filters(self) -> Tuple[Filter, ...]:
        return (self.root,) + self.parts


@dataclass(frozen=True, eq=False)
class Model:
    """
    A trained mixture of components.

    Attributes:
        components: Ordered components.
        biases: One bias per component.
        score_threshold: Locations must score strictly above this to be reported.
        pca_projection: (num_features, compressed_dim) projection matrix.
        name: Human-readable model name (usually the class name).
    """
    components: Tuple[Component, ...]
    biases: Tuple[float, ...]
    score_threshold: float
    pca_projection: np.ndarray
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "components", tuple(self.components))
        object.__setattr__(self, "biases", tuple(float(b) for b in self.biases))
        object.__setattr__(self, "score_threshold", float(self.score_threshold))
        projection = _readonly(self.pca_projection)
        if projection.ndim != 2:
            raise ValueError("pca_projection must be a 2-D matrix")
        object.__setattr__(self, "pca_projection", projection)
        if len(self.biases) != len(self.components):
            raise ValueError(
                f"{len(self.components)} components but {len(self.biases)} biases"
            )

    @property
    def num_components(self) -> int:
        return len(self.components)

    @property
    def num_features(self) -> int:
        return int(self.pca_projection.shape[0])

    @property
    def compressed_dim(self) -> int:
        return int(self.pca_projection.shape[1])

    def max_filter_size(self) -> Tuple[int, int]:
        """Largest (width, height) over every root and part filter."""
        max_x = 0
        max_y = 0
        for component in self.components:
            for f in component.filters():
                max_x = max(max_x, f.size_x)
                max_y = max(max_y, f.size_y)
        return max_x, max_y

    def project_weights(self, weights: np.ndarray) -> np.ndarray:
        """Project filter weights into the compressed feature space."""
        return np.asarray(weights, dtype=np.float32) @ self.pca_projection
