"""
Detection models for object detection results.

Boxes use integer pixel coordinates with an inclusive bottom-right corner:
a box (0, 0, 9, 4) covers 10x5 pixels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class BoundingBox:
    """
    A bounding box in pixel coordinates.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate (inclusive).
        y2: Bottom edge y coordinate (inclusive).
    """
    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1 + 1

    @property
    def height(self) -> int:
        return self.y2 - self.y1 + 1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def area(self) -> int:
        return self.width * self.height

    def as_tuple(self) -> Tuple[int, int, int, int]:
        """Return as (x1, y1, x2, y2) tuple."""
        return (self.x1, self.y1, self.x2, self.y2)

    def as_rect(self) -> Tuple[int, int, int, int]:
        """Return as (x, y, width, height)."""
        return (self.x1, self.y1, self.width, self.height)

    @classmethod
    def from_tuple(cls, t: Tuple[int, int, int, int]) -> "BoundingBox":
        """Create from (x1, y1, x2, y2) tuple."""
        return cls(x1=int(t[0]), y1=int(t[1]), x2=int(t[2]), y2=int(t[3]))


@dataclass(frozen=True)
class Candidate:
    """
    A raw matcher hit before clipping and suppression.

    Attributes:
        top_left: (x, y) of the first covered pixel.
        bottom_right: (x, y) of the last covered pixel.
        score: Component score (root + parts + bias).
        component: Index of the component that produced it.
        level: Pyramid level of the root placement.
    """
    top_left: Tuple[int, int]
    bottom_right: Tuple[int, int]
    score: float
    component: int = 0
    level: int = 0

    @property
    def bbox(self) -> BoundingBox:
        return BoundingBox(
            x1=self.top_left[0],
            y1=self.top_left[1],
            x2=self.bottom_right[0],
            y2=self.bottom_right[1],
        )


@dataclass(frozen=True)
class Detection:
    """
    A single detection from a part-based detector.

    Attributes:
        bbox: Bounding box in pixel coordinates, clipped to the image.
        confidence: Detection score (unbounded SVM margin).
        class_id: Index of the class model within the loaded set.
        class_name: Human-readable class name.
    """
    bbox: BoundingBox
    confidence: float
    class_id: Optional[int] = None
    class_name: Optional[str] = None

    @property
    def x1(self) -> int:
        return self.bbox.x1

    @property
    def y1(self) -> int:
        return self.bbox.y1

    @property
    def x2(self) -> int:
        return self.bbox.x2

    @property
    def y2(self) -> int:
        return self.bbox.y2

    @classmethod
    def from_candidate(
        cls,
        candidate: Candidate,
        class_id: Optional[int] = None,
        class_name: Optional[str] = None,
    ) -> "Detection":
        return cls(
            bbox=candidate.bbox,
            confidence=float(candidate.score),
            class_id=class_id,
            class_name=class_name,
        )

    def to_numpy(self) -> np.ndarray:
        """Convert to numpy array [x1, y1, x2, y2, confidence, class_id]."""
        return np.array([
            self.x1, self.y1, self.x2, self.y2,
            self.confidence,
            self.class_id if self.class_id is not None else -1,
        ])


def candidates_to_numpy(candidates: List[Candidate]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split candidates into an (N, 4) int box array and an (N,) float32 score array.
    """
    if not candidates:
        return np.zeros((0, 4), dtype=np.int64), np.zeros(0, dtype=np.float32)
    boxes = np.array(
        [c.top_left + c.bottom_right for c in candidates], dtype=np.int64
    )
    scores = np.array([c.score for c in candidates], dtype=np.float32)
    return boxes, scores


def detections_to_numpy(detections: List[Detection]) -> np.ndarray:
    """
    Convert list of Detection objects to numpy array.

    Returns:
        Array of shape (N, 6) with [x1, y1, x2, y2, confidence, class_id].
    """
    if not detections:
        return np.zeros((0, 6))
    return np.array([d.to_numpy() for d in detections])
