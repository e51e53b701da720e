"""
Greedy non-maximum suppression.

Overlap between two boxes is the intersection area divided by the area of
the smaller box (not IoU). A box is suppressed when its overlap with an
accepted box exceeds the threshold, or when one of the two boxes lies fully
inside the other; at threshold 1.0 only containment suppresses.
"""

from __future__ import annotations

from typing import List, Tuple

import numpy as np

from models.detection import Candidate, candidates_to_numpy
from models.errors import InvalidInput


def validate_overlap_threshold(overlap_threshold: float) -> float:
    """
    Raises:
        InvalidInput: If the threshold is not a number in (0, 1].
    """
    try:
        value = float(overlap_threshold)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"overlap threshold must be a number, got {overlap_threshold!r}") from e
    if not (0.0 < value <= 1.0):
        raise InvalidInput(f"overlap threshold must be in (0, 1], got {value}")
    return value


def box_areas(boxes: np.ndarray) -> np.ndarray:
    """Areas of inclusive-corner (x1, y1, x2, y2) boxes."""
    return (boxes[:, 2] - boxes[:, 0] + 1) * (boxes[:, 3] - boxes[:, 1] + 1)


def overlap_ratio(box: np.ndarray, others: np.ndarray) -> np.ndarray:
    """Intersection over the smaller area, for one box against many."""
    others = np.asarray(others).reshape(-1, 4)
    box = np.asarray(box).reshape(1, 4)
    iw = np.minimum(box[:, 2], others[:, 2]) - np.maximum(box[:, 0], others[:, 0]) + 1
    ih = np.minimum(box[:, 3], others[:, 3]) - np.maximum(box[:, 1], others[:, 1]) + 1
    inter = np.maximum(iw, 0) * np.maximum(ih, 0)
    smaller = np.minimum(box_areas(box), box_areas(others))
    return inter / smaller.astype(np.float64)


def suppress(
    boxes: np.ndarray,
    scores: np.ndarray,
    overlap_threshold: float,
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Greedy NMS.

    Args:
        boxes: (N, 4) integer boxes [x1, y1, x2, y2], inclusive corners.
        scores: (N,) scores.
        overlap_threshold: Suppression threshold in (0, 1].

    Returns:
        (kept boxes, kept scores, kept input indices), in acceptance order.
    """
    threshold = validate_overlap_threshold(overlap_threshold)
    boxes = np.asarray(boxes, dtype=np.int64).reshape(-1, 4)
    scores = np.asarray(scores, dtype=np.float32).ravel()
    if boxes.shape[0] != scores.shape[0]:
        raise InvalidInput(f"{boxes.shape[0]} boxes but {scores.shape[0]} scores")
    if boxes.shape[0] == 0:
        return boxes, scores, np.zeros(0, dtype=np.intp)

    # Stable, so equal scores keep input order.
    order = np.argsort(-scores, kind="stable")
    suppressed = np.zeros(boxes.shape[0], dtype=bool)
    keep: List[int] = []

    for pos, i in enumerate(order):
        if suppressed[i]:
            continue
        keep.append(int(i))
        rest = order[pos + 1:]
        rest = rest[~suppressed[rest]]
        if rest.size == 0:
            break
        ratio = overlap_ratio(boxes[i], boxes[rest])
        suppressed[rest[(ratio > threshold) | (ratio >= 1.0)]] = True

    kept = np.asarray(keep, dtype=np.intp)
    return boxes[kept], scores[kept], kept


class NonMaxSuppressor:
    """Applies suppress() to matcher candidates."""

    def __init__(self, overlap_threshold: float = 0.5):
        self.overlap_threshold = validate_overlap_threshold(overlap_threshold)

    def __call__(self, candidates: List[Candidate]) -> List[Candidate]:
        return self.suppress(candidates)

    def suppress(self, candidates: List[Candidate]) -> List[Candidate]:
        boxes, scores = candidates_to_numpy(candidates)
        _, _, kept = suppress(boxes, scores, self.overlap_threshold)
        return [candidates[i] for i in kept]
