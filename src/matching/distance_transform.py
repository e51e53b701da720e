"""
Bounded generalized distance transform over a part response map.

For every anchor p the transform computes

    max over |dx|, |dy| <= D of  score(p + d) - (c0*dx + c1*dx^2 + c2*dy + c3*dy^2)

The penalty is additive in x and y, so the maximization runs as a pass along
rows followed by a pass along columns.

Tie policy is lexicographic: smaller |dy| wins, then smaller |dx|, and for
equal magnitude the negative displacement wins. It is not the smallest total
displacement: a tie between (dx=3, dy=0) and (dx=0, dy=1) keeps the first.
Each pass visits displacements in `displacement_order` and only strictly
better values replace the current best, and the column pass sees only the
row-pass winners.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np


@dataclass
class DistanceTransform:
    """
    Result of the transform.

    Attributes:
        scores: Best penalized score per anchor.
        dx: Chosen x displacement per anchor.
        dy: Chosen y displacement per anchor.
    """
    scores: np.ndarray
    dx: np.ndarray
    dy: np.ndarray


def displacement_order(max_displacement: int) -> Iterator[int]:
    """0, -1, 1, -2, 2, ... up to max_displacement."""
    yield 0
    for d in range(1, max_displacement + 1):
        yield -d
        yield d


def _shift(values: np.ndarray, d: int) -> np.ndarray:
    """out[..., i] = values[..., i + d], -inf where i + d falls outside."""
    n = values.shape[-1]
    out = np.full_like(values, -np.inf)
    if d >= 0:
        out[..., : n - d] = values[..., d:]
    else:
        out[..., -d:] = values[..., : n + d]
    return out


def transform_1d(
    scores: np.ndarray,
    linear: float,
    quadratic: float,
    max_displacement: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Max-with-penalty along the last axis.

    Ties keep the displacement visited first: 0, then -1, 1, -2, 2, ...

    Returns:
        (best scores, chosen displacement) with the shape of `scores`.
    """
    scores = np.asarray(scores, dtype=np.float32)
    best = np.full_like(scores, -np.inf)
    best_d = np.zeros(scores.shape, dtype=np.int32)
    n = scores.shape[-1]
    for d in displacement_order(max_displacement):
        if abs(d) >= n:
            continue
        cost = np.float32(linear * d + quadratic * d * d)
        candidate = _shift(scores, d) - cost
        better = candidate > best
        best = np.where(better, candidate, best)
        best_d = np.where(better, np.int32(d), best_d)
    return best, best_d


def distance_transform(
    response: np.ndarray,
    deformation: Tuple[float, float, float, float],
    max_displacement: int,
) -> DistanceTransform:
    """
    Two-pass transform of a (rows, cols) response map.

    Args:
        response: Part filter response, indexed by window top-left.
        deformation: (c0, c1, c2, c3) penalty coefficients.
        max_displacement: Search radius in cells along each axis.
    """
    if max_displacement < 0:
        raise ValueError("max_displacement must be non-negative")
    c0, c1, c2, c3 = deformation
    response = np.asarray(response, dtype=np.float32)

    row_best, row_dx = transform_1d(response, c0, c1, max_displacement)
    col_best, col_dy = transform_1d(row_best.T, c2, c3, max_displacement)
    scores = col_best.T
    dy = col_dy.T

    rows, cols = np.indices(response.shape)
    source_rows = np.clip(rows + dy, 0, response.shape[0] - 1)
    dx = row_dx[source_rows, cols]
    return DistanceTransform(scores=scores, dx=dx, dy=dy)
