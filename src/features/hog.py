"""
HOG-style cell features for the feature pyramid.

The pipeline for one image is:
- compute_cell_histograms: per-pixel gradients, strongest channel per pixel,
  orientations snapped to 18 contrast-sensitive directions (9 insensitive),
  bilinear soft binning into the four nearest cells.
- normalize_and_truncate: four 2x2 block normalizations per cell, values
  clipped at `alpha`; the outer ring of cells is dropped.
- reduce_features: analytic projection of the 108 normalized values to 31
  features (18 signed + 9 unsigned orientations + 4 texture energies).
"""

from __future__ import annotations

import numpy as np

NUM_SECTOR = 9
HIST_FEATURES = 3 * NUM_SECTOR
NORMALIZED_FEATURES = 4 * HIST_FEATURES
REDUCED_FEATURES = 2 * NUM_SECTOR + NUM_SECTOR + 4

_EPS = np.finfo(np.float32).eps


def _strongest_gradient(image: np.ndarray):
    """Centered [-1, 0, 1] gradients of the channel with the largest magnitude."""
    img = np.asarray(image, dtype=np.float32)
    if img.ndim == 2:
        img = img[:, :, None]

    dx = np.zeros_like(img)
    dy = np.zeros_like(img)
    # Only interior pixels carry a gradient.
    dx[1:-1, 1:-1] = img[1:-1, 2:] - img[1:-1, :-2]
    dy[1:-1, 1:-1] = img[2:, 1:-1] - img[:-2, 1:-1]

    best = np.argmax(dx * dx + dy * dy, axis=2)[..., None]
    gx = np.take_along_axis(dx, best, axis=2)[..., 0]
    gy = np.take_along_axis(dy, best, axis=2)[..., 0]
    return gx, gy


def _axis_weights(n: int, k: int):
    pos = np.arange(n)
    cell = pos // k
    offset = pos % k
    dist = np.abs(offset + 0.5 - k / 2.0) / k
    neighbour = np.where(offset < k / 2.0, -1, 1)
    return cell, cell + neighbour, (1.0 - dist).astype(np.float32), dist.astype(np.float32)


def compute_cell_histograms(image: np.ndarray, cell_size: int) -> np.ndarray:
    """
    Orientation histograms per cell.

    Args:
        image: (H, W) or (H, W, C) image.
        cell_size: Cell side in pixels.

    Returns:
        float32 array (H // cell_size, W // cell_size, 27): 9 unsigned bins
        followed by 18 signed bins.
    """
    k = int(cell_size)
    height, width = image.shape[:2]
    cells_y, cells_x = height // k, width // k
    if cells_x < 3 or cells_y < 3:
        raise ValueError(
            f"image {width}x{height} is too small for {k}px cells (need 3x3 cells)"
        )

    gx, gy = _strongest_gradient(image)
    gx = gx[: cells_y * k, : cells_x * k]
    gy = gy[: cells_y * k, : cells_x * k]
    magnitude = np.sqrt(gx * gx + gy * gy)

    step = np.pi / NUM_SECTOR
    signed = np.rint(np.arctan2(gy, gx) / step).astype(np.int64) % (2 * NUM_SECTOR)
    unsigned = signed % NUM_SECTOR
    signed = signed + NUM_SECTOR

    row_own, row_nb, wy_own, wy_nb = _axis_weights(cells_y * k, k)
    col_own, col_nb, wx_own, wx_nb = _axis_weights(cells_x * k, k)

    # One cell of slack on each side absorbs weight spilled past the edge.
    padded_x = cells_x + 2
    size = (cells_y + 2) * padded_x * HIST_FEATURES
    hist = np.zeros(size, dtype=np.float64)
    for rows, wy in ((row_own, wy_own), (row_nb, wy_nb)):
        for cols, wx in ((col_own, wx_own), (col_nb, wx_nb)):
            weight = (magnitude * np.outer(wy, wx)).ravel()
            base = ((rows[:, None] + 1) * padded_x + (cols[None, :] + 1)) * HIST_FEATURES
            for bins in (unsigned, signed):
                index = (base + bins).ravel()
                hist += np.bincount(index, weights=weight, minlength=size)

    hist = hist.reshape(cells_y + 2, padded_x, HIST_FEATURES)
    return hist[1:-1, 1:-1].astype(np.float32)


def normalize_and_truncate(hist: np.ndarray, alpha: float = 0.2) -> np.ndarray:
    """
    Block-normalize cell histograms.

    Returns:
        float32 array (rows - 2, cols - 2, 108). Layout: 4 blocks x 9 unsigned
        bins, then 4 blocks x 18 signed bins.
    """
    hist = np.asarray(hist, dtype=np.float32)
    if hist.shape[0] < 3 or hist.shape[1] < 3:
        raise ValueError(f"need at least 3x3 cells to normalize, got {hist.shape[:2]}")

    energy = np.sum(hist[..., :NUM_SECTOR] ** 2, axis=2)
    block = energy[:-1, :-1] + energy[:-1, 1:] + energy[1:, :-1] + energy[1:, 1:]
    norms = [
        np.sqrt(block[1:, 1:]) + _EPS,
        np.sqrt(block[:-1, 1:]) + _EPS,
        np.sqrt(block[1:, :-1]) + _EPS,
        np.sqrt(block[:-1, :-1]) + _EPS,
    ]

    interior = hist[1:-1, 1:-1]
    unsigned = [interior[..., :NUM_SECTOR] / n[..., None] for n in norms]
    signed = [interior[..., NUM_SECTOR:] / n[..., None] for n in norms]
    out = np.concatenate(unsigned + signed, axis=2)
    return np.minimum(out, np.float32(alpha)).astype(np.float32)


def reduce_features(normalized: np.ndarray) -> np.ndarray:
    """Project 108 normalized values per cell down to 31 features."""
    normalized = np.asarray(normalized, dtype=np.float32)
    rows, cols, _ = normalized.shape
    unsigned = normalized[..., : 4 * NUM_SECTOR].reshape(rows, cols, 4, NUM_SECTOR)
    signed = normalized[..., 4 * NUM_SECTOR:].reshape(rows, cols, 4, 2 * NUM_SECTOR)

    ny = np.float32(1.0 / np.sqrt(4.0))
    nx = np.float32(1.0 / np.sqrt(2.0 * NUM_SECTOR))
    return np.concatenate(
        [
            signed.sum(axis=2) * ny,
            unsigned.sum(axis=2) * ny,
            signed.sum(axis=3) * nx,
        ],
        axis=2,
    ).astype(np.float32)


def compute_features(image: np.ndarray, cell_size: int, alpha: float = 0.2) -> np.ndarray:
    """Full per-level feature computation: (H // k - 2, W // k - 2, 31)."""
    return reduce_features(normalize_and_truncate(compute_cell_histograms(image, cell_size), alpha))
