"""
Root + deformable part matching over a feature pyramid.

For each component and each pyramid level that can host its root (and has a
finer level for every part):
1. compressed root response everywhere, used to skip locations (only when
   the root has a prefilter threshold);
2. exact root response at the surviving locations;
3. exact part responses at the finer level, maximized over displacements
   with the deformation penalty (distance transform);
4. score = root + parts + bias, kept when strictly above the model threshold;
5. each kept location is mapped back to an image-space box.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import numpy as np

from models.config import MatcherConfig
from models.detection import Candidate
from models.errors import PyramidLevelMismatch
from models.feature import FeaturePyramid
from models.part_model import Component, Filter, Model
from .distance_transform import distance_transform
from .estimators import CompressedScoreEstimator, ExactScoreEstimator, ScoreEstimator


class Matcher:
    """
    Scores a model against a pyramid pair and returns candidates.

    The matcher holds no per-call state, so one instance can serve
    concurrent searches.
    """

    def __init__(self, config: Optional[MatcherConfig] = None, exact: Optional[ScoreEstimator] = None):
        self.config = config or MatcherConfig()
        if self.config.max_displacement < 0:
            raise ValueError("max_displacement must be non-negative")
        self._exact = exact or ExactScoreEstimator()

    def search(
        self,
        pyramid: FeaturePyramid,
        compressed: FeaturePyramid,
        model: Model,
    ) -> List[Candidate]:
        """
        Find all component placements scoring above the model threshold.

        A component whose geometry does not fit the pyramid is logged and
        skipped; the remaining components still run.
        """
        estimator = CompressedScoreEstimator(model.pca_projection)
        indices = range(model.num_components)

        if self.config.num_workers > 1 and model.num_components > 1:
            with ThreadPoolExecutor(max_workers=self.config.num_workers) as pool:
                per_component = list(
                    pool.map(lambda i: self._search_safe(pyramid, compressed, model, i, estimator), indices)
                )
        else:
            per_component = [self._search_safe(pyramid, compressed, model, i, estimator) for i in indices]

        candidates: List[Candidate] = []
        for found in per_component:
            candidates.extend(found)
        logging.debug(f"Matcher found {len(candidates)} candidates for model '{model.name}'")
        return candidates

    def _search_safe(
        self,
        pyramid: FeaturePyramid,
        compressed: FeaturePyramid,
        model: Model,
        index: int,
        estimator: ScoreEstimator,
    ) -> List[Candidate]:
        try:
            return self.search_component(pyramid, compressed, model, index, estimator)
        except PyramidLevelMismatch as e:
            logging.warning(f"Skipping component {index} of model '{model.name}': {e}")
            return []

    def check_geometry(
        self,
        pyramid: FeaturePyramid,
        compressed: FeaturePyramid,
        model: Model,
        index: int,
    ) -> None:
        """
        Raises:
            PyramidLevelMismatch: If the component cannot be matched on this pyramid.
        """
        component = model.components[index]
        if compressed.num_levels != pyramid.num_levels:
            raise PyramidLevelMismatch(
                f"compressed pyramid has {compressed.num_levels} levels, "
                f"full pyramid has {pyramid.num_levels}",
                component=index,
            )
        if compressed.num_features != model.compressed_dim:
            raise PyramidLevelMismatch(
                f"compressed pyramid has {compressed.num_features} features, "
                f"projection produces {model.compressed_dim}",
                component=index,
            )
        for f in component.filters():
            if f.num_features != pyramid.num_features:
                raise PyramidLevelMismatch(
                    f"filter has {f.num_features} features, pyramid has {pyramid.num_features}",
                    component=index,
                )
        for p, part in enumerate(component.parts):
            offset = part.anchor.level_offset
            if offset <= 0 or offset >= pyramid.num_levels:
                raise PyramidLevelMismatch(
                    f"part {p} references level offset {offset} on a "
                    f"{pyramid.num_levels}-level pyramid",
                    component=index,
                )

    def search_component(
        self,
        pyramid: FeaturePyramid,
        compressed: FeaturePyramid,
        model: Model,
        index: int,
        estimator: Optional[ScoreEstimator] = None,
    ) -> List[Candidate]:
        """Candidates for a single component, in (level, row, col) order."""
        self.check_geometry(pyramid, compressed, model, index)
        estimator = estimator or CompressedScoreEstimator(model.pca_projection)
        component = model.components[index]
        bias = np.float32(model.biases[index])

        candidates: List[Candidate] = []
        for level in range(component.max_level_offset, pyramid.num_levels):
            candidates.extend(
                self._search_level(pyramid, compressed, model, index, component, bias, level, estimator)
            )
        return candidates

    def _prefilter_cutoff(self, root: Filter) -> Optional[float]:
        if root.prefilter_threshold is None:
            return None
        return root.prefilter_threshold - self.config.prefilter_slack

    def _search_level(
        self,
        pyramid: FeaturePyramid,
        compressed: FeaturePyramid,
        model: Model,
        index: int,
        component: Component,
        bias: np.float32,
        level: int,
        estimator: ScoreEstimator,
    ) -> List[Candidate]:
        root = component.root
        rows = pyramid[level].size_y - root.size_y + 1
        cols = pyramid[level].size_x - root.size_x + 1
        if rows <= 0 or cols <= 0:
            return []

        # Compressed pass only runs when there is a cutoff to apply
        cutoff = self._prefilter_cutoff(root)
        if cutoff is None:
            ys, xs = np.indices((rows, cols))
            ys, xs = ys.ravel(), xs.ravel()
        else:
            approx = estimator.response(compressed[level], root.weights)
            ys, xs = np.nonzero(approx >= np.float32(cutoff))
        if ys.size == 0:
            return []

        total = self._exact.response_at(pyramid[level], root.weights, ys, xs) + bias
        valid = np.ones(ys.size, dtype=bool)

        for part in component.parts:
            part_scores = self._part_scores(pyramid, part, level, ys, xs)
            valid &= np.isfinite(part_scores)
            total = total + np.where(valid, part_scores, np.float32(0.0)).astype(np.float32)

        keep = valid & (total > np.float32(model.score_threshold))
        if not np.any(keep):
            return []

        return [
            self._to_candidate(pyramid, root, level, index, int(x), int(y), float(s))
            for y, x, s in zip(ys[keep], xs[keep], total[keep])
        ]

    def _part_scores(
        self,
        pyramid: FeaturePyramid,
        part: Filter,
        level: int,
        ys: np.ndarray,
        xs: np.ndarray,
    ) -> np.ndarray:
        """Best penalized part score per root location; -inf where the anchor is off-map."""
        offset = part.anchor.level_offset
        response = self._exact.response(pyramid[level - offset], part.weights)
        scores = np.full(ys.size, -np.inf, dtype=np.float32)
        if response.size == 0:
            return scores

        dt = distance_transform(response, part.deformation, self.config.max_displacement)
        factor = pyramid.level_factor(offset)
        px = np.rint((xs - pyramid.border_x) * factor).astype(np.intp) + pyramid.border_x + part.anchor.x
        py = np.rint((ys - pyramid.border_y) * factor).astype(np.intp) + pyramid.border_y + part.anchor.y
        inside = (px >= 0) & (px < dt.scores.shape[1]) & (py >= 0) & (py < dt.scores.shape[0])
        scores[inside] = dt.scores[py[inside], px[inside]]
        return scores

    @staticmethod
    def _to_candidate(
        pyramid: FeaturePyramid,
        root: Filter,
        level: int,
        component: int,
        x: int,
        y: int,
        score: float,
    ) -> Candidate:
        scale = pyramid.scales[level]
        cell_x = x - pyramid.border_x + pyramid.cell_offset
        cell_y = y - pyramid.border_y + pyramid.cell_offset
        x1 = int(math.floor(cell_x * scale))
        y1 = int(math.floor(cell_y * scale))
        x2 = int(math.floor((cell_x + root.size_x) * scale)) - 1
        y2 = int(math.floor((cell_y + root.size_y) * scale)) - 1
        return Candidate(
            top_left=(x1, y1),
            bottom_right=(max(x1, x2), max(y1, y2)),
            score=score,
            component=component,
            level=level,
        )
