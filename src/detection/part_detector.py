"""
Part-based detector for a single class model.

Wires pyramid construction, matching, clipping and suppression:

    image -> PyramidBuilder -> (pyramid, compressed) -> Matcher
          -> clip to image -> NonMaxSuppressor -> detections
"""

from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from matching.matcher import Matcher
from models.config import DetectorConfig, MatcherConfig, PyramidConfig
from models.detection import Candidate, Detection
from models.part_model import Model
from pyramid.builder import PyramidBuilder, validate_image
from .base import Detector
from .nms import NonMaxSuppressor, validate_overlap_threshold


def clip_boxes(boxes: np.ndarray, width: int, height: int) -> np.ndarray:
    """Clamp (N, 4) inclusive-corner boxes into [0, width) x [0, height)."""
    boxes = np.array(boxes, dtype=np.int64).reshape(-1, 4)
    boxes[:, [0, 2]] = np.clip(boxes[:, [0, 2]], 0, width - 1)
    boxes[:, [1, 3]] = np.clip(boxes[:, [1, 3]], 0, height - 1)
    return boxes


def clip_candidates(candidates: List[Candidate], width: int, height: int) -> List[Candidate]:
    """Clamp every candidate box to the image; none are discarded."""
    out: List[Candidate] = []
    for c in candidates:
        x1, y1, x2, y2 = clip_boxes(np.array([c.top_left + c.bottom_right]), width, height)[0]
        out.append(
            Candidate(
                top_left=(int(x1), int(y1)),
                bottom_right=(int(x2), int(y2)),
                score=c.score,
                component=c.component,
                level=c.level,
            )
        )
    return out


class PartBasedDetector(Detector):
    """
    Detects one object class with a deformable part model.

    The model is shared read-only; every detect() call builds and discards
    its own pyramids and candidate lists.

    Example:
        detector = PartBasedDetector(load_model("models/person.yaml"), class_id=0)
        detections = detector.detect(image, overlap_threshold=0.5)
    """

    def __init__(
        self,
        model: Model,
        class_id: Optional[int] = None,
        class_name: Optional[str] = None,
        config: Optional[DetectorConfig] = None,
        pyramid_config: Optional[PyramidConfig] = None,
        matcher_config: Optional[MatcherConfig] = None,
    ):
        self.model = model
        self.class_id = class_id
        self.class_name = class_name if class_name is not None else (model.name or None)
        self.config = config or DetectorConfig()
        self.builder = PyramidBuilder(pyramid_config)
        self.matcher = Matcher(matcher_config)

    def find_candidates(self, image: np.ndarray) -> List[Candidate]:
        """Raw matcher candidates for `image`, before clipping and suppression."""
        pyramid, compressed = self.builder.build_for_model(image, self.model)
        return self.matcher.search(pyramid, compressed, self.model)

    def detect(self, frame: np.ndarray, overlap_threshold: Optional[float] = None) -> List[Detection]:
        """
        Detect objects in `frame`.

        Args:
            frame: (H, W) or (H, W, C) pixel buffer.
            overlap_threshold: Suppression threshold in (0, 1]; defaults to config.

        Returns:
            Detections in descending score order; empty when nothing clears
            the model threshold or the image is too small for a single level.

        Raises:
            InvalidInput: Degenerate image or threshold outside (0, 1].
        """
        if overlap_threshold is None:
            overlap_threshold = self.config.overlap_threshold
        suppressor = NonMaxSuppressor(validate_overlap_threshold(overlap_threshold))
        width, height = validate_image(frame)
        if not self.builder.can_build(width, height):
            logging.debug(f"Image {width}x{height} is too small for any pyramid level")
            return []

        candidates = self.find_candidates(frame)
        clipped = clip_candidates(candidates, width, height)
        kept = suppressor.suppress(clipped)

        logging.debug(
            f"Class '{self.class_name}': {len(candidates)} candidates, {len(kept)} after suppression"
        )
        return [
            Detection.from_candidate(c, class_id=self.class_id, class_name=self.class_name)
            for c in kept
        ]
