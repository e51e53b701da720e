"""
Detection interfaces.

Detectors take an image buffer and return pixel-space detections in the
original image coordinate system.
"""

from __future__ import annotations

from typing import List

import numpy as np

from models.detection import Detection


class Detector:
    """Detector interface returning detections in pixel-space."""

    def detect(self, frame: np.ndarray) -> List[Detection]:
        raise NotImplementedError
