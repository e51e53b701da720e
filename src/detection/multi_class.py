"""
Multi-class facade over per-class part-based detectors.

Each class model is loaded independently; a class whose model fails to load
is logged and skipped. Classes are detected independently (no cross-class
suppression) and results are concatenated in class order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from loader.yaml_model import extract_model_name, load_model
from models.config import Config
from models.detection import Detection
from models.errors import LoadFailure
from .base import Detector
from .nms import validate_overlap_threshold
from .part_detector import PartBasedDetector

ModelSource = Union[str, Tuple[str, Optional[str]]]


class MultiClassDetector(Detector):
    """
    Runs one PartBasedDetector per loaded class model.

    Class ids are indices into the list of successfully loaded models.
    """

    def __init__(self, detectors: Sequence[PartBasedDetector], config: Optional[Config] = None):
        self.config = config or Config()
        self.detectors: List[PartBasedDetector] = list(detectors)

    @classmethod
    def from_sources(cls, sources: Sequence[ModelSource], config: Optional[Config] = None) -> "MultiClassDetector":
        """
        Load class models from (path, class_name) pairs or bare paths.

        The class name defaults to the model file name without extension.
        """
        config = config or Config()
        detectors: List[PartBasedDetector] = []
        for source in sources:
            if isinstance(source, tuple):
                path, class_name = source
            else:
                path, class_name = source, None
            path = str(path)
            try:
                model = load_model(path)
            except LoadFailure as e:
                logging.warning(f"Skipping class model {path}: {e}")
                continue
            detectors.append(
                PartBasedDetector(
                    model,
                    class_id=len(detectors),
                    class_name=class_name or extract_model_name(path),
                    config=config.detector,
                    pyramid_config=config.pyramid,
                    matcher_config=config.matcher,
                )
            )
        logging.info(f"Loaded {len(detectors)} of {len(sources)} class models")
        return cls(detectors, config)

    @classmethod
    def from_config(cls, config: Config) -> "MultiClassDetector":
        return cls.from_sources([(m.path, m.class_name) for m in config.models], config)

    @property
    def class_names(self) -> List[str]:
        return [d.class_name for d in self.detectors]

    @property
    def class_count(self) -> int:
        return len(self.detectors)

    @property
    def empty(self) -> bool:
        return not self.detectors

    def detect(self, frame: np.ndarray, overlap_threshold: Optional[float] = None) -> List[Detection]:
        """Detections of every class, grouped by class in class order."""
        if overlap_threshold is None:
            overlap_threshold = self.config.detector.overlap_threshold
        overlap_threshold = validate_overlap_threshold(overlap_threshold)

        workers = self.config.detector.num_workers
        if workers > 1 and len(self.detectors) > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                per_class = list(pool.map(lambda d: d.detect(frame, overlap_threshold), self.detectors))
        else:
            per_class = [d.detect(frame, overlap_threshold) for d in self.detectors]

        detections: List[Detection] = []
        for found in per_class:
            detections.extend(found)
        return detections
