"""
Part-based object detection.

This module wires pyramids, matching and suppression into detectors.
"""

from .base import Detector
from .nms import NonMaxSuppressor, suppress, overlap_ratio
from .part_detector import PartBasedDetector, clip_boxes, clip_candidates
from .multi_class import MultiClassDetector

__all__ = [
    'Detector',
    'NonMaxSuppressor',
    'suppress',
    'overlap_ratio',
    'PartBasedDetector',
    'clip_boxes',
    'clip_candidates',
    'MultiClassDetector',
]
