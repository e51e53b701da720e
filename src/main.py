"""
Part-based object detection on a single image.

Loads the class models listed in the configuration, runs detection on an
image and prints the detections.

Usage:
    python src/main.py --config config/config.yaml --image photo.jpg --output annotated.jpg

Arguments:
    --config: Path to configuration file
    --image: Image to run detection on
    --overlap: Non-maximum suppression overlap threshold (overrides config)
    --output: Write an annotated copy of the image here
"""

import os
import sys
import argparse
import logging
import yaml
import cv2
from typing import Dict, Any, List, Tuple, Optional

from detection.multi_class import MultiClassDetector
from models.config import Config
from models.detection import Detection
from models.errors import InvalidInput
from ops.logging import setup_logging


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['pyramid', 'matcher', 'detector', 'models', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    pyramid = config.get('pyramid') or {}
    if 'cell_size' in pyramid:
        cell = pyramid['cell_size']
        if not _is_positive_int(cell) or cell < 2 or cell % 2:
            return False, "pyramid.cell_size must be an even integer >= 2"
    if 'levels_per_octave' in pyramid and not _is_positive_int(pyramid['levels_per_octave']):
        return False, "pyramid.levels_per_octave must be a positive integer"
    if 'min_cells' in pyramid:
        if not _is_positive_int(pyramid['min_cells']) or pyramid['min_cells'] < 4:
            return False, "pyramid.min_cells must be an integer >= 4"
    if 'truncation' in pyramid:
        alpha = pyramid['truncation']
        if not isinstance(alpha, (int, float)) or alpha <= 0:
            return False, "pyramid.truncation must be a positive number"

    matcher = config.get('matcher') or {}
    if 'max_displacement' in matcher:
        disp = matcher['max_displacement']
        if not isinstance(disp, int) or isinstance(disp, bool) or disp < 0:
            return False, "matcher.max_displacement must be a non-negative integer"
    if 'prefilter_slack' in matcher and not isinstance(matcher['prefilter_slack'], (int, float)):
        return False, "matcher.prefilter_slack must be a number"
    if 'num_workers' in matcher and not _is_positive_int(matcher['num_workers']):
        return False, "matcher.num_workers must be a positive integer"

    detector = config.get('detector') or {}
    if 'overlap_threshold' in detector:
        overlap = detector['overlap_threshold']
        if not isinstance(overlap, (int, float)) or not (0 < overlap <= 1):
            return False, "detector.overlap_threshold must be in (0, 1]"
    if 'num_workers' in detector and not _is_positive_int(detector['num_workers']):
        return False, "detector.num_workers must be a positive integer"

    models = config.get('models')
    if not isinstance(models, list):
        return False, "models must be a list of {path, class_name} entries"
    for i, entry in enumerate(models):
        if not isinstance(entry, dict) or not isinstance(entry.get('path'), str) or not entry.get('path'):
            return False, f"models[{i}].path must be a non-empty string"
        if entry.get('class_name') is not None and not isinstance(entry['class_name'], str):
            return False, f"models[{i}].class_name must be a string"

    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def draw_detections(image, detections: List[Detection]):
    """Return a copy of `image` with boxes and labels drawn."""
    annotated = image.copy()
    for det in detections:
        cv2.rectangle(annotated, (det.x1, det.y1), (det.x2, det.y2), (0, 255, 0), 2)
        label = f"{det.class_name} {det.confidence:.2f}"
        cv2.putText(annotated, label, (det.x1, max(det.y1 - 5, 10)),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 255, 0), 1)
    return annotated


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Part-based object detector')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--image', type=str, required=True,
                        help='Image to run detection on')
    parser.add_argument('--overlap', type=float, default=None,
                        help='Suppression overlap threshold in (0, 1]')
    parser.add_argument('--output', type=str, default=None,
                        help='Write annotated image to this path')
    args = parser.parse_args()

    raw_config = load_config(args.config)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(raw_config['log_path'], raw_config['log_level'])
    config = Config.from_dict(raw_config)

    detector = MultiClassDetector.from_config(config)
    if detector.empty:
        logging.error("No class models could be loaded")
        sys.exit(1)

    image = cv2.imread(args.image, cv2.IMREAD_COLOR)
    if image is None:
        logging.error(f"Cannot read image: {args.image}")
        sys.exit(1)

    try:
        detections = detector.detect(image, args.overlap)
    except InvalidInput as e:
        logging.error(f"Detection failed: {e}")
        sys.exit(1)

    logging.info(f"{len(detections)} detections in {args.image}")
    for det in detections:
        x, y, w, h = det.bbox.as_rect()
        print(f"{det.class_name}\t{det.confidence:.4f}\t{x}\t{y}\t{w}\t{h}")

    if args.output:
        cv2.imwrite(args.output, draw_detections(image, detections))
        logging.info(f"Annotated image written to {args.output}")


if __name__ == "__main__":
    main()
