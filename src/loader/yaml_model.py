"""
YAML model files.

Format:

    name: person
    num_features: 32
    score_threshold: -0.5
    pca_projection: [[...], ...]          # num_features rows
    components:
      - bias: -1.2
        root:
          size_x: 6
          size_y: 10
          weights: [...]                  # size_y * size_x * num_features, (row, col, feature)
          prefilter_threshold: -2.0       # optional
        parts:
          - size_x: 4
            size_y: 4
            weights: [...]
            deformation: [c0, c1, c2, c3]
            anchor: [x, y, level_offset]

Every contract violation is reported as LoadFailure at load time so the
matcher never sees a malformed model.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from models.errors import LoadFailure
from models.part_model import Anchor, Component, Filter, Model

DEFAULT_NUM_FEATURES = 32
MODEL_EXTENSIONS = (".yaml", ".yml")


def extract_model_name(path: str) -> str:
    """Class name from a model path: file name without directory or extension."""
    return Path(path).stem


def _finite(value: Any, what: str, source: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise LoadFailure(f"{what} must be a number, got {value!r}", source) from e
    if not math.isfinite(number):
        raise LoadFailure(f"{what} must be finite, got {number}", source)
    return number


def _parse_filter(d: Dict[str, Any], num_features: int, what: str, source: str, is_part: bool) -> Filter:
    if not isinstance(d, dict):
        raise LoadFailure(f"{what} must be a mapping", source)
    try:
        size_x = int(d["size_x"])
        size_y = int(d["size_y"])
        weights = d["weights"]
    except KeyError as e:
        raise LoadFailure(f"{what} is missing {e.args[0]}", source) from e
    except (TypeError, ValueError) as e:
        raise LoadFailure(f"{what} has invalid size: {e}", source) from e
    if size_x <= 0 or size_y <= 0:
        raise LoadFailure(f"{what} size must be positive, got {size_x}x{size_y}", source)

    try:
        flat = np.asarray(weights, dtype=np.float32).ravel()
    except (TypeError, ValueError) as e:
        raise LoadFailure(f"{what} weights are not numeric", source) from e
    if flat.size != size_x * size_y * num_features:
        raise LoadFailure(
            f"{what} has {flat.size} weights, expected {size_x}x{size_y}x{num_features}",
            source,
        )
    if not np.all(np.isfinite(flat)):
        raise LoadFailure(f"{what} weights must be finite", source)

    prefilter = d.get("prefilter_threshold")
    if prefilter is not None:
        prefilter = _finite(prefilter, f"{what} prefilter_threshold", source)

    deformation = (0.0, 0.0, 0.0, 0.0)
    anchor = Anchor()
    if is_part:
        raw_def = d.get("deformation")
        if not isinstance(raw_def, (list, tuple)) or len(raw_def) != 4:
            raise LoadFailure(f"{what} deformation must be a list of 4 numbers", source)
        deformation = tuple(_finite(c, f"{what} deformation", source) for c in raw_def)

        raw_anchor = d.get("anchor")
        if not isinstance(raw_anchor, (list, tuple)) or len(raw_anchor) != 3:
            raise LoadFailure(f"{what} anchor must be [x, y, level_offset]", source)
        try:
            anchor = Anchor(x=int(raw_anchor[0]), y=int(raw_anchor[1]), level_offset=int(raw_anchor[2]))
        except (TypeError, ValueError) as e:
            raise LoadFailure(f"{what} anchor must hold integers", source) from e
        if anchor.level_offset <= 0:
            raise LoadFailure(
                f"{what} must sit on a finer level than its root (level_offset > 0), "
                f"got {anchor.level_offset}",
                source,
            )

    return Filter.from_flat(
        size_x,
        size_y,
        num_features,
        flat,
        deformation=deformation,
        anchor=anchor,
        prefilter_threshold=prefilter,
    )


def model_from_dict(d: Dict[str, Any], source: str = "", name: Optional[str] = None) -> Model:
    """
    Build a validated Model from a parsed document.

    Raises:
        LoadFailure: If any field violates the model contract.
    """
    if not isinstance(d, dict):
        raise LoadFailure("model document must be a mapping", source)

    num_features = d.get("num_features", DEFAULT_NUM_FEATURES)
    if not isinstance(num_features, int) or isinstance(num_features, bool) or num_features <= 0:
        raise LoadFailure(f"num_features must be a positive integer, got {num_features!r}", source)

    if "score_threshold" not in d:
        raise LoadFailure("missing score_threshold", source)
    score_threshold = _finite(d["score_threshold"], "score_threshold", source)

    if "pca_projection" not in d:
        raise LoadFailure("missing pca_projection", source)
    try:
        projection = np.asarray(d["pca_projection"], dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise LoadFailure("pca_projection is not a numeric matrix", source) from e
    if projection.ndim != 2 or projection.shape[0] != num_features or projection.shape[1] == 0:
        raise LoadFailure(
            f"pca_projection must be {num_features} x k, got shape {projection.shape}",
            source,
        )
    if not np.all(np.isfinite(projection)):
        raise LoadFailure("pca_projection must be finite", source)

    raw_components = d.get("components")
    if not isinstance(raw_components, list) or not raw_components:
        raise LoadFailure("model needs at least one component", source)

    components: List[Component] = []
    biases: List[float] = []
    for c, raw in enumerate(raw_components):
        if not isinstance(raw, dict):
            raise LoadFailure(f"component {c} must be a mapping", source)
        if "root" not in raw:
            raise LoadFailure(f"component {c} is missing its root filter", source)
        raw_parts = raw.get("parts") or []
        if not isinstance(raw_parts, list):
            raise LoadFailure(f"component {c} parts must be a list", source)
        biases.append(_finite(raw.get("bias", 0.0), f"component {c} bias", source))
        root = _parse_filter(raw["root"], num_features, f"component {c} root", source, is_part=False)
        parts = [
            _parse_filter(p, num_features, f"component {c} part {i}", source, is_part=True)
            for i, p in enumerate(raw_parts)
        ]
        components.append(Component(root=root, parts=tuple(parts)))

    return Model(
        components=tuple(components),
        biases=tuple(biases),
        score_threshold=score_threshold,
        pca_projection=projection,
        name=name if name is not None else str(d.get("name") or ""),
    )


def load_model(path: str) -> Model:
    """
    Load a model from a YAML file.

    Raises:
        LoadFailure: Missing or unreadable file, YAML errors, or contract violations.
    """
    path = str(path)
    if not path.lower().endswith(MODEL_EXTENSIONS):
        raise LoadFailure(f"unsupported model file type (expected {', '.join(MODEL_EXTENSIONS)})", path)
    if not os.path.exists(path):
        raise LoadFailure("model file not found", path)
    try:
        with open(path, "r") as f:
            document = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise LoadFailure(f"cannot read model: {e}", path) from e

    model = model_from_dict(document, source=path)
    if not model.name:
        model = dataclasses.replace(model, name=extract_model_name(path))
    logging.info(
        f"Loaded model '{model.name}' from {path}: {model.num_components} components, "
        f"{model.num_features} features, projection to {model.compressed_dim}"
    )
    return model


def model_to_dict(model: Model) -> Dict[str, Any]:
    """Serialize a Model into the YAML document structure."""
    def filter_dict(f: Filter, is_part: bool) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "size_x": f.size_x,
            "size_y": f.size_y,
            "weights": [float(w) for w in f.weights.ravel()],
        }
        if f.prefilter_threshold is not None:
            d["prefilter_threshold"] = float(f.prefilter_threshold)
        if is_part:
            d["deformation"] = [float(c) for c in f.deformation]
            d["anchor"] = [f.anchor.x, f.anchor.y, f.anchor.level_offset]
        return d

    return {
        "name": model.name,
        "num_features": model.num_features,
        "score_threshold": float(model.score_threshold),
        "pca_projection": model.pca_projection.astype(float).tolist(),
        "components": [
            {
                "bias": float(bias),
                "root": filter_dict(component.root, is_part=False),
                "parts": [filter_dict(p, is_part=True) for p in component.parts],
            }
            for component, bias in zip(model.components, model.biases)
        ],
    }


def save_model(model: Model, path: str) -> None:
    """Write a Model as YAML."""
    directory = os.path.dirname(str(path))
    if directory and not os.path.exists(directory):
        os.makedirs(directory)
    with open(path, "w") as f:
        yaml.safe_dump(model_to_dict(model), f, default_flow_style=None, sort_keys=False)
