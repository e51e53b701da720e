"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.part_model import Anchor, Component, Filter, Model  # noqa: E402

NUM_FEATURES = 32
COMPRESSED_DIM = 6


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
pyramid:
  cell_size: 8
  levels_per_octave: 10
  min_cells: 5

matcher:
  max_displacement: 4

detector:
  overlap_threshold: 0.5

models: []

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "pyramid": {
            "cell_size": 8,
            "levels_per_octave": 10,
            "min_cells": 5,
            "truncation": 0.2,
        },
        "matcher": {
            "max_displacement": 4,
            "prefilter_slack": 0.0,
            "num_workers": 1,
        },
        "detector": {
            "overlap_threshold": 0.5,
            "num_workers": 1,
        },
        "models": [
            {"path": "models/person.yaml", "class_name": "person"},
        ],
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def projection():
    """Keeps the first COMPRESSED_DIM features."""
    return np.eye(NUM_FEATURES, COMPRESSED_DIM, dtype=np.float32)


@pytest.fixture
def random_model(projection):
    """Two-component model with one part per component and random weights."""
    rng = np.random.default_rng(7)

    def component(root_w, root_h):
        root = Filter(weights=rng.normal(0, 0.1, (root_h, root_w, NUM_FEATURES)))
        part = Filter(
            weights=rng.normal(0, 0.1, (3, 3, NUM_FEATURES)),
            deformation=(0.0, 0.1, 0.0, 0.1),
            anchor=Anchor(x=1, y=1, level_offset=10),
        )
        return Component(root=root, parts=(part,))

    return Model(
        components=(component(4, 6), component(6, 4)),
        biases=(-0.5, -0.25),
        score_threshold=-1.0e6,
        pca_projection=projection,
        name="widget",
    )


@pytest.fixture
def test_image():
    """Textured 3-channel image with a bright rectangle."""
    rng = np.random.default_rng(3)
    image = rng.integers(0, 60, size=(96, 112, 3), dtype=np.uint8)
    image[30:70, 40:80] = 220
    return image
