"""
Smoke tests for typed models and adapters.
"""

import numpy as np
import pytest

from models.feature import FeatureMap, FeaturePyramid
from models.part_model import Anchor, Component, Filter, Model
from models.detection import (
    BoundingBox,
    Candidate,
    Detection,
    candidates_to_numpy,
    detections_to_numpy,
)
from models.config import Config, MatcherConfig


class TestFeatureMap:
    def test_dimensions(self):
        fm = FeatureMap.zeros(size_x=5, size_y=3, num_features=4)
        assert fm.size_x == 5
        assert fm.size_y == 3
        assert fm.num_features == 4
        assert fm.cells.dtype == np.float32
        assert fm.cells.size == 5 * 3 * 4

    def test_from_flat_indexing(self):
        data = np.arange(2 * 3 * 4)
        fm = FeatureMap.from_flat(size_x=3, size_y=2, num_features=4, data=data)
        # (row, col, feature) ordering
        assert fm.cells[1, 2, 3] == (1 * 3 + 2) * 4 + 3

    def test_from_flat_length_mismatch(self):
        with pytest.raises(ValueError):
            FeatureMap.from_flat(size_x=3, size_y=2, num_features=4, data=np.zeros(23))

    def test_rejects_non_3d(self):
        with pytest.raises(ValueError):
            FeatureMap(cells=np.zeros((4, 4)))

    def test_padded(self):
        fm = FeatureMap(cells=np.ones((2, 3, 1)))
        padded = fm.padded(border_x=2, border_y=1)
        assert padded.size_x == 7
        assert padded.size_y == 4
        assert padded.cells.sum() == 6
        assert padded.cells[0].sum() == 0

    def test_project(self):
        fm = FeatureMap(cells=np.arange(12, dtype=np.float32).reshape(2, 2, 3))
        projected = fm.project(np.eye(3, 2))
        assert projected.num_features == 2
        np.testing.assert_array_equal(projected.cells, fm.cells[..., :2])


class TestFeaturePyramid:
    def test_requires_levels(self):
        with pytest.raises(ValueError):
            FeaturePyramid(levels=[], scales=[])

    def test_scales_must_match(self):
        with pytest.raises(ValueError):
            FeaturePyramid(levels=[FeatureMap.zeros(2, 2, 1)], scales=[1.0, 2.0])

    def test_feature_counts_must_agree(self):
        with pytest.raises(ValueError):
            FeaturePyramid(
                levels=[FeatureMap.zeros(4, 4, 2), FeatureMap.zeros(2, 2, 3)],
                scales=[4.0, 8.0],
            )

    def test_level_factor(self):
        pyr = FeaturePyramid(levels=[FeatureMap.zeros(2, 2, 1)], scales=[8.0], levels_per_octave=10)
        assert pyr.level_factor(10) == pytest.approx(2.0)
        assert pyr.level_factor(5) == pytest.approx(2 ** 0.5)


class TestPartModel:
    def test_filter_weights_read_only(self):
        f = Filter(weights=np.ones((2, 3, 4)))
        assert f.size_x == 3 and f.size_y == 2 and f.num_features == 4
        with pytest.raises(ValueError):
            f.weights[0, 0, 0] = 5.0

    def test_filter_from_flat_mismatch(self):
        with pytest.raises(ValueError):
            Filter.from_flat(2, 2, 4, np.zeros(15))

    def test_deformation_needs_four(self):
        with pytest.raises(ValueError):
            Filter(weights=np.ones((1, 1, 1)), deformation=(1.0, 2.0))

    def test_model_bias_count(self):
        comp = Component(root=Filter(weights=np.ones((1, 1, 2))))
        with pytest.raises(ValueError):
            Model(components=(comp,), biases=(0.0, 1.0), score_threshold=0.0, pca_projection=np.eye(2))

    def test_max_filter_size_scans_parts(self):
        root = Filter(weights=np.ones((4, 3, 2)))
        wide_part = Filter(weights=np.ones((2, 7, 2)), anchor=Anchor(0, 0, 10))
        tall_root = Filter(weights=np.ones((9, 2, 2)))
        model = Model(
            components=(Component(root=root, parts=(wide_part,)), Component(root=tall_root)),
            biases=(0.0, 0.0),
            score_threshold=0.0,
            pca_projection=np.eye(2, 1),
        )
        assert model.max_filter_size() == (7, 9)
        assert model.num_features == 2
        assert model.compressed_dim == 1

    def test_component_level_offset(self):
        part_a = Filter(weights=np.ones((1, 1, 1)), anchor=Anchor(0, 0, 5))
        part_b = Filter(weights=np.ones((1, 1, 1)), anchor=Anchor(0, 0, 10))
        comp = Component(root=Filter(weights=np.ones((1, 1, 1))), parts=[part_a, part_b])
        assert comp.max_level_offset == 10
        assert isinstance(comp.parts, tuple)


class TestBoundingBox:
    def test_inclusive_properties(self):
        bbox = BoundingBox(x1=10, y1=20, x2=19, y2=24)
        assert bbox.width == 10
        assert bbox.height == 5
        assert bbox.area == 50
        assert bbox.as_rect() == (10, 20, 10, 5)

    def test_from_tuple(self):
        assert BoundingBox.from_tuple((1, 2, 3, 4)).as_tuple() == (1, 2, 3, 4)


class TestDetection:
    def test_from_candidate(self):
        cand = Candidate(top_left=(5, 6), bottom_right=(15, 26), score=1.5, component=1, level=3)
        det = Detection.from_candidate(cand, class_id=2, class_name="cat")
        assert det.x1 == 5 and det.y2 == 26
        assert det.confidence == 1.5
        assert det.class_id == 2
        assert det.class_name == "cat"

    def test_candidates_to_numpy(self):
        cands = [
            Candidate(top_left=(0, 0), bottom_right=(9, 9), score=1.0),
            Candidate(top_left=(5, 5), bottom_right=(20, 20), score=0.5),
        ]
        boxes, scores = candidates_to_numpy(cands)
        assert boxes.shape == (2, 4)
        assert boxes[1].tolist() == [5, 5, 20, 20]
        assert scores.dtype == np.float32

    def test_empty_conversions(self):
        boxes, scores = candidates_to_numpy([])
        assert boxes.shape == (0, 4)
        assert scores.shape == (0,)
        assert detections_to_numpy([]).shape == (0, 6)


class TestConfig:
    def test_from_dict_defaults(self):
        config = Config.from_dict({})
        assert config.pyramid.cell_size == 8
        assert config.pyramid.levels_per_octave == 10
        assert config.matcher.max_displacement == 4
        assert config.detector.overlap_threshold == 0.5
        assert config.models == []

    def test_roundtrip(self, valid_config):
        config = Config.from_dict(valid_config)
        assert config.models[0].class_name == "person"
        again = Config.from_dict(config.to_dict())
        assert again.to_dict() == config.to_dict()

    def test_matcher_config(self):
        cfg = MatcherConfig.from_dict({"max_displacement": 2, "num_workers": 3})
        assert cfg.max_displacement == 2
        assert cfg.num_workers == 3
        assert cfg.prefilter_slack == 0.0
