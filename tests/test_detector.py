"""
End-to-end tests for single- and multi-class part-based detection.
"""

import dataclasses
import logging

import numpy as np
import pytest
import yaml

from detection import MultiClassDetector, PartBasedDetector, clip_boxes
from loader.yaml_model import model_to_dict, save_model
from models.config import Config, DetectorConfig
from models.errors import InvalidInput


class TestClipBoxes:
    def test_clamps_into_image(self):
        boxes = np.array([[-10, -5, 20, 8], [3, 4, 200, 300]])
        clipped = clip_boxes(boxes, width=16, height=12)
        assert clipped.tolist() == [[0, 0, 15, 8], [3, 4, 15, 11]]

    def test_input_untouched(self):
        boxes = np.array([[-1, -1, 5, 5]])
        clip_boxes(boxes, 4, 4)
        assert boxes.tolist() == [[-1, -1, 5, 5]]


class TestPartBasedDetector:
    def test_detections_inside_image(self, random_model, test_image):
        detector = PartBasedDetector(random_model, class_id=0)
        raw = detector.find_candidates(test_image)
        assert any(c.top_left[0] < 0 or c.top_left[1] < 0 for c in raw)

        detections = detector.detect(test_image)
        height, width = test_image.shape[:2]
        assert detections
        assert len(detections) < len(raw)
        for det in detections:
            assert 0 <= det.x1 <= det.x2 < width
            assert 0 <= det.y1 <= det.y2 < height
            assert det.class_id == 0
            assert det.class_name == "widget"

    def test_descending_confidence(self, random_model, test_image):
        detections = PartBasedDetector(random_model).detect(test_image, overlap_threshold=0.3)
        confidences = [d.confidence for d in detections]
        assert confidences == sorted(confidences, reverse=True)

    def test_high_threshold_gives_no_detections(self, random_model, test_image):
        model = dataclasses.replace(random_model, score_threshold=1.0e9)
        assert PartBasedDetector(model).detect(test_image) == []

    def test_config_overlap_used_by_default(self, random_model, test_image):
        detector = PartBasedDetector(random_model, config=DetectorConfig(overlap_threshold=0.2))
        assert detector.detect(test_image) == detector.detect(test_image, overlap_threshold=0.2)

    @pytest.mark.parametrize("overlap", [0.0, 1.5])
    def test_invalid_overlap(self, random_model, test_image, overlap):
        with pytest.raises(InvalidInput):
            PartBasedDetector(random_model).detect(test_image, overlap_threshold=overlap)

    def test_degenerate_image(self, random_model):
        with pytest.raises(InvalidInput):
            PartBasedDetector(random_model).detect(np.zeros((0, 50, 3), dtype=np.uint8))

    @pytest.mark.parametrize("shape", [(30, 30, 3), (20, 20), (6, 6, 3)])
    def test_small_image_gives_no_detections(self, random_model, shape):
        image = np.full(shape, 100, dtype=np.uint8)
        assert PartBasedDetector(random_model).detect(image) == []

    def test_small_image_root_only_model(self, random_model):
        # Roots alone can still match on the first-octave levels
        roots = tuple(dataclasses.replace(c, parts=()) for c in random_model.components)
        model = dataclasses.replace(random_model, components=roots)
        rng = np.random.default_rng(9)
        image = rng.integers(0, 255, size=(32, 36, 3), dtype=np.uint8)
        detections = PartBasedDetector(model).detect(image)
        assert detections
        assert all(0 <= d.x1 <= d.x2 < 36 and 0 <= d.y1 <= d.y2 < 32 for d in detections)


class TestMultiClassDetector:
    @pytest.fixture
    def model_dir(self, tmp_path, random_model):
        save_model(random_model, str(tmp_path / "widget.yaml"))
        save_model(dataclasses.replace(random_model, name=""), str(tmp_path / "gadget.yml"))
        (tmp_path / "broken.yaml").write_text("components: [unclosed\n")
        document = model_to_dict(random_model)
        document["components"][0]["parts"] = 5
        (tmp_path / "scalar_parts.yaml").write_text(yaml.safe_dump(document))
        return tmp_path

    def test_skips_unloadable_models(self, model_dir, caplog):
        sources = [
            str(model_dir / "missing.yaml"),
            str(model_dir / "widget.yaml"),
            str(model_dir / "broken.yaml"),
            (str(model_dir / "gadget.yml"), "gizmo"),
        ]
        with caplog.at_level(logging.WARNING):
            detector = MultiClassDetector.from_sources(sources)

        assert detector.class_count == 2
        assert detector.class_names == ["widget", "gizmo"]
        assert [d.class_id for d in detector.detectors] == [0, 1]
        assert "missing.yaml" in caplog.text
        assert "broken.yaml" in caplog.text

    def test_skips_model_with_malformed_parts(self, model_dir, caplog):
        sources = [str(model_dir / "scalar_parts.yaml"), str(model_dir / "widget.yaml")]
        with caplog.at_level(logging.WARNING):
            detector = MultiClassDetector.from_sources(sources)

        assert detector.class_names == ["widget"]
        assert detector.detectors[0].class_id == 0
        assert "scalar_parts.yaml" in caplog.text

    def test_only_malformed_models_gives_empty_detector(self, model_dir, test_image):
        detector = MultiClassDetector.from_sources([str(model_dir / "scalar_parts.yaml")])
        assert detector.empty
        assert detector.detect(test_image) == []

    def test_class_name_defaults_to_file_name(self, model_dir):
        detector = MultiClassDetector.from_sources([str(model_dir / "gadget.yml")])
        assert detector.class_names == ["gadget"]

    def test_detect_groups_by_class(self, model_dir, test_image):
        detector = MultiClassDetector.from_sources(
            [str(model_dir / "widget.yaml"), str(model_dir / "gadget.yml")]
        )
        detections = detector.detect(test_image)
        ids = [d.class_id for d in detections]
        assert set(ids) == {0, 1}
        assert ids == sorted(ids)
        # Same weights, independent classes: nothing is suppressed across classes
        assert ids.count(0) == ids.count(1)

    def test_parallel_matches_serial(self, model_dir, test_image):
        sources = [str(model_dir / "widget.yaml"), str(model_dir / "gadget.yml")]
        serial = MultiClassDetector.from_sources(sources).detect(test_image)
        config = Config.from_dict({"detector": {"num_workers": 2}})
        parallel = MultiClassDetector.from_sources(sources, config).detect(test_image)
        assert serial == parallel

    def test_from_config(self, model_dir):
        config = Config.from_dict({"models": [{"path": str(model_dir / "widget.yaml"), "class_name": "w"}]})
        detector = MultiClassDetector.from_config(config)
        assert detector.class_names == ["w"]

    def test_empty(self, test_image):
        detector = MultiClassDetector.from_sources([])
        assert detector.empty
        assert detector.detect(test_image) == []

    def test_invalid_overlap(self, model_dir, test_image):
        detector = MultiClassDetector.from_sources([str(model_dir / "widget.yaml")])
        with pytest.raises(InvalidInput):
            detector.detect(test_image, overlap_threshold=2.0)
