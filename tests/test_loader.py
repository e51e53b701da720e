"""
Tests for YAML model files.
"""

import math

import numpy as np
import pytest
import yaml

from loader.yaml_model import extract_model_name, load_model, model_from_dict, model_to_dict, save_model
from models.errors import LoadFailure


@pytest.fixture
def model_dict(random_model):
    return model_to_dict(random_model)


class TestRoundTrip:
    def test_save_and_load(self, tmp_path, random_model):
        path = tmp_path / "models" / "widget.yaml"
        save_model(random_model, str(path))

        loaded = load_model(str(path))

        assert loaded.name == "widget"
        assert loaded.num_components == 2
        assert loaded.biases == random_model.biases
        assert loaded.score_threshold == random_model.score_threshold
        np.testing.assert_array_equal(loaded.pca_projection, random_model.pca_projection)
        for got, want in zip(loaded.components, random_model.components):
            np.testing.assert_allclose(got.root.weights, want.root.weights, rtol=1e-6)
            assert got.parts[0].anchor == want.parts[0].anchor
            assert got.parts[0].deformation == pytest.approx(want.parts[0].deformation)

    def test_name_defaults_to_file_stem(self, tmp_path, model_dict):
        del model_dict["name"]
        model = model_from_dict(model_dict)
        path = tmp_path / "bicycle.yml"
        save_model(model, str(path))

        assert load_model(str(path)).name == "bicycle"

    def test_prefilter_threshold_kept(self, model_dict):
        model_dict["components"][0]["root"]["prefilter_threshold"] = -0.75
        model = model_from_dict(model_dict)
        assert model.components[0].root.prefilter_threshold == -0.75
        assert model.components[1].root.prefilter_threshold is None

    def test_extract_model_name(self):
        assert extract_model_name("/data/models/person.yaml") == "person"
        assert extract_model_name("car.yml") == "car"


class TestLoadFailures:
    def test_wrong_extension(self, tmp_path):
        path = tmp_path / "person.xml"
        path.write_text("<model/>")
        with pytest.raises(LoadFailure):
            load_model(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(LoadFailure) as exc_info:
            load_model(str(tmp_path / "absent.yaml"))
        assert exc_info.value.source.endswith("absent.yaml")

    def test_corrupt_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("components: [unclosed\n")
        with pytest.raises(LoadFailure):
            load_model(str(path))

    def test_not_a_mapping(self):
        with pytest.raises(LoadFailure):
            model_from_dict([1, 2, 3])

    @pytest.mark.parametrize("field", ["score_threshold", "pca_projection", "components"])
    def test_missing_field(self, model_dict, field):
        del model_dict[field]
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)

    def test_non_finite_threshold(self, model_dict):
        model_dict["score_threshold"] = math.nan
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)

    def test_projection_rows_must_match_features(self, model_dict):
        model_dict["pca_projection"] = model_dict["pca_projection"][:-1]
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)

    def test_no_components(self, model_dict):
        model_dict["components"] = []
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)

    def test_weight_count(self, model_dict):
        model_dict["components"][1]["root"]["weights"].pop()
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)

    def test_part_on_root_level(self, model_dict):
        model_dict["components"][0]["parts"][0]["anchor"] = [1, 1, 0]
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)

    def test_part_needs_deformation(self, model_dict):
        del model_dict["components"][0]["parts"][0]["deformation"]
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)

    def test_non_finite_weights(self, model_dict):
        model_dict["components"][0]["parts"][0]["weights"][3] = math.inf
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)

    @pytest.mark.parametrize("parts", [5, "part", {"size_x": 1}])
    def test_parts_must_be_list(self, model_dict, parts):
        model_dict["components"][0]["parts"] = parts
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)

    def test_scalar_parts_in_file(self, tmp_path, model_dict):
        model_dict["components"][1]["parts"] = 5
        path = tmp_path / "scalar_parts.yaml"
        path.write_text(yaml.safe_dump(model_dict))
        with pytest.raises(LoadFailure):
            load_model(str(path))

    def test_boolean_feature_count(self, model_dict):
        model_dict["num_features"] = True
        with pytest.raises(LoadFailure):
            model_from_dict(model_dict)


class TestModelName:
    def test_null_name_is_empty(self, model_dict):
        model_dict["name"] = None
        assert model_from_dict(model_dict).name == ""

    def test_null_name_falls_back_to_file_stem(self, tmp_path, model_dict):
        model_dict["name"] = None
        path = tmp_path / "pedestrian.yaml"
        path.write_text(yaml.safe_dump(model_dict))
        assert load_model(str(path)).name == "pedestrian"

    def test_explicit_name_argument_wins(self, model_dict):
        assert model_from_dict(model_dict, name="override").name == "override"
