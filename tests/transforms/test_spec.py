"""Tests for transform specs (render JSON form)."""

import pytest

pytestmark = pytest.mark.unit

from pydantic import TypeAdapter

from stackalign.contracts import MalformedTransformError, UnsupportedTransformError
from stackalign.transforms.models import AffineModel2D, TranslationModel2D
from stackalign.transforms.spec import (
    LeafTransformSpec,
    ListTransformSpec,
    ReferenceTransformSpec,
    TransformSpec,
    flatten_leaf_specs,
    shared_spec_index,
    to_coordinate_transform,
)

AFFINE = "mpicbg.trakem2.transform.AffineModel2D"
TRANSLATION = "mpicbg.trakem2.transform.TranslationModel2D"

spec_adapter = TypeAdapter(TransformSpec)


class TestLeafTransformSpec:

    def test_from_model_uses_class_name_and_data_string(self):
        """from_model copies the class name and data string."""
        spec = LeafTransformSpec.from_model(TranslationModel2D(1.5, -2.0))
        assert spec.class_name == TRANSLATION
        assert spec.data_string == "1.5 -2.0"

    def test_to_model(self):
        """to_model instantiates the named class."""
        spec = LeafTransformSpec(className=AFFINE, dataString="1 0 0 1 10 20")
        model = spec.to_model()
        assert isinstance(model, AffineModel2D)
        assert model.apply_point(0.0, 0.0) == (10.0, 20.0)

    def test_malformed_data_string_raises(self):
        """A malformed data string raises MalformedTransformError."""
        spec = LeafTransformSpec(className=AFFINE, dataString="1 0 0")
        with pytest.raises(MalformedTransformError, match="invalid data string '1 0 0'"):
            spec.to_model()

    def test_json_uses_render_field_names(self):
        """JSON output uses render's camelCase field names."""
        spec = LeafTransformSpec(className=AFFINE, dataString="1 0 0 1 0 0")
        assert spec.to_json_dict() == {
            "type": "leaf", "className": AFFINE, "dataString": "1 0 0 1 0 0",
        }

    def test_unknown_fields_are_preserved(self):
        """Unknown spec fields are preserved."""
        spec = spec_adapter.validate_python({
            "type": "leaf", "className": AFFINE, "dataString": "1 0 0 1 0 0",
            "metaData": {"labels": ["regular"]},
        })
        assert spec.to_json_dict()["metaData"] == {"labels": ["regular"]}


class TestTaggedUnion:
    """The ``type`` field selects the spec variant."""

    def test_nested_list_parses(self):
        """Nested lists parse into ListTransformSpec."""
        spec = spec_adapter.validate_python({
            "type": "list",
            "specList": [
                {"type": "leaf", "className": TRANSLATION, "dataString": "1 2"},
                {"type": "list", "specList": [
                    {"type": "ref", "refId": "lens"},
                ]},
            ],
        })
        assert isinstance(spec, ListTransformSpec)
        assert isinstance(spec.spec_list[1], ListTransformSpec)
        assert isinstance(spec.spec_list[1].spec_list[0], ReferenceTransformSpec)

    def test_unknown_type_is_rejected(self):
        """An unknown type tag fails validation."""
        with pytest.raises(ValueError):
            spec_adapter.validate_python({"type": "interpolated", "a": {}, "b": {}})


class TestFlatten:
    """Leaf flattening and reference resolution."""

    def test_depth_first_left_to_right(self):
        """Leaves are listed depth first, left to right."""
        a = LeafTransformSpec(className=TRANSLATION, dataString="1 0")
        b = LeafTransformSpec(className=TRANSLATION, dataString="2 0")
        c = LeafTransformSpec(className=TRANSLATION, dataString="3 0")
        nested = [a, ListTransformSpec(specList=[b, ListTransformSpec(specList=[c])])]
        assert [leaf.data_string for leaf in flatten_leaf_specs(nested)] == ["1 0", "2 0", "3 0"]

    def test_ref_resolves_against_shared_specs(self):
        """References resolve against the shared specs."""
        shared = [LeafTransformSpec(id="lens", className=TRANSLATION, dataString="5 5")]
        specs = [ReferenceTransformSpec(refId="lens"),
                 LeafTransformSpec(className=TRANSLATION, dataString="1 1")]
        transform = to_coordinate_transform(specs, shared_spec_index(shared))
        assert transform.apply_point(0.0, 0.0) == (6.0, 6.0)

    def test_unresolvable_ref_raises(self):
        """An unknown reference raises UnsupportedTransformError."""
        with pytest.raises(UnsupportedTransformError, match="cannot resolve transform reference 'lens'"):
            flatten_leaf_specs([ReferenceTransformSpec(refId="lens")], {})

    def test_circular_ref_raises(self):
        """Circular references are detected."""
        shared = shared_spec_index([
            ListTransformSpec(id="a", specList=[ReferenceTransformSpec(refId="b")]),
            ListTransformSpec(id="b", specList=[ReferenceTransformSpec(refId="a")]),
        ])
        with pytest.raises(UnsupportedTransformError, match="circular"):
            flatten_leaf_specs([ReferenceTransformSpec(refId="a")], shared)

    def test_shared_index_ignores_specs_without_id(self):
        """Specs without an id are not indexed."""
        index = shared_spec_index([
            LeafTransformSpec(className=TRANSLATION, dataString="1 1"),
            LeafTransformSpec(id="x", className=TRANSLATION, dataString="2 2"),
        ])
        assert list(index) == ["x"]
