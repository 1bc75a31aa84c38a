"""Serializable transform specifications.

A transform spec is the JSON form of a transform as stored by the render web
service. It is a tagged union on ``type``:

- ``leaf``: a single model (``className`` + ``dataString``)
- ``list``: an ordered list of nested specs (``specList``)
- ``ref``: a pointer (``refId``) to a spec shared by a whole collection

Specs are inert data; :meth:`LeafTransformSpec.to_model` and
:func:`to_coordinate_transform` turn them into applicable models.
"""

from typing import Annotated, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from stackalign.contracts.failure import (
    MalformedTransformError,
    UnsupportedTransformError,
)
from stackalign.transforms.models import (
    CoordinateTransform,
    CoordinateTransformList,
    model_for_class_name,
)

__all__ = [
    'LeafTransformSpec',
    'ListTransformSpec',
    'ReferenceTransformSpec',
    'TransformSpec',
    'to_coordinate_transform',
    'flatten_leaf_specs',
    'shared_spec_index',
]


class _SpecModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra='allow',  # keep server-side fields we do not interpret
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class LeafTransformSpec(_SpecModel):
    """A single concrete transform."""

    type: Literal["leaf"] = "leaf"
    id: Optional[str] = None
    class_name: str = Field(alias="className")
    data_string: str = Field(alias="dataString")

    @classmethod
    def from_model(cls, model: CoordinateTransform) -> "LeafTransformSpec":
        return cls(className=model.CLASS_NAME, dataString=model.to_data_string())

    def to_model(self) -> CoordinateTransform:
        """Instantiate the model named by ``class_name``.

        Raises
        ------
        UnsupportedTransformError
            If the class name is unknown.
        MalformedTransformError
            If the data string cannot be parsed by the model.
        """
        model_class = model_for_class_name(self.class_name)
        try:
            return model_class.from_data_string(self.data_string)
        except ValueError as exc:
            raise MalformedTransformError(
                f"invalid data string '{self.data_string}' for {self.class_name}"
            ) from exc


class ReferenceTransformSpec(_SpecModel):
    """Pointer to a transform spec shared by a collection."""

    type: Literal["ref"] = "ref"
    ref_id: str = Field(alias="refId")


class ListTransformSpec(_SpecModel):
    """Ordered list of transform specs, applied first to last."""

    type: Literal["list"] = "list"
    id: Optional[str] = None
    spec_list: List["TransformSpec"] = Field(default_factory=list, alias="specList")


TransformSpec = Annotated[
    Union[LeafTransformSpec, ListTransformSpec, ReferenceTransformSpec],
    Field(discriminator="type"),
]

ListTransformSpec.model_rebuild()


def _resolve_ref(spec: ReferenceTransformSpec,
                 shared_specs: Optional[Mapping[str, "TransformSpec"]]):
    if not shared_specs or spec.ref_id not in shared_specs:
        raise UnsupportedTransformError(f"cannot resolve transform reference '{spec.ref_id}'")
    return shared_specs[spec.ref_id]


def flatten_leaf_specs(specs, shared_specs: Optional[Mapping[str, "TransformSpec"]] = None,
                       _seen: Optional[set] = None) -> List[LeafTransformSpec]:
    """Depth-first, left-to-right list of the leaves under ``specs``."""
    seen = _seen if _seen is not None else set()
    leaves = []
    for spec in specs:
        if isinstance(spec, LeafTransformSpec):
            leaves.append(spec)
        elif isinstance(spec, ListTransformSpec):
            leaves.extend(flatten_leaf_specs(spec.spec_list, shared_specs, seen))
        else:
            if spec.ref_id in seen:
                raise UnsupportedTransformError(f"circular transform reference '{spec.ref_id}'")
            target = _resolve_ref(spec, shared_specs)
            leaves.extend(flatten_leaf_specs([target], shared_specs, seen | {spec.ref_id}))
    return leaves


def to_coordinate_transform(specs,
                            shared_specs: Optional[Mapping[str, "TransformSpec"]] = None
                            ) -> CoordinateTransformList:
    """Build one applicable transform list from a sequence of specs."""
    return CoordinateTransformList(
        [leaf.to_model() for leaf in flatten_leaf_specs(specs, shared_specs)]
    )


def shared_spec_index(specs) -> Dict[str, "TransformSpec"]:
    """Index collection-level shared specs by id; specs without an id are ignored."""
    return {spec.id: spec for spec in specs if getattr(spec, "id", None)}
