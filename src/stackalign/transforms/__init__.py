"""Transform models and their serializable specs.

- models: Affine, Translation, Polynomial, lens-correction and list transforms
- spec: Leaf / List / Ref transform specs (render JSON form)
"""

from stackalign.transforms.models import (
    AffineModel2D,
    CoordinateTransform,
    CoordinateTransformList,
    NonLinearCoordinateTransform,
    PolynomialTransform2D,
    TranslationModel2D,
    concatenate,
)
from stackalign.transforms.spec import (
    LeafTransformSpec,
    ListTransformSpec,
    ReferenceTransformSpec,
    TransformSpec,
)

__all__ = [
    "AffineModel2D",
    "CoordinateTransform",
    "CoordinateTransformList",
    "NonLinearCoordinateTransform",
    "PolynomialTransform2D",
    "TranslationModel2D",
    "concatenate",
    "LeafTransformSpec",
    "ListTransformSpec",
    "ReferenceTransformSpec",
    "TransformSpec",
]
