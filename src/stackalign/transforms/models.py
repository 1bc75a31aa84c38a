"""2D coordinate transform models.

The set of supported models is closed: every model the pipeline can
instantiate is listed in ``MODEL_CLASSES``, keyed by the class name the
render web service stores in leaf transform specs. Each model can be

- initialized from a whitespace-delimited data string (``from_data_string``),
- serialized back to its canonical data string (``to_data_string``),
- applied to an (N, 2) array of points (``apply``).

Composition is explicit: :func:`concatenate` matches on the variant pair and
raises :class:`UnsupportedCompositionError` for any pair it does not know how
to fold into a single model.

Point convention follows mpicbg: ``a.concatenate(b)`` yields the model that
applies ``b`` first and then ``a``.
"""

import logging
from typing import List, Sequence

import numpy as np

from stackalign.contracts.failure import (
    UnsupportedCompositionError,
    UnsupportedTransformError,
)

__all__ = [
    'CoordinateTransform',
    'AffineModel2D',
    'TranslationModel2D',
    'PolynomialTransform2D',
    'NonLinearCoordinateTransform',
    'CoordinateTransformList',
    'MODEL_CLASSES',
    'model_for_class_name',
    'concatenate',
]

logger = logging.getLogger(__name__)

_PACKAGE = "mpicbg.trakem2.transform"


def _parse_floats(data: str, model_name: str) -> List[float]:
    fields = data.split()
    try:
        return [float(f) for f in fields]
    except ValueError as exc:
        raise ValueError(f"{model_name}: non-numeric value in '{data}'") from exc


def _format_values(values: Sequence[float]) -> str:
    return " ".join(repr(float(v)) for v in values)


def _as_points(points) -> np.ndarray:
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim == 1:
        pts = pts.reshape(1, 2)
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ValueError(f"points must have shape (N, 2), got {pts.shape}")
    return pts


class CoordinateTransform:
    """Common surface of all transform variants."""

    CLASS_NAME = None

    @classmethod
    def from_data_string(cls, data: str) -> "CoordinateTransform":
        raise NotImplementedError

    def to_data_string(self) -> str:
        raise NotImplementedError

    def apply(self, points) -> np.ndarray:
        raise NotImplementedError

    def apply_point(self, x: float, y: float) -> tuple:
        """Transform a single point and return ``(x, y)``."""
        out = self.apply([[x, y]])[0]
        return float(out[0]), float(out[1])

    def __repr__(self):
        return f"{type(self).__name__}('{self.to_data_string()}')"


class TranslationModel2D(CoordinateTransform):
    """Pure translation; data string is ``tx ty``."""

    CLASS_NAME = f"{_PACKAGE}.TranslationModel2D"

    def __init__(self, tx: float = 0.0, ty: float = 0.0):
        self.tx = float(tx)
        self.ty = float(ty)

    @classmethod
    def from_data_string(cls, data: str) -> "TranslationModel2D":
        values = _parse_floats(data, "TranslationModel2D")
        if len(values) != 2:
            raise ValueError(
                f"TranslationModel2D expects 2 values, got {len(values)} in '{data}'"
            )
        return cls(*values)

    def to_data_string(self) -> str:
        return _format_values((self.tx, self.ty))

    def apply(self, points) -> np.ndarray:
        pts = _as_points(points)
        return pts + np.array([self.tx, self.ty])


class AffineModel2D(CoordinateTransform):
    """General 2D affine transform.

    ``x' = m00*x + m01*y + m02`` and ``y' = m10*x + m11*y + m12``.
    The data string is column-major: ``m00 m10 m01 m11 m02 m12``.
    """

    CLASS_NAME = f"{_PACKAGE}.AffineModel2D"

    def __init__(self, m00=1.0, m10=0.0, m01=0.0, m11=1.0, m02=0.0, m12=0.0):
        self.m00 = float(m00)
        self.m10 = float(m10)
        self.m01 = float(m01)
        self.m11 = float(m11)
        self.m02 = float(m02)
        self.m12 = float(m12)

    @classmethod
    def from_data_string(cls, data: str) -> "AffineModel2D":
        values = _parse_floats(data, "AffineModel2D")
        if len(values) != 6:
            raise ValueError(
                f"AffineModel2D expects 6 values, got {len(values)} in '{data}'"
            )
        return cls(*values)

    @classmethod
    def from_matrix(cls, matrix: np.ndarray) -> "AffineModel2D":
        """Build from a 3x3 homogeneous matrix."""
        m = np.asarray(matrix, dtype=np.float64)
        return cls(m[0, 0], m[1, 0], m[0, 1], m[1, 1], m[0, 2], m[1, 2])

    def to_data_string(self) -> str:
        return _format_values(
            (self.m00, self.m10, self.m01, self.m11, self.m02, self.m12)
        )

    def to_matrix(self) -> np.ndarray:
        return np.array([
            [self.m00, self.m01, self.m02],
            [self.m10, self.m11, self.m12],
            [0.0, 0.0, 1.0],
        ])

    def apply(self, points) -> np.ndarray:
        pts = _as_points(points)
        m = self.to_matrix()
        return pts @ m[:2, :2].T + m[:2, 2]


class PolynomialTransform2D(CoordinateTransform):
    """Polynomial transform of arbitrary order.

    The data string holds the x coefficients followed by the y coefficients.
    Terms are ordered ``1, x, y, x^2, xy, y^2, x^3, ...``; an order-2
    polynomial therefore has 12 values.
    """

    CLASS_NAME = f"{_PACKAGE}.PolynomialTransform2D"

    def __init__(self, coefficients: Sequence[float]):
        coefficients = [float(c) for c in coefficients]
        self.order = self._order_for_count(len(coefficients))
        half = len(coefficients) // 2
        self.x_coefficients = np.array(coefficients[:half])
        self.y_coefficients = np.array(coefficients[half:])

    @staticmethod
    def _order_for_count(count: int) -> int:
        if count == 0 or count % 2 != 0:
            raise ValueError(
                f"PolynomialTransform2D expects an even, non-zero number of values, got {count}"
            )
        per_dimension = count // 2
        order = 0
        while (order + 1) * (order + 2) // 2 < per_dimension:
            order += 1
        if (order + 1) * (order + 2) // 2 != per_dimension:
            raise ValueError(
                f"PolynomialTransform2D: {count} values do not describe a complete polynomial"
            )
        return order

    @classmethod
    def from_data_string(cls, data: str) -> "PolynomialTransform2D":
        return cls(_parse_floats(data, "PolynomialTransform2D"))

    def to_data_string(self) -> str:
        return _format_values(list(self.x_coefficients) + list(self.y_coefficients))

    def _terms(self, pts: np.ndarray) -> np.ndarray:
        x = pts[:, 0]
        y = pts[:, 1]
        terms = []
        for i in range(self.order + 1):
            for j in range(i + 1):
                terms.append(x ** (i - j) * y ** j)
        return np.stack(terms, axis=1)

    def apply(self, points) -> np.ndarray:
        pts = _as_points(points)
        terms = self._terms(pts)
        return np.stack([terms @ self.x_coefficients, terms @ self.y_coefficients], axis=1)


class NonLinearCoordinateTransform(CoordinateTransform):
    """Normalized polynomial kernel transform used for lens correction.

    Data string layout::

        dimension length beta(2*length, interleaved x/y) normMean(length) normVar(length) width height

    The last expanded feature is a constant (100) and is not normalized.
    """

    CLASS_NAME = f"{_PACKAGE}.NonLinearCoordinateTransform"

    def __init__(self, dimension: int, beta: np.ndarray, norm_mean: np.ndarray,
                 norm_var: np.ndarray, width: int, height: int):
        self.dimension = int(dimension)
        self.beta = np.asarray(beta, dtype=np.float64).reshape(-1, 2)
        self.length = self.beta.shape[0]
        self.norm_mean = np.asarray(norm_mean, dtype=np.float64)
        self.norm_var = np.asarray(norm_var, dtype=np.float64)
        self.width = int(width)
        self.height = int(height)

    @classmethod
    def from_data_string(cls, data: str) -> "NonLinearCoordinateTransform":
        fields = data.split()
        if len(fields) < 2:
            raise ValueError(f"NonLinearCoordinateTransform: too few values in '{data}'")
        try:
            dimension = int(fields[0])
            length = int(fields[1])
        except ValueError as exc:
            raise ValueError(
                f"NonLinearCoordinateTransform: bad dimension/length in '{data}'"
            ) from exc
        expected_length = sum(i + 1 for i in range(1, dimension + 1)) + 1
        if length != expected_length:
            raise ValueError(
                f"NonLinearCoordinateTransform: dimension {dimension} needs length "
                f"{expected_length}, got {length}"
            )
        if len(fields) != 4 + 4 * length:
            raise ValueError(
                f"NonLinearCoordinateTransform expects {4 + 4 * length} values for "
                f"length {length}, got {len(fields)}"
            )
        values = _parse_floats(" ".join(fields[2:-2]), "NonLinearCoordinateTransform")
        beta = values[:2 * length]
        norm_mean = values[2 * length:3 * length]
        norm_var = values[3 * length:4 * length]
        try:
            width, height = int(float(fields[-2])), int(float(fields[-1]))
        except ValueError as exc:
            raise ValueError(
                f"NonLinearCoordinateTransform: bad width/height in '{data}'"
            ) from exc
        return cls(dimension, beta, norm_mean, norm_var, width, height)

    def to_data_string(self) -> str:
        parts = [str(self.dimension), str(self.length),
                 _format_values(self.beta.ravel()),
                 _format_values(self.norm_mean),
                 _format_values(self.norm_var),
                 str(self.width), str(self.height)]
        return " ".join(parts)

    def _kernel_expand(self, pts: np.ndarray) -> np.ndarray:
        x = pts[:, 0]
        y = pts[:, 1]
        features = []
        for i in range(1, self.dimension + 1):
            for j in range(i, -1, -1):
                features.append(x ** j * y ** (i - j))
        features.append(np.zeros_like(x))
        expanded = np.stack(features, axis=1)
        n = self.length - 1
        expanded[:, :n] = (expanded[:, :n] - self.norm_mean[:n]) / self.norm_var[:n]
        expanded[:, n] = 100.0
        return expanded

    def apply(self, points) -> np.ndarray:
        pts = _as_points(points)
        return self._kernel_expand(pts) @ self.beta


class CoordinateTransformList(CoordinateTransform):
    """Ordered list of transforms applied first to last.

    Lists may nest; they have no data string of their own.
    """

    CLASS_NAME = f"{_PACKAGE}.CoordinateTransformList"

    def __init__(self, transforms: Sequence[CoordinateTransform] = ()):
        self.transforms = list(transforms)

    def to_data_string(self) -> str:
        raise UnsupportedTransformError("a transform list has no data string")

    def apply(self, points) -> np.ndarray:
        pts = _as_points(points)
        for transform in self.transforms:
            pts = transform.apply(pts)
        return pts

    def __repr__(self):
        return f"CoordinateTransformList({self.transforms!r})"


MODEL_CLASSES = {
    cls.CLASS_NAME: cls
    for cls in (
        AffineModel2D,
        TranslationModel2D,
        PolynomialTransform2D,
        NonLinearCoordinateTransform,
    )
}


def model_for_class_name(class_name: str) -> type:
    """Look up the leaf model class for a render ``className``.

    Raises
    ------
    UnsupportedTransformError
        If the class name is not one of the supported models.
    """
    try:
        return MODEL_CLASSES[class_name]
    except KeyError:
        raise UnsupportedTransformError(
            f"unsupported transform class '{class_name}', "
            f"supported classes are {sorted(MODEL_CLASSES)}"
        ) from None


def concatenate(target: CoordinateTransform, other: CoordinateTransform) -> CoordinateTransform:
    """Fold ``other`` into ``target``, returning a new model of target's type.

    The result applies ``other`` first, then ``target``.

    Supported pairs:

    - Affine <- Affine
    - Affine <- Translation
    - Translation <- Translation

    Raises
    ------
    UnsupportedCompositionError
        For every other combination.
    """
    if isinstance(target, AffineModel2D):
        if isinstance(other, TranslationModel2D):
            return AffineModel2D(
                target.m00, target.m10, target.m01, target.m11,
                target.m00 * other.tx + target.m01 * other.ty + target.m02,
                target.m10 * other.tx + target.m11 * other.ty + target.m12,
            )
        if isinstance(other, AffineModel2D):
            return AffineModel2D.from_matrix(target.to_matrix() @ other.to_matrix())
    elif isinstance(target, TranslationModel2D):
        if isinstance(other, TranslationModel2D):
            return TranslationModel2D(target.tx + other.tx, target.ty + other.ty)

    raise UnsupportedCompositionError(
        f"cannot concatenate {type(other).__name__} onto {type(target).__name__}"
    )
