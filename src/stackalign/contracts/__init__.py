"""Run contracts and the failure taxonomy.

Contracts fail immediately and loudly when a stage does not hold its
invariants, or when input or server state makes a run impossible.

Key principle:
- Pydantic validates config correctness
- Contracts validate input and pipeline correctness
- Only short MET lines and invalid tiles are tolerated (logged, not raised)
"""

from stackalign.contracts.failure import (
    ContractViolation,
    DuplicateTileError,
    EmptyCollectionError,
    EmptyInputError,
    MalformedTransformError,
    MissingTileError,
    StackAlignError,
    StackClientError,
    UnexpectedTransformShapeError,
    UnsupportedCompositionError,
    UnsupportedTransformError,
)
from stackalign.contracts.base import require

__all__ = [
    "StackAlignError",
    "ContractViolation",
    "DuplicateTileError",
    "EmptyCollectionError",
    "EmptyInputError",
    "MalformedTransformError",
    "MissingTileError",
    "StackClientError",
    "UnexpectedTransformShapeError",
    "UnsupportedCompositionError",
    "UnsupportedTransformError",
    "require",
]
