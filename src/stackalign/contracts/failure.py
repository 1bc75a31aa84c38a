"""Centralized failure taxonomy for reconciliation runs.

Every condition listed here is fatal to a run. Nothing is retried: a run
either updates every section it touched or writes nothing at all.
The only recoverable input problem (a short MET line) is logged, never raised.
"""


class StackAlignError(RuntimeError):
    """Base class for all fatal reconciliation errors."""
    pass


class ContractViolation(StackAlignError):
    """Raised when a pipeline stage does not produce its promised invariants.

    Key distinction:
    - ValueError: User/config error (handled by Pydantic)
    - ContractViolation: Pipeline bug (programmer error)
    - Other StackAlignError subclasses: bad input data or bad server state
    """
    pass


class MalformedTransformError(StackAlignError):
    """A transform source or parameter string cannot be parsed."""
    pass


class DuplicateTileError(StackAlignError):
    """The same tile id is referenced more than once in one run's input."""
    pass


class EmptyInputError(StackAlignError):
    """No sections (batches) were produced from the input."""
    pass


class EmptyCollectionError(StackAlignError):
    """A canonical collection is empty, or empty after filtering to input tile ids."""
    pass


class MissingTileError(StackAlignError):
    """A tile that must be mutated in place is absent from the fetched collection."""
    pass


class UnexpectedTransformShapeError(StackAlignError):
    """A flattened transform chain does not end in [stage translation, alignment affine]."""
    pass


class UnsupportedTransformError(StackAlignError):
    """A transform class name (or ref id) cannot be resolved to a known model."""
    pass


class UnsupportedCompositionError(StackAlignError):
    """Two transform variants cannot be concatenated into a single model."""
    pass


class StackClientError(StackAlignError):
    """A render web service request failed.

    Parameters
    ----------
    message : str
        Human readable description including the request URL.
    status_code : int, optional
        HTTP status of the failed response, if one was received.
    """

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code
