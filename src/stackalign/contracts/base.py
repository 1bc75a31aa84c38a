"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
Callers choose the error type so that each stage boundary raises the member
of the failure taxonomy that describes what went wrong.
"""

from typing import Type

from stackalign.contracts.failure import ContractViolation, StackAlignError


def require(condition: bool, message: str,
            error: Type[StackAlignError] = ContractViolation) -> None:
    """Enforce a pipeline contract.

    This is called at stage boundaries to verify the preceding stage
    produced the guaranteed invariants. It is fail-fast: no recovery,
    no fallback, no silence.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ``error`` is raised.

    message : str
        Error message explaining the violation (for debugging).

    error : type, optional
        Exception class to raise (default ContractViolation).

    Raises
    ------
    StackAlignError
        If condition is False.

    Examples
    --------
    >>> require(collection.has_tile_specs(), "collection is empty", EmptyCollectionError)
    >>> require(len(batches) > 0, "no tile information found", EmptyInputError)
    """
    if not condition:
        raise error(message)
