"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from typing import Type

from radvol.contracts.failure import ContractViolation


def require(condition: bool, message: str,
            error: Type[Exception] = ContractViolation) -> None:
    """Enforce an invariant.

    Called at stage boundaries and in constructors. It is fail-fast: no
    recovery, no fallback, no silence.

    Parameters
    ----------
    condition : bool
        The invariant that must be true.

    message : str
        Error message explaining the violation.

    error : type, optional
        Exception class to raise. Defaults to ContractViolation; data checks
        pass one of the radvol error classes instead.

    Raises
    ------
    Exception
        An instance of ``error`` if condition is False.

    Examples
    --------
    >>> require("DBZH" in scan.parameters, "Scan contract: missing 'DBZH'")
    >>> require(values.shape == scan.shape, "shape differs", GeometryMismatchError)
    """
    if not condition:
        raise error(message)
