"""Errors and contracts: fail-fast enforcement of invariants.

This package defines the error taxonomy of the radvol core and the
contracts checked between processing stages.

Key principle:
- Pydantic validates config correctness
- RadvolError subclasses report bad data the caller may recover from
- Contracts validate pipeline correctness (ContractViolation)
"""

from radvol.contracts.failure import (
    RadvolError,
    FormatError,
    NotFoundError,
    GeometryMismatchError,
    InvalidExtentError,
    ClassificationError,
    ContractViolation,
)
from radvol.contracts.base import require
from radvol.contracts.scan import assert_scan_geometry
from radvol.contracts.raster import assert_raster

__all__ = [
    "RadvolError",
    "FormatError",
    "NotFoundError",
    "GeometryMismatchError",
    "InvalidExtentError",
    "ClassificationError",
    "ContractViolation",
    "require",
    "assert_scan_geometry",
    "assert_raster",
]
