"""Projection contracts and error taxonomy.

Key principle:
- Pydantic validates config correctness
- ProjectionError subclasses report bad calls before rasterization
- Contracts validate cell tables and finished bundles
"""

from amrproj.contracts.failure import (
    ContractViolation,
    ProjectionError,
    InvalidRangeError,
    MissingDensityFieldError,
    MaskLengthMismatchError,
    UnknownVariableError,
    UnknownUnitError,
    UnsupportedDirectionError,
)
from amrproj.contracts.base import require
from amrproj.contracts.cells import assert_cell_table
from amrproj.contracts.maps import assert_map_bundle

__all__ = [
    "ContractViolation",
    "ProjectionError",
    "InvalidRangeError",
    "MissingDensityFieldError",
    "MaskLengthMismatchError",
    "UnknownVariableError",
    "UnknownUnitError",
    "UnsupportedDirectionError",
    "require",
    "assert_cell_table",
    "assert_map_bundle",
]
