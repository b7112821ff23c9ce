"""AMR cell data modules.

- info: Simulation metadata (box length, levels, unit scales)
- table: Read-only cell table, filtered views, masking
- units: Unit multiplier lookup
- variables: Raw and derived per-cell variables
"""

from amrproj.amr.info import SimInfo
from amrproj.amr.table import CellTable, CellView, apply_mask
from amrproj.amr.units import resolve_unit
from amrproj.amr.variables import VariableEvaluator, evaluate_variable

__all__ = [
    "SimInfo",
    "CellTable",
    "CellView",
    "apply_mask",
    "resolve_unit",
    "VariableEvaluator",
    "evaluate_variable",
]
