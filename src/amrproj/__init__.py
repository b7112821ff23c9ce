"""`amrproj` - exact area-overlap projection of AMR hydro cells onto 2D maps.

Subpackages:
- amr: Cell table, units, derived variables
- projection: Ranges, rasterizer, level accumulator, map bundle
- schemas: Layered configuration
- contracts: Stage invariants and error taxonomy
"""

__version__ = "0.1.0"

from amrproj.amr import CellTable, CellView, SimInfo, apply_mask
from amrproj.projection import AmrProjector, MapBundle, projection

__all__ = [
    "CellTable",
    "CellView",
    "SimInfo",
    "apply_mask",
    "AmrProjector",
    "MapBundle",
    "projection",
]
