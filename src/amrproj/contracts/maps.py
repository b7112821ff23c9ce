"""Map bundle contract.

Enforces the guarantee that a finished projection is internally
consistent before it is handed to the caller.
"""

import numpy as np
from typing import TYPE_CHECKING
from amrproj.contracts.base import require

if TYPE_CHECKING:
    from amrproj.projection.bundle import MapBundle


def assert_map_bundle(bundle: "MapBundle") -> None:
    """Enforce map bundle contract.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    shape = bundle.shape
    for name, grid in bundle.maps.items():
        require(
            grid.shape == shape,
            f"Map contract violated: '{name}' has shape {grid.shape}, expected {shape}"
        )
        require(
            name in bundle.maps_unit and name in bundle.maps_weight and name in bundle.maps_mode,
            f"Map contract violated: '{name}' lacks unit/weight/mode bookkeeping"
        )

    e1, e2, e3, e4 = bundle.extent
    require(
        np.isclose((e2 - e1) / bundle.pixsize, shape[0])
        and np.isclose((e4 - e3) / bundle.pixsize, shape[1]),
        f"Map contract violated: extent {bundle.extent} does not match shape {shape} "
        f"at pixsize {bundle.pixsize}"
    )
