"""Cell table contract.

Enforces the guarantee that a loaded cell table is a valid set of leaf
AMR cells before any projection work starts.
"""

import numpy as np
from typing import TYPE_CHECKING
from amrproj.contracts.base import require

if TYPE_CHECKING:
    from amrproj.amr.table import CellTable

COORD_COLUMNS = ("level", "cx", "cy", "cz")


def assert_cell_table(table: "CellTable") -> None:
    """Enforce cell table contract.

    Parameters
    ----------
    table : CellTable
        Table produced by an external loader.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    df = table.data
    for col in COORD_COLUMNS:
        require(
            col in df.columns,
            f"Cell contract violated: missing '{col}' column"
        )
        require(
            np.issubdtype(df[col].dtype, np.integer),
            f"Cell contract violated: '{col}' has dtype {df[col].dtype}, expected integer"
        )

    if len(df) == 0:
        return

    level = df["level"].to_numpy()
    info = table.info
    require(
        level.min() >= info.levelmin and level.max() <= info.levelmax,
        f"Cell contract violated: levels span [{level.min()}, {level.max()}], "
        f"outside [{info.levelmin}, {info.levelmax}]"
    )

    n_side = np.left_shift(np.int64(1), level.astype(np.int64))
    for col in ("cx", "cy", "cz"):
        c = df[col].to_numpy()
        bad = int(np.count_nonzero((c < 1) | (c > n_side)))
        require(
            bad == 0,
            f"Cell contract violated: {bad} rows with '{col}' outside [1, 2^level]"
        )
