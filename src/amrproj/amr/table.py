"""Read-only AMR cell table and filtered views over it.

A ``CellTable`` wraps the loader's ``pandas.DataFrame`` (one row per leaf
cell) together with its ``SimInfo``. Projection code never touches the
frame directly: it works on ``CellView`` objects, which are a table plus
an array of row positions. Masks, range cuts and per-level selections
all produce new views; the underlying frame is never modified.
"""

import logging
from typing import Union

import numpy as np
import pandas as pd

from amrproj.amr.info import SimInfo
from amrproj.contracts import MaskLengthMismatchError, UnknownVariableError

__all__ = ["CellTable", "CellView", "apply_mask"]

logger = logging.getLogger(__name__)


class CellTable:
    """Leaf cells of one AMR snapshot.

    Parameters
    ----------
    data : pd.DataFrame
        One row per cell with integer ``level``, ``cx``, ``cy``, ``cz``
        columns and any number of float field columns.
    info : SimInfo or dict
        Box length, level span and unit scales.

    Examples
    --------
    >>> df = pd.DataFrame({"level": [1] * 8, "cx": [1, 2] * 4,
    ...                    "cy": [1, 1, 2, 2] * 2, "cz": [1] * 4 + [2] * 4,
    ...                    "rho": 1.0})
    >>> table = CellTable(df, SimInfo(boxlen=1.0, levelmin=1, levelmax=1))
    >>> len(table.view())
    8
    """

    def __init__(self, data: pd.DataFrame, info: Union[SimInfo, dict]):
        if not isinstance(info, SimInfo):
            info = SimInfo.model_validate(info)
        self.data = data
        self.info = info

    def __len__(self) -> int:
        return len(self.data)

    def __repr__(self) -> str:
        return (
            f"CellTable(rows={len(self)}, levels={self.info.levelmin}..{self.info.levelmax}, "
            f"boxlen={self.info.boxlen})"
        )

    @property
    def columns(self) -> tuple:
        return tuple(self.data.columns)

    def has_column(self, name: str) -> bool:
        return name in self.data.columns

    def view(self) -> "CellView":
        """View over every row."""
        return CellView(self, np.arange(len(self), dtype=np.int64))


class CellView:
    """Non-mutating row selection over a ``CellTable``."""

    __slots__ = ("table", "rows")

    def __init__(self, table: CellTable, rows: np.ndarray):
        rows = np.asarray(rows, dtype=np.int64)
        rows.setflags(write=False)
        self.table = table
        self.rows = rows

    def __len__(self) -> int:
        return len(self.rows)

    def __repr__(self) -> str:
        return f"CellView(rows={len(self)} of {len(self.table)})"

    @property
    def info(self) -> SimInfo:
        return self.table.info

    def has_column(self, name: str) -> bool:
        return self.table.has_column(name)

    def column(self, name: str) -> np.ndarray:
        """Values of ``name`` for the selected rows (a fresh array)."""
        if not self.table.has_column(name):
            raise UnknownVariableError(
                f"Cell table has no column '{name}' "
                f"(columns: {', '.join(map(str, self.table.columns))})",
                variable=name,
            )
        return self.table.data[name].to_numpy()[self.rows]

    def take(self, selector: np.ndarray) -> "CellView":
        """Sub-view from a boolean mask or positions relative to this view."""
        return CellView(self.table, self.rows[selector])


def apply_mask(cells: Union[CellTable, CellView], mask) -> CellView:
    """Restrict cells to the rows where ``mask`` is true.

    Parameters
    ----------
    cells : CellTable or CellView
        Rows the mask refers to, in order.
    mask : array-like of bool
        One flag per row of ``cells``.

    Returns
    -------
    CellView
        View over the flagged rows. ``cells`` is left untouched.

    Raises
    ------
    MaskLengthMismatchError
        If ``len(mask) != len(cells)``.
    """
    view = cells.view() if isinstance(cells, CellTable) else cells
    mask = np.asarray(mask)
    if mask.ndim != 1 or mask.shape[0] != len(view):
        actual = mask.shape[0] if mask.ndim == 1 else mask.size
        raise MaskLengthMismatchError(
            f"Mask has {actual} entries but the cell table has {len(view)} rows",
            expected=len(view),
            actual=actual,
        )
    mask = mask.astype(bool, copy=False)
    selected = view.take(mask)
    logger.debug("Mask keeps %d of %d cells", len(selected), len(view))
    return selected
