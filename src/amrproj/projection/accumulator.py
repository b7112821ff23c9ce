"""Per-level accumulation of rasterized grids and their finalization.

Levels are independent until their grids are added together, so each
level is rasterized into its own fresh grids (optionally on a thread
pool) and the results are reduced in ascending level order. The totals
therefore do not depend on the number of workers.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

import numpy as np

from amrproj.projection.classifier import TOTAL_VARIABLES
from amrproj.projection.rasterizer import LevelRasterizer

__all__ = ["LevelAccumulator", "finalize_grid", "weights_for"]

logger = logging.getLogger(__name__)


class LevelAccumulator:
    """Run the rasterizer level by level and sum the results.

    Parameters
    ----------
    rasterizer : LevelRasterizer
        Rasterizer bound to the output grid.
    max_workers : int
        Levels rasterized concurrently. 1 runs inline.
    progress : callable, optional
        ``progress(level, done, total)``, called from the calling thread
        once per completed level, empty levels included.
    """

    def __init__(self, rasterizer: LevelRasterizer, max_workers: int = 1,
                 progress: Optional[Callable] = None):
        self.rasterizer = rasterizer
        self.max_workers = max_workers
        self.progress = progress

    def accumulate(self, x_idx: np.ndarray, y_idx: np.ndarray, level: np.ndarray,
                   layers: dict, lmin: int, lmax: int) -> tuple:
        """Sum every layer over levels ``lmin..lmax``.

        Parameters
        ----------
        x_idx, y_idx : array of int
            In-plane 1-based cell coordinates, one per row.
        level : array of int
            Cell level, one per row.
        layers : dict
            Variable name -> ``(values, weights)``, arrays aligned with rows.
        lmin, lmax : int
            Inclusive level range.

        Returns
        -------
        (dict, dict)
            ``final_grids`` and ``final_weights`` keyed by variable name.
        """
        names = list(layers)
        shape = self.rasterizer.shape
        final_grids = {name: np.zeros(shape) for name in names}
        final_weights = {name: np.zeros(shape) for name in names}
        levels = list(range(lmin, lmax + 1))

        def run(lvl):
            rows = np.flatnonzero(level == lvl)
            if rows.size == 0:
                return lvl, 0, None
            pairs = [
                (np.asarray(layers[name][0])[rows], np.asarray(layers[name][1])[rows])
                for name in names
            ]
            return lvl, rows.size, self.rasterizer.rasterize(x_idx[rows], y_idx[rows], lvl, pairs)

        if self.max_workers > 1 and len(levels) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                self._reduce(pool.map(run, levels), names, final_grids, final_weights, len(levels))
        else:
            self._reduce(map(run, levels), names, final_grids, final_weights, len(levels))

        return final_grids, final_weights

    def _reduce(self, results, names, final_grids, final_weights, total):
        for done, (lvl, n_cells, level_grids) in enumerate(results, start=1):
            if level_grids is None:
                logger.debug("Level %d: no cells in range, skipped", lvl)
            else:
                for name, (grid, weight_grid) in zip(names, level_grids):
                    final_grids[name] += grid
                    final_weights[name] += weight_grid
                logger.debug("Level %d: %d cells accumulated (%d/%d)", lvl, n_cells, done, total)
            if self.progress is not None:
                self.progress(lvl, done, total)


def finalize_grid(name: str, grid: np.ndarray, weights: np.ndarray, mode: str,
                  pixel_area: float) -> np.ndarray:
    """Turn accumulated sums into the map for ``name``.

    ``sd`` is divided by the pixel area and ``mass`` is returned as-is.
    Every other variable is ``grid / weights`` in ``average`` mode, with
    zero where no weight landed, and ``grid`` in ``sum`` mode.
    """
    if name == "sd":
        return grid / pixel_area
    if name in TOTAL_VARIABLES or mode == "sum":
        return grid.copy()
    out = np.zeros_like(grid)
    covered = weights > 0
    np.divide(grid, weights, out=out, where=covered)
    return out


def weights_for(name: str, scheme: str, mass: Optional[np.ndarray], n_rows: int,
                weight_scale: float = 1.0) -> np.ndarray:
    """Per-cell weights of ``name`` under ``scheme``."""
    if name in TOTAL_VARIABLES or scheme == "volume":
        return np.ones(n_rows)
    return mass * weight_scale

