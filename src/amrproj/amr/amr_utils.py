"""Shared AMR geometry helpers."""

import numpy as np

AXES = ("x", "y", "z")
COORD_COLUMNS = {"x": "cx", "y": "cy", "z": "cz"}

# direction -> (first in-plane axis, second in-plane axis, depth axis)
PLANE_AXES = {
    "z": ("x", "y", "z"),
    "y": ("x", "z", "y"),
    "x": ("y", "z", "x"),
}


def cell_size(level, boxlen: float):
    """Physical edge length of cells at ``level`` (scalar or array)."""
    return boxlen / np.exp2(level)


def cell_centers(c, level, boxlen: float):
    """Physical centers from 1-based integer coordinates."""
    return (np.asarray(c, dtype=np.float64) - 0.5) * cell_size(level, boxlen)


def level_index_bounds(frac_min: float, frac_max: float, level):
    """Inclusive 1-based coordinate bounds of cells touching [frac_min, frac_max].

    A zero-width interval keeps the single layer that contains it.
    """
    n = np.left_shift(np.int64(1), np.asarray(level, dtype=np.int64))
    lo = np.floor(frac_min * n).astype(np.int64) + 1
    hi = np.ceil(frac_max * n).astype(np.int64)
    hi = np.maximum(hi, lo)
    return np.minimum(lo, n), np.minimum(hi, n)
