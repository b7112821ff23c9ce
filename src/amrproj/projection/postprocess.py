"""Dispersion maps, radius/angle maps and unit scaling."""

import logging
from typing import Callable, Sequence

import numpy as np

from amrproj.projection.classifier import (
    ANGLE_VARIABLES,
    DISPERSION_MOMENTS,
    RADIUS_VARIABLES,
    VariableClassification,
)
from amrproj.projection.geometry import AXIS_INDEX, MapGeometry

__all__ = [
    "dispersion_map",
    "azimuth",
    "pixel_offsets",
    "geometry_map",
    "postprocess_maps",
    "ANGLE_UNIT",
]

logger = logging.getLogger(__name__)

ANGLE_UNIT = "radian"

SECOND_MOMENTS = frozenset(pair[1] for pair in DISPERSION_MOMENTS.values())


def dispersion_map(m1: np.ndarray, m2: np.ndarray) -> np.ndarray:
    """``sqrt(max(m2 - m1**2, 0))`` pixel by pixel."""
    return np.sqrt(np.maximum(m2 - m1 ** 2, 0.0))


def azimuth(dx: np.ndarray, dy: np.ndarray) -> np.ndarray:
    """In-plane angle in [0, 2*pi) measured from the first in-plane axis.

    The origin itself (``dx == dy == 0``) maps to 0.0.
    """
    dx = np.asarray(dx, dtype=np.float64)
    dy = np.asarray(dy, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        base = np.arctan(dy / dx)
    return np.select(
        [
            (dx > 0) & (dy >= 0),
            (dx > 0) & (dy < 0),
            dx < 0,
            (dx == 0) & (dy > 0),
            (dx == 0) & (dy < 0),
        ],
        [base, base + 2.0 * np.pi, base + np.pi, 0.5 * np.pi, 1.5 * np.pi],
        default=0.0,
    )


def pixel_offsets(geometry: MapGeometry, data_center: Sequence[float], boxlen: float) -> tuple:
    """Pixel-center positions relative to the in-plane data center, shape ``geometry.shape``."""
    nx, ny = geometry.shape
    e = geometry.extent
    c1 = data_center[AXIS_INDEX[geometry.axes[0]]] * boxlen
    c2 = data_center[AXIS_INDEX[geometry.axes[1]]] * boxlen
    x = e[0] + (np.arange(nx) + 0.5) * geometry.pixsize - c1
    y = e[2] + (np.arange(ny) + 0.5) * geometry.pixsize - c2
    return np.meshgrid(x, y, indexing="ij")


def geometry_map(name: str, geometry: MapGeometry, data_center: Sequence[float],
                 boxlen: float) -> np.ndarray:
    """Radius (code units) or angle (radian) for every pixel."""
    dx, dy = pixel_offsets(geometry, data_center, boxlen)
    if name in RADIUS_VARIABLES:
        return np.hypot(dx, dy)
    if name in ANGLE_VARIABLES:
        return azimuth(dx, dy)
    raise KeyError(f"'{name}' is not a geometry variable")


def postprocess_maps(finalized: dict, classification: VariableClassification,
                     geometry: MapGeometry, data_center: Sequence[float], boxlen: float,
                     units: dict, unit_factor: Callable[[str], float]) -> tuple:
    """Build the final maps and their unit tags.

    Parameters
    ----------
    finalized : dict
        Finalized projected maps in code units.
    classification : VariableClassification
        Output of ``classify_variables``.
    geometry : MapGeometry
        Pixel lattice.
    data_center : sequence of float
        Fractional data center.
    boxlen : float
        Physical box length.
    units : dict
        Variable name -> unit name for every working variable.
    unit_factor : callable
        Unit name -> multiplier.

    Returns
    -------
    (dict, dict)
        ``maps`` and ``maps_unit`` in working-variable order, with dropped
        helper moments removed.

    Notes
    -----
    Second moments (``v2``, ``vx2``, ...) are scaled by the square of
    their unit factor; their unit tag stays the velocity unit.
    """
    maps = {}
    maps_unit = {}
    for name in classification.working:
        if name in classification.dropped:
            continue
        if name in classification.dispersion:
            m1, m2 = classification.dispersion[name]
            sigma = dispersion_map(finalized[m1], finalized[m2])
            maps[name] = sigma * unit_factor(units[name])
            maps_unit[name] = units[name]
        elif name in RADIUS_VARIABLES:
            maps[name] = geometry_map(name, geometry, data_center, boxlen) * unit_factor(units[name])
            maps_unit[name] = units[name]
        elif name in ANGLE_VARIABLES:
            maps[name] = geometry_map(name, geometry, data_center, boxlen)
            maps_unit[name] = ANGLE_UNIT
        else:
            factor = unit_factor(units[name])
            if name in SECOND_MOMENTS:
                factor = factor ** 2
            maps[name] = finalized[name] * factor
            maps_unit[name] = units[name]

    if classification.dropped:
        logger.debug("Dropped helper moments: %s", classification.dropped)
    return maps, maps_unit
