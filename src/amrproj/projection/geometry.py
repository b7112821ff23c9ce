"""Output map geometry: plane axes, resolution, pixel lattice and extents."""

import logging
import math
from typing import Callable, NamedTuple, Sequence

from amrproj.amr.amr_utils import PLANE_AXES
from amrproj.amr.info import SimInfo
from amrproj.amr.units import resolve_unit
from amrproj.contracts import UnsupportedDirectionError

__all__ = ["MapGeometry", "plane_axes", "resolve_resolution", "build_map_geometry"]

logger = logging.getLogger(__name__)

AXIS_INDEX = {"x": 0, "y": 1, "z": 2}


class MapGeometry(NamedTuple):
    """Pixel lattice of one projection.

    ``extent`` is snapped outward to whole pixels, so every pixel is
    exactly ``pixsize`` wide and pixel ``i`` spans
    ``extent[0] + i * pixsize`` to ``extent[0] + (i + 1) * pixsize``.
    """
    direction: str
    axes: tuple
    res: int
    pixsize: float
    shape: tuple
    extent: tuple
    cextent: tuple
    ratio: float
    lmax_projected: int

    @property
    def pixel_area(self) -> float:
        return self.pixsize ** 2


def plane_axes(direction: str) -> tuple:
    """(first in-plane axis, second in-plane axis, depth axis) for ``direction``."""
    try:
        return PLANE_AXES[direction]
    except (KeyError, TypeError):
        raise UnsupportedDirectionError(
            f"Unsupported projection direction {direction!r}; use 'x', 'y' or 'z'",
            direction=direction,
        ) from None


def resolve_resolution(info: SimInfo, res=None, pxsize=None, pxsize_unit: str = "standard",
                       lmax=None, unit_resolver: Callable = resolve_unit) -> int:
    """Pixels across the full box.

    ``pxsize`` (in ``pxsize_unit``) wins and sets
    ``res = ceil(boxlen / pxsize_code)``; otherwise an explicit ``res``
    (rounded up); otherwise ``2**lmax``.
    """
    if pxsize is not None:
        pxsize_code = float(pxsize) / unit_resolver(info, pxsize_unit)
        return int(math.ceil(round(info.boxlen / pxsize_code, 8)))
    if res is not None:
        return int(math.ceil(round(float(res), 8)))
    if lmax is None:
        lmax = info.levelmax
    return 2 ** int(lmax)


def build_map_geometry(info: SimInfo, ranges: Sequence[float], data_center: Sequence[float],
                       direction: str, res: int) -> MapGeometry:
    """Snap the selection to the ``res`` pixel lattice in the projection plane."""
    axes = plane_axes(direction)
    boxlen = info.boxlen
    pixsize = boxlen / res

    bounds = []
    for axis in axes[:2]:
        i = AXIS_INDEX[axis]
        lo = math.floor(round(ranges[2 * i] * res, 8))
        hi = math.ceil(round(ranges[2 * i + 1] * res, 8))
        if hi <= lo:
            # zero-width selection keeps one pixel column inside the box
            lo = min(lo, res - 1)
            hi = lo + 1
        bounds.append((lo, hi, data_center[i]))

    (r1, r2, dc1), (r3, r4, dc2) = bounds
    extent = (r1 * pixsize, r2 * pixsize, r3 * pixsize, r4 * pixsize)
    cextent = (
        (r1 - dc1 * res) * pixsize,
        (r2 - dc1 * res) * pixsize,
        (r3 - dc2 * res) * pixsize,
        (r4 - dc2 * res) * pixsize,
    )
    ratio = (extent[1] - extent[0]) / (extent[3] - extent[2])

    geometry = MapGeometry(
        direction=direction,
        axes=axes,
        res=res,
        pixsize=pixsize,
        shape=(r2 - r1, r4 - r3),
        extent=extent,
        cextent=cextent,
        ratio=ratio,
        lmax_projected=int(round(math.log2(res))),
    )
    logger.debug("Map geometry: direction=%s shape=%s pixsize=%g extent=%s",
                 direction, geometry.shape, pixsize, extent)
    return geometry
