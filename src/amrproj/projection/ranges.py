"""Resolve user ranges and centers into fractional box coordinates.

Ranges are given per axis as ``(min, max)`` pairs relative to ``center``
in ``range_unit``. Either side may be ``None`` for the box boundary.
With the ``standard`` unit, values are box fractions. Any other unit is
converted with ``boxlen * resolve_unit(info, unit)``.

Centers are numbers in the same unit, or the symbols ``"bc"`` /
``"boxcenter"`` (0.5), given per axis or once for all axes.
"""

import logging
import math
from typing import Callable, NamedTuple, Optional, Sequence

import numpy as np

from amrproj.amr.info import SimInfo
from amrproj.amr.units import STANDARD_UNIT, resolve_unit
from amrproj.contracts import InvalidRangeError
from amrproj.schemas.param import CENTER_SYMBOLS

__all__ = ["ResolvedRegion", "resolve_center", "resolve_data_center",
           "resolve_ranges", "resolve_region"]

logger = logging.getLogger(__name__)


class ResolvedRegion(NamedTuple):
    """Fractional selection: 6 bounds, selection center, data center."""
    ranges: tuple
    center: tuple
    data_center: tuple


def _length_conversion(info: SimInfo, unit: str, unit_resolver: Callable) -> float:
    if unit is None or unit == STANDARD_UNIT:
        return 1.0
    return info.boxlen * unit_resolver(info, unit)


def _center_value(value, conv: float) -> float:
    if isinstance(value, str):
        token = value.strip().lower().lstrip(":")
        if token not in CENTER_SYMBOLS:
            raise InvalidRangeError(f"Unknown center symbol '{value}'", bounds=(value,))
        return 0.5
    return float(value) / conv


def _per_axis(values: Sequence) -> list:
    values = list(values)
    if len(values) == 1:
        values = values * 3
    if len(values) != 3:
        raise InvalidRangeError(f"Center needs 1 or 3 entries, got {len(values)}",
                                bounds=tuple(values))
    return values


def resolve_center(info: SimInfo, center: Sequence, unit: str = STANDARD_UNIT,
                   unit_resolver: Callable = resolve_unit) -> tuple:
    """Fractional selection center."""
    conv = _length_conversion(info, unit, unit_resolver)
    return tuple(_center_value(v, conv) for v in _per_axis(center))


def resolve_data_center(info: SimInfo, data_center: Optional[Sequence], center: Sequence[float],
                        unit: str = STANDARD_UNIT,
                        unit_resolver: Callable = resolve_unit) -> tuple:
    """Fractional data center; ``None`` entries fall back to ``center``."""
    if data_center is None:
        return tuple(float(c) for c in center)
    conv = _length_conversion(info, unit, unit_resolver)
    return tuple(
        float(center[i]) if v is None else _center_value(v, conv)
        for i, v in enumerate(_per_axis(data_center))
    )


def resolve_ranges(info: SimInfo, xrange, yrange, zrange, center: Sequence[float],
                   unit: str = STANDARD_UNIT,
                   unit_resolver: Callable = resolve_unit) -> tuple:
    """Fractional ``(xmin, xmax, ymin, ymax, zmin, zmax)`` clamped to [0, 1].

    Raises
    ------
    InvalidRangeError
        If a bound is not finite, ``min > max``, or the range misses the box.
    """
    conv = _length_conversion(info, unit, unit_resolver)
    out = []
    for axis, bounds, c in zip("xyz", (xrange, yrange, zrange), center):
        lo, hi = (None, None) if bounds is None else bounds
        lo_f = 0.0 if lo is None else float(lo) / conv + c
        hi_f = 1.0 if hi is None else float(hi) / conv + c
        if not (math.isfinite(lo_f) and math.isfinite(hi_f)):
            raise InvalidRangeError(
                f"{axis}range resolves to non-finite bounds ({lo_f}, {hi_f})",
                axis=axis, bounds=(lo, hi),
            )
        if lo_f > hi_f:
            raise InvalidRangeError(
                f"{axis}range is inverted: min {lo_f:g} > max {hi_f:g} "
                f"(from {axis}range={bounds!r}, unit={unit!r})",
                axis=axis, bounds=(lo, hi),
            )
        lo_c, hi_c = max(lo_f, 0.0), min(hi_f, 1.0)
        if lo_c > hi_c:
            raise InvalidRangeError(
                f"{axis}range ({lo_f:g}, {hi_f:g}) lies outside the box [0, 1]",
                axis=axis, bounds=(lo, hi),
            )
        out.extend((lo_c, hi_c))
    return tuple(out)


def resolve_region(info: SimInfo, region, unit_resolver: Callable = resolve_unit) -> ResolvedRegion:
    """Resolve a region config section in one go.

    Parameters
    ----------
    info : SimInfo
        Simulation metadata (box length and unit scales).
    region : InternalRegionConfig
        Ranges, center, data center and their units.
    unit_resolver : callable
        ``(info, unit_name) -> float``.
    """
    center = resolve_center(info, region.center, region.range_unit, unit_resolver)
    ranges = resolve_ranges(info, region.xrange, region.yrange, region.zrange,
                            center, region.range_unit, unit_resolver)
    data_center = resolve_data_center(info, region.data_center, center,
                                      region.data_center_unit, unit_resolver)
    logger.debug("Resolved ranges=%s center=%s data_center=%s",
                 np.round(ranges, 6).tolist(), center, data_center)
    return ResolvedRegion(ranges=ranges, center=center, data_center=data_center)
