"""Projection engine.

- ranges: Range and center resolution
- geometry: Map resolution, pixel lattice, extents
- classifier: Projected / geometry / dispersion variables
- rasterizer: Exact area-overlap rasterization of one level
- accumulator: Level loop, reduction and finalization
- postprocess: Dispersion, radius/angle maps, units
- bundle: Immutable MapBundle
- projector: AmrProjector and projection()
"""

from amrproj.projection.bundle import MapBundle
from amrproj.projection.classifier import classify_variables
from amrproj.projection.projector import AmrProjector, projection
from amrproj.projection.rasterizer import LevelRasterizer, rasterize_level
from amrproj.projection.ranges import resolve_region

__all__ = [
    "MapBundle",
    "classify_variables",
    "AmrProjector",
    "projection",
    "LevelRasterizer",
    "rasterize_level",
    "resolve_region",
]
