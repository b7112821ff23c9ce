"""Split requested variables into projected, geometry and dispersion groups."""

import logging
from typing import NamedTuple, Sequence, Union

from amrproj.contracts import ProjectionError

__all__ = [
    "VariableClassification",
    "classify_variables",
    "GEOMETRY_VARIABLES",
    "RADIUS_VARIABLES",
    "ANGLE_VARIABLES",
    "DISPERSION_MOMENTS",
    "TOTAL_VARIABLES",
]

logger = logging.getLogger(__name__)

RADIUS_VARIABLES = ("r_cylinder", "r_sphere")
ANGLE_VARIABLES = ("phi",)
GEOMETRY_VARIABLES = RADIUS_VARIABLES + ANGLE_VARIABLES

# sigma name -> (first moment, second moment)
DISPERSION_MOMENTS = {
    "sigma_x": ("vx", "vx2"),
    "sigma_y": ("vy", "vy2"),
    "sigma_z": ("vz", "vz2"),
    "sigma": ("v", "v2"),
    "sigma_r_cylinder": ("vr_cylinder", "vr_cylinder2"),
    "sigma_phi_cylinder": ("vphi_cylinder", "vphi_cylinder2"),
}

# Column totals: weighted by 1, finalized without dividing by weights
TOTAL_VARIABLES = ("sd", "mass")


class VariableClassification(NamedTuple):
    """Result of ``classify_variables``.

    Attributes
    ----------
    requested : tuple
        Caller's variables, deduplicated, in order.
    working : tuple
        ``requested`` plus auto-added helpers.
    projected : tuple
        Variables that go through the rasterizer.
    geometry : tuple
        Radius and angle maps computed per pixel.
    dispersion : dict
        Requested sigma variable -> (m1, m2) moment names.
    dropped : tuple
        Auto-added moment helpers removed from the final bundle.
    """
    requested: tuple
    working: tuple
    projected: tuple
    geometry: tuple
    dispersion: dict
    dropped: tuple


def _dedupe(names) -> list:
    seen = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen


def classify_variables(requested: Union[str, Sequence[str]],
                       weighting: str = "mass") -> VariableClassification:
    """Classify ``requested`` and work out which helpers it needs.

    Every sigma variable pulls in its two moments. Under ``mass``
    weighting, ``sd`` and ``mass`` are added whenever something other
    than a geometry map is requested. The caller's sequence is copied,
    never modified.

    Raises
    ------
    ProjectionError
        If no variables are requested.
    """
    if isinstance(requested, str):
        requested = [requested]
    requested = _dedupe(str(name).strip() for name in requested)
    if not requested:
        raise ProjectionError("No variables requested")

    working = list(requested)
    dispersion = {}
    for name in requested:
        if name in DISPERSION_MOMENTS:
            dispersion[name] = DISPERSION_MOMENTS[name]
            for moment in DISPERSION_MOMENTS[name]:
                if moment not in working:
                    working.append(moment)

    has_non_geometry = any(name not in GEOMETRY_VARIABLES for name in working)
    if weighting == "mass" and has_non_geometry:
        for name in TOTAL_VARIABLES:
            if name not in working:
                working.append(name)

    geometry = tuple(name for name in working if name in GEOMETRY_VARIABLES)
    projected = tuple(
        name for name in working
        if name not in GEOMETRY_VARIABLES and name not in DISPERSION_MOMENTS
    )
    dropped = tuple(
        moment
        for pair in dispersion.values()
        for moment in pair
        if moment not in requested
    )

    classification = VariableClassification(
        requested=tuple(requested),
        working=tuple(working),
        projected=projected,
        geometry=geometry,
        dispersion=dispersion,
        dropped=tuple(_dedupe(dropped)),
    )
    logger.debug("Variables: projected=%s geometry=%s dispersion=%s",
                 projected, geometry, list(dispersion))
    return classification
