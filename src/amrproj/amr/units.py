"""Unit lookup against a simulation's scale table."""

import logging
from amrproj.amr.info import SimInfo
from amrproj.contracts import UnknownUnitError

__all__ = ["resolve_unit", "STANDARD_UNIT"]

logger = logging.getLogger(__name__)

STANDARD_UNIT = "standard"


def resolve_unit(info: SimInfo, unit_name) -> float:
    """Return the multiplier that converts code units into ``unit_name``.

    ``"standard"`` (or ``None``) means code units and returns 1.0.

    Raises
    ------
    UnknownUnitError
        If the unit is not in ``info.scale``.
    """
    if unit_name is None:
        return 1.0
    name = str(unit_name).strip().lstrip(":")
    if name == STANDARD_UNIT:
        return 1.0
    try:
        return float(info.scale[name])
    except KeyError:
        known = ", ".join(sorted(info.scale)) or "none"
        raise UnknownUnitError(
            f"Unknown unit '{name}' (known units: {known})", unit=name
        ) from None
