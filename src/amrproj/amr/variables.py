"""Per-cell evaluation of raw and derived hydro variables.

The projector asks an evaluator for one float array per requested
variable. Columns present in the cell table are returned as-is; a small
set of derived quantities is computed from the density, velocity and
pressure columns and from the cell geometry.

Derived variables
-----------------
cellsize, volume, mass, level
    Cell geometry and ``rho * cellsize**3``.
x, y, z
    Physical cell centers.
v, v2, vx2, vy2, vz2
    Speed, squared speed and squared velocity components.
r_cylinder, r_sphere
    Distance from the center, in the xy-plane and in 3D.
vr_cylinder, vphi_cylinder (and their squares with suffix ``2``)
    Cylindrical radial and azimuthal velocity about the z-axis through
    the center.
cs
    Sound speed ``sqrt(gamma * p / rho)``.
ekin
    Kinetic energy ``0.5 * mass * v**2``.
"""

import logging
from typing import TYPE_CHECKING, Callable, Optional, Sequence

import numpy as np

from amrproj.amr.amr_utils import cell_centers, cell_size
from amrproj.amr.table import CellView
from amrproj.contracts import MissingDensityFieldError, UnknownVariableError

if TYPE_CHECKING:
    from amrproj.schemas import InternalConfig

__all__ = ["VariableEvaluator", "evaluate_variable"]

logger = logging.getLogger(__name__)


class VariableEvaluator:
    """Evaluate variables on a ``CellView``.

    Parameters
    ----------
    density, vx, vy, vz, pressure : str
        Column names of the hydro fields derived variables are built from.

    Notes
    -----
    Instances are callable with the signature
    ``evaluator(view, name, center=None)``, where ``center`` is a
    fractional 3-vector (box units). ``center`` defaults to the box center.
    """

    def __init__(self, density: str = "rho", vx: str = "vx", vy: str = "vy",
                 vz: str = "vz", pressure: str = "p"):
        self.density = density
        self.vx = vx
        self.vy = vy
        self.vz = vz
        self.pressure = pressure
        self._derived: dict[str, Callable] = {
            "level": lambda view, c: view.column("level").astype(np.float64),
            "cellsize": self._cellsize,
            "volume": lambda view, c: self._cellsize(view, c) ** 3,
            "mass": self._mass,
            "x": lambda view, c: self._position(view, "cx"),
            "y": lambda view, c: self._position(view, "cy"),
            "z": lambda view, c: self._position(view, "cz"),
            "v": lambda view, c: np.sqrt(self._speed2(view)),
            "v2": lambda view, c: self._speed2(view),
            "vx2": lambda view, c: self._field(view, self.vx) ** 2,
            "vy2": lambda view, c: self._field(view, self.vy) ** 2,
            "vz2": lambda view, c: self._field(view, self.vz) ** 2,
            "r_cylinder": lambda view, c: np.hypot(*self._offsets(view, c)[:2]),
            "r_sphere": lambda view, c: np.sqrt(sum(d ** 2 for d in self._offsets(view, c))),
            "vr_cylinder": self._vr_cylinder,
            "vr_cylinder2": lambda view, c: self._vr_cylinder(view, c) ** 2,
            "vphi_cylinder": self._vphi_cylinder,
            "vphi_cylinder2": lambda view, c: self._vphi_cylinder(view, c) ** 2,
            "cs": self._sound_speed,
            "ekin": lambda view, c: 0.5 * self._mass(view, c) * self._speed2(view),
        }

    @classmethod
    def from_config(cls, config: "InternalConfig") -> "VariableEvaluator":
        names = config.global_.var_names
        return cls(density=names.density, vx=names.vx, vy=names.vy,
                   vz=names.vz, pressure=names.pressure)

    @property
    def derived_names(self) -> tuple:
        return tuple(self._derived)

    def __call__(self, view: CellView, name: str,
                 center: Optional[Sequence[float]] = None) -> np.ndarray:
        """Evaluate ``name`` for every row of ``view``.

        Raises
        ------
        UnknownVariableError
            If ``name`` is neither a column nor a derived variable, or a
            column it is derived from is missing.
        """
        if center is None:
            center = (0.5, 0.5, 0.5)
        if view.has_column(name):
            return view.column(name).astype(np.float64, copy=False)
        func = self._derived.get(name)
        if func is None:
            raise UnknownVariableError(
                f"Unknown variable '{name}': not a cell table column and not derivable",
                variable=name,
            )
        try:
            return np.asarray(func(view, center), dtype=np.float64)
        except UnknownVariableError as err:
            raise UnknownVariableError(
                f"Cannot evaluate '{name}': {err}", variable=name
            ) from err

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _field(self, view, column):
        return view.column(column).astype(np.float64, copy=False)

    def _cellsize(self, view, center=None):
        return cell_size(view.column("level"), view.info.boxlen)

    def _position(self, view, coord):
        return cell_centers(view.column(coord), view.column("level"), view.info.boxlen)

    def _offsets(self, view, center):
        boxlen = view.info.boxlen
        return tuple(
            self._position(view, coord) - center[i] * boxlen
            for i, coord in enumerate(("cx", "cy", "cz"))
        )

    def _mass(self, view, center=None):
        if not view.has_column(self.density):
            raise MissingDensityFieldError(
                f"Cell table has no density column '{self.density}'",
                field=self.density,
                available=view.table.columns,
            )
        return self._field(view, self.density) * self._cellsize(view) ** 3

    def _speed2(self, view):
        return (self._field(view, self.vx) ** 2
                + self._field(view, self.vy) ** 2
                + self._field(view, self.vz) ** 2)

    def _cylinder_frame(self, view, center):
        dx, dy, _ = self._offsets(view, center)
        r = np.hypot(dx, dy)
        with np.errstate(divide="ignore", invalid="ignore"):
            cos_p = np.where(r > 0, dx / r, 0.0)
            sin_p = np.where(r > 0, dy / r, 0.0)
        return cos_p, sin_p

    def _vr_cylinder(self, view, center):
        cos_p, sin_p = self._cylinder_frame(view, center)
        return self._field(view, self.vx) * cos_p + self._field(view, self.vy) * sin_p

    def _vphi_cylinder(self, view, center):
        cos_p, sin_p = self._cylinder_frame(view, center)
        return self._field(view, self.vy) * cos_p - self._field(view, self.vx) * sin_p

    def _sound_speed(self, view, center=None):
        rho = self._field(view, self.density)
        p = self._field(view, self.pressure)
        with np.errstate(divide="ignore", invalid="ignore"):
            return np.sqrt(view.info.gamma * p / rho)


_default_evaluator = VariableEvaluator()


def evaluate_variable(view: CellView, name: str,
                      center: Optional[Sequence[float]] = None) -> np.ndarray:
    """Evaluate ``name`` with the default column names (rho, vx, vy, vz, p)."""
    return _default_evaluator(view, name, center)
