"""Project AMR hydro cells onto a 2D map.

``AmrProjector`` runs the whole pipeline for one call:

1. normalize arguments and validate the cell table, mask, units and ranges;
2. classify variables and add helpers (``sd``/``mass``, dispersion moments);
3. evaluate every projected variable on the range-filtered cells;
4. rasterize level by level and accumulate;
5. finalize, build dispersion/radius/angle maps and apply units;
6. return an immutable ``MapBundle``.

Every caller error is raised in steps 1-3, before any rasterization.
"""

import logging
from typing import TYPE_CHECKING, Callable, Optional, Sequence, Union

import numpy as np

from amrproj.amr.amr_utils import COORD_COLUMNS, level_index_bounds
from amrproj.amr.table import CellTable, CellView, apply_mask
from amrproj.amr.units import STANDARD_UNIT, resolve_unit
from amrproj.amr.variables import VariableEvaluator
from amrproj.contracts import (
    MissingDensityFieldError,
    ProjectionError,
    assert_cell_table,
    assert_map_bundle,
)
from amrproj.projection.accumulator import LevelAccumulator, finalize_grid, weights_for
from amrproj.projection.bundle import MapBundle
from amrproj.projection.classifier import (
    ANGLE_VARIABLES,
    GEOMETRY_VARIABLES,
    TOTAL_VARIABLES,
    classify_variables,
)
from amrproj.projection.geometry import build_map_geometry, plane_axes, resolve_resolution
from amrproj.projection.postprocess import ANGLE_UNIT, postprocess_maps
from amrproj.projection.ranges import resolve_region
from amrproj.projection.rasterizer import LevelRasterizer
from amrproj.schemas import ParamConfig, UserConfig, resolve_config

if TYPE_CHECKING:
    from amrproj.schemas import InternalConfig

__all__ = ["AmrProjector", "projection", "select_range"]

logger = logging.getLogger(__name__)


def select_range(view: CellView, ranges: Sequence[float]) -> CellView:
    """Cells touching the fractional ``ranges`` box, level by level."""
    if len(view) == 0:
        return view
    level = view.column("level")
    keep = np.ones(len(view), dtype=bool)
    for i, axis in enumerate("xyz"):
        lo, hi = level_index_bounds(ranges[2 * i], ranges[2 * i + 1], level)
        c = view.column(COORD_COLUMNS[axis])
        keep &= (c >= lo) & (c <= hi)
    return view.take(keep)


class AmrProjector:
    """Project cell-based AMR data along x, y or z.

    Parameters
    ----------
    config : InternalConfig
        Resolved configuration (map geometry, weighting, region,
        rasterizer, execution, column names, logging).
    unit_resolver : callable, optional
        ``(info, unit_name) -> float``. Default: ``resolve_unit``.
    evaluator : callable, optional
        ``(view, name, center) -> ndarray``. Default: a
        ``VariableEvaluator`` using the configured column names.

    Notes
    -----
    Map bookkeeping follows the variable role:

    ===========  =============  ===========
    variable     maps_weight    maps_mode
    ===========  =============  ===========
    sd           None           None
    mass         None           "sum"
    geometry     None           None
    others       scheme         mode
    ===========  =============  ===========

    Examples
    --------
    >>> projector = AmrProjector(resolve_config(None, {"res": 64, "direction": "x"}))
    >>> bundle = projector.project(cells, ["sd", "vx"], units=["Msol_pc2", "km_s"])
    >>> bundle.maps["sd"].shape
    (64, 64)
    """

    def __init__(self, config: "InternalConfig", unit_resolver: Callable = resolve_unit,
                 evaluator: Optional[Callable] = None):
        self.config = config
        self.direction = config.map.direction
        self.scheme = config.weighting.scheme
        self.mode = config.weighting.mode
        self.density_var = config.global_.var_names.density
        self.max_workers = config.execution.max_workers
        self.show_progress = config.execution.show_progress
        self.unit_resolver = unit_resolver
        self.evaluator = evaluator or VariableEvaluator.from_config(config)
        self._log_level = logging.INFO if config.logging.verbose else logging.DEBUG

    def project(self, cells: Union[CellTable, CellView], variables: Union[str, Sequence[str]],
                units: Union[None, str, Sequence[str]] = None, mask=None,
                progress: Optional[Callable] = None) -> MapBundle:
        """Project ``variables`` of ``cells``.

        Parameters
        ----------
        cells : CellTable or CellView
            Input cells; never modified.
        variables : str or sequence of str
            Variables to map.
        units : str or sequence of str, optional
            One unit for all variables, or one per variable in order;
            missing entries mean ``"standard"``.
        mask : array-like of bool, optional
            One flag per row of ``cells``.
        progress : callable, optional
            ``progress(level, done, total)`` after each level.

        Returns
        -------
        MapBundle

        Raises
        ------
        UnsupportedDirectionError, InvalidRangeError, MissingDensityFieldError,
        MaskLengthMismatchError, UnknownVariableError, UnknownUnitError
            On invalid input; nothing is rasterized in that case.
        """
        view = cells.view() if isinstance(cells, CellTable) else cells
        info = view.info

        axes = plane_axes(self.direction)
        classification = classify_variables(variables, self.scheme)
        unit_names = self._unit_names(classification, variables, units)
        assert_cell_table(view.table)

        if mask is not None:
            view = apply_mask(view, mask)
        if self.scheme == "mass" and not view.has_column(self.density_var):
            raise MissingDensityFieldError(
                f"Mass weighting needs the density column '{self.density_var}', "
                f"which the cell table lacks",
                field=self.density_var,
                available=view.table.columns,
            )

        factors = {unit: self.unit_resolver(info, unit) for unit in set(unit_names.values())
                   if unit != ANGLE_UNIT}
        weight_scale = self.unit_resolver(info, self.config.weighting.unit)

        region = resolve_region(info, self.config.region, self.unit_resolver)
        res = resolve_resolution(info, self.config.map.res, self.config.map.pxsize,
                                 self.config.map.pxsize_unit, self.config.map.lmax,
                                 self.unit_resolver)
        geometry = build_map_geometry(info, region.ranges, region.data_center,
                                      self.direction, res)
        selected = select_range(view, region.ranges)

        layers = self._evaluate_layers(selected, classification.projected, region.center,
                                       weight_scale)

        logger.log(self._log_level,
                   "Projecting %s along %s: %d of %d cells, res=%d, map %dx%d, "
                   "weighting=%s, mode=%s",
                   list(classification.requested), self.direction, len(selected),
                   len(view.table), res, geometry.shape[0], geometry.shape[1],
                   self.scheme, self.mode)

        finalized = {}
        if layers:
            rasterizer = LevelRasterizer.from_config(self.config, geometry, info.boxlen)
            accumulator = LevelAccumulator(rasterizer, self.max_workers,
                                           progress or self._default_progress())
            level = selected.column("level")
            grids, weights = accumulator.accumulate(
                selected.column(COORD_COLUMNS[axes[0]]),
                selected.column(COORD_COLUMNS[axes[1]]),
                level, layers, info.levelmin, info.levelmax,
            )
            for name in layers:
                finalized[name] = finalize_grid(name, grids[name], weights[name],
                                                self.mode, geometry.pixel_area)

        maps, maps_unit = postprocess_maps(
            finalized, classification, geometry, region.data_center, info.boxlen,
            unit_names, lambda unit: factors.get(unit, 1.0),
        )

        bundle = MapBundle(
            maps=maps,
            maps_unit=maps_unit,
            maps_weight={name: self._map_weight(name) for name in maps},
            maps_mode={name: self._map_mode(name) for name in maps},
            direction=self.direction,
            axes=axes[:2],
            extent=geometry.extent,
            cextent=geometry.cextent,
            ratio=geometry.ratio,
            pixsize=geometry.pixsize,
            res=res,
            lmax_projected=geometry.lmax_projected,
            lmin=info.levelmin,
            lmax=info.levelmax,
            boxlen=info.boxlen,
            ranges=region.ranges,
            data_center=region.data_center,
            scale=dict(info.scale),
        )
        assert_map_bundle(bundle)
        return bundle

    # ------------------------------------------------------------------

    def _unit_names(self, classification, variables, units) -> dict:
        if isinstance(variables, str):
            variables = [variables]
        variables = [str(v).strip() for v in variables]
        if units is None:
            units = []
        elif isinstance(units, str):
            units = [units] * len(variables)
        names = {}
        for i, var in enumerate(variables):
            if var not in names:
                unit = units[i] if i < len(units) and units[i] is not None else STANDARD_UNIT
                names[var] = str(unit).strip().lstrip(":")
        for var in classification.working:
            names.setdefault(var, STANDARD_UNIT)
        for var in ANGLE_VARIABLES:
            if var in names:
                names[var] = ANGLE_UNIT
        return names

    def _evaluate_layers(self, view: CellView, projected: Sequence[str], center,
                         weight_scale: float = 1.0) -> dict:
        if not projected:
            return {}
        needs_mass = self.scheme == "mass" or any(name in TOTAL_VARIABLES for name in projected)
        mass = self.evaluator(view, "mass", center) if needs_mass else None
        layers = {}
        for name in projected:
            values = mass if name in TOTAL_VARIABLES else self.evaluator(view, name, center)
            if values.shape != (len(view),):
                raise ProjectionError(
                    f"Evaluator returned shape {values.shape} for '{name}', "
                    f"expected ({len(view)},)"
                )
            layers[name] = (values, weights_for(name, self.scheme, mass, len(view), weight_scale))
        return layers

    def _default_progress(self) -> Optional[Callable]:
        if not self.show_progress:
            return None

        def report(level, done, total):
            logger.info("Level %d done (%d/%d)", level, done, total)
        return report

    def _map_weight(self, name: str) -> Optional[str]:
        if name in TOTAL_VARIABLES or name in GEOMETRY_VARIABLES:
            return None
        return self.scheme

    def _map_mode(self, name: str) -> Optional[str]:
        if name == "mass":
            return "sum"
        if name == "sd" or name in GEOMETRY_VARIABLES:
            return None
        return self.mode


def projection(cells: Union[CellTable, CellView], variables: Union[str, Sequence[str]],
               units: Union[None, str, Sequence[str]] = None,
               options: Union[None, dict, UserConfig] = None, *,
               mask=None, config: Union[None, dict, ParamConfig] = None,
               progress: Optional[Callable] = None,
               unit_resolver: Callable = resolve_unit,
               evaluator: Optional[Callable] = None,
               **overrides) -> MapBundle:
    """Project ``variables`` of ``cells`` onto a 2D map.

    Parameters
    ----------
    cells : CellTable or CellView
        Input cells.
    variables : str or sequence of str
        Variables to map, e.g. ``["sd", "vx", "sigma_z", "r_cylinder"]``.
    units : str or sequence of str, optional
        One unit for all variables or one per variable.
    options : dict or UserConfig, optional
        Per-call options (``res``, ``direction``, ``weighting``, ``mode``,
        ``xrange``, ``center``, ...). Keyword ``overrides`` are merged on top.
    mask : array-like of bool, optional
        One flag per row of ``cells``.
    config : dict or ParamConfig, optional
        Expert defaults. Default: ``ParamConfig()``.
    progress : callable, optional
        ``progress(level, done, total)`` after each level.
    unit_resolver, evaluator : callable, optional
        Collaborators, see ``AmrProjector``.

    Returns
    -------
    MapBundle

    Examples
    --------
    >>> bundle = projection(cells, ["sd", "vx"], ["Msol_pc2", "km_s"],
    ...                     res=256, direction="y", xrange=[-5, 5],
    ...                     center=["bc"], range_unit="kpc")
    >>> sorted(bundle.maps)
    ['mass', 'sd', 'vx']
    """
    if isinstance(options, UserConfig):
        options = options.model_dump(exclude_none=True)
    user = {**(options or {}), **overrides}
    internal = resolve_config(config, user)
    projector = AmrProjector(internal, unit_resolver=unit_resolver, evaluator=evaluator)
    return projector.project(cells, variables, units, mask=mask, progress=progress)
