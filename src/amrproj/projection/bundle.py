"""Immutable result of one projection."""

from typing import Optional

import numpy as np
import xarray as xr
from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = ["MapBundle"]


class MapBundle(BaseModel):
    """Projected maps plus the metadata needed to place and interpret them.

    Attributes
    ----------
    maps : dict of str -> ndarray
        2D maps of shape ``(length1, length2)``, indexed ``[i, j]`` along
        the first and second in-plane axes. Arrays are read-only.
    maps_unit : dict of str -> str
        Unit tag of every map.
    maps_weight : dict of str -> str or None
        Weighting scheme behind every map (None for ``sd``, ``mass`` and
        geometry maps).
    maps_mode : dict of str -> str or None
        ``"average"`` or ``"sum"`` (``mass`` is always ``"sum"``; None for
        ``sd`` and geometry maps).
    extent, cextent : tuple of float
        ``(min1, max1, min2, max2)`` of the map, absolute and relative to
        the data center.
    ratio : float
        ``(max1 - min1) / (max2 - min2)``.
    pixsize : float
        Physical pixel edge length.
    res : int
        Pixels across the full box.
    lmax_projected : int
        Level whose cell size equals the pixel size.
    lmin, lmax : int
        Levels spanned by the cell table.
    ranges : tuple of float
        Fractional selection ``(xmin, xmax, ymin, ymax, zmin, zmax)``.
    data_center : tuple of float
        Fractional data center.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True, extra="forbid")

    maps: dict[str, np.ndarray]
    maps_unit: dict[str, str]
    maps_weight: dict[str, Optional[str]]
    maps_mode: dict[str, Optional[str]]
    direction: str
    axes: tuple[str, str]
    extent: tuple[float, float, float, float]
    cextent: tuple[float, float, float, float]
    ratio: float
    pixsize: float
    res: int
    lmax_projected: int
    lmin: int
    lmax: int
    boxlen: float
    ranges: tuple[float, float, float, float, float, float]
    data_center: tuple[float, float, float]
    scale: dict[str, float] = Field(default_factory=dict)

    @field_validator("maps")
    @classmethod
    def freeze_arrays(cls, v):
        """Maps are handed out read-only."""
        frozen = {}
        for name, grid in v.items():
            grid = np.array(grid, dtype=np.float64)
            grid.setflags(write=False)
            frozen[name] = grid
        return frozen

    @property
    def shape(self) -> tuple:
        return (int(round((self.extent[1] - self.extent[0]) / self.pixsize)),
                int(round((self.extent[3] - self.extent[2]) / self.pixsize)))

    def __getitem__(self, name: str) -> np.ndarray:
        return self.maps[name]

    def __contains__(self, name: str) -> bool:
        return name in self.maps

    def pixel_centers(self) -> tuple:
        """Absolute pixel-center coordinates along both in-plane axes."""
        n1, n2 = self.shape
        c1 = self.extent[0] + (np.arange(n1) + 0.5) * self.pixsize
        c2 = self.extent[2] + (np.arange(n2) + 0.5) * self.pixsize
        return c1, c2

    def to_dataset(self) -> xr.Dataset:
        """Export the maps as an ``xarray.Dataset``.

        Dimensions are named after the in-plane axes and carry pixel-center
        coordinates; per-map unit, weighting and mode go to variable attrs.
        """
        dim1, dim2 = self.axes
        c1, c2 = self.pixel_centers()
        data_vars = {}
        for name, grid in self.maps.items():
            attrs = {"units": self.maps_unit[name]}
            if self.maps_weight[name] is not None:
                attrs["weighting"] = self.maps_weight[name]
            if self.maps_mode[name] is not None:
                attrs["mode"] = self.maps_mode[name]
            data_vars[name] = ((dim1, dim2), np.array(grid), attrs)
        return xr.Dataset(
            data_vars=data_vars,
            coords={dim1: c1, dim2: c2},
            attrs={
                "direction": self.direction,
                "pixsize": self.pixsize,
                "res": self.res,
                "boxlen": self.boxlen,
                "lmin": self.lmin,
                "lmax": self.lmax,
                "lmax_projected": self.lmax_projected,
                "extent": list(self.extent),
                "cextent": list(self.cextent),
                "ranges": list(self.ranges),
                "data_center": list(self.data_center),
            },
        )
