import numpy as np
import pandas as pd

from amrproj.amr import CellTable, SimInfo

UNIT_SCALE = {
    "kpc": 1.0,
    "pc": 1000.0,
    "Msol": 3.0,
    "Msol_pc2": 2.0,
    "km_s": 10.0,
}


def _field_values(spec, cx, cy, cz, rng):
    if callable(spec):
        return np.asarray(spec(cx, cy, cz), dtype=float)
    if isinstance(spec, str) and spec == "random":
        return rng.uniform(0.5, 2.0, size=cx.shape)
    return np.full(cx.shape, float(spec))


def make_uniform_cells(level=3, boxlen=1.0, fields=None, z_layers=None, seed=0,
                       levelmin=None, levelmax=None, scale=None):
    """
    Single-level table covering the whole box (or only ``z_layers``).

    ``fields`` maps column name -> scalar, "random", or f(cx, cy, cz).
    """
    n = 2 ** level
    rng = np.random.default_rng(seed)
    zs = np.arange(1, n + 1) if z_layers is None else np.asarray(z_layers)
    cx, cy, cz = np.meshgrid(np.arange(1, n + 1), np.arange(1, n + 1), zs, indexing="ij")
    cx, cy, cz = cx.ravel(), cy.ravel(), cz.ravel()

    data = {"level": np.full(cx.shape, level, dtype=np.int64), "cx": cx, "cy": cy, "cz": cz}
    for name, spec in (fields if fields is not None else {"rho": 1.0}).items():
        data[name] = _field_values(spec, cx, cy, cz, rng)

    info = SimInfo(
        boxlen=boxlen,
        levelmin=level if levelmin is None else levelmin,
        levelmax=level if levelmax is None else levelmax,
        scale=UNIT_SCALE if scale is None else scale,
    )
    return CellTable(pd.DataFrame(data), info)


def make_amr_cells(coarse=2, fine=3, boxlen=1.0, fields=None, seed=0):
    """
    Two-level table: the low-corner octant of the coarse grid is refined.

    Every point of the box is covered by exactly one leaf cell.
    """
    rng = np.random.default_rng(seed)
    n = 2 ** coarse
    c = np.arange(1, n + 1)
    cx, cy, cz = (a.ravel() for a in np.meshgrid(c, c, c, indexing="ij"))
    half = n // 2
    keep = ~((cx <= half) & (cy <= half) & (cz <= half))
    cx, cy, cz = cx[keep], cy[keep], cz[keep]
    lv = np.full(cx.shape, coarse, dtype=np.int64)

    factor = 2 ** (fine - coarse)
    f = np.arange(1, half * factor + 1)
    fx, fy, fz = (a.ravel() for a in np.meshgrid(f, f, f, indexing="ij"))
    flv = np.full(fx.shape, fine, dtype=np.int64)

    cx = np.concatenate([cx, fx])
    cy = np.concatenate([cy, fy])
    cz = np.concatenate([cz, fz])
    data = {"level": np.concatenate([lv, flv]), "cx": cx, "cy": cy, "cz": cz}
    for name, spec in (fields if fields is not None else {"rho": "random"}).items():
        data[name] = _field_values(spec, cx, cy, cz, rng)

    info = SimInfo(boxlen=boxlen, levelmin=coarse, levelmax=fine, scale=UNIT_SCALE)
    return CellTable(pd.DataFrame(data), info)


def total_mass(table, rows=None):
    df = table.data if rows is None else table.data.iloc[rows]
    size = table.info.boxlen / 2.0 ** df["level"].to_numpy()
    return float(np.sum(df["rho"].to_numpy() * size ** 3))
