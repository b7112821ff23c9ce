"""End-to-end tests for AmrProjector and projection()."""

import logging

import numpy as np
import pytest

from amrproj import projection
from amrproj.contracts import (
    InvalidRangeError,
    MaskLengthMismatchError,
    MissingDensityFieldError,
    UnknownUnitError,
    UnknownVariableError,
    UnsupportedDirectionError,
)
from amrproj.projection import AmrProjector
from amrproj.projection.projector import select_range
from amrproj.schemas import UserConfig
from tests.helpers.fake_cells import UNIT_SCALE, make_uniform_cells, total_mass

pytestmark = pytest.mark.unit


def _cube(table, column):
    """Single-level table -> 3D array indexed [cx-1, cy-1, cz-1]."""
    df = table.data
    n = 2 ** int(df["level"].iloc[0])
    out = np.zeros((n, n, n))
    out[df["cx"] - 1, df["cy"] - 1, df["cz"] - 1] = df[column].to_numpy()
    return out


@pytest.fixture
def random_cube():
    return make_uniform_cells(level=3, fields={"rho": "random", "vx": "random",
                                               "vz": "random"}, seed=7)


class TestMassConservation:
    """Projected mass equals the mass of the selected cells."""

    @pytest.mark.parametrize("res", [16, 10, 7, 33])
    def test_multi_level_any_res(self, amr_cells, res):
        bundle = projection(amr_cells, ["sd", "mass"], res=res)
        expected = total_mass(amr_cells)

        assert bundle["mass"].sum() == pytest.approx(expected, rel=1e-10)
        assert bundle["sd"].sum() * bundle.pixsize ** 2 == pytest.approx(expected, rel=1e-10)

    @pytest.mark.parametrize("direction", ["x", "y", "z"])
    def test_every_direction(self, amr_cells, direction):
        bundle = projection(amr_cells, "mass", res=12, direction=direction)
        assert bundle["mass"].sum() == pytest.approx(total_mass(amr_cells), rel=1e-10)

    def test_aligned_subrange(self, amr_cells):
        bundle = projection(amr_cells, "mass", res=16, xrange=[0.25, 0.75],
                            zrange=[0.5, 1.0])
        df = amr_cells.data
        n = 2 ** df["level"]
        inside = ((df["cx"] > 0.25 * n) & (df["cx"] <= 0.75 * n)
                  & (df["cz"] > 0.5 * n))

        assert bundle.shape == (8, 16)
        assert bundle["mass"].sum() == pytest.approx(
            total_mass(amr_cells, np.flatnonzero(inside.to_numpy())), rel=1e-10)

    def test_unaligned_subrange_is_clipped(self, amr_cells):
        bundle = projection(amr_cells, "mass", res=10, xrange=[0.3, 0.7])
        df = amr_cells.data
        n = 2.0 ** df["level"].to_numpy()
        cx = df["cx"].to_numpy()
        size = 1.0 / n
        lo, hi = (cx - 1) * size, cx * size
        frac = np.clip(np.minimum(hi, 0.7) - np.maximum(lo, 0.3), 0.0, None) / size
        expected = np.sum(df["rho"].to_numpy() * size ** 3 * frac)

        # Edge cells straddle 0.3 and 0.7 and only their inner part lands on the map
        touched = (cx > np.floor(0.3 * n)) & (cx <= np.ceil(0.7 * n))
        assert bundle.shape == (4, 10)
        assert bundle["mass"].sum() == pytest.approx(expected, rel=1e-10)
        assert bundle["mass"].sum() < total_mass(amr_cells, np.flatnonzero(touched))

    def test_masked_cells(self, amr_cells):
        mask = np.arange(len(amr_cells)) % 2 == 0
        bundle = projection(amr_cells, "mass", res=11, mask=mask)

        assert bundle["mass"].sum() == pytest.approx(
            total_mass(amr_cells, np.flatnonzero(mask)), rel=1e-10)

    def test_input_not_modified(self, amr_cells):
        before = amr_cells.data.copy()
        projection(amr_cells, ["sd", "vx"], res=8, mask=np.ones(len(amr_cells), dtype=bool))
        assert amr_cells.data.equals(before)


class TestConcreteScenario:
    """Uniform level-6 slab in a 48-unit box."""

    def test_surface_density_per_pixel(self):
        cells = make_uniform_cells(level=6, boxlen=48.0, fields={"rho": 1e-5}, z_layers=[32])
        bundle = projection(cells, "sd", res=64)

        assert bundle.shape == (64, 64)
        np.testing.assert_allclose(bundle["sd"], 1e-5 * 48.0 / 2 ** 6, rtol=1e-12)
        assert bundle.extent == pytest.approx((0.0, 48.0, 0.0, 48.0))
        assert bundle.lmax_projected == 6


class TestDirectionSymmetry:
    """Projections of a cube along x, y and z are axis sums."""

    @pytest.mark.parametrize("direction, axis, axes", [
        ("z", 2, ("x", "y")),
        ("y", 1, ("x", "z")),
        ("x", 0, ("y", "z")),
    ])
    def test_sd_is_column_sum(self, random_cube, direction, axis, axes):
        bundle = projection(random_cube, "sd", res=8, direction=direction)
        rho = _cube(random_cube, "rho")

        assert bundle.axes == axes
        np.testing.assert_allclose(bundle["sd"], rho.sum(axis=axis) / 8, rtol=1e-12)

    def test_total_mass_independent_of_direction(self, random_cube):
        totals = [projection(random_cube, "mass", res=5, direction=d)["mass"].sum()
                  for d in "xyz"]
        assert totals[0] == pytest.approx(totals[1], rel=1e-12)
        assert totals[0] == pytest.approx(totals[2], rel=1e-12)


class TestWeighting:
    """Mass/volume weighting and average/sum modes."""

    def test_mass_weighted_average(self, random_cube):
        bundle = projection(random_cube, "vx", res=8)
        rho, vx = _cube(random_cube, "rho"), _cube(random_cube, "vx")

        np.testing.assert_allclose(bundle["vx"], (rho * vx).sum(axis=2) / rho.sum(axis=2),
                                   rtol=1e-12)

    def test_volume_weighted_average(self, random_cube):
        bundle = projection(random_cube, "vx", res=8, weighting="volume")
        np.testing.assert_allclose(bundle["vx"], _cube(random_cube, "vx").mean(axis=2),
                                   rtol=1e-12)
        assert sorted(bundle.maps) == ["vx"]

    def test_volume_weighted_sum(self):
        cells = make_uniform_cells(level=3, fields={"vx": 1.0})
        bundle = projection(cells, "vx", res=8, weighting="volume", mode="sum")
        np.testing.assert_allclose(bundle["vx"], 8.0, rtol=1e-12)
        assert bundle.maps_mode["vx"] == "sum"

    def test_average_is_bounded(self, amr_cells):
        bundle = projection(amr_cells, ["vx", "vy"], res=13)
        for name in ("vx", "vy"):
            values = amr_cells.data[name]
            assert bundle[name].min() >= values.min() - 1e-12
            assert bundle[name].max() <= values.max() + 1e-12

    def test_uncovered_pixels_are_zero(self):
        cells = make_uniform_cells(level=3, fields={"rho": 1.0, "vx": 2.0})
        mask = cells.data["cx"].to_numpy() <= 4
        bundle = projection(cells, "vx", res=8, mask=mask)

        np.testing.assert_allclose(bundle["vx"][:4], 2.0, rtol=1e-12)
        assert not bundle["vx"][4:].any()


class TestDispersion:
    """sigma maps from first and second moments."""

    def test_sigma_matches_weighted_std(self, random_cube):
        bundle = projection(random_cube, "sigma_z", res=8)
        rho, vz = _cube(random_cube, "rho"), _cube(random_cube, "vz")
        mean = (rho * vz).sum(axis=2) / rho.sum(axis=2)
        mean2 = (rho * vz ** 2).sum(axis=2) / rho.sum(axis=2)

        np.testing.assert_allclose(bundle["sigma_z"], np.sqrt(mean2 - mean ** 2), rtol=1e-8)
        assert (bundle["sigma_z"] >= 0).all()

    def test_helper_moments_dropped(self, random_cube):
        bundle = projection(random_cube, ["sigma_z"], res=4)
        assert sorted(bundle.maps) == ["mass", "sd", "sigma_z"]

    def test_requested_moment_kept_with_own_unit(self, random_cube):
        bundle = projection(random_cube, ["sigma_z", "vz"], ["km_s", "standard"], res=4)
        plain = projection(random_cube, ["sigma_z", "vz"], res=4)

        assert "vz2" not in bundle
        np.testing.assert_allclose(bundle["vz"], plain["vz"])
        np.testing.assert_allclose(bundle["sigma_z"], 10.0 * plain["sigma_z"])

    def test_uniform_velocity_has_zero_dispersion(self):
        cells = make_uniform_cells(level=3, fields={"rho": "random", "vx": 3.0})
        bundle = projection(cells, "sigma_x", res=8)
        np.testing.assert_allclose(bundle["sigma_x"], 0.0, atol=1e-6)
        assert (bundle["sigma_x"] >= 0).all()


class TestUnitsAndBookkeeping:
    """Unit factors, unit tags and weight/mode bookkeeping."""

    def test_units_per_variable(self):
        cells = make_uniform_cells(level=3, fields={"rho": 1.0, "vx": 1.0})
        bundle = projection(cells, ["sd", "vx"], ["Msol_pc2", "km_s"], res=8)

        np.testing.assert_allclose(bundle["sd"], UNIT_SCALE["Msol_pc2"], rtol=1e-12)
        np.testing.assert_allclose(bundle["vx"], UNIT_SCALE["km_s"], rtol=1e-12)
        assert bundle.maps_unit == {"sd": "Msol_pc2", "vx": "km_s", "mass": "standard"}

    def test_single_unit_for_all(self, random_cube):
        bundle = projection(random_cube, ["vx", "vz"], "km_s", res=4)
        assert bundle.maps_unit["vx"] == bundle.maps_unit["vz"] == "km_s"
        assert bundle.maps_unit["sd"] == "standard"

    def test_second_moment_scaled_by_square(self, random_cube):
        plain = projection(random_cube, "vx2", res=4)
        scaled = projection(random_cube, "vx2", "km_s", res=4)
        np.testing.assert_allclose(scaled["vx2"], 100.0 * plain["vx2"], rtol=1e-12)

    def test_weight_and_mode_table(self, random_cube):
        bundle = projection(random_cube, ["sd", "mass", "vx", "r_cylinder", "phi"], res=4)

        assert bundle.maps_weight == {"sd": None, "mass": None, "vx": "mass",
                                      "r_cylinder": None, "phi": None}
        assert bundle.maps_mode == {"sd": None, "mass": "sum", "vx": "average",
                                    "r_cylinder": None, "phi": None}
        assert bundle.maps_unit["phi"] == "radian"

    def test_volume_weighting_tag(self, random_cube):
        bundle = projection(random_cube, "vx", res=4, weighting="volume", mode="sum")
        assert bundle.maps_weight == {"vx": "volume"}
        assert bundle.maps_mode == {"vx": "sum"}

    def test_weighting_unit_pair(self, random_cube):
        plain = projection(random_cube, "vx", res=4)
        scaled = projection(random_cube, "vx", res=4, weighting=["mass", "Msol"])
        np.testing.assert_allclose(scaled["vx"], plain["vx"], rtol=1e-12)


class TestGeometryVariables:
    """Radius and angle maps."""

    def test_geometry_only_needs_no_fields(self):
        cells = make_uniform_cells(level=2, fields={"temp": 1.0})
        bundle = projection(cells, ["r_cylinder", "phi"], res=4, weighting="volume")

        assert sorted(bundle.maps) == ["phi", "r_cylinder"]
        assert bundle["r_cylinder"][0, 0] == pytest.approx(np.hypot(0.125, 0.125))

    def test_radius_follows_data_center(self, random_cube):
        bundle = projection(random_cube, "r_cylinder", ["kpc"], res=4,
                            data_center=["bc", "bc", None])
        assert bundle["r_cylinder"][0, 0] == pytest.approx(np.hypot(0.375, 0.375))
        assert bundle["r_cylinder"][1, 2] == pytest.approx(np.hypot(0.125, 0.125))
        assert bundle.cextent == pytest.approx((-0.5, 0.5, -0.5, 0.5))


class TestRegionSelection:
    """Ranges, centers and map extents."""

    def test_physical_range_around_box_center(self):
        cells = make_uniform_cells(level=4, boxlen=48.0, fields={"rho": 1.0})
        bundle = projection(cells, "sd", res=16, xrange=[-12, 12], yrange=[-6, 6],
                            center=["bc"], range_unit="kpc")

        assert bundle.extent == pytest.approx((12.0, 36.0, 18.0, 30.0))
        assert bundle.cextent == pytest.approx((-12.0, 12.0, -6.0, 6.0))
        assert bundle.ratio == pytest.approx(2.0)
        assert bundle.ranges[:4] == pytest.approx((0.25, 0.75, 0.375, 0.625))
        np.testing.assert_allclose(bundle["sd"], 48.0, rtol=1e-12)

    def test_thin_slab(self):
        cells = make_uniform_cells(level=3, fields={"rho": 1.0})
        bundle = projection(cells, "mass", res=8, zrange=[0.5, 0.5])
        # one layer of 64 cells starts at z = 0.5
        assert bundle["mass"].sum() == pytest.approx(64 / 8 ** 3, rel=1e-12)

    def test_select_range_per_level(self, amr_cells):
        view = select_range(amr_cells.view(), (0.0, 0.25, 0.0, 1.0, 0.0, 1.0))
        level = view.column("level")
        cx = view.column("cx")
        assert (cx[level == 2] == 1).all()
        assert (cx[level == 3] <= 2).all()
        assert len(view) > 0


class TestOptions:
    """Option handling of projection() and AmrProjector."""

    def test_keyword_overrides_options(self, uniform_cells):
        bundle = projection(uniform_cells, "sd", options={"res": 4, "direction": "x"}, res=8)
        assert bundle.shape == (8, 8)
        assert bundle.direction == "x"

    def test_user_config_options(self, uniform_cells):
        bundle = projection(uniform_cells, "sd", options=UserConfig(RES=2, DIRECTION=":Y"))
        assert bundle.res == 2
        assert bundle.direction == "y"

    def test_default_res_from_levelmax(self, amr_cells):
        bundle = projection(amr_cells, "sd")
        assert bundle.res == 8
        assert (bundle.lmin, bundle.lmax) == (2, 3)

    def test_pxsize(self):
        cells = make_uniform_cells(level=3, boxlen=2.0)
        bundle = projection(cells, "sd", pxsize=[500.0, "pc"])
        assert bundle.res == 4

    def test_pxsize_wins_over_res(self):
        cells = make_uniform_cells(level=3, boxlen=2.0)
        bundle = projection(cells, "sd", res=16, pxsize=[500.0, "pc"])
        assert bundle.res == 4
        assert bundle.pixsize == pytest.approx(0.5)
        assert bundle.shape == (4, 4)

    def test_projector_reusable(self, make_config, amr_cells, random_cube):
        projector = AmrProjector(make_config(res=4))
        first = projector.project(amr_cells, ["sd"])
        second = projector.project(random_cube, ["sd"])
        assert first.shape == second.shape == (4, 4)

    def test_custom_evaluator(self, uniform_cells):
        calls = []

        def evaluator(view, name, center):
            calls.append(name)
            return np.ones(len(view))

        bundle = projection(uniform_cells, "anything", res=4, weighting="volume",
                            evaluator=evaluator)
        assert calls == ["anything"]
        np.testing.assert_allclose(bundle["anything"], 1.0)


class TestExecution:
    """Strategies, workers and progress do not change results."""

    def test_binned_matches_direct(self, amr_cells):
        direct = projection(amr_cells, ["sd", "vx"], res=24, strategy="direct")
        binned = projection(amr_cells, ["sd", "vx"], res=24, strategy="binned",
                            rasterizer={"min_bin_size": 1})
        for name in direct.maps:
            np.testing.assert_allclose(binned[name], direct[name], rtol=1e-12, atol=1e-15)

    def test_workers(self, amr_cells):
        serial = projection(amr_cells, ["sd", "vx"], res=9)
        threaded = projection(amr_cells, ["sd", "vx"], res=9, max_workers=4)
        for name in serial.maps:
            np.testing.assert_array_equal(threaded[name], serial[name])

    def test_progress(self, amr_cells):
        calls = []
        projection(amr_cells, "sd", res=4, progress=lambda *a: calls.append(a))
        assert calls == [(2, 1, 2), (3, 2, 2)]

    def test_empty_levels_do_not_change_maps(self):
        tight = make_uniform_cells(level=3, fields={"rho": "random", "vx": "random"})
        wide = make_uniform_cells(level=3, fields={"rho": "random", "vx": "random"},
                                  levelmin=1, levelmax=6)
        a = projection(tight, ["sd", "vx"], res=8)
        b = projection(wide, ["sd", "vx"], res=8)
        for name in a.maps:
            np.testing.assert_array_equal(b[name], a[name])

    def test_verbose_summary(self, uniform_cells, caplog):
        with caplog.at_level(logging.INFO, logger="amrproj"):
            projection(uniform_cells, "sd", res=4, verbose=True)
        assert "Projecting ['sd'] along z" in caplog.text

    def test_quiet_by_default(self, uniform_cells, caplog):
        with caplog.at_level(logging.INFO, logger="amrproj"):
            projection(uniform_cells, "sd", res=4)
        assert "Projecting" not in caplog.text


class TestErrors:
    """Caller errors are raised before any rasterization."""

    @pytest.fixture
    def calls(self):
        return []

    def _run(self, cells, variables, calls, **kwargs):
        return projection(cells, variables, progress=lambda *a: calls.append(a), **kwargs)

    def test_unsupported_direction(self, uniform_cells, calls):
        with pytest.raises(UnsupportedDirectionError):
            self._run(uniform_cells, "sd", calls, direction="w")
        assert calls == []

    def test_missing_density(self, calls):
        cells = make_uniform_cells(level=2, fields={"vx": 1.0})
        with pytest.raises(MissingDensityFieldError) as exc:
            self._run(cells, "vx", calls)
        assert exc.value.field == "rho"
        assert "vx" in exc.value.available
        assert calls == []

    def test_missing_density_with_geometry_only(self, calls):
        cells = make_uniform_cells(level=2, fields={"vx": 1.0})
        with pytest.raises(MissingDensityFieldError):
            self._run(cells, "r_cylinder", calls)

    def test_custom_density_column(self):
        cells = make_uniform_cells(level=2, fields={"dens": 1.0})
        bundle = projection(cells, "sd", res=4, density_var="dens")
        np.testing.assert_allclose(bundle["sd"], 1.0, rtol=1e-12)

    def test_mask_length(self, uniform_cells, calls):
        with pytest.raises(MaskLengthMismatchError):
            self._run(uniform_cells, "sd", calls, mask=np.ones(3, dtype=bool))
        assert calls == []

    def test_unknown_variable(self, uniform_cells, calls):
        with pytest.raises(UnknownVariableError) as exc:
            self._run(uniform_cells, ["sd", "entropy"], calls)
        assert exc.value.variable == "entropy"
        assert calls == []

    def test_unknown_unit(self, uniform_cells, calls):
        with pytest.raises(UnknownUnitError):
            self._run(uniform_cells, ["sd"], calls, units=["Msun_per_pc2"])
        assert calls == []

    def test_inverted_range(self, uniform_cells, calls):
        with pytest.raises(InvalidRangeError):
            self._run(uniform_cells, "sd", calls, xrange=[0.6, 0.2])
        assert calls == []
