"""Tests for polar to Cartesian PPI projection."""

import math

import numpy as np
import pytest

from radvol.contracts import InvalidExtentError, NotFoundError
from radvol.radar.ppi_projector import PPIProjector, grid_axis, project

pytestmark = pytest.mark.unit


@pytest.fixture
def index_scan(make_scan):
    """360 rays x 20 bins of 1 km; RAY holds the ray index, BIN the bin index."""
    nrays, nbins = 360, 20
    ray = np.repeat(np.arange(nrays, dtype=float)[:, None], nbins, axis=1)
    bin_ = np.tile(np.arange(nbins, dtype=float), (nrays, 1))
    return make_scan(elevation=0.0, nrays=nrays, nbins=nbins, range_resolution=1000.0,
                     RAY=ray, BIN=bin_)


class TestGrid:

    @pytest.mark.parametrize("max_range, resolution, n", [
        (10000.0, 1000.0, 20),
        (10000.0, 3000.0, 7),
        (10500.0, 1000.0, 21),
    ])
    def test_cell_count(self, max_range, resolution, n):
        axis = grid_axis(max_range, resolution)
        assert axis.size == n == math.ceil(2 * max_range / resolution)

    def test_axis_symmetric_and_ascending(self):
        axis = grid_axis(10000.0, 1000.0)
        assert axis[0] == -axis[-1]
        assert np.all(np.diff(axis) == 1000.0)

    @pytest.mark.parametrize("max_range, resolution", [
        (0.0, 500.0),
        (-1.0, 500.0),
        (150000.0, 0.0),
        (150000.0, -500.0),
        (float("nan"), 500.0),
        (150000.0, float("inf")),
        ("far", 500.0),
    ])
    def test_invalid_extent(self, make_scan, max_range, resolution):
        scan = make_scan(nrays=4, nbins=3)
        with pytest.raises(InvalidExtentError):
            project(scan, "DBZH", max_range, resolution)

    def test_invalid_extent_is_value_error(self, make_scan):
        with pytest.raises(ValueError):
            project(make_scan(nrays=4, nbins=3), "DBZH", 0, 500)


class TestProject:

    def test_output_structure(self, index_scan, site, scan_time):
        ds = project(index_scan, ["RAY", "BIN"], 10000.0, 1000.0, site=site, time=scan_time)

        assert ds["RAY"].dims == ("y", "x")
        assert ds["RAY"].shape == (20, 20)
        assert ds["RAY"].dtype == np.float64
        for coord in ("x", "y", "lon", "lat", "beam_height"):
            assert coord in ds.coords
        assert ds.attrs["radar"] == "KBGM"
        assert ds.attrs["time"] == scan_time.isoformat()
        assert ds.attrs["earth_model"] == "curved"

    def test_unknown_parameter(self, index_scan):
        with pytest.raises(NotFoundError, match="ZDR"):
            project(index_scan, ["RAY", "ZDR"], 10000.0, 1000.0)

    def test_unknown_options(self, index_scan):
        with pytest.raises(ValueError, match="earth model"):
            project(index_scan, "RAY", 10000.0, 1000.0, earth_model="ellipsoid")
        with pytest.raises(ValueError, match="interpolation"):
            project(index_scan, "RAY", 10000.0, 1000.0, interpolation="cubic")

    def test_compass_cells_map_to_expected_rays(self, index_scan):
        ds = project(index_scan, ["RAY", "BIN"], 10500.0, 1000.0, earth_model="flat")

        assert ds["RAY"].sel(x=5000.0, y=0.0).item() == 90
        assert ds["RAY"].sel(x=0.0, y=5000.0).item() == 0
        assert ds["RAY"].sel(x=-5000.0, y=0.0).item() == 270
        assert ds["RAY"].sel(x=0.0, y=-5000.0).item() == 180
        assert ds["BIN"].sel(x=5000.0, y=0.0).item() == 5

    def test_site_cell_uses_first_bin_of_north_ray(self, index_scan):
        ds = project(index_scan, ["RAY", "BIN"], 10500.0, 1000.0)

        assert ds["RAY"].sel(x=0.0, y=0.0).item() == 0
        assert ds["BIN"].sel(x=0.0, y=0.0).item() == 0

    def test_cells_beyond_max_range_are_nodata(self, index_scan):
        ds = project(index_scan, "RAY", 10000.0, 1000.0)
        ground = np.hypot(ds["x"].values[None, :], ds["y"].values[:, None])
        values = ds["RAY"].values

        assert np.all(np.isnan(values[ground > 10000.0]))
        assert np.all(np.isfinite(values[ground <= 10000.0]))
        assert np.all(np.isnan(ds["beam_height"].values[ground > 10000.0]))

    def test_cells_beyond_sweep_are_nodata(self, make_scan):
        scan = make_scan(elevation=0.0, nrays=360, nbins=5, range_resolution=1000.0)
        ds = project(scan, "DBZH", 10500.0, 1000.0, earth_model="flat")

        assert np.isfinite(ds["DBZH"].sel(x=4000.0, y=0.0).item())
        assert np.isnan(ds["DBZH"].sel(x=8000.0, y=0.0).item())

    def test_in_range_values_come_from_the_scan(self, index_scan):
        ds = project(index_scan, ["RAY", "BIN"], 15000.0, 700.0, earth_model="flat")
        ray = ds["RAY"].values
        bin_ = ds["BIN"].values
        finite = np.isfinite(ray)

        assert finite.any()
        assert np.all((ray[finite] >= 0) & (ray[finite] < 360))
        assert np.all((bin_[finite] >= 0) & (bin_[finite] < 20))

    def test_deterministic(self, index_scan):
        a = project(index_scan, ["RAY", "BIN"], 12000.0, 700.0)
        b = project(index_scan, ["RAY", "BIN"], 12000.0, 700.0)

        np.testing.assert_array_equal(a["RAY"].values, b["RAY"].values)
        np.testing.assert_array_equal(a["BIN"].values, b["BIN"].values)

    @pytest.mark.parametrize("interpolation", ["nearest", "bilinear"])
    def test_workers_do_not_change_result(self, index_scan, interpolation):
        serial = project(index_scan, "BIN", 12000.0, 700.0, interpolation=interpolation)
        threaded = project(index_scan, "BIN", 12000.0, 700.0, interpolation=interpolation,
                           workers=4)

        np.testing.assert_array_equal(serial["BIN"].values, threaded["BIN"].values)
        np.testing.assert_array_equal(serial["beam_height"].values,
                                      threaded["beam_height"].values)

    def test_rotated_sweep_wraps(self, make_scan):
        nrays, nbins = 360, 20
        ray = np.repeat(np.arange(nrays, dtype=float)[:, None], nbins, axis=1)
        scan = make_scan(elevation=0.0, nrays=nrays, nbins=nbins, range_resolution=1000.0,
                         first_azimuth=350.0, RAY=ray)

        ds = project(scan, "RAY", 10500.0, 1000.0, earth_model="flat")

        assert ds["RAY"].sel(x=0.0, y=5000.0).item() == 10
        assert ds["RAY"].sel(x=-5000.0, y=0.0).item() == 280

    def test_bilinear_constant_field(self, make_scan):
        scan = make_scan(nrays=360, nbins=40, range_resolution=500.0,
                         DBZH=np.full((360, 40), 7.0))

        ds = project(scan, "DBZH", 15000.0, 600.0, interpolation="bilinear")
        values = ds["DBZH"].values

        assert np.isfinite(values).any()
        np.testing.assert_allclose(values[np.isfinite(values)], 7.0)

    def test_bilinear_skips_nodata_neighbours(self, make_scan):
        dbzh = np.full((360, 40), 7.0)
        dbzh[::2] = np.nan
        scan = make_scan(nrays=360, nbins=40, range_resolution=500.0, DBZH=dbzh)

        values = project(scan, "DBZH", 15000.0, 600.0, interpolation="bilinear")["DBZH"].values

        np.testing.assert_allclose(values[np.isfinite(values)], 7.0)

    def test_bilinear_sector_sweep_does_not_wrap(self, make_scan):
        nrays, nbins = 90, 150
        ray = np.repeat(np.arange(nrays, dtype=float)[:, None], nbins, axis=1)
        scan = make_scan(elevation=0.0, nrays=nrays, nbins=nbins, range_resolution=100.0,
                         azimuth_resolution=1.0, RAY=ray)

        nearest = project(scan, "RAY", 15000.0, 100.0, earth_model="flat")["RAY"].values
        bilinear = project(scan, "RAY", 15000.0, 100.0, earth_model="flat",
                           interpolation="bilinear")["RAY"].values
        both = np.isfinite(nearest) & np.isfinite(bilinear)

        assert both.any()
        assert np.max(np.abs(nearest[both] - bilinear[both])) <= 1.0
        assert np.all(bilinear[np.isfinite(bilinear)] <= nrays - 1)

    def test_categorical_never_interpolated(self, make_scan):
        cell = np.zeros((360, 40))
        cell[:180, 10:30] = 1.0
        cell[180:, 10:30] = 3.0
        scan = make_scan(nrays=360, nbins=40, range_resolution=500.0, CELL=cell)

        values = project(scan, "CELL", 15000.0, 300.0, interpolation="bilinear")["CELL"].values

        assert set(np.unique(values[np.isfinite(values)])) <= {0.0, 1.0, 3.0}

    def test_flat_and_curved_differ_in_beam_height(self, index_scan, site):
        flat = project(index_scan, "RAY", 15000.0, 1000.0, site=site, earth_model="flat")
        curved = project(index_scan, "RAY", 15000.0, 1000.0, site=site, earth_model="curved")

        flat_h = flat["beam_height"].values
        curved_h = curved["beam_height"].values
        inside = np.isfinite(flat_h)

        np.testing.assert_allclose(flat_h[inside], site.altitude)
        assert np.all(curved_h[inside] >= site.altitude)
        assert np.nanmax(curved_h) > site.altitude + 1.0


class TestPPIProjector:

    def test_reads_config(self, make_config):
        config = make_config(MAX_RANGE=20000, RESOLUTION=250, EARTH_MODEL="Flat",
                             INTERPOLATION="bilinear", WORKERS=2)
        projector = PPIProjector(config)

        assert projector.max_range == 20000.0
        assert projector.resolution == 250.0
        assert projector.earth_model == "flat"
        assert projector.interpolation == "bilinear"
        assert projector.workers == 2

    def test_projects_all_parameters_by_default(self, make_config, index_scan):
        projector = PPIProjector(make_config(MAX_RANGE=5000, RESOLUTION=1000))
        ds = projector.project(index_scan)

        assert set(ds.data_vars) == {"DBZH", "RHOHV", "RAY", "BIN"}
        assert ds.attrs["resolution"] == 1000.0
