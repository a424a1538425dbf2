"""Tests for conditional parameter masking."""

import numpy as np
import pytest

from radvol.contracts import GeometryMismatchError, NotFoundError
from radvol.radar.masking import (
    at_least,
    derive_parameter,
    equal_to,
    greater_than,
    mask_array,
    mask_scan,
    mask_volume,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def cell_scan(make_scan):
    """8 x 6 scan with one cell (id 1) in rays 2-4, bins 1-3."""
    cell = np.zeros((8, 6))
    cell[2:5, 1:4] = 1.0
    cell[0, 5] = np.nan
    vrad = np.linspace(-10, 10, 48).reshape(8, 6)
    return make_scan(nrays=8, nbins=6, CELL=cell, VRADH=vrad)


class TestPredicates:

    def test_at_least(self):
        np.testing.assert_array_equal(at_least(1)(np.array([0.0, 1.0, 2.0])),
                                      [False, True, True])

    def test_greater_than(self):
        np.testing.assert_array_equal(greater_than(1)(np.array([0.0, 1.0, 2.0])),
                                      [False, False, True])

    def test_equal_to(self):
        np.testing.assert_array_equal(equal_to(2)(np.array([0.0, 1.0, 2.0])),
                                      [False, False, True])


class TestMaskArray:

    def test_masks_where_predicate_holds(self):
        source = np.array([[1.0, 2.0], [3.0, 4.0]])
        predicate_values = np.array([[0.0, 1.0], [2.0, 0.0]])

        out = mask_array(source, predicate_values, at_least(1))

        assert out[0, 0] == 1.0
        assert np.isnan(out[0, 1])
        assert np.isnan(out[1, 0])
        assert out[1, 1] == 4.0

    def test_nodata_predicate_never_masks(self):
        source = np.array([5.0, 6.0])
        out = mask_array(source, np.array([np.nan, np.nan]), lambda v: np.ones(v.shape, dtype=bool))
        np.testing.assert_array_equal(out, source)

    def test_all_zero_predicate_is_identity(self):
        source = np.random.default_rng(0).normal(size=(10, 20))
        out = mask_array(source, np.zeros((10, 20)), at_least(1))
        np.testing.assert_array_equal(out, source)

    def test_does_not_modify_inputs(self):
        source = np.ones((3, 3))
        predicate_values = np.ones((3, 3))
        mask_array(source, predicate_values, at_least(1))
        assert np.all(source == 1.0)

    def test_shape_mismatch(self):
        with pytest.raises(GeometryMismatchError, match=r"\(3, 3\)"):
            mask_array(np.ones((3, 3)), np.ones((4, 3)), at_least(1))


class TestDeriveParameter:

    def test_adds_new_parameter_and_keeps_source(self, cell_scan):
        out = derive_parameter(cell_scan, "DBZH_clean", "DBZH", "CELL", at_least(1))

        assert out.has_parameter("DBZH_clean")
        assert not cell_scan.has_parameter("DBZH_clean")
        np.testing.assert_array_equal(out.parameter("DBZH"), cell_scan.parameter("DBZH"))

    def test_values_are_source_or_nodata(self, cell_scan):
        out = derive_parameter(cell_scan, "VRADH_clean", "VRADH", "CELL", at_least(1))
        src = cell_scan.parameter("VRADH")
        derived = out.parameter("VRADH_clean")

        assert derived.shape == src.shape
        assert np.all(np.isnan(derived) | (derived == src))
        assert np.all(np.isnan(derived[2:5, 1:4]))
        assert np.count_nonzero(np.isnan(derived)) == 9

    def test_accepts_explicit_arrays(self, cell_scan):
        predicate = np.zeros(cell_scan.shape)
        predicate[0, 0] = 5.0
        out = derive_parameter(cell_scan, "RHOHV_clean", "RHOHV", predicate, greater_than(4))

        derived = out.parameter("RHOHV_clean")
        assert np.isnan(derived[0, 0])
        assert np.count_nonzero(np.isnan(derived)) == 1

    def test_geometry_mismatch_leaves_scan_untouched(self, cell_scan):
        wrong = np.zeros((7, 6))
        with pytest.raises(GeometryMismatchError, match="Predicate"):
            derive_parameter(cell_scan, "DBZH_clean", "DBZH", wrong, at_least(1))
        with pytest.raises(GeometryMismatchError, match="Source"):
            derive_parameter(cell_scan, "DBZH_clean", wrong, "CELL", at_least(1))

        assert not cell_scan.has_parameter("DBZH_clean")

    def test_existing_name_rejected(self, cell_scan):
        with pytest.raises(ValueError, match="already exists"):
            derive_parameter(cell_scan, "VRADH", "DBZH", "CELL", at_least(1))

    def test_missing_parameter(self, cell_scan):
        with pytest.raises(NotFoundError, match="ZDR"):
            derive_parameter(cell_scan, "ZDR_clean", "ZDR", "CELL", at_least(1))


class TestMaskScanAndVolume:

    def test_mask_scan_derives_listed_parameters(self, cell_scan):
        out = mask_scan(cell_scan, ["DBZH", "VRADH", "ZDR"], "CELL", at_least(1))

        assert out.has_parameter("DBZH_clean")
        assert out.has_parameter("VRADH_clean")
        assert not out.has_parameter("ZDR_clean")

    def test_mask_scan_custom_suffix(self, cell_scan):
        out = mask_scan(cell_scan, ["DBZH"], "CELL", at_least(1), suffix="_bio")
        assert out.has_parameter("DBZH_bio")

    def test_mask_scan_without_predicate_parameter(self, make_scan):
        scan = make_scan(nrays=4, nbins=3)
        assert mask_scan(scan, ["DBZH"], "CELL", at_least(1)) is scan

    def test_mask_volume_selected_elevations(self, make_volume):
        cell = np.ones((4, 3))
        volume = make_volume(nrays=4, nbins=3, CELL=cell)

        out = mask_volume(volume, ["DBZH"], "CELL", at_least(1), elevations=[1.5])

        assert [s.has_parameter("DBZH_clean") for s in out.scans] == [False, True, False]
        assert np.all(np.isnan(out.select_scan(1.5).parameter("DBZH_clean")))
        assert not any(s.has_parameter("DBZH_clean") for s in volume.scans)

    @pytest.mark.parametrize("requested", [1.5000001, 1.495, 1.505])
    def test_mask_volume_elevation_within_tolerance(self, make_volume, requested):
        volume = make_volume(nrays=4, nbins=3, CELL=np.ones((4, 3)))

        out = mask_volume(volume, ["DBZH"], "CELL", at_least(1), elevations=[requested])

        assert [s.has_parameter("DBZH_clean") for s in out.scans] == [False, True, False]

    def test_mask_volume_elevation_outside_tolerance(self, make_volume):
        volume = make_volume(nrays=4, nbins=3, CELL=np.ones((4, 3)))

        out = mask_volume(volume, ["DBZH"], "CELL", at_least(1), elevations=[1.6])

        assert not any(s.has_parameter("DBZH_clean") for s in out.scans)
