"""Tests for converting Py-ART radars into PolarVolume objects."""

from datetime import datetime, timezone

import numpy as np
import pytest

from radvol.contracts import FormatError
from radvol.radar.loader import RadarVolumeLoader, load_volume

pytestmark = pytest.mark.unit


@pytest.fixture
def radar_file(tmp_path):
    path = tmp_path / "KBGM20240501_000512_V06"
    path.write_bytes(b"AR2V0006.")
    return path


class TestToVolume:

    def test_basic_conversion(self, fake_radar):
        volume = load_volume(fake_radar())

        assert volume.elevations == (0.5, 1.5)
        assert volume.site.code == "KBGM"
        assert volume.site.altitude == 490.0
        assert volume.time == datetime(2024, 5, 1, 0, 5, 12, tzinfo=timezone.utc)

        scan = volume.select_scan(0.5)
        assert scan.shape == (36, 10)
        assert scan.azimuth_resolution == 10.0
        assert scan.range_resolution == 250.0
        assert scan.range_start == 0.0

    def test_field_names_mapped(self, fake_radar):
        scan = load_volume(fake_radar(fields=("reflectivity", "velocity", "my_field"))).scans[0]
        assert set(scan.parameters) == {"DBZH", "VRADH", "my_field"}

    def test_rays_sorted_by_azimuth(self, fake_radar):
        scan = load_volume(fake_radar(azimuth_offset=185.0)).scans[0]

        assert scan.first_azimuth == 5.0
        column = scan.parameter("DBZH")[:, 0]
        assert np.all(np.diff(column) > 0)
        np.testing.assert_allclose(column, scan.ray_azimuths)

    def test_masked_gates_become_nan(self, fake_radar):
        radar = fake_radar()
        radar.fields["reflectivity"]["data"].mask[0, 3] = True

        scan = load_volume(radar).select_scan(0.5)

        assert np.isnan(scan.parameter("DBZH")[0, 3])
        assert np.isfinite(scan.parameter("RHOHV")[0, 3])

    def test_repeated_elevation_merged(self, fake_radar):
        volume = load_volume(fake_radar(fixed_angles=(0.5, 0.5, 1.5)))

        assert volume.elevations == (0.5, 1.5)
        np.testing.assert_allclose(volume.scans[0].parameter("DBZH")[:, 0],
                                   np.arange(36) * 10.0)

    def test_sector_sweep_resolution_from_ray_spacing(self, fake_radar):
        scan = load_volume(fake_radar(nrays=90, azimuth_step=1.0)).scans[0]

        assert scan.shape == (90, 10)
        assert scan.azimuth_resolution == 1.0
        assert scan.first_azimuth == 0.0

    def test_sector_sweep_across_north_stays_contiguous(self, fake_radar):
        scan = load_volume(fake_radar(nrays=90, azimuth_step=1.0, azimuth_offset=315.0)).scans[0]

        assert scan.azimuth_resolution == 1.0
        assert scan.first_azimuth == 315.0
        np.testing.assert_allclose(scan.parameter("DBZH")[:, 0],
                                   np.mod(315.0 + np.arange(90), 360.0))

    def test_full_sweep_keeps_even_resolution(self, fake_radar):
        radar = fake_radar(nrays=36)
        radar.azimuth["data"] = radar.azimuth["data"] + np.tile([0.0, 0.3], 36)

        assert load_volume(radar).scans[0].azimuth_resolution == 10.0

    def test_time_offset_applied(self, fake_radar):
        radar = fake_radar(time_units="minutes since 2024-05-01 00:00:00")
        radar.time["data"] = radar.time["data"] + 5.0

        assert load_volume(radar).time == datetime(2024, 5, 1, 0, 5, tzinfo=timezone.utc)

    def test_unknown_site(self, fake_radar):
        radar = fake_radar()
        radar.metadata = {}
        assert load_volume(radar).site.code == "UNKNOWN"

    def test_no_sweeps(self, fake_radar):
        with pytest.raises(FormatError, match="no usable sweeps"):
            load_volume(fake_radar(fixed_angles=()))

    def test_no_fields(self, fake_radar):
        with pytest.raises(FormatError, match="no usable sweeps"):
            load_volume(fake_radar(fields=()))

    def test_bad_time_units(self, fake_radar):
        with pytest.raises(FormatError, match="time units"):
            load_volume(fake_radar(time_units="seconds"))

    def test_malformed_radar(self, fake_radar):
        radar = fake_radar()
        del radar.fixed_angle
        with pytest.raises(FormatError, match="Malformed"):
            load_volume(radar)


class TestMergeSplitCut:

    def test_sector_first_azimuths_across_north_merge(self, make_scan):
        base = make_scan(nrays=90, nbins=10, azimuth_resolution=1.0, first_azimuth=359.9)
        extra = make_scan(nrays=90, nbins=10, azimuth_resolution=1.0, first_azimuth=0.1,
                          DBZH=None, RHOHV=None, VRADH=np.full((90, 10), 3.0))

        merged = RadarVolumeLoader._merge_split_cut(base, extra)

        assert merged.has_parameter("VRADH")
        assert merged.first_azimuth == 359.9

    def test_full_circle_offset_by_one_ray_is_rolled(self, make_scan):
        ray = np.repeat(np.arange(36, dtype=float)[:, None], 10, axis=1)
        base = make_scan(nrays=36, nbins=10, first_azimuth=9.9)
        extra = make_scan(nrays=36, nbins=10, first_azimuth=0.1, DBZH=None, RHOHV=None, RAY=ray)

        merged = RadarVolumeLoader._merge_split_cut(base, extra)

        np.testing.assert_array_equal(merged.parameter("RAY")[:, 0],
                                      np.mod(np.arange(36) + 1, 36))

    def test_sector_offset_by_whole_rays_dropped(self, make_scan):
        base = make_scan(nrays=90, nbins=10, azimuth_resolution=1.0, first_azimuth=0.0)
        extra = make_scan(nrays=90, nbins=10, azimuth_resolution=1.0, first_azimuth=5.0,
                          DBZH=None, RHOHV=None, VRADH=np.full((90, 10), 3.0))

        merged = RadarVolumeLoader._merge_split_cut(base, extra)

        assert not merged.has_parameter("VRADH")

    def test_existing_parameter_kept(self, make_scan):
        base = make_scan(nrays=36, nbins=10)
        extra = make_scan(nrays=36, nbins=10, DBZH=np.full((36, 10), -5.0))

        merged = RadarVolumeLoader._merge_split_cut(base, extra)

        np.testing.assert_array_equal(merged.parameter("DBZH"), base.parameter("DBZH"))


class TestRead:

    def test_missing_file(self):
        with pytest.raises(FormatError, match="not found"):
            RadarVolumeLoader().read("/does/not/exist")

    def test_reader_failure_wrapped(self, monkeypatch, radar_file):
        def boom(*a, **k):
            raise IOError("truncated volume")

        monkeypatch.setattr("pyart.io.read", boom)

        with pytest.raises(FormatError, match="truncated volume") as excinfo:
            load_volume(radar_file)
        assert isinstance(excinfo.value.__cause__, IOError)

    def test_load_from_path(self, monkeypatch, radar_file, fake_radar):
        monkeypatch.setattr("pyart.io.read", lambda path: fake_radar())
        assert load_volume(radar_file).elevations == (0.5, 1.5)

    def test_reader_selected_by_config(self, monkeypatch, make_config, radar_file, fake_radar):
        calls = []

        def read_odim(path):
            calls.append(path)
            return fake_radar()

        monkeypatch.setattr("pyart.aux_io.read_odim_h5", read_odim)
        loader = RadarVolumeLoader(make_config(FILE_FORMAT="ODIM_H5"))

        assert loader.file_format == "odim_h5"
        loader.load(radar_file)
        assert calls == [str(radar_file)]

    def test_unsupported_format(self, radar_file):
        with pytest.raises(FormatError, match="Unsupported"):
            RadarVolumeLoader(file_format="grib").read(radar_file)
