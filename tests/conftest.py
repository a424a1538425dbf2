"""Root-level pytest fixtures for the radvol test suite.

Provides shared configuration fixtures following the Pydantic-based
architecture, plus small synthetic scans, volumes and Py-ART-like radar
objects. All tests must use these fixtures instead of creating raw dict
configs.
"""

from datetime import datetime, timezone

import numpy as np
import pytest

from radvol.radar.volume import PolarVolume, RadarSite, Scan
from radvol.schemas import ParamConfig, UserConfig, resolve_config


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults."""
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides)."""
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_custom_range(make_config):
    ...     config = make_config(MAX_RANGE=20000)
    ...     assert config.projector.max_range == 20000.0
    """
    def _make(**user_overrides):
        if user_overrides:
            return resolve_config(param_config, UserConfig(**user_overrides), None)
        return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Polar Volume Fixtures
# =============================================================================

@pytest.fixture
def site():
    return RadarSite(code="KBGM", latitude=42.2, longitude=-75.98, altitude=490.0)


@pytest.fixture
def scan_time():
    return datetime(2024, 5, 1, 0, 5, 12, tzinfo=timezone.utc)


@pytest.fixture
def make_scan():
    """Factory for synthetic scans.

    Default parameters: DBZH increasing with bin index (0, 1, 2, ... dBZ)
    and RHOHV = 0.99 everywhere. Extra keyword arrays are added as
    parameters; pass ``DBZH=None`` to drop a default.
    """
    def _make(elevation=0.5, nrays=360, nbins=100, range_resolution=250.0,
              azimuth_resolution=None, first_azimuth=0.0, range_start=0.0,
              categorical=(), **parameters):
        defaults = {
            "DBZH": np.tile(np.arange(nbins, dtype=float), (nrays, 1)),
            "RHOHV": np.full((nrays, nbins), 0.99),
        }
        defaults.update(parameters)
        defaults = {k: v for k, v in defaults.items() if v is not None}
        return Scan(
            elevation=elevation,
            azimuth_resolution=azimuth_resolution or 360.0 / nrays,
            range_resolution=range_resolution,
            parameters=defaults,
            first_azimuth=first_azimuth,
            range_start=range_start,
            categorical=frozenset(categorical),
        )

    return _make


@pytest.fixture
def make_volume(make_scan, site, scan_time):
    """Factory for volumes with one synthetic scan per elevation."""
    def _make(elevations=(0.5, 1.5, 2.4), **scan_kwargs):
        scans = [make_scan(elevation=e, **scan_kwargs) for e in elevations]
        return PolarVolume(site=site, time=scan_time, scans=tuple(scans))

    return _make


# =============================================================================
# Py-ART Radar Fixtures
# =============================================================================

class FakeRadar:
    """Minimal stand-in for ``pyart.core.Radar`` with the attributes the
    loader reads.

    Every field value equals the ray azimuth, so ray ordering can be
    checked after conversion.
    """

    def __init__(self, fixed_angles=(0.5, 1.5), nrays=36, ngates=10,
                 gate_spacing=250.0, fields=("reflectivity", "cross_correlation_ratio"),
                 azimuth_offset=0.0, time_units="seconds since 2024-05-01T00:05:12Z",
                 instrument_name="KBGM", azimuth_step=None):
        nsweeps = len(fixed_angles)
        step = 360.0 / nrays if azimuth_step is None else azimuth_step
        sweep_azimuth = np.mod(np.arange(nrays) * step + azimuth_offset, 360.0)

        self.nsweeps = nsweeps
        self.azimuth = {"data": np.tile(sweep_azimuth, nsweeps)}
        self.range = {"data": gate_spacing / 2.0 + np.arange(ngates) * gate_spacing}
        self.fixed_angle = {"data": np.array(fixed_angles, dtype=float)}
        self.sweep_start_ray_index = {"data": np.arange(nsweeps) * nrays}
        self.sweep_end_ray_index = {"data": np.arange(nsweeps) * nrays + nrays - 1}
        self.latitude = {"data": np.array([42.2])}
        self.longitude = {"data": np.array([-75.98])}
        self.altitude = {"data": np.array([490.0])}
        self.metadata = {"instrument_name": instrument_name}
        self.time = {"units": time_units, "data": np.arange(nsweeps * nrays, dtype=float)}

        values = np.repeat(self.azimuth["data"][:, None], ngates, axis=1)
        self.fields = {
            name: {"data": np.ma.masked_array(values.copy(), mask=np.zeros_like(values, dtype=bool))}
            for name in fields
        }


@pytest.fixture
def fake_radar():
    return FakeRadar
