"""Radar data modules.

- volume: PolarVolume / Scan data model and sweep selection
- loader: Read radar files into PolarVolume
- masking: Conditional masking of parameters
- ppi_projector: Polar to Cartesian PPI projection
- radar_utils: Beam geometry helpers
"""

from radvol.radar.volume import NODATA, PolarVolume, RadarSite, Scan, select_scan
from radvol.radar.loader import RadarVolumeLoader, load_volume
from radvol.radar.masking import (
    at_least,
    derive_parameter,
    equal_to,
    greater_than,
    mask_array,
    mask_scan,
    mask_volume,
)
from radvol.radar.ppi_projector import PPIProjector, project

__all__ = [
    "NODATA",
    "PolarVolume",
    "RadarSite",
    "Scan",
    "select_scan",
    "RadarVolumeLoader",
    "load_volume",
    "at_least",
    "greater_than",
    "equal_to",
    "mask_array",
    "derive_parameter",
    "mask_scan",
    "mask_volume",
    "PPIProjector",
    "project",
]
