"""Read radar polar-volume files into the PolarVolume model.

This module handles loading raw radar files with Py-ART and converting the
resulting ``pyart.core.Radar`` into an explicit, validated PolarVolume:
one Scan per distinct elevation, rays sorted by azimuth, parameters keyed by
ODIM short names (DBZH, VRADH, RHOHV, ...) with masked gates as NaN.

Key capabilities:
- Reads NEXRAD Level-II, ODIM HDF5 and CfRadial files (or auto-detects)
- Accepts an already loaded Py-ART Radar object
- Merges sweeps that repeat an elevation (NEXRAD split cuts)
- Raises FormatError for anything it cannot turn into a volume
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Union

import numpy as np
import pandas as pd
import pyart

from radvol.contracts.failure import FormatError
from radvol.radar.radar_utils import covers_full_circle
from radvol.radar.volume import PolarVolume, RadarSite, Scan

if TYPE_CHECKING:
    from radvol.schemas import InternalConfig

__all__ = ["RadarVolumeLoader", "load_volume", "PYART_TO_ODIM"]

logger = logging.getLogger(__name__)

PYART_TO_ODIM: Dict[str, str] = {
    "reflectivity": "DBZH",
    "total_power": "TH",
    "velocity": "VRADH",
    "spectrum_width": "WRADH",
    "differential_reflectivity": "ZDR",
    "cross_correlation_ratio": "RHOHV",
    "differential_phase": "PHIDP",
    "specific_differential_phase": "KDP",
}


def _is_radar(obj) -> bool:
    return all(hasattr(obj, attr) for attr in ("fields", "nsweeps", "azimuth", "range"))


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class RadarVolumeLoader:
    """Load radar files into PolarVolume objects.

    The loader works in two stages:

    1. **Read**: parse the file with the Py-ART reader matching
       ``reader.file_format`` ("auto" lets Py-ART detect the format).
    2. **Convert**: split the Radar into sweeps and build one Scan per
       distinct elevation.

    Scan geometry
    =============
    - Rays are sorted by azimuth; ``azimuth_resolution = 360 / nrays`` and
      ``first_azimuth`` is the azimuth of the first sorted ray.
    - A sector sweep (rays spanning well under 360 degrees) takes the median
      ray spacing as ``azimuth_resolution`` and starts at the ray after the
      widest gap, so a sector across north keeps its rays contiguous.
    - Sweeps repeating an elevation are merged when their geometry matches,
      comparing first azimuths across north.
    - ``range_resolution`` is the median gate spacing; ``range_start`` is the
      first gate centre minus half a gate (clipped at 0).
    - Py-ART field names are mapped to ODIM short names; unknown fields keep
      their name.

    Notes
    -----
    - Stateless apart from configuration; safe to share between threads
    - Any failure raises FormatError; nothing is logged at error level here,
      the caller decides what to do

    Examples
    --------
    >>> loader = RadarVolumeLoader(config)
    >>> volume = loader.load("KBGM20240501_000512_V06")
    >>> volume.elevations
    (0.48, 0.88, 1.32, ...)
    """

    def __init__(self, config: Optional["InternalConfig"] = None,
                 file_format: Optional[str] = None):
        """Initialize loader.

        Parameters
        ----------
        config : InternalConfig, optional
            Runtime configuration; ``reader.file_format`` selects the reader.
            Without a config the format is auto-detected.
        file_format : str, optional
            Explicit reader, overriding the config.
        """
        self.config = config
        if file_format is None:
            file_format = config.reader.file_format if config is not None else "auto"
        self.file_format = file_format

    @staticmethod
    def _reader_for(file_format: str):
        if file_format == "auto":
            return pyart.io.read
        if file_format == "nexrad_archive":
            return pyart.io.read_nexrad_archive
        if file_format == "cfradial":
            return pyart.io.read_cfradial
        if file_format == "odim_h5":
            return pyart.aux_io.read_odim_h5
        raise FormatError(f"Unsupported file format: {file_format}")

    def read(self, filepath: Union[Path, str]):
        """Read a radar file into a Py-ART Radar object.

        Raises
        ------
        FormatError
            If the file does not exist, the format is unsupported, or the
            reader fails.
        """
        filepath = str(filepath)
        if not Path(filepath).exists():
            raise FormatError(f"Radar file not found: {filepath}")

        reader = self._reader_for(self.file_format)
        try:
            radar = reader(filepath)
        except Exception as e:
            raise FormatError(f"Failed to read radar file {filepath}: {e}") from e

        logger.debug("Successfully read radar file: %s", filepath)
        return radar

    def to_volume(self, radar) -> PolarVolume:
        """Convert a Py-ART Radar into a PolarVolume.

        Raises
        ------
        FormatError
            If the radar has no usable sweeps or malformed metadata.
        """
        try:
            site = RadarSite(
                code=self._site_code(radar),
                latitude=float(np.asarray(radar.latitude["data"]).ravel()[0]),
                longitude=float(np.asarray(radar.longitude["data"]).ravel()[0]),
                altitude=float(np.asarray(radar.altitude["data"]).ravel()[0]),
            )
            time = self._volume_time(radar)

            scans: Dict[float, Scan] = {}
            for i in range(int(radar.nsweeps)):
                start = int(radar.sweep_start_ray_index["data"][i])
                end = int(radar.sweep_end_ray_index["data"][i]) + 1
                elevation = round(float(radar.fixed_angle["data"][i]), 2)
                scan = self._sweep_to_scan(radar, start, end, elevation)
                if scan is None:
                    continue
                if elevation in scans:
                    scans[elevation] = self._merge_split_cut(scans[elevation], scan)
                else:
                    scans[elevation] = scan
        except FormatError:
            raise
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise FormatError(f"Malformed radar object: {e}") from e

        if not scans:
            raise FormatError(f"Radar {site.code} has no usable sweeps")

        volume = PolarVolume(site=site, time=time, scans=tuple(scans.values()))
        logger.debug("Converted %s: %d scans at %s", site.code,
                     len(volume.scans), list(volume.elevations))
        return volume

    def load(self, source) -> PolarVolume:
        """Read (if ``source`` is a path) and convert in one call."""
        radar = source if _is_radar(source) else self.read(source)
        return self.to_volume(radar)

    @staticmethod
    def _site_code(radar) -> str:
        metadata = getattr(radar, "metadata", None) or {}
        for key in ("instrument_name", "source", "site_name"):
            value = metadata.get(key)
            if value:
                return _decode(value).strip()
        return "UNKNOWN"

    @staticmethod
    def _volume_time(radar):
        """First ray time as a timezone-aware UTC datetime."""
        units = _decode(radar.time["units"])
        unit, sep, reference = units.partition(" since ")
        if not sep:
            raise FormatError(f"Unparseable time units: {units!r}")

        ref = pd.Timestamp(reference.strip())
        ref = ref.tz_localize("UTC") if ref.tz is None else ref.tz_convert("UTC")
        data = np.asarray(radar.time["data"], dtype=np.float64)
        first = float(data.min()) if data.size else 0.0
        offset = pd.to_timedelta(first, unit=unit.strip())
        return (ref + offset).to_pydatetime()

    @staticmethod
    def _sweep_to_scan(radar, start: int, end: int, elevation: float) -> Optional[Scan]:
        azimuth = np.mod(np.asarray(radar.azimuth["data"][start:end], dtype=np.float64), 360.0)
        gates = np.asarray(radar.range["data"], dtype=np.float64)
        if azimuth.size == 0 or gates.size < 2 or not radar.fields:
            logger.debug("Skipping empty sweep at elevation %s", elevation)
            return None

        order = np.argsort(azimuth, kind="stable")
        azimuth_resolution = 360.0 / azimuth.size
        if azimuth.size > 1:
            ordered = azimuth[order]
            gaps = np.diff(np.append(ordered, ordered[0] + 360.0))
            spacing = float(np.median(gaps))
            if 0.0 < spacing and azimuth.size * spacing < 360.0 - spacing / 2.0:
                # sector sweep: start after the widest gap between rays
                azimuth_resolution = spacing
                order = np.roll(order, -(int(np.argmax(gaps)) + 1))
        range_resolution = float(np.median(np.diff(gates)))

        parameters = {}
        for name, field in radar.fields.items():
            data = np.ma.asarray(field["data"][start:end]).astype(np.float64)
            parameters[PYART_TO_ODIM.get(name, name)] = np.ma.filled(data, np.nan)[order]

        return Scan(
            elevation=elevation,
            azimuth_resolution=azimuth_resolution,
            range_resolution=range_resolution,
            parameters=parameters,
            first_azimuth=float(azimuth[order][0]),
            range_start=max(float(gates[0]) - range_resolution / 2.0, 0.0),
        )

    @staticmethod
    def _merge_split_cut(base: Scan, extra: Scan) -> Scan:
        """Add parameters of a repeated-elevation sweep that fit ``base``.

        First azimuths are compared across north. On a full circle the extra
        sweep may start a whole number of rays away from ``base``; its rays
        are rolled onto the base ray order.
        """
        offset = (extra.first_azimuth - base.first_azimuth + 180.0) % 360.0 - 180.0
        shift = int(round(offset / base.azimuth_resolution))
        residual = abs(offset - shift * base.azimuth_resolution)
        aligned = (
            extra.shape == base.shape
            and np.isclose(extra.azimuth_resolution, base.azimuth_resolution)
            and residual < base.azimuth_resolution / 2.0
            and (shift == 0 or covers_full_circle(base.nrays, base.azimuth_resolution))
            and extra.range_resolution == base.range_resolution
            and extra.range_start == base.range_start
        )
        for name, values in extra.parameters.items():
            if base.has_parameter(name):
                continue
            if not aligned:
                logger.debug("Dropping %s from split cut at elevation %s: geometry %s vs %s",
                             name, base.elevation, extra.shape, base.shape)
                continue
            base = base.with_parameter(name, np.roll(values, shift, axis=0) if shift else values)
        return base


def load_volume(source, file_format: str = "auto") -> PolarVolume:
    """Load a polar volume from a file path or a Py-ART Radar object.

    Parameters
    ----------
    source : str, Path or pyart.core.Radar
        Radar file, or a Radar already in memory.
    file_format : {"auto", "nexrad_archive", "odim_h5", "cfradial"}
        Reader to use for paths.

    Raises
    ------
    FormatError
        If the source cannot be read or converted.
    """
    return RadarVolumeLoader(file_format=file_format).load(source)
