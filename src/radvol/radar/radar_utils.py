"""Utility functions for radar beam geometry and coordinate conversion.

Centralized helper functions for:
- Cartesian offset to (ground range, azimuth) conversion
- Ground range to slant range under flat or 4/3-earth beam models
- Beam height above sea level
- (ray, bin) index lookup with azimuth wraparound
- Cartesian offset to geographic longitude/latitude

These utilities support the PPI projector and the plotter, and give one
definition of "azimuth" (degrees clockwise from north) across the package.
"""

import functools
import logging
from typing import Tuple

import numpy as np
from pyproj import Transformer

__all__ = [
    "EARTH_RADIUS",
    "EFFECTIVE_RADIUS_FACTOR",
    "cartesian_to_polar",
    "ground_to_slant_range",
    "slant_to_ground_range",
    "covers_full_circle",
    "ray_position",
    "gate_indices",
    "xy_to_lonlat",
]

logger = logging.getLogger(__name__)

EARTH_RADIUS = 6371000.0
EFFECTIVE_RADIUS_FACTOR = 4.0 / 3.0


# ============================================================================
# POLAR GEOMETRY
# ============================================================================

def cartesian_to_polar(x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Convert offsets east (x) and north (y) of the site to polar form.

    Parameters
    ----------
    x, y : np.ndarray
        Offsets in metres. Broadcast against each other.

    Returns
    -------
    ground_range : np.ndarray
        Horizontal distance from the site in metres.
    azimuth : np.ndarray
        Degrees clockwise from north in [0, 360). The site itself
        (x = y = 0) gets azimuth 0.

    Examples
    --------
    >>> cartesian_to_polar(np.array([1000.0]), np.array([0.0]))
    (array([1000.]), array([90.]))
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    ground_range = np.hypot(x, y)
    azimuth = np.mod(np.degrees(np.arctan2(x, y)), 360.0)
    return ground_range, azimuth


def ground_to_slant_range(ground_range: np.ndarray, elevation: float,
                          earth_model: str = "curved",
                          k: float = EFFECTIVE_RADIUS_FACTOR) -> Tuple[np.ndarray, np.ndarray]:
    """Slant range and beam height for a ground distance along one sweep.

    Parameters
    ----------
    ground_range : np.ndarray
        Distance along the earth surface from the site, metres.
    elevation : float
        Sweep elevation angle in degrees.
    earth_model : {"curved", "flat"}
        ``"curved"`` uses the standard effective-earth-radius model
        (radius ``k * EARTH_RADIUS``) in which the beam is a straight line.
        With ``phi = s / R`` the slant range is ``R sin(phi) / cos(phi + e)``
        and the height above the antenna is ``R cos(e) / cos(phi + e) - R``.
        ``"flat"`` ignores earth curvature: ``r = s / cos(e)`` and
        ``h = s tan(e)``. It underestimates beam height by about
        ``s**2 / (2 k R)`` at long range.
    k : float, default 4/3
        Effective radius factor for the curved model.

    Returns
    -------
    slant_range : np.ndarray
        Distance along the beam in metres. NaN where the beam never reaches
        the requested ground distance (``phi + e >= 90``).
    height : np.ndarray
        Beam centre height above the antenna in metres, NaN where invalid.

    Raises
    ------
    ValueError
        If earth_model is unknown.
    """
    s = np.asarray(ground_range, dtype=np.float64)
    e = np.radians(elevation)

    if earth_model == "flat":
        return s / np.cos(e), s * np.tan(e)

    if earth_model != "curved":
        raise ValueError(f"Unknown earth model: {earth_model}")

    R = k * EARTH_RADIUS
    phi = s / R
    denom = np.cos(phi + e)
    valid = (phi + e) < (np.pi / 2)
    with np.errstate(divide="ignore", invalid="ignore"):
        slant = np.where(valid, R * np.sin(phi) / denom, np.nan)
        height = np.where(valid, R * np.cos(e) / denom - R, np.nan)
    return slant, height


def slant_to_ground_range(slant_range: np.ndarray, elevation: float,
                          earth_model: str = "curved",
                          k: float = EFFECTIVE_RADIUS_FACTOR) -> Tuple[np.ndarray, np.ndarray]:
    """Inverse of :func:`ground_to_slant_range`.

    Returns ``(ground_range, height)`` in metres for slant ranges along a
    sweep at ``elevation`` degrees.
    """
    r = np.asarray(slant_range, dtype=np.float64)
    e = np.radians(elevation)

    if earth_model == "flat":
        return r * np.cos(e), r * np.sin(e)

    if earth_model != "curved":
        raise ValueError(f"Unknown earth model: {earth_model}")

    R = k * EARTH_RADIUS
    height = np.sqrt(r ** 2 + R ** 2 + 2.0 * r * R * np.sin(e)) - R
    ground = R * np.arcsin(r * np.cos(e) / (R + height))
    return ground, height


def covers_full_circle(nrays: int, azimuth_resolution: float) -> bool:
    """True when ``nrays`` rays of ``azimuth_resolution`` degrees span 360 degrees."""
    return nrays * azimuth_resolution >= 360.0 - 1e-6


def ray_position(azimuth: np.ndarray, first_azimuth: float,
                 azimuth_resolution: float) -> np.ndarray:
    """Fractional ray index of each azimuth, ray centres at integers.

    The half ray before ``first_azimuth`` belongs to ray 0, so positions
    lie in ``[-0.5, 360 / azimuth_resolution - 0.5)``.
    """
    offset = np.mod(np.asarray(azimuth, dtype=np.float64) - first_azimuth, 360.0)
    offset = np.where(offset >= 360.0 - azimuth_resolution / 2.0, offset - 360.0, offset)
    return offset / azimuth_resolution


def gate_indices(azimuth: np.ndarray, slant_range: np.ndarray,
                 first_azimuth: float, azimuth_resolution: float, nrays: int,
                 range_start: float, range_resolution: float,
                 nbins: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Locate the (ray, bin) containing each polar sample.

    ``ray = round((azimuth - first_azimuth) / azimuth_resolution) mod nrays``
    and ``bin = floor((slant_range - range_start) / range_resolution)``.
    Azimuth wraps modulo 360, so 359.9 and -0.1 select the same ray. For a
    sweep covering less than a full circle, azimuths beyond the last ray are
    flagged invalid instead of wrapping onto ray 0.

    Returns
    -------
    ray : np.ndarray of int
        Always in ``[0, nrays)``.
    bin : np.ndarray of int
        In ``[0, nbins)`` where ``valid``; 0 elsewhere.
    valid : np.ndarray of bool
        False where the slant range is NaN or outside the sweep.
    """
    position = np.round(ray_position(azimuth, first_azimuth, azimuth_resolution)).astype(np.int64)
    ray = np.mod(position, nrays)

    r = np.asarray(slant_range, dtype=np.float64)
    finite = np.isfinite(r)
    with np.errstate(invalid="ignore"):
        raw_bin = np.floor(np.where(finite, (r - range_start) / range_resolution, -1.0))
    valid = finite & (raw_bin >= 0) & (raw_bin < nbins)
    if not covers_full_circle(nrays, azimuth_resolution):
        valid &= position < nrays
    bin_ = np.where(valid, raw_bin, 0).astype(np.int64)
    return ray, bin_, valid


# ============================================================================
# GEOGRAPHIC COORDINATES
# ============================================================================

@functools.lru_cache(maxsize=64)
def _aeqd_to_lonlat(lat0: float, lon0: float) -> Transformer:
    proj_str = f"+proj=aeqd +lat_0={lat0} +lon_0={lon0} +units=m +datum=WGS84"
    return Transformer.from_crs(proj_str, "EPSG:4326", always_xy=True)


def xy_to_lonlat(x: np.ndarray, y: np.ndarray,
                 latitude: float, longitude: float) -> Tuple[np.ndarray, np.ndarray]:
    """Convert site-relative offsets to geographic coordinates.

    Uses an azimuthal equidistant projection centred on the radar, so the
    distance from the site is preserved exactly.

    Parameters
    ----------
    x, y : np.ndarray
        Offsets east and north of the site in metres.
    latitude, longitude : float
        Radar site location in degrees.

    Returns
    -------
    lon, lat : np.ndarray
        Degrees, same shape as the broadcast inputs.
    """
    x, y = np.broadcast_arrays(np.asarray(x, dtype=np.float64),
                               np.asarray(y, dtype=np.float64))
    transformer = _aeqd_to_lonlat(round(float(latitude), 6), round(float(longitude), 6))
    lon, lat = transformer.transform(x, y)
    return np.asarray(lon), np.asarray(lat)
