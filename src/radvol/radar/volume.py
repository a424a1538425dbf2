"""In-memory polar volume model: radar site, sweeps and named parameters.

A PolarVolume is an ordered, elevation-sorted collection of Scans for one
radar site and collection time. A Scan is one elevation sweep laid out as
rays x bins, carrying an open mapping of named parameters (DBZH, RHOHV,
VRADH, classifier products such as WEATHER and CELL, ...). All parameter
arrays of a Scan share the same geometry; this is validated at construction.

Both types are immutable. Adding a parameter returns a new Scan; the arrays
of the original stay available for comparison. Missing samples are stored
as NaN (``NODATA``), never as zero.
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

import numpy as np
import xarray as xr

from radvol.contracts.base import require
from radvol.contracts.failure import GeometryMismatchError, NotFoundError

__all__ = [
    "NODATA",
    "KNOWN_PARAMETERS",
    "RadarSite",
    "Scan",
    "PolarVolume",
    "select_scan",
]

logger = logging.getLogger(__name__)

NODATA = np.nan

DEFAULT_ELEVATION_EPSILON = 0.01

# (long_name, units, categorical)
KNOWN_PARAMETERS: Dict[str, Tuple[str, str, bool]] = {
    "DBZH": ("Horizontal reflectivity", "dBZ", False),
    "TH": ("Total horizontal reflectivity", "dBZ", False),
    "VRADH": ("Radial velocity", "m/s", False),
    "WRADH": ("Spectrum width", "m/s", False),
    "ZDR": ("Differential reflectivity", "dB", False),
    "RHOHV": ("Correlation coefficient", "1", False),
    "PHIDP": ("Differential phase", "degrees", False),
    "KDP": ("Specific differential phase", "degrees/km", False),
    "WEATHER": ("Precipitation probability", "1", False),
    "BIOLOGY": ("Biological scatter probability", "1", False),
    "BACKGROUND": ("Background probability", "1", False),
    "CELL": ("Precipitation cell id", "1", True),
}


@dataclass(frozen=True)
class RadarSite:
    """Radar location. Altitude is metres above sea level."""
    code: str
    latitude: float
    longitude: float
    altitude: float = 0.0


def _readonly(values, name: str) -> np.ndarray:
    if isinstance(values, np.ma.MaskedArray):
        values = values.astype(np.float64).filled(NODATA)
    arr = np.array(values, dtype=np.float64, copy=True)
    require(
        arr.ndim == 2,
        f"Parameter '{name}' has {arr.ndim} dims, expected 2 (rays, bins)",
        GeometryMismatchError,
    )
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class Scan:
    """One elevation sweep.

    Parameters
    ----------
    elevation : float
        Elevation angle in degrees.
    azimuth_resolution : float
        Degrees per ray.
    range_resolution : float
        Metres per bin.
    parameters : mapping of str to array-like
        Parameter name -> 2-D array shaped (rays, bins). Arrays are copied
        to read-only float64; masked samples must already be NaN.
    first_azimuth : float, default 0.0
        Azimuth (degrees clockwise from north) of the centre of ray 0.
        Ray ``i`` is centred at ``first_azimuth + i * azimuth_resolution``.
    range_start : float, default 0.0
        Distance in metres of the near edge of bin 0.
    categorical : iterable of str, optional
        Names of parameters holding discrete ids (e.g. CELL). Projection
        never interpolates them.

    Raises
    ------
    GeometryMismatchError
        If parameter arrays are not 2-D or do not share one shape.
    ValueError
        If a resolution is not positive.
    """

    elevation: float
    azimuth_resolution: float
    range_resolution: float
    parameters: Mapping[str, np.ndarray] = field(default_factory=dict)
    first_azimuth: float = 0.0
    range_start: float = 0.0
    categorical: frozenset = frozenset()

    def __post_init__(self):
        require(self.azimuth_resolution > 0,
                f"azimuth_resolution must be positive, got {self.azimuth_resolution}",
                ValueError)
        require(self.range_resolution > 0,
                f"range_resolution must be positive, got {self.range_resolution}",
                ValueError)

        arrays = {name: _readonly(values, name) for name, values in self.parameters.items()}
        shapes = {name: arr.shape for name, arr in arrays.items()}
        if len(set(shapes.values())) > 1:
            raise GeometryMismatchError(
                f"Scan at elevation {self.elevation} has mixed parameter shapes: {shapes}"
            )

        categorical = frozenset(self.categorical) | frozenset(
            name for name in arrays
            if name in KNOWN_PARAMETERS and KNOWN_PARAMETERS[name][2]
        )

        object.__setattr__(self, "parameters", MappingProxyType(arrays))
        object.__setattr__(self, "categorical", categorical & frozenset(arrays))
        object.__setattr__(self, "first_azimuth", float(self.first_azimuth) % 360.0)

    @property
    def shape(self) -> Optional[Tuple[int, int]]:
        """(rays, bins), or None for a scan without parameters."""
        for arr in self.parameters.values():
            return arr.shape
        return None

    @property
    def nrays(self) -> int:
        return self.shape[0] if self.shape else 0

    @property
    def nbins(self) -> int:
        return self.shape[1] if self.shape else 0

    @property
    def max_range(self) -> float:
        """Far edge of the last bin in metres."""
        return self.range_start + self.nbins * self.range_resolution

    @property
    def ray_azimuths(self) -> np.ndarray:
        return (self.first_azimuth + np.arange(self.nrays) * self.azimuth_resolution) % 360.0

    @property
    def bin_ranges(self) -> np.ndarray:
        """Bin centre distances in metres."""
        return self.range_start + (np.arange(self.nbins) + 0.5) * self.range_resolution

    def has_parameter(self, name: str) -> bool:
        return name in self.parameters

    def parameter(self, name: str) -> np.ndarray:
        """Return the read-only array of a parameter."""
        try:
            return self.parameters[name]
        except KeyError:
            raise NotFoundError(
                f"Parameter '{name}' not in scan at elevation {self.elevation}; "
                f"available: {sorted(self.parameters)}"
            ) from None

    def with_parameter(self, name: str, values, categorical: bool = False) -> "Scan":
        """Return a new Scan with ``name`` added (or replaced).

        The receiving scan is never modified.

        Raises
        ------
        GeometryMismatchError
            If ``values`` does not match the scan geometry.
        """
        arr = np.asarray(values)
        if self.shape is not None and arr.shape != self.shape:
            raise GeometryMismatchError(
                f"Parameter '{name}' shape {arr.shape} does not match scan "
                f"at elevation {self.elevation} with shape {self.shape}"
            )
        params = dict(self.parameters)
        params[name] = arr
        cats = set(self.categorical)
        if categorical:
            cats.add(name)
        else:
            cats.discard(name)
        return replace(self, parameters=params, categorical=frozenset(cats))

    def to_xarray(self) -> xr.Dataset:
        """Polar Dataset with dims (azimuth, range) for export and plotting."""
        data_vars = {}
        for name, arr in self.parameters.items():
            long_name, units, _ = KNOWN_PARAMETERS.get(name, (name, "", False))
            data_vars[name] = xr.DataArray(
                arr,
                dims=("azimuth", "range"),
                attrs={"long_name": long_name, "units": units},
            )
        return xr.Dataset(
            data_vars,
            coords={"azimuth": self.ray_azimuths, "range": self.bin_ranges},
            attrs={
                "elevation": self.elevation,
                "azimuth_resolution": self.azimuth_resolution,
                "range_resolution": self.range_resolution,
            },
        )


@dataclass(frozen=True)
class PolarVolume:
    """All sweeps of one radar site for one collection time.

    Scans are stored sorted by elevation and their elevations must be
    distinct.
    """

    site: RadarSite
    time: datetime
    scans: Tuple[Scan, ...] = ()

    def __post_init__(self):
        scans = tuple(sorted(self.scans, key=lambda s: s.elevation))
        elevations = [s.elevation for s in scans]
        require(
            len(set(elevations)) == len(elevations),
            f"Volume {self.site.code} has duplicate elevations: {elevations}",
            ValueError,
        )
        object.__setattr__(self, "scans", scans)

    @property
    def elevations(self) -> Tuple[float, ...]:
        return tuple(s.elevation for s in self.scans)

    def select_scan(self, elevation: float,
                    epsilon: float = DEFAULT_ELEVATION_EPSILON) -> Scan:
        return select_scan(self, elevation, epsilon)

    def with_scans(self, scans: Iterable[Scan]) -> "PolarVolume":
        """Same site and time, different sweeps."""
        return replace(self, scans=tuple(scans))

    def map_scans(self, func: Callable[[Scan], Scan]) -> "PolarVolume":
        return self.with_scans(func(scan) for scan in self.scans)


def select_scan(volume: PolarVolume, elevation: float,
                epsilon: float = DEFAULT_ELEVATION_EPSILON) -> Scan:
    """Return the scan whose elevation is nearest to ``elevation``.

    Elevation angles are measured floating point, so an exact match is not
    required: the nearest scan is accepted when it lies within ``epsilon``
    degrees of the request.

    Raises
    ------
    NotFoundError
        If the volume is empty or no scan lies within ``epsilon``.

    Examples
    --------
    >>> volume.elevations
    (0.5, 1.5, 2.4)
    >>> select_scan(volume, 0.51, epsilon=0.05).elevation
    0.5
    """
    if not volume.scans:
        raise NotFoundError(f"Volume {volume.site.code} has no scans")

    elevations = np.array(volume.elevations)
    idx = int(np.argmin(np.abs(elevations - elevation)))
    if abs(elevations[idx] - elevation) > epsilon:
        raise NotFoundError(
            f"No scan at elevation {elevation} (+/- {epsilon}) in volume "
            f"{volume.site.code}; available: {list(volume.elevations)}"
        )
    return volume.scans[idx]
