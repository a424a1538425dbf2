"""Conditional masking of radar parameters.

Derives cleaned products from a scan: every bin where a predicate on another
parameter holds (e.g. precipitation cell id >= 1) becomes no-data, all other
bins copy the source value unchanged. The result is always stored under a
new parameter name; source arrays are never modified, so original and
cleaned products can be compared side by side.
"""

import logging
from typing import Callable, Iterable, Optional, Sequence, Union

import numpy as np

from radvol.contracts.failure import GeometryMismatchError
from radvol.radar.volume import DEFAULT_ELEVATION_EPSILON, NODATA, PolarVolume, Scan

__all__ = [
    "Predicate",
    "at_least",
    "greater_than",
    "equal_to",
    "mask_array",
    "derive_parameter",
    "mask_scan",
    "mask_volume",
]

logger = logging.getLogger(__name__)

Predicate = Callable[[np.ndarray], np.ndarray]
ArrayOrName = Union[str, np.ndarray]


def at_least(threshold: float) -> Predicate:
    """Predicate ``value >= threshold``."""
    def predicate(values):
        return values >= threshold
    predicate.__name__ = f"at_least({threshold})"
    return predicate


def greater_than(threshold: float) -> Predicate:
    """Predicate ``value > threshold``."""
    def predicate(values):
        return values > threshold
    predicate.__name__ = f"greater_than({threshold})"
    return predicate


def equal_to(value: float) -> Predicate:
    """Predicate ``values == value``, for discrete class ids."""
    def predicate(values):
        return values == value
    predicate.__name__ = f"equal_to({value})"
    return predicate


def mask_array(source: np.ndarray, predicate_values: np.ndarray,
               predicate: Predicate) -> np.ndarray:
    """Replace source values with no-data where the predicate holds.

    Parameters
    ----------
    source : np.ndarray
        Values to copy.
    predicate_values : np.ndarray
        Values the predicate is evaluated on, same shape as ``source``.
    predicate : callable
        Vectorized function returning a boolean array. No-data (NaN) in
        ``predicate_values`` never satisfies the predicate.

    Returns
    -------
    np.ndarray
        New float64 array; each element is either the source value or NaN.

    Raises
    ------
    GeometryMismatchError
        If the two arrays differ in shape.
    """
    source = np.asarray(source, dtype=np.float64)
    predicate_values = np.asarray(predicate_values, dtype=np.float64)
    if source.shape != predicate_values.shape:
        raise GeometryMismatchError(
            f"Source shape {source.shape} does not match predicate shape "
            f"{predicate_values.shape}"
        )

    with np.errstate(invalid="ignore"):
        hit = np.asarray(predicate(predicate_values), dtype=bool)
    hit &= np.isfinite(predicate_values)
    return np.where(hit, NODATA, source)


def _resolve(scan: Scan, param: ArrayOrName, role: str) -> np.ndarray:
    if isinstance(param, str):
        return scan.parameter(param)

    values = np.asarray(param)
    if values.shape != scan.shape:
        raise GeometryMismatchError(
            f"{role} array shape {values.shape} does not match scan at "
            f"elevation {scan.elevation} with shape {scan.shape}"
        )
    return values


def derive_parameter(scan: Scan, new_name: str, source_param: ArrayOrName,
                     predicate_param: ArrayOrName, predicate: Predicate) -> Scan:
    """Derive a masked copy of one parameter under a new name.

    Parameters
    ----------
    scan : Scan
        Scan providing geometry and named parameters.
    new_name : str
        Name of the derived parameter. Must not exist in the scan.
    source_param : str or np.ndarray
        Parameter whose values are copied.
    predicate_param : str or np.ndarray
        Parameter the predicate is evaluated on.
    predicate : callable
        Vectorized boolean function, e.g. ``at_least(1)``.

    Returns
    -------
    Scan
        New scan with ``new_name`` added. ``scan`` itself is unchanged.

    Raises
    ------
    GeometryMismatchError
        If an explicit array does not match the scan geometry.
    NotFoundError
        If a named parameter is missing.
    ValueError
        If ``new_name`` already exists.

    Examples
    --------
    >>> clean = derive_parameter(scan, "DBZH_clean", "DBZH", "CELL", at_least(1))
    >>> clean.parameter("DBZH")          # still the original
    >>> clean.parameter("DBZH_clean")    # NaN inside precipitation cells
    """
    if scan.has_parameter(new_name):
        raise ValueError(
            f"Parameter '{new_name}' already exists in scan at elevation {scan.elevation}"
        )

    source = _resolve(scan, source_param, "Source")
    predicate_values = _resolve(scan, predicate_param, "Predicate")
    derived = mask_array(source, predicate_values, predicate)

    logger.debug("Derived %s at elevation %s: %d bins masked",
                 new_name, scan.elevation,
                 int(np.count_nonzero(np.isnan(derived) & ~np.isnan(source))))
    return scan.with_parameter(new_name, derived)


def mask_scan(scan: Scan, parameters: Iterable[str], predicate_param: str,
              predicate: Predicate, suffix: str = "_clean") -> Scan:
    """Derive ``{name}{suffix}`` for every listed parameter present in the scan.

    Parameters missing from the scan are skipped. If the predicate
    parameter itself is missing the scan is returned unchanged.
    """
    if not scan.has_parameter(predicate_param):
        logger.debug("No %s at elevation %s, nothing to mask",
                     predicate_param, scan.elevation)
        return scan

    out = scan
    for name in parameters:
        if not scan.has_parameter(name):
            continue
        out = derive_parameter(out, f"{name}{suffix}", name, predicate_param, predicate)
    return out


def mask_volume(volume: PolarVolume, parameters: Sequence[str], predicate_param: str,
                predicate: Predicate, suffix: str = "_clean",
                elevations: Optional[Sequence[float]] = None,
                epsilon: float = DEFAULT_ELEVATION_EPSILON) -> PolarVolume:
    """Apply :func:`mask_scan` to every scan (or the listed elevations).

    A scan is selected when its elevation lies within ``epsilon`` degrees of
    one of ``elevations``.
    """
    def _mask(scan: Scan) -> Scan:
        if elevations is not None and not any(
                abs(scan.elevation - e) <= epsilon for e in elevations):
            return scan
        return mask_scan(scan, parameters, predicate_param, predicate, suffix)

    return volume.map_scans(_mask)
