"""Scan stage contract.

Enforces the guarantee that a selected scan carries the parameters the
downstream stages need, all on one geometry.
"""

from typing import TYPE_CHECKING, Iterable

from radvol.contracts.base import require

if TYPE_CHECKING:
    from radvol.radar.volume import Scan


def assert_scan_geometry(scan: "Scan", parameters: Iterable[str]) -> None:
    """Enforce scan stage contract.

    Called after scan selection and masking. Verifies that each required
    parameter exists and is shaped (nrays, nbins).

    Parameters
    ----------
    scan : Scan
        Scan about to be projected.

    parameters : iterable of str
        Parameter names that must be present.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        scan.shape is not None,
        f"Scan contract violated: scan at elevation {scan.elevation} has no parameters"
    )
    for name in parameters:
        require(
            scan.has_parameter(name),
            f"Scan contract violated: missing '{name}' at elevation {scan.elevation}"
        )
        shape = scan.parameters[name].shape
        require(
            shape == (scan.nrays, scan.nbins),
            f"Scan contract violated: '{name}' has shape {shape}, expected {(scan.nrays, scan.nbins)}"
        )
