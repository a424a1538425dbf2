"""Raster stage contract.

Enforces the guarantee that after projection, the PPI raster is a valid
Cartesian grid for plotting and export.
"""

from typing import Iterable

import numpy as np
import xarray as xr

from radvol.contracts.base import require


def assert_raster(ds: xr.Dataset, parameters: Iterable[str]) -> None:
    """Enforce raster stage contract.

    Called immediately after projection.

    Parameters
    ----------
    ds : xr.Dataset
        Dataset from the PPI projector.

    parameters : iterable of str
        Parameters that were requested.

    Raises
    ------
    ContractViolation
        If any invariant is violated
    """
    require(
        "x" in ds.coords,
        "Raster contract violated: missing 'x' coordinate"
    )
    require(
        "y" in ds.coords,
        "Raster contract violated: missing 'y' coordinate"
    )
    for name in parameters:
        require(
            name in ds.data_vars,
            f"Raster contract violated: missing '{name}' variable"
        )
        var = ds[name]
        require(
            var.dims == ("y", "x"),
            f"Raster contract violated: '{name}' has dims {var.dims}, expected ('y', 'x')"
        )
        require(
            np.issubdtype(var.dtype, np.floating),
            f"Raster contract violated: '{name}' has dtype {var.dtype}, expected float"
        )
