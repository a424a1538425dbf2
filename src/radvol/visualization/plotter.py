"""PPI raster visualization.

Renders one panel per parameter of a projected PPI raster, e.g. original
and cleaned reflectivity side by side, to PNG/PDF.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import xarray as xr
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from radvol.radar.volume import KNOWN_PARAMETERS

if TYPE_CHECKING:
    from radvol.schemas import InternalConfig

__all__ = ['RasterPlotter', 'PRODUCT_STYLES']

logger = logging.getLogger(__name__)

# base parameter name -> (colormap, vmin, vmax)
PRODUCT_STYLES: Dict[str, Tuple[str, Optional[float], Optional[float]]] = {
    "DBZH": ("turbo", -10.0, 60.0),
    "TH": ("turbo", -10.0, 60.0),
    "VRADH": ("RdBu_r", -30.0, 30.0),
    "WRADH": ("viridis", 0.0, 10.0),
    "ZDR": ("RdYlBu_r", -4.0, 8.0),
    "RHOHV": ("cividis", 0.5, 1.0),
    "PHIDP": ("twilight", 0.0, 360.0),
    "KDP": ("viridis", -2.0, 5.0),
    "WEATHER": ("Blues", 0.0, 1.0),
    "BIOLOGY": ("Oranges", 0.0, 1.0),
    "BACKGROUND": ("Greys", 0.0, 1.0),
    "CELL": ("tab20", None, None),
}


class RasterPlotter:
    """Renders PPI rasters from the projector.

    **Layout:**

    One panel per parameter in a single row, x/y axes in km from the radar,
    optional range rings, title with site, elevation and time. No basemap.

    **Styling:**

    Colour limits and units per product (DBZH, VRADH, RHOHV, ...). Derived
    products such as ``DBZH_clean`` use the style of their base parameter.
    Categorical CELL ids are drawn with a qualitative colormap and 0
    (no cell) left blank.

    **Configuration:**

    Reads `config.visualization` (dpi, figsize, output_format,
    range_rings_km).

    Example usage::

        plotter = RasterPlotter(config)
        path = plotter.plot(raster, ["DBZH", "DBZH_clean"], "out/KBGM_ppi.png")
    """

    def __init__(self, config: "InternalConfig"):
        self.config = config
        viz = config.visualization
        self.dpi = viz.dpi
        self.figsize = tuple(viz.figsize)
        self.output_format = viz.output_format
        self.range_rings_km = list(viz.range_rings_km)

    @staticmethod
    def _style_for(name: str) -> Tuple[str, Optional[float], Optional[float]]:
        base = name if name in PRODUCT_STYLES else name.split("_", 1)[0]
        return PRODUCT_STYLES.get(base, ("viridis", None, None))

    @staticmethod
    def _label_for(da: xr.DataArray, name: str) -> str:
        units = da.attrs.get("units")
        if units is None:
            base = name.split("_", 1)[0]
            units = KNOWN_PARAMETERS.get(base, (name, "", False))[1]
        return f"{name} ({units})" if units and units != "1" else name

    def _title(self, raster: xr.Dataset) -> str:
        parts = [str(raster.attrs.get("radar", "")).strip()]
        if "elevation" in raster.attrs:
            parts.append(f"{float(raster.attrs['elevation']):g}°")
        if "time" in raster.attrs:
            parts.append(str(raster.attrs["time"]))
        return "  ".join(p for p in parts if p)

    def _plot_panel(self, ax: plt.Axes, raster: xr.Dataset, name: str,
                    x_km: np.ndarray, y_km: np.ndarray) -> None:
        da = raster[name]
        values = np.asarray(da.values, dtype=float)
        cmap, vmin, vmax = self._style_for(name)

        if name.split("_", 1)[0] == "CELL":
            values = np.ma.masked_where(~np.isfinite(values) | (values <= 0), values)
        else:
            values = np.ma.masked_invalid(values)

        im = ax.pcolormesh(x_km, y_km, values, cmap=cmap, vmin=vmin, vmax=vmax,
                           shading='auto')
        plt.colorbar(im, ax=ax, label=self._label_for(da, name), fraction=0.046, pad=0.04)

        for ring in self.range_rings_km:
            circle = plt.Circle((0, 0), ring, fill=False, color='0.5',
                                linewidth=0.6, linestyle='--')
            ax.add_patch(circle)

        ax.set_xlim(x_km.min(), x_km.max())
        ax.set_ylim(y_km.min(), y_km.max())
        ax.set_aspect('equal')
        ax.set_xlabel('Distance east (km)')
        ax.set_ylabel('Distance north (km)')
        ax.set_title(name)

    def plot(self, raster: xr.Dataset, parameters: Optional[Sequence[str]] = None,
             output_path: Optional[Union[str, Path]] = None):
        """Render ``parameters`` (default: every data variable).

        Parameters
        ----------
        raster : xr.Dataset
            PPI raster with dims (y, x).
        parameters : sequence of str, optional
            Variables to draw, one panel each.
        output_path : str or Path, optional
            Where to save. Without it the figure is returned open.

        Returns
        -------
        Path or matplotlib.figure.Figure
            Saved path, or the figure when ``output_path`` is None.

        Raises
        ------
        KeyError
            If a parameter is not in the raster.
        ValueError
            If there is nothing to plot.
        """
        if parameters is None:
            parameters = list(raster.data_vars)
        parameters = list(parameters)
        if not parameters:
            raise ValueError("No parameters to plot")
        missing = [p for p in parameters if p not in raster.data_vars]
        if missing:
            raise KeyError(f"Parameters not in raster: {missing}")

        x_km = raster["x"].values / 1000.0
        y_km = raster["y"].values / 1000.0

        fig, axes = plt.subplots(1, len(parameters), figsize=self.figsize,
                                 dpi=self.dpi, squeeze=False)
        for ax, name in zip(axes[0], parameters):
            self._plot_panel(ax, raster, name, x_km, y_km)
        fig.suptitle(self._title(raster))
        fig.tight_layout()

        if output_path is None:
            return fig

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=self.dpi, bbox_inches='tight')
        plt.close(fig)
        logger.info("Plot saved: %s", output_path.name)
        return output_path
