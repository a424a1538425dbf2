"""Visualization modules.

- plotter: RasterPlotter for PPI rasters
"""

from radvol.visualization.plotter import RasterPlotter

__all__ = ["RasterPlotter"]
