"""Radar volume processing pipeline.

Processes one radar file through the stages load -> classify -> select
sweep -> mask -> project, and persists the PPI raster to NetCDF (and
optionally a PNG) for later use.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Union

import xarray as xr

from radvol.classifier import Classifier, get_classifier, run_classifier
from radvol.contracts import ClassificationError, assert_raster, assert_scan_geometry
from radvol.radar.loader import RadarVolumeLoader
from radvol.radar.masking import at_least, mask_scan
from radvol.radar.ppi_projector import PPIProjector
from radvol.radar.volume import PolarVolume, Scan, select_scan

if TYPE_CHECKING:
    from radvol.schemas import InternalConfig

__all__ = ['VolumeProcessor', 'output_filename']

logger = logging.getLogger(__name__)


def output_filename(site_code: str, time: datetime, elevation: float,
                    suffix: str = "nc") -> str:
    """``{site}_{YYYYmmdd_HHMMSS}_el{elevation}_ppi.{suffix}``."""
    return f"{site_code}_{time:%Y%m%d_%H%M%S}_el{elevation:g}_ppi.{suffix}"


class VolumeProcessor:
    """Processes radar volumes into PPI rasters.

    **Processing Pipeline:**

    For each volume, the processor performs (in order):

    1. **Load**: Reads the radar file with Py-ART into a PolarVolume.

    2. **Classify** (optional): Runs the configured classifier with a
       timeout. A failing classifier is logged as a warning and processing
       continues on the unclassified volume.

    3. **Select**: Picks the sweep nearest to the requested elevation
       (within ``selection.elevation_tolerance``).

    4. **Mask**: Derives ``{param}{suffix}`` products with no-data where
       ``predicate_param >= threshold`` (e.g. inside precipitation cells).

    5. **Project**: Resamples the requested parameters onto a Cartesian
       PPI raster.

    6. **Persistence**: Writes the raster to compressed NetCDF and, if
       visualization is enabled, a figure next to it.

    Stage boundaries are enforced with contracts; a ContractViolation means
    a bug, not bad input.

    Example usage::

        processor = VolumeProcessor(config)
        result = processor.process_file("KBGM20240501_000512_V06",
                                        elevation=0.5, output_dir="out")
        result["raster"]["DBZH_clean"]
    """

    def __init__(self, config: "InternalConfig",
                 classifier: Optional[Classifier] = None):
        """Initialize processor with validated configuration.

        Parameters
        ----------
        config : InternalConfig
            Fully validated runtime configuration.

        classifier : Classifier, optional
            Classifier to use instead of the one named in the config, e.g.
            a trained model wrapped in CallableClassifier.
        """
        self.config = config
        self.loader = RadarVolumeLoader(config)
        self.projector = PPIProjector(config)

        if classifier is None and config.classifier.enabled:
            classifier = get_classifier(config)
        self.classifier = classifier

    def load(self, filepath: Union[str, Path]) -> PolarVolume:
        """Read a radar file. Raises FormatError on bad input."""
        volume = self.loader.load(filepath)
        logger.info("Loaded %s %s: %d sweeps", volume.site.code,
                    volume.time.isoformat(), len(volume.scans))
        return volume

    def classify(self, volume: PolarVolume) -> PolarVolume:
        """Run the classifier, falling back to ``volume`` if it fails."""
        if self.classifier is None or not self.config.classifier.enabled:
            return volume

        try:
            classified = run_classifier(self.classifier, volume,
                                        timeout=self.config.classifier.timeout_sec)
        except ClassificationError as e:
            logger.warning("Classification failed, continuing unclassified: %s", e)
            return volume

        logger.info("Classified %s with %s", volume.site.code, self.classifier.name)
        return classified

    def mask(self, scan: Scan) -> Scan:
        """Derive masked products for one scan."""
        cfg = self.config.masking
        if not cfg.enabled:
            return scan
        return mask_scan(scan, cfg.parameters, cfg.predicate_param,
                         at_least(cfg.threshold), cfg.suffix)

    def _parameters_for(self, scan: Scan) -> List[str]:
        requested = self.config.projector.parameters
        if requested is None:
            return list(scan.parameters)

        present = [name for name in requested if scan.has_parameter(name)]
        missing = [name for name in requested if not scan.has_parameter(name)]
        if missing:
            logger.debug("Not in scan at elevation %s, skipped: %s", scan.elevation, missing)
        return present

    def process_volume(self, volume: PolarVolume,
                       elevation: Optional[float] = None) -> xr.Dataset:
        """Classify, select, mask and project one volume.

        Parameters
        ----------
        volume : PolarVolume
            Loaded volume.
        elevation : float, optional
            Requested elevation; defaults to ``selection.elevation``.

        Returns
        -------
        xr.Dataset
            PPI raster with dims (y, x).

        Raises
        ------
        NotFoundError
            If no sweep lies within tolerance of ``elevation``.
        """
        if elevation is None:
            elevation = self.config.selection.elevation

        volume = self.classify(volume)
        scan = select_scan(volume, elevation, self.config.selection.elevation_tolerance)
        scan = self.mask(scan)

        parameters = self._parameters_for(scan)
        assert_scan_geometry(scan, parameters)

        raster = self.projector.project(scan, parameters, site=volume.site, time=volume.time)
        assert_raster(raster, parameters)

        logger.info("Projected %s elevation %s: %s", volume.site.code, scan.elevation,
                    ", ".join(parameters))
        return raster

    def process_file(self, filepath: Union[str, Path], elevation: Optional[float] = None,
                     output_dir: Optional[Union[str, Path]] = None) -> Dict[str, object]:
        """Process single file: load -> classify -> select -> mask -> project -> save.

        Returns
        -------
        dict
            - `raster`: the PPI Dataset
            - `netcdf`: Path of the saved NetCDF, or None
            - `plot`: Path of the saved figure, or None
        """
        logger.info("Processing: %s", Path(filepath).name)

        volume = self.load(filepath)
        raster = self.process_volume(volume, elevation)
        raster.attrs["source"] = str(filepath)

        if output_dir is None:
            output_dir = self.config.output.output_dir

        result = {"raster": raster, "netcdf": None, "plot": None}
        if output_dir is None:
            logger.debug("No output directory configured, nothing written")
            return result

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        scan_elevation = raster.attrs["elevation"]

        if self.config.output.save_netcdf:
            path = output_dir / output_filename(volume.site.code, volume.time, scan_elevation)
            result["netcdf"] = self._save_netcdf(raster, path)

        if self.config.visualization.enabled:
            from radvol.visualization import RasterPlotter

            suffix = self.config.visualization.output_format
            path = output_dir / output_filename(volume.site.code, volume.time,
                                                scan_elevation, suffix)
            parameters = [p for p in self.config.visualization.parameters if p in raster]
            result["plot"] = RasterPlotter(self.config).plot(raster, parameters, path)

        return result

    def _save_netcdf(self, ds: xr.Dataset, path: Path) -> Optional[Path]:
        """Save the raster to compressed NetCDF4."""
        encoding = {
            name: {"zlib": True, "complevel": self.config.output.complevel}
            for name in ds.data_vars
        }
        try:
            ds.to_netcdf(path, mode='w', engine='netcdf4', format='NETCDF4',
                         encoding=encoding)
        except (OSError, RuntimeError, ValueError) as e:
            logger.warning("Could not save raster NetCDF %s: %s", path, e)
            return None

        logger.info("Raster saved: %s [%s]", path.name, ", ".join(ds.data_vars))
        return path
