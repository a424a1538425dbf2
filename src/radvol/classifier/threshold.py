"""Rule-based classifier from reflectivity and correlation coefficient.

Precipitation returns have a correlation coefficient (RHOHV) close to 1,
biological scatterers (birds, insects) a markedly lower one. This module
turns that into class probabilities per gate and groups precipitation
gates into labelled cells, so the masking engine can remove precipitation
and leave the biological signal.
"""

import logging
from typing import TYPE_CHECKING, Dict

import numpy as np
from scipy import ndimage
from skimage.measure import label

from radvol.classifier.base import Classifier
from radvol.radar.radar_utils import covers_full_circle
from radvol.radar.volume import PolarVolume, Scan

if TYPE_CHECKING:
    from radvol.schemas import InternalConfig

__all__ = ["ThresholdClassifier"]

logger = logging.getLogger(__name__)


class ThresholdClassifier(Classifier):
    """Config-driven threshold classification.

    For every scan that carries both DBZH and RHOHV, four parameters are
    added:

    - ``WEATHER``: 0 below ``rhohv_low``, 1 above ``rhohv_high``, linear in
      between, where DBZH >= ``dbz_min``; 0 elsewhere. NaN where RHOHV is
      missing but DBZH is not.
    - ``BACKGROUND``: 1 where DBZH is no-data or below ``dbz_min``, else 0.
    - ``BIOLOGY``: ``1 - WEATHER - BACKGROUND``.
    - ``CELL``: connected regions of ``WEATHER >= weather_threshold``,
      regions smaller than ``min_cell_gates`` dropped, grown by
      ``dilation_gates`` gates, numbered largest first (0 = no cell).

    Scans without DBZH or RHOHV (e.g. Doppler-only sweeps) are passed
    through unchanged.

    Examples
    --------
    >>> clf = ThresholdClassifier(config)
    >>> classified = run_classifier(clf, volume, timeout=60)
    >>> classified.select_scan(0.5).parameter("CELL").max()
    7.0
    """

    name = "threshold"

    def __init__(self, config: "InternalConfig"):
        self.config = config
        cfg = config.classifier
        self.dbz_min = cfg.dbz_min
        self.rhohv_low = cfg.rhohv_low
        self.rhohv_high = cfg.rhohv_high
        self.weather_threshold = cfg.weather_threshold
        self.min_cell_gates = cfg.min_cell_gates
        self.dilation_gates = cfg.dilation_gates

        logger.info("ThresholdClassifier initialized: dbz_min=%s, rhohv=[%s, %s]",
                    self.dbz_min, self.rhohv_low, self.rhohv_high)

    def classify(self, volume: PolarVolume) -> PolarVolume:
        return volume.map_scans(self.classify_scan)

    def classify_scan(self, scan: Scan) -> Scan:
        """Add WEATHER, BIOLOGY, BACKGROUND and CELL to one scan."""
        if not (scan.has_parameter("DBZH") and scan.has_parameter("RHOHV")):
            logger.debug("Scan at elevation %s lacks DBZH/RHOHV, not classified",
                         scan.elevation)
            return scan

        products = self.probabilities(scan.parameter("DBZH"), scan.parameter("RHOHV"))
        full_circle = covers_full_circle(scan.nrays, scan.azimuth_resolution)
        cells = self.label_cells(products["WEATHER"], wrap=full_circle)

        out = scan
        for name, values in products.items():
            out = out.with_parameter(name, values)
        out = out.with_parameter("CELL", cells, categorical=True)

        logger.debug("Classified elevation %s: %d cells", scan.elevation, int(cells.max()))
        return out

    def probabilities(self, dbzh: np.ndarray, rhohv: np.ndarray) -> Dict[str, np.ndarray]:
        """Per-gate WEATHER, BIOLOGY and BACKGROUND probabilities."""
        with np.errstate(invalid="ignore"):
            echo = np.isfinite(dbzh) & (dbzh >= self.dbz_min)
            ramp = np.clip((rhohv - self.rhohv_low) / (self.rhohv_high - self.rhohv_low), 0.0, 1.0)

        background = np.where(echo, 0.0, 1.0)
        weather = np.where(echo, ramp, 0.0)
        biology = 1.0 - weather - background
        return {"WEATHER": weather, "BIOLOGY": biology, "BACKGROUND": background}

    def label_cells(self, weather: np.ndarray, wrap: bool = True) -> np.ndarray:
        """Label precipitation cells on a (rays, bins) WEATHER field.

        Parameters
        ----------
        weather : np.ndarray
            Precipitation probability, NaN allowed.
        wrap : bool
            Treat the last ray as adjacent to the first (full 360 sweep).

        Returns
        -------
        np.ndarray
            Float cell ids, 0 outside cells, 1 for the largest cell.
        """
        with np.errstate(invalid="ignore"):
            binary_mask = np.nan_to_num(weather, nan=0.0) >= self.weather_threshold

        labels = label(binary_mask)
        if labels.max() == 0:
            return np.zeros(weather.shape)

        if wrap and labels.shape[0] > 2:
            labels = self._merge_seam(labels)

        labels = self._relabel_by_size(labels, self.min_cell_gates)

        if self.dilation_gates > 0 and labels.max() > 0:
            labels = self._dilate(labels, self.dilation_gates, wrap)
            labels = self._relabel_by_size(labels, 1)

        return labels.astype(np.float64)

    @staticmethod
    def _merge_seam(labels: np.ndarray) -> np.ndarray:
        """Join regions that touch across the 0/360 degree seam."""
        first, last = labels[0], labels[-1]
        nbins = labels.shape[1]
        parent = np.arange(labels.max() + 1)

        def find(a):
            while parent[a] != a:
                a = parent[a]
            return a

        for d in (-1, 0, 1):
            lo, hi = max(0, -d), min(nbins, nbins - d)
            a, b = last[lo:hi], first[lo + d:hi + d]
            both = (a > 0) & (b > 0)
            for x, y in zip(a[both].tolist(), b[both].tolist()):
                rx, ry = find(x), find(y)
                if rx != ry:
                    parent[max(rx, ry)] = min(rx, ry)

        lookup = np.array([find(i) for i in range(parent.size)])
        return lookup[labels]

    @staticmethod
    def _relabel_by_size(labels: np.ndarray, min_gates: int) -> np.ndarray:
        """Drop regions below ``min_gates``, renumber: largest=1."""
        counts = np.bincount(labels.ravel())
        keep = np.flatnonzero(counts >= min_gates)
        keep = keep[keep > 0]

        num_small = np.count_nonzero(counts[1:]) - keep.size
        if num_small > 0:
            logger.debug("Removed %d small cells (< %d gates)", num_small, min_gates)

        labels_sorted = keep[np.argsort(-counts[keep], kind="stable")]
        old_to_new = np.zeros(counts.size, dtype=np.int32)
        old_to_new[labels_sorted] = np.arange(1, labels_sorted.size + 1)
        return old_to_new[labels]

    @staticmethod
    def _dilate(labels: np.ndarray, gates: int, wrap: bool) -> np.ndarray:
        """Grow every cell into unlabelled gates within ``gates`` gates."""
        pad = min(gates, labels.shape[0]) if wrap else 0
        padded = np.pad(labels, ((pad, pad), (0, 0)), mode="wrap") if pad else labels

        distance, (iy, ix) = ndimage.distance_transform_edt(padded == 0, return_indices=True)
        grown = np.where(distance <= gates, padded[iy, ix], 0)
        if pad:
            grown = grown[pad:-pad]
        return grown
