"""Classifier capability and the guarded call that runs it.

A classifier is an opaque strategy (a trained network, a rule set, a remote
service) that receives a PolarVolume and returns a new PolarVolume in which
some scans carry extra parameters, typically class probabilities
(WEATHER, BIOLOGY, BACKGROUND) and a categorical cell id (CELL).

The core never trusts the result: :func:`run_classifier` bounds the call by
a timeout and checks the output with :func:`validate_classification` before
it is used. Every failure surfaces as ClassificationError so the caller can
decide to continue with unclassified data.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Iterable, Optional

import numpy as np

from radvol.contracts.base import require
from radvol.contracts.failure import ClassificationError
from radvol.radar.volume import PolarVolume, Scan

__all__ = [
    "PROBABILITY_PARAMETERS",
    "ID_PARAMETERS",
    "Classifier",
    "CallableClassifier",
    "run_classifier",
    "validate_classification",
]

logger = logging.getLogger(__name__)

PROBABILITY_PARAMETERS = ("WEATHER", "BIOLOGY", "BACKGROUND")
ID_PARAMETERS = ("CELL",)


class Classifier(ABC):
    """Volume classifier capability.

    Implementations must not modify the input volume (it is immutable in
    any case) and must return a volume with the same site, time and
    elevations, where each scan may carry additional parameters.
    """

    name: str = "classifier"

    @abstractmethod
    def classify(self, volume: PolarVolume) -> PolarVolume:
        """Return ``volume`` augmented with classification parameters."""


class CallableClassifier(Classifier):
    """Adapt a plain function ``volume -> volume`` to the Classifier interface.

    Examples
    --------
    >>> clf = CallableClassifier(my_model.predict, name="mistnet")
    >>> classified = run_classifier(clf, volume, timeout=30)
    """

    def __init__(self, func: Callable[[PolarVolume], PolarVolume], name: Optional[str] = None):
        self.func = func
        self.name = name or getattr(func, "__name__", "callable")

    def classify(self, volume: PolarVolume) -> PolarVolume:
        return self.func(volume)


def _check_added(scan: Scan, name: str, values: np.ndarray,
                 probability_params, id_params) -> None:
    if name not in probability_params and name not in id_params:
        return
    present = values[~np.isnan(values)]
    if present.size == 0:
        return
    if not np.all(np.isfinite(present)):
        raise ClassificationError(
            f"Classifier output '{name}' at elevation {scan.elevation} holds infinite values"
        )
    if name in probability_params and (present.min() < 0.0 or present.max() > 1.0):
        raise ClassificationError(
            f"Classifier output '{name}' at elevation {scan.elevation} has values "
            f"outside [0, 1] (min={present.min()}, max={present.max()})"
        )
    if name in id_params and (present.min() < 0 or np.any(np.mod(present, 1.0) != 0)):
        raise ClassificationError(
            f"Classifier output '{name}' at elevation {scan.elevation} is not a "
            f"non-negative integer id field, shape {values.shape}"
        )


def validate_classification(original: PolarVolume, result,
                            probability_params: Iterable[str] = PROBABILITY_PARAMETERS,
                            id_params: Iterable[str] = ID_PARAMETERS) -> PolarVolume:
    """Check that a classifier result is a consistent augmentation.

    Parameters
    ----------
    original : PolarVolume
        Volume handed to the classifier.
    result : object
        Whatever the classifier returned.
    probability_params : iterable of str
        Added parameters that must lie in [0, 1] (NaN allowed).
    id_params : iterable of str
        Added parameters that must hold non-negative integers (NaN allowed).

    Returns
    -------
    PolarVolume
        ``result``, with id parameters flagged categorical.

    Raises
    ------
    ClassificationError
        If the result is not a PolarVolume, changes site, time, elevations,
        geometry or existing parameters, or holds out-of-range values.
    """
    probability_params = frozenset(probability_params)
    id_params = frozenset(id_params)

    require(
        isinstance(result, PolarVolume),
        f"Classifier returned {type(result).__name__}, expected PolarVolume",
        ClassificationError,
    )
    require(
        result.site == original.site and result.time == original.time,
        f"Classifier changed site/time: {result.site.code}@{result.time} "
        f"vs {original.site.code}@{original.time}",
        ClassificationError,
    )
    require(
        result.elevations == original.elevations,
        f"Classifier changed elevations: {list(result.elevations)} "
        f"vs {list(original.elevations)}",
        ClassificationError,
    )

    scans = []
    for before, after in zip(original.scans, result.scans):
        require(
            after.shape == before.shape
            and after.azimuth_resolution == before.azimuth_resolution
            and after.range_resolution == before.range_resolution
            and after.first_azimuth == before.first_azimuth
            and after.range_start == before.range_start,
            f"Classifier output at elevation {before.elevation} has geometry "
            f"{after.shape} from azimuth {after.first_azimuth} and range {after.range_start}, "
            f"expected {before.shape} from azimuth {before.first_azimuth} "
            f"and range {before.range_start}",
            ClassificationError,
        )
        for name, values in before.parameters.items():
            require(
                after.has_parameter(name)
                and np.array_equal(after.parameters[name], values, equal_nan=True),
                f"Classifier removed or modified '{name}' at elevation {before.elevation}",
                ClassificationError,
            )

        added = [name for name in after.parameters if not before.has_parameter(name)]
        for name in added:
            _check_added(after, name, after.parameters[name], probability_params, id_params)

        for name in added:
            if name in id_params and name not in after.categorical:
                after = after.with_parameter(name, after.parameters[name], categorical=True)
        scans.append(after)

    return result.with_scans(scans)


def run_classifier(classifier: Classifier, volume: PolarVolume,
                   timeout: Optional[float] = None,
                   probability_params: Iterable[str] = PROBABILITY_PARAMETERS,
                   id_params: Iterable[str] = ID_PARAMETERS) -> PolarVolume:
    """Run a classifier with a deadline and validate its output.

    The classifier runs in a worker thread. If it does not finish within
    ``timeout`` seconds the call fails and the worker is abandoned; since
    scans are immutable the abandoned worker cannot affect ``volume``.

    Parameters
    ----------
    classifier : Classifier
        Strategy to run.
    volume : PolarVolume
        Input volume, never modified.
    timeout : float, optional
        Seconds to wait. None waits indefinitely.

    Returns
    -------
    PolarVolume
        The validated, classified volume.

    Raises
    ------
    ClassificationError
        On timeout, on any exception raised by the classifier, or when the
        output fails :func:`validate_classification`.
    """
    name = getattr(classifier, "name", type(classifier).__name__)
    logger.debug("Running classifier %s on %s (timeout=%s)", name, volume.site.code, timeout)

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"classifier-{name}")
    try:
        future = executor.submit(classifier.classify, volume)
        try:
            result = future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise ClassificationError(
                f"Classifier {name} timed out after {timeout}s on {volume.site.code}"
            ) from None
        except Exception as e:
            raise ClassificationError(f"Classifier {name} failed: {e}") from e
    finally:
        executor.shutdown(wait=False)

    return validate_classification(volume, result, probability_params, id_params)
