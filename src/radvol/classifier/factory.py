"""Build the configured classifier."""

import logging
from typing import TYPE_CHECKING

from radvol.classifier.base import Classifier
from radvol.classifier.threshold import ThresholdClassifier

if TYPE_CHECKING:
    from radvol.schemas import InternalConfig

logger = logging.getLogger(__name__)

CLASSIFIERS = {
    "threshold": ThresholdClassifier,
}


def get_classifier(config: "InternalConfig") -> Classifier:
    """Instantiate the classifier named by ``classifier.method``.

    Raises
    ------
    ValueError
        If the method is unknown.
    """
    method = config.classifier.method
    try:
        cls = CLASSIFIERS[method]
    except KeyError:
        raise ValueError(
            f"Unknown classifier method: {method}; available: {sorted(CLASSIFIERS)}"
        ) from None
    logger.debug("Using classifier %s", method)
    return cls(config)
