"""External classifier interface.

Exports
-------
Classifier : class
    Abstract volume classifier capability
CallableClassifier : class
    Adapter for plain functions
ThresholdClassifier : class
    Rule-based RHOHV/DBZH classifier with cell labelling
run_classifier : function
    Timeout-bounded, validated classifier call
validate_classification : function
    Consistency check of a classifier result
get_classifier : function
    Config-driven factory
"""

from radvol.classifier.base import (
    ID_PARAMETERS,
    PROBABILITY_PARAMETERS,
    CallableClassifier,
    Classifier,
    run_classifier,
    validate_classification,
)
from radvol.classifier.threshold import ThresholdClassifier
from radvol.classifier.factory import get_classifier

__all__ = [
    "ID_PARAMETERS",
    "PROBABILITY_PARAMETERS",
    "Classifier",
    "CallableClassifier",
    "ThresholdClassifier",
    "run_classifier",
    "validate_classification",
    "get_classifier",
]
