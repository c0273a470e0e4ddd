"""Fraud sub-estimators."""
from .isolation_forest import AnomalyDetector
from .lof import OutlierDetector
from .network import FraudClassifier, build_network, positive_probability

__all__ = [
    "AnomalyDetector",
    "OutlierDetector",
    "FraudClassifier",
    "build_network",
    "positive_probability",
]
