"""Evaluation metrics for trained estimators."""
from .metrics import (
    ClassificationMetrics,
    ClassificationResults,
    RegressionMetrics,
    RegressionResults,
)

__all__ = [
    "RegressionMetrics",
    "RegressionResults",
    "ClassificationMetrics",
    "ClassificationResults",
]
