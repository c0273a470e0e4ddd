"""
Ensemble Module.

Combines the fraud sub-estimators with a weighted average of their
scores into a single ML fraud score.
"""

import math
from typing import Optional

import numpy as np

from ..errors import ComputationError
from .base import BaseDetector


class WeightedEnsemble:
    """
    Weighted combination of fraud sub-estimators.

    Each detector is registered under a role name (anomaly, outlier,
    classification) with a weight; weights must sum to one so the
    combined score stays in [0, 1].
    """

    def __init__(self, detectors: dict[str, tuple[BaseDetector, float]], name: str = "Ensemble"):
        """
        Initialize the ensemble.

        Args:
            detectors: Mapping of role name to (detector, weight).
            name: Human-readable name.
        """
        self.name = name
        self.detectors = dict(detectors)
        self._check_weights(self.get_detector_weights())

    @staticmethod
    def _check_weights(weights: dict[str, float]) -> None:
        if not math.isclose(sum(weights.values()), 1.0, abs_tol=1e-9):
            raise ValueError(f"Ensemble weights must sum to 1.0, got {sum(weights.values())}")

    @property
    def is_fitted(self) -> bool:
        return all(detector.is_fitted for detector, _ in self.detectors.values())

    def component_scores(self, features: np.ndarray) -> dict[str, float]:
        """
        Score a vector with every sub-estimator.

        Raises:
            ComputationError: If a sub-estimator is unfitted or returns a
                score outside [0, 1].
        """
        scores = {}
        for role, (detector, _) in self.detectors.items():
            score = detector.predict(features)
            if not 0.0 <= score <= 1.0 or math.isnan(score):
                raise ComputationError(f"{detector.name} returned out-of-range score {score}")
            scores[role] = score
        return scores

    def combine(self, scores: dict[str, float]) -> float:
        """Weighted sum of component scores."""
        return float(sum(weight * scores[role] for role, (_, weight) in self.detectors.items()))

    def score(self, features: np.ndarray) -> tuple[float, dict[str, float]]:
        """Return the combined ML score and the per-role scores."""
        scores = self.component_scores(features)
        return self.combine(scores), scores

    def score_samples(self, X: np.ndarray) -> np.ndarray:
        """Combined score for every row of a matrix."""
        total: Optional[np.ndarray] = None
        for detector, weight in self.detectors.values():
            part = weight * detector.score_samples(X)
            total = part if total is None else total + part
        return total

    def explain(self, features: np.ndarray, scores: dict[str, float]) -> list[str]:
        """One explanation line per sub-estimator."""
        return [
            self.detectors[role][0].explain(features, score)
            for role, score in scores.items()
        ]

    def get_detector_weights(self) -> dict[str, float]:
        """Get current detector weights."""
        return {role: weight for role, (_, weight) in self.detectors.items()}

