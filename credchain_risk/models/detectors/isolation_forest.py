"""
Isolation Forest Detector.

Anomaly sub-estimator of the fraud ensemble. Transactions that a random
forest of isolation trees separates in few splits score high.
"""

from typing import Optional

import numpy as np
from sklearn.ensemble import IsolationForest

from ...features.extractor import FRAUD_FEATURE_COUNT, FRAUD_FEATURE_NAMES
from ..base import CalibratedDetector


class AnomalyDetector(CalibratedDetector):
    """
    Fraud sub-estimator backed by scikit-learn's IsolationForest.

    Carries weight 0.4 in the ML ensemble by default.
    """

    score_label = "anomaly score"

    def __init__(
        self,
        contamination: str | float = "auto",
        n_estimators: int = 100,
        max_samples: str | int = "auto",
        random_state: Optional[int] = None,
        n_features: int = FRAUD_FEATURE_COUNT,
        feature_names: tuple[str, ...] = FRAUD_FEATURE_NAMES,
        name: str = "IsolationForest"
    ):
        """
        Args:
            contamination: Expected share of anomalies, or 'auto'.
            n_estimators: Number of isolation trees.
            max_samples: Rows drawn per tree.
            random_state: Seed of the forest.
            n_features: Expected feature vector length.
            feature_names: Names used in explanations.
            name: Detector name in logs and explanations.
        """
        super().__init__(n_features=n_features, feature_names=feature_names, name=name)
        self.contamination = contamination if contamination == "auto" else float(contamination)
        self.n_estimators = n_estimators
        self.max_samples = max_samples
        self.random_state = random_state
        self._model: Optional[IsolationForest] = None

    def _fit_model(self, X_scaled: np.ndarray) -> np.ndarray:
        self._model = IsolationForest(
            n_estimators=self.n_estimators,
            max_samples=self.max_samples,
            contamination=self.contamination,
            random_state=self.random_state,
            n_jobs=-1,
        ).fit(X_scaled)
        return self._raw_scores(X_scaled)

    def _raw_scores(self, X_scaled: np.ndarray) -> np.ndarray:
        # sklearn scores normal rows higher
        return -self._model.score_samples(X_scaled)

    @property
    def model(self) -> Optional[IsolationForest]:
        """The fitted sklearn forest."""
        return self._model
