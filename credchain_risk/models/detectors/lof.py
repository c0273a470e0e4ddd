"""
Local Outlier Factor Detector.

Outlier sub-estimator of the fraud ensemble: a transaction lying in a
sparser region than its nearest training neighbours scores high.
"""

from typing import Optional

import numpy as np
from sklearn.neighbors import LocalOutlierFactor

from ...features.extractor import FRAUD_FEATURE_COUNT, FRAUD_FEATURE_NAMES
from ..base import CalibratedDetector


class OutlierDetector(CalibratedDetector):
    """
    Fraud sub-estimator backed by scikit-learn's LocalOutlierFactor.

    Runs in novelty mode so transactions unseen during fitting can be
    scored.
    """

    score_label = "outlier score"

    def __init__(
        self,
        n_neighbors: int = 20,
        contamination: str | float = "auto",
        metric: str = "minkowski",
        n_features: int = FRAUD_FEATURE_COUNT,
        feature_names: tuple[str, ...] = FRAUD_FEATURE_NAMES,
        name: str = "LOF"
    ):
        """
        Args:
            n_neighbors: Neighbourhood size, capped at training rows - 1.
            contamination: Expected share of outliers, or 'auto'.
            metric: Distance metric.
            n_features: Expected feature vector length.
            feature_names: Names used in explanations.
            name: Detector name in logs and explanations.
        """
        super().__init__(n_features=n_features, feature_names=feature_names, name=name)
        self.n_neighbors = n_neighbors
        self.contamination = contamination if contamination == "auto" else float(contamination)
        self.metric = metric
        self._model: Optional[LocalOutlierFactor] = None

    def _fit_model(self, X_scaled: np.ndarray) -> np.ndarray:
        if len(X_scaled) < 2:
            raise ValueError("LOF needs at least two training rows")
        self._model = LocalOutlierFactor(
            n_neighbors=min(self.n_neighbors, len(X_scaled) - 1),
            contamination=self.contamination,
            metric=self.metric,
            novelty=True,
            n_jobs=-1,
        ).fit(X_scaled)
        # training rows are scored by their own outlier factor
        return -self._model.negative_outlier_factor_

    def _raw_scores(self, X_scaled: np.ndarray) -> np.ndarray:
        return -self._model.score_samples(X_scaled)

    @property
    def model(self) -> Optional[LocalOutlierFactor]:
        """The fitted sklearn LOF."""
        return self._model
