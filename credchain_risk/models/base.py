"""
Base Estimator Interface Module.

Defines the abstract base classes every estimator implements so credit
and fraud scorers, their trainable variants and the fraud sub-estimators
share one calling convention.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

import numpy as np
from sklearn.preprocessing import StandardScaler

from ..errors import ComputationError
from ..features.scaling import validate_matrix, validate_vector


class EstimatorKind(str, Enum):
    """Which question an estimator answers."""
    CREDIT = "credit"
    FRAUD = "fraud"


class Estimator(ABC):
    """
    Abstract base class for all estimators.

    Each estimator:
    1. Declares its kind and expected feature length
    2. Maps one feature vector to an immutable result (predict)
    3. Explains a result in plain text (explain)
    """

    kind: EstimatorKind
    n_features: int

    def __init__(self, name: str = "Estimator"):
        """
        Initialize the estimator.

        Args:
            name: Human-readable name for the estimator.
        """
        self.name = name
        self._is_fitted = False

    @abstractmethod
    def predict(self, features: np.ndarray) -> Any:
        """
        Score a single feature vector.

        Args:
            features: Raw feature vector of length n_features.

        Returns:
            Result object for this estimator kind.
        """

    @abstractmethod
    def explain(self, features: np.ndarray, result: Any) -> str:
        """
        Explain a result produced by predict.

        Args:
            features: The feature vector that was scored.
            result: The result returned by predict.

        Returns:
            Human-readable explanation.
        """

    def _check_vector(self, features) -> np.ndarray:
        return validate_vector(features, self.n_features, label=f"{self.name} features")

    @property
    def is_fitted(self) -> bool:
        """Check if the estimator is ready to predict."""
        return self._is_fitted

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', fitted={self._is_fitted})"


class BaseDetector(Estimator):
    """
    Base class for fraud sub-estimators.

    Detectors learn from a feature matrix and score rows in [0, 1],
    where higher means more suspicious.
    """

    kind = EstimatorKind.FRAUD

    def __init__(self, n_features: int, name: str = "BaseDetector"):
        super().__init__(name=name)
        self.n_features = n_features

    @abstractmethod
    def fit(self, X: np.ndarray, y: np.ndarray | None = None) -> "BaseDetector":
        """
        Fit the detector on training data.

        Args:
            X: Feature matrix.
            y: Labels, used only by supervised detectors.

        Returns:
            self: The fitted detector instance.
        """

    @abstractmethod
    def score_samples(self, X: np.ndarray) -> np.ndarray:
        """
        Score every row of a feature matrix.

        Args:
            X: Feature matrix.

        Returns:
            Array of scores in [0, 1].
        """

    def predict(self, features: np.ndarray) -> float:
        """Score a single feature vector."""
        vector = self._check_vector(features)
        return float(self.score_samples(vector.reshape(1, -1))[0])

    def explain(self, features: np.ndarray, result: float) -> str:
        return f"{self.name} score {result:.2f}"

    def _check_fitted(self) -> None:
        if not self._is_fitted:
            raise ComputationError(f"{self.name} must be fitted before scoring")

    def _check_matrix(self, X) -> np.ndarray:
        return validate_matrix(X, self.n_features, label=f"{self.name} features")


class CalibratedDetector(BaseDetector):
    """
    Unsupervised detector over standardized features.

    Subclasses supply a raw outlyingness score (higher = more unusual).
    The 1st and 99th percentiles of the training scores become the [0, 1]
    range, so a single transaction scores without a batch to normalize
    against.
    """

    score_label = "score"

    def __init__(self, n_features: int, feature_names: tuple[str, ...], name: str = "CalibratedDetector"):
        super().__init__(n_features=n_features, name=name)
        self.feature_names = feature_names
        self._scaler: StandardScaler | None = None
        self._score_bounds: tuple[float, float] = (0.0, 1.0)

    @abstractmethod
    def _fit_model(self, X_scaled: np.ndarray) -> np.ndarray:
        """Fit on standardized rows and return their raw scores."""

    @abstractmethod
    def _raw_scores(self, X_scaled: np.ndarray) -> np.ndarray:
        """Raw scores of standardized rows."""

    def fit(self, X: np.ndarray, y: np.ndarray | None = None) -> "CalibratedDetector":
        """
        Fit the scaler, the model and the score calibration.

        Args:
            X: Feature matrix of raw fraud features.
            y: Ignored.

        Returns:
            self: The fitted detector.
        """
        X = self._check_matrix(X)
        self._scaler = StandardScaler()
        raw = self._fit_model(self._scaler.fit_transform(X))
        low, high = np.percentile(raw, [1, 99])
        self._score_bounds = (float(low), float(high))
        self._is_fitted = True
        return self

    def score_samples(self, X: np.ndarray) -> np.ndarray:
        self._check_fitted()
        raw = self._raw_scores(self._scaler.transform(self._check_matrix(X)))
        low, high = self._score_bounds
        return np.clip((raw - low) / (high - low + 1e-10), 0.0, 1.0)

    def top_features(self, features: np.ndarray, top_n: int = 3) -> list[str]:
        """Names of the features deviating most from the training mean."""
        self._check_fitted()
        deviation = np.abs(self._scaler.transform(self._check_vector(features).reshape(1, -1))[0])
        return [self.feature_names[i] for i in np.argsort(deviation)[::-1][:top_n]]

    def explain(self, features: np.ndarray, result: float) -> str:
        top = ", ".join(self.top_features(features))
        return f"{self.name} {self.score_label} {result:.2f} (top: {top})"
