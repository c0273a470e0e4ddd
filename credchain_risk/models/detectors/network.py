"""
Feed-forward network estimators.

Both trainable estimators share one architecture: dense layers of
128, 64 and 32 relu units with an L2 penalty, trained with Adam.
The fraud classifier ends in a logistic unit trained on log-loss
(binary cross-entropy); the credit regressor ends in a linear unit trained
on squared error, clipped to [0, 1] at prediction time.

Inputs are min-max normalized with fixed domain bounds before fitting and
before prediction, matching what the model server does.
"""

from typing import Literal, Optional

import numpy as np
from sklearn.neural_network import MLPClassifier, MLPRegressor

from ...config import NetworkConfig
from ...features.extractor import FRAUD_FEATURE_COUNT
from ...features.scaling import normalize_features
from ..base import BaseDetector

# sklearn needs enough rows to carve out an early-stopping validation fold
MIN_ROWS_FOR_EARLY_STOPPING = 50


def build_network(
    config: NetworkConfig,
    task: Literal["regression", "classification"],
    seed: Optional[int] = None,
    n_samples: Optional[int] = None,
) -> MLPRegressor | MLPClassifier:
    """
    Build an unfitted network with the shared architecture.

    Args:
        config: Network configuration.
        task: 'regression' for credit, 'classification' for fraud.
        seed: Random seed for weight initialization and shuffling.
        n_samples: Training rows, used to decide whether early stopping
            can hold out a validation fold.

    Returns:
        Unfitted sklearn MLP.
    """
    early_stopping = config.early_stopping and (
        n_samples is None or n_samples >= MIN_ROWS_FOR_EARLY_STOPPING
    )
    params = dict(
        hidden_layer_sizes=tuple(config.hidden_layers),
        activation=config.activation,
        solver="adam",
        alpha=config.l2,
        learning_rate_init=config.learning_rate,
        max_iter=config.epochs,
        batch_size=config.batch_size if n_samples is None else min(config.batch_size, n_samples),
        early_stopping=early_stopping,
        n_iter_no_change=config.patience,
        random_state=seed,
    )
    if task == "regression":
        return MLPRegressor(**params)
    if task == "classification":
        return MLPClassifier(**params)
    raise ValueError(f"Unknown network task: {task}")


def positive_probability(model: MLPClassifier, X: np.ndarray) -> np.ndarray:
    """Probability of the positive (fraud) class for each row."""
    proba = model.predict_proba(X)
    classes = [int(c) for c in model.classes_]
    if 1 not in classes:
        return np.zeros(len(X))
    return proba[:, classes.index(1)]


class FraudClassifier(BaseDetector):
    """
    Classification sub-estimator of the fraud ensemble.

    Wraps the fraud network and reports the fraud-class probability as
    its score.
    """

    def __init__(
        self,
        config: Optional[NetworkConfig] = None,
        random_state: Optional[int] = None,
        feature_bounds: tuple[float, float] = (0.0, 100.0),
        n_features: int = FRAUD_FEATURE_COUNT,
        name: str = "FraudNetwork"
    ):
        super().__init__(n_features=n_features, name=name)
        self.config = config or NetworkConfig()
        self.random_state = random_state
        self.feature_bounds = feature_bounds
        self._model: Optional[MLPClassifier] = None

    @classmethod
    def from_network(
        cls,
        network: MLPClassifier,
        feature_bounds: tuple[float, float] = (0.0, 100.0),
        name: str = "FraudNetwork",
    ) -> "FraudClassifier":
        """Wrap an already fitted network."""
        instance = cls(feature_bounds=feature_bounds, name=name)
        instance._model = network
        instance._is_fitted = True
        return instance

    def fit(self, X: np.ndarray, y: np.ndarray | None = None) -> "FraudClassifier":
        """
        Fit the network on labelled transactions.

        Args:
            X: Feature matrix of raw fraud features.
            y: Binary labels (1 = fraud).

        Returns:
            self: The fitted classifier.
        """
        if y is None:
            raise ValueError("FraudClassifier requires labels")
        X = self._check_matrix(X)
        y = np.asarray(y).astype(int)
        if len(np.unique(y)) < 2:
            raise ValueError("Fraud labels must contain both classes")

        self._model = build_network(
            self.config, "classification", seed=self.random_state, n_samples=len(X)
        )
        self._model.fit(normalize_features(X, *self.feature_bounds), y)
        self._is_fitted = True
        return self

    def score_samples(self, X: np.ndarray) -> np.ndarray:
        """Fraud probability for each row."""
        self._check_fitted()
        X = normalize_features(self._check_matrix(X), *self.feature_bounds)
        return positive_probability(self._model, X)

    def explain(self, features: np.ndarray, result: float) -> str:
        return f"{self.name} fraud probability {result:.2f}"

    @property
    def model(self) -> Optional[MLPClassifier]:
        """Access the underlying sklearn model."""
        return self._model
