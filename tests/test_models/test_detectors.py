"""Unit tests for the fraud sub-estimators."""

import numpy as np
import pytest

from credchain_risk.config import NetworkConfig
from credchain_risk.errors import ComputationError, InputError
from credchain_risk.models.detectors import (
    AnomalyDetector,
    FraudClassifier,
    OutlierDetector,
    build_network,
)


@pytest.fixture
def normal_data():
    """Tight cluster of normal transactions."""
    rng = np.random.default_rng(0)
    return rng.normal(loc=50.0, scale=2.0, size=(120, 15))


@pytest.fixture
def outlier_row():
    return np.full(15, 200.0)


class TestAnomalyDetector:
    """Tests for Isolation Forest detector."""

    def test_fit_and_score_range(self, normal_data):
        """Test scores are in [0, 1] after fitting."""
        detector = AnomalyDetector(n_estimators=50, random_state=0).fit(normal_data)
        scores = detector.score_samples(normal_data)
        assert detector.is_fitted
        assert scores.shape == (120,)
        assert ((scores >= 0) & (scores <= 1)).all()

    def test_outlier_scores_higher(self, normal_data, outlier_row):
        """Test an obvious outlier scores above a typical row."""
        detector = AnomalyDetector(n_estimators=50, random_state=0).fit(normal_data)
        assert detector.predict(outlier_row) > np.median(detector.score_samples(normal_data))
        assert detector.predict(outlier_row) == pytest.approx(1.0)

    def test_unfitted_raises(self, outlier_row):
        """Test scoring before fit is a computation error."""
        with pytest.raises(ComputationError):
            AnomalyDetector().predict(outlier_row)

    def test_wrong_width(self, normal_data):
        """Test training data must have 15 columns."""
        with pytest.raises(InputError):
            AnomalyDetector().fit(normal_data[:, :5])

    def test_explain_names_features(self, normal_data, outlier_row):
        """Test explanations name deviating features."""
        detector = AnomalyDetector(n_estimators=20, random_state=0).fit(normal_data)
        assert "top:" in detector.explain(outlier_row, 1.0)

    def test_top_features(self, normal_data):
        """Test the single deviating column is named first."""
        detector = AnomalyDetector(n_estimators=20, random_state=0).fit(normal_data)
        row = normal_data.mean(axis=0)
        row[2] = 500.0
        assert detector.top_features(row, top_n=1) == ["hour"]


class TestOutlierDetector:
    """Tests for LOF detector."""

    def test_outlier_scores_higher(self, normal_data, outlier_row):
        """Test an obvious outlier scores above a typical row."""
        detector = OutlierDetector(n_neighbors=10).fit(normal_data)
        assert detector.predict(outlier_row) > np.median(detector.score_samples(normal_data))

    def test_neighbors_capped(self, normal_data):
        """Test tiny training sets still fit."""
        detector = OutlierDetector(n_neighbors=20).fit(normal_data[:5])
        assert detector.model.n_neighbors == 4

    def test_needs_two_rows(self, normal_data):
        """Test a single training row is rejected."""
        with pytest.raises(ValueError):
            OutlierDetector().fit(normal_data[:1])


class TestFraudClassifier:
    """Tests for the classification sub-estimator."""

    @pytest.fixture
    def labelled(self, normal_data):
        X = normal_data.copy()
        y = np.zeros(len(X), dtype=int)
        X[:30, 1] = 90.0
        y[:30] = 1
        return X, y

    def test_requires_labels(self, normal_data):
        """Test fitting without labels fails."""
        with pytest.raises(ValueError):
            FraudClassifier().fit(normal_data)

    def test_requires_both_classes(self, normal_data):
        """Test one-class labels are rejected."""
        with pytest.raises(ValueError):
            FraudClassifier().fit(normal_data, np.zeros(len(normal_data)))

    def test_probabilities(self, labelled):
        """Test fraud probabilities separate the classes."""
        X, y = labelled
        config = NetworkConfig(hidden_layers=[8], epochs=300, learning_rate=0.01, early_stopping=False)
        classifier = FraudClassifier(config, random_state=0).fit(X, y)
        scores = classifier.score_samples(X)
        assert ((scores >= 0) & (scores <= 1)).all()
        assert scores[y == 1].mean() > scores[y == 0].mean()

    def test_from_network(self, labelled):
        """Test wrapping an existing network."""
        X, y = labelled
        classifier = FraudClassifier(NetworkConfig(hidden_layers=[8], epochs=20), random_state=0).fit(X, y)
        wrapped = FraudClassifier.from_network(classifier.model)
        np.testing.assert_allclose(wrapped.score_samples(X), classifier.score_samples(X))


class TestBuildNetwork:
    """Tests for the shared network architecture."""

    def test_architecture(self):
        """Test layers, penalty and solver follow configuration."""
        network = build_network(NetworkConfig(), "classification")
        assert network.hidden_layer_sizes == (128, 64, 32)
        assert network.alpha == 0.001
        assert network.solver == "adam"
        assert network.early_stopping

    def test_small_data_disables_early_stopping(self):
        """Test early stopping needs enough rows for a validation fold."""
        network = build_network(NetworkConfig(), "regression", n_samples=20)
        assert not network.early_stopping
        assert network.batch_size == 20

    def test_unknown_task(self):
        """Test unknown tasks are rejected."""
        with pytest.raises(ValueError):
            build_network(NetworkConfig(), "ranking")
