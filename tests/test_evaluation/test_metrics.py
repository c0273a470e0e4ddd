"""Unit tests for evaluation metrics."""

import numpy as np
import pytest

from credchain_risk.evaluation.metrics import (
    ClassificationMetrics,
    ClassificationResults,
    RegressionMetrics,
    safe_ratio,
)


def classify(y_true, scores, threshold=0.5) -> ClassificationResults:
    """Helper to evaluate scores against labels."""
    return ClassificationMetrics(threshold).evaluate(y_true, scores)


class TestClassificationMetrics:
    """Tests for ClassificationMetrics calculation."""

    def test_perfect_detection(self):
        """Test metrics with perfect detection (all correct)."""
        metrics = classify([1, 1, 0, 0], [0.9, 0.8, 0.1, 0.2])

        assert metrics.precision == 1.0
        assert metrics.recall == 1.0
        assert metrics.f1_score == 1.0
        assert metrics.accuracy == 1.0
        assert metrics.auc == 1.0
        assert metrics.true_positives == 2
        assert metrics.false_positives == 0

    def test_no_detection(self):
        """Test metrics when nothing is detected."""
        metrics = classify([1, 1, 0], [0.1, 0.2, 0.3])

        assert metrics.precision == 0.0
        assert metrics.recall == 0.0
        assert metrics.f1_score == 0.0
        assert metrics.false_negatives == 2

    def test_all_false_positives(self):
        """Test metrics when all detections are false positives."""
        metrics = classify([0, 0, 0], [0.9, 0.9, 0.9])

        assert metrics.precision == 0.0
        assert metrics.false_positives == 3
        assert metrics.recall == 0.0

    def test_threshold_is_strict(self):
        """Test a score equal to the threshold is negative."""
        metrics = classify([1, 0], [0.5, 0.4])
        assert metrics.true_positives == 0
        assert metrics.false_negatives == 1

    def test_mixed(self):
        """Test precision and recall on a mixed outcome."""
        metrics = classify([1, 1, 0, 0, 1], [0.9, 0.3, 0.7, 0.1, 0.8])

        assert metrics.true_positives == 2
        assert metrics.false_positives == 1
        assert metrics.false_negatives == 1
        assert metrics.precision == pytest.approx(2 / 3)
        assert metrics.recall == pytest.approx(2 / 3)
        assert metrics.accuracy == pytest.approx(3 / 5)

    def test_empty(self):
        """Test empty input yields zeros."""
        metrics = classify([], [])
        assert metrics.accuracy == 0.0
        assert metrics.auc == 0.0

    def test_shape_mismatch(self):
        """Test misaligned inputs raise."""
        with pytest.raises(ValueError):
            classify([1, 0], [0.5])

    def test_confusion_matrix(self):
        """Test confusion matrix layout."""
        calculator = ClassificationMetrics()
        with pytest.raises(ValueError):
            calculator.get_confusion_matrix()
        calculator.evaluate([1, 1, 0, 0, 1], [0.9, 0.3, 0.7, 0.1, 0.8])
        np.testing.assert_array_equal(calculator.get_confusion_matrix(), [[1, 1], [1, 2]])

    def test_to_dict(self):
        """Test results serialise with the threshold used."""
        data = classify([1, 0], [0.9, 0.1], threshold=0.7).to_dict()
        assert data["threshold"] == 0.7
        assert data["auc"] == 1.0


class TestSafeRatio:
    """Tests for the zero-safe division helper."""

    def test_zero_denominator(self):
        """Test zero denominators give 0.0."""
        assert safe_ratio(3, 0) == 0.0

    def test_ratio(self):
        """Test a regular division."""
        assert safe_ratio(1, 4) == 0.25


class TestAuc:
    """Tests for rank-based AUC."""

    def test_reversed_ranking(self):
        """Test a fully inverted ranking scores zero."""
        assert ClassificationMetrics.calculate_auc([1, 1, 0, 0], [0.1, 0.2, 0.8, 0.9]) == 0.0

    def test_ties_share_rank(self):
        """Test identical scores give chance level."""
        assert ClassificationMetrics.calculate_auc([1, 0, 1, 0], [0.5] * 4) == pytest.approx(0.5)

    def test_partial_ranking(self):
        """Test one misordered pair out of four."""
        auc = ClassificationMetrics.calculate_auc([1, 1, 0, 0], [0.9, 0.4, 0.5, 0.1])
        assert auc == pytest.approx(0.75)

    def test_single_class(self):
        """Test AUC is zero when a class is absent."""
        assert ClassificationMetrics.calculate_auc([1, 1], [0.2, 0.8]) == 0.0
        assert ClassificationMetrics.calculate_auc([0, 0], [0.2, 0.8]) == 0.0


class TestRegressionMetrics:
    """Tests for RegressionMetrics calculation."""

    def test_perfect(self):
        """Test exact predictions."""
        results = RegressionMetrics().evaluate([0.2, 0.5, 0.9], [0.2, 0.5, 0.9])
        assert results.mse == 0.0
        assert results.mae == 0.0
        assert results.r2 == 1.0
        assert results.accuracy == 1.0
        assert results.count == 3

    def test_errors(self):
        """Test MSE, MAE and tolerance accuracy."""
        results = RegressionMetrics(tolerance=0.1).evaluate([0.5, 0.5], [0.5, 0.8])
        assert results.mse == pytest.approx(0.045)
        assert results.mae == pytest.approx(0.15)
        assert results.accuracy == 0.5

    def test_constant_labels(self):
        """Test R-squared is zero when labels have no variance."""
        assert RegressionMetrics().evaluate([0.5, 0.5], [0.4, 0.6]).r2 == 0.0

    def test_empty(self):
        """Test empty input yields zeros."""
        results = RegressionMetrics().evaluate([], [])
        assert results.count == 0
        assert results.mse == 0.0

    def test_to_dict(self):
        """Test dictionary export."""
        data = RegressionMetrics().evaluate([0.0, 1.0], [0.0, 1.0]).to_dict()
        assert set(data) == {"mse", "mae", "r2", "accuracy", "count"}
