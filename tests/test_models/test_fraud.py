"""Unit tests for the fraud risk estimator."""

import numpy as np
import pytest

from credchain_risk.config import FraudConfig, NetworkConfig, RiskEngineConfig, TrainingConfig
from credchain_risk.errors import InputError
from credchain_risk.models.fraud import (
    FraudRiskEstimator,
    Severity,
    assess_fraud,
    combine_scores,
    decide,
    fraud_confidence,
    recommendations_for,
    risk_factors,
    severity_for,
)


class TestDecisionPolicy:
    """Tests for the threshold, severity and confidence policy."""

    def test_threshold_is_strict(self):
        """Test only scores strictly above 0.7 are blocked."""
        assert decide(0.68, 0.7) is False
        assert decide(0.70, 0.7) is False
        assert decide(0.70001, 0.7) is True

    def test_severity_tiers(self):
        """Test tier lower bounds are inclusive."""
        assert severity_for(0.8) is Severity.CRITICAL
        assert severity_for(0.79) is Severity.HIGH
        assert severity_for(0.68) is Severity.HIGH
        assert severity_for(0.6) is Severity.HIGH
        assert severity_for(0.59) is Severity.MEDIUM
        assert severity_for(0.4) is Severity.MEDIUM
        assert severity_for(0.39) is Severity.LOW

    def test_confidence(self):
        """Test confidence grows away from 0.5 within [0.5, 0.95]."""
        assert fraud_confidence(0.68) == pytest.approx(0.64)
        assert fraud_confidence(0.5) == pytest.approx(0.95)
        assert fraud_confidence(0.0) == pytest.approx(0.5)
        assert fraud_confidence(1.0) == pytest.approx(0.5)

    def test_combination(self):
        """Test ML and rule scores are mixed 70/30."""
        assert combine_scores(0.8, 0.4) == pytest.approx(0.68)
        assert combine_scores(1.0, 0.0) == pytest.approx(0.7)

    def test_configured_weights(self):
        """Test combination weights come from configuration."""
        config = FraudConfig(ml_weight=0.5, rule_weight=0.5)
        assert combine_scores(1.0, 0.0, config) == pytest.approx(0.5)


class TestFraudRiskEstimator:
    """Tests for fraud assessment with controlled sub-estimator scores."""

    def test_just_below_threshold(self, constant_estimator, fraud_vector):
        """Test ML 0.8 with two of five rules is not fraud but high severity."""
        result = constant_estimator(0.8).predict(fraud_vector, user_id="u1", transaction_id="tx-1")

        assert result.ml_score == pytest.approx(0.8)
        assert result.rule_score == pytest.approx(0.4)
        assert result.probability == pytest.approx(0.68)
        assert result.is_fraud is False
        assert result.severity is Severity.HIGH
        assert result.confidence == pytest.approx(0.64)
        assert result.violated_rules == ("high_amount", "unusual_hour")
        assert result.user_id == "u1"
        assert result.transaction_id == "tx-1"
        assert not result.degraded

    def test_blocked(self, constant_estimator, fraud_vector):
        """Test high ML scores with rule violations are blocked."""
        result = constant_estimator(1.0).predict(fraud_vector)
        assert result.probability == pytest.approx(0.82)
        assert result.is_fraud is True
        assert result.severity is Severity.CRITICAL
        assert "Block the transaction" in result.recommendations

    def test_low_risk(self, constant_estimator, clean_fraud_vector):
        """Test a clean transaction with low ML score."""
        result = constant_estimator(0.1).predict(clean_fraud_vector)
        assert result.probability == pytest.approx(0.07)
        assert result.is_fraud is False
        assert result.severity is Severity.LOW
        assert result.confidence == pytest.approx(0.5)

    def test_component_scores(self, constant_estimator, clean_fraud_vector):
        """Test each sub-estimator score is reported by role."""
        result = constant_estimator(0.3).predict(clean_fraud_vector)
        assert set(result.component_scores) == {"anomaly", "outlier", "classification"}
        assert all(score == pytest.approx(0.3) for score in result.component_scores.values())

    def test_explanation(self, constant_estimator, fraud_vector):
        """Test the explanation states the verdict and violated rules."""
        result = constant_estimator(0.8).predict(fraud_vector)
        assert result.explanation.startswith("No fraud detected")
        assert "Rule violated: Amount exceeds 5x the historical average" in result.explanation

    def test_unfitted_fails_closed(self, fraud_vector):
        """Test an unfitted estimator blocks with a degraded result."""
        estimator = FraudRiskEstimator()
        assert not estimator.is_fitted

        result = estimator.predict(fraud_vector)
        assert result.is_fraud is True
        assert result.probability == pytest.approx(0.9)
        assert result.confidence == pytest.approx(0.9)
        assert result.severity is Severity.HIGH
        assert result.degraded
        assert result.explanation.startswith("Transaction blocked")

    def test_out_of_range_score_fails_closed(self, constant_estimator, clean_fraud_vector):
        """Test a sub-estimator score outside [0, 1] blocks the transaction."""
        result = constant_estimator(1.5).predict(clean_fraud_vector)
        assert result.is_fraud is True
        assert result.degraded

    def test_invalid_vector_raises(self, constant_estimator):
        """Test malformed input is not hidden behind fail-closed."""
        with pytest.raises(InputError):
            constant_estimator(0.5).predict(np.zeros(14))

    def test_assess_extracts_features(self, constant_estimator, on_time_history, now):
        """Test assessing a transaction from raw records."""
        context = {"amount": 1000, "timestamp": now.isoformat(), "country": "US", "transaction_id": "tx-9"}
        result = assess_fraud("u1", context, on_time_history, constant_estimator(0.2))
        assert result.transaction_id == "tx-9"
        assert result.violated_rules == ()
        assert result.probability == pytest.approx(0.14)

    def test_assess_without_estimator_fails_closed(self, on_time_history, now):
        """Test the default estimator blocks until a trained one is supplied."""
        context = {"amount": 20, "timestamp": now.isoformat(), "country": "US", "transaction_id": "tx-1"}
        result = assess_fraud("u1", context, on_time_history)
        assert result.is_fraud is True
        assert result.degraded
        assert result.severity is Severity.HIGH
        assert result.transaction_id == "tx-1"

    def test_assess_without_estimator_rejects_bad_context(self, on_time_history):
        """Test input errors still surface with the default estimator."""
        with pytest.raises(InputError):
            assess_fraud("u1", {"amount": 20}, on_time_history)

    def test_ensemble_weights_from_config(self, constant_estimator):
        """Test sub-estimator weights come from configuration."""
        weights = {"anomaly": 0.2, "outlier": 0.2, "classification": 0.6}
        config = RiskEngineConfig(fraud=FraudConfig(ensemble_weights=weights))
        assert constant_estimator(0.5, config).ensemble.get_detector_weights() == weights

    def test_to_dict(self, constant_estimator, fraud_vector):
        """Test serialization of an assessment."""
        data = constant_estimator(0.8).predict(fraud_vector).to_dict()
        assert data["severity"] == "high"
        assert data["violated_rules"] == ["high_amount", "unusual_hour"]
        assert {"name", "value", "risk"} <= set(data["risk_factors"][0])

    def test_bundle_round_trip(self, constant_estimator, fraud_vector):
        """Test rebuilding an estimator from its bundle."""
        original = constant_estimator(0.8)
        rebuilt = FraudRiskEstimator.from_bundle(original.to_bundle({"version": "v1"}))
        assert rebuilt.predict(fraud_vector).probability == pytest.approx(0.68)

    def test_bundle_missing_component(self):
        """Test incomplete bundles are rejected."""
        with pytest.raises(ValueError, match="anomaly"):
            FraudRiskEstimator.from_bundle({"outlier": None, "classifier": None})


class TestRiskFactors:
    """Tests for risk factor reporting."""

    def test_high_risk_factors(self, fraud_vector):
        """Test high amount ratio and night hour are rated high."""
        factors = {f.name: f.risk for f in risk_factors(fraud_vector)}
        assert factors["amount_ratio"] == "high"
        assert factors["transaction_hour"] == "high"
        assert factors["new_device"] == "low"

    def test_recommendations_for_legitimate(self, clean_fraud_vector):
        """Test verification advice for a new location."""
        clean_fraud_vector[6] = 1
        assert recommendations_for(False, clean_fraud_vector) == (
            "Confirm the transaction location with the user",
        )


class TestFittedEstimator:
    """Tests with real fitted sub-estimators."""

    @pytest.fixture(scope="class")
    def fitted(self, generated_data):
        config = RiskEngineConfig(
            training=TrainingConfig(network=NetworkConfig(hidden_layers=[16, 8], epochs=40))
        )
        X, y = generated_data["fraud"]
        return FraudRiskEstimator(config=config).fit(X, y)

    def test_is_fitted(self, fitted):
        """Test every sub-estimator is fitted."""
        assert fitted.is_fitted

    def test_scores_in_range(self, fitted, fraud_vector, clean_fraud_vector):
        """Test probabilities and component scores stay in [0, 1]."""
        for vector in (fraud_vector, clean_fraud_vector):
            result = fitted.predict(vector)
            assert not result.degraded
            assert 0.0 <= result.probability <= 1.0
            assert all(0.0 <= s <= 1.0 for s in result.component_scores.values())

    def test_explanation_lists_sub_estimators(self, fitted, fraud_vector):
        """Test each sub-estimator contributes an explanation line."""
        explanation = fitted.predict(fraud_vector).explanation
        assert "IsolationForest anomaly score" in explanation
        assert "LOF outlier score" in explanation
        assert "FraudNetwork fraud probability" in explanation
