"""Unit tests for the credit score estimators."""

from dataclasses import replace

import numpy as np
import pytest

from credchain_risk.config import CreditConfig, NetworkConfig
from credchain_risk.errors import InputError, ModelNotReadyError
from credchain_risk.features.extractor import FeatureExtractor
from credchain_risk.models import credit as credit_module
from credchain_risk.models.credit import (
    CreditScoreEstimator,
    CreditScoreRegressor,
    ScoreScale,
    compute_credit_score,
    credit_age_factor,
    credit_mix_factor,
    inquiries_factor,
    round_half_up,
    utilization_factor,
)


class TestScoreScale:
    """Tests for named score scales."""

    def test_bounds(self):
        """Test each scale's range."""
        assert ScoreScale.PRESENTATION.bounds == (300, 850)
        assert ScoreScale.MODEL.bounds == (0, 1000)

    def test_clamp(self):
        """Test rounding and clamping into the scale."""
        assert ScoreScale.PRESENTATION.clamp(55.0) == 300
        assert ScoreScale.PRESENTATION.clamp(900) == 850
        assert ScoreScale.PRESENTATION.clamp(612.5) == 613
        assert ScoreScale.MODEL.clamp(-3) == 0
        assert ScoreScale.MODEL.clamp(1200) == 1000

    def test_from_name(self):
        """Test scales are selected by name."""
        assert ScoreScale.from_name("Model") is ScoreScale.MODEL
        with pytest.raises(InputError):
            ScoreScale.from_name("fico")

    def test_round_half_up(self):
        """Test halves round up."""
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(2.4) == 2


class TestFactorBuckets:
    """Tests for factor bucket boundaries."""

    def test_utilization(self):
        """Test utilization tiers are inclusive at their upper bound."""
        assert utilization_factor(0.1) == 100
        assert utilization_factor(0.3) == 90
        assert utilization_factor(0.5) == 70
        assert utilization_factor(0.7) == 50
        assert utilization_factor(1.0) == 30

    def test_credit_age(self):
        """Test credit age tiers."""
        assert credit_age_factor(60) == 100
        assert credit_age_factor(36) == 80
        assert credit_age_factor(24) == 60
        assert credit_age_factor(12) == 40
        assert credit_age_factor(11.9) == 20

    def test_credit_mix(self):
        """Test credit mix tiers."""
        assert [credit_mix_factor(n) for n in (1, 2, 3, 4)] == [40, 60, 80, 100]

    def test_inquiries(self):
        """Test inquiry tiers."""
        assert [inquiries_factor(n) for n in (0, 2, 3, 5, 7)] == [100, 100, 80, 60, 40]


class TestCreditScoreEstimator:
    """Tests for the deterministic credit scorer."""

    @pytest.fixture
    def estimator(self):
        return CreditScoreEstimator()

    def test_on_time_history(self, estimator, on_time_history, now):
        """Test ten on-time payments of 200."""
        result = estimator.score_history(on_time_history, now, user_id="u1")

        assert result.factors == {
            "payment_history": 100,
            "credit_utilization": 30,
            "credit_age": 20,
            "credit_mix": 40,
            "new_credit_inquiries": 40,
        }
        assert result.factors["payment_history"] * 0.35 == pytest.approx(35.0)
        assert result.raw_score == pytest.approx(55.0)
        assert result.score == 300
        assert result.scale is ScoreScale.PRESENTATION
        assert result.confidence == pytest.approx(0.95)
        assert result.user_id == "u1"
        assert result.record_count == 10
        assert not result.degraded

    @pytest.mark.parametrize("n, expected", [(1, 100), (3, 90), (5, 70), (7, 50)])
    @pytest.mark.parametrize("base", [33.33, 47.1, 123.45, 333.3])
    def test_utilization_tier_with_uneven_amounts(self, make_history, now, n, expected, base):
        """Test uneven amounts land exactly on the utilization tier boundary."""
        records = [replace(r, amount=base * (k + 1)) for k, r in enumerate(make_history(n=n))]
        result = compute_credit_score("u1", records, now=now)
        assert result.factors["credit_utilization"] == expected

    def test_recommendations(self, estimator, on_time_history, now):
        """Test advice is given for weak factors only."""
        result = estimator.score_history(on_time_history, now)
        assert "Reduce credit utilization" in result.recommendations
        assert not any("due date" in rec for rec in result.recommendations)

    def test_explanation_names_scale(self, estimator, on_time_history, now):
        """Test the explanation states the score and its scale."""
        result = estimator.score_history(on_time_history, now)
        assert "Credit score 300 on the presentation scale [300, 850]" in result.explanation
        assert "Payment history (35%): 100/100" in result.explanation
        assert estimator.explain(None, result) == result.explanation

    def test_confidence_grows_with_records(self, estimator, make_history, now):
        """Test confidence is 0.5 + 0.05 per record."""
        assert estimator.score_history(make_history(n=2), now).confidence == pytest.approx(0.6)
        assert estimator.score_history(make_history(n=20), now).confidence == pytest.approx(0.95)

    def test_empty_history(self, estimator, now):
        """Test empty history yields a zero score with zero confidence."""
        result = estimator.score_history([], now, user_id="new-user")
        assert result.score == 0
        assert result.confidence == 0.0
        assert set(result.factors.values()) == {0}
        assert "Insufficient data" in result.explanation
        assert not result.degraded

    def test_wrong_length_raises(self, estimator):
        """Test malformed vectors are input errors."""
        with pytest.raises(InputError):
            estimator.predict(np.zeros(9))

    def test_internal_error_degrades(self, estimator, on_time_history, now, monkeypatch):
        """Test internal failures return a degraded zero result."""
        def broken(features):
            raise RuntimeError("factor table missing")

        monkeypatch.setattr(credit_module, "factor_scores", broken)
        result = estimator.score_history(on_time_history, now)
        assert result.degraded
        assert result.score == 0
        assert result.confidence == 0.0

    def test_custom_weights(self, on_time_history, now):
        """Test weights come from configuration."""
        weights = {
            "payment_history": 1.0,
            "credit_utilization": 0.0,
            "credit_age": 0.0,
            "credit_mix": 0.0,
            "new_credit_inquiries": 0.0,
        }
        result = CreditScoreEstimator(CreditConfig(weights=weights)).score_history(on_time_history, now)
        assert result.raw_score == pytest.approx(100.0)

    def test_to_dict(self, estimator, on_time_history, now):
        """Test serialization names the scale and bounds."""
        data = estimator.score_history(on_time_history, now).to_dict()
        assert data["scale"] == "presentation"
        assert data["bounds"] == [300, 850]
        assert isinstance(data["recommendations"], list)

    def test_compute_credit_score(self, on_time_history, now):
        """Test the module-level entry point."""
        result = compute_credit_score("u1", on_time_history, now=now)
        assert result.score == 300
        assert result.user_id == "u1"

    @pytest.mark.parametrize("scale", ["presentation", "PRESENTATION", ScoreScale.PRESENTATION])
    def test_compute_presentation_scale_by_name(self, on_time_history, now, scale):
        """Test the presentation scale selects the deterministic scorer."""
        result = compute_credit_score("u1", on_time_history, now=now, scale=scale)
        assert result.scale is ScoreScale.PRESENTATION
        assert result.score == 300

    def test_compute_unknown_scale(self, on_time_history, now):
        """Test an unknown scale name is an input error."""
        with pytest.raises(InputError):
            compute_credit_score("u1", on_time_history, now=now, scale="fico")

    def test_compute_model_scale_needs_regressor(self, on_time_history, now):
        """Test the model scale refuses to score without a fitted regressor."""
        with pytest.raises(ModelNotReadyError):
            compute_credit_score("u1", on_time_history, now=now, scale="model")
        with pytest.raises(ModelNotReadyError):
            compute_credit_score("u1", on_time_history, now=now, scale="model", regressor=CreditScoreRegressor())


class TestCreditScoreRegressor:
    """Tests for the trainable credit regressor."""

    @pytest.fixture(scope="class")
    def fitted(self, generated_data):
        X, scores = generated_data["credit"]
        config = NetworkConfig(hidden_layers=[16, 8], epochs=40)
        return CreditScoreRegressor(config=config, random_state=0).fit(X, scores / 1000)

    def test_unfitted_raises(self):
        """Test prediction before fitting raises."""
        with pytest.raises(RuntimeError):
            CreditScoreRegressor().predict_value(np.zeros(10))

    def test_values_clipped(self, fitted, generated_data):
        """Test raw outputs stay in [0, 1]."""
        values = fitted.predict_value(generated_data["credit"][0])
        assert ((values >= 0) & (values <= 1)).all()

    def test_predict_on_model_scale(self, fitted, on_time_history, now):
        """Test results are on the model scale."""
        features = FeatureExtractor().credit_features(on_time_history, now)
        result = fitted.predict(features, user_id="u1")
        assert result.scale is ScoreScale.MODEL
        assert 0 <= result.score <= 1000
        assert 0.1 <= result.confidence <= 0.8
        assert result.factors["payment_history"] == 100

    def test_empty_history(self, fitted):
        """Test empty history short-circuits to zero."""
        assert fitted.predict(np.zeros(10)).score == 0

    def test_from_network(self, fitted):
        """Test wrapping an existing network."""
        wrapped = CreditScoreRegressor.from_network(fitted.model)
        assert wrapped.is_fitted
        np.testing.assert_allclose(wrapped.predict_value(np.ones(10)), fitted.predict_value(np.ones(10)))

    def test_compute_model_scale(self, fitted, on_time_history, now):
        """Test the model scale selects the trained regressor."""
        result = compute_credit_score("u1", on_time_history, now=now, scale="model", regressor=fitted)
        features = FeatureExtractor().credit_features(on_time_history, now)
        assert result.scale is ScoreScale.MODEL
        assert result.score == fitted.predict(features).score
        assert result.user_id == "u1"
