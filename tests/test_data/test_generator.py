"""Unit tests for the synthetic payment data generator."""

import numpy as np
import pytest

from credchain_risk.data.generator import (
    FraudPattern,
    PaymentDataGenerator,
    credit_frame,
    fraud_frame,
)
from credchain_risk.features.extractor import CREDIT_FEATURE_NAMES, FRAUD_FEATURE_COUNT, FeatureExtractor


@pytest.fixture
def generator(now):
    return PaymentDataGenerator(seed=11, reference_time=now)


class TestGenerateHistory:
    """Tests for payment history generation."""

    def test_record_count_and_order(self, generator, now):
        """Test histories are oldest first and end at the reference time."""
        records = generator.generate_history(n_records=12)
        assert len(records) == 12
        due_dates = [r.due_date for r in records]
        assert due_dates == sorted(due_dates)
        assert due_dates[-1] == now

    def test_records_never_created_in_future(self, generator, now):
        """Test created_at never passes the reference time."""
        assert all(r.created_at <= now for r in generator.generate_history(n_records=20))

    def test_reliable_user_pays_on_time(self, generator):
        """Test full reliability yields only on-time payments."""
        records = generator.generate_history(n_records=10, reliability=1.0)
        assert all(r.is_on_time for r in records)

    def test_home_country(self, generator):
        """Test every record uses the home country."""
        records = generator.generate_history(n_records=5, home_country="DE")
        assert {r.country for r in records} == {"DE"}


class TestUsers:
    """Tests for user generation."""

    def test_unique_ids(self, generator):
        """Test user ids are unique."""
        users = generator.generate_users(5)
        assert len({u.user_id for u in users}) == 5

    def test_credit_label_range(self, generator):
        """Test labels are on the model scale."""
        for user in generator.generate_users(10):
            assert 0.0 <= user.credit_score <= 1000.0

    def test_empty_history_label(self, generator):
        """Test an empty history has a zero label."""
        assert generator.credit_label([]) == 0.0

    def test_home_country_not_suspicious(self, generator):
        """Test home countries avoid the high-risk list."""
        suspicious = set(generator.config.features.suspicious_countries)
        assert all(u.home_country not in suspicious for u in generator.generate_users(10))

    def test_to_dataframe(self, generator):
        """Test users flatten to one row per record."""
        users = generator.generate_users(3)
        df = generator.to_dataframe(users)
        assert len(df) == sum(len(u.records) for u in users)
        assert {"user_id", "credit_score", "amount"} <= set(df.columns)


class TestTransactions:
    """Tests for labelled transaction generation."""

    def test_fraud_ratio(self, generator):
        """Test the number of fraud samples follows the ratio."""
        samples = generator.generate_transactions(40, fraud_ratio=0.25)
        assert sum(s.is_fraud for s in samples) == 10
        assert all(s.fraud_pattern for s in samples if s.is_fraud)
        assert not any(s.fraud_pattern for s in samples if not s.is_fraud)

    def test_invalid_ratio(self, generator):
        """Test ratios outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            generator.generate_transactions(10, fraud_ratio=1.5)

    def test_legitimate_transactions_in_daytime(self, generator):
        """Test legitimate transactions fall between 8:00 and 20:59."""
        samples = generator.generate_transactions(20, fraud_ratio=0.0)
        assert all(8 <= s.context.timestamp.hour <= 20 for s in samples)

    def test_patterns_trigger_features(self, generator):
        """Test injected patterns show up in the fraud features."""
        extractor = FeatureExtractor()
        samples = generator.generate_transactions(60, fraud_ratio=1.0)
        for sample in samples:
            features = extractor.fraud_features(sample.context, sample.history)
            pattern = FraudPattern(sample.fraud_pattern)
            if pattern is FraudPattern.VELOCITY:
                assert features[9] > generator.config.fraud.max_hourly_transactions
            elif pattern is FraudPattern.SUSPICIOUS_COUNTRY:
                assert features[8] == 1
            elif pattern is FraudPattern.NIGHT_ROUND_AMOUNT:
                assert features[5] == 1
                assert features[2] in generator.config.fraud.round_amount_hours
            elif pattern is FraudPattern.HIGH_AMOUNT:
                assert features[1] > 5
            elif pattern is FraudPattern.ACCOUNT_TAKEOVER:
                assert features[7] == 1
                assert features[2] < 6


class TestDatasets:
    """Tests for training matrices."""

    def test_credit_dataset(self, generator):
        """Test credit matrix shape and label range."""
        X, y = generator.credit_dataset(20)
        assert X.shape == (20, len(CREDIT_FEATURE_NAMES))
        assert ((y >= 0) & (y <= 1000)).all()

    def test_fraud_dataset(self, generator):
        """Test fraud matrix shape and binary labels."""
        X, y = generator.fraud_dataset(20, fraud_ratio=0.5)
        assert X.shape == (20, FRAUD_FEATURE_COUNT)
        assert set(np.unique(y)) <= {0, 1}
        assert y.sum() == 10

    def test_reproducible(self, now):
        """Test the same seed and reference time give identical data."""
        X1, y1 = PaymentDataGenerator(seed=3, reference_time=now).credit_dataset(10)
        X2, y2 = PaymentDataGenerator(seed=3, reference_time=now).credit_dataset(10)
        np.testing.assert_array_equal(X1, X2)
        np.testing.assert_array_equal(y1, y2)

    def test_frames(self, generator):
        """Test labelled frames carry the label column."""
        X, y = generator.credit_dataset(3)
        assert "credit_score" in credit_frame(X, y).columns
        X, y = generator.fraud_dataset(4, fraud_ratio=0.5)
        assert "is_fraud" in fraud_frame(X, y).columns
