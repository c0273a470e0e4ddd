"""Pytest configuration and fixtures for risk engine tests."""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from credchain_risk.config import RiskEngineConfig
from credchain_risk.data.generator import PaymentDataGenerator
from credchain_risk.data.records import PaymentRecord
from credchain_risk.models.base import BaseDetector
from credchain_risk.models.fraud import FraudRiskEstimator
from credchain_risk.training.trainer import ModelTrainer

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)  # a Saturday


class ConstantDetector(BaseDetector):
    """Sub-estimator stand-in that always returns the same score."""

    def __init__(self, value: float, name: str = "Constant"):
        super().__init__(n_features=15, name=name)
        self.value = value
        self._is_fitted = True

    def fit(self, X, y=None):
        return self

    def score_samples(self, X):
        return np.full(len(np.atleast_2d(X)), self.value)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time."""
    return NOW


@pytest.fixture
def make_history():
    """Factory for monthly payment histories ending at NOW.

    Record k is due k * spacing_days before NOW and created on its due date.
    """

    def _make(
        n: int = 10,
        amount: float = 200.0,
        status: str = "paid",
        days_late: int = 0,
        spacing_days: int = 30,
        country: str = "US",
        device_id: str = "device-1",
    ) -> list[PaymentRecord]:
        records = []
        for k in range(n):
            due = NOW - timedelta(days=spacing_days * k)
            records.append(PaymentRecord(
                amount=amount,
                due_date=due,
                created_at=due,
                status=status,
                paid_date=due + timedelta(days=days_late) if status == "paid" else None,
                country=country,
                device_id=device_id,
            ))
        return records

    return _make


@pytest.fixture
def on_time_history(make_history) -> list[PaymentRecord]:
    """Ten on-time payments of 200."""
    return make_history()


@pytest.fixture
def fraud_vector() -> np.ndarray:
    """Fraud vector violating exactly two rules (amount ratio and hour)."""
    return np.array([
        100.0,   # amount
        6.0,     # amount_ratio > 5
        3.0,     # hour < 6
        2.0,     # day_of_week
        0.0,     # is_weekend
        0.0,     # is_round_amount
        0.0,     # is_new_location
        0.0,     # is_new_device
        0.0,     # suspicious_country
        0.0,     # transactions_1h
        0.0,     # transactions_24h
        0.0,     # transactions_7d
        10.0,    # history_count
        16.67,   # historical_average
        0.0,     # failed_transactions
    ])


@pytest.fixture
def clean_fraud_vector() -> np.ndarray:
    """Fraud vector violating no rule."""
    return np.array([
        150.0, 1.0, 14.0, 2.0, 0.0, 0.0, 0.0, 0.0, 0.0,
        1.0, 2.0, 5.0, 20.0, 150.0, 0.0,
    ])


@pytest.fixture
def constant_detector():
    """The constant sub-estimator class."""
    return ConstantDetector


@pytest.fixture
def constant_estimator():
    """Factory for fraud estimators whose sub-estimators all return one score."""

    def _make(ml_score: float, config: RiskEngineConfig | None = None) -> FraudRiskEstimator:
        return FraudRiskEstimator(
            config=config,
            anomaly=ConstantDetector(ml_score, "anomaly"),
            outlier=ConstantDetector(ml_score, "outlier"),
            classifier=ConstantDetector(ml_score, "classifier"),
        )

    return _make


def small_config(models_dir) -> RiskEngineConfig:
    """Configuration with small networks for fast tests."""
    config = RiskEngineConfig()
    data = config.model_dump()
    data["paths"]["models_dir"] = str(models_dir)
    data["training"]["network"].update({"hidden_layers": [16, 8], "epochs": 40})
    data["detectors"]["isolation_forest"]["n_estimators"] = 25
    data["detectors"]["lof"]["n_neighbors"] = 10
    return RiskEngineConfig.model_validate(data)


@pytest.fixture
def fast_config(tmp_path) -> RiskEngineConfig:
    """Small-network configuration writing artifacts under tmp_path."""
    return small_config(tmp_path / "models")


@pytest.fixture(scope="session")
def generated_data():
    """Seeded synthetic credit and fraud datasets."""
    generator = PaymentDataGenerator(seed=7, reference_time=NOW)
    return {
        "credit": generator.credit_dataset(150),
        "fraud": generator.fraud_dataset(200, fraud_ratio=0.25),
    }


@pytest.fixture(scope="session")
def trained_artifacts(tmp_path_factory, generated_data):
    """Credit and fraud artifacts trained once per session."""
    models_dir = tmp_path_factory.mktemp("artifacts")
    config = small_config(models_dir)
    trainer = ModelTrainer(config)
    credit = trainer.train_credit(*generated_data["credit"])
    fraud = trainer.train_fraud(*generated_data["fraud"])
    return {"config": config, "credit": credit, "fraud": fraud, "models_dir": models_dir}
