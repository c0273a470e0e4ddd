"""Configuration Management Module.

Provides typed configuration for the risk engine with support for YAML
files, environment variable overrides, and validation.

Uses Pydantic v2 for configuration validation. Configuration objects are
passed explicitly to the feature extractor, estimators, trainer and model
server; there is no module-level singleton.
"""

import math
import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator


def _validate_weight_sum(weights: dict[str, float], label: str) -> dict[str, float]:
    """Check weights are non-negative and sum to one."""
    for name, weight in weights.items():
        if weight < 0:
            raise ValueError(f"Weight for {name} must be non-negative")
    total = sum(weights.values())
    if not math.isclose(total, 1.0, abs_tol=1e-9):
        raise ValueError(f"{label} weights must sum to 1.0, got {total}")
    return weights


class PathsConfig(BaseModel):
    """Configuration for file paths."""

    models_dir: str = Field(default="models", description="Root directory for trained artifacts")
    data_dir: str = Field(default="data", description="Base directory for training data")
    training_data: str = Field(
        default="training_data.csv", description="Default training data file"
    )

    def get_path(self, file_key: str) -> Path:
        """Get full path for a data file.

        Args:
            file_key: 'training_data' or a literal file name.

        Returns:
            Full path combining data_dir and the file name.
        """
        file_map = {"training_data": self.training_data}
        return Path(self.data_dir) / file_map.get(file_key, file_key)


class FeatureConfig(BaseModel):
    """Configuration for feature extraction."""

    suspicious_countries: list[str] = Field(
        default_factory=lambda: ["XX", "YY", "ZZ"],
        description="Country codes treated as high risk",
    )
    days_per_month: int = Field(default=30, ge=28, le=31, description="Month length in days")
    inquiry_window_months: int = Field(
        default=6, ge=1, description="Window for counting recent credit activity"
    )
    max_inquiries: int = Field(default=10, ge=1, description="Cap on counted inquiries")
    round_amount_unit: int = Field(
        default=100, ge=1, description="Amounts divisible by this are round numbers"
    )

    @field_validator("suspicious_countries")
    @classmethod
    def normalize_countries(cls, v: list[str]) -> list[str]:
        """Store country codes upper-cased."""
        return [code.strip().upper() for code in v]


class CreditConfig(BaseModel):
    """Configuration for the deterministic credit score."""

    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "payment_history": 0.35,
            "credit_utilization": 0.30,
            "credit_age": 0.15,
            "credit_mix": 0.10,
            "new_credit_inquiries": 0.10,
        },
        description="Factor weights for the weighted sum",
    )
    base_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    confidence_per_record: float = Field(default=0.05, ge=0.0, le=1.0)
    max_confidence: float = Field(default=0.95, ge=0.0, le=1.0)

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v: dict[str, float]) -> dict[str, float]:
        """Validate factor weights sum to one."""
        expected = {
            "payment_history",
            "credit_utilization",
            "credit_age",
            "credit_mix",
            "new_credit_inquiries",
        }
        if set(v) != expected:
            raise ValueError(f"Credit weights must define exactly {sorted(expected)}")
        return _validate_weight_sum(v, "Credit factor")


class FraudConfig(BaseModel):
    """Configuration for fraud risk combination and decision policy."""

    ensemble_weights: dict[str, float] = Field(
        default_factory=lambda: {"anomaly": 0.4, "outlier": 0.3, "classification": 0.3},
        description="Sub-estimator weights for the ML score",
    )
    ml_weight: float = Field(default=0.7, ge=0.0, le=1.0, description="Weight of the ML score")
    rule_weight: float = Field(default=0.3, ge=0.0, le=1.0, description="Weight of the rule score")
    decision_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Production block threshold (strict >)"
    )
    severity_critical: float = Field(default=0.8, ge=0.0, le=1.0)
    severity_high: float = Field(default=0.6, ge=0.0, le=1.0)
    severity_medium: float = Field(default=0.4, ge=0.0, le=1.0)
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    max_confidence: float = Field(default=0.95, ge=0.0, le=1.0)
    fail_closed_confidence: float = Field(
        default=0.9, ge=0.0, le=1.0, description="Confidence reported when blocking on error"
    )
    high_amount_ratio: float = Field(
        default=5.0, gt=0.0, description="Amount over this multiple of the average violates"
    )
    night_start_hour: int = Field(default=6, ge=0, le=23, description="Hours before this are unusual")
    night_end_hour: int = Field(default=22, ge=0, le=23, description="Hours after this are unusual")
    max_hourly_transactions: int = Field(default=10, ge=1)
    round_amount_hours: list[int] = Field(default_factory=lambda: [2, 3])

    @field_validator("ensemble_weights")
    @classmethod
    def validate_ensemble_weights(cls, v: dict[str, float]) -> dict[str, float]:
        """Validate ensemble weights sum to one."""
        if set(v) != {"anomaly", "outlier", "classification"}:
            raise ValueError("Ensemble weights must define anomaly, outlier and classification")
        return _validate_weight_sum(v, "Ensemble")

    @model_validator(mode="after")
    def check_combination(self) -> "FraudConfig":
        """Ensure ML and rule weights sum to one and tiers are ordered."""
        if not math.isclose(self.ml_weight + self.rule_weight, 1.0, abs_tol=1e-9):
            raise ValueError("ml_weight and rule_weight must sum to 1.0")
        if not self.severity_medium <= self.severity_high <= self.severity_critical:
            raise ValueError("Severity thresholds must be ordered medium <= high <= critical")
        if self.min_confidence > self.max_confidence:
            raise ValueError("min_confidence must not exceed max_confidence")
        return self


class IsolationForestConfig(BaseModel):
    """Configuration for the anomaly sub-estimator."""

    contamination: str = Field(
        default="auto",
        description="Expected proportion of outliers, or 'auto'",
    )
    n_estimators: int = Field(default=100, ge=1, description="Number of base estimators")
    max_samples: str = Field(default="auto", description="Samples per estimator")

    @field_validator("contamination")
    @classmethod
    def validate_contamination(cls, v: str) -> str:
        """Validate contamination is 'auto' or a valid float string."""
        if v == "auto":
            return v
        try:
            val = float(v)
        except ValueError:
            raise ValueError("contamination must be 'auto' or a float in (0.0, 0.5]")
        if not 0.0 < val <= 0.5:
            raise ValueError("contamination must be in (0.0, 0.5]")
        return v


class LOFConfig(BaseModel):
    """Configuration for the outlier sub-estimator."""

    n_neighbors: int = Field(default=20, ge=1, description="Number of neighbors for LOF")
    contamination: str = Field(default="auto", description="Expected proportion of outliers")
    metric: str = Field(default="minkowski", description="Distance metric")


class DetectorConfigs(BaseModel):
    """Container for unsupervised detector configurations."""

    isolation_forest: IsolationForestConfig = Field(default_factory=IsolationForestConfig)
    lof: LOFConfig = Field(default_factory=LOFConfig)


class NetworkConfig(BaseModel):
    """Shared architecture of the trainable feed-forward networks."""

    hidden_layers: list[int] = Field(
        default_factory=lambda: [128, 64, 32], description="Units per dense layer"
    )
    activation: Literal["relu", "tanh", "logistic"] = Field(default="relu")
    l2: float = Field(default=0.001, ge=0.0, description="L2 penalty on weights")
    learning_rate: float = Field(default=0.001, gt=0.0, le=1.0)
    epochs: int = Field(default=100, ge=1, description="Maximum training epochs")
    batch_size: int = Field(default=32, ge=1)
    early_stopping: bool = Field(default=True, description="Stop when validation score stalls")
    patience: int = Field(default=10, ge=1, description="Epochs without improvement")

    @field_validator("hidden_layers")
    @classmethod
    def validate_layers(cls, v: list[int]) -> list[int]:
        """Validate every layer has at least one unit."""
        if not v or any(units < 1 for units in v):
            raise ValueError("hidden_layers must be a non-empty list of positive sizes")
        return v


class TrainingConfig(BaseModel):
    """Configuration for training and evaluation."""

    validation_split: float = Field(
        default=0.2, gt=0.0, lt=1.0, description="Fraction held out for validation"
    )
    seed: int = Field(default=42, description="Random seed for split and model init")
    evaluation_threshold: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Classification threshold used in evaluation"
    )
    regression_tolerance: float = Field(
        default=0.1, ge=0.0, description="Absolute error counted as accurate"
    )
    score_divisor: float = Field(
        default=1000.0, gt=0.0, description="Historical scores are divided by this for labels"
    )
    network: NetworkConfig = Field(default_factory=NetworkConfig)


class ServingConfig(BaseModel):
    """Configuration for the model server and HTTP surface."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3001, ge=1, le=65535)
    feature_min: float = Field(default=0.0, description="Lower normalization bound")
    feature_max: float = Field(default=100.0, description="Upper normalization bound")
    credit_model_name: str = Field(default="credit-score")
    fraud_model_name: str = Field(default="fraud-detection")
    min_confidence: float = Field(default=0.1, ge=0.0, le=1.0)
    base_confidence: float = Field(default=0.8, ge=0.0, le=1.0)
    max_spread_penalty: float = Field(default=0.3, ge=0.0, le=1.0)
    spread_penalty_factor: float = Field(default=0.1, ge=0.0)

    @model_validator(mode="after")
    def check_bounds(self) -> "ServingConfig":
        """Ensure normalization bounds are ordered."""
        if self.feature_min >= self.feature_max:
            raise ValueError("feature_min must be lower than feature_max")
        return self


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    format: Literal["json", "text"] = Field(default="json", description="Log format")
    log_file: Optional[str] = Field(default=None, description="Log file path")


class RiskEngineConfig(BaseModel):
    """Main configuration for the risk engine."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    features: FeatureConfig = Field(default_factory=FeatureConfig)
    credit: CreditConfig = Field(default_factory=CreditConfig)
    fraud: FraudConfig = Field(default_factory=FraudConfig)
    detectors: DetectorConfigs = Field(default_factory=DetectorConfigs)
    training: TrainingConfig = Field(default_factory=TrainingConfig)
    serving: ServingConfig = Field(default_factory=ServingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}


def _apply_env_overrides(config: RiskEngineConfig) -> RiskEngineConfig:
    """Apply environment variable overrides to configuration.

    Supports the following environment variables:
    - CREDCHAIN_MODELS_DIR
    - CREDCHAIN_FRAUD_THRESHOLD
    - CREDCHAIN_TRAIN_SEED, CREDCHAIN_TRAIN_EPOCHS, CREDCHAIN_TRAIN_LEARNING_RATE
    - CREDCHAIN_SERVE_HOST, CREDCHAIN_SERVE_PORT
    - CREDCHAIN_LOG_LEVEL, CREDCHAIN_LOG_FORMAT, CREDCHAIN_LOG_FILE
    """
    config_dict = config.model_dump()

    if os.getenv("CREDCHAIN_MODELS_DIR"):
        config_dict["paths"]["models_dir"] = os.environ["CREDCHAIN_MODELS_DIR"]

    if os.getenv("CREDCHAIN_FRAUD_THRESHOLD"):
        config_dict["fraud"]["decision_threshold"] = float(
            os.environ["CREDCHAIN_FRAUD_THRESHOLD"]
        )

    # Training overrides
    if os.getenv("CREDCHAIN_TRAIN_SEED"):
        config_dict["training"]["seed"] = int(os.environ["CREDCHAIN_TRAIN_SEED"])
    if os.getenv("CREDCHAIN_TRAIN_EPOCHS"):
        config_dict["training"]["network"]["epochs"] = int(os.environ["CREDCHAIN_TRAIN_EPOCHS"])
    if os.getenv("CREDCHAIN_TRAIN_LEARNING_RATE"):
        config_dict["training"]["network"]["learning_rate"] = float(
            os.environ["CREDCHAIN_TRAIN_LEARNING_RATE"]
        )

    # Serving overrides
    if os.getenv("CREDCHAIN_SERVE_HOST"):
        config_dict["serving"]["host"] = os.environ["CREDCHAIN_SERVE_HOST"]
    if os.getenv("CREDCHAIN_SERVE_PORT"):
        config_dict["serving"]["port"] = int(os.environ["CREDCHAIN_SERVE_PORT"])

    # Logging overrides
    if os.getenv("CREDCHAIN_LOG_LEVEL"):
        config_dict["logging"]["level"] = os.environ["CREDCHAIN_LOG_LEVEL"]
    if os.getenv("CREDCHAIN_LOG_FORMAT"):
        config_dict["logging"]["format"] = os.environ["CREDCHAIN_LOG_FORMAT"]
    if os.getenv("CREDCHAIN_LOG_FILE"):
        config_dict["logging"]["log_file"] = os.environ["CREDCHAIN_LOG_FILE"]

    return RiskEngineConfig.model_validate(config_dict)


def load_config(config_path: Optional[str] = None) -> RiskEngineConfig:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, tries
                    config/default.yaml and falls back to defaults.

    Returns:
        Validated RiskEngineConfig object.

    Raises:
        ValueError: If configuration is invalid.
    """
    config_dict: dict = {}

    path = Path(config_path) if config_path else Path("config/default.yaml")

    if path.exists():
        with open(path, "r") as f:
            config_dict = yaml.safe_load(f) or {}

    try:
        config = RiskEngineConfig.model_validate(config_dict)
        config = _apply_env_overrides(config)
    except Exception as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return config


def save_config(config: RiskEngineConfig, config_path: str) -> None:
    """Save configuration to YAML file.

    Args:
        config: Configuration to save.
        config_path: Path to save YAML file.
    """
    path = Path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)


def get_default_config() -> RiskEngineConfig:
    """Get default configuration.

    Returns:
        RiskEngineConfig with default values.
    """
    return RiskEngineConfig()
