"""Feature extraction and normalization."""
from .extractor import (
    CREDIT_FEATURE_COUNT,
    CREDIT_FEATURE_NAMES,
    FRAUD_FEATURE_COUNT,
    FRAUD_FEATURE_NAMES,
    FeatureExtractor,
    amount_type,
)
from .scaling import normalize_features, spread_confidence, validate_matrix, validate_vector

__all__ = [
    "FeatureExtractor",
    "CREDIT_FEATURE_NAMES",
    "CREDIT_FEATURE_COUNT",
    "FRAUD_FEATURE_NAMES",
    "FRAUD_FEATURE_COUNT",
    "amount_type",
    "normalize_features",
    "spread_confidence",
    "validate_vector",
    "validate_matrix",
]
