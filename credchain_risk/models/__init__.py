"""Credit and fraud estimators."""
from .base import BaseDetector, Estimator, EstimatorKind
from .credit import (
    CreditScoreEstimator,
    CreditScoreRegressor,
    CreditScoreResult,
    ScoreScale,
    compute_credit_score,
)
from .ensemble import WeightedEnsemble
from .fraud import (
    FraudAssessment,
    FraudRiskEstimator,
    RiskFactor,
    Severity,
    assess_fraud,
    decide,
    fraud_confidence,
    severity_for,
)
from .rules import BusinessRuleEngine, RuleResult

__all__ = [
    "Estimator",
    "EstimatorKind",
    "BaseDetector",
    "ScoreScale",
    "CreditScoreResult",
    "CreditScoreEstimator",
    "CreditScoreRegressor",
    "compute_credit_score",
    "WeightedEnsemble",
    "BusinessRuleEngine",
    "RuleResult",
    "Severity",
    "RiskFactor",
    "FraudAssessment",
    "FraudRiskEstimator",
    "assess_fraud",
    "decide",
    "fraud_confidence",
    "severity_for",
]
