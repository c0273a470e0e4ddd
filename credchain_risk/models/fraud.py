"""
Fraud Risk Estimator.

Combines a weighted ML ensemble (anomaly, outlier and classification
sub-estimators) with fixed business rules:

    combined = ml_weight * ml_score + rule_weight * rule_score

A transaction is flagged when combined is strictly above the decision
threshold. Any internal failure blocks the transaction (fail-closed) and
marks the result as degraded.
"""

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional, Union

import numpy as np

from ..config import FraudConfig, RiskEngineConfig
from ..data.records import TransactionContext
from ..errors import InputError
from ..features.extractor import FRAUD_FEATURE_COUNT, FeatureExtractor
from ..utils.logging import RiskLogger, get_logger
from .base import Estimator, EstimatorKind
from .detectors import AnomalyDetector, FraudClassifier, OutlierDetector
from .ensemble import WeightedEnsemble
from .rules import BusinessRuleEngine


class Severity(str, Enum):
    """Fraud severity tiers."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def decide(combined: float, threshold: float) -> bool:
    """Block decision; strictly greater than the threshold."""
    return combined > threshold


def severity_for(combined: float, config: Optional[FraudConfig] = None) -> Severity:
    """Map a combined score to its severity tier."""
    config = config or FraudConfig()
    if combined >= config.severity_critical:
        return Severity.CRITICAL
    if combined >= config.severity_high:
        return Severity.HIGH
    if combined >= config.severity_medium:
        return Severity.MEDIUM
    return Severity.LOW


def fraud_confidence(combined: float, config: Optional[FraudConfig] = None) -> float:
    """Confidence grows as the score moves away from 0.5."""
    config = config or FraudConfig()
    return min(config.max_confidence, max(config.min_confidence, 1 - abs(combined - 0.5) * 2))


def combine_scores(ml_score: float, rule_score: float, config: Optional[FraudConfig] = None) -> float:
    config = config or FraudConfig()
    return config.ml_weight * ml_score + config.rule_weight * rule_score


@dataclass(frozen=True)
class RiskFactor:
    """One observed risk indicator."""

    name: str
    value: float
    risk: str  # "high" or "low"


def risk_factors(features: np.ndarray) -> tuple[RiskFactor, ...]:
    """Rate the notable fraud features of a vector as high or low risk."""

    def factor(name: str, value: float, is_high: bool) -> RiskFactor:
        return RiskFactor(name=name, value=float(value), risk="high" if is_high else "low")

    hour = features[2]
    return (
        factor("transaction_amount", features[0], features[0] > 5000),
        factor("transactions_24h", features[10], features[10] > 5),
        factor("transaction_hour", hour, hour < 6 or hour > 22),
        factor("amount_ratio", features[1], features[1] > 5),
        factor("new_location", features[6], features[6] > 0),
        factor("new_device", features[7], features[7] > 0),
        factor("suspicious_country", features[8], features[8] > 0),
        factor("failed_transactions", features[14], features[14] > 2),
    )


def recommendations_for(is_fraud: bool, features: np.ndarray) -> tuple[str, ...]:
    """Actions for the operator reviewing the transaction."""
    if is_fraud:
        return (
            "Block the transaction",
            "Notify the security team",
            "Investigate the user's transaction history",
            "Send a security alert to the user",
        )
    recs = []
    if features[6] > 0:
        recs.append("Confirm the transaction location with the user")
    if features[7] > 0:
        recs.append("Confirm the new device with the user")
    if features[1] > 2:
        recs.append("Verify the transaction amount with the user")
    return tuple(recs)


@dataclass(frozen=True)
class FraudAssessment:
    """Fraud decision for one transaction."""

    is_fraud: bool
    probability: float
    confidence: float
    severity: Severity
    ml_score: float
    rule_score: float
    explanation: str
    violated_rules: tuple[str, ...] = ()
    component_scores: dict[str, float] = field(default_factory=dict)
    risk_factors: tuple[RiskFactor, ...] = ()
    recommendations: tuple[str, ...] = ()
    user_id: Optional[str] = None
    transaction_id: Optional[str] = None
    degraded: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["severity"] = self.severity.value
        data["violated_rules"] = list(self.violated_rules)
        data["recommendations"] = list(self.recommendations)
        data["risk_factors"] = [asdict(f) for f in self.risk_factors]
        return data


class FraudRiskEstimator(Estimator):
    """
    Ensemble fraud estimator with fixed business rules.

    Sub-estimators are genuine fitted models; until they are fitted every
    prediction fails closed.
    """

    kind = EstimatorKind.FRAUD
    n_features = FRAUD_FEATURE_COUNT

    def __init__(
        self,
        config: Optional[RiskEngineConfig] = None,
        anomaly: Optional[AnomalyDetector] = None,
        outlier: Optional[OutlierDetector] = None,
        classifier: Optional[FraudClassifier] = None,
        logger: Optional[RiskLogger] = None,
        name: str = "FraudRisk",
    ):
        """
        Initialize the estimator.

        Args:
            config: Engine configuration; fraud, detector, network and
                serving sections are used.
            anomaly: Anomaly sub-estimator. Built from config if omitted.
            outlier: Outlier sub-estimator. Built from config if omitted.
            classifier: Classification sub-estimator. Built from config if omitted.
            logger: Logger for fail-closed results.
            name: Human-readable name.
        """
        super().__init__(name=name)
        self.config = config or RiskEngineConfig()
        self.logger = logger or get_logger("credchain_risk.fraud")

        seed = self.config.training.seed
        if_cfg = self.config.detectors.isolation_forest
        lof_cfg = self.config.detectors.lof
        bounds = (self.config.serving.feature_min, self.config.serving.feature_max)

        self.anomaly = anomaly or AnomalyDetector(
            contamination=if_cfg.contamination,
            n_estimators=if_cfg.n_estimators,
            max_samples=int(if_cfg.max_samples) if if_cfg.max_samples.isdigit() else if_cfg.max_samples,
            random_state=seed,
        )
        self.outlier = outlier or OutlierDetector(
            n_neighbors=lof_cfg.n_neighbors,
            contamination=lof_cfg.contamination,
            metric=lof_cfg.metric,
        )
        self.classifier = classifier or FraudClassifier(
            config=self.config.training.network, random_state=seed, feature_bounds=bounds
        )

        weights = self.config.fraud.ensemble_weights
        self.ensemble = WeightedEnsemble({
            "anomaly": (self.anomaly, weights["anomaly"]),
            "outlier": (self.outlier, weights["outlier"]),
            "classification": (self.classifier, weights["classification"]),
        })
        self.rules = BusinessRuleEngine(self.config.fraud)

    @property
    def is_fitted(self) -> bool:
        return self.ensemble.is_fitted

    def fit(self, X: np.ndarray, y: np.ndarray) -> "FraudRiskEstimator":
        """
        Fit every sub-estimator.

        Args:
            X: Raw fraud feature matrix.
            y: Binary labels (1 = fraud); used by the classifier only.

        Returns:
            self: The fitted estimator.
        """
        self.anomaly.fit(X)
        self.outlier.fit(X)
        self.classifier.fit(X, y)
        return self

    def predict(
        self,
        features: np.ndarray,
        user_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> FraudAssessment:
        """
        Assess a fraud feature vector.

        Args:
            features: Raw fraud feature vector.
            user_id: Optional user identifier carried into the result.
            transaction_id: Optional transaction identifier.

        Returns:
            FraudAssessment. Internal failures produce a blocking,
            degraded assessment.

        Raises:
            InputError: If the vector is malformed.
        """
        vector = self._check_vector(features)
        fraud_cfg = self.config.fraud
        try:
            ml_score, components = self.ensemble.score(vector)
            rule_result = self.rules.evaluate(vector)
            combined = combine_scores(ml_score, rule_result.score, fraud_cfg)
            is_fraud = decide(combined, fraud_cfg.decision_threshold)
            assessment = FraudAssessment(
                is_fraud=is_fraud,
                probability=combined,
                confidence=fraud_confidence(combined, fraud_cfg),
                severity=severity_for(combined, fraud_cfg),
                ml_score=ml_score,
                rule_score=rule_result.score,
                explanation="",
                violated_rules=rule_result.violated,
                component_scores=components,
                risk_factors=risk_factors(vector),
                recommendations=recommendations_for(is_fraud, vector),
                user_id=user_id,
                transaction_id=transaction_id,
            )
            return replace(assessment, explanation=self.explain(vector, assessment))
        except InputError:
            raise
        except Exception as e:
            self.logger.error(
                "Fraud assessment failed, blocking transaction",
                exc_info=True,
                user_id=user_id,
                transaction_id=transaction_id,
                error=str(e),
            )
            return self._fail_closed(vector, user_id, transaction_id, e)

    def _fail_closed(
        self,
        vector: np.ndarray,
        user_id: Optional[str],
        transaction_id: Optional[str],
        error: Exception,
    ) -> FraudAssessment:
        confidence = self.config.fraud.fail_closed_confidence
        return FraudAssessment(
            is_fraud=True,
            probability=confidence,
            confidence=confidence,
            severity=Severity.HIGH,
            ml_score=0.0,
            rule_score=0.0,
            explanation=(
                f"Transaction blocked: fraud assessment failed ({type(error).__name__}). "
                "Manual review required."
            ),
            risk_factors=risk_factors(vector),
            recommendations=recommendations_for(True, vector),
            user_id=user_id,
            transaction_id=transaction_id,
            degraded=True,
        )

    def explain(self, features: np.ndarray, result: FraudAssessment) -> str:
        """Summarize the decision, sub-estimator scores and violated rules."""
        if result.degraded:
            return result.explanation
        verdict = "Fraud suspected" if result.is_fraud else "No fraud detected"
        lines = [
            f"{verdict}: probability {result.probability:.2f}, severity {result.severity.value}, "
            f"confidence {result.confidence:.2f}.",
            f"ML score {result.ml_score:.2f}, rule score {result.rule_score:.2f}.",
        ]
        lines.extend(self.ensemble.explain(features, result.component_scores))
        for name in result.violated_rules:
            lines.append(f"Rule violated: {self.rules.describe(name)}")
        return "\n".join(lines)

    def assess(
        self,
        user_id: str,
        context: Union[TransactionContext, dict],
        records: Iterable,
        now: Optional[datetime] = None,
        extractor: Optional[FeatureExtractor] = None,
    ) -> FraudAssessment:
        """Extract features for a transaction and assess it."""
        if isinstance(context, dict):
            context = TransactionContext.from_dict(context)
        extractor = extractor or FeatureExtractor(self.config.features)
        features = extractor.fraud_features(context, records, now=now)
        return self.predict(features, user_id=user_id, transaction_id=context.transaction_id)

    def to_bundle(self, metadata: Optional[dict] = None) -> dict:
        """Serializable bundle of the fitted sub-estimators."""
        return {
            "anomaly": self.anomaly,
            "outlier": self.outlier,
            "classifier": self.classifier,
            "metadata": metadata or {},
        }

    @classmethod
    def from_bundle(
        cls,
        bundle: dict,
        config: Optional[RiskEngineConfig] = None,
        logger: Optional[RiskLogger] = None,
    ) -> "FraudRiskEstimator":
        """Rebuild an estimator from a saved bundle."""
        try:
            return cls(
                config=config,
                anomaly=bundle["anomaly"],
                outlier=bundle["outlier"],
                classifier=bundle["classifier"],
                logger=logger,
            )
        except KeyError as e:
            raise ValueError(f"Fraud bundle missing component: {e.args[0]}") from e


def assess_fraud(
    user_id: str,
    context: Union[TransactionContext, dict],
    records: Iterable,
    estimator: Optional[FraudRiskEstimator] = None,
    now: Optional[datetime] = None,
    config: Optional[RiskEngineConfig] = None,
) -> FraudAssessment:
    """
    Assess a transaction for fraud.

    Args:
        user_id: User identifier.
        context: Transaction being assessed.
        records: User's prior transactions.
        estimator: Fitted fraud estimator. If omitted, an unfitted one is
            built from config, which blocks every transaction with a
            degraded result until a trained estimator is supplied.
        now: Reference time; defaults to the transaction timestamp.
        config: Configuration for feature extraction; defaults to the
            estimator's configuration.

    Returns:
        FraudAssessment for the transaction.
    """
    if estimator is None:
        estimator = FraudRiskEstimator(config=config)
    extractor = FeatureExtractor((config or estimator.config).features)
    return estimator.assess(user_id, context, records, now=now, extractor=extractor)
