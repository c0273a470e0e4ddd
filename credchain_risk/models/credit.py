"""
Credit Score Estimators.

Two estimators share the 10-value credit feature vector:

- CreditScoreEstimator: deterministic weighted multi-factor model on the
  presentation scale [300, 850].
- CreditScoreRegressor: trained feed-forward regressor on the model scale
  [0, 1000], served by the model server.

The two scales are not numerically comparable. Every result names the
scale it was produced on and callers pick a scale by name.
"""

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

import numpy as np
from sklearn.neural_network import MLPRegressor

from ..config import CreditConfig, NetworkConfig, RiskEngineConfig
from ..data.records import utc_now
from ..errors import InputError, ModelNotReadyError
from ..features.extractor import CREDIT_FEATURE_COUNT, FeatureExtractor
from ..features.scaling import normalize_features, spread_confidence
from ..utils.logging import RiskLogger, get_logger
from .base import Estimator, EstimatorKind
from .detectors.network import build_network

FACTOR_LABELS = {
    "payment_history": "Payment history",
    "credit_utilization": "Credit utilization",
    "credit_age": "Credit age",
    "credit_mix": "Credit mix",
    "new_credit_inquiries": "New credit inquiries",
}

INSUFFICIENT_DATA = "Insufficient data: no payment history available to compute a credit score."
DEGRADED = "Credit score unavailable: internal error while scoring. Result is degraded."


class ScoreScale(str, Enum):
    """Named score scales."""
    PRESENTATION = "presentation"  # deterministic model, [300, 850]
    MODEL = "model"                # trained regressor, [0, 1000]

    @property
    def bounds(self) -> tuple[int, int]:
        return _SCALE_BOUNDS[self]

    def clamp(self, value: float) -> int:
        """Round half up and clamp into the scale."""
        low, high = self.bounds
        return int(max(low, min(high, round_half_up(value))))

    @classmethod
    def from_name(cls, name: str) -> "ScoreScale":
        """Look up a scale by name, raising InputError for unknown names."""
        try:
            return cls(str(name).lower())
        except ValueError as e:
            valid = ", ".join(s.value for s in cls)
            raise InputError(f"Unknown score scale '{name}', expected one of: {valid}") from e


_SCALE_BOUNDS = {
    ScoreScale.PRESENTATION: (300, 850),
    ScoreScale.MODEL: (0, 1000),
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class CreditScoreResult:
    """Creditworthiness score for one user."""

    score: int
    scale: ScoreScale
    confidence: float
    factors: dict[str, int]
    raw_score: float  # weighted sum or model output before rounding and clamping
    explanation: str
    recommendations: tuple[str, ...] = ()
    user_id: Optional[str] = None
    record_count: int = 0
    degraded: bool = False

    @property
    def bounds(self) -> tuple[int, int]:
        return self.scale.bounds

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        data = asdict(self)
        data["scale"] = self.scale.value
        data["bounds"] = list(self.bounds)
        data["recommendations"] = list(self.recommendations)
        return data


# Factor buckets

def payment_history_factor(on_time_rate: float) -> int:
    """On-time percentage, rounded."""
    return round_half_up(on_time_rate)


def utilization_factor(ratio: float) -> int:
    """Lower utilization of the estimated limit scores higher."""
    if ratio <= 0.1:
        return 100
    if ratio <= 0.3:
        return 90
    if ratio <= 0.5:
        return 70
    if ratio <= 0.7:
        return 50
    return 30


def credit_age_factor(months: float) -> int:
    """Longer history scores higher."""
    if months >= 60:
        return 100
    if months >= 36:
        return 80
    if months >= 24:
        return 60
    if months >= 12:
        return 40
    return 20


def credit_mix_factor(type_count: int) -> int:
    """More distinct amount types scores higher."""
    if type_count >= 4:
        return 100
    if type_count >= 3:
        return 80
    if type_count >= 2:
        return 60
    return 40


def inquiries_factor(recent_count: int) -> int:
    """Fewer recent records scores higher."""
    if recent_count <= 2:
        return 100
    if recent_count <= 4:
        return 80
    if recent_count <= 6:
        return 60
    return 40


def factor_scores(features: np.ndarray) -> dict[str, int]:
    """
    Compute the five credit factors from a credit feature vector.

    Args:
        features: Validated credit feature vector.

    Returns:
        Mapping of factor name to a 0-100 sub-score.
    """
    return {
        "payment_history": payment_history_factor(features[0]),
        "credit_utilization": utilization_factor(round(features[1] / 100, 9)),
        "credit_age": credit_age_factor(features[2]),
        "credit_mix": credit_mix_factor(int(features[3])),
        "new_credit_inquiries": inquiries_factor(int(features[4])),
    }


def weighted_sum(factors: dict[str, int], weights: dict[str, float]) -> float:
    return sum(factors[name] * weight for name, weight in weights.items())


def _factor_comment(name: str, value: int) -> str:
    if name == "payment_history":
        if value >= 90:
            return "excellent, payments are made on time"
        if value >= 70:
            return "good, punctuality can still improve"
        return "late payments are lowering the score"
    if value >= 80:
        return "strong"
    if value >= 60:
        return "moderate"
    return "weak"


def recommendations_for(factors: dict[str, int]) -> tuple[str, ...]:
    """Actionable advice for factors below their good tier."""
    recs = []
    if factors["payment_history"] < 90:
        recs.append("Pay all bills on or before the due date")
    if factors["credit_utilization"] < 80:
        recs.append("Reduce credit utilization")
    if factors["credit_age"] < 80:
        recs.append("Keep older accounts open to lengthen credit history")
    if factors["credit_mix"] < 80:
        recs.append("Diversify the types of credit used")
    if factors["new_credit_inquiries"] < 80:
        recs.append("Avoid many simultaneous credit inquiries")
    return tuple(recs)


def describe_score(
    score: int,
    scale: ScoreScale,
    confidence: float,
    factors: dict[str, int],
    weights: dict[str, float],
) -> str:
    """Render a multi-line explanation of a credit score."""
    low, high = scale.bounds
    lines = [
        f"Credit score {score} on the {scale.value} scale [{low}, {high}], "
        f"confidence {round_half_up(confidence * 100)}%."
    ]
    for name, label in FACTOR_LABELS.items():
        value = factors[name]
        lines.append(
            f"{label} ({round_half_up(weights[name] * 100)}%): {value}/100, "
            f"{_factor_comment(name, value)}"
        )

    if scale is ScoreScale.PRESENTATION:
        if score >= 750:
            lines.append("Excellent score.")
        elif score >= 650:
            lines.append("Good score, keep it up.")
        else:
            lines.append("There is room to improve, follow the recommendations.")
    return "\n".join(lines)


def empty_result(
    user_id: Optional[str],
    scale: ScoreScale,
    explanation: str,
    degraded: bool = False,
) -> CreditScoreResult:
    """Zero-score result for empty history or internal errors."""
    return CreditScoreResult(
        score=0,
        scale=scale,
        confidence=0.0,
        factors={name: 0 for name in FACTOR_LABELS},
        raw_score=0.0,
        explanation=explanation,
        recommendations=(),
        user_id=user_id,
        record_count=0,
        degraded=degraded,
    )


class CreditScoreEstimator(Estimator):
    """
    Deterministic weighted multi-factor credit scorer.

    score = round(sum(factor * weight)) clamped to the presentation scale.
    Confidence grows with the number of records:
    min(max_confidence, base + per_record * record_count).
    """

    kind = EstimatorKind.CREDIT
    n_features = CREDIT_FEATURE_COUNT
    scale = ScoreScale.PRESENTATION

    def __init__(
        self,
        config: Optional[CreditConfig] = None,
        logger: Optional[RiskLogger] = None,
        name: str = "CreditScore",
    ):
        """
        Initialize the scorer.

        Args:
            config: Credit configuration (weights, confidence).
            logger: Logger for degraded results.
            name: Human-readable name.
        """
        super().__init__(name=name)
        self.config = config or CreditConfig()
        self.logger = logger or get_logger("credchain_risk.credit")
        self._is_fitted = True

    def predict(self, features: np.ndarray, user_id: Optional[str] = None) -> CreditScoreResult:
        """
        Score a credit feature vector.

        Args:
            features: Raw credit feature vector.
            user_id: Optional user identifier carried into the result.

        Returns:
            CreditScoreResult on the presentation scale. Empty history and
            internal errors yield a zero score with zero confidence.

        Raises:
            InputError: If the vector is malformed.
        """
        vector = self._check_vector(features)
        record_count = int(vector[5])
        if record_count <= 0:
            return empty_result(user_id, self.scale, INSUFFICIENT_DATA)

        try:
            factors = factor_scores(vector)
            raw = weighted_sum(factors, self.config.weights)
            score = self.scale.clamp(raw)
            confidence = min(
                self.config.max_confidence,
                self.config.base_confidence + self.config.confidence_per_record * record_count,
            )
            return CreditScoreResult(
                score=score,
                scale=self.scale,
                confidence=confidence,
                factors=factors,
                raw_score=raw,
                explanation=describe_score(score, self.scale, confidence, factors, self.config.weights),
                recommendations=recommendations_for(factors),
                user_id=user_id,
                record_count=record_count,
            )
        except Exception as e:
            self.logger.error(
                "Credit scoring failed, returning degraded result",
                exc_info=True,
                user_id=user_id,
                error=str(e),
            )
            return empty_result(user_id, self.scale, DEGRADED, degraded=True)

    def explain(self, features: np.ndarray, result: CreditScoreResult) -> str:
        """Explain a result in one line per factor."""
        if result.record_count == 0:
            return result.explanation
        return describe_score(
            result.score, result.scale, result.confidence, result.factors, self.config.weights
        )

    def score_history(
        self,
        records: Iterable,
        now: datetime,
        extractor: Optional[FeatureExtractor] = None,
        user_id: Optional[str] = None,
    ) -> CreditScoreResult:
        """Extract features from a payment history and score them."""
        extractor = extractor or FeatureExtractor()
        return self.predict(extractor.credit_features(records, now), user_id=user_id)


class CreditScoreRegressor(Estimator):
    """
    Trained credit score regressor.

    Predicts a value in [0, 1] that is rescaled to [0, 1000] and clamped.
    Factors in its results come from the deterministic model and serve as
    explanation only.
    """

    kind = EstimatorKind.CREDIT
    n_features = CREDIT_FEATURE_COUNT
    scale = ScoreScale.MODEL

    def __init__(
        self,
        config: Optional[NetworkConfig] = None,
        random_state: Optional[int] = None,
        feature_bounds: tuple[float, float] = (0.0, 100.0),
        credit_config: Optional[CreditConfig] = None,
        name: str = "CreditNetwork",
    ):
        super().__init__(name=name)
        self.config = config or NetworkConfig()
        self.random_state = random_state
        self.feature_bounds = feature_bounds
        self.credit_config = credit_config or CreditConfig()
        self._model: Optional[MLPRegressor] = None

    @classmethod
    def from_network(
        cls,
        network: MLPRegressor,
        feature_bounds: tuple[float, float] = (0.0, 100.0),
    ) -> "CreditScoreRegressor":
        """Wrap an already fitted network."""
        instance = cls(feature_bounds=feature_bounds)
        instance._model = network
        instance._is_fitted = True
        return instance

    def fit(self, X: np.ndarray, y: np.ndarray) -> "CreditScoreRegressor":
        """
        Fit the regressor.

        Args:
            X: Raw credit feature matrix.
            y: Labels in [0, 1] (historical score / 1000).

        Returns:
            self: The fitted regressor.
        """
        X = np.asarray(X, dtype=float)
        self._model = build_network(self.config, "regression", seed=self.random_state, n_samples=len(X))
        self._model.fit(normalize_features(X, *self.feature_bounds), np.asarray(y, dtype=float))
        self._is_fitted = True
        return self

    def predict_value(self, X: np.ndarray) -> np.ndarray:
        """Network output for each row, clipped to [0, 1]."""
        if not self._is_fitted:
            raise RuntimeError("Regressor must be fitted before prediction")
        X = normalize_features(np.atleast_2d(np.asarray(X, dtype=float)), *self.feature_bounds)
        return np.clip(self._model.predict(X), 0.0, 1.0)

    def predict(self, features: np.ndarray, user_id: Optional[str] = None) -> CreditScoreResult:
        """Score one vector on the model scale."""
        vector = self._check_vector(features)
        record_count = int(vector[5])
        if record_count <= 0:
            return empty_result(user_id, self.scale, INSUFFICIENT_DATA)

        value = float(self.predict_value(vector)[0])
        raw = value * self.scale.bounds[1]
        score = self.scale.clamp(raw)
        factors = factor_scores(vector)
        confidence = spread_confidence(vector)
        return CreditScoreResult(
            score=score,
            scale=self.scale,
            confidence=confidence,
            factors=factors,
            raw_score=raw,
            explanation=describe_score(score, self.scale, confidence, factors, self.credit_config.weights),
            recommendations=recommendations_for(factors),
            user_id=user_id,
            record_count=record_count,
        )

    def explain(self, features: np.ndarray, result: CreditScoreResult) -> str:
        return describe_score(
            result.score, result.scale, result.confidence, result.factors, self.credit_config.weights
        )

    @property
    def model(self) -> Optional[MLPRegressor]:
        """Access the underlying sklearn model."""
        return self._model


def compute_credit_score(
    user_id: str,
    records: Iterable,
    now: Optional[datetime] = None,
    config: Optional[RiskEngineConfig] = None,
    logger: Optional[RiskLogger] = None,
    scale: str = "presentation",
    regressor: Optional["CreditScoreRegressor"] = None,
) -> CreditScoreResult:
    """
    Compute a user's credit score from payment history.

    Args:
        user_id: User identifier.
        records: PaymentRecord objects, dictionaries or a DataFrame.
        now: Reference time; defaults to the current UTC time.
        config: Engine configuration; defaults are used if omitted.
        logger: Logger for degraded results.
        scale: Score scale name or ScoreScale. "presentation" uses the
            deterministic scorer; "model" uses the trained regressor.
        regressor: Fitted CreditScoreRegressor, required for the model scale.

    Returns:
        CreditScoreResult on the requested scale.

    Raises:
        InputError: Unknown scale name.
        ModelNotReadyError: Model scale requested without a fitted regressor.
    """
    config = config or RiskEngineConfig()
    scale = ScoreScale.from_name(scale.value if isinstance(scale, ScoreScale) else scale)
    extractor = FeatureExtractor(config.features)
    if scale is ScoreScale.PRESENTATION:
        estimator = CreditScoreEstimator(config.credit, logger=logger)
        return estimator.score_history(records, now or utc_now(), extractor=extractor, user_id=user_id)

    if regressor is None or not regressor.is_fitted:
        raise ModelNotReadyError("Model-scale scoring requires a fitted CreditScoreRegressor")
    return regressor.predict(extractor.credit_features(records, now or utc_now()), user_id=user_id)
