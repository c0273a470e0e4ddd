"""Model Server Module.

Loads trained artifacts, tracks their lifecycle and serves predictions.

Lifecycle: load_model moves an artifact through loading to ready or
error. reload_model builds the replacement completely before swapping it
in, so a failed reload keeps the previous ready artifact serving.
Predictions require a ready artifact.
"""

import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import numpy as np

from ..config import RiskEngineConfig
from ..errors import (
    ComputationError,
    InputError,
    ModelNotFoundError,
    ModelNotReadyError,
    RiskEngineError,
)
from ..features.extractor import CREDIT_FEATURE_COUNT, FRAUD_FEATURE_COUNT
from ..features.scaling import spread_confidence, validate_vector
from ..models.base import EstimatorKind
from ..models.credit import CreditScoreRegressor, ScoreScale
from ..models.fraud import FraudRiskEstimator
from ..training.trainer import find_latest_artifacts, load_artifact
from ..utils.logging import RiskLogger, get_logger
from .repository import ArtifactStatus, InMemoryModelRepository, ModelArtifact, ModelHandle, ModelRepository

FEATURE_COUNTS = {
    EstimatorKind.CREDIT: CREDIT_FEATURE_COUNT,
    EstimatorKind.FRAUD: FRAUD_FEATURE_COUNT,
}

MAX_ACQUIRE_ATTEMPTS = 3


@dataclass(frozen=True)
class Prediction:
    """A served prediction."""

    model_name: str
    model_type: str
    version: str
    prediction: Any
    confidence: float
    processing_ms: float
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = self.timestamp.isoformat()
        return data


def _parse_kind(model_type: str) -> EstimatorKind:
    try:
        return EstimatorKind(str(model_type).lower())
    except ValueError as e:
        raise InputError(f"Unknown model type '{model_type}', expected credit or fraud") from e


class ModelServer:
    """
    Serves trained credit and fraud models by name.

    The repository is the only shared state; all writes go through it.
    """

    def __init__(
        self,
        config: Optional[RiskEngineConfig] = None,
        repository: Optional[ModelRepository] = None,
        logger: Optional[RiskLogger] = None,
    ):
        """
        Initialize the server.

        Args:
            config: Engine configuration.
            repository: Artifact registry; in-memory if omitted.
            logger: Logger for lifecycle events and predictions.
        """
        self.config = config or RiskEngineConfig()
        self.repository = repository or InMemoryModelRepository()
        self.logger = logger or get_logger("credchain_risk.serving")

    # Lifecycle

    def _build_artifact(self, name: str, path: str | Path, kind: EstimatorKind) -> ModelArtifact:
        bundle, metadata = load_artifact(path)
        if kind is EstimatorKind.CREDIT:
            estimator = bundle["regressor"]
            if not isinstance(estimator, CreditScoreRegressor):
                raise ValueError(f"Artifact at {path} does not hold a credit regressor")
        else:
            estimator = FraudRiskEstimator.from_bundle(bundle, config=self.config, logger=self.logger)
        if not estimator.is_fitted:
            raise ValueError(f"Artifact at {path} holds an unfitted model")

        return ModelArtifact(
            name=name,
            version=str(metadata.get("version", Path(path).name)),
            model_type=kind.value,
            status=ArtifactStatus.READY,
            last_updated=datetime.now(timezone.utc),
            path=str(path),
            metrics=dict(metadata.get("metrics", {})),
            metadata=metadata,
            handle=ModelHandle(estimator),
        )

    def _placeholder(self, name: str, path: str | Path, kind: EstimatorKind, status: ArtifactStatus,
                     error: Optional[str] = None) -> ModelArtifact:
        return ModelArtifact(
            name=name,
            version="unknown",
            model_type=kind.value,
            status=status,
            last_updated=datetime.now(timezone.utc),
            path=str(path),
            error=error,
        )

    def load_model(self, name: str, path: str | Path, model_type: str) -> ModelArtifact:
        """
        Load an artifact under a name.

        If a ready artifact already serves under the name this behaves as
        reload_model.

        Args:
            name: Serving name.
            path: Artifact directory.
            model_type: 'credit' or 'fraud'.

        Returns:
            The ready artifact.

        Raises:
            Exception: Whatever failed while loading; the entry is left in
                the error state.
        """
        kind = _parse_kind(model_type)
        current = self.repository.get(name)
        if current is not None and current.is_ready:
            return self.reload_model(name, path, model_type)

        self.repository.put(self._placeholder(name, path, kind, ArtifactStatus.LOADING))
        self.logger.info("Loading model", model_name=name, model_type=kind.value, path=str(path))
        try:
            artifact = self._build_artifact(name, path, kind)
        except Exception as e:
            self.repository.put(self._placeholder(name, path, kind, ArtifactStatus.ERROR, error=str(e)))
            self.logger.error("Model load failed", exc_info=True, model_name=name, error=str(e))
            raise

        self.repository.put(artifact)
        self.logger.info("Model ready", model_name=name, version=artifact.version)
        return artifact

    def reload_model(self, name: str, path: str | Path, model_type: str) -> ModelArtifact:
        """
        Replace a served model atomically.

        The new artifact is built before the swap; the old one is disposed
        after it. On failure the old artifact keeps serving.

        Raises:
            Exception: Whatever failed while building the replacement.
        """
        kind = _parse_kind(model_type)
        try:
            artifact = self._build_artifact(name, path, kind)
        except Exception as e:
            self.logger.error("Model reload failed, keeping current version", exc_info=True,
                              model_name=name, error=str(e))
            raise

        previous = self.repository.put(artifact)
        if previous is not None:
            previous.handle.dispose()
        self.logger.info(
            "Model reloaded",
            model_name=name,
            version=artifact.version,
            previous_version=previous.version if previous else None,
        )
        return artifact

    def unload_model(self, name: str) -> None:
        """Remove a model and release it."""
        removed = self.repository.delete(name)
        if removed is None:
            raise ModelNotFoundError(f"Model '{name}' not found")
        removed.handle.dispose()
        self.logger.info("Model unloaded", model_name=name)

    def load_latest(self, models_dir: Optional[str | Path] = None) -> list[ModelArtifact]:
        """
        Load the newest artifact of each type under the default names.

        Failures are logged and leave that entry in the error state; the
        remaining types still load.

        Returns:
            Artifacts that reached the ready state.
        """
        models_dir = models_dir or self.config.paths.models_dir
        names = {
            EstimatorKind.CREDIT.value: self.config.serving.credit_model_name,
            EstimatorKind.FRAUD.value: self.config.serving.fraud_model_name,
        }
        loaded = []
        for model_type, path in find_latest_artifacts(models_dir).items():
            try:
                loaded.append(self.load_model(names[model_type], path, model_type))
            except Exception as e:
                self.logger.warning("Skipping artifact", path=str(path), error=str(e))
        if not loaded:
            self.logger.warning("No model artifacts loaded", models_dir=str(models_dir))
        return loaded

    # Queries

    def list_models(self) -> list[ModelArtifact]:
        return sorted(self.repository.list(), key=lambda a: a.name)

    def get_model_info(self, name: str) -> ModelArtifact:
        """Artifact registered under name."""
        artifact = self.repository.get(name)
        if artifact is None:
            raise ModelNotFoundError(f"Model '{name}' not found")
        return artifact

    def get_metrics(self, name: str) -> dict[str, float]:
        """Validation metrics recorded at training time."""
        return dict(self.get_model_info(name).metrics)

    def is_ready(self, name: str) -> bool:
        artifact = self.repository.get(name)
        return artifact is not None and artifact.is_ready

    # Inference

    def _ready(self, name: str) -> tuple[ModelArtifact, Any]:
        # A reload may dispose the looked-up handle before it is acquired;
        # its replacement is already installed, so retry against that.
        for _ in range(MAX_ACQUIRE_ATTEMPTS):
            artifact = self.get_model_info(name)
            if not artifact.is_ready:
                raise ModelNotReadyError(
                    f"Model '{name}' is not ready (status: {artifact.status.value})",
                    details={"status": artifact.status.value},
                )
            try:
                return artifact, artifact.handle.acquire()
            except ModelNotReadyError:
                if self.repository.get(name) is artifact:
                    raise
        raise ModelNotReadyError(f"Model '{name}' was replaced repeatedly while acquiring it")

    def _credit_prediction(self, estimator: CreditScoreRegressor, vector: np.ndarray) -> tuple[float, float]:
        serving = self.config.serving
        value = float(estimator.predict_value(vector)[0])
        low, high = ScoreScale.MODEL.bounds
        prediction = float(np.clip(value * high, low, high))
        confidence = spread_confidence(
            vector,
            base=serving.base_confidence,
            factor=serving.spread_penalty_factor,
            max_penalty=serving.max_spread_penalty,
            floor=serving.min_confidence,
        )
        return prediction, confidence

    def _fraud_prediction(self, estimator: FraudRiskEstimator, vector: np.ndarray) -> tuple[dict, float]:
        assessment = estimator.predict(vector)
        prediction = {
            "is_fraud": assessment.is_fraud,
            "probability": assessment.probability,
            "confidence": assessment.confidence,
            "risk_level": assessment.severity.value,
            "degraded": assessment.degraded,
        }
        return prediction, assessment.confidence

    def predict(self, name: str, features) -> Prediction:
        """
        Predict with a ready model.

        Args:
            name: Serving name.
            features: Raw feature vector for the model's type.

        Returns:
            Prediction; credit predictions are on the model scale
            [0, 1000], fraud predictions carry the block decision.

        Raises:
            ModelNotFoundError: Unknown name.
            ModelNotReadyError: Model loading, errored or released.
            InputError: Malformed feature vector.
            ComputationError: Credit inference failed.
        """
        artifact, estimator = self._ready(name)
        kind = EstimatorKind(artifact.model_type)
        vector = validate_vector(features, FEATURE_COUNTS[kind], label=f"{name} features")

        start = time.perf_counter()
        if kind is EstimatorKind.CREDIT:
            try:
                prediction, confidence = self._credit_prediction(estimator, vector)
            except RiskEngineError:
                raise
            except Exception as e:
                self.logger.error("Credit inference failed", exc_info=True, model_name=name, error=str(e))
                raise ComputationError(f"Credit inference failed: {e}") from e
        else:
            prediction, confidence = self._fraud_prediction(estimator, vector)
        processing_ms = (time.perf_counter() - start) * 1000

        self.logger.log_prediction(name, processing_ms, version=artifact.version)
        return Prediction(
            model_name=name,
            model_type=kind.value,
            version=artifact.version,
            prediction=prediction,
            confidence=confidence,
            processing_ms=processing_ms,
            timestamp=datetime.now(timezone.utc),
        )

    def predict_batch(self, requests: list[dict]) -> list[dict]:
        """
        Predict independent items.

        Each request is a mapping with model_name, features and an optional
        id echoed back. A failing item carries an error tag; the others
        still succeed.

        Returns:
            One dictionary per request, in order, with either a result or
            an error of the form {code, message}.
        """
        results = []
        for index, request in enumerate(requests):
            name = request.get("model_name")
            item = {"index": index, "id": request.get("id"), "model_name": name}
            try:
                if not name:
                    raise InputError("Batch item missing model_name")
                item["result"] = self.predict(name, request.get("features")).to_dict()
            except RiskEngineError as e:
                item["error"] = {"code": e.code, "message": e.message}
            except Exception as e:
                self.logger.error("Batch item failed", exc_info=True, index=index, model_name=name)
                error = ComputationError(str(e))
                item["error"] = {"code": error.code, "message": error.message}
            results.append(item)
        return results
