"""Model Training Module.

Trains the credit regressor and the fraud ensemble, evaluates them on a
seeded hold-out split and writes timestamped artifacts:

    <models_dir>/<type>-<UTC timestamp>/model.joblib
    <models_dir>/<type>-<UTC timestamp>/metadata.json

Artifacts are written to a temporary directory and renamed into place,
so a failed run never leaves a partial artifact behind.
"""

import json
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import joblib
import numpy as np
import pandas as pd

from ..config import RiskEngineConfig
from ..errors import TrainingError
from ..evaluation.metrics import ClassificationMetrics, RegressionMetrics
from ..features.extractor import CREDIT_FEATURE_NAMES, FRAUD_FEATURE_NAMES
from ..features.scaling import validate_matrix
from ..models.base import EstimatorKind
from ..models.credit import CreditScoreRegressor, ScoreScale
from ..models.fraud import FraudRiskEstimator
from ..utils.logging import RiskLogger, get_logger, log_function_call

ARTIFACT_FILE = "model.joblib"
METADATA_FILE = "metadata.json"
TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"


@dataclass
class TrainingDataset:
    """Train/validation split of a feature matrix and its labels."""

    X_train: np.ndarray
    y_train: np.ndarray
    X_validation: np.ndarray
    y_validation: np.ndarray

    @property
    def num_train(self) -> int:
        return len(self.X_train)

    @property
    def num_validation(self) -> int:
        return len(self.X_validation)


@dataclass
class TrainingResult:
    """Outcome of a successful training run."""

    model_type: str
    artifact_dir: Optional[Path]
    metrics: dict[str, float]
    num_train: int
    num_validation: int
    duration_seconds: float
    metadata: dict[str, Any] = field(default_factory=dict)


def split_dataset(
    X: np.ndarray,
    y: np.ndarray,
    validation_split: float = 0.2,
    seed: int = 42,
) -> TrainingDataset:
    """
    Shuffle and split rows deterministically.

    Args:
        X: Feature matrix.
        y: Labels aligned with X.
        validation_split: Fraction of rows held out.
        seed: Seed of the permutation.

    Returns:
        TrainingDataset; the same seed always yields the same split.
    """
    X = np.asarray(X, dtype=float)
    y = np.asarray(y)
    if len(X) != len(y):
        raise ValueError(f"Feature rows ({len(X)}) and labels ({len(y)}) differ")

    order = np.random.default_rng(seed).permutation(len(X))
    n_validation = int(round(len(X) * validation_split))
    n_train = len(X) - n_validation
    train_idx, val_idx = order[:n_train], order[n_train:]
    return TrainingDataset(
        X_train=X[train_idx],
        y_train=y[train_idx],
        X_validation=X[val_idx],
        y_validation=y[val_idx],
    )


def artifact_timestamp(moment: Optional[datetime] = None) -> str:
    """UTC timestamp used in artifact directory names."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def load_artifact(path: str | Path) -> tuple[dict, dict]:
    """
    Load an artifact directory.

    Args:
        path: Artifact directory or its model.joblib file.

    Returns:
        (bundle, metadata) tuple.
    """
    path = Path(path)
    directory = path.parent if path.is_file() else path
    bundle = joblib.load(directory / ARTIFACT_FILE)
    metadata_path = directory / METADATA_FILE
    if metadata_path.exists():
        with open(metadata_path, "r") as f:
            metadata = json.load(f)
    else:
        metadata = bundle.get("metadata", {})
    return bundle, metadata


def find_latest_artifacts(models_dir: str | Path) -> dict[str, Path]:
    """
    Find the newest artifact directory per model type.

    Args:
        models_dir: Root directory holding <type>-<timestamp> directories.

    Returns:
        Mapping of model type to artifact directory.
    """
    root = Path(models_dir)
    latest: dict[str, Path] = {}
    if not root.is_dir():
        return latest

    for kind in EstimatorKind:
        candidates = sorted(
            p for p in root.glob(f"{kind.value}-*")
            if p.is_dir() and (p / ARTIFACT_FILE).exists()
        )
        if candidates:
            latest[kind.value] = candidates[-1]
    return latest


@log_function_call()
def load_training_data(path: str | Path, model_type: str) -> tuple[np.ndarray, np.ndarray]:
    """
    Load a labelled feature CSV.

    Credit files hold the credit feature columns plus credit_score; fraud
    files hold the fraud feature columns plus is_fraud.
    """
    df = pd.read_csv(path)
    if model_type == EstimatorKind.CREDIT.value:
        columns, label = list(CREDIT_FEATURE_NAMES), "credit_score"
    elif model_type == EstimatorKind.FRAUD.value:
        columns, label = list(FRAUD_FEATURE_NAMES), "is_fraud"
    else:
        raise ValueError(f"Unknown model type: {model_type}")

    missing = [col for col in [*columns, label] if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")
    return df[columns].to_numpy(dtype=float), df[label].to_numpy()


class ModelTrainer:
    """
    Trains, evaluates and persists the trainable estimators.

    Training runs out of band from serving; the model server picks up
    the written artifacts with load_model or load_latest.
    """

    def __init__(self, config: Optional[RiskEngineConfig] = None, logger: Optional[RiskLogger] = None):
        """
        Initialize the trainer.

        Args:
            config: Engine configuration.
            logger: Logger for progress and results.
        """
        self.config = config or RiskEngineConfig()
        self.logger = logger or get_logger("credchain_risk.training")

    @property
    def models_dir(self) -> Path:
        return Path(self.config.paths.models_dir)

    def _split(self, X: np.ndarray, y: np.ndarray) -> TrainingDataset:
        training = self.config.training
        return split_dataset(X, y, training.validation_split, training.seed)

    def train_credit(self, X: np.ndarray, scores: np.ndarray, save: bool = True) -> TrainingResult:
        """
        Train the credit regressor.

        Args:
            X: Raw credit feature matrix.
            scores: Historical credit scores; divided by score_divisor to
                form labels in [0, 1].
            save: Write an artifact when True.

        Returns:
            TrainingResult with validation metrics.

        Raises:
            TrainingError: If fitting, evaluation or persistence fails.
        """
        training = self.config.training
        kind = EstimatorKind.CREDIT.value
        try:
            X = validate_matrix(X, len(CREDIT_FEATURE_NAMES), label="credit training features")
            labels = np.clip(np.asarray(scores, dtype=float) / training.score_divisor, 0.0, 1.0)
            dataset = self._split(X, labels)

            self.logger.info(
                "Training credit regressor",
                train_records=dataset.num_train,
                validation_records=dataset.num_validation,
            )
            start = time.perf_counter()
            regressor = CreditScoreRegressor(
                config=training.network,
                random_state=training.seed,
                feature_bounds=(self.config.serving.feature_min, self.config.serving.feature_max),
                credit_config=self.config.credit,
            ).fit(dataset.X_train, dataset.y_train)
            duration = time.perf_counter() - start

            metrics = self.evaluate_credit(regressor, dataset.X_validation, dataset.y_validation)
            metadata = self._metadata(kind, dataset, metrics, duration)
            metadata["scale"] = ScoreScale.MODEL.value
            artifact_dir = None
            if save:
                artifact_dir = self.save_artifact(kind, {"regressor": regressor, "metadata": metadata}, metadata)
        except TrainingError:
            raise
        except Exception as e:
            self.logger.error("Credit training failed", exc_info=True, error=str(e))
            raise TrainingError(f"Credit training failed: {e}") from e

        self.logger.log_training_result(kind, dataset.num_train, dataset.num_validation, duration, **metrics)
        return TrainingResult(kind, artifact_dir, metrics, dataset.num_train, dataset.num_validation, duration, metadata)

    def train_fraud(self, X: np.ndarray, y: np.ndarray, save: bool = True) -> TrainingResult:
        """
        Train the fraud ensemble.

        The anomaly and outlier sub-estimators are fitted on all training
        rows; the classification network on the labelled rows.

        Args:
            X: Raw fraud feature matrix.
            y: Binary labels (1 = fraud).
            save: Write an artifact when True.

        Returns:
            TrainingResult with validation metrics of the network.

        Raises:
            TrainingError: If fitting, evaluation or persistence fails.
        """
        kind = EstimatorKind.FRAUD.value
        try:
            X = validate_matrix(X, len(FRAUD_FEATURE_NAMES), label="fraud training features")
            dataset = self._split(X, np.asarray(y).astype(int))

            self.logger.info(
                "Training fraud ensemble",
                train_records=dataset.num_train,
                validation_records=dataset.num_validation,
                fraud_ratio=round(float(dataset.y_train.mean()), 4) if dataset.num_train else 0.0,
            )
            start = time.perf_counter()
            estimator = FraudRiskEstimator(config=self.config, logger=self.logger)
            estimator.fit(dataset.X_train, dataset.y_train)
            duration = time.perf_counter() - start

            metrics = self.evaluate_fraud(estimator, dataset.X_validation, dataset.y_validation)
            metadata = self._metadata(kind, dataset, metrics, duration)
            metadata["ensemble_weights"] = dict(self.config.fraud.ensemble_weights)
            metadata["decision_threshold"] = self.config.fraud.decision_threshold
            artifact_dir = None
            if save:
                artifact_dir = self.save_artifact(kind, estimator.to_bundle(metadata), metadata)
        except TrainingError:
            raise
        except Exception as e:
            self.logger.error("Fraud training failed", exc_info=True, error=str(e))
            raise TrainingError(f"Fraud training failed: {e}") from e

        self.logger.log_training_result(kind, dataset.num_train, dataset.num_validation, duration, **metrics)
        return TrainingResult(kind, artifact_dir, metrics, dataset.num_train, dataset.num_validation, duration, metadata)

    def evaluate_credit(self, regressor: CreditScoreRegressor, X: np.ndarray, y: np.ndarray) -> dict[str, float]:
        """Regression metrics of the regressor on labels in [0, 1]."""
        metrics = RegressionMetrics(self.config.training.regression_tolerance)
        if len(X) == 0:
            results = metrics.evaluate([], [])
        else:
            results = metrics.evaluate(y, regressor.predict_value(X))
        return {k: v for k, v in results.to_dict().items() if k != "count"}

    def evaluate_fraud(self, estimator: FraudRiskEstimator, X: np.ndarray, y: np.ndarray) -> dict[str, float]:
        """
        Classification metrics at the evaluation threshold.

        Network metrics are reported plainly; the weighted ML ensemble
        score is reported with an ``ensemble_`` prefix.
        """
        metrics = ClassificationMetrics(self.config.training.evaluation_threshold)
        if len(X) == 0:
            return {}
        network = metrics.evaluate(y, estimator.classifier.score_samples(X))
        ensemble = metrics.evaluate(y, estimator.ensemble.score_samples(X))
        result = {
            "accuracy": network.accuracy,
            "precision": network.precision,
            "recall": network.recall,
            "f1_score": network.f1_score,
            "auc": network.auc,
        }
        result.update({
            "ensemble_auc": ensemble.auc,
            "ensemble_f1_score": ensemble.f1_score,
        })
        return result

    def _metadata(
        self,
        kind: str,
        dataset: TrainingDataset,
        metrics: dict[str, float],
        duration: float,
    ) -> dict[str, Any]:
        version = artifact_timestamp()
        names = CREDIT_FEATURE_NAMES if kind == EstimatorKind.CREDIT.value else FRAUD_FEATURE_NAMES
        return {
            "model_type": kind,
            "version": version,
            "created_at": datetime.now(timezone.utc).isoformat(),
            "feature_names": list(names),
            "n_features": len(names),
            "num_train": dataset.num_train,
            "num_validation": dataset.num_validation,
            "duration_seconds": round(duration, 3),
            "metrics": {k: float(v) for k, v in metrics.items()},
            "training": self.config.training.model_dump(),
        }

    def save_artifact(self, kind: str, bundle: dict, metadata: dict[str, Any]) -> Path:
        """
        Write an artifact directory atomically.

        Args:
            kind: Model type (credit or fraud).
            bundle: Objects to persist with joblib.
            metadata: JSON metadata.

        Returns:
            Path of the final artifact directory.

        Raises:
            TrainingError: If writing fails; nothing is left on disk.
        """
        final_dir = self.models_dir / f"{kind}-{metadata['version']}"
        tmp_dir = self.models_dir / f".{final_dir.name}.tmp"
        try:
            tmp_dir.mkdir(parents=True, exist_ok=False)
            joblib.dump(bundle, tmp_dir / ARTIFACT_FILE)
            with open(tmp_dir / METADATA_FILE, "w") as f:
                json.dump(metadata, f, indent=2, default=str)
            tmp_dir.rename(final_dir)
        except Exception as e:
            shutil.rmtree(tmp_dir, ignore_errors=True)
            raise TrainingError(f"Failed to write artifact {final_dir.name}: {e}") from e

        self.logger.info("Artifact saved", model_type=kind, path=str(final_dir))
        return final_dir
