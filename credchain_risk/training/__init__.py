"""Training and artifact persistence."""
from .trainer import (
    ARTIFACT_FILE,
    METADATA_FILE,
    ModelTrainer,
    TrainingDataset,
    TrainingResult,
    find_latest_artifacts,
    load_artifact,
    load_training_data,
    split_dataset,
)

__all__ = [
    "ModelTrainer",
    "TrainingDataset",
    "TrainingResult",
    "split_dataset",
    "load_artifact",
    "load_training_data",
    "find_latest_artifacts",
    "ARTIFACT_FILE",
    "METADATA_FILE",
]
