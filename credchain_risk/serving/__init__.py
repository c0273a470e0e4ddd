"""Model serving."""
from .repository import (
    ArtifactStatus,
    InMemoryModelRepository,
    ModelArtifact,
    ModelHandle,
    ModelRepository,
)
from .server import ModelServer, Prediction

__all__ = [
    "ModelServer",
    "Prediction",
    "ModelRepository",
    "InMemoryModelRepository",
    "ModelArtifact",
    "ModelHandle",
    "ArtifactStatus",
]
