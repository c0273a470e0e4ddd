"""Model Repository Module.

Holds the serving registry of loaded model artifacts. The in-memory
repository publishes an immutable snapshot: writers build a new mapping
under a lock and swap the reference, readers never lock and never see a
half-written entry.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ..errors import ModelNotReadyError


class ArtifactStatus(str, Enum):
    """Lifecycle status of a served model."""
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class ModelHandle:
    """
    Releasable reference to a loaded estimator.

    Disposal drops the estimator so a reader holding an older snapshot gets
    ModelNotReadyError instead of a released model; ModelServer then retries
    against the artifact that replaced it.
    """

    def __init__(self, estimator: Any = None):
        self._estimator = estimator
        self._disposed = False
        self._lock = threading.Lock()

    def acquire(self) -> Any:
        """Return the estimator, raising if it was released or never loaded."""
        with self._lock:
            if self._disposed or self._estimator is None:
                raise ModelNotReadyError("Model has been released")
            return self._estimator

    def dispose(self) -> None:
        with self._lock:
            self._estimator = None
            self._disposed = True

    @property
    def disposed(self) -> bool:
        return self._disposed


@dataclass(frozen=True)
class ModelArtifact:
    """A named, versioned model as seen by the server."""

    name: str
    version: str
    model_type: str
    status: ArtifactStatus
    last_updated: datetime
    path: Optional[str] = None
    metrics: dict[str, float] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    handle: ModelHandle = field(default_factory=ModelHandle, compare=False, repr=False)

    @property
    def is_ready(self) -> bool:
        return self.status is ArtifactStatus.READY

    def to_dict(self) -> dict[str, Any]:
        """Public description of the artifact."""
        data = {
            "name": self.name,
            "version": self.version,
            "type": self.model_type,
            "status": self.status.value,
            "last_updated": self.last_updated.isoformat(),
            "path": self.path,
            "metrics": dict(self.metrics),
        }
        if self.error is not None:
            data["error"] = self.error
        return data


class ModelRepository(ABC):
    """Storage of served model artifacts by name."""

    @abstractmethod
    def get(self, name: str) -> Optional[ModelArtifact]:
        """Artifact registered under name, or None."""

    @abstractmethod
    def put(self, artifact: ModelArtifact) -> Optional[ModelArtifact]:
        """Register an artifact, returning the one it replaced."""

    @abstractmethod
    def delete(self, name: str) -> Optional[ModelArtifact]:
        """Remove an artifact, returning it if present."""

    @abstractmethod
    def list(self) -> list[ModelArtifact]:
        """All registered artifacts."""


class InMemoryModelRepository(ModelRepository):
    """Copy-on-write in-memory repository."""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot: Mapping[str, ModelArtifact] = MappingProxyType({})

    def snapshot(self) -> Mapping[str, ModelArtifact]:
        """Current read-only view of the registry."""
        return self._snapshot

    def get(self, name: str) -> Optional[ModelArtifact]:
        return self._snapshot.get(name)

    def put(self, artifact: ModelArtifact) -> Optional[ModelArtifact]:
        with self._lock:
            entries = dict(self._snapshot)
            previous = entries.get(artifact.name)
            entries[artifact.name] = artifact
            self._snapshot = MappingProxyType(entries)
        return previous

    def delete(self, name: str) -> Optional[ModelArtifact]:
        with self._lock:
            if name not in self._snapshot:
                return None
            entries = dict(self._snapshot)
            removed = entries.pop(name)
            self._snapshot = MappingProxyType(entries)
        return removed

    def list(self) -> list[ModelArtifact]:
        return list(self._snapshot.values())

    def __len__(self) -> int:
        return len(self._snapshot)

    def __contains__(self, name: str) -> bool:
        return name in self._snapshot
