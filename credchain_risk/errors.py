"""Error Taxonomy Module.

Typed errors raised by the risk engine. Each error carries a stable
``code`` and the HTTP status the serving layer answers with.

Categories:
- InputError: malformed or missing feature vector (caller misuse)
- ModelNotReadyError: artifact absent or not in the ready state
- ComputationError: internal failure while scoring
- TrainingError: fit or persistence failure while training
"""

from typing import Any, Optional


class RiskEngineError(Exception):
    """Base class for all risk engine errors."""

    code: str = "RISK_ENGINE_ERROR"
    http_status: int = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Convert to a dictionary for JSON responses and batch item tags."""
        payload = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class InputError(RiskEngineError):
    """Feature vector or request payload is malformed."""

    code = "INPUT_ERROR"
    http_status = 400


class ModelNotReadyError(RiskEngineError):
    """Requested model is not loaded or its status is not ready.

    Answered with 500 since it signals an operational misconfiguration
    rather than caller misuse.
    """

    code = "MODEL_NOT_READY"
    http_status = 500


class ModelNotFoundError(ModelNotReadyError):
    """Requested model name is unknown to the server."""

    code = "MODEL_NOT_FOUND"
    http_status = 404


class ComputationError(RiskEngineError):
    """Internal failure while computing a score or assessment."""

    code = "COMPUTATION_ERROR"
    http_status = 500


class TrainingError(RiskEngineError):
    """Training aborted; no artifact was registered."""

    code = "TRAINING_ERROR"
    http_status = 500
