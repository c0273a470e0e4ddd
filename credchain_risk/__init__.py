"""CredChain risk engine.

Credit scoring and fraud risk assessment from payment history, with
training and serving of the underlying models.
"""

__version__ = "0.1.0"

from .config import RiskEngineConfig, get_default_config, load_config
from .errors import (
    ComputationError,
    InputError,
    ModelNotFoundError,
    ModelNotReadyError,
    RiskEngineError,
    TrainingError,
)
from .models.credit import CreditScoreResult, ScoreScale, compute_credit_score
from .models.fraud import FraudAssessment, FraudRiskEstimator, assess_fraud

__all__ = [
    "__version__",
    "RiskEngineConfig",
    "load_config",
    "get_default_config",
    "RiskEngineError",
    "InputError",
    "ModelNotReadyError",
    "ModelNotFoundError",
    "ComputationError",
    "TrainingError",
    "ScoreScale",
    "CreditScoreResult",
    "compute_credit_score",
    "FraudAssessment",
    "FraudRiskEstimator",
    "assess_fraud",
]
