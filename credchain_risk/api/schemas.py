"""Request bodies of the prediction endpoints.

Field names follow the public camelCase API; Python attributes are
snake_case.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PredictRequest(BaseModel):
    """Base request carrying a raw feature vector."""

    model_config = ConfigDict(populate_by_name=True)

    features: list[float] = Field(..., min_length=1, description="Raw feature vector")
    user_id: Optional[str] = Field(default=None, alias="userId")


class CreditPredictRequest(PredictRequest):
    """Credit score request with the 10 credit features."""


class FraudPredictRequest(PredictRequest):
    """Fraud request with the 15 fraud features."""

    transaction_id: Optional[str] = Field(default=None, alias="transactionId")


class BatchItem(BaseModel):
    """
    One item of a batch; modelType is the served model name.

    Fields are loose so a malformed item is reported in its own slot
    instead of rejecting the whole batch.
    """

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    model_type: Optional[str] = Field(default=None, alias="modelType", description="Model name, e.g. credit-score")
    features: Any = None
    id: Optional[Union[str, int]] = None


class BatchRequest(BaseModel):
    requests: list[BatchItem]
