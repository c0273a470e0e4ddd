"""Prediction endpoints.

Credit predictions are on the model scale [0, 1000]. Fraud predictions
use the production decision threshold and severity tiers.
"""

from typing import Any

from fastapi import APIRouter, Request

from ..models.credit import ScoreScale
from ..serving.server import ModelServer, Prediction
from .deps import ServerDep
from .schemas import BatchRequest, CreditPredictRequest, FraudPredictRequest

router = APIRouter(prefix="/predict", tags=["predict"])


def _fraud_body(prediction: dict[str, Any]) -> dict[str, Any]:
    return {
        "isFraud": prediction["is_fraud"],
        "probability": prediction["probability"],
        "confidence": prediction["confidence"],
        "riskLevel": prediction["risk_level"],
        "degraded": prediction["degraded"],
    }


def _common(prediction: Prediction) -> dict[str, Any]:
    return {
        "modelName": prediction.model_name,
        "version": prediction.version,
        "processingTime": round(prediction.processing_ms, 3),
        "timestamp": prediction.timestamp.isoformat(),
    }


@router.post("/credit-score")
def predict_credit_score(body: CreditPredictRequest, request: Request, server: ModelServer = ServerDep):
    name = request.app.state.config.serving.credit_model_name
    prediction = server.predict(name, body.features)
    return {
        **_common(prediction),
        "prediction": prediction.prediction,
        "confidence": prediction.confidence,
        "scale": ScoreScale.MODEL.value,
        "userId": body.user_id,
    }


@router.post("/fraud-detection")
def predict_fraud(body: FraudPredictRequest, request: Request, server: ModelServer = ServerDep):
    name = request.app.state.config.serving.fraud_model_name
    prediction = server.predict(name, body.features)
    return {
        **_common(prediction),
        "prediction": _fraud_body(prediction.prediction),
        "userId": body.user_id,
        "transactionId": body.transaction_id,
    }


@router.post("/batch")
def predict_batch(body: BatchRequest, server: ModelServer = ServerDep):
    items = server.predict_batch([
        {"model_name": item.model_type, "features": item.features, "id": item.id}
        for item in body.requests
    ])

    predictions = []
    for item in items:
        entry = {"requestId": item["id"], "modelName": item["model_name"]}
        if "error" in item:
            entry["error"] = item["error"]
        else:
            result = item["result"]
            value = result["prediction"]
            entry.update({
                "prediction": _fraud_body(value) if result["model_type"] == "fraud" else value,
                "confidence": result["confidence"],
                "processingTime": round(result["processing_ms"], 3),
                "timestamp": result["timestamp"],
            })
        predictions.append(entry)
    return {"predictions": predictions}
