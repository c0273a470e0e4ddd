"""Model registry endpoints."""

from fastapi import APIRouter

from ..serving.server import ModelServer
from .deps import ServerDep

router = APIRouter(prefix="/models", tags=["models"])


@router.get("")
def list_models(server: ModelServer = ServerDep):
    return {"models": [_info(artifact.to_dict()) for artifact in server.list_models()]}


@router.get("/{name}")
def get_model(name: str, server: ModelServer = ServerDep):
    return _info(server.get_model_info(name).to_dict())


@router.get("/{name}/metrics")
def get_metrics(name: str, server: ModelServer = ServerDep):
    return server.get_metrics(name)


def _info(data: dict) -> dict:
    data["lastUpdated"] = data.pop("last_updated")
    return data
