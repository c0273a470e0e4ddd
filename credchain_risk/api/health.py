"""Health endpoint."""

from fastapi import APIRouter

from ..serving.server import ModelServer
from .deps import ServerDep
from .errors import now_iso

router = APIRouter()


@router.get("/health")
def health(server: ModelServer = ServerDep):
    return {
        "status": "healthy",
        "timestamp": now_iso(),
        "models": {artifact.name: artifact.status.value for artifact in server.list_models()},
    }
