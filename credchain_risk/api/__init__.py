"""HTTP surface of the model server."""
from .app import create_app
from .errors import error_payload

__all__ = ["create_app", "error_payload"]
