"""Shared route dependencies."""

from fastapi import Depends, Request

from ..serving.server import ModelServer


def get_server(request: Request) -> ModelServer:
    """The model server attached to the running application."""
    return request.app.state.server


ServerDep = Depends(get_server)
