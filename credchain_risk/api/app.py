"""FastAPI application.

Wires the model server into HTTP routes, adds request ids and timing
logs, and renders every error with the uniform error payload.
"""

import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import RiskEngineConfig
from ..errors import InputError, RiskEngineError
from ..serving.server import ModelServer
from ..utils.logging import RiskLogger, logger_from_config
from . import health, models, predict
from .errors import ensure_request_id, error_payload

# requests slower than this are logged at warning level
SLOW_REQUEST_MS = 800


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or ensure_request_id(None)


def create_app(
    server: Optional[ModelServer] = None,
    config: Optional[RiskEngineConfig] = None,
    logger: Optional[RiskLogger] = None,
) -> FastAPI:
    """
    Build the HTTP application.

    Args:
        server: Model server to expose; a new empty one if omitted.
        config: Engine configuration; taken from the server if omitted.
        logger: Logger for HTTP access and unexpected errors.

    Returns:
        Configured FastAPI application.
    """
    config = config or (server.config if server is not None else RiskEngineConfig())
    http_log = logger or logger_from_config(config.logging, "credchain_risk.http")
    server = server or ModelServer(config, logger=logger_from_config(config.logging, "credchain_risk.serving"))

    app = FastAPI(title="CredChain Risk Engine", version="0.1.0")
    app.state.server = server
    app.state.config = config

    app.include_router(health.router, tags=["health"])
    app.include_router(models.router)
    app.include_router(predict.router)

    @app.middleware("http")
    async def request_observability(request: Request, call_next):
        rid = ensure_request_id(request.headers.get("X-Request-Id"))
        request.state.request_id = rid

        start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            response.headers["X-Request-Id"] = rid
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 3)
            log = http_log.warning if duration_ms >= SLOW_REQUEST_MS else http_log.info
            log(
                "request",
                method=request.method,
                path=request.url.path,
                status_code=getattr(response, "status_code", None),
                duration_ms=duration_ms,
                request_id=rid,
            )

    @app.exception_handler(RiskEngineError)
    async def risk_engine_error_handler(request: Request, exc: RiskEngineError):
        """Typed engine errors carry their own code and status."""
        if exc.http_status >= 500:
            http_log.error(exc.message, code=exc.code, path=request.url.path)
        return JSONResponse(
            status_code=exc.http_status,
            content=error_payload(
                code=exc.code,
                message=exc.message,
                status=exc.http_status,
                request_id=_request_id(request),
                details=exc.details,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are input errors."""
        return JSONResponse(
            status_code=InputError.http_status,
            content=error_payload(
                code=InputError.code,
                message="Invalid request",
                status=InputError.http_status,
                request_id=_request_id(request),
                details=jsonable_errors(exc),
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Native HTTP errors (404, 405) in the uniform format."""
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_payload(
                code=code,
                message=str(exc.detail),
                status=exc.status_code,
                request_id=_request_id(request),
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Anything else is a 500 without internals in the body."""
        http_log.error("Unhandled error", exc_info=True, path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content=error_payload(
                code="INTERNAL_ERROR",
                message="Internal server error",
                status=500,
                request_id=_request_id(request),
            ),
        )

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors reduced to JSON-safe fields."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]
