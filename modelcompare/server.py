"""FastAPI application factory.

All shared collaborators (registry, storage, stream sessions, debate engine)
are built once here and hung on app.state; routes reach them through the
request.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config.config_loader import AppConfig
from modelcompare.debate import DebateTurnEngine
from modelcompare.errors import CircuitBreakerError, ModelCompareError, ValidationError, format_error_response
from modelcompare.registry import ProviderRegistry
from modelcompare.routes import debate, health, models
from modelcompare.storage import MemoryStorage
from modelcompare.streaming.session_store import StreamSessionStore

logger = logging.getLogger(__name__)


def _error_response(exc: Exception) -> JSONResponse:
    body = format_error_response(exc)
    headers = None
    if isinstance(exc, CircuitBreakerError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=body["statusCode"], content=body, headers=headers)


async def _handle_app_error(request: Request, exc: ModelCompareError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc)


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    return _error_response(ValidationError("Invalid request data", {"fields": [f for f in fields if f]}))


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(exc)


def create_app(
    config: AppConfig,
    registry: ProviderRegistry | None = None,
    storage: MemoryStorage | None = None,
) -> FastAPI:
    app = FastAPI(title="Model Compare", version="0.1.0")

    app.state.config = config
    app.state.registry = registry or ProviderRegistry.from_config(config)
    app.state.storage = storage or MemoryStorage()
    app.state.stream_sessions = StreamSessionStore(ttl_sec=config.streaming.session_ttl_sec)
    app.state.debate_engine = DebateTurnEngine(app.state.registry, app.state.storage, config.debate)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ModelCompareError, _handle_app_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected)

    app.include_router(models.router, prefix="/api/models", tags=["Models"])
    app.include_router(debate.router, prefix="/api/debate", tags=["Debate"])
    app.include_router(health.router, prefix="/api/health", tags=["Health"])

    logger.info(
        "App ready: %d models across %d providers",
        len(app.state.registry.get_all_models()),
        len(app.state.registry.providers),
    )
    return app
