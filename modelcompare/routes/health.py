"""Health endpoint reporting per-provider circuit breaker state."""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from modelcompare.healthcheck import service_status

router = APIRouter()


@router.get("")
async def health(request: Request):
    status = service_status(request.app.state.registry)
    status["timestamp"] = datetime.now(timezone.utc).isoformat()
    status["streamingEnabled"] = request.app.state.config.server.streaming_enabled
    return status
