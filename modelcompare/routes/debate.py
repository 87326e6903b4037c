"""Debate routes: sessions, the two-step stream handshake, and the retired legacy stream."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from modelcompare.errors import DebateSessionNotFoundError
from modelcompare.routes.deps import require_authorization, require_streaming
from modelcompare.streaming.harness import StreamHarness
from modelcompare.streaming.sse import SseStreamManager

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    topic: str = Field(min_length=1)
    model1_id: str = Field(min_length=1)
    model2_id: str = Field(min_length=1)
    adversarial_level: int


class StreamInitRequest(BaseModel):
    """Untyped fields; the turn engine normalizes and validates each one."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    model_id: Any = None
    topic: Any = None
    role: Any = None
    intensity: Any = None
    intensity_level: Any = None
    intensity_guidance: Any = None
    opponent_message: Any = None
    previous_response_id: Any = None
    turn_number: Any = None
    session_id: Any = None
    model1_id: Any = None
    model2_id: Any = None
    reasoning_effort: Any = None
    reasoning_summary: Any = None
    text_verbosity: Any = None
    temperature: Any = None
    max_tokens: Any = None


@router.get("/sessions")
async def list_sessions(request: Request):
    """Session summaries, most recently updated first."""
    sessions = await request.app.state.storage.list_debate_sessions()
    return [s.summary() for s in sessions]


@router.post("/session")
async def create_session(request: Request, body: CreateSessionRequest):
    session = await request.app.state.storage.create_debate_session(
        topic=body.topic,
        model1_id=body.model1_id,
        model2_id=body.model2_id,
        adversarial_level=body.adversarial_level,
    )
    return session.summary()


@router.get("/session/{session_id}")
async def get_session(request: Request, session_id: str):
    session = await request.app.state.storage.get_debate_session(session_id)
    if session is None:
        raise DebateSessionNotFoundError(session_id)
    return session.to_dict()


@router.post(
    "/stream/init",
    dependencies=[Depends(require_streaming), Depends(require_authorization)],
)
async def init_stream(request: Request, body: StreamInitRequest):
    """Register a claim-once stream session and return the key that opens it."""
    engine = request.app.state.debate_engine
    store = request.app.state.stream_sessions

    turn = await engine.prepare(body.model_dump(by_alias=True))
    key = store.create(turn.task_id, turn.model_key, turn)
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=store.ttl_sec)
    logger.info("Stream session created for %s", turn.task_id)
    return {
        "sessionId": key.session_id,
        "taskId": key.task_id,
        "modelKey": key.model_key,
        "debateSessionId": turn.debate_session_id,
        "expiresAt": expires_at.isoformat(),
    }


@router.get("/stream/{task_id}/{model_key}/{session_id}", dependencies=[Depends(require_streaming)])
async def open_stream(request: Request, task_id: str, model_key: str, session_id: str):
    """Claim the session (404 if already claimed or expired) and stream the turn as SSE."""
    turn = request.app.state.stream_sessions.claim(task_id, model_key, session_id)

    sse = SseStreamManager(
        task_id,
        model_key,
        session_id,
        heartbeat_interval=request.app.state.config.streaming.heartbeat_interval_sec,
        is_disconnected=request.is_disconnected,
    )
    sse.attach(request.app.state.debate_engine.stream_turn(turn, StreamHarness(sse)))
    return sse.response()


@router.post("/stream")
async def legacy_stream():
    return JSONResponse(
        status_code=410,
        content={
            "error": "Legacy debate stream endpoint removed",
            "message": (
                "Use POST /api/debate/stream/init followed by "
                "GET /api/debate/stream/:taskId/:modelKey/:sessionId"
            ),
        },
    )
