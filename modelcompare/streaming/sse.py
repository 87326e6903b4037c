"""Server-Sent Events connection manager.

One SseStreamManager per browser connection. Events are queued as encoded
frames and drained by the StreamingResponse body; a heartbeat task keeps idle
proxies from dropping the connection. Teardown runs exactly once no matter
which trigger fires first: complete, error, client disconnect, or the body
generator being closed.
"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Coroutine
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from fastapi.responses import StreamingResponse

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
    "Access-Control-Allow-Origin": "*",
}


class SseState(str, Enum):
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


def encode_frame(event: str, payload: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(payload, default=str)}\n\n"


class SseStreamManager:
    def __init__(
        self,
        task_id: str,
        model_key: str,
        session_id: str,
        heartbeat_interval: float = 15.0,
        is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    ) -> None:
        self.task_id = task_id
        self.model_key = model_key
        self.session_id = session_id
        self.heartbeat_interval = heartbeat_interval
        self._is_disconnected = is_disconnected
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._state = SseState.CONNECTING
        self._heartbeat: asyncio.Task | None = None
        self._producer: asyncio.Task | None = None

    @property
    def state(self) -> SseState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is SseState.CLOSED

    def send(self, event: str, payload: dict[str, Any] | None = None) -> bool:
        """Queue one enriched frame. Returns False once the connection is closed."""
        if self.closed:
            logger.debug("Dropping %s for closed stream %s", event, self.task_id)
            return False
        enriched = dict(payload or {})
        enriched.update(
            taskId=self.task_id,
            modelKey=self.model_key,
            sessionId=self.session_id,
            emittedAt=datetime.now(timezone.utc).isoformat(),
        )
        self._queue.put_nowait(encode_frame(event, enriched))
        return True

    def init(self, payload: dict[str, Any] | None = None) -> None:
        self.send("stream.init", payload)

    def status(self, payload: dict[str, Any]) -> None:
        self.send("stream.status", payload)

    def chunk(self, payload: dict[str, Any]) -> None:
        self.send("stream.chunk", payload)

    def keepalive(self) -> None:
        self.send("stream.keepalive", {"timestamp": int(time.time() * 1000)})

    def error(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details:
            payload["details"] = details
        self.send("stream.error", payload)
        self.close()

    def complete(self, summary: dict[str, Any] | None = None) -> None:
        self.send("stream.complete", summary)
        self.close()

    def close(self) -> None:
        if self.closed:
            return
        self._state = SseState.CLOSED
        if self._heartbeat is not None and not self._heartbeat.done():
            self._heartbeat.cancel()
        # Sentinel ends the body after any frames already queued.
        self._queue.put_nowait(None)

    def attach(self, producer: Coroutine[Any, Any, Any]) -> None:
        """Run the producer for this connection; it is cancelled on teardown."""
        self._producer = asyncio.create_task(self._run_producer(producer))

    async def _run_producer(self, producer: Coroutine[Any, Any, Any]) -> None:
        try:
            await producer
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Stream producer failed for %s", self.task_id)
            self.error("INTERNAL_ERROR", "An unexpected error occurred")
        finally:
            self.close()

    async def _heartbeat_loop(self) -> None:
        while not self.closed:
            await asyncio.sleep(self.heartbeat_interval)
            if self._is_disconnected is not None and await self._is_disconnected():
                logger.debug("Client disconnected from %s", self.task_id)
                self.close()
                return
            self.keepalive()

    async def frames(self) -> AsyncIterator[str]:
        """Response body: yields frames until the sentinel, then tears down."""
        if not self.closed:
            self._state = SseState.OPEN
            self._heartbeat = asyncio.create_task(self._heartbeat_loop())
        try:
            while True:
                frame = await self._queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            self.close()
            if self._producer is not None and not self._producer.done():
                logger.debug("Cancelling producer for %s", self.task_id)
                self._producer.cancel()

    def response(self) -> StreamingResponse:
        return StreamingResponse(self.frames(), media_type="text/event-stream", headers=SSE_HEADERS)
