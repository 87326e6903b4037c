"""Accumulating wrapper around an SSE connection for one model stream."""

import time
from typing import Any

from modelcompare.errors import format_error_response
from modelcompare.models import Cost, TokenUsage
from modelcompare.streaming.sse import SseStreamManager


def _now_ms() -> int:
    return int(time.time() * 1000)


class StreamHarness:
    """Tracks cumulative reasoning, text and JSON output while relaying deltas.

    Every chunk event carries both the delta and the running total, so a
    client that joins late or drops frames can still render the full text.
    """

    def __init__(self, sse: SseStreamManager) -> None:
        self.sse = sse
        self.reasoning = ""
        self.content = ""
        self.json_chunks: list[Any] = []

    @property
    def closed(self) -> bool:
        return self.sse.closed

    def init(self, payload: dict[str, Any] | None = None) -> None:
        data = dict(payload or {})
        data.setdefault("connectedAt", _now_ms())
        self.sse.init(data)

    def status(self, phase: str, message: str | None = None, **extra: Any) -> None:
        payload: dict[str, Any] = {"phase": phase}
        if message:
            payload["message"] = message
        payload.update(extra)
        self.sse.status(payload)

    def push_reasoning(self, delta: str) -> None:
        if not delta:
            return
        self.reasoning += delta
        self._chunk("reasoning", delta, self.reasoning)

    def push_content(self, delta: str) -> None:
        if not delta:
            return
        self.content += delta
        self._chunk("text", delta, self.content)

    def push_json(self, payload: Any) -> None:
        self.json_chunks.append(payload)
        self._chunk("json", payload, list(self.json_chunks))

    def _chunk(self, kind: str, delta: Any, cumulative: Any) -> None:
        self.sse.chunk({"type": kind, "delta": delta, "cumulative": cumulative, "timestamp": _now_ms()})

    def complete(
        self,
        response_id: str,
        token_usage: TokenUsage | None = None,
        cost: Cost | None = None,
        response_summary: Any = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.sse.complete(
            {
                "responseId": response_id,
                "tokenUsage": token_usage.to_dict() if token_usage else None,
                "cost": cost.to_dict() if cost else None,
                "responseSummary": response_summary,
                "metadata": metadata or {},
                "reasoning": self.reasoning,
                "content": self.content,
                "json": self.json_chunks,
            }
        )

    def fail(self, exc: BaseException) -> None:
        """Surface an error after headers are sent; this ends the stream."""
        body = format_error_response(exc)
        self.sse.error(body["error"], body["message"], body.get("context"))
