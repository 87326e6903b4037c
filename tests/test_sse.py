"""Tests for the SSE connection manager and the accumulating stream harness."""

import asyncio
import json

import pytest

from modelcompare.errors import CircuitBreakerError
from modelcompare.models import Cost, TokenUsage
from modelcompare.streaming.harness import StreamHarness
from modelcompare.streaming.sse import SseState, SseStreamManager, encode_frame


def parse_frames(frames: list[str]) -> list[tuple[str, dict]]:
    events = []
    for frame in frames:
        lines = frame.strip().split("\n")
        event = lines[0].removeprefix("event: ")
        data = json.loads(lines[1].removeprefix("data: "))
        events.append((event, data))
    return events


async def collect(sse: SseStreamManager) -> list[tuple[str, dict]]:
    return parse_frames([frame async for frame in sse.frames()])


@pytest.fixture
def sse() -> SseStreamManager:
    return SseStreamManager("debate-1:turn-1:model-m", "m", "sess-1", heartbeat_interval=60)


def test_encode_frame():
    assert encode_frame("stream.init", {"a": 1}) == 'event: stream.init\ndata: {"a": 1}\n\n'


async def test_frames_are_enriched_and_ordered(sse):
    sse.init({"debateSessionId": "debate-1"})
    sse.status({"phase": "stream_start"})
    sse.chunk({"type": "text", "delta": "hi"})
    sse.complete({"responseId": "r1"})

    events = await collect(sse)

    assert [name for name, _ in events] == ["stream.init", "stream.status", "stream.chunk", "stream.complete"]
    for _, data in events:
        assert data["taskId"] == "debate-1:turn-1:model-m"
        assert data["modelKey"] == "m"
        assert data["sessionId"] == "sess-1"
        assert "emittedAt" in data
    assert sse.state is SseState.CLOSED


async def test_nothing_sent_after_terminal_event(sse):
    sse.error("PROVIDER_ERROR", "boom")
    assert sse.send("stream.chunk", {"delta": "late"}) is False
    sse.complete({"responseId": "late"})
    events = await collect(sse)
    assert [name for name, _ in events] == ["stream.error"]
    assert events[0][1]["code"] == "PROVIDER_ERROR"
    assert "details" not in events[0][1]


async def test_close_is_idempotent(sse):
    sse.close()
    sse.close()
    assert await collect(sse) == []


async def test_heartbeat_sends_keepalive_then_detects_disconnect():
    checks = 0

    async def is_disconnected() -> bool:
        nonlocal checks
        checks += 1
        return checks > 1

    sse = SseStreamManager("t", "m", "s", heartbeat_interval=0.01, is_disconnected=is_disconnected)
    events = await asyncio.wait_for(collect(sse), timeout=2)
    assert [name for name, _ in events] == ["stream.keepalive"]
    assert isinstance(events[0][1]["timestamp"], int)
    assert sse.closed


async def test_producer_exception_becomes_internal_error(sse):
    async def producer() -> None:
        raise RuntimeError("secret internals")

    sse.attach(producer())
    events = await asyncio.wait_for(collect(sse), timeout=2)
    assert events[-1][0] == "stream.error"
    assert events[-1][1]["code"] == "INTERNAL_ERROR"
    assert "secret" not in events[-1][1]["message"]


async def test_closing_body_cancels_producer(sse):
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def producer() -> None:
        started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    sse.attach(producer())
    body = sse.frames()
    sse.init()
    await body.__anext__()
    await started.wait()
    await body.aclose()
    await asyncio.wait_for(cancelled.wait(), timeout=2)
    assert sse.closed


async def test_harness_accumulates_cumulative_text(sse):
    harness = StreamHarness(sse)
    harness.init({"turnNumber": 1})
    harness.push_reasoning("Step one. ")
    harness.push_reasoning("Step two.")
    harness.push_content("Hello")
    harness.push_content("")
    harness.push_content(" world")
    harness.push_json({"score": 1})
    harness.complete(
        "resp-1",
        TokenUsage(10, 5),
        Cost(0.1, 0.2, 0.3),
        response_summary="Step one. Step two.",
        metadata={"turnNumber": 1},
    )

    events = await collect(sse)
    names = [name for name, _ in events]
    assert names == ["stream.init"] + ["stream.chunk"] * 5 + ["stream.complete"]
    assert "connectedAt" in events[0][1]

    chunks = [data for name, data in events if name == "stream.chunk"]
    assert [c["type"] for c in chunks] == ["reasoning", "reasoning", "text", "text", "json"]
    assert chunks[3]["delta"] == " world"
    assert chunks[3]["cumulative"] == "Hello world"
    assert chunks[4]["cumulative"] == [{"score": 1}]

    complete = events[-1][1]
    assert complete["responseId"] == "resp-1"
    assert complete["content"] == "Hello world"
    assert complete["reasoning"] == "Step one. Step two."
    assert complete["tokenUsage"] == {"input": 10, "output": 5}
    assert complete["cost"]["total"] == 0.3
    assert complete["metadata"] == {"turnNumber": 1}


async def test_harness_status_payload(sse):
    harness = StreamHarness(sse)
    harness.status("provider_ready", "Provider resolved", provider="openai")
    sse.close()
    (name, data), = await collect(sse)
    assert name == "stream.status"
    assert data["phase"] == "provider_ready"
    assert data["message"] == "Provider resolved"
    assert data["provider"] == "openai"


async def test_harness_fail_maps_typed_error(sse):
    harness = StreamHarness(sse)
    harness.fail(CircuitBreakerError("openai", 3, retry_after=12))
    assert harness.closed
    (name, data), = await collect(sse)
    assert name == "stream.error"
    assert data["code"] == "SERVICE_UNAVAILABLE"
    assert data["details"]["retryAfter"] == 12
