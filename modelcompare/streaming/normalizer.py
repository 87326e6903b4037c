"""Map vendor-native stream events onto the canonical StreamChunk vocabulary.

Every function here is pure: it inspects one native event (an SDK object or a
plain dict) and returns chunks, never touching transport or provider state.
Unknown event types map to nothing so new vendor events are ignored.
"""

from typing import Any

from modelcompare.models import ChunkKind, StreamChunk


def field_of(obj: Any, name: str, default: Any = None) -> Any:
    """Read an attribute from an SDK object or a key from a dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def text_of(value: Any) -> str:
    """Extract text from a raw string, a {text} object or a {content} object."""
    if isinstance(value, str):
        return value
    text = field_of(value, "text")
    if isinstance(text, str):
        return text
    content = field_of(value, "content")
    if isinstance(content, str):
        return content
    return ""


def _first_present(event: Any, *names: str) -> Any:
    for name in names:
        value = field_of(event, name)
        if value is not None:
            return value
    return None


# OpenAI Responses API -------------------------------------------------------

_RESPONSES_STATUS = {
    "response.created": "created",
    "response.in_progress": "in_progress",
    "response.completed": "completed",
    "response.incomplete": "incomplete",
    "response.truncated": "truncated",
}


def normalize_responses_event(event: Any) -> StreamChunk | None:
    """Translate one OpenAI Responses API stream event into zero or one chunk."""
    event_type = field_of(event, "type")
    if not isinstance(event_type, str):
        return None

    if event_type in _RESPONSES_STATUS:
        return StreamChunk(ChunkKind.STATUS, _RESPONSES_STATUS[event_type])

    if event_type in ("response.output_text.delta", "response.output_text.part"):
        delta = text_of(_first_present(event, "delta", "part"))
        return StreamChunk(ChunkKind.TEXT, delta) if delta else None

    if event_type == "response.content_part.added":
        delta = text_of(field_of(event, "part"))
        return StreamChunk(ChunkKind.TEXT, delta) if delta else None

    if event_type in ("response.reasoning_summary_text.delta", "response.reasoning_summary_part.added"):
        delta = text_of(_first_present(event, "delta", "part"))
        return StreamChunk(ChunkKind.REASONING, delta) if delta else None

    if event_type in ("response.output_parsed.delta", "response.output_json.delta"):
        payload = _first_present(event, "delta", "json", "output")
        return StreamChunk(ChunkKind.JSON, payload) if payload is not None else None

    if event_type == "response.refusal.delta":
        return StreamChunk(ChunkKind.JSON, {"refusal": field_of(event, "delta")})

    if event_type in ("response.failed", "response.error", "error"):
        error = field_of(event, "error")
        if error is None:
            error = field_of(field_of(event, "response"), "error")
        message = field_of(error, "message")
        if not isinstance(message, str):
            message = field_of(event, "message")
        return StreamChunk(
            ChunkKind.ERROR,
            message if isinstance(message, str) and message else "OpenAI streaming failed",
        )

    if event_type in ("response.canceled", "response.cancelled"):
        return StreamChunk(ChunkKind.ERROR, "OpenAI streaming cancelled")

    return None


def collect_output_message_deltas(event: Any) -> list[StreamChunk]:
    """response.output_message.delta carries a list of content parts."""
    if field_of(event, "type") != "response.output_message.delta":
        return []
    parts = field_of(field_of(event, "delta"), "content")
    if not isinstance(parts, list):
        return []
    chunks = []
    for part in parts:
        delta = text_of(part)
        if delta:
            chunks.append(StreamChunk(ChunkKind.TEXT, delta))
    return chunks


# Anthropic Messages API ----------------------------------------------------

def normalize_anthropic_event(event: Any) -> StreamChunk | None:
    """Translate one raw Anthropic Messages stream event into zero or one chunk."""
    event_type = field_of(event, "type")

    if event_type == "message_start":
        return StreamChunk(ChunkKind.STATUS, "created")
    if event_type == "message_stop":
        return StreamChunk(ChunkKind.STATUS, "completed")

    if event_type == "content_block_delta":
        delta = field_of(event, "delta")
        delta_type = field_of(delta, "type")
        if delta_type == "thinking_delta":
            thinking = field_of(delta, "thinking")
            return StreamChunk(ChunkKind.REASONING, thinking) if thinking else None
        if delta_type == "text_delta":
            text = field_of(delta, "text")
            return StreamChunk(ChunkKind.TEXT, text) if text else None
        if delta_type == "input_json_delta":
            partial = field_of(delta, "partial_json")
            return StreamChunk(ChunkKind.JSON, partial) if partial else None
        return None

    if event_type == "error":
        message = field_of(field_of(event, "error"), "message")
        return StreamChunk(ChunkKind.ERROR, message or "Anthropic streaming failed")

    return None


# OpenAI-compatible chat completions (xAI, DeepSeek) ------------------------

def normalize_chat_delta(chunk: Any) -> list[StreamChunk]:
    """Split one chat.completion.chunk into reasoning and text chunks.

    DeepSeek puts chain-of-thought in delta.reasoning_content ahead of the
    answer in delta.content; both may appear in one chunk.
    """
    choices = field_of(chunk, "choices") or []
    if not choices:
        return []
    delta = field_of(choices[0], "delta")
    chunks = []
    reasoning = field_of(delta, "reasoning_content")
    if isinstance(reasoning, str) and reasoning:
        chunks.append(StreamChunk(ChunkKind.REASONING, reasoning))
    content = field_of(delta, "content")
    if isinstance(content, str) and content:
        chunks.append(StreamChunk(ChunkKind.TEXT, content))
    return chunks


# Google Gemini -------------------------------------------------------------

def normalize_gemini_chunk(response: Any) -> list[StreamChunk]:
    """Split one streamed GenerateContentResponse into thought and text chunks."""
    candidates = field_of(response, "candidates") or []
    if not candidates:
        return []
    parts = field_of(field_of(candidates[0], "content"), "parts") or []
    chunks = []
    for part in parts:
        text = field_of(part, "text")
        if not isinstance(text, str) or not text:
            continue
        kind = ChunkKind.REASONING if field_of(part, "thought") else ChunkKind.TEXT
        chunks.append(StreamChunk(kind, text))
    return chunks
