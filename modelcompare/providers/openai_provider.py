"""OpenAI provider using the openai SDK Responses API with native async."""

import logging
import time
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from modelcompare.errors import ProviderError
from modelcompare.models import (
    CallOptions,
    ChunkKind,
    ModelCapabilities,
    ModelConfig,
    ModelLimits,
    ModelMessage,
    ModelPricing,
    ModelResponse,
    StreamChunk,
    StreamResult,
    TokenUsage,
)
from modelcompare.providers.base import AIProvider, collapse_json
from modelcompare.streaming.normalizer import (
    collect_output_message_deltas,
    field_of,
    normalize_responses_event,
    text_of,
)

logger = logging.getLogger(__name__)

_FULL = ModelCapabilities(reasoning=False, multimodal=True, function_calling=True)
_REASONING = ModelCapabilities(reasoning=True, multimodal=True, function_calling=True)
_O_SERIES = ModelCapabilities(reasoning=True, streaming=False)

# Terminal events that carry the full response object.
_FINAL_RESPONSE_EVENTS = ("response.completed", "response.incomplete")


def _model(
    model_id: str,
    name: str,
    cutoff: str,
    capabilities: ModelCapabilities,
    pricing: tuple[float, float],
    max_tokens: int,
    context_window: int,
) -> ModelConfig:
    return ModelConfig(
        id=model_id,
        name=name,
        provider="OpenAI",
        model=model_id,
        knowledge_cutoff=cutoff,
        capabilities=capabilities,
        pricing=ModelPricing(*pricing),
        limits=ModelLimits(max_tokens, context_window),
    )


OPENAI_MODELS = (
    _model("gpt-5-2025-08-07", "GPT-5", "October 2024", _REASONING, (1.25, 10.00), 128000, 400000),
    _model("gpt-5-mini-2025-08-07", "GPT-5 Mini", "October 2024", _REASONING, (0.25, 2.00), 128000, 400000),
    _model("gpt-5-nano-2025-08-07", "GPT-5 Nano", "May 31, 2024", _REASONING, (0.05, 0.40), 128000, 400000),
    _model("gpt-4.1-nano-2025-04-14", "GPT-4.1 Nano", "October 2023", _FULL, (0.50, 2.00), 16384, 128000),
    _model("gpt-4.1-mini-2025-04-14", "GPT-4.1 Mini", "June 2024", _FULL, (1.00, 4.00), 16384, 128000),
    _model("gpt-4o-mini-2024-07-18", "GPT-4o Mini", "October 2023", _FULL, (0.15, 0.60), 16384, 128000),
    _model("o4-mini-2025-04-16", "OpenAI o4 Mini", "June 2024", _O_SERIES, (2.00, 8.00), 65536, 128000),
    _model("o3-2025-04-16", "OpenAI o3", "June 2024", _O_SERIES, (15.00, 60.00), 65536, 200000),
    _model("gpt-4.1-2025-04-14", "GPT-4.1", "June 2024", _FULL, (5.00, 15.00), 16384, 200000),
)


def is_gpt5_family(model: str) -> bool:
    return model.lower().startswith("gpt-5")


def extract_reasoning_summary(response: Any) -> str:
    """Join the summary text of every reasoning item in a final response."""
    parts: list[str] = []
    for item in field_of(response, "output") or []:
        if field_of(item, "type") != "reasoning":
            continue
        for summary in field_of(item, "summary") or []:
            text = text_of(summary)
            if text:
                parts.append(text)
    return "\n\n".join(parts)


def extract_content_text(response: Any) -> str:
    text = field_of(response, "output_text")
    if isinstance(text, str) and text:
        return text
    parts: list[str] = []
    for item in field_of(response, "output") or []:
        if field_of(item, "type") != "message":
            continue
        for block in field_of(item, "content") or []:
            if field_of(block, "type") == "output_text":
                parts.append(text_of(block))
    return "".join(parts)


def extract_usage(response: Any) -> TokenUsage | None:
    usage = field_of(response, "usage")
    if usage is None:
        return None
    details = field_of(usage, "output_tokens_details")
    return TokenUsage(
        input=field_of(usage, "input_tokens", 0) or 0,
        output=field_of(usage, "output_tokens", 0) or 0,
        reasoning=field_of(details, "reasoning_tokens"),
    )


class OpenAIProvider(AIProvider):
    """OpenAI provider via the Responses API.

    Responses are stored server-side so later turns can chain with
    previous_response_id. gpt-5 models take reasoning effort and text
    verbosity but reject temperature.
    """

    models = OPENAI_MODELS

    def _build_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)

    def build_request(
        self, model: ModelConfig, messages: list[ModelMessage], options: CallOptions | None
    ) -> dict[str, Any]:
        options = options or CallOptions()
        gpt5 = is_gpt5_family(model.model)

        # The Responses API has no context role; it becomes system input.
        input_items = [
            {"role": "system" if m.role == "context" else m.role, "content": m.content}
            for m in messages
        ]
        params: dict[str, Any] = {
            "model": model.model,
            "input": input_items,
            "max_output_tokens": options.max_tokens or (128000 if gpt5 else 16384),
            "store": True,
        }
        instructions = "\n\n".join(
            p.strip() for p in (options.system_prompt, options.instructions) if p and p.strip()
        )
        if instructions:
            params["instructions"] = instructions
        if options.previous_response_id:
            params["previous_response_id"] = options.previous_response_id
        if options.temperature is not None and not gpt5:
            params["temperature"] = options.temperature

        if model.capabilities.reasoning:
            reasoning: dict[str, Any] = {
                "summary": options.reasoning_summary or ("detailed" if gpt5 else "auto"),
            }
            if gpt5:
                reasoning["effort"] = options.reasoning_effort or "medium"
                params["text"] = {"verbosity": options.text_verbosity or "high"}
            params["reasoning"] = reasoning
        return params

    async def call_model(
        self,
        messages: list[ModelMessage],
        model_id: str,
        options: CallOptions | None = None,
    ) -> ModelResponse:
        model = self.require_model(model_id)
        params = self.build_request(model, messages, options)
        start = time.monotonic()
        response = await self._request(self.client.responses.create(**params))
        latency = time.monotonic() - start

        content = extract_content_text(response)
        if not content:
            raise ProviderError(self.name(), "Empty response content")

        usage = extract_usage(response)
        logger.info(
            "OpenAI %s: %.2fs, %s tokens",
            model.id,
            latency,
            (usage.input + usage.output) if usage else None,
        )
        return ModelResponse(
            content=content,
            reasoning=extract_reasoning_summary(response) or None,
            response_time_ms=int(latency * 1000),
            token_usage=usage,
            cost=self._cost(model, usage),
            response_id=field_of(response, "id"),
            model_config=model,
        )

    async def stream(
        self,
        messages: list[ModelMessage],
        model_id: str,
        options: CallOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        model = self.require_model(model_id)
        params = self.build_request(model, messages, options)
        raw_stream = await self._request(self.client.responses.create(**params, stream=True))

        content = ""
        reasoning = ""
        structured: list[Any] = []
        final_response: Any = None

        async for event in self._events(raw_stream):
            if field_of(event, "type") in _FINAL_RESPONSE_EVENTS:
                final_response = field_of(event, "response")

            chunks = collect_output_message_deltas(event)
            single = normalize_responses_event(event)
            if single is not None:
                chunks.append(single)

            for chunk in chunks:
                if chunk.kind is ChunkKind.ERROR:
                    raise ProviderError(self.name(), str(chunk.payload))
                if chunk.kind is ChunkKind.TEXT:
                    content += chunk.payload
                elif chunk.kind is ChunkKind.REASONING:
                    reasoning += chunk.payload
                elif chunk.kind is ChunkKind.JSON:
                    structured.append(chunk.payload)
                yield chunk

        # Some models deliver everything in the final response only.
        parsed_content = extract_content_text(final_response) if final_response is not None else ""
        parsed_reasoning = extract_reasoning_summary(final_response) if final_response is not None else ""
        if not content and parsed_content:
            content = parsed_content
            yield StreamChunk(ChunkKind.TEXT, parsed_content)
        if not reasoning and parsed_reasoning:
            reasoning = parsed_reasoning
            yield StreamChunk(ChunkKind.REASONING, parsed_reasoning)

        usage = extract_usage(final_response) if final_response is not None else None
        logger.info(
            "OpenAI stream %s: %d chars, %s tokens",
            model.id,
            len(content),
            (usage.input + usage.output) if usage else None,
        )
        yield StreamChunk(
            ChunkKind.COMPLETE,
            StreamResult(
                response_id=field_of(final_response, "id", "") or "",
                content=content,
                reasoning=reasoning,
                token_usage=usage,
                cost=self._cost(model, usage),
                structured_output=collapse_json(structured),
            ),
        )
