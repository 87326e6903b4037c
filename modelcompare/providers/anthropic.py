"""Anthropic Claude provider using anthropic SDK with native async."""

import logging
import time
from collections.abc import AsyncIterator
from typing import Any

import anthropic as anthropic_sdk

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
from modelcompare.providers.base import AIProvider, collapse_json, split_system
from modelcompare.streaming.normalizer import field_of, normalize_anthropic_event

logger = logging.getLogger(__name__)

_MIN_THINKING_BUDGET = 1024


def _claude(
    model_id: str, name: str, cutoff: str, reasoning: bool, pricing: tuple[float, float], max_tokens: int
) -> ModelConfig:
    return ModelConfig(
        id=model_id,
        name=name,
        provider="Anthropic",
        model=model_id,
        knowledge_cutoff=cutoff,
        capabilities=ModelCapabilities(reasoning=reasoning, multimodal=True, function_calling=True),
        pricing=ModelPricing(*pricing),
        limits=ModelLimits(max_tokens, 200000),
    )


ANTHROPIC_MODELS = (
    _claude("claude-sonnet-4-20250514", "Claude Sonnet 4", "April 2024", True, (3.00, 15.00), 8192),
    _claude("claude-3-7-sonnet-20250219", "Claude 3.7 Sonnet", "April 2023", True, (3.00, 15.00), 8192),
    _claude("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", "2022", False, (3.00, 15.00), 8192),
    _claude("claude-3-haiku-20240307", "Claude 3 Haiku", "Unknown", False, (0.25, 1.25), 4096),
)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK.

    Reasoning-capable models run with extended thinking; the thinking blocks
    become the response's reasoning.
    """

    models = ANTHROPIC_MODELS

    def _build_client(self, api_key: str) -> anthropic_sdk.AsyncAnthropic:
        return anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def build_request(
        self, model: ModelConfig, messages: list[ModelMessage], options: CallOptions | None
    ) -> dict[str, Any]:
        options = options or CallOptions()
        system, conversation = split_system(messages, options)
        max_tokens = min(options.max_tokens or model.limits.max_tokens, model.limits.max_tokens)

        params: dict[str, Any] = {
            "model": model.model,
            "max_tokens": max_tokens,
            "messages": [{"role": m.role, "content": m.content} for m in conversation],
        }
        if system:
            params["system"] = system

        budget = max_tokens // 2
        if model.capabilities.reasoning and budget >= _MIN_THINKING_BUDGET:
            # Extended thinking only accepts the default temperature.
            params["thinking"] = {"type": "enabled", "budget_tokens": budget}
        elif options.temperature is not None:
            params["temperature"] = min(options.temperature, 1.0)
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
        response = await self._request(self.client.messages.create(**params))
        latency = time.monotonic() - start

        if not response.content:
            raise ProviderError(self.name(), "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise ProviderError(self.name(), "No text blocks in response")
        thinking_blocks = [b.thinking for b in response.content if b.type == "thinking"]

        usage: TokenUsage | None = None
        if response.usage:
            usage = TokenUsage(input=response.usage.input_tokens, output=response.usage.output_tokens)

        logger.info(
            "Anthropic %s: %.2fs, %s tokens",
            model.id,
            latency,
            (usage.input + usage.output) if usage else None,
        )
        return ModelResponse(
            content="\n".join(text_blocks),
            reasoning="\n".join(thinking_blocks) or None,
            response_time_ms=int(latency * 1000),
            token_usage=usage,
            cost=self._cost(model, usage),
            response_id=response.id,
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
        raw_stream = await self._request(self.client.messages.create(**params, stream=True))

        response_id = ""
        input_tokens = 0
        output_tokens = 0
        content = ""
        reasoning = ""
        partial_json: list[str] = []

        async for event in self._events(raw_stream):
            event_type = field_of(event, "type")
            if event_type == "message_start":
                message = field_of(event, "message")
                response_id = field_of(message, "id", "") or ""
                input_tokens = field_of(field_of(message, "usage"), "input_tokens", 0) or 0
            elif event_type == "message_delta":
                output_tokens = field_of(field_of(event, "usage"), "output_tokens", output_tokens) or 0

            chunk = normalize_anthropic_event(event)
            if chunk is None:
                continue
            if chunk.kind is ChunkKind.ERROR:
                raise ProviderError(self.name(), str(chunk.payload))
            if chunk.kind is ChunkKind.TEXT:
                content += chunk.payload
            elif chunk.kind is ChunkKind.REASONING:
                reasoning += chunk.payload
            elif chunk.kind is ChunkKind.JSON:
                partial_json.append(chunk.payload)
            yield chunk

        usage = TokenUsage(input=input_tokens, output=output_tokens)
        logger.info("Anthropic stream %s: %d chars, %d tokens", model.id, len(content), input_tokens + output_tokens)
        yield StreamChunk(
            ChunkKind.COMPLETE,
            StreamResult(
                response_id=response_id,
                content=content,
                reasoning=reasoning,
                token_usage=usage,
                cost=self._cost(model, usage),
                structured_output=collapse_json(["".join(partial_json)] if partial_json else []),
            ),
        )
