"""Gemini provider using google-genai SDK with native async."""

import logging
import time
import uuid
from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import types as genai_types

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
from modelcompare.providers.base import AIProvider, split_system
from modelcompare.streaming.normalizer import field_of, normalize_gemini_chunk

logger = logging.getLogger(__name__)

_THINKING_BUDGET = 4000


def _gemini(
    model_id: str, name: str, cutoff: str, reasoning: bool, pricing: tuple[float, float], context_window: int
) -> ModelConfig:
    return ModelConfig(
        id=model_id,
        name=name,
        provider="Google",
        model=model_id,
        knowledge_cutoff=cutoff,
        capabilities=ModelCapabilities(reasoning=reasoning, multimodal=True, function_calling=True),
        pricing=ModelPricing(*pricing),
        limits=ModelLimits(8192, context_window),
    )


GEMINI_MODELS = (
    _gemini("gemini-2.5-pro", "Gemini 2.5 Pro", "Early 2023", True, (2.50, 10.00), 2000000),
    _gemini("gemini-2.5-flash", "Gemini 2.5 Flash", "Early 2023", True, (0.075, 0.30), 1000000),
    _gemini("gemini-2.0-flash", "Gemini 2.0 Flash", "September 2021", False, (0.075, 0.30), 1000000),
)


def _usage(response: Any) -> TokenUsage | None:
    metadata = field_of(response, "usage_metadata")
    if metadata is None:
        return None
    return TokenUsage(
        input=field_of(metadata, "prompt_token_count", 0) or 0,
        output=field_of(metadata, "candidates_token_count", 0) or 0,
        reasoning=field_of(metadata, "thoughts_token_count"),
    )


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    models = GEMINI_MODELS

    def _build_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    def build_request(
        self, model: ModelConfig, messages: list[ModelMessage], options: CallOptions | None
    ) -> dict[str, Any]:
        options = options or CallOptions()
        system, conversation = split_system(messages, options)
        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in conversation
        ]

        config_kwargs: dict[str, Any] = {
            "max_output_tokens": min(options.max_tokens or model.limits.max_tokens, model.limits.max_tokens),
        }
        if system:
            config_kwargs["system_instruction"] = system
        if options.temperature is not None:
            config_kwargs["temperature"] = options.temperature
        if model.capabilities.reasoning:
            config_kwargs["thinking_config"] = genai_types.ThinkingConfig(
                include_thoughts=True, thinking_budget=_THINKING_BUDGET
            )
        return {
            "model": model.model,
            "contents": contents,
            "config": genai_types.GenerateContentConfig(**config_kwargs),
        }

    async def call_model(
        self,
        messages: list[ModelMessage],
        model_id: str,
        options: CallOptions | None = None,
    ) -> ModelResponse:
        model = self.require_model(model_id)
        params = self.build_request(model, messages, options)
        start = time.monotonic()
        response = await self._request(self.client.aio.models.generate_content(**params))
        latency = time.monotonic() - start

        chunks = normalize_gemini_chunk(response)
        content = "".join(c.payload for c in chunks if c.kind is ChunkKind.TEXT)
        reasoning = "".join(c.payload for c in chunks if c.kind is ChunkKind.REASONING)
        if not content:
            raise ProviderError(self.name(), "Empty response text")

        usage = _usage(response)
        logger.info(
            "Gemini %s: %.2fs, %s tokens",
            model.id,
            latency,
            (usage.input + usage.output) if usage else None,
        )
        return ModelResponse(
            content=content,
            reasoning=reasoning or None,
            response_time_ms=int(latency * 1000),
            token_usage=usage,
            cost=self._cost(model, usage),
            response_id=field_of(response, "response_id"),
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
        raw_stream = await self._request(self.client.aio.models.generate_content_stream(**params))

        response_id = ""
        content = ""
        reasoning = ""
        usage: TokenUsage | None = None

        yield StreamChunk(ChunkKind.STATUS, "created")
        async for response in self._events(raw_stream):
            response_id = field_of(response, "response_id") or response_id
            usage = _usage(response) or usage
            for chunk in normalize_gemini_chunk(response):
                if chunk.kind is ChunkKind.TEXT:
                    content += chunk.payload
                else:
                    reasoning += chunk.payload
                yield chunk
        yield StreamChunk(ChunkKind.STATUS, "completed")

        logger.info("Gemini stream %s: %d chars", model.id, len(content))
        yield StreamChunk(
            ChunkKind.COMPLETE,
            StreamResult(
                response_id=response_id or f"gemini-{uuid.uuid4().hex}",
                content=content,
                reasoning=reasoning,
                token_usage=usage,
                cost=self._cost(model, usage),
            ),
        )
