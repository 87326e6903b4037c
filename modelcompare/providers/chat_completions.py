"""Shared base for OpenAI-compatible chat completions vendors (xAI, DeepSeek)."""

import logging
import time
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from modelcompare.errors import ProviderError
from modelcompare.models import (
    CallOptions,
    ChunkKind,
    ModelConfig,
    ModelMessage,
    ModelResponse,
    StreamChunk,
    StreamResult,
    TokenUsage,
)
from modelcompare.providers.base import AIProvider, merge_context_messages
from modelcompare.streaming.normalizer import field_of, normalize_chat_delta

logger = logging.getLogger(__name__)


def extract_chat_usage(usage: Any) -> TokenUsage | None:
    if usage is None:
        return None
    details = field_of(usage, "completion_tokens_details")
    return TokenUsage(
        input=field_of(usage, "prompt_tokens", 0) or 0,
        output=field_of(usage, "completion_tokens", 0) or 0,
        reasoning=field_of(details, "reasoning_tokens"),
    )


class ChatCompletionsProvider(AIProvider):
    """Provider speaking the OpenAI chat completions protocol at another base_url."""

    label = "Chat"

    def _build_client(self, api_key: str) -> AsyncOpenAI:
        if not self._config.base_url:
            raise ProviderError(self.name(), f"base_url is required for {self.label} provider")
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)

    def supports_temperature(self, model: ModelConfig) -> bool:
        return True

    def build_request(
        self, model: ModelConfig, messages: list[ModelMessage], options: CallOptions | None
    ) -> dict[str, Any]:
        options = options or CallOptions()
        chat: list[dict[str, str]] = []
        for prompt in (options.system_prompt, options.instructions):
            if prompt:
                chat.append({"role": "system", "content": prompt})
        for m in merge_context_messages(messages):
            chat.append({"role": "system" if m.role == "developer" else m.role, "content": m.content})

        params: dict[str, Any] = {
            "model": model.model,
            "messages": chat,
            "max_tokens": min(options.max_tokens or model.limits.max_tokens, model.limits.max_tokens),
        }
        if options.temperature is not None and self.supports_temperature(model):
            params["temperature"] = options.temperature
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
        response = await self._request(self.client.chat.completions.create(**params))
        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self.name(), "Empty response content")

        usage = extract_chat_usage(response.usage)
        logger.info(
            "%s %s: %.2fs, %s tokens",
            self.label,
            model.id,
            latency,
            (usage.input + usage.output) if usage else None,
        )
        return ModelResponse(
            content=choice.message.content,
            reasoning=getattr(choice.message, "reasoning_content", None) or None,
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
        raw_stream = await self._request(
            self.client.chat.completions.create(
                **params, stream=True, stream_options={"include_usage": True}
            )
        )

        response_id = ""
        content = ""
        reasoning = ""
        usage: TokenUsage | None = None

        yield StreamChunk(ChunkKind.STATUS, "created")
        async for chunk in self._events(raw_stream):
            response_id = field_of(chunk, "id") or response_id
            usage = extract_chat_usage(field_of(chunk, "usage")) or usage
            for canonical in normalize_chat_delta(chunk):
                if canonical.kind is ChunkKind.TEXT:
                    content += canonical.payload
                else:
                    reasoning += canonical.payload
                yield canonical
        yield StreamChunk(ChunkKind.STATUS, "completed")

        logger.info("%s stream %s: %d chars", self.label, model.id, len(content))
        yield StreamChunk(
            ChunkKind.COMPLETE,
            StreamResult(
                response_id=response_id,
                content=content,
                reasoning=reasoning,
                token_usage=usage,
                cost=self._cost(model, usage),
            ),
        )
