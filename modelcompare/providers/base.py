"""Abstract base for all AI model providers, plus the shared streaming relay."""

import asyncio
import inspect
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, TypeVar

from config.config_loader import ProviderConfig
from modelcompare.errors import ModelCompareError, ModelNotFoundError, ProviderError
from modelcompare.models import (
    CallOptions,
    ChunkKind,
    Cost,
    ModelConfig,
    ModelMessage,
    ModelResponse,
    StreamChunk,
    StreamResult,
    TokenUsage,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def calculate_cost(model: ModelConfig, usage: TokenUsage) -> Cost:
    """Price a call from per-million-token rates.

    Reasoning tokens are billed only when the model has a reasoning rate.
    """
    input_cost = usage.input / 1_000_000 * model.pricing.input_per_million
    output_cost = usage.output / 1_000_000 * model.pricing.output_per_million

    reasoning_cost = 0.0
    if usage.reasoning and model.pricing.reasoning_per_million:
        reasoning_cost = usage.reasoning / 1_000_000 * model.pricing.reasoning_per_million

    return Cost(
        input=input_cost,
        output=output_cost,
        total=input_cost + output_cost + reasoning_cost,
        reasoning=reasoning_cost if usage.reasoning else None,
    )


def merge_context_messages(messages: list[ModelMessage]) -> list[ModelMessage]:
    """Fold synthetic `context` messages into the next user message.

    Context with no user message after it becomes a user message of its own.
    """
    merged: list[ModelMessage] = []
    pending: list[str] = []
    for message in messages:
        if message.role == "context":
            pending.append(message.content)
            continue
        if message.role == "user" and pending:
            content = "\n\n".join([*pending, message.content])
            merged.append(ModelMessage("user", content, message.metadata))
            pending = []
            continue
        merged.append(message)
    if pending:
        merged.append(ModelMessage("user", "\n\n".join(pending)))
    return merged


def split_system(
    messages: list[ModelMessage], options: CallOptions | None = None
) -> tuple[str | None, list[ModelMessage]]:
    """Hoist system/developer messages (and option prompts) into one system string."""
    system_parts: list[str] = []
    if options is not None:
        system_parts.extend(p for p in (options.system_prompt, options.instructions) if p)
    rest: list[ModelMessage] = []
    for message in merge_context_messages(messages):
        if message.role in ("system", "developer"):
            system_parts.append(message.content)
        else:
            rest.append(message)
    system = "\n\n".join(system_parts) if system_parts else None
    return system, rest


def collapse_json(items: list[Any]) -> Any:
    """One JSON payload stays as-is, several become a list, none is None."""
    if not items:
        return None
    return items[0] if len(items) == 1 else items


@dataclass
class StreamCallbacks:
    """Receivers for one streaming call. Each may be a plain or async callable.

    At most one of on_complete / on_error fires per call.
    """

    on_status: Callable[..., Any] | None = None
    on_reasoning_chunk: Callable[..., Any] | None = None
    on_content_chunk: Callable[..., Any] | None = None
    on_json_chunk: Callable[..., Any] | None = None
    on_complete: Callable[..., Any] | None = None
    on_error: Callable[..., Any] | None = None


async def fire(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


async def dispatch_chunk(chunk: StreamChunk, callbacks: StreamCallbacks) -> None:
    """Route a non-terminal chunk to its callback."""
    if chunk.kind is ChunkKind.STATUS:
        await fire(callbacks.on_status, chunk.payload, chunk.data)
    elif chunk.kind is ChunkKind.REASONING:
        await fire(callbacks.on_reasoning_chunk, chunk.payload)
    elif chunk.kind is ChunkKind.TEXT:
        await fire(callbacks.on_content_chunk, chunk.payload)
    elif chunk.kind is ChunkKind.JSON:
        await fire(callbacks.on_json_chunk, chunk.payload)


async def relay_stream(
    provider_name: str, chunks: AsyncIterator[StreamChunk], callbacks: StreamCallbacks
) -> StreamResult:
    """Drain a provider stream into callbacks and return its final result.

    Terminal callbacks are left to the caller. Raises ProviderError when the
    stream reports an error or ends without a complete chunk.
    """
    result: StreamResult | None = None
    async with aclosing(chunks) as stream:
        async for chunk in stream:
            if chunk.kind is ChunkKind.COMPLETE:
                result = chunk.payload
            elif chunk.kind is ChunkKind.ERROR:
                raise ProviderError(provider_name, str(chunk.payload))
            else:
                await dispatch_chunk(chunk, callbacks)
    if result is None:
        raise ProviderError(provider_name, "Stream ended without a final response")
    return result


class AIProvider(ABC):
    """Abstract base for all AI model providers.

    Subclasses own a static `models` table and translate canonical calls into
    one vendor request each. They never retry; failure isolation is the
    registry's job.
    """

    models: tuple[ModelConfig, ...] = ()

    def __init__(self, config: ProviderConfig, client: Any = None) -> None:
        self._config = config
        self._client = client

    def name(self) -> str:
        """Return the short provider name (e.g. 'openai', 'anthropic')."""
        return self._config.name

    @property
    def timeout_sec(self) -> int:
        return self._config.timeout_sec

    @property
    def client(self) -> Any:
        """SDK client, built on first use so a missing key fails the call, not startup."""
        if self._client is None:
            api_key = os.environ.get(self._config.api_key_env, "").strip()
            if not api_key:
                raise ProviderError(self.name(), f"Missing API key: {self._config.api_key_env}")
            self._client = self._build_client(api_key)
        return self._client

    @abstractmethod
    def _build_client(self, api_key: str) -> Any:
        ...

    async def _request(self, awaitable: Awaitable[T]) -> T:
        """Await one vendor request under the configured timeout."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_sec)
        except TimeoutError as exc:
            raise ProviderError(self.name(), f"Request timed out after {self.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self.name(), f"API call failed: {exc}") from exc

    def get_model(self, model_id: str) -> ModelConfig | None:
        return next((m for m in self.models if m.id == model_id), None)

    def require_model(self, model_id: str) -> ModelConfig:
        model = self.get_model(model_id)
        if model is None:
            raise ModelNotFoundError(model_id)
        return model

    def get_models_by_capability(self, capability: str) -> list[ModelConfig]:
        return [m for m in self.models if getattr(m.capabilities, capability, False)]

    def calculate_cost(self, model: ModelConfig, usage: TokenUsage) -> Cost:
        return calculate_cost(model, usage)

    def _cost(self, model: ModelConfig, usage: TokenUsage | None) -> Cost | None:
        return self.calculate_cost(model, usage) if usage is not None else None

    async def _events(self, stream: Any) -> AsyncIterator[Any]:
        """Iterate a vendor stream, wrapping transport failures as ProviderError."""
        iterator = stream.__aiter__()
        try:
            while True:
                try:
                    event = await iterator.__anext__()
                except StopAsyncIteration:
                    return
                except Exception as exc:
                    raise ProviderError(self.name(), f"Stream interrupted: {exc}") from exc
                yield event
        finally:
            await fire(getattr(stream, "close", None))

    @abstractmethod
    async def call_model(
        self,
        messages: list[ModelMessage],
        model_id: str,
        options: CallOptions | None = None,
    ) -> ModelResponse:
        """Send one conversation and wait for the full response.

        Raises:
            ModelNotFoundError: model_id is not in this provider's table.
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...

    @abstractmethod
    def stream(
        self,
        messages: list[ModelMessage],
        model_id: str,
        options: CallOptions | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Yield canonical chunks, ending with exactly one COMPLETE chunk.

        Raises ProviderError on vendor failure, including errors the vendor
        reports inside the stream.
        """
        ...

    async def call_model_streaming(
        self,
        messages: list[ModelMessage],
        model_id: str,
        options: CallOptions | None,
        callbacks: StreamCallbacks,
    ) -> None:
        try:
            result = await relay_stream(self.name(), self.stream(messages, model_id, options), callbacks)
        except ModelCompareError as exc:
            await fire(callbacks.on_error, exc)
            return
        except Exception as exc:
            await fire(callbacks.on_error, ProviderError(self.name(), f"Streaming failed: {exc}"))
            return
        await fire(callbacks.on_complete, result.response_id, result.token_usage, result.cost, result)
