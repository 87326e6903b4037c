"""Provider registry: one adapter and one circuit breaker per vendor.

Constructed once at startup and handed to every consumer. It is the single
path by which anything above the adapters reaches a vendor.
"""

import logging
from typing import Any

from config.config_loader import AppConfig, ProviderConfig
from modelcompare.circuit_breaker import CircuitBreaker
from modelcompare.errors import CircuitBreakerError, ModelCompareError, ModelNotFoundError, ProviderError
from modelcompare.models import CallOptions, ModelConfig, ModelMessage, ModelResponse, StreamResult
from modelcompare.providers.anthropic import AnthropicProvider
from modelcompare.providers.base import AIProvider, StreamCallbacks, fire, relay_stream
from modelcompare.providers.deepseek import DeepSeekProvider
from modelcompare.providers.gemini import GeminiProvider
from modelcompare.providers.openai_provider import OpenAIProvider
from modelcompare.providers.xai import XAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "google": GeminiProvider,
    "deepseek": DeepSeekProvider,
    "xai": XAIProvider,
}


class ProviderRegistry:
    """Routes model ids to adapters and guards every call with that adapter's breaker."""

    def __init__(
        self,
        providers: list[AIProvider],
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        monitoring_period: float = 60.0,
    ) -> None:
        self._providers: dict[str, AIProvider] = {}
        self._breakers: dict[str, CircuitBreaker] = {}
        self._model_index: dict[str, AIProvider] = {}
        for provider in providers:
            name = provider.name()
            self._providers[name] = provider
            self._breakers[name] = CircuitBreaker(
                name,
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
                monitoring_period=monitoring_period,
            )
            for model in provider.models:
                if model.id in self._model_index:
                    logger.warning("Model id %s registered twice; keeping %s", model.id, name)
                    continue
                self._model_index[model.id] = provider

    @classmethod
    def from_config(cls, config: AppConfig) -> "ProviderRegistry":
        providers: list[AIProvider] = []
        for name, provider_cfg in config.providers.items():
            provider_cls = PROVIDER_CLASSES.get(name)
            if provider_cls is None:
                logger.warning("Provider '%s' unknown, skipping", name)
                continue
            providers.append(provider_cls(provider_cfg))
        breaker_cfg = config.circuit_breaker
        return cls(
            providers,
            failure_threshold=breaker_cfg.failure_threshold,
            recovery_timeout=breaker_cfg.recovery_timeout_sec,
            monitoring_period=breaker_cfg.monitoring_period_sec,
        )

    @property
    def providers(self) -> dict[str, AIProvider]:
        return dict(self._providers)

    def breaker(self, provider_name: str) -> CircuitBreaker:
        return self._breakers[provider_name]

    def get_all_models(self) -> list[ModelConfig]:
        return [m for p in self._providers.values() for m in p.models]

    def get_model_by_id(self, model_id: str) -> ModelConfig | None:
        provider = self._model_index.get(model_id)
        return provider.get_model(model_id) if provider else None

    def get_provider_by_model_id(self, model_id: str) -> AIProvider | None:
        return self._model_index.get(model_id)

    def get_models_by_capability(self, capability: str) -> list[ModelConfig]:
        return [m for p in self._providers.values() for m in p.get_models_by_capability(capability)]

    def get_reasoning_models(self) -> list[ModelConfig]:
        return self.get_models_by_capability("reasoning")

    def _resolve(self, model_id: str) -> tuple[AIProvider, CircuitBreaker]:
        provider = self._model_index.get(model_id)
        if provider is None:
            raise ModelNotFoundError(model_id)
        return provider, self._breakers[provider.name()]

    def _classify(self, exc: Exception, provider: AIProvider, breaker: CircuitBreaker, model_id: str) -> ModelCompareError:
        """Re-raise breaker rejections as-is; wrap anything else as an annotated ProviderError."""
        if isinstance(exc, CircuitBreakerError):
            return exc
        message = exc.message if isinstance(exc, ProviderError) else str(exc)
        prefix = f"[{provider.name()}] "
        if message.startswith(prefix):
            message = message[len(prefix):]
        return ProviderError(
            provider.name(),
            message,
            {
                "modelId": model_id,
                "circuitBreakerState": breaker.get_state().value,
                "failureCount": breaker.get_failure_count(),
            },
        )

    async def call_model(
        self, prompt: str, model_id: str, options: CallOptions | None = None
    ) -> ModelResponse:
        return await self.call_model_messages([ModelMessage("user", prompt)], model_id, options)

    async def call_model_messages(
        self,
        messages: list[ModelMessage],
        model_id: str,
        options: CallOptions | None = None,
    ) -> ModelResponse:
        """Raises ModelNotFoundError, CircuitBreakerError or ProviderError."""
        provider, breaker = self._resolve(model_id)
        try:
            return await breaker.execute(lambda: provider.call_model(messages, model_id, options))
        except Exception as exc:
            classified = self._classify(exc, provider, breaker, model_id)
            logger.warning("Call to %s failed: %s", model_id, classified.message)
            raise classified from exc

    async def call_model_streaming(
        self,
        messages: list[ModelMessage],
        model_id: str,
        options: CallOptions | None,
        callbacks: StreamCallbacks,
    ) -> StreamResult | None:
        """Stream one call into callbacks; exactly one of on_complete / on_error fires.

        Unknown model ids raise ModelNotFoundError before anything is emitted.
        A raising on_complete counts as a provider failure and is followed by on_error.
        Cancellation propagates without firing a terminal callback.
        """
        provider, breaker = self._resolve(model_id)
        try:
            async with breaker.guard():
                result = await relay_stream(
                    provider.name(), provider.stream(messages, model_id, options), callbacks
                )
                await fire(callbacks.on_complete, result.response_id, result.token_usage, result.cost, result)
        except Exception as exc:
            classified = self._classify(exc, provider, breaker, model_id)
            logger.warning("Stream from %s failed: %s", model_id, classified.message)
            await fire(callbacks.on_error, classified)
            return None
        return result

    def breaker_states(self) -> dict[str, dict[str, Any]]:
        return {name: breaker.snapshot() for name, breaker in self._breakers.items()}
