"""Shared pytest fixtures."""

import asyncio
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from config.config_loader import AppConfig, ProviderConfig, load_config
from modelcompare.models import (
    CallOptions,
    ChunkKind,
    Cost,
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
from modelcompare.providers.base import AIProvider
from modelcompare.registry import ProviderRegistry
from modelcompare.server import create_app
from modelcompare.storage import MemoryStorage

_ENV_OVERRIDES = (
    "PORT",
    "STREAMING_ENABLED",
    "CIRCUIT_BREAKER_FAILURE_THRESHOLD",
    "CIRCUIT_BREAKER_RECOVERY_TIMEOUT",
    "CIRCUIT_BREAKER_MONITORING_PERIOD",
    "MODELCOMPARE_API_TOKEN",
)


def make_model(model_id: str, provider: str = "Mock", reasoning: bool = False) -> ModelConfig:
    return ModelConfig(
        id=model_id,
        name=model_id.title(),
        provider=provider,
        model=model_id,
        knowledge_cutoff="2024",
        capabilities=ModelCapabilities(reasoning=reasoning),
        pricing=ModelPricing(1.0, 2.0),
        limits=ModelLimits(4096, 32000),
    )


class MockProvider(AIProvider):
    """Test double AIProvider.

    call_model is an AsyncMock; stream() replays `script` (a list of chunks,
    defaulting to status, reasoning, two text deltas and a complete chunk)
    and then raises `stream_error` if one is set.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        model_ids: tuple[str, ...] = ("mock-1",),
        response_content: str = "Mock response",
    ) -> None:
        super().__init__(
            ProviderConfig(name=provider_name, sdk="mock", api_key_env="MOCK_API_KEY", timeout_sec=5),
            client=object(),
        )
        self.models = tuple(make_model(m, provider_name, reasoning=i == 0) for i, m in enumerate(model_ids))
        self._response_content = response_content
        self.script: list[StreamChunk] | None = None
        self.stream_error: Exception | None = None
        self.chunk_delay = 0.0
        self.stream_calls: list[tuple[list[ModelMessage], str, CallOptions | None]] = []
        self._responses = 0
        # Shadow the class method with an AsyncMock at the instance level.
        self.call_model = AsyncMock(  # type: ignore[assignment]
            return_value=ModelResponse(
                content=response_content,
                response_time_ms=100,
                token_usage=TokenUsage(10, 5),
                cost=Cost(0.00001, 0.00001, 0.00002),
                response_id="mock-response",
            )
        )

    def _build_client(self, api_key: str) -> object:
        return object()

    async def call_model(  # type: ignore[override]
        self, messages: list[ModelMessage], model_id: str, options: CallOptions | None = None
    ) -> ModelResponse:
        """Default implementation; replaced by AsyncMock in __init__."""
        return ModelResponse(content=self._response_content, response_time_ms=100)

    def default_script(self) -> list[StreamChunk]:
        self._responses += 1
        content = f"{self._response_content} {self._responses}"
        return [
            StreamChunk(ChunkKind.STATUS, "created"),
            StreamChunk(ChunkKind.REASONING, "Thinking it over"),
            StreamChunk(ChunkKind.TEXT, self._response_content),
            StreamChunk(ChunkKind.TEXT, f" {self._responses}"),
            StreamChunk(
                ChunkKind.COMPLETE,
                StreamResult(
                    response_id=f"{self.name()}-resp-{self._responses}",
                    content=content,
                    reasoning="Thinking it over",
                    token_usage=TokenUsage(10, 5),
                    cost=Cost(0.00001, 0.00001, 0.00002),
                ),
            ),
        ]

    async def stream(  # type: ignore[override]
        self, messages: list[ModelMessage], model_id: str, options: CallOptions | None = None
    ) -> AsyncIterator[StreamChunk]:
        self.stream_calls.append((messages, model_id, options))
        chunks = self.script if self.script is not None else self.default_script()
        for chunk in chunks:
            if self.chunk_delay:
                await asyncio.sleep(self.chunk_delay)
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def app_config() -> AppConfig:
    """The shipped settings.yaml, free of environment overrides."""
    return load_config()


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def alpha() -> MockProvider:
    return MockProvider("alpha", ("alpha-1", "alpha-2"), "Alpha says")


@pytest.fixture
def beta() -> MockProvider:
    return MockProvider("beta", ("beta-1",), "Beta says")


@pytest.fixture
def registry(alpha: MockProvider, beta: MockProvider) -> ProviderRegistry:
    return ProviderRegistry([alpha, beta], failure_threshold=3, recovery_timeout=30, monitoring_period=60)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def app(app_config: AppConfig, registry: ProviderRegistry, storage: MemoryStorage):
    return create_app(app_config, registry=registry, storage=storage)


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
