"""xAI Grok provider using openai SDK (OpenAI-compatible API)."""

from modelcompare.models import ModelCapabilities, ModelConfig, ModelLimits, ModelPricing
from modelcompare.providers.chat_completions import ChatCompletionsProvider


def _grok(model_id: str, name: str, cutoff: str, pricing: tuple[float, float], flagship: bool = False) -> ModelConfig:
    return ModelConfig(
        id=model_id,
        name=name,
        provider="xAI",
        model=model_id,
        knowledge_cutoff=cutoff,
        capabilities=ModelCapabilities(reasoning=flagship, multimodal=flagship, function_calling=True),
        pricing=ModelPricing(*pricing),
        limits=ModelLimits(8192, 128000),
    )


XAI_MODELS = (
    _grok("grok-4-0709", "Grok 4", "October 2023", (5.00, 15.00), flagship=True),
    _grok("grok-3", "Grok 3", "December 2024", (2.00, 10.00)),
    _grok("grok-3-mini", "Grok 3 Mini", "October 2023", (0.50, 2.00)),
    _grok("grok-3-fast", "Grok 3 Fast", "December 2024", (1.00, 4.00)),
    _grok("grok-3-mini-fast", "Grok 3 Mini Fast", "October 2023", (0.25, 1.00)),
)


class XAIProvider(ChatCompletionsProvider):
    """xAI Grok provider via OpenAI-compatible API."""

    label = "xAI"
    models = XAI_MODELS
