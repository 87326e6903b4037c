"""DeepSeek provider using openai SDK (OpenAI-compatible API)."""

from modelcompare.models import ModelCapabilities, ModelConfig, ModelLimits, ModelPricing
from modelcompare.providers.chat_completions import ChatCompletionsProvider

DEEPSEEK_MODELS = (
    ModelConfig(
        id="deepseek-reasoner",
        name="DeepSeek R1 Reasoner",
        provider="DeepSeek",
        model="deepseek-reasoner",
        knowledge_cutoff="Unknown",
        capabilities=ModelCapabilities(reasoning=True, function_calling=True),
        pricing=ModelPricing(0.55, 2.19, reasoning_per_million=2.19),
        limits=ModelLimits(8000, 128000),
    ),
    ModelConfig(
        id="deepseek-chat",
        name="DeepSeek V3 Chat",
        provider="DeepSeek",
        model="deepseek-chat",
        knowledge_cutoff="Unknown",
        capabilities=ModelCapabilities(function_calling=True),
        pricing=ModelPricing(0.27, 1.10),
        limits=ModelLimits(4000, 128000),
    ),
)


class DeepSeekProvider(ChatCompletionsProvider):
    """DeepSeek provider; the reasoner streams chain-of-thought as reasoning_content."""

    label = "DeepSeek"
    models = DEEPSEEK_MODELS

    def supports_temperature(self, model: ModelConfig) -> bool:
        # deepseek-reasoner ignores sampling parameters.
        return not model.capabilities.reasoning
