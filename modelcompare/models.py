"""Core dataclasses shared by providers, streaming and the debate engine."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@dataclass(frozen=True)
class ModelCapabilities:
    reasoning: bool = False
    multimodal: bool = False
    function_calling: bool = False
    streaming: bool = True


@dataclass(frozen=True)
class ModelPricing:
    input_per_million: float
    output_per_million: float
    reasoning_per_million: float | None = None


@dataclass(frozen=True)
class ModelLimits:
    max_tokens: int
    context_window: int


@dataclass(frozen=True)
class ModelConfig:
    id: str
    name: str
    provider: str          # "OpenAI", "Anthropic", "Google", "xAI", "DeepSeek"
    model: str             # vendor model string
    knowledge_cutoff: str
    capabilities: ModelCapabilities
    pricing: ModelPricing
    limits: ModelLimits

    def to_dict(self) -> dict[str, Any]:
        pricing: dict[str, Any] = {
            "inputPerMillion": self.pricing.input_per_million,
            "outputPerMillion": self.pricing.output_per_million,
        }
        if self.pricing.reasoning_per_million is not None:
            pricing["reasoningPerMillion"] = self.pricing.reasoning_per_million
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "model": self.model,
            "knowledgeCutoff": self.knowledge_cutoff,
            "capabilities": {
                "reasoning": self.capabilities.reasoning,
                "multimodal": self.capabilities.multimodal,
                "functionCalling": self.capabilities.function_calling,
                "streaming": self.capabilities.streaming,
            },
            "pricing": pricing,
            "limits": {
                "maxTokens": self.limits.max_tokens,
                "contextWindow": self.limits.context_window,
            },
        }


@dataclass
class ModelMessage:
    role: str              # "system", "developer", "user", "assistant", "context"
    content: str
    metadata: dict[str, Any] | None = None


@dataclass
class CallOptions:
    temperature: float | None = None
    max_tokens: int | None = None
    system_prompt: str | None = None
    instructions: str | None = None
    previous_response_id: str | None = None
    reasoning_effort: str | None = None      # "low", "medium", "high"
    reasoning_summary: str | None = None     # "auto", "detailed"
    text_verbosity: str | None = None        # "low", "medium", "high"


@dataclass(frozen=True)
class TokenUsage:
    input: int
    output: int
    reasoning: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"input": self.input, "output": self.output}
        if self.reasoning is not None:
            data["reasoning"] = self.reasoning
        return data


@dataclass(frozen=True)
class Cost:
    input: float
    output: float
    total: float
    reasoning: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"input": self.input, "output": self.output, "total": self.total}
        if self.reasoning is not None:
            data["reasoning"] = self.reasoning
        return data


@dataclass(frozen=True)
class ModelResponse:
    content: str
    response_time_ms: int
    reasoning: str | None = None
    token_usage: TokenUsage | None = None
    cost: Cost | None = None
    response_id: str | None = None
    model_config: ModelConfig | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "content": self.content,
            "reasoning": self.reasoning,
            "responseTime": self.response_time_ms,
            "tokenUsage": self.token_usage.to_dict() if self.token_usage else None,
            "cost": self.cost.to_dict() if self.cost else None,
        }
        if self.response_id:
            data["responseId"] = self.response_id
        if self.model_config is not None:
            full = self.model_config.to_dict()
            data["modelConfig"] = {
                "capabilities": full["capabilities"],
                "pricing": full["pricing"],
            }
        return data


class ChunkKind(str, Enum):
    STATUS = "status"
    REASONING = "reasoning"
    TEXT = "text"
    JSON = "json"
    ERROR = "error"
    COMPLETE = "complete"


@dataclass(frozen=True)
class StreamChunk:
    """One normalized unit of provider output.

    payload is a str for REASONING/TEXT deltas, the phase name for STATUS,
    any JSON-able value for JSON, the message for ERROR and a StreamResult
    for COMPLETE.
    """

    kind: ChunkKind
    payload: Any = None
    data: dict[str, Any] | None = None


@dataclass(frozen=True)
class StreamResult:
    response_id: str
    content: str
    reasoning: str
    token_usage: TokenUsage | None = None
    cost: Cost | None = None
    structured_output: Any = None


@dataclass
class DebateTurn:
    turn_number: int
    model_id: str
    role: str
    content: str
    response_id: str
    reasoning: str | None = None
    token_usage: dict[str, Any] | None = None
    cost: dict[str, Any] | None = None
    structured_output: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "turnNumber": self.turn_number,
            "modelId": self.model_id,
            "role": self.role,
            "content": self.content,
            "reasoning": self.reasoning,
            "tokenUsage": self.token_usage,
            "cost": self.cost,
            "responseId": self.response_id,
            "structuredOutput": self.structured_output,
        }


@dataclass
class DebateSession:
    id: str
    topic: str
    model1_id: str
    model2_id: str
    adversarial_level: int
    created_at: float
    updated_at: float
    turn_history: list[DebateTurn] = field(default_factory=list)
    model1_response_ids: list[str] = field(default_factory=list)
    model2_response_ids: list[str] = field(default_factory=list)
    total_cost: float = 0.0

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "topic": self.topic,
            "model1Id": self.model1_id,
            "model2Id": self.model2_id,
            "adversarialLevel": self.adversarial_level,
            "totalCost": self.total_cost,
            "turnCount": len(self.turn_history),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def to_dict(self) -> dict[str, Any]:
        data = self.summary()
        data["turnHistory"] = [t.to_dict() for t in self.turn_history]
        data["model1ResponseIds"] = list(self.model1_response_ids)
        data["model2ResponseIds"] = list(self.model2_response_ids)
        return data


@dataclass
class Comparison:
    id: str
    prompt: str
    model_ids: list[str]
    responses: dict[str, dict[str, Any]]
    created_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "selectedModels": list(self.model_ids),
            "responses": self.responses,
            "createdAt": _iso(self.created_at),
        }
