"""Debate turn engine: alternating turns between two models over one topic."""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from config.config_loader import DebateConfig, IntensityDescriptor
from modelcompare.errors import (
    DebateSessionNotFoundError,
    ModelCompareError,
    ModelNotFoundError,
    ValidationError,
)
from modelcompare.models import CallOptions, DebateSession, DebateTurn, ModelMessage, StreamResult
from modelcompare.providers.base import StreamCallbacks
from modelcompare.registry import ProviderRegistry
from modelcompare.storage import MemoryStorage, check_next_turn
from modelcompare.streaming.harness import StreamHarness

logger = logging.getLogger(__name__)

AFFIRMATIVE = "AFFIRMATIVE"
NEGATIVE = "NEGATIVE"

_EFFORTS = {"minimal": "low", "low": "low", "medium": "medium", "high": "high"}
_SUMMARIES = {"concise": "auto", "auto": "auto", "detailed": "detailed"}
_VERBOSITIES = {"low", "medium", "high"}


def speaker_for_turn(session: DebateSession, turn_number: int) -> tuple[str, str]:
    """Odd turns belong to model1 (AFFIRMATIVE), even turns to model2 (NEGATIVE)."""
    if turn_number < 1:
        raise ValidationError("turnNumber must be at least 1", {"turnNumber": turn_number})
    if turn_number % 2 == 1:
        return session.model1_id, AFFIRMATIVE
    return session.model2_id, NEGATIVE


def normalize_role(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("role is required")
    role = value.strip().upper()
    if role not in (AFFIRMATIVE, NEGATIVE):
        raise ValidationError("role must be AFFIRMATIVE or NEGATIVE", {"role": value})
    return role


def normalize_reasoning_effort(value: Any, default: str = "medium") -> str:
    return _EFFORTS.get(value.lower(), default) if isinstance(value, str) else default


def normalize_reasoning_summary(value: Any, default: str = "detailed") -> str:
    return _SUMMARIES.get(value.lower(), default) if isinstance(value, str) else default


def normalize_text_verbosity(value: Any, default: str = "high") -> str:
    if isinstance(value, str) and value.lower() in _VERBOSITIES:
        return value.lower()
    return default


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def normalize_temperature(value: Any, default: float = 0.7) -> float:
    parsed = _as_float(value)
    if parsed is None:
        return default
    return min(max(parsed, 0.0), 2.0)


def normalize_max_tokens(value: Any, default: int = 16384) -> int:
    parsed = _as_float(value)
    if parsed is None or parsed <= 0:
        return default
    return int(parsed)


def require_number(value: Any, field_name: str) -> int:
    parsed = _as_float(value)
    if parsed is None:
        raise ValidationError(f"{field_name} must be a number", {"field": field_name})
    return int(parsed)


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required", {"field": field_name})
    return value.strip()


def optional_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


@dataclass
class DebateTurnRequest:
    """Everything needed to run one turn; this is what a stream session stores."""

    debate_session_id: str
    model_id: str
    topic: str
    role: str
    intensity_level: int
    turn_number: int
    opponent_message: str | None = None
    previous_response_id: str | None = None
    intensity_guidance: str | None = None
    reasoning_effort: str = "medium"
    reasoning_summary: str = "detailed"
    text_verbosity: str = "high"
    temperature: float = 0.7
    max_tokens: int = 16384

    @property
    def position(self) -> str:
        return "FOR" if self.role == AFFIRMATIVE else "AGAINST"

    @property
    def task_id(self) -> str:
        return f"{self.debate_session_id}:turn-{self.turn_number}:model-{self.model_id}"

    @property
    def model_key(self) -> str:
        return self.model_id


class DebatePromptBuilder:
    """Renders the developer, system and user messages for a turn from settings templates."""

    def __init__(self, config: DebateConfig) -> None:
        self._config = config

    def intensity(self, level: int) -> IntensityDescriptor:
        descriptor = self._config.intensities.get(level)
        if descriptor is None:
            return IntensityDescriptor(level=level, label=f"Level {level}", guidance="")
        return descriptor

    def build(self, request: DebateTurnRequest) -> list[ModelMessage]:
        prompts = self._config.prompts
        descriptor = self.intensity(request.intensity_level)
        heading = descriptor.heading
        guidance = request.intensity_guidance or descriptor.guidance
        full_text = f"{heading}\n{guidance}" if guidance else heading

        developer_sections = [prompts.developer.strip()]
        if guidance:
            developer_sections.append(f"Adversarial intensity guidance:\n{guidance}")
        else:
            developer_sections.append(f"Adversarial intensity level: {request.intensity_level}")

        system = prompts.base_template.format(
            role=request.role,
            position=request.position,
            topic=request.topic,
            intensity=full_text,
        ).strip()

        if request.position == "FOR":
            verb, outcome = "support", "should be adopted"
        else:
            verb, outcome = "oppose", "should be rejected"

        if request.turn_number <= 2:
            user = prompts.opening.format(topic=request.topic, verb=verb, intensity_heading=heading)
        else:
            opponent_section = ""
            if request.opponent_message and request.opponent_message.strip():
                opponent_section = prompts.opponent_quote.format(message=request.opponent_message.strip())
            user = prompts.rebuttal.format(
                opponent_section=opponent_section,
                topic=request.topic,
                outcome=outcome,
                intensity_heading=heading,
            )

        return [
            ModelMessage("developer", "\n\n".join(developer_sections)),
            ModelMessage("system", system),
            ModelMessage("user", user.strip()),
        ]


class DebateTurnEngine:
    """Runs debate turns through the registry and records them in storage.

    A turn is appended only after the provider stream completes, so a failed
    turn leaves the history untouched and the same turn number can be retried.
    """

    def __init__(self, registry: ProviderRegistry, storage: MemoryStorage, config: DebateConfig) -> None:
        self.registry = registry
        self.storage = storage
        self.config = config
        self.prompts = DebatePromptBuilder(config)

    async def prepare(self, body: dict[str, Any]) -> DebateTurnRequest:
        """Validate an init payload and resolve (or create) its debate session.

        Raises:
            ValidationError: missing or malformed fields, or a continuing turn without a session.
            DebateSessionNotFoundError: sessionId given but unknown.
            ModelNotFoundError: the model id is not registered.
        """
        model_id = require_text(body.get("modelId"), "modelId")
        topic = require_text(body.get("topic"), "topic")
        role = normalize_role(body.get("role"))
        raw_intensity = body.get("intensityLevel")
        if raw_intensity is None:
            raw_intensity = body.get("intensity")
        intensity_level = require_number(raw_intensity, "intensityLevel")
        turn_number = require_number(body.get("turnNumber"), "turnNumber")
        if turn_number < 1:
            raise ValidationError("turnNumber must be at least 1", {"turnNumber": turn_number})
        if self.registry.get_model_by_id(model_id) is None:
            raise ModelNotFoundError(model_id)

        session_id = optional_text(body.get("sessionId"))
        if session_id:
            session = await self.storage.get_debate_session(session_id)
            if session is None:
                raise DebateSessionNotFoundError(session_id)
        elif turn_number != 1:
            raise ValidationError("Session ID required for continuing debates", {"turnNumber": turn_number})
        else:
            session = await self.storage.create_debate_session(
                topic=topic,
                model1_id=optional_text(body.get("model1Id")) or model_id,
                model2_id=optional_text(body.get("model2Id")) or model_id,
                adversarial_level=intensity_level,
            )

        self._check_turn(session, turn_number, model_id)

        return DebateTurnRequest(
            debate_session_id=session.id,
            model_id=model_id,
            topic=topic,
            role=role,
            intensity_level=intensity_level,
            turn_number=turn_number,
            opponent_message=optional_text(body.get("opponentMessage")),
            previous_response_id=optional_text(body.get("previousResponseId")),
            intensity_guidance=optional_text(body.get("intensityGuidance")),
            reasoning_effort=normalize_reasoning_effort(body.get("reasoningEffort"), self.config.reasoning_effort),
            reasoning_summary=normalize_reasoning_summary(body.get("reasoningSummary"), self.config.reasoning_summary),
            text_verbosity=normalize_text_verbosity(body.get("textVerbosity"), self.config.text_verbosity),
            temperature=normalize_temperature(body.get("temperature"), self.config.temperature),
            max_tokens=normalize_max_tokens(body.get("maxTokens"), self.config.max_tokens),
        )

    @staticmethod
    def _check_turn(session: DebateSession, turn_number: int, model_id: str) -> None:
        expected_model, _ = speaker_for_turn(session, turn_number)
        if model_id != expected_model:
            raise ValidationError(
                f"Turn {turn_number} belongs to {expected_model}",
                {"turnNumber": turn_number, "modelId": model_id, "expectedModelId": expected_model},
            )
        check_next_turn(session, turn_number)

    def _previous_response_id(self, session: DebateSession, request: DebateTurnRequest) -> str | None:
        if request.turn_number <= 2:
            return request.previous_response_id
        # Chain onto the speaker's own last response, not the opponent's.
        own_ids = session.model1_response_ids if request.turn_number % 2 == 1 else session.model2_response_ids
        return own_ids[-1] if own_ids else None

    async def execute_turn(
        self, request: DebateTurnRequest, harness: StreamHarness | None = None
    ) -> tuple[DebateTurn, StreamResult]:
        """Stream one turn and persist it. Raises on any failure; nothing is appended then."""

        def status(phase: str, **extra: Any) -> None:
            if harness is not None:
                harness.status(phase, **extra)

        status("validating_session", debateSessionId=request.debate_session_id, turnNumber=request.turn_number)
        session = await self.storage.get_debate_session(request.debate_session_id)
        if session is None:
            raise DebateSessionNotFoundError(request.debate_session_id)
        self._check_turn(session, request.turn_number, request.model_id)

        status("resolving_provider", modelId=request.model_id)
        provider = self.registry.get_provider_by_model_id(request.model_id)
        if provider is None:
            raise ModelNotFoundError(request.model_id)
        status("provider_ready", provider=provider.name())

        options = CallOptions(
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            previous_response_id=self._previous_response_id(session, request),
            reasoning_effort=request.reasoning_effort,
            reasoning_summary=request.reasoning_summary,
            text_verbosity=request.text_verbosity,
        )
        failure: list[ModelCompareError] = []
        callbacks = StreamCallbacks(
            on_status=lambda phase, data: status(phase, provider=provider.name(), **(data or {})),
            on_reasoning_chunk=harness.push_reasoning if harness else None,
            on_content_chunk=harness.push_content if harness else None,
            on_json_chunk=harness.push_json if harness else None,
            on_error=failure.append,
        )

        status("stream_start", provider=provider.name())
        result = await self.registry.call_model_streaming(
            self.prompts.build(request), request.model_id, options, callbacks
        )
        if failure:
            raise failure[0]
        if result is None:
            raise ModelCompareError("Stream finished without a result")

        status("persisting", responseId=result.response_id)
        turn = DebateTurn(
            turn_number=request.turn_number,
            model_id=request.model_id,
            role=request.role,
            content=result.content,
            response_id=result.response_id,
            reasoning=result.reasoning or None,
            token_usage=result.token_usage.to_dict() if result.token_usage else None,
            cost=result.cost.to_dict() if result.cost else None,
            structured_output=result.structured_output,
        )
        await self.storage.append_debate_turn(request.debate_session_id, turn)
        logger.info(
            "Debate %s turn %d recorded (%s, %d chars)",
            request.debate_session_id,
            request.turn_number,
            request.model_id,
            len(turn.content),
        )
        return turn, result

    async def stream_turn(self, request: DebateTurnRequest, harness: StreamHarness) -> None:
        """Run a turn against an SSE harness, ending it with exactly one terminal event."""
        harness.init(
            {
                "debateSessionId": request.debate_session_id,
                "turnNumber": request.turn_number,
                "modelId": request.model_id,
                "role": request.role,
            }
        )
        try:
            turn, result = await self.execute_turn(request, harness)
        except ModelCompareError as exc:
            logger.warning("Debate turn %s failed: %s", request.task_id, exc.message)
            harness.fail(exc)
            return
        except Exception as exc:
            logger.exception("Debate turn %s failed unexpectedly", request.task_id)
            harness.fail(exc)
            return

        harness.complete(
            response_id=turn.response_id,
            token_usage=result.token_usage,
            cost=result.cost,
            response_summary=turn.reasoning,
            metadata={
                "debateSessionId": request.debate_session_id,
                "turnNumber": request.turn_number,
                "structuredOutput": turn.structured_output,
            },
        )

    async def run_debate(
        self,
        topic: str,
        model1_id: str,
        model2_id: str,
        rounds: int,
        intensity_level: int = 2,
        on_turn_complete: Callable[[DebateTurn], None] | None = None,
    ) -> DebateSession:
        """Run `rounds` exchanges (two turns each) without SSE.

        Raises the first turn failure; turns recorded before it stay in the session.
        """
        rounds = min(rounds, self.config.max_rounds)
        for model_id in (model1_id, model2_id):
            if self.registry.get_model_by_id(model_id) is None:
                raise ModelNotFoundError(model_id)

        session = await self.storage.create_debate_session(topic, model1_id, model2_id, intensity_level)
        opponent_message: str | None = None
        for turn_number in range(1, rounds * 2 + 1):
            model_id, role = speaker_for_turn(session, turn_number)
            request = DebateTurnRequest(
                debate_session_id=session.id,
                model_id=model_id,
                topic=topic,
                role=role,
                intensity_level=intensity_level,
                turn_number=turn_number,
                opponent_message=opponent_message,
                reasoning_effort=self.config.reasoning_effort,
                reasoning_summary=self.config.reasoning_summary,
                text_verbosity=self.config.text_verbosity,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
            turn, _ = await self.execute_turn(request)
            opponent_message = turn.content
            if on_turn_complete:
                on_turn_complete(turn)
        return session
