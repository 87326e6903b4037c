"""In-memory persistence for debate sessions and comparisons."""

import asyncio
import logging
import time
import uuid
from typing import Any

from modelcompare.errors import DatabaseError, ValidationError
from modelcompare.models import Comparison, DebateSession, DebateTurn

logger = logging.getLogger(__name__)


def check_next_turn(session: DebateSession, turn_number: int) -> None:
    """Only the turn right after the last recorded one may be appended."""
    expected = len(session.turn_history) + 1
    if turn_number < expected:
        raise ValidationError(
            f"Turn {turn_number} is already recorded",
            {"turnNumber": turn_number, "expectedTurnNumber": expected},
        )
    if turn_number > expected:
        raise ValidationError(
            f"Turn {turn_number} is out of order; next turn is {expected}",
            {"turnNumber": turn_number, "expectedTurnNumber": expected},
        )


class MemoryStorage:
    """Async key-value store. Turn history is append-only."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sessions: dict[str, DebateSession] = {}
        self._comparisons: dict[str, Comparison] = {}

    async def create_debate_session(
        self, topic: str, model1_id: str, model2_id: str, adversarial_level: int
    ) -> DebateSession:
        now = time.time()
        session = DebateSession(
            id=uuid.uuid4().hex,
            topic=topic,
            model1_id=model1_id,
            model2_id=model2_id,
            adversarial_level=adversarial_level,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._sessions[session.id] = session
        logger.info("Debate session created: %s (%s vs %s)", session.id, model1_id, model2_id)
        return session

    async def get_debate_session(self, session_id: str) -> DebateSession | None:
        return self._sessions.get(session_id)

    async def list_debate_sessions(self) -> list[DebateSession]:
        return sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)

    async def append_debate_turn(self, session_id: str, turn: DebateTurn) -> DebateSession:
        """Append one turn and roll its response id and cost into the session.

        Raises:
            DatabaseError: the session does not exist.
            ValidationError: the turn is not the next one in order.
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise DatabaseError(f"Debate session {session_id} does not exist", {"sessionId": session_id})
            check_next_turn(session, turn.turn_number)
            session.turn_history.append(turn)
            if turn.turn_number % 2 == 1:
                session.model1_response_ids.append(turn.response_id)
            else:
                session.model2_response_ids.append(turn.response_id)
            if turn.cost:
                session.total_cost += float(turn.cost.get("total", 0.0) or 0.0)
            session.updated_at = time.time()
        return session

    async def create_comparison(
        self, prompt: str, model_ids: list[str], responses: dict[str, dict[str, Any]]
    ) -> Comparison:
        comparison = Comparison(
            id=uuid.uuid4().hex,
            prompt=prompt,
            model_ids=list(model_ids),
            responses=responses,
            created_at=time.time(),
        )
        async with self._lock:
            self._comparisons[comparison.id] = comparison
        return comparison

    async def list_comparisons(self) -> list[Comparison]:
        return sorted(self._comparisons.values(), key=lambda c: c.created_at, reverse=True)
