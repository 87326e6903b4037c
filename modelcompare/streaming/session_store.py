"""Short-lived, claim-once records linking a stream init to its SSE connection."""

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from modelcompare.errors import StreamSessionNotFoundError

logger = logging.getLogger(__name__)

StreamKey = tuple[str, str, str]


@dataclass(frozen=True)
class StreamSessionKey:
    task_id: str
    model_key: str
    session_id: str
    expires_at: float

    def as_tuple(self) -> StreamKey:
        return (self.task_id, self.model_key, self.session_id)


@dataclass
class _Entry:
    payload: Any
    expires_at: float


class StreamSessionStore:
    """In-memory map of pending stream sessions.

    claim() removes the record with a single dict.pop, so two requests racing
    for the same key can never both receive the payload. Expired records are
    dropped lazily on create() and claim().
    """

    def __init__(self, ttl_sec: float = 300.0, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = max(1.0, ttl_sec)
        self._clock = clock
        self._entries: dict[StreamKey, _Entry] = {}

    @property
    def ttl_sec(self) -> float:
        return self._ttl

    def __len__(self) -> int:
        return len(self._entries)

    def create(self, task_id: str, model_key: str, payload: Any) -> StreamSessionKey:
        self.cleanup_expired()
        session_id = uuid.uuid4().hex
        expires_at = self._clock() + self._ttl
        self._entries[(task_id, model_key, session_id)] = _Entry(payload, expires_at)
        logger.debug("Stream session registered: %s/%s/%s", task_id, model_key, session_id)
        return StreamSessionKey(task_id, model_key, session_id, expires_at)

    def claim(self, task_id: str, model_key: str, session_id: str) -> Any:
        """Return and remove the payload.

        Raises:
            StreamSessionNotFoundError: never registered, already claimed, or expired.
        """
        entry = self._entries.pop((task_id, model_key, session_id), None)
        if entry is None:
            logger.info("Stream session miss: %s/%s/%s", task_id, model_key, session_id)
            raise StreamSessionNotFoundError()
        if entry.expires_at <= self._clock():
            logger.info("Stream session expired: %s/%s/%s", task_id, model_key, session_id)
            raise StreamSessionNotFoundError()
        return entry.payload

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Evicted %d expired stream session(s)", len(expired))
        return len(expired)
