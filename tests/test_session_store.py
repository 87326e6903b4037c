"""Tests for modelcompare/streaming/session_store.py."""

import pytest

from modelcompare.errors import StreamSessionNotFoundError
from modelcompare.streaming.session_store import StreamSessionStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> StreamSessionStore:
    return StreamSessionStore(ttl_sec=300, clock=clock)


def test_create_then_claim(store):
    key = store.create("task-1", "gpt", {"turn": 1})
    assert key.task_id == "task-1"
    assert key.expires_at == 300
    assert store.claim(*key.as_tuple()) == {"turn": 1}


def test_claim_is_at_most_once(store):
    key = store.create("task-1", "gpt", "payload")
    store.claim(*key.as_tuple())
    with pytest.raises(StreamSessionNotFoundError) as exc_info:
        store.claim(*key.as_tuple())
    assert exc_info.value.status_code == 404


def test_session_ids_are_unique(store):
    first = store.create("task-1", "gpt", "a")
    second = store.create("task-1", "gpt", "b")
    assert first.session_id != second.session_id
    assert store.claim(*second.as_tuple()) == "b"
    assert store.claim(*first.as_tuple()) == "a"


def test_wrong_component_misses(store):
    key = store.create("task-1", "gpt", "payload")
    with pytest.raises(StreamSessionNotFoundError):
        store.claim("task-1", "claude", key.session_id)
    assert store.claim(*key.as_tuple()) == "payload"


def test_expired_session_rejected(store, clock):
    key = store.create("task-1", "gpt", "payload")
    clock.now = 300
    with pytest.raises(StreamSessionNotFoundError):
        store.claim(*key.as_tuple())
    assert len(store) == 0


def test_cleanup_expired(store, clock):
    store.create("old", "m", 1)
    clock.now = 200
    store.create("new", "m", 2)
    clock.now = 350
    assert store.cleanup_expired() == 1
    assert len(store) == 1


def test_ttl_floor():
    assert StreamSessionStore(ttl_sec=0).ttl_sec == 1.0
