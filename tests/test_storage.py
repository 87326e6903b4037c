"""Tests for modelcompare/storage.py."""

import pytest

from modelcompare.errors import DatabaseError, ValidationError
from modelcompare.models import DebateTurn


async def test_create_and_get_session(storage):
    session = await storage.create_debate_session("Nuclear power", "m1", "m2", 3)
    fetched = await storage.get_debate_session(session.id)
    assert fetched is session
    assert fetched.turn_history == []
    assert await storage.get_debate_session("missing") is None


async def test_append_routes_response_ids_by_turn_parity(storage):
    session = await storage.create_debate_session("Topic", "m1", "m2", 2)
    await storage.append_debate_turn(session.id, DebateTurn(1, "m1", "AFFIRMATIVE", "a", "r1", cost={"total": 0.25}))
    await storage.append_debate_turn(session.id, DebateTurn(2, "m2", "NEGATIVE", "b", "r2", cost={"total": 0.5}))
    await storage.append_debate_turn(session.id, DebateTurn(3, "m1", "AFFIRMATIVE", "c", "r3"))

    assert [t.turn_number for t in session.turn_history] == [1, 2, 3]
    assert session.model1_response_ids == ["r1", "r3"]
    assert session.model2_response_ids == ["r2"]
    assert session.total_cost == pytest.approx(0.75)
    assert session.updated_at >= session.created_at


async def test_append_to_unknown_session(storage):
    with pytest.raises(DatabaseError) as exc_info:
        await storage.append_debate_turn("nope", DebateTurn(1, "m", "AFFIRMATIVE", "x", "r"))
    assert exc_info.value.status_code == 500


async def test_list_sessions_most_recent_first(storage):
    older = await storage.create_debate_session("Old", "m1", "m2", 1)
    newer = await storage.create_debate_session("New", "m1", "m2", 1)
    older.updated_at = newer.updated_at - 10
    sessions = await storage.list_debate_sessions()
    assert [s.id for s in sessions] == [newer.id, older.id]


async def test_comparisons(storage):
    comparison = await storage.create_comparison("Why?", ["a", "b"], {"a": {"status": "success"}})
    listed = await storage.list_comparisons()
    assert [c.id for c in listed] == [comparison.id]
    assert listed[0].model_ids == ["a", "b"]


async def test_append_rejects_duplicate_and_skipped_turns(storage):
    session = await storage.create_debate_session("Topic", "m1", "m2", 2)
    await storage.append_debate_turn(session.id, DebateTurn(1, "m1", "AFFIRMATIVE", "a", "r1"))

    with pytest.raises(ValidationError, match="already recorded"):
        await storage.append_debate_turn(session.id, DebateTurn(1, "m1", "AFFIRMATIVE", "again", "r1b"))
    with pytest.raises(ValidationError, match="out of order"):
        await storage.append_debate_turn(session.id, DebateTurn(3, "m1", "AFFIRMATIVE", "c", "r3"))

    assert [t.turn_number for t in session.turn_history] == [1]
    assert session.model1_response_ids == ["r1"]
