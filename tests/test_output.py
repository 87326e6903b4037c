"""Tests for modelcompare/output.py."""

from pathlib import Path

import pytest

from modelcompare.models import DebateSession, DebateTurn
from modelcompare.output import _cost_label, _slug, save_comparison, save_debate


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    long_text = "a" * 100
    assert len(_slug(long_text)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


def test_cost_label():
    assert _cost_label({"total": 0.012345}) == "$0.0123"
    assert _cost_label(None) == ""


@pytest.fixture
def sample_responses() -> dict:
    return {
        "gpt-5-2025-08-07": {
            "content": "## Answer\nUse a monorepo.",
            "status": "success",
            "responseTime": 1250,
            "cost": {"input": 0.001, "output": 0.002, "total": 0.003},
        },
        "grok-4-0709": {
            "content": "",
            "status": "error",
            "responseTime": 0,
            "error": "[xai] 429 Too Many Requests",
        },
    }


@pytest.fixture
def sample_session() -> DebateSession:
    session = DebateSession(
        id="debate-1",
        topic="Monorepos beat polyrepos",
        model1_id="claude-sonnet-4-20250514",
        model2_id="gemini-2.5-pro",
        adversarial_level=3,
        created_at=1_700_000_000.0,
        updated_at=1_700_000_100.0,
        total_cost=0.0421,
    )
    session.turn_history = [
        DebateTurn(1, "claude-sonnet-4-20250514", "AFFIRMATIVE", "One repo, one truth.", "r1", reasoning="Lead with tooling."),
        DebateTurn(2, "gemini-2.5-pro", "NEGATIVE", "Ownership gets blurry.", "r2"),
    ]
    return session


def test_save_comparison_creates_file(tmp_path: Path, sample_responses):
    saved = save_comparison("Monorepo or not?", sample_responses, tmp_path / "nested" / "out")
    assert saved.exists()
    assert saved.suffix == ".md"
    assert saved.name.endswith("_compare_monorepo-or-not.md")


def test_save_comparison_content(tmp_path: Path, sample_responses):
    content = save_comparison("Monorepo or not?", sample_responses, tmp_path).read_text(encoding="utf-8")
    assert "# Model Comparison: Monorepo or not?" in content
    assert "## gpt-5-2025-08-07" in content
    assert "Use a monorepo." in content
    assert "$0.0030" in content
    assert "**Failed:** [xai] 429 Too Many Requests" in content


def test_save_debate_content(tmp_path: Path, sample_session: DebateSession):
    saved = save_debate(sample_session, tmp_path)
    assert saved.name.endswith("_debate_monorepos-beat-polyrepos.md")

    content = saved.read_text(encoding="utf-8")
    assert "**Affirmative:** claude-sonnet-4-20250514" in content
    assert "**Intensity:** 3" in content
    assert "**Turns:** 2" in content
    assert "**Total cost:** $0.0421" in content
    assert "## Turn 1: Affirmative (claude-sonnet-4-20250514)" in content
    assert "## Turn 2: Negative (gemini-2.5-pro)" in content
    assert content.index("Lead with tooling.") < content.index("One repo, one truth.")
    assert content.count("<details>") == 1
