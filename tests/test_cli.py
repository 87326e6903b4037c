"""Tests for the click commands in modelcompare/cli.py, run against mock providers."""

from unittest.mock import AsyncMock

import pytest
from click.testing import CliRunner

import modelcompare.cli as cli
from modelcompare.errors import ProviderError


@pytest.fixture
def runner(app_config, registry, monkeypatch) -> CliRunner:
    monkeypatch.setattr(cli, "load_config", lambda: app_config)
    monkeypatch.setattr(cli.ProviderRegistry, "from_config", staticmethod(lambda config: registry))
    return CliRunner()


def test_split_ids():
    assert cli._split_ids(" a, b,,c ") == ["a", "b", "c"]


def test_config_error_exits(monkeypatch):
    def broken():
        raise ValueError("Config validation failed")

    monkeypatch.setattr(cli, "load_config", broken)
    result = CliRunner().invoke(cli.main, ["models"])
    assert result.exit_code == 1
    assert "Config error" in result.output


def test_models_lists_every_model(runner):
    result = runner.invoke(cli.main, ["models"])
    assert result.exit_code == 0
    for model_id in ("alpha-1", "alpha-2", "beta-1"):
        assert model_id in result.output


def test_compare_prints_each_model(runner, tmp_path):
    result = runner.invoke(
        cli.main, ["compare", "What is a CRDT?", "--models", "alpha-1,beta-1", "--output", str(tmp_path)]
    )
    assert result.exit_code == 0, result.output
    assert "Alpha says" in result.output
    assert "Beta says" in result.output
    saved = list(tmp_path.glob("*_compare_what-is-a-crdt.md"))
    assert len(saved) == 1


def test_compare_unknown_model_exits(runner):
    result = runner.invoke(cli.main, ["compare", "Hi", "--models", "alpha-1,ghost"])
    assert result.exit_code == 1
    assert "ghost" in result.output


def test_compare_all_failed_exits(runner, alpha):
    alpha.call_model = AsyncMock(side_effect=ProviderError("alpha", "quota exceeded"))
    result = runner.invoke(cli.main, ["compare", "Hi", "--models", "alpha-1"])
    assert result.exit_code == 1
    assert "quota exceeded" in result.output


def test_debate_runs_and_saves(runner, tmp_path):
    result = runner.invoke(
        cli.main,
        ["debate", "Cats beat dogs", "--model1", "alpha-1", "--model2", "beta-1", "--output", str(tmp_path)],
    )
    assert result.exit_code == 0, result.output
    assert "Turn 1" in result.output
    assert "Turn 2" in result.output
    assert "Total cost" in result.output

    (saved,) = tmp_path.glob("*_debate_cats-beat-dogs.md")
    content = saved.read_text(encoding="utf-8")
    assert "## Turn 1: Affirmative (alpha-1)" in content
    assert "## Turn 2: Negative (beta-1)" in content


@pytest.mark.parametrize("rounds", ["0", "-2"])
def test_debate_rejects_non_positive_rounds(runner, rounds):
    result = runner.invoke(cli.main, ["debate", "T", "--model1", "alpha-1", "--model2", "beta-1", f"--rounds={rounds}"])
    assert result.exit_code == 2
    assert "--rounds" in result.output


def test_debate_intensity_out_of_range(runner):
    result = runner.invoke(
        cli.main, ["debate", "T", "--model1", "alpha-1", "--model2", "beta-1", "--intensity", "9"]
    )
    assert result.exit_code == 2


def test_debate_failure_exits(runner, beta):
    beta.script = []
    beta.stream_error = ProviderError("beta", "overloaded")
    result = runner.invoke(cli.main, ["debate", "T", "--model1", "alpha-1", "--model2", "beta-1"])
    assert result.exit_code == 1
    assert "Debate failed" in result.output


def test_health_reports_failures(runner, beta):
    beta.call_model = AsyncMock(side_effect=ProviderError("beta", "401 Unauthorized"))
    result = runner.invoke(cli.main, ["health", "--models", "alpha-1,beta-1"])
    assert result.exit_code == 1
    assert "OK" in result.output
    assert "FAIL" in result.output
    assert "401" in result.output


def test_health_all_ok(runner):
    result = runner.invoke(cli.main, ["health", "--models", "alpha-1,beta-1"])
    assert result.exit_code == 0
    assert "FAIL" not in result.output
