"""Tests for the Proofline CLI."""

import json

import pytest
from click.testing import CliRunner

from proofline.cli import cli
from proofline.serialization import to_dict


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Isolated PROOFLINE_HOME with no LLM provider configured."""
    home = tmp_path / "home"
    monkeypatch.setenv("PROOFLINE_HOME", str(home))
    monkeypatch.delenv("PROOFLINE_LLM_PROVIDER", raising=False)
    monkeypatch.delenv("PROOFLINE_LOG_FORMAT", raising=False)
    monkeypatch.chdir(tmp_path)
    return home


@pytest.fixture
def batch_file(tmp_path, project_session):
    _, batch = project_session
    path = tmp_path / "batch.json"
    path.write_text(json.dumps({
        "client": batch.client,
        "rawEvents": [to_dict(e) for e in batch.raw_events],
    }), encoding="utf-8")
    return path


class TestAnalyze:

    def test_compact_report(self, runner, home, batch_file):
        result = runner.invoke(cli, ["analyze", str(batch_file)])
        assert result.exit_code == 0, result.output
        assert "# Proofline run" in result.output
        assert "## Major Events" in result.output
        assert "[GOAL]" in result.output
        assert "## Feature Deltas" in result.output
        assert "src/note: plain text -> structured json" in result.output

    def test_json_report(self, runner, home, batch_file):
        result = runner.invoke(cli, ["analyze", str(batch_file), "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["context"]["client"] == "codex"
        assert [e["id"] for e in data["timeline"]] == ["u1", "a1", "a2"]
        assert data["insights"]["featureDeltas"][0]["area"] == "src/note"

    def test_save_then_list(self, runner, home, batch_file):
        result = runner.invoke(cli, ["analyze", str(batch_file), "--save", "-q", "what did I do today",
                                     "--since", "2026-02-13"])
        assert result.exit_code == 0, result.output
        assert "Saved run" in result.output
        assert (home / "runs.db").exists()

        listed = runner.invoke(cli, ["runs"])
        assert listed.exit_code == 0
        assert '"what did I do today"' in listed.output
        assert "3 events" in listed.output

        latest = runner.invoke(cli, ["runs", "--latest"])
        assert json.loads(latest.output)["context"]["client"] == "codex"

    def test_unmatched_project_still_runs(self, runner, home, batch_file):
        result = runner.invoke(cli, ["analyze", str(batch_file), "--no-bootstrap", "-p", "nothing-matches"])
        assert result.exit_code == 0, result.output
        assert "scope all: paper" in result.output

    def test_bad_since(self, runner, home, batch_file):
        result = runner.invoke(cli, ["analyze", str(batch_file), "--since", "soon"])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_malformed_batch(self, runner, home, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("this is not a batch")
        result = runner.invoke(cli, ["analyze", str(bad)])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_enrich_needs_provider(self, runner, home, batch_file):
        result = runner.invoke(cli, ["analyze", str(batch_file), "--enrich"])
        assert result.exit_code == 1
        assert "PROOFLINE_LLM_PROVIDER" in result.output


class TestOtherCommands:

    def test_replay(self, runner, home, batch_file):
        result = runner.invoke(cli, ["replay", str(batch_file), "--before", "1", "--after", "1"])
        assert result.exit_code == 0, result.output
        assert result.output.startswith(">> ")

    def test_rules_default(self, runner, home):
        result = runner.invoke(cli, ["rules"])
        assert result.exit_code == 0
        assert "goal-delivery [GOAL]" in result.output
        assert "+boost" not in result.output

    def test_rules_bootstrapped_json(self, runner, home, batch_file):
        result = runner.invoke(cli, ["rules", str(batch_file), "--format", "json"])
        assert result.exit_code == 0, result.output
        rules = {r["id"]: r for r in json.loads(result.output)}
        assert rules["substitution-switch"]["boost"] == ["format", "note"]

    def test_runs_empty(self, runner, home):
        result = runner.invoke(cli, ["runs"])
        assert result.exit_code == 0
        assert "(no runs)" in result.output
