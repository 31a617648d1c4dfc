"""Tests for the CLI interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from loregraph import __version__
from loregraph.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def initialized_project(runner: CliRunner, tmp_path: Path) -> Path:
    result = runner.invoke(main, ["init", "--path", str(tmp_path)])
    assert result.exit_code == 0, f"Init failed: {result.output}"
    return tmp_path


class TestCLIInit:
    def test_init_basic(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(main, ["init", "--path", str(tmp_path)])
        assert result.exit_code == 0
        assert "Initializing" in result.output

    def test_init_creates_config(self, initialized_project: Path):
        config_path = initialized_project / ".loregraph" / "config.json"
        assert config_path.exists()
        data = json.loads(config_path.read_text())
        assert data["name"] == initialized_project.name

    def test_init_nonexistent_path(self, runner: CliRunner):
        result = runner.invoke(main, ["init", "--path", "/nonexistent/path"])
        assert result.exit_code != 0

    def test_version(self, runner: CliRunner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestCLIRank:
    def test_rank(self, runner: CliRunner, corpus_file: Path, initialized_project: Path):
        result = runner.invoke(
            main, ["rank", str(corpus_file), "--path", str(initialized_project)]
        )
        assert result.exit_code == 0, result.output
        assert "Importance Ranking" in result.output
        assert "Aurelia" in result.output

    def test_rank_writes_output(
        self, runner: CliRunner, corpus_file: Path, initialized_project: Path, tmp_path: Path
    ):
        output = tmp_path / "ranked.json"
        result = runner.invoke(main, [
            "rank", str(corpus_file), "--path", str(initialized_project),
            "--output", str(output),
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(output.read_text())
        assert all(entry["order"] >= 1 for entry in data["entries"])

    def test_rank_invalid_corpus(self, runner: CliRunner, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("{oops")
        result = runner.invoke(main, ["rank", str(bad), "--path", str(tmp_path)])
        assert result.exit_code == 1
        assert "Invalid corpus" in result.output


class TestCLIQuery:
    def test_query_markdown(self, runner: CliRunner, corpus_file: Path, initialized_project: Path):
        result = runner.invoke(main, [
            "query", str(corpus_file), "Tell me about Aurelia",
            "--path", str(initialized_project),
        ])
        assert result.exit_code == 0, result.output
        assert "### world_info" in result.output
        assert "#### Aurelia" in result.output

    def test_query_json(self, runner: CliRunner, corpus_file: Path, initialized_project: Path):
        result = runner.invoke(main, [
            "query", str(corpus_file), "Tell me about Aurelia",
            "--path", str(initialized_project), "--json", "--max-entries", "2",
        ])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["world_info"][0]["entry"]["uid"] == 1
        assert len(data["world_info"]) <= 2
        assert data["used_tokens"] <= data["token_budget"]

    def test_query_uses_config_defaults(
        self, runner: CliRunner, corpus_file: Path, initialized_project: Path
    ):
        runner.invoke(main, [
            "config", "set", "retrieval.token_budget", "2048",
            "--path", str(initialized_project),
        ])
        result = runner.invoke(main, [
            "query", str(corpus_file), "Aurelia", "--path", str(initialized_project), "--json",
        ])
        assert json.loads(result.output)["token_budget"] == 2048

    def test_query_embedding_boosts_documents(
        self, runner: CliRunner, corpus_file: Path, initialized_project: Path, tmp_path: Path
    ):
        vector = tmp_path / "query.json"
        vector.write_text("[1.0, 0.0]")
        result = runner.invoke(main, [
            "query", str(corpus_file), "dragons", "--path", str(initialized_project),
            "--query-embedding", str(vector), "--policy", "always", "--json",
        ])
        data = json.loads(result.output)
        assert [doc["document"]["uid"] for doc in data["rag"]] == [10]
        assert data["rag"][0]["semantic_boost"] == pytest.approx(150.0)

    def test_query_explain(self, runner: CliRunner, corpus_file: Path, initialized_project: Path):
        result = runner.invoke(main, [
            "query", str(corpus_file), "Tell me about Aurelia",
            "--path", str(initialized_project), "--explain",
        ])
        assert result.exit_code == 0, result.output
        assert "Seeds" in result.output

    def test_query_missing_corpus(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(main, [
            "query", str(tmp_path / "missing.json"), "Aurelia", "--path", str(tmp_path),
        ])
        assert result.exit_code == 1


class TestCLIConfig:
    def test_show(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(main, ["config", "show", "--path", str(initialized_project)])
        assert result.exit_code == 0
        assert "retrieval" in result.output

    def test_set_and_get(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(main, [
            "config", "set", "retrieval.rag_fallback_policy", "always",
            "--path", str(initialized_project),
        ])
        assert result.exit_code == 0, result.output
        result = runner.invoke(main, [
            "config", "get", "retrieval.rag_fallback_policy",
            "--path", str(initialized_project),
        ])
        assert "always" in result.output

    def test_set_unknown_key(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(main, [
            "config", "set", "nope.key", "1", "--path", str(initialized_project),
        ])
        assert result.exit_code == 1

    def test_set_invalid_value(self, runner: CliRunner, initialized_project: Path):
        result = runner.invoke(main, [
            "config", "set", "retrieval.rag_fallback_policy", "sometimes",
            "--path", str(initialized_project),
        ])
        assert result.exit_code == 1
