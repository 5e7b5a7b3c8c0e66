import json
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from guardian.backends.base import AgentBackend, GenerationConfig
from guardian.cli import cli
from guardian.config import load_config


class FakeBackend(AgentBackend):
    async def execute(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        _ = config
        if "CI/CD pipeline" in prompt:
            yield '{"pipelineConfig": "on: push", "platform": "github"}'
            return
        yield '{"score": 85, "vulnerabilities": [], "issues": [], "improvedCode": "x = 1"}'


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("guardian.cli.build_backend", lambda config: FakeBackend())
    (tmp_path / "app.py").write_text("def add(a, b):\n    return a + b\n", encoding="utf-8")
    return tmp_path


def test_init_writes_config(workspace: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["init", "--backend", "openai"])

    assert result.exit_code == 0
    assert "Backend: openai" in result.output
    config = load_config(workspace / "guardian.toml")
    assert config.backend.primary == "openai"


def test_backend_command_switches_primary(workspace: Path) -> None:
    runner = CliRunner()
    runner.invoke(cli, ["init"])

    result = runner.invoke(cli, ["backend", "openai"])

    assert result.exit_code == 0
    assert load_config(workspace / "guardian.toml").backend.primary == "openai"


def test_scan_json_report(workspace: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["scan", "app.py", "-c", "security", "-c", "quality", "--json"])

    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["overall_score"] == 85
    assert report["language"] == "python"
    assert set(report["categories"]) == {"security", "quality"}
    assert report["categories"]["security"]["status"] == "success"


def test_scan_reports_unknown_categories(workspace: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["scan", "app.py", "-c", "security", "-c", "performance"])

    assert result.exit_code == 0
    assert "Overall score: 85" in result.output
    assert "Ignored unknown categories: performance" in result.output


def test_scan_rejects_empty_file(workspace: Path) -> None:
    (workspace / "empty.py").write_text("", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(cli, ["scan", "empty.py"])

    assert result.exit_code != 0
    assert "non-empty" in result.output


def test_fix_with_issues_file(workspace: Path) -> None:
    issues = [
        {"id": "sec-1", "category": "security", "type": "SQL Injection", "severity": "high"},
        {"id": "perf-1", "category": "performance", "type": "Slow loop"},
    ]
    (workspace / "issues.json").write_text(json.dumps({"issues": issues}), encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(cli, ["fix", "app.py", "--issues", "issues.json"])

    assert result.exit_code == 0
    assert "Fixed 1/2 issues" in result.output
    assert "fix capability unavailable" in result.output


def test_fix_rejects_invalid_issues_file(workspace: Path) -> None:
    (workspace / "issues.json").write_text("not json", encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(cli, ["fix", "app.py", "--issues", "issues.json"])

    assert result.exit_code != 0
    assert "not valid JSON" in result.output


def test_fix_rejects_non_object_issue_entries(workspace: Path) -> None:
    issues = [{"id": "sec-1", "category": "security"}, "sec-2"]
    (workspace / "issues.json").write_text(json.dumps(issues), encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(cli, ["fix", "app.py", "--issues", "issues.json"])

    assert result.exit_code != 0
    assert "index 1" in result.output


def test_pipeline_command_prints_payload(workspace: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["pipeline", "--language", "python"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["pipelineConfig"] == "on: push"
    assert payload["agent"] == "DevOpsAgent"
