from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click

from guardian.backends import (
    AgentBackend,
    ClaudeCodeBackend,
    OpenAIBackend,
    ResilientBackend,
    RetryPolicy,
)
from guardian.config import BackendName, GuardianConfig, load_config, save_config
from guardian.dispatcher import ScanOptions
from guardian.errors import GuardianError
from guardian.models import Category, CodeUnit, Issue
from guardian.orchestrator import Orchestrator
from guardian.utils.logging import setup_logging

LOGGER = logging.getLogger(__name__)
T = TypeVar("T")

LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".go": "go",
    ".java": "java",
    ".rb": "ruby",
    ".rs": "rust",
    ".php": "php",
    ".cs": "csharp",
    ".tf": "terraform",
    ".yml": "yaml",
    ".yaml": "yaml",
}


def _resolve_config_path(config_value: str) -> Path:
    config_path = Path(config_value)
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_path
    return config_path.resolve()


def _build_single_backend(backend_name: BackendName, config: GuardianConfig) -> AgentBackend:
    if backend_name == "openai":
        return OpenAIBackend(model=config.backend.model or "gpt-5")
    return ClaudeCodeBackend(working_directory=Path.cwd())


def _log_backend_event(event: dict[str, Any]) -> None:
    LOGGER.debug("backend event: %s", json.dumps(event, ensure_ascii=False, default=str))


def build_backend(config: GuardianConfig) -> AgentBackend:
    policy = RetryPolicy(
        max_retries=max(0, int(config.backend.max_retries)),
        backoff_seconds=max(0.0, float(config.backend.retry_backoff_seconds)),
        timeout_seconds=max(5.0, float(config.backend.timeout_seconds)),
    )
    return ResilientBackend(
        primary_name=config.backend.primary,
        primary_backend=_build_single_backend(config.backend.primary, config),
        fallback_name=config.backend.fallback,
        fallback_backend=_build_single_backend(config.backend.fallback, config),
        retry_policy=policy,
        event_hook=_log_backend_event,
    )


def _load_orchestrator(config_value: str) -> Orchestrator:
    config = load_config(_resolve_config_path(config_value))
    setup_logging(config.logging.level)
    return Orchestrator.from_config(config, build_backend(config))


def _run_with_orchestrator(
    orchestrator: Orchestrator, work: Callable[[Orchestrator], Awaitable[T]]
) -> T:
    async def _session() -> T:
        await orchestrator.initialize()
        try:
            return await work(orchestrator)
        finally:
            await orchestrator.shutdown()

    try:
        return asyncio.run(_session())
    except GuardianError as exc:
        raise click.ClickException(str(exc)) from exc


def _infer_language(path: Path) -> str:
    return LANGUAGE_BY_SUFFIX.get(path.suffix.lower(), path.suffix.lstrip(".").lower() or "text")


def _read_unit(path: Path, language: str | None, repository: str | None) -> CodeUnit:
    return CodeUnit(
        code=path.read_text(encoding="utf-8"),
        language=language or _infer_language(path),
        filepath=str(path),
        repository=repository,
    )


def _load_issues(path: Path) -> list[Issue]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Issues file is not valid JSON: {exc}") from exc
    if isinstance(raw, dict):
        raw = raw.get("issues", [])
    if not isinstance(raw, list):
        raise click.ClickException("Issues file must contain a JSON list of issues.")
    issues: list[Issue] = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise click.ClickException(
                f"Issue at index {index} must be a JSON object, got {type(item).__name__}."
            )
        issues.append(Issue.from_dict(item))
    return issues


@click.group()
def cli() -> None:
    """Guardian CLI."""


@cli.command("init")
@click.option("--backend", type=click.Choice(["claude", "openai"]), default=None)
@click.option("--config", "config_value", default="guardian.toml", show_default=True)
def init_command(backend: str | None, config_value: str) -> None:
    config_path = _resolve_config_path(config_value)
    config = load_config(config_path)
    if backend:
        config.backend.primary = backend  # type: ignore[assignment]
    save_config(config_path, config)
    click.echo(f"Config: {config_path}")
    click.echo(f"Backend: {config.backend.primary}")


@cli.command("scan")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-c",
    "--category",
    "categories",
    multiple=True,
    help=f"Repeatable. One of: {', '.join(category.value for category in Category)}.",
)
@click.option("--language", default=None)
@click.option("--repository", default=None)
@click.option("--timeout", "timeout_seconds", type=float, default=None)
@click.option("--json", "as_json", is_flag=True, default=False)
@click.option("--config", "config_value", default="guardian.toml", show_default=True)
def scan_command(
    path: Path,
    categories: tuple[str, ...],
    language: str | None,
    repository: str | None,
    timeout_seconds: float | None,
    as_json: bool,
    config_value: str,
) -> None:
    orchestrator = _load_orchestrator(config_value)
    unit = _read_unit(path, language, repository)
    options = ScanOptions(timeout_seconds=timeout_seconds)
    report = _run_with_orchestrator(
        orchestrator,
        lambda orch: orch.execute_scan(unit, list(categories) or None, options),
    )

    if as_json:
        click.echo(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
        return

    click.echo(f"Scanned: {report.filepath}")
    click.echo(f"Overall score: {report.overall_score}")
    for category, result in report.per_category.items():
        if result.ok:
            score = "-" if result.score is None else f"{result.score:g}"
            click.echo(f"  {category:<14} ok     score={score} ({result.duration_ms}ms)")
        else:
            click.echo(f"  {category:<14} error  {result.error}")
    if report.rejected_categories:
        click.echo(f"Ignored unknown categories: {', '.join(report.rejected_categories)}")


@cli.command("fix")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--issues",
    "issues_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--language", default=None)
@click.option("--json", "as_json", is_flag=True, default=False)
@click.option("--config", "config_value", default="guardian.toml", show_default=True)
def fix_command(
    path: Path,
    issues_path: Path,
    language: str | None,
    as_json: bool,
    config_value: str,
) -> None:
    orchestrator = _load_orchestrator(config_value)
    unit = _read_unit(path, language, None)
    issues = _load_issues(issues_path)
    report = _run_with_orchestrator(
        orchestrator, lambda orch: orch.execute_auto_fix(unit, issues)
    )

    if as_json:
        click.echo(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
        return

    click.echo(f"Fixed {report.fixed_count}/{report.total_issues} issues")
    for outcome in report.outcomes:
        detail = "" if outcome.ok else f"  {outcome.error}"
        click.echo(f"  {outcome.issue_id:<16} {outcome.status}{detail}")


@cli.command("pipeline")
@click.option("--language", required=True)
@click.option("--framework", default="")
@click.option("--platform", default="github", show_default=True)
@click.option("--deploy-target", default="aws", show_default=True)
@click.option("--config", "config_value", default="guardian.toml", show_default=True)
def pipeline_command(
    language: str, framework: str, platform: str, deploy_target: str, config_value: str
) -> None:
    orchestrator = _load_orchestrator(config_value)
    payload = _run_with_orchestrator(
        orchestrator,
        lambda orch: orch.generate_pipeline(
            language=language,
            framework=framework,
            platform=platform,
            deploy_target=deploy_target,
        ),
    )
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@cli.command("backend")
@click.argument("backend_name", type=click.Choice(["claude", "openai"]))
@click.option("--config", "config_value", default="guardian.toml", show_default=True)
def backend_command(backend_name: str, config_value: str) -> None:
    config_path = _resolve_config_path(config_value)
    config = load_config(config_path)
    config.backend.primary = backend_name  # type: ignore[assignment]
    save_config(config_path, config)
    click.echo(f"Primary backend set to {backend_name}")
