import tomllib
from pathlib import Path

from guardian import __version__
from guardian.config import GuardianConfig, dumps_toml, load_config, save_config


def test_config_roundtrip(tmp_path: Path) -> None:
    config_path = tmp_path / "guardian.toml"
    config = GuardianConfig.default()
    config.backend.primary = "openai"
    config.backend.fallback = "claude"
    config.backend.max_retries = 3
    config.backend.model = "gpt-5-mini"
    config.agents.prompt_dir = "prompts"
    config.scan.default_categories = ["security", "compliance", "learning"]
    config.scan.call_timeout_seconds = 30.0
    config.fix.max_parallel = 4
    config.logging.level = "DEBUG"

    save_config(config_path, config)
    loaded = load_config(config_path)

    assert loaded.backend.primary == "openai"
    assert loaded.backend.fallback == "claude"
    assert loaded.backend.max_retries == 3
    assert loaded.backend.model == "gpt-5-mini"
    assert loaded.backend.timeout_seconds == 90.0
    assert loaded.agents.prompt_dir == "prompts"
    assert loaded.scan.default_categories == ["security", "compliance", "learning"]
    assert loaded.scan.call_timeout_seconds == 30.0
    assert loaded.fix.max_parallel == 4
    assert loaded.fix.call_timeout_seconds == 120.0
    assert loaded.logging.level == "DEBUG"


def test_missing_config_file_yields_defaults(tmp_path: Path) -> None:
    loaded = load_config(tmp_path / "absent.toml")

    assert loaded == GuardianConfig.default()
    assert loaded.scan.default_categories == ["security", "quality"]
    assert loaded.fix.max_parallel == 1


def test_toml_dump_contains_all_sections() -> None:
    rendered = dumps_toml(GuardianConfig.default())

    for section in ("[backend]", "[agents]", "[scan]", "[fix]", "[logging]"):
        assert section in rendered
    assert "retry_backoff_seconds = 0.5" in rendered
    assert "call_timeout_seconds = 120.0" in rendered
    assert 'default_categories = ["security", "quality"]' in rendered
    assert tomllib.loads(rendered)["fix"]["max_parallel"] == 1


def test_package_version_constant_matches_pyproject() -> None:
    project_root = Path(__file__).resolve().parents[1]
    pyproject = tomllib.loads((project_root / "pyproject.toml").read_text(encoding="utf-8"))

    assert __version__ == pyproject["project"]["version"]
