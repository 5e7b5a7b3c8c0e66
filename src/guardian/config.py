from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

BackendName = Literal["claude", "openai"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


@dataclass(slots=True)
class BackendConfig:
    primary: BackendName = "claude"
    fallback: BackendName = "openai"
    max_retries: int = 1
    retry_backoff_seconds: float = 0.5
    timeout_seconds: float = 90.0
    model: str = ""


@dataclass(slots=True)
class AgentsConfig:
    prompt_dir: str = ""


@dataclass(slots=True)
class ScanConfig:
    default_categories: list[str] = field(default_factory=lambda: ["security", "quality"])
    call_timeout_seconds: float = 120.0


@dataclass(slots=True)
class FixConfig:
    max_parallel: int = 1
    call_timeout_seconds: float = 120.0


@dataclass(slots=True)
class LoggingConfig:
    level: LogLevel = "INFO"


@dataclass(slots=True)
class GuardianConfig:
    backend: BackendConfig = field(default_factory=BackendConfig)
    agents: AgentsConfig = field(default_factory=AgentsConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    fix: FixConfig = field(default_factory=FixConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def default(cls) -> GuardianConfig:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> GuardianConfig:
        return cls(
            backend=BackendConfig(**data.get("backend", {})),
            agents=AgentsConfig(**data.get("agents", {})),
            scan=ScanConfig(**data.get("scan", {})),
            fix=FixConfig(**data.get("fix", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )

    def to_dict(self) -> dict:
        return {
            "backend": {
                "primary": self.backend.primary,
                "fallback": self.backend.fallback,
                "max_retries": self.backend.max_retries,
                "retry_backoff_seconds": self.backend.retry_backoff_seconds,
                "timeout_seconds": self.backend.timeout_seconds,
                "model": self.backend.model,
            },
            "agents": {
                "prompt_dir": self.agents.prompt_dir,
            },
            "scan": {
                "default_categories": list(self.scan.default_categories),
                "call_timeout_seconds": self.scan.call_timeout_seconds,
            },
            "fix": {
                "max_parallel": self.fix.max_parallel,
                "call_timeout_seconds": self.fix.call_timeout_seconds,
            },
            "logging": {
                "level": self.logging.level,
            },
        }


def _toml_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        rendered = f"{value:.3f}".rstrip("0").rstrip(".")
        if not rendered:
            return "0.0"
        return rendered if "." in rendered else f"{rendered}.0"
    if isinstance(value, list):
        return "[" + ", ".join(_toml_value(item) for item in value) + "]"
    return json.dumps(str(value), ensure_ascii=False)


def dumps_toml(config: GuardianConfig) -> str:
    data = config.to_dict()
    lines: list[str] = []
    section_order = ["backend", "agents", "scan", "fix", "logging"]
    for section in section_order:
        lines.append(f"[{section}]")
        for key, value in data[section].items():
            lines.append(f"{key} = {_toml_value(value)}")
        lines.append("")
    return "\n".join(lines).strip() + "\n"


def load_config(path: Path) -> GuardianConfig:
    if not path.exists():
        return GuardianConfig.default()
    return GuardianConfig.from_dict(tomllib.loads(path.read_text(encoding="utf-8")))


def save_config(path: Path, config: GuardianConfig) -> None:
    path.write_text(dumps_toml(config), encoding="utf-8")
