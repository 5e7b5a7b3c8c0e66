from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from guardian.agents.structured import parse_structured_response
from guardian.backends.base import AgentBackend, GenerationConfig
from guardian.errors import FixUnsupportedError
from guardian.models import Category, CodeUnit, Issue

LOGGER = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


class AnalysisAgent:
    """One analysis category backed by the reasoning service.

    Subclasses supply ``build_analysis_prompt`` and, when ``supports_fix`` is
    set, ``build_fix_prompt``. Responses must be a JSON object; anything else
    surfaces as ``AgentResponseError``.
    """

    category: Category
    name: str = "AnalysisAgent"
    supports_fix: bool = False
    max_tokens: int = 4096
    temperature: float = 0.3
    fallback_prompt: str = "You are a software analysis specialist. Respond only with JSON."

    def __init__(
        self,
        backend: AgentBackend,
        *,
        model: str | None = None,
        prompt_dir: Path | None = None,
    ) -> None:
        self.backend = backend
        self.model = model
        self.prompt_dir = prompt_dir
        self.system_prompt = self.fallback_prompt.strip()
        self.initialized = False

    def _load_system_prompt(self) -> str:
        if self.prompt_dir is None:
            return self.fallback_prompt.strip()
        prompt_path = self.prompt_dir / f"{self.category}.md"
        try:
            content = prompt_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return self.fallback_prompt.strip()
        return content or self.fallback_prompt.strip()

    async def initialize(self) -> None:
        self.system_prompt = self._load_system_prompt()
        self.initialized = True
        LOGGER.info("Initialized %s", self.name)

    async def shutdown(self) -> None:
        self.initialized = False
        LOGGER.info("Shut down %s", self.name)

    @staticmethod
    def code_block(unit: CodeUnit) -> str:
        return f"```{unit.language}\n{unit.code}\n```"

    def build_analysis_prompt(self, unit: CodeUnit) -> str:
        raise NotImplementedError

    def build_fix_prompt(self, unit: CodeUnit, issue: Issue) -> str:
        raise FixUnsupportedError(
            f"{self.name} cannot generate fixes", category=str(self.category)
        )

    def postprocess_analysis(self, unit: CodeUnit, payload: dict[str, Any]) -> dict[str, Any]:
        return payload

    async def request_json(
        self,
        prompt: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> dict[str, Any]:
        config = GenerationConfig(
            max_tokens=max_tokens or self.max_tokens,
            temperature=self.temperature if temperature is None else temperature,
            system_prompt=self.system_prompt,
            model=self.model,
        )
        raw = await self.backend.generate(prompt, config)
        return parse_structured_response(raw, category=str(self.category))

    def _stamp(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {**payload, "agent": self.name, "timestamp": _utcnow_iso()}

    async def analyze(self, unit: CodeUnit) -> dict[str, Any]:
        LOGGER.debug("%s analyzing %s", self.name, unit.filepath or "code snippet")
        payload = await self.request_json(self.build_analysis_prompt(unit))
        return self._stamp(self.postprocess_analysis(unit, payload))

    async def generate_fix(self, unit: CodeUnit, issue: Issue) -> dict[str, Any]:
        if not self.supports_fix:
            raise FixUnsupportedError(
                f"{self.name} cannot generate fixes", category=str(self.category)
            )
        LOGGER.debug("%s generating fix for issue %s", self.name, issue.id)
        payload = await self.request_json(self.build_fix_prompt(unit, issue))
        return self._stamp(payload)
