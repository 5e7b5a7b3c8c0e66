from __future__ import annotations

from typing import Any

from guardian.agents.base import AnalysisAgent
from guardian.models import Category, CodeUnit


class DocumentationAgent(AnalysisAgent):
    category = Category.DOCUMENTATION
    name = "DocumentationAgent"
    fallback_prompt = """
You are a technical writer assessing and producing source documentation.
Respond only with the JSON object requested.
""".strip()

    def build_analysis_prompt(self, unit: CodeUnit) -> str:
        return (
            f"Assess the documentation of the following {unit.language} code: "
            "docstrings or doc comments, public API coverage, and README needs.\n\n"
            f"{self.code_block(unit)}\n\n"
            "Respond in JSON format:\n"
            '{"score": 0, "coverage": 0, "suggestions": ["string"], "summary": "string"}'
        )

    async def generate_documentation(
        self, unit: CodeUnit, *, style: str = "markdown"
    ) -> dict[str, Any]:
        prompt = (
            f"Write {style} reference documentation for the following {unit.language} code"
            f" ({unit.filepath or 'snippet'}).\n\n"
            f"{self.code_block(unit)}\n\n"
            "Respond in JSON format:\n"
            '{"documentation": "string", "sections": ["string"], "examples": ["string"]}'
        )
        return self._stamp(await self.request_json(prompt))
