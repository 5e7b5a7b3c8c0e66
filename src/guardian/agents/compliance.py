from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from guardian.agents.base import AnalysisAgent
from guardian.models import Category, CodeUnit

DEFAULT_STANDARDS = ("SOC2", "GDPR")


class ComplianceAgent(AnalysisAgent):
    category = Category.COMPLIANCE
    name = "ComplianceAgent"
    fallback_prompt = """
You are a compliance auditor checking source code against regulatory and
industry standards (SOC2, GDPR, HIPAA, PCI-DSS).
Respond only with the JSON object requested.
""".strip()

    def _standards(self, unit: CodeUnit) -> list[str]:
        requested = unit.context.get("standards")
        if isinstance(requested, (list, tuple)) and requested:
            return [str(item) for item in requested]
        return list(DEFAULT_STANDARDS)

    def _compliance_prompt(self, unit: CodeUnit, standards: Sequence[str]) -> str:
        return (
            f"Check the following {unit.language} code against: {', '.join(standards)}.\n\n"
            f"{self.code_block(unit)}\n\n"
            "Respond in JSON format:\n"
            '{"compliant": true, "standards": ["string"], "violations": [{"standard": '
            '"string", "type": "string", "severity": "high|medium|low", '
            '"description": "string", "remediation": "string"}], "score": 0, '
            '"summary": "string"}'
        )

    def build_analysis_prompt(self, unit: CodeUnit) -> str:
        return self._compliance_prompt(unit, self._standards(unit))

    async def check_compliance(
        self, unit: CodeUnit, standards: Sequence[str] | None = None
    ) -> dict[str, Any]:
        selected = list(standards) if standards else self._standards(unit)
        payload = await self.request_json(self._compliance_prompt(unit, selected))
        payload.setdefault("standards", selected)
        payload.setdefault("violations", [])
        return self._stamp(payload)
