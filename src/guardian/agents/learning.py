from __future__ import annotations

from guardian.agents.base import AnalysisAgent
from guardian.models import Category, CodeUnit


class LearningAgent(AnalysisAgent):
    category = Category.LEARNING
    name = "LearningAgent"
    temperature = 0.5
    fallback_prompt = """
You are a mentor reviewing code to suggest what its author should learn next.
Respond only with the JSON object requested.
""".strip()

    def build_analysis_prompt(self, unit: CodeUnit) -> str:
        return (
            f"Identify learning opportunities in the following {unit.language} code.\n\n"
            f"{self.code_block(unit)}\n\n"
            "Respond in JSON format:\n"
            '{"score": 0, "learningOpportunities": [{"topic": "string", '
            '"reason": "string", "resources": ["string"]}], "summary": "string"}'
        )
