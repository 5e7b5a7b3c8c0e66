from __future__ import annotations

from guardian.agents.base import AnalysisAgent
from guardian.models import Category, CodeUnit, Issue


class QualityAgent(AnalysisAgent):
    category = Category.QUALITY
    name = "QualityAgent"
    supports_fix = True
    temperature = 0.5
    fallback_prompt = """
You are a senior software engineer conducting a code quality review:
complexity, maintainability, performance, best practices, and code smells.
Respond only with the JSON object requested.
""".strip()

    def build_analysis_prompt(self, unit: CodeUnit) -> str:
        return (
            f"Review the quality of the following {unit.language} code.\n\n"
            f"{self.code_block(unit)}\n\n"
            "Respond in JSON format:\n"
            '{"issues": [{"category": "complexity|maintainability|performance|'
            'best-practices|code-smell", "type": "string", "severity": "high|medium|low", '
            '"line": 0, "description": "string", "suggestion": "string"}], '
            '"metrics": {"cyclomaticComplexity": 0, "cognitiveComplexity": 0, '
            '"maintainabilityIndex": 0, "linesOfCode": 0, "commentRatio": 0}, '
            '"score": 0, "summary": "string", "recommendations": ["string"]}\n'
            "score is 0-100 where 100 means excellent quality."
        )

    def build_fix_prompt(self, unit: CodeUnit, issue: Issue) -> str:
        return (
            "Refactor the code to address this issue while keeping behaviour unchanged.\n\n"
            f"Original code:\n{self.code_block(unit)}\n\n"
            f"Issue: {issue.type}\n"
            f"Category: {issue.extra.get('subcategory', issue.category)}\n"
            f"Description: {issue.description}\n\n"
            "Respond in JSON format:\n"
            '{"improvedCode": "string", "explanation": "string", '
            '"improvements": ["string"], "tradeoffs": ["string"]}'
        )
