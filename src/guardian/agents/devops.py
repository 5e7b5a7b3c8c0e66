from __future__ import annotations

import json
from typing import Any

from guardian.agents.base import AnalysisAgent
from guardian.models import Category, CodeUnit


class DevOpsAgent(AnalysisAgent):
    category = Category.DEVOPS
    name = "DevOpsAgent"
    max_tokens = 8192
    temperature = 0.5
    fallback_prompt = """
You are a DevOps expert: CI/CD, deployment strategy, infrastructure as code,
monitoring, and deployment security. Respond only with the JSON object requested.
""".strip()

    def build_analysis_prompt(self, unit: CodeUnit) -> str:
        return (
            "Analyze this project for DevOps improvements.\n\n"
            f"Language: {unit.language}\n"
            f"Repository: {unit.repository or 'unknown'}\n"
            f"Context: {json.dumps(unit.context, ensure_ascii=False, default=str)}\n\n"
            f"Code sample:\n{self.code_block(unit)}\n\n"
            "Respond in JSON format:\n"
            '{"recommendations": [{"category": "ci-cd|deployment|infrastructure|'
            'monitoring|security", "priority": "high|medium|low", "description": "string", '
            '"implementation": "string"}], "score": 0, "summary": "string"}'
        )

    async def generate_pipeline(
        self,
        *,
        language: str,
        framework: str = "",
        platform: str = "github",
        deploy_target: str = "aws",
    ) -> dict[str, Any]:
        prompt = (
            "Create a production-ready CI/CD pipeline.\n\n"
            f"Language/Framework: {language}/{framework or 'none'}\n"
            f"Platform: {platform}\n"
            f"Deploy target: {deploy_target}\n\n"
            "Cover install, lint, security scanning, tests, build, container image, "
            "deployment per environment, rollback, and notifications.\n\n"
            "Respond in JSON format:\n"
            '{"pipelineConfig": "string", "platform": "string", "explanation": "string", '
            '"prerequisites": ["string"], "environmentVariables": [{"name": "string", '
            '"description": "string", "required": true}], "deploymentStrategy": "string"}'
        )
        return self._stamp(await self.request_json(prompt))

    async def generate_infrastructure(
        self,
        *,
        service: str,
        provider: str = "aws",
        tool: str = "terraform",
    ) -> dict[str, Any]:
        prompt = (
            f"Generate {tool} configuration for the service '{service}' on {provider}.\n"
            "Include encryption, IAM, high availability, monitoring, cost controls, "
            "and backups.\n\n"
            "Respond in JSON format:\n"
            '{"infrastructureCode": "string", "tool": "string", "provider": "string", '
            '"resources": ["string"], "estimatedMonthlyCost": "string", '
            '"securityFeatures": ["string"], "scalingStrategy": "string"}'
        )
        return self._stamp(await self.request_json(prompt))
