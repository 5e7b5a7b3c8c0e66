from __future__ import annotations

import re
from typing import Any

from guardian.agents.base import AnalysisAgent
from guardian.models import Category, CodeUnit, Issue

SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"(api[_-]?key|apikey)\s*=\s*['\"][^'\"]+['\"]", re.IGNORECASE), "API Key"),
    (re.compile(r"(password|passwd|pwd)\s*=\s*['\"][^'\"]+['\"]", re.IGNORECASE), "Password"),
    (re.compile(r"(secret|token)\s*=\s*['\"][^'\"]+['\"]", re.IGNORECASE), "Secret/Token"),
    (re.compile(r"AKIA[0-9A-Z]{16}"), "AWS Access Key"),
    (re.compile(r"sk_live_[0-9a-zA-Z]{24,}"), "Stripe Live Key"),
    (re.compile(r"ghp_[0-9a-zA-Z]{36}"), "GitHub Personal Access Token"),
    (re.compile(r"-----BEGIN (RSA |EC )?PRIVATE KEY-----"), "Private Key"),
]
DEPENDENCY_AUDIT_LANGUAGES = {"javascript", "typescript", "python"}
DEPENDENCY_MANIFESTS = ("package.json", "requirements.txt", "pyproject.toml")


class SecurityAgent(AnalysisAgent):
    category = Category.SECURITY
    name = "SecurityAgent"
    supports_fix = True
    temperature = 0.3
    fallback_prompt = """
You are a security expert reviewing source code for vulnerabilities
(OWASP Top 10, injection, secrets, unsafe deserialization, SSRF, path traversal).
Respond only with the JSON object requested.
""".strip()

    def build_analysis_prompt(self, unit: CodeUnit) -> str:
        return (
            f"Analyze the following {unit.language} code for security vulnerabilities.\n\n"
            f"{self.code_block(unit)}\n\n"
            f"Filepath: {unit.filepath or 'unknown'}\n"
            f"Repository: {unit.repository or 'unknown'}\n\n"
            "Respond in JSON format:\n"
            '{"vulnerabilities": [{"type": "string", "severity": "critical|high|medium|low", '
            '"line": 0, "description": "string", "cwe": "string", "owasp": "string", '
            '"exploitation": "string", "remediation": "string", "codeSnippet": "string"}], '
            '"score": 0, "summary": "string"}\n'
            "score is 0-100 where 100 means no security findings."
        )

    def build_fix_prompt(self, unit: CodeUnit, issue: Issue) -> str:
        return (
            "Fix the following vulnerability.\n\n"
            f"Original code:\n{self.code_block(unit)}\n\n"
            f"Vulnerability: {issue.type}\n"
            f"Severity: {issue.severity}\n"
            f"Description: {issue.description}\n\n"
            "Respond in JSON format:\n"
            '{"fixedCode": "string", "explanation": "string", '
            '"additionalConsiderations": ["string"], "testCode": "string"}'
        )

    @staticmethod
    def find_hardcoded_secrets(code: str) -> list[dict[str, Any]]:
        findings: list[dict[str, Any]] = []
        for pattern, secret_type in SECRET_PATTERNS:
            match = pattern.search(code)
            if match is None:
                continue
            findings.append(
                {
                    "type": "Hardcoded Secret",
                    "severity": "critical",
                    "description": f"Found hardcoded {secret_type}",
                    "cwe": "CWE-798",
                    "owasp": "A05:2021-Security Misconfiguration",
                    "exploitation": (
                        f"Attacker can extract {secret_type} from source code or binaries"
                    ),
                    "remediation": (
                        f"Move {secret_type} to environment variables or a secret manager"
                    ),
                    "codeSnippet": match.group(0)[:50] + "...",
                }
            )
        return findings

    @staticmethod
    def dependency_advisory(unit: CodeUnit) -> dict[str, Any] | None:
        mentions_manifest = any(name in unit.code for name in DEPENDENCY_MANIFESTS)
        if not mentions_manifest and unit.language.lower() not in DEPENDENCY_AUDIT_LANGUAGES:
            return None
        return {
            "type": "Dependency Check Required",
            "severity": "medium",
            "description": "Dependencies should be scanned for CVE vulnerabilities",
            "cwe": "CWE-1035",
            "owasp": "A06:2021-Vulnerable and Outdated Components",
            "exploitation": "Vulnerable dependencies can be exploited if not updated",
            "remediation": "Run `npm audit` or `pip-audit` and update vulnerable packages",
        }

    def postprocess_analysis(self, unit: CodeUnit, payload: dict[str, Any]) -> dict[str, Any]:
        vulnerabilities = payload.get("vulnerabilities")
        if not isinstance(vulnerabilities, list):
            vulnerabilities = []
        vulnerabilities = [*vulnerabilities, *self.find_hardcoded_secrets(unit.code)]
        advisory = self.dependency_advisory(unit)
        if advisory is not None:
            vulnerabilities.append(advisory)
        return {**payload, "vulnerabilities": vulnerabilities}
