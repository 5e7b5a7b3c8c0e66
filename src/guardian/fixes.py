from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from guardian.agents.base import AnalysisAgent
from guardian.models import (
    Category,
    CodeUnit,
    FixOutcome,
    FixReport,
    Issue,
    ResultStatus,
    ScanReport,
)

LOGGER = logging.getLogger(__name__)

FIX_UNAVAILABLE_MESSAGE = "fix capability unavailable"
ISSUE_PAYLOAD_KEYS: dict[Category, str] = {
    Category.SECURITY: "vulnerabilities",
    Category.QUALITY: "issues",
    Category.COMPLIANCE: "violations",
}


def extract_issues(report: ScanReport) -> list[Issue]:
    """Collect fixable findings from a scan report's category payloads."""
    issues: list[Issue] = []
    for category, result in report.per_category.items():
        key = ISSUE_PAYLOAD_KEYS.get(category)
        if key is None or not result.ok:
            continue
        items = result.payload.get(key)
        if not isinstance(items, list):
            continue
        for index, item in enumerate(items, start=1):
            if not isinstance(item, dict):
                continue
            data: dict[str, Any] = dict(item)
            if "category" in data:
                # Quality findings carry their own sub-category; keep it as detail.
                data["subcategory"] = data.pop("category")
            data.setdefault("id", f"{category}-{index}")
            data["category"] = str(category)
            issues.append(Issue.from_dict(data))
    return issues


class FixPipeline:
    def __init__(
        self,
        agents: Mapping[Category, AnalysisAgent],
        *,
        max_parallel: int = 1,
        call_timeout_seconds: float = 120.0,
    ) -> None:
        self.agents = agents
        self.max_parallel = max(1, int(max_parallel))
        self.call_timeout_seconds = call_timeout_seconds

    def _resolve_agent(self, issue: Issue) -> AnalysisAgent | None:
        category = Category.parse(issue.category)
        if category is None:
            return None
        agent = self.agents.get(category)
        if agent is None or not agent.supports_fix:
            return None
        return agent

    @staticmethod
    def _failure(issue: Issue, message: str) -> FixOutcome:
        return FixOutcome(
            issue_id=issue.id,
            status=ResultStatus.ERROR,
            error=message,
            issue_type=issue.type,
            severity=issue.severity,
        )

    async def _fix_one(
        self, unit: CodeUnit, issue: Issue, semaphore: asyncio.Semaphore
    ) -> FixOutcome:
        agent = self._resolve_agent(issue)
        if agent is None:
            LOGGER.warning(
                "Skipping issue %s: no fix-capable agent for category %r",
                issue.id,
                issue.category,
            )
            return self._failure(issue, FIX_UNAVAILABLE_MESSAGE)

        async with semaphore:
            try:
                fix = await asyncio.wait_for(
                    agent.generate_fix(unit, issue), timeout=self.call_timeout_seconds
                )
            except TimeoutError:
                LOGGER.error("Fix for issue %s timed out", issue.id)
                return self._failure(
                    issue, f"fix generation timed out after {self.call_timeout_seconds:.1f}s"
                )
            except Exception as exc:
                LOGGER.error("Failed to generate fix for issue %s: %s", issue.id, exc)
                return self._failure(issue, str(exc) or type(exc).__name__)

        if not isinstance(fix, Mapping):
            return self._failure(
                issue, f"agent returned {type(fix).__name__}, expected an object"
            )
        return FixOutcome(
            issue_id=issue.id,
            status=ResultStatus.SUCCESS,
            fix=dict(fix),
            issue_type=issue.type,
            severity=issue.severity,
        )

    async def execute(self, unit: CodeUnit, issues: Sequence[Issue]) -> FixReport:
        unit.validate()
        LOGGER.info("Executing auto-fix for %d issues", len(issues))
        semaphore = asyncio.Semaphore(self.max_parallel)
        # gather preserves argument order, so outcomes line up with the input issues.
        outcomes = await asyncio.gather(
            *(self._fix_one(unit, issue, semaphore) for issue in issues)
        )
        report = FixReport(outcomes=tuple(outcomes), filepath=unit.filepath)
        LOGGER.info("Auto-fix produced %d/%d fixes", report.fixed_count, report.total_issues)
        return report
