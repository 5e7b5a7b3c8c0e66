from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from guardian.errors import AgentResponseError, ValidationError


def _utcnow_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


class Category(StrEnum):
    SECURITY = "security"
    QUALITY = "quality"
    DEVOPS = "devops"
    DOCUMENTATION = "documentation"
    COMPLIANCE = "compliance"
    LEARNING = "learning"

    @classmethod
    def parse(cls, value: object) -> Category | None:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class ResultStatus(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class CodeUnit:
    code: str
    language: str
    filepath: str | None = None
    repository: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        if not isinstance(self.code, str) or not self.code.strip():
            raise ValidationError("Code unit must contain non-empty source text.")
        if not isinstance(self.language, str) or not self.language.strip():
            raise ValidationError("Code unit must declare a language.")
        if not isinstance(self.context, Mapping):
            raise ValidationError("Code unit context must be a mapping.")


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    category: Category
    status: ResultStatus
    score: float | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    duration_ms: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    @classmethod
    def failure(cls, category: Category, message: str, *, duration_ms: int = 0) -> AnalysisResult:
        return cls(
            category=category,
            status=ResultStatus.ERROR,
            duration_ms=duration_ms,
            error=message,
        )

    @classmethod
    def from_output(cls, category: Category, output: Any, *, duration_ms: int) -> AnalysisResult:
        """Validate raw agent output and wrap it as a successful result.

        The agent's schema is opaque apart from ``score``; everything else is
        kept as payload. Output that is not a mapping, or carries a score that is
        not a number in [0, 100], is treated as malformed.
        """
        if not isinstance(output, Mapping):
            raise AgentResponseError(
                f"{category} agent returned {type(output).__name__}, expected an object",
                category=str(category),
            )
        payload = dict(output)
        raw_score = payload.pop("score", None)
        score: float | None = None
        if raw_score is not None:
            if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
                raise AgentResponseError(
                    f"{category} agent returned non-numeric score {raw_score!r}",
                    category=str(category),
                )
            if not math.isfinite(raw_score) or not 0 <= raw_score <= 100:
                raise AgentResponseError(
                    f"{category} agent returned score {raw_score!r} outside 0-100",
                    category=str(category),
                )
            score = raw_score
        return cls(
            category=category,
            status=ResultStatus.SUCCESS,
            score=score,
            payload=payload,
            duration_ms=duration_ms,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "category": str(self.category),
            "status": str(self.status),
            "duration_ms": self.duration_ms,
        }
        if self.score is not None:
            data["score"] = self.score
        if self.payload:
            data["payload"] = self.payload
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True, slots=True)
class ScanReport:
    language: str
    per_category: dict[Category, AnalysisResult]
    overall_score: int
    filepath: str | None = None
    repository: str | None = None
    rejected_categories: tuple[str, ...] = ()
    cancelled: bool = False
    timestamp: str = field(default_factory=_utcnow_iso)

    @property
    def succeeded(self) -> list[Category]:
        return [category for category, result in self.per_category.items() if result.ok]

    @property
    def failed(self) -> list[Category]:
        return [category for category, result in self.per_category.items() if not result.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "filepath": self.filepath,
            "language": self.language,
            "repository": self.repository,
            "overall_score": self.overall_score,
            "cancelled": self.cancelled,
            "rejected_categories": list(self.rejected_categories),
            "categories": {
                str(category): result.to_dict()
                for category, result in self.per_category.items()
            },
        }


@dataclass(frozen=True, slots=True)
class Issue:
    id: str
    category: str
    type: str = ""
    severity: str = ""
    description: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Issue:
        known = {"id", "category", "agentType", "type", "severity", "description"}
        category = data.get("category", data.get("agentType", ""))
        return cls(
            id=str(data.get("id", "")),
            category=str(category or ""),
            type=str(data.get("type", "") or ""),
            severity=str(data.get("severity", "") or ""),
            description=str(data.get("description", "") or ""),
            extra={key: value for key, value in data.items() if key not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "type": self.type,
            "severity": self.severity,
            "description": self.description,
            **self.extra,
        }


@dataclass(frozen=True, slots=True)
class FixOutcome:
    issue_id: str
    status: ResultStatus
    fix: dict[str, Any] | None = None
    error: str | None = None
    issue_type: str = ""
    severity: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "issue_id": self.issue_id,
            "status": str(self.status),
            "type": self.issue_type,
            "severity": self.severity,
        }
        if self.fix is not None:
            data["fix"] = self.fix
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True, slots=True)
class FixReport:
    outcomes: tuple[FixOutcome, ...]
    filepath: str | None = None
    timestamp: str = field(default_factory=_utcnow_iso)

    @property
    def total_issues(self) -> int:
        return len(self.outcomes)

    @property
    def fixed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.ok)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "filepath": self.filepath,
            "total_issues": self.total_issues,
            "fixed_count": self.fixed_count,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }
