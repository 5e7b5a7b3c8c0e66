from guardian.agents.base import AnalysisAgent
from guardian.agents.compliance import ComplianceAgent
from guardian.agents.devops import DevOpsAgent
from guardian.agents.documentation import DocumentationAgent
from guardian.agents.learning import LearningAgent
from guardian.agents.quality import QualityAgent
from guardian.agents.security import SecurityAgent
from guardian.agents.structured import parse_structured_response

__all__ = [
    "AGENT_CLASSES",
    "AnalysisAgent",
    "ComplianceAgent",
    "DevOpsAgent",
    "DocumentationAgent",
    "LearningAgent",
    "QualityAgent",
    "SecurityAgent",
    "parse_structured_response",
]

AGENT_CLASSES: tuple[type[AnalysisAgent], ...] = (
    SecurityAgent,
    QualityAgent,
    DevOpsAgent,
    DocumentationAgent,
    ComplianceAgent,
    LearningAgent,
)
