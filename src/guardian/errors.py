from __future__ import annotations


class GuardianError(Exception):
    """Base class for errors raised by the orchestration layer."""


class ValidationError(GuardianError):
    """Raised before dispatch when a request cannot be accepted."""


class LifecycleError(GuardianError):
    """Raised when the orchestrator cannot reach or leave a lifecycle state."""


class NotReadyError(LifecycleError):
    """Raised when work is submitted to an orchestrator that is not ready."""


class AgentError(GuardianError):
    def __init__(self, message: str, *, category: str | None = None) -> None:
        super().__init__(message)
        self.category = category


class AgentResponseError(AgentError):
    """Raised when an agent receives output it cannot parse into a payload."""


class FixUnsupportedError(AgentError):
    """Raised when fix generation is requested from an agent without that capability."""


class AgentUnavailableError(AgentError):
    """Raised when an operation needs an agent that is not registered."""
