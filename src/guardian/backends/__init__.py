from guardian.backends.base import (
    AgentBackend,
    BackendExecutionError,
    BackendProcessError,
    BackendTimeoutError,
    GenerationConfig,
)
from guardian.backends.claude import ClaudeCodeBackend
from guardian.backends.openai_sdk import OpenAIBackend
from guardian.backends.resilient import ResilientBackend, RetryPolicy

__all__ = [
    "AgentBackend",
    "BackendExecutionError",
    "BackendProcessError",
    "BackendTimeoutError",
    "ClaudeCodeBackend",
    "GenerationConfig",
    "OpenAIBackend",
    "ResilientBackend",
    "RetryPolicy",
]
