from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass


class BackendExecutionError(RuntimeError):
    """Raised when a backend request fails."""

    def __init__(
        self,
        message: str,
        *,
        backend: str | None = None,
        exit_code: int | None = None,
        retriable: bool = True,
    ) -> None:
        super().__init__(message)
        self.backend = backend
        self.exit_code = exit_code
        self.retriable = retriable


class BackendTimeoutError(BackendExecutionError):
    """Raised when backend execution exceeds configured timeout."""


class BackendProcessError(BackendExecutionError):
    """Raised when backend process lifecycle fails."""


@dataclass(frozen=True, slots=True)
class GenerationConfig:
    max_tokens: int = 4096
    temperature: float = 0.3
    system_prompt: str = ""
    model: str | None = None


class AgentBackend(ABC):
    @abstractmethod
    def execute(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        """Send a prompt and stream textual chunks of the response."""

    async def generate(self, prompt: str, config: GenerationConfig) -> str:
        chunks: list[str] = []
        async for chunk in self.execute(prompt, config):
            chunks.append(chunk)
        return "".join(chunks).strip()
