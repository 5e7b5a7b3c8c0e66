from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

from openai import OpenAI, OpenAIError

from guardian.backends.base import (
    AgentBackend,
    BackendExecutionError,
    BackendProcessError,
    GenerationConfig,
)


class OpenAIBackend(AgentBackend):
    """Responses API backend; the blocking SDK call runs in a worker thread."""

    def __init__(self, *, model: str = "gpt-5", client: Any | None = None) -> None:
        self.model = model
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                self._client = OpenAI()
            except OpenAIError as exc:
                raise BackendProcessError(
                    f"OpenAI client unavailable: {exc}",
                    backend="openai",
                    retriable=False,
                ) from exc
        return self._client

    @staticmethod
    def _extract_text(payload: Any) -> str:
        if payload is None:
            return ""
        output_text = getattr(payload, "output_text", None)
        if isinstance(output_text, str):
            return output_text
        if isinstance(payload, dict):
            value = payload.get("output_text")
            if isinstance(value, str):
                return value
        return str(output_text or "")

    async def execute(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        client = self._get_client()
        model_name = config.model.strip() if config.model and config.model.strip() else self.model

        messages = []
        if config.system_prompt:
            messages.append({"role": "system", "content": config.system_prompt})
        messages.append({"role": "user", "content": prompt})

        def _request() -> Any:
            return client.responses.create(
                model=model_name,
                input=messages,
                max_output_tokens=config.max_tokens,
                temperature=config.temperature,
            )

        try:
            payload = await asyncio.to_thread(_request)
        except OpenAIError as exc:
            raise BackendExecutionError(
                f"OpenAI request failed: {exc}",
                backend="openai",
                retriable=True,
            ) from exc

        content = self._extract_text(payload).strip()
        if content:
            yield content
