from __future__ import annotations

import asyncio
import json
import os
import tempfile
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from guardian.backends.base import (
    AgentBackend,
    BackendExecutionError,
    BackendProcessError,
    GenerationConfig,
)


class ClaudeCodeBackend(AgentBackend):
    """Runs prompts through the ``claude`` CLI in print mode.

    The CLI exposes neither a token limit nor a temperature; those fields of
    ``GenerationConfig`` are ignored here.
    """

    def __init__(self, binary: str = "claude", working_directory: Path | None = None) -> None:
        self.binary = binary
        self.working_directory = working_directory

    def build_command(self, prompt: str, config: GenerationConfig) -> list[str]:
        command = [self.binary, "-p", prompt, "--output-format", "stream-json", "--verbose"]
        if config.model:
            command.extend(["--model", config.model])
        return command

    @staticmethod
    def _extract_content(event: dict[str, Any]) -> str:
        if event.get("type") == "assistant":
            message = event.get("message")
            if isinstance(message, dict):
                event = message
        content = event.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            parts: list[str] = []
            for item in content:
                if isinstance(item, dict):
                    text = item.get("text")
                    if isinstance(text, str):
                        parts.append(text)
            return "".join(parts)
        delta = event.get("delta")
        if isinstance(delta, str):
            return delta
        return ""

    @staticmethod
    def _appears_partial_json(raw: str) -> bool:
        return raw.count("{") > raw.count("}") or raw.count("[") > raw.count("]")

    async def execute(self, prompt: str, config: GenerationConfig) -> AsyncIterator[str]:
        with tempfile.NamedTemporaryFile(mode="w", suffix=".md", encoding="utf-8") as temp_file:
            temp_file.write(config.system_prompt)
            temp_file.flush()

            env = os.environ.copy()
            env["CLAUDE_MD"] = temp_file.name

            command = self.build_command(prompt, config)
            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    cwd=str(self.working_directory) if self.working_directory else None,
                    env=env,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except FileNotFoundError as exc:
                raise BackendProcessError(
                    f"Claude binary not found: {self.binary}",
                    backend="claude",
                    retriable=False,
                ) from exc

            if process.stdout is None:
                raise BackendProcessError(
                    "Claude backend did not expose stdout.", backend="claude", retriable=False
                )

            try:
                parse_buffer = ""
                async for raw_line in process.stdout:
                    line = raw_line.decode("utf-8", errors="replace").strip()
                    if not line:
                        continue
                    candidate = f"{parse_buffer}{line}" if parse_buffer else line
                    try:
                        event = json.loads(candidate)
                        parse_buffer = ""
                    except json.JSONDecodeError:
                        if self._appears_partial_json(candidate):
                            parse_buffer = candidate
                            continue
                        parse_buffer = ""
                        yield line
                        continue

                    if isinstance(event, dict):
                        content = self._extract_content(event)
                        if content:
                            yield content

                if parse_buffer:
                    yield parse_buffer
            except asyncio.CancelledError:
                if process.returncode is None:
                    process.kill()
                raise

            return_code = await process.wait()
            stderr_output = ""
            if process.stderr is not None:
                stderr_output = (
                    (await process.stderr.read()).decode("utf-8", errors="replace").strip()
                )
            if return_code != 0:
                raise BackendExecutionError(
                    f"Claude backend failed with exit code {return_code}: {stderr_output}",
                    backend="claude",
                    exit_code=return_code,
                    retriable=True,
                )
