"""Parsing of schema-tagged JSON text returned by the reasoning backend."""

from __future__ import annotations

import json
import re
from typing import Any

from guardian.errors import AgentResponseError

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n(.*?)```", re.IGNORECASE | re.DOTALL)


def parse_structured_response(raw_response: str, *, category: str | None = None) -> dict[str, Any]:
    """Parse a model response into a JSON object.

    Accepts bare JSON, JSON wrapped in a Markdown fence, or a JSON object
    embedded in surrounding prose. Anything else raises ``AgentResponseError``.
    """
    text = _normalise_json_string(raw_response.strip())
    if not text:
        raise AgentResponseError("Model returned an empty response.", category=category)

    candidates = [text]
    fenced = _strip_code_fence(text)
    if fenced is not None and fenced not in candidates:
        candidates.append(fenced)
    embedded = _extract_balanced_object(fenced or text)
    if embedded is not None and embedded not in candidates:
        candidates.append(embedded)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    snippet = text[:200]
    raise AgentResponseError(f"Model returned invalid JSON: {snippet}", category=category)


def _strip_code_fence(payload: str) -> str | None:
    match = _FENCE_PATTERN.search(payload)
    if match is None:
        return None
    return match.group(1).strip()


def _normalise_json_string(payload: str) -> str:
    """Normalise common non-JSON characters emitted by models."""
    translation = {
        0x201C: '"',
        0x201D: '"',
        0x00A0: " ",
        0xFEFF: "",
    }
    return payload.translate(str.maketrans(translation))


def _strip_trailing_commas(payload: str) -> str:
    return re.sub(r",(\s*[}\]])", r"\1", payload)


def _extract_balanced_object(payload: str) -> str | None:
    opening_idx = payload.find("{")
    if opening_idx == -1:
        return None
    depth = 0
    in_string = False
    escaped = False
    for index in range(opening_idx, len(payload)):
        char = payload[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return _strip_trailing_commas(payload[opening_idx : index + 1])
    return None
