"""Shared utilities for parsing LLM responses."""

from __future__ import annotations

import json

from .errors import MalformedResponseError


def _strip_code_fences(text: str) -> str:
    if not text.startswith("```"):
        return text
    lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
    return "\n".join(lines)


def parse_llm_json(raw: str) -> dict:
    """Parse the JSON object in an LLM response, handling fences and preamble.

    Tries in order:
    1. Strip markdown code fences, then json.loads
    2. Extract substring between first '{' and last '}', then json.loads

    Raises:
        MalformedResponseError: no JSON object could be recovered.
    """
    if not raw or not raw.strip():
        raise MalformedResponseError("Empty response", raw=raw)

    text = _strip_code_fences(raw.strip())

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
        start = text.find("{")
        end = text.rfind("}") + 1
        if start >= 0 and end > start:
            try:
                data = json.loads(text[start:end])
            except json.JSONDecodeError:
                pass

    if not isinstance(data, dict):
        raise MalformedResponseError("No JSON object in response", raw=raw)
    return data
