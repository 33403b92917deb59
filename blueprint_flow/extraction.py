"""Recover a JSON object from free-form model output.

Research models wrap their answers in prose, code fences or citations
markers. The extractor tries three strategies in order and returns the first
candidate that parses to a JSON object or array:

1. the trimmed text as-is,
2. the body of the first fenced code block (with or without a ``json`` tag),
3. a balanced-brace scan starting at the first ``{``.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict

from .errors import JSONExtractionError

_CODE_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def _parses_to_object(candidate: str) -> bool:
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return False
    return isinstance(parsed, (dict, list))


def _balanced_span(text: str) -> str | None:
    """Return the substring from the first ``{`` to its matching ``}``.

    Braces inside string literals are ignored and backslash escapes are
    honoured, so ``{"a": "}"}`` yields the whole object.
    """

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
            continue
        if char == "\\" and in_string:
            escaped = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def extract_json(content: str) -> str | None:
    """Return the first JSON substring found in *content*, or ``None``."""

    if not content:
        return None

    trimmed = content.strip()
    if _parses_to_object(trimmed):
        return trimmed

    match = _CODE_BLOCK_PATTERN.search(content)
    if match:
        block = match.group(1).strip()
        if _parses_to_object(block):
            return block

    span = _balanced_span(content)
    if span is not None and _parses_to_object(span):
        return span

    return None


def parse_json_object(content: str, section: str) -> Dict[str, Any]:
    """Extract and decode the JSON object of a section response.

    Raises :class:`JSONExtractionError` naming *section* when nothing usable
    is found or the payload is not an object.
    """

    extracted = extract_json(content)
    if extracted is None:
        raise JSONExtractionError(section, content or "")
    parsed = json.loads(extracted)
    if not isinstance(parsed, dict):
        raise JSONExtractionError(section, extracted)
    return parsed
