"""Utilities for parsing model replies that are almost-JSON."""

from __future__ import annotations

import ast
import json
import re
from typing import Any

from json_repair import repair_json

from ..errors import SchemaInvalid

_THINK_RE = re.compile(r"<think>.*?</think>", re.IGNORECASE | re.DOTALL)
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)\s*```")


def strip_reasoning_and_fences(text: str) -> str:
    """Remove <think> blocks and markdown fences; return the raw payload."""
    if not text:
        return ""
    text = _THINK_RE.sub("", text)
    m = _FENCE_RE.search(text)
    if m:
        return m.group(1).strip()
    return text.strip()


def extract_outer_json(text: str) -> str | None:
    """Return the first well-balanced top-level object or array, if any."""
    start = next((i for i, ch in enumerate(text) if ch in "{["), None)
    if start is None:
        return None
    stack: list[str] = []
    in_string = False
    escaped = False
    for j in range(start, len(text)):
        ch = text[j]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]" and stack:
            opener = stack.pop()
            if (opener == "{") != (ch == "}"):
                return None
            if not stack:
                return text[start:j + 1]
    return text[start:]


def _try_parse_candidate(text: str) -> Any | None:
    """Try JSON parse first, then safe Python literal parse."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        pass
    try:
        return ast.literal_eval(text)
    except (SyntaxError, ValueError):
        return None


def _try_repair(text: str) -> Any | None:
    repaired = repair_json(text, return_objects=True)
    if isinstance(repaired, (dict, list)) and repaired:
        return repaired
    return None


def parse_json_like(raw: str) -> Any | None:
    """Parse JSON-like model output into Python objects.

    Handles:
    - strict JSON
    - fenced JSON blocks and ``<think>`` preambles
    - Python literal dict/list strings with single quotes / True / False / None
    - prose-wrapped object/array outputs by extracting the balanced block
    - truncated or slightly malformed JSON, through ``json_repair``
    """
    text = strip_reasoning_and_fences(raw or "")
    if not text:
        return None

    candidates: list[str] = [text]
    block = extract_outer_json(text)
    if block and block not in candidates:
        candidates.append(block)

    for candidate in candidates:
        parsed = _try_parse_candidate(candidate)
        if parsed is not None:
            return parsed
    return _try_repair(block or text)


def parse_span_payload(raw: str) -> dict[str, Any]:
    """Parse a labeling reply into ``{"spans": [...], ...}``.

    A bare list is treated as the span list.  Raises ``SchemaInvalid``
    when nothing usable can be recovered.
    """
    parsed = parse_json_like(raw)
    if isinstance(parsed, list):
        parsed = {"spans": parsed}
    if not isinstance(parsed, dict):
        raise SchemaInvalid("Model reply is not a JSON object", ["Response is not valid JSON"])
    spans = parsed.get("spans")
    if spans is None and parsed.get("isAdversarial") is not True and parsed.get("is_adversarial") is not True:
        raise SchemaInvalid("Model reply has no spans array", ['Missing required field "spans"'])
    if spans is not None and not isinstance(spans, list):
        raise SchemaInvalid("Model reply spans is not an array", ['Field "spans" must be an array'])
    return parsed
