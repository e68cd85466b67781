"""JSONL loader for span evaluation sets.

Each line is one test case::

    {"text": "...", "predicted": [...], "ground_truth": [...]}

``groundTruth`` is accepted as an alias of ``ground_truth``.  Optional
``success`` (reply parsed) and ``flagged`` / ``expected`` (adversarial
probes) keys pass through untouched.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

FIELD_ALIASES: dict[str, str] = {
    "groundTruth": "ground_truth",
    "gold": "ground_truth",
    "isAdversarial": "flagged",
}


def _normalize_record(record: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in record.items():
        out.setdefault(FIELD_ALIASES.get(key, key), value)
    out.setdefault("predicted", [])
    out.setdefault("ground_truth", [])
    return out


def load_jsonl(path: str | Path) -> list[dict[str, Any]]:
    """Load a JSONL evaluation set.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If a line is not a JSON object, span lists are malformed, or the file is empty.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Dataset not found: {path}")

    cases: list[dict[str, Any]] = []
    with open(path, encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, 1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"Invalid JSON on line {lineno} of {path}: {exc}") from exc
            if not isinstance(record, dict):
                raise ValueError(f"Line {lineno} of {path} is not a JSON object")
            case = _normalize_record(record)
            for key in ("predicted", "ground_truth"):
                if not isinstance(case[key], list):
                    raise ValueError(f"'{key}' on line {lineno} of {path} must be a list")
            cases.append(case)

    if not cases:
        raise ValueError(f"No test cases found in {path}")
    return cases
