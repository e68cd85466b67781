"""Structural validation of candidate span sets.

Attempt 1 is strict: any unlocatable span, unknown category or over-long
non-technical span is an error and fails the attempt.  Attempt 2 is lenient:
the same problems become notes and the offending spans are dropped or
relabeled.  Both modes relocate every span through the position resolver,
dedupe, resolve overlaps, and apply the policy's confidence floor and span
cap.  An unknown attribute under a known category folds into that
category in both modes.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from ..models import LabelMeta, LabelResult, Span, SpanSource, ValidationPolicy
from ..position import PositionResolver
from ..taxonomy import category_of, is_high_signal, is_valid_category, resolve_category
from .models import ValidationOutcome

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.7
DEFAULT_ROLE = "subject.identity"
STRICT_ATTEMPT = 1


def _as_mapping(raw: Any) -> Mapping[str, Any] | None:
    if isinstance(raw, Span):
        return raw.model_dump()
    if isinstance(raw, Mapping):
        return raw
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_confidence(value: Any) -> float:
    try:
        conf = float(value)
    except (TypeError, ValueError):
        return DEFAULT_CONFIDENCE
    if conf != conf:  # NaN
        return DEFAULT_CONFIDENCE
    return min(1.0, max(0.0, conf))


def _resolve_overlaps(spans: list[Span], notes: list[str]) -> list[Span]:
    kept: list[Span] = []
    for span in spans:
        if kept and kept[-1].overlaps(span):
            prev = kept[-1]
            winner = span if span.confidence > prev.confidence else prev
            loser = prev if winner is span else span
            notes.append(f'Overlap between "{prev.text}" and "{span.text}" resolved; dropped "{loser.text}"')
            kept[-1] = winner
            continue
        kept.append(span)
    return kept


def validate_spans(
    spans: Iterable[Any],
    text: str,
    policy: ValidationPolicy | None = None,
    *,
    attempt: int = STRICT_ATTEMPT,
    resolver: PositionResolver | None = None,
    meta: LabelMeta | Mapping[str, Any] | None = None,
    source: SpanSource = "llm",
    is_adversarial: bool = False,
    analysis_trace: str | None = None,
) -> ValidationOutcome:
    """Validate raw spans against *text* and *policy*.

    Returns an outcome with ``ok=False`` and the error list when strict
    validation fails; otherwise ``result`` holds the sanitized ``LabelResult``.
    """
    policy = policy or ValidationPolicy()
    resolver = resolver or PositionResolver()
    lenient = attempt > STRICT_ATTEMPT
    if isinstance(meta, Mapping):
        meta = LabelMeta.model_validate(dict(meta))
    meta = meta or LabelMeta()

    errors: list[str] = []
    notes: list[str] = []
    sanitized: list[Span] = []

    def problem(message: str) -> None:
        (notes if lenient else errors).append(message)

    for idx, raw in enumerate(spans or []):
        label = f"Span {idx}"
        data = _as_mapping(raw)
        if data is None:
            problem(f"{label} is not an object")
            continue

        span_text = data.get("text")
        if not isinstance(span_text, str) or not span_text.strip():
            problem(f"{label} missing text")
            continue

        claimed_start = _as_int(data.get("start"))
        claimed_end = _as_int(data.get("end"))
        match = resolver.find_best_match(text, span_text, claimed_start or 0)
        if match is None:
            if lenient:
                notes.append(f'{label} text "{span_text}" not found in source; dropped')
            else:
                errors.append(f'{label} text "{span_text}" not found in source')
            continue
        if claimed_start is not None and (claimed_start, claimed_end) != (match.start, match.end):
            notes.append(
                f"{label} indices auto-adjusted from {claimed_start}-{claimed_end} "
                f"to {match.start}-{match.end}"
            )

        raw_role = data.get("role")
        role = resolve_category(raw_role if isinstance(raw_role, str) else "")
        if not is_valid_category(role):
            parent = category_of(role)
            if is_valid_category(parent):
                notes.append(f'{label} role "{raw_role}" folded into parent "{parent}"')
                role = parent
            elif not lenient:
                errors.append(f'{label} has invalid role "{raw_role}"')
                continue
            else:
                notes.append(f'{label} role "{raw_role}" replaced with "{DEFAULT_ROLE}"')
                role = DEFAULT_ROLE

        if policy.is_forbidden(role):
            problem(f'{label} uses forbidden category "{role}"')
            continue

        resolved_text = text[match.start:match.end]
        limit = policy.non_technical_word_limit
        if limit > 0 and not is_high_signal(role) and len(resolved_text.split()) > limit:
            problem(f'{label} "{resolved_text}" exceeds {limit} word limit for {role}')
            continue

        sanitized.append(
            Span(
                start=match.start,
                end=match.end,
                role=role,
                text=resolved_text,
                confidence=_as_confidence(data.get("confidence", DEFAULT_CONFIDENCE)),
                source=source,
            )
        )

    if errors:
        logger.debug("Strict validation failed with %d errors", len(errors))
        return ValidationOutcome(ok=False, errors=errors, notes=notes)

    seen: set[tuple[int, int, str]] = set()
    unique: list[Span] = []
    for span in sanitized:
        key = (span.start, span.end, span.text)
        if key in seen:
            continue
        seen.add(key)
        unique.append(span)
    if len(unique) < len(sanitized):
        notes.append(f"Removed {len(sanitized) - len(unique)} duplicate spans")

    unique.sort(key=lambda s: (s.start, s.end))
    if not policy.allow_overlap:
        unique = _resolve_overlaps(unique, notes)

    confident = [s for s in unique if s.confidence >= policy.min_confidence]
    if len(confident) < len(unique):
        notes.append(
            f"Filtered {len(unique) - len(confident)} spans below confidence {policy.min_confidence}"
        )

    if len(confident) > policy.max_spans:
        ranked = sorted(confident, key=lambda s: (-s.confidence, s.start))[:policy.max_spans]
        notes.append(f"Truncated to {policy.max_spans} highest-confidence spans")
        confident = sorted(ranked, key=lambda s: (s.start, s.end))

    present = {category_of(s.role) for s in confident} | {s.role for s in confident}
    for required in policy.required_categories:
        if required not in present:
            problem(f'Missing required category "{required}"')
    if errors:
        return ValidationOutcome(ok=False, errors=errors, notes=notes)

    joined = " | ".join(n for n in [meta.notes, *notes] if n)
    result = LabelResult(
        spans=tuple(confident),
        meta=meta.model_copy(update={"notes": joined}),
        is_adversarial=is_adversarial,
        analysis_trace=analysis_trace,
    )
    return ValidationOutcome(ok=True, notes=notes, result=result)
