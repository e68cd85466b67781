"""Validate then critique one candidate span set."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from ..models import LabelMeta, SpanSource, ValidationPolicy
from ..position import PositionResolver
from .critic import ReviewMode, critique
from .models import ValidationOutcome
from .validator import validate_spans

logger = logging.getLogger(__name__)


def validate_and_critique(
    spans: Iterable[Any],
    text: str,
    policy: ValidationPolicy,
    *,
    attempt: int = 1,
    resolver: PositionResolver | None = None,
    meta: LabelMeta | Mapping[str, Any] | None = None,
    source: SpanSource = "llm",
    is_adversarial: bool = False,
    analysis_trace: str | None = None,
    review_mode: ReviewMode = "review",
) -> ValidationOutcome:
    """Run structural validation, then the critic over the surviving spans.

    Critic corrections are applied to the result.  Blocking critic issues
    left after auto-correction fail the outcome with ``critic_failed`` set.
    """
    outcome = validate_spans(
        spans,
        text,
        policy,
        attempt=attempt,
        resolver=resolver,
        meta=meta,
        source=source,
        is_adversarial=is_adversarial,
        analysis_trace=analysis_trace,
    )
    if not outcome.ok or outcome.result is None:
        return outcome

    review = critique(outcome.result.spans, text, review_mode=review_mode, policy=policy)
    notes = list(outcome.notes)
    notes.extend(
        f'Critic relabeled "{c.text}" from {c.from_role} to {c.to_role}' for c in review.corrections
    )
    notes.extend(f"Review: {i.detail}" for i in review.review_issues)

    if not review.ok:
        return ValidationOutcome(ok=False, errors=review.errors, notes=notes, critic_failed=True)

    extra = notes[len(outcome.notes):]
    joined = " | ".join(n for n in [outcome.result.meta.notes, *extra] if n)
    result = outcome.result.model_copy(
        update={
            "spans": tuple(review.spans),
            "meta": outcome.result.meta.model_copy(update={"notes": joined}),
        }
    )
    return ValidationOutcome(ok=True, notes=notes, result=result)
