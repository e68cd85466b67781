"""Bounded repair of failed span labeling attempts.

State machine::

    Generated -> Validating -> Passed
                            -> Failed -> Repairing -> Validating (2nd) -> Passed
                                                                      -> Fatal

There is exactly one structured repair attempt.  Separately, a retryable
generation error (rate limit, 5xx, timeout) is retried once; credential
and malformed-request errors are never retried.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

from .errors import GenerationError, RateLimited, RepairExhausted, SchemaInvalid
from .generation.client import GenerationClient, ProviderOptions
from .generation.parse_utils import parse_span_payload
from .generation.prompts import build_repair_validation, build_system_prompt, build_user_payload
from .generation.schema import validate_response_shape
from .models import LabelMeta, LabelResult, ValidationPolicy
from .position import PositionResolver
from .utils.logging import log_stage_attempt, log_stage_failure
from .validation import validate_and_critique
from .validation.critic import ReviewMode

logger = logging.getLogger(__name__)

T = TypeVar("T")

GENERATION_ATTEMPTS = 2
MAX_RETRY_DELAY_S = 5.0


@dataclass
class RepairOutcome:
    result: LabelResult
    metadata: dict[str, Any] = field(default_factory=dict)


async def call_with_retry(
    call: Callable[[], Awaitable[T]],
    *,
    attempts: int = GENERATION_ATTEMPTS,
    stage: str = "generation",
) -> T:
    """Await ``call()``, retrying once on a retryable ``GenerationError``."""
    attempt = 1
    while True:
        try:
            return await call()
        except GenerationError as exc:
            if not exc.retryable or attempt >= attempts:
                raise
            delay = 0.0
            if isinstance(exc, RateLimited) and exc.retry_after:
                delay = min(exc.retry_after, MAX_RETRY_DELAY_S)
            log_stage_failure(logger, stage, f"{exc} (retrying in {delay:.1f}s)", attempt)
            if delay:
                await asyncio.sleep(delay)
            attempt += 1


def inject_defensive_meta(parsed: dict[str, Any], template_version: str) -> LabelMeta:
    """Fill in meta fields the model left out."""
    raw = parsed.get("meta")
    spans = parsed.get("spans") or []
    meta = dict(raw) if isinstance(raw, dict) else {}
    if not isinstance(meta.get("version"), str) or not meta["version"]:
        meta["version"] = template_version
    if not isinstance(meta.get("notes"), str):
        meta["notes"] = f"Labeled {len(spans)} spans"
    return LabelMeta(version=meta["version"], notes=meta["notes"])


def is_adversarial_reply(parsed: dict[str, Any]) -> bool:
    return parsed.get("isAdversarial") is True or parsed.get("is_adversarial") is True


def adversarial_result(meta: LabelMeta, analysis_trace: str | None) -> LabelResult:
    return LabelResult(
        spans=(),
        meta=meta.model_copy(update={"notes": meta.notes or "Adversarial input detected"}),
        is_adversarial=True,
        analysis_trace=analysis_trace,
    )


async def attempt_repair(
    client: GenerationClient,
    *,
    validation_errors: list[str],
    original_response: Any,
    text: str,
    policy: ValidationPolicy,
    max_tokens: int,
    template_version: str = "v1",
    provider_options: ProviderOptions | None = None,
    schema: dict[str, Any] | None = None,
    resolver: PositionResolver | None = None,
    review_mode: ReviewMode = "review",
    base_meta: dict[str, Any] | None = None,
) -> RepairOutcome:
    """Regenerate once with the validation errors as feedback.

    Raises:
        RepairExhausted: the repaired reply still fails validation or critique.
        GenerationError: the repair call itself failed after its retry.
    """
    log_stage_attempt(logger, "repair", 2, f"{len(validation_errors)} validation errors")
    payload = build_user_payload(
        text,
        policy,
        template_version,
        validation=build_repair_validation(validation_errors, original_response),
    )
    system_prompt = build_system_prompt(
        provider=client.provider, use_json_schema=schema is not None, repair=True
    )
    response = await call_with_retry(
        lambda: client.call_model(system_prompt, payload, max_tokens, provider_options, schema),
        stage="repair",
    )

    try:
        parsed = parse_span_payload(response.text)
        shape = validate_response_shape(parsed)
    except SchemaInvalid as exc:
        log_stage_failure(logger, "repair", "; ".join(exc.errors), 2)
        raise RepairExhausted(exc.errors) from exc

    meta = inject_defensive_meta(parsed, template_version)
    meta = meta.model_copy(update={**(base_meta or {}), "source": "repaired"})
    trace = shape.analysis_trace
    if is_adversarial_reply(parsed):
        return RepairOutcome(adversarial_result(meta, trace), response.metadata)

    outcome = validate_and_critique(
        [s.model_dump() for s in shape.spans],
        text,
        policy,
        attempt=1,
        resolver=resolver,
        meta=meta,
        source="repaired",
        analysis_trace=trace,
        review_mode=review_mode,
    )
    if not outcome.ok or outcome.result is None:
        logger.error("Repair attempt failed validation with %d errors", len(outcome.errors))
        raise RepairExhausted(outcome.errors)
    logger.info("Repair succeeded with %d spans", len(outcome.result.spans))
    return RepairOutcome(outcome.result, response.metadata)
