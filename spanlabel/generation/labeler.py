"""Label text through the text-generation service.

Generate (single or two-pass) -> parse -> validate + critique -> repair.
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import SpanlabelConfig
from ..errors import SchemaInvalid, SemanticInvalid
from ..models import LabelResult, ValidationPolicy
from ..position import PositionResolver
from ..repair import adversarial_result, attempt_repair, call_with_retry, inject_defensive_meta, is_adversarial_reply
from ..utils.logging import log_stage_attempt
from ..validation import validate_and_critique
from ..validation.critic import ReviewMode
from .client import GenerationClient, GenerationResponse, ProviderOptions
from .parse_utils import parse_span_payload
from .prompts import build_system_prompt, build_user_payload, estimate_max_tokens
from .schema import SPAN_RESPONSE_SCHEMA, validate_response_shape
from .two_pass import should_use_two_pass, two_pass_extraction

logger = logging.getLogger(__name__)

# Providers that accept json_schema response formats and a developer role
STRUCTURED_PROVIDERS = frozenset({"openai", "azure"})


def provider_options_for(config: SpanlabelConfig) -> ProviderOptions:
    structured = config.provider.lower() in STRUCTURED_PROVIDERS
    return ProviderOptions(
        temperature=config.lm_temperature,
        stream=config.stream,
        supports_structured_output=structured,
        supports_developer_role=structured,
    )


class LlmLabeler:
    """Generation-backed labeler with a single bounded repair attempt."""

    def __init__(self, client: GenerationClient, config: SpanlabelConfig | None = None):
        self.client = client
        self.config = config or client.config
        self.provider_options = provider_options_for(self.config)

    @property
    def schema(self) -> dict[str, Any] | None:
        return SPAN_RESPONSE_SCHEMA if self.provider_options.supports_structured_output else None

    @property
    def two_pass(self) -> bool:
        return should_use_two_pass(self.config.lm, self.config.lm_two_pass)

    async def _generate(self, system_prompt: str, payload: str, max_tokens: int) -> GenerationResponse:
        if self.two_pass:
            return await two_pass_extraction(
                self.client,
                system_prompt=system_prompt,
                user_payload=payload,
                max_tokens=max_tokens,
                provider_options=self.provider_options,
                schema=self.schema,
            )
        return await self.client.call_model(
            system_prompt, payload, max_tokens, self.provider_options, self.schema
        )

    async def label(
        self,
        text: str,
        policy: ValidationPolicy,
        *,
        template_version: str = "v1",
        enable_repair: bool = True,
        resolver: PositionResolver | None = None,
        review_mode: ReviewMode = "review",
        base_meta: dict[str, Any] | None = None,
    ) -> LabelResult:
        """Label *text* or raise ``LabelingFailed`` / ``ServiceUnavailable``."""
        resolver = resolver or PositionResolver()
        system_prompt = build_system_prompt(
            provider=self.client.provider, use_json_schema=self.schema is not None
        )
        payload = build_user_payload(text, policy, template_version)
        max_tokens = estimate_max_tokens(policy.max_spans)

        log_stage_attempt(
            logger, "generation", 1, f"model={self.config.lm} two_pass={self.two_pass} max_tokens={max_tokens}"
        )
        response = await call_with_retry(lambda: self._generate(system_prompt, payload, max_tokens))

        def repair(errors: list[str], original: Any):
            return attempt_repair(
                self.client,
                validation_errors=errors,
                original_response=original,
                text=text,
                policy=policy,
                max_tokens=max_tokens,
                template_version=template_version,
                provider_options=self.provider_options,
                schema=self.schema,
                resolver=resolver,
                review_mode=review_mode,
                base_meta=base_meta,
            )

        try:
            parsed = parse_span_payload(response.text)
            shape = validate_response_shape(parsed)
        except SchemaInvalid as exc:
            logger.warning("Unparseable model reply: %s", "; ".join(exc.errors))
            if not enable_repair:
                raise
            return (await repair(exc.errors, response.text)).result

        meta = inject_defensive_meta(parsed, template_version)
        if base_meta:
            meta = meta.model_copy(update=base_meta)
        trace = shape.analysis_trace or response.metadata.get("analysis_trace")
        if is_adversarial_reply(parsed):
            logger.warning("Model flagged input as adversarial")
            return adversarial_result(meta, trace)

        raw_spans = [s.model_dump() for s in shape.spans]
        outcome = validate_and_critique(
            raw_spans, text, policy, attempt=1, resolver=resolver, meta=meta,
            analysis_trace=trace, review_mode=review_mode,
        )
        if outcome.ok and outcome.result is not None:
            return outcome.result

        logger.warning("Strict validation failed: %s", "; ".join(outcome.errors))
        if not enable_repair:
            lenient = validate_and_critique(
                raw_spans, text, policy, attempt=2, resolver=resolver, meta=meta,
                analysis_trace=trace, review_mode=review_mode,
            )
            if lenient.ok and lenient.result is not None:
                return lenient.result
            if lenient.critic_failed:
                raise SemanticInvalid("Critic issues remain after auto-correction", lenient.errors)
            raise SchemaInvalid("Lenient validation failed", lenient.errors)
        return (await repair(outcome.errors, parsed)).result
