"""Reason-then-structure generation for models that struggle with both at once.

Pass 1 gets ~60% of the token budget and free-form output; pass 2 gets the
remaining ~40%, sees the pass-1 analysis through a developer message (or
the system prompt when the provider has no developer role), and only
converts it to the span JSON.
"""

from __future__ import annotations

import logging
from typing import Any

from .client import GenerationClient, GenerationResponse, ProviderOptions
from .prompts import REASONING_PROMPT, STRUCTURING_PROMPT

logger = logging.getLogger(__name__)

REASONING_SHARE = 0.6
STRUCTURING_SHARE = 0.4


def should_use_two_pass(model: str, mode: str = "auto") -> bool:
    """``always``/``never`` win; ``auto`` picks mini models, which excludes gemini."""
    if mode == "always":
        return True
    if mode == "never":
        return False
    name = (model or "").lower()
    return "mini" in name and "gemini" not in name


def split_budget(max_tokens: int) -> tuple[int, int]:
    return int(max_tokens * REASONING_SHARE), int(max_tokens * STRUCTURING_SHARE)


async def two_pass_extraction(
    client: GenerationClient,
    *,
    system_prompt: str,
    user_payload: str,
    max_tokens: int,
    provider_options: ProviderOptions | None = None,
    schema: dict[str, Any] | None = None,
) -> GenerationResponse:
    options = provider_options or ProviderOptions()
    reasoning_tokens, structure_tokens = split_budget(max_tokens)

    logger.info("Two-pass generation: reasoning %d / structuring %d tokens", reasoning_tokens, structure_tokens)
    reasoning = await client.call_model(
        REASONING_PROMPT,
        user_payload,
        reasoning_tokens,
        options.model_copy(update={"json_mode": False, "developer_message": None}),
        schema=None,
    )

    instruction = f"{STRUCTURING_PROMPT}\n\nANALYSIS:\n{reasoning.text.strip()}"
    structured = await client.call_model(
        system_prompt,
        user_payload,
        structure_tokens,
        options.model_copy(update={"developer_message": instruction}),
        schema=schema,
    )
    structured.metadata.update(
        {
            "two_pass": True,
            "analysis_trace": reasoning.text,
            "reasoning_metadata": reasoning.metadata,
        }
    )
    return structured
