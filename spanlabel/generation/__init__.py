"""Requests to the text-generation service and parsing of its replies.

``spanlabel.generation.labeler`` builds on the repair loop and is imported
directly rather than re-exported here.
"""

from .client import END_OF_STREAM, GenerationClient, GenerationResponse, ProviderOptions, map_openai_error
from .parse_utils import parse_json_like, parse_span_payload
from .prompts import build_system_prompt, build_task_description, build_user_payload, estimate_max_tokens
from .schema import SPAN_RESPONSE_SCHEMA, SpanResponse, build_span_schema, validate_response_shape
from .two_pass import should_use_two_pass, split_budget, two_pass_extraction

__all__ = [
    "END_OF_STREAM",
    "SPAN_RESPONSE_SCHEMA",
    "GenerationClient",
    "GenerationResponse",
    "ProviderOptions",
    "SpanResponse",
    "build_span_schema",
    "build_system_prompt",
    "build_task_description",
    "build_user_payload",
    "estimate_max_tokens",
    "map_openai_error",
    "parse_json_like",
    "parse_span_payload",
    "should_use_two_pass",
    "split_budget",
    "two_pass_extraction",
    "validate_response_shape",
]
