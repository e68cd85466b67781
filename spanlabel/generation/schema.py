"""Response schema for span labeling replies.

``SPAN_RESPONSE_SCHEMA`` is sent to providers that support
schema-constrained output.  ``validate_response_shape`` checks any parsed
reply against the same shape with pydantic before span validation.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import SchemaInvalid
from ..taxonomy import VALID_CATEGORIES

SCHEMA_NAME = "span_labeling_response"


def build_span_schema(strict: bool = True) -> dict[str, Any]:
    """Return the JSON schema for ``{analysis_trace, spans, meta, isAdversarial}``."""
    span_props: dict[str, Any] = {
        "text": {"type": "string", "description": "Exact substring from input"},
        "start": {"type": "integer", "description": "Start offset (inclusive)"},
        "end": {"type": "integer", "description": "End offset (exclusive)"},
        "role": {"type": "string", "enum": sorted(VALID_CATEGORIES)},
        "confidence": {"type": "number"},
    }
    schema = {
        "type": "object",
        "required": ["analysis_trace", "spans", "meta", "isAdversarial"],
        "additionalProperties": False,
        "properties": {
            "analysis_trace": {"type": "string"},
            "spans": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": list(span_props),
                    "additionalProperties": False,
                    "properties": span_props,
                },
            },
            "meta": {
                "type": "object",
                "required": ["version", "notes"],
                "additionalProperties": False,
                "properties": {"version": {"type": "string"}, "notes": {"type": "string"}},
            },
            "isAdversarial": {"type": "boolean"},
        },
    }
    return {"name": SCHEMA_NAME, "strict": strict, "schema": schema}


SPAN_RESPONSE_SCHEMA = build_span_schema()


# ---------------------------------------------------------------------------
# Shape validation
# ---------------------------------------------------------------------------


class RawSpan(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str
    role: str | None = None
    start: int | None = None
    end: int | None = None
    confidence: float | None = None


class RawMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    version: str = "v1"
    notes: str = ""


class SpanResponse(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    spans: list[RawSpan] = Field(default_factory=list)
    meta: RawMeta = Field(default_factory=RawMeta)
    is_adversarial: bool = Field(default=False, alias="isAdversarial")
    analysis_trace: str | None = None


def validate_response_shape(value: Any) -> SpanResponse:
    """Validate a parsed reply, raising ``SchemaInvalid`` with one error per problem."""
    try:
        return SpanResponse.model_validate(value)
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'response'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise SchemaInvalid("Model reply does not match the span schema", errors) from exc
