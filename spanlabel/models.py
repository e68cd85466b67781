"""Core data models shared by every pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .taxonomy import category_of

SpanSource = Literal["fastpath", "llm", "repaired"]


@dataclass(frozen=True)
class MatchResult:
    """Transient ``[start, end)`` range returned by the position resolver."""

    start: int
    end: int


class Span(BaseModel):
    """A labeled character range within the source text."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(ge=0)
    end: int = Field(ge=0)
    role: str
    text: str
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)
    source: SpanSource = "llm"

    @model_validator(mode="after")
    def _check_range(self) -> "Span":
        if self.end <= self.start:
            raise ValueError(f"span end ({self.end}) must be greater than start ({self.start})")
        return self

    @property
    def category(self) -> str:
        return category_of(self.role)

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Span") -> bool:
        return self.start < other.end and other.start < self.end


class ValidationPolicy(BaseModel):
    """Caller-supplied constraints on a label result. Immutable per request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    required_categories: tuple[str, ...] = ()
    optional_categories: tuple[str, ...] = ()
    forbidden_categories: tuple[str, ...] = ()
    max_spans: int = Field(default=20, ge=1, le=50)
    min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    non_technical_word_limit: int = Field(default=6, ge=0)
    allow_overlap: bool = False

    def is_forbidden(self, role: str) -> bool:
        cat = category_of(role)
        return role in self.forbidden_categories or cat in self.forbidden_categories


class LabelOptions(BaseModel):
    """Per-request knobs that are not part of the validation policy."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    template_version: str = "v1"
    enable_repair: bool | None = None
    use_fastpath: bool | None = None
    use_cache: bool = True
    timeout_s: float | None = None
    include_timings: bool = False


class LabelMeta(BaseModel):
    # Serialized camelCase; either spelling is accepted on input
    model_config = ConfigDict(populate_by_name=True)

    version: str = "v1"
    notes: str = ""
    source: str | None = None
    nlp_attempted: bool | None = Field(default=None, alias="nlpAttempted")
    nlp_spans_found: int | None = Field(default=None, alias="nlpSpansFound")
    timings: dict[str, float] | None = None


class LabelResult(BaseModel):
    """Final, validated output for one request; the only cached entity."""

    model_config = ConfigDict(frozen=True)

    spans: tuple[Span, ...] = ()
    meta: LabelMeta = Field(default_factory=LabelMeta)
    is_adversarial: bool = False
    analysis_trace: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict for JSON serialization."""
        return {
            "spans": [s.model_dump() for s in self.spans],
            "meta": self.meta.model_dump(exclude_none=True, by_alias=True),
            "isAdversarial": self.is_adversarial,
            "analysisTrace": self.analysis_trace,
        }
