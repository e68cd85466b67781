"""Data models for span validation and critique."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from ..models import LabelResult, Span


class CriticIssue(BaseModel):
    """A semantic problem the critic found in one span set."""

    type: str = Field(
        description="Issue type: camera_action_confusion, one_clip_one_action, "
        "taxonomy_misalignment"
    )
    span_text: str
    role: str
    detail: str = Field(description="Human-readable description")
    severity: Literal["low", "medium", "high"] = "medium"
    auto_correct: bool = False
    suggested_role: str | None = None
    # Issues that are surfaced for review do not fail the attempt
    blocking: bool = True


class Correction(BaseModel):
    """A role rewrite applied to every span matching ``(text, from_role)``."""

    text: str
    from_role: str
    to_role: str
    rule: str


class ValidationOutcome(BaseModel):
    ok: bool
    errors: list[str] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    result: LabelResult | None = None
    # Set when the critic, not structural validation, failed the attempt
    critic_failed: bool = False


class CritiqueResult(BaseModel):
    ok: bool
    spans: list[Span] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    corrections: list[Correction] = Field(default_factory=list)
    issues: list[CriticIssue] = Field(default_factory=list)

    @property
    def review_issues(self) -> list[CriticIssue]:
        return [i for i in self.issues if not i.blocking and not i.auto_correct]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a plain dict for JSON serialization."""
        return {
            "ok": self.ok,
            "spans": [s.model_dump() for s in self.spans],
            "errors": list(self.errors),
            "corrections": [c.model_dump() for c in self.corrections],
            "issues": [i.model_dump() for i in self.issues],
        }
