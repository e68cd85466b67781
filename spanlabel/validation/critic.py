"""Semantic rule-checking of validated span sets.

Rules are independent and composable:

- ``camera_action_confusion``: an ``action.*`` span whose text is a camera
  move.  With "camera" within 100 characters the span is relabeled to
  ``camera.movement``; otherwise the issue is handled according to the
  configured review mode.
- ``one_clip_one_action``: several action spans where one carries a
  sequential marker ("and then", "followed by").  Never auto-corrected.
- ``taxonomy_misalignment``: film stocks under ``style.aesthetic`` and
  times of day under ``lighting.source`` move to their specific roles.

Auto-correction only rewrites ``role`` on spans matched by ``(text, role)``;
spans are never added or removed, and a second pass over corrected output
finds nothing further to correct.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, Literal

from ..models import Span, ValidationPolicy
from .models import Correction, CriticIssue, CritiqueResult

logger = logging.getLogger(__name__)

ReviewMode = Literal["repair", "review", "ignore"]

CAMERA_WINDOW = 100

CAMERA_VERB_PATTERN = re.compile(
    r"\b(?:whip[- ]pan|pan(?:s|ning|ned)?|tilt(?:s|ing|ed)?|dolly(?:ing)?|dollies|"
    r"truck(?:s|ing|ed)?|crane(?:s|d)?|craning|boom(?:s|ing)?|pedestal(?:s|ing)?|"
    r"zoom(?:s|ing|ed)?|orbit(?:s|ing)?|push(?:es|ing)? in|pull(?:s|ing)? (?:back|out)|"
    r"rack(?:s|ing)? focus|tracking shot)\b",
    re.IGNORECASE,
)
# "then" counts only when it opens a clause; "next to" and "finally" alone are not sequences.
SEQUENTIAL_MARKERS = re.compile(
    r"\b(?:and then|followed by|after that|afterwards|before finally)\b|(?:^|[,;.]\s*)then\b",
    re.IGNORECASE,
)
FILM_STOCK_PATTERN = re.compile(
    r"\b(?:kodak|portra|ektachrome|kodachrome|vision3|fuji(?:film)?|velvia|cinestill|"
    r"ilford|tri-x|super ?8|super ?16|(?:8|16|35|65|70)\s?mm film|film stock)\b",
    re.IGNORECASE,
)
TIME_OF_DAY_PATTERN = re.compile(
    r"\b(?:golden hour|blue hour|magic hour|dawn|dusk|sunrise|sunset|twilight|"
    r"daybreak|midday|noon|midnight|night(?:time)?|morning|afternoon|evening)\b",
    re.IGNORECASE,
)

CAMERA_MOVEMENT = "camera.movement"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _camera_action_confusion(spans: list[Span], text: str, review_mode: ReviewMode) -> list[CriticIssue]:
    issues: list[CriticIssue] = []
    for span in spans:
        if span.category != "action" or not CAMERA_VERB_PATTERN.search(span.text):
            continue
        window = text[max(0, span.start - CAMERA_WINDOW):span.end + CAMERA_WINDOW].lower()
        if "camera" in window:
            issues.append(
                CriticIssue(
                    type="camera_action_confusion",
                    span_text=span.text,
                    role=span.role,
                    detail=f'"{span.text}" describes a camera move near an explicit camera mention',
                    severity="high",
                    auto_correct=True,
                    suggested_role=CAMERA_MOVEMENT,
                )
            )
        elif review_mode != "ignore":
            issues.append(
                CriticIssue(
                    type="camera_action_confusion",
                    span_text=span.text,
                    role=span.role,
                    detail=f'"{span.text}" may be a camera move labeled as {span.role}',
                    severity="medium",
                    auto_correct=False,
                    suggested_role=CAMERA_MOVEMENT,
                    blocking=review_mode == "repair",
                )
            )
    return issues


def _one_clip_one_action(spans: list[Span], text: str, review_mode: ReviewMode) -> list[CriticIssue]:
    actions = [s for s in spans if s.category == "action"]
    if len(actions) < 2:
        return []
    return [
        CriticIssue(
            type="one_clip_one_action",
            span_text=span.text,
            role=span.role,
            detail=f'"{span.text}" chains sequential actions; a clip holds one continuous action',
            severity="high",
        )
        for span in actions
        if SEQUENTIAL_MARKERS.search(span.text)
    ]


def _taxonomy_misalignment(spans: list[Span], text: str, review_mode: ReviewMode) -> list[CriticIssue]:
    issues: list[CriticIssue] = []
    for span in spans:
        target = None
        if span.role == "style.aesthetic" and FILM_STOCK_PATTERN.search(span.text):
            target = "style.filmStock"
        elif span.role == "lighting.source" and TIME_OF_DAY_PATTERN.search(span.text):
            target = "lighting.timeOfDay"
        if target is None:
            continue
        issues.append(
            CriticIssue(
                type="taxonomy_misalignment",
                span_text=span.text,
                role=span.role,
                detail=f'"{span.text}" belongs under {target}, not {span.role}',
                severity="low",
                auto_correct=True,
                suggested_role=target,
            )
        )
    return issues


Rule = Callable[[list[Span], str, ReviewMode], list[CriticIssue]]

DEFAULT_RULES: tuple[Rule, ...] = (
    _camera_action_confusion,
    _one_clip_one_action,
    _taxonomy_misalignment,
)


# ---------------------------------------------------------------------------
# Critic
# ---------------------------------------------------------------------------


def apply_corrections(spans: Iterable[Span], corrections: Iterable[Correction]) -> list[Span]:
    """Rewrite roles on spans matched by ``(text, role)`` identity."""
    mapping = {(c.text, c.from_role): c.to_role for c in corrections}
    out: list[Span] = []
    for span in spans:
        new_role = mapping.get((span.text, span.role))
        out.append(span.model_copy(update={"role": new_role}) if new_role else span)
    return out


def critique(
    spans: Iterable[Span],
    text: str,
    *,
    review_mode: ReviewMode = "review",
    auto_correct: bool = True,
    policy: ValidationPolicy | None = None,
    rules: Iterable[Rule] = DEFAULT_RULES,
) -> CritiqueResult:
    """Audit *spans* and auto-correct what the rules allow.

    ``review_mode`` decides the fate of camera verbs labeled as actions with
    no nearby "camera": ``repair`` fails the attempt, ``review`` surfaces a
    non-blocking issue, ``ignore`` drops the check.

    A correction into a role the *policy* forbids is not applied; its issue
    stays unresolved.
    """
    current = list(spans)
    issues: list[CriticIssue] = []
    for rule in rules:
        issues.extend(rule(current, text, review_mode))

    corrections: list[Correction] = []
    refused: set[tuple[str, str]] = set()
    if auto_correct:
        seen: set[tuple[str, str]] = set()
        for issue in issues:
            if not issue.auto_correct or not issue.suggested_role:
                continue
            key = (issue.span_text, issue.role)
            if key in seen:
                continue
            seen.add(key)
            if policy is not None and policy.is_forbidden(issue.suggested_role):
                logger.info("Critic skipped %s -> %s: forbidden by policy", issue.role, issue.suggested_role)
                refused.add(key)
                continue
            corrections.append(
                Correction(
                    text=issue.span_text,
                    from_role=issue.role,
                    to_role=issue.suggested_role,
                    rule=issue.type,
                )
            )
        current = apply_corrections(current, corrections)

    corrected = {(c.text, c.from_role) for c in corrections}
    errors: list[str] = []
    for issue in issues:
        key = (issue.span_text, issue.role)
        if not issue.blocking or (issue.auto_correct and key in corrected):
            continue
        if key in refused:
            errors.append(f"{issue.type}: {issue.detail} ({issue.suggested_role} is forbidden by policy)")
        else:
            errors.append(f"{issue.type}: {issue.detail}")
    if corrections:
        logger.info("Critic applied %d corrections", len(corrections))
    if errors:
        logger.debug("Critic left %d blocking issues", len(errors))
    return CritiqueResult(
        ok=not errors,
        spans=current,
        errors=errors,
        corrections=corrections,
        issues=issues,
    )
