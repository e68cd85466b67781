"""Dictionary, pattern and frame driven span extraction.

The fast path never calls the text-generation service.  It collects
candidates from the closed vocabulary, the technical patterns and the
frame matcher, decides whether the candidate set is complete enough to be
authoritative, and validates it.  Whenever it is not sure it declines by
returning ``None`` and the caller falls through to generation.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from ..config import SpanlabelConfig, get_config
from ..frames import CINEMATOGRAPHY_FRAME, FrameDisambiguator, FrameMatcher, build_camera_context
from ..frames.matcher import DETERMINERS, NOUN_MODIFIERS
from ..models import LabelMeta, LabelOptions, LabelResult, Span, ValidationPolicy
from ..position import PositionResolver
from ..taxonomy import is_high_signal
from ..validation import validate_spans
from .vocab import PATTERNS, VOCABULARY, build_term_index

logger = logging.getLogger(__name__)

FASTPATH_VERSION = "nlp-v1"

VOCAB_CONFIDENCE = 1.0
FRAME_VERB_CONFIDENCE = 0.85
FRAME_ELEMENT_CONFIDENCE = 0.75

COVERAGE_CATEGORIES = ("subject", "action", "environment")
LONG_TEXT_WORDS = 80

_WORD = re.compile(r"\S+")
_PRECEDING_WORD = re.compile(r"([A-Za-zÀ-ɏ-]+)\W*$")

Classifier = Callable[[str], Iterable[Mapping[str, Any]]]


@dataclass(frozen=True)
class FastPathThresholds:
    min_coverage_percent: float = 30.0
    min_spans_threshold: int = 3
    sparse_min_spans: int = 2
    sparse_high_confidence: float = 0.8
    sparse_min_signal_spans: int = 2
    min_category_coverage: int = 2


@dataclass
class FastPathAssessment:
    word_count: int
    span_count: int
    expected_min_spans: int
    required_spans: int
    coverage_percent: float
    category_coverage: int
    high_signal_spans: int
    avg_confidence: float
    sparse_accept: bool

    @property
    def accepted(self) -> bool:
        return self.span_count >= self.required_spans or self.sparse_accept


@dataclass
class FastPathOutcome:
    """What one fast-path attempt produced, including why it declined."""

    result: LabelResult | None = None
    reason: str | None = None
    candidates: int = 0
    duration_ms: float = 0.0
    assessment: FastPathAssessment | None = None
    notes: list[str] = field(default_factory=list)
    attempted: bool = True

    @property
    def declined(self) -> bool:
        return self.result is None


def expected_min_spans(word_count: int, max_spans: int) -> int:
    if word_count < 40:
        expected = 1
    elif word_count < 80:
        expected = 4
    elif word_count < 140:
        expected = 8
    elif word_count < 220:
        expected = 12
    else:
        expected = 15
    return min(expected, max_spans)


def coverage_percent(spans: Iterable[Span], text: str) -> float:
    words = [(m.start(), m.end()) for m in _WORD.finditer(text)]
    if not words:
        return 0.0
    ranges = [(s.start, s.end) for s in spans]
    covered = sum(1 for ws, we in words if any(ws < e and s < we for s, e in ranges))
    return 100.0 * covered / len(words)


def _merge_contained(candidates: list[Span]) -> list[Span]:
    """Fold candidates nested inside a same-category candidate into it."""
    ordered = sorted(candidates, key=lambda s: (s.start, -s.length, -s.confidence))
    merged: list[Span] = []
    for span in ordered:
        host_idx = next(
            (
                i for i, other in enumerate(merged)
                if other.start <= span.start and span.end <= other.end
                and other.category == span.category
            ),
            None,
        )
        if host_idx is None:
            merged.append(span)
            continue
        host = merged[host_idx]
        if span.confidence > host.confidence:
            merged[host_idx] = host.model_copy(update={"confidence": span.confidence})
    return merged


class FastPathExtractor:
    """Label text without the generation service, or decline.

    Args:
        matcher: Frame matcher; defaults to one over the standard frames.
        classifier: Optional local tagger returning extra span dicts.
        config: Settings; defaults to ``get_config()``.
        thresholds: Acceptance heuristics.
    """

    def __init__(
        self,
        *,
        matcher: FrameMatcher | None = None,
        classifier: Classifier | None = None,
        config: SpanlabelConfig | None = None,
        thresholds: FastPathThresholds | None = None,
        vocabulary: dict[str, tuple[str, ...]] = VOCABULARY,
    ):
        self.matcher = matcher or FrameMatcher()
        self.disambiguator: FrameDisambiguator = self.matcher.disambiguator
        self.classifier = classifier
        self.config = config or get_config()
        self.thresholds = thresholds or FastPathThresholds()
        self._term_pattern, self._term_roles = build_term_index(vocabulary)

    @property
    def classifier_available(self) -> bool:
        return self.classifier is not None

    # ------------------------------------------------------------------
    # Candidate collection
    # ------------------------------------------------------------------

    def _camera_term_allowed(self, text: str, start: int, end: int, term: str) -> bool:
        if term not in CINEMATOGRAPHY_FRAME.ambiguous_terms:
            return True
        prev = _PRECEDING_WORD.search(text[:start])
        if prev and prev.group(1).lower() in NOUN_MODIFIERS:
            return False
        context = build_camera_context(text, end)
        return bool(self.disambiguator.evokes_frame(CINEMATOGRAPHY_FRAME, term, context))

    def _vocabulary_candidates(self, text: str) -> list[Span]:
        spans: list[Span] = []
        for m in self._term_pattern.finditer(text):
            term = m.group(0).lower()
            role = self._term_roles[term]
            if role == "camera.movement" and not self._camera_term_allowed(text, m.start(), m.end(), term):
                logger.debug("Camera term %r rejected without camera context", term)
                continue
            spans.append(
                Span(start=m.start(), end=m.end(), role=role, text=m.group(0),
                     confidence=VOCAB_CONFIDENCE, source="fastpath")
            )
        return spans

    @staticmethod
    def _pattern_candidates(text: str) -> list[Span]:
        spans: list[Span] = []
        for rule in PATTERNS:
            for m in rule.pattern.finditer(text):
                spans.append(
                    Span(start=m.start(), end=m.end(), role=rule.role, text=m.group(0),
                         confidence=rule.confidence, source="fastpath")
                )
        return spans

    def _frame_candidates(self, text: str, likely_camera: bool) -> list[Span]:
        spans: list[Span] = []
        for inst in self.matcher.match_frames(text, likely_camera=likely_camera):
            if inst.frame_name != "Lighting":
                end = inst.verb_end
                for name in ("MANNER", "DIRECTION", "SPEED"):
                    element = inst.elements.get(name)
                    if element is not None and element.start >= inst.verb_end:
                        end = max(end, element.end)
                spans.append(
                    Span(start=inst.verb_start, end=end, role=inst.role, text=text[inst.verb_start:end],
                         confidence=FRAME_VERB_CONFIDENCE, source="fastpath")
                )
            for name, element in inst.elements.items():
                if name in ("MANNER", "DIRECTION", "SPEED") or not element.maps_to:
                    continue
                start, end = element.start, element.end
                # "A soldier" -> "soldier"
                first = _WORD.match(text, start)
                if first and first.group(0).lower() in DETERMINERS and first.end() < end:
                    nxt = _WORD.search(text, first.end(), end)
                    if nxt:
                        start = nxt.start()
                spans.append(
                    Span(start=start, end=end, role=element.maps_to, text=text[start:end],
                         confidence=FRAME_ELEMENT_CONFIDENCE, source="fastpath")
                )
        return spans

    def _classifier_candidates(self, text: str) -> list[dict[str, Any]]:
        if self.classifier is None:
            return []
        return [dict(item) for item in self.classifier(text)]

    def collect_candidates(self, text: str, likely_camera: bool = False) -> list[Span]:
        """Return merged fast-path candidates for *text*, unvalidated."""
        spans = (
            self._vocabulary_candidates(text)
            + self._pattern_candidates(text)
            + self._frame_candidates(text, likely_camera)
        )
        for item in self._classifier_candidates(text):
            spans.append(Span.model_validate({**item, "source": "fastpath"}))
        return _merge_contained(spans)

    # ------------------------------------------------------------------
    # Assessment
    # ------------------------------------------------------------------

    def assess(self, spans: list[Span], text: str, policy: ValidationPolicy) -> FastPathAssessment:
        th = self.thresholds
        word_count = len(text.split())
        expected = expected_min_spans(word_count, policy.max_spans)
        coverage = coverage_percent(spans, text)
        categories = {s.category for s in spans}
        category_coverage = sum(1 for c in COVERAGE_CATEGORIES if c in categories)
        signal_floor = max(th.sparse_high_confidence, policy.min_confidence)
        high_signal = sum(1 for s in spans if s.confidence >= signal_floor and is_high_signal(s.role))
        avg_conf = sum(s.confidence for s in spans) / len(spans) if spans else 0.0
        sparse_accept = (
            coverage < th.min_coverage_percent
            and len(spans) >= th.sparse_min_spans
            and avg_conf >= th.sparse_high_confidence
            and high_signal >= th.sparse_min_signal_spans
        )
        required = max(expected, th.min_spans_threshold) if word_count >= LONG_TEXT_WORDS else expected
        return FastPathAssessment(
            word_count=word_count,
            span_count=len(spans),
            expected_min_spans=expected,
            required_spans=required,
            coverage_percent=round(coverage, 1),
            category_coverage=category_coverage,
            high_signal_spans=high_signal,
            avg_confidence=round(avg_conf, 3),
            sparse_accept=sparse_accept,
        )

    def _decline_reason(self, assessment: FastPathAssessment) -> str | None:
        long_text = assessment.word_count >= LONG_TEXT_WORDS
        if long_text and self.config.fastpath_require_classifier and not self.classifier_available:
            return "required classifier unavailable"
        if long_text and assessment.category_coverage < self.thresholds.min_category_coverage:
            return f"category coverage {assessment.category_coverage} below {self.thresholds.min_category_coverage}"
        if not assessment.accepted:
            return (
                f"{assessment.span_count} spans below required {assessment.required_spans} "
                f"({assessment.coverage_percent}% coverage)"
            )
        return None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(
        self,
        text: str,
        policy: ValidationPolicy | None = None,
        options: LabelOptions | None = None,
        resolver: PositionResolver | None = None,
        likely_camera: bool = False,
    ) -> FastPathOutcome:
        """Attempt extraction and report the outcome, accepted or declined."""
        policy = policy or ValidationPolicy()
        resolver = resolver or PositionResolver()
        started = time.perf_counter()

        def decline(reason: str, **kw: Any) -> FastPathOutcome:
            outcome = FastPathOutcome(
                reason=reason,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                **kw,
            )
            logger.info("Fast path declined: %s", reason)
            return outcome

        if options is not None and options.use_fastpath is False:
            return decline("disabled by request", attempted=False)
        if not self.config.fastpath_enabled and (options is None or options.use_fastpath is None):
            return decline("disabled by configuration", attempted=False)

        word_count = len((text or "").split())
        if word_count < self.config.fastpath_min_words:
            return decline(f"text too short ({word_count} words)")
        if word_count > self.config.chunk_max_words:
            return decline(f"text too long ({word_count} words)")

        try:
            candidates = self.collect_candidates(text, likely_camera=likely_camera)
        except Exception as exc:
            logger.warning("Fast path extraction failed: %s", exc, exc_info=True)
            return decline(f"extraction error: {exc}")

        assessment = self.assess(candidates, text, policy)
        reason = self._decline_reason(assessment)
        if reason:
            return decline(reason, candidates=len(candidates), assessment=assessment)

        elapsed = round((time.perf_counter() - started) * 1000)
        meta = LabelMeta(
            version=FASTPATH_VERSION,
            notes=f"Generated via fast path ({len(candidates)} spans, {elapsed}ms)",
            source="fastpath",
            nlp_attempted=True,
            nlp_spans_found=len(candidates),
        )
        strict = validate_spans(candidates, text, policy, attempt=1, resolver=resolver,
                                meta=meta, source="fastpath")
        validation = strict
        if not strict.ok:
            logger.debug("Fast path strict validation failed: %s", "; ".join(strict.errors))
            validation = validate_spans(candidates, text, policy, attempt=2, resolver=resolver,
                                        meta=meta, source="fastpath")
        if not validation.ok or validation.result is None:
            return decline("validation failed", candidates=len(candidates), assessment=assessment,
                           notes=list(validation.errors))
        if not validation.result.spans:
            return decline("no spans survived validation", candidates=len(candidates),
                           assessment=assessment)

        logger.info("Fast path accepted %d spans for %d words", len(validation.result.spans), word_count)
        return FastPathOutcome(
            result=validation.result,
            candidates=len(candidates),
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            assessment=assessment,
            notes=list(validation.notes),
        )

    def extract(
        self,
        text: str,
        policy: ValidationPolicy | None = None,
        options: LabelOptions | None = None,
        resolver: PositionResolver | None = None,
    ) -> LabelResult | None:
        return self.run(text, policy, options, resolver).result
