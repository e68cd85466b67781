"""Character-offset recovery for spans reported by substring.

The generation service reports each span as ``{text, start?}``; offsets are
often wrong and sometimes the text itself is slightly off (smart quotes,
markdown emphasis, accents).  ``PositionResolver.find_best_match`` recovers
the best ``[start, end)`` range using, in order:

1. exact occurrences (memoized per source text), nearest to ``preferred_start``
2. a case-insensitive scan
3. a fuzzy, edit-distance scan over normalized text

A resolver instance caches occurrences for the last text it saw, so it
should be created per request rather than shared across concurrent ones.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from bisect import bisect_left
from dataclasses import asdict, dataclass

from rapidfuzz.distance import Levenshtein

from .errors import PositionNotFound
from .models import MatchResult

logger = logging.getLogger(__name__)

FUZZY_MAX_SCORE = 0.35
FUZZY_MAX_CANDIDATES = 120
FUZZY_ANCHOR_LEN = 6
FUZZY_WINDOW_SLACK = 10

_QUOTE_CHARS = re.compile(r"[\"'`‘’“”«»]")
_MARKDOWN_EMPHASIS = re.compile(r"\*\*|__")
_WHITESPACE = re.compile(r"\s+")


def clean_for_match(value: str) -> str:
    """Normalize text for fuzzy comparison.

    NFD-decompose, drop combining marks, strip quotes and markdown emphasis,
    collapse whitespace, lowercase.
    """
    decomposed = unicodedata.normalize("NFD", value or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    stripped = _QUOTE_CHARS.sub("", stripped)
    stripped = _MARKDOWN_EMPHASIS.sub("", stripped)
    stripped = _WHITESPACE.sub(" ", stripped)
    return stripped.lower().strip()


def normalize_with_offsets(text: str) -> tuple[str, list[int]]:
    """Apply the ``clean_for_match`` rules to *text*, keeping offsets.

    Returns the normalized string (not stripped) and, for each of its
    characters, the index of the original character it came from.
    """
    chars: list[str] = []
    offsets: list[int] = []
    i = 0
    while i < len(text):
        if text[i:i + 2] in ("**", "__"):
            i += 2
            continue
        ch = text[i]
        if ch.isspace():
            if not chars or chars[-1] != " ":
                chars.append(" ")
                offsets.append(i)
            i += 1
            continue
        for part in unicodedata.normalize("NFD", ch):
            if unicodedata.combining(part) or _QUOTE_CHARS.match(part):
                continue
            for lowered in part.lower():
                chars.append(lowered)
                offsets.append(i)
        i += 1
    return "".join(chars), offsets


def prefix_edit_distance(target: str, window: str) -> tuple[int, int]:
    """Levenshtein distance from *target* to the closest prefix of *window*.

    Returns ``(distance, prefix_length)``; ties prefer the prefix whose
    length is closest to the target's.
    """
    if not target:
        return 0, 0
    best = (len(target), 0)
    best_key = (len(target), len(target))
    for j in range(1, len(window) + 1):
        distance = Levenshtein.distance(target, window[:j])
        key = (distance, abs(j - len(target)))
        if key < best_key:
            best, best_key = (distance, j), key
    return best


@dataclass
class ResolverTelemetry:
    exact_matches: int = 0
    case_insensitive_matches: int = 0
    fuzzy_matches: int = 0
    failures: int = 0
    total_requests: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class PositionResolver:
    """Resolve claimed substrings to character ranges in a source text."""

    def __init__(self) -> None:
        self._text: str | None = None
        self._occurrences: dict[str, list[int]] = {}
        self.telemetry = ResolverTelemetry()

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Drop the per-text occurrence cache."""
        self._text = None
        self._occurrences.clear()

    def _ensure_text(self, text: str) -> None:
        if self._text is not text and self._text != text:
            self._occurrences.clear()
            self._text = text

    def find_all_occurrences(self, text: str, substring: str) -> list[int]:
        """Return every (possibly overlapping) start offset of *substring*."""
        self._ensure_text(text)
        cached = self._occurrences.get(substring)
        if cached is not None:
            return cached
        positions: list[int] = []
        if substring:
            idx = text.find(substring)
            while idx != -1:
                positions.append(idx)
                idx = text.find(substring, idx + 1)
        self._occurrences[substring] = positions
        return positions

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def find_best_match(
        self,
        text: str,
        substring: str,
        preferred_start: int = 0,
    ) -> MatchResult | None:
        """Return the best ``[start, end)`` for *substring* in *text*, or ``None``."""
        self.telemetry.total_requests += 1
        if not substring or not text:
            self.telemetry.failures += 1
            return None

        occurrences = self.find_all_occurrences(text, substring)
        if occurrences:
            self.telemetry.exact_matches += 1
            start = self._nearest(occurrences, preferred_start)
            return MatchResult(start, start + len(substring))

        # Searched on the original text; lowercasing can change string length.
        found = re.search(re.escape(substring), text, re.IGNORECASE)
        if found is not None:
            self.telemetry.case_insensitive_matches += 1
            return MatchResult(found.start(), found.end())

        fuzzy = self._fuzzy_match(text, substring)
        if fuzzy is not None:
            self.telemetry.fuzzy_matches += 1
            logger.debug(
                "Fuzzy position match for %r -> [%d, %d) %r",
                substring, fuzzy.start, fuzzy.end, text[fuzzy.start:fuzzy.end],
            )
            return fuzzy

        self.telemetry.failures += 1
        logger.warning("No position match for span text %r", substring[:80])
        return None

    def find_or_raise(self, text: str, substring: str, preferred_start: int = 0) -> MatchResult:
        match = self.find_best_match(text, substring, preferred_start)
        if match is None:
            raise PositionNotFound(substring)
        return match

    @staticmethod
    def _nearest(occurrences: list[int], preferred_start: int) -> int:
        if len(occurrences) == 1 or preferred_start <= occurrences[0]:
            return occurrences[0]
        if preferred_start >= occurrences[-1]:
            return occurrences[-1]

        # Neighbours of the insertion point; ties go to the earlier one.
        pos = bisect_left(occurrences, preferred_start)
        if occurrences[pos] == preferred_start:
            return preferred_start
        before, after = occurrences[pos - 1], occurrences[pos]
        best = before if preferred_start - before <= after - preferred_start else after
        if abs(best - preferred_start) > 100:
            logger.debug(
                "Nearest occurrence is %d chars from hinted start %d",
                abs(best - preferred_start), preferred_start,
            )
        return best

    def _fuzzy_match(self, text: str, substring: str) -> MatchResult | None:
        target = clean_for_match(substring)
        if not target:
            return None

        # Candidates and windows live in normalized coordinates; offsets maps
        # them back to the original text.
        normalized, offsets = normalize_with_offsets(text)
        best_score = float("inf")
        best: tuple[int, int] | None = None
        for start in self._fuzzy_candidates(normalized, target):
            if normalized[start] == " ":
                start += 1
            window = normalized[start:start + len(target) + FUZZY_WINDOW_SLACK]
            if not window:
                continue
            distance, matched = prefix_edit_distance(target, window)
            if matched == 0:
                continue
            score = distance / max(len(target), matched, 1)
            if score < best_score:
                best_score, best = score, (start, matched)

        if best is None or best_score > FUZZY_MAX_SCORE:
            return None
        start, matched = best
        orig_start = offsets[start]
        orig_end = offsets[start + matched - 1] + 1
        # Keep trailing combining marks of the last character.
        while orig_end < len(text) and unicodedata.combining(text[orig_end]):
            orig_end += 1
        while orig_end > orig_start + 1 and text[orig_end - 1].isspace():
            orig_end -= 1
        return MatchResult(orig_start, orig_end)

    @staticmethod
    def _fuzzy_candidates(normalized: str, target: str) -> list[int]:
        candidates: list[int] = []
        anchor = target[:FUZZY_ANCHOR_LEN]
        idx = normalized.find(anchor) if anchor else -1
        while idx != -1 and len(candidates) < FUZZY_MAX_CANDIDATES:
            candidates.append(idx)
            lead = max(0, idx - FUZZY_ANCHOR_LEN)
            if lead != idx:
                candidates.append(lead)
            idx = normalized.find(anchor, idx + max(1, len(anchor)))

        if not candidates:
            stride = max(4, len(target) // 2)
            last_start = max(0, len(normalized) - len(target)) + 1
            candidates = list(range(0, last_start, stride))
        return [c for c in candidates if c < len(normalized)][:FUZZY_MAX_CANDIDATES]

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def get_telemetry(self) -> dict[str, int]:
        return self.telemetry.as_dict()

    def reset_telemetry(self) -> None:
        self.telemetry = ResolverTelemetry()
