"""Frame matching over a shallow chunking of the input text.

Text is split into clauses at punctuation and coordinating words, then each
clause is chunked into verb phrases (frame-evoking terms plus trailing
directions and adverbs), prepositional phrases and noun phrases.  Every
verb phrase is disambiguated against the frame set and its frame elements
are read off the neighbouring chunks.

Example::

    "A soldier runs through the forest"
    NP "A soldier" | VP "runs" | PP "through the forest"
    Motion frame: THEME="A soldier", PATH="through the forest"
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Literal

from .disambiguator import CameraContext, FrameDisambiguator, FrameMatch, build_camera_context
from .lexicon import DIRECTIONS, LIGHT_QUALITY_WORDS, SPEED_ADVERBS, FrameElement

_TOKEN = re.compile(r"[A-Za-z][A-Za-z'-]*|\d+(?:[.:/]\d+)*[A-Za-z%]*|[^\sA-Za-z\d]")

PREPOSITIONS: frozenset[str] = frozenset({
    "through", "along", "across", "over", "around", "from", "off", "to",
    "toward", "towards", "into", "onto", "in", "within", "throughout", "on",
    "at", "by", "under", "beneath", "near", "beside", "behind", "past",
    "between", "inside", "outside", "above", "below", "against", "with",
})
CLAUSE_BREAKS: frozenset[str] = frozenset({"and", "while", "as", "but", "then", "or", "when"})
DETERMINERS: frozenset[str] = frozenset({
    "a", "an", "the", "this", "that", "these", "those", "his", "her", "its",
    "their", "our", "my", "your", "some",
})
# Modifiers that turn a camera verb into a household noun ("frying pan")
NOUN_MODIFIERS: frozenset[str] = frozenset({
    "frying", "sauce", "saute", "sauté", "roasting", "baking", "cake",
    "bread", "dinner", "egg", "hair", "paint", "dust", "toilet", "construction",
    "tow", "fire", "food", "pickup", "delivery", "spring",
})

MOTION_PREPOSITIONS: dict[str, tuple[str, ...]] = {
    "PATH": ("through", "along", "across", "over", "around"),
    "SOURCE": ("from", "out of", "off"),
    "GOAL": ("to", "toward", "towards", "into", "onto"),
    "AREA": ("in", "within", "throughout"),
}
CAMERA_SUBJECT_PREPOSITIONS: tuple[str, ...] = ("on", "to", "toward", "towards", "at")
LIGHT_SOURCE_PREPOSITIONS: tuple[str, ...] = ("by", "from")


@dataclass(frozen=True)
class Token:
    text: str
    start: int
    end: int

    @property
    def lower(self) -> str:
        return self.text.lower()

    @property
    def is_word(self) -> bool:
        return self.text[:1].isalnum()

    @property
    def is_adverb(self) -> bool:
        low = self.lower
        return low in SPEED_ADVERBS or (len(low) > 4 and low.endswith("ly"))


ChunkType = Literal["NP", "VP", "PP"]


@dataclass
class Chunk:
    type: ChunkType
    tokens: list[Token]
    match: FrameMatch | None = None
    head_len: int = 1

    @property
    def start(self) -> int:
        return self.tokens[0].start

    @property
    def end(self) -> int:
        return self.tokens[-1].end

    @property
    def preposition(self) -> str | None:
        if self.type != "PP":
            return None
        first = self.tokens[0].lower
        if first == "out" and len(self.tokens) > 1 and self.tokens[1].lower == "of":
            return "out of"
        return first


@dataclass
class ElementMatch:
    name: str
    text: str
    start: int
    end: int
    maps_to: str | None
    confidence: float = 1.0


@dataclass
class FrameInstance:
    """One frame evoked by one verb phrase, with its extracted elements."""

    match: FrameMatch
    verb_start: int
    verb_end: int
    verb_text: str
    context: CameraContext | None = None
    elements: dict[str, ElementMatch] = field(default_factory=dict)

    @property
    def frame_name(self) -> str:
        return self.match.frame.name

    @property
    def role(self) -> str:
        return self.match.role

    def add_element(self, name: str, text: str, start: int, end: int, confidence: float = 1.0) -> None:
        element: FrameElement | None = self.match.frame.frame_elements.get(name)
        self.elements[name] = ElementMatch(
            name=name,
            text=text,
            start=start,
            end=end,
            maps_to=element.maps_to if element else None,
            confidence=confidence,
        )

    def has_element(self, name: str) -> bool:
        return name in self.elements


def tokenize(text: str) -> list[Token]:
    return [Token(m.group(0), m.start(), m.end()) for m in _TOKEN.finditer(text or "")]


def _split_clauses(tokens: list[Token]) -> list[list[Token]]:
    clauses: list[list[Token]] = []
    current: list[Token] = []
    for tok in tokens:
        if not tok.is_word and tok.text not in "-'":
            if current:
                clauses.append(current)
            current = []
            continue
        if tok.lower in CLAUSE_BREAKS:
            if current:
                clauses.append(current)
            current = []
            continue
        current.append(tok)
    if current:
        clauses.append(current)
    return clauses


class FrameMatcher:
    """Match verbs in free text to frames and extract frame elements."""

    def __init__(self, disambiguator: FrameDisambiguator | None = None):
        self.disambiguator = disambiguator or FrameDisambiguator()

    # ------------------------------------------------------------------
    # Chunking
    # ------------------------------------------------------------------

    def _verb_at(self, text: str, clause: list[Token], i: int, likely_camera: bool) -> tuple[FrameMatch, int] | None:
        """Return the frame match and token length of a verb starting at ``clause[i]``."""
        for width in (2, 1):
            if i + width > len(clause):
                continue
            term = " ".join(t.lower for t in clause[i:i + width])
            if not self.disambiguator.is_known_term(term):
                continue
            # "a pan", "the crane", "frying pan" are nouns
            if width == 1 and i > 0 and clause[i - 1].lower in DETERMINERS | NOUN_MODIFIERS:
                continue
            context = build_camera_context(text, clause[i + width - 1].end, likely_camera=likely_camera)
            match = self.disambiguator.disambiguate(term, context)
            if match is not None:
                return match, width
        return None

    def chunk(self, text: str, likely_camera: bool = False) -> list[list[Chunk]]:
        """Chunk *text* into clauses of NP/VP/PP chunks."""
        clauses: list[list[Chunk]] = []
        for clause in _split_clauses(tokenize(text)):
            chunks: list[Chunk] = []
            pending: list[Token] = []
            current_pp: list[Token] | None = None

            def flush() -> None:
                nonlocal pending, current_pp
                if current_pp:
                    chunks.append(Chunk("PP", current_pp))
                elif pending:
                    chunks.append(Chunk("NP", pending))
                pending, current_pp = [], None

            i = 0
            while i < len(clause):
                tok = clause[i]
                verb = self._verb_at(text, clause, i, likely_camera)
                if verb is not None:
                    match, width = verb
                    flush()
                    vp = list(clause[i:i + width])
                    j = i + width
                    camera = match.frame.name == "Cinematography"
                    # Trailing directions and adverbs belong to the verb phrase;
                    # "in"/"out" only do for camera moves ("dolly in").
                    while j < len(clause):
                        low = clause[j].lower
                        is_direction = low in DIRECTIONS and (camera or low not in PREPOSITIONS)
                        if not (is_direction or clause[j].is_adverb):
                            break
                        vp.append(clause[j])
                        j += 1
                    chunks.append(Chunk("VP", vp, match=match, head_len=width))
                    i = j
                    continue
                if tok.lower in PREPOSITIONS:
                    flush()
                    current_pp = [tok]
                elif current_pp is not None:
                    current_pp.append(tok)
                else:
                    pending.append(tok)
                i += 1
            flush()
            if chunks:
                clauses.append(chunks)
        return clauses

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def match_frames(self, text: str, likely_camera: bool = False) -> list[FrameInstance]:
        instances: list[FrameInstance] = []
        for chunks in self.chunk(text, likely_camera=likely_camera):
            for idx, chunk in enumerate(chunks):
                if chunk.type != "VP" or chunk.match is None:
                    continue
                head = chunk.tokens[:chunk.head_len]
                verb_start, verb_end = head[0].start, head[-1].end
                context = build_camera_context(text, verb_end, likely_camera=likely_camera)
                instance = FrameInstance(
                    match=chunk.match,
                    verb_start=verb_start,
                    verb_end=verb_end,
                    verb_text=text[verb_start:verb_end],
                    context=context,
                )
                name = chunk.match.frame.name
                if name == "Motion":
                    self._motion_elements(instance, chunks, idx, text)
                elif name == "Cinematography":
                    self._cinematography_elements(instance, chunks, idx, text)
                elif name == "Lighting":
                    self._lighting_elements(instance, chunks, idx, text)
                instances.append(instance)
        return instances

    @staticmethod
    def _trailing(chunk: Chunk) -> list[Token]:
        return chunk.tokens[chunk.head_len:]

    def _add_tokens(self, instance: FrameInstance, name: str, tokens: list[Token], text: str) -> None:
        if tokens:
            start, end = tokens[0].start, tokens[-1].end
            instance.add_element(name, text[start:end], start, end)

    def _motion_elements(self, instance: FrameInstance, chunks: list[Chunk], idx: int, text: str) -> None:
        for prev in reversed(chunks[:idx]):
            if prev.type == "NP":
                self._add_tokens(instance, "THEME", prev.tokens, text)
                break
        for nxt in chunks[idx + 1:]:
            if nxt.type != "PP":
                continue
            prep = nxt.preposition
            for element, preps in MOTION_PREPOSITIONS.items():
                if prep in preps and not instance.has_element(element):
                    self._add_tokens(instance, element, nxt.tokens, text)
                    break
        adverbs = [t for t in self._trailing(chunks[idx]) if t.is_adverb]
        self._add_tokens(instance, "MANNER", adverbs, text)

    def _cinematography_elements(self, instance: FrameInstance, chunks: list[Chunk], idx: int, text: str) -> None:
        trailing = self._trailing(chunks[idx])
        directions = [t for t in trailing if t.lower in DIRECTIONS]
        if directions:
            self._add_tokens(instance, "DIRECTION", directions[:1], text)
        elif idx + 1 < len(chunks) and chunks[idx + 1].tokens[0].lower in DIRECTIONS:
            self._add_tokens(instance, "DIRECTION", chunks[idx + 1].tokens[:1], text)
        for nxt in chunks[idx + 1:]:
            if nxt.type == "PP" and nxt.preposition in CAMERA_SUBJECT_PREPOSITIONS:
                self._add_tokens(instance, "SUBJECT", nxt.tokens, text)
                break
        speed = [t for t in trailing if t.is_adverb]
        self._add_tokens(instance, "SPEED", speed, text)

    def _lighting_elements(self, instance: FrameInstance, chunks: list[Chunk], idx: int, text: str) -> None:
        before = [c for c in chunks[:idx] if c.type == "NP"]
        after = [c for c in chunks[idx + 1:] if c.type == "NP"]
        scene = before[-1] if before else (after[0] if after else None)
        if scene is not None:
            self._add_tokens(instance, "SCENE", scene.tokens, text)
        for nxt in chunks[idx + 1:]:
            if nxt.type == "PP" and nxt.preposition in LIGHT_SOURCE_PREPOSITIONS:
                self._add_tokens(instance, "SOURCE", nxt.tokens, text)
                break
        for chunk in chunks:
            quality = [t for t in chunk.tokens if t.lower in LIGHT_QUALITY_WORDS]
            if quality and chunk.type in ("NP", "PP"):
                self._add_tokens(instance, "QUALITY", quality, text)
                break

    # ------------------------------------------------------------------
    # Debugging
    # ------------------------------------------------------------------

    def analyze_frame_matches(self, instances: list[FrameInstance]) -> dict[str, Any]:
        by_frame = {f.name: 0 for f in self.disambiguator.frames}
        for inst in instances:
            by_frame[inst.frame_name] = by_frame.get(inst.frame_name, 0) + 1
        return {
            "total_frames": len(instances),
            "frames": [
                {
                    "frame": inst.frame_name,
                    "lexical_unit": inst.verb_text,
                    "elements": list(inst.elements),
                    "element_count": len(inst.elements),
                }
                for inst in instances
            ],
            "by_frame": by_frame,
        }
