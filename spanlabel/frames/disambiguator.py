"""Decide which frame an ambiguous verb evokes in context.

Camera-only terms ("tilt", "rack focus") evoke the Cinematography frame
unconditionally.  Terms shared with the Motion frame ("pan", "dolly",
"truck", "roll", "crane") evoke it only with a positive context signal:
a camera/lens mention, a directional word right after the verb, or an
explicit hint from the caller.  Without one the caller moves on to Motion,
which keeps "frying pan" out of ``camera.movement`` while still catching
"pan left".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, Sequence

from .lexicon import CAMERA_KEYWORDS, DEFAULT_FRAMES, DIRECTIONS, Frame

_NEXT_WORD = re.compile(r"\s*([A-Za-z][A-Za-z-]*)")


@dataclass(frozen=True)
class CameraContext:
    has_camera_keyword: bool = False
    directional_word: str | None = None
    likely_camera_context: bool = False

    @property
    def has_signal(self) -> bool:
        return self.has_camera_keyword or bool(self.directional_word) or self.likely_camera_context


@dataclass(frozen=True)
class FrameMatch:
    frame: Frame
    category: str
    term: str

    @property
    def role(self) -> str:
        return self.frame.role_for(self.category)


def build_camera_context(
    text: str,
    term_end: int,
    directions: frozenset[str] = DIRECTIONS,
    likely_camera: bool = False,
) -> CameraContext:
    """Collect camera signals for a term ending at *term_end* in *text*."""
    lowered = (text or "").lower()
    has_keyword = any(k in lowered for k in CAMERA_KEYWORDS)
    direction = None
    m = _NEXT_WORD.match(text or "", term_end)
    if m and m.group(1).lower() in directions:
        direction = m.group(1)
    return CameraContext(
        has_camera_keyword=has_keyword,
        directional_word=direction,
        likely_camera_context=likely_camera or has_keyword or direction is not None,
    )


class FrameDisambiguator:
    """Pure lookup over an injected frame set."""

    def __init__(self, frames: Sequence[Frame] = DEFAULT_FRAMES):
        self.frames = tuple(frames)
        self._by_name = {f.name: f for f in self.frames}

    def get_frame(self, name: str) -> Frame | None:
        return self._by_name.get(name)

    def evokes_frame(
        self,
        frame: Frame | str,
        term: str,
        context: CameraContext | None = None,
    ) -> str | Literal[False]:
        """Return the lexical category *term* evokes in *frame*, else ``False``."""
        if isinstance(frame, str):
            resolved = self.get_frame(frame)
            if resolved is None:
                return False
            frame = resolved
        folded = (term or "").strip().lower()
        category = frame.lookup(folded)
        if category is None:
            return False
        if folded not in frame.ambiguous_terms:
            return category
        if context is not None and context.has_signal:
            return category
        return False

    def disambiguate(self, term: str, context: CameraContext | None = None) -> FrameMatch | None:
        """Try every frame in order and return the first that *term* evokes."""
        for frame in self.frames:
            category = self.evokes_frame(frame, term, context)
            if category:
                return FrameMatch(frame=frame, category=category, term=term.strip().lower())
        return None

    def is_known_term(self, term: str) -> bool:
        folded = (term or "").strip().lower()
        return any(frame.lookup(folded) for frame in self.frames)
