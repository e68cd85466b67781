"""Split long texts into word-bounded chunks and merge their spans back."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from .models import Span

_SENTENCE = re.compile(r"[^.!?\n]+(?:[.!?]+|\n+|$)")
_WORD = re.compile(r"\S+")


def count_words(text: str) -> int:
    return len((text or "").split())


@dataclass(frozen=True)
class TextChunk:
    text: str
    start_offset: int
    word_count: int

    @property
    def end_offset(self) -> int:
        return self.start_offset + len(self.text)


class TextChunker:
    """Chunk on sentence boundaries, never exceeding ``max_words`` per chunk.

    A sentence longer than ``max_words`` is cut on word boundaries.
    Every chunk's text equals ``source[start_offset:end_offset]``.
    """

    def __init__(self, max_words: int = 400):
        if max_words < 1:
            raise ValueError("max_words must be at least 1")
        self.max_words = max_words

    def _pieces(self, text: str) -> list[tuple[int, int, int]]:
        """Return ``(start, end, words)`` for each sentence or oversized slice."""
        pieces: list[tuple[int, int, int]] = []
        for m in _SENTENCE.finditer(text):
            words = list(_WORD.finditer(text, m.start(), m.end()))
            if not words:
                continue
            for i in range(0, len(words), self.max_words):
                group = words[i:i + self.max_words]
                pieces.append((group[0].start(), group[-1].end(), len(group)))
        return pieces

    def chunk_text(self, text: str) -> list[TextChunk]:
        chunks: list[TextChunk] = []
        start = end = words = 0
        for p_start, p_end, p_words in self._pieces(text):
            if words and words + p_words > self.max_words:
                chunks.append(TextChunk(text[start:end], start, words))
                words = 0
            if not words:
                start = p_start
            end = p_end
            words += p_words
        if words:
            chunks.append(TextChunk(text[start:end], start, words))
        return chunks

    def needs_chunking(self, text: str) -> bool:
        return count_words(text) > self.max_words

    @staticmethod
    def merge_chunked_spans(results: Iterable[tuple[int, Sequence[Span]]]) -> list[Span]:
        """Shift each chunk's spans by its offset and drop boundary duplicates."""
        merged: dict[tuple[int, int, str], Span] = {}
        for offset, spans in results:
            for span in spans:
                shifted = span.model_copy(update={"start": span.start + offset, "end": span.end + offset})
                key = (shifted.start, shifted.end, shifted.role)
                current = merged.get(key)
                if current is None or shifted.confidence > current.confidence:
                    merged[key] = shifted
        return sorted(merged.values(), key=lambda s: (s.start, s.end))
