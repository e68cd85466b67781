"""Tests for the result cache and its key scheme."""

import re

import pytest


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _result(spans=True, adversarial=False):
    from spanlabel.models import LabelResult, Span

    items = (Span(start=2, end=8, role="subject.identity", text="cowboy"),) if spans else ()
    return LabelResult(spans=items, is_adversarial=adversarial)


class TestCacheKeys:

    def test_key_shape(self):
        from spanlabel.cache import generate_cache_key

        key = generate_cache_key("A cowboy rides", None, "v1", "openai")
        assert re.fullmatch(r"span:[0-9a-f]{16}:[0-9a-f]{8}", key)

    def test_key_is_deterministic_and_policy_sensitive(self):
        from spanlabel.cache import generate_cache_key
        from spanlabel.models import ValidationPolicy

        a = generate_cache_key("A cowboy rides", ValidationPolicy(), "v1", "openai")
        assert a == generate_cache_key("A cowboy rides", ValidationPolicy(), "v1", "openai")
        assert a != generate_cache_key("A cowboy rides", ValidationPolicy(max_spans=5), "v1", "openai")
        assert a != generate_cache_key("A cowboy rides", ValidationPolicy(), "v2", "openai")
        assert a != generate_cache_key("A cowboy rides", ValidationPolicy(), "v1", "groq")

    def test_text_prefix_is_shared_across_policies(self):
        from spanlabel.cache import cache_key_pattern, cache_key_prefix, generate_cache_key
        from spanlabel.models import ValidationPolicy

        prefix = cache_key_prefix("A cowboy rides")
        assert generate_cache_key("A cowboy rides", ValidationPolicy(max_spans=3)).startswith(prefix)
        assert not generate_cache_key("A cowboy rides.").startswith(prefix)
        assert cache_key_pattern("A cowboy rides") == prefix + "*"


class TestResultCache:

    def test_hit_and_miss(self):
        from spanlabel.cache import ResultCache

        cache = ResultCache()
        assert cache.get("k") is None
        cache.set("k", _result())
        assert cache.get("k") == _result()
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

    def test_entries_expire(self):
        from spanlabel.cache import ResultCache

        clock = FakeClock()
        cache = ResultCache(default_ttl_s=60, clock=clock)
        cache.set("k", _result())
        clock.now += 59
        assert cache.get("k") is not None
        clock.now += 1
        assert cache.get("k") is None
        assert "k" not in cache
        assert cache.get_stats()["expired"] == 1

    def test_empty_and_adversarial_results_get_short_ttl(self):
        from spanlabel.cache import ResultCache

        cache = ResultCache(default_ttl_s=3600, short_ttl_s=300)
        assert cache.ttl_for(_result()) == 3600
        assert cache.ttl_for(_result(spans=False)) == 300
        assert cache.ttl_for(_result(adversarial=True)) == 300

    def test_least_recently_accessed_is_evicted(self):
        from spanlabel.cache import ResultCache

        cache = ResultCache(max_entries=2)
        cache.set("a", _result())
        cache.set("b", _result())
        cache.get("a")
        cache.set("c", _result())
        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2
        assert cache.get_stats()["evictions"] == 1

    def test_cleanup_expired(self):
        from spanlabel.cache import ResultCache

        clock = FakeClock()
        cache = ResultCache(default_ttl_s=10, clock=clock)
        cache.set("old", _result())
        clock.now += 5
        cache.set("new", _result())
        clock.now += 6
        assert cache.cleanup_expired() == 1
        assert "new" in cache

    def test_invalidate_by_text(self):
        from spanlabel.cache import ResultCache, generate_cache_key
        from spanlabel.models import ValidationPolicy

        cache = ResultCache()
        cache.set(generate_cache_key("A cowboy rides", ValidationPolicy()), _result())
        cache.set(generate_cache_key("A cowboy rides", ValidationPolicy(max_spans=3)), _result())
        cache.set(generate_cache_key("A dog runs", ValidationPolicy()), _result())
        assert cache.invalidate("A cowboy rides") == 2
        assert len(cache) == 1

    def test_delete_and_clear(self):
        from spanlabel.cache import ResultCache

        cache = ResultCache()
        cache.set("a", _result())
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.set("b", _result())
        cache.clear()
        assert len(cache) == 0

    def test_rejects_zero_capacity(self):
        from spanlabel.cache import ResultCache

        with pytest.raises(ValueError):
            ResultCache(max_entries=0)


class TestChunking:

    def test_chunks_follow_sentences(self):
        from spanlabel.chunking import TextChunker

        text = "A cowboy rides. A cowboy waits."
        chunks = TextChunker(max_words=3).chunk_text(text)
        assert [(c.text, c.start_offset) for c in chunks] == [("A cowboy rides.", 0), ("A cowboy waits.", 16)]
        for chunk in chunks:
            assert text[chunk.start_offset:chunk.end_offset] == chunk.text

    def test_short_sentences_share_a_chunk(self):
        from spanlabel.chunking import TextChunker

        chunks = TextChunker(max_words=10).chunk_text("Rain falls. A dog runs. Night.")
        assert len(chunks) == 1
        assert chunks[0].word_count == 6

    def test_oversized_sentence_is_cut_on_words(self):
        from spanlabel.chunking import TextChunker

        text = "one two three four five six seven"
        chunks = TextChunker(max_words=3).chunk_text(text)
        assert [c.word_count for c in chunks] == [3, 3, 1]
        assert all(c.word_count <= 3 for c in chunks)
        assert chunks[-1].text == "seven"

    def test_needs_chunking(self):
        from spanlabel.chunking import TextChunker

        chunker = TextChunker(max_words=3)
        assert not chunker.needs_chunking("one two three")
        assert chunker.needs_chunking("one two three four")

    def test_merge_shifts_and_dedupes(self):
        from spanlabel.chunking import TextChunker
        from spanlabel.models import Span

        low = Span(start=0, end=4, role="lighting.timeOfDay", text="dusk", confidence=0.6)
        high = Span(start=0, end=4, role="lighting.timeOfDay", text="dusk", confidence=0.9)
        other = Span(start=2, end=8, role="subject.identity", text="cowboy")
        merged = TextChunker.merge_chunked_spans([(20, [low]), (20, [high]), (0, [other])])
        assert [(s.start, s.end) for s in merged] == [(2, 8), (20, 24)]
        assert merged[1].confidence == 0.9
