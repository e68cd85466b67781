"""Tests for the dictionary / frame fast path."""


def _extractor(**overrides):
    from spanlabel.config import SpanlabelConfig
    from spanlabel.fastpath import FastPathExtractor

    return FastPathExtractor(config=SpanlabelConfig(**overrides))


class TestDeclines:

    def test_short_text_declines(self):
        outcome = _extractor().run("Pan left")
        assert outcome.declined
        assert outcome.attempted
        assert "too short" in outcome.reason

    def test_long_text_declines(self):
        text = " ".join(["cowboy"] * 30)
        outcome = _extractor(chunk_max_words=10).run(text)
        assert outcome.declined
        assert "too long" in outcome.reason

    def test_disabled_by_request_is_not_an_attempt(self):
        from spanlabel.models import LabelOptions

        outcome = _extractor().run("A cowboy rides at dawn", options=LabelOptions(use_fastpath=False))
        assert outcome.declined
        assert outcome.attempted is False

    def test_disabled_by_configuration(self):
        outcome = _extractor(fastpath_enabled=False).run("A cowboy rides at dawn")
        assert outcome.declined
        assert outcome.reason == "disabled by configuration"

    def test_request_can_force_fast_path_on(self):
        from spanlabel.models import LabelOptions

        outcome = _extractor(fastpath_enabled=False).run(
            "A cowboy rides at dawn", options=LabelOptions(use_fastpath=True)
        )
        assert outcome.result is not None

    def test_nothing_recognisable_declines(self):
        outcome = _extractor().run("Something happens somewhere eventually")
        assert outcome.declined
        assert outcome.candidates == 0

    def test_extraction_error_declines(self):
        from spanlabel.config import SpanlabelConfig
        from spanlabel.fastpath import FastPathExtractor

        def broken(text):
            raise RuntimeError("tagger crashed")

        extractor = FastPathExtractor(config=SpanlabelConfig(), classifier=broken)
        outcome = extractor.run("A cowboy rides at dawn")
        assert outcome.declined
        assert "tagger crashed" in outcome.reason

    def test_long_text_needs_classifier_when_required(self):
        text = ("A cowboy walks through a dusty town at dawn while a dog runs along the street. " * 7).strip()
        outcome = _extractor(fastpath_require_classifier=True).run(text)
        assert outcome.declined
        assert outcome.reason == "required classifier unavailable"


class TestAccepts:

    def test_technical_rich_text(self):
        text = "Wide shot, the camera pans left across a foggy harbor at golden hour, 35mm film, 24fps."
        outcome = _extractor().run(text)
        result = outcome.result
        assert result is not None
        assert result.meta.source == "fastpath"
        assert result.meta.version == "nlp-v1"
        assert result.meta.nlp_attempted is True
        assert result.meta.notes.startswith("Generated via fast path (")
        roles = {s.role for s in result.spans}
        assert {"shot.type", "lighting.timeOfDay", "technical.frameRate"} <= roles
        assert any(s.role == "camera.movement" and s.text.startswith("pans") for s in result.spans)
        for span in result.spans:
            assert text[span.start:span.end] == span.text
            assert span.source == "fastpath"

    def test_frying_pan_is_not_a_camera_move(self):
        text = "A chef tosses vegetables in a golden frying pan"
        result = _extractor().extract(text)
        assert result is not None
        assert all(s.role != "camera.movement" for s in result.spans)
        assert any(s.text == "chef" and s.role == "subject.identity" for s in result.spans)

    def test_spans_are_disjoint_and_sorted(self):
        text = "A samurai in a red dress walks through a misty forest at dusk, cinematic, 4K"
        result = _extractor().extract(text)
        assert result is not None
        spans = list(result.spans)
        assert spans == sorted(spans, key=lambda s: (s.start, s.end))
        for a, b in zip(spans, spans[1:]):
            assert a.end <= b.start

    def test_classifier_span_nested_in_wider_candidate_is_absorbed(self):
        from spanlabel.config import SpanlabelConfig
        from spanlabel.fastpath import FastPathExtractor

        def tagger(text):
            start = text.index("lighthouse")
            yield {"start": start, "end": start + 10, "text": "lighthouse", "role": "environment.location", "confidence": 0.9}

        extractor = FastPathExtractor(config=SpanlabelConfig(), classifier=tagger)
        candidates = extractor.collect_candidates("A lone lighthouse glows at night")
        assert not any(s.text == "lighthouse" for s in candidates)
        hosts = [s for s in candidates if "lighthouse" in s.text]
        assert len(hosts) == 1
        assert hosts[0].category == "environment"
        assert hosts[0].confidence >= 0.9

    def test_merge_keeps_nested_spans_of_other_categories(self):
        from spanlabel.fastpath.extractor import _merge_contained
        from spanlabel.models import Span

        host = Span(start=2, end=17, role="environment.location", text="lone lighthouse", confidence=0.6)
        nested = Span(start=7, end=17, role="environment.location", text="lighthouse", confidence=0.9)
        other = Span(start=7, end=17, role="subject.identity", text="lighthouse", confidence=0.8)
        merged = _merge_contained([nested, other, host])
        assert [(s.text, s.role) for s in merged] == [
            ("lone lighthouse", "environment.location"),
            ("lighthouse", "subject.identity"),
        ]
        assert merged[0].confidence == 0.9


class TestHeuristics:

    def test_expected_min_spans_scales_with_length(self):
        from spanlabel.fastpath import expected_min_spans

        assert expected_min_spans(10, 20) == 1
        assert expected_min_spans(60, 20) == 4
        assert expected_min_spans(100, 20) == 8
        assert expected_min_spans(300, 20) == 15
        assert expected_min_spans(300, 5) == 5

    def test_coverage_percent(self):
        from spanlabel.fastpath import coverage_percent
        from spanlabel.models import Span

        text = "a cowboy at dawn"
        spans = [Span(start=2, end=8, role="subject.identity", text="cowboy")]
        assert coverage_percent(spans, text) == 25.0
        assert coverage_percent([], "") == 0.0

    def test_term_index_prefers_longest_term(self):
        from spanlabel.fastpath import build_term_index

        pattern, roles = build_term_index({"lighting.timeOfDay": ("golden hour",), "style.aesthetic": ("golden",)})
        m = pattern.search("at Golden Hour")
        assert m.group(0) == "Golden Hour"
        assert roles[m.group(0).lower()] == "lighting.timeOfDay"

    def test_vocab_stats(self):
        from spanlabel.fastpath.vocab import PATTERNS, VOCABULARY, vocab_stats

        stats = vocab_stats()
        assert stats["roles"] == len(VOCABULARY)
        assert stats["patterns"] == len(PATTERNS)
        assert stats["terms"] > 100
