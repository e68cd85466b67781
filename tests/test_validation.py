"""Tests for structural validation and the semantic critic."""

import pytest

TEXT = "A cowboy rides at dawn"


def _span(text, start, end, role, confidence=0.9):
    return {"text": text, "start": start, "end": end, "role": role, "confidence": confidence}


class TestStrictValidation:

    def test_clean_spans_pass(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans(
            [_span("cowboy", 2, 8, "subject.identity"), _span("dawn", 18, 22, "lighting.timeOfDay", 0.8)],
            TEXT,
        )
        assert outcome.ok
        spans = outcome.result.spans
        assert [(s.start, s.end, s.role) for s in spans] == [(2, 8, "subject.identity"), (18, 22, "lighting.timeOfDay")]
        assert all(s.source == "llm" for s in spans)

    def test_wrong_indices_are_adjusted(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans([_span("dawn", 0, 4, "lighting.timeOfDay")], TEXT)
        assert outcome.ok
        assert (outcome.result.spans[0].start, outcome.result.spans[0].end) == (18, 22)
        assert any("indices auto-adjusted from 0-4 to 18-22" in n for n in outcome.notes)

    def test_missing_text_fails(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans([_span("submarine", 0, 9, "subject.identity")], TEXT)
        assert not outcome.ok
        assert outcome.result is None
        assert outcome.errors == ['Span 0 text "submarine" not found in source']

    def test_invalid_role_fails(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans([_span("cowboy", 2, 8, "vehicle.wobble")], TEXT)
        assert not outcome.ok
        assert 'invalid role "vehicle.wobble"' in outcome.errors[0]

    def test_unknown_attribute_folds_into_parent(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans([_span("rides", 9, 14, "action.run")], TEXT)
        assert outcome.ok
        assert outcome.result.spans[0].role == "action"
        assert 'folded into parent "action"' in outcome.result.meta.notes

    def test_legacy_role_is_resolved(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans([_span("dawn", 18, 22, "timeOfDay")], TEXT)
        assert outcome.ok
        assert outcome.result.spans[0].role == "lighting.timeOfDay"

    def test_forbidden_category(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_spans

        policy = ValidationPolicy(forbidden_categories=("lighting",))
        outcome = validate_spans([_span("dawn", 18, 22, "lighting.timeOfDay")], TEXT, policy)
        assert not outcome.ok
        assert 'forbidden category "lighting.timeOfDay"' in outcome.errors[0]

    def test_non_technical_word_limit(self):
        from spanlabel.validation import validate_spans

        text = "A tall man with a very long grey beard walks"
        outcome = validate_spans([_span("tall man with a very long grey beard", 2, 38, "subject.identity")], text)
        assert not outcome.ok
        assert "exceeds 6 word limit" in outcome.errors[0]

    def test_technical_spans_are_exempt_from_word_limit(self):
        from spanlabel.validation import validate_spans

        text = "shot on a vintage thirty five millimetre anamorphic prime lens kit"
        phrase = "vintage thirty five millimetre anamorphic prime lens kit"
        outcome = validate_spans([_span(phrase, 10, 10 + len(phrase), "camera.lens")], text)
        assert outcome.ok

    def test_missing_required_category(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_spans

        policy = ValidationPolicy(required_categories=("camera",))
        outcome = validate_spans([_span("cowboy", 2, 8, "subject.identity")], TEXT, policy)
        assert not outcome.ok
        assert outcome.errors == ['Missing required category "camera"']

    def test_non_object_entry(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans(["oops"], TEXT)
        assert outcome.errors == ["Span 0 is not an object"]


class TestLenientValidation:

    def test_unlocatable_span_is_dropped(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans(
            [_span("submarine", 0, 9, "subject.identity"), _span("cowboy", 2, 8, "subject.identity")],
            TEXT,
            attempt=2,
        )
        assert outcome.ok
        assert [s.text for s in outcome.result.spans] == ["cowboy"]
        assert any("dropped" in n for n in outcome.notes)

    def test_invalid_roles_fall_back(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans(
            [_span("cowboy", 2, 8, "bogus.thing"), _span("dawn", 18, 22, "lighting.glow")],
            TEXT,
            attempt=2,
        )
        assert outcome.ok
        assert [s.role for s in outcome.result.spans] == ["subject.identity", "lighting"]

    def test_missing_required_category_becomes_note(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_spans

        policy = ValidationPolicy(required_categories=("camera",))
        outcome = validate_spans([_span("cowboy", 2, 8, "subject.identity")], TEXT, policy, attempt=2)
        assert outcome.ok
        assert 'Missing required category "camera"' in outcome.notes


class TestSanitizing:

    def test_duplicates_are_removed(self):
        from spanlabel.validation import validate_spans

        span = _span("cowboy", 2, 8, "subject.identity")
        outcome = validate_spans([span, dict(span)], TEXT)
        assert len(outcome.result.spans) == 1
        assert "Removed 1 duplicate spans" in outcome.notes

    def test_overlap_keeps_higher_confidence(self):
        from spanlabel.validation import validate_spans

        text = "golden hour light"
        outcome = validate_spans(
            [_span("golden hour", 0, 11, "lighting.timeOfDay", 0.9), _span("hour light", 7, 17, "lighting.quality", 0.6)],
            text,
        )
        assert [s.text for s in outcome.result.spans] == ["golden hour"]

    def test_overlap_allowed_by_policy(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_spans

        text = "golden hour light"
        outcome = validate_spans(
            [_span("golden hour", 0, 11, "lighting.timeOfDay"), _span("hour light", 7, 17, "lighting.quality")],
            text,
            ValidationPolicy(allow_overlap=True),
        )
        assert len(outcome.result.spans) == 2

    def test_confidence_floor_and_cap(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_spans

        spans = [
            _span("cowboy", 2, 8, "subject.identity", 0.6),
            _span("rides", 9, 14, "action.movement", 0.95),
            _span("dawn", 18, 22, "lighting.timeOfDay", 0.2),
        ]
        outcome = validate_spans(spans, TEXT, ValidationPolicy(max_spans=1, min_confidence=0.5))
        assert [s.text for s in outcome.result.spans] == ["rides"]

    def test_confidence_is_clamped(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans(
            [_span("cowboy", 2, 8, "subject.identity", 1.7), _span("dawn", 18, 22, "lighting.timeOfDay", "high")],
            TEXT,
        )
        assert [s.confidence for s in outcome.result.spans] == [1.0, 0.7]

    def test_meta_and_source_carry_through(self):
        from spanlabel.validation import validate_spans

        outcome = validate_spans(
            [_span("cowboy", 2, 8, "subject.identity")],
            TEXT,
            meta={"version": "v2", "notes": "hello"},
            source="repaired",
            analysis_trace="thinking",
        )
        result = outcome.result
        assert result.meta.version == "v2"
        assert result.meta.notes == "hello"
        assert result.analysis_trace == "thinking"
        assert result.spans[0].source == "repaired"


CAMERA_TEXT = "The camera pans across the valley"
HAWK_TEXT = "The hawk tilts its head"


class TestCritic:

    def test_camera_verb_near_camera_is_relabeled(self):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        spans = [Span(start=11, end=15, role="action.movement", text="pans")]
        review = critique(spans, CAMERA_TEXT)
        assert review.ok
        assert review.spans[0].role == "camera.movement"
        assert review.corrections[0].rule == "camera_action_confusion"

    def test_corrected_output_is_stable(self):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        first = critique([Span(start=11, end=15, role="action.movement", text="pans")], CAMERA_TEXT)
        second = critique(first.spans, CAMERA_TEXT)
        assert second.corrections == []
        assert second.issues == []
        assert second.spans == first.spans

    def test_review_mode_surfaces_non_blocking_issue(self):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        spans = [Span(start=9, end=14, role="action.movement", text="tilts")]
        review = critique(spans, HAWK_TEXT, review_mode="review")
        assert review.ok
        assert len(review.review_issues) == 1
        assert review.spans[0].role == "action.movement"

    def test_repair_mode_blocks(self):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        spans = [Span(start=9, end=14, role="action.movement", text="tilts")]
        review = critique(spans, HAWK_TEXT, review_mode="repair")
        assert not review.ok
        assert review.errors[0].startswith("camera_action_confusion:")

    def test_ignore_mode_skips_check(self):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        spans = [Span(start=9, end=14, role="action.movement", text="tilts")]
        review = critique(spans, HAWK_TEXT, review_mode="ignore")
        assert review.ok
        assert review.issues == []

    def test_sequential_actions_are_never_corrected(self):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        text = "She opens the door and then runs outside"
        spans = [
            Span(start=4, end=18, role="action.movement", text="opens the door"),
            Span(start=23, end=40, role="action.movement", text="then runs outside"),
        ]
        review = critique(spans, text)
        assert not review.ok
        assert review.corrections == []
        assert review.errors[0].startswith("one_clip_one_action:")
        assert review.spans == spans

    @pytest.mark.parametrize(
        "first,second",
        [
            ("stands next to the fire", "warms his hands"),
            ("finally smiles", "waves to the crowd"),
            ("begins to dance", "spins slowly"),
        ],
    )
    def test_spatial_and_aspect_words_are_not_sequences(self, first, second):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        text = f"A man {first} and {second}"
        spans = [
            Span(start=6, end=6 + len(first), role="action.state", text=first),
            Span(start=11 + len(first), end=len(text), role="action.movement", text=second),
        ]
        review = critique(spans, text)
        assert review.ok
        assert review.issues == []

    def test_clause_opening_then_is_a_sequence(self):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        text = "A man waves, then walks away"
        spans = [
            Span(start=6, end=11, role="action.gesture", text="waves"),
            Span(start=13, end=28, role="action.movement", text="then walks away"),
        ]
        review = critique(spans, text)
        assert not review.ok
        assert [i.span_text for i in review.issues] == ["then walks away"]

    def test_taxonomy_misalignment_is_fixed(self):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        text = "Kodak Portra under a sunset glow"
        spans = [
            Span(start=0, end=12, role="style.aesthetic", text="Kodak Portra"),
            Span(start=21, end=32, role="lighting.source", text="sunset glow"),
        ]
        review = critique(spans, text)
        assert review.ok
        assert [s.role for s in review.spans] == ["style.filmStock", "lighting.timeOfDay"]

    def test_auto_correct_off_leaves_blocking_issue(self):
        from spanlabel.models import Span
        from spanlabel.validation import critique

        spans = [Span(start=11, end=15, role="action.movement", text="pans")]
        review = critique(spans, CAMERA_TEXT, auto_correct=False)
        assert not review.ok
        assert review.spans[0].role == "action.movement"


class TestValidateAndCritique:

    def test_corrections_reach_the_result(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_and_critique

        outcome = validate_and_critique(
            [_span("pans", 11, 15, "action.movement")], CAMERA_TEXT, ValidationPolicy()
        )
        assert outcome.ok
        assert outcome.result.spans[0].role == "camera.movement"
        assert 'Critic relabeled "pans"' in outcome.result.meta.notes

    def test_blocking_issue_fails_the_outcome(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_and_critique

        spans = [_span("tilts", 9, 14, "action.movement")]
        outcome = validate_and_critique(spans, HAWK_TEXT, ValidationPolicy(), review_mode="repair")
        assert not outcome.ok
        assert outcome.critic_failed
        assert outcome.errors[0].startswith("camera_action_confusion:")

    def test_structural_failure_is_not_a_critic_failure(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_and_critique

        outcome = validate_and_critique([_span("submarine", 0, 9, "subject.identity")], TEXT, ValidationPolicy())
        assert not outcome.ok
        assert not outcome.critic_failed

    def test_correction_into_forbidden_category_is_refused(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_and_critique

        policy = ValidationPolicy(forbidden_categories=("camera",))
        outcome = validate_and_critique([_span("pans", 11, 15, "action.movement")], CAMERA_TEXT, policy)
        assert not outcome.ok
        assert outcome.critic_failed
        assert "camera.movement is forbidden by policy" in outcome.errors[0]

    def test_unknown_action_attribute_still_reaches_the_critic(self):
        from spanlabel.models import ValidationPolicy
        from spanlabel.validation import validate_and_critique

        text = "The camera rises over the rooftops, then pans across the skyline"
        start = text.index("pans")
        outcome = validate_and_critique(
            [_span("pans across the skyline", start, len(text), "action.run")], text, ValidationPolicy()
        )
        assert outcome.ok
        assert outcome.result.spans[0].role == "camera.movement"
