"""Tests for generation-backed labeling, retry and the single repair attempt."""

import asyncio
import json

import httpx
import openai
import pytest

TEXT = "A cowboy rides at dawn"
REQUEST = httpx.Request("POST", "https://api.test/v1/chat/completions")

GOOD = {
    "spans": [
        {"text": "cowboy", "start": 2, "end": 8, "role": "subject.identity", "confidence": 0.9},
        {"text": "dawn", "start": 18, "end": 22, "role": "lighting.timeOfDay", "confidence": 0.85},
    ],
    "meta": {"version": "v1", "notes": "ok"},
    "isAdversarial": False,
}
BAD = {
    "spans": [
        {"text": "submarine", "start": 0, "end": 9, "role": "subject.identity", "confidence": 0.9},
        {"text": "cowboy", "start": 2, "end": 8, "role": "subject.identity", "confidence": 0.9},
    ],
}


def _labeler(config, fake):
    from spanlabel.generation import GenerationClient
    from spanlabel.generation.labeler import LlmLabeler

    return LlmLabeler(GenerationClient(config, client=fake), config)


def _label(labeler, **kwargs):
    from spanlabel.models import ValidationPolicy

    return asyncio.run(labeler.label(TEXT, ValidationPolicy(), **kwargs))


class TestLabeling:

    def test_single_pass(self, config, fake_openai):
        fake = fake_openai([GOOD])
        result = _label(_labeler(config, fake))
        assert [s.text for s in result.spans] == ["cowboy", "dawn"]
        assert result.meta.notes == "ok"
        assert len(fake.calls) == 1
        assert fake.calls[0]["response_format"]["type"] == "json_schema"

    def test_base_meta_is_merged(self, config, fake_openai):
        result = _label(_labeler(config, fake_openai([GOOD])), base_meta={"source": "llm", "nlp_attempted": True})
        assert result.meta.source == "llm"
        assert result.meta.nlp_attempted is True

    def test_missing_meta_is_filled_in(self, config, fake_openai):
        result = _label(_labeler(config, fake_openai([{"spans": GOOD["spans"]}])), template_version="v3")
        assert result.meta.version == "v3"
        assert result.meta.notes == "Labeled 2 spans"

    def test_adversarial_reply(self, config, fake_openai):
        result = _label(_labeler(config, fake_openai([{"spans": [], "isAdversarial": True}])))
        assert result.is_adversarial
        assert result.spans == ()

    def test_json_mode_for_unstructured_provider(self, config, fake_openai):
        fake = fake_openai([GOOD])
        labeler = _labeler(config.model_copy(update={"provider": "groq"}), fake)
        _label(labeler)
        assert fake.calls[0]["response_format"] == {"type": "json_object"}

    def test_two_pass_trace_reaches_result(self, config, fake_openai):
        fake = fake_openai(["cowboy is the subject; dawn is the time of day", GOOD])
        labeler = _labeler(config.model_copy(update={"lm_two_pass": "always"}), fake)
        result = _label(labeler)
        assert len(fake.calls) == 2
        assert result.analysis_trace == "cowboy is the subject; dawn is the time of day"


class TestRepair:

    def test_failed_validation_is_repaired_once(self, config, fake_openai):
        fake = fake_openai([BAD, GOOD])
        result = _label(_labeler(config, fake))
        assert len(fake.calls) == 2
        assert result.meta.source == "repaired"
        assert all(s.source == "repaired" for s in result.spans)
        repair_payload = json.loads(fake.calls[1]["messages"][-1]["content"])
        assert "submarine" in repair_payload["validation"]["errors"][0]
        assert repair_payload["validation"]["originalResponse"]["spans"][0]["text"] == "submarine"
        assert "CORRECTION" in fake.calls[1]["messages"][0]["content"]

    def test_repair_exhausted_after_second_failure(self, config, fake_openai):
        from spanlabel.errors import LabelingFailed, RepairExhausted

        fake = fake_openai([BAD])
        with pytest.raises(RepairExhausted) as exc_info:
            _label(_labeler(config, fake))
        assert len(fake.calls) == 2
        assert isinstance(exc_info.value, LabelingFailed)
        assert "submarine" in str(exc_info.value)

    def test_unparseable_reply_is_repaired(self, config, fake_openai):
        fake = fake_openai(["I cannot comply with JSON today", GOOD])
        result = _label(_labeler(config, fake))
        assert len(fake.calls) == 2
        assert result.meta.source == "repaired"

    def test_lenient_fallback_without_repair(self, config, fake_openai):
        fake = fake_openai([BAD])
        result = _label(_labeler(config, fake), enable_repair=False)
        assert len(fake.calls) == 1
        assert [s.text for s in result.spans] == ["cowboy"]
        assert "dropped" in result.meta.notes

    def test_unparseable_reply_without_repair_raises(self, config, fake_openai):
        from spanlabel.errors import SchemaInvalid

        with pytest.raises(SchemaInvalid):
            _label(_labeler(config, fake_openai(["not json at all"])), enable_repair=False)

    def test_blocking_critic_issue_without_repair_raises(self, config, fake_openai):
        from spanlabel.errors import SemanticInvalid
        from spanlabel.models import ValidationPolicy

        text = "She opens the door and then runs outside"
        reply = {"spans": [
            {"text": "opens the door", "start": 4, "end": 18, "role": "action.movement", "confidence": 0.9},
            {"text": "then runs outside", "start": 23, "end": 40, "role": "action.movement", "confidence": 0.9},
        ]}
        fake = fake_openai([reply])
        labeler = _labeler(config, fake)
        with pytest.raises(SemanticInvalid) as info:
            asyncio.run(labeler.label(text, ValidationPolicy(), enable_repair=False))
        assert len(fake.calls) == 1
        assert info.value.errors[0].startswith("one_clip_one_action:")


class TestRetry:

    def test_server_error_is_retried_once(self, config, fake_openai):
        error = openai.InternalServerError(
            "overloaded", response=httpx.Response(503, request=REQUEST), body=None
        )
        fake = fake_openai([error, GOOD])
        result = _label(_labeler(config, fake))
        assert len(fake.calls) == 2
        assert len(result.spans) == 2

    def test_authentication_error_is_not_retried(self, config, fake_openai):
        from spanlabel.errors import AuthenticationError, ServiceUnavailable

        error = openai.AuthenticationError("bad key", response=httpx.Response(401, request=REQUEST), body=None)
        fake = fake_openai([error, GOOD])
        with pytest.raises(AuthenticationError) as exc_info:
            _label(_labeler(config, fake))
        assert len(fake.calls) == 1
        assert isinstance(exc_info.value, ServiceUnavailable)

    def test_call_with_retry_gives_up_after_second_failure(self):
        from spanlabel.errors import ServerError
        from spanlabel.repair import call_with_retry

        calls = []

        async def flaky():
            calls.append(1)
            raise ServerError("down")

        with pytest.raises(ServerError):
            asyncio.run(call_with_retry(flaky))
        assert len(calls) == 2

    def test_call_with_retry_honours_retry_after(self):
        from spanlabel.errors import RateLimited
        from spanlabel.repair import call_with_retry

        calls = []

        async def throttled():
            calls.append(1)
            if len(calls) == 1:
                raise RateLimited("slow down", retry_after=0.01)
            return "ok"

        assert asyncio.run(call_with_retry(throttled)) == "ok"
        assert len(calls) == 2

    def test_malformed_request_is_not_retried(self):
        from spanlabel.errors import MalformedRequest
        from spanlabel.repair import call_with_retry

        calls = []

        async def rejected():
            calls.append(1)
            raise MalformedRequest("bad shape", status_code=400)

        with pytest.raises(MalformedRequest):
            asyncio.run(call_with_retry(rejected))
        assert len(calls) == 1
