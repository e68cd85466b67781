# tests/conftest.py
"""Shared fixtures: isolated log directory, fresh config, fake OpenAI client."""

from __future__ import annotations

import json
import os
import tempfile
from types import SimpleNamespace

import pytest

# Keep session log files out of the user's home directory
os.environ.setdefault("SPANLABEL_LOG_DIR", tempfile.mkdtemp(prefix="spanlabel-test-logs-"))


@pytest.fixture(autouse=True)
def _fresh_config():
    from spanlabel.config import get_config

    get_config.cache_clear()
    yield
    get_config.cache_clear()


def make_completion(content: str, usage: dict | None = None) -> SimpleNamespace:
    """Build an object shaped like an OpenAI chat completion."""
    return SimpleNamespace(
        id="chatcmpl-test",
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        usage=SimpleNamespace(**usage) if usage else None,
    )


class FakeCompletions:
    """Replays queued replies; a reply may be a string, an exception or a callable."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if callable(reply):
            reply = reply(kwargs)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, (dict, list)):
            reply = json.dumps(reply)
        return make_completion(reply, usage={"prompt_tokens": 100, "completion_tokens": 20})


class FakeOpenAI:
    def __init__(self, replies):
        self.chat = SimpleNamespace(completions=FakeCompletions(replies))

    @property
    def calls(self) -> list[dict]:
        return self.chat.completions.calls


@pytest.fixture
def fake_openai():
    """Factory: ``fake_openai(reply, ...)`` -> AsyncOpenAI look-alike."""
    return FakeOpenAI


@pytest.fixture
def config():
    from spanlabel.config import SpanlabelConfig

    return SpanlabelConfig(api_key="sk-test", lm="gpt-4o", lm_two_pass="never", provider="openai")
