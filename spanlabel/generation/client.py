"""Async client for the text-generation service.

Wraps ``openai.AsyncOpenAI`` chat completions.  One ``call_model`` is one
network request: schema-constrained when the target supports structured
output, JSON mode otherwise, free text when neither is asked for.  SDK
exceptions are translated into the ``spanlabel.errors`` generation family
so the repair loop can decide what to retry.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Mapping

import openai
from pydantic import BaseModel, ConfigDict

from ..config import SpanlabelConfig, get_config
from ..errors import (
    AuthenticationError,
    GenerationError,
    GenerationTimeout,
    MalformedRequest,
    RateLimited,
    ServerError,
)
from ..metrics import TokenTracker
from ..utils.logging import log_llm_response, log_prompt

logger = logging.getLogger(__name__)

# Returned by the fragment iterator once the stream is exhausted
END_OF_STREAM = object()


class ProviderOptions(BaseModel):
    """Abstract request options; vendor-specific shaping stays out of here."""

    model_config = ConfigDict(frozen=True)

    temperature: float | None = None
    stream: bool | None = None
    json_mode: bool = True
    supports_structured_output: bool = True
    supports_developer_role: bool = True
    developer_message: str | None = None
    timeout_s: float | None = None


@dataclass
class GenerationResponse:
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


def map_openai_error(exc: Exception, provider: str) -> GenerationError:
    """Translate an OpenAI SDK exception into a typed generation error."""
    status = getattr(exc, "status_code", None)
    message = f"{provider} request failed: {exc}"
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return AuthenticationError(message, status_code=status, provider=provider)
    if isinstance(exc, openai.RateLimitError):
        retry_after = None
        response = getattr(exc, "response", None)
        if response is not None:
            header = response.headers.get("retry-after")
            if header and header.replace(".", "", 1).isdigit():
                retry_after = float(header)
        return RateLimited(message, retry_after=retry_after, status_code=status, provider=provider)
    if isinstance(exc, openai.APITimeoutError):
        return GenerationTimeout(message, provider=provider)
    if isinstance(exc, openai.APIConnectionError):
        return ServerError(message, provider=provider)
    if isinstance(exc, openai.InternalServerError):
        return ServerError(message, status_code=status, provider=provider)
    if isinstance(exc, openai.APIStatusError):
        if status is not None and status >= 500:
            return ServerError(message, status_code=status, provider=provider)
        return MalformedRequest(message, status_code=status, provider=provider)
    return GenerationError(message, status_code=status, provider=provider)


def _usage_dict(usage: Any) -> dict[str, Any] | None:
    if usage is None:
        return None
    if hasattr(usage, "model_dump"):
        return usage.model_dump(exclude_none=True)
    if isinstance(usage, Mapping):
        return dict(usage)
    return dict(vars(usage))


class GenerationClient:
    """Submit prompts to the text-generation service.

    Args:
        config: Settings; defaults to ``get_config()``.
        client: An ``openai.AsyncOpenAI``-compatible client.  Built lazily
            from config when omitted.
        tracker: Optional token tracker fed from each reply's usage block.
    """

    def __init__(
        self,
        config: SpanlabelConfig | None = None,
        client: Any | None = None,
        tracker: TokenTracker | None = None,
    ):
        self.config = config or get_config()
        self._client = client
        self.tracker = tracker

    @property
    def provider(self) -> str:
        return self.config.provider

    @property
    def model(self) -> str:
        return self.config.lm

    @property
    def client(self) -> Any:
        if self._client is None:
            try:
                self._client = openai.AsyncOpenAI(
                    api_key=self.config.api_key or None,
                    base_url=self.config.api_base,
                    max_retries=self.config.max_retries,
                    timeout=self.config.request_timeout_s,
                )
            except openai.OpenAIError as exc:
                raise AuthenticationError(
                    f"Could not configure {self.provider} client: {exc}", provider=self.provider
                ) from exc
        return self._client

    # ------------------------------------------------------------------
    # Request shaping
    # ------------------------------------------------------------------

    def _messages(
        self,
        system_prompt: str,
        user_payload: str,
        options: ProviderOptions,
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]
        if options.developer_message:
            if options.supports_developer_role:
                messages.append({"role": "developer", "content": options.developer_message})
            else:
                messages[0]["content"] = f"{system_prompt}\n\n{options.developer_message}"
        messages.append({"role": "user", "content": user_payload})
        return messages

    def _request_kwargs(
        self,
        system_prompt: str,
        user_payload: str,
        max_tokens: int,
        options: ProviderOptions,
        schema: dict[str, Any] | None,
    ) -> dict[str, Any]:
        temperature = options.temperature if options.temperature is not None else self.config.lm_temperature
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": self._messages(system_prompt, user_payload, options),
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if schema is not None and options.supports_structured_output:
            kwargs["response_format"] = {"type": "json_schema", "json_schema": schema}
        elif options.json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        return kwargs

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _complete(self, kwargs: dict[str, Any]) -> GenerationResponse:
        response = await self.client.chat.completions.create(**kwargs)
        choice = response.choices[0]
        return GenerationResponse(
            text=choice.message.content or "",
            metadata={
                "id": getattr(response, "id", None),
                "finish_reason": choice.finish_reason,
                "usage": _usage_dict(getattr(response, "usage", None)),
                "streamed": False,
            },
        )

    async def _complete_streaming(self, kwargs: dict[str, Any]) -> GenerationResponse:
        stream = await self.client.chat.completions.create(
            **kwargs, stream=True, stream_options={"include_usage": True}
        )
        parts: list[str] = []
        usage = None
        finish_reason = None
        iterator = stream.__aiter__()
        try:
            while True:
                chunk = await anext(iterator, END_OF_STREAM)
                if chunk is END_OF_STREAM:
                    break
                if getattr(chunk, "usage", None) is not None:
                    usage = chunk.usage
                for choice in chunk.choices or []:
                    if choice.delta is not None and choice.delta.content:
                        parts.append(choice.delta.content)
                    if choice.finish_reason:
                        finish_reason = choice.finish_reason
        finally:
            # Released on success, error and cancellation alike
            await stream.close()
        return GenerationResponse(
            text="".join(parts),
            metadata={
                "finish_reason": finish_reason,
                "usage": _usage_dict(usage),
                "streamed": True,
                "fragments": len(parts),
            },
        )

    async def call_model(
        self,
        system_prompt: str,
        user_payload: str,
        max_tokens: int,
        provider_options: ProviderOptions | None = None,
        schema: dict[str, Any] | None = None,
    ) -> GenerationResponse:
        """Run one completion and return its text plus provider metadata.

        Raises:
            GenerationTimeout: the call exceeded its timeout.
            GenerationError: any other service failure, typed by class.
        """
        options = provider_options or ProviderOptions()
        kwargs = self._request_kwargs(system_prompt, user_payload, max_tokens, options, schema)
        stream = options.stream if options.stream is not None else self.config.stream
        timeout = options.timeout_s or self.config.request_timeout_s

        log_prompt(logger, "System Prompt", system_prompt)
        log_prompt(logger, "User Payload", user_payload)
        t0 = time.perf_counter()
        call = self._complete_streaming(kwargs) if stream else self._complete(kwargs)
        try:
            response = await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError as exc:
            raise GenerationTimeout(
                f"{self.provider} call exceeded {timeout:.1f}s", provider=self.provider
            ) from exc
        except openai.OpenAIError as exc:
            raise map_openai_error(exc, self.provider) from exc

        response.metadata.update(
            {
                "model": self.model,
                "provider": self.provider,
                "duration_ms": round((time.perf_counter() - t0) * 1000, 2),
                "structured": "response_format" in kwargs
                and kwargs["response_format"]["type"] == "json_schema",
            }
        )
        if self.tracker is not None:
            self.tracker.add_usage(self.model, response.metadata.get("usage"))
        log_llm_response(logger, "Raw Response", response.text)
        return response
