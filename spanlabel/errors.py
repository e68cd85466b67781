"""Exception hierarchy for the span labeling pipeline.

Two terminal families reach callers: ``LabelingFailed`` (the source text
could not be labeled) and ``ServiceUnavailable`` (the text-generation
service could not be reached or refused the request).  A UI can branch on
these to choose between "try again" and "outage" messaging.
"""

from __future__ import annotations


class SpanLabelError(Exception):
    """Base class for all span labeling errors."""


# ---------------------------------------------------------------------------
# Terminal families
# ---------------------------------------------------------------------------


class LabelingFailed(SpanLabelError):
    """The source text could not be labeled."""


class ServiceUnavailable(SpanLabelError):
    """The external text-generation service is unavailable."""


# ---------------------------------------------------------------------------
# Non-fatal / internal
# ---------------------------------------------------------------------------


class PositionNotFound(SpanLabelError):
    """Every matching strategy failed for a claimed substring."""

    def __init__(self, substring: str):
        super().__init__(f"Could not locate span text in source: {substring!r}")
        self.substring = substring


# ---------------------------------------------------------------------------
# Generation errors
# ---------------------------------------------------------------------------


class GenerationError(ServiceUnavailable):
    """A call to the text-generation service failed."""

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        provider: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class AuthenticationError(GenerationError):
    """Credentials were rejected. Never retried."""

    retryable = False


class MalformedRequest(GenerationError):
    """The service rejected the request shape. Never retried."""

    retryable = False


class RateLimited(GenerationError):
    """The service throttled the request."""

    retryable = True

    def __init__(self, message: str, *, retry_after: float | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class ServerError(GenerationError):
    """The service returned a 5xx or dropped the connection."""

    retryable = True


class GenerationTimeout(GenerationError):
    """The call exceeded its per-call timeout."""

    retryable = True


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------


class SchemaInvalid(LabelingFailed):
    """The model reply did not match the expected span structure."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = list(errors or [message])


class SemanticInvalid(LabelingFailed):
    """The critic found issues that auto-correction could not resolve."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = list(errors or [message])


class RepairExhausted(LabelingFailed):
    """The single structured repair attempt also failed validation."""

    def __init__(self, errors: list[str]):
        numbered = "\n".join(f"{i}. {e}" for i, e in enumerate(errors, 1))
        super().__init__(f"Repair attempt failed validation:\n{numbered}")
        self.errors = list(errors)
