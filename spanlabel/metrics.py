"""Token usage tracking and per-step timing metrics.

Provides a ``TokenTracker`` fed from the OpenAI ``usage`` block of each
completion and a ``track_step`` context manager that captures wall-clock
time + token deltas for each pipeline stage.  Both are request-scoped: the
labeling service creates one pair per ``label()`` call.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Generator, Mapping


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class StepMetric:
    """Metrics for a single pipeline step."""

    name: str
    duration_s: float
    input_tokens: int = 0
    output_tokens: int = 0
    failed: bool = False

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class PipelineMetrics:
    """Aggregated metrics for one labeling request."""

    steps: list[StepMetric] = field(default_factory=list)

    @property
    def total_duration_s(self) -> float:
        return sum(s.duration_s for s in self.steps)

    @property
    def total_input_tokens(self) -> int:
        return sum(s.input_tokens for s in self.steps)

    @property
    def total_output_tokens(self) -> int:
        return sum(s.output_tokens for s in self.steps)

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens

    def as_timings(self) -> dict[str, float]:
        """Per-step milliseconds keyed by step name, plus ``total``."""
        timings: dict[str, float] = {}
        for step in self.steps:
            timings[step.name] = round(timings.get(step.name, 0.0) + step.duration_s * 1000, 2)
        timings["total"] = round(self.total_duration_s * 1000, 2)
        return timings


# ---------------------------------------------------------------------------
# Token tracker
# ---------------------------------------------------------------------------


class TokenTracker:
    """Collects usage dicts (``prompt_tokens``, ``completion_tokens``)."""

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    def add_usage(self, model: str, usage: Mapping[str, Any] | Any | None) -> None:
        if usage is None:
            return
        if not isinstance(usage, Mapping):
            usage = usage.model_dump() if hasattr(usage, "model_dump") else dict(vars(usage))
        self.calls.append({"model": model, **usage})

    def reset(self) -> None:
        self.calls.clear()

    def snapshot(self) -> int:
        """Return an opaque marker for the current position."""
        return len(self.calls)

    def tokens_since(self, snap: int) -> tuple[int, int]:
        """Return ``(input_tokens, output_tokens)`` accumulated since *snap*."""
        recent = self.calls[snap:]
        inp = sum(c.get("prompt_tokens") or 0 for c in recent)
        out = sum(c.get("completion_tokens") or 0 for c in recent)
        return inp, out


# ---------------------------------------------------------------------------
# Step-timing context manager
# ---------------------------------------------------------------------------


@contextmanager
def track_step(
    metrics: PipelineMetrics,
    step_name: str,
    tracker: TokenTracker | None = None,
) -> Generator[None, None, None]:
    """Time a pipeline step and capture its token delta.

    The step is recorded even when the body raises, flagged ``failed``.

    Usage::

        metrics = PipelineMetrics()
        with track_step(metrics, "generation", tracker):
            response = await client.call_model(...)
    """
    snap = tracker.snapshot() if tracker is not None else 0
    t0 = time.perf_counter()
    failed = True
    try:
        yield
        failed = False
    finally:
        duration = time.perf_counter() - t0
        inp, out = tracker.tokens_since(snap) if tracker is not None else (0, 0)
        metrics.steps.append(StepMetric(step_name, duration, inp, out, failed=failed))
