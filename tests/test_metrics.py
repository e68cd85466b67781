"""Tests for token tracking and step timing."""

import pytest


class TestTokenTracker:

    def test_usage_accumulates(self):
        from spanlabel.metrics import TokenTracker

        tracker = TokenTracker()
        tracker.add_usage("gpt-4o", {"prompt_tokens": 100, "completion_tokens": 20})
        snap = tracker.snapshot()
        tracker.add_usage("gpt-4o", {"prompt_tokens": 50, "completion_tokens": 5})
        tracker.add_usage("gpt-4o", None)
        assert tracker.tokens_since(0) == (150, 25)
        assert tracker.tokens_since(snap) == (50, 5)
        tracker.reset()
        assert tracker.calls == []


class TestTrackStep:

    def test_step_records_tokens(self):
        from spanlabel.metrics import PipelineMetrics, TokenTracker, track_step

        metrics = PipelineMetrics()
        tracker = TokenTracker()
        with track_step(metrics, "generation", tracker):
            tracker.add_usage("gpt-4o", {"prompt_tokens": 10, "completion_tokens": 4})
        step = metrics.steps[0]
        assert step.name == "generation"
        assert (step.input_tokens, step.output_tokens) == (10, 4)
        assert step.total_tokens == 14
        assert not step.failed
        assert metrics.total_tokens == 14

    def test_failed_step_is_still_recorded(self):
        from spanlabel.metrics import PipelineMetrics, track_step

        metrics = PipelineMetrics()
        with pytest.raises(RuntimeError):
            with track_step(metrics, "fastpath"):
                raise RuntimeError("boom")
        assert metrics.steps[0].failed

    def test_timings_merge_repeated_steps(self):
        from spanlabel.metrics import PipelineMetrics, StepMetric

        metrics = PipelineMetrics(steps=[
            StepMetric("generation", 0.5),
            StepMetric("generation", 0.25),
            StepMetric("fastpath", 0.01),
        ])
        timings = metrics.as_timings()
        assert timings["generation"] == 750.0
        assert timings["fastpath"] == 10.0
        assert timings["total"] == 760.0
