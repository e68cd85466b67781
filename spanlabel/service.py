"""Span labeling orchestrator.

One ``label()`` call runs strictly in sequence::

    cache -> fast path -> generation -> validate + critique -> repair -> cache set

The position resolver, token tracker and metrics are created per request;
only the result cache is shared between requests.  Cancelling the task
that awaits ``label()`` cancels the in-flight generation call with it.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

from .cache import ResultCache, generate_cache_key
from .chunking import TextChunker
from .config import SpanlabelConfig, get_config
from .errors import GenerationTimeout, LabelingFailed
from .fastpath import FastPathExtractor
from .generation.client import GenerationClient
from .generation.labeler import LlmLabeler
from .metrics import PipelineMetrics, TokenTracker, track_step
from .models import LabelMeta, LabelOptions, LabelResult, ValidationPolicy
from .position import PositionResolver
from .utils.logging import get_logger, log_label_complete, log_stage_attempt

logger = get_logger(__name__)


class SpanLabelingService:
    """Label video concept descriptions with character-accurate spans.

    Args:
        config: Settings; defaults to ``get_config()``.
        client: ``openai.AsyncOpenAI``-compatible client shared by requests.
        cache: Result cache; one is built from config when omitted.
        fastpath: Fast-path extractor; one is built from config when omitted.
    """

    def __init__(
        self,
        config: SpanlabelConfig | None = None,
        *,
        client: Any | None = None,
        cache: ResultCache | None = None,
        fastpath: FastPathExtractor | None = None,
    ):
        self.config = config or get_config()
        self.cache = cache or ResultCache(
            max_entries=self.config.cache_max_entries,
            default_ttl_s=self.config.cache_ttl_s,
            short_ttl_s=self.config.cache_short_ttl_s,
        )
        self.fastpath = fastpath or FastPathExtractor(config=self.config)
        self.chunker = TextChunker(self.config.chunk_max_words)
        self._generation = GenerationClient(self.config, client=client)

    # ------------------------------------------------------------------
    # Boundary
    # ------------------------------------------------------------------

    def default_policy(self) -> ValidationPolicy:
        return ValidationPolicy(
            max_spans=self.config.max_spans,
            min_confidence=self.config.min_confidence,
            non_technical_word_limit=self.config.non_technical_word_limit,
            allow_overlap=self.config.allow_overlap,
        )

    def default_options(self) -> LabelOptions:
        return LabelOptions(template_version=self.config.template_version)

    def cache_key(self, text: str, policy: ValidationPolicy, options: LabelOptions) -> str:
        return generate_cache_key(text, policy, options.template_version, self.config.provider)

    # ------------------------------------------------------------------
    # Labeling
    # ------------------------------------------------------------------

    async def label(
        self,
        text: str,
        policy: ValidationPolicy | None = None,
        options: LabelOptions | None = None,
    ) -> LabelResult:
        """Label *text*.

        Raises:
            LabelingFailed: the text could not be labeled.
            ServiceUnavailable: the text-generation service failed.
        """
        if not isinstance(text, str) or not text.strip():
            raise LabelingFailed("Text must be a non-empty string")
        policy = policy or self.default_policy()
        options = options or self.default_options()
        started = time.perf_counter()

        key = self.cache_key(text, policy, options)
        if options.use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                log_label_complete(logger, cached.meta.source or "cache", len(cached.spans), cache_hit=True)
                return cached

        metrics = PipelineMetrics()
        tracker = TokenTracker()
        if self.chunker.needs_chunking(text):
            result = await self._label_chunked(text, policy, options, metrics, tracker)
        else:
            result = await self._label_single(text, policy, options, metrics, tracker)

        if options.include_timings:
            result = result.model_copy(
                update={"meta": result.meta.model_copy(update={"timings": metrics.as_timings()})}
            )
        if options.use_cache:
            self.cache.set(key, result)
        log_label_complete(
            logger, result.meta.source or "llm", len(result.spans), time.perf_counter() - started
        )
        return result

    async def _label_single(
        self,
        text: str,
        policy: ValidationPolicy,
        options: LabelOptions,
        metrics: PipelineMetrics,
        tracker: TokenTracker,
    ) -> LabelResult:
        resolver = PositionResolver()

        log_stage_attempt(logger, "fast path", 1)
        with track_step(metrics, "fastpath"):
            outcome = self.fastpath.run(text, policy, options, resolver)
        if outcome.result is not None:
            return outcome.result

        enable_repair = options.enable_repair if options.enable_repair is not None else self.config.enable_repair
        labeler = LlmLabeler(
            GenerationClient(self.config, client=self._generation.client, tracker=tracker),
            self.config,
        )
        base_meta: dict[str, Any] = {"source": "llm"}
        if outcome.attempted:
            base_meta.update({"nlp_attempted": True, "nlp_spans_found": outcome.candidates})

        call = labeler.label(
            text,
            policy,
            template_version=options.template_version,
            enable_repair=enable_repair,
            resolver=resolver,
            review_mode=self.config.camera_review_mode,
            base_meta=base_meta,
        )
        with track_step(metrics, "generation", tracker):
            if options.timeout_s is None:
                return await call
            try:
                return await asyncio.wait_for(call, timeout=options.timeout_s)
            except asyncio.TimeoutError as exc:
                raise GenerationTimeout(
                    f"Labeling exceeded {options.timeout_s:.1f}s", provider=self.config.provider
                ) from exc

    async def _label_chunked(
        self,
        text: str,
        policy: ValidationPolicy,
        options: LabelOptions,
        metrics: PipelineMetrics,
        tracker: TokenTracker,
    ) -> LabelResult:
        chunks = self.chunker.chunk_text(text)
        logger.info("Large text (%d words), labeling %d chunks", sum(c.word_count for c in chunks), len(chunks))

        results: list[tuple[int, LabelResult]] = []
        failed = 0
        for chunk in chunks:
            try:
                result = await self._label_single(chunk.text, policy, options, metrics, tracker)
            except LabelingFailed as exc:
                failed += 1
                logger.warning("Chunk at offset %d could not be labeled: %s", chunk.start_offset, exc)
                continue
            results.append((chunk.start_offset, result))
        if not results:
            raise LabelingFailed(f"None of {len(chunks)} chunks could be labeled")

        adversarial = any(r.is_adversarial for _, r in results)
        spans = [] if adversarial else self.chunker.merge_chunked_spans(
            (offset, r.spans) for offset, r in results
        )
        if len(spans) > policy.max_spans:
            kept = sorted(spans, key=lambda s: (-s.confidence, s.start))[:policy.max_spans]
            spans = sorted(kept, key=lambda s: (s.start, s.end))

        notes = f"Processed {len(chunks)} chunks, {len(spans)} total spans"
        if failed:
            notes += f" | {failed} chunks failed"
        if adversarial:
            notes += " | adversarial input flagged"
        return LabelResult(
            spans=tuple(spans),
            meta=LabelMeta(version=options.template_version, notes=notes, source="chunked"),
            is_adversarial=adversarial,
        )

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def invalidate(self, text: str) -> int:
        return self.cache.invalidate(text)

    def cache_stats(self) -> dict[str, Any]:
        return self.cache.get_stats()
