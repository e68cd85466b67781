"""Local span extraction that avoids the text-generation service."""

from .extractor import (
    FASTPATH_VERSION,
    FastPathAssessment,
    FastPathExtractor,
    FastPathOutcome,
    FastPathThresholds,
    coverage_percent,
    expected_min_spans,
)
from .vocab import PATTERNS, VOCABULARY, build_term_index

__all__ = [
    "FASTPATH_VERSION",
    "PATTERNS",
    "VOCABULARY",
    "FastPathAssessment",
    "FastPathExtractor",
    "FastPathOutcome",
    "FastPathThresholds",
    "build_term_index",
    "coverage_percent",
    "expected_min_spans",
]
