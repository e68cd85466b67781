"""
spanlabel - span labeling and validation for video concept descriptions

Turns free-form descriptions of a video concept into disjoint,
character-accurate, labeled spans ("camera.movement", "lighting.quality",
...) that downstream tooling assembles into structured prompts.

Main Components:
    - spanlabel.service: SpanLabelingService, the request orchestrator
    - spanlabel.fastpath: dictionary/frame extractor that skips generation
    - spanlabel.generation: text-generation client, prompts and parsing
    - spanlabel.validation: structural validator and semantic critic
    - spanlabel.evaluation: offline relaxed-F1 metrics
"""

__version__ = "1.0.0"

from .errors import (
    LabelingFailed,
    RepairExhausted,
    SchemaInvalid,
    ServiceUnavailable,
    SpanLabelError,
)
from .models import LabelMeta, LabelOptions, LabelResult, Span, ValidationPolicy
from .service import SpanLabelingService

__all__ = [
    "LabelMeta",
    "LabelOptions",
    "LabelResult",
    "LabelingFailed",
    "RepairExhausted",
    "SchemaInvalid",
    "ServiceUnavailable",
    "Span",
    "SpanLabelError",
    "SpanLabelingService",
    "ValidationPolicy",
    "__version__",
]
