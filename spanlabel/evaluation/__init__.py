"""Offline span-quality evaluation. Never on the request path."""

from .dataset import load_jsonl
from .relaxed_f1 import (
    MISSED,
    SPURIOUS,
    calculate_fragmentation_rate,
    calculate_iou,
    calculate_json_validity_rate,
    calculate_over_extraction_rate,
    calculate_safety_pass_rate,
    evaluate_spans,
    evaluate_taxonomy_accuracy,
    generate_confusion_matrix,
    update_confusion_matrix,
)
from .report import DEFAULT_TARGETS, check_target_thresholds, generate_evaluation_report

__all__ = [
    "DEFAULT_TARGETS",
    "MISSED",
    "SPURIOUS",
    "calculate_fragmentation_rate",
    "calculate_iou",
    "calculate_json_validity_rate",
    "calculate_over_extraction_rate",
    "calculate_safety_pass_rate",
    "check_target_thresholds",
    "evaluate_spans",
    "evaluate_taxonomy_accuracy",
    "generate_confusion_matrix",
    "generate_evaluation_report",
    "load_jsonl",
    "update_confusion_matrix",
]
