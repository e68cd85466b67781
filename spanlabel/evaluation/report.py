"""Aggregate span metrics over a test suite and check them against targets."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from .relaxed_f1 import (
    calculate_fragmentation_rate,
    calculate_json_validity_rate,
    calculate_over_extraction_rate,
    calculate_safety_pass_rate,
    evaluate_spans,
    evaluate_taxonomy_accuracy,
    generate_confusion_matrix,
)

DEFAULT_TARGETS: dict[str, float] = {
    "relaxed_f1": 0.85,
    "taxonomy_accuracy": 0.90,
    "json_validity_rate": 0.995,
    "safety_pass_rate": 1.0,
    # Upper bounds
    "fragmentation_rate": 0.20,
    "over_extraction_rate": 0.15,
}

MAX_STYLE_TARGETS = frozenset({"fragmentation_rate", "over_extraction_rate"})


def _ratio(num: float, den: float) -> float:
    return float(num / den) if den else 0.0


def _cases(test_suite: Mapping[str, Any] | Sequence[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    if isinstance(test_suite, Mapping):
        return list(test_suite.get("tests") or [])
    return list(test_suite or [])


def _spans(case: Mapping[str, Any], key: str) -> list[Any]:
    value = case.get(key)
    return list(value) if isinstance(value, (list, tuple)) else []


def _role_of(span: Any) -> Any:
    return span.get("role") if isinstance(span, Mapping) else getattr(span, "role", None)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


def _by_category(cases: list[Mapping[str, Any]]) -> dict[str, dict[str, Any]]:
    roles = {
        _role_of(s) for case in cases for s in _spans(case, "ground_truth")
        if isinstance(_role_of(s), str)
    }
    breakdown: dict[str, dict[str, Any]] = {}
    for role in sorted(roles):
        tp = fp = fn = support = 0
        for case in cases:
            pred = [s for s in _spans(case, "predicted") if _role_of(s) == role]
            gold = [s for s in _spans(case, "ground_truth") if _role_of(s) == role]
            if not pred and not gold:
                continue
            m = evaluate_spans(pred, gold)
            tp += m["true_positives"]
            fp += m["false_positives"]
            fn += m["false_negatives"]
            support += m["total_ground_truth"]
        if support:
            precision = _ratio(tp, tp + fp)
            recall = _ratio(tp, tp + fn)
            f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
            breakdown[role] = {"f1": f1, "precision": precision, "recall": recall, "support": support}
    return breakdown


def generate_evaluation_report(
    test_suite: Mapping[str, Any] | Sequence[Mapping[str, Any]],
) -> dict[str, Any]:
    """Score every ``{"predicted", "ground_truth"}`` case and summarize.

    Counts are pooled per case so indices from different texts never match
    each other.  Cases carrying ``success`` feed the JSON validity rate and
    cases carrying ``flagged`` feed the safety pass rate.
    """
    cases = _cases(test_suite)
    tp = fp = fn = n_pred = n_gold = 0
    tax_correct = tax_total = 0
    fragmented = spurious = 0

    for case in cases:
        pred, gold = _spans(case, "predicted"), _spans(case, "ground_truth")
        m = evaluate_spans(pred, gold)
        tp += m["true_positives"]
        fp += m["false_positives"]
        fn += m["false_negatives"]
        n_pred += m["total_predicted"]
        n_gold += m["total_ground_truth"]

        tax = evaluate_taxonomy_accuracy(pred, gold)
        tax_correct += tax["correct"]
        tax_total += tax["total"]

        fragmented += calculate_fragmentation_rate(pred, gold)["fragmented_count"]
        spurious += calculate_over_extraction_rate(pred, gold)["spurious_count"]

    precision = _ratio(tp, n_pred)
    recall = _ratio(tp, n_gold)
    summary: dict[str, Any] = {
        "count": len(cases),
        "relaxed_f1": 2 * precision * recall / (precision + recall) if precision + recall else 0.0,
        "precision": precision,
        "recall": recall,
        "taxonomy_accuracy": _ratio(tax_correct, tax_total),
        "fragmentation_rate": _ratio(fragmented, n_gold),
        "over_extraction_rate": _ratio(spurious, n_pred),
        "true_positives": tp,
        "false_positives": fp,
        "false_negatives": fn,
        "total_predicted": n_pred,
        "total_ground_truth": n_gold,
    }

    runs = [c for c in cases if "success" in c]
    if runs:
        summary["json_validity_rate"] = calculate_json_validity_rate(runs)["rate"]
    probes = [c for c in cases if "flagged" in c]
    if probes:
        summary["safety_pass_rate"] = calculate_safety_pass_rate(probes)["rate"]

    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "summary": summary,
        "by_category": _by_category(cases),
        "confusion_matrix": generate_confusion_matrix(cases),
    }


# ---------------------------------------------------------------------------
# Target checks
# ---------------------------------------------------------------------------


def _build_check(name: str, value: float, threshold: float, *, maximum: bool = False) -> dict[str, Any]:
    passed = float(value) <= float(threshold) if maximum else float(value) >= float(threshold)
    return {
        "name": name,
        "value": float(value),
        "threshold": float(threshold),
        "kind": "max" if maximum else "min",
        "passed": bool(passed),
    }


def _describe(check: Mapping[str, Any]) -> str:
    label = check["name"].replace("_", " ")
    direction = "above" if check["kind"] == "max" else "below"
    return f"{label} ({check['value']:.3f}) {direction} target ({check['threshold']})"


def check_target_thresholds(
    metrics: Mapping[str, Any],
    *,
    targets: dict[str, float] | None = None,
) -> dict[str, Any]:
    """Compare summary *metrics* to the quality targets.

    ``relaxed_f1`` and ``taxonomy_accuracy`` are always checked; the other
    targets only when the metric is present.
    """
    cfg = dict(DEFAULT_TARGETS)
    if targets:
        cfg.update(targets)

    checks: list[dict[str, Any]] = []
    for name, threshold in cfg.items():
        value = metrics.get(name)
        if value is None:
            if name not in ("relaxed_f1", "taxonomy_accuracy"):
                continue
            value = 0.0
        checks.append(_build_check(name, value, threshold, maximum=name in MAX_STYLE_TARGETS))

    failed = [c for c in checks if not c["passed"]]
    return {
        "passed": not failed,
        "checks": checks,
        "failed_checks": failed,
        "failures": [_describe(c) for c in failed],
        "targets": cfg,
    }
