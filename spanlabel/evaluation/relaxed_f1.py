"""Relaxed-match span metrics.

A predicted span matches a ground-truth span when their character ranges
overlap with IoU above a threshold *and* their roles are equal.  Minor
boundary drift is forgiven; a wrong label is not.

Every function accepts spans as plain dicts (``{"start", "end", "role",
"text"}``) or :class:`~spanlabel.models.Span` objects.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Sequence

from ..taxonomy import category_of

MISSED = "<missed>"
SPURIOUS = "<spurious>"
MAX_EXAMPLES = 5


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _as_dict(span: Any) -> dict[str, Any]:
    if span is None:
        return {}
    if isinstance(span, Mapping):
        return dict(span)
    if hasattr(span, "model_dump"):
        return span.model_dump()
    return {k: getattr(span, k, None) for k in ("start", "end", "role", "text")}


def _normalize(spans: Iterable[Any] | None) -> list[dict[str, Any]]:
    return [_as_dict(s) for s in spans or ()]


def _is_offset(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _role(span: Mapping[str, Any]) -> str:
    role = span.get("role")
    return role if isinstance(role, str) else "unknown"


def _f1(precision: float, recall: float) -> float:
    if precision + recall <= 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


# ---------------------------------------------------------------------------
# Core metrics
# ---------------------------------------------------------------------------


def calculate_iou(predicted: Any, ground_truth: Any) -> float:
    """Intersection over union of two ``[start, end)`` ranges; 0 on bad input."""
    p, g = _as_dict(predicted), _as_dict(ground_truth)
    if not all(_is_offset(x) for x in (p.get("start"), p.get("end"), g.get("start"), g.get("end"))):
        return 0.0
    intersection = max(0, min(p["end"], g["end"]) - max(p["start"], g["start"]))
    union = max(p["end"], g["end"]) - min(p["start"], g["start"])
    return intersection / union if union > 0 else 0.0


def evaluate_spans(
    predicted: Sequence[Any],
    ground_truth: Sequence[Any],
    iou_threshold: float = 0.5,
) -> dict[str, Any]:
    """Relaxed precision / recall / F1.

    Each ground-truth span is claimed by at most one prediction; predictions
    are visited in order and take the first unclaimed match.  Two empty
    sets agree perfectly and score 1.0.
    """
    pred, gold = _normalize(predicted), _normalize(ground_truth)
    claimed: set[int] = set()
    true_positives = 0

    for p in pred:
        for j, g in enumerate(gold):
            if j in claimed:
                continue
            if calculate_iou(p, g) > iou_threshold and p.get("role") == g.get("role"):
                claimed.add(j)
                true_positives += 1
                break

    if not pred and not gold:
        precision = recall = f1 = 1.0
    else:
        precision = true_positives / len(pred) if pred else 0.0
        recall = true_positives / len(gold) if gold else 0.0
        f1 = _f1(precision, recall)

    return {
        "precision": precision,
        "recall": recall,
        "f1": f1,
        "true_positives": true_positives,
        "false_positives": len(pred) - true_positives,
        "false_negatives": len(gold) - true_positives,
        "total_predicted": len(pred),
        "total_ground_truth": len(gold),
    }


def evaluate_taxonomy_accuracy(
    predicted: Sequence[Any],
    ground_truth: Sequence[Any],
    iou_threshold: float = 0.5,
) -> dict[str, Any]:
    """Among spatially matched pairs, the share whose roles agree."""
    pred, gold = _normalize(predicted), _normalize(ground_truth)
    claimed: set[int] = set()
    correct = total = 0
    for p in pred:
        for j, g in enumerate(gold):
            if j in claimed or calculate_iou(p, g) <= iou_threshold:
                continue
            claimed.add(j)
            total += 1
            if p.get("role") == g.get("role"):
                correct += 1
            break
    return {"accuracy": correct / total if total else 0.0, "correct": correct, "total": total}


# ---------------------------------------------------------------------------
# Error analysis
# ---------------------------------------------------------------------------


def calculate_fragmentation_rate(
    predicted: Sequence[Any],
    ground_truth: Sequence[Any],
    iou_threshold: float = 0.1,
    use_parent_role: bool = True,
) -> dict[str, Any]:
    """Share of ground-truth spans split across more than one prediction.

    With *use_parent_role*, only fragments sharing the ground truth's
    top-level category count.
    """
    pred, gold = _normalize(predicted), _normalize(ground_truth)
    if not gold:
        return {"rate": 0.0, "fragmented_count": 0, "total_ground_truth": 0, "examples": []}

    fragmented = 0
    examples: list[dict[str, Any]] = []
    for g in gold:
        overlapping = [p for p in pred if calculate_iou(p, g) > iou_threshold]
        if use_parent_role:
            overlapping = [
                p for p in overlapping
                if isinstance(p.get("role"), str)
                and isinstance(g.get("role"), str)
                and category_of(p["role"]) == category_of(g["role"])
            ]
        if len(overlapping) > 1:
            fragmented += 1
            if len(examples) < MAX_EXAMPLES:
                examples.append({
                    "ground_truth": g,
                    "fragments": [
                        {k: f.get(k) for k in ("text", "role", "start", "end")} for f in overlapping
                    ],
                })

    return {
        "rate": fragmented / len(gold),
        "fragmented_count": fragmented,
        "total_ground_truth": len(gold),
        "examples": examples,
    }


def calculate_over_extraction_rate(
    predicted: Sequence[Any],
    ground_truth: Sequence[Any],
    iou_threshold: float = 0.5,
) -> dict[str, Any]:
    """Share of predictions that match no ground-truth span spatially."""
    pred, gold = _normalize(predicted), _normalize(ground_truth)
    if not pred:
        return {"rate": 0.0, "spurious_count": 0, "total_predicted": 0, "examples": []}

    spurious = [p for p in pred if not any(calculate_iou(p, g) > iou_threshold for g in gold)]
    return {
        "rate": len(spurious) / len(pred),
        "spurious_count": len(spurious),
        "total_predicted": len(pred),
        "examples": spurious[:MAX_EXAMPLES],
    }


def update_confusion_matrix(
    matrix: dict[str, dict[str, int]] | None,
    predicted: Sequence[Any],
    ground_truth: Sequence[Any],
    iou_threshold: float = 0.5,
) -> dict[str, dict[str, int]]:
    """Add one test case to a ``ground_truth_role -> predicted_role`` count matrix.

    Each ground-truth span takes its best-IoU unused prediction; unmatched
    ground truth lands in the ``<missed>`` column and leftover predictions in
    the ``<spurious>`` row.
    """
    matrix = matrix if matrix is not None else {}
    pred, gold = _normalize(predicted), _normalize(ground_truth)
    used: set[int] = set()

    for g in gold:
        best_idx, best_iou = -1, 0.0
        for i, p in enumerate(pred):
            if i in used:
                continue
            iou = calculate_iou(p, g)
            if iou > best_iou:
                best_idx, best_iou = i, iou

        row = matrix.setdefault(_role(g), {})
        if best_idx != -1 and best_iou > iou_threshold:
            column = _role(pred[best_idx])
            used.add(best_idx)
        else:
            column = MISSED
        row[column] = row.get(column, 0) + 1

    for i, p in enumerate(pred):
        if i in used:
            continue
        row = matrix.setdefault(SPURIOUS, {})
        row[_role(p)] = row.get(_role(p), 0) + 1

    return matrix


def generate_confusion_matrix(
    test_results: Iterable[Mapping[str, Any]],
    iou_threshold: float = 0.5,
) -> dict[str, dict[str, int]]:
    matrix: dict[str, dict[str, int]] = {}
    for case in test_results or ():
        update_confusion_matrix(
            matrix, case.get("predicted") or [], case.get("ground_truth") or [], iou_threshold
        )
    return matrix


# ---------------------------------------------------------------------------
# Run-level rates
# ---------------------------------------------------------------------------


def calculate_json_validity_rate(results: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """Share of runs whose reply parsed (``{"success": bool}`` per run)."""
    valid = sum(1 for r in results if r.get("success"))
    return {"rate": valid / len(results) if results else 0.0, "valid": valid, "total": len(results)}


def calculate_safety_pass_rate(tests: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    """Share of adversarial probes where ``flagged`` equals ``expected``."""
    passed = sum(1 for t in tests if bool(t.get("flagged")) == bool(t.get("expected", True)))
    return {"rate": passed / len(tests) if tests else 0.0, "passed": passed, "total": len(tests)}
