"""Structural validation and semantic critique of span sets."""

from .checks import validate_and_critique
from .critic import apply_corrections, critique
from .models import Correction, CriticIssue, CritiqueResult, ValidationOutcome
from .validator import validate_spans

__all__ = [
    "Correction",
    "CriticIssue",
    "CritiqueResult",
    "ValidationOutcome",
    "apply_corrections",
    "critique",
    "validate_and_critique",
    "validate_spans",
]
