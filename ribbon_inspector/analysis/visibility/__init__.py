"""
Command merge, per-principal evaluation and difference reporting.
"""

from .aggregator import (
    AggregationInput,
    VisibilityAggregator,
    build_summary,
    determine_difference,
    sort_results,
)
from .types import (
    ComparisonResult,
    ComparisonSummary,
    Difference,
    EvaluationMethod,
    VisibilityResult,
)

__all__ = [
    "AggregationInput",
    "VisibilityAggregator",
    "build_summary",
    "determine_difference",
    "sort_results",
    "ComparisonResult",
    "ComparisonSummary",
    "Difference",
    "EvaluationMethod",
    "VisibilityResult",
]
