"""
Ribbon rule taxonomy, classification and evaluation.
"""

from .classifier import RuleClassifier
from .evaluation import (
    CustomRuleRegistry,
    CustomRuleResult,
    evaluate_rule,
    evaluate_rules,
    iter_custom_rules,
)
from .types import (
    CompositeOperator,
    EvaluationOutcome,
    OutcomeStatus,
    Rule,
    RuleKind,
    combine_outcomes,
)

__all__ = [
    "RuleClassifier",
    "CustomRuleRegistry",
    "CustomRuleResult",
    "evaluate_rule",
    "evaluate_rules",
    "iter_custom_rules",
    "CompositeOperator",
    "EvaluationOutcome",
    "OutcomeStatus",
    "Rule",
    "RuleKind",
    "combine_outcomes",
]
