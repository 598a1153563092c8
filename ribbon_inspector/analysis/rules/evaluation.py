"""
Rule evaluation against a principal's privilege map.

Evaluable rules resolve to ``PASS`` or ``FAIL``; everything else resolves to
``INDETERMINATE`` carrying the classification reason.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from ..depth import PrivilegeDepth, compare, to_depth
from ..privileges.types import PrincipalPrivilegeMap
from . import catalog
from .types import CompositeOperator, EvaluationOutcome, Rule, RuleKind, combine_outcomes

logger = logging.getLogger(__name__)


def evaluate_rule(rule: Rule, privileges: PrincipalPrivilegeMap) -> EvaluationOutcome:
    if not rule.evaluable:
        return EvaluationOutcome.indeterminate(rule.reason or catalog.REASON_UNKNOWN)

    if rule.kind is RuleKind.ALWAYS_HIDE:
        return EvaluationOutcome.failed(rule.reason or catalog.REASON_ALWAYS_HIDE)
    if rule.kind is RuleKind.ALWAYS_SHOW:
        return EvaluationOutcome.passed(rule.reason or catalog.REASON_ALWAYS_SHOW)
    if rule.kind is RuleKind.PRIVILEGE:
        return _evaluate_privilege(rule, privileges)
    if rule.kind is RuleKind.COMPOSITE:
        return _evaluate_composite(rule, privileges)

    return EvaluationOutcome.indeterminate(rule.reason or catalog.REASON_UNKNOWN)


def evaluate_rules(
    rules: Iterable[Rule], privileges: PrincipalPrivilegeMap
) -> list[tuple[Rule, EvaluationOutcome]]:
    return [(rule, evaluate_rule(rule, privileges)) for rule in rules]


def _evaluate_privilege(rule: Rule, privileges: PrincipalPrivilegeMap) -> EvaluationOutcome:
    privilege = str(rule.parameters.get("privilege") or "")
    entry = privileges.get(privilege)
    if entry is None:
        return EvaluationOutcome.indeterminate(catalog.REASON_UNKNOWN)
    if not entry.has_privilege:
        return EvaluationOutcome.failed(f"User lacks {privilege} privilege")

    required = to_depth(rule.parameters.get("depth") or "Basic")
    if required is not PrivilegeDepth.NONE and entry.depth is not None:
        if compare(entry.depth, required) < 0:
            return EvaluationOutcome.failed(
                f"User has {privilege} privilege at {entry.depth.label}, "
                f"requires {required.label}"
            )
    return EvaluationOutcome.passed(f"User has {privilege} privilege")


def _evaluate_composite(rule: Rule, privileges: PrincipalPrivilegeMap) -> EvaluationOutcome:
    outcomes = [evaluate_rule(child, privileges) for child in rule.children]
    if rule.operator is CompositeOperator.OR:
        for outcome in outcomes:
            if outcome.is_pass:
                return outcome
        if any(outcome.is_indeterminate for outcome in outcomes):
            return next(outcome for outcome in outcomes if outcome.is_indeterminate)
        reasons = "; ".join(outcome.reason for outcome in outcomes if outcome.reason)
        return EvaluationOutcome.failed(reasons or "No alternative passed")
    return combine_outcomes(outcomes)


CustomRuleCallable = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class CustomRuleResult:
    rule_id: str
    evaluated: bool = False
    result: Optional[bool] = None
    error: Optional[str] = None
    reason: str = "Not evaluated"

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "evaluated": self.evaluated,
            "result": self.result,
            "error": self.error,
            "reason": self.reason,
        }


class CustomRuleRegistry:
    """
    Host-supplied implementations of custom (JavaScript) ribbon rules.

    Functions are registered by name, either ``library.function`` or the bare
    function name. They receive a context dict and return a truthy value when
    the rule passes. Results only ever describe the acting principal.
    """

    def __init__(self, functions: Optional[dict[str, CustomRuleCallable]] = None):
        self._functions: dict[str, CustomRuleCallable] = dict(functions or {})

    def register(self, name: str, function: CustomRuleCallable) -> None:
        self._functions[name] = function

    def unregister(self, name: str) -> None:
        self._functions.pop(name, None)

    def resolve(
        self, function_name: Optional[str], library: Optional[str] = None
    ) -> Optional[CustomRuleCallable]:
        if not function_name:
            return None
        if library:
            qualified = self._functions.get(f"{library}.{function_name}")
            if qualified is not None:
                return qualified
        return self._functions.get(function_name)

    def __len__(self) -> int:
        return len(self._functions)

    def evaluate(self, rule: Rule, context: Optional[dict[str, Any]] = None) -> CustomRuleResult:
        function_name = rule.parameters.get("function_name")
        library = rule.parameters.get("library")
        if not function_name:
            return CustomRuleResult(rule.id, reason="No function name provided")

        function = self.resolve(function_name, library)
        if function is None:
            full_name = f"{library}.{function_name}" if library else function_name
            return CustomRuleResult(rule.id, reason=f"Function {full_name} is not registered")

        payload = {"rule_id": rule.id, "parameters": rule.parameters.get("parameters", [])}
        payload.update(context or {})
        try:
            outcome = bool(function(payload))
        except Exception as exc:
            logger.warning("Custom rule %s raised: %s", rule.id, exc)
            return CustomRuleResult(
                rule.id, error=str(exc), reason=f"Error evaluating: {exc}"
            )
        return CustomRuleResult(
            rule.id,
            evaluated=True,
            result=outcome,
            reason="Rule passed" if outcome else "Rule returned false",
        )


def iter_custom_rules(rules: Iterable[Rule]) -> Iterable[Rule]:
    """Yield every custom rule, including those nested in composites."""
    for rule in rules:
        if rule.kind is RuleKind.CUSTOM_JS:
            yield rule
        elif rule.kind is RuleKind.COMPOSITE:
            yield from iter_custom_rules(rule.children)
