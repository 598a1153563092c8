"""
Unit tests for rule evaluation and the custom rule registry.
"""

import pytest

from ribbon_inspector.analysis.depth import PrivilegeDepth
from ribbon_inspector.analysis.privileges.types import PrincipalPrivilegeMap
from ribbon_inspector.analysis.rules import (
    CustomRuleRegistry,
    EvaluationOutcome,
    OutcomeStatus,
    Rule,
    RuleClassifier,
    RuleKind,
    combine_outcomes,
    evaluate_rule,
    iter_custom_rules,
)
from ribbon_inspector.analysis.rules.types import CompositeOperator

pytestmark = pytest.mark.unit


def _privileges(**grants):
    privileges = PrincipalPrivilegeMap.empty()
    for verb, depth in grants.items():
        privileges[verb].grant(depth, "Salesperson")
    return privileges


def _privilege_rule(privilege, depth="Basic", rule_id="rule"):
    return Rule(
        id=rule_id,
        kind=RuleKind.PRIVILEGE,
        parameters={"privilege": privilege, "depth": depth},
        evaluable=True,
    )


def test_privilege_rule_passes_when_granted():
    outcome = evaluate_rule(_privilege_rule("Write"), _privileges(write=PrivilegeDepth.BASIC))
    assert outcome.status is OutcomeStatus.PASS
    assert outcome.reason == "User has Write privilege"


def test_privilege_rule_fails_when_missing():
    outcome = evaluate_rule(_privilege_rule("Write"), _privileges(read=PrivilegeDepth.GLOBAL))
    assert outcome.is_fail
    assert outcome.reason == "User lacks Write privilege"


def test_privilege_rule_fails_below_required_depth():
    outcome = evaluate_rule(
        _privilege_rule("Write", depth="Global"), _privileges(write=PrivilegeDepth.LOCAL)
    )
    assert outcome.is_fail
    assert outcome.reason == "User has Write privilege at Local (BU), requires Global (Org)"


def test_privilege_rule_passes_at_higher_depth():
    outcome = evaluate_rule(
        _privilege_rule("Write", depth="Local"), _privileges(write=PrivilegeDepth.DEEP)
    )
    assert outcome.is_pass


def test_non_evaluable_rule_is_indeterminate_with_reason():
    rule = RuleClassifier().classify("Mscrm.IsFormReadOnly")
    outcome = evaluate_rule(rule, _privileges())
    assert outcome.is_indeterminate
    assert outcome.reason == rule.reason
    assert outcome.visible is True


def test_always_hide_and_show():
    classifier = RuleClassifier()
    assert evaluate_rule(classifier.classify("Mscrm.HideOnModern"), _privileges()).is_fail
    assert evaluate_rule(classifier.classify("Mscrm.ShowOnlyOnModern"), _privileges()).is_pass


def test_or_composite_passes_when_any_child_passes():
    rule = Rule(
        id="or",
        kind=RuleKind.COMPOSITE,
        evaluable=True,
        operator=CompositeOperator.OR,
        children=(_privilege_rule("Write"), _privilege_rule("Create")),
    )
    assert evaluate_rule(rule, _privileges(create=PrivilegeDepth.BASIC)).is_pass
    failed = evaluate_rule(rule, _privileges())
    assert failed.is_fail
    assert "Write" in failed.reason and "Create" in failed.reason


def test_and_composite_fails_when_any_child_fails():
    rule = Rule(
        id="and",
        kind=RuleKind.COMPOSITE,
        evaluable=True,
        operator=CompositeOperator.AND,
        children=(_privilege_rule("Write"), _privilege_rule("Share")),
    )
    assert evaluate_rule(rule, _privileges(write=PrivilegeDepth.BASIC)).is_fail
    assert evaluate_rule(
        rule, _privileges(write=PrivilegeDepth.BASIC, share=PrivilegeDepth.BASIC)
    ).is_pass


def test_combine_outcomes_precedence():
    passed = EvaluationOutcome.passed()
    unknown = EvaluationOutcome.indeterminate("custom")
    failed = EvaluationOutcome.failed("nope")
    assert combine_outcomes([]).is_pass
    assert combine_outcomes([passed, unknown]) == unknown
    assert combine_outcomes([unknown, failed, passed]) == failed


def _custom_rule(function_name="isApproved", library="new_/approvals.js"):
    return Rule(
        id="new.IsApproved",
        kind=RuleKind.CUSTOM_JS,
        parameters={"function_name": function_name, "library": library, "parameters": []},
    )


def test_registry_resolves_qualified_then_bare_names():
    registry = CustomRuleRegistry()
    registry.register("isApproved", lambda context: False)
    registry.register("new_/approvals.js.isApproved", lambda context: True)
    result = registry.evaluate(_custom_rule(), {"user_id": "u1"})
    assert result.evaluated is True
    assert result.result is True
    assert result.reason == "Rule passed"

    registry.unregister("new_/approvals.js.isApproved")
    result = registry.evaluate(_custom_rule(), {})
    assert result.result is False
    assert result.reason == "Rule returned false"


def test_registry_reports_unregistered_and_failing_functions():
    registry = CustomRuleRegistry()
    result = registry.evaluate(_custom_rule(library=None), {})
    assert result.evaluated is False
    assert result.reason == "Function isApproved is not registered"

    def explode(context):
        raise RuntimeError("boom")

    registry.register("isApproved", explode)
    result = registry.evaluate(_custom_rule(library=None), {})
    assert result.evaluated is False
    assert result.error == "boom"


def test_registry_passes_context_to_function():
    seen = {}

    def capture(context):
        seen.update(context)
        return True

    registry = CustomRuleRegistry({"isApproved": capture})
    registry.evaluate(_custom_rule(library=None), {"user_id": "u1"})
    assert seen["rule_id"] == "new.IsApproved"
    assert seen["user_id"] == "u1"


def test_iter_custom_rules_walks_composites():
    nested = Rule(
        id="and",
        kind=RuleKind.COMPOSITE,
        operator=CompositeOperator.AND,
        children=(_custom_rule(), _privilege_rule("Write")),
    )
    assert [rule.id for rule in iter_custom_rules([nested, _privilege_rule("Read")])] == [
        "new.IsApproved"
    ]
