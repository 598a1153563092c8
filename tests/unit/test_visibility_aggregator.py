"""
Unit tests for VisibilityAggregator: merging, evaluation and difference verdicts.
"""

import pytest

from ribbon_inspector.analysis.depth import PrivilegeDepth
from ribbon_inspector.analysis.privileges.types import PrincipalPrivilegeMap, Role, Team
from ribbon_inspector.analysis.ribbon.standard_commands import STANDARD_COMMANDS
from ribbon_inspector.analysis.ribbon.types import Command, CommandSource
from ribbon_inspector.analysis.rules import (
    CustomRuleRegistry,
    OutcomeStatus,
    Rule,
    RuleClassifier,
    RuleKind,
)
from ribbon_inspector.analysis.security_context import SecurityContextComparator
from ribbon_inspector.analysis.visibility import (
    AggregationInput,
    Difference,
    EvaluationMethod,
    VisibilityAggregator,
    determine_difference,
)

pytestmark = pytest.mark.unit

SALESPERSON = Role(id="r-sales", name="Salesperson")
MANAGER = Role(id="r-manager", name="Sales Manager")
SALES_TEAM = Team(id="t-sales", name="Sales Team")


def _privileges(*verbs):
    privileges = PrincipalPrivilegeMap.empty()
    for verb in verbs:
        privileges[verb].grant(PrivilegeDepth.GLOBAL, "Salesperson")
    return privileges


def _security(match=True):
    comparator = SecurityContextComparator()
    if match:
        return comparator.compare([SALESPERSON], [SALESPERSON], [SALES_TEAM], [SALES_TEAM])
    return comparator.compare([SALESPERSON, MANAGER], [SALESPERSON], [SALES_TEAM], [])


def _standard(command_id, context=None):
    return next(
        command
        for command in STANDARD_COMMANDS
        if command.id == command_id and (context is None or command.context == context)
    )


def _diff_command(command_id, *rule_ids, entity="account", solution_id=None, parse_error=None):
    classifier = RuleClassifier(entity)
    return Command(
        id=command_id,
        name=command_id.rsplit(".", 1)[-1],
        context="Form",
        source=CommandSource.RIBBON_DIFF,
        entity=entity,
        display_rules=[classifier.classify(rule_id) for rule_id in rule_ids],
        solution_id=solution_id,
        parse_error=parse_error,
    )


def _modern_command(command_id, rules=()):
    return Command(
        id=command_id,
        name=command_id,
        context="Form",
        source=CommandSource.MODERN,
        entity="account",
        display_rules=list(rules),
    )


def _input(context="Form", current=(), target=(), security=None, **extra):
    return AggregationInput(
        context=context,
        entity="account",
        current_privileges=_privileges(*current),
        target_privileges=_privileges(*target),
        security=security or _security(),
        **extra,
    )


def _by_id(results):
    return {result.command_id: result for result in results}


@pytest.mark.parametrize(
    "current,target,custom,match,expected",
    [
        (True, False, False, True, Difference.ONLY_CURRENT),
        (False, True, True, False, Difference.ONLY_TARGET),
        (True, True, True, False, Difference.POTENTIAL),
        (True, True, True, True, Difference.SAME),
        (True, True, False, False, Difference.SAME),
        (False, False, True, False, Difference.POTENTIAL),
    ],
)
def test_determine_difference(current, target, custom, match, expected):
    assert determine_difference(current, target, custom, match) is expected


def test_save_is_only_visible_to_principal_with_write():
    data = _input(
        current=("read", "write"),
        target=("read",),
        standard_commands=[_standard("Mscrm.SavePrimaryRecord")],
    )
    [result], _ = VisibilityAggregator().aggregate(data)

    assert result.difference is Difference.ONLY_CURRENT
    assert result.visible_to_current_user is True
    assert result.visible_to_target_user is False
    assert result.current_user_blocked_by == ()
    assert result.target_user_blocked_by == ("Missing Write privilege",)
    assert result.evaluation_method == EvaluationMethod.STANDARD_PRIVILEGE
    assert result.source == "Standard"
    assert result.solution_name == "System (OOTB)"
    assert result.publisher_name == "Microsoft"
    assert result.is_standard_command is True


def test_missing_misc_privilege_blocks_standard_command():
    data = _input(
        context="HomePageGrid",
        current=("read",),
        target=("read",),
        standard_commands=[_standard("Mscrm.ExportToExcel")],
        current_misc_privileges={"prvExportToExcel": True},
        target_misc_privileges={"prvExportToExcel": False},
    )
    [result], _ = VisibilityAggregator().aggregate(data)

    assert result.difference is Difference.ONLY_CURRENT
    assert result.target_user_blocked_by == ("Missing prvExportToExcel",)


def test_unverified_misc_privilege_counts_as_granted():
    data = _input(
        context="HomePageGrid",
        current=("read",),
        target=("read",),
        standard_commands=[_standard("Mscrm.ExportToExcel")],
    )
    [result], _ = VisibilityAggregator().aggregate(data)
    assert result.difference is Difference.SAME
    assert result.visible_to_target_user is True


def test_entity_property_gate_hides_for_both_principals():
    data = _input(
        context="HomePageGrid",
        current=("write",),
        target=(),
        standard_commands=[_standard("Mscrm.AddToQueue")],
        entity_metadata={"IsValidForQueue": False},
    )
    [result], _ = VisibilityAggregator().aggregate(data)

    assert result.difference is Difference.SAME
    assert result.visible_to_current_user is False
    assert result.visible_to_target_user is False
    assert result.current_user_blocked_by == ("Entity does not have IsValidForQueue",)
    assert result.target_user_blocked_by == ("Entity does not have IsValidForQueue",)
    assert result.evaluation_method == EvaluationMethod.ENTITY_PROPERTY


def test_entity_property_gate_requires_flag_to_be_set():
    data = _input(
        context="HomePageGrid",
        current=("write",),
        target=("write",),
        standard_commands=[_standard("Mscrm.AddToQueue")],
        entity_metadata={"IsValidForQueue": True},
    )
    [result], _ = VisibilityAggregator().aggregate(data)
    assert result.visible_to_current_user is True
    assert result.evaluation_method == EvaluationMethod.STANDARD_PRIVILEGE

    data.entity_metadata = {}
    [result], _ = VisibilityAggregator().aggregate(data)
    assert result.visible_to_current_user is False


def test_privilege_rule_on_ribbon_diff_command():
    data = _input(
        current=("write",),
        target=(),
        ribbon_diff_commands=[_diff_command("new.account.Approve", "Mscrm.CanWritePrimary")],
    )
    [result], _ = VisibilityAggregator().aggregate(data)

    assert result.difference is Difference.ONLY_CURRENT
    assert result.target_user_blocked_by == (
        "Mscrm.CanWritePrimary: User lacks Write privilege",
    )
    assert result.evaluation_method == EvaluationMethod.PRIVILEGE_BASED
    assert result.has_custom_rules is False
    assert result.rules == ("Mscrm.CanWritePrimary",)
    assert result.solution_name == "Unknown"


def test_custom_rule_with_differing_security_is_potential_difference():
    data = _input(
        current=("write",),
        target=("write",),
        security=_security(match=False),
        ribbon_diff_commands=[
            _diff_command("new.account.Approve", "Mscrm.CanWritePrimary", "new.account.IsApproved")
        ],
    )
    [result], summary = VisibilityAggregator().aggregate(data)

    assert result.difference is Difference.POTENTIAL
    assert result.has_custom_rules is True
    assert result.current_outcome.status is OutcomeStatus.INDETERMINATE
    assert result.visible_to_current_user is True
    assert result.visible_to_target_user is True
    assert result.evaluation_method == EvaluationMethod.SECURITY_CONTEXT_DIFFERS
    assert result.current_user_blocked_by == (
        "Has roles: Sales Manager",
        "Member of teams: Sales Team",
    )
    assert result.target_user_blocked_by == ()
    assert result.custom_rule_details[0]["rule_id"] == "new.account.IsApproved"
    assert summary.potential_differences == 1


def test_custom_rule_with_matching_security_is_same():
    data = _input(
        current=("write",),
        target=("write",),
        ribbon_diff_commands=[_diff_command("new.account.Approve", "new.account.IsApproved")],
    )
    [result], _ = VisibilityAggregator().aggregate(data)

    assert result.difference is Difference.SAME
    assert result.evaluation_method == EvaluationMethod.SECURITY_CONTEXT_MATCH
    assert result.current_user_blocked_by == ()


def test_failing_privilege_rule_still_blocks_next_to_custom_rule():
    data = _input(
        current=("write",),
        target=(),
        security=_security(match=False),
        ribbon_diff_commands=[
            _diff_command("new.account.Approve", "Mscrm.CanWritePrimary", "new.account.IsApproved")
        ],
    )
    [result], _ = VisibilityAggregator().aggregate(data)

    assert result.difference is Difference.ONLY_CURRENT
    assert result.target_user_blocked_by[0] == "Mscrm.CanWritePrimary: User lacks Write privilege"


def test_parse_error_command():
    command = _diff_command("new.account.Broken", parse_error="Malformed ribbon diff XML")
    command.display_rules = [Rule(id=command.id, kind=RuleKind.UNKNOWN, reason="unparsable")]
    [result], _ = VisibilityAggregator().aggregate(_input(ribbon_diff_commands=[command]))

    assert result.evaluation_method == EvaluationMethod.PARSE_ERROR
    assert result.visible_to_current_user is True


def test_evaluation_errors_degrade_to_parse_error():
    broken = Rule(id="broken", kind=RuleKind.PRIVILEGE, parameters=None, evaluable=True)
    command = _diff_command("new.account.Weird")
    command.display_rules = [broken]
    [result], _ = VisibilityAggregator().aggregate(_input(ribbon_diff_commands=[command]))

    assert result.command_id == "new.account.Weird"
    assert result.evaluation_method == EvaluationMethod.PARSE_ERROR
    assert result.has_custom_rules is True
    assert result.rules == ("new.account.Weird",)


def test_standard_command_takes_precedence_over_other_sources():
    data = _input(
        current=("write",),
        target=("write",),
        standard_commands=[_standard("Mscrm.SavePrimaryRecord")],
        ribbon_diff_commands=[_diff_command("Mscrm.SavePrimaryRecord", "new.account.IsApproved")],
        modern_commands=[_modern_command("Mscrm.SavePrimaryRecord")],
    )
    results, summary = VisibilityAggregator().aggregate(data)

    assert len(results) == 1
    assert results[0].source == "Standard"
    assert summary.ribbon_diff_commands == 0


def test_ribbon_diff_takes_precedence_over_modern():
    data = _input(
        ribbon_diff_commands=[_diff_command("new_shared", "Mscrm.CanWritePrimary")],
        modern_commands=[_modern_command("new_shared")],
    )
    [result], _ = VisibilityAggregator().aggregate(data)
    assert result.source == "RibbonDiff"


def test_hidden_and_out_of_context_commands_are_skipped():
    data = _input(
        current=("write", "create"),
        target=("write",),
        standard_commands=[
            _standard("Mscrm.SavePrimaryRecord"),
            _standard("Mscrm.NewRecordFromGrid"),
        ],
        ribbon_diff_commands=[_diff_command("new.account.Approve", "Mscrm.CanWritePrimary")],
        hidden_command_ids={"Mscrm.SavePrimaryRecord", "Mscrm.SomethingElse"},
    )
    results, summary = VisibilityAggregator().aggregate(data)

    assert [result.command_id for result in results] == ["new.account.Approve"]
    assert summary.hidden_commands == 2


def test_modern_command_evaluation_methods():
    formula = Rule(
        id="VisibilityFormula",
        kind=RuleKind.CUSTOM_JS,
        parameters={"function_name": "IsApprovable", "label": "Visibility Formula"},
        reason="Power Fx expression",
    )
    classic = Rule(
        id="ClassicRules",
        kind=RuleKind.UNKNOWN,
        parameters={"label": "Classic Rules"},
        reason="Legacy ribbon rules",
    )
    data = _input(
        security=_security(match=False),
        modern_commands=[
            _modern_command("new_always"),
            _modern_command("new_formula", [formula]),
            _modern_command("new_classic", [classic]),
        ],
    )
    results = _by_id(VisibilityAggregator().aggregate(data)[0])

    always = results["new_always"]
    assert always.evaluation_method == EvaluationMethod.ALWAYS_VISIBLE
    assert always.current_outcome.status is OutcomeStatus.PASS
    assert always.difference is Difference.SAME
    assert always.solution_name == "Active"
    assert always.publisher_name == "Default Publisher"

    formula_result = results["new_formula"]
    assert formula_result.evaluation_method == EvaluationMethod.POWER_FX_FORMULA
    assert formula_result.current_outcome.status is OutcomeStatus.INDETERMINATE
    assert formula_result.difference is Difference.POTENTIAL
    assert formula_result.rules == ("Visibility Formula",)

    assert results["new_classic"].evaluation_method == EvaluationMethod.CLASSIC_RULES


def test_solution_and_publisher_attribution():
    data = _input(
        ribbon_diff_commands=[
            _diff_command(
                "new.account.Approve",
                "Mscrm.CanWritePrimary",
                solution_id="{5A8C0D1E-0000-0000-0000-000000000001}",
            )
        ],
        solutions={
            "5a8c0d1e-0000-0000-0000-000000000001": {
                "friendlyname": "Approvals",
                "publisherid": "9b000000-0000-0000-0000-000000000002",
            }
        },
        publishers={"9b000000-0000-0000-0000-000000000002": {"friendlyname": "Contoso"}},
    )
    [result], _ = VisibilityAggregator().aggregate(data)
    assert result.solution_name == "Approvals"
    assert result.publisher_name == "Contoso"


def test_custom_rule_results_are_attached_for_current_principal():
    registry = CustomRuleRegistry({"isApproved": lambda context: context["entity"] == "account"})
    command = _diff_command("new.account.Approve")
    command.display_rules = [
        Rule(
            id="new.account.IsApproved",
            kind=RuleKind.CUSTOM_JS,
            parameters={"function_name": "isApproved", "library": None},
            reason="custom",
        )
    ]
    [result], _ = VisibilityAggregator(registry).aggregate(_input(ribbon_diff_commands=[command]))

    evaluated = [detail for detail in result.custom_rule_details if "principal" in detail]
    assert evaluated == [
        {
            "rule_id": "new.account.IsApproved",
            "evaluated": True,
            "result": True,
            "error": None,
            "reason": "Rule passed",
            "principal": "current",
        }
    ]
    assert result.difference is Difference.SAME


def test_results_are_sorted_and_summarized():
    data = _input(
        current=("write", "delete"),
        target=("read", "assign"),
        security=_security(match=False),
        standard_commands=[
            _standard("Mscrm.RefreshPrimaryRecord"),
            _standard("Mscrm.DeletePrimaryRecord"),
            _standard("Mscrm.SavePrimaryRecord"),
            _standard("Mscrm.AssignPrimaryRecord"),
        ],
        ribbon_diff_commands=[_diff_command("new.account.Approve", "new.account.IsApproved")],
    )
    results, summary = VisibilityAggregator().aggregate(data)

    assert [(result.command_id, result.difference) for result in results] == [
        ("Mscrm.DeletePrimaryRecord", Difference.ONLY_CURRENT),
        ("Mscrm.SavePrimaryRecord", Difference.ONLY_CURRENT),
        ("Mscrm.AssignPrimaryRecord", Difference.ONLY_TARGET),
        ("Mscrm.RefreshPrimaryRecord", Difference.ONLY_TARGET),
        ("new.account.Approve", Difference.POTENTIAL),
    ]
    assert summary.total_commands == 5
    assert summary.standard_commands == 4
    assert summary.ribbon_diff_commands == 1
    assert summary.ootb_commands == 4
    assert summary.custom_commands == 1
    assert summary.differences == 4
    assert summary.only_current_user == 2
    assert summary.only_target_user == 2
    assert summary.potential_differences == 1
    assert summary.same_visibility == 0
    assert summary.unmanaged_commands == 1
    assert summary.context == "Form"
    assert summary.entity == "account"
    assert summary.security_comparison["roles_match"] is False
    assert summary.security_comparison["shared_roles"] == 1
    assert summary.security_comparison["roles_only_current"] == [
        {"id": "r-manager", "name": "Sales Manager", "is_inherited": False}
    ]
    assert summary.security_comparison["teams_only_target"] == []


def test_results_are_ordered_by_difference_then_command_id():
    data = _input(
        current=("read", "write"),
        target=("read", "delete"),
        security=_security(match=False),
        ribbon_diff_commands=[
            _diff_command("new.zeta.Same", "Mscrm.ReadPrimaryEntityPermission"),
            _diff_command("new.alpha.Same", "Mscrm.ReadPrimaryEntityPermission"),
            _diff_command("new.mu.Potential", "new.account.IsApproved"),
            _diff_command("new.delta.OnlyTarget", "Mscrm.CanDeletePrimary"),
            _diff_command("new.beta.OnlyTarget", "Mscrm.CanDeletePrimary"),
            _diff_command("new.omega.OnlyCurrent", "Mscrm.CanWritePrimary"),
            _diff_command("new.gamma.OnlyCurrent", "Mscrm.CanWritePrimary"),
        ],
    )
    results, summary = VisibilityAggregator().aggregate(data)

    assert [(result.command_id, result.difference) for result in results] == [
        ("new.gamma.OnlyCurrent", Difference.ONLY_CURRENT),
        ("new.omega.OnlyCurrent", Difference.ONLY_CURRENT),
        ("new.beta.OnlyTarget", Difference.ONLY_TARGET),
        ("new.delta.OnlyTarget", Difference.ONLY_TARGET),
        ("new.mu.Potential", Difference.POTENTIAL),
        ("new.alpha.Same", Difference.SAME),
        ("new.zeta.Same", Difference.SAME),
    ]
    assert summary.total_commands == 7
    assert summary.differences == 4
    assert summary.only_current_user == 2
    assert summary.only_target_user == 2
    assert summary.potential_differences == 1
    assert summary.same_visibility == 2
