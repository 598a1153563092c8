"""
Unit tests for rule classification.
"""

import pytest
from lxml import etree

from ribbon_inspector.analysis.rules import RuleClassifier, RuleKind
from ribbon_inspector.analysis.rules.types import CompositeOperator

pytestmark = pytest.mark.unit


def _definition(xml: str):
    return etree.fromstring(xml)


def test_builtin_privilege_rule_is_evaluable():
    rule = RuleClassifier("account").classify("Mscrm.CanWritePrimary")
    assert rule.kind is RuleKind.PRIVILEGE
    assert rule.evaluable is True
    assert rule.parameters["privilege"] == "Write"


@pytest.mark.parametrize(
    "rule_id,kind,evaluable",
    [
        ("Mscrm.HideOnModern", RuleKind.ALWAYS_HIDE, True),
        ("Mscrm.ShowOnlyOnModern", RuleKind.ALWAYS_SHOW, True),
        ("Mscrm.IsFormReadOnly", RuleKind.FORM_STATE, False),
        ("Mscrm.SelectionCountExactlyOne", RuleKind.SELECTION_COUNT, False),
        ("Mscrm.IsSharepointEnabled", RuleKind.ORG_SETTING, False),
        ("Mscrm.CanExportToExcel", RuleKind.MISC_PRIVILEGE, False),
        ("Mscrm.SomethingCustomRule", RuleKind.CUSTOM_JS, False),
        ("Mscrm.StatusValueRule", RuleKind.VALUE, False),
        ("Mscrm.OwnerRecordPrivilegeRule", RuleKind.RECORD_PRIVILEGE, False),
        ("new.account.EnableRule.IsApproved", RuleKind.CUSTOM_JS, False),
        ("Mscrm.NeverHeardOfIt", RuleKind.UNKNOWN, False),
        ("", RuleKind.UNKNOWN, False),
    ],
)
def test_classify_by_id(rule_id, kind, evaluable):
    rule = RuleClassifier().classify(rule_id)
    assert rule.kind is kind
    assert rule.evaluable is evaluable
    if not evaluable:
        assert rule.reason


def test_form_state_reason_names_the_state():
    rule = RuleClassifier().classify("Mscrm.IsFormCreate")
    assert rule.parameters == {"state": "Create"}
    assert "Create" in rule.reason


def test_entity_privilege_definition_carries_depth():
    definition = _definition(
        '<DisplayRule Id="new.CanApprove">'
        '<EntityPrivilegeRule PrivilegeType="Write" PrivilegeDepth="Deep" AppliesTo="PrimaryEntity" />'
        "</DisplayRule>"
    )
    rule = RuleClassifier("account").classify("new.CanApprove", definition)
    assert rule.kind is RuleKind.PRIVILEGE
    assert rule.evaluable is True
    assert rule.parameters["privilege"] == "Write"
    assert rule.parameters["depth"] == "Deep"
    assert rule.parameters["applies_to"] == "PrimaryEntity"


def test_privilege_rule_on_other_entity_is_not_evaluable():
    definition = _definition(
        '<DisplayRule Id="new.CanReadContact">'
        '<EntityPrivilegeRule PrivilegeType="Read" EntityName="contact" />'
        "</DisplayRule>"
    )
    rule = RuleClassifier("account").classify("new.CanReadContact", definition)
    assert rule.kind is RuleKind.PRIVILEGE
    assert rule.evaluable is False
    assert "contact" in rule.reason


def test_privilege_rule_on_same_entity_is_evaluable():
    definition = _definition(
        '<DisplayRule Id="x"><EntityPrivilegeRule PrivilegeType="Read" EntityName="Account" /></DisplayRule>'
    )
    assert RuleClassifier("account").classify("x", definition).evaluable is True


def test_custom_rule_definition_extracts_call():
    definition = _definition(
        '<EnableRule Id="new.IsApproved">'
        '<CustomRule FunctionName="Approvals.isApproved" Library="$webresource:new_/approvals.js">'
        '<CrmParameter Value="PrimaryControl" />'
        '<StringParameter Value="approved" />'
        "</CustomRule>"
        "</EnableRule>"
    )
    rule = RuleClassifier().classify("new.IsApproved", definition)
    assert rule.kind is RuleKind.CUSTOM_JS
    assert rule.evaluable is False
    assert rule.parameters["function_name"] == "Approvals.isApproved"
    assert rule.parameters["library"] == "$webresource:new_/approvals.js"
    assert [param["value"] for param in rule.parameters["parameters"]] == [
        "PrimaryControl",
        "approved",
    ]


def test_selection_count_definition_parses_bounds():
    definition = _definition(
        '<EnableRule Id="x"><SelectionCountRule Minimum="1" Maximum="many" AppliesTo="SelectedEntity" /></EnableRule>'
    )
    rule = RuleClassifier().classify("x", definition)
    assert rule.kind is RuleKind.SELECTION_COUNT
    assert rule.parameters["minimum"] == 1
    assert rule.parameters["maximum"] is None


def test_value_rule_definition():
    definition = _definition('<DisplayRule Id="x"><ValueRule Field="statecode" Value="0" /></DisplayRule>')
    rule = RuleClassifier().classify("x", definition)
    assert rule.kind is RuleKind.VALUE
    assert rule.parameters == {"field": "statecode", "value": "0"}


def test_or_rule_is_evaluable_only_when_every_child_is():
    evaluable = _definition(
        '<DisplayRule Id="x"><OrRule>'
        '<Or><EntityPrivilegeRule PrivilegeType="Write" /></Or>'
        '<Or><EntityPrivilegeRule PrivilegeType="Create" /></Or>'
        "</OrRule></DisplayRule>"
    )
    rule = RuleClassifier("account").classify("x", evaluable)
    assert rule.kind is RuleKind.COMPOSITE
    assert rule.operator is CompositeOperator.OR
    assert rule.evaluable is True
    assert [child.parameters["privilege"] for child in rule.children] == ["Write", "Create"]

    mixed = _definition(
        '<DisplayRule Id="y"><OrRule>'
        '<Or><EntityPrivilegeRule PrivilegeType="Write" /></Or>'
        '<Or><FormStateRule State="Create" /></Or>'
        "</OrRule></DisplayRule>"
    )
    rule = RuleClassifier("account").classify("y", mixed)
    assert rule.evaluable is False
    assert "Create" in rule.reason


def test_several_rule_elements_form_an_implicit_and():
    definition = _definition(
        '<EnableRule Id="x">'
        '<EntityPrivilegeRule PrivilegeType="Write" />'
        '<EntityPrivilegeRule PrivilegeType="Share" />'
        "</EnableRule>"
    )
    rule = RuleClassifier("account").classify("x", definition)
    assert rule.kind is RuleKind.COMPOSITE
    assert rule.operator is CompositeOperator.AND
    assert len(rule.children) == 2


def test_definition_without_rule_elements_falls_back_to_id():
    definition = _definition('<DisplayRule Id="Mscrm.CanWritePrimary"><Unrelated /></DisplayRule>')
    rule = RuleClassifier().classify("Mscrm.CanWritePrimary", definition)
    assert rule.kind is RuleKind.PRIVILEGE


def test_unparseable_definition_degrades_to_unknown():
    rule = RuleClassifier().classify("x", definition=42)
    assert rule.kind is RuleKind.UNKNOWN
    assert rule.evaluable is False
