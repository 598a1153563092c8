"""
Rule classification.

Maps a DisplayRule/EnableRule id, and its XML definition when one could be
resolved, to exactly one ``RuleKind``. Classification never raises:
anything unrecognised becomes a non-evaluable ``UNKNOWN`` rule.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from . import catalog
from .types import CompositeOperator, Rule, RuleKind

logger = logging.getLogger(__name__)

# Child element names that carry a rule inside a rule definition.
RULE_ELEMENT_KINDS: dict[str, RuleKind] = {
    "EntityPrivilegeRule": RuleKind.PRIVILEGE,
    "RecordPrivilegeRule": RuleKind.RECORD_PRIVILEGE,
    "MiscellaneousPrivilegeRule": RuleKind.MISC_PRIVILEGE,
    "CustomRule": RuleKind.CUSTOM_JS,
    "FormStateRule": RuleKind.FORM_STATE,
    "SelectionCountRule": RuleKind.SELECTION_COUNT,
    "ValueRule": RuleKind.VALUE,
    "OrganizationSettingRule": RuleKind.ORG_SETTING,
    "OrRule": RuleKind.COMPOSITE,
    "AndRule": RuleKind.COMPOSITE,
}

_PARAMETER_TAGS = frozenset(
    {
        "CrmParameter",
        "StringParameter",
        "BoolParameter",
        "IntParameter",
        "DecimalParameter",
    }
)


def local_name(element: Any) -> str:
    """Tag name without any XML namespace."""
    tag = getattr(element, "tag", None)
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


class RuleClassifier:
    """
    Classify rule references.

    ``entity`` is the entity under analysis; privilege rules that name a
    different entity cannot be decided from its privilege map and are
    reported as non-evaluable.
    """

    def __init__(self, entity: Optional[str] = None):
        self.entity = (entity or "").lower() or None

    def classify(self, rule_id: str, definition: Any = None) -> Rule:
        if definition is not None:
            try:
                return self._classify_definition(rule_id, definition)
            except (AttributeError, TypeError, ValueError) as exc:
                logger.warning("Could not parse definition of rule %s: %s", rule_id, exc)
                return Rule(
                    id=rule_id,
                    kind=RuleKind.UNKNOWN,
                    reason=catalog.REASON_PARSE_ERROR,
                )
        return self.classify_by_id(rule_id)

    def classify_by_id(self, rule_id: str) -> Rule:
        """Classify from the well-known rule tables and id patterns."""
        rule_id = rule_id or ""

        if rule_id in catalog.ALWAYS_HIDE_RULES:
            return Rule(
                id=rule_id,
                kind=RuleKind.ALWAYS_HIDE,
                evaluable=True,
                reason=catalog.REASON_ALWAYS_HIDE,
            )
        if rule_id in catalog.ALWAYS_SHOW_RULES:
            return Rule(
                id=rule_id,
                kind=RuleKind.ALWAYS_SHOW,
                evaluable=True,
                reason=catalog.REASON_ALWAYS_SHOW,
            )

        privilege_config = catalog.PRIVILEGE_BASED_RULES.get(rule_id)
        if privilege_config:
            return Rule(
                id=rule_id,
                kind=RuleKind.PRIVILEGE,
                parameters={
                    "privilege": privilege_config["privilege"],
                    "depth": privilege_config["depth"],
                    "entity": None,
                },
                evaluable=True,
            )

        state = catalog.FORM_STATE_RULES.get(rule_id)
        if state:
            return Rule(
                id=rule_id,
                kind=RuleKind.FORM_STATE,
                parameters={"state": state},
                reason=catalog.REASON_FORM_STATE.format(state=state),
            )
        if rule_id in catalog.SELECTION_COUNT_RULES:
            return Rule(
                id=rule_id,
                kind=RuleKind.SELECTION_COUNT,
                reason=catalog.REASON_SELECTION_COUNT,
            )
        if rule_id in catalog.ORG_SETTING_RULES:
            return Rule(
                id=rule_id,
                kind=RuleKind.ORG_SETTING,
                reason=catalog.REASON_ORG_SETTING,
            )
        misc_privilege = catalog.MISC_PRIVILEGE_RULES.get(rule_id)
        if misc_privilege:
            return Rule(
                id=rule_id,
                kind=RuleKind.MISC_PRIVILEGE,
                parameters={"privilege": misc_privilege},
                reason=catalog.REASON_MISC_PRIVILEGE.format(privilege=misc_privilege),
            )

        if catalog.CUSTOM_RULE_PATTERN.search(rule_id):
            return Rule(id=rule_id, kind=RuleKind.CUSTOM_JS, reason=catalog.REASON_CUSTOM)
        if catalog.VALUE_RULE_PATTERN.search(rule_id):
            return Rule(id=rule_id, kind=RuleKind.VALUE, reason=catalog.REASON_VALUE)
        if catalog.RECORD_PRIVILEGE_RULE_PATTERN.search(rule_id):
            return Rule(
                id=rule_id,
                kind=RuleKind.RECORD_PRIVILEGE,
                reason=catalog.REASON_RECORD_PRIVILEGE,
            )
        if rule_id and not rule_id.startswith(catalog.BUILTIN_NAMESPACE):
            return Rule(id=rule_id, kind=RuleKind.CUSTOM_JS, reason=catalog.REASON_CUSTOM)

        return Rule(id=rule_id, kind=RuleKind.UNKNOWN, reason=catalog.REASON_UNKNOWN)

    def _classify_definition(self, rule_id: str, definition: Any) -> Rule:
        # A definition wraps one rule element; several are an implicit AND.
        if local_name(definition) in RULE_ELEMENT_KINDS:
            rule_elements = [definition]
        else:
            rule_elements = [
                child for child in definition if local_name(child) in RULE_ELEMENT_KINDS
            ]

        if not rule_elements:
            rule = self.classify_by_id(rule_id)
            logger.debug("Rule %s has no recognised rule element, classified as %s", rule_id, rule.kind.value)
            return rule
        if len(rule_elements) == 1:
            return self._classify_element(rule_id, rule_elements[0])

        children = tuple(
            self._classify_element(f"{rule_id}[{index}]", element)
            for index, element in enumerate(rule_elements)
        )
        return self._composite(rule_id, CompositeOperator.AND, children)

    def _classify_element(self, rule_id: str, element: Any) -> Rule:
        tag = local_name(element)
        kind = RULE_ELEMENT_KINDS.get(tag, RuleKind.UNKNOWN)

        if kind is RuleKind.PRIVILEGE:
            return self._privilege_rule(rule_id, element)
        if kind is RuleKind.COMPOSITE:
            operator = CompositeOperator.OR if tag == "OrRule" else CompositeOperator.AND
            return self._composite(rule_id, operator, self._composite_children(rule_id, element))
        if kind is RuleKind.CUSTOM_JS:
            return Rule(
                id=rule_id,
                kind=kind,
                parameters={
                    "function_name": element.get("FunctionName"),
                    "library": element.get("Library"),
                    "parameters": [
                        {
                            "type": local_name(param),
                            "name": param.get("Name"),
                            "value": param.get("Value") or (param.text or "").strip() or None,
                        }
                        for param in element
                        if local_name(param) in _PARAMETER_TAGS
                    ],
                },
                reason=catalog.REASON_CUSTOM,
            )
        if kind is RuleKind.FORM_STATE:
            state = element.get("State")
            return Rule(
                id=rule_id,
                kind=kind,
                parameters={"state": state},
                reason=catalog.REASON_FORM_STATE.format(state=state),
            )
        if kind is RuleKind.SELECTION_COUNT:
            return Rule(
                id=rule_id,
                kind=kind,
                parameters={
                    "minimum": _optional_int(element.get("Minimum")),
                    "maximum": _optional_int(element.get("Maximum")),
                    "applies_to": element.get("AppliesTo"),
                },
                reason=catalog.REASON_SELECTION_COUNT,
            )
        if kind is RuleKind.VALUE:
            return Rule(
                id=rule_id,
                kind=kind,
                parameters={"field": element.get("Field"), "value": element.get("Value")},
                reason=catalog.REASON_VALUE,
            )
        if kind is RuleKind.RECORD_PRIVILEGE:
            return Rule(
                id=rule_id,
                kind=kind,
                parameters={
                    "privilege": element.get("PrivilegeType"),
                    "applies_to": element.get("AppliesTo"),
                },
                reason=catalog.REASON_RECORD_PRIVILEGE,
            )
        if kind is RuleKind.MISC_PRIVILEGE:
            privilege = element.get("PrivilegeName")
            return Rule(
                id=rule_id,
                kind=kind,
                parameters={"privilege": privilege},
                reason=catalog.REASON_MISC_PRIVILEGE.format(privilege=privilege),
            )
        if kind is RuleKind.ORG_SETTING:
            return Rule(
                id=rule_id,
                kind=kind,
                parameters={"setting": element.get("Setting")},
                reason=catalog.REASON_ORG_SETTING,
            )
        return Rule(id=rule_id, kind=RuleKind.UNKNOWN, reason=catalog.REASON_UNKNOWN)

    def _privilege_rule(self, rule_id: str, element: Any) -> Rule:
        privilege = element.get("PrivilegeType")
        target_entity = element.get("EntityName")
        parameters = {
            "privilege": privilege,
            "depth": element.get("PrivilegeDepth") or "Basic",
            "entity": target_entity,
            "applies_to": element.get("AppliesTo"),
        }
        if not privilege:
            return Rule(
                id=rule_id,
                kind=RuleKind.PRIVILEGE,
                parameters=parameters,
                reason=catalog.REASON_UNKNOWN,
            )
        if target_entity and target_entity.lower() != self.entity:
            return Rule(
                id=rule_id,
                kind=RuleKind.PRIVILEGE,
                parameters=parameters,
                reason=catalog.REASON_OTHER_ENTITY.format(entity=target_entity),
            )
        return Rule(id=rule_id, kind=RuleKind.PRIVILEGE, parameters=parameters, evaluable=True)

    def _composite_children(self, rule_id: str, element: Any) -> tuple[Rule, ...]:
        children: list[Rule] = []
        for index, child in enumerate(element):
            child_id = f"{rule_id}[{index}]"
            tag = local_name(child)
            if tag in ("Or", "And"):
                # Each <Or> group inside an OrRule is itself an AND of its rules.
                grouped = tuple(
                    self._classify_element(f"{child_id}[{position}]", grandchild)
                    for position, grandchild in enumerate(child)
                    if local_name(grandchild) in RULE_ELEMENT_KINDS
                )
                if len(grouped) == 1:
                    children.append(grouped[0])
                elif grouped:
                    children.append(self._composite(child_id, CompositeOperator.AND, grouped))
            elif tag in RULE_ELEMENT_KINDS:
                children.append(self._classify_element(child_id, child))
        return tuple(children)

    def _composite(
        self, rule_id: str, operator: CompositeOperator, children: tuple[Rule, ...]
    ) -> Rule:
        evaluable = bool(children) and all(child.evaluable for child in children)
        reason = ""
        if not evaluable:
            blocking = next((child for child in children if not child.evaluable), None)
            reason = blocking.reason if blocking else catalog.REASON_UNKNOWN
        return Rule(
            id=rule_id,
            kind=RuleKind.COMPOSITE,
            parameters={"operator": operator.value},
            evaluable=evaluable,
            reason=reason,
            operator=operator,
            children=children,
        )


def _optional_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None
