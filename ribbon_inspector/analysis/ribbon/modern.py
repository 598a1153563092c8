"""
Modern commands (``appaction`` records).
"""

from __future__ import annotations

from typing import Any, Optional

from ..rules.types import Rule, RuleKind
from .types import Command, CommandSource

VISIBILITY_FORMULA = 1
VISIBILITY_CLASSIC_RULES = 2

FORMULA_RULE_ID = "VisibilityFormula"
CLASSIC_RULES_ID = "ClassicRules"


def modern_command_id(record: dict[str, Any]) -> str:
    return record.get("uniquename") or record.get("appactionid") or ""


def modern_command_from_record(record: dict[str, Any], context: str) -> Optional[Command]:
    """
    Build a command from an ``appaction`` record.

    Records flagged ``hidden`` are not shown on any command bar and yield
    ``None``.
    """
    if record.get("hidden"):
        return None
    command_id = modern_command_id(record)
    if not command_id:
        return None

    rules: list[Rule] = []
    visibility_type = record.get("visibilitytype")
    formula = record.get("visibilityformulafunctionname")
    if visibility_type == VISIBILITY_FORMULA and formula:
        rules.append(
            Rule(
                id=FORMULA_RULE_ID,
                kind=RuleKind.CUSTOM_JS,
                parameters={"function_name": formula, "label": "Visibility Formula"},
                reason="Power Fx expression",
            )
        )
    elif visibility_type == VISIBILITY_CLASSIC_RULES:
        rules.append(
            Rule(
                id=CLASSIC_RULES_ID,
                kind=RuleKind.UNKNOWN,
                parameters={"label": "Classic Rules"},
                reason="Legacy ribbon rules",
            )
        )

    return Command(
        id=command_id,
        button_id=command_id,
        name=record.get("buttonlabeltext") or record.get("name") or command_id,
        context=context,
        source=CommandSource.MODERN,
        entity=record.get("contextvalue"),
        is_managed=bool(record.get("ismanaged")),
        display_rules=rules,
        solution_id=record.get("solutionid"),
    )
