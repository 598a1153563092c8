"""
Type definitions for visibility comparison results.

- Difference: per-command verdict, with its sort priority
- VisibilityResult: one command's comparison outcome
- ComparisonSummary / ComparisonResult: the report handed to callers
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..rules.types import EvaluationOutcome


class Difference(Enum):
    ONLY_CURRENT = "only-current"
    ONLY_TARGET = "only-target"
    POTENTIAL = "potential-difference"
    SAME = "same"

    @property
    def priority(self) -> int:
        return DIFFERENCE_PRIORITY[self]


DIFFERENCE_PRIORITY: dict[Difference, int] = {
    Difference.ONLY_CURRENT: 0,
    Difference.ONLY_TARGET: 1,
    Difference.POTENTIAL: 2,
    Difference.SAME: 3,
}


class EvaluationMethod:
    STANDARD_PRIVILEGE = "standard-privilege"
    ENTITY_PROPERTY = "entity-property"
    PRIVILEGE_BASED = "privilege-based"
    SECURITY_CONTEXT_MATCH = "security-context-match"
    SECURITY_CONTEXT_DIFFERS = "security-context-differs"
    POWER_FX_FORMULA = "power-fx-formula"
    CLASSIC_RULES = "classic-rules"
    ALWAYS_VISIBLE = "always-visible"
    PARSE_ERROR = "parse-error"


@dataclass(frozen=True)
class VisibilityResult:
    command_id: str
    command_name: str
    entity: str
    solution_name: str
    publisher_name: str
    is_managed: bool
    source: str
    current_outcome: EvaluationOutcome
    target_outcome: EvaluationOutcome
    current_user_blocked_by: tuple[str, ...] = ()
    target_user_blocked_by: tuple[str, ...] = ()
    difference: Difference = Difference.SAME
    rules: tuple[str, ...] = ()
    has_custom_rules: bool = False
    evaluation_method: str = EvaluationMethod.PRIVILEGE_BASED
    custom_rule_details: tuple[dict[str, Any], ...] = ()
    rule_details: tuple[dict[str, Any], ...] = ()
    description: Optional[str] = None
    selection_required: bool = False
    is_standard_command: bool = False

    @property
    def visible_to_current_user(self) -> bool:
        return self.current_outcome.visible

    @property
    def visible_to_target_user(self) -> bool:
        return self.target_outcome.visible

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.difference.priority, self.command_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "command_id": self.command_id,
            "command_name": self.command_name,
            "entity": self.entity,
            "solution_name": self.solution_name,
            "publisher_name": self.publisher_name,
            "is_managed": self.is_managed,
            "source": self.source,
            "is_standard_command": self.is_standard_command,
            "visible_to_current_user": self.visible_to_current_user,
            "visible_to_target_user": self.visible_to_target_user,
            "current_user_outcome": self.current_outcome.status.value,
            "target_user_outcome": self.target_outcome.status.value,
            "current_user_blocked_by": list(self.current_user_blocked_by),
            "target_user_blocked_by": list(self.target_user_blocked_by),
            "difference": self.difference.value,
            "rules": list(self.rules),
            "rule_details": [dict(detail) for detail in self.rule_details],
            "has_custom_rules": self.has_custom_rules,
            "custom_rule_details": [dict(detail) for detail in self.custom_rule_details],
            "evaluation_method": self.evaluation_method,
            "description": self.description,
            "selection_required": self.selection_required,
        }


@dataclass
class ComparisonSummary:
    total_commands: int = 0
    ootb_commands: int = 0
    custom_commands: int = 0
    standard_commands: int = 0
    ribbon_diff_commands: int = 0
    modern_commands: int = 0
    managed_commands: int = 0
    unmanaged_commands: int = 0
    differences: int = 0
    potential_differences: int = 0
    only_current_user: int = 0
    only_target_user: int = 0
    same_visibility: int = 0
    hidden_commands: int = 0
    context: str = "HomePageGrid"
    entity: str = "Global"
    security_comparison: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_commands": self.total_commands,
            "ootb_commands": self.ootb_commands,
            "custom_commands": self.custom_commands,
            "standard_commands": self.standard_commands,
            "ribbon_diff_commands": self.ribbon_diff_commands,
            "modern_commands": self.modern_commands,
            "managed_commands": self.managed_commands,
            "unmanaged_commands": self.unmanaged_commands,
            "differences": self.differences,
            "potential_differences": self.potential_differences,
            "only_current_user": self.only_current_user,
            "only_target_user": self.only_target_user,
            "same_visibility": self.same_visibility,
            "hidden_commands": self.hidden_commands,
            "context": self.context,
            "entity": self.entity,
            "security_comparison": dict(self.security_comparison),
        }


@dataclass
class ComparisonResult:
    commands: list[VisibilityResult] = field(default_factory=list)
    summary: ComparisonSummary = field(default_factory=ComparisonSummary)
    notifications: list[dict[str, Any]] = field(default_factory=list)
    current_user_id: Optional[str] = None
    target_user_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "commands": [command.to_dict() for command in self.commands],
            "summary": self.summary.to_dict(),
            "notifications": list(self.notifications),
            "current_user_id": self.current_user_id,
            "target_user_id": self.target_user_id,
        }
