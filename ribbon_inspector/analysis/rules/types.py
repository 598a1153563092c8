"""
Type definitions for ribbon rules.

- RuleKind: closed taxonomy of rule kinds
- Rule: a classified DisplayRule/EnableRule reference
- OutcomeStatus / EvaluationOutcome: tagged Pass | Fail | Indeterminate result
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional


class RuleKind(Enum):
    """Kinds of ribbon rules the engine distinguishes."""

    PRIVILEGE = "PrivilegeRule"
    ALWAYS_HIDE = "AlwaysHide"
    ALWAYS_SHOW = "AlwaysShow"
    FORM_STATE = "FormState"
    SELECTION_COUNT = "SelectionCount"
    ORG_SETTING = "OrgSetting"
    MISC_PRIVILEGE = "MiscPrivilege"
    CUSTOM_JS = "CustomJS"
    VALUE = "ValueRule"
    RECORD_PRIVILEGE = "RecordPrivilegeRule"
    COMPOSITE = "Composite"
    UNKNOWN = "Unknown"


class CompositeOperator(Enum):
    OR = "Or"
    AND = "And"


@dataclass(frozen=True)
class Rule:
    """A rule reference resolved to a kind and its parameters."""

    id: str
    kind: RuleKind
    parameters: dict[str, Any] = field(default_factory=dict)
    evaluable: bool = False
    reason: str = ""
    operator: Optional[CompositeOperator] = None
    children: tuple["Rule", ...] = ()

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "kind": self.kind.value,
            "parameters": dict(self.parameters),
            "evaluable": self.evaluable,
            "reason": self.reason,
        }
        if self.kind is RuleKind.COMPOSITE:
            data["operator"] = self.operator.value if self.operator else None
            data["children"] = [child.to_dict() for child in self.children]
        return data


class OutcomeStatus(Enum):
    PASS = "pass"
    FAIL = "fail"
    INDETERMINATE = "indeterminate"


@dataclass(frozen=True)
class EvaluationOutcome:
    """
    Result of evaluating a rule, or a command, for one principal.

    ``INDETERMINATE`` means the engine assumed visibility because the rule
    depends on context unavailable server-side; callers can tell it apart
    from a verified ``PASS``.
    """

    status: OutcomeStatus
    reason: str = ""

    @classmethod
    def passed(cls, reason: str = "") -> "EvaluationOutcome":
        return cls(OutcomeStatus.PASS, reason)

    @classmethod
    def failed(cls, reason: str) -> "EvaluationOutcome":
        return cls(OutcomeStatus.FAIL, reason)

    @classmethod
    def indeterminate(cls, reason: str) -> "EvaluationOutcome":
        return cls(OutcomeStatus.INDETERMINATE, reason)

    @property
    def is_pass(self) -> bool:
        return self.status is OutcomeStatus.PASS

    @property
    def is_fail(self) -> bool:
        return self.status is OutcomeStatus.FAIL

    @property
    def is_indeterminate(self) -> bool:
        return self.status is OutcomeStatus.INDETERMINATE

    @property
    def visible(self) -> bool:
        """Boolean projection: only a failure hides."""
        return not self.is_fail


def combine_outcomes(outcomes: Iterable[EvaluationOutcome]) -> EvaluationOutcome:
    """Fail if any failed, else indeterminate if any was, else pass."""
    indeterminate: Optional[EvaluationOutcome] = None
    for outcome in outcomes:
        if outcome.is_fail:
            return outcome
        if outcome.is_indeterminate and indeterminate is None:
            indeterminate = outcome
    return indeterminate or EvaluationOutcome.passed()


__all__ = [
    "RuleKind",
    "CompositeOperator",
    "Rule",
    "OutcomeStatus",
    "EvaluationOutcome",
    "combine_outcomes",
]
