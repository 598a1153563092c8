"""
Visibility aggregation.

Merges the standard, ribbon-diff and modern command sources, evaluates every
command for both principals, assigns a difference verdict and produces the
ordered report and its summary.

Commands whose rules cannot be decided server-side are assumed visible
(``INDETERMINATE``). When the two principals' roles or teams differ such a
command is flagged ``potential-difference`` and the differing roles and
teams are listed as a hint.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..privileges.resolver import clean_id
from ..privileges.types import PrincipalPrivilegeMap
from ..ribbon.standard_commands import StandardCommand
from ..ribbon.types import Command, CommandSource
from ..rules.evaluation import (
    CustomRuleRegistry,
    evaluate_rules,
    iter_custom_rules,
)
from ..rules.types import EvaluationOutcome, Rule, RuleKind, combine_outcomes
from ..security_context import SecurityComparison
from .types import ComparisonSummary, Difference, EvaluationMethod, VisibilityResult

logger = logging.getLogger(__name__)

OOTB_SOLUTION = "System (OOTB)"
OOTB_PUBLISHER = "Microsoft"
ALL_ENTITIES = "All Entities"


@dataclass
class AggregationInput:
    """Everything one aggregation pass needs, already fetched."""

    context: str
    entity: Optional[str]
    current_privileges: PrincipalPrivilegeMap
    target_privileges: PrincipalPrivilegeMap
    security: SecurityComparison
    standard_commands: list[StandardCommand] = field(default_factory=list)
    ribbon_diff_commands: list[Command] = field(default_factory=list)
    modern_commands: list[Command] = field(default_factory=list)
    hidden_command_ids: set[str] = field(default_factory=set)
    entity_metadata: dict[str, Any] = field(default_factory=dict)
    current_misc_privileges: dict[str, bool] = field(default_factory=dict)
    target_misc_privileges: dict[str, bool] = field(default_factory=dict)
    solutions: dict[str, dict[str, Any]] = field(default_factory=dict)
    publishers: dict[str, dict[str, Any]] = field(default_factory=dict)
    custom_rule_context: dict[str, Any] = field(default_factory=dict)


def determine_difference(
    current_visible: bool,
    target_visible: bool,
    has_custom_rules: bool = False,
    security_context_match: bool = True,
) -> Difference:
    if current_visible and not target_visible:
        return Difference.ONLY_CURRENT
    if target_visible and not current_visible:
        return Difference.ONLY_TARGET
    if has_custom_rules and not security_context_match:
        return Difference.POTENTIAL
    return Difference.SAME


def sort_results(results: Iterable[VisibilityResult]) -> list[VisibilityResult]:
    return sorted(results, key=lambda result: result.sort_key)


class VisibilityAggregator:
    """
    Merge, evaluate and diff command sources.

    ``custom_rules`` optionally supplies implementations of custom rules;
    their results are attached to the acting (current) principal's details
    only and never change the computed visibility.
    """

    def __init__(self, custom_rules: Optional[CustomRuleRegistry] = None):
        self.custom_rules = custom_rules

    def aggregate(self, data: AggregationInput) -> tuple[list[VisibilityResult], ComparisonSummary]:
        processed: set[str] = set()
        results: list[VisibilityResult] = []

        def claim(command_id: str) -> bool:
            if not command_id or command_id in processed or command_id in data.hidden_command_ids:
                return False
            processed.add(command_id)
            return True

        for command in data.standard_commands:
            if command.context != data.context or not claim(command.id):
                continue
            results.append(self.evaluate_standard(command, data))

        for command in data.ribbon_diff_commands:
            if not claim(command.id):
                continue
            results.append(self._safe_evaluate(command, data, self.evaluate_ribbon_diff))

        for command in data.modern_commands:
            if not claim(command.id):
                continue
            results.append(self._safe_evaluate(command, data, self.evaluate_modern))

        ordered = sort_results(results)
        summary = build_summary(ordered, data)
        logger.debug(
            "Aggregated %s command(s): %s difference(s), %s potential",
            summary.total_commands,
            summary.differences,
            summary.potential_differences,
        )
        return ordered, summary

    def evaluate_standard(self, command: StandardCommand, data: AggregationInput) -> VisibilityResult:
        entity_label = data.entity or ALL_ENTITIES
        common = dict(
            command_id=command.id,
            command_name=command.name,
            entity=entity_label,
            solution_name=OOTB_SOLUTION,
            publisher_name=OOTB_PUBLISHER,
            is_managed=True,
            source=CommandSource.STANDARD.value,
            rules=tuple(command.rules),
            description=command.description,
            selection_required=command.selection_required,
            is_standard_command=True,
        )

        if command.entity_property and not _entity_property_met(
            data.entity_metadata, command.entity_property
        ):
            reason = f"Entity does not have {command.entity_property}"
            # The gate does not depend on the principal.
            outcome = EvaluationOutcome.failed(reason)
            return VisibilityResult(
                current_outcome=outcome,
                target_outcome=outcome,
                current_user_blocked_by=(reason,),
                target_user_blocked_by=(reason,),
                difference=Difference.SAME,
                evaluation_method=EvaluationMethod.ENTITY_PROPERTY,
                **common,
            )

        current_blocked = _standard_blockers(
            command, data.current_privileges, data.current_misc_privileges
        )
        target_blocked = _standard_blockers(
            command, data.target_privileges, data.target_misc_privileges
        )
        current_outcome = _outcome_from_blockers(current_blocked)
        target_outcome = _outcome_from_blockers(target_blocked)
        return VisibilityResult(
            current_outcome=current_outcome,
            target_outcome=target_outcome,
            current_user_blocked_by=tuple(current_blocked),
            target_user_blocked_by=tuple(target_blocked),
            difference=determine_difference(current_outcome.visible, target_outcome.visible),
            evaluation_method=EvaluationMethod.STANDARD_PRIVILEGE,
            **common,
        )

    def evaluate_ribbon_diff(self, command: Command, data: AggregationInput) -> VisibilityResult:
        current_outcomes: list[EvaluationOutcome] = []
        target_outcomes: list[EvaluationOutcome] = []
        current_blocked: list[str] = []
        target_blocked: list[str] = []
        custom_details: list[dict[str, Any]] = []
        has_custom_rules = False

        current_results = evaluate_rules(command.rules, data.current_privileges)
        target_results = evaluate_rules(command.rules, data.target_privileges)
        for (rule, current), (_, target) in zip(current_results, target_results):
            current_outcomes.append(current)
            target_outcomes.append(target)
            if rule.evaluable:
                if current.is_fail:
                    current_blocked.append(f"{rule.id}: {current.reason}")
                if target.is_fail:
                    target_blocked.append(f"{rule.id}: {target.reason}")
            else:
                has_custom_rules = True
                custom_details.append({"rule_id": rule.id, "reason": rule.reason})

        custom_details.extend(self._custom_rule_results(command, data))

        method = EvaluationMethod.PRIVILEGE_BASED
        if command.parse_error:
            method = EvaluationMethod.PARSE_ERROR
        elif has_custom_rules:
            method = (
                EvaluationMethod.SECURITY_CONTEXT_MATCH
                if data.security.security_context_match
                else EvaluationMethod.SECURITY_CONTEXT_DIFFERS
            )

        return self._build_custom_source_result(
            command,
            data,
            current_outcome=combine_outcomes(current_outcomes),
            target_outcome=combine_outcomes(target_outcomes),
            current_blocked=current_blocked,
            target_blocked=target_blocked,
            has_custom_rules=has_custom_rules,
            custom_details=custom_details,
            method=method,
            default_solution="Unknown",
            default_publisher="Unknown",
            rule_labels=[rule.id for rule in command.rules],
        )

    def evaluate_modern(self, command: Command, data: AggregationInput) -> VisibilityResult:
        rules = command.rules
        has_visibility_rules = bool(rules)
        if not rules:
            method = EvaluationMethod.ALWAYS_VISIBLE
            outcome = EvaluationOutcome.passed()
        else:
            method = (
                EvaluationMethod.POWER_FX_FORMULA
                if rules[0].kind is RuleKind.CUSTOM_JS
                else EvaluationMethod.CLASSIC_RULES
            )
            outcome = EvaluationOutcome.indeterminate(rules[0].reason)

        return self._build_custom_source_result(
            command,
            data,
            current_outcome=outcome,
            target_outcome=outcome,
            current_blocked=[],
            target_blocked=[],
            has_custom_rules=has_visibility_rules,
            custom_details=[{"rule_id": rule.id, "reason": rule.reason} for rule in rules]
            + self._custom_rule_results(command, data),
            method=method,
            default_solution="Active",
            default_publisher="Default Publisher",
            rule_labels=[rule.parameters.get("label", rule.id) for rule in rules],
        )

    def _build_custom_source_result(
        self,
        command: Command,
        data: AggregationInput,
        *,
        current_outcome: EvaluationOutcome,
        target_outcome: EvaluationOutcome,
        current_blocked: list[str],
        target_blocked: list[str],
        has_custom_rules: bool,
        custom_details: list[dict[str, Any]],
        method: str,
        default_solution: str,
        default_publisher: str,
        rule_labels: list[str],
    ) -> VisibilityResult:
        security_match = data.security.security_context_match
        if has_custom_rules and not security_match:
            current_blocked = current_blocked + data.security.hints_for_a()
            target_blocked = target_blocked + data.security.hints_for_b()

        solution_name, publisher_name = _attribution(
            command.solution_id, data, default_solution, default_publisher
        )
        return VisibilityResult(
            command_id=command.id,
            command_name=command.name,
            entity=command.entity or ALL_ENTITIES,
            solution_name=solution_name,
            publisher_name=publisher_name,
            is_managed=command.is_managed,
            source=command.source.value,
            current_outcome=current_outcome,
            target_outcome=target_outcome,
            current_user_blocked_by=tuple(current_blocked),
            target_user_blocked_by=tuple(target_blocked),
            difference=determine_difference(
                current_outcome.visible,
                target_outcome.visible,
                has_custom_rules,
                security_match,
            ),
            rules=tuple(rule_labels),
            has_custom_rules=has_custom_rules,
            evaluation_method=method,
            custom_rule_details=tuple(custom_details),
            rule_details=tuple(rule.to_dict() for rule in command.rules),
        )

    def _custom_rule_results(self, command: Command, data: AggregationInput) -> list[dict[str, Any]]:
        if not self.custom_rules:
            return []
        context = {
            "command_id": command.id,
            "entity": data.entity,
            "context": data.context,
            **data.custom_rule_context,
        }
        details = []
        for rule in iter_custom_rules(command.rules):
            result = self.custom_rules.evaluate(rule, context)
            details.append({**result.to_dict(), "principal": "current"})
        return details

    def _safe_evaluate(self, command: Command, data: AggregationInput, evaluate) -> VisibilityResult:
        try:
            return evaluate(command, data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Could not evaluate command %s: %s", command.id, exc)
            degraded = Command(
                id=command.id,
                name=command.name,
                context=command.context,
                source=command.source,
                button_id=command.button_id,
                entity=command.entity,
                is_managed=command.is_managed,
                display_rules=[
                    Rule(id=command.id, kind=RuleKind.UNKNOWN, reason=f"Evaluation failed: {exc}")
                ],
                solution_id=command.solution_id,
                parse_error=str(exc),
            )
            return self.evaluate_ribbon_diff(degraded, data)


def build_summary(results: list[VisibilityResult], data: AggregationInput) -> ComparisonSummary:
    counts = {difference: 0 for difference in Difference}
    for result in results:
        counts[result.difference] += 1

    by_source = {source: 0 for source in CommandSource}
    for result in results:
        by_source[CommandSource(result.source)] += 1

    security = data.security
    return ComparisonSummary(
        total_commands=len(results),
        ootb_commands=sum(1 for r in results if r.is_standard_command),
        custom_commands=sum(1 for r in results if not r.is_standard_command),
        standard_commands=by_source[CommandSource.STANDARD],
        ribbon_diff_commands=by_source[CommandSource.RIBBON_DIFF],
        modern_commands=by_source[CommandSource.MODERN],
        managed_commands=sum(1 for r in results if r.is_managed),
        unmanaged_commands=sum(
            1 for r in results if not r.is_managed and not r.is_standard_command
        ),
        differences=counts[Difference.ONLY_CURRENT] + counts[Difference.ONLY_TARGET],
        potential_differences=counts[Difference.POTENTIAL],
        only_current_user=counts[Difference.ONLY_CURRENT],
        only_target_user=counts[Difference.ONLY_TARGET],
        same_visibility=counts[Difference.SAME],
        hidden_commands=len(data.hidden_command_ids),
        context=data.context,
        entity=data.entity or "Global",
        security_comparison={
            "roles_match": security.roles_match,
            "teams_match": security.teams_match,
            "shared_roles": len(security.roles.shared),
            "roles_only_current": [role.to_dict() for role in security.roles.only_a],
            "roles_only_target": [role.to_dict() for role in security.roles.only_b],
            "shared_teams": len(security.teams.shared),
            "teams_only_current": [team.to_dict() for team in security.teams.only_a],
            "teams_only_target": [team.to_dict() for team in security.teams.only_b],
        },
    )


def _entity_property_met(metadata: dict[str, Any], name: str) -> bool:
    return metadata.get(name) is True


def _standard_blockers(
    command: StandardCommand, privileges: PrincipalPrivilegeMap, misc: dict[str, bool]
) -> list[str]:
    blocked = []
    if not privileges.has(command.required_privilege):
        blocked.append(f"Missing {command.required_privilege} privilege")
    if command.misc_privilege and not misc.get(command.misc_privilege, True):
        blocked.append(f"Missing {command.misc_privilege}")
    return blocked


def _outcome_from_blockers(blocked: list[str]) -> EvaluationOutcome:
    if blocked:
        return EvaluationOutcome.failed("; ".join(blocked))
    return EvaluationOutcome.passed()


def _attribution(
    solution_id: Optional[str],
    data: AggregationInput,
    default_solution: str,
    default_publisher: str,
) -> tuple[str, str]:
    solution = data.solutions.get(clean_id(solution_id)) if solution_id else None
    if not solution:
        return default_solution, default_publisher
    publisher = data.publishers.get(clean_id(solution.get("publisherid"))) or {}
    return (
        solution.get("friendlyname") or default_solution,
        publisher.get("friendlyname") or default_publisher,
    )
