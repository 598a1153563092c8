"""
GraphQL query types for command bar visibility comparison.
"""

import logging
from typing import Optional

import graphene
from graphene.types.generic import GenericScalar
from graphql import GraphQLError

from ..analysis.service import build_analysis_service
from ..dataverse.cache import get_shared_ribbon_cache
from ..dataverse.config import InspectorSettings, get_inspector_settings
from ..dataverse.exceptions import DataverseError

logger = logging.getLogger(__name__)


class NotificationType(graphene.ObjectType):
    level = graphene.String()
    message = graphene.String()
    source = graphene.String()

    class Meta:
        name = "InspectorNotification"


class CommandVisibilityType(graphene.ObjectType):
    command_id = graphene.String(required=True)
    command_name = graphene.String()
    entity = graphene.String()
    solution_name = graphene.String()
    publisher_name = graphene.String()
    is_managed = graphene.Boolean()
    source = graphene.String()
    is_standard_command = graphene.Boolean()
    visible_to_current_user = graphene.Boolean()
    visible_to_target_user = graphene.Boolean()
    current_user_outcome = graphene.String()
    target_user_outcome = graphene.String()
    current_user_blocked_by = graphene.List(graphene.String)
    target_user_blocked_by = graphene.List(graphene.String)
    difference = graphene.String()
    rules = graphene.List(graphene.String)
    rule_details = GenericScalar()
    has_custom_rules = graphene.Boolean()
    custom_rule_details = GenericScalar()
    evaluation_method = graphene.String()
    description = graphene.String()
    selection_required = graphene.Boolean()

    class Meta:
        name = "CommandVisibility"


class ComparisonSummaryType(graphene.ObjectType):
    total_commands = graphene.Int()
    ootb_commands = graphene.Int()
    custom_commands = graphene.Int()
    standard_commands = graphene.Int()
    ribbon_diff_commands = graphene.Int()
    modern_commands = graphene.Int()
    managed_commands = graphene.Int()
    unmanaged_commands = graphene.Int()
    differences = graphene.Int()
    potential_differences = graphene.Int()
    only_current_user = graphene.Int()
    only_target_user = graphene.Int()
    same_visibility = graphene.Int()
    hidden_commands = graphene.Int()
    context = graphene.String()
    entity = graphene.String()
    security_comparison = GenericScalar()

    class Meta:
        name = "CommandBarComparisonSummary"


class RibbonVisibilityComparisonType(graphene.ObjectType):
    current_user_id = graphene.String()
    target_user_id = graphene.String()
    commands = graphene.List(CommandVisibilityType)
    summary = graphene.Field(ComparisonSummaryType)
    notifications = graphene.List(NotificationType)

    class Meta:
        name = "RibbonVisibilityComparison"


class TeamRefType(graphene.ObjectType):
    team_id = graphene.String()
    team_name = graphene.String()


class RoleType(graphene.ObjectType):
    id = graphene.String(required=True)
    name = graphene.String()
    is_inherited = graphene.Boolean()
    teams = graphene.List(TeamRefType)

    class Meta:
        name = "SecurityRole"


class TeamType(graphene.ObjectType):
    id = graphene.String(required=True)
    name = graphene.String()
    team_type = graphene.Int()
    team_type_name = graphene.String()

    class Meta:
        name = "SecurityTeam"


class PrincipalSecurityType(graphene.ObjectType):
    user_id = graphene.String()
    roles = graphene.List(RoleType)
    teams = graphene.List(TeamType)


class RolePartitionType(graphene.ObjectType):
    shared = graphene.List(RoleType)
    only_current = graphene.List(RoleType, source="only_a")
    only_target = graphene.List(RoleType, source="only_b")


class TeamPartitionType(graphene.ObjectType):
    shared = graphene.List(TeamType)
    only_current = graphene.List(TeamType, source="only_a")
    only_target = graphene.List(TeamType, source="only_b")


class SecurityDifferencesType(graphene.ObjectType):
    roles_match = graphene.Boolean()
    teams_match = graphene.Boolean()
    security_context_match = graphene.Boolean()
    roles = graphene.Field(RolePartitionType)
    teams = graphene.Field(TeamPartitionType)


class SecurityContextComparisonType(graphene.ObjectType):
    current_user = graphene.Field(PrincipalSecurityType)
    target_user = graphene.Field(PrincipalSecurityType)
    differences = graphene.Field(SecurityDifferencesType)

    class Meta:
        name = "SecurityContextComparison"


class RibbonInspectorQuery(graphene.ObjectType):
    """Queries comparing what two Dataverse principals can see."""

    ribbon_visibility_comparison = graphene.Field(
        RibbonVisibilityComparisonType,
        target_user_id=graphene.String(required=True),
        entity=graphene.String(),
        context=graphene.String(),
        comparison_user_id=graphene.String(),
        description="Compare command bar visibility between two principals.",
    )
    security_context_comparison = graphene.Field(
        SecurityContextComparisonType,
        target_user_id=graphene.String(required=True),
        comparison_user_id=graphene.String(),
        description="Compare the roles and teams of two principals.",
    )

    @staticmethod
    def resolve_ribbon_visibility_comparison(
        root,
        info,
        target_user_id: str,
        entity: Optional[str] = None,
        context: Optional[str] = None,
        comparison_user_id: Optional[str] = None,
    ):
        settings = get_inspector_settings()
        _check_access(info, settings)
        service = _build_service(settings)
        try:
            result = service.compare_command_bar_visibility(
                target_user_id,
                entity=entity,
                context=context,
                comparison_user_id=comparison_user_id,
            )
        except ValueError as exc:
            raise GraphQLError(str(exc)) from exc
        return result.to_dict()

    @staticmethod
    def resolve_security_context_comparison(
        root, info, target_user_id: str, comparison_user_id: Optional[str] = None
    ):
        settings = get_inspector_settings()
        _check_access(info, settings)
        service = _build_service(settings)
        try:
            report = service.compare_security_context(
                target_user_id, comparison_user_id=comparison_user_id
            )
        except ValueError as exc:
            raise GraphQLError(str(exc)) from exc
        except DataverseError as exc:
            logger.warning("Security context comparison failed: %s", exc)
            raise GraphQLError(f"Failed to compare security context: {exc}") from exc
        return report.to_dict()


def _check_access(info, settings: InspectorSettings) -> None:
    user = getattr(info.context, "user", None)
    authenticated = bool(user and getattr(user, "is_authenticated", False))
    if settings.require_authentication and not authenticated:
        raise GraphQLError("Authentication required.")
    if settings.require_staff and not (authenticated and getattr(user, "is_staff", False)):
        raise GraphQLError("Staff access required.")


def _build_service(settings: InspectorSettings):
    try:
        return build_analysis_service(
            settings=settings,
            cache=get_shared_ribbon_cache(settings.ribbon_cache_ttl_seconds),
        )
    except DataverseError as exc:
        logger.error("Dataverse is not configured: %s", exc)
        raise GraphQLError(str(exc)) from exc
